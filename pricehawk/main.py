import os
from contextlib import asynccontextmanager
from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pricehawk.db import Base, DATABASE_URL, engine
import pricehawk.models  # noqa: F401 ensure models are imported so tables are known
from pricehawk.api.routes import router as api_router
from pricehawk.scheduler import shutdown_scheduler, start_scheduler
from pricehawk.utils import logger

load_dotenv()
FRONTEND_URL = os.getenv("FRONTEND_URL", "*")
SCHEDULER_ENABLED = os.getenv("SCHEDULER_ENABLED", "1") == "1"


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Ensure database tables are created on startup
    Base.metadata.create_all(bind=engine)
    logger.info("Database: %s", DATABASE_URL.split("@")[-1])
    if SCHEDULER_ENABLED:
        start_scheduler()
    yield
    shutdown_scheduler()


# create FastAPI instance
app = FastAPI(title="PriceHawk", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=[FRONTEND_URL] if FRONTEND_URL != "*" else ["*"],
    allow_credentials=FRONTEND_URL != "*",
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(api_router)
