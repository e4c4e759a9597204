import argparse
from dotenv import load_dotenv

# Load environment variables from .env
load_dotenv()


def main(argv=None):
    parser = argparse.ArgumentParser(description="Run one price check sweep over all active listings.")
    parser.add_argument("--delay", type=float, default=None,
                        help="seconds to wait between listings (default: CHECK_DELAY_SECONDS)")
    parser.add_argument("--create-tables", action="store_true",
                        help="create missing tables before sweeping")
    args = parser.parse_args(argv)

    from pricehawk.db import Base, SessionLocal, engine
    import pricehawk.models  # noqa: F401
    from pricehawk.scheduler import CHECK_DELAY_SECONDS, sweep_active_listings

    if args.create_tables:
        Base.metadata.create_all(bind=engine)

    delay = CHECK_DELAY_SECONDS if args.delay is None else args.delay
    report = sweep_active_listings(SessionLocal, delay=delay)
    print(f"Checked {report.checked} listing(s): {report.changed} changed, "
          f"{report.fired} alert(s) fired, {report.failed} failed")
    if report.failed_listing_ids:
        print("Failed listings: " + ", ".join(str(i) for i in report.failed_listing_ids))
    return 1 if report.failed else 0


if __name__ == "__main__":
    raise SystemExit(main())
