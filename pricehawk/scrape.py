# pricehawk/scrape.py
"""Price sources: where a fresh observed price for a listing comes from.

`MockPriceSource` is the default placeholder and never touches the network.
`PlaywrightPriceSource` loads the listing page in a headless browser and
parses it with BeautifulSoup.
"""
import os, json, re, random
from abc import ABC, abstractmethod
from decimal import Decimal, ROUND_HALF_UP
from dotenv import load_dotenv
from playwright.sync_api import sync_playwright
from bs4 import BeautifulSoup
from time import sleep
from .errors import UpstreamFailure
from .utils import logger, retry

# try to detect available parser; prefer lxml if installed
try:
    import lxml  # type: ignore  # noqa: F401
    _bs_parser = "lxml"
except ImportError:
    _bs_parser = "html.parser"

load_dotenv()
PRICE_SOURCE = os.getenv("PRICE_SOURCE", "mock").lower()
HEADLESS = os.getenv("HEADLESS", "1") == "1"
COOKIES_FILE = os.getenv("PLAYWRIGHT_COOKIES_FILE")
MOCK_PRICE_SEED = os.getenv("MOCK_PRICE_SEED")

_PRICE_RE = re.compile(r"([₱\$€£]|PHP|USD)\s*([0-9][0-9,]*(?:\.[0-9]+)?)")
_CENTS = Decimal("0.01")


def parse_listing_html(html):
    """Extract title, price and location from a listing page.

    Price is the first currency-prefixed number in the page text, or None.
    """
    soup = BeautifulSoup(html, _bs_parser)
    title = soup.find("meta", property="og:title")
    if title and title.get("content"):
        title = title["content"].strip()
    else:
        title = soup.title.string.strip() if soup.title and soup.title.string else None
    text_blob = soup.get_text(" ", strip=True)
    price_m = _PRICE_RE.search(text_blob)
    price = Decimal(price_m.group(2).replace(",", "")) if price_m else None
    location = None
    loc = soup.select_one("[data-testid*='location'], [class*='location']")
    if loc:
        location = loc.get_text(" ", strip=True)
    return {"title": title, "price": price, "location": location}


class PriceSource(ABC):

    @abstractmethod
    def fetch_current_price(self, url, reference_price=None) -> Decimal:
        """Return the current price at `url` or raise UpstreamFailure."""
        ...


class MockPriceSource(PriceSource):
    """Placeholder source returning canned or randomly drifted prices.

    Prices in `prices` (keyed by URL) win. Otherwise the reference price is
    moved by up to `max_step` (a fraction) in either direction, or left as is
    half of the time. With no reference price there is nothing to report.
    """

    def __init__(self, prices=None, seed=None, max_step=0.05):
        self.prices = dict(prices or {})
        self.max_step = max_step
        self._rng = random.Random(seed)

    def fetch_current_price(self, url, reference_price=None) -> Decimal:
        if url in self.prices:
            return Decimal(str(self.prices[url]))
        if reference_price is None:
            raise UpstreamFailure(f"no mock price for {url}")
        base = Decimal(str(reference_price))
        if self._rng.random() < 0.5:
            return base
        factor = Decimal(str(1 + self._rng.uniform(-self.max_step, self.max_step)))
        return max(Decimal("0"), (base * factor).quantize(_CENTS, rounding=ROUND_HALF_UP))


class PlaywrightPriceSource(PriceSource):
    def __init__(self, headless=HEADLESS, cookies_file=COOKIES_FILE, timeout_ms=60000):
        self.headless = headless
        self.cookies_file = cookies_file
        self.timeout_ms = timeout_ms

    def fetch_current_price(self, url, reference_price=None) -> Decimal:
        try:
            html = self._fetch_html(url)
        except Exception as e:
            raise UpstreamFailure(f"failed to load {url}: {e}") from e
        data = parse_listing_html(html)
        if data["price"] is None:
            raise UpstreamFailure(f"no price found at {url}")
        return data["price"]

    @retry(Exception, tries=3, delay=2, backoff=2)
    def _fetch_html(self, url):
        with sync_playwright() as p:
            browser = p.chromium.launch(headless=self.headless)
            context = browser.new_context()
            try:
                if self.cookies_file and os.path.exists(self.cookies_file):
                    try:
                        with open(self.cookies_file, "r", encoding="utf-8") as fh:
                            context.add_cookies(json.load(fh))
                    except (OSError, ValueError) as e:
                        logger.error("Failed loading cookies: %s", e)
                page = context.new_page()
                page.goto(url, timeout=self.timeout_ms)
                page.wait_for_load_state("domcontentloaded")
                sleep(1)
                return page.content()
            finally:
                context.close()
                browser.close()


def get_price_source() -> PriceSource:
    if PRICE_SOURCE == "playwright":
        return PlaywrightPriceSource()
    if PRICE_SOURCE != "mock":
        logger.warning("Unknown PRICE_SOURCE %r, using mock", PRICE_SOURCE)
    seed = int(MOCK_PRICE_SEED) if MOCK_PRICE_SEED else None
    return MockPriceSource(seed=seed)
