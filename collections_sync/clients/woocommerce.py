import requests
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..config import CATALOG_API_PREFIX, Settings
from ..utils.logger import debug

THROTTLE_STATUSES = (429, 503)


class CatalogThrottled(Exception):
    """The catalog asked us to slow down (429/503)."""


class CatalogUnavailable(Exception):
    """Lookup could not be answered: transport failure, non-2xx or garbage body."""


def products_url(base_url: str) -> str:
    return f"{base_url.rstrip('/')}{CATALOG_API_PREFIX}/products"


class WooCommerceClient:
    """Read-only product lookups against the WooCommerce REST API."""

    def __init__(self, settings: Settings, session: requests.Session | None = None, wait=None):
        self.settings = settings
        self.session = session or requests.Session()
        self._wait = wait if wait is not None else wait_exponential(multiplier=0.5, min=0.5, max=4)

    @property
    def configured(self) -> bool:
        return self.settings.catalog_configured

    def _get_products(self, sku: str) -> list:
        params = {
            "sku": sku,
            "consumer_key": self.settings.catalog_consumer_key,
            "consumer_secret": self.settings.catalog_consumer_secret,
        }
        try:
            r = self.session.get(
                products_url(self.settings.catalog_base_url),
                params=params,
                headers={"Accept": "application/json"},
                timeout=self.settings.catalog_timeout_sec,
            )
        except requests.RequestException as e:
            raise CatalogUnavailable(f"request failed: {e.__class__.__name__}") from e

        if r.status_code in THROTTLE_STATUSES:
            raise CatalogThrottled(str(r.status_code))
        if not r.ok:
            raise CatalogUnavailable(f"status {r.status_code}")
        try:
            data = r.json()
        except ValueError as e:
            raise CatalogUnavailable("invalid json") from e
        return data if isinstance(data, list) else []

    def find_by_sku(self, sku: str) -> dict | None:
        """
        Return the first product whose SKU matches exactly, or None when the catalog has none.
        Throttling is retried a bounded number of times; the final CatalogThrottled is re-raised.
        """
        for attempt in Retrying(
            reraise=True,
            stop=stop_after_attempt(self.settings.catalog_max_attempts),
            wait=self._wait,
            retry=retry_if_exception_type(CatalogThrottled),
        ):
            with attempt:
                products = self._get_products(sku)
        # the sku filter also matches comma lists and variants; keep exact hits only
        match = next((p for p in products if isinstance(p, dict) and str(p.get("sku", "")) == sku), None)
        debug(f"[catalog] {sku} -> {len(products)} candidate(s), exact match: {match is not None}")
        return match
