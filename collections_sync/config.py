import os
from dataclasses import dataclass
from typing import Mapping, Optional

from dotenv import load_dotenv

CMS_API_PREFIX = "/wp-json/secure-collections/v1"
CATALOG_API_PREFIX = "/wp-json/wc/v3"

SORT_CHOICES = ("popularity", "rating", "date", "price", "price-desc", "menu_order", "title")
DEFAULT_SORT = "popularity"
DEFAULT_PAGINATE = 24
MAX_PAGINATE = 100


def _float(env: Mapping[str, str], key: str, default: float) -> float:
    raw = env.get(key)
    if raw in (None, ""):
        return default
    return float(raw)


def _int(env: Mapping[str, str], key: str, default: int) -> int:
    raw = env.get(key)
    if raw in (None, ""):
        return default
    return int(raw)


@dataclass(frozen=True)
class Settings:
    """
    Process-wide configuration, built once at startup and handed to every component.

    Required in production:
      ADMIN_TOKEN            bearer token for administrative callers
      CMS_HMAC_SECRET        shared secret for the signed CMS channel
      DATABASE_URL           SQLAlchemy URL of the collections store
      CMS_BASE_URL           origin of the CMS (https://shop.example.com)
      CATALOG_BASE_URL, CATALOG_CONSUMER_KEY, CATALOG_CONSUMER_SECRET

    An empty secret is never treated as "auth disabled": the matching gate rejects everything.
    """

    admin_token: str = ""
    cms_hmac_secret: str = ""
    database_url: str = "sqlite:///collections.db"
    default_site_host: str = ""

    cms_base_url: str = ""
    cms_push_url: str = ""
    cms_timeout_sec: float = 30.0

    catalog_base_url: str = ""
    catalog_consumer_key: str = ""
    catalog_consumer_secret: str = ""
    catalog_timeout_sec: float = 20.0
    catalog_pacing_sec: float = 0.1
    catalog_max_attempts: int = 3
    resolve_deadline_sec: float = 25.0

    signature_window_sec: int = 300
    log_level: str = "INFO"

    @property
    def catalog_configured(self) -> bool:
        return bool(self.catalog_base_url and self.catalog_consumer_key and self.catalog_consumer_secret)

    def cms_url(self, path: str, origin: Optional[str] = None) -> str:
        base = (origin or self.cms_base_url or "").rstrip("/")
        return f"{base}{CMS_API_PREFIX}/{path.lstrip('/')}"

    def push_url(self, origin: Optional[str] = None) -> str:
        if self.cms_push_url:
            return self.cms_push_url
        return self.cms_url("push", origin)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        if environ is None:
            load_dotenv()
            environ = os.environ
        env = environ
        return cls(
            admin_token=env.get("ADMIN_TOKEN", ""),
            cms_hmac_secret=env.get("CMS_HMAC_SECRET", ""),
            database_url=env.get("DATABASE_URL") or "sqlite:///collections.db",
            default_site_host=(env.get("DEFAULT_SITE_HOST") or "").strip(),
            cms_base_url=env.get("CMS_BASE_URL", ""),
            cms_push_url=env.get("CMS_PUSH_URL", ""),
            cms_timeout_sec=_float(env, "CMS_TIMEOUT_SEC", 30.0),
            catalog_base_url=env.get("CATALOG_BASE_URL", ""),
            catalog_consumer_key=env.get("CATALOG_CONSUMER_KEY", ""),
            catalog_consumer_secret=env.get("CATALOG_CONSUMER_SECRET", ""),
            catalog_timeout_sec=_float(env, "CATALOG_TIMEOUT_SEC", 20.0),
            catalog_pacing_sec=_float(env, "CATALOG_PACING_SEC", 0.1),
            catalog_max_attempts=max(1, _int(env, "CATALOG_MAX_ATTEMPTS", 3)),
            resolve_deadline_sec=_float(env, "RESOLVE_DEADLINE_SEC", 25.0),
            signature_window_sec=_int(env, "SIGNATURE_WINDOW_SEC", 300),
            log_level=(env.get("LOG_LEVEL") or "INFO").upper(),
        )
