import json
from dataclasses import dataclass
from typing import Optional

import requests

from ..config import DEFAULT_PAGINATE, DEFAULT_SORT, Settings
from ..utils.logger import info, warn
from ..utils.security import signed_headers


@dataclass
class PushResult:
    status_code: Optional[int]
    text: str
    body: object

    @property
    def ok(self) -> bool:
        return self.status_code is not None and 200 <= self.status_code < 300


def decode_body(text: str):
    try:
        return json.loads(text)
    except ValueError:
        return {"text": text}


def serialize(payload: dict) -> bytes:
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def build_payload(col) -> dict:
    """Public fields only; authoring metadata never leaves the store."""
    return {
        "slug": col.slug,
        "site_host": col.site_host,
        "title": col.title,
        "h1": col.h1,
        "meta_title": col.meta_title,
        "meta_description": col.meta_description,
        "canonical": col.canonical,
        "description_html": col.description_html,
        "faq": list(col.faq or []),
        "product_ids": list(col.assigned_product_ids or []),
        "sort_by": col.sort_by or DEFAULT_SORT,
        "paginate": col.paginate or DEFAULT_PAGINATE,
        "version": col.version or 1,
        "updated_at": col.updated_at.isoformat() if col.updated_at else None,
    }


class CmsTransport:
    """Signed delivery of JSON bodies to the CMS secure-collections endpoints."""

    def __init__(self, settings: Settings, session: requests.Session | None = None):
        self.settings = settings
        self.session = session or requests.Session()

    def post_signed(self, url: str, payload: dict) -> PushResult:
        body = serialize(payload)
        headers = signed_headers(self.settings.cms_hmac_secret, body)
        try:
            r = self.session.post(url, data=body, headers=headers, timeout=self.settings.cms_timeout_sec)
        except requests.RequestException as e:
            warn(f"[cms] POST {url} failed: {e.__class__.__name__}: {e}")
            text = f"{e.__class__.__name__}: {e}"
            return PushResult(None, text, {"text": text})
        info(f"[cms] POST {url} -> {r.status_code}")
        return PushResult(r.status_code, r.text, decode_body(r.text))

    def push(self, col, origin: Optional[str] = None) -> PushResult:
        return self.post_signed(self.settings.push_url(origin), build_payload(col))

    def toggle(self, site_host: str, enabled: bool, origin: Optional[str] = None) -> PushResult:
        return self.post_signed(self.settings.cms_url("toggle", origin), {"enabled": enabled, "site_host": site_host})

    def refresh_base(self, origin: Optional[str] = None) -> PushResult:
        return self.post_signed(self.settings.cms_url("refresh-base", origin), {})
