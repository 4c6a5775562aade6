# collections_sync/services/reconciler.py
from typing import Optional

from ..clients.cms import CmsTransport, PushResult
from ..config import DEFAULT_PAGINATE, DEFAULT_SORT, MAX_PAGINATE, SORT_CHOICES, Settings
from ..errors import InputError, NotFoundError, StoreError, SyncError, UpstreamError
from ..models import STATUS_DRAFT, STATUS_PUBLISHED, Collection
from ..utils.logger import error, info, warn
from .resolver import CatalogResolver
from .store import CollectionStore

CONTENT_FIELDS = ("title", "h1", "meta_title", "meta_description", "canonical", "description_html")


def _clean_skus(raw) -> list[str]:
    if raw is None:
        return []
    if not isinstance(raw, list) or not all(isinstance(s, str) for s in raw):
        raise InputError("invalid_field", field="assigned_skus")
    return [s.strip() for s in raw if s.strip()]


def _paginate(raw) -> int:
    if raw is None:
        return DEFAULT_PAGINATE
    if isinstance(raw, bool) or not isinstance(raw, int) or not 1 <= raw <= MAX_PAGINATE:
        raise InputError("invalid_field", field="paginate")
    return raw


def render_payload(col: Collection) -> dict:
    """What the CMS template reads at page-render time."""
    return {
        "slug": col.slug,
        "title": col.title,
        "h1": col.h1,
        "meta_title": col.meta_title,
        "meta_description": col.meta_description,
        "canonical": col.canonical,
        "description_html": col.description_html,
        "faq": list(col.faq or []),
        "assigned_skus": list(col.assigned_skus or []),
        "assigned_product_ids": list(col.assigned_product_ids or []),
        "sort_by": col.sort_by or DEFAULT_SORT,
        "paginate": col.paginate or DEFAULT_PAGINATE,
        "status": col.status,
        "version": col.version or 1,
        "updated_at": col.updated_at.isoformat() if col.updated_at else None,
    }


class CollectionReconciler:
    """
    One synchronization step per call, scoped to a single (site_host, slug).

    Store writes and CMS pushes are separate network operations. Status only moves to
    published after the CMS accepted the payload, so the store never claims content
    the CMS did not receive.
    """

    def __init__(self, store: CollectionStore, resolver: CatalogResolver, transport: CmsTransport, settings: Settings):
        self.store = store
        self.resolver = resolver
        self.transport = transport
        self.settings = settings

    # =========================================================
    # Helpers
    # =========================================================

    def site_host(self, value) -> str:
        host = (value if isinstance(value, str) else "") or self.settings.default_site_host
        host = host.strip()
        if not host:
            raise InputError("site_host_required")
        return host

    @staticmethod
    def slug(value) -> str:
        if not isinstance(value, str) or not value.strip():
            raise InputError("slug_required")
        return value.strip()

    def _load(self, site_host: str, slug: str) -> Collection:
        col = self.store.get_collection(site_host, slug)
        if col is None:
            raise NotFoundError("collection_not_found")
        return col

    def _settings(self, site_host: str):
        st = self.store.get_settings(site_host)
        if st is None:
            raise NotFoundError("settings_not_found")
        return st

    def _cms_origin(self, site_host: str) -> Optional[str]:
        st = self.store.get_settings(site_host)
        return st.cms_url if st is not None and st.cms_url else None

    def _require_cms_secret(self):
        if not self.settings.cms_hmac_secret:
            error("[cms] CMS_HMAC_SECRET not configured, refusing unsigned delivery")
            raise SyncError("cms_auth_not_configured", 500)

    # =========================================================
    # Operations
    # =========================================================

    def upsert(self, data: dict) -> Collection:
        site_host = self.site_host(data.get("site_host"))
        slug = self.slug(data.get("slug"))

        values = {}
        for f in CONTENT_FIELDS:
            if f in data:
                if data[f] is not None and not isinstance(data[f], str):
                    raise InputError("invalid_field", field=f)
                values[f] = data[f]
        if "faq" in data:
            if not isinstance(data["faq"] or [], list):
                raise InputError("invalid_field", field="faq")
            values["faq"] = data["faq"] or []
        if "assigned_skus" in data:
            values["assigned_skus"] = _clean_skus(data["assigned_skus"])
        if "sort_by" in data:
            sort_by = data["sort_by"] or DEFAULT_SORT
            if sort_by not in SORT_CHOICES:
                raise InputError("invalid_field", field="sort_by")
            values["sort_by"] = sort_by
        if "paginate" in data:
            values["paginate"] = _paginate(data["paginate"])

        existing = self.store.get_collection(site_host, slug)
        if existing is None:
            values.setdefault("faq", [])
            values.setdefault("assigned_skus", [])
            values.setdefault("sort_by", DEFAULT_SORT)
            values.setdefault("paginate", DEFAULT_PAGINATE)
            col = self.store.insert_collection(dict(
                values,
                site_host=site_host,
                slug=slug,
                assigned_product_ids=[],
                version=1,
                status=STATUS_DRAFT,
            ))
            info(f"[upsert] created {site_host}/{slug} with {len(col.assigned_skus)} SKUs")
            return col

        # Identifiers belong to the SKU list they were resolved from.
        if "assigned_skus" in values and values["assigned_skus"] != list(existing.assigned_skus or []):
            values["assigned_product_ids"] = []
        values["version"] = (existing.version or 1) + 1
        col = self.store.update_collection(site_host, slug, **values)
        if col is None:
            raise NotFoundError("collection_not_found")
        info(f"[upsert] updated {site_host}/{slug} -> v{col.version}")
        return col

    def resolve_and_persist(self, site_host: str, slug: str) -> dict:
        col = self._load(site_host, slug)
        skus = list(col.assigned_skus or [])
        if not skus:
            self.store.update_collection(site_host, slug, assigned_product_ids=[])
            return {"count": 0, "missing": [], "ids": []}

        resolution = self.resolver.resolve_all(skus)
        ids = resolution.resolved_ids
        # Partial results are saved too; keeping the old list would serve stale ids.
        if self.store.update_collection(site_host, slug, assigned_product_ids=ids) is None:
            raise NotFoundError("collection_not_found")
        if resolution.missing:
            warn(f"[resolve] {site_host}/{slug} missing SKUs: {resolution.missing}")
        return {"count": len(ids), "missing": resolution.missing, "ids": ids}

    def publish(self, site_host: str, slug: str) -> dict:
        col = self._load(site_host, slug)
        self._require_cms_secret()

        result: PushResult = self.transport.push(col, self._cms_origin(site_host))

        try:
            self.store.append_push_log(
                site_host=site_host,
                slug=col.slug,
                version_pushed=col.version or 1,
                http_status=result.status_code,
                response_body=result.body,
            )
        except StoreError as e:
            error(f"[publish] push_log write failed for {site_host}/{slug}: {e.code}")

        if not result.ok:
            warn(f"[publish] {site_host}/{slug} v{col.version} rejected by CMS: {result.status_code}")
            raise UpstreamError("cms_push_failed", wp_status=result.status_code, wp_body=result.text)

        self.store.update_collection(site_host, slug, status=STATUS_PUBLISHED)
        info(f"[publish] {site_host}/{slug} v{col.version} published ({result.status_code})")
        return {"pushed": True, "wp_status": result.status_code}

    def render_for_cms(self, site_host: str, slug: str, runtime_resolve: bool = False) -> dict:
        st = self._settings(site_host)
        col = self._load(site_host, slug)

        if runtime_resolve and col.assigned_skus:
            self.resolve_and_persist(site_host, slug)
            col = self._load(site_host, slug)

        return {"settings": st.to_dict(), "collection": render_payload(col)}

    def site_config(self, site_host: str) -> dict:
        return {"settings": self._settings(site_host).to_dict()}

    def toggle(self, site_host: str, enabled: bool) -> dict:
        st = self.store.upsert_settings(site_host, collections_enabled=enabled)
        info(f"[toggle] {site_host} collections_enabled={enabled}")
        if not self.settings.cms_hmac_secret:
            warn("[toggle] CMS_HMAC_SECRET not configured, skipping mirror")
            return {"enabled": enabled, "mirrored": False, "wp_status": None}

        # The store write stands even if the CMS mirror fails.
        result = self.transport.toggle(site_host, enabled, st.cms_url or None)
        if not result.ok:
            warn(f"[toggle] mirror to CMS failed for {site_host}: {result.status_code}")
        return {"enabled": enabled, "mirrored": result.ok, "wp_status": result.status_code}

    def refresh_base(self, site_host: str, new_base: Optional[str] = None) -> dict:
        self._require_cms_secret()
        if new_base:
            st = self.store.upsert_settings(site_host, collections_base=new_base)
        else:
            st = self._settings(site_host)

        result = self.transport.refresh_base(st.cms_url or None)
        body = result.body if isinstance(result.body, dict) else {}
        if not result.ok or body.get("ok") is False:
            warn(f"[refresh-base] CMS refresh failed for {site_host}: {result.status_code}")
            raise UpstreamError("cms_refresh_failed", wp_status=result.status_code, wp_error=body.get("error", result.text))

        return {
            "site_host": site_host,
            "collections_base": body.get("base") or st.collections_base,
            "updated_in_store": bool(new_base),
        }
