# collections_sync/routes/collections.py
import json

from flask import Blueprint, current_app, jsonify, request

from ..errors import AuthError, InputError
from ..utils.logger import info
from ..utils.security import SIGNATURE_HEADER, TIMESTAMP_HEADER

bp = Blueprint("collections", __name__)

# Which credential gate guards which operation. Decided here, never from the request.
OPERATION_TRUST = {
    "upsert": "admin",
    "resolve": "admin",
    "publish": "admin",
    "toggle": "admin",
    "refresh-base": "admin",
    "config": "runtime",
    "render": "runtime",
}

RESOLVE_OPS = ("resolve", "config", "render")


def _ctx():
    return current_app.extensions["collections_sync"]


def _authorize(op: str):
    ctx = _ctx()
    ctx.gates[OPERATION_TRUST[op]].authorize(request)


def _json_body() -> dict:
    raw = request.get_data(cache=True)
    try:
        body = json.loads(raw.decode("utf-8") or "{}") if raw else {}
    except (UnicodeDecodeError, ValueError):
        raise InputError("invalid_json")
    if not isinstance(body, dict):
        raise InputError("invalid_json")
    return body


def _ok(status: int = 200, **data):
    return jsonify({"ok": True, **data}), status


@bp.get("/<path:fn>")
def health(fn):
    return _ok(fn=f"collections-{fn}")


@bp.post("/upsert")
def upsert():
    _authorize("upsert")
    body = _json_body()
    col = _ctx().reconciler.upsert(body)
    return _ok(collection=col.to_dict())


@bp.post("/resolve")
def resolve():
    # Credentials first: signature headers pick the runtime gate, anything else the admin one.
    signed = request.headers.get(TIMESTAMP_HEADER) or request.headers.get(SIGNATURE_HEADER)
    trust = "runtime" if signed else "admin"
    _ctx().gates[trust].authorize(request)

    body = _json_body()
    op = body.get("op") or "resolve"
    if op not in RESOLVE_OPS:
        raise InputError("invalid_field", field="op")
    if OPERATION_TRUST[op] != trust:
        raise AuthError("missing_signature" if OPERATION_TRUST[op] == "runtime" else "unauthorized")

    rec = _ctx().reconciler
    site_host = rec.site_host(body.get("site_host"))

    if op == "config":
        return _ok(**rec.site_config(site_host))

    slug = rec.slug(body.get("slug"))
    if op == "render":
        return _ok(**rec.render_for_cms(site_host, slug, bool(body.get("runtime_resolve"))))

    info(f"[resolve] {site_host}/{slug}")
    return _ok(**rec.resolve_and_persist(site_host, slug))


@bp.post("/publish")
def publish():
    _authorize("publish")
    body = _json_body()
    rec = _ctx().reconciler
    slug = rec.slug(body.get("slug"))
    site_host = rec.site_host(body.get("site_host"))
    return _ok(**rec.publish(site_host, slug))


@bp.post("/toggle")
def toggle():
    _authorize("toggle")
    body = _json_body()
    rec = _ctx().reconciler
    site_host = rec.site_host(body.get("site_host"))
    enabled = body.get("enabled")
    if not isinstance(enabled, bool):
        raise InputError("invalid_field", field="enabled")
    return _ok(**rec.toggle(site_host, enabled))


@bp.post("/refresh-base")
def refresh_base():
    _authorize("refresh-base")
    body = _json_body()
    rec = _ctx().reconciler
    site_host = rec.site_host(body.get("site_host"))
    new_base = body.get("new_base")
    if new_base is not None and (not isinstance(new_base, str) or not new_base.strip()):
        raise InputError("invalid_field", field="new_base")
    return _ok(**rec.refresh_base(site_host, new_base.strip() if new_base else None))
