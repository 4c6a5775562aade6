import json
import time
from datetime import datetime, timezone
from types import SimpleNamespace

import requests

from collections_sync.clients.cms import build_payload, decode_body, serialize
from collections_sync.utils.security import SIGNATURE_HEADER, TIMESTAMP_HEADER, verify

from conftest import HMAC_SECRET, cms_response


def _collection(**kw):
    base = dict(
        slug="summer-sunglasses",
        site_host="shop.example.com",
        title="Summer Sunglasses",
        h1="Summer Sunglasses",
        meta_title="Summer Sunglasses | Shop",
        meta_description="Curated styles",
        canonical="https://shop.example.com/collections/summer-sunglasses",
        description_html="<p>Beach-ready shades.</p>",
        faq=[{"q": "Shipping?", "a": "Worldwide."}],
        assigned_skus=["SUN123"],
        assigned_product_ids=[501],
        sort_by="popularity",
        paginate=24,
        version=3,
        status="draft",
        created_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
        updated_at=datetime(2026, 1, 2, tzinfo=timezone.utc),
    )
    base.update(kw)
    return SimpleNamespace(**base)


def test_build_payload_uses_explicit_fields():
    payload = build_payload(_collection())
    assert payload["product_ids"] == [501]
    assert payload["version"] == 3
    assert payload["updated_at"] == "2026-01-02T00:00:00+00:00"
    for internal in ("assigned_skus", "status", "created_at"):
        assert internal not in payload


def test_build_payload_defaults():
    payload = build_payload(_collection(assigned_product_ids=None, sort_by=None, paginate=None, version=None))
    assert payload["product_ids"] == []
    assert payload["sort_by"] == "popularity"
    assert payload["paginate"] == 24
    assert payload["version"] == 1


def test_push_signs_exact_bytes_sent(transport, cms_session):
    result = transport.push(_collection())
    assert result.ok and result.status_code == 200

    args, kwargs = cms_session.post.call_args
    assert args[0] == "https://cms.example.com/wp-json/secure-collections/v1/push"
    body = kwargs["data"]
    headers = kwargs["headers"]
    assert abs(int(headers[TIMESTAMP_HEADER]) - time.time()) < 5
    assert verify(HMAC_SECRET, headers[TIMESTAMP_HEADER], body, headers[SIGNATURE_HEADER])
    assert not verify("wrong", headers[TIMESTAMP_HEADER], body, headers[SIGNATURE_HEADER])
    assert json.loads(body)["slug"] == "summer-sunglasses"


def test_push_uses_site_origin(transport, cms_session):
    transport.push(_collection(), origin="https://other.example.com/")
    assert cms_session.post.call_args[0][0] == "https://other.example.com/wp-json/secure-collections/v1/push"


def test_push_failure_keeps_raw_body(transport, cms_session):
    cms_session.post.return_value = cms_response(500, "<html>oops</html>")
    result = transport.push(_collection())
    assert not result.ok
    assert result.status_code == 500
    assert result.text == "<html>oops</html>"
    assert result.body == {"text": "<html>oops</html>"}


def test_push_network_error(transport, cms_session):
    cms_session.post.side_effect = requests.Timeout("slow")
    result = transport.push(_collection())
    assert result.status_code is None
    assert not result.ok


def test_toggle_and_refresh_base_endpoints(transport, cms_session):
    transport.toggle("shop.example.com", False)
    args, kwargs = cms_session.post.call_args
    assert args[0].endswith("/wp-json/secure-collections/v1/toggle")
    assert json.loads(kwargs["data"]) == {"enabled": False, "site_host": "shop.example.com"}

    transport.refresh_base()
    args, kwargs = cms_session.post.call_args
    assert args[0].endswith("/wp-json/secure-collections/v1/refresh-base")
    assert kwargs["data"] == b"{}"


def test_serialize_and_decode():
    assert serialize({"a": "é"}) == '{"a":"é"}'.encode("utf-8")
    assert decode_body('{"ok":true}') == {"ok": True}
    assert decode_body("plain") == {"text": "plain"}
