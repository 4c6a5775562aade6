import json
import time
from unittest.mock import MagicMock

import pytest

from collections_sync import create_app
from collections_sync.clients.cms import CmsTransport
from collections_sync.config import Settings
from collections_sync.services.reconciler import CollectionReconciler
from collections_sync.services.resolver import CatalogResolver
from collections_sync.services.store import CollectionStore
from collections_sync.utils.security import signed_headers

ADMIN_TOKEN = "test-admin-token"
HMAC_SECRET = "test-hmac-secret"
SITE = "shop.example.com"


class FakeCatalog:
    """Stands in for WooCommerceClient: sku -> product dict, None, or an exception to raise."""

    def __init__(self, products=None, configured=True):
        self.products = products or {}
        self.configured = configured
        self.calls = []

    def find_by_sku(self, sku):
        self.calls.append(sku)
        hit = self.products.get(sku)
        if isinstance(hit, Exception):
            raise hit
        return hit


def cms_response(status=200, text='{"ok":true}'):
    resp = MagicMock()
    resp.status_code = status
    resp.text = text
    return resp


@pytest.fixture
def settings():
    return Settings(
        admin_token=ADMIN_TOKEN,
        cms_hmac_secret=HMAC_SECRET,
        database_url="sqlite://",
        default_site_host=SITE,
        cms_base_url="https://cms.example.com",
        catalog_base_url="https://cms.example.com",
        catalog_consumer_key="ck",
        catalog_consumer_secret="cs",
        catalog_pacing_sec=0.1,
    )


@pytest.fixture
def store():
    s = CollectionStore.from_url("sqlite://")
    s.create_all()
    return s


@pytest.fixture
def catalog():
    return FakeCatalog()


@pytest.fixture
def pauses():
    return []


@pytest.fixture
def resolver(catalog, pauses):
    return CatalogResolver(catalog, pacing_sec=0.1, deadline_sec=60, pacer=pauses.append)


@pytest.fixture
def cms_session():
    session = MagicMock()
    session.post.return_value = cms_response()
    return session


@pytest.fixture
def transport(settings, cms_session):
    return CmsTransport(settings, session=cms_session)


@pytest.fixture
def reconciler(store, resolver, transport, settings):
    return CollectionReconciler(store, resolver, transport, settings)


@pytest.fixture
def app(settings, store, resolver, transport):
    app = create_app(settings, store=store, resolver=resolver, transport=transport)
    app.config.update(TESTING=True)
    return app


@pytest.fixture
def client(app):
    return app.test_client()


def admin_headers(token=ADMIN_TOKEN):
    return {"Authorization": f"Bearer {token}", "Content-Type": "application/json"}


def signed(payload, secret=HMAC_SECRET, now=None):
    """Body bytes plus matching runtime headers."""
    body = json.dumps(payload).encode("utf-8")
    return body, signed_headers(secret, body, now=now if now is not None else time.time())
