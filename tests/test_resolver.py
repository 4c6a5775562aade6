import pytest

from collections_sync.clients.woocommerce import CatalogThrottled, CatalogUnavailable
from collections_sync.services.resolver import CatalogResolver, Missing, Resolved

from conftest import FakeCatalog


def _resolver(products=None, configured=True, pauses=None, clock=None, deadline=60):
    catalog = FakeCatalog(products, configured=configured)
    kw = {"clock": clock} if clock else {}
    r = CatalogResolver(catalog, pacing_sec=0.1, deadline_sec=deadline,
                        pacer=(pauses.append if pauses is not None else lambda s: None), **kw)
    return r, catalog


def test_resolve_sku_found():
    r, _ = _resolver({"SUN123": {"id": 501, "sku": "SUN123"}})
    assert r.resolve_sku("SUN123") == Resolved("SUN123", 501)


@pytest.mark.parametrize("hit, reason", [
    (None, "not_found"),
    (CatalogUnavailable("status 500"), "unavailable"),
    (CatalogThrottled("429"), "throttled"),
    ({"sku": "X"}, "no_id"),
    ({"id": "abc"}, "no_id"),
])
def test_resolve_sku_collapses_failures_to_missing(hit, reason):
    r, _ = _resolver({"X": hit})
    assert r.resolve_sku("X") == Missing("X", reason)


def test_resolve_sku_accepts_numeric_string_id():
    r, _ = _resolver({"X": {"id": "77"}})
    assert r.resolve_sku("X") == Resolved("X", 77)


def test_resolve_sku_without_catalog_credentials():
    r, catalog = _resolver({"X": {"id": 1}}, configured=False)
    assert r.resolve_sku("X") == Missing("X", "catalog_not_configured")
    assert catalog.calls == []


def test_resolve_all_empty():
    r, catalog = _resolver()
    res = r.resolve_all([])
    assert res.resolved_ids == [] and res.missing == []
    assert catalog.calls == []


@pytest.mark.parametrize("skus", [
    ["A"],
    ["A", "B", "C"],
    ["A", "A", "B"],
    ["B", "B", "B"],
    ["A", "Z", "A", "Z", "C"],
])
def test_resolve_all_is_total(skus):
    r, _ = _resolver({"A": {"id": 1}, "C": {"id": 3}, "Z": CatalogUnavailable("boom")})
    res = r.resolve_all(skus)
    assert len(res.results) == len(skus)
    assert len(res.resolved_ids) + len(res.missing) == len(skus)
    assert [x.sku for x in res.results] == skus


def test_resolve_all_keeps_duplicates_and_looks_up_once():
    r, catalog = _resolver({"A": {"id": 1}})
    res = r.resolve_all(["A", "A"])
    assert res.resolved_ids == [1, 1]
    assert catalog.calls == ["A"]


def test_resolve_all_paces_between_calls():
    pauses = []
    r, catalog = _resolver({"A": {"id": 1}, "B": {"id": 2}}, pauses=pauses)
    r.resolve_all(["A", "B", "C"])
    assert catalog.calls == ["A", "B", "C"]
    assert pauses == [0.1, 0.1]


def test_resolve_all_deadline_marks_rest_missing():
    ticks = iter([0.0, 0.0, 10.0, 10.0])
    r, catalog = _resolver({"A": {"id": 1}, "B": {"id": 2}, "C": {"id": 3}},
                           clock=lambda: next(ticks), deadline=5)
    res = r.resolve_all(["A", "B", "C"])
    assert catalog.calls == ["A"]
    assert res.resolved_ids == [1]
    assert res.results[1] == Missing("B", "deadline")
    assert res.results[2] == Missing("C", "deadline")


def test_resolve_all_partial_failure_completes():
    r, _ = _resolver({"SUN123": {"id": 501}})
    res = r.resolve_all(["SUN123", "SUN456"])
    assert res.resolved_ids == [501]
    assert res.missing == ["SUN456"]
