# collections_sync/services/resolver.py
import time
from dataclasses import dataclass, field
from typing import Callable, List, Union

from ..clients.woocommerce import CatalogThrottled, CatalogUnavailable, WooCommerceClient
from ..utils.logger import debug, info, warn


@dataclass(frozen=True)
class Resolved:
    sku: str
    product_id: int


@dataclass(frozen=True)
class Missing:
    sku: str
    reason: str = "not_found"


LookupResult = Union[Resolved, Missing]


@dataclass
class Resolution:
    """One result per input SKU, in input order."""

    results: List[LookupResult] = field(default_factory=list)

    @property
    def resolved_ids(self) -> List[int]:
        return [r.product_id for r in self.results if isinstance(r, Resolved)]

    @property
    def missing(self) -> List[str]:
        return [r.sku for r in self.results if isinstance(r, Missing)]


def _product_id(product: dict) -> int | None:
    pid = product.get("id")
    if isinstance(pid, bool):
        return None
    if isinstance(pid, int):
        return pid
    if isinstance(pid, str) and pid.isdigit():
        return int(pid)
    return None


class CatalogResolver:
    """
    Maps SKUs to catalog product ids.

    A missing SKU is a normal business outcome: lookups never raise, every failure
    mode collapses to Missing. Calls are sequential with a pause between them so the
    catalog's rate limits hold; the whole cycle is bounded by a deadline.
    """

    def __init__(
        self,
        client: WooCommerceClient,
        pacing_sec: float = 0.1,
        deadline_sec: float = 25.0,
        pacer: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.client = client
        self.pacing_sec = pacing_sec
        self.deadline_sec = deadline_sec
        self._pace = pacer
        self._clock = clock

    @classmethod
    def from_settings(cls, settings, client: WooCommerceClient | None = None, **kw) -> "CatalogResolver":
        return cls(
            client or WooCommerceClient(settings),
            pacing_sec=settings.catalog_pacing_sec,
            deadline_sec=settings.resolve_deadline_sec,
            **kw,
        )

    def resolve_sku(self, sku: str) -> LookupResult:
        if not self.client.configured:
            return Missing(sku, "catalog_not_configured")
        try:
            product = self.client.find_by_sku(sku)
        except CatalogThrottled:
            warn(f"[catalog] throttled resolving {sku}")
            return Missing(sku, "throttled")
        except CatalogUnavailable as e:
            warn(f"[catalog] lookup failed for {sku}: {e}")
            return Missing(sku, "unavailable")

        if not product:
            return Missing(sku)
        pid = _product_id(product)
        if pid is None:
            warn(f"[catalog] product for {sku} has no usable id")
            return Missing(sku, "no_id")
        return Resolved(sku, pid)

    def resolve_all(self, skus: List[str]) -> Resolution:
        resolution = Resolution()
        if not skus:
            return resolution

        if not self.client.configured:
            warn("[catalog] catalog credentials not configured, every SKU reported missing")

        seen: dict[str, LookupResult] = {}
        started = self._clock()
        calls = 0
        for sku in skus:
            if sku in seen:
                resolution.results.append(seen[sku])
                continue
            if self._clock() - started > self.deadline_sec:
                debug(f"[catalog] deadline passed, skipping {sku}")
                result = Missing(sku, "deadline")
            else:
                if calls and self.pacing_sec > 0:
                    self._pace(self.pacing_sec)
                result = self.resolve_sku(sku)
                calls += 1
            seen[sku] = result
            resolution.results.append(result)

        info(f"[catalog] resolved {len(resolution.resolved_ids)}/{len(skus)} SKUs, missing {len(resolution.missing)}")
        return resolution
