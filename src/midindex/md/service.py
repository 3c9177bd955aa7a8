from __future__ import annotations
from typing import Iterable, List

from midindex.core.cache import TRACKED_PAIRS_KEY, SnapshotCache
from midindex.core.logger import get_logger
from midindex.core.symbol_map import normalize_pair
from midindex.core.types import GlobalPrice
from midindex.md.aggregator import PriceAggregator
from midindex.md.manager import ConnectorManager

log = get_logger(__name__)


class PriceIndex:
    """Boundary used by the HTTP layer: which pairs are tracked, and their price."""

    def __init__(self, cache: SnapshotCache, manager: ConnectorManager, aggregator: PriceAggregator):
        self.cache = cache
        self.manager = manager
        self.aggregator = aggregator

    def tracked_pairs(self) -> List[str]:
        return list(self.cache.get(TRACKED_PAIRS_KEY) or ())

    def is_tracked(self, pair: str) -> bool:
        return normalize_pair(pair) in self.tracked_pairs()

    def track(self, pairs: Iterable[str]) -> List[str]:
        """Merge ``pairs`` into the tracked set; returns the pairs that were new."""
        current = self.tracked_pairs()
        added = [p for p in dict.fromkeys(normalize_pair(p) for p in pairs) if p and p not in current]
        if added:
            # tracked set never expires
            self.cache.set(TRACKED_PAIRS_KEY, tuple(current + added), ttl_ms=None)
        return added

    async def ensure_tracked(self, pair: str) -> None:
        if not self.track([pair]):
            return
        pairs = self.tracked_pairs()
        log.info(f"now tracking {normalize_pair(pair)}; refreshing {pairs}")
        await self.manager.ensure_all(pairs)

    def global_price(self, pair: str) -> GlobalPrice:
        return self.aggregator.global_price(pair)
