from __future__ import annotations
from typing import Dict, Iterable, List

from midindex.core.cache import SnapshotCache, cache_key
from midindex.core.symbol_map import normalize_pair
from midindex.core.types import GlobalPrice, TopOfBook
from midindex.core.utils import mean


class PriceAggregator:
    def __init__(self, cache: SnapshotCache, venues: Iterable[str]):
        self.cache = cache
        self.venues: List[str] = list(venues)

    def snapshot(self, pair: str) -> Dict[str, TopOfBook]:
        pair = normalize_pair(pair)
        out = {}
        for venue in self.venues:
            book = self.cache.get(cache_key(venue, pair))
            if book is not None:
                out[venue] = book
        return out

    def global_price(self, pair: str) -> GlobalPrice:
        """Mean of the venue mids we currently hold. price == 0 means no data."""
        pair = normalize_pair(pair)
        mids = {v: b.mid for v, b in self.snapshot(pair).items() if b.mid > 0}
        return GlobalPrice(price=mean(list(mids.values())), pair=pair, venues=mids)
