from __future__ import annotations
import asyncio
from typing import Any, Dict, Optional
import ccxt

from midindex.core.cache import SnapshotCache, cache_key
from midindex.core.errors import InvalidQuote, ParseError, PullError
from midindex.core.logger import get_logger
from midindex.core.symbol_map import normalize_pair
from midindex.core.types import VenueConfig
from midindex.md.normalize import parse_order_book


def resolve_symbol(markets: Dict[str, Any], pair: str) -> Optional[str]:
    """Tracked pair (BTCUSDT) -> ccxt unified symbol (BTC/USDT). Spot markets only."""
    pair = normalize_pair(pair)
    by_id = None
    for symbol, m in markets.items():
        if m.get("spot") is False:
            continue
        if normalize_pair(f"{m.get('base', '')}{m.get('quote', '')}") == pair:
            return symbol
        if by_id is None and normalize_pair(str(m.get("id", ""))) == pair:
            by_id = symbol
    return by_id


class FallbackPoller:
    """
    One-shot REST pulls for a venue, used while its stream is down.

    Results land in the cache exactly like stream messages. ``pull`` never
    raises: a failed pull only means the pair stays stale.
    """

    def __init__(self, cfg: VenueConfig, cache: SnapshotCache, exchange: Any = None):
        self.cfg = cfg
        self.venue = cfg.id
        self.cache = cache
        self.ex = exchange if exchange is not None else getattr(ccxt, cfg.ccxt_id)(
            {"enableRateLimit": True, "timeout": cfg.pull_timeout_ms})
        self.log = get_logger(f"md.rest.{self.venue}")
        self._symbols: Dict[str, str] = {}
        self._markets_lock: Optional[asyncio.Lock] = None

    async def pull(self, pair: str) -> None:
        pair = normalize_pair(pair)
        try:
            ob = await asyncio.wait_for(self._fetch(pair), timeout=self.cfg.pull_timeout_ms / 1000)
            book = parse_order_book(self.venue, pair, ob)
        except asyncio.TimeoutError:
            self.log.warning(f"{self.venue}: pull for {pair} timed out after {self.cfg.pull_timeout_ms} ms")
            return
        except (PullError, ParseError, InvalidQuote) as e:
            self.log.warning(f"{self.venue}: pull for {pair} dropped: {e}")
            return
        except ccxt.BaseError as e:
            self.log.error(f"{self.venue}: pull for {pair} failed: {type(e).__name__}: {e}")
            return
        except Exception as e:
            self.log.exception(f"{self.venue}: pull for {pair} failed unexpectedly: {e!r}")
            return
        self.cache.set(cache_key(self.venue, pair), book)
        self.log.debug(f"{self.venue}: pulled {pair} bid={book.bid} ask={book.ask}")

    async def _fetch(self, pair: str) -> dict:
        loop = asyncio.get_running_loop()
        symbol = await self._symbol(pair)
        ob = await loop.run_in_executor(None, self.ex.fetch_order_book, symbol, self.cfg.pull_depth)
        if not ob or not ob.get("bids") or not ob.get("asks"):
            raise PullError(self.venue, pair, "empty order book")
        return ob

    async def _symbol(self, pair: str) -> str:
        if pair in self._symbols:
            return self._symbols[pair]
        if self._markets_lock is None:
            self._markets_lock = asyncio.Lock()
        async with self._markets_lock:
            if not self.ex.markets:
                await asyncio.get_running_loop().run_in_executor(None, self.ex.load_markets)
        symbol = resolve_symbol(self.ex.markets or {}, pair)
        if symbol is None:
            raise PullError(self.venue, pair, "pair not listed")
        self._symbols[pair] = symbol
        return symbol
