from __future__ import annotations

import asyncio
import gzip
from typing import Any, Callable

import orjson

from midindex.core.types import VenueConfig

_DROP = object()


class FakeClock:
    def __init__(self, t: float = 1_000.0) -> None:
        self.t = t

    def __call__(self) -> float:
        return self.t

    def advance(self, seconds: float) -> None:
        self.t += seconds


class FakeSocket:
    """In-memory stand-in for a websocket connection."""

    def __init__(self) -> None:
        self.sent: list[Any] = []
        self.closed = False
        self._inbox: asyncio.Queue = asyncio.Queue()

    async def send(self, message: str) -> None:
        if self.closed:
            raise ConnectionResetError("socket closed")
        self.sent.append(orjson.loads(message))

    async def close(self) -> None:
        if not self.closed:
            self.closed = True
            self._inbox.put_nowait(None)

    def feed(self, frame: Any) -> None:
        if not isinstance(frame, (str, bytes)):
            frame = orjson.dumps(frame)
        self._inbox.put_nowait(frame)

    def server_close(self) -> None:
        self._inbox.put_nowait(None)

    def drop(self) -> None:
        self._inbox.put_nowait(_DROP)

    def __aiter__(self) -> "FakeSocket":
        return self

    async def __anext__(self) -> Any:
        item = await self._inbox.get()
        if item is None:
            raise StopAsyncIteration
        if item is _DROP:
            raise ConnectionResetError("connection reset by peer")
        return item


class FakeTransport:
    def __init__(self, fail: int = 0) -> None:
        self.fail = fail
        self.opens = 0
        self.sockets: list[FakeSocket] = []

    async def open(self, url: str) -> FakeSocket:
        self.opens += 1
        if self.fail > 0:
            self.fail -= 1
            raise OSError("connection refused")
        sock = FakeSocket()
        self.sockets.append(sock)
        return sock

    @property
    def socket(self) -> FakeSocket:
        return self.sockets[-1]


class FakeExchange:
    """Just enough of a ccxt exchange for FallbackPoller."""

    def __init__(self, books: dict[str, Any] | None = None, error: Exception | None = None) -> None:
        self.markets: dict[str, Any] | None = None
        self.books = books or {}
        self.error = error
        self.calls: list[tuple[str, int]] = []
        self.load_calls = 0

    def load_markets(self) -> dict[str, Any]:
        self.load_calls += 1
        self.markets = {
            "BTC/USDT": {"id": "BTCUSDT", "base": "BTC", "quote": "USDT", "spot": True},
            "ETH/USDT": {"id": "ETHUSDT", "base": "ETH", "quote": "USDT", "spot": True},
            "BTC/USDT:USDT": {"id": "BTCUSDT_PERP", "base": "BTC", "quote": "USDT", "spot": False},
        }
        return self.markets

    def fetch_order_book(self, symbol: str, limit: int | None = None) -> Any:
        self.calls.append((symbol, limit))
        if self.error is not None:
            raise self.error
        return self.books.get(symbol, {"bids": [], "asks": []})


def venue_config(venue: str = "binance", **overrides: Any) -> VenueConfig:
    base = {
        "binance": dict(ws_url="wss://stream.test/stream", ccxt_id="binance", depth=20),
        "huobi": dict(ws_url="wss://huobi.test/ws", ccxt_id="htx", depth=5),
        "kraken": dict(ws_url="wss://kraken.test", ccxt_id="kraken", depth=10, resubscribe_after_ms=30_000),
    }[venue]
    return VenueConfig(**{"id": venue, **base, **overrides})


def gz(obj: Any) -> bytes:
    return gzip.compress(orjson.dumps(obj))


def binance_depth(pair: str, bids: list, asks: list) -> dict:
    return {"stream": f"{pair.lower()}@depth20@100ms",
            "data": {"lastUpdateId": 1, "bids": bids, "asks": asks}}


def huobi_depth(pair: str, bids: list, asks: list) -> dict:
    return {"ch": f"market.{pair.lower()}.depth.step0", "ts": 1,
            "tick": {"bids": bids, "asks": asks, "ts": 1, "version": 1}}


def kraken_snapshot(kpair: str, bids: list, asks: list) -> list:
    return [336, {"as": asks, "bs": bids}, "book-10", kpair]


async def wait_until(pred: Callable[[], bool], timeout: float = 2.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not pred():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.001)
