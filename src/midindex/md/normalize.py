"""
Venue payload -> TopOfBook.

Pure functions only. Every venue shape converges on ``book_from_levels``,
which takes the price extremum of each side: venues do not all promise
that level 0 is the best one.
"""

from __future__ import annotations
import gzip, re, zlib
from typing import Any, Callable, Dict, Iterable, Optional, Tuple

from midindex.core.errors import ParseError
from midindex.core.symbol_map import from_kraken, normalize_pair
from midindex.core.types import TopOfBook
from midindex.core.utils import from_json, mid_price, now_s

__all__ = ["decode_frame", "parse_depth", "parse_order_book", "book_from_levels", "mid_price"]

Levels = Iterable[Any]

_HUOBI_CH = re.compile(r"^market\.([a-z0-9]+)\.depth\.")


def decode_frame(venue: str, raw: str | bytes) -> Any:
    """Text or binary frame -> JSON value. Huobi sends gzip-compressed binary."""
    try:
        if isinstance(raw, (bytes, bytearray)) and raw[:2] == b"\x1f\x8b":
            raw = gzip.decompress(raw)
        return from_json(raw)
    except (OSError, EOFError, zlib.error, ValueError, TypeError) as e:
        raise ParseError(venue, f"undecodable frame: {e}") from e


def _prices(venue: str, levels: Levels, side: str) -> list[float]:
    if not isinstance(levels, (list, tuple)):
        raise ParseError(venue, f"{side} side is not a list")
    out = []
    for lvl in levels:
        try:
            out.append(float(lvl[0]))
        except (TypeError, ValueError, IndexError, KeyError) as e:
            raise ParseError(venue, f"bad {side} level {lvl!r}") from e
    if not out:
        raise ParseError(venue, f"empty {side} side")
    return out


def book_from_levels(venue: str, pair: str, bids: Levels, asks: Levels,
                     observed_at: Optional[float] = None) -> TopOfBook:
    best_bid = max(_prices(venue, bids, "bid"))
    best_ask = min(_prices(venue, asks, "ask"))
    return TopOfBook(pair=pair, venue=venue, bid=best_bid, ask=best_ask,
                     observed_at=observed_at if observed_at is not None else now_s())


# --- per-venue depth extraction: message -> (pair, bids, asks) ---

def _binance(msg: Any) -> Tuple[str, Levels, Levels]:
    # combined stream envelope: {"stream": "btcusdt@depth20@100ms", "data": {...}}
    if not isinstance(msg, dict):
        raise ParseError("binance", "expected an object")
    stream, data = msg.get("stream"), msg.get("data")
    if not isinstance(stream, str) or "@depth" not in stream or not isinstance(data, dict):
        raise ParseError("binance", "not a depth stream message")
    pair = data.get("s") or stream.split("@", 1)[0]
    bids = data.get("bids", data.get("b"))
    asks = data.get("asks", data.get("a"))
    return normalize_pair(pair), bids, asks


def _huobi(msg: Any) -> Tuple[str, Levels, Levels]:
    if not isinstance(msg, dict):
        raise ParseError("huobi", "expected an object")
    m = _HUOBI_CH.match(str(msg.get("ch", "")))
    tick = msg.get("tick")
    if not m or not isinstance(tick, dict):
        raise ParseError("huobi", "not a depth channel message")
    return normalize_pair(m.group(1)), tick.get("bids"), tick.get("asks")


def _kraken(msg: Any) -> Tuple[str, Levels, Levels]:
    # [channelID, {"as": [...], "bs": [...]}, "book-10", "XBT/USDT"]
    if not isinstance(msg, list) or len(msg) < 4:
        raise ParseError("kraken", "expected a book array")
    body, pair = msg[1], msg[-1]
    if not isinstance(body, dict) or not isinstance(pair, str):
        raise ParseError("kraken", "malformed book array")
    if "as" not in body or "bs" not in body:
        raise ParseError("kraken", "incremental update, not a snapshot")
    return from_kraken(pair), body["bs"], body["as"]


_DEPTH: Dict[str, Callable[[Any], Tuple[str, Levels, Levels]]] = {
    "binance": _binance,
    "huobi": _huobi,
    "kraken": _kraken,
}


def parse_depth(venue: str, raw: Any) -> TopOfBook:
    """
    Parse one stream depth message.

    ``raw`` may be the undecoded frame or an already decoded JSON value.
    Raises ParseError for shapes we do not understand and InvalidQuote
    when the extracted best bid is above the best ask.
    """
    parser = _DEPTH.get(venue)
    if parser is None:
        raise ParseError(venue, "no depth parser for venue")
    msg = decode_frame(venue, raw) if isinstance(raw, (str, bytes, bytearray)) else raw
    pair, bids, asks = parser(msg)
    return book_from_levels(venue, pair, bids, asks)


def parse_order_book(venue: str, pair: str, book: Any) -> TopOfBook:
    """ccxt unified order book ({'bids': [[p, a], ...], 'asks': ...}) -> TopOfBook."""
    if not isinstance(book, dict):
        raise ParseError(venue, "order book is not an object")
    return book_from_levels(venue, normalize_pair(pair), book.get("bids"), book.get("asks"))
