from __future__ import annotations

import math

import pytest

from helpers.fakes import binance_depth, gz, huobi_depth, kraken_snapshot
from midindex.core.errors import InvalidQuote, ParseError
from midindex.core.types import TopOfBook
from midindex.md.normalize import decode_frame, mid_price, parse_depth, parse_order_book


@pytest.mark.parametrize("bid,ask", [(100.0, 102.0), (1.5, 1.5), (0.0001, 0.0003), (64000.1, 64000.2)])
def test_mid_price_is_average(bid: float, ask: float) -> None:
    assert mid_price(bid, ask) == (bid + ask) / 2


@pytest.mark.parametrize("bid,ask", [(102.0, 100.0), (math.nan, 1.0), (1.0, math.inf)])
def test_mid_price_rejects_bad_quotes(bid: float, ask: float) -> None:
    with pytest.raises(InvalidQuote):
        mid_price(bid, ask)


def test_top_of_book_computes_mid_once() -> None:
    book = TopOfBook(pair="BTCUSDT", venue="binance", bid=100, ask=102, mid=999)
    assert book.mid == 101
    with pytest.raises(Exception):
        book.mid = 5  # frozen


def test_top_of_book_crossed_quote_fails() -> None:
    with pytest.raises(InvalidQuote):
        TopOfBook(pair="BTCUSDT", venue="binance", bid=103, ask=102)


def test_binance_depth_takes_extremes_not_first_level() -> None:
    msg = binance_depth("BTCUSDT",
                        bids=[["99.0", "1"], ["100.5", "2"], ["98.0", "3"]],
                        asks=[["102.0", "1"], ["101.5", "1"], ["103.0", "1"]])
    book = parse_depth("binance", msg)
    assert (book.pair, book.venue, book.bid, book.ask) == ("BTCUSDT", "binance", 100.5, 101.5)
    assert book.mid == 101.0


def test_binance_depth_from_raw_text() -> None:
    import orjson

    raw = orjson.dumps(binance_depth("ethusdt", [["10", "1"]], [["12", "1"]])).decode()
    book = parse_depth("binance", raw)
    assert book.pair == "ETHUSDT"
    assert book.mid == 11


def test_huobi_gzip_frame() -> None:
    frame = gz(huobi_depth("btcusdt", bids=[[100.0, 1.0], [99.0, 2.0]], asks=[[102.0, 1.0], [103.0, 1.0]]))
    book = parse_depth("huobi", frame)
    assert (book.pair, book.bid, book.ask, book.mid) == ("BTCUSDT", 100.0, 102.0, 101.0)


def test_kraken_snapshot_maps_legacy_codes() -> None:
    msg = kraken_snapshot("XBT/USDT",
                          bids=[["100.0", "1.0", "1700000000.1"], ["100.2", "1.0", "1700000000.2"]],
                          asks=[["101.0", "1.0", "1700000000.3"]])
    book = parse_depth("kraken", msg)
    assert book.pair == "BTCUSDT"
    assert book.bid == 100.2
    assert book.ask == 101.0


def test_kraken_diff_is_not_a_snapshot() -> None:
    with pytest.raises(ParseError):
        parse_depth("kraken", [336, {"a": [["101.0", "0.5", "1700000000.4"]]}, "book-10", "XBT/USDT"])


@pytest.mark.parametrize("raw", [
    b"not json",
    b"\x1f\x8b\x08garbage",
    "{\"stream\": \"btcusdt@trade\", \"data\": {}}",
    {"stream": "btcusdt@depth20@100ms", "data": {"bids": [], "asks": [["1", "1"]]}},
    {"stream": "btcusdt@depth20@100ms", "data": {"bids": [["x", "1"]], "asks": [["1", "1"]]}},
])
def test_malformed_binance_payloads_raise_parse_error(raw) -> None:
    with pytest.raises(ParseError):
        parse_depth("binance", raw)


def test_crossed_book_raises_invalid_quote() -> None:
    with pytest.raises(InvalidQuote):
        parse_depth("binance", binance_depth("BTCUSDT", [["105", "1"]], [["104", "1"]]))


def test_unknown_venue() -> None:
    with pytest.raises(ParseError):
        parse_depth("bitfinex", {"anything": 1})


def test_decode_frame_plain_and_gzip() -> None:
    assert decode_frame("huobi", gz({"ping": 5})) == {"ping": 5}
    assert decode_frame("kraken", '{"event": "heartbeat"}') == {"event": "heartbeat"}


def test_parse_order_book_unified_shape() -> None:
    book = parse_order_book("kraken", "btc/usdt", {"bids": [[100.0, 1.0], [99.0, 1.0]],
                                                   "asks": [[101.0, 1.0]], "symbol": "BTC/USDT"})
    assert (book.pair, book.venue, book.mid) == ("BTCUSDT", "kraken", 100.5)


def test_parse_order_book_empty_side() -> None:
    with pytest.raises(ParseError):
        parse_order_book("huobi", "BTCUSDT", {"bids": [[1.0, 1.0]], "asks": []})
