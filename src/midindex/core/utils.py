from __future__ import annotations
import math, time
from typing import Any
import orjson

from midindex.core.errors import InvalidQuote


def now_s() -> float:
    return time.time()

def to_json(obj: Any) -> str:
    return orjson.dumps(obj).decode("utf-8")

def from_json(raw: str | bytes) -> Any:
    return orjson.loads(raw)

def mid_price(bid: float, ask: float) -> float:
    if not (math.isfinite(bid) and math.isfinite(ask)):
        raise InvalidQuote(f"non-finite quote bid={bid} ask={ask}")
    if bid > ask:
        raise InvalidQuote(f"bid {bid} above ask {ask}")
    return (bid + ask) / 2

def mean(values: list[float]) -> float:
    if not values:
        return 0.0
    return sum(values) / len(values)
