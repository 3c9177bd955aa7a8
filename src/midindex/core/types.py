from __future__ import annotations
from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, model_validator
from midindex.core.utils import now_s, mid_price


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    SUBSCRIBED = "subscribed"
    CLOSING = "closing"


class TopOfBook(BaseModel):
    model_config = ConfigDict(frozen=True)

    pair: str                # tracked form, e.g. BTCUSDT
    venue: str
    bid: float
    ask: float
    mid: float = 0.0
    observed_at: float = Field(default_factory=now_s)   # unix epoch seconds

    @model_validator(mode="before")
    @classmethod
    def _compute_mid(cls, data: Any) -> Any:
        if isinstance(data, dict) and "bid" in data and "ask" in data:
            bid, ask = float(data["bid"]), float(data["ask"])
            # raises InvalidQuote, which pydantic lets through unwrapped
            data = {**data, "bid": bid, "ask": ask, "mid": mid_price(bid, ask)}
        return data


class GlobalPrice(BaseModel):
    price: float
    pair: str
    venues: Dict[str, float] = Field(default_factory=dict)


class VenueConfig(BaseModel):
    id: str
    enabled: bool = True
    ws_url: str
    ccxt_id: str
    depth: int                              # stream subscription depth
    pull_depth: int = 5
    connect_timeout_ms: int = 10_000
    pull_timeout_ms: int = 10_000
    reconnect_initial_ms: int = 5_000
    reconnect_max_ms: int = 60_000
    resubscribe_after_ms: Optional[int] = None


class RuntimeConfig(BaseModel):
    cache_ttl_ms: int = 60_000
    refresh_interval_ms: int = 6_000
    default_pairs: List[str] = Field(default_factory=lambda: ["BTCUSDT"])
    first_quote_wait_ms: int = 1_000
    http_host: str = "0.0.0.0"
    http_port: int = 3000
    log_level: str = "INFO"
