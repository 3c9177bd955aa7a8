from __future__ import annotations
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Type

from midindex.core.logger import get_logger
from midindex.core.symbol_map import to_kraken
from midindex.core.types import VenueConfig

log = get_logger(__name__)


class MessageKind(str, Enum):
    DEPTH = "depth"
    PING = "ping"        # must be answered with pong()
    ACK = "ack"          # subscription accepted
    REJECT = "reject"    # subscription / request refused
    INFO = "info"        # heartbeats, status, ignored book diffs


class VenueProtocol:
    """
    Wire conventions of one venue's public stream: how to subscribe,
    and what kind of message just arrived. Depth parsing itself lives in
    md.normalize.
    """
    name = ""
    # book feed only ever delivers one usable snapshot per subscription
    snapshot_only = False

    def __init__(self, cfg: VenueConfig):
        self.cfg = cfg
        self._req_id = 0

    def next_id(self) -> int:
        self._req_id += 1
        return self._req_id

    def subscribe_messages(self, pairs: Iterable[str]) -> List[dict]:
        raise NotImplementedError

    def unsubscribe_messages(self, pairs: Iterable[str]) -> List[dict]:
        raise NotImplementedError

    def classify(self, msg: Any) -> MessageKind:
        raise NotImplementedError

    def pong(self, msg: Any) -> Optional[dict]:
        return None


class BinanceProtocol(VenueProtocol):
    name = "binance"

    def _streams(self, pairs: Iterable[str]) -> List[str]:
        return [f"{p.lower()}@depth{self.cfg.depth}@100ms" for p in pairs]

    def subscribe_messages(self, pairs):
        return [{"method": "SUBSCRIBE", "params": self._streams(pairs), "id": self.next_id()}]

    def unsubscribe_messages(self, pairs):
        return [{"method": "UNSUBSCRIBE", "params": self._streams(pairs), "id": self.next_id()}]

    def classify(self, msg):
        if not isinstance(msg, dict):
            return MessageKind.INFO
        if "stream" in msg:
            return MessageKind.DEPTH if "@depth" in str(msg["stream"]) else MessageKind.INFO
        if "error" in msg:
            return MessageKind.REJECT
        if "id" in msg and "result" in msg and msg["result"] is None:
            return MessageKind.ACK
        return MessageKind.INFO


class HuobiProtocol(VenueProtocol):
    name = "huobi"

    def _channel(self, pair: str) -> str:
        return f"market.{pair.lower()}.depth.step0"

    def subscribe_messages(self, pairs):
        return [{"sub": self._channel(p), "id": str(self.next_id())} for p in pairs]

    def unsubscribe_messages(self, pairs):
        return [{"unsub": self._channel(p), "id": str(self.next_id())} for p in pairs]

    def classify(self, msg):
        if not isinstance(msg, dict):
            return MessageKind.INFO
        if "ping" in msg:
            return MessageKind.PING
        if "ch" in msg and "tick" in msg:
            return MessageKind.DEPTH
        if msg.get("status") == "error":
            return MessageKind.REJECT
        if msg.get("status") == "ok" and "subbed" in msg:
            return MessageKind.ACK
        return MessageKind.INFO

    def pong(self, msg):
        return {"pong": msg["ping"]}


class KrakenProtocol(VenueProtocol):
    name = "kraken"
    snapshot_only = True

    def _pairs(self, pairs: Iterable[str]) -> List[str]:
        out = []
        for p in pairs:
            try:
                out.append(to_kraken(p))
            except ValueError as e:
                log.warning(f"kraken: skipping pair {p}: {e}")
        return out

    def _event(self, event: str, pairs: Iterable[str]) -> List[dict]:
        names = self._pairs(pairs)
        if not names:
            return []
        return [{"event": event, "pair": names,
                 "subscription": {"name": "book", "depth": self.cfg.depth},
                 "reqid": self.next_id()}]

    def subscribe_messages(self, pairs):
        return self._event("subscribe", pairs)

    def unsubscribe_messages(self, pairs):
        return self._event("unsubscribe", pairs)

    def classify(self, msg):
        if isinstance(msg, list):
            body = msg[1] if len(msg) > 1 else None
            # diffs ({"a": ...}/{"b": ...}) are not applied
            if isinstance(body, dict) and "as" in body and "bs" in body:
                return MessageKind.DEPTH
            return MessageKind.INFO
        if not isinstance(msg, dict):
            return MessageKind.INFO
        if msg.get("event") == "subscriptionStatus":
            if msg.get("status") == "subscribed":
                return MessageKind.ACK
            if msg.get("status") == "error":
                return MessageKind.REJECT
        return MessageKind.INFO


PROTOCOLS: Dict[str, Type[VenueProtocol]] = {
    "binance": BinanceProtocol,
    "huobi": HuobiProtocol,
    "kraken": KrakenProtocol,
}


def protocol_for(cfg: VenueConfig) -> VenueProtocol:
    try:
        return PROTOCOLS[cfg.id](cfg)
    except KeyError:
        raise ValueError(f"no stream protocol for venue '{cfg.id}'") from None
