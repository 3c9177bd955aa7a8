from __future__ import annotations
import asyncio
from typing import Dict, Iterable, List

from midindex.core.logger import get_logger
from midindex.md.rest_client import FallbackPoller
from midindex.md.ws_client import VenueConnector

log = get_logger(__name__)


class ConnectorManager:
    """
    The one place that decides stream vs. pull for a venue.

    Asked on every refresh tick and for every newly tracked pair, because
    a stream can drop between two calls. A streaming venue only gets its
    subscription topped up; anything else is pulled pair by pair.
    """

    def __init__(self, connectors: Dict[str, VenueConnector], pollers: Dict[str, FallbackPoller]):
        if set(connectors) != set(pollers):
            raise ValueError("every venue needs both a connector and a poller")
        self.connectors = connectors
        self.pollers = pollers

    @property
    def venues(self) -> List[str]:
        return list(self.connectors)

    async def start(self, pairs: Iterable[str]) -> None:
        pairs = list(pairs)
        for venue, conn in self.connectors.items():
            log.info(f"{venue}: starting stream for {pairs}")
            await conn.connect(pairs)

    async def ensure(self, venue: str, pairs: Iterable[str]) -> None:
        pairs = list(pairs)
        conn = self.connectors[venue]
        if not conn.started:
            await conn.connect(pairs)
        if conn.is_connected() and await conn.update_subscription(pairs):
            return
        log.warning(f"{venue}: stream not connected ({conn.state.value}), pulling {pairs} over REST")
        poller = self.pollers[venue]
        for pair in pairs:
            await poller.pull(pair)

    async def ensure_all(self, pairs: Iterable[str]) -> None:
        pairs = list(pairs)
        results = await asyncio.gather(*(self.ensure(v, pairs) for v in self.connectors),
                                       return_exceptions=True)
        for venue, res in zip(self.connectors, results):
            if isinstance(res, Exception):
                log.error(f"{venue}: refresh failed: {res!r}")

    def states(self) -> Dict[str, str]:
        return {v: c.state.value for v, c in self.connectors.items()}

    async def close(self) -> None:
        for conn in self.connectors.values():
            await conn.close()
