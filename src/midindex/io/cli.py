from __future__ import annotations
import asyncio
from typing import List
import uvicorn

from midindex.core.cache import SnapshotCache
from midindex.core.config import load_runtime, load_venues
from midindex.core.logger import get_logger, setup_logging
from midindex.core.types import RuntimeConfig, VenueConfig
from midindex.io.api import make_app
from midindex.md.aggregator import PriceAggregator
from midindex.md.manager import ConnectorManager
from midindex.md.rest_client import FallbackPoller
from midindex.md.scheduler import RefreshScheduler
from midindex.md.service import PriceIndex
from midindex.md.ws_client import VenueConnector


def build(cfg: RuntimeConfig, venues: List[VenueConfig]):
    cache = SnapshotCache(default_ttl_ms=cfg.cache_ttl_ms)
    connectors = {v.id: VenueConnector(v, cache) for v in venues}
    pollers = {v.id: FallbackPoller(v, cache) for v in venues}
    manager = ConnectorManager(connectors, pollers)
    index = PriceIndex(cache, manager, PriceAggregator(cache, manager.venues))
    scheduler = RefreshScheduler(manager, index.tracked_pairs, cfg.refresh_interval_ms)
    return index, scheduler


async def run():
    cfg = load_runtime()
    setup_logging(cfg.log_level)
    log = get_logger("midindex.cli")
    venues = load_venues()
    log.info(f"venues: {[v.id for v in venues]}; default pairs: {cfg.default_pairs}")

    index, scheduler = build(cfg, venues)
    index.track(cfg.default_pairs)
    await index.manager.start(index.tracked_pairs())
    scheduler.start()

    app = make_app(index, cfg.first_quote_wait_ms)
    config = uvicorn.Config(app=app, host=cfg.http_host, port=cfg.http_port, log_level="info")
    server = uvicorn.Server(config)
    try:
        await server.serve()
    finally:
        await scheduler.stop()
        await index.manager.close()
        log.info("shutdown complete")


def main():
    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        pass

if __name__ == "__main__":
    main()
