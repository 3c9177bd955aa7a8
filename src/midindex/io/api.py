from __future__ import annotations
import asyncio
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from midindex.core.logger import get_logger
from midindex.core.symbol_map import normalize_pair
from midindex.md.service import PriceIndex

log = get_logger(__name__)


def make_app(index: PriceIndex, first_quote_wait_ms: int = 1_000) -> FastAPI:
    app = FastAPI(title="midindex")

    @app.exception_handler(Exception)
    async def unhandled(request: Request, exc: Exception):
        log.exception(f"{request.method} {request.url.path} failed: {exc!r}")
        return JSONResponse({"error": "Internal Server Error"}, status_code=500)

    @app.get("/health")
    async def health():
        return JSONResponse({"ok": True, "venues": index.manager.states()})

    @app.get("/price/{pair}")
    async def price(pair: str):
        pair = normalize_pair(pair)
        log.info(f"GET /price/{pair}")
        if not pair:
            return JSONResponse({"error": "pair is required"}, status_code=400)
        if not index.is_tracked(pair):
            await index.ensure_tracked(pair)
            # give freshly opened streams a moment to deliver first quotes
            await asyncio.sleep(first_quote_wait_ms / 1000)
        gp = index.global_price(pair)
        if gp.price <= 0:
            return JSONResponse({"error": f"Price not found for pair {pair}"}, status_code=404)
        return JSONResponse(gp.model_dump())

    return app
