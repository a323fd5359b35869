"""FastAPI application factory."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from stockwatch.config import load_dotenv, load_settings
from stockwatch.errors import StockwatchError
from stockwatch.models import MonitorSettings
from stockwatch.monitor import StockMonitor
from stockwatch.web.deps import get_monitor

logger = logging.getLogger(__name__)
PROJECT_ROOT = Path(__file__).parent.parent.parent.parent


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Injected monitor (tests, embedding): caller owns its lifecycle
    if getattr(app.state, "monitor", None) is not None:
        yield
        return

    if not load_dotenv(PROJECT_ROOT / ".env"):
        load_dotenv()
    settings = app.state.settings or load_settings()

    scheduler = AsyncIOScheduler(timezone="UTC")
    scheduler.start()
    app.state.scheduler = scheduler
    logger.info("APScheduler started")

    monitor = StockMonitor(settings, scheduler=scheduler)
    app.state.monitor = monitor
    await monitor.start()
    if not settings.webhook_url:
        logger.warning("No webhook configured - alerts will only be logged")

    yield

    await monitor.stop()
    scheduler.shutdown(wait=False)


async def _stockwatch_error(request: Request, exc: StockwatchError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": type(exc).__name__, "message": str(exc)},
    )


def create_app(
    settings: MonitorSettings | None = None, monitor: StockMonitor | None = None
) -> FastAPI:
    app = FastAPI(title="stockwatch", lifespan=lifespan)
    app.state.settings = settings
    app.state.monitor = monitor
    app.add_exception_handler(StockwatchError, _stockwatch_error)

    from stockwatch.web.routes import cart, credentials, products

    app.include_router(products.router, prefix="/api/products")
    app.include_router(credentials.router, prefix="/api/config")
    app.include_router(cart.router, prefix="/api/cart")

    @app.get("/health")
    async def health(monitor: StockMonitor = Depends(get_monitor)):
        return monitor.health()

    @app.get("/ping", response_class=PlainTextResponse)
    async def ping():
        return "pong"

    return app
