"""Cart inspection, manual inserts and auto-extension control."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from stockwatch.models import ReservationResult
from stockwatch.monitor import StockMonitor
from stockwatch.web.deps import get_monitor
from stockwatch.web.schemas import CartInsertRequest

router = APIRouter()


def _status(monitor: StockMonitor) -> dict:
    cart = monitor.cart.last_cart
    return {
        "phase": monitor.cart.phase.value,
        "cart": cart.model_dump() if cart else None,
        "last_extended_at": monitor.cart.last_extended_at.isoformat()
        if monitor.cart.last_extended_at
        else None,
    }


@router.get("")
async def get_cart(monitor: StockMonitor = Depends(get_monitor)):
    cart = await monitor.client.get_cart()
    return {"phase": monitor.cart.phase.value, "cart": cart.model_dump()}


@router.post("/check")
async def check_cart(monitor: StockMonitor = Depends(get_monitor)):
    """Run one extend pass now (stops auto-extension if the cart is empty)."""
    await monitor.cart.check_now()
    return _status(monitor)


@router.post("/auto-extend/start")
async def start_auto_extend(monitor: StockMonitor = Depends(get_monitor)):
    started = monitor.cart.ensure_running()
    return {"started": started, **_status(monitor)}


@router.post("/auto-extend/stop")
async def stop_auto_extend(monitor: StockMonitor = Depends(get_monitor)):
    stopped = monitor.cart.stop()
    return {"stopped": stopped, **_status(monitor)}


@router.post("/items", response_model=ReservationResult)
async def insert_item(body: CartInsertRequest, monitor: StockMonitor = Depends(get_monitor)):
    """Insert one unit now with the current security session."""
    return await monitor.add_to_cart(body.config_sku, body.variant_sku, body.campaign_id)
