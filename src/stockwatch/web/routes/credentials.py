"""Credential, security-session and auto-reserve configuration routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from stockwatch.monitor import StockMonitor
from stockwatch.session import summarize_sensor
from stockwatch.web.deps import get_monitor
from stockwatch.web.schemas import (
    AutoReserveRequest,
    MessageResponse,
    SessionUpdateRequest,
    TokenUpdateRequest,
)

router = APIRouter()


@router.post("/token", response_model=MessageResponse)
async def update_token(body: TokenUpdateRequest, monitor: StockMonitor = Depends(get_monitor)):
    monitor.update_credentials(body.access_token, body.refresh_token)
    return MessageResponse(message="Token(s) updated")


@router.post("/refresh", response_model=MessageResponse)
async def refresh_token(monitor: StockMonitor = Depends(get_monitor)):
    if not await monitor.tokens.refresh_now():
        raise HTTPException(502, monitor.tokens.last_error or "Token refresh failed")
    return MessageResponse(message="Token refreshed successfully")


@router.post("/session")
async def update_session(
    body: SessionUpdateRequest, monitor: StockMonitor = Depends(get_monitor)
):
    monitor.update_security(body.cookies, body.sensor_data)
    session = monitor.store.current
    return {
        "success": True,
        "cookie_names": sorted(session.cookies),
        "sensor": summarize_sensor(session.sensor_data).model_dump()
        if session.sensor_data
        else None,
    }


@router.delete("/session", response_model=MessageResponse)
async def clear_session(monitor: StockMonitor = Depends(get_monitor)):
    monitor.clear_security()
    return MessageResponse(message="Security session cleared")


@router.post("/auto-reserve", response_model=MessageResponse)
async def toggle_auto_reserve(
    body: AutoReserveRequest, monitor: StockMonitor = Depends(get_monitor)
):
    monitor.set_auto_reserve(body.enabled)
    return MessageResponse(message=f"Auto-reserve {'enabled' if body.enabled else 'disabled'}")
