"""FastAPI dependencies.

Routes reach the engine through `get_monitor`, never through module globals,
so tests can mount an app around any StockMonitor.
"""

from __future__ import annotations

from fastapi import Request

from stockwatch.monitor import StockMonitor


def get_monitor(request: Request) -> StockMonitor:
    return request.app.state.monitor
