"""Watch management routes.

Adding a watch runs one synchronous fetch + stock check and answers with the
variants that were already in stock (and alerted) at that moment.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from stockwatch.monitor import StockMonitor
from stockwatch.web.deps import get_monitor
from stockwatch.web.schemas import (
    AddWatchRequest,
    AddWatchResponse,
    AlertOut,
    MessageResponse,
    PreviewResponse,
    ProductRef,
    SizeOut,
    UpdateVariantsRequest,
)

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("")
async def list_products(monitor: StockMonitor = Depends(get_monitor)):
    return {
        "products": [p.to_dict() for p in monitor.registry],
        "is_monitoring": monitor.poll_job.active,
    }


@router.get("/history")
async def history(monitor: StockMonitor = Depends(get_monitor)):
    return {"history": [h.model_dump(mode="json") for h in monitor.registry.history()]}


@router.post("/fetch", response_model=PreviewResponse)
async def fetch_product(body: ProductRef, monitor: StockMonitor = Depends(get_monitor)):
    """Preview a product and its live sizes without watching it."""
    details, stock = await monitor.preview(body.campaign_id, body.article_id)
    sizes = []
    for sku, info in details.size_mapping.items():
        entry = stock.get(sku)
        sizes.append(
            SizeOut(
                sku=sku,
                size=info.size,
                in_stock=entry.in_stock if entry else False,
                quantity=entry.quantity if entry else 0,
            )
        )
    return PreviewResponse(
        campaign_id=body.campaign_id,
        article_id=body.article_id,
        product_info=details.product_info.model_dump(),
        sizes=sizes,
    )


@router.post("", response_model=AddWatchResponse)
async def add_product(body: AddWatchRequest, monitor: StockMonitor = Depends(get_monitor)):
    result = await monitor.add_watch(body.campaign_id, body.article_id, body.watched_variants)
    product = result.product
    return AddWatchResponse(
        key=product.key,
        message=f"Now monitoring {product.label}",
        watched_sizes=[product.size_of(sku) for sku in sorted(product.watched_variants)],
        already_in_stock=[
            AlertOut(
                sku=a.event.variant_sku,
                size=product.size_of(a.event.variant_sku),
                quantity=a.event.quantity,
                reserved=a.reservation.success if a.reservation else None,
                reservation_error=a.reservation.error if a.reservation else None,
            )
            for a in result.alerts
        ],
    )


@router.delete("/{key}", response_model=MessageResponse)
async def remove_product(key: str, monitor: StockMonitor = Depends(get_monitor)):
    monitor.remove_watch(key)
    return MessageResponse(message="Product removed")


@router.put("/{key}/variants")
async def update_variants(
    key: str, body: UpdateVariantsRequest, monitor: StockMonitor = Depends(get_monitor)
):
    product = monitor.update_watched_variants(key, body.watched_variants)
    return {"success": True, "watched_variants": sorted(product.watched_variants)}


@router.post("/{key}/reset", response_model=MessageResponse)
async def reset_product(key: str, monitor: StockMonitor = Depends(get_monitor)):
    monitor.reset_notifications(key)
    return MessageResponse(message="Notification state reset")
