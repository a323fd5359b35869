"""Discord webhook alerts.

Fire and forget: a failed POST is logged and dropped, never raised into the
poll loop. The "credentials expired" alert is sent once per outage and only
re-armed by a credential update or a successful token refresh.
"""

from __future__ import annotations

import logging

import httpx

from stockwatch.models import ReservationResult, TransitionEvent, utcnow
from stockwatch.registry import WatchedProduct

logger = logging.getLogger(__name__)

COLOR_STOCK = 0xFF6900
COLOR_RESERVED = 0x22C55E
COLOR_OK = 0x22C55E
COLOR_ERROR = 0xF87171


def _embed(title: str, color: int, fields: list[dict], footer: str, **extra) -> dict:
    return {
        "title": title,
        "color": color,
        "fields": fields,
        "footer": {"text": footer},
        "timestamp": utcnow().isoformat(),
        **extra,
    }


def _field(name: str, value: str, inline: bool = True) -> dict:
    return {"name": name, "value": value or "-", "inline": inline}


def product_url(shop_base_url: str, product: WatchedProduct) -> str:
    return f"{shop_base_url}/campaigns/{product.campaign_id}/articles/{product.article_id}"


def build_stock_message(
    product: WatchedProduct,
    event: TransitionEvent,
    shop_base_url: str,
    reservation: ReservationResult | None = None,
) -> dict:
    """One webhook payload for one transition.

    "reserved" when a reservation succeeded, otherwise "stock detected" (with
    the failed reservation's error, if one was attempted).
    """
    info = product.product_info
    size = product.size_of(event.variant_sku)
    fields = [
        _field("Product", f"**{info.brand} - {info.title}**", inline=False),
        _field("Color", info.color or "-"),
        _field("Size", f"**{size}**"),
        _field("Quantity", f"{event.quantity} available"),
        _field("Price", f"{info.price} ({info.discount})", inline=False),
    ]

    if reservation is not None and reservation.success:
        minutes = (reservation.remaining_seconds or 0) // 60
        fields += [
            _field("Reserved", f"In cart for ~{minutes} min", inline=False),
            _field("Checkout", f"[Pay now]({shop_base_url}/checkout)"),
        ]
        embed = _embed(
            "RESERVED IN CART", COLOR_RESERVED, fields, f"SKU: {event.variant_sku}"
        )
        content = f"@everyone **{size} reserved - check out before the cart expires!**"
    else:
        if reservation is not None:
            fields.append(
                _field("Auto-reserve failed", f"`{reservation.error or 'unknown'}`", inline=False)
            )
        fields += [
            _field("Product page", f"[Open]({product_url(shop_base_url, product)})"),
            _field("Cart", f"[Go to cart]({shop_base_url}/cart)"),
        ]
        embed = _embed(
            "STOCK DETECTED", COLOR_STOCK, fields, f"SKU: {event.variant_sku}"
        )
        content = "@everyone **NEW STOCK - add it to your cart fast!**"

    if info.image:
        embed["thumbnail"] = {"url": info.image}
    return {"content": content, "embeds": [embed]}


class NotificationDispatcher:
    """Posts alerts to a Discord webhook. No webhook configured = log only."""

    def __init__(
        self,
        webhook_url: str | None,
        shop_base_url: str = "https://www.zalando-prive.fr",
        timeout: float = 10.0,
    ) -> None:
        self.webhook_url = webhook_url
        self.shop_base_url = shop_base_url.rstrip("/")
        self._timeout = timeout
        self._client: httpx.AsyncClient | None = None
        self._expired_alert_sent = False
        self.sent = 0
        self.failed = 0

    async def open(self) -> None:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)

    async def aclose(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def expired_alert_sent(self) -> bool:
        return self._expired_alert_sent

    async def send(self, payload: dict) -> bool:
        if not self.webhook_url:
            logger.info("Webhook not configured, dropping alert: %s", payload.get("content"))
            return False
        if self._client is None:
            await self.open()
        try:
            resp = await self._client.post(self.webhook_url, json=payload)
        except httpx.HTTPError as e:
            self.failed += 1
            logger.error("Webhook delivery failed: %s", e)
            return False
        if resp.status_code not in (200, 204):
            self.failed += 1
            logger.error("Webhook error %d: %s", resp.status_code, resp.text[:200])
            return False
        self.sent += 1
        return True

    # ------------------------------------------------------------------
    # Alert kinds
    # ------------------------------------------------------------------

    async def stock_alert(
        self,
        product: WatchedProduct,
        event: TransitionEvent,
        reservation: ReservationResult | None = None,
    ) -> bool:
        product.alerts_sent += 1
        return await self.send(
            build_stock_message(product, event, self.shop_base_url, reservation)
        )

    async def credentials_expired(self, error: str) -> bool:
        """Sent at most once until reset_expired_alert()."""
        if self._expired_alert_sent:
            return False
        self._expired_alert_sent = True
        logger.warning("Credentials expired - sending alert")
        embed = _embed(
            "CREDENTIALS EXPIRED",
            COLOR_ERROR,
            [
                _field(
                    "Action required",
                    "Update the access token or security session via the config API",
                    inline=False,
                ),
                _field("Error", f"`{error}`", inline=False),
            ],
            "stockwatch",
            description="Catalog calls are being rejected. Monitoring keeps retrying every tick.",
        )
        return await self.send(
            {"content": "@everyone **CREDENTIALS EXPIRED - UPDATE REQUIRED**", "embeds": [embed]}
        )

    def reset_expired_alert(self) -> None:
        if self._expired_alert_sent:
            logger.info("Credentials-expired alert re-armed")
        self._expired_alert_sent = False

    async def token_refreshed(self, expires_in: int) -> bool:
        embed = _embed(
            "TOKEN REFRESHED",
            COLOR_OK,
            [
                _field("Expires in", f"{expires_in // 60} min"),
                _field("Status", "Monitoring active"),
            ],
            "stockwatch - auto refresh",
        )
        return await self.send({"content": "**Access token refreshed**", "embeds": [embed]})

    async def token_refresh_failed(self, error: str) -> bool:
        embed = _embed(
            "TOKEN REFRESH FAILED",
            COLOR_ERROR,
            [
                _field("Error", f"`{error}`", inline=False),
                _field("Action required", "Update the refresh token via the config API", inline=False),
            ],
            "stockwatch",
        )
        return await self.send(
            {"content": "@everyone **TOKEN REFRESH FAILED - MANUAL UPDATE REQUIRED**", "embeds": [embed]}
        )

    async def cart_emptied(self) -> bool:
        embed = _embed(
            "CART EMPTY",
            COLOR_ERROR,
            [_field("Auto-extend", "Stopped", inline=False)],
            "stockwatch",
        )
        return await self.send({"content": "Cart is empty, auto-extension stopped", "embeds": [embed]})
