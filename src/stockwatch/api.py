"""Async catalog API client using httpx with HTTP/2 and connection pooling.

- orjson for body decoding, pydantic schemas for every response shape
- Credentials are read from the SessionStore on every request, so a token
  refresh or session swap takes effect on the very next call
- The anti-bot cookies and sensor blob are forwarded verbatim, only on calls
  that ask for them (cart mutations)
"""

from __future__ import annotations

import logging
import random
import re
import time
from typing import Any

import httpx
import orjson
from pydantic import BaseModel, TypeAdapter, ValidationError

from stockwatch.errors import (
    DecodeError,
    RemoteError,
    TransportError,
    Unauthorized,
)
from stockwatch.models import (
    ArticleResponse,
    CartResponse,
    CartState,
    ClientIdentity,
    ProductDetails,
    ProductInfo,
    ReservationResult,
    SizeInfo,
    StockEntry,
    StockItemResponse,
    TokenResponse,
)
from stockwatch.session import SessionStore

logger = logging.getLogger(__name__)

SENSOR_HEADER = "X-acf-sensor-data"
DEFAULT_RESERVATION_SECONDS = 1200

# /campaigns/ZZO459V/articles/ZZO31NV42-M00, optionally with /categories/<x>/
_PRODUCT_URL_RE = re.compile(
    r"campaigns/([^/]+)/(?:categories/[^/]+/)?articles/([^/?#]+)"
)

_STOCK_LIST = TypeAdapter(list[StockItemResponse])


def parse_product_url(url: str) -> tuple[str, str] | None:
    """Extract (campaign_id, article_id) from a shop product URL."""
    m = _PRODUCT_URL_RE.search(url)
    return (m.group(1), m.group(2)) if m else None


def _cents(value: int) -> str:
    return f"€{value / 100:.2f}"


def _flow_id() -> str:
    return f"I{int(time.time() * 1000):X}-{random.getrandbits(16):04x}"


class CatalogClient:
    """
    Async HTTP client for the catalog, stock and cart endpoints.

    Use as an async context manager to get connection pooling and keep-alive:

        async with CatalogClient(store) as client:
            details = await client.fetch_product_details("ZZO459V", "ZZO31NV42-M00")

    Long-lived owners (the monitor) call open()/aclose() directly.
    """

    BASE_URL = "https://api.zalando-lounge.com"
    TOKEN_URL = "https://customer-iam.zalandoapis.com/token"

    def __init__(
        self,
        store: SessionStore,
        identity: ClientIdentity | None = None,
        base_url: str | None = None,
        token_url: str | None = None,
        token_client_id: str = "lounge",
        timeout: float = 10.0,
    ) -> None:
        self._store = store
        self._identity = identity or ClientIdentity()
        self._base_url = base_url or self.BASE_URL
        self._token_url = token_url or self.TOKEN_URL
        self._token_client_id = token_client_id
        self._timeout = timeout
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> CatalogClient:
        await self.open()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()

    async def open(self) -> None:
        if self._client is None:
            self._client = httpx.AsyncClient(
                http2=True,
                base_url=self._base_url,
                timeout=httpx.Timeout(self._timeout, connect=5.0),
            )

    async def aclose(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    # ------------------------------------------------------------------
    # Request plumbing
    # ------------------------------------------------------------------

    def _headers(self, attach_security_session: bool = False) -> dict[str, str]:
        """Identity headers plus whatever credentials the store holds right now."""
        ident = self._identity
        headers = {
            "User-Agent": ident.user_agent,
            "X-Device-Type": "smartphone",
            "X-Zalando-Client-Id": ident.client_id,
            "X-Device-OS": "iOS",
            "X-Flow-Id": _flow_id(),
            "X-Sales-Channel": ident.sales_channel,
            "X-App-Version": ident.app_version,
            "X-IOS-VERSION": ident.app_version,
            "X-APPDOMAINID": ident.app_domain_id,
            "X-API-VERSION": "v1",
            "CLIENT_TYPE": "ios-app",
            "zmobile-os": "ios",
            "Accept-Language": ident.accept_language,
            "Accept": "application/json,application/problem+json",
        }

        session = self._store.current
        if session.access_token:
            headers["Authorization"] = session.access_token

        if attach_security_session:
            if session.cookies:
                headers["Cookie"] = "; ".join(
                    f"{name}={value}" for name, value in session.cookies.items()
                )
            if session.sensor_data:
                headers[SENSOR_HEADER] = session.sensor_data

        return headers

    async def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        if self._client is None:
            await self.open()
        try:
            resp = await self._client.request(method, url, **kwargs)
        except httpx.TransportError as e:
            raise TransportError(f"{method} {url}: {type(e).__name__}: {e}") from e

        if resp.status_code in (401, 403):
            raise Unauthorized(
                f"Unauthorized ({resp.status_code}) - token expired or invalid",
                status=resp.status_code,
                body=resp.text[:500],
            )
        if resp.status_code >= 400:
            raise RemoteError(
                f"HTTP {resp.status_code} on {method} {url}",
                status=resp.status_code,
                body=resp.text[:500],
            )
        return resp

    async def _request(
        self,
        method: str,
        path: str,
        body: dict | None = None,
        *,
        attach_security_session: bool = False,
        extra_headers: dict[str, str] | None = None,
    ) -> Any:
        """JSON request against the catalog API; returns the decoded body."""
        headers = self._headers(attach_security_session)
        if extra_headers:
            headers.update(extra_headers)
        kwargs: dict[str, Any] = {"headers": headers}
        if body is not None:
            headers["Content-Type"] = "application/json"
            kwargs["content"] = orjson.dumps(body)

        resp = await self._send(method, path, **kwargs)
        try:
            return orjson.loads(resp.content)
        except orjson.JSONDecodeError as e:
            raise DecodeError(
                f"Parse error on {method} {path}: {e}", status=resp.status_code
            ) from e

    @staticmethod
    def _validate(model: type[BaseModel], data: Any, what: str) -> Any:
        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise DecodeError(f"Unexpected {what} response: {e}") from e

    # ------------------------------------------------------------------
    # Catalog + stock
    # ------------------------------------------------------------------

    async def fetch_product_details(
        self, campaign_id: str, article_id: str
    ) -> ProductDetails:
        """GET /phoenix-api/catalog/events/{campaign}/articles/{article}."""
        data = await self._request(
            "GET", f"/phoenix-api/catalog/events/{campaign_id}/articles/{article_id}"
        )
        if not isinstance(data, dict) or not data.get("sku"):
            raise DecodeError(f"Product not found: {campaign_id}/{article_id}")

        article: ArticleResponse = self._validate(ArticleResponse, data, "product")

        info = ProductInfo(
            title=article.name_shop or article.name_category_tag,
            brand=article.brand or "",
            color=article.name_color,
            price=_cents(article.special_price or 0),
            original_price=_cents(article.price or 0),
            discount=f"-{article.savings or 0}%",
            config_sku=article.sku,
            campaign_id=campaign_id,
            image=article.images[0] if article.images else None,
        )

        size_mapping: dict[str, SizeInfo] = {}
        variant_skus: list[str] = []
        for simple in article.simples or []:
            size_mapping[simple.sku] = SizeInfo(
                size=simple.supplier_size or simple.filter_value or "N/A",
                stock_status=simple.stock_status,
            )
            variant_skus.append(simple.sku)

        return ProductDetails(
            product_info=info, size_mapping=size_mapping, variant_skus=variant_skus
        )

    async def check_stock(
        self, config_sku: str, variant_skus: list[str], campaign_id: str
    ) -> dict[str, StockEntry]:
        """POST /stockcart/articles: live quantity per variant SKU."""
        data = await self._request(
            "POST",
            "/stockcart/articles",
            {
                "configSku": config_sku,
                "simpleSkus": variant_skus,
                "campaignIdentifier": campaign_id,
            },
        )
        if not isinstance(data, list):
            raise DecodeError("Invalid stock response: expected a list")
        try:
            items = _STOCK_LIST.validate_python(data)
        except ValidationError as e:
            raise DecodeError(f"Unexpected stock response: {e}") from e

        return {
            item.simple_sku: StockEntry(
                quantity=max(item.quantity or 0, 0), raw_status=item.stock_status or ""
            )
            for item in items
        }

    # ------------------------------------------------------------------
    # Cart
    # ------------------------------------------------------------------

    @staticmethod
    def _cart_state(cart: CartResponse) -> CartState:
        return CartState(
            items=[i.model_dump(by_alias=True, exclude_none=True) for i in cart.items],
            remaining_seconds=cart.remaining_lifetime_seconds,
            prolong_counter=cart.prolong_counter,
        )

    async def insert_cart_item(
        self,
        config_sku: str,
        variant_sku: str,
        campaign_id: str,
        attach_security_session: bool = True,
    ) -> ReservationResult:
        """POST /stockcart/cart/items: reserve one unit of a variant."""
        data = await self._request(
            "POST",
            "/stockcart/cart/items",
            {
                "configSku": config_sku,
                "quantity": "1",
                "campaignIdentifier": campaign_id,
                "simpleSku": variant_sku,
            },
            attach_security_session=attach_security_session,
            extra_headers={"x-enable-unreserved-cart": "true"},
        )
        cart: CartResponse = self._validate(CartResponse, data, "cart")
        if not cart.items:
            return ReservationResult(success=False, error="Cart is empty after insert")
        return ReservationResult(
            success=True,
            remaining_seconds=cart.remaining_lifetime_seconds or DEFAULT_RESERVATION_SECONDS,
        )

    async def get_cart(self) -> CartState:
        """GET /stockcart/cart."""
        data = await self._request(
            "GET", "/stockcart/cart", extra_headers={"x-enable-unreserved-cart": "true"}
        )
        return self._cart_state(self._validate(CartResponse, data, "cart"))

    async def extend_cart(self, attach_security_session: bool = True) -> CartState:
        """POST /stockcart/cart/prolong: push the reservation expiry back."""
        data = await self._request(
            "POST",
            "/stockcart/cart/prolong",
            {},
            attach_security_session=attach_security_session,
            extra_headers={"x-enable-unreserved-cart": "true"},
        )
        return self._cart_state(self._validate(CartResponse, data, "cart"))

    # ------------------------------------------------------------------
    # Token exchange
    # ------------------------------------------------------------------

    async def exchange_refresh_token(self, refresh_token: str) -> TokenResponse:
        """POST the IAM token endpoint with grant_type=refresh_token."""
        resp = await self._send(
            "POST",
            self._token_url,
            data={
                "refresh_token": refresh_token,
                "client_id": self._token_client_id,
                "grant_type": "refresh_token",
            },
            headers={
                "Content-Type": "application/x-www-form-urlencoded; charset=UTF-8",
                "User-Agent": "Prive/614 CFNetwork/3860.300.31 Darwin/25.2.0",
                "Accept": "*/*",
                "Accept-Language": "fr-FR,fr;q=0.9",
            },
        )
        try:
            data = orjson.loads(resp.content)
        except orjson.JSONDecodeError as e:
            raise DecodeError(f"Token refresh parse error: {e}") from e
        return self._validate(TokenResponse, data, "token")
