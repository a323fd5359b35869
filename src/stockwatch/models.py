"""Pydantic models for catalog API interactions and domain objects."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, SecretStr, computed_field

AVAILABLE = "AVAILABLE"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# --- Config Models ---


class ClientIdentity(BaseModel):
    """Fixed headers that make requests look like the official iOS app."""

    user_agent: str = (
        "Client/ios-app AppVersion/614 AppVersionName/4.72.0 AppDomain/18 OS/26.2"
    )
    client_id: str = "53BEFF53-D469-4DDA-913E-33F4555D2CEE"
    sales_channel: str = "a332da49-a665-4a13-bd44-1ecea09b4d86"
    app_domain_id: str = "18"
    app_version: str = "4.72.0"
    accept_language: str = "fr-FR"


class MonitorSettings(BaseModel):
    """Loaded from YAML config file, then overridden by environment."""

    api_base_url: str = "https://api.zalando-lounge.com"
    shop_base_url: str = "https://www.zalando-prive.fr"
    token_url: str = "https://customer-iam.zalandoapis.com/token"
    token_client_id: str = "lounge"
    webhook_url: str | None = None

    access_token: SecretStr | None = None
    refresh_token: SecretStr | None = None

    poll_interval_seconds: float = Field(default=60.0, gt=0)
    token_refresh_interval_seconds: float = Field(default=50 * 60, gt=0)
    cart_extend_interval_seconds: float = Field(default=5 * 60, gt=0)
    request_timeout_seconds: float = Field(default=10.0, gt=0)
    auto_reserve: bool = False

    identity: ClientIdentity = ClientIdentity()

    host: str = "0.0.0.0"
    port: int = Field(default=3000, ge=1, le=65535)


# --- Session ---


class Session(BaseModel):
    """Credentials attached to catalog requests. Replaced wholesale, never edited."""

    model_config = ConfigDict(frozen=True)

    access_token: str | None = None  # includes the "Bearer " prefix
    refresh_token: str | None = None
    cookies: dict[str, str] = {}
    sensor_data: str | None = None
    last_updated_at: datetime | None = None

    @property
    def has_security_session(self) -> bool:
        return bool(self.cookies or self.sensor_data)


class SensorSummary(BaseModel):
    """Delimiter-level view of a sensor blob, for diagnostics only."""

    version: str | None = None
    type: str | None = None
    payload_length: int = 0
    counters: list[int] = []
    suffix_length: int = 0
    total_length: int = 0


# --- Catalog API Response Models ---


class SimpleResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    sku: str
    supplier_size: str | None = None
    filter_value: str | None = Field(default=None, alias="filterValue")
    stock_status: str | None = Field(default=None, alias="stockStatus")


class ArticleResponse(BaseModel):
    """GET /phoenix-api/catalog/events/{campaign}/articles/{article}."""

    model_config = ConfigDict(populate_by_name=True)

    sku: str
    name_shop: str | None = Field(default=None, alias="nameShop")
    name_category_tag: str | None = Field(default=None, alias="nameCategoryTag")
    brand: str | None = None
    name_color: str | None = Field(default=None, alias="nameColor")
    special_price: int | None = Field(default=None, alias="specialPrice")
    price: int | None = None
    savings: int | float | None = None
    images: list[str] | None = None
    simples: list[SimpleResponse] | None = None


class StockItemResponse(BaseModel):
    """One element of the POST /stockcart/articles array."""

    model_config = ConfigDict(populate_by_name=True)

    simple_sku: str = Field(alias="simpleSku")
    quantity: int | None = 0
    stock_status: str | None = Field(default=None, alias="stockStatus")


class CartItemResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    simple_sku: str | None = Field(default=None, alias="simpleSku")
    config_sku: str | None = Field(default=None, alias="configSku")
    quantity: int | str | None = None


class CartResponse(BaseModel):
    """Body returned by every /stockcart/cart endpoint."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    items: list[CartItemResponse] = []
    remaining_lifetime_seconds: int | None = Field(
        default=None, alias="remainingLifetimeSeconds"
    )
    prolong_counter: int = Field(default=0, alias="prolongCounter")


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str | None = None
    expires_in: int = 3600
    token_type: str = "Bearer"


# --- Domain Models ---


class ProductInfo(BaseModel):
    title: str | None = None
    brand: str | None = None
    color: str | None = None
    price: str = ""
    original_price: str = ""
    discount: str = ""
    config_sku: str
    campaign_id: str
    image: str | None = None


class SizeInfo(BaseModel):
    size: str
    stock_status: str | None = None

    @computed_field
    @property
    def in_stock(self) -> bool:
        return self.stock_status == AVAILABLE


class ProductDetails(BaseModel):
    product_info: ProductInfo
    size_mapping: dict[str, SizeInfo]
    variant_skus: list[str]


class StockEntry(BaseModel):
    quantity: int = Field(default=0, ge=0)
    raw_status: str = ""

    @computed_field
    @property
    def in_stock(self) -> bool:
        return self.raw_status == AVAILABLE and self.quantity > 0


class CartState(BaseModel):
    items: list[dict[str, Any]] = []
    remaining_seconds: int | None = None
    prolong_counter: int = 0

    @computed_field
    @property
    def is_empty(self) -> bool:
        return not self.items


class TransitionEvent(BaseModel):
    product_key: str
    variant_sku: str
    previous_in_stock: bool
    current_in_stock: bool
    quantity: int


class ReservationResult(BaseModel):
    success: bool
    remaining_seconds: int | None = None
    error: str | None = None


class WatchHistoryEntry(BaseModel):
    key: str
    campaign_id: str
    article_id: str
    title: str | None = None
    brand: str | None = None
    added_at: datetime
    removed_at: datetime | None = None
    alerts_sent: int = 0
