"""Pydantic request/response schemas for the web API.

Request models validate everything up front so no handler mutates a store
with a half-valid body.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, model_validator

from stockwatch.api import parse_product_url


# ---------------------------------------------------------------------------
# Products
# ---------------------------------------------------------------------------


class ProductRef(BaseModel):
    """Either a shop URL or an explicit campaign + article pair."""

    campaign_id: str | None = None
    article_id: str | None = None
    url: str | None = None

    @model_validator(mode="after")
    def _resolve(self):
        if self.url and not (self.campaign_id and self.article_id):
            parsed = parse_product_url(self.url)
            if parsed:
                self.campaign_id, self.article_id = parsed
        if not (self.campaign_id and self.article_id):
            raise ValueError("campaign_id and article_id are required (or provide a product URL)")
        return self


class AddWatchRequest(ProductRef):
    watched_variants: list[str] = Field(..., min_length=1)


class UpdateVariantsRequest(BaseModel):
    watched_variants: list[str] = Field(..., min_length=1)


class SizeOut(BaseModel):
    sku: str
    size: str
    in_stock: bool = False
    quantity: int = 0


class PreviewResponse(BaseModel):
    campaign_id: str
    article_id: str
    product_info: dict
    sizes: list[SizeOut]


class AlertOut(BaseModel):
    sku: str
    size: str
    quantity: int
    reserved: bool | None = None
    reservation_error: str | None = None


class AddWatchResponse(BaseModel):
    success: bool = True
    key: str
    message: str
    watched_sizes: list[str]
    already_in_stock: list[AlertOut]


# ---------------------------------------------------------------------------
# Credentials + security session
# ---------------------------------------------------------------------------


class TokenUpdateRequest(BaseModel):
    access_token: str | None = None
    refresh_token: str | None = None

    @model_validator(mode="after")
    def _at_least_one(self):
        if not (self.access_token or self.refresh_token):
            raise ValueError("access_token or refresh_token is required")
        return self


class SessionUpdateRequest(BaseModel):
    cookies: dict[str, str] | None = None
    sensor_data: str | None = None

    @model_validator(mode="after")
    def _at_least_one(self):
        if self.cookies is None and self.sensor_data is None:
            raise ValueError("cookies or sensor_data is required")
        return self


class AutoReserveRequest(BaseModel):
    enabled: bool


# ---------------------------------------------------------------------------
# Cart
# ---------------------------------------------------------------------------


class CartInsertRequest(BaseModel):
    """One unit of one variant, inserted with the current security session."""

    config_sku: str = Field(..., min_length=1)
    variant_sku: str = Field(..., min_length=1)
    campaign_id: str = Field(..., min_length=1)


class MessageResponse(BaseModel):
    success: bool = True
    message: str
