"""Shared test fixtures."""

import pytest

from stockwatch.models import ProductInfo, SizeInfo, StockEntry
from stockwatch.registry import WatchedProduct

CAMPAIGN = "ZZO459V"
ARTICLE = "ZZO31NV42-M00"
CONFIG_SKU = "ZZO31NV42-M00"
SKU_S = "ZZO31NV42-M000S00000"
SKU_M = "ZZO31NV42-M000M00000"
SKU_L = "ZZO31NV42-M000L00000"


def make_product(watched=(SKU_S, SKU_M), previous=None) -> WatchedProduct:
    product = WatchedProduct(
        campaign_id=CAMPAIGN,
        article_id=ARTICLE,
        product_info=ProductInfo(
            title="Hooded Jacket",
            brand="Acme",
            color="Black",
            price="€49.95",
            original_price="€99.90",
            discount="-50%",
            config_sku=CONFIG_SKU,
            campaign_id=CAMPAIGN,
        ),
        size_mapping={
            SKU_S: SizeInfo(size="S", stock_status="SOLD_OUT"),
            SKU_M: SizeInfo(size="M", stock_status="SOLD_OUT"),
            SKU_L: SizeInfo(size="L", stock_status="AVAILABLE"),
        },
        variant_skus=[SKU_S, SKU_M, SKU_L],
    )
    product.set_watched_variants(watched)
    if previous:
        product.previous_stock = dict(previous)
    return product


def stock(in_stock: bool, quantity: int = 3) -> StockEntry:
    return StockEntry(
        quantity=quantity if in_stock else 0,
        raw_status="AVAILABLE" if in_stock else "SOLD_OUT",
    )


@pytest.fixture
def sample_article_response():
    """A realistic catalog article response."""
    return {
        "sku": CONFIG_SKU,
        "nameShop": "Hooded Jacket",
        "nameCategoryTag": "Jackets",
        "brand": "Acme",
        "nameColor": "Black",
        "specialPrice": 4995,
        "price": 9990,
        "savings": 50,
        "images": ["https://img.example.com/jacket.jpg"],
        "simples": [
            {"sku": SKU_S, "supplier_size": "S", "stockStatus": "SOLD_OUT"},
            {"sku": SKU_M, "filterValue": "M", "stockStatus": "SOLD_OUT"},
            {"sku": SKU_L, "stockStatus": "AVAILABLE"},
        ],
    }


@pytest.fixture
def sample_stock_response():
    """A realistic /stockcart/articles response."""
    return [
        {"simpleSku": SKU_S, "quantity": 3, "stockStatus": "AVAILABLE"},
        {"simpleSku": SKU_M, "quantity": 0, "stockStatus": "SOLD_OUT"},
        {"simpleSku": SKU_L, "quantity": 1, "stockStatus": "AVAILABLE"},
    ]


@pytest.fixture
def sample_cart_response():
    """A realistic /stockcart/cart response with one reserved item."""
    return {
        "items": [
            {"simpleSku": SKU_S, "configSku": CONFIG_SKU, "quantity": 1},
        ],
        "remainingLifetimeSeconds": 1140,
        "prolongCounter": 1,
    }


@pytest.fixture
def sample_token_response():
    """A realistic IAM refresh_token grant response."""
    return {
        "access_token": "new_access_token",
        "refresh_token": "new_refresh_token",
        "expires_in": 3599,
        "token_type": "Bearer",
    }
