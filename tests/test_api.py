"""Tests for the async catalog API client."""

import httpx
import pytest
import respx

from conftest import ARTICLE, CAMPAIGN, CONFIG_SKU, SKU_L, SKU_M, SKU_S
from stockwatch.api import SENSOR_HEADER, CatalogClient, parse_product_url
from stockwatch.errors import DecodeError, RemoteError, TransportError, Unauthorized
from stockwatch.session import SessionStore

BASE = "https://api.zalando-lounge.com"
ARTICLE_URL = f"{BASE}/phoenix-api/catalog/events/{CAMPAIGN}/articles/{ARTICLE}"
STOCK_URL = f"{BASE}/stockcart/articles"
CART_URL = f"{BASE}/stockcart/cart"
TOKEN_URL = "https://customer-iam.zalandoapis.com/token"


def _store(**kwargs) -> SessionStore:
    return SessionStore(access_token="abc123", refresh_token="refresh_1", **kwargs)


class TestParseProductUrl:
    def test_plain_article_url(self):
        url = "https://www.zalando-prive.fr/campaigns/ZZO459V/articles/ZZO31NV42-M00"
        assert parse_product_url(url) == ("ZZO459V", "ZZO31NV42-M00")

    def test_url_with_category_and_query(self):
        url = "https://www.zalando-prive.fr/campaigns/ZZO459V/categories/123/articles/ZZO31NV42-M00?ref=x"
        assert parse_product_url(url) == ("ZZO459V", "ZZO31NV42-M00")

    def test_not_a_product_url(self):
        assert parse_product_url("https://www.zalando-prive.fr/cart") is None


@pytest.mark.asyncio
class TestCatalogClient:
    async def test_fetch_product_details(self, sample_article_response):
        with respx.mock:
            respx.get(ARTICLE_URL).mock(
                return_value=httpx.Response(200, json=sample_article_response)
            )

            async with CatalogClient(_store()) as client:
                details = await client.fetch_product_details(CAMPAIGN, ARTICLE)

        info = details.product_info
        assert info.title == "Hooded Jacket"
        assert info.price == "€49.95"
        assert info.original_price == "€99.90"
        assert info.discount == "-50%"
        assert info.config_sku == CONFIG_SKU
        assert info.image == "https://img.example.com/jacket.jpg"
        assert details.variant_skus == [SKU_S, SKU_M, SKU_L]
        assert details.size_mapping[SKU_S].size == "S"
        assert details.size_mapping[SKU_M].size == "M"  # filterValue fallback
        assert details.size_mapping[SKU_L].size == "N/A"
        assert details.size_mapping[SKU_L].in_stock is True

    async def test_fetch_product_missing_sku_is_decode_error(self):
        with respx.mock:
            respx.get(ARTICLE_URL).mock(return_value=httpx.Response(200, json={"brand": "x"}))

            async with CatalogClient(_store()) as client:
                with pytest.raises(DecodeError, match="Product not found"):
                    await client.fetch_product_details(CAMPAIGN, ARTICLE)

    async def test_check_stock(self, sample_stock_response):
        with respx.mock:
            route = respx.post(STOCK_URL).mock(
                return_value=httpx.Response(200, json=sample_stock_response)
            )

            async with CatalogClient(_store()) as client:
                result = await client.check_stock(CONFIG_SKU, [SKU_S, SKU_M, SKU_L], CAMPAIGN)

        assert result[SKU_S].in_stock is True
        assert result[SKU_S].quantity == 3
        assert result[SKU_M].in_stock is False

        body = route.calls[0].request.content.decode()
        assert f'"configSku":"{CONFIG_SKU}"' in body
        assert f'"campaignIdentifier":"{CAMPAIGN}"' in body

    async def test_available_with_zero_quantity_is_not_in_stock(self):
        with respx.mock:
            respx.post(STOCK_URL).mock(
                return_value=httpx.Response(
                    200, json=[{"simpleSku": SKU_S, "quantity": 0, "stockStatus": "AVAILABLE"}]
                )
            )

            async with CatalogClient(_store()) as client:
                result = await client.check_stock(CONFIG_SKU, [SKU_S], CAMPAIGN)

        assert result[SKU_S].in_stock is False

    async def test_null_stock_status_is_out_of_stock(self):
        with respx.mock:
            respx.post(STOCK_URL).mock(
                return_value=httpx.Response(
                    200,
                    json=[
                        {"simpleSku": SKU_S, "quantity": None, "stockStatus": None},
                        {"simpleSku": SKU_M, "quantity": 2, "stockStatus": "AVAILABLE"},
                    ],
                )
            )

            async with CatalogClient(_store()) as client:
                result = await client.check_stock(CONFIG_SKU, [SKU_S, SKU_M], CAMPAIGN)

        assert result[SKU_S].in_stock is False
        assert result[SKU_S].quantity == 0
        assert result[SKU_S].raw_status == ""
        assert result[SKU_M].in_stock is True

    async def test_fetch_product_with_null_fields(self):
        with respx.mock:
            respx.get(ARTICLE_URL).mock(
                return_value=httpx.Response(
                    200,
                    json={
                        "sku": CONFIG_SKU,
                        "brand": None,
                        "specialPrice": None,
                        "price": None,
                        "savings": None,
                        "images": None,
                        "simples": [{"sku": SKU_S, "stockStatus": None}],
                    },
                )
            )

            async with CatalogClient(_store()) as client:
                details = await client.fetch_product_details(CAMPAIGN, ARTICLE)

        info = details.product_info
        assert info.brand == ""
        assert info.price == "€0.00"
        assert info.discount == "-0%"
        assert info.image is None
        assert details.size_mapping[SKU_S].in_stock is False

    async def test_opens_lazily_without_context_manager(self, sample_stock_response):
        with respx.mock:
            respx.post(STOCK_URL).mock(
                return_value=httpx.Response(200, json=sample_stock_response)
            )

            client = CatalogClient(_store())
            result = await client.check_stock(CONFIG_SKU, [SKU_S], CAMPAIGN)
            await client.aclose()

        assert result[SKU_S].in_stock is True

    async def test_check_stock_non_list_is_decode_error(self):
        with respx.mock:
            respx.post(STOCK_URL).mock(return_value=httpx.Response(200, json={"oops": 1}))

            async with CatalogClient(_store()) as client:
                with pytest.raises(DecodeError):
                    await client.check_stock(CONFIG_SKU, [SKU_S], CAMPAIGN)

    async def test_malformed_body_is_decode_error(self):
        with respx.mock:
            respx.post(STOCK_URL).mock(return_value=httpx.Response(200, content=b"<html>"))

            async with CatalogClient(_store()) as client:
                with pytest.raises(DecodeError):
                    await client.check_stock(CONFIG_SKU, [SKU_S], CAMPAIGN)

    @pytest.mark.parametrize("status", [401, 403])
    async def test_auth_errors_are_unauthorized(self, status):
        with respx.mock:
            respx.post(STOCK_URL).mock(return_value=httpx.Response(status, text="denied"))

            async with CatalogClient(_store()) as client:
                with pytest.raises(Unauthorized) as exc_info:
                    await client.check_stock(CONFIG_SKU, [SKU_S], CAMPAIGN)

        assert exc_info.value.status == status

    async def test_server_error_is_remote_error(self):
        with respx.mock:
            respx.post(STOCK_URL).mock(return_value=httpx.Response(500, text="boom"))

            async with CatalogClient(_store()) as client:
                with pytest.raises(RemoteError) as exc_info:
                    await client.check_stock(CONFIG_SKU, [SKU_S], CAMPAIGN)

        assert exc_info.value.status == 500
        assert exc_info.value.body == "boom"

    async def test_connection_failure_is_transport_error(self):
        with respx.mock:
            respx.post(STOCK_URL).mock(side_effect=httpx.ConnectError("refused"))

            async with CatalogClient(_store()) as client:
                with pytest.raises(TransportError):
                    await client.check_stock(CONFIG_SKU, [SKU_S], CAMPAIGN)

    async def test_identity_and_auth_headers(self, sample_stock_response):
        with respx.mock:
            route = respx.post(STOCK_URL).mock(
                return_value=httpx.Response(200, json=sample_stock_response)
            )

            store = _store()
            store.update_security(cookies={"_abck": "cookie_val"}, sensor_data="4,i,a,b$p$1,2,3$$$s")
            async with CatalogClient(store) as client:
                await client.check_stock(CONFIG_SKU, [SKU_S], CAMPAIGN)

        request = route.calls[0].request
        assert request.headers["authorization"] == "Bearer abc123"
        assert request.headers["x-device-os"] == "iOS"
        assert request.headers["x-flow-id"].startswith("I")
        # Stock checks never carry the security session
        assert "cookie" not in request.headers
        assert SENSOR_HEADER.lower() not in request.headers

    async def test_token_read_per_request(self, sample_stock_response):
        with respx.mock:
            route = respx.post(STOCK_URL).mock(
                return_value=httpx.Response(200, json=sample_stock_response)
            )

            store = _store()
            async with CatalogClient(store) as client:
                await client.check_stock(CONFIG_SKU, [SKU_S], CAMPAIGN)
                store.update_credentials(access_token="rotated")
                await client.check_stock(CONFIG_SKU, [SKU_S], CAMPAIGN)

        assert route.calls[0].request.headers["authorization"] == "Bearer abc123"
        assert route.calls[1].request.headers["authorization"] == "Bearer rotated"

    async def test_insert_cart_item_attaches_security_session(self, sample_cart_response):
        sensor = "4,i,fp1,fp2$payload$11,7,32$$$suffix"
        with respx.mock:
            route = respx.post(f"{CART_URL}/items").mock(
                return_value=httpx.Response(200, json=sample_cart_response)
            )

            store = _store()
            store.update_security(
                cookies={"_abck": "A", "bm_sz": "B"}, sensor_data=sensor
            )
            async with CatalogClient(store) as client:
                result = await client.insert_cart_item(CONFIG_SKU, SKU_S, CAMPAIGN)

        assert result.success is True
        assert result.remaining_seconds == 1140

        request = route.calls[0].request
        assert request.headers["cookie"] == "_abck=A; bm_sz=B"
        assert request.headers[SENSOR_HEADER] == sensor  # verbatim
        assert request.headers["x-enable-unreserved-cart"] == "true"
        body = request.content.decode()
        assert f'"simpleSku":"{SKU_S}"' in body
        assert '"quantity":"1"' in body

    async def test_insert_cart_item_empty_cart_is_failure(self):
        with respx.mock:
            respx.post(f"{CART_URL}/items").mock(
                return_value=httpx.Response(200, json={"items": []})
            )

            async with CatalogClient(_store()) as client:
                result = await client.insert_cart_item(CONFIG_SKU, SKU_S, CAMPAIGN)

        assert result.success is False

    async def test_get_and_extend_cart(self, sample_cart_response):
        with respx.mock:
            respx.get(CART_URL).mock(return_value=httpx.Response(200, json={"items": []}))
            respx.post(f"{CART_URL}/prolong").mock(
                return_value=httpx.Response(200, json=sample_cart_response)
            )

            async with CatalogClient(_store()) as client:
                empty = await client.get_cart()
                extended = await client.extend_cart()

        assert empty.is_empty is True
        assert extended.is_empty is False
        assert extended.remaining_seconds == 1140
        assert extended.prolong_counter == 1
        assert extended.items[0]["simpleSku"] == SKU_S

    async def test_exchange_refresh_token(self, sample_token_response):
        with respx.mock:
            route = respx.post(TOKEN_URL).mock(
                return_value=httpx.Response(200, json=sample_token_response)
            )

            async with CatalogClient(_store()) as client:
                resp = await client.exchange_refresh_token("refresh_1")

        assert resp.access_token == "new_access_token"
        assert resp.refresh_token == "new_refresh_token"
        body = route.calls[0].request.content.decode()
        assert "grant_type=refresh_token" in body
        assert "refresh_token=refresh_1" in body
        assert "client_id=lounge" in body

    async def test_exchange_refresh_token_missing_access_token(self):
        with respx.mock:
            respx.post(TOKEN_URL).mock(
                return_value=httpx.Response(200, json={"error": "invalid_grant"})
            )

            async with CatalogClient(_store()) as client:
                with pytest.raises(DecodeError):
                    await client.exchange_refresh_token("refresh_1")
