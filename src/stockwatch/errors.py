"""Exception hierarchy for stockwatch."""


class StockwatchError(Exception):
    """Base exception."""

    status_code = 500


class ConfigError(StockwatchError):
    """Invalid configuration or request."""

    status_code = 400


class WatchNotFoundError(StockwatchError):
    """No watch registered under the given key."""

    status_code = 404


# --- Catalog errors ---


class CatalogError(StockwatchError):
    """A call to the catalog API failed."""

    status_code = 502

    def __init__(self, message: str, status: int | None = None, body: str = "") -> None:
        super().__init__(message)
        self.status = status
        self.body = body


class Unauthorized(CatalogError):
    """HTTP 401/403: access token or security session is stale."""

    status_code = 401


class RemoteError(CatalogError):
    """Any other HTTP error status."""


class TransportError(CatalogError):
    """Connection-level failure (DNS, TLS, reset, timeout)."""

    status_code = 503


class DecodeError(CatalogError):
    """Response body is not well-formed or has an unexpected shape."""
