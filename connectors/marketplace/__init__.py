"""Marketplace connector: access tokens and the REST client."""

from connectors.marketplace.client import MarketplaceClient, INVOICE_ACCEPTED_STATUS
from connectors.marketplace.token_provider import (
    MarketplaceToken,
    TokenProvider,
    extract_marker_token,
)

__all__ = [
    "MarketplaceClient",
    "INVOICE_ACCEPTED_STATUS",
    "MarketplaceToken",
    "TokenProvider",
    "extract_marker_token",
]
