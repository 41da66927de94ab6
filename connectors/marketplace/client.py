"""Marketplace REST client.

Covers the endpoints the sagas need: orders (with the pack fallback),
billing info, items, shipments and the invoice upload. All calls are
bearer-authenticated and carry the per-call timeout; nothing is retried.
"""

import logging
from typing import Optional

from core.errors import OrderNotFound, UpstreamUnavailable
from core.models.marketplace import BillingInfo, Item, Order, Pack, Shipment
from connectors import http

logger = logging.getLogger(__name__)

# The invoice endpoint answers 406 when it has accepted the document
INVOICE_ACCEPTED_STATUS = 406


class MarketplaceClient:
    """HTTP client for the marketplace API.

    Usage:
        client = MarketplaceClient("https://api.mercadolibre.com")
        order = await client.get_order("2000012345678", token)
    """

    def __init__(
        self,
        base_url: str,
        timeout_seconds: float = http.DEFAULT_TIMEOUT_SECONDS,
        site_id: str = "MLB",
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.site_id = site_id

    async def _get(self, path: str, token: str, extra_headers: Optional[dict] = None) -> http.HttpResponse:
        headers = {**http.bearer(token), "Accept": "application/json"}
        if extra_headers:
            headers.update(extra_headers)
        return await http.request(
            "GET",
            f"{self.base_url}{path}",
            headers=headers,
            timeout_seconds=self.timeout_seconds,
        )

    @staticmethod
    def _unexpected(response: http.HttpResponse, what: str) -> UpstreamUnavailable:
        return UpstreamUnavailable(
            f"Marketplace returned {response.status} for {what}",
            response.status,
            response.text,
        )

    # =========================================================================
    # Orders
    # =========================================================================

    async def get_order(self, order_id: str, token: str, allow_pack_fallback: bool = True) -> Order:
        """Fetch an order; an unknown id is retried as a pack id.

        When the id is a pack, its first sub-order is fetched through this
        same method (with the fallback disabled) and returned.

        Raises:
            OrderNotFound: Neither an order nor a pack with sub-orders exists
            UpstreamUnavailable: Transport failure or unexpected status
        """
        response = await self._get(f"/orders/{order_id}", token)
        if response.status == 200:
            return Order.model_validate(response.json())

        if response.status != 404:
            raise self._unexpected(response, f"order {order_id}")

        if not allow_pack_fallback:
            raise OrderNotFound(f"Order {order_id} not found", response.status, response.text)

        logger.info(f"Order {order_id} not found, trying it as a pack")
        pack = await self.get_pack(order_id, token)
        if not pack.orders:
            raise OrderNotFound(f"Pack {order_id} has no orders")
        return await self.get_order(pack.orders[0].id, token, allow_pack_fallback=False)

    async def get_pack(self, pack_id: str, token: str) -> Pack:
        """Fetch a pack (grouped shipment).

        Raises:
            OrderNotFound: No pack with this id
            UpstreamUnavailable: Transport failure or unexpected status
        """
        response = await self._get(f"/packs/{pack_id}", token)
        if response.status == 200:
            return Pack.model_validate(response.json())
        if response.status == 404:
            raise OrderNotFound(f"Neither order nor pack {pack_id} found", response.status, response.text)
        raise self._unexpected(response, f"pack {pack_id}")

    async def get_billing_info(self, order_id: str, token: str, pack_id: Optional[str] = None) -> BillingInfo:
        """Fetch the buyer's billing info for an order.

        Args:
            order_id: Requested order id (may be a pack id)
            token: Marketplace access token
            pack_id: Pack to fall back to when the billing info is unavailable
                (its first sub-order is used)

        Raises:
            UpstreamUnavailable: Billing info unavailable on every path
        """
        response = await self._get(f"/orders/{order_id}/billing_info", token)
        if response.status == 200:
            return BillingInfo.model_validate(response.json())

        if pack_id:
            logger.info(f"Billing info for {order_id} returned {response.status}, trying pack {pack_id}")
            try:
                pack = await self.get_pack(pack_id, token)
            except OrderNotFound as e:
                raise UpstreamUnavailable(f"Billing info unavailable for {order_id}: {e}") from e
            if pack.orders and pack.orders[0].id != order_id:
                return await self.get_billing_info(pack.orders[0].id, token)

        raise self._unexpected(response, f"billing info of {order_id}")

    # =========================================================================
    # Items
    # =========================================================================

    async def get_item(self, item_id: str, token: str) -> Item:
        response = await self._get(f"/items/{item_id}", token)
        if response.status == 200:
            return Item.model_validate(response.json())
        raise self._unexpected(response, f"item {item_id}")

    # =========================================================================
    # Shipments
    # =========================================================================

    async def get_shipment(self, shipment_id: str, token: str) -> Shipment:
        response = await self._get(f"/shipments/{shipment_id}", token, {"x-format-new": "true"})
        if response.status == 200:
            return Shipment.from_api(response.json())
        raise self._unexpected(response, f"shipment {shipment_id}")

    async def upload_invoice(self, shipment_id: str, invoice_xml: str, token: str) -> http.HttpResponse:
        """Push an invoice XML document for a shipment.

        Returns the raw response; only INVOICE_ACCEPTED_STATUS means the
        document was accepted (see is_invoice_accepted).
        """
        headers = {
            **http.bearer(token),
            "Content-Type": "application/xml",
            "Accept": "application/xml",
        }
        return await http.request(
            "POST",
            f"{self.base_url}/shipments/{shipment_id}/invoice_data",
            headers=headers,
            params={"siteId": self.site_id},
            data=invoice_xml.encode("utf-8"),
            timeout_seconds=self.timeout_seconds,
        )

    @staticmethod
    def is_invoice_accepted(response: http.HttpResponse) -> bool:
        return response.status == INVOICE_ACCEPTED_STATUS
