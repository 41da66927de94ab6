"""ERP gateway connector."""

from connectors.erp.client import ERPGatewayClient
from connectors.erp.payloads import (
    OrderLine,
    build_address_payload,
    build_customer_payload,
    build_order_payload,
    format_address,
)

__all__ = [
    "ERPGatewayClient",
    "OrderLine",
    "build_address_payload",
    "build_customer_payload",
    "build_order_payload",
    "format_address",
]
