"""ERP gateway client.

Every gateway call needs a session token obtained for the company the order
is booked in. Responses are wrapped in {sucesso, mensagem, data}; a non-2xx
status or sucesso=false is a failure of the step that made the call.
Customer and address calls are upserts (atualizaExistente), so repeating
them for the same document number is harmless.
"""

import logging
from typing import Any, Dict

from core.errors import ERPOrderRejected, ERPRegistrationFailed, UpstreamUnavailable
from core.models.erp import ERPEnvelope, ERPOrderAck, ERPToken
from connectors import http

logger = logging.getLogger(__name__)

TOKEN_PATH = "/token"
CUSTOMERS_PATH = "/nbs/ecommerce/hystalo/api/clientes"
ADDRESS_PATH = "/nbs/ecommerce/hystalo/api/clientes/endereco"
ORDERS_PATH = "/nbs/ecommerce/hystalo/api/pedidos"


class ERPGatewayClient:
    """HTTP client for the ERP gateway.

    Usage:
        erp = ERPGatewayClient(base_url, user_prefix="HYSTALO", shared_secret="...", package="HYSTALO")
        token = await erp.get_token("17")
        await erp.upsert_customer(token, customer_payload)
        document_number = await erp.submit_order(token, order_payload)
    """

    def __init__(
        self,
        base_url: str,
        user_prefix: str,
        shared_secret: str,
        package: str,
        timeout_seconds: float = http.DEFAULT_TIMEOUT_SECONDS,
    ):
        self.base_url = base_url.rstrip("/")
        self.user_prefix = user_prefix
        self.shared_secret = shared_secret
        self.package = package
        self.timeout_seconds = timeout_seconds

    async def _post(self, path: str, token: str, payload: Dict[str, Any]) -> http.HttpResponse:
        return await http.request(
            "POST",
            f"{self.base_url}{path}",
            headers={**http.bearer(token), "Content-Type": "application/json"},
            json_body=payload,
            timeout_seconds=self.timeout_seconds,
        )

    async def get_token(self, session_company: str) -> str:
        """Open a gateway session for a company.

        Raises:
            ERPRegistrationFailed: Gateway refused the session or sent no token
        """
        params = {
            "usuario": f"{self.user_prefix}{session_company}",
            "senha": self.shared_secret,
            "idioma": "PT",
            "pacote": self.package,
        }
        try:
            response = await http.request(
                "POST",
                f"{self.base_url}{TOKEN_PATH}",
                params=params,
                timeout_seconds=self.timeout_seconds,
            )
        except UpstreamUnavailable as e:
            raise ERPRegistrationFailed(f"ERP session failed: {e}", step="customer") from e

        if not response.ok:
            raise ERPRegistrationFailed(
                f"ERP session refused with status {response.status}",
                response.status,
                response.text,
                step="customer",
            )

        envelope = ERPEnvelope.model_validate(response.json())
        token = ERPToken.model_validate(envelope.data or {}).token
        if not token:
            raise ERPRegistrationFailed("ERP session returned no token", response.status, response.text, step="customer")
        return token

    async def _upsert(self, path: str, token: str, payload: Dict[str, Any], step: str) -> ERPEnvelope:
        try:
            response = await self._post(path, token, payload)
        except UpstreamUnavailable as e:
            raise ERPRegistrationFailed(f"ERP {step} upsert failed: {e}", step=step) from e

        if not response.ok:
            raise ERPRegistrationFailed(
                f"ERP {step} upsert returned status {response.status}",
                response.status,
                response.text,
                step=step,
            )

        envelope = ERPEnvelope.model_validate(response.json())
        if envelope.success is not True:
            raise ERPRegistrationFailed(
                f"ERP {step} upsert rejected: {envelope.message or 'no message'}",
                response.status,
                response.text,
                step=step,
            )
        return envelope

    async def upsert_customer(self, token: str, payload: Dict[str, Any]) -> ERPEnvelope:
        """Create or update the customer keyed by its document number."""
        return await self._upsert(CUSTOMERS_PATH, token, payload, "customer")

    async def upsert_address(self, token: str, payload: Dict[str, Any]) -> ERPEnvelope:
        """Create or update the customer's delivery address."""
        return await self._upsert(ADDRESS_PATH, token, payload, "address")

    async def submit_order(self, token: str, payload: Dict[str, Any]) -> str:
        """Submit an order and return the ERP document number.

        Raises:
            ERPOrderRejected: Non-2xx, sucesso=false or no document number
        """
        try:
            response = await self._post(ORDERS_PATH, token, payload)
        except UpstreamUnavailable as e:
            raise ERPOrderRejected(f"ERP order submission failed: {e}", step="order-submit") from e

        if not response.ok:
            raise ERPOrderRejected(
                f"ERP order submission returned status {response.status}",
                response.status,
                response.text,
                step="order-submit",
            )

        ack = ERPOrderAck.model_validate(response.json())
        if ack.success is False:
            raise ERPOrderRejected(
                f"ERP rejected the order: {ack.message or 'no message'}",
                response.status,
                response.text,
                step="order-submit",
            )

        document_number = ack.document_number
        if not document_number:
            raise ERPOrderRejected("ERP returned no document number", response.status, response.text, step="order-submit")

        logger.info(f"ERP accepted order as document {document_number}")
        return document_number
