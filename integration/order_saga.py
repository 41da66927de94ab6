"""Order integration saga.

Drives one marketplace order into the ERP:

    idempotency-check -> token -> order-fetch -> mapping -> customer
    -> address -> ledger-initial-write -> order-submit -> ledger-final-write

Steps run strictly in order and are never retried. The first fatal error
stops the run with one error entry naming its step and a failure
notification. Nothing the ERP already accepted is undone: a failed final
ledger write still reports the ERP document number.
"""

import asyncio
import time
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from pydantic import ValidationError

from core.config import AccountConfig
from core.errors import AlreadyProcessed, IntegrationError, LedgerWriteFailed, UpstreamUnavailable
from core.models.marketplace import BillingDetails, Order
from core.models.saga import IntegrationRequest, SagaResult
from core.observability import (
    get_logger,
    record_saga_completed,
    record_saga_failed,
    record_saga_started,
    record_step,
    with_correlation,
)
from core.services import ServiceContainer
from core.steplog import StepLogger
from connectors.erp import (
    build_address_payload,
    build_customer_payload,
    build_order_payload,
    format_address,
)
from connectors.marketplace import MarketplaceToken
from mapping_resolver import MappingResolution, MappingResolver, session_company

logger = get_logger(__name__)

SAGA_TYPE = "order_integration"

# Result entry statuses
STATUS_SUCCESS = "sucesso"
STATUS_LEDGER_FAILURE = "falha_ledger"
STATUS_FAILED = "erro"
STATUS_ALREADY_PROCESSED = "ja_processado"

SHIPPING_TYPE_LABEL = "Envio Flex"


@dataclass
class _OrderRun:
    """Mutable state of one run, filled in step by step."""
    request: IntegrationRequest
    process_id: str
    log: StepLogger
    step: str = "idempotency-check"
    account: Optional[AccountConfig] = None
    token: Optional[MarketplaceToken] = None
    order: Optional[Order] = None
    resolution: Optional[MappingResolution] = None
    billing: Optional[BillingDetails] = None
    address: Dict[str, Any] = field(default_factory=dict)
    document_number: str = ""


class OrderIntegrationSaga:
    """Integrates one marketplace order into the ERP.

    Usage:
        saga = OrderIntegrationSaga(get_services())
        result = await saga.run(IntegrationRequest(account="psa", order_id="2000012345678"))
    """

    def __init__(self, services: ServiceContainer, resolver: Optional[MappingResolver] = None):
        self.services = services
        self.resolver = resolver or MappingResolver(services.mappings, services.marketplace)

    # =========================================================================
    # Run
    # =========================================================================

    async def run(self, request: IntegrationRequest) -> SagaResult:
        """Run every step for one order; failures are reported in the result.

        Raises:
            RunInProgress: request.process_id belongs to a run that is still open
        """
        process_id = request.process_id or uuid.uuid4().hex
        run = _OrderRun(
            request=request,
            process_id=process_id,
            log=StepLogger(process_id, self.services.log_store, self.services.hub),
        )
        started = time.perf_counter()
        record_saga_started(SAGA_TYPE, process_id)

        with with_correlation(process_id=process_id, order_id=request.order_id, account=request.account):
            try:
                await self._execute(run)
            except AlreadyProcessed as e:
                run.log.warning(run.step, str(e))
                record_saga_failed(SAGA_TYPE, process_id, "already_processed")
                return self._finish(run, STATUS_ALREADY_PROCESSED, total_processed=0)
            except LedgerWriteFailed as e:
                run.log.error(run.step, str(e))
                record_saga_failed(SAGA_TYPE, process_id, type(e).__name__)
                status = STATUS_LEDGER_FAILURE if run.document_number else STATUS_FAILED
                await self._notify_failure(run)
                return self._finish(run, status, error=str(e))
            except IntegrationError as e:
                run.log.error(run.step, str(e))
                record_saga_failed(SAGA_TYPE, process_id, type(e).__name__)
                await self._notify_failure(run)
                return self._finish(run, STATUS_FAILED, error=str(e))
            except Exception as e:
                logger.exception(f"Order saga crashed at step {run.step}")
                run.log.error(run.step, f"Unexpected error: {e}")
                record_saga_failed(SAGA_TYPE, process_id, type(e).__name__)
                await self._notify_failure(run)
                return self._finish(run, STATUS_FAILED, error=str(e))

            record_saga_completed(SAGA_TYPE, process_id, (time.perf_counter() - started) * 1000)
            await self._notify_success(run)
            return self._finish(run, STATUS_SUCCESS)

    @contextmanager
    def _step(self, run: _OrderRun, name: str):
        """Mark `name` as the running step and time it.

        Upstream payloads that don't validate are reported as
        UpstreamUnavailable of this step.
        """
        run.step = name
        started = time.perf_counter()
        succeeded = False
        with with_correlation(step=name):
            try:
                yield
                succeeded = True
            except ValidationError as e:
                raise UpstreamUnavailable(f"Unexpected response during {name}: {e}", step=name) from e
            finally:
                record_step(name, succeeded, (time.perf_counter() - started) * 1000)

    async def _execute(self, run: _OrderRun) -> None:
        request = run.request
        services = self.services
        settings = services.settings
        log = run.log

        with self._step(run, "idempotency-check"):
            log.info("idempotency-check", f"Order {request.order_id} | {request.marketplace}")
            if await asyncio.to_thread(services.ledger.exists, request.order_id):
                raise AlreadyProcessed(
                    f"Order {request.order_id} was already processed",
                    step="idempotency-check",
                )
            log.success("idempotency-check", f"Order {request.order_id} not processed yet")

        with self._step(run, "token"):
            run.account = settings.accounts.get(request.account)
            run.token = await services.token_provider.get_token(run.account)
            log.success("token", f"Marketplace token obtained for {run.account.name}")

        with self._step(run, "order-fetch"):
            run.order = await services.marketplace.get_order(request.order_id, run.token.access_token)
            if run.order.id != request.order_id:
                log.info("order-fetch", f"{request.order_id} is a pack; using order {run.order.id}")
            log.success("order-fetch", f"Order fetched: {run.order.id} | Items: {len(run.order.order_items)}")

        with self._step(run, "mapping"):
            run.resolution = await self.resolver.resolve(run.order, run.account, run.token.access_token)
            for miss in run.resolution.misses:
                log.warning("mapping", f"{miss} (account {run.account.name})")
            run.resolution.ensure_bookable(request.order_id)
            log.success(
                "mapping",
                f"Company: {run.resolution.company_code}, Supplier: {run.resolution.supplier_code}, "
                f"Items: {len(run.resolution.items)}",
            )

        with self._step(run, "customer"):
            erp_token = await services.erp.get_token(session_company(run.resolution.company_code))
            billing_info = await services.marketplace.get_billing_info(
                request.order_id, run.token.access_token, pack_id=request.order_id
            )
            run.billing = billing_info.billing_info
            log.info("customer", f"Customer identified: {run.billing.customer_name} | Doc: {run.billing.doc_number}")
            await services.erp.upsert_customer(erp_token, build_customer_payload(run.billing))
            log.success("customer", f"Customer {run.billing.customer_name} registered in the ERP")

        with self._step(run, "address"):
            run.address = build_address_payload(run.billing)
            await services.erp.upsert_address(erp_token, run.address)
            log.success("address", f"Address registered: {format_address(run.address)}")

        with self._step(run, "ledger-initial-write"):
            await asyncio.to_thread(
                services.ledger.insert_initial,
                order_id=request.order_id,
                account_token_id=run.token.account_token_id,
                account_name=run.account.name.upper(),
                marketplace_name=request.marketplace,
                shipping_id=run.order.shipping.id,
                shipping_mode=settings.shipping_mode,
            )
            log.success("ledger-initial-write", f"Ledger record created for {request.order_id}")

        with self._step(run, "order-submit"):
            for index, item in enumerate(run.resolution.items, start=1):
                log.info(
                    "order-submit",
                    f"Item {index}: {item.item_id} -> {item.sku} | Price: R$ {item.unit_price:.2f} | Qty: {item.quantity}",
                )
            payload = build_order_payload(
                run.billing.doc_number,
                run.resolution.company_code,
                run.resolution.order_lines(),
                run.order,
                settings.erp_constants,
            )
            run.document_number = await services.erp.submit_order(erp_token, payload)
            log.success("order-submit", f"Order accepted by the ERP as document {run.document_number}")

        with self._step(run, "ledger-final-write"):
            await asyncio.to_thread(
                services.ledger.mark_submitted, run.token.account_token_id, request.order_id, run.document_number
            )
            log.success(
                "ledger-final-write",
                f"Order {request.order_id} integrated as document {run.document_number}",
            )

    # =========================================================================
    # Result and notifications
    # =========================================================================

    def _finish(
        self,
        run: _OrderRun,
        status: str,
        total_processed: int = 1,
        error: Optional[str] = None,
    ) -> SagaResult:
        run.log.close()
        entry: Dict[str, Any] = {
            "order_id": run.request.order_id,
            "document_number": run.document_number or None,
            "status": status,
        }
        if status != STATUS_SUCCESS:
            entry["step"] = run.step
        if error:
            entry["error"] = error

        succeeded = status == STATUS_SUCCESS
        return SagaResult(
            process_id=run.process_id,
            total_processed=total_processed,
            success_count=1 if succeeded else 0,
            error_count=0 if succeeded else 1,
            results=[entry],
            logs=run.log.entries,
        )

    async def _notify_success(self, run: _OrderRun) -> None:
        order = run.order
        text = (
            f"NEW ORDER INTEGRATED\n\n"
            f"Account: {run.request.account.upper()}\n"
            f"Order: {run.request.order_id}\n"
            f"Shipping: {SHIPPING_TYPE_LABEL}\n"
            f"Customer: {run.billing.customer_name}\n"
            f"Address: {format_address(run.address)}\n"
            f"Items: {len(order.order_items)}\n"
            f"Total: R$ {order.total_amount:.2f}\n\n"
            f"Document (prenota): {run.document_number}"
        )
        await self.services.notifier.send(text)

    async def _notify_failure(self, run: _OrderRun) -> None:
        text = (
            f"{run.request.account.upper()} ({run.request.marketplace}) - INTEGRATION FAILED\n\n"
            f"Order {run.request.order_id} failed at step {run.step}"
        )
        if run.document_number:
            text += f"\nERP document {run.document_number} was created and is kept as is"
        await self.services.notifier.send(text)
