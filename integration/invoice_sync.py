"""Invoice sync saga.

Delivers ERP invoices for submitted orders back to the marketplace. Each
ledger record in SUBMITTED or INVOICED_PENDING goes through:

    invoice-lookup -> invoice-stage -> shipment-status
    -> invoice-upload (only when the shipment waits for it) -> invoice-complete

A failure only ends the record it happened on; the batch always runs to the
end and sends one summary notification.
"""

import asyncio
import time
import uuid
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError

from core.errors import IntegrationError, TokenUnavailable, UpstreamUnavailable
from core.models.ledger import LedgerRecord, LedgerStatus
from core.models.saga import InvoiceSyncRequest, SagaResult
from core.observability import (
    get_logger,
    record_invoice_outcome,
    record_saga_completed,
    record_saga_failed,
    record_saga_started,
    with_correlation,
)
from core.services import ServiceContainer
from core.steplog import StepLogger
from connectors.marketplace import MarketplaceToken

logger = get_logger(__name__)

SAGA_TYPE = "invoice_sync"


# =============================================================================
# Record outcomes
# =============================================================================

OUTCOME_UPLOADED = "uploaded"
OUTCOME_UPLOAD_FAILED = "upload_failed"
OUTCOME_COMPLETED_WITHOUT_UPLOAD = "completed_without_upload"
OUTCOME_SCHEDULED = "scheduled"
OUTCOME_AWAITING_INVOICE = "awaiting_invoice"
OUTCOME_NO_INVOICE = "no_invoice"
OUTCOME_FAILED = "failed"

_COMPLETED = {OUTCOME_UPLOADED, OUTCOME_COMPLETED_WITHOUT_UPLOAD}
_FAILED = {OUTCOME_UPLOAD_FAILED, OUTCOME_NO_INVOICE, OUTCOME_FAILED}

# Metrics bucket per outcome
_METRIC_OUTCOMES = {
    OUTCOME_UPLOADED: "uploaded",
    OUTCOME_UPLOAD_FAILED: "upload_failed",
    OUTCOME_COMPLETED_WITHOUT_UPLOAD: "completed_without_upload",
    OUTCOME_SCHEDULED: "pending",
    OUTCOME_AWAITING_INVOICE: "pending",
}


@dataclass
class RecordResult:
    order_id: str
    document_number: Optional[str]
    shipping_id: Optional[str]
    outcome: str
    invoice_number: Optional[str] = None
    shipment_status: Optional[str] = None
    shipment_substatus: Optional[str] = None
    step: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {k: v for k, v in self.__dict__.items() if v is not None}


class InvoiceSyncSaga:
    """Pushes staged ERP invoices to the marketplace for submitted orders.

    Usage:
        saga = InvoiceSyncSaga(get_services())
        result = await saga.run(InvoiceSyncRequest())
    """

    def __init__(self, services: ServiceContainer):
        self.services = services

    async def run(self, request: InvoiceSyncRequest) -> SagaResult:
        process_id = request.process_id or uuid.uuid4().hex
        log = StepLogger(process_id, self.services.log_store, self.services.hub, logger_name="invoice_sync")
        started = time.perf_counter()
        record_saga_started(SAGA_TYPE, process_id)

        # Tokens (or the failure to get one) are resolved once per account
        tokens: Dict[str, Union[MarketplaceToken, TokenUnavailable]] = {}
        results: List[RecordResult] = []

        with with_correlation(process_id=process_id):
            try:
                records = await asyncio.to_thread(self.services.ledger.list_for_invoice_sync, request.order_id)
            except IntegrationError as e:
                log.error("invoice-lookup", f"Could not read the invoice backlog: {e}")
                log.close()
                record_saga_failed(SAGA_TYPE, process_id, type(e).__name__)
                await self.services.notifier.send(f"Invoice sync failed\n\nCould not read the invoice backlog: {e}")
                return SagaResult(
                    process_id=process_id,
                    error_count=1,
                    results=[{"outcome": OUTCOME_FAILED, "step": "invoice-lookup", "error": str(e)}],
                    logs=log.entries,
                )

            log.info("invoice-lookup", f"{len(records)} order(s) awaiting invoice delivery")

            for record in records:
                with with_correlation(order_id=record.order_id, account=record.account_name,
                                      document_number=record.document_number):
                    result = await self._sync_record(record, log, tokens)
                results.append(result)
                if result.outcome in _METRIC_OUTCOMES:
                    record_invoice_outcome(_METRIC_OUTCOMES[result.outcome])

            success_count = sum(1 for r in results if r.outcome in _COMPLETED)
            error_count = sum(1 for r in results if r.outcome in _FAILED)
            log.info(
                "invoice-complete",
                f"Batch finished - Total: {len(results)} | Completed: {success_count} | Errors: {error_count}",
            )
            log.close()

            record_saga_completed(SAGA_TYPE, process_id, (time.perf_counter() - started) * 1000)
            if results:
                await self.services.notifier.send(self._summary(results, success_count, error_count))

        return SagaResult(
            process_id=process_id,
            total_processed=len(results),
            success_count=success_count,
            error_count=error_count,
            results=[r.to_dict() for r in results],
            logs=log.entries,
        )

    async def _token_for(
        self,
        account_name: str,
        tokens: Dict[str, Union[MarketplaceToken, TokenUnavailable]],
    ) -> MarketplaceToken:
        key = account_name.lower()
        if key not in tokens:
            try:
                tokens[key] = await self.services.token_provider.get_token(self.services.settings.accounts.get(key))
            except TokenUnavailable as e:
                tokens[key] = e
        cached = tokens[key]
        if isinstance(cached, TokenUnavailable):
            raise cached
        return cached

    # =========================================================================
    # Per record
    # =========================================================================

    async def _sync_record(
        self,
        record: LedgerRecord,
        log: StepLogger,
        tokens: Dict[str, Union[MarketplaceToken, TokenUnavailable]],
    ) -> RecordResult:
        services = self.services
        result = RecordResult(
            order_id=record.order_id,
            document_number=record.document_number,
            shipping_id=record.shipping_id,
            outcome=OUTCOME_FAILED,
        )
        step = "invoice-lookup"

        try:
            staged = await asyncio.to_thread(services.reporting.find_by_document, record.document_number)
            if staged is None or not staged.raw_document.strip():
                reason = "has no staged invoice" if staged is None else "has an empty invoice document"
                log.warning(step, f"Document {record.document_number} (order {record.order_id}) {reason}; left pending")
                result.outcome = OUTCOME_NO_INVOICE
                return result
            result.invoice_number = staged.control_number
            log.success(step, f"Invoice {staged.control_number} found for document {record.document_number}")

            step = "invoice-stage"
            await asyncio.to_thread(
                services.ledger.update_invoice_by_document,
                record.document_number,
                staged.control_number,
                staged.raw_document,
                LedgerStatus.INVOICED_PENDING,
            )
            log.success(step, f"Order {record.order_id} marked INVOICED_PENDING")

            step = "shipment-status"
            if not record.shipping_id:
                raise UpstreamUnavailable(f"Order {record.order_id} has no shipment id", step=step)
            token = await self._token_for(record.account_name, tokens)
            shipment = await services.marketplace.get_shipment(record.shipping_id, token.access_token)
            result.shipment_status = shipment.status
            result.shipment_substatus = shipment.substatus
            log.success(step, f"Shipment {record.shipping_id}: {shipment.status}/{shipment.substatus}")

            if shipment.awaiting_invoice:
                step = "invoice-upload"
                log.info(step, f"Uploading invoice {staged.control_number} for shipment {record.shipping_id}")
                response = await services.marketplace.upload_invoice(
                    record.shipping_id, staged.raw_document, token.access_token
                )
                if not services.marketplace.is_invoice_accepted(response):
                    log.error(step, f"Invoice upload for order {record.order_id} refused with status {response.status}")
                    result.outcome = OUTCOME_UPLOAD_FAILED
                    result.step = step
                    result.error = response.text[:500]
                    return result
                log.success(step, f"Invoice {staged.control_number} delivered for order {record.order_id}")
                await self._complete(record, staged.control_number, staged.raw_document, log)
                result.outcome = OUTCOME_UPLOADED

            elif shipment.is_scheduled:
                log.info(
                    step,
                    f"Order {record.order_id} delivery scheduled for {shipment.buffering_date or 'an unknown date'}; "
                    f"nothing to do yet",
                )
                result.outcome = OUTCOME_SCHEDULED

            elif record.invoice_number:
                # Flex shipment, no upload required
                await self._complete(record, staged.control_number, staged.raw_document, log)
                result.outcome = OUTCOME_COMPLETED_WITHOUT_UPLOAD

            else:
                log.info(step, f"Order {record.order_id} (flex) is awaiting its invoice")
                result.outcome = OUTCOME_AWAITING_INVOICE

        except IntegrationError as e:
            log.error(step, f"Order {record.order_id}: {e}")
            result.outcome = OUTCOME_FAILED
            result.step = step
            result.error = str(e)
        except ValidationError as e:
            log.error(step, f"Order {record.order_id}: unexpected upstream response")
            logger.warning(f"Validation error syncing {record.order_id}: {e}")
            result.outcome = OUTCOME_FAILED
            result.step = step
            result.error = str(e)

        return result

    async def _complete(self, record: LedgerRecord, invoice_number: str, invoice_xml: str, log: StepLogger) -> None:
        await asyncio.to_thread(
            self.services.ledger.update_invoice_by_document,
            record.document_number,
            invoice_number,
            invoice_xml,
            LedgerStatus.COMPLETED,
        )
        log.success("invoice-complete", f"Order {record.order_id} completed with invoice {invoice_number}")

    @staticmethod
    def _summary(results: List[RecordResult], success_count: int, error_count: int) -> str:
        labels = {
            OUTCOME_UPLOADED: "invoice delivered",
            OUTCOME_COMPLETED_WITHOUT_UPLOAD: "flex shipment, completed",
            OUTCOME_SCHEDULED: "delivery scheduled",
            OUTCOME_AWAITING_INVOICE: "flex shipment, awaiting invoice",
            OUTCOME_NO_INVOICE: "no invoice staged",
            OUTCOME_UPLOAD_FAILED: "upload refused",
            OUTCOME_FAILED: "failed",
        }
        lines = [
            f"- Order {r.order_id} (invoice: {r.invoice_number or '-'}): {labels[r.outcome]}"
            for r in results
        ]
        return (
            f"Invoice sync finished\n\n"
            f"Total: {len(results)}\nCompleted: {success_count}\nErrors: {error_count}\n\n"
            + "\n".join(lines)
        )
