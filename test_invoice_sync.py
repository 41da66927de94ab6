"""
Invoice Sync Saga Tests

Ledger records in SUBMITTED / INVOICED_PENDING are matched with staged ERP
invoices and pushed to the marketplace depending on the shipment state.
"""

import asyncio
import sqlite3

import pytest

from core.models.ledger import LedgerStatus
from core.models.saga import InvoiceSyncRequest, LogLevel
from integration import InvoiceSyncSaga

INVOICE_XML = "<nfeProc><NFe><infNFe Id=\"NFe3524\"/></NFe></nfeProc>"


def submit(services, order_id, document_number, shipping_id, account="PSA", token_id="99887766"):
    """Put an order in the ledger as if the order saga had integrated it."""
    services.ledger.insert_initial(order_id, token_id, account, "Mercado Livre", shipping_id, "Mercado Envios")
    services.ledger.mark_submitted(token_id, order_id, document_number)


def stage_invoice(services, document_number, control_number, raw_document=INVOICE_XML, issue_date="2024-05-03"):
    with sqlite3.connect(services.settings.reporting_db_path) as conn:
        conn.execute(
            "INSERT INTO staged_invoices (control_number, issue_date, order_map_id, external_order_id, raw_document, status) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (control_number, issue_date, document_number, None, raw_document, "AUTORIZADA"),
        )


def set_shipment(services, shipping_id, status, substatus, buffering_date=None):
    shipment = {"id": int(shipping_id), "status": status, "substatus": substatus}
    if buffering_date:
        shipment["lead_time"] = {"buffering": {"date": buffering_date}}
    services.marketplace.shipments[shipping_id] = shipment


def run_sync(services, order_id=None):
    return asyncio.run(InvoiceSyncSaga(services).run(InvoiceSyncRequest(order_id=order_id)))


def outcome_of(result, order_id):
    return next(r for r in result.results if r["order_id"] == order_id)["outcome"]


class TestInvoiceUpload:
    """Shipments waiting for their invoice get it uploaded."""

    def test_accepted_upload_completes_record(self, services):
        submit(services, "1001", "5001", "7001")
        stage_invoice(services, "5001", "NF-000123")
        set_shipment(services, "7001", "ready_to_ship", "invoice_pending")

        result = run_sync(services)

        assert result.total_processed == 1
        assert result.success_count == 1
        assert result.error_count == 0
        assert services.marketplace.uploads == [{"shipment_id": "7001", "xml": INVOICE_XML}]
        record = services.ledger.get("1001")
        assert record.status == LedgerStatus.COMPLETED
        assert record.invoice_number == "NF-000123"
        assert record.invoice_xml == INVOICE_XML
        steps = [entry.step for entry in result.logs]
        for step in ["invoice-lookup", "invoice-stage", "shipment-status", "invoice-upload", "invoice-complete"]:
            assert step in steps

    def test_refused_upload_fails_only_that_record(self, services):
        submit(services, "1001", "5001", "7001")
        submit(services, "1002", "5002", "7002")
        stage_invoice(services, "5001", "NF-000123")
        stage_invoice(services, "5002", "NF-000124")
        set_shipment(services, "7001", "ready_to_ship", "invoice_pending")
        set_shipment(services, "7002", "shipped", None)
        services.marketplace.upload_status = 400

        result = run_sync(services)

        assert result.total_processed == 2
        assert result.error_count == 1
        assert outcome_of(result, "1001") == "upload_failed"
        assert services.ledger.get("1001").status == LedgerStatus.INVOICED_PENDING
        # The batch went on to the next record
        assert outcome_of(result, "1002") == "awaiting_invoice"
        errors = [e for e in result.logs if e.level == LogLevel.ERROR]
        assert len(errors) == 1
        assert errors[0].step == "invoice-upload"

    @pytest.mark.parametrize("status", [200, 201, 204])
    def test_only_not_acceptable_counts_as_delivered(self, services, status):
        submit(services, "1001", "5001", "7001")
        stage_invoice(services, "5001", "NF-000123")
        set_shipment(services, "7001", "ready_to_ship", "invoice_pending")
        services.marketplace.upload_status = status

        result = run_sync(services)

        assert outcome_of(result, "1001") == "upload_failed"
        assert services.ledger.get("1001").status != LedgerStatus.COMPLETED


class TestMissingInvoice:
    """Records without a usable staged invoice stay where they are."""

    def test_no_staged_invoice(self, services):
        submit(services, "1001", "5001", "7001")

        result = run_sync(services)

        assert result.error_count == 1
        assert outcome_of(result, "1001") == "no_invoice"
        assert services.ledger.get("1001").status == LedgerStatus.SUBMITTED
        assert services.marketplace.calls == []
        warnings = [e for e in result.logs if e.level == LogLevel.WARNING]
        assert warnings[0].step == "invoice-lookup"

    def test_empty_invoice_document(self, services):
        submit(services, "1001", "5001", "7001")
        stage_invoice(services, "5001", "NF-000123", raw_document="")

        result = run_sync(services)

        assert outcome_of(result, "1001") == "no_invoice"
        assert services.ledger.get("1001").status == LedgerStatus.SUBMITTED

    def test_latest_staged_invoice_wins(self, services):
        submit(services, "1001", "5001", "7001")
        stage_invoice(services, "5001", "NF-OLD", issue_date="2024-05-01")
        stage_invoice(services, "5001", "NF-NEW", issue_date="2024-05-04")
        set_shipment(services, "7001", "ready_to_ship", "invoice_pending")

        run_sync(services)

        assert services.ledger.get("1001").invoice_number == "NF-NEW"


class TestShipmentStates:
    """Scheduled and flex shipments."""

    def test_buffered_shipment_is_left_scheduled(self, services):
        submit(services, "1001", "5001", "7001")
        stage_invoice(services, "5001", "NF-000123")
        set_shipment(services, "7001", "pending", "buffered", buffering_date="2024-05-10T00:00:00Z")

        result = run_sync(services)

        assert outcome_of(result, "1001") == "scheduled"
        assert result.error_count == 0
        assert result.success_count == 0
        assert services.marketplace.uploads == []
        assert services.ledger.get("1001").status == LedgerStatus.INVOICED_PENDING
        assert any("2024-05-10" in e.message for e in result.logs)

    def test_flex_with_known_invoice_completes(self, services):
        submit(services, "1001", "5001", "7001")
        stage_invoice(services, "5001", "NF-000123")
        set_shipment(services, "7001", "shipped", "delivered")
        # First pass stores the invoice number, second pass sees it
        services.ledger.update_invoice_by_document("5001", "NF-000123", INVOICE_XML, LedgerStatus.INVOICED_PENDING)

        result = run_sync(services)

        assert outcome_of(result, "1001") == "completed_without_upload"
        assert result.success_count == 1
        assert services.marketplace.uploads == []
        assert services.ledger.get("1001").status == LedgerStatus.COMPLETED

    def test_flex_without_invoice_number_waits(self, services):
        submit(services, "1001", "5001", "7001")
        stage_invoice(services, "5001", "NF-000123")
        set_shipment(services, "7001", "shipped", "delivered")

        first = run_sync(services)
        assert outcome_of(first, "1001") == "awaiting_invoice"
        assert services.ledger.get("1001").status == LedgerStatus.INVOICED_PENDING

        second = run_sync(services)
        assert outcome_of(second, "1001") == "completed_without_upload"
        assert services.ledger.get("1001").status == LedgerStatus.COMPLETED


class TestBatch:
    """Batch selection, token reuse and the summary."""

    def test_completed_records_not_selected(self, services):
        submit(services, "1001", "5001", "7001")
        stage_invoice(services, "5001", "NF-000123")
        set_shipment(services, "7001", "ready_to_ship", "invoice_pending")

        run_sync(services)
        second = run_sync(services)

        assert second.total_processed == 0
        assert len(services.marketplace.uploads) == 1

    def test_order_filter(self, services):
        submit(services, "1001", "5001", "7001")
        submit(services, "1002", "5002", "7002")

        result = run_sync(services, order_id="1002")

        assert [r["order_id"] for r in result.results] == ["1002"]

    def test_token_resolved_once_per_account(self, services):
        for n in range(3):
            submit(services, f"100{n}", f"500{n}", f"700{n}")
            stage_invoice(services, f"500{n}", f"NF-{n}")
            set_shipment(services, f"700{n}", "ready_to_ship", "invoice_pending")
        submit(services, "2001", "6001", "8001", account="FORD", token_id="5544")
        stage_invoice(services, "6001", "NF-F")
        set_shipment(services, "8001", "ready_to_ship", "invoice_pending")

        result = run_sync(services)

        assert result.success_count == 4
        assert sorted(services.token_provider.calls) == ["ford", "psa"]

    def test_token_failure_fails_account_records(self, services):
        submit(services, "1001", "5001", "7001")
        submit(services, "1002", "5002", "7002")
        stage_invoice(services, "5001", "NF-1")
        stage_invoice(services, "5002", "NF-2")
        services.token_provider.fail = True

        result = run_sync(services)

        assert result.error_count == 2
        assert services.token_provider.calls == ["psa"]
        assert {r["step"] for r in result.results} == {"shipment-status"}

    def test_summary_notification(self, services):
        submit(services, "1001", "5001", "7001")
        submit(services, "1002", "5002", "7002")
        stage_invoice(services, "5001", "NF-000123")
        set_shipment(services, "7001", "ready_to_ship", "invoice_pending")

        run_sync(services)

        messages = services.notifier.messages
        assert len(messages) == 1
        assert "Completed: 1" in messages[0]
        assert "Errors: 1" in messages[0]
        assert "Order 1002" in messages[0]

    def test_empty_backlog_sends_nothing(self, services):
        result = run_sync(services)

        assert result.total_processed == 0
        assert services.notifier.messages == []


class TestUnreadableLedger:
    """The backlog query failing ends the batch with one lookup error."""

    def test_lookup_failure_is_reported(self, services):
        with sqlite3.connect(services.settings.ledger_db_path) as conn:
            conn.execute("DROP TABLE order_ledger")

        result = run_sync(services)

        assert result.total_processed == 0
        assert result.success_count == 0
        assert result.error_count == 1
        assert result.results[0]["step"] == "invoice-lookup"
        errors = [e for e in result.logs if e.level == LogLevel.ERROR]
        assert len(errors) == 1
        assert errors[0].step == "invoice-lookup"
        assert services.log_store.is_sealed(result.process_id)
        assert "Invoice sync failed" in services.notifier.messages[0]
