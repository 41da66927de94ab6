"""
Storage Tests

1. Order ledger: unique order_id, status transitions, invoice backlog
2. Mapping store: per-schema tables
3. Reporting store: latest staged invoice per document
"""

import sqlite3

import pytest

from core.errors import AlreadyProcessed, LedgerWriteFailed, UpstreamUnavailable
from core.models.ledger import LedgerStatus
from storage import LedgerStore, MappingStore, ReportingStore
from storage.mappings import table_for_schema


@pytest.fixture
def ledger(temp_db):
    store = LedgerStore(temp_db)
    store.init_db()
    return store


def insert(ledger, order_id, token_id="99887766"):
    ledger.insert_initial(order_id, token_id, "PSA", "Mercado Livre", "44001122", "Mercado Envios")


class TestLedgerStore:
    """Order ledger lifecycle."""

    def test_new_record(self, ledger):
        insert(ledger, "1001")

        record = ledger.get("1001")
        assert ledger.exists("1001")
        assert record.status == LedgerStatus.NEW
        assert record.document_number is None
        assert record.created_at == record.updated_at

    def test_unknown_order(self, ledger):
        assert not ledger.exists("404")
        assert ledger.get("404") is None

    def test_duplicate_insert_is_already_processed(self, ledger):
        insert(ledger, "1001")

        with pytest.raises(AlreadyProcessed) as exc_info:
            insert(ledger, "1001", token_id="other")
        assert exc_info.value.step == "ledger-initial-write"

    def test_mark_submitted(self, ledger):
        insert(ledger, "1001")

        ledger.mark_submitted("99887766", "1001", "778899")

        record = ledger.get("1001")
        assert record.status == LedgerStatus.SUBMITTED
        assert record.document_number == "778899"
        assert record.submitted_at is not None

    def test_mark_submitted_requires_matching_account(self, ledger):
        insert(ledger, "1001")

        with pytest.raises(LedgerWriteFailed):
            ledger.mark_submitted("11111111", "1001", "778899")
        assert ledger.get("1001").status == LedgerStatus.NEW

    def test_update_invoice_by_document(self, ledger):
        insert(ledger, "1001")
        ledger.mark_submitted("99887766", "1001", "778899")

        ledger.update_invoice_by_document("778899", "NF-1", "<xml/>", LedgerStatus.COMPLETED)

        record = ledger.get("1001")
        assert record.status == LedgerStatus.COMPLETED
        assert record.invoice_number == "NF-1"
        assert record.invoice_xml == "<xml/>"

    def test_update_unknown_document(self, ledger):
        with pytest.raises(LedgerWriteFailed):
            ledger.update_invoice_by_document("000", "NF-1", "<xml/>", LedgerStatus.INVOICED_PENDING)

    def test_invoice_backlog(self, ledger):
        insert(ledger, "1001")
        insert(ledger, "1002")
        insert(ledger, "1003")
        insert(ledger, "1004")
        ledger.mark_submitted("99887766", "1002", "D2")
        ledger.mark_submitted("99887766", "1003", "D3")
        ledger.mark_submitted("99887766", "1004", "D4")
        ledger.update_invoice_by_document("D3", "NF-3", "<xml/>", LedgerStatus.INVOICED_PENDING)
        ledger.update_invoice_by_document("D4", "NF-4", "<xml/>", LedgerStatus.COMPLETED)

        assert [r.order_id for r in ledger.list_for_invoice_sync()] == ["1002", "1003"]
        assert [r.order_id for r in ledger.list_for_invoice_sync("1003")] == ["1003"]
        assert ledger.list_for_invoice_sync("1001") == []

    def test_unreadable_backlog_is_upstream_failure(self, tmp_path):
        with pytest.raises(UpstreamUnavailable) as exc_info:
            LedgerStore(tmp_path / "no_tables.db").list_for_invoice_sync()
        assert exc_info.value.step == "invoice-lookup"

    def test_status_constraint(self, ledger, temp_db):
        insert(ledger, "1001")
        with sqlite3.connect(temp_db) as conn:
            with pytest.raises(sqlite3.IntegrityError):
                conn.execute("UPDATE order_ledger SET status = 9 WHERE order_id = '1001'")


class TestMappingStore:
    """Per-account mapping tables."""

    def test_lookup(self, temp_db):
        store = MappingStore(temp_db)
        store.init_schema("psa")
        store.upsert("psa", "MLB111", "ABC123", " 17 ")

        entry = store.lookup("psa", "MLB111")
        assert entry.sku == "ABC123"
        assert entry.company_code == "17"
        assert store.lookup("psa", "MLB999") is None

    def test_schemas_are_separate(self, temp_db):
        store = MappingStore(temp_db)
        store.init_schema("psa")
        store.init_schema("ford")
        store.upsert("ford", "MLB111", "FORD-1", "40")

        assert store.lookup("psa", "MLB111") is None
        assert store.lookup("ford", "MLB111").sku == "FORD-1"

    def test_missing_table_is_upstream_failure(self, temp_db):
        with pytest.raises(UpstreamUnavailable):
            MappingStore(temp_db).lookup("renault", "MLB111")

    @pytest.mark.parametrize("schema", ["", "psa; DROP TABLE x", "Psa", "a-b"])
    def test_invalid_schema_name(self, schema):
        with pytest.raises(ValueError):
            table_for_schema(schema)


class TestReportingStore:
    """Staged invoices by ERP document number."""

    def stage(self, temp_db, document_number, control_number, issue_date, raw_document="<nfe/>"):
        with sqlite3.connect(temp_db) as conn:
            conn.execute(
                "INSERT INTO staged_invoices (control_number, issue_date, order_map_id, raw_document) "
                "VALUES (?, ?, ?, ?)",
                (control_number, issue_date, document_number, raw_document),
            )

    def test_latest_invoice(self, temp_db):
        store = ReportingStore(temp_db)
        store.init_db()
        self.stage(temp_db, "778899", "NF-1", "2024-05-01")
        self.stage(temp_db, "778899", "NF-2", "2024-05-03")

        invoice = store.find_by_document("778899")
        assert invoice.control_number == "NF-2"
        assert invoice.raw_document == "<nfe/>"

    def test_null_document_is_empty(self, temp_db):
        store = ReportingStore(temp_db)
        store.init_db()
        self.stage(temp_db, "778899", "NF-1", "2024-05-01", raw_document=None)

        assert store.find_by_document("778899").raw_document == ""

    def test_no_invoice(self, temp_db):
        store = ReportingStore(temp_db)
        store.init_db()
        assert store.find_by_document("778899") is None
