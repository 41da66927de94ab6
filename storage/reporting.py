"""ERP reporting store (read-only).

The ERP stages every issued invoice, keyed by the order-map id it was
generated from. That id is the document number the ERP returned when the
order was submitted, so the invoice sync looks invoices up by it.
"""

import sqlite3
from pathlib import Path
from typing import Optional

from core.errors import UpstreamUnavailable
from core.models.ledger import StagedInvoice


class ReportingStore:
    """Read access to the staged_invoices table."""

    def __init__(self, db_path: Path):
        self.db_path = db_path

    def init_db(self) -> None:
        """Create the staged_invoices table (local databases only)."""
        conn = sqlite3.connect(self.db_path)
        try:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS staged_invoices (
                    control_number TEXT NOT NULL,
                    issue_date TEXT,
                    order_map_id TEXT NOT NULL,
                    external_order_id TEXT,
                    raw_document TEXT,
                    status TEXT
                )
            """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_staged_invoices_map
                ON staged_invoices(order_map_id)
            """)
            conn.commit()
        finally:
            conn.close()

    def find_by_document(self, document_number: str) -> Optional[StagedInvoice]:
        """Latest staged invoice for an ERP document number, or None.

        Raises:
            UpstreamUnavailable: The reporting store can't be queried
        """
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            row = conn.execute("""
                SELECT control_number, issue_date, order_map_id, external_order_id, raw_document, status
                FROM staged_invoices
                WHERE order_map_id = ?
                ORDER BY issue_date DESC
                LIMIT 1
            """, (document_number,)).fetchone()
        except sqlite3.Error as e:
            raise UpstreamUnavailable(f"Reporting store error: {e}", step="invoice-lookup") from e
        finally:
            conn.close()

        if row is None:
            return None
        data = dict(row)
        data["raw_document"] = data.get("raw_document") or ""
        return StagedInvoice(**data)
