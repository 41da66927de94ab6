"""Order ledger persistence.

The order_ledger table is the idempotency gate of the order saga: order_id
is UNIQUE, so of two concurrent runs for the same order only one initial
insert can succeed even if both passed the existence check. The losing
insert surfaces as AlreadyProcessed.

Rows are never deleted here; removing a ledger row is an admin action.
"""

import sqlite3
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from core.errors import AlreadyProcessed, LedgerWriteFailed, UpstreamUnavailable
from core.models.ledger import LedgerRecord, LedgerStatus


_COLUMNS = (
    "order_id, account_token_id, account_name, marketplace_name, shipping_id, shipping_mode, "
    "document_number, invoice_number, invoice_xml, status, created_at, submitted_at, invoiced_at, updated_at"
)


def _row_to_record(row: sqlite3.Row) -> LedgerRecord:
    return LedgerRecord(**dict(row))


class LedgerStore:
    """SQLite-backed order ledger."""

    def __init__(self, db_path: Path):
        self.db_path = db_path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def init_db(self) -> None:
        """Create the order_ledger table if it doesn't exist."""
        conn = self._connect()
        try:
            cursor = conn.cursor()
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS order_ledger (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    order_id TEXT NOT NULL UNIQUE,
                    account_token_id TEXT NOT NULL,
                    account_name TEXT NOT NULL,
                    marketplace_name TEXT NOT NULL,
                    shipping_id TEXT,
                    shipping_mode TEXT,
                    document_number TEXT,
                    invoice_number TEXT,
                    invoice_xml TEXT,
                    status INTEGER NOT NULL DEFAULT 0 CHECK(status IN (0, 1, 2, 3)),
                    created_at TEXT NOT NULL,
                    submitted_at TEXT,
                    invoiced_at TEXT,
                    updated_at TEXT NOT NULL
                )
            """)
            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_order_ledger_document
                ON order_ledger(document_number)
            """)
            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_order_ledger_status
                ON order_ledger(status)
            """)
            conn.commit()
        finally:
            conn.close()

    # =========================================================================
    # Reads
    # =========================================================================

    def exists(self, order_id: str) -> bool:
        conn = self._connect()
        try:
            row = conn.execute(
                "SELECT 1 FROM order_ledger WHERE order_id = ?", (order_id,)
            ).fetchone()
            return row is not None
        finally:
            conn.close()

    def get(self, order_id: str) -> Optional[LedgerRecord]:
        conn = self._connect()
        try:
            row = conn.execute(
                f"SELECT {_COLUMNS} FROM order_ledger WHERE order_id = ?", (order_id,)
            ).fetchone()
            return _row_to_record(row) if row else None
        finally:
            conn.close()

    def list_for_invoice_sync(self, order_id: Optional[str] = None) -> List[LedgerRecord]:
        """Records submitted to the ERP and still waiting on their invoice.

        Args:
            order_id: Restrict to one order (any submitted status)

        Raises:
            UpstreamUnavailable: The ledger can't be queried
        """
        statuses = (int(LedgerStatus.SUBMITTED), int(LedgerStatus.INVOICED_PENDING))
        query = f"SELECT {_COLUMNS} FROM order_ledger WHERE status IN (?, ?)"
        params: tuple = statuses
        if order_id:
            query += " AND order_id = ?"
            params = statuses + (order_id,)
        query += " ORDER BY created_at"

        conn = self._connect()
        try:
            return [_row_to_record(row) for row in conn.execute(query, params).fetchall()]
        except sqlite3.Error as e:
            raise UpstreamUnavailable(f"Ledger query failed: {e}", step="invoice-lookup") from e
        finally:
            conn.close()

    # =========================================================================
    # Writes
    # =========================================================================

    def insert_initial(
        self,
        order_id: str,
        account_token_id: str,
        account_name: str,
        marketplace_name: str,
        shipping_id: Optional[str],
        shipping_mode: Optional[str],
    ) -> None:
        """Insert the NEW row for an order.

        Raises:
            AlreadyProcessed: Another run already holds this order_id
            LedgerWriteFailed: Any other database error
        """
        now = datetime.utcnow().isoformat()
        conn = self._connect()
        try:
            conn.execute("""
                INSERT INTO order_ledger (
                    order_id, account_token_id, account_name, marketplace_name,
                    shipping_id, shipping_mode, status, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                order_id, account_token_id, account_name, marketplace_name,
                shipping_id, shipping_mode, int(LedgerStatus.NEW), now, now,
            ))
            conn.commit()
        except sqlite3.IntegrityError as e:
            raise AlreadyProcessed(f"Order {order_id} already has a ledger record", step="ledger-initial-write") from e
        except sqlite3.Error as e:
            raise LedgerWriteFailed(f"Failed to insert ledger row for {order_id}: {e}", step="ledger-initial-write") from e
        finally:
            conn.close()

    def mark_submitted(self, account_token_id: str, order_id: str, document_number: str) -> None:
        """Store the ERP document number and move the row to SUBMITTED.

        Raises:
            LedgerWriteFailed: No matching row, or a database error
        """
        now = datetime.utcnow().isoformat()
        conn = self._connect()
        try:
            cursor = conn.execute("""
                UPDATE order_ledger
                SET document_number = ?, status = ?, submitted_at = ?, updated_at = ?
                WHERE account_token_id = ? AND order_id = ?
            """, (document_number, int(LedgerStatus.SUBMITTED), now, now, account_token_id, order_id))
            conn.commit()
            if cursor.rowcount == 0:
                raise LedgerWriteFailed(
                    f"No ledger row for order {order_id} / account {account_token_id}",
                    step="ledger-final-write",
                )
        except sqlite3.Error as e:
            raise LedgerWriteFailed(f"Failed to update ledger row for {order_id}: {e}", step="ledger-final-write") from e
        finally:
            conn.close()

    def update_invoice_by_document(
        self,
        document_number: str,
        invoice_number: str,
        invoice_xml: str,
        status: LedgerStatus,
    ) -> None:
        """Attach invoice data to the row holding an ERP document number.

        Raises:
            LedgerWriteFailed: No matching row, or a database error
        """
        now = datetime.utcnow().isoformat()
        conn = self._connect()
        try:
            cursor = conn.execute("""
                UPDATE order_ledger
                SET invoice_number = ?, invoice_xml = ?, status = ?, invoiced_at = ?, updated_at = ?
                WHERE document_number = ?
            """, (invoice_number, invoice_xml, int(status), now, now, document_number))
            conn.commit()
            if cursor.rowcount == 0:
                raise LedgerWriteFailed(f"No ledger row for document {document_number}")
        except sqlite3.Error as e:
            raise LedgerWriteFailed(f"Failed to update invoice for document {document_number}: {e}") from e
        finally:
            conn.close()
