"""Item mapping (DePara) lookups.

Each account's mapping schema has its own table, depara_<schema>, mapping a
marketplace item id to an internal SKU and the company (branch) code that
stocks it. The tables are maintained elsewhere; this module only reads them,
apart from the schema/seed helpers used to set up a local database.
"""

import re
import sqlite3
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from core.errors import UpstreamUnavailable

_SCHEMA_NAME = re.compile(r"^[a-z0-9_]+$")


@dataclass(frozen=True)
class MappingEntry:
    """item_id -> (sku, company_code) for one account schema."""
    item_id: str
    sku: str
    company_code: str


def table_for_schema(schema: str) -> str:
    """Table name for a mapping schema; schema names are restricted to [a-z0-9_]."""
    if not _SCHEMA_NAME.match(schema or ""):
        raise ValueError(f"Invalid mapping schema name: {schema!r}")
    return f"depara_{schema}"


class MappingStore:
    """Read access to the per-schema mapping tables."""

    def __init__(self, db_path: Path):
        self.db_path = db_path

    def init_schema(self, schema: str) -> None:
        """Create the mapping table for a schema if it doesn't exist."""
        table = table_for_schema(schema)
        conn = sqlite3.connect(self.db_path)
        try:
            conn.execute(f"""
                CREATE TABLE IF NOT EXISTS {table} (
                    item_id TEXT PRIMARY KEY,
                    sku TEXT NOT NULL,
                    company_code TEXT
                )
            """)
            conn.commit()
        finally:
            conn.close()

    def upsert(self, schema: str, item_id: str, sku: str, company_code: str) -> None:
        """Insert or replace a mapping (local setup and fixtures)."""
        table = table_for_schema(schema)
        conn = sqlite3.connect(self.db_path)
        try:
            conn.execute(
                f"INSERT OR REPLACE INTO {table} (item_id, sku, company_code) VALUES (?, ?, ?)",
                (item_id, sku, company_code),
            )
            conn.commit()
        finally:
            conn.close()

    def lookup(self, schema: str, item_id: str) -> Optional[MappingEntry]:
        """Find the mapping for an item, or None if the item is not mapped.

        Raises:
            UpstreamUnavailable: The mapping table can't be read
        """
        table = table_for_schema(schema)
        conn = sqlite3.connect(self.db_path)
        try:
            row = conn.execute(
                f"SELECT item_id, sku, company_code FROM {table} WHERE item_id = ?",
                (item_id,),
            ).fetchone()
        except sqlite3.Error as e:
            raise UpstreamUnavailable(f"Mapping store error for schema {schema}: {e}", step="mapping") from e
        finally:
            conn.close()

        if row is None:
            return None
        return MappingEntry(item_id=row[0], sku=row[1], company_code=(row[2] or "").strip())
