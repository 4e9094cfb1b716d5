"""Persisted image hashes: the narrow store interface and its DuckDB implementation."""

from __future__ import annotations

import threading
from pathlib import Path
from typing import List, Optional, Protocol, Union

import duckdb

from .types import DuplicateRecord, ExactHash, PerceptualHash


class ImageHashStore(Protocol):
    """The only two operations the pipeline issues against the listing store."""

    def get_owner_image_hashes(self, owner_id: str) -> List[DuplicateRecord]:
        ...

    def record_accepted_image_hash(
        self,
        owner_id: str,
        listing_id: str,
        exact_hash: ExactHash,
        perceptual_hash: PerceptualHash,
    ) -> None:
        ...


class NullImageHashStore:
    """Store for anonymous uploads: nothing persisted, nothing to compare against."""

    def get_owner_image_hashes(self, owner_id: str) -> List[DuplicateRecord]:
        return []

    def record_accepted_image_hash(
        self,
        owner_id: str,
        listing_id: str,
        exact_hash: ExactHash,
        perceptual_hash: PerceptualHash,
    ) -> None:
        return None


def ensure_schema(conn: duckdb.DuckDBPyConnection) -> None:
    """Create tables and indexes if they do not exist."""
    conn.execute("""
        CREATE TABLE IF NOT EXISTS listings (
            listing_id  VARCHAR PRIMARY KEY,
            owner_id    VARCHAR NOT NULL,
            brand       VARCHAR,
            model       VARCHAR,
            year        INTEGER,
            created_at  TIMESTAMP DEFAULT current_timestamp
        )
    """)
    conn.execute("""
        CREATE TABLE IF NOT EXISTS image_hashes (
            owner_id        VARCHAR NOT NULL,
            listing_id      VARCHAR NOT NULL,
            exact_hash      VARCHAR NOT NULL,
            perceptual_hash VARCHAR NOT NULL,
            created_at      TIMESTAMP DEFAULT current_timestamp,
            PRIMARY KEY (owner_id, listing_id, exact_hash)
        )
    """)
    conn.execute("CREATE INDEX IF NOT EXISTS idx_image_hashes_owner ON image_hashes(owner_id)")


class DuckDBImageHashStore:
    """:class:`ImageHashStore` backed by a DuckDB database file or connection."""

    def __init__(self, conn: Union[duckdb.DuckDBPyConnection, str, Path] = ":memory:") -> None:
        if isinstance(conn, (str, Path)):
            conn = duckdb.connect(str(conn))
        self.conn = conn
        self._lock = threading.Lock()
        ensure_schema(self.conn)

    def upsert_listing(
        self,
        listing_id: str,
        owner_id: str,
        brand: Optional[str] = None,
        model: Optional[str] = None,
        year: Optional[int] = None,
    ) -> None:
        """Register listing metadata used to name conflicting listings."""
        with self._lock:
            self.conn.execute(
                """
                INSERT INTO listings (listing_id, owner_id, brand, model, year)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT (listing_id) DO UPDATE SET
                    owner_id = EXCLUDED.owner_id,
                    brand = EXCLUDED.brand,
                    model = EXCLUDED.model,
                    year = EXCLUDED.year
                """,
                [listing_id, owner_id, brand, model, year],
            )

    def get_owner_image_hashes(self, owner_id: str) -> List[DuplicateRecord]:
        with self._lock:
            rows = self.conn.execute(
                """
                SELECT h.owner_id, h.listing_id, h.exact_hash, h.perceptual_hash,
                       l.brand, l.model, l.year
                FROM image_hashes h
                LEFT JOIN listings l ON l.listing_id = h.listing_id
                WHERE h.owner_id = ?
                ORDER BY h.created_at
                """,
                [owner_id],
            ).fetchall()
        return [_row_to_record(row) for row in rows]

    def record_accepted_image_hash(
        self,
        owner_id: str,
        listing_id: str,
        exact_hash: ExactHash,
        perceptual_hash: PerceptualHash,
    ) -> None:
        with self._lock:
            self.conn.execute(
                """
                INSERT INTO image_hashes (owner_id, listing_id, exact_hash, perceptual_hash)
                VALUES (?, ?, ?, ?)
                ON CONFLICT (owner_id, listing_id, exact_hash) DO NOTHING
                """,
                [owner_id, listing_id, exact_hash, perceptual_hash.hex()],
            )

    def delete_listing_hashes(self, listing_id: str) -> None:
        """Drop the hashes of a deleted listing."""
        with self._lock:
            self.conn.execute("DELETE FROM image_hashes WHERE listing_id = ?", [listing_id])

    def close(self) -> None:
        self.conn.close()


def _row_to_record(row: tuple) -> DuplicateRecord:
    """Convert a joined row to a DuplicateRecord.

    Column order: 0:owner_id, 1:listing_id, 2:exact_hash, 3:perceptual_hash,
    4:brand, 5:model, 6:year
    """
    return DuplicateRecord(
        owner_id=row[0],
        listing_id=row[1],
        exact_hash=row[2],
        perceptual_hash=PerceptualHash.from_hex(row[3]),
        brand=row[4],
        model=row[5],
        year=row[6],
    )
