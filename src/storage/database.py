"""
Database module for sealed trust packets and the outbound queue.

Schema versioning ensures automatic migration when schema changes. The queue
table keeps an autoincrement sequence column so drains follow enqueue order.
"""

from __future__ import annotations

import json
import logging
import os
import sqlite3
import threading
import time
from typing import Any, Dict, List, Optional

from models.queue_item import QueueItem
from models.record import TrustPacket

# Schema version - increment when schema changes
EXPECTED_SCHEMA_VERSION = 1


class Database:
    """
    Local persistence for the crash guard.

    Tables:
    - schema_meta: tracks schema version
    - trust_packets: every sealed record, newest retrievable for export
    - queue_items: outbound work waiting for connectivity

    The connection is shared between the main loop, the drain worker and the
    web API, so every statement runs under one lock.
    """

    def __init__(self, local_database_path: str):
        """
        Initialize the database.

        Args:
            local_database_path: Path to the SQLite database file.
        """
        self.local_database_path = local_database_path
        self.conn: Optional[sqlite3.Connection] = None
        self._lock = threading.RLock()

        db_dir = os.path.dirname(local_database_path)
        if db_dir:
            os.makedirs(db_dir, exist_ok=True)

        logging.info(f"Database initialized at {local_database_path}")

    def _get_connection(self) -> sqlite3.Connection:
        """Get or create database connection."""
        if self.conn is None:
            self.conn = sqlite3.connect(self.local_database_path, check_same_thread=False)
            self.conn.row_factory = sqlite3.Row
        return self.conn

    def _get_schema_version(self) -> Optional[int]:
        """Get current schema version from database."""
        try:
            cursor = self._get_connection().cursor()
            cursor.execute(
                "SELECT name FROM sqlite_master WHERE type='table' AND name='schema_meta'"
            )
            if cursor.fetchone() is None:
                return None

            cursor.execute("SELECT schema_version FROM schema_meta LIMIT 1")
            row = cursor.fetchone()
            return row[0] if row else None
        except sqlite3.Error:
            return None

    def _drop_old_tables(self) -> None:
        cursor = self._get_connection().cursor()
        for table in ("trust_packets", "queue_items", "schema_meta"):
            try:
                cursor.execute(f"DROP TABLE IF EXISTS {table}")
                logging.debug(f"Dropped table: {table}")
            except sqlite3.Error as e:
                logging.warning(f"Could not drop table {table}: {e}")
        self._get_connection().commit()

    def _create_schema(self) -> None:
        cursor = self._get_connection().cursor()

        cursor.execute("""
            CREATE TABLE schema_meta (
                id INTEGER PRIMARY KEY CHECK (id = 1),
                schema_version INTEGER NOT NULL,
                created_at TEXT NOT NULL DEFAULT (datetime('now'))
            )
        """)

        cursor.execute("""
            CREATE TABLE trust_packets (
                seq INTEGER PRIMARY KEY AUTOINCREMENT,
                event_id TEXT NOT NULL UNIQUE,
                created_at REAL NOT NULL,
                digest TEXT NOT NULL,
                packet_json TEXT NOT NULL,
                uploaded INTEGER NOT NULL DEFAULT 0
            )
        """)

        cursor.execute("""
            CREATE TABLE queue_items (
                seq INTEGER PRIMARY KEY AUTOINCREMENT,
                id TEXT NOT NULL UNIQUE,
                kind TEXT NOT NULL,
                payload TEXT NOT NULL,
                enqueued_at REAL NOT NULL,
                attempt_count INTEGER NOT NULL DEFAULT 0
            )
        """)

        cursor.execute(
            "CREATE INDEX idx_trust_packets_created ON trust_packets(created_at)"
        )

        cursor.execute(
            "INSERT INTO schema_meta (id, schema_version) VALUES (1, ?)",
            (EXPECTED_SCHEMA_VERSION,)
        )

        self._get_connection().commit()
        logging.info(f"Created schema version {EXPECTED_SCHEMA_VERSION}")

    def initialize(self) -> None:
        """
        Initialize the database schema.

        If schema_meta is missing or the version doesn't match
        EXPECTED_SCHEMA_VERSION, drops the old tables and creates a fresh schema.
        """
        with self._lock:
            try:
                current_version = self._get_schema_version()

                if current_version != EXPECTED_SCHEMA_VERSION:
                    if current_version is not None:
                        logging.warning(
                            f"Schema version mismatch: found {current_version}, "
                            f"expected {EXPECTED_SCHEMA_VERSION}. Dropping old tables."
                        )
                    else:
                        logging.info("No schema found, creating fresh database.")

                    self._drop_old_tables()
                    self._create_schema()
                else:
                    logging.info(f"Schema version {current_version} is current")

            except sqlite3.Error as e:
                logging.error(f"Database initialization error: {e}")
                raise

    # -------------------------------------------------------------------------
    # Trust packets
    # -------------------------------------------------------------------------

    def save_record(self, packet: TrustPacket) -> None:
        """
        Persist a sealed packet.

        Raises:
            ValueError: If the packet is not sealed.
            sqlite3.Error: If the write fails.
        """
        if packet.digest is None:
            raise ValueError("Only sealed trust packets can be persisted")
        with self._lock:
            try:
                self._get_connection().execute(
                    """
                    INSERT INTO trust_packets (event_id, created_at, digest, packet_json)
                    VALUES (?, ?, ?, ?)
                    """,
                    (packet.event_id, time.time(), packet.digest, json.dumps(packet.to_dict())),
                )
                self._get_connection().commit()
            except sqlite3.Error as e:
                logging.error(f"Error saving trust packet {packet.event_id}: {e}")
                raise
        logging.info(f"Trust packet saved: {packet.event_id}")

    def get_latest_record(self) -> Optional[TrustPacket]:
        """Most recently saved packet, or None."""
        with self._lock:
            try:
                row = self._get_connection().execute(
                    "SELECT packet_json FROM trust_packets ORDER BY seq DESC LIMIT 1"
                ).fetchone()
            except sqlite3.Error as e:
                logging.error(f"Error loading latest trust packet: {e}")
                return None
        return TrustPacket.from_dict(json.loads(row["packet_json"])) if row else None

    def get_record(self, event_id: str) -> Optional[TrustPacket]:
        with self._lock:
            try:
                row = self._get_connection().execute(
                    "SELECT packet_json FROM trust_packets WHERE event_id = ?",
                    (event_id,),
                ).fetchone()
            except sqlite3.Error as e:
                logging.error(f"Error loading trust packet {event_id}: {e}")
                return None
        return TrustPacket.from_dict(json.loads(row["packet_json"])) if row else None

    def list_records(self, limit: int = 50) -> List[Dict[str, Any]]:
        """Newest-first record index (without payloads)."""
        with self._lock:
            try:
                rows = self._get_connection().execute(
                    """
                    SELECT event_id, created_at, digest, uploaded
                    FROM trust_packets ORDER BY seq DESC LIMIT ?
                    """,
                    (limit,),
                ).fetchall()
            except sqlite3.Error as e:
                logging.error(f"Error listing trust packets: {e}")
                return []
        return [dict(row) for row in rows]

    def mark_record_uploaded(self, event_id: str) -> None:
        with self._lock:
            try:
                self._get_connection().execute(
                    "UPDATE trust_packets SET uploaded = 1 WHERE event_id = ?",
                    (event_id,),
                )
                self._get_connection().commit()
            except sqlite3.Error as e:
                logging.error(f"Error marking trust packet {event_id} uploaded: {e}")

    def export_latest_record(self, output_dir: str) -> Optional[str]:
        """
        Write the latest packet to output_dir/trust_packet_<eventId>.json.

        Returns:
            The written path, or None if there is no record yet.
        """
        packet = self.get_latest_record()
        if packet is None:
            return None
        os.makedirs(output_dir, exist_ok=True)
        path = os.path.join(output_dir, f"trust_packet_{packet.event_id}.json")
        with open(path, "w") as f:
            json.dump(packet.to_dict(), f, indent=2)
        logging.info(f"Trust packet exported to {path}")
        return path

    def cleanup_old_records(self, retention_days: int = 30) -> int:
        """
        Remove uploaded packets older than the retention period.

        The newest packet is always kept for local inspection.
        """
        cutoff = time.time() - retention_days * 86400
        with self._lock:
            try:
                cursor = self._get_connection().execute(
                    """
                    DELETE FROM trust_packets
                    WHERE created_at < ? AND uploaded = 1
                      AND seq != (SELECT MAX(seq) FROM trust_packets)
                    """,
                    (cutoff,),
                )
                deleted = cursor.rowcount
                self._get_connection().commit()
            except sqlite3.Error as e:
                logging.error(f"Error cleaning up old trust packets: {e}")
                return 0
        if deleted > 0:
            logging.info(f"Cleaned up {deleted} trust packets older than {retention_days} days")
        return deleted

    # -------------------------------------------------------------------------
    # Queue items
    # -------------------------------------------------------------------------

    def insert_queue_item(self, item: QueueItem) -> None:
        with self._lock:
            try:
                self._get_connection().execute(
                    """
                    INSERT INTO queue_items (id, kind, payload, enqueued_at, attempt_count)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (
                        item.id,
                        item.kind.value,
                        json.dumps(item.payload),
                        item.enqueued_at,
                        item.attempt_count,
                    ),
                )
                self._get_connection().commit()
            except sqlite3.Error as e:
                logging.error(f"Error enqueuing item {item.id}: {e}")
                raise

    def get_queue_items(self) -> List[QueueItem]:
        """All queued items in enqueue order."""
        with self._lock:
            try:
                rows = self._get_connection().execute(
                    "SELECT id, kind, payload, enqueued_at, attempt_count FROM queue_items ORDER BY seq"
                ).fetchall()
            except sqlite3.Error as e:
                logging.error(f"Error reading queue: {e}")
                raise
        return [QueueItem.from_row(dict(row)) for row in rows]

    def update_queue_attempts(self, item_id: str, attempt_count: int) -> None:
        with self._lock:
            self._get_connection().execute(
                "UPDATE queue_items SET attempt_count = ? WHERE id = ?",
                (attempt_count, item_id),
            )
            self._get_connection().commit()

    def delete_queue_item(self, item_id: str) -> None:
        with self._lock:
            self._get_connection().execute("DELETE FROM queue_items WHERE id = ?", (item_id,))
            self._get_connection().commit()

    def count_queue_items(self) -> int:
        with self._lock:
            try:
                return self._get_connection().execute("SELECT COUNT(*) FROM queue_items").fetchone()[0]
            except sqlite3.Error as e:
                logging.error(f"Error counting queue items: {e}")
                return 0

    def clear_queue(self) -> int:
        with self._lock:
            cursor = self._get_connection().execute("DELETE FROM queue_items")
            self._get_connection().commit()
            return cursor.rowcount

    def close(self) -> None:
        """Close database connection."""
        with self._lock:
            if self.conn is not None:
                self.conn.close()
                self.conn = None
                logging.info("Database connection closed")
