"""
Tests for storage/database module.

Tests the trust packet and queue tables and schema versioning.
"""

import json
import os
import sqlite3
import time

import pytest

from evidence.sealer import seal_record, verify_record
from fakes import make_packet
from models.queue_item import QueueItem, QueueItemKind
from storage.database import Database, EXPECTED_SCHEMA_VERSION


def sealed(event_id="crashguard_1700000000000_abcdef123"):
    return seal_record(make_packet(event_id=event_id))


class TestSchemaCreation:
    """Tests for schema creation and versioning."""

    @pytest.mark.parametrize("table", ["schema_meta", "trust_packets", "queue_items"])
    def test_creates_table(self, temp_db, table):
        db = Database(temp_db)
        db.initialize()

        conn = sqlite3.connect(temp_db)
        cursor = conn.cursor()
        cursor.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name=?", (table,)
        )
        assert cursor.fetchone() is not None

        conn.close()
        db.close()

    def test_trust_packets_has_expected_columns(self, temp_db):
        db = Database(temp_db)
        db.initialize()

        conn = sqlite3.connect(temp_db)
        columns = {row[1] for row in conn.execute("PRAGMA table_info(trust_packets)")}

        assert {"seq", "event_id", "created_at", "digest", "packet_json", "uploaded"} <= columns

        conn.close()
        db.close()

    def test_schema_version_is_set(self, temp_db):
        db = Database(temp_db)
        db.initialize()

        conn = sqlite3.connect(temp_db)
        row = conn.execute("SELECT schema_version FROM schema_meta").fetchone()

        assert int(row[0]) == EXPECTED_SCHEMA_VERSION

        conn.close()
        db.close()

    def test_version_mismatch_recreates_tables(self, temp_db):
        """Old schema versions are dropped and rebuilt."""
        db = Database(temp_db)
        db.initialize()
        db.save_record(sealed())
        db.conn.execute("UPDATE schema_meta SET schema_version = 0")
        db.conn.commit()
        db.close()

        db = Database(temp_db)
        db.initialize()

        assert db.get_latest_record() is None
        db.close()

    def test_current_version_preserves_data(self, temp_db):
        db = Database(temp_db)
        db.initialize()
        db.save_record(sealed())
        db.close()

        db = Database(temp_db)
        db.initialize()

        assert db.get_latest_record() is not None
        db.close()

    def test_creates_parent_directory(self, tmp_path):
        path = tmp_path / "nested" / "dir" / "crash_guard.sqlite"

        db = Database(str(path))
        db.initialize()

        assert path.exists()
        db.close()


class TestTrustPackets:
    """Tests for record persistence."""

    def test_save_and_get_latest(self, database):
        database.save_record(sealed("crashguard_1_a"))
        database.save_record(sealed("crashguard_2_b"))

        latest = database.get_latest_record()

        assert latest.event_id == "crashguard_2_b"

    def test_persisted_packet_still_verifies(self, database):
        database.save_record(sealed())

        assert verify_record(database.get_latest_record()) is True

    def test_get_latest_empty(self, database):
        assert database.get_latest_record() is None

    def test_get_record_by_id(self, database):
        database.save_record(sealed("crashguard_1_a"))
        database.save_record(sealed("crashguard_2_b"))

        assert database.get_record("crashguard_1_a").event_id == "crashguard_1_a"
        assert database.get_record("missing") is None

    def test_rejects_unsealed_packet(self, database):
        with pytest.raises(ValueError):
            database.save_record(make_packet())

    def test_duplicate_event_id_raises(self, database):
        database.save_record(sealed())

        with pytest.raises(sqlite3.IntegrityError):
            database.save_record(sealed())

    def test_list_records_newest_first(self, database):
        for i in range(3):
            database.save_record(sealed(f"crashguard_{i}_x"))

        records = database.list_records()

        assert [r["event_id"] for r in records] == ["crashguard_2_x", "crashguard_1_x", "crashguard_0_x"]
        assert records[0]["uploaded"] == 0

    def test_mark_uploaded(self, database):
        database.save_record(sealed())

        database.mark_record_uploaded("crashguard_1700000000000_abcdef123")

        assert database.list_records()[0]["uploaded"] == 1


class TestExport:
    """Tests for export_latest_record."""

    def test_writes_named_file(self, database, tmp_path):
        packet = sealed()
        database.save_record(packet)

        path = database.export_latest_record(str(tmp_path / "exports"))

        assert os.path.basename(path) == f"trust_packet_{packet.event_id}.json"
        with open(path) as f:
            assert json.load(f) == packet.to_dict()

    def test_human_readable_json(self, database, tmp_path):
        database.save_record(sealed())

        path = database.export_latest_record(str(tmp_path))

        with open(path) as f:
            assert f.read().startswith('{\n  "eventId"')

    def test_no_record_returns_none(self, database, tmp_path):
        assert database.export_latest_record(str(tmp_path)) is None


class TestCleanup:
    """Tests for retention cleanup."""

    def _age_all(self, database, days):
        database.conn.execute(
            "UPDATE trust_packets SET created_at = ?", (time.time() - days * 86400,)
        )
        database.conn.commit()

    def test_removes_old_uploaded_records(self, database):
        for i in range(3):
            database.save_record(sealed(f"crashguard_{i}_x"))
            database.mark_record_uploaded(f"crashguard_{i}_x")
        self._age_all(database, 40)

        deleted = database.cleanup_old_records(retention_days=30)

        assert deleted == 2
        assert [r["event_id"] for r in database.list_records()] == ["crashguard_2_x"]

    def test_keeps_records_not_uploaded(self, database):
        database.save_record(sealed("crashguard_0_x"))
        database.save_record(sealed("crashguard_1_x"))
        self._age_all(database, 40)

        assert database.cleanup_old_records(retention_days=30) == 0

    def test_keeps_recent_records(self, database):
        database.save_record(sealed("crashguard_0_x"))
        database.mark_record_uploaded("crashguard_0_x")
        database.save_record(sealed("crashguard_1_x"))

        assert database.cleanup_old_records(retention_days=30) == 0


class TestQueueItems:
    """Tests for the queue_items table."""

    def _item(self, item_id, kind=QueueItemKind.RECORD_UPLOAD):
        return QueueItem(id=item_id, kind=kind, payload={"eventId": item_id}, enqueued_at=time.time())

    def test_insert_and_read_in_order(self, database):
        for item_id in ["c", "a", "b"]:
            database.insert_queue_item(self._item(item_id))

        items = database.get_queue_items()

        assert [i.id for i in items] == ["c", "a", "b"]
        assert items[0].payload == {"eventId": "c"}
        assert items[0].kind == QueueItemKind.RECORD_UPLOAD

    def test_duplicate_id_raises(self, database):
        database.insert_queue_item(self._item("a"))

        with pytest.raises(sqlite3.IntegrityError):
            database.insert_queue_item(self._item("a"))

    def test_update_attempts(self, database):
        database.insert_queue_item(self._item("a"))

        database.update_queue_attempts("a", 2)

        assert database.get_queue_items()[0].attempt_count == 2

    def test_delete_and_count(self, database):
        database.insert_queue_item(self._item("a"))
        database.insert_queue_item(self._item("b"))

        database.delete_queue_item("a")

        assert database.count_queue_items() == 1
        assert database.get_queue_items()[0].id == "b"

    def test_clear(self, database):
        database.insert_queue_item(self._item("a"))
        database.insert_queue_item(self._item("b"))

        assert database.clear_queue() == 2
        assert database.count_queue_items() == 0
