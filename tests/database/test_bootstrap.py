from __future__ import annotations

import pytest

from src.attendance_sync.attendance_sync.core.exceptions import StorageCorruptionError, StorageFullError
from src.attendance_sync.attendance_sync.database.base import db_transaction, execute, fetchone, translate_storage_error
from src.attendance_sync.attendance_sync.database.bootstrap import apply_schema, iter_sql_statements, list_tables
from src.attendance_sync.attendance_sync.database.connection import DBConfig, DatabaseConnection
from sqlalchemy.exc import OperationalError


def test_splitter_ignores_semicolons_in_quotes_and_comments():
    sql = """
    -- header; with a semicolon
    CREATE TABLE a (x TEXT DEFAULT 'a;b');  -- trailing; comment
    INSERT INTO a VALUES ("q;q");
    """

    assert list(iter_sql_statements(sql)) == [
        "CREATE TABLE a (x TEXT DEFAULT 'a;b')",
        'INSERT INTO a VALUES ("q;q")',
    ]


def test_apply_schema_is_idempotent(tmp_path):
    conn = DatabaseConnection(DBConfig(url=f"sqlite:///{tmp_path / 'boot.db'}"))
    apply_schema(conn)
    apply_schema(conn)

    tables = list_tables(conn)
    for name in ("attendance_records", "student_attendances", "change_queue", "sync_watermarks", "students"):
        assert name in tables
    conn.dispose()


def test_transaction_rolls_back_on_error(tmp_path):
    conn = DatabaseConnection(DBConfig(url=f"sqlite:///{tmp_path / 'tx.db'}"))
    apply_schema(conn)

    with pytest.raises(RuntimeError):
        with db_transaction(conn) as c:
            execute(c, "INSERT INTO offices(uuid, name) VALUES('o1', 'Office')")
            raise RuntimeError("boom")

    with db_transaction(conn) as c:
        assert fetchone(execute(c, "SELECT uuid FROM offices WHERE uuid='o1'")) is None
    conn.dispose()


def test_in_memory_database_is_shared_across_connections():
    conn = DatabaseConnection(DBConfig(url="sqlite:///:memory:"))
    apply_schema(conn)

    assert "attendance_records" in list_tables(conn)
    conn.dispose()


def test_storage_errors_are_translated():
    full = OperationalError("INSERT", {}, Exception("database or disk is full"))
    corrupt = OperationalError("SELECT", {}, Exception("database disk image is malformed"))
    other = OperationalError("SELECT", {}, Exception("no such table: x"))

    assert isinstance(translate_storage_error(full), StorageFullError)
    assert isinstance(translate_storage_error(corrupt), StorageCorruptionError)
    assert translate_storage_error(other) is None
    assert translate_storage_error(ValueError("x")) is None
