import sqlite3

import pytest

from database.local import get_connection, init_db


@pytest.fixture
def db(tmp_path):
    db_path = str(tmp_path / "test_files.db")
    init_db(db_path)
    yield db_path


def test_init_db(db):
    conn = sqlite3.connect(db)
    cursor = conn.cursor()
    cursor.execute("SELECT name FROM sqlite_master WHERE type='table' ORDER BY name")
    tables = {row[0] for row in cursor.fetchall()}
    conn.close()

    assert {"files", "processing_logs"} <= tables


def test_init_db_is_repeatable(db):
    init_db(db)
    init_db(db)


def test_connection_rolls_back_on_error(db):
    with pytest.raises(RuntimeError):
        with get_connection(db) as conn:
            conn.execute(
                "INSERT INTO processing_logs (file_id, attempt, status, logged_at) VALUES (1, 1, 'FAILED', 'now')"
            )
            raise RuntimeError("boom")

    with get_connection(db) as conn:
        count = conn.execute("SELECT COUNT(*) FROM processing_logs").fetchone()[0]
    assert count == 0


def test_connection_commits_on_success(db):
    with get_connection(db) as conn:
        conn.execute(
            "INSERT INTO processing_logs (file_id, attempt, status, logged_at) VALUES (1, 1, 'FAILED', 'now')"
        )

    conn = sqlite3.connect(db)
    count = conn.execute("SELECT COUNT(*) FROM processing_logs").fetchone()[0]
    conn.close()
    assert count == 1
