import sqlite3
import logging
from contextlib import contextmanager
from typing import Iterator

logger = logging.getLogger(__name__)

# Seconds a connection waits on a locked database before failing
BUSY_TIMEOUT = 10.0


@contextmanager
def get_connection(db_path: str) -> Iterator[sqlite3.Connection]:
    """Open a connection for one unit of work.

    Commits when the block exits cleanly, rolls back on error and always
    closes the connection.
    """
    conn = sqlite3.connect(db_path, timeout=BUSY_TIMEOUT)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def init_db(db_path: str = "files.db") -> None:
    """Initialize database with all required tables and indexes."""
    with get_connection(db_path) as conn:
        cursor = conn.cursor()

        cursor.execute('''
            CREATE TABLE IF NOT EXISTS files (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                team_id INTEGER NOT NULL,
                user_id INTEGER NOT NULL,
                filename VARCHAR(255) NOT NULL,
                original_filename VARCHAR(255) NOT NULL,
                mime_type VARCHAR(255) NOT NULL,
                size_bytes INTEGER NOT NULL,
                original_path VARCHAR(1024) NULL,      -- temp object, set at finalize
                final_path VARCHAR(1024) NULL,         -- set by worker on DONE
                direct_link VARCHAR(2048) NULL,        -- set by worker on DONE
                status VARCHAR(20) NOT NULL DEFAULT 'PENDING_UPLOAD',
                processed_size_bytes INTEGER NULL,
                created_at TIMESTAMP NOT NULL,
                updated_at TIMESTAMP NOT NULL
            )
        ''')

        # No foreign key: attempt failures for a record deleted mid-flight
        # are still written to the audit trail.
        cursor.execute('''
            CREATE TABLE IF NOT EXISTS processing_logs (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                file_id INTEGER NOT NULL,
                attempt INTEGER NOT NULL,
                status VARCHAR(20) NOT NULL,
                error_message TEXT NULL,
                logged_at TIMESTAMP NOT NULL
            )
        ''')

        cursor.execute('CREATE INDEX IF NOT EXISTS idx_files_team_id ON files(team_id)')
        cursor.execute('CREATE INDEX IF NOT EXISTS idx_files_status ON files(status)')
        cursor.execute('CREATE INDEX IF NOT EXISTS idx_files_created_at ON files(created_at)')
        cursor.execute('''
            CREATE INDEX IF NOT EXISTS idx_processing_logs_file_attempt
            ON processing_logs(file_id, attempt)
        ''')

    logger.info(f"Database initialized at {db_path}")
