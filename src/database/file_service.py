"""
File record service.
Owns every read and write of `files` and `processing_logs`; each method
acquires and releases its own connection.
"""

import sqlite3
import logging
from datetime import datetime, timezone
from typing import List, Optional

from .local import get_connection, init_db
from .schemas import FileRecord, FileStatus, ProcessingLogEntry

logger = logging.getLogger(__name__)

DEFAULT_LIST_LIMIT = 100


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class FileRecordService:
    """Record store gateway for file records and their processing logs"""

    def __init__(self, db_path: str = "files.db"):
        self.db_path = db_path

    def init_schema(self) -> None:
        init_db(self.db_path)

    @staticmethod
    def _to_record(row: sqlite3.Row) -> FileRecord:
        return FileRecord.model_validate(dict(row))

    @staticmethod
    def _to_log_entry(row: sqlite3.Row) -> ProcessingLogEntry:
        return ProcessingLogEntry.model_validate(dict(row))

    def create_file(
        self,
        team_id: int,
        user_id: int,
        filename: str,
        mime_type: str,
        size_bytes: int,
        original_path: Optional[str],
        status: FileStatus = FileStatus.UPLOADED,
        original_filename: Optional[str] = None,
    ) -> FileRecord:
        """Insert a new file record and return it with its assigned id"""
        timestamp = _now()
        with get_connection(self.db_path) as conn:
            cursor = conn.execute(
                '''
                INSERT INTO files
                (team_id, user_id, filename, original_filename, mime_type, size_bytes,
                 original_path, status, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ''',
                (team_id, user_id, filename, original_filename or filename, mime_type,
                 size_bytes, original_path, FileStatus(status).value, timestamp, timestamp),
            )
            file_id = cursor.lastrowid
            row = conn.execute('SELECT * FROM files WHERE id = ?', (file_id,)).fetchone()

        logger.info(f"Created file record {file_id} for team {team_id} ({status.value})")
        return self._to_record(row)

    def get_file(self, file_id: int) -> Optional[FileRecord]:
        with get_connection(self.db_path) as conn:
            row = conn.execute('SELECT * FROM files WHERE id = ?', (file_id,)).fetchone()
        return self._to_record(row) if row else None

    def list_files(
        self,
        team_id: Optional[int] = None,
        status: Optional[FileStatus] = None,
        limit: int = DEFAULT_LIST_LIMIT,
    ) -> List[FileRecord]:
        """List records newest first. `team_id=None` lists every team."""
        clauses = []
        params: list = []
        if team_id is not None:
            clauses.append('team_id = ?')
            params.append(team_id)
        if status is not None:
            clauses.append('status = ?')
            params.append(FileStatus(status).value)

        query = 'SELECT * FROM files'
        if clauses:
            query += ' WHERE ' + ' AND '.join(clauses)
        query += ' ORDER BY created_at DESC, id DESC LIMIT ?'
        params.append(limit)

        with get_connection(self.db_path) as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._to_record(row) for row in rows]

    def update_status(self, file_id: int, status: FileStatus) -> bool:
        """Set a non-DONE status. Safe to repeat.

        Clears `final_path` and `direct_link` so they stay exclusive to DONE.
        Returns False when the record does not exist.
        """
        status = FileStatus(status)
        if status == FileStatus.DONE:
            raise ValueError("Use mark_done() to complete a file")

        with get_connection(self.db_path) as conn:
            cursor = conn.execute(
                '''
                UPDATE files
                SET status = ?, final_path = NULL, direct_link = NULL, updated_at = ?
                WHERE id = ?
                ''',
                (status.value, _now(), file_id),
            )
            updated = cursor.rowcount > 0

        if updated:
            logger.debug(f"File {file_id} status -> {status.value}")
        return updated

    def mark_done(
        self,
        file_id: int,
        final_path: str,
        direct_link: str,
        processed_size_bytes: int,
    ) -> bool:
        """Terminal success write. Repeating it with the same values is harmless."""
        with get_connection(self.db_path) as conn:
            cursor = conn.execute(
                '''
                UPDATE files
                SET status = ?, final_path = ?, direct_link = ?,
                    processed_size_bytes = ?, updated_at = ?
                WHERE id = ?
                ''',
                (FileStatus.DONE.value, final_path, direct_link,
                 processed_size_bytes, _now(), file_id),
            )
            return cursor.rowcount > 0

    def add_processing_log(
        self,
        file_id: int,
        attempt: int,
        status: FileStatus,
        error_message: Optional[str] = None,
    ) -> ProcessingLogEntry:
        """Append an audit row for one attempt transition"""
        with get_connection(self.db_path) as conn:
            cursor = conn.execute(
                '''
                INSERT INTO processing_logs (file_id, attempt, status, error_message, logged_at)
                VALUES (?, ?, ?, ?, ?)
                ''',
                (file_id, attempt, FileStatus(status).value, error_message, _now()),
            )
            row = conn.execute(
                'SELECT * FROM processing_logs WHERE id = ?', (cursor.lastrowid,)
            ).fetchone()
        return self._to_log_entry(row)

    def get_processing_logs(self, file_id: int) -> List[ProcessingLogEntry]:
        with get_connection(self.db_path) as conn:
            rows = conn.execute(
                'SELECT * FROM processing_logs WHERE file_id = ? ORDER BY attempt, id',
                (file_id,),
            ).fetchall()
        return [self._to_log_entry(row) for row in rows]

    def ping(self) -> bool:
        """Check the database answers a trivial query."""
        try:
            with get_connection(self.db_path) as conn:
                conn.execute('SELECT 1 FROM files LIMIT 1').fetchall()
            return True
        except sqlite3.Error as e:
            logger.warning(f"Record store not reachable: {e}")
            return False

    def delete_file(self, file_id: int) -> bool:
        """Delete a record and its processing logs in one transaction"""
        with get_connection(self.db_path) as conn:
            conn.execute('DELETE FROM processing_logs WHERE file_id = ?', (file_id,))
            cursor = conn.execute('DELETE FROM files WHERE id = ?', (file_id,))
            deleted = cursor.rowcount > 0

        if deleted:
            logger.info(f"Deleted file record {file_id}")
        return deleted
