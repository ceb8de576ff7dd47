"""
Processing state machine for one delivery of a job message.

    UPLOADED -> PROCESSING -> DONE
                    |   ^
                    v   |  (retry after 2**attempt backoff units)
                  FAILED   (attempt cap reached, temp object kept)

Every step can be re-run: the PROCESSING write is idempotent, the final path
is deterministic so a re-put overwrites, and deleting a missing temp object
is a no-op. Deliveries for records that are already DONE or FAILED are
treated as duplicates and acknowledged without touching the record.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import PurePosixPath
from typing import Optional

from database.file_service import FileRecordService
from database.schemas import FileRecord, FileStatus
from file_workers.transforms import TransformRegistry, categorize
from uploads_api.adapters.storage import ObjectStore
from uploads_api.exceptions import (
    NotFound,
    ProcessingError,
    StorageError,
    TerminalFailure,
    TransformError,
)
from uploads_api.schemas import JobMessage

logger = logging.getLogger(__name__)

FINAL_PREFIX = "files"
DEFAULT_MAX_ATTEMPTS = 3


class ProcessingOutcome(str, Enum):
    DONE = "DONE"          # stored, ack
    RETRY = "RETRY"        # attempt failed, redeliver after delay_seconds
    FAILED = "FAILED"      # attempt cap reached, ack
    SKIPPED = "SKIPPED"    # duplicate delivery of a finished record, ack


@dataclass
class ProcessingResult:
    outcome: ProcessingOutcome
    delay_seconds: float = 0.0
    error: Optional[str] = None

    @property
    def should_ack(self) -> bool:
        return self.outcome != ProcessingOutcome.RETRY


def backoff_delay(attempt: int, unit_seconds: float = 1.0) -> float:
    """Redelivery delay after failed attempt `attempt`: 2, 4, 8, ... units."""
    return (2 ** attempt) * unit_seconds


def final_filename(filename: str, extension: Optional[str]) -> str:
    """Replace the last extension of `filename`, or keep it when no transform ran."""
    if not extension:
        return filename
    return str(PurePosixPath(filename).with_suffix(f".{extension}"))


def final_object_path(team_id: int, file_id: int, filename: str) -> str:
    return f"{FINAL_PREFIX}/{team_id}/{file_id}/{filename}"


class FileProcessor:
    """Runs one attempt for a job message against the stores."""

    def __init__(
        self,
        record_store: FileRecordService,
        object_store: ObjectStore,
        registry: TransformRegistry,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        backoff_unit_seconds: float = 1.0,
    ):
        self.record_store = record_store
        self.object_store = object_store
        self.registry = registry
        self.max_attempts = max_attempts
        self.backoff_unit_seconds = backoff_unit_seconds

    def process(self, message: JobMessage, attempt: int) -> ProcessingResult:
        """Run one attempt.

        Attempt failures (`ProcessingError`) are logged and turned into a
        RETRY or FAILED result. Anything else propagates so the caller can
        leave the message for redelivery.
        """
        file_id = message.file_id
        record = self.record_store.get_file(file_id)

        if record is not None and record.status.is_terminal:
            return self._skip_finished(record, message)

        try:
            if record is None:
                raise NotFound(f"File record {file_id} not found")

            self.record_store.update_status(file_id, FileStatus.PROCESSING)
            self.record_store.add_processing_log(file_id, attempt, FileStatus.PROCESSING)
            logger.info(f"Processing file {file_id} (attempt {attempt}/{self.max_attempts})")

            final_path, processed_size = self._store_final(message)
        except ProcessingError as e:
            return self._fail_attempt(message, attempt, e, record_exists=record is not None)

        direct_link = self.object_store.public_url(final_path)
        self.record_store.mark_done(
            file_id,
            final_path=final_path,
            direct_link=direct_link,
            processed_size_bytes=processed_size,
        )
        self.record_store.add_processing_log(file_id, attempt, FileStatus.DONE)
        logger.info(f"File {file_id} processed: {final_path} ({processed_size} bytes)")

        self._delete_temp(message.temp_path, file_id)
        return ProcessingResult(ProcessingOutcome.DONE)

    def _store_final(self, message: JobMessage):
        data = self.object_store.get(message.temp_path)
        if data is None:
            raise NotFound(f"Temp object {message.temp_path} not found")

        extension = None
        content_type = message.mime_type
        transform = self.registry.lookup(message.mime_type)
        if transform is not None:
            logger.debug(f"Running {categorize(message.mime_type).value} transform for file {message.file_id}")
            try:
                result = transform(data)
            except ProcessingError:
                raise
            except Exception as e:
                raise TransformError(f"Transform failed: {e}") from e
            if result is not None:
                data = result.data
                extension = result.extension
                content_type = result.content_type

        final_path = final_object_path(
            message.team_id,
            message.file_id,
            final_filename(message.filename, extension),
        )
        self.object_store.put(final_path, data, content_type=content_type)
        return final_path, len(data)

    def _fail_attempt(
        self,
        message: JobMessage,
        attempt: int,
        error: ProcessingError,
        record_exists: bool,
    ) -> ProcessingResult:
        file_id = message.file_id
        error_message = str(error)
        self.record_store.add_processing_log(file_id, attempt, FileStatus.FAILED, error_message)

        if attempt >= self.max_attempts:
            if record_exists:
                self.record_store.update_status(file_id, FileStatus.FAILED)
            failure = TerminalFailure(file_id, attempt, error_message)
            logger.error(str(failure))
            return ProcessingResult(ProcessingOutcome.FAILED, error=str(failure))

        delay = backoff_delay(attempt, self.backoff_unit_seconds)
        logger.warning(
            f"Attempt {attempt}/{self.max_attempts} for file {file_id} failed: "
            f"{error_message}. Retrying in {delay:.1f}s"
        )
        return ProcessingResult(ProcessingOutcome.RETRY, delay_seconds=delay, error=error_message)

    def _skip_finished(self, record: FileRecord, message: JobMessage) -> ProcessingResult:
        logger.info(f"File {record.id} already {record.status.value}, skipping duplicate delivery")
        if record.status == FileStatus.DONE:
            self._delete_temp(message.temp_path, record.id)
        return ProcessingResult(ProcessingOutcome.SKIPPED)

    def _delete_temp(self, temp_path: str, file_id: int) -> None:
        try:
            self.object_store.delete(temp_path)
        except StorageError as e:
            # DONE stands even if the temp object lingers
            logger.warning(f"Could not delete temp object for file {file_id}: {e}")
