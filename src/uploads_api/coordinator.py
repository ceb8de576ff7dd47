"""
Upload coordinator.
Drives the presign -> direct upload -> finalize handshake. Stateless: the
record store and the queue carry everything between calls.
"""

import logging
import uuid

from database.file_service import FileRecordService
from database.schemas import FileRecord, FileStatus
from uploads_api.adapters.queue import BaseQueue
from uploads_api.adapters.storage import ObjectStore
from uploads_api.auth import CallerIdentity
from uploads_api.config.settings import Settings
from uploads_api.exceptions import InvalidRequest, NotFound
from uploads_api.schemas import (
    FinalizeRequest,
    FinalizeResponse,
    JobMessage,
    PresignRequest,
    PresignResponse,
)

logger = logging.getLogger(__name__)

TEMP_PREFIX = "temp"
MAX_FILENAME_LENGTH = 255


def temp_object_path(team_id: int, file_id: str, filename: str) -> str:
    return f"{TEMP_PREFIX}/{team_id}/{file_id}/{filename}"


def _check_filename(filename: str) -> None:
    if "/" in filename or "\\" in filename or filename in (".", ".."):
        raise InvalidRequest(f"Invalid filename: {filename!r}")
    if len(filename) > MAX_FILENAME_LENGTH:
        raise InvalidRequest(f"Filename longer than {MAX_FILENAME_LENGTH} characters")


class UploadCoordinator:
    """Server side of the three-phase upload handshake."""

    def __init__(
        self,
        object_store: ObjectStore,
        record_store: FileRecordService,
        queue: BaseQueue,
        settings: Settings,
    ):
        self.object_store = object_store
        self.record_store = record_store
        self.queue = queue
        self.settings = settings

    def presign(self, identity: CallerIdentity, request: PresignRequest) -> PresignResponse:
        """Hand out a temp path and a presigned PUT URL for it. Nothing is persisted."""
        if not request.filename or not request.mime_type:
            raise InvalidRequest("filename and mimeType are required")
        _check_filename(request.filename)

        team_id = identity.effective_team_id(self.settings.default_team_id)
        file_id = str(uuid.uuid4())
        temp_path = temp_object_path(team_id, file_id, request.filename)

        upload_url = self.object_store.mint_upload_url(
            temp_path,
            ttl_seconds=self.settings.upload_url_ttl_seconds,
            content_type=request.mime_type,
        )
        logger.info(f"Presigned upload for user {identity.user_id}: {temp_path}")
        return PresignResponse(upload_url=upload_url, file_id=file_id, temp_path=temp_path)

    async def finalize(self, identity: CallerIdentity, request: FinalizeRequest) -> FinalizeResponse:
        """Record a completed upload and queue it for processing.

        The record is written before the enqueue. If the enqueue fails the
        record stays UPLOADED and the QueueError reaches the caller.
        """
        missing = [
            name
            for name in ("file_id", "temp_path", "filename", "mime_type")
            if not getattr(request, name)
        ]
        if missing:
            raise InvalidRequest(f"Missing required fields: {', '.join(missing)}")
        if request.size_bytes is None or request.size_bytes <= 0:
            raise InvalidRequest("sizeBytes must be a positive integer")
        _check_filename(request.filename)

        if self.settings.verify_upload_on_finalize and not self.object_store.exists(request.temp_path):
            raise InvalidRequest(f"No uploaded object at {request.temp_path}")

        team_id = identity.effective_team_id(self.settings.default_team_id)
        record = self.record_store.create_file(
            team_id=team_id,
            user_id=identity.user_id,
            filename=request.filename,
            mime_type=request.mime_type,
            size_bytes=request.size_bytes,
            original_path=request.temp_path,
            status=FileStatus.UPLOADED,
        )

        await self.queue.add_task(self._job_for(record))
        logger.info(f"File {record.id} finalized and queued ({request.temp_path})")

        return FinalizeResponse(
            success=True,
            file_id=record.id,
            status=record.status,
            message="File uploaded and queued for processing",
        )

    async def requeue(self, file_id: int) -> FileRecord:
        """Put a stuck or failed file back on the queue with a fresh attempt count."""
        record = self.record_store.get_file(file_id)
        if record is None:
            raise NotFound(f"File {file_id} not found")
        if record.status == FileStatus.DONE:
            raise InvalidRequest(f"File {file_id} is already processed")
        if not record.original_path:
            raise InvalidRequest(f"File {file_id} has no uploaded object to process")

        self.record_store.update_status(file_id, FileStatus.UPLOADED)
        await self.queue.add_task(self._job_for(record))
        logger.info(f"File {file_id} requeued from {record.status.value}")
        return self.record_store.get_file(file_id)

    @staticmethod
    def _job_for(record: FileRecord) -> JobMessage:
        return JobMessage(
            file_id=record.id,
            team_id=record.team_id,
            temp_path=record.original_path,
            mime_type=record.mime_type,
            filename=record.filename,
        )
