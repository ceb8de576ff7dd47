import logging
from typing import Optional

from fastapi import (
    APIRouter,
    Depends,
    HTTPException,
    Path,
    Query,
    status
)

from database.file_service import FileRecordService
from database.schemas import FileRecord, FileStatus
from uploads_api.adapters.storage import ObjectStore
from uploads_api.auth import CallerIdentity, get_caller_identity, require_admin
from uploads_api.config.settings import Settings
from uploads_api.coordinator import UploadCoordinator
from uploads_api.dependencies import (
    get_coordinator,
    get_object_store,
    get_record_store,
    get_settings_from_app,
)
from uploads_api.exceptions import StorageError
from uploads_api.schemas import (
    DEFAULT_LIST_FILES_LIMIT,
    MAX_LIST_FILES_LIMIT,
    DeleteFileResponse,
    FileDetailResponse,
    FileListResponse,
    FinalizeRequest,
    FinalizeResponse,
    PresignRequest,
    PresignResponse,
    RequeueResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _load_file(record_store: FileRecordService, file_id: int) -> FileRecord:
    record = record_store.get_file(file_id)
    if record is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="File not found")
    return record


@router.post("/files/presign", response_model=PresignResponse)
async def presign_upload(
    body: PresignRequest,
    identity: CallerIdentity = Depends(get_caller_identity),
    coordinator: UploadCoordinator = Depends(get_coordinator),
):
    """
    Reserve a temp path and return a presigned URL the client PUTs the bytes to.
    """
    return coordinator.presign(identity, body)


@router.post("/files/finalize", response_model=FinalizeResponse)
async def finalize_upload(
    body: FinalizeRequest,
    identity: CallerIdentity = Depends(get_caller_identity),
    coordinator: UploadCoordinator = Depends(get_coordinator),
):
    """
    Record an uploaded file and queue it for processing.

    The record starts in UPLOADED; poll `GET /files/{file_id}` for the outcome.
    """
    return await coordinator.finalize(identity, body)


@router.get("/files", response_model=FileListResponse)
async def list_files(
    status_filter: Optional[FileStatus] = Query(None, alias="status"),
    limit: int = Query(DEFAULT_LIST_FILES_LIMIT, ge=1, le=MAX_LIST_FILES_LIMIT),
    identity: CallerIdentity = Depends(get_caller_identity),
    record_store: FileRecordService = Depends(get_record_store),
    settings: Settings = Depends(get_settings_from_app),
):
    """
    List file records, newest first.

    Admins see every team's files, everyone else sees their own team's.
    """
    team_id = None if identity.is_admin else identity.effective_team_id(settings.default_team_id)
    files = record_store.list_files(team_id=team_id, status=status_filter, limit=limit)
    return FileListResponse(files=files)


@router.get("/files/{file_id}", response_model=FileDetailResponse)
async def get_file(
    file_id: int = Path(..., description="File record id"),
    identity: CallerIdentity = Depends(get_caller_identity),
    record_store: FileRecordService = Depends(get_record_store),
    settings: Settings = Depends(get_settings_from_app),
):
    """Get a file record and its processing history."""
    record = _load_file(record_store, file_id)
    if not identity.is_admin and record.team_id != identity.effective_team_id(settings.default_team_id):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")

    return FileDetailResponse(
        file=record,
        processing_logs=record_store.get_processing_logs(file_id),
    )


@router.delete("/files/{file_id}", response_model=DeleteFileResponse)
async def delete_file(
    file_id: int = Path(..., description="File record id"),
    identity: CallerIdentity = Depends(get_caller_identity),
    record_store: FileRecordService = Depends(get_record_store),
    object_store: ObjectStore = Depends(get_object_store),
):
    """
    Delete a file's objects, processing logs and record.

    Admins can delete any file; other users only files they uploaded.
    """
    record = _load_file(record_store, file_id)
    if not identity.is_admin and record.user_id != identity.user_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Forbidden - You can only delete your own files",
        )

    try:
        for path in (record.final_path, record.original_path):
            if path:
                object_store.delete(path)
    except StorageError as e:
        logger.error(f"Failed to delete objects for file {file_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to delete file",
        )

    record_store.delete_file(file_id)
    return DeleteFileResponse(success=True, message="File deleted")


@router.post("/files/{file_id}/requeue", response_model=RequeueResponse)
async def requeue_file(
    file_id: int = Path(..., description="File record id"),
    identity: CallerIdentity = Depends(require_admin),
    coordinator: UploadCoordinator = Depends(get_coordinator),
):
    """Send a stuck or failed file back through processing. Admin only."""
    record = await coordinator.requeue(file_id)
    return RequeueResponse(success=True, file_id=record.id, status=record.status)
