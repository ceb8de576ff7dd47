####################################
# --- Request/response schemas --- #
####################################

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from database.schemas import FileRecord, FileStatus, ProcessingLogEntry

DEFAULT_LIST_FILES_LIMIT = 100
MAX_LIST_FILES_LIMIT = 100


class CamelModel(BaseModel):
    """camelCase on the wire, snake_case in Python."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PresignRequest(CamelModel):
    """Request body for `POST /files/presign`.

    Fields are optional at the schema level; the coordinator reports missing
    values as a 400 rather than a 422.
    """
    filename: Optional[str] = Field(
        None,
        json_schema_extra={"example": "photo.png"},
    )
    mime_type: Optional[str] = Field(
        None,
        json_schema_extra={"example": "image/png"},
    )


class PresignResponse(CamelModel):
    """Response model for `POST /files/presign`."""
    upload_url: str = Field(description="Presigned PUT URL for the temp object.")
    file_id: str = Field(description="Client correlation token, echoed back at finalize.")
    temp_path: str = Field(description="Object path the client uploads to.")

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "uploadUrl": "https://team-files.s3.amazonaws.com/temp/1/0b7c.../photo.png?X-Amz-Signature=...",
                "fileId": "0b7c6a0e-54c4-4d1e-9a51-1d1c3f8f6b7e",
                "tempPath": "temp/1/0b7c6a0e-54c4-4d1e-9a51-1d1c3f8f6b7e/photo.png",
            }
        },
    )


class FinalizeRequest(CamelModel):
    """Request body for `POST /files/finalize`."""
    file_id: Optional[str] = None
    temp_path: Optional[str] = None
    filename: Optional[str] = None
    mime_type: Optional[str] = None
    size_bytes: Optional[int] = None


class FinalizeResponse(CamelModel):
    """Response model for `POST /files/finalize`."""
    success: bool
    file_id: int = Field(description="Id of the new file record.")
    status: FileStatus
    message: str


class FileListResponse(CamelModel):
    """Response model for `GET /files`."""
    files: List[FileRecord]


class FileDetailResponse(CamelModel):
    """Response model for `GET /files/{file_id}`."""
    file: FileRecord
    processing_logs: List[ProcessingLogEntry]


class DeleteFileResponse(CamelModel):
    """Response model for `DELETE /files/{file_id}`."""
    success: bool
    message: str


class RequeueResponse(CamelModel):
    """Response model for `POST /files/{file_id}/requeue`."""
    success: bool
    file_id: int
    status: FileStatus


class JobMessage(CamelModel):
    """Payload carried by the job queue from finalize to the worker."""
    file_id: int = Field(description="File record id.")
    team_id: int
    temp_path: str
    mime_type: str
    filename: str
    attempt: Optional[int] = Field(
        None,
        ge=1,
        description="Delivery counter for transports that do not track it natively.",
    )

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
