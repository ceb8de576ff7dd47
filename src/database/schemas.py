"""
Row schemas for the record store.
Rows are returned as pydantic models so the API can serialise them directly
(camelCase on the wire, snake_case in Python).
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class FileStatus(str, Enum):
    """Lifecycle of a file record. Values are the exact wire strings."""
    PENDING_UPLOAD = 'PENDING_UPLOAD'
    UPLOADED = 'UPLOADED'
    PROCESSING = 'PROCESSING'
    DONE = 'DONE'
    FAILED = 'FAILED'

    @property
    def is_terminal(self) -> bool:
        return self in (FileStatus.DONE, FileStatus.FAILED)


class FileRecord(BaseModel):
    """A file uploaded by a team member and its processing outcome"""
    id: int = Field(..., description="Store-assigned record id")
    team_id: int = Field(..., description="Owning team")
    user_id: int = Field(..., description="Uploader")
    filename: str = Field(..., min_length=1, max_length=255)
    original_filename: str = Field(..., min_length=1, max_length=255)
    mime_type: str = Field(..., description="Mime type declared at upload")
    size_bytes: int = Field(..., ge=0, description="Size declared at finalize")
    original_path: Optional[str] = Field(None, description="Temp object path")
    final_path: Optional[str] = Field(None, description="Processed object path, DONE only")
    direct_link: Optional[str] = Field(None, description="Public URL of final_path, DONE only")
    status: FileStatus = Field(FileStatus.PENDING_UPLOAD)
    processed_size_bytes: Optional[int] = Field(None, ge=0)
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ProcessingLogEntry(BaseModel):
    """Append-only audit row written once per attempt transition"""
    id: int
    file_id: int
    attempt: int = Field(..., ge=1)
    status: FileStatus
    error_message: Optional[str] = None
    logged_at: datetime

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)
