"""Request-scoped access to the components built in `create_app`."""

from fastapi import Request

from database.file_service import FileRecordService
from uploads_api.adapters.storage import ObjectStore
from uploads_api.config.settings import Settings
from uploads_api.coordinator import UploadCoordinator


def get_settings_from_app(request: Request) -> Settings:
    return request.app.state.settings


def get_record_store(request: Request) -> FileRecordService:
    return request.app.state.record_store


def get_object_store(request: Request) -> ObjectStore:
    return request.app.state.object_store


def get_coordinator(request: Request) -> UploadCoordinator:
    return request.app.state.coordinator
