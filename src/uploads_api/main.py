from textwrap import dedent
import logging
from typing import Optional

import pydantic
from fastapi import FastAPI
from fastapi.routing import APIRoute
from fastapi.middleware.cors import CORSMiddleware

from database.file_service import FileRecordService
from database.local import init_db
from uploads_api.adapters.queue import BaseQueue, QueueFactory
from uploads_api.adapters.storage import ObjectStore
from uploads_api.config.settings import Settings
from uploads_api.coordinator import UploadCoordinator
from uploads_api.errors import (
    handle_broad_exceptions,
    handle_invalid_request,
    handle_not_found,
    handle_pydantic_validation_errors,
    handle_queue_error,
)
from uploads_api.exceptions import InvalidRequest, NotFound, QueueError
from uploads_api.routers.files import router as files_router
from uploads_api.routers.health import router as health_router

# Set up logging
logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    *,
    record_store: Optional[FileRecordService] = None,
    object_store: Optional[ObjectStore] = None,
    queue: Optional[BaseQueue] = None,
) -> FastAPI:
    """Create a FastAPI application.

    Components default to the ones `settings` describes; tests pass their own.
    """
    settings = settings or Settings()

    app = FastAPI(
        title="Files API",
        summary="Upload team files for processing and durable storage",
        version="v1",
        description=dedent(
            """\
        Three-phase uploads: `presign` returns a URL the client PUTs bytes to,
        `finalize` records the upload and queues it, and a worker converts it
        (images become WebP) into its final location.

        | Status | Meaning |
        | --- | --- |
        | `UPLOADED` | recorded and queued |
        | `PROCESSING` | a worker is on it (or retrying) |
        | `DONE` | `directLink` is ready |
        | `FAILED` | gave up after the last attempt |
        """
        ),
        docs_url="/",  # its easier to find the docs when they live on the base url
        generate_unique_id_function=custom_generate_unique_id,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:3000"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    logger.info("creating db")
    init_db(settings.database_path)

    record_store = record_store or FileRecordService(settings.database_path)
    object_store = object_store or ObjectStore.from_settings(settings)
    queue = queue or QueueFactory.get_queue_handler(settings)

    app.state.settings = settings
    app.state.record_store = record_store
    app.state.object_store = object_store
    app.state.queue = queue
    app.state.coordinator = UploadCoordinator(
        object_store=object_store,
        record_store=record_store,
        queue=queue,
        settings=settings,
    )

    app.include_router(files_router, tags=["files"])
    app.include_router(health_router, tags=["health"])

    app.add_exception_handler(
        exc_class_or_status_code=pydantic.ValidationError,
        handler=handle_pydantic_validation_errors,
    )
    app.add_exception_handler(InvalidRequest, handle_invalid_request)
    app.add_exception_handler(NotFound, handle_not_found)
    app.add_exception_handler(QueueError, handle_queue_error)
    app.middleware("http")(handle_broad_exceptions)

    return app


def custom_generate_unique_id(route: APIRoute):
    """
    Generate prettier `operationId`s in the OpenAPI schema.

    These become the function names in generated client SDKs.
    """
    return f"{route.tags[0]}-{route.name}"


if __name__ == "__main__":
    import uvicorn

    app = create_app()
    uvicorn.run(app, host="0.0.0.0", port=8000)
