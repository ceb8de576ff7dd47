from fastapi import APIRouter, Request

from uploads_api.config.settings import Settings

router = APIRouter()


@router.get("/health")
async def health_check(request: Request):
    """
    Health check endpoint for monitoring API status and component readiness.

    Returns status of API, queue, database and object store components along
    with deployment mode.
    """
    settings: Settings = request.app.state.settings

    health_status = {
        "status": "ok",
        "deployment_mode": settings.deployment_mode,
        "components": {
            "api": "ready",
            "queue": "initializing",
            "database": "initializing",
            "storage": "initializing",
        },
        "ready": False
    }

    checks = {
        "queue": request.app.state.queue.ping,
        "database": request.app.state.record_store.ping,
        "storage": request.app.state.object_store.ping,
    }
    for component, check in checks.items():
        if check():
            health_status["components"][component] = "ready"
        else:
            health_status["components"][component] = "unavailable"
            health_status["status"] = "degraded"

    health_status["ready"] = all(
        state == "ready" for state in health_status["components"].values()
    )
    return health_status
