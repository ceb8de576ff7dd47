# cli.py
import asyncio
import logging
import mimetypes
from datetime import timedelta
from pathlib import Path

import click
import requests

from database.file_service import FileRecordService
from database.local import init_db
from uploads_api.adapters.queue import QueueFactory
from uploads_api.adapters.storage import ObjectStore
from uploads_api.auth import ROLES, create_access_token
from uploads_api.config.settings import get_settings
from uploads_api.coordinator import UploadCoordinator
from uploads_api.exceptions import PipelineError

# Configure logging
logger = logging.getLogger(__name__)

HTTP_TIMEOUT = 30.0


@click.group()
def cli():
    """CLI commands for the Files API"""
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    )


@cli.command()
def show_config():
    """Show current configuration"""
    settings = get_settings()

    print("Current Configuration:")
    print(f"  Deployment Mode: {settings.deployment_mode}")
    print(f"  AWS Region: {settings.aws_region}")
    print(f"  AWS Endpoint: {settings.aws_endpoint_url}")
    print(f"  S3 Bucket: {settings.s3_bucket_name}")
    print(f"  Direct Link Base: {settings.direct_link_base}")
    print(f"  SQS Queue Name: {settings.sqs_queue_name}")
    print(f"  SQS Queue URL: {settings.sqs_queue_url}")
    print(f"  Database: {settings.database_path}")
    print(f"  Upload URL TTL: {settings.upload_url_ttl_seconds}s")
    print(f"  Verify Upload On Finalize: {settings.verify_upload_on_finalize}")


@cli.command(name="init-db")
def init_db_command():
    """Create the record store tables"""
    settings = get_settings()
    init_db(settings.database_path)
    print(f"✅ Database ready at {settings.database_path}")


@cli.command()
@click.option("--host", default="0.0.0.0", show_default=True)
@click.option("--port", default=8000, show_default=True, type=int)
@click.option("--reload/--no-reload", default=False)
def serve(host, port, reload):
    """Run the API with uvicorn"""
    import uvicorn

    settings = get_settings()
    settings.export_environment_variables()
    print(f"Starting Files API in {settings.deployment_mode} mode on {host}:{port}")
    uvicorn.run(
        "uploads_api.main:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_level=settings.log_level.lower(),
    )


@cli.command()
@click.option("--user-id", type=int, required=True)
@click.option("--team-id", type=int, default=None)
@click.option("--role", type=click.Choice(ROLES), default="team", show_default=True)
@click.option("--username", default=None)
@click.option("--hours", type=int, default=24, show_default=True)
def issue_token(user_id, team_id, role, username, hours):
    """Mint a development bearer token"""
    settings = get_settings()
    token = create_access_token(
        settings,
        user_id=user_id,
        team_id=team_id,
        role=role,
        username=username,
        expires_in=timedelta(hours=hours),
    )
    print(token)


@cli.command()
@click.argument("file_id", type=int)
def requeue(file_id):
    """Send a stuck or failed file back through processing"""
    settings = get_settings()
    init_db(settings.database_path)
    coordinator = UploadCoordinator(
        object_store=ObjectStore.from_settings(settings),
        record_store=FileRecordService(settings.database_path),
        queue=QueueFactory.get_queue_handler(settings),
        settings=settings,
    )
    try:
        record = asyncio.run(coordinator.requeue(file_id))
    except PipelineError as e:
        raise click.ClickException(str(e))
    print(f"✅ File {record.id} requeued ({record.status.value})")


@cli.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--api-url", envvar="API_BASE_URL", default="http://localhost:8000",
              show_default=True, help="Base URL of the Files API")
@click.option("--token", envvar="FILES_API_TOKEN", required=True, help="Bearer token")
@click.option("--mime-type", default=None, help="Override the guessed mime type")
def upload(path, api_url, token, mime_type):
    """Upload a file through presign -> PUT -> finalize"""
    mime_type = mime_type or mimetypes.guess_type(path.name)[0] or "application/octet-stream"
    headers = {"Authorization": f"Bearer {token}"}
    data = path.read_bytes()

    try:
        response = requests.post(
            f"{api_url}/files/presign",
            json={"filename": path.name, "mimeType": mime_type},
            headers=headers,
            timeout=HTTP_TIMEOUT,
        )
        response.raise_for_status()
        presigned = response.json()
        logger.info(f"Presigned {presigned['tempPath']}")

        put_response = requests.put(
            presigned["uploadUrl"],
            data=data,
            headers={"Content-Type": mime_type},
            timeout=HTTP_TIMEOUT,
        )
        put_response.raise_for_status()
        logger.info(f"Uploaded {len(data)} bytes")

        response = requests.post(
            f"{api_url}/files/finalize",
            json={
                "fileId": presigned["fileId"],
                "tempPath": presigned["tempPath"],
                "filename": path.name,
                "mimeType": mime_type,
                "sizeBytes": len(data),
            },
            headers=headers,
            timeout=HTTP_TIMEOUT,
        )
        response.raise_for_status()
    except requests.exceptions.RequestException as e:
        raise click.ClickException(f"Upload failed: {e}")

    result = response.json()
    print(f"✅ File {result['fileId']} {result['status']}: {result['message']}")


if __name__ == "__main__":
    cli()
