"""
CLI commands for file worker management.

Kept apart from uploads_api/cli.py so worker hosts only need the worker
entrypoint. Handles worker startup and worker-specific configuration.
"""

import asyncio
import logging
import os
import signal

import click

from database.file_service import FileRecordService
from database.local import init_db
from file_workers.processing import FileProcessor
from file_workers.transforms import MimeCategory, default_registry
from file_workers.worker import Worker
from uploads_api.adapters.queue import QueueFactory
from uploads_api.adapters.storage import ObjectStore
from uploads_api.config.settings import Settings, get_settings

# Configure logging
logger = logging.getLogger(__name__)


def build_worker(settings: Settings) -> Worker:
    """Wire a worker from settings: record store, object store, queue and transforms."""
    init_db(settings.database_path)
    processor = FileProcessor(
        record_store=FileRecordService(settings.database_path),
        object_store=ObjectStore.from_settings(settings),
        registry=default_registry(settings),
        max_attempts=settings.max_attempts,
        backoff_unit_seconds=settings.backoff_unit_seconds,
    )
    queue = QueueFactory.get_queue_handler(settings)
    return Worker(queue, processor, wait_seconds=settings.queue_wait_seconds)


async def _run_until_signalled(worker_instance: Worker) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, worker_instance.stop)
    await worker_instance.listen_for_tasks()


@click.group()
def cli():
    """CLI commands for file worker management"""
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    )


@cli.command()
@click.option("--mode",
              type=click.Choice(["local-dev", "aws-mock", "aws-prod"]),
              default=None,
              help="Deployment mode (defaults to DEPLOYMENT_MODE)")
def worker(mode):
    """Start the file worker"""
    if mode:
        # Set deployment mode in environment
        os.environ["DEPLOYMENT_MODE"] = mode
        # Clear settings cache to pick up new mode
        get_settings.cache_clear()

    settings = get_settings()
    print(f"Starting file worker in {settings.deployment_mode} mode...")
    print(f"Configuration loaded:")
    print(f"  S3 bucket: {settings.s3_bucket_name}")
    print(f"  SQS queue: {settings.sqs_queue_name}")
    print(f"  AWS endpoint: {settings.aws_endpoint_url}")

    worker_instance = build_worker(settings)
    print(f"Queue handler initialized: {type(worker_instance.queue).__name__}")

    try:
        print("Worker ready to process tasks")
        asyncio.run(_run_until_signalled(worker_instance))
    finally:
        print("Worker shutdown complete")


@cli.command()
def show_worker_config():
    """Show worker-specific configuration"""
    settings = get_settings()

    print("File Worker Configuration:")
    print(f"  Deployment Mode: {settings.deployment_mode}")
    print(f"  AWS Region: {settings.aws_region}")
    print(f"  AWS Endpoint: {settings.aws_endpoint_url}")
    print(f"  S3 Bucket: {settings.s3_bucket_name}")
    print(f"  SQS Queue Name: {settings.sqs_queue_name}")
    print(f"  SQS Queue URL: {settings.sqs_queue_url}")
    print(f"  Database: {settings.database_path}")
    print(f"  Max Attempts: {settings.max_attempts}")
    print(f"  Backoff Unit: {settings.backoff_unit_seconds}s")
    print(f"  Queue Wait: {settings.queue_wait_seconds}s")
    print(f"  Visibility Timeout: {settings.queue_visibility_timeout_seconds}s")

    registry = default_registry(settings)
    print(f"\nTransforms:")
    for category in MimeCategory:
        transform = registry.lookup_category(category)
        name = getattr(transform, "__name__", type(transform).__name__) if transform else "passthrough"
        print(f"  {category.value}: {name}")


if __name__ == "__main__":
    cli()
