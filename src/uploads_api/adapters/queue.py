import asyncio
import json
import logging
import math
import os
import time
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
from pydantic import ValidationError

from uploads_api.config.settings import Settings
from uploads_api.exceptions import QueueError
from uploads_api.schemas import JobMessage

try:
    from mypy_boto3_sqs import SQSClient
except ImportError:
    ...

logger = logging.getLogger(__name__)

# SQS caps a visibility timeout at 12 hours
MAX_VISIBILITY_TIMEOUT = 43200


@dataclass
class QueuedJob:
    """One delivery of a job message.

    `attempt` is 1 on first delivery and grows with every redelivery.
    `receipt` is the transport handle used to ack or reschedule it.
    """
    message: JobMessage
    attempt: int
    receipt: str


class BaseQueue:
    """Base class for queue handling (to be extended by specific implementations)"""

    async def add_task(self, message: JobMessage) -> None:
        raise NotImplementedError

    async def get_task(self, wait_seconds: float = 0) -> Optional[QueuedJob]:
        raise NotImplementedError

    async def ack(self, job: QueuedJob) -> None:
        raise NotImplementedError

    async def retry(self, job: QueuedJob, delay_seconds: float) -> None:
        """Hand the job back to the queue, visible again after `delay_seconds`."""
        raise NotImplementedError

    def ping(self) -> bool:
        return True


class LocalQueue(BaseQueue):
    """Handles local queue using file system for IPC.

    Messages wait in `ready/` under names that sort by the time they become
    visible. A consumer claims one by renaming it into `inflight/`; the rename
    is atomic, so two workers never hold the same message. A claim older
    than the visibility timeout is returned to `ready/` as a redelivery.
    """

    def __init__(
        self,
        queue_dir: Path,
        visibility_timeout: float = 300,
        poll_interval: float = 0.5,
    ):
        self.queue_dir = Path(queue_dir)
        self.ready_dir = self.queue_dir / "ready"
        self.inflight_dir = self.queue_dir / "inflight"
        self.error_dir = self.queue_dir / "errors"
        for directory in (self.ready_dir, self.inflight_dir, self.error_dir):
            directory.mkdir(parents=True, exist_ok=True)
        self.visibility_timeout = visibility_timeout
        self.poll_interval = poll_interval
        logger.info("LocalQueue initialized at: %s", self.queue_dir)

    @classmethod
    def from_settings(cls, settings: Settings) -> "LocalQueue":
        return cls(
            queue_dir=Path(settings.storage_dir) / "queue_data",
            visibility_timeout=settings.queue_visibility_timeout_seconds,
            poll_interval=settings.queue_poll_interval_seconds,
        )

    def _write_ready(self, payload: dict, visible_after: float) -> Path:
        name = f"{int(visible_after * 1000):013d}_{uuid.uuid4().hex}.json"
        staging = self.queue_dir / f".{name}.tmp"
        with open(staging, "w") as f:
            json.dump(payload, f)
        target = self.ready_dir / name
        os.replace(staging, target)
        return target

    async def add_task(self, message: JobMessage) -> None:
        """Add task to queue"""
        payload = message.to_wire()
        payload.setdefault("attempt", 1)
        try:
            path = self._write_ready(payload, time.time())
        except OSError as e:
            raise QueueError(f"Error adding task to local queue: {e}") from e
        logger.info("Added task to queue: %s (%s)", payload, path.name)

    def _reclaim_expired(self) -> None:
        """Return expired claims to the ready directory with attempt + 1."""
        now = time.time()
        for claimed in self.inflight_dir.glob("*.json"):
            try:
                if claimed.stat().st_mtime + self.visibility_timeout > now:
                    continue
                # Rename first so only one consumer reclaims it
                reclaiming = claimed.with_suffix(".reclaim")
                os.rename(claimed, reclaiming)
            except FileNotFoundError:
                continue

            try:
                payload = self._read_payload(reclaiming)
                payload["attempt"] = int(payload.get("attempt", 1)) + 1
            except ValueError as e:
                logger.error("Error reading expired task file %s: %s", claimed, str(e))
                self._move_to_errors(reclaiming, claimed.name)
                continue
            self._write_ready(payload, now)
            reclaiming.unlink()
            logger.warning("Lease expired, redelivering task: %s", payload)

    @staticmethod
    def _read_payload(path: Path) -> dict:
        with open(path) as f:
            payload = json.load(f)
        if not isinstance(payload, dict):
            raise ValueError(f"expected a JSON object, got {type(payload).__name__}")
        return payload

    def _move_to_errors(self, path: Path, name: str) -> None:
        try:
            os.rename(path, self.error_dir / name)
        except FileNotFoundError:
            pass  # another consumer moved it first

    def _claim_next(self) -> Optional[QueuedJob]:
        now_ms = int(time.time() * 1000)
        for candidate in sorted(self.ready_dir.glob("*.json")):
            try:
                visible_after = int(candidate.name.split("_", 1)[0])
            except ValueError:
                logger.error("Unexpected file in ready queue: %s", candidate.name)
                self._move_to_errors(candidate, candidate.name)
                continue
            if visible_after > now_ms:
                # Names sort by visibility, nothing later is due either
                return None

            claimed = self.inflight_dir / candidate.name
            try:
                os.rename(candidate, claimed)
            except FileNotFoundError:
                continue  # another consumer won the race
            os.utime(claimed)

            try:
                payload = self._read_payload(claimed)
                attempt = int(payload.pop("attempt", 1))
                message = JobMessage.model_validate(payload)
            except (ValueError, ValidationError) as e:
                logger.error("Error reading task file %s: %s", claimed, str(e))
                self._move_to_errors(claimed, claimed.name)
                continue

            logger.info("Retrieved task from queue: %s (attempt %d)", payload, attempt)
            return QueuedJob(message=message, attempt=attempt, receipt=str(claimed))
        return None

    async def get_task(self, wait_seconds: float = 0) -> Optional[QueuedJob]:
        """Claim the next visible task, polling for up to `wait_seconds`."""
        deadline = time.monotonic() + wait_seconds
        while True:
            try:
                self._reclaim_expired()
                job = self._claim_next()
            except OSError as e:
                raise QueueError(f"Error getting task from local queue: {e}") from e
            if job is not None:
                return job
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return None
            await asyncio.sleep(min(self.poll_interval, remaining))

    async def ack(self, job: QueuedJob) -> None:
        Path(job.receipt).unlink(missing_ok=True)
        logger.debug("Acknowledged task for file %s", job.message.file_id)

    async def retry(self, job: QueuedJob, delay_seconds: float) -> None:
        payload = job.message.to_wire()
        payload["attempt"] = job.attempt + 1
        try:
            # New copy lands before the claim goes away
            self._write_ready(payload, time.time() + delay_seconds)
            Path(job.receipt).unlink(missing_ok=True)
        except OSError as e:
            raise QueueError(f"Error rescheduling task on local queue: {e}") from e
        logger.info(
            "Rescheduled task for file %s in %.1fs (attempt %d)",
            job.message.file_id, delay_seconds, job.attempt + 1,
        )

    def ping(self) -> bool:
        return self.ready_dir.is_dir() and os.access(self.ready_dir, os.W_OK)


class SQSQueue(BaseQueue):
    """Handles AWS SQS queue.

    The delivery counter is SQS's own ApproximateReceiveCount; a retry only
    stretches the message's visibility timeout.
    """

    def __init__(self, queue_url: str, sqs_client: "SQSClient"):
        self.sqs = sqs_client
        self.queue_url = queue_url

    @classmethod
    def from_settings(cls, settings: Settings, sqs_client: Optional["SQSClient"] = None) -> "SQSQueue":
        sqs = sqs_client or boto3.client(
            "sqs",
            endpoint_url=settings.aws_endpoint_url,
            aws_access_key_id=settings.aws_access_key_id,
            aws_secret_access_key=settings.aws_secret_access_key,
            region_name=settings.aws_region,
            config=Config(connect_timeout=5, read_timeout=30, retries={"max_attempts": 3}),
        )
        queue_url = settings.sqs_queue_url
        if not queue_url:
            try:
                queue_url = sqs.get_queue_url(QueueName=settings.sqs_queue_name)["QueueUrl"]
            except (ClientError, BotoCoreError) as e:
                raise QueueError(f"Cannot resolve queue {settings.sqs_queue_name}: {e}") from e

        logger.info(f"SQSQueue initialized")
        logger.info(f"  Endpoint: {settings.aws_endpoint_url}")
        logger.info(f"  Queue URL: {queue_url}")
        logger.info(f"  Region: {settings.aws_region}")
        return cls(queue_url=queue_url, sqs_client=sqs)

    async def add_task(self, message: JobMessage) -> None:
        """Add a task to the SQS queue."""
        try:
            response = await asyncio.to_thread(
                self.sqs.send_message,
                QueueUrl=self.queue_url,
                MessageBody=json.dumps(message.to_wire()),
            )
        except (ClientError, BotoCoreError) as e:
            raise QueueError(f"Error adding task to SQS queue: {e}") from e
        logger.info(f"Task added to SQS queue with ID: {response.get('MessageId')}")

    async def get_task(self, wait_seconds: float = 0) -> Optional[QueuedJob]:
        try:
            response = await asyncio.to_thread(
                self.sqs.receive_message,
                QueueUrl=self.queue_url,
                MaxNumberOfMessages=1,
                WaitTimeSeconds=int(wait_seconds),
                AttributeNames=["ApproximateReceiveCount"],
            )
        except (ClientError, BotoCoreError) as e:
            raise QueueError(f"Error receiving from SQS queue: {e}") from e

        if "Messages" not in response:
            return None

        message = response["Messages"][0]
        attempt = int(message.get("Attributes", {}).get("ApproximateReceiveCount", 1))
        try:
            job_message = JobMessage.model_validate(json.loads(message["Body"]))
        except (ValueError, ValidationError) as e:
            logger.error(f"Dropping malformed SQS message {message.get('MessageId')}: {e}")
            await self._delete(message["ReceiptHandle"])
            return None

        logger.info(f"Retrieved task from SQS queue: {message['Body']} (attempt {attempt})")
        return QueuedJob(message=job_message, attempt=attempt, receipt=message["ReceiptHandle"])

    async def _delete(self, receipt: str) -> None:
        try:
            await asyncio.to_thread(self.sqs.delete_message, QueueUrl=self.queue_url, ReceiptHandle=receipt)
        except (ClientError, BotoCoreError) as e:
            raise QueueError(f"Error deleting SQS message: {e}") from e

    async def ack(self, job: QueuedJob) -> None:
        await self._delete(job.receipt)

    async def retry(self, job: QueuedJob, delay_seconds: float) -> None:
        timeout = min(MAX_VISIBILITY_TIMEOUT, int(math.ceil(delay_seconds)))
        try:
            await asyncio.to_thread(
                self.sqs.change_message_visibility,
                QueueUrl=self.queue_url,
                ReceiptHandle=job.receipt,
                VisibilityTimeout=timeout,
            )
        except (ClientError, BotoCoreError) as e:
            raise QueueError(f"Error changing SQS message visibility: {e}") from e
        logger.info(f"Task for file {job.message.file_id} visible again in {timeout}s")

    def ping(self) -> bool:
        try:
            self.sqs.get_queue_attributes(QueueUrl=self.queue_url, AttributeNames=["QueueArn"])
            return True
        except (ClientError, BotoCoreError) as e:
            logger.warning(f"SQS queue not reachable: {e}")
            return False


class QueueFactory:
    """Factory to initialize the correct queue handler based on deployment mode"""

    @staticmethod
    def get_queue_handler(settings: Settings) -> BaseQueue:
        queue_classes = {
            "local-dev": LocalQueue,
            "aws-mock": SQSQueue,
            "aws-prod": SQSQueue,
        }

        deployment_mode = settings.deployment_mode
        if deployment_mode not in queue_classes:
            raise ValueError(
                f"Invalid deployment_mode: {deployment_mode}. "
                f"Choose from {list(queue_classes.keys())}"
            )

        logger.info(f"Creating queue handler for mode: {deployment_mode}")
        return queue_classes[deployment_mode].from_settings(settings)
