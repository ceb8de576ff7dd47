import asyncio
import logging
from typing import Optional

from file_workers.processing import FileProcessor, ProcessingResult
from uploads_api.adapters.queue import BaseQueue, QueuedJob
from uploads_api.utils.decorators import async_log_execution_time

logger = logging.getLogger(__name__)

MAX_LOOP_BACKOFF_SECONDS = 30


class Worker:
    """Queue consumer: one job at a time, until `stop()` is called."""

    def __init__(self, queue: BaseQueue, processor: FileProcessor, wait_seconds: float = 5):
        """Initialize worker with queue and processor"""
        self.queue = queue
        self.processor = processor
        self.wait_seconds = wait_seconds
        self._stop_event = asyncio.Event()
        logger.info(f"Worker initialized with {type(queue).__name__}")

    @property
    def running(self) -> bool:
        return not self._stop_event.is_set()

    @async_log_execution_time
    async def process_task(self, job: QueuedJob) -> ProcessingResult:
        """Run one delivery and settle it with the queue.

        DONE, FAILED and SKIPPED deliveries are acknowledged; RETRY hands the
        message back with its backoff delay. If processing raises, the message
        is left alone and reappears when its lease expires.
        """
        logger.info(f"Processing file {job.message.file_id} (attempt {job.attempt})")
        result = self.processor.process(job.message, job.attempt)

        if result.should_ack:
            await self.queue.ack(job)
        else:
            await self.queue.retry(job, result.delay_seconds)
        return result

    async def process_next(self, wait_seconds: Optional[float] = None) -> Optional[ProcessingResult]:
        """Dequeue and process a single job. Returns None when the queue was empty."""
        wait = self.wait_seconds if wait_seconds is None else wait_seconds
        job = await self.queue.get_task(wait_seconds=wait)
        if job is None:
            return None
        return await self.process_task(job)

    async def listen_for_tasks(self):
        """Listen for tasks until stopped, backing off after consecutive errors"""
        logger.info("Worker started listening for tasks")
        consecutive_errors = 0

        while self.running:
            try:
                result = await self.process_next()
                if result is not None:
                    logger.info(f"Delivery finished: {result.outcome.value}")
                else:
                    # An empty poll with no wait must still yield to the loop
                    await asyncio.sleep(0)
                consecutive_errors = 0
            except Exception as e:
                consecutive_errors += 1
                logger.error(f"Error in task processing loop: {str(e)}", exc_info=True)

                backoff_time = min(MAX_LOOP_BACKOFF_SECONDS, 2 ** consecutive_errors)
                logger.warning(f"Backing off for {backoff_time} seconds after error...")
                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=backoff_time)
                except asyncio.TimeoutError:
                    pass

        logger.info("Worker stopped listening for tasks")

    def stop(self):
        """Stop the worker after the in-flight job"""
        logger.info("Stopping worker...")
        self._stop_event.set()
