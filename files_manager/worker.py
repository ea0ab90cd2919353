"""
Job workers - consume jobs from the queue and process them.

A JobRunner takes jobs of one kind from the queue and hands them to a handler:

1. Handler returns normally: the job is acknowledged
2. Handler raises UnrecoverableJob (bad payload, file gone): the job is acknowledged with an error,
   so it is not delivered again
3. Handler raises anything else: the job is retried after a backoff delay, until it has been
   delivered max_attempts times; then it is acknowledged with an error as well

Delivery is at-least-once, so handlers must be safe to run more than once for the same job.
"""

import asyncio
import logging
from typing import Awaitable, Callable

from files_manager.errors import FileNotFound, InvalidJob, NotFound, ProcessingFailure, UnrecoverableJob
from files_manager.models import THUMBNAIL_WIDTHS
from files_manager.objectstorage.image_processing import MAX_IMAGE_SIZE, InvalidImage, create_thumbnails
from files_manager.objectstorage.localstore import LocalContentStore
from files_manager.queue import Job, JobKind, JobQueue
from files_manager.systemdata.files import MetadataTree
from files_manager.systemdata.users import CredentialVerifier

logger = logging.getLogger(__name__)

JobHandler = Callable[[Job], Awaitable[None]]


def _required(job: Job, field: str) -> str:
    value = job.payload.get(field)
    if not value:
        raise InvalidJob(f"Missing {field}")
    return str(value)


class ThumbnailWorker:
    """Derives the thumbnails of an uploaded image and stores them next to the original"""

    def __init__(
        self,
        files: MetadataTree,
        content: LocalContentStore,
        widths: tuple[int, ...] = THUMBNAIL_WIDTHS,
        max_size: int = MAX_IMAGE_SIZE,
    ):
        self._files = files
        self._content = content
        self._widths = widths
        self._max_size = max_size

    async def __call__(self, job: Job) -> None:
        file_id = _required(job, "fileId")
        user_id = _required(job, "userId")

        try:
            node = await self._files.get(user_id, file_id)
        except NotFound:
            raise FileNotFound(f"File {file_id} of user {user_id} not found")
        if node.storage_key is None:
            raise InvalidJob(f"File {file_id} has no content")

        try:
            original = await self._content.get(node.storage_key)
        except NotFound:
            raise ProcessingFailure(f"Content of file {file_id} not found")

        try:
            thumbnails = await asyncio.to_thread(create_thumbnails, original, self._widths, self._max_size)
        except InvalidImage as e:
            raise UnrecoverableJob(f"Cannot create thumbnails for file {file_id}: {e}") from e
        except Exception as e:
            raise ProcessingFailure(f"Could not create thumbnails for file {file_id}: {e}") from e

        # rewriting a variant replaces it, so a redelivered job repairs partial output
        try:
            for width, data in thumbnails.items():
                await self._content.put_variant(node.storage_key, width, data)
        except OSError as e:
            raise ProcessingFailure(f"Could not store thumbnails for file {file_id}: {e}") from e
        logger.info(f"Created thumbnails {', '.join(str(w) for w in thumbnails)} for file {file_id}")


class WelcomeWorker:
    """Greets newly registered users (for now, in the log)"""

    def __init__(self, users: CredentialVerifier):
        self._users = users

    async def __call__(self, job: Job) -> None:
        user_id = _required(job, "userId")
        user = await self._users.get_user(user_id)
        if user is None:
            raise UnrecoverableJob(f"User {user_id} not found")
        logger.info(f"Welcome {user.email}!")


class JobRunner:
    """Runs a handler for every job of one kind, one job at a time"""

    def __init__(self, queue: JobQueue, kind: JobKind, handler: JobHandler):
        self.queue = queue
        self.kind = kind
        self.handler = handler

    async def run(self) -> None:
        logger.info(f"Starting {self.kind} worker")
        async for job in self.queue.consume(self.kind):
            await self.process(job)
        logger.info(f"Stopped {self.kind} worker")

    async def process(self, job: Job) -> bool:
        """Process a claimed job and settle it with the queue. Returns True if the job succeeded."""
        logger.debug(f"Processing {job.kind} job {job.id} (attempt {job.attempts})")
        if job.attempts > self.queue.max_attempts:
            # redelivered after its last worker crashed or lost its lease
            return await self._give_up(job, f"Gave up after {self.queue.max_attempts} attempts")
        try:
            await self.handler(job)
        except UnrecoverableJob as e:
            return await self._give_up(job, str(e))
        except Exception as e:
            if job.attempts >= self.queue.max_attempts:
                logger.exception(f"Error processing {job.kind} job {job.id}, no attempts left: {e}")
                return await self._give_up(job, f"Gave up after {job.attempts} attempts: {e}")
            delay = self.queue.backoff(job)
            logger.warning(
                f"Error processing {job.kind} job {job.id} (attempt {job.attempts}), retrying in {delay:g}s: {e!r}"
            )
            await self.queue.retry(job, delay)
            return False
        await self.queue.ack(job)
        return True

    async def _give_up(self, job: Job, reason: str) -> bool:
        logger.error(f"Giving up on {job.kind} job {job.id}: {reason}")
        await self.queue.fail(job, reason)
        return False


async def run_workers(runners: list[JobRunner]) -> None:
    """Run all job runners concurrently until their queues are stopped"""
    await asyncio.gather(*(runner.run() for runner in runners))
