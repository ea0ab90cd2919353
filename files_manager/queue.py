"""
Durable job queue on top of redis, with at-least-once delivery.

Every job kind has its own set of keys:

- <prefix>:<kind>:pending     list of job ids waiting to be processed
- <prefix>:<kind>:processing  list of job ids claimed by a worker
- <prefix>:<kind>:leases      sorted set of claimed job ids, scored by lease deadline
- <prefix>:<kind>:delayed     sorted set of job ids waiting to be retried, scored by retry time
- <prefix>:<kind>:failed      list of jobs that were given up on, with the reason
- <prefix>:job:<id>           the job itself (json), kept until it is acknowledged

Claiming a job atomically moves its id from pending to processing, so each delivery goes
to exactly one worker. A job that is not acknowledged before its lease expires (e.g. because
the worker crashed) is moved back to pending by requeue_expired. Failed jobs are retried with
exponential backoff: they wait in the delayed set until promote_delayed moves them back to pending.
Consumers run both at least once every poll interval, also while there is work to do.
Handlers must be idempotent.
"""

import asyncio
import json
import logging
import time
import uuid
from datetime import UTC, datetime
from typing import Any, AsyncIterator, Literal

import redis.asyncio as redis
from pydantic import BaseModel

JobKind = Literal["thumbnail", "welcome"]
JOB_KINDS: tuple[JobKind, ...] = ("thumbnail", "welcome")


class Job(BaseModel):
    id: str
    kind: JobKind
    payload: dict[str, Any]
    attempts: int = 0  # number of times this job has been delivered


class JobQueue:
    def __init__(
        self,
        client: redis.Redis,
        prefix: str = "files_manager_queue",
        poll_interval: float = 1.0,
        visibility_timeout: float = 300.0,
        retry_delay: float = 1.0,
        max_attempts: int = 5,
    ):
        self._redis = client
        self._prefix = prefix
        self._poll_interval = poll_interval
        self._visibility_timeout = visibility_timeout
        self._retry_delay = retry_delay
        self.max_attempts = max_attempts
        self._stopping = asyncio.Event()
        self._last_sweep: dict[str, float] = {}

    def _key(self, kind: str, part: str) -> str:
        return f"{self._prefix}:{kind}:{part}"

    def _job_key(self, job_id: str) -> str:
        return f"{self._prefix}:job:{job_id}"

    async def enqueue(self, kind: JobKind, payload: dict[str, Any]) -> str:
        """Add a job to the queue and return its id. Jobs are not deduplicated."""
        job = Job(id=uuid.uuid4().hex, kind=kind, payload=payload)
        async with self._redis.pipeline(transaction=True) as pipe:
            pipe.set(self._job_key(job.id), job.model_dump_json())
            pipe.lpush(self._key(kind, "pending"), job.id)
            await pipe.execute()
        logging.debug(f"Enqueued {kind} job {job.id}")
        return job.id

    async def claim(self, kind: JobKind) -> Job | None:
        """Claim the next pending job of this kind, or return None if there is none"""
        while True:
            job_id = await self._redis.lmove(self._key(kind, "pending"), self._key(kind, "processing"), "RIGHT", "LEFT")
            if job_id is None:
                return None
            await self._redis.zadd(self._key(kind, "leases"), {job_id: time.time() + self._visibility_timeout})
            raw = await self._redis.get(self._job_key(job_id))
            if raw is None:
                # an earlier delivery of this job was acknowledged in the meantime
                await self._release(kind, job_id)
                continue
            job = Job.model_validate_json(raw)
            job.attempts += 1
            await self._redis.set(self._job_key(job.id), job.model_dump_json())
            return job

    async def consume(self, kind: JobKind) -> AsyncIterator[Job]:
        """
        Yield jobs of this kind one by one, waiting for new jobs when the queue is empty.
        Every job must be passed to ack, retry or fail after processing it.
        The iterator ends after stop() is called.
        """
        while not self._stopping.is_set():
            await self.maintain(kind)
            job = await self.claim(kind)
            if job is None:
                await self._sleep(self._poll_interval)
                continue
            yield job

    async def maintain(self, kind: JobKind, force: bool = False) -> None:
        """
        Requeue jobs with expired leases, and promote delayed retries that are due.
        This does nothing if it already ran less than a poll interval ago, unless force is True.
        """
        now = time.monotonic()
        if not force and now - self._last_sweep.get(kind, float("-inf")) < self._poll_interval:
            return
        self._last_sweep[kind] = now
        await self.requeue_expired(kind)
        await self.promote_delayed(kind)

    def stop(self) -> None:
        """Signal all consumers to stop after their current job"""
        self._stopping.set()

    async def _sleep(self, seconds: float) -> None:
        try:
            await asyncio.wait_for(self._stopping.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass

    async def ack(self, job: Job) -> None:
        """The job was processed successfully, remove it for good"""
        async with self._redis.pipeline(transaction=True) as pipe:
            pipe.lrem(self._key(job.kind, "processing"), 1, job.id)
            pipe.zrem(self._key(job.kind, "leases"), job.id)
            pipe.delete(self._job_key(job.id))
            await pipe.execute()

    async def retry(self, job: Job, delay: float | None = None) -> bool:
        """
        Processing failed, make the job available for delivery again after delay seconds.
        The default delay doubles with every attempt: retry_delay, 2 * retry_delay, 4 * retry_delay, ...
        Returns False if the job was no longer claimed (i.e. its lease expired and it was already requeued)
        """
        if delay is None:
            delay = self.backoff(job)
        if not await self._release(job.kind, job.id):
            return False
        if delay <= 0:
            await self._redis.lpush(self._key(job.kind, "pending"), job.id)
        else:
            await self._redis.zadd(self._key(job.kind, "delayed"), {job.id: time.time() + delay})
        return True

    def backoff(self, job: Job) -> float:
        return self._retry_delay * 2 ** max(job.attempts - 1, 0)

    async def promote_delayed(self, kind: JobKind) -> int:
        """Move delayed jobs whose retry time has passed to pending. Returns the number of jobs moved."""
        moved = 0
        for job_id in await self._redis.zrangebyscore(self._key(kind, "delayed"), "-inf", time.time()):
            # only the consumer that removes the id from the delayed set requeues it
            if await self._redis.zrem(self._key(kind, "delayed"), job_id):
                await self._redis.rpush(self._key(kind, "pending"), job_id)
                moved += 1
        return moved

    async def fail(self, job: Job, reason: str) -> None:
        """Processing can never succeed: acknowledge the job, but keep a record of it on the failed list"""
        record = dict(job=job.model_dump(), reason=reason, failed_at=datetime.now(tz=UTC).isoformat())
        async with self._redis.pipeline(transaction=True) as pipe:
            pipe.lrem(self._key(job.kind, "processing"), 1, job.id)
            pipe.zrem(self._key(job.kind, "leases"), job.id)
            pipe.delete(self._job_key(job.id))
            pipe.lpush(self._key(job.kind, "failed"), json.dumps(record))
            await pipe.execute()

    async def requeue_expired(self, kind: JobKind) -> int:
        """Move claimed jobs whose lease has expired back to pending. Returns the number of jobs moved."""
        now = time.time()
        moved = 0
        for job_id in await self._redis.lrange(self._key(kind, "processing"), 0, -1):
            deadline = await self._redis.zscore(self._key(kind, "leases"), job_id)
            if deadline is None:
                # claimed, but the lease was not written yet (or the claiming worker died in between)
                await self._redis.zadd(self._key(kind, "leases"), {job_id: now + self._visibility_timeout}, nx=True)
            elif deadline < now and await self._release(kind, job_id):
                await self._redis.rpush(self._key(kind, "pending"), job_id)
                logging.warning(f"Lease of {kind} job {job_id} expired, delivering it again")
                moved += 1
        return moved

    async def _release(self, kind: str, job_id: str) -> bool:
        removed = await self._redis.lrem(self._key(kind, "processing"), 1, job_id)
        await self._redis.zrem(self._key(kind, "leases"), job_id)
        return removed > 0

    async def pending_count(self, kind: JobKind) -> int:
        return await self._redis.llen(self._key(kind, "pending"))

    async def processing_count(self, kind: JobKind) -> int:
        return await self._redis.llen(self._key(kind, "processing"))

    async def delayed_count(self, kind: JobKind) -> int:
        return await self._redis.zcard(self._key(kind, "delayed"))

    async def failed_jobs(self, kind: JobKind) -> list[dict]:
        return [json.loads(x) for x in await self._redis.lrange(self._key(kind, "failed"), 0, -1)]
