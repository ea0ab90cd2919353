import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import redis.asyncio as redis
from elasticsearch import AsyncElasticsearch

from files_manager.config import Settings, get_settings


class FilesManagerConnections:
    """
    The clients of the backing stores. These are created once per process and passed
    explicitly to the services that need them (see files_manager.services).
    """

    elastic: AsyncElasticsearch
    sessions: redis.Redis
    queue: redis.Redis

    def __init__(self, elastic: AsyncElasticsearch, sessions: redis.Redis, queue: redis.Redis | None = None):
        self.elastic = elastic
        self.sessions = sessions
        self.queue = queue if queue is not None else sessions

    async def close(self) -> None:
        await self.elastic.close()
        await self.sessions.aclose()
        if self.queue is not self.sessions:
            await self.queue.aclose()


@asynccontextmanager
async def files_manager_connections(settings: Settings | None = None) -> AsyncGenerator[FilesManagerConnections, None]:
    """
    The main context manager to start and stop connections used by files_manager.
    Always use this once (and only once):
        - For running the server: in the FastAPI lifespan
        - For running workers: around the worker loop
        - For CLI commands: within the CLI command
    """
    settings = settings or get_settings()
    connections = FilesManagerConnections(
        elastic=await start_elastic(settings),
        sessions=connect_redis(settings.redis_url),
        queue=connect_redis(settings.queue_url) if settings.queue_url != settings.redis_url else None,
    )
    try:
        yield connections
    finally:
        await connections.close()


def connect_redis(url: str | None) -> redis.Redis:
    if not url:
        raise ValueError("No redis url configured")
    logging.debug(f"Connecting with redis at {url}")
    return redis.from_url(url, decode_responses=True)


async def start_elastic(settings: Settings) -> AsyncElasticsearch:
    """
    Check whether we can connect with elastic
    """
    logging.debug(
        f"Connecting with elasticsearch at {settings.elastic_host}, password? {'yes' if settings.elastic_password else 'no'} "
    )
    elastic = connect_elastic(settings)
    if not await elastic.ping():
        await elastic.close()
        raise ConnectionError(f"Cannot connect to elasticsearch server {settings.elastic_host}")
    return elastic


def connect_elastic(settings: Settings) -> AsyncElasticsearch:
    """
    Connect to the elastic server using the system settings
    """
    if settings.elastic_password:
        return AsyncElasticsearch(
            settings.elastic_host,
            basic_auth=("elastic", settings.elastic_password),
            verify_certs=bool(settings.elastic_verify_ssl),
        )
    else:
        return AsyncElasticsearch(settings.elastic_host or None)
