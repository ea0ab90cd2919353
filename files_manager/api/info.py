"""API Endpoints for checking the health and size of the service."""

import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from redis.exceptions import RedisError

from files_manager.api.auth import get_services
from files_manager.services import Services

app_info = APIRouter(tags=["info"])


class StatusResponse(BaseModel):
    redis: bool
    db: bool


class StatsResponse(BaseModel):
    users: int
    files: int


@app_info.get("/status")
async def get_status(services: Services = Depends(get_services)) -> StatusResponse:
    """Check whether the session store (redis) and the metadata store (elasticsearch) are reachable."""
    try:
        redis_alive = bool(await services.connections.sessions.ping())
    except (RedisError, OSError) as e:
        logging.warning(f"Redis ping failed: {e}")
        redis_alive = False
    return StatusResponse(redis=redis_alive, db=await services.connections.elastic.ping())


@app_info.get("/stats")
async def get_stats(services: Services = Depends(get_services)) -> StatsResponse:
    """Get the number of users and files."""
    return StatsResponse(users=await services.users.count_users(), files=await services.files.count_files())
