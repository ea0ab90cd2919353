"""files_manager API: multi-user file storage with token sessions and image thumbnails."""

import logging
from contextlib import asynccontextmanager

from elasticsearch import ApiError
from elasticsearch import ConnectionError as ElasticConnectionError
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from redis.exceptions import ConnectionError as RedisConnectionError

from files_manager.api.auth import app_auth
from files_manager.api.files import app_files
from files_manager.api.info import app_info
from files_manager.api.users import app_users
from files_manager.config import get_settings
from files_manager.connections import files_manager_connections
from files_manager.errors import FilesManagerError
from files_manager.services import Services


@asynccontextmanager
async def lifespan(app: FastAPI):
    logging.info("Connecting to elasticsearch and redis...")
    async with files_manager_connections() as connections:
        services = Services(connections, get_settings())
        await services.setup()
        app.state.services = services
        yield
        logging.info("Closing connections")


app = FastAPI(
    title="files_manager",
    description=__doc__ if __doc__ else "",
    openapi_tags=[
        dict(name="info", description="Endpoints for service status and statistics"),
        dict(name="auth", description="Endpoints to log in and out"),
        dict(name="users", description="Endpoints for user registration"),
        dict(name="files", description="Endpoints to upload, list, publish and download files"),
    ],
    lifespan=lifespan,
)
app.include_router(app_info)
app.include_router(app_auth)
app.include_router(app_users)
app.include_router(app_files)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(FilesManagerError)
async def files_manager_exception_handler(request: Request, exc: FilesManagerError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.message},
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={"error": "There was an issue with the data you sent.", "fields_invalid": jsonable_encoder(exc.errors())},
    )


@app.exception_handler(ElasticConnectionError)
@app.exception_handler(RedisConnectionError)
async def connection_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logging.error(f"Backing store unavailable while handling {request.url.path}: {exc!r}")
    return JSONResponse(status_code=503, content={"error": "Service unavailable"})


@app.exception_handler(ApiError)
async def elastic_exception_handler(request: Request, exc: ApiError) -> JSONResponse:
    logging.error(f"Elasticsearch error while handling {request.url.path}: {exc!r}", exc_info=exc)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})
