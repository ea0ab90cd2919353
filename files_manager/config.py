"""
files_manager configuration

We read configuration from 2 sources, in order of precedence (higher is more priority)
- Environment variables
- A .env file, either in the current working directory or in a location specified
  by the FILES_MANAGER_ENV_FILE environment variable
"""

import functools
from pathlib import Path
from typing import Annotated, Any

from dotenv import load_dotenv
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_PREFIX = "files_manager_"


class Settings(BaseSettings):
    env_file: Annotated[
        Path,
        Field(
            description="Location of a .env file (if used) relative to working directory",
        ),
    ] = Path(".env")

    folder_path: Annotated[
        Path,
        Field(
            description="Directory where uploaded file contents and thumbnails are stored",
        ),
    ] = Path("/tmp/files_manager")

    elastic_password: Annotated[
        str | None,
        Field(
            description=(
                "Elasticsearch password. This the password for the 'elastic' user when Elastic xpack security is enabled"
            )
        ),
    ] = None

    elastic_host: Annotated[
        str | None,
        Field(
            description=(
                "Elasticsearch host (metadata store). "
                "Default: https://localhost:9200 if elastic_password is set, http://localhost:9200 otherwise"
            )
        ),
    ] = None

    elastic_verify_ssl: Annotated[
        bool | None,
        Field(
            description=(
                "Elasticsearch verify SSL (only used if elastic_password is set). Default: True unless host is localhost)"
            ),
        ),
    ] = None

    system_index: Annotated[
        str,
        Field(
            description="Prefix of the elasticsearch indices that hold users and file metadata",
        ),
    ] = "files_manager"

    redis_url: Annotated[
        str,
        Field(
            description="Redis connection url of the session store",
        ),
    ] = "redis://localhost:6379/0"

    queue_url: Annotated[
        str | None,
        Field(
            description="Redis connection url of the job queue. Default: same as redis_url",
        ),
    ] = None

    queue_prefix: Annotated[
        str,
        Field(
            description="Prefix for all job queue keys in redis",
        ),
    ] = "files_manager_queue"

    session_ttl: Annotated[
        int,
        Field(
            description="Lifetime of a login session in seconds",
            gt=0,
        ),
    ] = 60 * 60 * 24

    queue_poll_interval: Annotated[
        float,
        Field(
            description="Seconds a worker waits before polling an empty queue again",
            gt=0,
        ),
    ] = 1.0

    queue_visibility_timeout: Annotated[
        float,
        Field(
            description="Seconds a claimed job may stay unacknowledged before it is delivered again",
            gt=0,
        ),
    ] = 300.0

    queue_retry_delay: Annotated[
        float,
        Field(
            description="Seconds before a failed job is retried. The delay doubles with every further attempt",
            ge=0,
        ),
    ] = 1.0

    queue_max_attempts: Annotated[
        int,
        Field(
            description="Number of times a job is delivered before it is given up and recorded as failed",
            gt=0,
        ),
    ] = 5

    image_max_size: Annotated[
        int,
        Field(
            description="Maximum width and height (in pixels) of images that thumbnails are created for",
            gt=0,
        ),
    ] = 8000

    @model_validator(mode="after")
    def set_defaults(self: Any) -> "Settings":
        if not self.elastic_host:
            self.elastic_host = ("https" if self.elastic_password else "http") + "://localhost:9200"
        if self.elastic_verify_ssl is None:
            self.elastic_verify_ssl = self.elastic_host not in {
                "http://localhost:9200",
                "https://localhost:9200",
            }
        if not self.queue_url:
            self.queue_url = self.redis_url
        return self

    model_config = SettingsConfigDict(env_prefix=ENV_PREFIX)


@functools.lru_cache()
def get_settings() -> Settings:
    # load_dotenv does not override variables that are already set in the environment
    temp = Settings()
    load_dotenv(temp.env_file, override=False)
    return Settings()


if __name__ == "__main__":
    # Echo the settings
    for k, v in get_settings().model_dump().items():
        print(f"{ENV_PREFIX.upper()}{k.upper()}={v}")
