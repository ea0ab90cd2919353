"""
files_manager REST API and job workers
"""

import argparse
import asyncio
import inspect
import logging
import signal
from pathlib import Path

import uvicorn
from uvicorn.config import LOGGING_CONFIG

from files_manager.config import ENV_PREFIX, get_settings
from files_manager.connections import files_manager_connections
from files_manager.queue import JOB_KINDS
from files_manager.services import Services
from files_manager.worker import run_workers


def run(args):
    settings = get_settings()
    logging.info(f"Starting server at port {args.port}, debug={not args.nodebug}")
    logging.info(
        f"Metadata store: {settings.elastic_host}, session store: {settings.redis_url}, "
        f"job queue: {settings.queue_url}, storage: {settings.folder_path}"
    )
    logging.info(
        "To change server config, create an .env file and/or set environment parameters,\n"
        f"{' ' * 26}see files_manager/config.py for more information.\n"
    )
    log_config = "logging.yml" if Path("logging.yml").exists() else LOGGING_CONFIG
    uvicorn.run("files_manager.api:app", host="0.0.0.0", reload=not args.nodebug, port=int(args.port), log_config=log_config)


async def worker(args):
    kinds = [args.kind] if args.kind else list(JOB_KINDS)
    async with files_manager_connections() as connections:
        services = Services(connections, get_settings())
        await services.setup()

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, services.queue.stop)

        logging.info(f"Processing jobs of kind {', '.join(kinds)}, press [control+c] to stop")
        await run_workers(services.job_runners(kinds))


async def create_indices(_args):
    async with files_manager_connections() as connections:
        await Services(connections, get_settings()).setup()
        logging.info(f"Created or updated the {get_settings().system_index} indices")


def config(_args):
    for k, v in get_settings().model_dump().items():
        if v is None:
            print(f"#{ENV_PREFIX.upper()}{k.upper()}=")
        else:
            print(f"{ENV_PREFIX.upper()}{k.upper()}={v}")


def main():
    parser = argparse.ArgumentParser(description=__doc__, prog="python -m files_manager")

    subparsers = parser.add_subparsers(dest="action", title="action", help="Action to perform:", required=True)
    p = subparsers.add_parser("run", help="Run the backend API in development mode")
    p.add_argument(
        "--no-debug",
        action="store_true",
        dest="nodebug",
        help="Disable debug mode (useful for testing downstream clients)",
    )
    p.add_argument("-p", "--port", help="Port", default=5000)
    p.set_defaults(func=run)

    p = subparsers.add_parser("worker", help="Run the job workers (thumbnails and welcome messages)")
    p.add_argument("-k", "--kind", choices=JOB_KINDS, help="Only process jobs of this kind (default: all)")
    p.set_defaults(func=worker)

    p = subparsers.add_parser("create-indices", help="Create or update the elasticsearch system indices")
    p.set_defaults(func=create_indices)

    p = subparsers.add_parser("config", help="Print the current settings as environment variables")
    p.set_defaults(func=config)

    args = parser.parse_args()

    logging.basicConfig(format="[%(levelname)-7s:%(name)-15s] %(message)s", level=logging.INFO)
    es_logger = logging.getLogger("elasticsearch")
    es_logger.setLevel(logging.WARNING)

    if inspect.iscoroutinefunction(args.func):
        asyncio.run(args.func(args))
    else:
        args.func(args)


if __name__ == "__main__":
    main()
