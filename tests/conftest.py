import fakeredis
import pytest
from httpx import ASGITransport, AsyncClient

from files_manager import api
from files_manager.config import Settings
from files_manager.connections import FilesManagerConnections, connect_elastic
from files_manager.queue import JobQueue
from files_manager.services import Services
from files_manager.systemdata.indices import create_or_update_indices, delete_indices

FILES_MANAGER_TESTS_INDEX = "files_manager_unittest"


@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


@pytest.fixture()
def settings(tmp_path) -> Settings:
    return Settings(
        folder_path=tmp_path / "files",
        system_index=FILES_MANAGER_TESTS_INDEX,
        queue_poll_interval=0.01,
    )


@pytest.fixture()
async def redis_client():
    client = fakeredis.FakeAsyncRedis(decode_responses=True)
    await client.flushall()
    yield client
    await client.flushall()
    await client.aclose()


@pytest.fixture()
async def queue(redis_client, settings) -> JobQueue:
    return JobQueue(redis_client, prefix=settings.queue_prefix, poll_interval=settings.queue_poll_interval)


@pytest.fixture()
async def elastic(settings):
    """
    Connection to a real elasticsearch server with fresh system indices.
    Tests using this fixture are skipped if no server can be reached.
    """
    elastic = connect_elastic(settings)
    if not await elastic.ping():
        await elastic.close()
        pytest.skip(f"Elasticsearch not available at {settings.elastic_host}, skipping tests needing the metadata store")
    await delete_indices(elastic, settings.system_index)
    await create_or_update_indices(elastic, settings.system_index)
    yield elastic
    await delete_indices(elastic, settings.system_index)
    await elastic.close()


@pytest.fixture()
async def services(elastic, redis_client, settings) -> Services:
    return Services(FilesManagerConnections(elastic=elastic, sessions=redis_client), settings)


@pytest.fixture()
async def client(services):
    api.app.state.services = services
    async with AsyncClient(transport=ASGITransport(app=api.app), base_url="http://test", follow_redirects=False) as client:
        yield client
