from files_manager.access import AccessController
from files_manager.config import Settings
from files_manager.connections import FilesManagerConnections
from files_manager.objectstorage.localstore import LocalContentStore
from files_manager.queue import JobQueue
from files_manager.sessions import SessionStore
from files_manager.systemdata.files import MetadataTree
from files_manager.systemdata.indices import create_or_update_indices, files_index_name, users_index_name
from files_manager.systemdata.users import CredentialVerifier
from files_manager.worker import JobRunner, ThumbnailWorker, WelcomeWorker


class Services:
    """
    All components of files_manager, wired to one set of connections.
    This is built once per process and handed to the API (as app.state.services) and to the workers.
    """

    def __init__(self, connections: FilesManagerConnections, settings: Settings):
        self.connections = connections
        self.settings = settings
        self.queue = JobQueue(
            connections.queue,
            prefix=settings.queue_prefix,
            poll_interval=settings.queue_poll_interval,
            visibility_timeout=settings.queue_visibility_timeout,
            retry_delay=settings.queue_retry_delay,
            max_attempts=settings.queue_max_attempts,
        )
        self.sessions = SessionStore(connections.sessions, ttl=settings.session_ttl)
        self.users = CredentialVerifier(connections.elastic, users_index_name(settings.system_index), self.queue)
        self.files = MetadataTree(connections.elastic, files_index_name(settings.system_index))
        self.content = LocalContentStore(settings.folder_path)
        self.access = AccessController(self.sessions, self.users, self.files, self.content, self.queue)

    async def setup(self) -> None:
        await create_or_update_indices(self.connections.elastic, self.settings.system_index)

    def job_runners(self, kinds: list[str] | None = None) -> list[JobRunner]:
        thumbnails = ThumbnailWorker(self.files, self.content, max_size=self.settings.image_max_size)
        runners = [
            JobRunner(self.queue, "thumbnail", thumbnails),
            JobRunner(self.queue, "welcome", WelcomeWorker(self.users)),
        ]
        return [r for r in runners if kinds is None or r.kind in kinds]
