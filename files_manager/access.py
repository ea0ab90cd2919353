"""
Authorization of every file operation.

A request is first resolved to a user through its session token. The user id then scopes
every call into the metadata tree, so users can only see and change their own nodes.
Reading content is the one exception: public nodes can be read by anyone, and private
nodes are reported as not found (never as forbidden) to anyone but their owner.
"""

from files_manager.errors import InvalidInput, NoContent, NotFound, Unauthorized
from files_manager.models import THUMBNAIL_WIDTHS, FileNode, User, UploadBody
from files_manager.objectstorage.localstore import LocalContentStore
from files_manager.queue import JobQueue
from files_manager.sessions import SessionStore
from files_manager.systemdata.files import MetadataTree
from files_manager.systemdata.users import CredentialVerifier


class AccessController:
    def __init__(
        self,
        sessions: SessionStore,
        users: CredentialVerifier,
        files: MetadataTree,
        content: LocalContentStore,
        queue: JobQueue,
    ):
        self.sessions = sessions
        self.users = users
        self.files = files
        self.content = content
        self.queue = queue

    async def identify(self, token: str | None) -> User:
        """Resolve a session token to its user. Raises Unauthorized if the token is missing, expired or unknown."""
        user = await self.users.get_user(await self.sessions.resolve(token))
        if user is None:
            raise Unauthorized()
        return user

    async def upload(self, user: User, body: UploadBody) -> FileNode:
        """
        Create a file or folder owned by user.
        The metadata is created before the thumbnail job is enqueued, so the worker can always find it.
        """
        node = await self.files.create(
            user.id, body.validated(), store_content=self.content.put, discard_content=self.content.delete
        )
        if node.type == "image":
            await self.queue.enqueue("thumbnail", {"fileId": node.id, "userId": user.id})
        return node

    async def publish(self, user: User, file_id: str) -> FileNode:
        return await self.files.set_visibility(user.id, file_id, True)

    async def unpublish(self, user: User, file_id: str) -> FileNode:
        return await self.files.set_visibility(user.id, file_id, False)

    async def read_content(self, token: str | None, file_id: str, size: str | int | None = None) -> tuple[FileNode, bytes]:
        """
        Get a node and its content (or the thumbnail of the given width).
        Public nodes are readable without a token. Private nodes are NotFound for anyone but their owner.
        """
        variant = _thumbnail_width(size)
        node = await self.files.lookup(file_id)
        if not node.is_public:
            user_id = await self.sessions.resolve(token)
            if user_id is None or user_id != node.user_id:
                raise NotFound()
        if node.is_folder or node.storage_key is None:
            raise NoContent()
        return node, await self.content.get(node.storage_key, variant)


def _thumbnail_width(size: str | int | None) -> int | None:
    if size is None or size == "":
        return None
    try:
        width = int(size)
    except ValueError:
        width = None
    if width not in THUMBNAIL_WIDTHS:
        raise InvalidInput(f"Invalid size, should be one of {', '.join(str(w) for w in THUMBNAIL_WIDTHS)}")
    return width
