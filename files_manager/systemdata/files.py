"""
The metadata tree of files and folders.

Every lookup is scoped to an owner: a node owned by someone else is reported exactly like a
node that does not exist, so users cannot discover each other's files. The only exception is
lookup(), which the content retrieval path uses to decide whether a node is public.
"""

import time
from typing import Awaitable, Callable

from elasticsearch import AsyncElasticsearch, NotFoundError

from files_manager.errors import InvalidInput, MissingField, NotFound, ParentNotFolder, ParentNotFound
from files_manager.models import PAGE_SIZE, ROOT_ID, FileNode, NewFileNode, normalize_parent_id

StoreContent = Callable[[bytes], Awaitable[str]]
DiscardContent = Callable[[str], Awaitable[None]]

# elasticsearch refuses to page beyond its index.max_result_window setting (10000 by default)
MAX_RESULT_WINDOW = 10_000


class MetadataTree:
    def __init__(self, elastic: AsyncElasticsearch, index: str):
        self._elastic = elastic
        self._index = index

    async def create(
        self,
        owner: str,
        node: NewFileNode,
        store_content: StoreContent | None = None,
        discard_content: DiscardContent | None = None,
    ) -> FileNode:
        """
        Create a file or folder for this owner.

        The parent is checked first, and only then is store_content called with the content
        of a file or image. Its return value is the storage key recorded on the node.
        If the node cannot be indexed, discard_content is called with that key.
        Raises ParentNotFound or ParentNotFolder if the parent is not an existing folder of the same owner.
        """
        await self.check_parent(owner, node.parent_id)

        storage_key = None
        if node.type != "folder":
            if node.content is None:
                raise MissingField("data")
            if store_content is None:
                raise ValueError("Cannot create a file without a content store")
            storage_key = await store_content(node.content)

        doc = dict(
            user_id=owner,
            name=node.name,
            type=node.type,
            parent_id=str(node.parent_id),
            is_public=node.is_public,
            storage_key=storage_key,
            created=time.time_ns(),
        )
        try:
            res = await self._elastic.index(index=self._index, document=doc, refresh=True)
        except Exception:
            if storage_key is not None and discard_content is not None:
                await discard_content(storage_key)
            raise
        return _file_from_elastic(res["_id"], doc)

    async def check_parent(self, owner: str, parent_id: str | int) -> None:
        if parent_id == ROOT_ID:
            return
        try:
            parent = await self.get(owner, str(parent_id))
        except NotFound:
            raise ParentNotFound()
        if not parent.is_folder:
            raise ParentNotFolder()

    async def get(self, owner: str, file_id: str) -> FileNode:
        """Get the node with this id, if it is owned by owner. Raises NotFound otherwise."""
        node = await self.lookup(file_id)
        if node.user_id != owner:
            raise NotFound()
        return node

    async def lookup(self, file_id: str) -> FileNode:
        """Get the node with this id regardless of its owner. Raises NotFound if it does not exist."""
        if not file_id:
            raise NotFound()
        try:
            doc = await self._elastic.get(index=self._index, id=file_id)
        except NotFoundError:
            raise NotFound()
        return _file_from_elastic(doc["_id"], doc["_source"])

    async def list(self, owner: str, parent_id: str | int | None = None, page: int = 0) -> list[FileNode]:
        """
        List one page (of at most PAGE_SIZE) of the owner's nodes, most recently created first.
        If parent_id is given, only list the direct children of that folder (use 0 for the root).
        Pages that end beyond MAX_RESULT_WINDOW are always empty.
        """
        if page < 0:
            raise InvalidInput("Page should be zero or positive")
        if (page + 1) * PAGE_SIZE > MAX_RESULT_WINDOW:
            return []
        filters: list[dict] = [{"term": {"user_id": owner}}]
        if parent_id is not None:
            filters.append({"term": {"parent_id": str(normalize_parent_id(parent_id))}})
        res = await self._elastic.search(
            index=self._index,
            query={"bool": {"filter": filters}},
            sort=[{"created": {"order": "desc"}}],
            from_=page * PAGE_SIZE,
            size=PAGE_SIZE,
        )
        return [_file_from_elastic(hit["_id"], hit["_source"]) for hit in res["hits"]["hits"]]

    async def set_visibility(self, owner: str, file_id: str, is_public: bool) -> FileNode:
        """Publish or unpublish a node owned by owner. Raises NotFound otherwise."""
        node = await self.get(owner, file_id)
        await self._elastic.update(index=self._index, id=node.id, doc=dict(is_public=is_public), refresh=True)
        return node.model_copy(update=dict(is_public=is_public))

    async def count_files(self) -> int:
        return (await self._elastic.count(index=self._index))["count"]


def _file_from_elastic(file_id: str, doc: dict) -> FileNode:
    return FileNode(
        id=file_id,
        user_id=doc["user_id"],
        name=doc["name"],
        type=doc["type"],
        parent_id=normalize_parent_id(doc.get("parent_id")),
        is_public=doc.get("is_public", False),
        storage_key=doc.get("storage_key"),
    )
