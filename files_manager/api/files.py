"""API Endpoints for uploading, listing, publishing and downloading files."""

import mimetypes
from typing import Annotated

from fastapi import APIRouter, Depends, Path, Query, Response, Security, status

from files_manager.api.auth import authenticated_user, get_services, token_scheme
from files_manager.models import FileNode, UploadBody, User
from files_manager.services import Services

app_files = APIRouter(tags=["files"])

FileId = Annotated[str, Path(description="Id of the file or folder")]


@app_files.post("/files", status_code=status.HTTP_201_CREATED)
async def upload(
    body: UploadBody | None = None,
    user: User = Depends(authenticated_user),
    services: Services = Depends(get_services),
) -> FileNode:
    """
    Create a folder, or upload a file or image.

    Files and images need base64 encoded `data`. For images, thumbnails of width 100, 250 and 500
    are created in the background after the upload returns.
    """
    return await services.access.upload(user, body or UploadBody())


@app_files.get("/files/{file_id}")
async def get_file(
    file_id: FileId,
    user: User = Depends(authenticated_user),
    services: Services = Depends(get_services),
) -> FileNode:
    """Get the metadata of one of your files or folders."""
    return await services.files.get(user.id, file_id)


@app_files.get("/files")
async def list_files(
    parent_id: Annotated[str | None, Query(alias="parentId", description="Only list items in this folder (0 for root)")] = None,
    page: Annotated[int, Query(ge=0, description="Page number, starting at 0. Every page has up to 20 items")] = 0,
    user: User = Depends(authenticated_user),
    services: Services = Depends(get_services),
) -> list[FileNode]:
    """List your files and folders, most recent first."""
    return await services.files.list(user.id, parent_id=parent_id, page=page)


@app_files.put("/files/{file_id}/publish")
async def publish(
    file_id: FileId,
    user: User = Depends(authenticated_user),
    services: Services = Depends(get_services),
) -> FileNode:
    """Make one of your files public, so anyone can read its content."""
    return await services.access.publish(user, file_id)


@app_files.put("/files/{file_id}/unpublish")
async def unpublish(
    file_id: FileId,
    user: User = Depends(authenticated_user),
    services: Services = Depends(get_services),
) -> FileNode:
    """Make one of your files private again."""
    return await services.access.unpublish(user, file_id)


@app_files.get("/files/{file_id}/data")
async def get_file_data(
    file_id: FileId,
    size: Annotated[str | None, Query(description="Thumbnail width (100, 250 or 500) of an image")] = None,
    token: str | None = Security(token_scheme),
    services: Services = Depends(get_services),
) -> Response:
    """
    Get the content of a file. Public files can be read without a token.
    Private files are only visible to their owner, anyone else gets a 404.
    """
    node, content = await services.access.read_content(token, file_id, size)
    media_type = mimetypes.guess_type(node.name)[0] or "application/octet-stream"
    return Response(content=content, media_type=media_type)
