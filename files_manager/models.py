import base64
import binascii
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from files_manager.errors import InvalidInput, MissingField

FileType = Literal["folder", "file", "image"]
FILE_TYPES: tuple[FileType, ...] = ("folder", "file", "image")

ROOT_ID = 0
PAGE_SIZE = 20
THUMBNAIL_WIDTHS = (100, 250, 500)


class ApiModel(BaseModel):
    """Base model that (de)serializes as camelCase JSON (userId, parentId, isPublic)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class User(ApiModel):
    """A registered user. The password hash never leaves the users store."""

    id: str
    email: str


class FileNode(ApiModel):
    """A file or folder record in the metadata tree."""

    id: str
    user_id: str
    name: str
    type: FileType
    parent_id: str | int = ROOT_ID
    is_public: bool = False
    # only set for files and images, and never serialized to clients
    storage_key: str | None = Field(default=None, exclude=True)

    @property
    def is_folder(self) -> bool:
        return self.type == "folder"


def normalize_parent_id(parent_id: str | int | None) -> str | int:
    """Map all spellings of 'no parent' to ROOT_ID, and real parent ids to strings"""
    if parent_id is None or parent_id == "" or str(parent_id) == str(ROOT_ID):
        return ROOT_ID
    return str(parent_id)


######################## REQUEST BODIES #########################


class RegisterBody(BaseModel):
    """Body for registering a new user. Missing fields are reported as 400, not as a validation error."""

    email: str | None = None
    password: str | None = None

    def validated(self) -> tuple[str, str]:
        if not self.email:
            raise MissingField("email")
        if not self.password:
            raise MissingField("password")
        return self.email, self.password


class NewFileNode(BaseModel):
    """Upload input after validation: the content is decoded, and the parent id normalized."""

    name: str
    type: FileType
    parent_id: str | int = ROOT_ID
    is_public: bool = False
    content: bytes | None = None


class UploadBody(ApiModel):
    """Body for uploading a file or creating a folder, as sent by the client."""

    name: str | None = None
    type: str | None = None
    parent_id: str | int | None = None
    is_public: bool = False
    data: str | None = Field(None, description="Base64 encoded file content (required unless type is folder)")

    def validated(self) -> NewFileNode:
        if not self.name:
            raise MissingField("name")
        if not self.type or self.type not in FILE_TYPES:
            raise MissingField("type")
        content = None
        if self.type != "folder":
            if not self.data:
                raise MissingField("data")
            try:
                content = base64.b64decode(self.data, validate=True)
            except (binascii.Error, ValueError):
                raise InvalidInput("Invalid data, expected base64 encoded content")
        return NewFileNode(
            name=self.name,
            type=self.type,  # type: ignore[arg-type]
            parent_id=normalize_parent_id(self.parent_id),
            is_public=self.is_public,
            content=content,
        )
