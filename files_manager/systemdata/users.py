import base64
import binascii
import hashlib
import hmac

from elasticsearch import AsyncElasticsearch, NotFoundError

from files_manager.errors import DuplicateEmail, Unauthorized
from files_manager.models import User
from files_manager.queue import JobQueue


def hash_password(password: str) -> str:
    """
    Hash a password using unsalted SHA-1.
    This matches the hashes of existing accounts, so it cannot be changed without a migration.
    """
    return hashlib.sha1(password.encode("utf-8")).hexdigest()


def decode_basic_credentials(credentials: str) -> tuple[str, str]:
    """
    Decode the base64 encoded 'email:password' part of a basic auth header.
    Raises Unauthorized if the credentials cannot be decoded or do not have exactly two fields.
    """
    try:
        decoded = base64.b64decode(credentials, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        raise Unauthorized()
    fields = decoded.split(":")
    if len(fields) != 2:
        raise Unauthorized()
    email, password = fields
    return email, password


class CredentialVerifier:
    """Registers users and checks their email/password credentials against the users index"""

    def __init__(self, elastic: AsyncElasticsearch, index: str, queue: JobQueue):
        self._elastic = elastic
        self._index = index
        self._queue = queue

    async def _find_by_email(self, email: str) -> tuple[str, dict] | None:
        res = await self._elastic.search(index=self._index, query={"term": {"email": email}}, size=1)
        if res["hits"]["total"]["value"] == 0:
            return None
        hit = res["hits"]["hits"][0]
        return hit["_id"], hit["_source"]

    async def authenticate(self, credentials: str) -> str:
        """Check basic auth credentials, and return the user id. Raises Unauthorized on any failure."""
        email, password = decode_basic_credentials(credentials)
        found = await self._find_by_email(email)
        # Same error for unknown email and wrong password, so we don't reveal which accounts exist
        if found is None:
            raise Unauthorized()
        user_id, doc = found
        if not hmac.compare_digest(doc["password"], hash_password(password)):
            raise Unauthorized()
        return user_id

    async def register(self, email: str, password: str) -> User:
        """Create a new user and enqueue its welcome job. Raises DuplicateEmail if the email is taken."""
        if await self._find_by_email(email) is not None:
            raise DuplicateEmail()
        doc = dict(email=email, password=hash_password(password))
        res = await self._elastic.index(index=self._index, document=doc, refresh=True)
        user = User(id=res["_id"], email=email)
        await self._queue.enqueue("welcome", {"userId": user.id})
        return user

    async def get_user(self, user_id: str | None) -> User | None:
        if not user_id:
            return None
        try:
            doc = await self._elastic.get(index=self._index, id=user_id, source_excludes=["password"])
        except NotFoundError:
            return None
        return User(id=doc["_id"], email=doc["_source"]["email"])

    async def count_users(self) -> int:
        return (await self._elastic.count(index=self._index))["count"]
