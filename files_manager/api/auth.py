"""Helper methods for authentication, and the login/logout endpoints."""

from fastapi import APIRouter, Depends, Request, Response, Security, status
from fastapi.security import APIKeyHeader
from pydantic import BaseModel, Field

from files_manager.errors import Unauthorized
from files_manager.models import User
from files_manager.services import Services

app_auth = APIRouter(tags=["auth"])

token_scheme = APIKeyHeader(name="X-Token", scheme_name="Session token", auto_error=False)
basic_scheme = APIKeyHeader(
    name="Authorization",
    scheme_name="Basic credentials",
    description="Basic <base64(email:password)>, only used to log in",
    auto_error=False,
)


def get_services(request: Request) -> Services:
    return request.app.state.services


async def authenticated_user(
    token: str | None = Security(token_scheme),
    services: Services = Depends(get_services),
) -> User:
    """
    Authenticates the user based on the X-Token session header. Raises Unauthorized if there is no valid session.
    """
    return await services.access.identify(token)


class TokenResponse(BaseModel):
    token: str = Field(description="Session token, to be sent as X-Token header. Valid for 24 hours.")


@app_auth.get("/connect")
async def connect(
    authorization: str | None = Security(basic_scheme),
    services: Services = Depends(get_services),
) -> TokenResponse:
    """Log in with basic auth credentials and get a session token."""
    scheme, _, credentials = (authorization or "").partition(" ")
    if scheme.lower() != "basic" or not credentials.strip():
        raise Unauthorized()
    user_id = await services.users.authenticate(credentials.strip())
    token = await services.sessions.create_session(user_id)
    return TokenResponse(token=token)


@app_auth.get("/disconnect", status_code=status.HTTP_204_NO_CONTENT)
async def disconnect(
    token: str | None = Security(token_scheme),
    services: Services = Depends(get_services),
):
    """Log out, ending the session of the given token."""
    if not await services.sessions.destroy(token):
        raise Unauthorized()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
