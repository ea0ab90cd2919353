"""API Endpoints for registering users."""

from fastapi import APIRouter, Depends, status

from files_manager.api.auth import authenticated_user, get_services
from files_manager.models import RegisterBody, User
from files_manager.services import Services

app_users = APIRouter(tags=["users"])


@app_users.post("/users", status_code=status.HTTP_201_CREATED)
async def create_user(body: RegisterBody | None = None, services: Services = Depends(get_services)) -> User:
    """Register a new user. Fails with 400 if email or password is missing, or if the email is already taken."""
    email, password = (body or RegisterBody()).validated()
    return await services.users.register(email, password)


@app_users.get("/users/me")
async def get_current_user(user: User = Depends(authenticated_user)) -> User:
    """Get the user belonging to the current session."""
    return user
