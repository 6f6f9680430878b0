"""Shared FastAPI dependencies."""

from beanie import PydanticObjectId
from bson.errors import InvalidId
from fastapi import Request

from app.core.exceptions import ForbiddenError, UnauthorizedError
from app.core.logging import bind_user_id
from app.core.security import load_access_token
from app.models.user import User
from app.services.payments import PaymentWorkflow


def _bearer_token(request: Request) -> str | None:
    header = request.headers.get("Authorization") or ""
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


async def get_current_user(request: Request) -> User:
    """Dependency: load session from the bearer token and return User."""
    token = _bearer_token(request)
    if not token:
        raise UnauthorizedError("Unauthorized, please login to continue")
    payload = load_access_token(token)
    if not payload:
        raise UnauthorizedError("Invalid or expired session")
    user_id = payload.get("user_id")
    if not user_id:
        raise UnauthorizedError("Invalid session")
    try:
        user = await User.get(PydanticObjectId(user_id))
    except InvalidId:
        raise UnauthorizedError("Invalid session")
    if not user:
        raise UnauthorizedError("User not found")
    bind_user_id(str(user.id))
    return user


async def require_admin(request: Request) -> User:
    """Dependency: require current user to have role admin."""
    user = await get_current_user(request)
    if not user.is_admin:
        raise ForbiddenError("You do not have permission to view this route")
    return user


async def require_subscriber(request: Request) -> User:
    """Dependency: admins, or users with an active subscription."""
    user = await get_current_user(request)
    if not user.is_admin and not user.has_active_subscription:
        raise ForbiddenError("Please subscribe to access this route.")
    return user


def get_payment_workflow(request: Request) -> PaymentWorkflow:
    return request.app.state.payment_workflow
