"""FastAPI dependencies."""

from typing import Annotated
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from medislot.core.authorization import Actor, Role
from medislot.core.redis_client import CacheManager, get_redis_client
from medislot.core.security import get_token_subject
from medislot.database import get_db
from medislot.services.doctor_service import DoctorService
from medislot.services.user_service import UserService

# Security
security = HTTPBearer()


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user_id(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
) -> UUID:
    """
    Extract the user ID from the bearer token.

    Raises:
        HTTPException: If the token is invalid, expired or has no usable subject
    """
    user_id = get_token_subject(credentials.credentials)
    if user_id is None:
        raise _unauthorized("Could not validate credentials")
    return user_id


async def get_current_user(
    user_id: Annotated[UUID, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> dict:
    """
    Load the account behind the token.

    Raises:
        HTTPException: If user not found or inactive
    """
    user = await UserService.get_user_by_id(db, user_id)

    if not user:
        raise _unauthorized("User not found")

    if not user["is_active"]:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is deactivated",
        )

    return user


async def get_current_actor(
    user: Annotated[dict, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Actor:
    """
    Build the authorization actor for the current user.

    Doctors are matched to their doctor profile; a doctor account without a
    profile still authenticates, it just owns no appointments.
    """
    role = Role(user["role"])
    doctor_id = None

    if role == Role.DOCTOR:
        profile = await DoctorService().get_doctor_by_user_id(db, user["id"])
        if profile:
            doctor_id = profile["id"]

    return Actor(user_id=user["id"], role=role, doctor_id=doctor_id)


def get_cache_manager() -> CacheManager:
    """Get cache manager backed by the shared Redis client."""
    return CacheManager(get_redis_client())


# Type aliases for dependency injection
DatabaseSession = Annotated[AsyncSession, Depends(get_db)]
CurrentActor = Annotated[Actor, Depends(get_current_actor)]
CacheManagerDep = Annotated[CacheManager, Depends(get_cache_manager)]
