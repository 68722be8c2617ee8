"""FastAPI dependencies."""

from typing import Annotated, Any
from uuid import UUID

from fastapi import Depends, Header, HTTPException, Query, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.exceptions import ForbiddenException, RateLimitException
from app.core.redis_client import CacheManager, RateLimiter, get_redis_client
from app.core.security import decode_access_token, secrets_match
from app.database import get_db
from app.services.auth_service import AuthService

# Security
security = HTTPBearer()


def _credentials_error(detail: str = "Could not validate credentials") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user_id(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
) -> UUID:
    """
    Extract and validate user ID from JWT token.

    Args:
        credentials: Bearer token credentials

    Returns:
        User ID from token

    Raises:
        HTTPException: If token is invalid or expired
    """
    payload = decode_access_token(credentials.credentials)
    if payload is None:
        raise _credentials_error()

    user_id_str = payload.get("sub")
    if user_id_str is None or not isinstance(user_id_str, str):
        raise _credentials_error()

    try:
        return UUID(user_id_str)
    except ValueError:
        raise _credentials_error("Invalid user ID format") from None


async def get_current_user(
    user_id: Annotated[UUID, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> dict:
    """
    Get the signed-in staff user from the database.

    The returned dict carries ``clinic_id``; every dashboard query is scoped
    to it.

    Raises:
        HTTPException: If user not found or inactive
    """
    user = await AuthService(db).get_user_by_id(user_id)

    if not user:
        raise _credentials_error("User not found")

    if not user["is_active"]:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is deactivated",
        )

    return user


async def require_admin(current_user: Annotated[dict, Depends(get_current_user)]) -> dict:
    """Ensure the current user has the admin role."""
    if current_user.get("role") != "admin":
        raise ForbiddenException("Admin access required")
    return current_user


def get_cache_manager(redis_client: Annotated[Any, Depends(get_redis_client)]) -> CacheManager:
    """Cache manager on the shared Redis client."""
    return CacheManager(redis_client)


def require_cron_secret(
    key: Annotated[str | None, Query(description="Cron secret")] = None,
    x_cron_secret: Annotated[str | None, Header()] = None,
) -> None:
    """
    Guard for scheduled-job endpoints.

    The secret may come as the ``key`` query parameter or the
    ``X-Cron-Secret`` header.
    """
    if not secrets_match(key or x_cron_secret, settings.cron_secret):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")


def require_stats_secret(
    key: Annotated[str | None, Query(description="Stats secret")] = None,
    x_cron_secret: Annotated[str | None, Header()] = None,
) -> None:
    """Guard for queue statistics; open when no ``STATS_SECRET`` is configured."""
    if settings.stats_secret and not secrets_match(key or x_cron_secret, settings.stats_secret):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")


def require_platform_secret(
    key: Annotated[str | None, Query(description="Platform secret")] = None,
    x_platform_secret: Annotated[str | None, Header()] = None,
) -> None:
    """
    Guard for data that spans every clinic.

    Clinic staff tokens never qualify; with no ``PLATFORM_SECRET`` configured
    the guarded endpoints are closed.
    """
    if not secrets_match(key or x_platform_secret, settings.platform_secret):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")


def client_ip(request: Request) -> str:
    """
    Address the public rate limit is keyed on.

    ``X-Forwarded-For`` is only read when the direct peer is one of
    ``TRUSTED_PROXIES``; the client is then the right-most hop that is not a
    trusted proxy.
    """
    peer = request.client.host if request.client else "unknown"
    trusted = settings.trusted_proxies
    if peer not in trusted:
        return peer

    hops = [hop.strip() for hop in request.headers.get("x-forwarded-for", "").split(",") if hop.strip()]
    for hop in reversed(hops):
        if hop not in trusted:
            return hop
    return peer


def public_rate_limit(
    request: Request,
    redis_client: Annotated[Any, Depends(get_redis_client)],
) -> None:
    """
    Per-IP limit for the unauthenticated booking widget.

    Raises:
        RateLimitException: If the caller exceeded ``RATE_LIMIT_PER_MINUTE``
    """
    limiter = RateLimiter(redis_client)
    if not limiter.check_rate_limit(
        f"rate_limit:public:{client_ip(request)}",
        settings.rate_limit_per_minute,
    ):
        raise RateLimitException("Too many requests. Please try again in a minute.")


# Type aliases for dependency injection
DatabaseSession = Annotated[AsyncSession, Depends(get_db)]
CurrentUserId = Annotated[UUID, Depends(get_current_user_id)]
CurrentUser = Annotated[dict, Depends(get_current_user)]
AdminUser = Annotated[dict, Depends(require_admin)]
RedisClient = Annotated[Any, Depends(get_redis_client)]
CacheManagerDep = Annotated[CacheManager, Depends(get_cache_manager)]
