"""Authentication endpoints."""

from fastapi import APIRouter, status

from app.dependencies import AdminUser, CurrentUser, DatabaseSession
from app.schemas.auth import (
    LoginRequest,
    LoginResponse,
    StaffUserCreate,
    StaffUserResponse,
    Token,
    TokenRefresh,
)
from app.services.auth_service import AuthService

router = APIRouter()


@router.post(
    "/login",
    response_model=LoginResponse,
    status_code=status.HTTP_200_OK,
    tags=["Authentication"],
    summary="Staff login",
)
async def login(request: LoginRequest, db: DatabaseSession) -> LoginResponse:
    """
    Exchange staff email and password for JWT tokens.

    Args:
        request: Email and password
        db: Database session

    Returns:
        Access token, refresh token, and user information
    """
    user, tokens = await AuthService(db).authenticate(str(request.email), request.password)
    return LoginResponse(
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token,
        token_type=tokens.token_type,
        user=StaffUserResponse.model_validate(user),
    )


@router.post(
    "/refresh",
    response_model=Token,
    status_code=status.HTTP_200_OK,
    tags=["Authentication"],
    summary="Refresh access token",
)
async def refresh_token(request: TokenRefresh, db: DatabaseSession) -> Token:
    """
    Get a new token pair using a refresh token.

    Args:
        request: Refresh token
        db: Database session

    Returns:
        New access and refresh tokens
    """
    return await AuthService(db).refresh_access_token(request.refresh_token)


@router.get(
    "/me",
    response_model=StaffUserResponse,
    status_code=status.HTTP_200_OK,
    tags=["Authentication"],
    summary="Current staff user",
)
async def me(current_user: CurrentUser) -> StaffUserResponse:
    """Return the signed-in staff user."""
    return StaffUserResponse.model_validate(current_user)


@router.get(
    "/staff",
    response_model=list[StaffUserResponse],
    tags=["Authentication"],
    summary="List clinic staff (admin only)",
)
async def list_staff(admin_user: AdminUser, db: DatabaseSession) -> list[StaffUserResponse]:
    """List the staff of the admin's clinic."""
    rows = await AuthService(db).list_staff(admin_user["clinic_id"])
    return [StaffUserResponse.model_validate(row) for row in rows]


@router.post(
    "/staff",
    response_model=StaffUserResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Authentication"],
    summary="Add a staff member (admin only)",
)
async def create_staff(
    data: StaffUserCreate,
    admin_user: AdminUser,
    db: DatabaseSession,
) -> StaffUserResponse:
    """
    Add a staff member to the admin's clinic.

    Args:
        data: Email, password, name and role
        admin_user: Authenticated admin
        db: Database session

    Returns:
        The new staff user
    """
    user = await AuthService(db).create_staff_user(admin_user["clinic_id"], data)
    return StaffUserResponse.model_validate(user)
