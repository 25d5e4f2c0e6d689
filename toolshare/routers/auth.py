"""
Authentication API endpoints for registration and login.
"""

from fastapi import APIRouter, Depends, status
from toolshare.config import settings
from toolshare.models.user import User
from toolshare.schemas.auth import LoginRequest, RegisterRequest, TokenResponse
from toolshare.schemas.user import UserResponse
from toolshare.services.auth import AuthService
from toolshare.utils.dependencies import get_auth_service, get_current_user


router = APIRouter(prefix="/auth", tags=["Authentication"])


def _token_response(auth_service: AuthService, user: User) -> TokenResponse:
    return TokenResponse(
        access_token=auth_service.create_token(user),
        expires_in=settings.access_token_expire_minutes * 60,
        user=UserResponse.model_validate(user),
    )


@router.post(
    "/register",
    response_model=TokenResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register",
    description="Create an account and return an access token"
)
async def register(
    register_data: RegisterRequest,
    auth_service: AuthService = Depends(get_auth_service)
) -> TokenResponse:
    """
    Register a new user.

    Raises:
        DuplicateResourceError: If the email is already registered
    """
    user = await auth_service.register_user(register_data)
    return _token_response(auth_service, user)


@router.post(
    "/login",
    response_model=TokenResponse,
    status_code=status.HTTP_200_OK,
    summary="User login",
    description="Authenticate user with email and password, returns a JWT access token"
)
async def login(
    login_data: LoginRequest,
    auth_service: AuthService = Depends(get_auth_service)
) -> TokenResponse:
    """
    Authenticate user and return an access token.

    Raises:
        InvalidCredentialsError: If credentials are invalid
    """
    user = await auth_service.authenticate_user(login_data.email, login_data.password)
    return _token_response(auth_service, user)


@router.get(
    "/me",
    response_model=UserResponse,
    summary="Current user"
)
async def get_me(current_user: User = Depends(get_current_user)) -> UserResponse:
    return UserResponse.model_validate(current_user)
