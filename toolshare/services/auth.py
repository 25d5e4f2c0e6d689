"""
Authentication service for registration, login and token resolution.
"""

from typing import Optional
from jose import JWTError, ExpiredSignatureError
from toolshare.database import UnitOfWork
from toolshare.models.user import User
from toolshare.repositories.user import UserRepository
from toolshare.schemas.auth import RegisterRequest
from toolshare.utils.auth import create_access_token, hash_password, verify_password, verify_token
from toolshare.utils.exceptions import (
    BadRequestError,
    DuplicateResourceError,
    InvalidCredentialsError,
    InvalidTokenError,
    TokenExpiredError,
)
from toolshare.utils.validators import parse_uuid
import logging

logger = logging.getLogger(__name__)


class AuthService:
    """Registers users, checks credentials and resolves bearer tokens."""

    def __init__(self, uow: UnitOfWork):
        self.uow = uow

    async def register_user(self, user_data: RegisterRequest) -> User:
        """
        Create a new account.

        Raises:
            BadRequestError: If the email or password is invalid
            DuplicateResourceError: If the email is already registered
        """
        try:
            email = User.validate_email_format(user_data.email)
            hashed = hash_password(user_data.password)
        except ValueError as e:
            raise BadRequestError(str(e))

        async with self.uow.transaction() as session:
            user_repo = UserRepository(session)
            if await user_repo.email_exists(email):
                raise DuplicateResourceError("User", email)
            user = await user_repo.create_user({
                "email": email,
                "hashed_password": hashed,
                "name": user_data.name,
                "bio": user_data.bio,
                "location": user_data.location,
            })
        return user

    async def authenticate_user(self, email: str, password: str) -> User:
        """
        Check an email/password pair.

        Raises:
            InvalidCredentialsError: If the credentials don't match an account
        """
        async with self.uow.session() as session:
            user = await UserRepository(session).get_by_email(email)

        if user is None or not verify_password(password, user.hashed_password):
            logger.warning(f"Failed login attempt for {email}")
            raise InvalidCredentialsError()

        logger.info(f"User logged in: {user.email}")
        return user

    def create_token(self, user: User) -> str:
        return create_access_token(user.id, user.email)

    async def get_current_user(self, token: str) -> User:
        """
        Resolve a bearer token to its user.

        Raises:
            TokenExpiredError: If the token has expired
            InvalidTokenError: If the token is malformed or the user no longer exists
        """
        try:
            payload = verify_token(token)
        except ExpiredSignatureError:
            raise TokenExpiredError()
        except JWTError as e:
            raise InvalidTokenError(f"Invalid token: {e}")

        try:
            user_id = parse_uuid(payload.user_id, "token subject")
        except BadRequestError:
            raise InvalidTokenError()

        async with self.uow.session() as session:
            user: Optional[User] = await UserRepository(session).get_by_id(user_id)
        if user is None:
            raise InvalidTokenError("User no longer exists")
        return user
