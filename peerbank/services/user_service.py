"""User registration, login and caller resolution."""

import logging

from passlib.context import CryptContext

from peerbank.models.exceptions import (
    InvalidCredentialsError,
    UnauthenticatedError,
    ValidationError,
)
from peerbank.models.user import User
from peerbank.repositories.user_repo import UserRepository
from peerbank.services.sessions import SessionManager

logger = logging.getLogger("peerbank.user_service")

_pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def hash_password(password: str) -> str:
    return _pwd_context.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    try:
        return _pwd_context.verify(password, hashed)
    except ValueError:
        # Unrecognised or corrupt hash
        return False


class UserService:
    """Service layer for user identity."""

    def __init__(self, user_repo: UserRepository, sessions: SessionManager):
        """
        Initialize the UserService.

        Args:
            user_repo: Repository for user data access
            sessions: Session store issuing and resolving tokens
        """
        self._user_repo = user_repo
        self._sessions = sessions

    def register(self, username: str, password: str, email: str = "") -> tuple[str, User]:
        """
        Register a new user and log them in.

        Returns:
            A (session token, User) pair

        Raises:
            ValidationError: If the username or password is empty
            UsernameTakenError: If the username already exists
        """
        username = username.strip()
        if not username:
            raise ValidationError("Username must not be empty")
        if not password:
            raise ValidationError("Password must not be empty")

        user = self._user_repo.create(
            User(
                id=None,
                username=username,
                email=email,
                password_hash=hash_password(password),
            )
        )
        logger.info("Registered user %s (id %s)", user.username, user.id)
        return self._sessions.issue(user.id), user

    def login(self, username: str, password: str) -> tuple[str, User]:
        """
        Check credentials and open a session.

        Raises:
            InvalidCredentialsError: If the user is unknown or the password is wrong
        """
        user = self._user_repo.find_by_username(username.strip())
        if user is None or not verify_password(password, user.password_hash):
            logger.warning("Failed login for %s", username)
            raise InvalidCredentialsError("Invalid credentials")
        return self._sessions.issue(user.id), user

    def resolve_caller(self, token: str | None) -> int:
        """
        Map a session token to its user id.

        Raises:
            UnauthenticatedError: If the token is missing, unknown or expired
        """
        if not token:
            raise UnauthenticatedError("Missing session token")
        user_id = self._sessions.lookup(token)
        if user_id is None:
            raise UnauthenticatedError("Invalid or expired session token")
        return user_id

    def logout(self, token: str) -> None:
        self._sessions.revoke(token)
