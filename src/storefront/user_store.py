"""User registry and bearer-token lookup for storefront."""

import hashlib
import logging
import secrets
from pathlib import Path
from typing import Any

from .config import get_data_dir
from .errors import DuplicateUserError, NotAuthenticatedError, ValidationError
from .models import Role, User, _generate_id, _utc_now
from .storage import file_lock, read_json, write_json_atomic

logger = logging.getLogger(__name__)

USERS_FILE = "users.json"
MIN_PASSWORD_LENGTH = 6

# scrypt cost parameters
_SCRYPT_N = 2**14
_SCRYPT_R = 8
_SCRYPT_P = 1


def hash_password(password: str, salt: bytes | None = None) -> str:
    """Return a salted scrypt hash as "scrypt$<salt hex>$<hash hex>"."""
    salt = salt or secrets.token_bytes(16)
    digest = hashlib.scrypt(
        password.encode("utf-8"), salt=salt, n=_SCRYPT_N, r=_SCRYPT_R, p=_SCRYPT_P
    )
    return f"scrypt${salt.hex()}${digest.hex()}"


def verify_password(password: str, stored: str) -> bool:
    try:
        scheme, salt_hex, _ = stored.split("$")
        salt = bytes.fromhex(salt_hex)
    except ValueError:
        return False
    if scheme != "scrypt":
        return False
    return secrets.compare_digest(hash_password(password, salt), stored)


class UserStore:
    """Manages user registration and token authentication."""

    def __init__(self, config_dir: Path | None = None):
        """
        Initialize UserStore.

        Args:
            config_dir: Override data directory (for testing).
        """
        self.config_dir = config_dir or get_data_dir()
        self.users_path = self.config_dir / USERS_FILE
        self.lock_path = self.config_dir / ".users.lock"

    def _load_data(self) -> dict[str, Any]:
        return read_json(self.users_path, {"schema_version": 1, "users": []})

    def list_users(self) -> list[User]:
        return [User.from_dict(u) for u in self._load_data().get("users", [])]

    def add_user(
        self,
        name: str,
        email: str,
        role: Role = Role.USER,
        password: str | None = None,
    ) -> User:
        """
        Register a user and issue a bearer token.

        Without a password the account can only use the token it is issued
        here; login needs a password.

        Raises:
            ValidationError: If name or email is blank, or the password is too short.
            DuplicateUserError: If the email is already registered.
        """
        name = name.strip()
        email = email.strip().lower()
        if not name:
            raise ValidationError.for_field("name", "Name is required")
        if not email:
            raise ValidationError.for_field("email", "Please enter a valid email")
        if password is not None and len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError.for_field(
                "password", f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
            )

        # Use file lock to prevent duplicate emails under concurrent registration
        with file_lock(self.lock_path):
            data = self._load_data()
            for u in data.get("users", []):
                if u["email"] == email:
                    raise DuplicateUserError(email)

            user = User(
                id=_generate_id(),
                name=name,
                email=email,
                role=role,
                token=secrets.token_urlsafe(32),
                password_hash=hash_password(password) if password else "",
                created_at=_utc_now(),
            )
            data["users"].append(user.to_dict())
            write_json_atomic(self.users_path, data)

        logger.info("Registered %s %s", role.value, user.id)
        return user

    def login(self, email: str, password: str) -> User:
        """
        Check credentials and issue a fresh bearer token.

        The new token replaces the previous one.

        Raises:
            NotAuthenticatedError: If the email is unknown or the password is wrong.
        """
        email = email.strip().lower()
        with file_lock(self.lock_path):
            data = self._load_data()
            for u in data.get("users", []):
                if u["email"] != email:
                    continue
                if not verify_password(password, u.get("passwordHash", "")):
                    break
                u["token"] = secrets.token_urlsafe(32)
                write_json_atomic(self.users_path, data)
                logger.info("User %s logged in", u["id"])
                return User.from_dict(u)

        logger.warning("Failed login for %s", email)
        raise NotAuthenticatedError("Invalid credentials")

    def get_user(self, user_id: str) -> User:
        for user in self.list_users():
            if user.id == user_id:
                return user
        raise NotAuthenticatedError(f"Unknown user: {user_id}")

    def authenticate(self, token: str | None) -> User:
        """
        Resolve a bearer token to its user.

        Raises:
            NotAuthenticatedError: If the token is missing or unknown.
        """
        if not token:
            raise NotAuthenticatedError()
        for user in self.list_users():
            if user.token and secrets.compare_digest(user.token, token):
                return user
        raise NotAuthenticatedError("Invalid token")
