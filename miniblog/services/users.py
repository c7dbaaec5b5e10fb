import base64
import hashlib
import hmac
import logging
import secrets
from typing import Tuple

from miniblog.config import MergedSettings

from .interfaces import UserServices

log = logging.getLogger(__name__)


def hash_password(password: str, salt: str, iterations: int = 1000) -> str:
    """PBKDF2-HMAC-SHA1 over the UTF-8 password, 32 bytes, base64 encoded."""
    digest = hashlib.pbkdf2_hmac("sha1", password.encode("utf-8"), salt.encode("utf-8"), iterations, dklen=32)
    return base64.b64encode(digest).decode("ascii")


def generate_credentials(password: str, iterations: int = 1000) -> Tuple[str, str]:
    """Returns a fresh (hash, salt) pair for the app-settings 'user' section."""
    salt = secrets.token_hex(16)
    return hash_password(password, salt, iterations), salt


class BlogUserServices(UserServices):
    """Validates the single blog owner account configured in settings."""

    def __init__(self, settings: MergedSettings):
        self.username = settings.USER_NAME
        self.password_hash = settings.USER_PASSWORD_HASH
        self.salt = settings.USER_SALT
        self.iterations = settings.PASSWORD_HASH_ITERATIONS
        if not self.password_hash:
            log.warning("No password hash configured for the blog owner. Logins will be rejected.")

    def validate_user(self, username: str, password: str) -> bool:
        if not self.password_hash or not username or password is None:
            return False
        username_ok = hmac.compare_digest(username.encode("utf-8"), self.username.encode("utf-8"))
        candidate = hash_password(password, self.salt, self.iterations)
        password_ok = hmac.compare_digest(candidate, self.password_hash)
        if not (username_ok and password_ok):
            log.info(f"Rejected credentials for user '{username}'.")
        return username_ok and password_ok
