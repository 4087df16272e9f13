"""Fernet encryption for provider credentials at rest.

``ENCRYPTION_MASTER_KEY`` may list several comma-separated keys. The first
encrypts; all of them decrypt. Rotating means prepending a new key, running
``movie-engine providers rotate-keys``, then dropping the old key.
"""

from functools import lru_cache

from cryptography.fernet import Fernet, InvalidToken, MultiFernet

from movie_engine.config import settings
from movie_engine.logging import get_logger

logger = get_logger(__name__)


class EncryptionError(Exception):
    pass


def _master_keys() -> list[str]:
    keys = [k.strip() for k in (settings.encryption_master_key or "").split(",") if k.strip()]
    if not keys:
        # Stored credentials become unreadable once this process exits
        logger.warning(
            "encryption_using_generated_key",
            hint="Set ENCRYPTION_MASTER_KEY so stored provider keys survive restarts",
        )
        keys = [Fernet.generate_key().decode()]
    return keys


@lru_cache(maxsize=1)
def get_fernet() -> MultiFernet:
    try:
        return MultiFernet([Fernet(key.encode()) for key in _master_keys()])
    except ValueError as e:
        raise EncryptionError(f"ENCRYPTION_MASTER_KEY is not a valid Fernet key: {e}") from e


def encrypt_secret(secret: str) -> str:
    if not secret:
        raise EncryptionError("Cannot encrypt empty secret")
    return get_fernet().encrypt(secret.encode()).decode()


def decrypt_secret(encrypted: str) -> str:
    """Decrypt a stored credential with any configured key."""
    if not encrypted:
        raise EncryptionError("Cannot decrypt empty secret")
    try:
        return get_fernet().decrypt(encrypted.encode()).decode()
    except InvalidToken as e:
        raise EncryptionError(
            "credential does not decrypt with any configured key "
            "(ENCRYPTION_MASTER_KEY changed?)"
        ) from e


def rotate_secret(encrypted: str) -> str:
    """Re-encrypt a stored credential under the first (current) key."""
    try:
        return get_fernet().rotate(encrypted.encode()).decode()
    except InvalidToken as e:
        raise EncryptionError("credential does not decrypt with any configured key") from e


def generate_master_key() -> str:
    return Fernet.generate_key().decode()
