"""Password hashing with bcrypt.

Hashing is CPU-bound. Route handlers run on FastAPI's worker thread pool, and
a process-wide semaphore caps how many hash or check operations run at once
so a burst of logins cannot starve the other workers.
"""

import logging
import secrets
import threading

import bcrypt

from backend.core import config

logger = logging.getLogger(__name__)

BCRYPT_MAX_BYTES = 72

_hash_slots = threading.BoundedSemaphore(config.PASSWORD_HASH_CONCURRENCY)


def _encode(password: str) -> bytes:
    # bcrypt ignores (or rejects) input beyond 72 bytes
    return password.encode("utf-8")[:BCRYPT_MAX_BYTES]


def hash_password(password: str) -> str:
    salt = bcrypt.gensalt(rounds=config.BCRYPT_ROUNDS)
    with _hash_slots:
        hashed = bcrypt.hashpw(_encode(password), salt)
    return hashed.decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Check ``password`` against a stored bcrypt digest.

    ``bcrypt.checkpw`` compares in constant time. A stored value that is not
    a bcrypt digest counts as a mismatch.
    """
    try:
        with _hash_slots:
            return bcrypt.checkpw(_encode(password), password_hash.encode("utf-8"))
    except (ValueError, TypeError):
        logger.warning("Stored password hash is not a valid bcrypt digest")
        return False


def generate_random_secret() -> str:
    return secrets.token_hex(32)
