"""Password hashing utilities.

Learn: Uses bcrypt for secure password hashing. bcrypt automatically
handles salting and is resistant to rainbow table attacks.
The work factor (PASSGATE_BCRYPT_ROUNDS, default 12) takes ~100ms per
hash on modern hardware, so every call runs in a worker thread to keep
the event loop free.

Federated accounts never log in locally, but the password_hash column is
required — they get a hash of random bytes nobody knows.
"""

import asyncio
import functools
import secrets
from typing import Optional

import bcrypt

from passgate.config import settings


def _hash_sync(password: str, rounds: int) -> str:
    # bcrypt's 72-byte limit
    pw_bytes = password.encode("utf-8")[:72]
    return bcrypt.hashpw(pw_bytes, bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def _verify_sync(password: str, password_hash: str) -> bool:
    try:
        pw_bytes = password.encode("utf-8")[:72]
        return bcrypt.checkpw(pw_bytes, password_hash.encode("utf-8"))
    except (ValueError, TypeError):
        return False


@functools.lru_cache(maxsize=1)
def _dummy_hash() -> str:
    return _hash_sync(secrets.token_urlsafe(16), settings.bcrypt_rounds)


async def hash_password(password: str, rounds: Optional[int] = None) -> str:
    """Hash a password with bcrypt (random salt per call)."""
    return await asyncio.to_thread(
        _hash_sync, password, rounds or settings.bcrypt_rounds
    )


async def verify_password(password: str, password_hash: str) -> bool:
    """Verify a password against its bcrypt hash. Malformed hashes never match."""
    return await asyncio.to_thread(_verify_sync, password, password_hash)


async def burn_verification(password: str) -> None:
    """Spend one verification's worth of time against a throwaway hash.

    Called when the login_id is unknown, so a miss takes as long as a
    wrong password.
    """
    await asyncio.to_thread(_verify_sync, password, _dummy_hash())


async def unusable_password_hash() -> str:
    """Hash of a random secret — the account can't authenticate locally."""
    return await hash_password(secrets.token_urlsafe(32))
