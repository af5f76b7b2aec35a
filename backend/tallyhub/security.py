"""
TallyHub Backend — Password Hashing
=====================================

What:  bcrypt hashing and verification for user passwords.
Why:   Passwords are stored only as salted adaptive hashes.
How:   bcrypt runs in a worker thread (asyncio.to_thread) because a single hash
       at the default work factor takes tens of milliseconds of pure CPU, which
       would otherwise stall every request on the event loop.

bcrypt only reads the first 72 bytes of its input and recent releases raise on
longer values. Both functions truncate the UTF-8 encoding to 72 bytes so hash
and verify always see the same input.

verify_password never raises: a malformed stored hash or a non-string
candidate is simply a failed verification.
"""

import asyncio
import logging

import bcrypt

logger = logging.getLogger(__name__)

BCRYPT_MAX_BYTES = 72


def _encode(password: str) -> bytes:
    return password.encode("utf-8")[:BCRYPT_MAX_BYTES]


def _hash_sync(password: str, rounds: int) -> str:
    return bcrypt.hashpw(_encode(password), bcrypt.gensalt(rounds=rounds)).decode("ascii")


def _verify_sync(password: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(_encode(password), hashed.encode("ascii"))
    except (ValueError, TypeError, AttributeError, UnicodeEncodeError) as e:
        logger.warning("Password verification failed on malformed input: %s", type(e).__name__)
        return False


async def hash_password(password: str, rounds: int = 10) -> str:
    """Hash `password` with a fresh salt at the given work factor."""
    return await asyncio.to_thread(_hash_sync, password, rounds)


async def verify_password(password: str, hashed: str) -> bool:
    """True when `password` matches `hashed`; False on mismatch or malformed input."""
    return await asyncio.to_thread(_verify_sync, password, hashed)
