"""Argon2id credential hashing shared by registration and sign-in."""

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError

from stallmates.settings import settings

hasher = PasswordHasher(
    time_cost=settings.password_time_cost,
    memory_cost=settings.password_memory_kib,
    parallelism=settings.password_parallelism,
)


def hash_password(password: str) -> str:
    return hasher.hash(password)


def verify_password(stored_hash: str, password: str) -> bool:
    """False for a wrong password or a hash this hasher cannot read."""
    if not stored_hash:
        return False
    try:
        return hasher.verify(stored_hash, password)
    except (VerificationError, InvalidHashError):
        return False


def needs_rehash(stored_hash: str) -> bool:
    """True when ``stored_hash`` was made with different cost parameters."""
    return hasher.check_needs_rehash(stored_hash)
