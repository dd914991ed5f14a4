"""
Password hashing with argon2id.

Hashes are stored as PHC strings (``$argon2id$v=19$...``); the prefix is how
updates recognise an already-hashed value.
"""

import os
from typing import Optional

from argon2 import PasswordHasher as Argon2Hasher
from argon2 import Type
from argon2.exceptions import InvalidHashError, VerificationError
from argon2.low_level import hash_secret

HASH_PREFIX = "$argon2id"
SALT_LENGTH = 16


class PasswordHasher:
    """argon2id hasher with configurable cost parameters."""

    def __init__(self, time_cost: int = 3, memory_cost: int = 65536, parallelism: int = 4,
                 hash_len: int = 32):
        self._time_cost = time_cost
        self._memory_cost = memory_cost
        self._parallelism = parallelism
        self._hash_len = hash_len
        self._verifier = Argon2Hasher(
            time_cost=time_cost,
            memory_cost=memory_cost,
            parallelism=parallelism,
            hash_len=hash_len,
            salt_len=SALT_LENGTH,
        )

    def generate_salt(self) -> bytes:
        return os.urandom(SALT_LENGTH)

    def hash(self, secret: str, salt: Optional[bytes] = None) -> str:
        """Hash ``secret`` with ``salt`` (a fresh one when omitted)."""
        encoded = hash_secret(
            secret.encode("utf-8"),
            salt or self.generate_salt(),
            time_cost=self._time_cost,
            memory_cost=self._memory_cost,
            parallelism=self._parallelism,
            hash_len=self._hash_len,
            type=Type.ID,
        )
        return encoded.decode("ascii")

    def verify(self, stored_hash: str, secret: str) -> bool:
        """Check ``secret`` against ``stored_hash``; malformed hashes never verify."""
        try:
            return self._verifier.verify(stored_hash, secret)
        except (VerificationError, InvalidHashError):
            return False

    @staticmethod
    def is_hashed(value: str) -> bool:
        return value.startswith(HASH_PREFIX)


_default_hasher = PasswordHasher()


def generate_salt() -> bytes:
    return _default_hasher.generate_salt()


def hash(secret: str, salt: bytes) -> str:
    return _default_hasher.hash(secret, salt)


def verify(stored_hash: str, secret: str) -> bool:
    return _default_hasher.verify(stored_hash, secret)


def is_hashed(value: str) -> bool:
    return PasswordHasher.is_hashed(value)
