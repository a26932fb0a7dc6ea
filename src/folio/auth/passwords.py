"""bcrypt password hashing, run off the event loop."""

from __future__ import annotations

import asyncio

import bcrypt

# bcrypt only reads the first 72 bytes; longer inputs are refused outright.
MAX_PASSWORD_BYTES = 72


class PasswordHasher:
    def __init__(self, rounds: int = 12):
        self.rounds = rounds
        self._dummy_hash: str | None = None

    def _hash_sync(self, password: str) -> str:
        salt = bcrypt.gensalt(rounds=self.rounds)
        return bcrypt.hashpw(password.encode("utf-8"), salt).decode("ascii")

    @staticmethod
    def _verify_sync(password: str, hashed: str | bytes) -> bool:
        raw = password.encode("utf-8")
        if len(raw) > MAX_PASSWORD_BYTES:
            return False
        if isinstance(hashed, str):
            hashed = hashed.encode("ascii")
        try:
            return bcrypt.checkpw(raw, hashed)
        except ValueError:
            # malformed stored hash
            return False

    async def hash(self, password: str) -> str:
        return await asyncio.to_thread(self._hash_sync, password)

    async def verify(self, password: str, hashed: str | None) -> bool:
        """Check ``password`` against ``hashed``.

        With ``hashed=None`` a throwaway hash is checked instead, so an unknown
        account costs the same bcrypt work as a wrong password.
        """
        if hashed is None:
            if self._dummy_hash is None:
                self._dummy_hash = await asyncio.to_thread(self._hash_sync, "folio-dummy-password")
            await asyncio.to_thread(self._verify_sync, password, self._dummy_hash)
            return False
        return await asyncio.to_thread(self._verify_sync, password, hashed)


def password_too_long(password: str) -> bool:
    return len(password.encode("utf-8")) > MAX_PASSWORD_BYTES


__all__ = ["MAX_PASSWORD_BYTES", "PasswordHasher", "password_too_long"]
