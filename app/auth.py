"""
Credential store: one-way password hashing and verification.

Hashes are bcrypt with a configurable work factor. The cost is embedded in
every stored hash, so raising ``BCRYPT_ROUNDS`` only affects new hashes and
existing ones keep verifying.
"""

import logging

from passlib.context import CryptContext

from app.config import settings

# Initialize logging
logger = logging.getLogger(__name__)


class CredentialStore:
    def __init__(self, rounds: int = 12):
        self._context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=rounds)

    def hash(self, plaintext: str) -> str:
        if not plaintext:
            raise ValueError("Password must be a non-empty string")
        return self._context.hash(plaintext)

    def verify(self, plaintext: str, hashed: str | None) -> bool:
        """
        Check ``plaintext`` against ``hashed``.

        Never raises: a missing, malformed or unrecognised hash is a
        mismatch, so callers cannot tell hash-format problems from a wrong
        password.
        """
        if hashed is None:
            self.dummy_verify()
            return False
        try:
            return self._context.verify(plaintext, hashed)
        except (ValueError, TypeError) as e:
            logger.warning(f"Password verification against unusable hash: {type(e).__name__}")
            return False

    def dummy_verify(self) -> None:
        """Spend the same time as a real verification (unknown account)."""
        self._context.dummy_verify()


credential_store = CredentialStore(rounds=settings.bcrypt_rounds)
