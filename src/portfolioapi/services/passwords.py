"""
Salted PBKDF2-SHA256 password hashing.

Stored format::

    pbkdf2_sha256$<iterations>$<salt, base64>$<hash, base64>

The iteration count travels with the hash, so raising
``password_iterations`` only affects newly created hashes.
"""

import base64
import logging
import os

from cryptography.exceptions import InvalidKey
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC


logger = logging.getLogger(__name__)


ALGORITHM = "pbkdf2_sha256"
SALT_BYTES = 16
KEY_LENGTH = 32


def _kdf(salt: bytes, iterations: int) -> PBKDF2HMAC:
    return PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_LENGTH,
        salt=salt,
        iterations=iterations,
    )


class PasswordHasher:
    """
    Hash and verify admin passwords.

    Args:
        iterations: PBKDF2 iterations for new hashes.
    """

    def __init__(self, iterations: int = 600_000):
        self.iterations = iterations
        self._dummy_hash = None

    def hash(self, password: str) -> str:
        salt = os.urandom(SALT_BYTES)
        derived = _kdf(salt, self.iterations).derive(password.encode("utf-8"))
        return "$".join([
            ALGORITHM,
            str(self.iterations),
            base64.b64encode(salt).decode("ascii"),
            base64.b64encode(derived).decode("ascii"),
        ])

    def verify(self, password: str, encoded: str) -> bool:
        """True when ``password`` matches ``encoded``. Malformed hashes never match."""
        try:
            algorithm, iterations, salt, expected = encoded.split("$")
            if algorithm != ALGORITHM:
                raise ValueError(f"unsupported algorithm {algorithm}")
            kdf = _kdf(base64.b64decode(salt), int(iterations))
            expected_bytes = base64.b64decode(expected)
        except (ValueError, TypeError) as e:
            logger.warning(f"Unreadable password hash: {e}")
            return False

        try:
            kdf.verify(password.encode("utf-8"), expected_bytes)
        except InvalidKey:
            return False
        return True

    def dummy_verify(self, password: str) -> None:
        """
        Spend the same work as a real verification.

        Called when the username does not exist, so response timing does
        not reveal which usernames are valid.
        """
        if self._dummy_hash is None:
            self._dummy_hash = self.hash("dummy-password")
        self.verify(password, self._dummy_hash)
