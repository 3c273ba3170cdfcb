"""Symmetric encryption for credentials stored in the settings file."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from cryptography.fernet import Fernet, InvalidToken

logger = logging.getLogger(__name__)


class SecretCipher:
    """Encrypts and decrypts setting values with Fernet.

    The key is taken from ``key`` when given, otherwise read from
    ``key_file``; a missing key file is created with a fresh key.

    Args:
        key: URL-safe base64 Fernet key.
        key_file: Path of the key file used when ``key`` is not given.
    """

    def __init__(self, key: str | None = None, key_file: str | Path | None = None) -> None:
        if key:
            self._fernet = Fernet(key.encode())
        elif key_file is not None:
            self._fernet = Fernet(_load_or_create_key(Path(key_file)))
        else:
            logger.warning("Using an ephemeral encryption key; saved credentials will not survive a restart")
            self._fernet = Fernet(Fernet.generate_key())

    def encrypt(self, plain_text: str) -> str:
        """Return the Fernet token for ``plain_text``."""
        return self._fernet.encrypt(plain_text.encode("utf-8")).decode("ascii")

    def decrypt(self, token: str) -> str:
        """Decrypt ``token``; values that are not valid tokens are returned unchanged.

        Settings files written by hand hold plaintext credentials, so an
        undecryptable value is treated as already decrypted.
        """
        try:
            return self._fernet.decrypt(token.encode("ascii")).decode("utf-8")
        except (InvalidToken, UnicodeEncodeError):
            logger.debug("Setting value is not an encrypted token; using it as stored")
            return token


def _load_or_create_key(path: Path) -> bytes:
    if path.exists():
        return path.read_bytes().strip()

    key = Fernet.generate_key()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(key)
    try:
        os.chmod(path, 0o600)
    except OSError:
        logger.warning("Could not restrict permissions on key file %s", path)
    logger.info("Generated new settings encryption key at %s", path)
    return key
