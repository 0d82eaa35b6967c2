# Implement public-key encryption of strings and files.
from __future__ import annotations

from pathlib import Path

import pgpy
import structlog

from ..crypto.keys import PublicKey
from ..storage.file_io import atomic_write_text
from ..utils.errors import NoEncryptionCapability

logger = structlog.get_logger(__name__)

ARMOR_SUFFIX = ".asc"


def _require_encryption(key: PublicKey) -> None:
    if not key.can_encrypt:
        raise NoEncryptionCapability(f"Key 0x{key.key_id_hex} has no encryption-capable material")


def encrypt_message(key: PublicKey, message: pgpy.PGPMessage) -> str:
    _require_encryption(key)
    encrypted = key.pgp_key.encrypt(message)
    return str(encrypted)


def encrypt_string(key: PublicKey, plaintext: str) -> str:
    """Encrypt ``plaintext`` to ``key`` and return the armored message."""
    return encrypt_message(key, pgpy.PGPMessage.new(plaintext))


def encrypted_path(path: Path) -> Path:
    path = Path(path)
    return path.with_name(path.name + ARMOR_SUFFIX)


def encrypt_file(key: PublicKey, path: Path) -> Path:
    """Encrypt ``path`` to ``<path>.asc``, replacing any previous output."""
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"No file to encrypt: {path}")
    output = encrypted_path(path)
    armored = encrypt_message(key, pgpy.PGPMessage.new(str(path), file=True, format="b"))
    atomic_write_text(output, armored)
    logger.info("file_encrypted", path=str(path), output=str(output), key_id=key.key_id_hex)
    return output


__all__ = ["ARMOR_SUFFIX", "encrypt_file", "encrypt_string", "encrypted_path"]
