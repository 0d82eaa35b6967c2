# Implement decryption of messages and files encrypted to one of our keys.
from __future__ import annotations

from pathlib import Path
from typing import Optional, Union

import pgpy
import structlog
from pgpy.errors import PGPDecryptionError, PGPError

from ..crypto.keys import SecretKey, unlocked
from ..storage.file_io import atomic_write_bytes
from ..utils.errors import ProtocolParseFailure
from .encryptor import ARMOR_SUFFIX

logger = structlog.get_logger(__name__)


def _parse_message(data: Union[str, bytes], source: str) -> pgpy.PGPMessage:
    try:
        message = pgpy.PGPMessage.from_blob(data)
        encrypted = message.is_encrypted
    except Exception as exc:
        raise ProtocolParseFailure(f"Malformed message in {source}: {exc}") from exc
    if not encrypted:
        raise ProtocolParseFailure(f"{source} is not an encrypted message")
    return message


def decrypt_message(secret_key: SecretKey, data: Union[str, bytes], passphrase: str, *, source: str = "<message>"):
    message = _parse_message(data, source)
    with unlocked(secret_key, passphrase) as key:
        try:
            decrypted = key.decrypt(message)
        except (PGPError, PGPDecryptionError) as exc:
            raise ProtocolParseFailure(f"Cannot decrypt {source} with key 0x{secret_key.key_id_hex}: {exc}") from exc
    return decrypted.message


def decrypt_string(secret_key: SecretKey, armored: str, passphrase: str) -> str:
    """Inverse of :func:`encrypt_string`."""
    content = decrypt_message(secret_key, armored, passphrase)
    if isinstance(content, (bytes, bytearray)):
        return bytes(content).decode("utf-8")
    return content


def decrypted_path(path: Path) -> Path:
    path = Path(path)
    if path.suffix != ARMOR_SUFFIX:
        raise ValueError(f"{path} does not end in {ARMOR_SUFFIX}; pass an explicit output path")
    return path.with_suffix("")


def decrypt_file(
    secret_key: SecretKey,
    path: Path,
    passphrase: str,
    output: Optional[Path] = None,
) -> Path:
    """Decrypt ``<name>.asc`` back to ``<name>`` (or ``output``), overwriting it."""
    path = Path(path)
    target = Path(output) if output is not None else decrypted_path(path)
    content = decrypt_message(secret_key, path.read_bytes(), passphrase, source=str(path))
    if isinstance(content, str):
        content = content.encode("utf-8")
    atomic_write_bytes(target, bytes(content))
    logger.info("file_decrypted", path=str(path), output=str(target), key_id=secret_key.key_id_hex)
    return target


__all__ = ["decrypt_file", "decrypt_message", "decrypt_string", "decrypted_path"]
