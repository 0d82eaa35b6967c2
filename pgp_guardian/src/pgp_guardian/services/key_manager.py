# Manage the lifecycle of keys (generate, certify, import, export).
from __future__ import annotations

from pathlib import Path
from typing import Optional, Tuple, Union

import pgpy
import structlog
from pgpy.constants import (
    CompressionAlgorithm,
    HashAlgorithm,
    KeyFlags,
    PubKeyAlgorithm,
    SignatureType,
    SymmetricKeyAlgorithm,
)

from ..crypto.keys import PublicKey, SecretKey, unlocked
from ..models import Notation
from ..storage.file_io import remove_if_exists
from ..storage.keyring import PublicKeyRing, SecretKeyRing
from ..utils.errors import AlreadyExists, KeyNotFound

logger = structlog.get_logger(__name__)

DEFAULT_KEY_SIZE = 3072

_HASH_PREFS = [HashAlgorithm.SHA256, HashAlgorithm.SHA384, HashAlgorithm.SHA512]
_CIPHER_PREFS = [SymmetricKeyAlgorithm.AES256, SymmetricKeyAlgorithm.AES192, SymmetricKeyAlgorithm.AES128]
_COMPRESSION_PREFS = [
    CompressionAlgorithm.ZLIB,
    CompressionAlgorithm.BZ2,
    CompressionAlgorithm.ZIP,
    CompressionAlgorithm.Uncompressed,
]


def generate(
    identity: str,
    passphrase: str,
    *,
    key_size: int = DEFAULT_KEY_SIZE,
    encryption_subkey: bool = True,
) -> Tuple[PublicKey, SecretKey]:
    """Create an RSA keypair bound to ``identity``.

    The primary key signs and certifies; unless ``encryption_subkey`` is off an
    RSA subkey for encryption is bound to it. The secret half is protected
    with ``passphrase`` before it is returned. RSA generation at these sizes
    takes seconds.
    """
    if not identity.strip():
        raise ValueError("Identity must not be empty")
    if not passphrase:
        raise ValueError("Passphrase must not be empty")

    primary = pgpy.PGPKey.new(PubKeyAlgorithm.RSAEncryptOrSign, key_size)
    primary.add_uid(
        pgpy.PGPUID.new(identity.strip()),
        usage={KeyFlags.Sign, KeyFlags.Certify},
        hashes=_HASH_PREFS,
        ciphers=_CIPHER_PREFS,
        compression=_COMPRESSION_PREFS,
    )
    if encryption_subkey:
        subkey = pgpy.PGPKey.new(PubKeyAlgorithm.RSAEncryptOrSign, key_size)
        primary.add_subkey(subkey, usage={KeyFlags.EncryptCommunications, KeyFlags.EncryptStorage})

    primary.protect(passphrase, SymmetricKeyAlgorithm.AES256, HashAlgorithm.SHA256)
    secret = SecretKey(primary)
    public = secret.public_key
    logger.info("key_generated", key_id=public.key_id_hex, key_size=key_size, subkeys=len(public.subkey_ids))
    return public, secret


def generate_keyrings(
    identity: str,
    passphrase: str,
    public_path: Path,
    secret_path: Path,
    *,
    key_size: int = DEFAULT_KEY_SIZE,
) -> Tuple[PublicKey, SecretKey]:
    """Generate a keypair and write it as two fresh ring files.

    Never overwrites: if either ring already exists nothing is written. If
    the secret ring cannot be written the public ring is removed again.
    """
    public_path, secret_path = Path(public_path), Path(secret_path)
    for path in (public_path, secret_path):
        if path.exists():
            raise AlreadyExists(path)

    public, secret = generate(identity, passphrase, key_size=key_size)
    PublicKeyRing([public]).save(public_path)
    try:
        SecretKeyRing([secret]).save(secret_path)
    except Exception:
        remove_if_exists(public_path)
        raise
    logger.info("keyrings_created", public_ring=str(public_path), secret_ring=str(secret_path))
    return public, secret


def certify_key(
    secret_key: SecretKey,
    target: PublicKey,
    notation: Notation,
    passphrase: str,
    *,
    user_id: Optional[str] = None,
) -> PublicKey:
    """Certify a user id of ``target`` and return the newly signed copy.

    ``user_id`` selects the user id by substring; the first user id is used
    otherwise. ``target`` is left as it was; merging the result into a ring
    and saving it is the caller's job.
    """
    if not target.user_ids:
        raise KeyNotFound(f"Key 0x{target.key_id_hex} carries no user id to certify")
    if user_id is None:
        chosen = target.user_ids[0]
    else:
        chosen = next((uid for uid in target.user_ids if user_id in uid), None)
        if chosen is None:
            raise KeyNotFound(f"Key 0x{target.key_id_hex} has no user id matching {user_id!r}")

    subject = next(uid for uid in target.pgp_key.userids if uid.userid == chosen)
    with unlocked(secret_key, passphrase) as signer:
        signature = signer.certify(
            subject,
            level=SignatureType.Generic_Cert,
            notation=notation.as_dict(),
            hash=HashAlgorithm.SHA256,
        )
    certified = target.with_signature(chosen, signature)
    logger.info(
        "key_certified",
        key_id=target.key_id_hex,
        signer=secret_key.key_id_hex,
        notation=notation.name,
    )
    return certified


def export_public_key(key: PublicKey) -> str:
    """ASCII-armored form of a single key with its signatures."""
    return key.armored()


def import_public_key_text(text: Union[str, bytes], *, source: str = "<text>") -> PublicKey:
    key = PublicKey.from_text(text, source=source)
    if key is None:
        raise KeyNotFound(f"Could not find a public key in: {source}")
    return key


def import_public_key(path: Path) -> PublicKey:
    """First public key found in ``path``."""
    path = Path(path)
    return import_public_key_text(path.read_bytes(), source=str(path))


__all__ = [
    "DEFAULT_KEY_SIZE",
    "certify_key",
    "export_public_key",
    "generate",
    "generate_keyrings",
    "import_public_key",
    "import_public_key_text",
]
