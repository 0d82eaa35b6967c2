"""Immutable wrappers over PGPy keys.

``PublicKey`` and ``SecretKey`` never expose an in-place mutator: attaching a
certification or merging a re-imported copy always yields a new value built
from a copy of the underlying packets, so rings holding the old value stay
consistent.
"""
from __future__ import annotations

import contextlib
import copy
from typing import Iterator, List, Optional, Tuple, Union

import pgpy
from pgpy.constants import KeyFlags
from pgpy.errors import PGPDecryptionError

from ..models import Certification, Identifier, Notation, format_key_id
from ..storage.file_io import split_armored_blocks
from ..utils.errors import ProtocolParseFailure, WrongPassphrase

_ENCRYPT_FLAGS = {KeyFlags.EncryptCommunications, KeyFlags.EncryptStorage}


def parse_pgp_keys(data: Union[str, bytes], *, source: str = "<data>") -> List[pgpy.PGPKey]:
    """Parse every transferable key in ``data`` in the order they appear.

    Accepts several armored blocks, several keys concatenated inside one
    block, or raw binary packets.
    """
    if isinstance(data, str):
        data = data.encode("utf-8")
    keys: List[pgpy.PGPKey] = []
    for block in split_armored_blocks(data):
        try:
            parsed = pgpy.PGPKey.from_blob(block)
        except Exception as exc:
            raise ProtocolParseFailure(f"Malformed key data in {source}: {exc}") from exc
        if isinstance(parsed, tuple):
            first, others = parsed
        else:
            first, others = parsed, {}
        if first._key is None:
            continue
        keys.append(first)
        for key in others.values():
            if key is not first and key.fingerprint != first.fingerprint:
                keys.append(key)
    return keys


def _key_id(key: pgpy.PGPKey) -> int:
    return int(key.fingerprint.keyid, 16)


def _usage_flags(key: pgpy.PGPKey) -> set:
    if key.is_primary:
        flags = {KeyFlags.Certify}
        for uid in key.userids:
            selfsig = uid.selfsig
            if selfsig is not None:
                flags |= set(selfsig.key_flags)
        return flags
    return {flag for sig in key.self_signatures for flag in sig.key_flags}


def _all_keys(key: pgpy.PGPKey) -> Iterator[pgpy.PGPKey]:
    yield key
    yield from key.subkeys.values()


def _signature_snapshot(user_id: str, sig: pgpy.PGPSignature) -> Certification:
    notations = tuple(
        Notation(name=name, value=value if isinstance(value, str) else bytes(value).decode("utf-8", "replace"))
        for name, value in sig.notation.items()
    )
    return Certification(
        user_id=user_id,
        signer_id=int(sig.signer, 16) if sig.signer else 0,
        sig_type=sig.type.name,
        created=sig.created,
        notations=notations,
        packet=bytes(sig.__bytearray__()),
    )


class _KeyView:
    """Read-only accessors shared by public and secret keys"""

    __slots__ = ("_key",)

    def __init__(self, key: pgpy.PGPKey) -> None:
        if key._key is None:
            raise ProtocolParseFailure("Empty key object")
        if not key.is_primary:
            raise ProtocolParseFailure("Expected a primary key, got a subkey")
        self._key = key

    @property
    def pgp_key(self) -> pgpy.PGPKey:
        """The underlying PGPy key. Treat as read-only; copy before changing."""
        return self._key

    @property
    def key_id(self) -> int:
        return _key_id(self._key)

    @property
    def key_id_hex(self) -> str:
        return format_key_id(self.key_id)

    @property
    def fingerprint(self) -> str:
        return str(self._key.fingerprint).replace(" ", "").upper()

    @property
    def subkey_ids(self) -> Tuple[int, ...]:
        return tuple(_key_id(sub) for sub in self._key.subkeys.values())

    @property
    def user_ids(self) -> Tuple[str, ...]:
        return tuple(uid.userid for uid in self._key.userids)

    @property
    def can_encrypt(self) -> bool:
        return any(_usage_flags(k) & _ENCRYPT_FLAGS for k in _all_keys(self._key))

    @property
    def can_sign(self) -> bool:
        return any(KeyFlags.Sign in _usage_flags(k) for k in _all_keys(self._key))

    def matches(self, identifier: Identifier) -> bool:
        if identifier.fingerprint is not None:
            return any(identifier.matches_fingerprint(str(k.fingerprint)) for k in _all_keys(self._key))
        if identifier.key_id is not None:
            return any(identifier.matches_key_id(_key_id(k)) for k in _all_keys(self._key))
        return identifier.matches_user_ids(self.user_ids)

    def armored(self) -> str:
        return str(self._key)

    def __bytes__(self) -> bytes:
        return bytes(self._key.__bytearray__())

    def __eq__(self, other: object) -> bool:
        if type(other) is not type(self):
            return NotImplemented
        return bytes(self) == bytes(other)

    def __hash__(self) -> int:
        return hash((type(self).__name__, bytes(self)))

    def __repr__(self) -> str:
        uid = self.user_ids[0] if self.user_ids else ""
        return f"<{type(self).__name__} 0x{self.key_id_hex} {uid!r}>"


class PublicKey(_KeyView):
    """A public key with its user ids and certifications"""

    __slots__ = ()

    def __init__(self, key: pgpy.PGPKey) -> None:
        super().__init__(key)
        if not key.is_public:
            raise ProtocolParseFailure(f"Expected public key material for 0x{self.key_id_hex}")

    @classmethod
    def from_text(cls, data: Union[str, bytes], *, source: str = "<data>") -> Optional["PublicKey"]:
        """Return the first public key found in ``data``, if any."""
        for key in parse_pgp_keys(data, source=source):
            if key.is_public:
                return cls(key)
        return None

    @property
    def signatures(self) -> Tuple[Certification, ...]:
        """Signatures over each user id, user ids in key order"""
        return tuple(
            _signature_snapshot(uid.userid, sig)
            for uid in self._key.userids
            for sig in uid.__sig__
        )

    def with_signature(self, user_id: str, signature: pgpy.PGPSignature) -> "PublicKey":
        """Return a new key with ``signature`` attached to ``user_id``."""
        clone = copy.copy(self._key)
        target = next((uid for uid in clone.userids if uid.userid == user_id), None)
        if target is None:
            raise ProtocolParseFailure(f"User id {user_id!r} not present on 0x{self.key_id_hex}")
        target |= signature
        return PublicKey(clone)

    def merged(self, other: "PublicKey") -> "PublicKey":
        """Union of both copies of the same key; nothing is duplicated."""
        if other.key_id != self.key_id:
            raise ValueError(f"Cannot merge 0x{other.key_id_hex} into 0x{self.key_id_hex}")
        clone = copy.copy(self._key)

        existing_sigs = {bytes(sig.__bytearray__()) for sig in clone.__sig__}
        for sig in other._key.__sig__:
            if not sig.embedded and bytes(sig.__bytearray__()) not in existing_sigs:
                clone |= copy.copy(sig)

        for incoming in other._key.userids:
            current = next((uid for uid in clone.userids if uid.userid == incoming.userid), None)
            if current is None:
                clone |= copy.copy(incoming)
                continue
            known = {bytes(sig.__bytearray__()) for sig in current.__sig__}
            for sig in incoming.__sig__:
                if bytes(sig.__bytearray__()) not in known:
                    current |= copy.copy(sig)

        for keyid, subkey in other._key.subkeys.items():
            if keyid not in clone.subkeys:
                clone |= copy.copy(subkey)
        return PublicKey(clone)


class SecretKey(_KeyView):
    """A passphrase-protected secret key plus its public half"""

    __slots__ = ()

    def __init__(self, key: pgpy.PGPKey) -> None:
        super().__init__(key)
        if key.is_public:
            raise ProtocolParseFailure(f"Expected secret key material for 0x{self.key_id_hex}")

    @property
    def is_protected(self) -> bool:
        return self._key.is_protected

    @property
    def public_key(self) -> PublicKey:
        # copy so the public half shares no sibling link with the secret key
        return PublicKey(copy.copy(self._key.pubkey))


@contextlib.contextmanager
def unlocked(secret_key: SecretKey, passphrase: str) -> Iterator[pgpy.PGPKey]:
    """Decrypt ``secret_key`` for the duration of the block.

    Decrypted key material is cleared when the block exits, however it exits.
    Only a failure to unlock is reported as :class:`WrongPassphrase`; errors
    raised inside the block propagate untouched.
    """
    with contextlib.ExitStack() as stack:
        try:
            key = stack.enter_context(secret_key.pgp_key.unlock(passphrase))
        except PGPDecryptionError as exc:
            raise WrongPassphrase(f"Wrong passphrase for secret key 0x{secret_key.key_id_hex}") from exc
        yield key


__all__ = ["PublicKey", "SecretKey", "parse_pgp_keys", "unlocked"]
