"""Public and secret key rings.

Rings are append-only values: ``append`` and ``remove`` return a new ring and
leave the receiver untouched, so a ring handed to another reader never
changes underneath it. On disk a ring is one armored block per key, in ring
order, and is always replaced as a whole file.
"""
from __future__ import annotations

from pathlib import Path
from typing import Generic, Iterable, Iterator, List, Optional, Tuple, Type, TypeVar, Union

import structlog

from ..crypto.keys import PublicKey, SecretKey, _KeyView, parse_pgp_keys
from ..models import Identifier
from ..utils.errors import (
    KeyNotFound,
    MissingKeyRing,
    NoEncryptionCapability,
    NoSigningCapability,
    ProtocolParseFailure,
)
from .file_io import atomic_write_text

logger = structlog.get_logger(__name__)

K = TypeVar("K", bound=_KeyView)
R = TypeVar("R", bound="_KeyRing")

IdentifierLike = Union[Identifier, str, int]


class _KeyRing(Generic[K]):
    _key_type: Type[_KeyView] = _KeyView
    _kind = "key"
    _file_mode: Optional[int] = None

    __slots__ = ("_keys",)

    def __init__(self, keys: Iterable[K] = ()) -> None:
        ordered: List[K] = []
        index: dict[int, int] = {}
        for key in keys:
            if not isinstance(key, self._key_type):
                raise TypeError(f"{type(self).__name__} only holds {self._key_type.__name__} values")
            if key.key_id in index:
                raise ValueError(f"Duplicate key id 0x{key.key_id_hex} in {self._kind} ring")
            index[key.key_id] = len(ordered)
            ordered.append(key)
        self._keys: Tuple[K, ...] = tuple(ordered)

    # ----- Collection protocol -----
    def __iter__(self) -> Iterator[K]:
        return iter(self._keys)

    def __len__(self) -> int:
        return len(self._keys)

    def __contains__(self, key_id: object) -> bool:
        if isinstance(key_id, _KeyView):
            key_id = key_id.key_id
        return any(key.key_id == key_id for key in self._keys)

    def __eq__(self, other: object) -> bool:
        if type(other) is not type(self):
            return NotImplemented
        return self._keys == other._keys

    def __hash__(self) -> int:
        return hash(self._keys)

    def __repr__(self) -> str:
        ids = ", ".join(f"0x{key.key_id_hex}" for key in self._keys)
        return f"<{type(self).__name__} [{ids}]>"

    @property
    def keys(self) -> Tuple[K, ...]:
        return self._keys

    @property
    def key_ids(self) -> Tuple[int, ...]:
        return tuple(key.key_id for key in self._keys)

    # ----- Lookup -----
    def get(self, key_id: int) -> Optional[K]:
        return next((key for key in self._keys if key.key_id == key_id), None)

    def find_all(self, identifier: IdentifierLike) -> Tuple[K, ...]:
        ident = Identifier.parse(identifier)
        return tuple(key for key in self._keys if key.matches(ident))

    def find(self, identifier: IdentifierLike) -> Optional[K]:
        """First key in ring order matching ``identifier``.

        Several keys can share a user-id substring; the earliest one wins and
        no ambiguity is reported. Use :meth:`find_all` to see every match.
        """
        ident = Identifier.parse(identifier)
        return next((key for key in self._keys if key.matches(ident)), None)

    def require(self, identifier: IdentifierLike) -> K:
        key = self.find(identifier)
        if key is None:
            raise KeyNotFound(f"Could not find {self._kind} key: {identifier}")
        return key

    # ----- Copy-on-append -----
    def _replace(self: R, keys: Iterable[K]) -> R:
        return type(self)(keys)

    def remove(self: R, key_id: int) -> R:
        if key_id not in self:
            raise KeyNotFound(f"Could not find {self._kind} key: 0x{key_id:016X}")
        return self._replace(key for key in self._keys if key.key_id != key_id)

    # ----- Encoding -----
    def to_armored(self) -> str:
        return "".join(_normalize_block(key.armored()) for key in self._keys)

    @classmethod
    def from_armored(cls: Type[R], data: Union[str, bytes], *, source: str = "<data>") -> R:
        keys = []
        for pgp_key in parse_pgp_keys(data, source=source):
            try:
                keys.append(cls._key_type(pgp_key))
            except ProtocolParseFailure as exc:
                raise ProtocolParseFailure(f"{source}: {exc}") from exc
        ring = cls()
        for key in keys:
            ring = ring._merge_in(key)
        return ring

    def _merge_in(self: R, key: K) -> R:
        if key.key_id in self:
            # secret rings keep the first copy of a key
            return self
        return self._replace((*self._keys, key))

    @classmethod
    def load(cls: Type[R], path: Path, *, missing_ok: bool = False) -> R:
        path = Path(path)
        if not path.exists():
            if missing_ok:
                return cls()
            raise MissingKeyRing(path, cls._kind)
        ring = cls.from_armored(path.read_bytes(), source=str(path))
        logger.debug("ring_loaded", path=str(path), kind=cls._kind, keys=len(ring))
        return ring

    def save(self, path: Path) -> Path:
        path = Path(path)
        atomic_write_text(path, self.to_armored(), mode=self._file_mode)
        logger.info("ring_saved", path=str(path), kind=self._kind, keys=len(self))
        return path


def _normalize_block(text: str) -> str:
    return text if text.endswith("\n") else text + "\n"


class PublicKeyRing(_KeyRing[PublicKey]):
    """Ordered, de-duplicated collection of public keys"""

    _key_type = PublicKey
    _kind = "public"
    __slots__ = ()

    def _merge_in(self, key: PublicKey) -> "PublicKeyRing":
        return self.append(key)

    def append(self, key: PublicKey) -> "PublicKeyRing":
        """Return a ring with ``key`` added.

        Re-adding a key id merges its signatures and user ids into the entry
        already in the ring, which keeps its position.
        """
        current = self.get(key.key_id)
        if current is None:
            return self._replace((*self._keys, key))
        merged = current.merged(key)
        return self._replace(merged if existing.key_id == key.key_id else existing for existing in self._keys)

    def find_public_key(self, identifier: IdentifierLike) -> Optional[PublicKey]:
        return self.find(identifier)

    def find_encryption_key(self, identifier: IdentifierLike) -> PublicKey:
        """First matching key that can encrypt.

        Raises :class:`KeyNotFound` when nothing matches and
        :class:`NoEncryptionCapability` when keys match but none can encrypt.
        """
        matches = self.find_all(identifier)
        if not matches:
            raise KeyNotFound(f"Could not find public key: {identifier}")
        for key in matches:
            if key.can_encrypt:
                return key
        raise NoEncryptionCapability(
            f"Key 0x{matches[0].key_id_hex} matching {identifier!s} has no encryption-capable subkey"
        )


class SecretKeyRing(_KeyRing[SecretKey]):
    """Secret keys; by convention one active signing key per ring"""

    _key_type = SecretKey
    _kind = "secret"
    _file_mode = 0o600
    __slots__ = ()

    def append(self, key: SecretKey) -> "SecretKeyRing":
        if key.key_id in self:
            return self
        return self._replace((*self._keys, key))

    @property
    def secret_key(self) -> SecretKey:
        """The ring's signing key (first signing-capable key)."""
        if not self._keys:
            raise KeyNotFound("Secret key ring is empty")
        for key in self._keys:
            if key.can_sign:
                return key
        raise NoSigningCapability(f"No signing-capable key in secret ring (0x{self._keys[0].key_id_hex})")

    @property
    def public_ring(self) -> PublicKeyRing:
        return PublicKeyRing(key.public_key for key in self._keys)


__all__ = ["PublicKeyRing", "SecretKeyRing"]
