# Value types shared by rings, key operations and the key server client.

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional, Tuple, Union

KEY_ID_BITS = 64
_SHORT_ID_MASK = 0xFFFFFFFF

_HEX_RE = re.compile(r"^[0-9A-Fa-f]+$")


def format_key_id(key_id: int) -> str:
    """Render a 64-bit key id as the fixed-width 16 hex digit form."""
    if key_id < 0 or key_id >= 1 << KEY_ID_BITS:
        raise ValueError(f"Key id out of range: {key_id!r}")
    return f"{key_id:016X}"


def parse_key_id(value: Union[int, str]) -> int:
    """Parse ``0x``-prefixed or bare hex into a numeric key id."""
    if isinstance(value, int):
        format_key_id(value)
        return value
    text = value.strip()
    if text[:2].lower() == "0x":
        text = text[2:]
    if not text or len(text) > 16 or not _HEX_RE.match(text):
        raise ValueError(f"Not a key id: {value!r}")
    return int(text, 16)


@dataclass(frozen=True, slots=True)
class Identifier:
    """Either a key id / fingerprint or a user-id substring.

    ``width`` records how many hex digits were given: 8 digits match the low
    32 bits of a key id (short id), 16 digits match exactly and 40 digits
    match the full fingerprint.
    """

    text: str
    key_id: Optional[int] = None
    width: int = 0
    fingerprint: Optional[str] = None

    @classmethod
    def parse(cls, value: Union[int, str, "Identifier"]) -> "Identifier":
        if isinstance(value, Identifier):
            return value
        if isinstance(value, int):
            return cls(text=format_key_id(value), key_id=parse_key_id(value), width=16)

        text = value.strip()
        if not text:
            raise ValueError("Key identifier must not be empty")
        compact = text.replace(" ", "")
        if len(compact) == 40 and _HEX_RE.match(compact):
            return cls(text=text, fingerprint=compact.upper())

        prefixed = text[:2].lower() == "0x"
        digits = text[2:] if prefixed else text
        if _HEX_RE.match(digits or "-") and (len(digits) in (8, 16) or (prefixed and len(digits) <= 16)):
            width = 8 if len(digits) <= 8 else 16
            return cls(text=text, key_id=int(digits, 16), width=width)
        return cls(text=value)

    @property
    def is_key_id(self) -> bool:
        return self.key_id is not None or self.fingerprint is not None

    def matches_key_id(self, key_id: int) -> bool:
        if self.key_id is None:
            return False
        if self.width == 8:
            return (key_id & _SHORT_ID_MASK) == self.key_id
        return key_id == self.key_id

    def matches_fingerprint(self, fingerprint: str) -> bool:
        return self.fingerprint is not None and fingerprint.replace(" ", "").upper() == self.fingerprint

    def matches_user_ids(self, user_ids: Iterable[str]) -> bool:
        if self.is_key_id:
            return False
        return any(self.text in uid for uid in user_ids)

    def __str__(self) -> str:
        return self.text


@dataclass(frozen=True, slots=True)
class Notation:
    """A name/value annotation carried by a signature packet"""

    name: str
    value: str

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Notation name must not be empty")

    @classmethod
    def parse(cls, text: str) -> "Notation":
        """Parse ``name=value``."""
        name, sep, value = text.partition("=")
        if not sep:
            raise ValueError(f"Notation must look like name=value, got {text!r}")
        return cls(name=name.strip(), value=value.strip())

    def as_dict(self) -> dict[str, str]:
        return {self.name: self.value}


@dataclass(frozen=True, slots=True)
class Certification:
    """Snapshot of one signature bound to a user id of a key"""

    user_id: str
    signer_id: int
    sig_type: str
    created: datetime
    notations: Tuple[Notation, ...]
    packet: bytes

    @property
    def signer_key_id(self) -> str:
        return format_key_id(self.signer_id)

    def notation(self, name: str) -> Optional[str]:
        for item in self.notations:
            if item.name == name:
                return item.value
        return None


__all__ = [
    "Certification",
    "Identifier",
    "KEY_ID_BITS",
    "Notation",
    "format_key_id",
    "parse_key_id",
]
