
from __future__ import annotations

from pathlib import Path


class AppError(Exception):
    """Base exception for PGP Guardian"""


class AlreadyExists(AppError):
    """Raised when key generation would overwrite an existing ring file"""

    def __init__(self, path: Path | str) -> None:
        super().__init__(f"Key ring ({path}) already exists!")
        self.path = Path(path)


class MissingKeyRing(AppError):
    """Raised when a ring file an operation depends on is absent"""

    def __init__(self, path: Path | str, kind: str = "key") -> None:
        super().__init__(f"No {kind} ring found at {path}")
        self.path = Path(path)


class KeyNotFound(AppError):
    """Raised when a key identifier cannot be resolved"""


class NoEncryptionCapability(AppError):
    """Raised when a matched key carries no encryption-capable material"""


class NoSigningCapability(AppError):
    """Raised when a matched key cannot produce signatures"""


class WrongPassphrase(AppError):
    """Raised when decrypting a secret key fails due to passphrase mismatch"""


class PassphraseMismatch(AppError):
    """Raised when the passphrase confirmation does not match"""


class TransportFailure(AppError):
    """Raised for network errors and non-success HTTP statuses"""

    def __init__(
        self,
        message: str,
        *,
        url: str | None = None,
        status_code: int | None = None,
        body: str | None = None,
    ) -> None:
        super().__init__(message)
        self.url = url
        self.status_code = status_code
        self.body = body


class ProtocolParseFailure(AppError):
    """Raised when armored key data cannot be parsed"""


class ExternalProcessFailure(AppError):
    """Raised when the external signer exits unsuccessfully or cannot run"""

    def __init__(self, message: str, *, command: str, returncode: int | None = None) -> None:
        super().__init__(message)
        self.command = command
        self.returncode = returncode


class Unsupported(AppError):
    """Raised when a signer variant cannot perform the requested operation"""


__all__ = [
    "AppError",
    "AlreadyExists",
    "MissingKeyRing",
    "KeyNotFound",
    "NoEncryptionCapability",
    "NoSigningCapability",
    "WrongPassphrase",
    "PassphraseMismatch",
    "TransportFailure",
    "ProtocolParseFailure",
    "ExternalProcessFailure",
    "Unsupported",
]
