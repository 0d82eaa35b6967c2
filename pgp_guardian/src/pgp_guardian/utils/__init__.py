"""Utility exports."""
from .config import AppConfig, load_config
from .errors import (
    AlreadyExists,
    AppError,
    ExternalProcessFailure,
    KeyNotFound,
    MissingKeyRing,
    NoEncryptionCapability,
    NoSigningCapability,
    PassphraseMismatch,
    ProtocolParseFailure,
    TransportFailure,
    Unsupported,
    WrongPassphrase,
)
from .paths import default_public_ring, default_secret_ring, keyring_home

__all__ = [
    "AppConfig",
    "load_config",
    "AlreadyExists",
    "AppError",
    "ExternalProcessFailure",
    "KeyNotFound",
    "MissingKeyRing",
    "NoEncryptionCapability",
    "NoSigningCapability",
    "PassphraseMismatch",
    "ProtocolParseFailure",
    "TransportFailure",
    "Unsupported",
    "WrongPassphrase",
    "default_public_ring",
    "default_secret_ring",
    "keyring_home",
]
