
from .utils.errors import (
  AppError as PgpGuardianError,
  AlreadyExists,
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


__all__ = [
  "PgpGuardianError",
  "AlreadyExists",
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
]
