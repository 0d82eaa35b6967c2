# Configuration for the application (ring locations, signer, key server, logging).

from .utils.config import (
    AppConfig,
    HkpConfig,
    KeyGenConfig,
    KeyRingConfig,
    LoggingConfig,
    SignerConfig,
    load_config,
)

__all__ = [
    "AppConfig",
    "HkpConfig",
    "KeyGenConfig",
    "KeyRingConfig",
    "LoggingConfig",
    "SignerConfig",
    "load_config",
]
