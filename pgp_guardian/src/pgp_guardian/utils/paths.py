"""Shared filesystem path helpers for PGP Guardian."""
from __future__ import annotations

import os
import sys
from pathlib import Path

from platformdirs import PlatformDirs

_APP_NAME = "PGP Guardian"
_LINUX_APP_NAME = "pgp-guardian"
_HOME_ENV = "PGP_GUARDIAN_HOME"


def _dirs() -> PlatformDirs:
    if sys.platform in ("win32", "darwin"):
        return PlatformDirs(appname=_APP_NAME, appauthor=None, roaming=True)
    return PlatformDirs(appname=_LINUX_APP_NAME, appauthor=None, roaming=False)


def runtime_config_dir() -> Path:
    """Return the per-user configuration directory."""
    return Path(_dirs().user_config_path)


def keyring_home() -> Path:
    """Return the directory holding rings created by this tool.

    ``$PGP_GUARDIAN_HOME`` wins over the platform data directory.
    """
    value = os.getenv(_HOME_ENV)
    if value:
        return Path(value).expanduser()
    return Path(_dirs().user_data_path)


def gnupg_home() -> Path:
    value = os.getenv("GNUPGHOME")
    if value:
        return Path(value).expanduser()
    return Path.home() / ".gnupg"


def default_public_ring() -> Path:
    """Existing GnuPG public ring if there is one, else our armored ring."""
    legacy = gnupg_home() / "pubring.gpg"
    if legacy.exists():
        return legacy
    return keyring_home() / "pubring.asc"


def default_secret_ring() -> Path:
    legacy = gnupg_home() / "secring.gpg"
    if legacy.exists():
        return legacy
    return keyring_home() / "secring.asc"


def default_gpg_command() -> str:
    return "gpg.exe" if sys.platform == "win32" else "gpg"


__all__ = [
    "default_gpg_command",
    "default_public_ring",
    "default_secret_ring",
    "gnupg_home",
    "keyring_home",
    "runtime_config_dir",
]
