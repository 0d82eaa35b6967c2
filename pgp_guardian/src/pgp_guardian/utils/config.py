"""Configuration loading utilities for PGP Guardian."""
from __future__ import annotations

from pathlib import Path
from typing import Iterable, Optional

import yaml
from pydantic import BaseModel, Field, SecretStr, ValidationError, field_validator

from .paths import (
    default_gpg_command,
    default_public_ring,
    default_secret_ring,
    runtime_config_dir,
)


class KeyRingConfig(BaseModel):
    public_ring: Path = Field(default_factory=default_public_ring)
    secret_ring: Path = Field(default_factory=default_secret_ring)

    @field_validator("public_ring", "secret_ring")
    @classmethod
    def _expand(cls, value: Path) -> Path:
        return Path(value).expanduser()


class SignerConfig(BaseModel):
    command: str = Field(default_factory=default_gpg_command, description="External signer executable")
    passphrase: Optional[SecretStr] = Field(
        default=None,
        description="When set, signing runs in-process against the secret ring",
    )
    local_user: Optional[str] = Field(default=None, description="Key selector passed to the external signer")
    timeout: Optional[float] = Field(default=None, gt=0, description="Seconds to wait for the external signer")


class HkpConfig(BaseModel):
    server: Optional[str] = Field(default=None, description="Default key server base URL")
    timeout: float = Field(default=30.0, gt=0)


class KeyGenConfig(BaseModel):
    key_size: int = Field(default=3072, ge=1024, le=8192)


class LoggingConfig(BaseModel):
    level: str = Field(default="INFO", description="Logging verbosity level")

    def normalized_level(self) -> str:
        return self.level.upper()


class AppConfig(BaseModel):
    keyring: KeyRingConfig = Field(default_factory=KeyRingConfig)
    signer: SignerConfig = Field(default_factory=SignerConfig)
    hkp: HkpConfig = Field(default_factory=HkpConfig)
    keygen: KeyGenConfig = Field(default_factory=KeyGenConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def config_search_paths(explicit: Optional[Path] = None) -> Iterable[Path]:
    if explicit:
        yield explicit
    yield Path.cwd() / ".pgp-guardian" / "config.yaml"
    yield runtime_config_dir() / "config.yaml"


def load_config(path: Optional[Path] = None) -> AppConfig:
    for candidate in config_search_paths(path):
        if candidate.is_file():
            with candidate.open("r", encoding="utf-8") as handle:
                data = yaml.safe_load(handle) or {}
            try:
                return AppConfig.model_validate(data)
            except ValidationError as exc:
                raise ValueError(f"Invalid configuration in {candidate}: {exc}") from exc
    return AppConfig()


def dump_default_config(target: Path) -> None:
    target.parent.mkdir(parents=True, exist_ok=True)
    with target.open("w", encoding="utf-8") as handle:
        yaml.safe_dump(AppConfig().model_dump(mode="json"), handle, sort_keys=False)


__all__ = [
    "AppConfig",
    "HkpConfig",
    "KeyGenConfig",
    "KeyRingConfig",
    "LoggingConfig",
    "SignerConfig",
    "config_search_paths",
    "dump_default_config",
    "load_config",
]
