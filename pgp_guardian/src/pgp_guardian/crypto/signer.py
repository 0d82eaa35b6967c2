# Implement detached file signing: external gpg process or in-process PGPy key.
from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Optional, Protocol, Union

import pgpy
import structlog
from pgpy.constants import HashAlgorithm
from pgpy.errors import PGPError
from pydantic import SecretStr

from ..services.key_manager import DEFAULT_KEY_SIZE, generate_keyrings
from ..storage.file_io import atomic_write_text, remove_if_exists
from ..storage.keyring import SecretKeyRing
from ..utils.errors import (
    ExternalProcessFailure,
    NoSigningCapability,
    ProtocolParseFailure,
    Unsupported,
)
from .keys import PublicKey, SecretKey, unlocked

logger = structlog.get_logger(__name__)

PassphraseLike = Union[str, SecretStr]


class Signer(Protocol):
    """The two things the rest of the tool needs from a signer."""

    def sign(self, file: Path, signature_file: Path) -> Path:
        ...

    def generate_key(self, public_path: Path, secret_path: Path, identity: str) -> None:
        ...


class CommandLineSigner:
    """Signs by running ``gpg --detach-sign`` (or a compatible executable)."""

    def __init__(
        self,
        command: str = "gpg",
        *,
        local_user: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> None:
        self.command = command
        self.local_user = local_user
        self.timeout = timeout

    def arguments(self, file: Path, signature_file: Path) -> list[str]:
        args = [self.command, "--batch", "--yes", "--armor"]
        if self.local_user:
            args += ["--local-user", self.local_user]
        args += ["--detach-sign", "--output", str(signature_file), str(file)]
        return args

    def sign(self, file: Path, signature_file: Path) -> Path:
        file, signature_file = Path(file), Path(signature_file)
        remove_if_exists(signature_file)
        signature_file.parent.mkdir(parents=True, exist_ok=True)
        args = self.arguments(file, signature_file)
        try:
            result = subprocess.run(args, capture_output=True, timeout=self.timeout, check=False)
        except FileNotFoundError as exc:
            remove_if_exists(signature_file)
            raise ExternalProcessFailure(
                f"Signer executable not found: {self.command}", command=self.command
            ) from exc
        except subprocess.TimeoutExpired as exc:
            remove_if_exists(signature_file)
            raise ExternalProcessFailure(
                f"{self.command} did not finish signing {file} within {self.timeout}s", command=self.command
            ) from exc
        if result.returncode != 0:
            remove_if_exists(signature_file)
            stderr = result.stderr.decode("utf-8", "replace").strip()
            raise ExternalProcessFailure(
                f"{self.command} exited with status {result.returncode} signing {file}: {stderr}",
                command=self.command,
                returncode=result.returncode,
            )
        logger.info("file_signed", path=str(file), signature=str(signature_file), signer="command")
        return signature_file

    def generate_key(self, public_path: Path, secret_path: Path, identity: str) -> None:
        raise Unsupported(f"Key generation is not available through {self.command}; use the in-process signer")

    def __repr__(self) -> str:
        return f"CommandLineSigner({self.command!r})"


class InProcessSigner:
    """Signs with the sole signing key of a secret ring, using PGPy.

    The ring is read on first use. The passphrase is only handed to
    :func:`unlocked` for the span of one signature.
    """

    def __init__(self, secret_ring: Path, passphrase: PassphraseLike, *, key_size: Optional[int] = None) -> None:
        self.secret_ring_path = Path(secret_ring)
        self._passphrase = passphrase if isinstance(passphrase, SecretStr) else SecretStr(passphrase)
        self.key_size = key_size
        self._secret_key: Optional[SecretKey] = None

    @property
    def secret_key(self) -> SecretKey:
        if self._secret_key is None:
            self._secret_key = SecretKeyRing.load(self.secret_ring_path).secret_key
        return self._secret_key

    def sign(self, file: Path, signature_file: Path) -> Path:
        file, signature_file = Path(file), Path(signature_file)
        secret_key = self.secret_key
        if not secret_key.can_sign:
            raise NoSigningCapability(f"Key 0x{secret_key.key_id_hex} cannot sign")
        remove_if_exists(signature_file)
        data = file.read_bytes()
        with unlocked(secret_key, self._passphrase.get_secret_value()) as key:
            signature = key.sign(data, hash=HashAlgorithm.SHA256)
        atomic_write_text(signature_file, str(signature))
        logger.info(
            "file_signed",
            path=str(file),
            signature=str(signature_file),
            signer="in-process",
            key_id=secret_key.key_id_hex,
        )
        return signature_file

    def generate_key(self, public_path: Path, secret_path: Path, identity: str) -> None:
        generate_keyrings(
            identity,
            self._passphrase.get_secret_value(),
            public_path,
            secret_path,
            key_size=self.key_size or DEFAULT_KEY_SIZE,
        )
        self._secret_key = None

    def __repr__(self) -> str:
        return f"InProcessSigner({str(self.secret_ring_path)!r})"


def select_signer(config) -> Signer:
    """In-process signer when a passphrase is configured, else the external command.

    ``config`` is an :class:`~pgp_guardian.config.AppConfig`.
    """
    if config.signer.passphrase is not None:
        return InProcessSigner(
            config.keyring.secret_ring,
            config.signer.passphrase,
            key_size=config.keygen.key_size,
        )
    return CommandLineSigner(
        config.signer.command,
        local_user=config.signer.local_user,
        timeout=config.signer.timeout,
    )


def verify_detached(public_key: PublicKey, file: Path, signature_file: Path) -> bool:
    """Check a detached signature over ``file`` against ``public_key``.

    Returns False for a bad signature or one made by a different key.
    """
    file, signature_file = Path(file), Path(signature_file)
    try:
        signature = pgpy.PGPSignature.from_blob(signature_file.read_bytes())
    except Exception as exc:
        raise ProtocolParseFailure(f"Malformed signature in {signature_file}: {exc}") from exc
    try:
        verification = public_key.pgp_key.verify(file.read_bytes(), signature)
    except PGPError:
        # signature was not issued by this key or its subkeys
        return False
    return bool(verification)


__all__ = ["CommandLineSigner", "InProcessSigner", "Signer", "select_signer", "verify_detached"]
