"""The closed set of user-facing commands.

Each command is a small frozen dataclass carrying the already-parsed
arguments of one operation. :func:`run_command` dispatches on the command
type with a single ``match``; the :class:`CommandContext` supplies ring
locations, configuration, prompting and where output goes, so commands never
touch the terminal themselves.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional, Union

import httpx
import structlog

from .config import AppConfig
from .crypto.keys import PublicKey
from .crypto.signer import Signer, select_signer
from .hkp.client import HkpClient
from .models import Notation
from .services.decryptor import decrypt_file
from .services.encryptor import encrypt_file, encrypt_string
from .services.key_manager import certify_key, export_public_key, generate_keyrings, import_public_key
from .services.signer_service import sign_files, signature_path, verify_file
from .storage.keyring import PublicKeyRing, SecretKeyRing
from .utils.errors import AlreadyExists, KeyNotFound, PassphraseMismatch

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class GenerateKey:
    pass


@dataclass(frozen=True)
class SignKey:
    identifier: str
    notation: Notation
    user_id: Optional[str] = None


@dataclass(frozen=True)
class SendKey:
    identifier: str
    server: Optional[str] = None


@dataclass(frozen=True)
class ReceiveKey:
    key_id: str
    server: Optional[str] = None


@dataclass(frozen=True)
class ImportKey:
    path: Path


@dataclass(frozen=True)
class EncryptMessage:
    recipient: str
    message: str


@dataclass(frozen=True)
class EncryptFile:
    recipient: str
    path: Path


@dataclass(frozen=True)
class DecryptFile:
    path: Path
    output: Optional[Path] = None


@dataclass(frozen=True)
class ExportPublicKey:
    identifier: str


@dataclass(frozen=True)
class SignFile:
    path: Path


@dataclass(frozen=True)
class VerifyFile:
    path: Path
    signature: Optional[Path] = None


Command = Union[
    GenerateKey,
    SignKey,
    SendKey,
    ReceiveKey,
    ImportKey,
    EncryptMessage,
    EncryptFile,
    DecryptFile,
    ExportPublicKey,
    SignFile,
    VerifyFile,
]


def _no_prompt(prompt: str) -> str:
    raise RuntimeError(f"Interactive input required but no prompt is available: {prompt}")


@dataclass
class CommandContext:
    """Everything a command may need from its surroundings"""

    config: AppConfig = field(default_factory=AppConfig)
    read_input: Callable[[str], str] = _no_prompt
    read_hidden: Callable[[str], str] = _no_prompt
    output: Callable[[str], None] = print
    transport: Optional[httpx.BaseTransport] = None
    signer: Optional[Signer] = None

    @property
    def public_ring_path(self) -> Path:
        return self.config.keyring.public_ring

    @property
    def secret_ring_path(self) -> Path:
        return self.config.keyring.secret_ring

    def public_ring(self, *, missing_ok: bool = True) -> PublicKeyRing:
        return PublicKeyRing.load(self.public_ring_path, missing_ok=missing_ok)

    def secret_ring(self) -> SecretKeyRing:
        return SecretKeyRing.load(self.secret_ring_path)

    def add_public_key(self, key: PublicKey) -> PublicKeyRing:
        ring = self.public_ring().append(key)
        ring.save(self.public_ring_path)
        return ring

    def passphrase(self) -> str:
        configured = self.config.signer.passphrase
        if configured is not None:
            return configured.get_secret_value()
        return self.read_hidden("Please enter your PGP passphrase: ")

    def hkp_client(self, server: Optional[str]) -> HkpClient:
        server = server or self.config.hkp.server
        if not server:
            raise ValueError("No key server given and none configured (hkp.server)")
        return HkpClient(server, timeout=self.config.hkp.timeout, transport=self.transport)

    def active_signer(self) -> Signer:
        if self.signer is None:
            self.signer = select_signer(self.config)
        return self.signer


def _generate_key(ctx: CommandContext) -> PublicKey:
    pub, sec = ctx.public_ring_path, ctx.secret_ring_path
    for path in (pub, sec):
        if path.exists():
            raise AlreadyExists(path.resolve())
    name = ctx.read_input("Please enter the name associated with the key: ")
    email = ctx.read_input("Please enter the email associated with the key: ")
    pw = ctx.read_hidden("Please enter the passphrase for the key: ")
    pw2 = ctx.read_hidden("Please re-enter the passphrase for the key: ")
    if pw != pw2:
        raise PassphraseMismatch("Passphrases do not match!")
    identity = f"{name.strip()} <{email.strip()}>"
    logger.info("key_generation_started", identity=identity, key_size=ctx.config.keygen.key_size)
    public, _ = generate_keyrings(identity, pw, pub, sec, key_size=ctx.config.keygen.key_size)
    ctx.output(f"Public key := {pub.resolve()}")
    ctx.output(f"Secret key := {sec.resolve()}")
    ctx.output("Please do not share your secret key. Your public key is free to share.")
    return public


def _sign_key(command: SignKey, ctx: CommandContext) -> PublicKey:
    target = ctx.public_ring(missing_ok=False).require(command.identifier)
    signer = ctx.secret_ring().secret_key
    certified = certify_key(signer, target, command.notation, ctx.passphrase(), user_id=command.user_id)
    ctx.add_public_key(certified)
    ctx.output(f"Signed 0x{certified.key_id_hex} with {command.notation.name}={command.notation.value}")
    return certified


def _send_key(command: SendKey, ctx: CommandContext) -> PublicKey:
    key = ctx.public_ring(missing_ok=False).require(command.identifier)
    client = ctx.hkp_client(command.server)
    logger.info("sending_key", key_id=key.key_id_hex, server=client.base_url)
    client.push_key(key)
    ctx.output(f"Sent 0x{key.key_id_hex} to {client.base_url}")
    return key


def _receive_key(command: ReceiveKey, ctx: CommandContext) -> PublicKey:
    client = ctx.hkp_client(command.server)
    key = client.fetch_key(command.key_id)
    if key is None:
        raise KeyNotFound(f"Could not find key: {command.key_id} on server {client.base_url}")
    ctx.add_public_key(key)
    ctx.output(f"Received 0x{key.key_id_hex}")
    return key


def _import_key(command: ImportKey, ctx: CommandContext) -> PublicKey:
    key = import_public_key(command.path)
    ctx.add_public_key(key)
    ctx.output(f"Imported 0x{key.key_id_hex}")
    return key


def _encrypt_message(command: EncryptMessage, ctx: CommandContext) -> str:
    key = ctx.public_ring(missing_ok=False).find_encryption_key(command.recipient)
    armored = encrypt_string(key, command.message)
    ctx.output(armored)
    return armored


def _encrypt_file(command: EncryptFile, ctx: CommandContext) -> Path:
    key = ctx.public_ring(missing_ok=False).find_encryption_key(command.recipient)
    output = encrypt_file(key, command.path)
    ctx.output(f"Encrypted -> {output}")
    return output


def _decrypt_file(command: DecryptFile, ctx: CommandContext) -> Path:
    secret_key = ctx.secret_ring().secret_key
    output = decrypt_file(secret_key, command.path, ctx.passphrase(), output=command.output)
    ctx.output(f"Decrypted -> {output}")
    return output


def _export_public_key(command: ExportPublicKey, ctx: CommandContext) -> str:
    armored = export_public_key(ctx.public_ring(missing_ok=False).require(command.identifier))
    ctx.output(armored)
    return armored


def _sign_file(command: SignFile, ctx: CommandContext) -> Path:
    (signature,) = sign_files(ctx.active_signer(), [command.path])
    ctx.output(f"Signed -> {signature}")
    return signature


def _verify_file(command: VerifyFile, ctx: CommandContext) -> bool:
    signature = command.signature or signature_path(command.path)
    ok = verify_file(ctx.public_ring(missing_ok=False), command.path, signature)
    ctx.output("Verify OK" if ok else "Verify FAILED")
    return ok


def run_command(command: Command, ctx: CommandContext):
    """Run one command and return what it produced."""
    logger.debug("command_started", command=type(command).__name__)
    match command:
        case GenerateKey():
            return _generate_key(ctx)
        case SignKey():
            return _sign_key(command, ctx)
        case SendKey():
            return _send_key(command, ctx)
        case ReceiveKey():
            return _receive_key(command, ctx)
        case ImportKey():
            return _import_key(command, ctx)
        case EncryptMessage():
            return _encrypt_message(command, ctx)
        case EncryptFile():
            return _encrypt_file(command, ctx)
        case DecryptFile():
            return _decrypt_file(command, ctx)
        case ExportPublicKey():
            return _export_public_key(command, ctx)
        case SignFile():
            return _sign_file(command, ctx)
        case VerifyFile():
            return _verify_file(command, ctx)
        case _:
            raise TypeError(f"Unknown command: {command!r}")


__all__ = [
    "Command",
    "CommandContext",
    "DecryptFile",
    "EncryptFile",
    "EncryptMessage",
    "ExportPublicKey",
    "GenerateKey",
    "ImportKey",
    "ReceiveKey",
    "SendKey",
    "SignFile",
    "SignKey",
    "VerifyFile",
    "run_command",
]
