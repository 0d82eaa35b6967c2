from __future__ import annotations

from pathlib import Path
from typing import Iterable

import httpx
import pytest

from pgp_guardian.commands import (
    CommandContext,
    DecryptFile,
    EncryptFile,
    EncryptMessage,
    ExportPublicKey,
    GenerateKey,
    ImportKey,
    ReceiveKey,
    SendKey,
    SignFile,
    SignKey,
    VerifyFile,
    run_command,
)
from pgp_guardian.config import AppConfig, HkpConfig, KeyGenConfig, KeyRingConfig, SignerConfig
from pgp_guardian.exceptions import AlreadyExists, KeyNotFound, MissingKeyRing, PassphraseMismatch
from pgp_guardian.models import Notation
from pgp_guardian.services.decryptor import decrypt_string
from pgp_guardian.storage.keyring import PublicKeyRing


class Recorder:
    def __init__(self, answers: Iterable[str] = (), secrets: Iterable[str] = ()) -> None:
        self.answers = list(answers)
        self.secrets = list(secrets)
        self.lines: list[str] = []

    def read_input(self, prompt: str) -> str:
        return self.answers.pop(0)

    def read_hidden(self, prompt: str) -> str:
        return self.secrets.pop(0)

    def context(self, config: AppConfig, **kwargs) -> CommandContext:
        return CommandContext(
            config=config,
            read_input=self.read_input,
            read_hidden=self.read_hidden,
            output=self.lines.append,
            **kwargs,
        )


def _config(public: Path, secret: Path, **sections) -> AppConfig:
    return AppConfig(keyring=KeyRingConfig(public_ring=public, secret_ring=secret), **sections)


def test_generate_refuses_existing_rings_before_prompting(app_config: AppConfig) -> None:
    # the default prompt callbacks raise if they are ever called
    ctx = CommandContext(config=app_config)
    with pytest.raises(AlreadyExists):
        run_command(GenerateKey(), ctx)


def test_generate_passphrase_mismatch(ring_paths) -> None:
    public, secret = ring_paths
    recorder = Recorder(["Alice", "alice@example.com"], ["hunter2", "hunter3"])
    with pytest.raises(PassphraseMismatch):
        run_command(GenerateKey(), recorder.context(_config(public, secret)))
    assert not public.exists()
    assert not secret.exists()


def test_generate_creates_rings(ring_paths) -> None:
    public, secret = ring_paths
    recorder = Recorder(["Alice", "alice@example.com"], ["hunter2", "hunter2"])
    config = _config(public, secret, keygen=KeyGenConfig(key_size=2048))
    key = run_command(GenerateKey(), recorder.context(config))
    assert key.user_ids == ("Alice <alice@example.com>",)
    assert PublicKeyRing.load(public).find("alice@example.com").key_id == key.key_id
    assert any("Public key :=" in line for line in recorder.lines)


def test_import_and_export(tmp_path: Path, ring_paths, bob) -> None:
    public, secret = ring_paths
    source = tmp_path / "bob.asc"
    source.write_text(bob[0].armored(), encoding="utf-8")
    recorder = Recorder()
    ctx = recorder.context(_config(public, secret))

    imported = run_command(ImportKey(source), ctx)
    assert imported.key_id == bob[0].key_id
    exported = run_command(ExportPublicKey("bob@example.com"), ctx)
    assert exported.startswith("-----BEGIN PGP PUBLIC KEY BLOCK-----")
    assert recorder.lines[-1] == exported


def test_export_without_public_ring(ring_paths) -> None:
    with pytest.raises(MissingKeyRing):
        run_command(ExportPublicKey("alice"), Recorder().context(_config(*ring_paths)))


def test_encrypt_message_to_recipient(app_config: AppConfig, alice) -> None:
    recorder = Recorder()
    armored = run_command(EncryptMessage("alice@example.com", "hello alice"), recorder.context(app_config))
    assert recorder.lines == [armored]
    assert decrypt_string(alice[1], armored, "hunter2") == "hello alice"


def test_encrypt_message_unknown_recipient(app_config: AppConfig) -> None:
    with pytest.raises(KeyNotFound):
        run_command(EncryptMessage("mallory", "hi"), Recorder().context(app_config))


def test_encrypt_and_decrypt_file(tmp_path: Path, app_config: AppConfig) -> None:
    source = tmp_path / "report.csv"
    source.write_text("a,b\n1,2\n", encoding="utf-8")
    recorder = Recorder(secrets=["hunter2"])
    ctx = recorder.context(app_config)

    encrypted = run_command(EncryptFile("Alice", source), ctx)
    assert encrypted == tmp_path / "report.csv.asc"
    decrypted = run_command(DecryptFile(encrypted, tmp_path / "copy.csv"), ctx)
    assert decrypted.read_text(encoding="utf-8") == "a,b\n1,2\n"


def test_sign_key_certifies_and_persists(app_config: AppConfig, bob) -> None:
    recorder = Recorder(secrets=["hunter2"])
    certified = run_command(SignKey("bob@example.com", Notation("release", "2.0")), recorder.context(app_config))
    stored = PublicKeyRing.load(app_config.keyring.public_ring).get(bob[0].key_id)
    assert len(stored.signatures) == len(bob[0].signatures) + 1
    assert {sig.packet for sig in stored.signatures} == {sig.packet for sig in certified.signatures}


def test_sign_key_uses_configured_passphrase(app_config: AppConfig, bob) -> None:
    config = app_config.model_copy(update={"signer": SignerConfig(passphrase="hunter2")})
    # no hidden prompt answers: the configured passphrase must be used
    run_command(SignKey(bob[0].key_id_hex, Notation("n", "v")), Recorder().context(config))


def test_send_key(app_config: AppConfig, alice) -> None:
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200)

    ctx = Recorder().context(app_config, transport=httpx.MockTransport(handler))
    sent = run_command(SendKey("alice", "hkp://keys.example.org"), ctx)
    assert sent.key_id == alice[0].key_id
    assert seen[0].url.path == "/pks/add"


def test_send_key_needs_a_server(app_config: AppConfig) -> None:
    with pytest.raises(ValueError):
        run_command(SendKey("alice"), Recorder().context(app_config))


def test_receive_key_uses_configured_server(ring_paths, bob) -> None:
    public, secret = ring_paths

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.host == "keys.example.net"
        return httpx.Response(200, text=bob[0].armored())

    config = _config(public, secret, hkp=HkpConfig(server="hkps://keys.example.net"))
    ctx = Recorder().context(config, transport=httpx.MockTransport(handler))
    received = run_command(ReceiveKey(bob[0].key_id_hex), ctx)
    assert received.key_id == bob[0].key_id
    assert PublicKeyRing.load(public).key_ids == (bob[0].key_id,)


def test_receive_key_not_on_server(app_config: AppConfig) -> None:
    transport = httpx.MockTransport(lambda request: httpx.Response(404))
    ctx = Recorder().context(app_config, transport=transport)
    with pytest.raises(KeyNotFound):
        run_command(ReceiveKey("0xDEADBEEF", "hkp://keys.example.org"), ctx)


def test_sign_and_verify_file(tmp_path: Path, app_config: AppConfig) -> None:
    config = app_config.model_copy(update={"signer": SignerConfig(passphrase="hunter2")})
    artifact = tmp_path / "app-1.0.tar.gz"
    artifact.write_bytes(b"\x1f\x8b tarball")
    recorder = Recorder()
    ctx = recorder.context(config)

    signature = run_command(SignFile(artifact), ctx)
    assert signature == tmp_path / "app-1.0.tar.gz.asc"
    assert run_command(VerifyFile(artifact), ctx) is True
    artifact.write_bytes(b"changed")
    assert run_command(VerifyFile(artifact, signature), ctx) is False
    assert recorder.lines[-1] == "Verify FAILED"


def test_unknown_command(app_config: AppConfig) -> None:
    with pytest.raises(TypeError):
        run_command(object(), Recorder().context(app_config))
