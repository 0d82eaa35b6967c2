from __future__ import annotations

from pathlib import Path

import pytest

from pgp_guardian.config import AppConfig, KeyRingConfig
from pgp_guardian.services.key_manager import generate
from pgp_guardian.storage.keyring import PublicKeyRing, SecretKeyRing

ALICE = "Alice <alice@example.com>"
BOB = "Bob <bob@example.com>"
CAROL = "Carol <carol@example.org>"

ALICE_PASSPHRASE = "hunter2"
BOB_PASSPHRASE = "correct horse"

TEST_KEY_SIZE = 2048


@pytest.fixture(autouse=True)
def _isolated_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    home = tmp_path / "_home"
    monkeypatch.setenv("PGP_GUARDIAN_HOME", str(home / "rings"))
    monkeypatch.setenv("GNUPGHOME", str(home / "gnupg"))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(home / "config"))
    monkeypatch.chdir(tmp_path)


@pytest.fixture(scope="session")
def alice():
    return generate(ALICE, ALICE_PASSPHRASE, key_size=TEST_KEY_SIZE)


@pytest.fixture(scope="session")
def bob():
    return generate(BOB, BOB_PASSPHRASE, key_size=TEST_KEY_SIZE)


@pytest.fixture(scope="session")
def carol_signing_only():
    return generate(CAROL, "pw", key_size=TEST_KEY_SIZE, encryption_subkey=False)


@pytest.fixture()
def ring_paths(tmp_path: Path) -> tuple[Path, Path]:
    return tmp_path / "rings" / "pubring.asc", tmp_path / "rings" / "secring.asc"


@pytest.fixture()
def populated_rings(ring_paths, alice, bob):
    """Public ring with Alice and Bob, secret ring with Alice's key."""
    public_path, secret_path = ring_paths
    PublicKeyRing([alice[0], bob[0]]).save(public_path)
    SecretKeyRing([alice[1]]).save(secret_path)
    return public_path, secret_path


@pytest.fixture()
def app_config(populated_rings) -> AppConfig:
    public_path, secret_path = populated_rings
    return AppConfig(keyring=KeyRingConfig(public_ring=public_path, secret_ring=secret_path))
