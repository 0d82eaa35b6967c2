from __future__ import annotations

from pathlib import Path

import pytest
import yaml
from typer.testing import CliRunner

from pgp_guardian import __version__
from pgp_guardian.cli import app
from pgp_guardian.storage.keyring import PublicKeyRing

runner = CliRunner()


def _invoke(rings: tuple[Path, Path], *args: str, input: str | None = None):
    public, secret = rings
    return runner.invoke(
        app,
        ["--log-level", "error", "--public-ring", str(public), "--secret-ring", str(secret), *args],
        input=input,
    )


def test_cli_reports_version() -> None:
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert result.output.strip() == f"pgp-guardian {__version__}"


def test_export_pub_key(populated_rings, alice) -> None:
    result = _invoke(populated_rings, "export-pub-key", "alice@example.com")
    assert result.exit_code == 0, result.output
    assert "-----BEGIN PGP PUBLIC KEY BLOCK-----" in result.output


def test_unknown_key_is_reported(populated_rings) -> None:
    result = _invoke(populated_rings, "encrypt-msg", "mallory@example.com", "hi")
    assert result.exit_code == 1
    assert "Could not find public key: mallory@example.com" in result.output


def test_blank_identifier_is_rejected(populated_rings) -> None:
    result = _invoke(populated_rings, "export-pub-key", "  ")
    assert result.exit_code == 1
    assert "must not be empty" in result.output
    assert "BEGIN PGP PUBLIC KEY BLOCK" not in result.output


def test_gen_key_refuses_existing_rings(populated_rings) -> None:
    result = _invoke(populated_rings, "gen-key")
    assert result.exit_code == 1
    assert "already exists" in result.output


def test_gen_key_passphrase_mismatch(ring_paths) -> None:
    result = _invoke(ring_paths, "gen-key", input="Alice\nalice@example.com\nhunter2\nhunter3\n")
    assert result.exit_code == 1
    assert "Passphrases do not match" in result.output
    assert not ring_paths[0].exists()


def test_sign_key_with_prompted_passphrase(populated_rings, bob) -> None:
    result = _invoke(populated_rings, "sign-key", "bob@example.com", "ci=trusted", input="hunter2\n")
    assert result.exit_code == 0, result.output
    stored = PublicKeyRing.load(populated_rings[0]).get(bob[0].key_id)
    assert any(sig.notation("ci") == "trusted" for sig in stored.signatures)


def test_sign_key_rejects_bad_notation(populated_rings) -> None:
    result = _invoke(populated_rings, "sign-key", "bob@example.com", "no-equals-sign")
    assert result.exit_code == 2


def test_sign_and_verify_with_config_file(tmp_path: Path, populated_rings) -> None:
    public, secret = populated_rings
    config = tmp_path / "config.yaml"
    config.write_text(
        yaml.safe_dump(
            {
                "keyring": {"public_ring": str(public), "secret_ring": str(secret)},
                "signer": {"passphrase": "hunter2"},
                "logging": {"level": "error"},
            }
        ),
        encoding="utf-8",
    )
    artifact = tmp_path / "dist.zip"
    artifact.write_bytes(b"zip bytes")

    signed = runner.invoke(app, ["--config", str(config), "sign", str(artifact)])
    assert signed.exit_code == 0, signed.output
    assert (tmp_path / "dist.zip.asc").exists()

    verified = runner.invoke(app, ["--config", str(config), "verify", str(artifact)])
    assert verified.exit_code == 0
    assert "Verify OK" in verified.output

    artifact.write_bytes(b"other bytes")
    rejected = runner.invoke(app, ["--config", str(config), "verify", str(artifact)])
    assert rejected.exit_code == 2
    assert "Verify FAILED" in rejected.output


def test_invalid_config_file(tmp_path: Path) -> None:
    config = tmp_path / "config.yaml"
    config.write_text("keygen:\n  key_size: 12\n", encoding="utf-8")
    result = runner.invoke(app, ["--config", str(config), "export-pub-key", "alice"])
    assert result.exit_code == 1
    assert "Invalid configuration" in result.output


@pytest.mark.parametrize("command", ["sign", "import-pub-key"])
def test_missing_input_file(tmp_path: Path, populated_rings, command: str) -> None:
    result = _invoke(populated_rings, command, str(tmp_path / "nope.bin"))
    assert result.exit_code == 2


def test_init_config(tmp_path: Path) -> None:
    target = tmp_path / "conf" / "config.yaml"
    result = runner.invoke(app, ["init-config", "--target", str(target)])
    assert result.exit_code == 0
    data = yaml.safe_load(target.read_text(encoding="utf-8"))
    assert data["keygen"]["key_size"] == 3072
    again = runner.invoke(app, ["init-config", "--target", str(target)])
    assert again.exit_code == 1
