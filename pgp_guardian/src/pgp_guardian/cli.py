# CLI implementation using Typer for commands like gen-key, sign-key, send-key, encrypt-msg, etc.
from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from . import __version__
from .commands import (
    Command,
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
from .config import AppConfig, load_config
from .logging import configure_logging
from .models import Notation
from .utils.config import dump_default_config
from .utils.errors import AppError
from .utils.paths import runtime_config_dir

app = typer.Typer(help="PGP Guardian: key rings, signing and key server exchange")


def _version(value: bool) -> None:
    if value:
        typer.echo(f"pgp-guardian {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    config: Optional[Path] = typer.Option(None, "--config", metavar="PATH", help="Configuration file"),
    public_ring: Optional[Path] = typer.Option(None, "--public-ring", help="Override the public ring file"),
    secret_ring: Optional[Path] = typer.Option(None, "--secret-ring", help="Override the secret ring file"),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="debug|info|warning|error"),
    version: bool = typer.Option(False, "--version", callback=_version, is_eager=True, help="Show version"),
) -> None:
    try:
        app_config = load_config(config)
    except ValueError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1)
    updates = {}
    if public_ring is not None:
        updates["public_ring"] = public_ring.expanduser()
    if secret_ring is not None:
        updates["secret_ring"] = secret_ring.expanduser()
    if updates:
        app_config = app_config.model_copy(
            update={"keyring": app_config.keyring.model_copy(update=updates)}
        )
    configure_logging(log_level or app_config.logging.normalized_level())
    ctx.obj = app_config


def _context(ctx: typer.Context) -> CommandContext:
    config: AppConfig = ctx.obj
    return CommandContext(
        config=config,
        read_input=lambda prompt: typer.prompt(prompt.rstrip(": ")),
        read_hidden=lambda prompt: typer.prompt(prompt.rstrip(": "), hide_input=True),
        output=typer.echo,
    )


def _run(ctx: typer.Context, command: Command):
    try:
        return run_command(command, _context(ctx))
    except (AppError, ValueError, FileNotFoundError) as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1)


def _notation(value: str) -> Notation:
    try:
        return Notation.parse(value)
    except ValueError as exc:
        raise typer.BadParameter(str(exc))


@app.command("gen-key")
def gen_key(ctx: typer.Context) -> None:
    """Create a new keypair and write fresh public and secret rings"""
    typer.echo("Creating a new PGP key, this could take a long time.", err=True)
    _run(ctx, GenerateKey())


@app.command("sign-key")
def sign_key(
    ctx: typer.Context,
    identifier: str = typer.Argument(..., help="Key id or user id substring"),
    notation: str = typer.Argument(..., help="Notation as name=value"),
    user_id: Optional[str] = typer.Option(None, "--user-id", help="Which user id to certify (default: first)"),
) -> None:
    """Certify a public key in the ring with a notation"""
    _run(ctx, SignKey(identifier, _notation(notation), user_id))


@app.command("send-key")
def send_key(
    ctx: typer.Context,
    identifier: str = typer.Argument(..., help="Key id or user id substring"),
    server: Optional[str] = typer.Argument(None, help="Key server, e.g. hkp://keyserver.ubuntu.com"),
) -> None:
    """Upload a public key to a key server"""
    _run(ctx, SendKey(identifier, server))


@app.command("recv-key")
def recv_key(
    ctx: typer.Context,
    key_id: str = typer.Argument(..., help="Key id (hex)"),
    server: Optional[str] = typer.Argument(None, help="Key server, e.g. hkp://keyserver.ubuntu.com"),
) -> None:
    """Fetch a public key from a key server into the public ring"""
    _run(ctx, ReceiveKey(key_id, server))


@app.command("import-pub-key")
def import_pub_key(
    ctx: typer.Context,
    path: Path = typer.Argument(..., exists=True, readable=True, dir_okay=False),
) -> None:
    """Add the first public key found in a file to the public ring"""
    _run(ctx, ImportKey(path))


@app.command("encrypt-msg")
def encrypt_msg(
    ctx: typer.Context,
    recipient: str = typer.Argument(..., help="Key id or user id substring"),
    message: str = typer.Argument(...),
) -> None:
    """Encrypt a message and print it armored"""
    _run(ctx, EncryptMessage(recipient, message))


@app.command("encrypt-file")
def encrypt_file(
    ctx: typer.Context,
    recipient: str = typer.Argument(..., help="Key id or user id substring"),
    path: Path = typer.Argument(..., exists=True, readable=True, dir_okay=False),
) -> None:
    """Encrypt a file to <file>.asc"""
    _run(ctx, EncryptFile(recipient, path))


@app.command("decrypt-file")
def decrypt_file(
    ctx: typer.Context,
    path: Path = typer.Argument(..., exists=True, readable=True, dir_okay=False),
    output: Optional[Path] = typer.Option(None, "-o", "--output", help="Output file (default: strip .asc)"),
) -> None:
    """Decrypt a file encrypted to the secret ring's key"""
    _run(ctx, DecryptFile(path, output))


@app.command("export-pub-key")
def export_pub_key(
    ctx: typer.Context,
    identifier: str = typer.Argument(..., help="Key id or user id substring"),
) -> None:
    """Print a public key in armored form"""
    _run(ctx, ExportPublicKey(identifier))


@app.command("sign")
def sign(
    ctx: typer.Context,
    path: Path = typer.Argument(..., exists=True, readable=True, dir_okay=False),
) -> None:
    """Write a detached signature to <file>.asc"""
    _run(ctx, SignFile(path))


@app.command("verify")
def verify(
    ctx: typer.Context,
    path: Path = typer.Argument(..., exists=True, readable=True, dir_okay=False),
    signature: Optional[Path] = typer.Option(None, "-s", "--signature", help="Signature (default: <file>.asc)"),
) -> None:
    """Verify a detached signature against the public ring"""
    ok = _run(ctx, VerifyFile(path, signature))
    raise typer.Exit(code=0 if ok else 2)


@app.command("init-config")
def init_config(
    target: Optional[Path] = typer.Option(None, "--target", help="Where to write (default: user config dir)"),
) -> None:
    """Write a configuration file with the default settings"""
    target = target or runtime_config_dir() / "config.yaml"
    if target.exists():
        typer.echo(f"Error: {target} already exists", err=True)
        raise typer.Exit(code=1)
    dump_default_config(target)
    typer.echo(f"Configuration written to {target}")


if __name__ == "__main__":  # pragma: no cover
    app()
