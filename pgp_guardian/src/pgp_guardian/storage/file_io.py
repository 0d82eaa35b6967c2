# Atomic file replacement and splitting of concatenated armored blocks.
from __future__ import annotations

import contextlib
import os
import re
import stat
import tempfile
from pathlib import Path
from typing import BinaryIO, Iterator, List

_ARMOR_BLOCK_RE = re.compile(
    rb"-----BEGIN PGP (?P<kind>[A-Z ]+?)-----\r?\n.*?-----END PGP (?P=kind)-----",
    re.DOTALL,
)


def split_armored_blocks(data: bytes) -> List[bytes]:
    """Split concatenated armored blocks; binary input comes back whole."""
    blocks = [match.group(0) for match in _ARMOR_BLOCK_RE.finditer(data)]
    if blocks:
        return blocks
    if b"-----BEGIN PGP" in data:
        # an opening line with no matching footer
        return [data.strip()]
    if not data.strip():
        return []
    return [data]


def _fsync_dir(path: Path) -> None:
    if os.name == "nt":
        return
    fd = os.open(str(path), os.O_RDONLY)
    try:
        os.fsync(fd)
    finally:
        os.close(fd)


def _default_mode(path: Path) -> int:
    """Mode of the file being replaced, else what a plain ``open`` would give."""
    try:
        return stat.S_IMODE(os.stat(path).st_mode)
    except FileNotFoundError:
        umask = os.umask(0)
        os.umask(umask)
        return 0o666 & ~umask


@contextlib.contextmanager
def atomic_writer(path: Path, *, mode: int | None = None) -> Iterator[BinaryIO]:
    """Write to a temp file beside ``path`` and move it into place on success.

    Readers see either the previous content or the complete new content. If
    the block raises, the temp file is removed and ``path`` is untouched.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    if mode is None:
        mode = _default_mode(path)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent))
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "wb") as handle:
            yield handle
            handle.flush()
            os.fsync(handle.fileno())
        os.chmod(tmp_path, mode)
        os.replace(tmp_path, path)
        _fsync_dir(path.parent)
    finally:
        if tmp_path.exists():
            tmp_path.unlink()


def atomic_write_bytes(path: Path, payload: bytes, *, mode: int | None = None) -> None:
    with atomic_writer(path, mode=mode) as handle:
        handle.write(payload)


def atomic_write_text(path: Path, text: str, *, mode: int | None = None) -> None:
    atomic_write_bytes(path, text.encode("utf-8"), mode=mode)


def remove_if_exists(path: Path) -> bool:
    try:
        Path(path).unlink()
    except FileNotFoundError:
        return False
    return True


__all__ = [
    "atomic_write_bytes",
    "atomic_write_text",
    "atomic_writer",
    "remove_if_exists",
    "split_armored_blocks",
]
