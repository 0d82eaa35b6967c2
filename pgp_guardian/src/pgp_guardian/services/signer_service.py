# Implement detached signing of artifacts and verification.
from __future__ import annotations

from pathlib import Path
from typing import Iterable, List

import structlog

from ..crypto.signer import Signer, verify_detached
from ..storage.keyring import PublicKeyRing
from ..utils.errors import KeyNotFound

logger = structlog.get_logger(__name__)

SIGNATURE_SUFFIX = ".asc"


def signature_path(file: Path) -> Path:
    """``<file>.asc``, next to the file."""
    file = Path(file)
    return file.with_name(file.name + SIGNATURE_SUFFIX)


def sign_files(signer: Signer, files: Iterable[Path]) -> List[Path]:
    """Sign every file in turn and return the signatures in the same order.

    Stops at the first failure; signatures already written stay in place.
    """
    produced = []
    for file in files:
        produced.append(signer.sign(Path(file), signature_path(Path(file))))
    logger.info("files_signed", count=len(produced))
    return produced


def verify_file(ring: PublicKeyRing, file: Path, signature_file: Path) -> bool:
    """Verify ``signature_file`` with whichever key in ``ring`` issued it."""
    if not len(ring):
        raise KeyNotFound("Public key ring is empty; nothing to verify against")
    for key in ring:
        if verify_detached(key, file, signature_file):
            logger.info("signature_verified", path=str(file), key_id=key.key_id_hex)
            return True
    logger.warning("signature_rejected", path=str(file), signature=str(signature_file))
    return False


__all__ = ["SIGNATURE_SUFFIX", "sign_files", "signature_path", "verify_file"]
