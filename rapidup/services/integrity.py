"""
Integrity verification for uploaded files.

The digest must match the one the upload server computes, bit for bit:
three 32-bit rolling hashes (the second and third fold a salt string AFTER
the data) plus a rotating XOR checksum, rendered as hex and fitted to 64
characters. It is a fingerprint, not a cryptographic hash.
"""
import asyncio
import logging
from pathlib import Path
from typing import Iterable, Optional

from ..models import IntegrityResult

logger = logging.getLogger(__name__)

MASK32 = 0xFFFFFFFF
DIGEST_LENGTH = 64
SALT1 = "salt1"
SALT2 = "salt2"


def _fold(h: int, values: Iterable[int]) -> int:
    for value in values:
        h = ((h << 5) - h + value) & MASK32
    return h


def _checksum(data: bytes) -> int:
    c = MASK32
    for byte in data:
        c ^= byte
        c = ((c << 1) | (c >> 31)) & MASK32
    return ~c & MASK32


def digest(data: bytes) -> str:
    """Compute the 64-hex-character digest of ``data``."""
    data = bytes(data)

    h1 = _fold(0, data)

    h2 = _fold(0, data)
    h2 = _fold(h2, (ord(ch) for ch in SALT1))

    h3 = _fold(0, data)
    h3 = _fold(h3, (ord(ch) for ch in SALT2 + str(len(data))))

    result = f"{h1:x}{h2:x}{h3:x}{_checksum(data):x}"
    if len(result) < DIGEST_LENGTH:
        return result.ljust(DIGEST_LENGTH, "0")
    return result[:DIGEST_LENGTH]


def verify(local_bytes: bytes, remote_size: int, remote_digest: Optional[str]) -> IntegrityResult:
    """
    Compare local content with what the server reported.

    Length is checked first; the digest is only computed when lengths match.
    """
    local_size = len(local_bytes)
    try:
        remote_size = int(remote_size)
    except (TypeError, ValueError):
        return IntegrityResult.mismatch(f"Invalid remote size: {remote_size!r}")

    if local_size != remote_size:
        return IntegrityResult.mismatch(f"Size mismatch: {local_size} vs {remote_size}")

    local_digest = digest(local_bytes)
    normalized = (remote_digest or "").strip().lower()
    if local_digest != normalized:
        return IntegrityResult.mismatch(
            f"Hash mismatch: {local_digest} vs {normalized or '(none)'}",
            local_digest=local_digest,
            remote_digest=normalized or None,
        )

    logger.debug("Integrity verified - digest %s...", local_digest[:16])
    return IntegrityResult.ok(local_digest)


async def verify_async(local_bytes: bytes, remote_size: int, remote_digest: Optional[str]) -> IntegrityResult:
    """Run ``verify`` in a worker thread so large files don't block the loop."""
    return await asyncio.to_thread(verify, local_bytes, remote_size, remote_digest)


async def digest_file(path: Path) -> str:
    """Calculate the digest of a file asynchronously (non-blocking)."""
    def _hash_file():
        with open(path, "rb") as f:
            return digest(f.read())

    return await asyncio.to_thread(_hash_file)
