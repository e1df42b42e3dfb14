"""SHA-512 digest backends.

Two interchangeable single-shot SHA-512 implementations:
- OpenSSLSha512: OpenSSL via `cryptography` (CPU-accelerated where available)
- SodiumSha512: libsodium's portable software implementation via PyNaCl

The backend is picked once by a capability probe and injected into key
derivation. Both produce identical output for identical input.
"""

import logging
from typing import Protocol

import nacl.encoding
import nacl.hash
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes

logger = logging.getLogger(__name__)

__all__ = [
    "DIGEST_SIZE",
    "BLOCK_SIZE",
    "Sha512Backend",
    "OpenSSLSha512",
    "SodiumSha512",
    "openssl_available",
    "select_backend",
    "default_backend",
]

DIGEST_SIZE = 64
BLOCK_SIZE = 128

_default: "Sha512Backend | None" = None


class Sha512Backend(Protocol):
    """Protocol for a single-shot SHA-512 digest."""

    name: str

    def digest(self, data: bytes) -> bytes:
        """Return the 64-byte SHA-512 digest of data."""
        ...


class OpenSSLSha512:
    """SHA-512 through OpenSSL."""

    name = "openssl"

    def digest(self, data: bytes) -> bytes:
        h = hashes.Hash(hashes.SHA512())
        h.update(data)
        return h.finalize()


class SodiumSha512:
    """SHA-512 through libsodium (pure software)."""

    name = "sodium"

    def digest(self, data: bytes) -> bytes:
        return nacl.hash.sha512(data, encoder=nacl.encoding.RawEncoder)


def openssl_available() -> bool:
    """Probe whether OpenSSL will compute SHA-512 in this process.

    Restricted OpenSSL builds raise UnsupportedAlgorithm when the digest
    is constructed; anything else means the backend is usable.
    """
    try:
        OpenSSLSha512().digest(b"")
    except UnsupportedAlgorithm:
        return False
    return True


def select_backend(prefer: str | None = None) -> Sha512Backend:
    """Pick a SHA-512 backend.

    Args:
        prefer: "openssl", "sodium", or None/"auto" to probe.

    Returns:
        Backend instance.

    Raises:
        ValueError: If prefer names an unknown backend.
    """
    if prefer == "openssl":
        return OpenSSLSha512()
    if prefer == "sodium":
        return SodiumSha512()
    if prefer not in (None, "auto"):
        raise ValueError(f"Unknown digest backend: {prefer}")

    if openssl_available():
        return OpenSSLSha512()
    logger.debug("OpenSSL SHA-512 unavailable, using libsodium")
    return SodiumSha512()


def default_backend() -> Sha512Backend:
    """Return the probed backend, selected once per process."""
    global _default
    if _default is None:
        _default = select_backend()
        logger.debug(f"SHA-512 backend: {_default.name}")
    return _default
