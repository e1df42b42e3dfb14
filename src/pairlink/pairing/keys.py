"""Ephemeral key pairs for pairing and the out-of-band pairing link.

The controlling client generates a fresh Curve25519 key pair for every
pairing attempt. Only the public key leaves the process, embedded in a
link of the form:

    pairlink://terminal?<base64url(public_key), unpadded>
"""

import base64
import binascii
from dataclasses import dataclass, field

from nacl.public import PrivateKey

from pairlink.errors import PairingLinkError

__all__ = [
    "KeyPair",
    "LINK_PREFIX",
    "decode_public_key",
    "encode_public_key",
    "generate_keypair",
    "pairing_link",
    "parse_pairing_link",
]

KEY_LENGTH = 32
LINK_PREFIX = "pairlink://terminal?"


@dataclass(frozen=True)
class KeyPair:
    """Ephemeral pairing key pair.

    Attributes:
        public_key: 32-byte public key, safe to transmit.
        secret_key: 32-byte secret key, never leaves this process.
    """

    public_key: bytes
    secret_key: bytes = field(repr=False)

    def __post_init__(self) -> None:
        if len(self.public_key) != KEY_LENGTH:
            raise ValueError(f"Public key must be {KEY_LENGTH} bytes")
        if len(self.secret_key) != KEY_LENGTH:
            raise ValueError(f"Secret key must be {KEY_LENGTH} bytes")


def generate_keypair() -> KeyPair:
    """Generate a fresh key pair from the OS CSPRNG."""
    secret = PrivateKey.generate()
    return KeyPair(public_key=bytes(secret.public_key), secret_key=bytes(secret))


def encode_public_key(public_key: bytes) -> str:
    """Standard base64, as sent to the relay."""
    return base64.b64encode(public_key).decode("ascii")


def decode_public_key(value: str) -> bytes:
    """Decode a base64 public key.

    Raises:
        ValueError: If value is not base64 or not 32 bytes.
    """
    try:
        key = base64.b64decode(value, validate=True)
    except binascii.Error as e:
        raise ValueError(f"Invalid base64 public key: {e}") from e
    if len(key) != KEY_LENGTH:
        raise ValueError(f"Public key must be {KEY_LENGTH} bytes, got {len(key)}")
    return key


def pairing_link(public_key: bytes) -> str:
    """Build the link shown to the agent side (directly or as a QR code)."""
    if len(public_key) != KEY_LENGTH:
        raise ValueError(f"Public key must be {KEY_LENGTH} bytes")
    encoded = base64.urlsafe_b64encode(public_key).decode("ascii").rstrip("=")
    return LINK_PREFIX + encoded


def parse_pairing_link(link: str) -> bytes:
    """Extract the public key from a pairing link.

    Args:
        link: Link as scanned or pasted.

    Returns:
        32-byte public key.

    Raises:
        PairingLinkError: If the link is malformed.
    """
    link = link.strip()
    if not link.startswith(LINK_PREFIX):
        raise PairingLinkError("Not a pairing link")

    encoded = link[len(LINK_PREFIX) :]
    if not encoded:
        raise PairingLinkError("Pairing link has no key")

    padded = encoded + "=" * (-len(encoded) % 4)
    try:
        key = base64.b64decode(padded, altchars=b"-_", validate=True)
    except binascii.Error as e:
        raise PairingLinkError(f"Invalid key encoding: {e}") from e

    if len(key) != KEY_LENGTH:
        raise PairingLinkError(f"Key must be {KEY_LENGTH} bytes, got {len(key)}")
    return key
