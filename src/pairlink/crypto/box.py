"""Anonymous-sender public-key box.

Format: ephemeral_public_key (32 bytes) || nonce (24 bytes) || ciphertext

A fresh ephemeral key pair is generated per message, so only the holder of
the recipient secret key can open it. Authentication is Poly1305 (via
libsodium crypto_box).
"""

import nacl.exceptions
import nacl.utils
from nacl.public import Box, PrivateKey, PublicKey

from pairlink.errors import CryptoError

__all__ = [
    "KEY_LENGTH",
    "NONCE_LENGTH",
    "decrypt_box",
    "encrypt_box",
    "open_box",
]

KEY_LENGTH = 32
NONCE_LENGTH = Box.NONCE_SIZE  # 24
MIN_BUNDLE_LENGTH = KEY_LENGTH + NONCE_LENGTH + 16  # + Poly1305 tag


def encrypt_box(data: bytes, recipient_public_key: bytes) -> bytes:
    """Encrypt data to a recipient's public key.

    Args:
        data: Plaintext.
        recipient_public_key: 32-byte Curve25519 public key.

    Returns:
        Bundle of ephemeral public key, nonce and ciphertext.

    Raises:
        ValueError: If the public key is not 32 bytes.
    """
    if len(recipient_public_key) != KEY_LENGTH:
        raise ValueError(f"Public key must be {KEY_LENGTH} bytes")

    ephemeral = PrivateKey.generate()
    nonce = nacl.utils.random(NONCE_LENGTH)
    box = Box(ephemeral, PublicKey(recipient_public_key))
    encrypted = box.encrypt(data, nonce)

    return bytes(ephemeral.public_key) + nonce + encrypted.ciphertext


def open_box(bundle: bytes, recipient_secret_key: bytes) -> bytes:
    """Decrypt a bundle produced by encrypt_box.

    Args:
        bundle: Ephemeral public key, nonce and ciphertext.
        recipient_secret_key: 32-byte Curve25519 secret key.

    Returns:
        Plaintext.

    Raises:
        ValueError: If the secret key is not 32 bytes.
        CryptoError: If the bundle is truncated or fails authentication.
    """
    if len(recipient_secret_key) != KEY_LENGTH:
        raise ValueError(f"Secret key must be {KEY_LENGTH} bytes")
    if len(bundle) < MIN_BUNDLE_LENGTH:
        raise CryptoError(f"Box too short (minimum {MIN_BUNDLE_LENGTH} bytes)")

    sender_public_key = bundle[:KEY_LENGTH]
    nonce = bundle[KEY_LENGTH : KEY_LENGTH + NONCE_LENGTH]
    ciphertext = bundle[KEY_LENGTH + NONCE_LENGTH :]

    try:
        box = Box(PrivateKey(recipient_secret_key), PublicKey(sender_public_key))
        return box.decrypt(ciphertext, nonce)
    except nacl.exceptions.CryptoError as e:
        raise CryptoError(f"Decryption failed: {e}") from e


def decrypt_box(bundle: bytes, recipient_secret_key: bytes) -> bytes | None:
    """Decrypt a bundle, returning None instead of raising on failure."""
    try:
        return open_box(bundle, recipient_secret_key)
    except CryptoError:
        return None
