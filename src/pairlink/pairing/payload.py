"""Versioned approval payload.

After box decryption the approval payload is either:

    version 0:  0x00 || data_key_seed (32 bytes) [|| ignored trailing bytes]
    legacy:     the entire blob is the secret

The agent does not know which format the relay will hand to the client, so
it encrypts both and lets the relay pick (see PairingApprover).
"""

from dataclasses import dataclass

from pairlink.crypto.box import encrypt_box
from pairlink.errors import CryptoError

__all__ = [
    "Answers",
    "DATA_KEY_SEED_LENGTH",
    "PAYLOAD_VERSION_0",
    "build_answers",
    "encode_v0",
    "extract_secret",
    "is_v0",
]

PAYLOAD_VERSION_0 = 0
DATA_KEY_SEED_LENGTH = 32
V0_LENGTH = 1 + DATA_KEY_SEED_LENGTH


def encode_v0(data_key_seed: bytes) -> bytes:
    """Encode a version 0 payload.

    Raises:
        ValueError: If data_key_seed is not 32 bytes.
    """
    if len(data_key_seed) != DATA_KEY_SEED_LENGTH:
        raise ValueError(f"Data key seed must be {DATA_KEY_SEED_LENGTH} bytes")
    return bytes([PAYLOAD_VERSION_0]) + data_key_seed


def is_v0(decrypted: bytes) -> bool:
    """True if decrypted carries a version 0 tag and a full seed."""
    return len(decrypted) >= V0_LENGTH and decrypted[0] == PAYLOAD_VERSION_0


def extract_secret(decrypted: bytes) -> bytes:
    """Extract the pairing secret from a decrypted payload.

    Args:
        decrypted: Box plaintext.

    Returns:
        The 32-byte data key seed for version 0 payloads, otherwise the
        whole payload unchanged.

    Raises:
        CryptoError: If the payload is empty.
    """
    if not decrypted:
        raise CryptoError("Empty approval payload")

    if is_v0(decrypted):
        return bytes(decrypted[1:V0_LENGTH])
    return bytes(decrypted)


@dataclass(frozen=True)
class Answers:
    """Approval encrypted under both payload conventions."""

    v1: bytes
    v2: bytes


def build_answers(
    public_key: bytes, legacy_secret: bytes, data_key_seed: bytes | None = None
) -> Answers:
    """Encrypt the approval for a client's public key.

    Args:
        public_key: Client's ephemeral public key from the pairing link.
        legacy_secret: Secret sent to clients that predate versioning.
        data_key_seed: 32-byte seed for version 0. Defaults to legacy_secret,
            which must then be 32 bytes.

    Returns:
        Answers with v1 (legacy) and v2 (version 0) ciphertexts.
    """
    if not legacy_secret:
        raise ValueError("Legacy secret must not be empty")
    seed = legacy_secret if data_key_seed is None else data_key_seed
    return Answers(
        v1=encrypt_box(legacy_secret, public_key),
        v2=encrypt_box(encode_v0(seed), public_key),
    )
