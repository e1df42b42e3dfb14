"""HMAC-SHA512 and the secret key tree built on it.

The HMAC is composed explicitly from a single-shot SHA-512 so the digest
backend can be swapped (see `pairlink.crypto.digest`).

Key tree:
    root:  I = HMAC(key=usage + " Master Seed", data=seed)
    child: I = HMAC(key=chain_code, data=0x00 || utf8(index))
    key = I[:32], chain_code = I[32:]
"""

from dataclasses import dataclass, field

from pairlink.crypto.digest import (
    BLOCK_SIZE,
    Sha512Backend,
    default_backend,
)

__all__ = [
    "KeyDerivation",
    "KeyTreeNode",
    "hmac_sha512",
]

IPAD = 0x36
OPAD = 0x5C


def hmac_sha512(
    key: bytes, data: bytes, backend: Sha512Backend | None = None
) -> bytes:
    """Compute HMAC-SHA512.

    Args:
        key: HMAC key, any length.
        data: Message to authenticate.
        backend: Digest backend. Defaults to the probed process backend.

    Returns:
        64-byte MAC.
    """
    digest = (backend or default_backend()).digest

    if len(key) > BLOCK_SIZE:
        key = digest(key)
    padded = key.ljust(BLOCK_SIZE, b"\x00")

    inner_key = bytes(b ^ IPAD for b in padded)
    outer_key = bytes(b ^ OPAD for b in padded)

    inner_hash = digest(inner_key + data)
    return digest(outer_key + inner_hash)


@dataclass(frozen=True)
class KeyTreeNode:
    """A node of the key tree.

    Attributes:
        key: 32-byte derived key.
        chain_code: 32-byte chain code for deriving children.
    """

    key: bytes = field(repr=False)
    chain_code: bytes = field(repr=False)


class KeyDerivation:
    """Derive working keys from a pairing seed.

    Usage:
        kd = KeyDerivation()
        content_key = kd.derive_key(credentials.secret, "Content", ["0"])
    """

    def __init__(self, backend: Sha512Backend | None = None) -> None:
        self.backend = backend or default_backend()

    def hmac(self, key: bytes, data: bytes) -> bytes:
        """HMAC-SHA512 with this instance's backend."""
        return hmac_sha512(key, data, self.backend)

    def derive_root(self, seed: bytes, usage: str) -> KeyTreeNode:
        """Derive the root node for a usage label."""
        i = self.hmac((usage + " Master Seed").encode("utf-8"), seed)
        return KeyTreeNode(key=i[:32], chain_code=i[32:])

    def derive_child(self, chain_code: bytes, index: str) -> KeyTreeNode:
        """Derive a child node from a parent's chain code."""
        i = self.hmac(chain_code, b"\x00" + index.encode("utf-8"))
        return KeyTreeNode(key=i[:32], chain_code=i[32:])

    def derive_key(self, master: bytes, usage: str, path: list[str]) -> bytes:
        """Walk the tree from the root along path and return the final key.

        Args:
            master: Seed obtained from pairing.
            usage: Usage label separating independent trees.
            path: Child indices, root first.

        Returns:
            32-byte key.
        """
        node = self.derive_root(master, usage)
        for index in path:
            node = self.derive_child(node.chain_code, index)
        return node.key

