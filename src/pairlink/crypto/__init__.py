"""Cryptographic primitives for pairlink.

- box: public-key authenticated encryption of the approval payload
- digest: swappable SHA-512 backends
- hmac_sha512: HMAC-SHA512 and key tree derivation
"""

from .box import decrypt_box, encrypt_box, open_box
from .digest import OpenSSLSha512, SodiumSha512, default_backend, select_backend
from .hmac_sha512 import KeyDerivation, KeyTreeNode, hmac_sha512

__all__ = [
    "KeyDerivation",
    "KeyTreeNode",
    "OpenSSLSha512",
    "SodiumSha512",
    "decrypt_box",
    "default_backend",
    "encrypt_box",
    "hmac_sha512",
    "open_box",
    "select_backend",
]
