from __future__ import annotations

import hashlib
from dataclasses import dataclass

from .constants import BLOCK_SIZE, IV_SIZE, KDF_ROUNDS, KEY_SIZE
from .errors import InvalidIV


@dataclass(frozen=True)
class DerivedKeyMaterial:
    key: bytes
    iv: bytes


def _sha256_rounds(data: bytes, rounds: int = KDF_ROUNDS) -> bytes:
    digest = hashlib.sha256(data).digest()
    for _ in range(rounds - 1):
        digest = hashlib.sha256(digest).digest()
    return digest


def derive_key_material(passphrase: bytes, iv_seed: bytes) -> DerivedKeyMaterial:
    """Derive the AES-128 key and CBC IV for a SecureTar payload.

    Both halves are iterated SHA-256 (100 rounds each). The IV chain is seeded
    with the truncated key and the 16-byte seed stored in the archive header.
    This is not PBKDF2; it has to match bit for bit or decryption silently
    yields garbage.
    """
    if len(iv_seed) < BLOCK_SIZE:
        raise InvalidIV("invalid iv size")
    key_full = _sha256_rounds(passphrase)
    iv_full = _sha256_rounds(key_full[:KEY_SIZE] + iv_seed[:BLOCK_SIZE])
    return DerivedKeyMaterial(key=key_full[:KEY_SIZE], iv=iv_full[:IV_SIZE])
