from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import BinaryIO

from .constants import SECURETAR_FILE_ID
from .errors import InvalidProtectedHeader


# magic, version, reserved, unused metadata block, IV seed
_SECURE_HEADER_STRUCT = struct.Struct("!9sB6s16s16s")


@dataclass
class SecureHeader:
    magic: bytes
    version: int
    reserved: bytes
    metadata: bytes
    iv_seed: bytes


def read_secure_header(f: BinaryIO) -> SecureHeader:
    """Read and validate the 48-byte SecureTar v2 header at the stream head.

    Only the 16-byte file id (magic, version, reserved) is checked; the
    metadata block is carried through untouched. On return the stream sits on
    the first ciphertext byte.
    """
    raw = f.read(_SECURE_HEADER_STRUCT.size)
    while 0 < len(raw) < _SECURE_HEADER_STRUCT.size:
        more = f.read(_SECURE_HEADER_STRUCT.size - len(raw))
        if not more:
            break
        raw += more
    if len(raw) != _SECURE_HEADER_STRUCT.size:
        raise InvalidProtectedHeader("SecureTar header too short")
    if raw[: len(SECURETAR_FILE_ID)] != SECURETAR_FILE_ID:
        raise InvalidProtectedHeader("Bad SecureTar magic or version")
    magic, version, reserved, metadata, iv_seed = _SECURE_HEADER_STRUCT.unpack(raw)
    return SecureHeader(
        magic=magic,
        version=version,
        reserved=reserved,
        metadata=metadata,
        iv_seed=iv_seed,
    )
