"""Pull-based AES-128-CBC decryption over an unknown-length byte stream.

``CBCReader`` is a raw stream: wrap it in ``io.BufferedReader`` and hand the
result to anything that reads files (tarfile, gzip). Every pull must offer at
least one cipher block of buffer space; the default buffered reader sizes
satisfy that.
"""

from __future__ import annotations

import enum
import io
from typing import BinaryIO, Optional

from Cryptodome.Cipher import AES

from .constants import BLOCK_SIZE
from .errors import BufferTooSmall, InvalidIV, InvalidPadding
from .kdf import derive_key_material


class _State(enum.Enum):
    PENDING = "pending"  # key material not derived yet
    ACTIVE = "active"
    EXHAUSTED = "exhausted"


def _read_full(source: BinaryIO, size: int) -> bytes:
    parts = []
    remaining = size
    while remaining > 0:
        chunk = source.read(remaining)
        if not chunk:
            break
        parts.append(chunk)
        remaining -= len(chunk)
    return b"".join(parts)


class CBCReader(io.RawIOBase):
    def __init__(self, source: BinaryIO, passphrase: bytes, iv_seed: bytes):
        super().__init__()
        self._source = source
        self._passphrase = passphrase
        self._iv_seed = iv_seed
        self._cipher = None
        self._state = _State.PENDING

    @property
    def state(self) -> str:
        return self._state.value

    def readable(self) -> bool:
        return True

    def _activate(self) -> None:
        if len(self._iv_seed) < BLOCK_SIZE:
            raise InvalidIV("invalid iv size")
        material = derive_key_material(self._passphrase, self._iv_seed)
        self._cipher = AES.new(material.key, AES.MODE_CBC, iv=material.iv)
        self._state = _State.ACTIVE

    def readinto(self, b) -> Optional[int]:
        view = memoryview(b).cast("B")
        if len(view) == 0:
            return 0
        if self._state is _State.EXHAUSTED:
            return 0
        if len(view) < BLOCK_SIZE:
            raise BufferTooSmall("read buffer is too small")
        if self._state is _State.PENDING:
            self._activate()

        want = (len(view) // BLOCK_SIZE) * BLOCK_SIZE
        data = _read_full(self._source, want)
        n = len(data)
        if n == 0:
            self._state = _State.EXHAUSTED
            return 0
        if n % BLOCK_SIZE != 0:
            raise InvalidPadding("invalid padding")
        if n < want:
            # Short read: the source is drained, hand out these blocks and stop.
            self._state = _State.EXHAUSTED
        view[:n] = self._cipher.decrypt(data)
        return n

    def close(self) -> None:
        if not self.closed:
            try:
                self._source.close()
            finally:
                self._cipher = None
                super().close()
