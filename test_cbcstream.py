from __future__ import annotations

import io
import os
import unittest

from Cryptodome.Cipher import AES

from secback.cbcstream import CBCReader
from secback.errors import BufferTooSmall, InvalidIV, InvalidPadding
from secback.kdf import derive_key_material


PASSPHRASE = b"secret"
SEED = bytes(range(16))


def _encrypt(plain: bytes, passphrase: bytes = PASSPHRASE, seed: bytes = SEED) -> bytes:
    material = derive_key_material(passphrase, seed)
    return AES.new(material.key, AES.MODE_CBC, iv=material.iv).encrypt(plain)


class _Tracking(io.BytesIO):
    def __init__(self, data: bytes):
        super().__init__(data)
        self.reads = 0

    def read(self, size=-1):
        self.reads += 1
        return super().read(size)


class CBCReaderTests(unittest.TestCase):
    def test_roundtrip_block_multiples(self):
        for size in (16, 16 * 10, 4096, 16 * 1000):
            with self.subTest(size=size):
                plain = os.urandom(size)
                reader = CBCReader(io.BytesIO(_encrypt(plain)), PASSPHRASE, SEED)
                self.assertEqual(reader.readall(), plain)

    def test_chaining_across_small_pulls(self):
        plain = os.urandom(16 * 37)
        reader = CBCReader(io.BytesIO(_encrypt(plain)), PASSPHRASE, SEED)
        out = bytearray()
        while True:
            chunk = reader.read(16 * 3)
            if not chunk:
                break
            out += chunk
        self.assertEqual(bytes(out), plain)

    def test_unaligned_pull_rounds_down_to_blocks(self):
        plain = os.urandom(64)
        reader = CBCReader(io.BytesIO(_encrypt(plain)), PASSPHRASE, SEED)
        self.assertEqual(reader.read(40), plain[:32])
        self.assertEqual(reader.read(40), plain[32:64])
        self.assertEqual(reader.read(40), b"")

    def test_buffered_reader_composition(self):
        plain = os.urandom(16 * 2000)
        stream = io.BufferedReader(CBCReader(io.BytesIO(_encrypt(plain)), PASSPHRASE, SEED))
        out = bytearray()
        for want in (1, 7, 100, 5000, 3, 40000):
            out += stream.read(want)
        self.assertEqual(bytes(out), plain)

    def test_buffer_too_small(self):
        for size in range(1, 16):
            with self.subTest(size=size):
                reader = CBCReader(io.BytesIO(_encrypt(b"\x00" * 32)), PASSPHRASE, SEED)
                with self.assertRaises(BufferTooSmall):
                    reader.read(size)

    def test_zero_length_pull_is_noop(self):
        source = _Tracking(_encrypt(b"\x00" * 32))
        reader = CBCReader(source, PASSPHRASE, SEED)
        self.assertEqual(reader.readinto(bytearray(0)), 0)
        self.assertEqual(reader.state, "pending")
        self.assertEqual(source.reads, 0)

    def test_invalid_padding_on_final_pull(self):
        data = _encrypt(b"\x11" * 32) + b"\x00" * 5
        reader = CBCReader(io.BytesIO(data), PASSPHRASE, SEED)
        self.assertEqual(len(reader.read(32)), 32)
        with self.assertRaises(InvalidPadding):
            reader.read(32)

    def test_invalid_padding_single_pull(self):
        reader = CBCReader(io.BytesIO(b"\x00" * 20), PASSPHRASE, SEED)
        with self.assertRaises(InvalidPadding):
            reader.read(64)

    def test_invalid_iv_detected_lazily(self):
        reader = CBCReader(io.BytesIO(b"\x00" * 32), PASSPHRASE, b"\x00" * 8)
        self.assertEqual(reader.state, "pending")
        with self.assertRaises(InvalidIV):
            reader.read(16)

    def test_key_derived_on_first_pull(self):
        reader = CBCReader(io.BytesIO(_encrypt(b"\x00" * 32)), PASSPHRASE, SEED)
        self.assertEqual(reader.state, "pending")
        reader.read(16)
        self.assertEqual(reader.state, "active")

    def test_empty_source_is_end_of_stream(self):
        reader = CBCReader(io.BytesIO(b""), PASSPHRASE, SEED)
        self.assertEqual(reader.read(16), b"")
        self.assertEqual(reader.state, "exhausted")

    def test_exhausted_after_short_read(self):
        source = _Tracking(_encrypt(b"\x22" * 48))
        reader = CBCReader(source, PASSPHRASE, SEED)
        self.assertEqual(reader.read(64), b"\x22" * 48)
        self.assertEqual(reader.state, "exhausted")
        reads = source.reads
        self.assertEqual(reader.read(64), b"")
        self.assertEqual(reader.read(4), b"")
        self.assertEqual(source.reads, reads)

    def test_no_padding_removed(self):
        plain = b"A" * 16 + bytes([16]) * 16
        reader = CBCReader(io.BytesIO(_encrypt(plain)), PASSPHRASE, SEED)
        self.assertEqual(reader.readall(), plain)

    def test_wrong_passphrase_yields_garbage_not_error(self):
        plain = b"B" * 64
        reader = CBCReader(io.BytesIO(_encrypt(plain)), b"wrong", SEED)
        out = reader.readall()
        self.assertEqual(len(out), len(plain))
        self.assertNotEqual(out, plain)

    def test_close_closes_source(self):
        source = io.BytesIO(_encrypt(b"\x00" * 16))
        reader = CBCReader(source, PASSPHRASE, SEED)
        reader.close()
        self.assertTrue(source.closed)
        self.assertTrue(reader.closed)


if __name__ == "__main__":
    unittest.main()
