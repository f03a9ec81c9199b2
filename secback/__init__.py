"""
secback — decoder for secure backup archives.

A backup is an outer tar holding two members, a small ``backup.json`` manifest
and an opaque payload. The payload is itself a tar archive, optionally gzip
compressed and optionally wrapped in a SecureTar v2 envelope:

- 48-byte header (magic, version, reserved, IV seed)
- AES-128-CBC ciphertext keyed from a passphrase by 100 rounds of SHA-256

Decoding is streamed end to end; nothing is buffered in full. There is no
authentication tag in the format, so a wrong passphrase only shows up as a
damaged inner archive.
"""

__version__ = "0.1"

__all__ = [
    "constants",
    "errors",
    "kdf",
    "cbcstream",
    "header",
    "manifest",
    "extract",
    "pipeline",
]

# Programmatic entry point is secback.pipeline.decode_backup; the CLI in
# secback.cli (cmd_decode) wraps it for many inputs.
