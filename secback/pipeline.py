from __future__ import annotations

import contextlib
import gzip
import io
import os
import sys
import tarfile
import zlib
from dataclasses import dataclass
from typing import BinaryIO, Optional, TextIO

from .cbcstream import CBCReader
from .constants import BLOCK_SIZE, MANIFEST_MAX_SIZE, MANIFEST_NAME, PAYLOAD_MIN_SIZE
from .errors import (
    DecompressionError,
    InvalidArchive,
    InvalidProtectedArchive,
    PasswordRequired,
    SecbackError,
)
from .extract import KIND_DIR, KIND_FILE, KIND_SYMLINK, materialize_entry
from .header import read_secure_header
from .manifest import Manifest, parse_manifest


@dataclass
class DecodeResult:
    prefix: str
    manifest: Manifest
    files: int = 0
    dirs: int = 0
    symlinks: int = 0
    bytes_written: int = 0


def output_prefix(backup: str, outdir: str = ".") -> str:
    """Output root for ``backup``: its base name without extension, under ``outdir``."""
    stem, _ext = os.path.splitext(os.path.basename(backup))
    if outdir in ("", "."):
        return stem
    return os.path.join(outdir, stem)


def _open_outer(handle: BinaryIO) -> tarfile.TarFile:
    try:
        return tarfile.open(fileobj=handle, mode="r|")
    except tarfile.TarError as exc:
        raise InvalidArchive(f"invalid backup archive: {exc}") from exc


def _next_member(outer: tarfile.TarFile) -> Optional[tarfile.TarInfo]:
    try:
        return outer.next()
    except tarfile.TarError as exc:
        raise InvalidArchive(f"invalid backup archive: {exc}") from exc


def _read_manifest(outer: tarfile.TarFile) -> Manifest:
    member = _next_member(outer)
    if member is None or not member.isreg():
        raise InvalidArchive("invalid backup archive")
    if os.path.basename(member.name.rstrip("/")) != MANIFEST_NAME or member.size > MANIFEST_MAX_SIZE:
        raise InvalidArchive("invalid backup archive")
    src = outer.extractfile(member)
    if src is None:
        raise InvalidArchive("invalid backup archive")
    try:
        with src:
            raw = src.read(MANIFEST_MAX_SIZE + 1)
    except tarfile.TarError as exc:
        raise InvalidArchive(f"invalid backup archive: {exc}") from exc
    return parse_manifest(raw)


def _open_payload(outer: tarfile.TarFile, protected: bool) -> BinaryIO:
    member = _next_member(outer)
    if member is None:
        raise InvalidArchive("invalid backup archive: missing payload")
    if not member.isreg() or member.size < PAYLOAD_MIN_SIZE:
        raise InvalidArchive("invalid backup archive")
    if protected and member.size % BLOCK_SIZE != 0:
        raise InvalidArchive("invalid backup archive")
    try:
        src = outer.extractfile(member)
    except tarfile.TarError as exc:
        raise InvalidArchive(f"invalid backup archive: {exc}") from exc
    if src is None:
        raise InvalidArchive("invalid backup archive")
    return src


def _decrypting_stream(payload: BinaryIO, password: str) -> BinaryIO:
    try:
        header = read_secure_header(payload)
        raw = CBCReader(payload, password.encode("utf-8"), header.iv_seed)
    except (SecbackError, OSError, tarfile.TarError) as exc:
        raise InvalidProtectedArchive("invalid protected archive") from exc
    return io.BufferedReader(raw)


def _decompressing_stream(stream: BinaryIO) -> BinaryIO:
    gz = gzip.GzipFile(fileobj=stream, mode="rb")
    try:
        # GzipFile parses the member header lazily; force it now.
        gz.peek(1)
    except (EOFError, zlib.error, gzip.BadGzipFile) as exc:
        gz.close()
        raise DecompressionError(f"gzip: {exc}") from exc
    except tarfile.TarError as exc:
        # The outer archive ended inside the payload.
        gz.close()
        raise InvalidArchive(f"invalid backup archive: {exc}") from exc
    return gz


def decode_backup(
    backup: str,
    password: Optional[str] = None,
    *,
    outdir: str = ".",
    quiet: bool = False,
    out: Optional[TextIO] = None,
) -> DecodeResult:
    """Decode one backup archive into ``<outdir>/<backup stem>``.

    Stops at the first error; files written before it stay on disk.

    Args:
        backup: Path to the outer container.
        password: Passphrase for protected payloads.
        outdir: Directory the per-backup output root is created in.
        quiet: Suppress the per-file lines.
        out: Stream for report lines (defaults to stdout).

    Returns:
        A DecodeResult with counts of materialized entries.

    Raises:
        OSError: The backup could not be read or an extracted file not written.
        PasswordRequired: The payload is protected and no password was given.
        SecbackError: Any structural, decryption or decompression failure.
    """
    out = out or sys.stdout
    prefix = output_prefix(backup, outdir)
    with contextlib.ExitStack() as stack:
        handle = stack.enter_context(open(backup, "rb"))
        outer = stack.enter_context(_open_outer(handle))

        manifest = _read_manifest(outer)
        if manifest.protected and password is None:
            raise PasswordRequired("password required for protected backup")
        print(f"{os.path.basename(prefix)} {manifest.dumps()}", file=out)

        stream = stack.enter_context(_open_payload(outer, manifest.protected))
        if manifest.protected:
            stream = stack.enter_context(_decrypting_stream(stream, password))
        if manifest.compressed:
            stream = stack.enter_context(_decompressing_stream(stream))

        result = DecodeResult(prefix=prefix, manifest=manifest)
        _extract_inner(stream, result, quiet=quiet, out=out)
    print(file=out)
    return result


def _extract_inner(stream: BinaryIO, result: DecodeResult, *, quiet: bool, out: TextIO) -> None:
    try:
        with tarfile.open(fileobj=stream, mode="r|") as inner:
            while True:
                member = inner.next()
                if member is None:
                    break
                entry = materialize_entry(inner, member, result.prefix)
                if entry is None:
                    continue
                if entry.kind == KIND_FILE:
                    result.files += 1
                    result.bytes_written += entry.size
                    if not quiet:
                        print(f"{entry.size:9d} {entry.path}", file=out)
                elif entry.kind == KIND_DIR:
                    result.dirs += 1
                elif entry.kind == KIND_SYMLINK:
                    result.symlinks += 1
    except (EOFError, zlib.error, gzip.BadGzipFile) as exc:
        raise DecompressionError(f"gzip: {exc}") from exc
    except tarfile.TarError as exc:
        raise InvalidArchive(f"invalid inner archive: {exc}") from exc
