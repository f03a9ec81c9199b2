from __future__ import annotations

import gzip
import io
import json
import os
import tarfile
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Tuple

from Cryptodome.Cipher import AES
from Cryptodome.Util.Padding import pad

from secback.constants import SECURETAR_FILE_ID
from secback.kdf import derive_key_material


IV_SEED = bytes(range(16))
PASSWORD = "secret"


def build_inner_tar(entries: Iterable[Tuple[str, str, Any]]) -> bytes:
    """Build a plain tar from (name, kind, value) tuples.

    kind is "file" (value: bytes), "dir" (value ignored) or "symlink" (value: target).
    """
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w", format=tarfile.PAX_FORMAT) as tf:
        for name, kind, value in entries:
            info = tarfile.TarInfo(name)
            if kind == "file":
                info.size = len(value)
                info.mode = 0o644
                tf.addfile(info, io.BytesIO(value))
            elif kind == "dir":
                info.type = tarfile.DIRTYPE
                info.mode = 0o755
                tf.addfile(info)
            elif kind == "symlink":
                info.type = tarfile.SYMTYPE
                info.linkname = value
                tf.addfile(info)
            elif kind == "fifo":
                info.type = tarfile.FIFOTYPE
                tf.addfile(info)
            else:
                raise ValueError(f"unknown kind {kind}")
    return buf.getvalue()


def sample_inner() -> bytes:
    return build_inner_tar([("a.txt", "file", b"hello"), ("b", "dir", None)])


def securetar_header(iv_seed: bytes = IV_SEED, file_id: bytes = SECURETAR_FILE_ID) -> bytes:
    return file_id + b"\x00" * 16 + iv_seed


def encrypt_blocks(plain: bytes, password: str = PASSWORD, iv_seed: bytes = IV_SEED) -> bytes:
    material = derive_key_material(password.encode("utf-8"), iv_seed)
    return AES.new(material.key, AES.MODE_CBC, iv=material.iv).encrypt(plain)


def protect(plain: bytes, password: str = PASSWORD, iv_seed: bytes = IV_SEED) -> bytes:
    """Wrap ``plain`` in a SecureTar v2 envelope (PKCS#7 padded like the producer does)."""
    return securetar_header(iv_seed) + encrypt_blocks(pad(plain, AES.block_size), password, iv_seed)


def compress(plain: bytes) -> bytes:
    return gzip.compress(plain)


def write_backup(
    path: Path,
    manifest: Optional[Dict[str, Any]],
    payload: Optional[bytes],
    *,
    manifest_name: str = "backup.json",
    manifest_raw: Optional[bytes] = None,
) -> Path:
    """Write an outer container: manifest member then payload member."""
    with tarfile.open(str(path), mode="w") as tf:
        raw = manifest_raw if manifest_raw is not None else json.dumps(manifest).encode("utf-8")
        info = tarfile.TarInfo(f"./{manifest_name}")
        info.size = len(raw)
        tf.addfile(info, io.BytesIO(raw))
        if payload is not None:
            info = tarfile.TarInfo("./backup.tar")
            info.size = len(payload)
            tf.addfile(info, io.BytesIO(payload))
    return path


def make_backup(
    path: Path,
    inner: bytes,
    *,
    protected: bool = False,
    compressed: bool = False,
    password: str = PASSWORD,
    extra: Optional[Dict[str, Any]] = None,
) -> Path:
    manifest: Dict[str, Any] = {"protected": protected, "compressed": compressed}
    if extra:
        manifest.update(extra)
    payload = inner
    if compressed:
        payload = compress(payload)
    if protected:
        payload = protect(payload, password)
    return write_backup(path, manifest, payload)


def read_tree(root: Path) -> Dict[str, Any]:
    """Snapshot a directory: relative path -> bytes | "<dir>" | ("->", target)."""
    snapshot: Dict[str, Any] = {}
    for base, dirs, files in os.walk(root):
        for d in dirs:
            p = Path(base) / d
            rel = p.relative_to(root).as_posix()
            snapshot[rel] = ("->", os.readlink(p)) if p.is_symlink() else "<dir>"
        for f in files:
            p = Path(base) / f
            rel = p.relative_to(root).as_posix()
            snapshot[rel] = ("->", os.readlink(p)) if p.is_symlink() else p.read_bytes()
    return snapshot
