from __future__ import annotations

import os
import shutil
import sys
import tarfile
from dataclasses import dataclass
from typing import Callable, Dict, NamedTuple, Optional

from .constants import DIR_MODE


KIND_FILE = "file"
KIND_DIR = "dir"
KIND_SYMLINK = "symlink"


@dataclass
class ExtractedEntry:
    kind: str
    path: str
    size: int = 0


def destination_path(prefix: str, name: str) -> str:
    """Map an inner archive name under ``prefix``.

    Exactly one leading separator is dropped, then the two are concatenated
    and normalized, so a remaining absolute name still lands under ``prefix``.
    ``..`` segments are not rejected, so a hostile archive can write outside
    ``prefix``.
    """
    if name.startswith(os.sep):
        name = name[len(os.sep):]
    if not prefix:
        return os.path.normpath(name)
    return os.path.normpath(prefix + os.sep + name)


def _entry_kind(member: tarfile.TarInfo) -> Optional[str]:
    if member.isreg():
        return KIND_FILE
    if member.isdir():
        return KIND_DIR
    if member.issym():
        return KIND_SYMLINK
    return None


def _write_file(archive: tarfile.TarFile, member: tarfile.TarInfo, dst: str) -> Optional[ExtractedEntry]:
    os.makedirs(os.path.dirname(dst) or ".", mode=DIR_MODE, exist_ok=True)
    src = archive.extractfile(member)
    if src is None:
        raise OSError(f"no payload for {member.name}")
    with src, open(dst, "wb") as wf:
        shutil.copyfileobj(src, wf)
    return ExtractedEntry(KIND_FILE, dst, member.size)


def _make_dir(archive: tarfile.TarFile, member: tarfile.TarInfo, dst: str) -> Optional[ExtractedEntry]:
    os.makedirs(dst, mode=DIR_MODE, exist_ok=True)
    return ExtractedEntry(KIND_DIR, dst)


def _make_symlink(archive: tarfile.TarFile, member: tarfile.TarInfo, dst: str) -> Optional[ExtractedEntry]:
    if not member.linkname:
        return None
    os.symlink(member.linkname, dst)
    return ExtractedEntry(KIND_SYMLINK, dst)


class EntryPolicy(NamedTuple):
    handler: Callable[[tarfile.TarFile, tarfile.TarInfo, str], Optional[ExtractedEntry]]
    fatal: bool


# A failed file write aborts the whole archive; dirs and symlinks are best-effort.
ENTRY_POLICY: Dict[str, EntryPolicy] = {
    KIND_FILE: EntryPolicy(_write_file, fatal=True),
    KIND_DIR: EntryPolicy(_make_dir, fatal=False),
    KIND_SYMLINK: EntryPolicy(_make_symlink, fatal=False),
}


def materialize_entry(archive: tarfile.TarFile, member: tarfile.TarInfo, prefix: str) -> Optional[ExtractedEntry]:
    """Write one inner archive entry to disk.

    Args:
        archive: Inner archive positioned on ``member`` (stream mode).
        member: Entry to materialize.
        prefix: Output root for this backup.

    Returns:
        The materialized entry, or None if it was skipped or a best-effort
        step failed.

    Raises:
        OSError: If a regular file could not be written.
    """
    kind = _entry_kind(member)
    if kind is None:
        return None
    policy = ENTRY_POLICY[kind]
    dst = destination_path(prefix, member.name)
    if policy.fatal:
        return policy.handler(archive, member, dst)
    try:
        return policy.handler(archive, member, dst)
    except OSError as exc:
        print(f"Warning: failed to create {kind} {dst}: {exc}", file=sys.stderr)
        return None
