from __future__ import annotations

import argparse
import getpass as _getpass
import sys
from typing import Dict, List, Optional

from secback.errors import PasswordRequired, SecbackError
from secback.pipeline import decode_backup


def _report_error(backup: str, exc: BaseException) -> None:
    print(f"{backup}: {exc}\n", file=sys.stderr)


def cmd_decode(
    backups: List[str],
    *,
    password: Optional[str] = None,
    outdir: str = ".",
    quiet: bool = False,
) -> bool:
    """Decode backups one after another.

    An error on one backup is reported and the next one is processed; files
    already written for the failed backup are left in place.

    Args:
        backups: Backup archive paths, processed in order.
        password: Passphrase for protected backups. If None, it is prompted
            for once, the first time a protected backup is met.
        outdir: Directory in which each backup's output root is created.
        quiet: Suppress per-file lines.

    Returns:
        True when every backup decoded cleanly, False otherwise.
    """
    pw_holder: Dict[str, Optional[str]] = {"pw": password}
    failed = 0
    for backup in backups:
        try:
            try:
                decode_backup(backup, pw_holder["pw"], outdir=outdir, quiet=quiet)
            except PasswordRequired:
                pw_holder["pw"] = _getpass.getpass("Backup password: ")
                decode_backup(backup, pw_holder["pw"], outdir=outdir, quiet=quiet)
        except (SecbackError, OSError) as exc:
            _report_error(backup, exc)
            failed += 1
    return failed == 0


def main(argv: List[str] | None = None):
    ap = argparse.ArgumentParser(
        prog="secback",
        description="Extract secure backup archives (SecureTar v2 payloads)",
        epilog=(
            "Each backup is extracted into a directory named after it (extension stripped). "
            "Payloads carry no authentication tag: a wrong password shows up as a damaged inner archive."
        ),
    )
    ap.add_argument("backups", nargs="+", help="Backup archive paths")
    ap.add_argument("--password", help="Backup password (prompted when needed if omitted)")
    ap.add_argument("--outdir", default=".", help="Directory to extract into (default: current directory)")
    ap.add_argument("--quiet", help="do not list extracted files", action="store_true")

    args = ap.parse_args(argv)
    try:
        success = cmd_decode(args.backups, password=args.password, outdir=args.outdir, quiet=args.quiet)
    except (EOFError, KeyboardInterrupt) as e:
        # getpass without a usable terminal
        print(f"Error: {str(e) or 'password prompt aborted'}", file=sys.stderr)
        sys.exit(2)
    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
