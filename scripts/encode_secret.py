from __future__ import annotations

import sys
from pathlib import Path

from ssh_key_restore.envelope import check
from ssh_key_restore.normalize import normalize_key


def main() -> int:
    """
    Usage:
      python scripts/encode_secret.py <PRIVATE_KEY_FILE>

    Prints:
      the key as one physical line with literal "\\n" escapes, ready to
      paste into a CI secret (ssh-key-restore expands them again)
    """
    if len(sys.argv) != 2:
        print("Usage: python scripts/encode_secret.py <PRIVATE_KEY_FILE>")
        return 2

    key_path = Path(sys.argv[1])
    try:
        key = normalize_key(key_path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        print(f"File not found: {key_path}")
        return 2

    if not check(key):
        print("File does not look like a private key (no BEGIN/END PRIVATE KEY markers)")
        return 3

    print(key.rstrip("\n").replace("\n", "\\n"))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
