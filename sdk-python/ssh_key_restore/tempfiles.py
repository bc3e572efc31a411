from __future__ import annotations

import logging
import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from .errors import io_error

log = logging.getLogger("ssh_key_restore.tempfiles")


@contextmanager
def scoped_temp_file(
    content: str,
    *,
    suffix: str = ".key",
    directory: Optional[Path] = None,
) -> Iterator[Path]:
    """
    Write `content` to a private (0600) temporary file and yield its path.

    The file is removed on every exit path of the with-block, including
    exceptions raised by the caller.
    """
    try:
        fd, name = tempfile.mkstemp(
            prefix="ssh-key-restore-",
            suffix=suffix,
            dir=str(directory) if directory is not None else None,
        )
    except OSError as e:
        raise io_error(f"Could not create temporary file: {e}") from e

    path = Path(name)
    try:
        try:
            with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as fh:
                fh.write(content)
            # mkstemp already creates the file 0600; keep it explicit
            os.chmod(path, 0o600)
        except OSError as e:
            raise io_error(f"Could not write temporary file {path}: {e}", path=str(path)) from e
        yield path
    finally:
        try:
            path.unlink()
        except FileNotFoundError:
            pass
        except OSError:
            log.warning("Could not remove temporary key file %s", path, exc_info=True)
