from __future__ import annotations

import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path

from .capabilities import KeyDeriver
from .errors import io_error

log = logging.getLogger("ssh_key_restore.keystore")

PRIVATE_KEY_MODE = 0o600
PUBLIC_KEY_MODE = 0o644
DIRECTORY_MODE = 0o700

DEFAULT_KEY_NAME = "id_ed25519"
DEFAULT_PUBLIC_SUFFIX = ".pub"


@dataclass(frozen=True)
class KeyPairLocation:
    """
    Fixed destination of the restored pair.

    public_path is always private_path + public_suffix.
    """
    directory: Path
    name: str = DEFAULT_KEY_NAME
    public_suffix: str = DEFAULT_PUBLIC_SUFFIX

    @property
    def private_path(self) -> Path:
        return self.directory / self.name

    @property
    def public_path(self) -> Path:
        return self.directory / f"{self.name}{self.public_suffix}"


class KeyStore:
    """
    Owns the destination directory and the two key files.

    Every write replaces what is on disk; there is no backup and no locking.
    Two runs targeting the same location race on the overwrite.

    atomic=False writes the destination file in place (a crash mid-write can
    leave a truncated file). atomic=True writes a sibling temp file and moves
    it over the destination with os.replace().
    """

    def __init__(self, location: KeyPairLocation, *, atomic: bool = False) -> None:
        self.location = location
        self.atomic = atomic

    def ensure_directory(self) -> Path:
        directory = self.location.directory
        if directory.is_dir():
            return directory
        try:
            directory.mkdir(mode=DIRECTORY_MODE, parents=True, exist_ok=True)
        except OSError as e:
            raise io_error(f"Could not create directory {directory}: {e}", path=str(directory)) from e
        log.debug("Created key directory %s", directory)
        return directory

    def write_private(self, key: str) -> Path:
        path = self.location.private_path
        self._write(path, key, PRIVATE_KEY_MODE)
        log.debug("Wrote private key %s", path)
        return path

    def derive_public(self, deriver: KeyDeriver) -> str:
        return deriver.derive(self.location.private_path)

    def write_public(self, public_key: str) -> Path:
        path = self.location.public_path
        self._write(path, public_key.strip() + "\n", PUBLIC_KEY_MODE)
        log.debug("Wrote public key %s", path)
        return path

    def _write(self, path: Path, content: str, mode: int) -> None:
        try:
            if self.atomic:
                self._write_atomic(path, content, mode)
            else:
                self._write_in_place(path, content, mode)
        except OSError as e:
            raise io_error(f"Could not write {path}: {e}", path=str(path)) from e

    @staticmethod
    def _write_in_place(path: Path, content: str, mode: int) -> None:
        # O_CREAT mode only applies to new files; an existing one is narrowed
        # before any key material goes in.
        fd = os.open(str(path), os.O_WRONLY | os.O_CREAT | os.O_TRUNC, mode)
        if hasattr(os, "fchmod"):
            try:
                os.fchmod(fd, mode)
            except OSError:
                os.close(fd)
                raise
        with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as fh:
            fh.write(content)
        os.chmod(path, mode)

    @staticmethod
    def _write_atomic(path: Path, content: str, mode: int) -> None:
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=str(path.parent))
        tmp = Path(tmp_name)
        try:
            with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as fh:
                fh.write(content)
                fh.flush()
                os.fsync(fh.fileno())
            os.chmod(tmp, mode)
            os.replace(tmp, path)
        except BaseException:
            tmp.unlink(missing_ok=True)
            raise
