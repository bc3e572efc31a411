from __future__ import annotations

import os
from pathlib import Path
from typing import Mapping, Optional, TextIO

from .errors import missing_secret


DEFAULT_SECRET_ENV = "SSH_PRIVATE_KEY"


class SecretSource:
    """
    Holds the raw secret for one restore invocation.

    The value is captured once, when the source is built; fetch() only
    checks that something usable was captured. The pipeline never reads the
    environment itself, callers build a source and pass it in.
    """

    def __init__(self, value: Optional[str], *, origin: str = "value") -> None:
        self._value = value
        self.origin = origin

    @classmethod
    def from_env(
        cls, name: str = DEFAULT_SECRET_ENV, environ: Optional[Mapping[str, str]] = None
    ) -> "SecretSource":
        env = os.environ if environ is None else environ
        return cls(env.get(name), origin=f"env:{name}")

    @classmethod
    def from_file(cls, path: Path) -> "SecretSource":
        try:
            value: Optional[str] = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            raise missing_secret(f"Secret file not found: {path}", path=str(path))
        except (OSError, UnicodeDecodeError) as e:
            raise missing_secret(f"Secret file is not readable: {path} ({e})", path=str(path)) from e
        return cls(value, origin=f"file:{path}")

    @classmethod
    def from_stream(cls, stream: TextIO, *, origin: str = "stdin") -> "SecretSource":
        return cls(stream.read(), origin=origin)

    def fetch(self) -> str:
        if self._value is None:
            raise missing_secret(f"No secret provided ({self.origin} is not set)", origin=self.origin)
        if not self._value.strip():
            raise missing_secret(f"Secret is empty ({self.origin})", origin=self.origin)
        return self._value

    def __repr__(self) -> str:
        # Never expose the secret itself.
        state = "unset" if self._value is None else "set"
        return f"SecretSource(origin={self.origin!r}, {state})"
