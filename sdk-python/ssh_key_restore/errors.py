from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class RestoreErrorCode(str, Enum):
    MISSING_SECRET = "MISSING_SECRET"
    INVALID_FORMAT = "INVALID_FORMAT"
    INVALID_KEY = "INVALID_KEY"
    DERIVATION_FAILED = "DERIVATION_FAILED"
    IO_ERROR = "IO_ERROR"
    MISSING_CAPABILITY = "MISSING_CAPABILITY"
    CONFIG_ERROR = "CONFIG_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


# Process exit status per error code (0 is reserved for success).
EXIT_CODES: Dict[RestoreErrorCode, int] = {
    RestoreErrorCode.INTERNAL_ERROR: 1,
    RestoreErrorCode.MISSING_SECRET: 2,
    RestoreErrorCode.INVALID_FORMAT: 3,
    RestoreErrorCode.INVALID_KEY: 4,
    RestoreErrorCode.DERIVATION_FAILED: 5,
    RestoreErrorCode.IO_ERROR: 6,
    RestoreErrorCode.MISSING_CAPABILITY: 7,
    RestoreErrorCode.CONFIG_ERROR: 8,
}


class RestoreError(Exception):
    """
    Single error type raised by every stage of the restore pipeline.

    code:    stable RestoreErrorCode for callers / exit status mapping
    message: human-readable diagnostic (never contains key material)
    details: optional structured context (paths, return codes, stderr)
    stage:   pipeline stage that failed; filled in by the pipeline
    """

    def __init__(
        self,
        code: RestoreErrorCode,
        message: str,
        *,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details or {}
        self.stage: Optional[str] = None

    @property
    def exit_code(self) -> int:
        return EXIT_CODES.get(self.code, 1)

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


def missing_secret(message: str, **details: Any) -> RestoreError:
    return RestoreError(RestoreErrorCode.MISSING_SECRET, message, details=details)


def invalid_format(message: str, **details: Any) -> RestoreError:
    return RestoreError(RestoreErrorCode.INVALID_FORMAT, message, details=details)


def invalid_key(message: str, **details: Any) -> RestoreError:
    return RestoreError(RestoreErrorCode.INVALID_KEY, message, details=details)


def derivation_failed(message: str, **details: Any) -> RestoreError:
    return RestoreError(RestoreErrorCode.DERIVATION_FAILED, message, details=details)


def io_error(message: str, **details: Any) -> RestoreError:
    return RestoreError(RestoreErrorCode.IO_ERROR, message, details=details)


def missing_capability(message: str, **details: Any) -> RestoreError:
    return RestoreError(RestoreErrorCode.MISSING_CAPABILITY, message, details=details)


def config_error(message: str, **details: Any) -> RestoreError:
    return RestoreError(RestoreErrorCode.CONFIG_ERROR, message, details=details)
