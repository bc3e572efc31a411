"""
Restore pipeline: raw secret -> validated, persisted SSH key pair.

Stages (RestoreStage), strictly sequential:

    IDLE -> SOURCE_READ -> NORMALIZED -> FORMAT_CHECKED -> VALIDATED
         -> PRIVATE_COMMITTED -> PUBLIC_COMMITTED -> DONE

Any RestoreError moves the pipeline to FAILED and is re-raised with
``error.stage`` set to the last stage reached before the failure. Other
exceptions from a backend are wrapped as INTERNAL_ERROR first. Nothing is
retried. The inspection temp file is always removed; destination artifacts
written before a failure are left in place.

Nothing touches the filesystem before the envelope check passes, and the
destination files are only written after the key inspector accepted the key.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional, Tuple

from . import envelope
from .capabilities import KeyDeriver, KeyInspector, ValidationOutcome, key_type_label
from .errors import RestoreError, RestoreErrorCode
from .keystore import KeyPairLocation, KeyStore
from .normalize import normalize_key
from .secret import SecretSource
from .tempfiles import scoped_temp_file

log = logging.getLogger("ssh_key_restore.pipeline")


class RestoreStage(str, Enum):
    IDLE = "idle"
    SOURCE_READ = "source_read"
    NORMALIZED = "normalized"
    FORMAT_CHECKED = "format_checked"
    VALIDATED = "validated"
    PRIVATE_COMMITTED = "private_committed"
    PUBLIC_COMMITTED = "public_committed"
    DONE = "done"
    FAILED = "failed"


# Stage being attempted -> stage it reaches on success
_NEXT = {
    RestoreStage.IDLE: RestoreStage.SOURCE_READ,
    RestoreStage.SOURCE_READ: RestoreStage.NORMALIZED,
    RestoreStage.NORMALIZED: RestoreStage.FORMAT_CHECKED,
    RestoreStage.FORMAT_CHECKED: RestoreStage.VALIDATED,
    RestoreStage.VALIDATED: RestoreStage.PRIVATE_COMMITTED,
    RestoreStage.PRIVATE_COMMITTED: RestoreStage.PUBLIC_COMMITTED,
    RestoreStage.PUBLIC_COMMITTED: RestoreStage.DONE,
}

# Human-readable names of the step that leads out of each stage
_STEP_NAMES = {
    RestoreStage.IDLE: "read secret",
    RestoreStage.SOURCE_READ: "normalize key",
    RestoreStage.NORMALIZED: "check key format",
    RestoreStage.FORMAT_CHECKED: "inspect key",
    RestoreStage.VALIDATED: "write private key",
    RestoreStage.PRIVATE_COMMITTED: "derive public key",
    RestoreStage.PUBLIC_COMMITTED: "finish",
}


def step_name(stage: Optional[str]) -> str:
    if stage is None:
        return "restore"
    try:
        return _STEP_NAMES.get(RestoreStage(stage), stage)
    except ValueError:
        return stage


# Algorithm hinted by conventional OpenSSH file names
_NAME_HINTS = {
    "id_ed25519": "ED25519",
    "id_rsa": "RSA",
    "id_ecdsa": "ECDSA",
    "id_dsa": "DSA",
}


def _unexpected(e: Exception) -> RestoreError:
    return RestoreError(
        RestoreErrorCode.INTERNAL_ERROR,
        f"{type(e).__name__}: {e}",
        details={"exception": type(e).__name__},
    )


@dataclass(frozen=True)
class RestoreResult:
    stage: RestoreStage
    label: str
    fingerprint: Optional[str] = None
    key_type: Optional[str] = None
    private_path: Optional[Path] = None
    public_path: Optional[Path] = None
    public_key: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "ok": True,
            "stage": self.stage.value,
            "label": self.label,
            "fingerprint": self.fingerprint,
            "key_type": self.key_type,
            "private_path": str(self.private_path) if self.private_path else None,
            "public_path": str(self.public_path) if self.public_path else None,
            "public_key": self.public_key,
            "error": None,
        }


@dataclass
class RestorePipeline:
    """
    One restore invocation. Not reusable: build a new pipeline per run.

    on_transition, when given, is called with every stage reached
    (including FAILED); handy for progress output and tests.
    """
    source: SecretSource
    location: KeyPairLocation
    inspector: KeyInspector
    deriver: KeyDeriver
    atomic: bool = False
    temp_dir: Optional[Path] = None
    on_transition: Optional[Callable[[RestoreStage], None]] = None
    stage: RestoreStage = RestoreStage.IDLE
    history: List[RestoreStage] = field(default_factory=list)

    def _advance(self) -> None:
        self.stage = _NEXT[self.stage]
        self.history.append(self.stage)
        log.debug("stage -> %s", self.stage.value)
        if self.on_transition is not None:
            self.on_transition(self.stage)

    def _fail(self, error: RestoreError) -> RestoreError:
        if error.stage is None:
            error.stage = self.stage.value
        log.debug("stage %s failed: %s", self.stage.value, error.code.value)
        self.stage = RestoreStage.FAILED
        self.history.append(self.stage)
        if self.on_transition is not None:
            self.on_transition(self.stage)
        return error

    def _ensure_idle(self) -> None:
        if self.stage is not RestoreStage.IDLE:
            raise RuntimeError(f"Pipeline already ran (stage={self.stage.value})")

    def _validate(self) -> Tuple[str, str, ValidationOutcome]:
        raw = self.source.fetch()
        self._advance()

        key = normalize_key(raw)
        self._advance()

        label = envelope.require_envelope(key)
        self._advance()

        with scoped_temp_file(key, directory=self.temp_dir) as tmp:
            outcome = self.inspector.inspect(tmp)
        if not outcome.valid:
            raise RestoreError(RestoreErrorCode.INVALID_KEY, "Key inspection reported an invalid key")
        self._advance()
        return key, label, outcome

    def check(self) -> RestoreResult:
        """Run up to VALIDATED without touching the destination."""
        self._ensure_idle()
        try:
            _key, label, outcome = self._validate()
        except RestoreError as e:
            raise self._fail(e)
        except Exception as e:
            raise self._fail(_unexpected(e)) from e
        return RestoreResult(
            stage=self.stage,
            label=label,
            fingerprint=outcome.fingerprint,
            key_type=outcome.key_type,
        )

    def run(self) -> RestoreResult:
        self._ensure_idle()
        store = KeyStore(self.location, atomic=self.atomic)
        try:
            key, label, outcome = self._validate()

            store.ensure_directory()
            private_path = store.write_private(key)
            self._advance()

            public_key = store.derive_public(self.deriver).strip()
            public_path = store.write_public(public_key)
            self._advance()

            self._warn_on_name_mismatch(public_key)
            self._advance()
        except RestoreError as e:
            raise self._fail(e)
        except Exception as e:
            raise self._fail(_unexpected(e)) from e

        log.info(
            "Restored key pair %s (%s)", private_path, outcome.fingerprint or "no fingerprint"
        )
        return RestoreResult(
            stage=self.stage,
            label=label,
            fingerprint=outcome.fingerprint,
            key_type=outcome.key_type or key_type_label(public_key),
            private_path=private_path,
            public_path=public_path,
            public_key=public_key,
        )

    def _warn_on_name_mismatch(self, public_key: str) -> None:
        expected = _NAME_HINTS.get(self.location.name)
        actual = key_type_label(public_key)
        if expected and actual and expected != actual:
            log.warning(
                "Key file name '%s' suggests %s but the restored key is %s",
                self.location.name,
                expected,
                actual,
            )


def restore_key_pair(
    source: SecretSource,
    location: KeyPairLocation,
    *,
    inspector: KeyInspector,
    deriver: KeyDeriver,
    atomic: bool = False,
) -> RestoreResult:
    """Convenience wrapper: build a pipeline and run it."""
    return RestorePipeline(
        source=source,
        location=location,
        inspector=inspector,
        deriver=deriver,
        atomic=atomic,
    ).run()
