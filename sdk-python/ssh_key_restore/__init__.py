from .capabilities import (
    CryptographyDeriver,
    CryptographyInspector,
    KeyDeriver,
    KeyInspector,
    SshKeygenDeriver,
    SshKeygenInspector,
    ValidationOutcome,
    build_capabilities,
)
from .envelope import check, detect_label, require_envelope
from .errors import RestoreError, RestoreErrorCode
from .keystore import KeyPairLocation, KeyStore
from .normalize import normalize_key
from .pipeline import RestorePipeline, RestoreResult, RestoreStage, restore_key_pair
from .secret import SecretSource
from .tempfiles import scoped_temp_file

__version__ = "0.1.0"

__all__ = [
    "CryptographyDeriver",
    "CryptographyInspector",
    "KeyDeriver",
    "KeyInspector",
    "KeyPairLocation",
    "KeyStore",
    "RestoreError",
    "RestoreErrorCode",
    "RestorePipeline",
    "RestoreResult",
    "RestoreStage",
    "SecretSource",
    "SshKeygenDeriver",
    "SshKeygenInspector",
    "ValidationOutcome",
    "build_capabilities",
    "check",
    "detect_label",
    "normalize_key",
    "require_envelope",
    "restore_key_pair",
    "scoped_temp_file",
]
