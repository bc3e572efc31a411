import base64
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

import pytest

SDK_DIR = Path(__file__).resolve().parents[1] / "sdk-python"
if str(SDK_DIR) not in sys.path:
    sys.path.insert(0, str(SDK_DIR))

from cryptography.hazmat.primitives import serialization  # noqa: E402
from cryptography.hazmat.primitives.asymmetric import ed25519, rsa  # noqa: E402

from ssh_key_restore.capabilities import ValidationOutcome  # noqa: E402
from ssh_key_restore.errors import RestoreError, RestoreErrorCode  # noqa: E402


@dataclass(frozen=True)
class GeneratedPair:
    private: str
    public: str


def _pair(sk, fmt) -> GeneratedPair:
    private = sk.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=fmt,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("ascii")
    public = sk.public_key().public_bytes(
        encoding=serialization.Encoding.OpenSSH,
        format=serialization.PublicFormat.OpenSSH,
    ).decode("ascii")
    return GeneratedPair(private=private, public=public)


@pytest.fixture(scope="session")
def ed25519_pair() -> GeneratedPair:
    return _pair(ed25519.Ed25519PrivateKey.generate(), serialization.PrivateFormat.OpenSSH)


@pytest.fixture(scope="session")
def rsa_pair() -> GeneratedPair:
    sk = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    return _pair(sk, serialization.PrivateFormat.TraditionalOpenSSL)


@pytest.fixture(scope="session")
def pkcs8_pair() -> GeneratedPair:
    return _pair(ed25519.Ed25519PrivateKey.generate(), serialization.PrivateFormat.PKCS8)


def truncate_key(private: str) -> str:
    """Keep the envelope markers but drop most of the payload."""
    lines = private.strip().splitlines()
    body = lines[1:-1]
    return "\n".join([lines[0], body[0][:20], lines[-1]]) + "\n"


def corrupt_private_section(private: str) -> str:
    """
    Flip the tail of the payload, which holds the private half of an
    OpenSSH key. The public half at the front still parses.
    """
    lines = private.strip().splitlines()
    blob = bytearray(base64.b64decode("".join(lines[1:-1])))
    for i in range(len(blob) - 40, len(blob)):
        blob[i] ^= 0xFF
    encoded = base64.b64encode(bytes(blob)).decode("ascii")
    body = [encoded[i:i + 70] for i in range(0, len(encoded), 70)]
    return "\n".join([lines[0], *body, lines[-1]]) + "\n"


def write_fake_ssh_keygen(directory: Path, *, load_fails: bool) -> Path:
    """
    Shell stand-in for ssh-keygen. `-l` always prints a fingerprint; `-y`
    either prints a public key or fails the way OpenSSH does on a bad key.
    """
    script = directory / "fake-ssh-keygen"
    if load_fails:
        load = 'echo "Load key \\"$5\\": invalid format" >&2; exit 255'
    else:
        load = 'echo "ssh-ed25519 AAAAC3NzaC1lZDI1NTE5AAAAIFakeFakeFake"; exit 0'
    script.write_text(
        "#!/bin/sh\n"
        'case "$1" in\n'
        f"  -y) {load} ;;\n"
        '  -l) echo "256 SHA256:fakefingerprint no comment (ED25519)"; exit 0 ;;\n'
        "esac\n"
        "exit 1\n",
        encoding="utf-8",
    )
    script.chmod(0o755)
    return script


def escape_newlines(text: str) -> str:
    """Single physical line with literal backslash-n, as CI secrets often are."""
    return text.strip().replace("\n", "\\n")


@dataclass
class FakeInspector:
    """Records what it was asked to inspect; optionally fails."""
    fingerprint: str = "SHA256:fake"
    fail_with: Optional[RestoreErrorCode] = None
    valid: bool = True
    seen_paths: List[Path] = field(default_factory=list)
    seen_contents: List[str] = field(default_factory=list)

    def inspect(self, path: Path) -> ValidationOutcome:
        self.seen_paths.append(path)
        self.seen_contents.append(path.read_text(encoding="utf-8"))
        if self.fail_with is not None:
            raise RestoreError(self.fail_with, "fake inspector failure")
        return ValidationOutcome(valid=self.valid, fingerprint=self.fingerprint, key_type="ED25519")


@dataclass
class FakeDeriver:
    public_key: str = "ssh-ed25519 AAAAC3NzaC1lZDI1NTE5AAAAIFakeFakeFake"
    fail_with: Optional[RestoreErrorCode] = None
    seen_paths: List[Path] = field(default_factory=list)

    def derive(self, path: Path) -> str:
        self.seen_paths.append(path)
        if self.fail_with is not None:
            raise RestoreError(self.fail_with, "fake deriver failure")
        return self.public_key


@pytest.fixture
def fake_inspector() -> FakeInspector:
    return FakeInspector()


@pytest.fixture
def fake_deriver() -> FakeDeriver:
    return FakeDeriver()
