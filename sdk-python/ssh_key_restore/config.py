from __future__ import annotations

import json
import os
from importlib import resources
from pathlib import Path
from typing import Any, Dict, Literal, Mapping, Optional

from jsonschema import ValidationError as SchemaValidationError
from jsonschema import validate as js_validate
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import config_error
from .keystore import DEFAULT_KEY_NAME, DEFAULT_PUBLIC_SUFFIX, KeyPairLocation
from .secret import DEFAULT_SECRET_ENV


ENV_PREFIX = "SSH_KEY_RESTORE_"
CONFIG_PATH_ENV = ENV_PREFIX + "CONFIG"
DEBUG_ENV = ENV_PREFIX + "DEBUG"


def _default_ssh_dir() -> Path:
    return Path.home() / ".ssh"


class RestoreSettings(BaseModel):
    """
    Settings for one restore run.

    Precedence (lowest first): defaults, JSON config file,
    SSH_KEY_RESTORE_* environment variables, explicit overrides (CLI flags).
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    secret_env: str = Field(default=DEFAULT_SECRET_ENV, min_length=1)
    ssh_dir: Path = Field(default_factory=_default_ssh_dir)
    key_name: str = Field(default=DEFAULT_KEY_NAME, min_length=1)
    public_suffix: str = Field(default=DEFAULT_PUBLIC_SUFFIX, min_length=1)
    backend: Literal["auto", "ssh-keygen", "cryptography"] = "auto"
    atomic_write: bool = False
    capability_timeout: Optional[float] = Field(default=None, gt=0)
    ssh_keygen: str = Field(default="ssh-keygen", min_length=1)

    @field_validator("ssh_dir", mode="before")
    @classmethod
    def _expand_dir(cls, v: Any) -> Any:
        if isinstance(v, str):
            v = v.strip()
        if isinstance(v, (str, Path)):
            return Path(v).expanduser()
        return v

    @field_validator("key_name")
    @classmethod
    def _plain_file_name(cls, v: str) -> str:
        name = v.strip()
        if not name or "/" in name or "\\" in name or name in {".", ".."}:
            raise ValueError("key_name must be a plain file name")
        return name

    def location(self) -> KeyPairLocation:
        return KeyPairLocation(
            directory=self.ssh_dir,
            name=self.key_name,
            public_suffix=self.public_suffix,
        )


def load_packaged_schema() -> dict:
    schema_text = (
        resources.files("ssh_key_restore")
        .joinpath("schemas/config_schema.json")
        .read_text(encoding="utf-8")
    )
    return json.loads(schema_text)


def load_config_file(path: Path) -> Dict[str, Any]:
    """Load and schema-check a JSON config file."""
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        raise config_error(f"Config file not found: {path}", path=str(path))
    except (OSError, json.JSONDecodeError) as e:
        raise config_error(f"Invalid JSON in config file {path}: {e}", path=str(path)) from e

    try:
        js_validate(instance=data, schema=load_packaged_schema())
    except SchemaValidationError as e:
        raise config_error(f"Config file {path} is invalid: {e.message}", path=str(path)) from e
    return data


def _from_environ(environ: Mapping[str, str]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for name in RestoreSettings.model_fields:
        value = environ.get(ENV_PREFIX + name.upper())
        if value is not None and value.strip():
            out[name] = value.strip()
    return out


def load_settings(
    *,
    config_path: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
    overrides: Optional[Mapping[str, Any]] = None,
) -> RestoreSettings:
    env = os.environ if environ is None else environ

    if config_path is None:
        env_path = (env.get(CONFIG_PATH_ENV) or "").strip()
        if env_path:
            config_path = Path(env_path)

    merged: Dict[str, Any] = {}
    if config_path is not None:
        merged.update(load_config_file(config_path))
    merged.update(_from_environ(env))
    if overrides:
        merged.update({k: v for k, v in overrides.items() if v is not None})

    try:
        return RestoreSettings(**merged)
    except ValidationError as e:
        raise config_error(f"Invalid settings: {e}") from e


def debug_enabled(environ: Optional[Mapping[str, str]] = None) -> bool:
    env = os.environ if environ is None else environ
    return (env.get(DEBUG_ENV) or "").strip().lower() in {"1", "true", "yes", "on"}
