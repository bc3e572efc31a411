from __future__ import annotations

import json
from pathlib import Path

import pytest

from ssh_key_restore.config import (
    CONFIG_PATH_ENV,
    RestoreSettings,
    debug_enabled,
    load_packaged_schema,
    load_settings,
)
from ssh_key_restore.errors import RestoreError, RestoreErrorCode


def _write_json(p: Path, obj) -> Path:
    p.write_text(json.dumps(obj, indent=2), encoding="utf-8")
    return p


def test_settings_defaults():
    s = load_settings(environ={})
    assert s.secret_env == "SSH_PRIVATE_KEY"
    assert s.ssh_dir == Path.home() / ".ssh"
    assert s.key_name == "id_ed25519"
    assert s.public_suffix == ".pub"
    assert s.backend == "auto"
    assert s.atomic_write is False
    assert s.capability_timeout is None


def test_settings_location(tmp_path: Path):
    s = RestoreSettings(ssh_dir=tmp_path, key_name="deploy")
    loc = s.location()
    assert loc.private_path == tmp_path / "deploy"
    assert loc.public_path == tmp_path / "deploy.pub"


def test_settings_from_environment(tmp_path: Path):
    s = load_settings(
        environ={
            "SSH_KEY_RESTORE_SSH_DIR": str(tmp_path),
            "SSH_KEY_RESTORE_BACKEND": "cryptography",
            "SSH_KEY_RESTORE_ATOMIC_WRITE": "true",
            "SSH_KEY_RESTORE_CAPABILITY_TIMEOUT": "2.5",
            "SSH_KEY_RESTORE_SECRET_ENV": "DEPLOY_KEY",
        }
    )
    assert s.ssh_dir == tmp_path
    assert s.backend == "cryptography"
    assert s.atomic_write is True
    assert s.capability_timeout == 2.5
    assert s.secret_env == "DEPLOY_KEY"


def test_settings_precedence_file_env_overrides(tmp_path: Path):
    cfg = _write_json(
        tmp_path / "cfg.json",
        {"key_name": "from_file", "backend": "ssh-keygen", "public_suffix": ".file"},
    )
    s = load_settings(
        config_path=cfg,
        environ={"SSH_KEY_RESTORE_BACKEND": "cryptography", "SSH_KEY_RESTORE_KEY_NAME": "from_env"},
        overrides={"key_name": "from_cli", "backend": None},
    )
    assert s.key_name == "from_cli"
    assert s.backend == "cryptography"
    assert s.public_suffix == ".file"


def test_settings_config_path_from_environment(tmp_path: Path):
    cfg = _write_json(tmp_path / "cfg.json", {"key_name": "id_rsa"})
    s = load_settings(environ={CONFIG_PATH_ENV: str(cfg)})
    assert s.key_name == "id_rsa"


def test_settings_expands_user_in_ssh_dir():
    s = load_settings(environ={"SSH_KEY_RESTORE_SSH_DIR": "~/keys"})
    assert s.ssh_dir == Path.home() / "keys"


def test_config_file_rejects_unknown_keys(tmp_path: Path):
    cfg = _write_json(tmp_path / "cfg.json", {"key_name": "x", "colour": "blue"})
    with pytest.raises(RestoreError) as exc:
        load_settings(config_path=cfg, environ={})
    assert exc.value.code is RestoreErrorCode.CONFIG_ERROR


def test_config_file_rejects_bad_backend(tmp_path: Path):
    cfg = _write_json(tmp_path / "cfg.json", {"backend": "gpg"})
    with pytest.raises(RestoreError) as exc:
        load_settings(config_path=cfg, environ={})
    assert exc.value.code is RestoreErrorCode.CONFIG_ERROR


def test_config_file_must_be_an_object(tmp_path: Path):
    cfg = _write_json(tmp_path / "cfg.json", ["not", "an", "object"])
    with pytest.raises(RestoreError) as exc:
        load_settings(config_path=cfg, environ={})
    assert exc.value.code is RestoreErrorCode.CONFIG_ERROR


def test_config_file_invalid_json(tmp_path: Path):
    cfg = tmp_path / "cfg.json"
    cfg.write_text("{not json", encoding="utf-8")
    with pytest.raises(RestoreError) as exc:
        load_settings(config_path=cfg, environ={})
    assert exc.value.code is RestoreErrorCode.CONFIG_ERROR


def test_config_file_missing(tmp_path: Path):
    with pytest.raises(RestoreError) as exc:
        load_settings(config_path=tmp_path / "missing.json", environ={})
    assert exc.value.code is RestoreErrorCode.CONFIG_ERROR
    assert exc.value.exit_code == 8


@pytest.mark.parametrize(
    "env",
    [
        {"SSH_KEY_RESTORE_KEY_NAME": "../escape"},
        {"SSH_KEY_RESTORE_CAPABILITY_TIMEOUT": "0"},
        {"SSH_KEY_RESTORE_BACKEND": "gpg"},
        {"SSH_KEY_RESTORE_ATOMIC_WRITE": "maybe"},
    ],
)
def test_invalid_environment_values_raise_config_error(env):
    with pytest.raises(RestoreError) as exc:
        load_settings(environ=env)
    assert exc.value.code is RestoreErrorCode.CONFIG_ERROR


def test_blank_environment_values_are_ignored():
    s = load_settings(environ={"SSH_KEY_RESTORE_KEY_NAME": "   "})
    assert s.key_name == "id_ed25519"


def test_packaged_schema_loads():
    schema = load_packaged_schema()
    assert schema["type"] == "object"
    assert "backend" in schema["properties"]


def test_debug_enabled():
    assert debug_enabled({"SSH_KEY_RESTORE_DEBUG": "1"})
    assert debug_enabled({"SSH_KEY_RESTORE_DEBUG": "true"})
    assert not debug_enabled({})
    assert not debug_enabled({"SSH_KEY_RESTORE_DEBUG": "0"})
