from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, TextIO

from .capabilities import build_capabilities
from .config import RestoreSettings, debug_enabled, load_settings
from .errors import RestoreError, RestoreErrorCode, EXIT_CODES
from .pipeline import RestorePipeline, RestoreResult, step_name
from .secret import SecretSource

log = logging.getLogger("ssh_key_restore.cli")


def _configure_logging(verbose: bool, environ: Optional[Mapping[str, str]] = None) -> None:
    level = logging.DEBUG if verbose or debug_enabled(environ) else logging.WARNING
    logging.basicConfig(
        level=level,
        stream=sys.stderr,
        format="%(levelname)s %(name)s: %(message)s",
    )


def _build_source(
    args: argparse.Namespace,
    settings: RestoreSettings,
    stdin: TextIO,
    environ: Optional[Mapping[str, str]],
) -> SecretSource:
    if args.stdin:
        return SecretSource.from_stream(stdin)
    if args.secret_file is not None:
        return SecretSource.from_file(args.secret_file)
    return SecretSource.from_env(settings.secret_env, environ)


def _overrides(args: argparse.Namespace) -> Dict[str, Any]:
    return {
        "secret_env": args.secret_env,
        "ssh_dir": getattr(args, "ssh_dir", None),
        "key_name": getattr(args, "key_name", None),
        "backend": args.backend,
        "atomic_write": True if getattr(args, "atomic", False) else None,
    }


def _print_success(result: RestoreResult, *, as_json: bool) -> None:
    if as_json:
        print(json.dumps(result.to_dict(), indent=2))
        return

    if result.private_path is not None:
        print("✅ Key pair restored")
        print(f"Private key: {result.private_path}")
        print(f"Public key:  {result.public_path}")
    else:
        print("✅ Key is valid (nothing written)")
    label = result.label or "PKCS#8"
    print(f"Format:      {label}")
    if result.key_type:
        print(f"Type:        {result.key_type}")
    print(f"Fingerprint: {result.fingerprint or 'unavailable'}")


def _print_failure(error: RestoreError, *, as_json: bool) -> None:
    step = step_name(error.stage)
    if as_json:
        print(
            json.dumps(
                {
                    "ok": False,
                    "stage": error.stage,
                    "error": {"code": error.code.value, "step": step, "message": error.message},
                },
                indent=2,
            )
        )
        return
    print(f"❌ {step} failed")
    print(f"{error.code.value}: {error.message}")


def cmd_run(
    args: argparse.Namespace,
    *,
    dry_run: bool,
    stdin: TextIO,
    environ: Optional[Mapping[str, str]] = None,
) -> int:
    try:
        settings = load_settings(
            config_path=args.config, environ=environ, overrides=_overrides(args)
        )
        source = _build_source(args, settings, stdin, environ)
        inspector, deriver = build_capabilities(
            settings.backend,
            ssh_keygen=settings.ssh_keygen,
            timeout=settings.capability_timeout,
        )
        pipeline = RestorePipeline(
            source=source,
            location=settings.location(),
            inspector=inspector,
            deriver=deriver,
            atomic=settings.atomic_write,
        )
        result = pipeline.check() if dry_run else pipeline.run()
    except RestoreError as e:
        _print_failure(e, as_json=args.json)
        return e.exit_code
    except Exception as e:
        log.exception("Unexpected error during restore")
        err = RestoreError(RestoreErrorCode.INTERNAL_ERROR, f"{type(e).__name__}: {e}")
        _print_failure(err, as_json=args.json)
        return EXIT_CODES[RestoreErrorCode.INTERNAL_ERROR]

    _print_success(result, as_json=args.json)
    return 0


def _add_common(p: argparse.ArgumentParser) -> None:
    src = p.add_mutually_exclusive_group()
    src.add_argument(
        "--secret-env",
        metavar="NAME",
        default=None,
        help="Environment variable holding the private key (default: SSH_PRIVATE_KEY)",
    )
    src.add_argument("--secret-file", type=Path, default=None, help="Read the private key from a file")
    src.add_argument("--stdin", action="store_true", help="Read the private key from stdin")
    p.add_argument(
        "--backend",
        choices=["auto", "ssh-keygen", "cryptography"],
        default=None,
        help="Key inspection/derivation backend (default: auto)",
    )
    p.add_argument("--json", action="store_true", help="Print a JSON report")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="ssh-key-restore",
        description="Restore an SSH key pair from a private key held in a CI secret",
    )
    p.add_argument("--config", type=Path, default=None, help="JSON config file")
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging on stderr")
    sub = p.add_subparsers(dest="command", required=True)

    s1 = sub.add_parser("restore", help="Validate the secret and write the key pair")
    _add_common(s1)
    s1.add_argument("--ssh-dir", type=Path, default=None, help="Destination directory (default: ~/.ssh)")
    s1.add_argument("--key-name", default=None, help="Private key file name (default: id_ed25519)")
    s1.add_argument("--atomic", action="store_true", help="Replace key files atomically")

    s2 = sub.add_parser("check", help="Validate the secret without writing anything")
    _add_common(s2)

    return p


def main(
    argv: Optional[list[str]] = None,
    *,
    stdin: Optional[TextIO] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> int:
    args = build_parser().parse_args(argv)
    _configure_logging(args.verbose, environ)
    stream = stdin if stdin is not None else sys.stdin

    if args.command == "restore":
        return cmd_run(args, dry_run=False, stdin=stream, environ=environ)
    if args.command == "check":
        return cmd_run(args, dry_run=True, stdin=stream, environ=environ)

    raise SystemExit("Unknown command")


if __name__ == "__main__":
    raise SystemExit(main())
