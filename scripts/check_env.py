"""Pre-deploy check for the Swipify auth service environment.

Loads settings from a ``.env`` file the same way the app does at startup and
reports every missing or invalid variable by name, so a deployment without a
Spotify client id, redirect URI or session secret never reaches uvicorn.

A checksum of the file can be recorded after a known-good deploy and verified
before the next restart to catch secrets that were rotated on disk only::

    python -m scripts.check_env record --env-file /srv/swipify/.env \
        --hash-file /srv/swipify/.env.sha256

    python -m scripts.check_env verify --env-file /srv/swipify/.env \
        --hash-file /srv/swipify/.env.sha256
"""

from __future__ import annotations

import argparse
import hashlib
import sys
from pathlib import Path

from swipify.core.config import AppSettings, _load_env_file, load_settings
from swipify.core.errors import ConfigMissingError

EXIT_OK = 0
EXIT_VALIDATION_ERROR = 2
EXIT_CHECKSUM_ERROR = 3
EXIT_RUNTIME_ERROR = 5


def _file_digest(env_file: Path) -> str:
    return hashlib.sha256(env_file.read_bytes()).hexdigest()


def _load(env_file: Path) -> AppSettings:
    _load_env_file(str(env_file))
    return load_settings()


def _summary(settings: AppSettings) -> str:
    """One line describing the loaded configuration without secret values."""
    client_mode = "confidential" if settings.spotify.client_secret else "public (PKCE only)"
    return (
        f"env={settings.environment} client={client_mode} "
        f"redirect_uri={settings.spotify.redirect_uri} "
        f"scopes={len(settings.oauth.scopes)} db={settings.database_path}"
    )


def run_record(env_file: Path, hash_file: Path) -> int:
    digest = _file_digest(env_file)
    hash_file.write_text(f"{digest}\n", encoding="utf-8")
    print(f"Baseline for {env_file} written to {hash_file}")
    return EXIT_OK


def run_verify(env_file: Path, hash_file: Path) -> int:
    if not hash_file.exists():
        print(
            f"No baseline at {hash_file}; run 'record' after a known-good deploy.",
            file=sys.stderr,
        )
        return EXIT_RUNTIME_ERROR

    recorded = hash_file.read_text(encoding="utf-8").strip()
    current = _file_digest(env_file)
    if recorded != current:
        print(
            f"{env_file} changed since the baseline was recorded "
            f"(baseline {recorded[:12]}, now {current[:12]}). "
            "Confirm the Spotify and session secrets before restarting.",
            file=sys.stderr,
        )
        return EXIT_CHECKSUM_ERROR

    print(f"{env_file} matches its baseline.")
    return EXIT_OK


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Check Swipify auth settings and detect .env drift."
    )
    commands = parser.add_subparsers(dest="command", required=True)

    check = commands.add_parser("check", help="Only validate that settings load.")
    record = commands.add_parser("record", help="Validate, then store a baseline checksum.")
    verify = commands.add_parser("verify", help="Validate, then compare with the baseline.")

    for subparser in (check, record, verify):
        subparser.add_argument("--env-file", type=Path, default=Path(".env"))
    for subparser in (record, verify):
        subparser.add_argument("--hash-file", type=Path, required=True)

    return parser


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    env_file: Path = args.env_file

    if not env_file.is_file():
        print(f"Environment file {env_file} not found.", file=sys.stderr)
        return EXIT_RUNTIME_ERROR

    try:
        settings = _load(env_file)
    except ConfigMissingError as exc:
        for name in exc.names:
            print(f"missing or invalid: {name}", file=sys.stderr)
        return EXIT_VALIDATION_ERROR

    print(_summary(settings))
    if args.command == "record":
        return run_record(env_file, args.hash_file)
    if args.command == "verify":
        return run_verify(env_file, args.hash_file)
    return EXIT_OK


if __name__ == "__main__":  # pragma: no cover - script entry point
    sys.exit(main())
