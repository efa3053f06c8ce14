"""Command line interface for sciupload package."""
from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import Optional, Sequence

from rich.logging import RichHandler

from .cli_progress import UploadProgressDisplay, render_configuration_summary, render_report
from .errors import ConfigurationError
from .models import DEFAULT_CONCURRENCY, DEFAULT_ENDPOINT, DEFAULT_RETRIES, Report, UploadRequest
from .orchestrator import upload
from .utils.events import EventEmitter


EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CONFIG = 2
EXIT_INTERRUPTED = 130


class CLIError(RuntimeError):
    """Raised when CLI validation/execution fails."""


def _setup_logging(debug: bool, silent: bool, log_level: Optional[str]) -> str:
    """
    Configure logging.

    Default behavior is silent unless --debug, --log-level or LOG_LEVEL is
    provided. Returns a string describing effective mode.
    """
    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    logging.disable(logging.NOTSET)

    env_level = os.getenv("LOG_LEVEL")
    if silent or (not debug and not log_level and not env_level):
        logging.disable(logging.CRITICAL)
        root_logger.setLevel(logging.CRITICAL + 1)
        return "silent"

    if debug:
        level = logging.DEBUG
    elif log_level:
        level = getattr(logging, log_level.upper(), logging.INFO)
    else:
        level = getattr(logging, env_level.upper(), logging.INFO)

    handler = RichHandler(
        rich_tracebacks=True,
        markup=False,
        show_time=False,
        show_path=False,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger.addHandler(handler)
    root_logger.setLevel(level)
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))
    return logging.getLevelName(level)


def _normalize_dest(dest: Optional[str]) -> str:
    if dest is None:
        return ""
    return dest.strip().strip("/")


def _strip_optional_quotes(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in {"'", '"'}:
        return value[1:-1]
    return value


def _load_env_file(path: Path, override: bool = False) -> None:
    if not path.exists():
        raise CLIError(f"env file not found: {path}")
    if not path.is_file():
        raise CLIError(f"env path is not a file: {path}")

    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise CLIError(f"could not read env file {path}: {exc}") from exc

    for raw_line in content.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith("export "):
            line = line[len("export ") :].strip()
        if "=" not in line:
            continue

        key, value = line.split("=", 1)
        key = key.strip()
        if not key:
            continue

        value = _strip_optional_quotes(value.strip())
        if override or key not in os.environ:
            os.environ[key] = value


def _resolve_default_env_file() -> Optional[Path]:
    default_env = Path(".env")
    return default_env if default_env.exists() and default_env.is_file() else None


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise CLIError(f"{name} must be an integer, got {raw!r}") from exc


def _build_request(args: argparse.Namespace) -> UploadRequest:
    endpoint = args.endpoint or os.getenv("SCISERVER_ENDPOINT") or DEFAULT_ENDPOINT
    token = args.token or os.getenv("SCISERVER_TOKEN")
    if not token:
        raise CLIError("token not set (use --token or SCISERVER_TOKEN)")

    concurrency = args.cons if args.cons is not None else _env_int(
        "SCISERVER_UPLOAD_CONCURRENCY", DEFAULT_CONCURRENCY
    )
    retries = args.retries if args.retries is not None else _env_int(
        "SCISERVER_UPLOAD_RETRIES", DEFAULT_RETRIES
    )

    request = UploadRequest(
        endpoint=endpoint.strip().rstrip("/"),
        token=token.strip(),
        dest_path=_normalize_dest(args.path),
        files=[Path(f).expanduser() for f in args.files],
        concurrency=concurrency,
        retries=retries,
        overwrite=args.force,
    )
    return request.validate()


async def _run_upload(request: UploadRequest, show_progress: bool = True, live: bool = True) -> Report:
    if not show_progress:
        return await upload(request)

    events = EventEmitter()
    display = UploadProgressDisplay(len(request.files), live=live).attach(events)
    display.start()
    try:
        return await upload(request, events=events)
    finally:
        display.stop()


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sciupload",
        description="Upload files concurrently to a SciServer fileservice volume.",
    )
    parser.add_argument("path", nargs="?", default=None, help="Destination volume path")
    parser.add_argument("files", nargs="*", default=[], help="Files to upload")
    parser.add_argument(
        "-e",
        "--endpoint",
        default=None,
        help=f"Fileservice HTTP endpoint (default from SCISERVER_ENDPOINT or {DEFAULT_ENDPOINT})",
    )
    parser.add_argument(
        "-t",
        "--token",
        default=None,
        help="SciServer token (default from SCISERVER_TOKEN)",
    )
    parser.add_argument(
        "-c",
        "--cons",
        type=int,
        default=None,
        help=f"Number of concurrent uploads (default {DEFAULT_CONCURRENCY})",
    )
    parser.add_argument(
        "-r",
        "--retries",
        type=int,
        default=None,
        help=f"Number of retries for each upload (default {DEFAULT_RETRIES})",
    )
    parser.add_argument(
        "-f",
        "--force",
        action="store_true",
        help="Overwrite existing files",
    )
    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Load environment variables from this .env file",
    )
    parser.add_argument("--no-progress", action="store_true", help="Disable the live progress bar")
    parser.add_argument("--debug", action="store_true", help="Enable debug logs")
    parser.add_argument("--silent", action="store_true", help="Only print errors")
    parser.add_argument(
        "--log-level",
        default=None,
        help="Explicit log level (DEBUG/INFO/WARNING/ERROR)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version="sciupload 0.1.0",
    )
    return parser


def run_cli(argv: Optional[Sequence[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    used_env_file = args.env_file or _resolve_default_env_file()
    if used_env_file is not None:
        try:
            _load_env_file(Path(used_env_file))
        except CLIError as exc:
            print(f"ERROR: {exc}", file=sys.stderr)
            return EXIT_CONFIG

    effective_log_mode = _setup_logging(
        debug=args.debug,
        silent=args.silent,
        log_level=args.log_level,
    )

    if args.path is None:
        parser.print_help()
        return EXIT_OK

    try:
        request = _build_request(args)
    except (CLIError, ConfigurationError) as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return EXIT_CONFIG

    if not args.silent:
        render_configuration_summary(
            {
                "Endpoint": request.endpoint,
                "Dest": request.dest_path or "/",
                "Files": len(request.files),
                "Concurrency": request.concurrency,
                "Retries": request.retries,
                "Overwrite": "yes" if request.overwrite else "no",
                "Env File": str(used_env_file) if used_env_file else "-",
                "Logging": effective_log_mode,
            }
        )

    try:
        report = asyncio.run(
            _run_upload(request, show_progress=not args.silent, live=not args.no_progress)
        )
    except ConfigurationError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return EXIT_CONFIG
    except KeyboardInterrupt:
        print("Cancelled.", file=sys.stderr)
        return EXIT_INTERRUPTED

    if not args.silent or not report.success:
        render_report(report)
    return EXIT_OK if report.success else EXIT_FAILED


def main() -> None:
    raise SystemExit(run_cli())


if __name__ == "__main__":
    main()
