"""Command line interface for rapidup."""
from __future__ import annotations

import argparse
import asyncio
import logging
import os
import signal
import sys
from pathlib import Path
from typing import List, Optional, Sequence

from rich.logging import RichHandler

from . import __version__
from .cli_progress import JobProgressDisplay, render_configuration_summary
from .errors import ConfigError, ValidationError
from .models import UploadConfig
from .orchestrator import UploadJob, UploadOrchestrator
from .orchestrator.file_collector import FileCollector
from .utils.formatting import human_size

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CANCELLED = 130


class CLIError(RuntimeError):
    """Raised when CLI validation/execution fails."""


def _setup_logging(debug: bool, silent: bool, log_level: Optional[str]) -> str:
    """
    Configure logging.

    Default behavior is silent unless --debug, --log-level or LOG_LEVEL is provided.
    Returns a string describing effective mode.
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
    else:
        level = getattr(logging, (log_level or env_level or "INFO").upper(), logging.INFO)

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
            line = line[len("export "):].strip()
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


def _build_config(args: argparse.Namespace) -> UploadConfig:
    try:
        return UploadConfig.from_env(
            endpoint_url=args.url,
            max_retries=args.max_retries,
            upload_timeout=args.timeout,
            verify_integrity=False if args.no_verify else None,
        )
    except ConfigError as exc:
        raise CLIError(str(exc)) from exc


def _install_cancel_handler(orchestrator: UploadOrchestrator) -> bool:
    """Route Ctrl+C to job cancellation where the loop supports signal handlers."""
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, orchestrator.cancel)
    except (NotImplementedError, RuntimeError):
        return False
    return True


def _remove_cancel_handler() -> None:
    loop = asyncio.get_running_loop()
    try:
        loop.remove_signal_handler(signal.SIGINT)
    except (NotImplementedError, RuntimeError):
        pass


async def _run_upload(sources: List[Path], config: UploadConfig) -> int:
    try:
        descriptors = FileCollector.collect(sources)
    except OSError as exc:
        raise CLIError(str(exc)) from exc

    display = JobProgressDisplay()
    job = UploadJob.of(descriptors)

    async with UploadOrchestrator(config, notifier=display) as orchestrator:
        orchestrator.scheduler.on_file_start(display.on_file_start)
        orchestrator.scheduler.on_job_progress(display.on_job_progress)
        orchestrator.scheduler.on_retry(display.on_retry)

        handler_installed = _install_cancel_handler(orchestrator)
        try:
            result = await orchestrator.upload_job(job)
        except ValidationError as exc:
            raise CLIError(exc.message) from exc
        finally:
            if handler_installed:
                _remove_cancel_handler()

    if result.cancelled:
        return EXIT_CANCELLED
    return EXIT_FAILED if result.has_errors else EXIT_OK


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rapidup",
        description="Upload files one by one to a RapidComm-compatible HTTP endpoint.",
    )
    parser.add_argument("sources", nargs="*", type=Path, help="Files or folders to upload")
    parser.add_argument(
        "-u",
        "--url",
        default=None,
        help="Upload endpoint (default from RAPIDUP_ENDPOINT_URL or http://127.0.0.1:8080/upload)",
    )
    parser.add_argument(
        "-r",
        "--max-retries",
        type=int,
        default=None,
        help="Retries after a network error (default 3)",
    )
    parser.add_argument(
        "-t",
        "--timeout",
        type=float,
        default=None,
        help="Per-attempt timeout in seconds (default 600)",
    )
    parser.add_argument(
        "--no-verify",
        action="store_true",
        help="Skip the post-upload integrity check",
    )
    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Load environment variables from this .env file",
    )
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
        version=f"rapidup {__version__}",
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
            return EXIT_FAILED

    effective_log_mode = _setup_logging(
        debug=args.debug,
        silent=args.silent,
        log_level=args.log_level,
    )

    if not args.sources:
        parser.print_help()
        return EXIT_OK

    try:
        config = _build_config(args)
    except CLIError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return EXIT_FAILED

    sources = [Path(s).expanduser() for s in args.sources]
    missing = [s for s in sources if not s.exists()]
    if missing:
        print(f"ERROR: source does not exist: {missing[0]}", file=sys.stderr)
        return EXIT_FAILED

    render_configuration_summary(
        {
            "Sources": ", ".join(str(s) for s in sources),
            "Upload URL": config.endpoint_url,
            "Limits": (
                f"{config.max_files} files, {human_size(config.max_file_size)}/file, "
                f"{human_size(config.max_total_size)} total"
            ),
            "Retries": f"{config.max_retries} (base {config.retry_delay_base:g}s)",
            "Timeout": f"{config.upload_timeout:g}s per attempt",
            "Verify": "yes" if config.verify_integrity else "no",
            "Env File": str(used_env_file) if used_env_file else "-",
            "Logging": effective_log_mode,
        }
    )

    try:
        return asyncio.run(_run_upload(sources, config))
    except CLIError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return EXIT_FAILED
    except KeyboardInterrupt:
        print("Cancelled.", file=sys.stderr)
        return EXIT_CANCELLED


def main() -> None:
    raise SystemExit(run_cli())


if __name__ == "__main__":
    main()
