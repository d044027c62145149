"""Command line interface for blobdrive."""
from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from dataclasses import replace
from pathlib import Path
from typing import Optional, Sequence, Tuple

from .cli_progress import (
    BatchProgressDisplay,
    InteractiveConfirmSurface,
    render_configuration_summary,
    render_quote,
    render_records,
)
from .errors import BlobDriveError, NotFoundError
from .models import DriveConfig, UploadItem
from .orchestrator import AutoApproveSurface, DriveOrchestrator
from .orchestrator.library import VIEWS
from .utils.events import BATCH_COMPLETE, ITEM_STATUS, PROGRESS


class CLIError(RuntimeError):
    """Raised when CLI validation/execution fails."""


def _resolve_log_level(debug: bool, silent: bool, log_level: Optional[str]) -> Optional[int]:
    """Effective level, or None when logging should stay off."""
    if silent:
        return None
    if debug:
        return logging.DEBUG
    requested = log_level or os.getenv("LOG_LEVEL")
    if not requested:
        return None
    return getattr(logging, requested.upper(), logging.INFO)


def _setup_logging(debug: bool, silent: bool, log_level: Optional[str]) -> str:
    """
    Route logging through rich, or switch it off.

    Logging is off unless --debug, --log-level or LOG_LEVEL asks for it.
    Returns the effective mode for the configuration summary.
    """
    root = logging.getLogger()
    root.handlers.clear()
    logging.disable(logging.NOTSET)

    level = _resolve_log_level(debug, silent, log_level)
    if level is None:
        logging.disable(logging.CRITICAL)
        root.setLevel(logging.CRITICAL + 1)
        return "silent"

    from rich.logging import RichHandler

    handler = RichHandler(rich_tracebacks=True, markup=False, show_time=False, show_path=False)
    handler.setFormatter(logging.Formatter("%(message)s"))
    root.addHandler(handler)
    root.setLevel(level)
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))
    return logging.getLevelName(level)


def _parse_env_line(raw_line: str) -> Optional[Tuple[str, str]]:
    line = raw_line.strip()
    if line.startswith("export "):
        line = line[7:].lstrip()
    if not line or line.startswith("#") or "=" not in line:
        return None
    key, _, value = line.partition("=")
    key, value = key.strip(), value.strip()
    if len(value) >= 2 and value[0] in "'\"" and value[-1] == value[0]:
        value = value[1:-1]
    return (key, value) if key else None


def _load_env_file(path: Path, override: bool = False) -> None:
    """Export ``KEY=value`` lines from a .env file; existing variables win unless ``override``."""
    if not path.is_file():
        reason = "is not a file" if path.exists() else "not found"
        raise CLIError(f"env file {reason}: {path}")
    try:
        lines = path.read_text(encoding="utf-8").splitlines()
    except OSError as exc:
        raise CLIError(f"could not read env file {path}: {exc}") from exc

    for parsed in filter(None, map(_parse_env_line, lines)):
        key, value = parsed
        if override or key not in os.environ:
            os.environ[key] = value


def _default_env_file() -> Optional[Path]:
    candidate = Path(".env")
    return candidate if candidate.is_file() else None


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"not an integer: {value}") from exc
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be >= 1: {value}")
    return number


def _parse_size(value: str) -> int:
    """Parse ``1234``, ``3MB``, ``1.5GB`` into bytes."""
    text = value.strip().upper().replace(" ", "")
    units = {"TB": 1024 ** 4, "GB": 1024 ** 3, "MB": 1024 ** 2, "KB": 1024, "B": 1}
    for suffix, factor in units.items():
        if text.endswith(suffix):
            number = text[: -len(suffix)]
            break
    else:
        number, factor = text, 1
    try:
        size = int(float(number) * factor)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid size: {value}") from exc
    if size <= 0:
        raise argparse.ArgumentTypeError(f"size must be positive: {value}")
    return size


def _collect_items(paths: Sequence[Path]) -> list:
    items = []
    for raw in paths:
        path = Path(raw).expanduser()
        if not path.exists():
            raise CLIError(f"source does not exist: {path}")
        if not path.is_file():
            raise CLIError(f"source is not a file: {path}")
        items.append(UploadItem.from_path(path))
    return items


async def _run_quote(drive: DriveOrchestrator, args) -> int:
    quote = await drive.estimate(args.size, args.epochs)
    render_quote(quote)
    return 0


async def _run_upload(drive: DriveOrchestrator, args) -> int:
    items = _collect_items(args.files)
    await drive.load()

    display = BatchProgressDisplay(len(items))
    drive.events.on(ITEM_STATUS, display.on_item_status)
    drive.events.on(PROGRESS, display.on_progress)
    drive.events.on(BATCH_COMPLETE, display.on_finish)

    display.start()
    try:
        result = await drive.upload(items, authorized_caller=args.caller, epochs=args.epochs)
    finally:
        display.stop()
    return 0 if result.failed == 0 else 1


async def _run_list(drive: DriveOrchestrator, args) -> int:
    await drive.load()
    render_records(drive.view(args.view), title=args.view.capitalize())
    return 0


async def _run_lifecycle(drive: DriveOrchestrator, args) -> int:
    await drive.load()
    record_id = args.id
    if args.command != "delete" and drive.library.find(record_id) is None:
        raise CLIError(f"no file with id {record_id}")

    if args.command == "star":
        record = await drive.toggle_star(record_id)
        state = "starred" if record and record.starred else "unstarred"
        print(f"{record_id} {state}")
    elif args.command == "trash":
        await drive.trash(record_id)
        print(f"{record_id} moved to trash")
    elif args.command == "restore":
        await drive.restore(record_id)
        print(f"{record_id} restored")
    elif args.command == "delete":
        remaining = await drive.permanently_delete(record_id)
        print(f"{record_id} deleted ({len(remaining)} file(s) remaining)")
    return 0


async def _run_get(drive: DriveOrchestrator, args) -> int:
    await drive.load()
    try:
        record, data = await drive.fetch(args.id)
    except NotFoundError as exc:
        raise CLIError(f"no file with id {args.id}") from exc
    if data is None:
        raise CLIError(f"could not fetch {record.name} ({record.content_id}) from the store")

    target = Path(args.output).expanduser() if args.output else Path(record.name)
    try:
        target.write_bytes(data)
    except OSError as exc:
        raise CLIError(f"could not write {target}: {exc}") from exc
    print(f"{record.id} -> {target} ({len(data)} bytes)")
    return 0


COMMANDS = {
    "quote": _run_quote,
    "upload": _run_upload,
    "list": _run_list,
    "star": _run_lifecycle,
    "trash": _run_lifecycle,
    "restore": _run_lifecycle,
    "delete": _run_lifecycle,
    "get": _run_get,
}


async def _run(args, config: DriveConfig) -> int:
    surface = AutoApproveSurface() if getattr(args, "yes", False) else InteractiveConfirmSurface()
    async with DriveOrchestrator(config, surface=surface) as drive:
        return await COMMANDS[args.command](drive, args)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="blobdrive",
        description="Upload files to a content-addressed blob store and manage their records.",
    )
    parser.add_argument(
        "--store",
        type=Path,
        default=None,
        help="Metadata store file (default from BLOBDRIVE_STORE_PATH or ~/.local/share/blobdrive/files.json)",
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
    parser.add_argument("--version", action="version", version="blobdrive 0.1.0")

    sub = parser.add_subparsers(dest="command")

    quote = sub.add_parser("quote", help="Estimate the cost of storing SIZE bytes")
    quote.add_argument("size", type=_parse_size, help="Size in bytes, or with unit (3MB, 1.5GB)")
    quote.add_argument("-e", "--epochs", type=_positive_int, default=None, help="Storage epochs")

    upload = sub.add_parser("upload", help="Upload one or more files")
    upload.add_argument("files", nargs="+", type=Path, help="Files to upload, in order")
    upload.add_argument("-e", "--epochs", type=_positive_int, default=None, help="Storage epochs")
    upload.add_argument("-y", "--yes", action="store_true", help="Accept the recommended tier without asking")
    upload.add_argument("--caller", default=None, help="Authorized caller address for direct writes")

    listing = sub.add_parser("list", help="List files")
    listing.add_argument("--view", choices=list(VIEWS), default="active", help="Which files to show")

    for name, help_text in (
        ("star", "Toggle the star on a file"),
        ("trash", "Move a file to trash"),
        ("restore", "Restore a file from trash"),
        ("delete", "Permanently delete a file"),
    ):
        command = sub.add_parser(name, help=help_text)
        command.add_argument("id", help="File record id")

    get = sub.add_parser("get", help="Download a file by record id")
    get.add_argument("id", help="File record id")
    get.add_argument("-o", "--output", type=Path, default=None, help="Where to write the bytes (default: the file name in the current directory)")

    return parser


def run_cli(argv: Optional[Sequence[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    used_env_file = args.env_file or _default_env_file()
    if used_env_file is not None:
        try:
            _load_env_file(Path(used_env_file))
        except CLIError as exc:
            print(f"ERROR: {exc}", file=sys.stderr)
            return 1

    effective_log_mode = _setup_logging(
        debug=args.debug,
        silent=args.silent,
        log_level=args.log_level,
    )

    if args.command is None:
        parser.print_help()
        return 0

    try:
        config = DriveConfig.from_env()
    except ValueError as exc:
        print(f"ERROR: invalid configuration: {exc}", file=sys.stderr)
        return 1
    if args.store is not None:
        config = replace(config, store_path=Path(args.store).expanduser())

    if args.command in {"upload", "quote"} and not args.silent:
        render_configuration_summary(
            {
                "Command": args.command,
                "Store": str(config.store_path),
                "Publisher": config.publisher_url,
                "Relay": config.relay_url if config.enable_relay else "(disabled)",
                "Epochs": getattr(args, "epochs", None) or config.default_epochs,
                "Env File": str(used_env_file) if used_env_file else "-",
                "Logging": effective_log_mode,
            }
        )

    try:
        return asyncio.run(_run(args, config))
    except (CLIError, BlobDriveError) as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("Cancelled.", file=sys.stderr)
        return 130


def main() -> None:
    raise SystemExit(run_cli())


if __name__ == "__main__":
    main()
