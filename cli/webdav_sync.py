"""CLI for syncing prompts and categories with a WebDAV server."""

from __future__ import annotations

import argparse
import asyncio
import getpass
import logging
import sys
from typing import TYPE_CHECKING
from urllib.parse import urlparse

from pydantic import ValidationError

from promptsync.config import Settings
from promptsync.exceptions import SyncError
from promptsync.schemas.sync import DEFAULT_SYNC_PATH, MergeMode, SyncDirection, WebDAVCredentials
from promptsync.services.datetime_service import format_millis
from promptsync.services.sync_service import SyncService
from promptsync.storage import JsonFileStore, StorageScopes
from promptsync.storage.keys import status_key
from promptsync.webdav.client import WebDAVClient

if TYPE_CHECKING:
    from promptsync.schemas.sync import SyncStatus

logger = logging.getLogger(__name__)

_LOCALHOST_HOSTS = {"localhost", "127.0.0.1", "::1"}


def validate_server_url(server_url: str, allow_insecure_http: bool = False) -> str:
    """Validate server URL and enforce HTTPS for non-localhost hosts by default.

    Basic auth sends the password with every request, so plain HTTP is only
    accepted for localhost unless explicitly allowed.
    """
    normalized = server_url.strip().rstrip("/")
    parsed = urlparse(normalized)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise ValueError("Server URL must include scheme and host (e.g. https://dav.example.com)")

    hostname = parsed.hostname
    if parsed.scheme == "http" and not allow_insecure_http and hostname not in _LOCALHOST_HOSTS:
        raise ValueError(
            "HTTPS is required for non-localhost servers. "
            "Use --allow-insecure-http only on trusted networks."
        )

    return normalized


def _configure_logging(debug: bool) -> None:
    """Configure CLI logging."""
    level = logging.DEBUG if debug else logging.WARNING
    fmt = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
    logging.basicConfig(
        level=level,
        format=fmt,
        stream=sys.stderr,
        force=True,
    )
    # Quiet noisy libraries
    logging.getLogger("httpx").setLevel(logging.INFO if debug else logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def build_service(settings: Settings) -> SyncService:
    """Create a sync service backed by the JSON stores under ``settings.data_dir``."""
    scopes = StorageScopes(
        settings=JsonFileStore(settings.settings_store_path),
        local=JsonFileStore(settings.local_store_path),
    )
    return SyncService(
        scopes=scopes,
        client=WebDAVClient.from_settings(settings),
        settings=settings,
    )


def _format_status(label: str, status: SyncStatus | None) -> str:
    if status is None:
        return f"  {label:<6} no sync recorded"
    line = f"  {label:<6} {status.status:<12} {status.id}"
    if status.completed_time is not None:
        line += f"  finished {format_millis(status.completed_time)}"
    elif status.start_time is not None:
        line += f"  started {format_millis(status.start_time)}"
    if status.error:
        line += f"\n         {status.error}"
    elif status.message:
        line += f"\n         {status.message}"
    return line


async def _init(service: SyncService, args: argparse.Namespace) -> None:
    server_url = validate_server_url(args.server, args.allow_insecure_http)
    password = args.password if args.password is not None else getpass.getpass("Password: ")
    credentials = WebDAVCredentials(
        server_url=server_url,
        username=args.username,
        password=password,
        sync_path=args.sync_path,
    )
    await service.save_settings(credentials)
    print(f"Connection successful. Settings saved (sync file: {credentials.document_url})")


async def _status(service: SyncService, watch: bool) -> None:
    for direction in (SyncDirection.PUSH, SyncDirection.PULL):
        status = await service.state.read(direction)
        if watch and status is not None and not status.status.is_terminal:
            print(f"Waiting for {direction} sync {status.id}...")
            key = status_key(direction)
            service.poller.watch(status.id, key, lambda _record: None)
            await service.poller.wait(key)
            status = await service.state.read(direction)
        print(_format_status(str(direction), status))


async def _run(args: argparse.Namespace, settings: Settings) -> None:
    async with build_service(settings) as service:
        if args.command == "init":
            await _init(service, args)

        elif args.command == "test":
            await service.verify_connection()
            print("Connection successful.")

        elif args.command == "push":
            result = await service.push()
            print(
                f"Sync complete. Uploaded {result.prompt_count} prompt(s) "
                f"and {result.category_count} categories."
            )

        elif args.command == "pull":
            result = await service.pull(args.mode)
            if result.mode is MergeMode.APPEND:
                print(
                    f"Sync complete. Added {result.added_prompts} prompt(s) "
                    f"and {result.added_categories} categories."
                )
            else:
                print(
                    f"Sync complete. Replaced local data with {result.prompt_count} prompt(s) "
                    f"and {result.category_count} categories."
                )
            if result.remote_exported_at is not None:
                print(f"Remote data exported at {result.remote_exported_at.isoformat()}")

        elif args.command == "status":
            print("Sync Status:")
            await _status(service, args.watch)

        elif args.command == "auto-sync":
            enabled = args.state == "on"
            await service.set_auto_sync_enabled(enabled)
            print(f"Auto-sync {'enabled' if enabled else 'disabled'}.")

        elif args.command == "clear":
            removed = await service.state.clear_transient()
            print(f"Removed {removed} status record(s) and message(s).")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="promptsync-webdav",
        description="Sync prompts and categories with a WebDAV server",
    )
    parser.add_argument("--data-dir", "-d", help="Directory holding the local stores")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command")

    init_parser = subparsers.add_parser("init", help="Test and save WebDAV settings")
    init_parser.add_argument("--server", "-s", required=True, help="WebDAV server URL")
    init_parser.add_argument("--username", "-u", required=True, help="WebDAV username")
    init_parser.add_argument("--password", "-p", help="WebDAV password (prompted when omitted)")
    init_parser.add_argument(
        "--sync-path",
        default=DEFAULT_SYNC_PATH,
        help=f"Path of the sync file on the server (default: {DEFAULT_SYNC_PATH})",
    )
    init_parser.add_argument(
        "--allow-insecure-http",
        action="store_true",
        help="Allow http:// server URLs for non-localhost hosts",
    )

    subparsers.add_parser("test", help="Test the saved connection")
    subparsers.add_parser("push", help="Upload local data, replacing the remote file")

    pull_parser = subparsers.add_parser("pull", help="Download remote data")
    pull_parser.add_argument(
        "--mode",
        "-m",
        choices=[mode.value for mode in MergeMode],
        default=MergeMode.REPLACE.value,
        help="replace: overwrite local data; append: add remote entries with new ids",
    )

    status_parser = subparsers.add_parser("status", help="Show the last sync in each direction")
    status_parser.add_argument(
        "--watch", action="store_true", help="Wait for in-progress syncs to finish"
    )

    auto_parser = subparsers.add_parser("auto-sync", help="Turn the auto-sync flag on or off")
    auto_parser.add_argument("state", choices=["on", "off"])

    subparsers.add_parser("clear", help="Remove status records and pending messages")
    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help()
        return

    overrides: dict[str, object] = {}
    if args.data_dir:
        overrides["data_dir"] = args.data_dir
    if args.debug:
        overrides["debug"] = True
    try:
        settings = Settings(**overrides)
        settings.validate_storage_keys()
    except (ValidationError, ValueError) as exc:
        print(f"Error: invalid configuration: {exc}")
        sys.exit(1)

    _configure_logging(settings.debug)

    try:
        asyncio.run(_run(args, settings))
    except (SyncError, ValueError) as exc:
        logger.debug("Command %s failed", args.command, exc_info=True)
        print(f"Error: {exc}")
        sys.exit(1)


if __name__ == "__main__":
    main()
