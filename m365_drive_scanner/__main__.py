"""
M365 Drive Scanner — Command-line entry point

Usage:
    python -m m365_drive_scanner --drive-id b!abc...                   # scan a drive by id
    python -m m365_drive_scanner --site-url https://contoso.sharepoint.com/sites/HR
    python -m m365_drive_scanner --site-url ... --library "Shared Documents" --max-depth 3
    python -m m365_drive_scanner --config scan.json --workers 8 --timeout 600 --rollup

The bearer token is read from --access-token, the config file, or the
M365_ACCESS_TOKEN environment variable. This tool never modifies the tenant.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import httpx

from . import __version__
from .config import EngineConfig, ConfigError
from .safety.guardian import SafetyGuardian, SafetyViolation
from .graph.client import GraphClient
from .graph.drives import DriveItemSource, DriveResolutionError, resolve_drive_id
from .scanner import TreeScanner, make_noise_filter
from .reporting import export_scan_json

logger = logging.getLogger("m365_drive_scanner")


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="m365_drive_scanner",
        description="Bounded-depth SharePoint / OneDrive storage scan (READ-ONLY)",
    )
    parser.add_argument(
        "--config", "-c",
        type=Path,
        help="Path to JSON configuration file",
    )
    parser.add_argument(
        "--access-token",
        type=str,
        default=None,
        help="Graph bearer token (default: $M365_ACCESS_TOKEN)",
    )

    target = parser.add_argument_group("target")
    target.add_argument("--drive-id", type=str, default=None, help="Graph drive id to scan")
    target.add_argument("--site-url", type=str, default=None, help="SharePoint site URL")
    target.add_argument(
        "--library",
        type=str,
        default=None,
        help="Document library name on --site-url (default: the site's default library)",
    )
    target.add_argument(
        "--root-item",
        type=str,
        default=None,
        help="driveItem id to start from (default: drive root)",
    )

    scan = parser.add_argument_group("scan")
    scan.add_argument("--max-depth", type=int, default=None, help="Folder levels to expand below the root")
    scan.add_argument("--workers", type=int, default=None, help="Concurrent listing workers (1 = serial)")
    scan.add_argument("--timeout", type=float, default=None, help="Stop issuing listings after N seconds")
    scan.add_argument(
        "--rollup",
        action="store_true",
        help="Also export folder totals rolled up to every ancestor",
    )

    parser.add_argument(
        "--output-dir", "-o",
        type=Path,
        default=None,
        help="Output directory for the scan export",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> EngineConfig:
    """Build configuration from an optional config file plus CLI overrides."""
    if args.config:
        if not args.config.exists():
            raise ConfigError(f"Config file not found: {args.config}")
        config = EngineConfig.from_file(args.config)
    else:
        config = EngineConfig()

    if args.access_token:
        config.access_token = args.access_token
    if args.drive_id:
        config.target.drive_id = args.drive_id
    if args.site_url:
        config.target.site_url = args.site_url
    if args.library:
        config.target.library = args.library
    if args.root_item:
        config.scan.root_item = args.root_item
    if args.max_depth is not None:
        config.scan.max_depth = args.max_depth
    if args.workers is not None:
        config.scan.workers = args.workers
    if args.timeout is not None:
        config.scan.timeout_seconds = args.timeout
    if args.rollup:
        config.scan.rollup = True
    if args.output_dir:
        config.output.base_dir = str(args.output_dir)
    if args.verbose:
        config.verbose = True

    config.scan.validate()
    if not config.target.drive_id and not config.target.site_url:
        raise ConfigError("No target given. Use --drive-id or --site-url (or a config file).")
    return config


def _install_interrupt(cancel_event: asyncio.Event):
    """Ctrl+C stops new listings and keeps the partial result."""
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, cancel_event.set)
    except (NotImplementedError, RuntimeError):
        logger.debug("Signal handlers unavailable; Ctrl+C will abort the scan")


async def run_scan(config: EngineConfig, scan_id: str, token: str) -> Path:
    """Resolve the drive, scan it and export the result. Returns the export path."""
    guardian = SafetyGuardian()
    scan_cfg = config.scan

    async with GraphClient(access_token=token, guardian=guardian,
                           max_concurrency=max(scan_cfg.workers, 1)) as client:
        drive_id = config.target.drive_id
        if not drive_id:
            print(f"\n🔎 Resolving drive for {config.target.site_url} ...")
            drive_id = await resolve_drive_id(client, config.target.site_url, config.target.library)
        print(f"📁 Drive:   {drive_id}")

        source = DriveItemSource(client, drive_id)
        scanner = TreeScanner(
            source.list_children,
            max_depth=scan_cfg.max_depth,
            is_noise=make_noise_filter(
                scan_cfg.noise_prefixes, scan_cfg.noise_names, scan_cfg.noise_suffixes
            ),
            workers=scan_cfg.workers,
        )

        cancel_event = asyncio.Event()
        _install_interrupt(cancel_event)
        print(f"\n  Scanning (max depth {scan_cfg.max_depth}, {scan_cfg.workers} worker(s))...\n")
        result = await scanner.scan(
            scan_cfg.root_item,
            root_path=scan_cfg.root_path,
            cancel_event=cancel_event,
            timeout=scan_cfg.timeout_seconds,
        )
        stats = client.get_stats()

    print(f"  ✅ Files:            {len(result.files)}")
    print(f"  ✅ Total bytes:      {result.total_bytes}")
    print(f"  ✅ Folders w/ files: {len(result.folder_sizes)}")
    if result.truncated_folders:
        print(f"  ⏭  Depth-truncated:  {len(result.truncated_folders)} folders")
    for failure in result.failures:
        print(f"  ⚠  Skipped {failure.path}: {failure.reason}")
    if result.cancelled:
        print("  ⚠  Scan stopped early — result is partial")

    config.output.create_directories()
    return export_scan_json(
        result,
        config.output.scan_dir,
        scan_id,
        rollup=scan_cfg.rollup,
        target={
            "drive_id": drive_id,
            "site_url": config.target.site_url,
            "library": config.target.library,
            "root_item": scan_cfg.root_item,
            "max_depth": scan_cfg.max_depth,
        },
        audit=guardian.get_audit_record(),
        client_stats=stats,
    )


async def main_async(argv: Optional[list[str]] = None) -> int:
    args = parse_args(argv)
    try:
        config = build_config(args)
    except ConfigError as e:
        print(f"\n❌ {e}")
        return 1

    logging.basicConfig(
        level=logging.DEBUG if config.verbose else logging.INFO,
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
    )

    token = config.resolve_access_token()
    if not token:
        print(f"\n❌ No access token. Pass --access-token or set ${config.token_env_var}.")
        return 1

    scan_id = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S") + "_" + uuid.uuid4().hex[:8]
    print("=" * 70)
    print(f" M365 Drive Scanner v{__version__}")
    print(" Mode: READ-ONLY — No tenant modifications will be made")
    print("=" * 70)
    print(f"\n📋 Scan ID: {scan_id}")
    print(f"📂 Output:  {config.output.scan_dir.resolve()}")

    try:
        path = await run_scan(config, scan_id, token)
    except (DriveResolutionError, SafetyViolation, httpx.HTTPError) as e:
        print(f"\n❌ {e}")
        return 1

    print(f"\n  📄 JSON: {path}\n")
    return 0


def main():
    """Synchronous entry point for `python -m m365_drive_scanner`."""
    sys.exit(asyncio.run(main_async()))


if __name__ == "__main__":
    main()
