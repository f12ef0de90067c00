"""
JSON exporter — Writes the scan result hand-off document.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from .. import __version__
from ..scanner.models import ScanResult, rollup_folder_sizes


def export_scan_json(
    result: ScanResult,
    output_dir: Path,
    scan_id: str,
    rollup: bool = False,
    target: Optional[dict] = None,
    audit: Optional[dict] = None,
    client_stats: Optional[dict] = None,
) -> Path:
    """
    Write the full scan result to a JSON file.

    Returns:
        Path to the created JSON file.
    """
    output_dir.mkdir(parents=True, exist_ok=True)

    payload = {
        "metadata": {
            "engine": "M365 Drive Scanner",
            "version": __version__,
            "scan_id": scan_id,
            "generated_utc": datetime.now(timezone.utc).isoformat(),
            "mode": "READ-ONLY",
            "target": target or {},
        },
        "summary": _summarize(result),
        **result.to_dict(),
    }
    if rollup:
        payload["folder_sizes_rolled_up"] = rollup_folder_sizes(result.folder_sizes)
    if audit is not None:
        payload["safety_audit"] = audit
    if client_stats is not None:
        payload["graph_stats"] = client_stats

    filepath = output_dir / f"drive_scan_{scan_id}.json"
    with open(filepath, "w", encoding="utf-8") as fh:
        json.dump(payload, fh, indent=2, default=str, ensure_ascii=False)

    return filepath


def _summarize(result: ScanResult) -> dict:
    return {
        "file_count": len(result.files),
        "total_bytes": result.total_bytes,
        "folders_with_files": len(result.folder_sizes),
        "nodes_listed": result.nodes_listed,
        "failed_listings": len(result.failures),
        "truncated_folders": len(result.truncated_folders),
        "noise_skipped": result.noise_skipped,
        "complete": result.complete,
    }
