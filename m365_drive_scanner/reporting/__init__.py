"""Reporting package — scan result export."""

from .json_export import export_scan_json

__all__ = [
    "export_scan_json",
]
