"""
Configuration module for the M365 drive scanner.
Defines tunable scan parameters, Graph API endpoints, and operational settings.
"""

from __future__ import annotations

import os
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional
from datetime import datetime, timezone


class ConfigError(Exception):
    """Raised when a configuration file or value is invalid."""
    pass


# ─── Graph API Settings ─────────────────────────────────────────────────────

GRAPH_BASE_URL = "https://graph.microsoft.com"
GRAPH_API_VERSION = "v1.0"

# Rate limiting / throttling
MAX_CONCURRENT_REQUESTS = 4       # Parallel requests to Graph
MAX_RETRIES = 5                   # Retry count for throttled requests
INITIAL_BACKOFF_SECONDS = 2.0     # First retry delay
MAX_BACKOFF_SECONDS = 120.0       # Cap on exponential backoff
BACKOFF_MULTIPLIER = 2.0          # Exponential factor

# Pagination
DEFAULT_PAGE_SIZE = 999           # Maximum items per page ($top)
MAX_PAGES_PER_ENDPOINT = 10000    # Safety cap on pagination loops

DEFAULT_TOKEN_ENV_VAR = "M365_ACCESS_TOKEN"

# Fields requested for every driveItem listing
DRIVE_ITEM_SELECT = "id,name,size,folder,file,package,parentReference,webUrl,lastModifiedDateTime"


# ─── Noise Defaults ─────────────────────────────────────────────────────────

DEFAULT_NOISE_PREFIXES = ("~", ".")
DEFAULT_NOISE_NAMES = (
    "thumbs.db",
    "ehthumbs.db",
    "desktop.ini",
    ".ds_store",
    "icon\r",
)
DEFAULT_NOISE_SUFFIXES = (".tmp",)


# ─── Scan Settings ──────────────────────────────────────────────────────────

@dataclass
class ScanConfig:
    """Controls for the drive traversal."""
    max_depth: int = 10                   # Folder levels below the root to expand
    workers: int = 1                      # 1 = serial; >1 = concurrent listing workers
    timeout_seconds: Optional[float] = None
    root_item: str = "root"               # driveItem id to start from
    root_path: str = "root"               # Logical path assigned to the root
    noise_prefixes: list[str] = field(default_factory=lambda: list(DEFAULT_NOISE_PREFIXES))
    noise_names: list[str] = field(default_factory=lambda: list(DEFAULT_NOISE_NAMES))
    noise_suffixes: list[str] = field(default_factory=lambda: list(DEFAULT_NOISE_SUFFIXES))
    rollup: bool = False                  # Also export ancestor-rolled folder totals

    def validate(self):
        for name in ("max_depth", "workers"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ConfigError(f"{name} must be an integer, got {value!r}")
        timeout = self.timeout_seconds
        if timeout is not None and (isinstance(timeout, bool) or not isinstance(timeout, (int, float))):
            raise ConfigError(f"timeout_seconds must be a number, got {timeout!r}")
        if self.max_depth < 0:
            raise ConfigError(f"max_depth must be >= 0, got {self.max_depth}")
        if self.workers < 1:
            raise ConfigError(f"workers must be >= 1, got {self.workers}")
        if self.timeout_seconds is not None and self.timeout_seconds <= 0:
            raise ConfigError(f"timeout_seconds must be positive, got {self.timeout_seconds}")


@dataclass
class TargetConfig:
    """Which drive to scan: either an explicit drive id or a site URL (+ library)."""
    drive_id: str = ""
    site_url: str = ""
    library: str = ""        # Document library display name; default drive if empty


# ─── Output Configuration ───────────────────────────────────────────────────

@dataclass
class OutputConfig:
    """Output directory settings."""
    base_dir: str = ""
    timestamp: str = ""

    def __post_init__(self):
        if not self.timestamp:
            self.timestamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
        if not self.base_dir:
            self.base_dir = os.path.join(
                os.getcwd(),
                f"m365_drive_scan_{self.timestamp}"
            )

    @property
    def scan_dir(self) -> Path:
        return Path(self.base_dir)

    def create_directories(self):
        self.scan_dir.mkdir(parents=True, exist_ok=True)


# ─── Master Configuration ───────────────────────────────────────────────────

@dataclass
class EngineConfig:
    """Top-level configuration for the scanner."""
    scan: ScanConfig = field(default_factory=ScanConfig)
    target: TargetConfig = field(default_factory=TargetConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    access_token: str = ""
    token_env_var: str = DEFAULT_TOKEN_ENV_VAR
    verbose: bool = False

    def resolve_access_token(self) -> str:
        """Explicit token first, then the configured environment variable."""
        if self.access_token:
            return self.access_token
        return os.environ.get(self.token_env_var, "")

    @classmethod
    def from_file(cls, path) -> "EngineConfig":
        """Load configuration from a JSON file."""
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigError(f"Invalid JSON in {path}: {e}")
        if not isinstance(data, dict):
            raise ConfigError(f"Top-level JSON value in {path} must be an object")

        config = cls()
        for section, target in (
            ("scan", config.scan),
            ("target", config.target),
            ("output", config.output),
        ):
            values = data.get(section, {})
            if not isinstance(values, dict):
                raise ConfigError(f"'{section}' in {path} must be an object")
            for k, v in values.items():
                if hasattr(target, k):
                    setattr(target, k, v)
        config.access_token = data.get("access_token", "")
        config.token_env_var = data.get("token_env_var", DEFAULT_TOKEN_ENV_VAR)
        config.verbose = data.get("verbose", False)
        config.scan.validate()
        return config


# ─── Required Graph API Permissions (Least Privilege, Read-Only) ─────────

REQUIRED_PERMISSIONS = {
    "Sites.Read.All": "Resolve sites and enumerate their document libraries",
    "Files.Read.All": "List driveItem children and read file sizes",
}
