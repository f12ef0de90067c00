"""
Scan data model — items, listing outcomes, and the aggregated scan result.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, asdict
from typing import Iterable, Optional, Sequence

logger = logging.getLogger("m365_drive_scanner.scanner")

PATH_SEPARATOR = "/"


@dataclass(frozen=True)
class Item:
    """One file or folder returned by a listing call."""
    id: str
    name: str
    is_folder: bool = False
    size: int = 0                       # bytes; always 0 for folders
    parent_path: str = ""
    web_url: Optional[str] = None
    last_modified: Optional[str] = None

    def __post_init__(self):
        if self.size < 0:
            raise ValueError(f"Item {self.id!r} has negative size {self.size}")
        if self.is_folder and self.size:
            object.__setattr__(self, "size", 0)

    @property
    def path(self) -> str:
        return join_path(self.parent_path, self.name)


@dataclass(frozen=True)
class ListingOutcome:
    """Result of listing one node: either items, or the reason it failed."""
    items: tuple = ()
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, items: Iterable[Item]) -> "ListingOutcome":
        return cls(items=tuple(items))

    @classmethod
    def failure(cls, reason: str) -> "ListingOutcome":
        return cls(error=reason or "unknown error")


@dataclass(frozen=True)
class ListingFailure:
    """A node whose subtree was skipped because its listing failed."""
    node_id: str
    path: str
    reason: str


@dataclass
class ScanResult:
    """
    Output of a single tree scan.

    folder_sizes maps a folder path to the bytes of the files directly inside
    it, so the values always sum to the total size of ``files``.
    """
    root_path: str = ""
    files: list[Item] = field(default_factory=list)
    folder_sizes: dict[str, int] = field(default_factory=dict)
    failures: list[ListingFailure] = field(default_factory=list)
    truncated_folders: list[str] = field(default_factory=list)
    noise_skipped: int = 0
    nodes_listed: int = 0
    cancelled: bool = False

    def add_file(self, item: Item):
        self.files.append(item)
        self.folder_sizes[item.parent_path] = (
            self.folder_sizes.get(item.parent_path, 0) + item.size
        )

    def record_failure(self, node_id: str, path: str, reason: str):
        self.failures.append(ListingFailure(node_id=node_id, path=path, reason=reason))
        logger.warning(f"Skipping subtree {path!r} (node {node_id}): {reason}")

    @property
    def total_bytes(self) -> int:
        return sum(f.size for f in self.files)

    @property
    def complete(self) -> bool:
        """True when nothing was skipped by failure or cancellation."""
        return not self.failures and not self.cancelled

    @classmethod
    def merge(cls, partials: Sequence["ScanResult"], root_path: str = "") -> "ScanResult":
        """Combine per-worker partial results: sizes summed by key, lists concatenated."""
        merged = cls(root_path=root_path)
        for part in partials:
            merged.files.extend(part.files)
            for path, size in part.folder_sizes.items():
                merged.folder_sizes[path] = merged.folder_sizes.get(path, 0) + size
            merged.failures.extend(part.failures)
            merged.truncated_folders.extend(part.truncated_folders)
            merged.noise_skipped += part.noise_skipped
            merged.nodes_listed += part.nodes_listed
            merged.cancelled = merged.cancelled or part.cancelled
        return merged

    def to_dict(self) -> dict:
        return {
            "root_path": self.root_path,
            "files": [asdict(f) for f in self.files],
            "folder_sizes": dict(self.folder_sizes),
            "failures": [asdict(f) for f in self.failures],
            "truncated_folders": list(self.truncated_folders),
            "noise_skipped": self.noise_skipped,
            "nodes_listed": self.nodes_listed,
            "cancelled": self.cancelled,
        }


def join_path(parent: str, name: str) -> str:
    if not parent:
        return name
    return f"{parent}{PATH_SEPARATOR}{name}"


def _ancestors(path: str) -> list[str]:
    parts = path.split(PATH_SEPARATOR)
    return [PATH_SEPARATOR.join(parts[:i]) for i in range(1, len(parts))]


def rollup_folder_sizes(folder_sizes: dict[str, int]) -> dict[str, int]:
    """
    Transitive folder totals from immediate-parent sizes.

    Every folder's direct size is added to each ancestor path (matched by
    whole path segments), so ``rolled[p]`` is the size of everything under p.
    """
    rolled: dict[str, int] = {}
    for path, size in folder_sizes.items():
        rolled[path] = rolled.get(path, 0) + size
        for ancestor in _ancestors(path):
            rolled[ancestor] = rolled.get(ancestor, 0) + size
    return rolled
