"""Scanner package — bounded-depth tree traversal and aggregation."""

from .models import Item, ListingFailure, ListingOutcome, ScanResult, rollup_folder_sizes
from .noise import is_noise, make_noise_filter, never_noise
from .tree import TreeScanner, scan_tree

__all__ = [
    "Item",
    "ListingFailure",
    "ListingOutcome",
    "ScanResult",
    "rollup_folder_sizes",
    "is_noise",
    "make_noise_filter",
    "never_noise",
    "TreeScanner",
    "scan_tree",
]
