"""
Noise filtering — system and temporary artifacts excluded from scan results.
"""

from __future__ import annotations

from typing import Callable, Iterable

from ..config import DEFAULT_NOISE_NAMES, DEFAULT_NOISE_PREFIXES, DEFAULT_NOISE_SUFFIXES
from .models import Item

NoisePredicate = Callable[[Item], bool]


def make_noise_filter(
    prefixes: Iterable[str] = DEFAULT_NOISE_PREFIXES,
    names: Iterable[str] = DEFAULT_NOISE_NAMES,
    suffixes: Iterable[str] = DEFAULT_NOISE_SUFFIXES,
) -> NoisePredicate:
    """
    Build a noise predicate. Prefixes are matched as-is (``~`` also covers
    Office ``~$`` lock files); names and suffixes are case-insensitive.
    """
    prefixes = tuple(p for p in prefixes if p)
    names = frozenset(n.lower() for n in names)
    suffixes = tuple(s.lower() for s in suffixes if s)

    def is_noise(item: Item) -> bool:
        name = item.name
        if prefixes and name.startswith(prefixes):
            return True
        lowered = name.lower()
        if lowered in names:
            return True
        return bool(suffixes) and lowered.endswith(suffixes)

    return is_noise


is_noise = make_noise_filter()


def never_noise(item: Item) -> bool:
    return False
