"""Shared fixtures: an in-memory drive tree and a scripted listing capability."""

from __future__ import annotations

import asyncio

import pytest

from m365_drive_scanner.scanner.models import Item, ListingOutcome


def folder(node_id: str, name: str | None = None) -> Item:
    return Item(id=node_id, name=name or node_id, is_folder=True)


def file(node_id: str, size: int, name: str | None = None) -> Item:
    return Item(id=node_id, name=name or node_id, size=size)


class FakeDrive:
    """
    Children keyed by node id. Nodes in ``fail`` return a failed outcome;
    nodes in ``raise_on`` raise instead. Every call is recorded.
    """

    def __init__(self, children: dict[str, list[Item]], fail=(), raise_on=(), delay: float = 0.0):
        self.children = children
        self.fail = set(fail)
        self.raise_on = set(raise_on)
        self.delay = delay
        self.calls: list[str] = []

    async def list_children(self, node_id: str) -> ListingOutcome:
        self.calls.append(node_id)
        if self.delay:
            await asyncio.sleep(self.delay)
        if node_id in self.raise_on:
            raise ConnectionError(f"connection reset listing {node_id}")
        if node_id in self.fail:
            return ListingOutcome.failure(f"503 listing {node_id}")
        return ListingOutcome.success(self.children.get(node_id, []))


@pytest.fixture
def sample_tree() -> dict[str, list[Item]]:
    """
    R
    ├── A/
    │   ├── f1 (1000)
    │   └── B/
    │       └── f3 (2000)
    └── f2 (500)
    """
    return {
        "R": [folder("A"), file("f2", 500)],
        "A": [file("f1", 1000), folder("B")],
        "B": [file("f3", 2000)],
    }


@pytest.fixture
def wide_tree() -> dict[str, list[Item]]:
    """Root with three sibling folders, each holding two files and a subfolder."""
    tree: dict[str, list[Item]] = {"R": [file("top", 7)]}
    for s in ("S1", "S2", "S3"):
        tree["R"].append(folder(s))
        tree[s] = [file(f"{s}-a", 10), file(f"{s}-b", 20), folder(f"{s}-sub", "sub")]
        tree[f"{s}-sub"] = [file(f"{s}-deep", 100)]
    return tree
