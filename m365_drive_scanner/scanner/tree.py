"""
Bounded-depth tree scanner.

Walks a folder hierarchy from a root node through a ``list_children``
capability, collecting every retained file and the bytes held directly by
each folder. Listing failures skip only the failed subtree; cancellation and
timeouts return whatever was gathered so far.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from dataclasses import replace
from typing import Any, Callable, Optional

from .models import Item, ListingOutcome, ScanResult, join_path
from .noise import NoisePredicate, is_noise as default_is_noise

logger = logging.getLogger("m365_drive_scanner.scanner")

# list_children(node_id) -> ListingOutcome | Sequence[Item], optionally awaitable
ListChildren = Callable[[str], Any]

# (node_id, logical path, depth)
WorkItem = tuple[str, str, int]


class TreeScanner:
    """
    Scans one tree per call to scan(); holds no state between scans.

    workers == 1 issues one listing call at a time. With workers > 1 an
    asyncio worker pool shares a queue of pending folders while each worker
    fills its own partial ScanResult; the partials are merged at the end.
    """

    def __init__(
        self,
        list_children: ListChildren,
        max_depth: int,
        is_noise: Optional[NoisePredicate] = None,
        workers: int = 1,
    ):
        if max_depth < 0:
            raise ValueError(f"max_depth must be >= 0, got {max_depth}")
        if workers < 1:
            raise ValueError(f"workers must be >= 1, got {workers}")
        self.list_children = list_children
        self.max_depth = max_depth
        self.is_noise = is_noise or default_is_noise
        self.workers = workers

    async def scan(
        self,
        root_id: str,
        root_path: str = "root",
        cancel_event: Optional[asyncio.Event] = None,
        timeout: Optional[float] = None,
    ) -> ScanResult:
        """
        Scan the tree under root_id.

        Once cancel_event is set or timeout seconds have passed, no further
        listing calls are made and the partial result is returned with
        ``cancelled`` set.
        """
        deadline = time.monotonic() + timeout if timeout is not None else None

        def should_stop() -> bool:
            if cancel_event is not None and cancel_event.is_set():
                return True
            return deadline is not None and time.monotonic() >= deadline

        started = time.monotonic()
        root = (root_id, root_path, 0)
        if self.workers == 1:
            result = await self._scan_serial(root, root_path, should_stop)
        else:
            result = await self._scan_parallel(root, root_path, should_stop)

        logger.info(
            f"Scan of {root_path!r} finished in {time.monotonic() - started:.2f}s — "
            f"{len(result.files)} files, {len(result.folder_sizes)} folders with files, "
            f"{len(result.failures)} failed listings"
            + (" (cancelled)" if result.cancelled else "")
        )
        return result

    async def _scan_serial(
        self,
        root: WorkItem,
        root_path: str,
        should_stop: Callable[[], bool],
    ) -> ScanResult:
        result = ScanResult(root_path=root_path)
        stack: list[WorkItem] = [root]
        while stack:
            if should_stop():
                result.cancelled = True
                logger.info(f"Scan stopped early; {len(stack)} folders not listed")
                break
            node = stack.pop()
            stack.extend(await self._expand(node, result))
        return result

    async def _scan_parallel(
        self,
        root: WorkItem,
        root_path: str,
        should_stop: Callable[[], bool],
    ) -> ScanResult:
        queue: asyncio.Queue = asyncio.Queue()
        queue.put_nowait(root)
        partials = [ScanResult(root_path=root_path) for _ in range(self.workers)]

        async def worker(partial: ScanResult):
            while True:
                node = await queue.get()
                try:
                    if should_stop():
                        partial.cancelled = True
                        continue
                    for child in await self._expand(node, partial):
                        queue.put_nowait(child)
                finally:
                    queue.task_done()

        tasks = [asyncio.create_task(worker(p)) for p in partials]
        joiner = asyncio.create_task(queue.join())
        try:
            await asyncio.wait([joiner, *tasks], return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (joiner, *tasks):
                task.cancel()
            outcomes = await asyncio.gather(joiner, *tasks, return_exceptions=True)

        # A worker only exits early on an unexpected error; surface it
        for outcome in outcomes:
            if isinstance(outcome, Exception):
                raise outcome

        return ScanResult.merge(partials, root_path=root_path)

    async def _expand(self, node: WorkItem, result: ScanResult) -> list[WorkItem]:
        """List one node into result and return the folders still to visit."""
        node_id, path, depth = node
        outcome = await self._list(node_id)
        result.nodes_listed += 1
        if not outcome.ok:
            result.record_failure(node_id, path, outcome.error)
            return []

        pending: list[WorkItem] = []
        for child in outcome.items:
            if self.is_noise(child):
                result.noise_skipped += 1
                continue
            if child.is_folder:
                folder_path = join_path(path, child.name)
                if depth < self.max_depth:
                    pending.append((child.id, folder_path, depth + 1))
                else:
                    result.truncated_folders.append(folder_path)
            else:
                result.add_file(replace(child, parent_path=path))
        logger.debug(f"Listed {path!r} at depth {depth}: {len(outcome.items)} children")
        return pending

    async def _list(self, node_id: str) -> ListingOutcome:
        """Call list_children and normalise whatever it returns or raises."""
        try:
            listed = self.list_children(node_id)
            if inspect.isawaitable(listed):
                listed = await listed
            if isinstance(listed, ListingOutcome):
                return listed
            # Lazy iterables may fail while being consumed
            return ListingOutcome.success(listed)
        except Exception as e:
            return ListingOutcome.failure(f"{type(e).__name__}: {e}")


def scan_tree(
    root_id: str,
    list_children: ListChildren,
    max_depth: int,
    is_noise: Optional[NoisePredicate] = None,
    root_path: str = "root",
    workers: int = 1,
    timeout: Optional[float] = None,
) -> ScanResult:
    """Synchronous convenience wrapper around TreeScanner.scan()."""
    scanner = TreeScanner(list_children, max_depth, is_noise=is_noise, workers=workers)
    return asyncio.run(scanner.scan(root_id, root_path=root_path, timeout=timeout))
