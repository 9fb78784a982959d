"""
Dependency resolution.

Walks the catalog from a root item and produces the ordered, deduplicated
list of items to fetch.
"""

from collections import deque
from typing import Iterator, List

from romfetch.catalog import Catalog
from romfetch.logger import get_logger


class FetchPlan:
    """
    FIFO of unique item identifiers.

    `missing` records identifiers that were requested but absent from the
    catalog; they are never part of the plan itself.
    """

    def __init__(self):
        self._queue = deque()
        self._seen = set()
        self._drained = False
        self.missing: List[str] = []

    def add(self, identifier: str) -> bool:
        """Append `identifier`; returns False if it was already seen."""
        if self._drained:
            raise RuntimeError("Cannot add to a drained fetch plan")
        if identifier in self._seen:
            return False
        self._seen.add(identifier)
        self._queue.append(identifier)
        return True

    def drain(self) -> Iterator[str]:
        """Yield and remove identifiers in insertion order."""
        self._drained = True
        while self._queue:
            yield self._queue.popleft()

    def __contains__(self, identifier) -> bool:
        return identifier in self._seen

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._queue))

    def __len__(self) -> int:
        return len(self._queue)

    def __bool__(self) -> bool:
        return bool(self._queue)

    def __repr__(self):
        return f"FetchPlan({list(self._queue)!r})"


def resolve(catalog: Catalog, root_id: str) -> FetchPlan:
    """
    Build the fetch plan for `root_id`.

    Depth-first, pre-order: an item comes before its requirements, and
    requirements are visited in the order the catalog declares them.
    Identifiers missing from the catalog are logged and skipped.

    Example:
        >>> catalog = Catalog.from_dict({"a": {"require": ["b"]}, "b": {}})
        >>> list(resolve(catalog, "a"))
        ['a', 'b']
    """
    logger = get_logger()
    plan = FetchPlan()
    stack = [root_id]

    while stack:
        identifier = stack.pop()

        record = catalog.get(identifier)
        if record is None:
            logger.warning(f"Rom [{identifier}] not found for [{catalog.source}].")
            plan.missing.append(identifier)
            continue

        if not plan.add(identifier):
            continue

        logger.debug(f"Queued [{identifier}] (requires: {list(record.required)})")
        # Reversed so the first declared requirement is popped first
        stack.extend(reversed(record.required))

    return plan
