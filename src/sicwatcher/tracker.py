"""Bounded record of file identities that have already been seen."""
from __future__ import annotations

from collections import OrderedDict
from typing import Hashable

DEFAULT_CAPACITY = 4096


class SeenSet:
    """Fixed-capacity set that evicts its oldest insertion when full."""

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        if capacity < 1:
            raise ValueError(f"capacity must be at least 1, got {capacity}")
        self._capacity = capacity
        self._entries: "OrderedDict[Hashable, None]" = OrderedDict()

    @property
    def capacity(self) -> int:
        return self._capacity

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, identity: Hashable) -> bool:
        return identity in self._entries

    def contains(self, identity: Hashable) -> bool:
        return identity in self._entries

    def insert(self, identity: Hashable) -> None:
        """Add ``identity``, evicting the oldest entry first if at capacity.

        Re-inserting a present identity is a no-op and keeps its original
        position in the eviction order.
        """

        if identity in self._entries:
            return
        if len(self._entries) >= self._capacity:
            self._entries.popitem(last=False)
        self._entries[identity] = None
