"""Bounded cache for language-model classification replies."""

from __future__ import annotations

from collections import OrderedDict
from typing import Generic, Optional, TypeVar

V = TypeVar("V")

DEFAULT_CAPACITY = 100


class ClassificationCache(Generic[V]):
    """First-in first-out cache keyed by normalised description text.

    Reads do not refresh an entry; once ``capacity`` is reached the oldest
    insertion is evicted.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self._capacity = capacity
        self._entries: "OrderedDict[str, V]" = OrderedDict()

    @staticmethod
    def normalise(text: str) -> str:
        return " ".join(text.casefold().split())

    @property
    def capacity(self) -> int:
        return self._capacity

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, text: object) -> bool:
        return isinstance(text, str) and self.normalise(text) in self._entries

    def get(self, text: str) -> Optional[V]:
        return self._entries.get(self.normalise(text))

    def put(self, text: str, value: V) -> None:
        key = self.normalise(text)
        if key in self._entries:
            self._entries[key] = value
            return
        while len(self._entries) >= self._capacity:
            self._entries.popitem(last=False)
        self._entries[key] = value

    def clear(self) -> None:
        self._entries.clear()
