"""An in-memory entry store that takes part in set reconciliation."""

from __future__ import annotations

from typing import Any, Callable, Iterator, Optional

from .ranger import Fingerprint, Range, RangeEntry
from .reconcile import RangeStore

PrefixTest = Callable[[Any, Any], bool]


def _starts_with(prefix: Any, key: Any) -> bool:
    return key.startswith(prefix)


class MemoryStore(RangeStore):
    """Keeps entries in a dictionary, one per key, iterated in key order.

    ``default_key`` is returned by :meth:`get_first` when the store is empty.
    ``is_prefix(prefix, key)`` decides whether ``prefix`` is a prefix of
    ``key``; by default it is ``key.startswith(prefix)``.
    """

    def __init__(
        self, default_key: Any = "", is_prefix: Optional[PrefixTest] = None
    ) -> None:
        self._entries: dict[Any, RangeEntry] = {}
        self._default_key = default_key
        self._is_prefix: PrefixTest = is_prefix or _starts_with

    def _ordered(self) -> list[RangeEntry]:
        return [self._entries[key] for key in sorted(self._entries)]

    def get_first(self) -> Any:
        """The smallest key, or the default key if the store is empty."""
        if not self._entries:
            return self._default_key
        return min(self._entries)

    def get(self, key: Any) -> RangeEntry | None:
        """The entry stored under ``key``, if any."""
        return self._entries.get(key)

    def __len__(self) -> int:
        return len(self._entries)

    def get_fingerprint(self, range: Range) -> Fingerprint:
        fingerprint = Fingerprint.empty()
        for entry in self.get_range(range):
            fingerprint = fingerprint ^ entry.as_fingerprint()
        return fingerprint

    def entry_put(self, entry: RangeEntry) -> None:
        self._entries[entry.key] = entry

    def get_range(self, range: Range) -> Iterator[RangeEntry]:
        return (entry for entry in self._ordered() if range.contains(entry.key))

    def all(self) -> Iterator[RangeEntry]:
        """Every entry, in key order."""
        return iter(self._ordered())

    def entry_remove(self, key: Any) -> RangeEntry | None:
        """Remove and return the entry under ``key``, without prefix deletion."""
        return self._entries.pop(key, None)

    def prefixes_of(self, key: Any) -> list[RangeEntry]:
        return [entry for entry in self._ordered() if self._is_prefix(entry.key, key)]

    def prefixed_by(self, prefix: Any) -> Iterator[RangeEntry]:
        """Entries whose key starts with ``prefix``, in key order."""
        return (
            entry for entry in self._ordered() if self._is_prefix(prefix, entry.key)
        )

    def remove_prefix_filtered(
        self, prefix: Any, predicate: Callable[[Any], bool]
    ) -> int:
        doomed = [
            key
            for key, entry in self._entries.items()
            if self._is_prefix(prefix, key) and predicate(entry.value)
        ]
        for key in doomed:
            del self._entries[key]
        return len(doomed)