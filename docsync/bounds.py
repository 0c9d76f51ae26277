"""Key bounds on the records table and its by-key index.

Record ids are ``(namespace, author, key)`` tuples and by-key ids are
``(namespace, key, author)`` tuples of bytes; both sort element-wise.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Optional

from .query import KeyFilter, KeyMatch

_ZERO = bytes(32)
_FULL = b"\xff" * 32


def _id_bytes(value: Any) -> bytes:
    data = bytes(value)
    if len(data) != 32:
        raise ValueError(f"identifier must be 32 bytes, got {len(data)}")
    return data


def increment_by_one(value: bytes) -> Optional[bytes]:
    """Increment a byte string by one, carrying from the last byte.

    Returns None if every byte is 255 (nothing is larger of the same length).
    """
    data = bytearray(value)
    for pos in reversed(range(len(data))):
        if data[pos] != 255:
            data[pos] += 1
            return bytes(data)
        data[pos] = 0
    return None


class BoundKind(enum.Enum):
    """Whether a bound includes its value, excludes it, or is absent."""

    INCLUDED = "included"
    EXCLUDED = "excluded"
    UNBOUNDED = "unbounded"


@dataclass(frozen=True)
class Bound:
    """One end of a key range."""

    kind: BoundKind
    value: Any = None

    @classmethod
    def included(cls, value: Any) -> Bound:
        return cls(BoundKind.INCLUDED, value)

    @classmethod
    def excluded(cls, value: Any) -> Bound:
        return cls(BoundKind.EXCLUDED, value)

    @classmethod
    def unbounded(cls) -> Bound:
        return cls(BoundKind.UNBOUNDED)

    def _admits_from_below(self, item: Any) -> bool:
        if self.kind is BoundKind.INCLUDED:
            return item >= self.value
        if self.kind is BoundKind.EXCLUDED:
            return item > self.value
        return True

    def _admits_from_above(self, item: Any) -> bool:
        if self.kind is BoundKind.INCLUDED:
            return item <= self.value
        if self.kind is BoundKind.EXCLUDED:
            return item < self.value
        return True


def _key_of(key_filter: KeyFilter) -> bytes:
    return b"" if key_filter.kind is KeyMatch.ANY else key_filter.value


@dataclass(frozen=True)
class RecordsBounds:
    """Bounds on the records table, keyed by ``(namespace, author, key)``."""

    start: Bound
    end: Bound

    @classmethod
    def author_key(
        cls, namespace: Any, author: Any, key_filter: KeyFilter
    ) -> RecordsBounds:
        """Records of one author in a namespace, narrowed by ``key_filter``."""
        ns = _id_bytes(namespace)
        author_bytes = _id_bytes(author)
        key = _key_of(key_filter)
        start = (ns, author_bytes, key)
        if key_filter.kind is KeyMatch.EXACT:
            return cls(Bound.included(start), Bound.included(start))
        key_end = increment_by_one(key)
        if key_end is not None:
            end = Bound.excluded((ns, author_bytes, key_end))
        else:
            author_end = increment_by_one(author_bytes)
            if author_end is not None:
                end = Bound.excluded((ns, author_end, b""))
            else:
                ns_end = increment_by_one(ns)
                if ns_end is not None:
                    end = Bound.excluded((ns_end, _ZERO, b""))
                else:
                    end = Bound.unbounded()
        return cls(Bound.included(start), end)

    @classmethod
    def author_prefix(cls, namespace: Any, author: Any, prefix: Any) -> RecordsBounds:
        """Records of one author whose key starts with ``prefix``."""
        return cls.author_key(namespace, author, KeyFilter.prefix(prefix))

    @classmethod
    def namespace(cls, namespace: Any) -> RecordsBounds:
        """All records of a namespace."""
        return cls(_namespace_start(namespace), _namespace_end(namespace))

    @classmethod
    def from_start(cls, namespace: Any, end: Bound) -> RecordsBounds:
        """From the start of the namespace up to ``end``."""
        return cls(_namespace_start(namespace), end)

    @classmethod
    def to_end(cls, namespace: Any, start: Bound) -> RecordsBounds:
        """From ``start`` to the end of the namespace."""
        return cls(start, _namespace_end(namespace))

    def contains(self, record_id: tuple) -> bool:
        """True if ``record_id`` lies within these bounds."""
        return self.start._admits_from_below(record_id) and self.end._admits_from_above(
            record_id
        )


def _namespace_start(namespace: Any) -> Bound:
    return Bound.included((_id_bytes(namespace), _ZERO, b""))


def _namespace_end(namespace: Any) -> Bound:
    ns_end = increment_by_one(_id_bytes(namespace))
    if ns_end is None:
        return Bound.unbounded()
    return Bound.excluded((ns_end, _ZERO, b""))


@dataclass(frozen=True)
class ByKeyBounds:
    """Bounds on the by-key index, keyed by ``(namespace, key, author)``."""

    start: Bound
    end: Bound

    @classmethod
    def for_filter(cls, namespace: Any, key_filter: KeyFilter) -> ByKeyBounds:
        """Index entries of a namespace matched by ``key_filter``."""
        ns = _id_bytes(namespace)
        if key_filter.kind is KeyMatch.ANY:
            return cls.namespace(ns)
        key = key_filter.value
        if key_filter.kind is KeyMatch.EXACT:
            return cls(Bound.included((ns, key, _ZERO)), Bound.included((ns, key, _FULL)))
        start = Bound.included((ns, key, _ZERO))
        key_end = increment_by_one(key)
        if key_end is not None:
            end = Bound.excluded((ns, key_end, _ZERO))
        else:
            ns_end = increment_by_one(ns)
            end = (
                Bound.excluded((ns_end, b"", _ZERO))
                if ns_end is not None
                else Bound.unbounded()
            )
        return cls(start, end)

    @classmethod
    def namespace(cls, namespace: Any) -> ByKeyBounds:
        """All index entries of a namespace."""
        ns = _id_bytes(namespace)
        start = Bound.included((ns, b"", _ZERO))
        ns_end = increment_by_one(ns)
        end = (
            Bound.excluded((ns_end, b"", _ZERO)) if ns_end is not None else Bound.unbounded()
        )
        return cls(start, end)

    def contains(self, record_id: tuple) -> bool:
        """True if the by-key id ``record_id`` lies within these bounds."""
        return self.start._admits_from_below(record_id) and self.end._admits_from_above(
            record_id
        )