"""Queries over document entries and the builders that make them."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Optional, Union


def _to_bytes(value: Any) -> bytes:
    if isinstance(value, str):
        return value.encode("utf-8")
    return bytes(value)


class SortDirection(enum.Enum):
    """Sort direction."""

    ASC = "asc"
    DESC = "desc"


class SortBy(enum.Enum):
    """Fields by which a query can be sorted."""

    KEY_AUTHOR = "key_author"
    AUTHOR_KEY = "author_key"


class KeyMatch(enum.Enum):
    """How a key filter compares keys."""

    ANY = "any"
    EXACT = "exact"
    PREFIX = "prefix"


@dataclass(frozen=True)
class KeyFilter:
    """Key matching."""

    kind: KeyMatch = KeyMatch.ANY
    value: bytes = b""

    def __post_init__(self) -> None:
        object.__setattr__(self, "value", _to_bytes(self.value))

    @classmethod
    def any(cls) -> KeyFilter:
        """Matches every key."""
        return cls()

    @classmethod
    def exact(cls, key: Any) -> KeyFilter:
        """Matches only ``key``."""
        return cls(KeyMatch.EXACT, _to_bytes(key))

    @classmethod
    def prefix(cls, key: Any) -> KeyFilter:
        """Matches keys that start with ``key``."""
        return cls(KeyMatch.PREFIX, _to_bytes(key))

    def matches(self, key: Any) -> bool:
        """True if ``key`` is matched by this filter."""
        if self.kind is KeyMatch.ANY:
            return True
        key = _to_bytes(key)
        if self.kind is KeyMatch.EXACT:
            return key == self.value
        return key.startswith(self.value)


@dataclass(frozen=True)
class AuthorFilter:
    """Author matching; an author of None matches any author."""

    author: Any = None

    @classmethod
    def any(cls) -> AuthorFilter:
        """Matches every author."""
        return cls()

    @classmethod
    def exact(cls, author: Any) -> AuthorFilter:
        """Matches only ``author``."""
        if author is None:
            raise ValueError("author must not be None")
        return cls(author)

    @property
    def is_any(self) -> bool:
        return self.author is None

    def matches(self, author: Any) -> bool:
        """True if ``author`` is matched by this filter."""
        return self.author is None or self.author == author


@dataclass(frozen=True)
class FlatQuery:
    """Query on all entries without aggregation."""

    sort_by: SortBy = SortBy.AUTHOR_KEY


@dataclass(frozen=True)
class SingleLatestPerKeyQuery:
    """Query returning only the latest entry of each key across authors."""


QueryKind = Union[FlatQuery, SingleLatestPerKeyQuery]


@dataclass(frozen=True)
class Query:
    """A query on the entries of a document.

    For single-latest-per-key queries the key filter applies before grouping
    and the author filter after it.
    """

    kind: QueryKind = field(default_factory=FlatQuery)
    filter_author: AuthorFilter = field(default_factory=AuthorFilter)
    filter_key: KeyFilter = field(default_factory=KeyFilter)
    limit: Optional[int] = None
    offset: int = 0
    include_empty: bool = False
    sort_direction: SortDirection = SortDirection.ASC

    @classmethod
    def all(cls) -> QueryBuilder:
        """A builder for a query on all entries."""
        return QueryBuilder(FlatQuery())

    @classmethod
    def single_latest_per_key(cls) -> QueryBuilder:
        """A builder for a query on the latest entry of each key."""
        return QueryBuilder(SingleLatestPerKeyQuery())

    @classmethod
    def for_author(cls, author: Any) -> QueryBuilder:
        """A query on all entries, filtered by one author."""
        return cls.all().author(author)

    @classmethod
    def for_key_exact(cls, key: Any) -> QueryBuilder:
        """A query on all entries, filtered by one key."""
        return cls.all().key_exact(key)

    @classmethod
    def for_key_prefix(cls, prefix: Any) -> QueryBuilder:
        """A query on all entries, filtered by a key prefix."""
        return cls.all().key_prefix(prefix)


class QueryBuilder:
    """Builds a :class:`Query`; every method returns a new builder."""

    __slots__ = (
        "_kind",
        "_filter_author",
        "_filter_key",
        "_limit",
        "_offset",
        "_include_empty",
        "_sort_direction",
    )

    def __init__(self, kind: Optional[QueryKind] = None) -> None:
        self._kind: QueryKind = kind if kind is not None else FlatQuery()
        self._filter_author = AuthorFilter()
        self._filter_key = KeyFilter()
        self._limit: Optional[int] = None
        self._offset = 0
        self._include_empty = False
        self._sort_direction = SortDirection.ASC

    def _with(self, **changes: Any) -> QueryBuilder:
        clone = QueryBuilder.__new__(QueryBuilder)
        for name in self.__slots__:
            setattr(clone, name, changes.get(name[1:], getattr(self, name)))
        return clone

    def include_empty(self) -> QueryBuilder:
        """Include empty entries (deletion markers)."""
        return self._with(include_empty=True)

    def key_exact(self, key: Any) -> QueryBuilder:
        """Filter by exact key."""
        return self._with(filter_key=KeyFilter.exact(key))

    def key_prefix(self, key: Any) -> QueryBuilder:
        """Filter by key prefix."""
        return self._with(filter_key=KeyFilter.prefix(key))

    def author(self, author: Any) -> QueryBuilder:
        """Filter by author."""
        return self._with(filter_author=AuthorFilter.exact(author))

    def limit(self, limit: int) -> QueryBuilder:
        """Set the maximum number of entries returned."""
        if limit < 0:
            raise ValueError("limit must not be negative")
        return self._with(limit=limit)

    def offset(self, offset: int) -> QueryBuilder:
        """Set the number of entries skipped at the start."""
        if offset < 0:
            raise ValueError("offset must not be negative")
        return self._with(offset=offset)

    def sort_by(self, sort_by: SortBy, direction: SortDirection) -> QueryBuilder:
        """Set the sort of a flat query."""
        if not isinstance(self._kind, FlatQuery):
            raise TypeError("sort_by is only available for flat queries")
        return self._with(kind=FlatQuery(sort_by), sort_direction=direction)

    def sort_direction(self, direction: SortDirection) -> QueryBuilder:
        """Set the direction of a single-latest-per-key query, always sorted by key."""
        if not isinstance(self._kind, SingleLatestPerKeyQuery):
            raise TypeError(
                "sort_direction is only available for single-latest-per-key queries"
            )
        return self._with(sort_direction=direction)

    def build(self) -> Query:
        """Build the query."""
        return Query(
            kind=self._kind,
            filter_author=self._filter_author,
            filter_key=self._filter_key,
            limit=self._limit,
            offset=self._offset,
            include_empty=self._include_empty,
            sort_direction=self._sort_direction,
        )