"""Helpers for stores that keep by-author and by-key indexes of records."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Optional, Union

from .query import AuthorFilter, FlatQuery, KeyFilter, Query, SortBy


class IndexKind:
    """Which index a query is answered from."""

    @classmethod
    def from_query(cls, query: Query) -> Union[AuthorKeyIndex, KeyAuthorIndex]:
        """Choose the index for ``query``."""
        if isinstance(query.kind, FlatQuery):
            if query.filter_author.is_any and query.kind.sort_by is SortBy.KEY_AUTHOR:
                return KeyAuthorIndex(
                    range=query.filter_key,
                    author_filter=AuthorFilter.any(),
                    latest_per_key=False,
                )
            return AuthorKeyIndex(
                range=query.filter_author, key_filter=query.filter_key
            )
        return KeyAuthorIndex(
            range=query.filter_key,
            author_filter=query.filter_author,
            latest_per_key=True,
        )


@dataclass(frozen=True)
class AuthorKeyIndex(IndexKind):
    """Scan the records sorted by author, then key."""

    range: AuthorFilter
    key_filter: KeyFilter


@dataclass(frozen=True)
class KeyAuthorIndex(IndexKind):
    """Scan the records sorted by key, then author."""

    range: KeyFilter
    author_filter: AuthorFilter
    latest_per_key: bool


class Selection(enum.Enum):
    """Outcomes of :meth:`LatestPerKeySelector.push` that carry no entry."""

    FINISHED = "finished"
    CONTINUE = "continue"


class LatestPerKeySelector:
    """Picks the latest entry of each key from entries pushed in key order.

    Entries need ``key`` and ``timestamp`` attributes.
    """

    def __init__(self) -> None:
        self._held: Optional[Any] = None

    def push(self, entry: Optional[Any]) -> Union[Selection, Any]:
        """Push the next entry, or None once the input is exhausted.

        Returns a selected entry, ``Selection.CONTINUE`` if more entries are
        needed, or ``Selection.FINISHED`` when nothing is left.
        """
        last = self._held
        if entry is None:
            self._held = None
            return Selection.FINISHED if last is None else last
        if last is None:
            self._held = entry
            return Selection.CONTINUE
        if last.key == entry.key:
            if entry.timestamp > last.timestamp:
                self._held = entry
            return Selection.CONTINUE
        self._held = entry
        return last