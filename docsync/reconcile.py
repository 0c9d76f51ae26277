"""Range-based set reconciliation over an abstract entry store."""

from __future__ import annotations

import asyncio
import inspect
import logging
from abc import ABC, abstractmethod
from itertools import islice
from typing import Any, Awaitable, Callable, Iterable, Iterator, Union

from .ranger import (
    ContentStatus,
    Fingerprint,
    InsertOutcome,
    Message,
    Range,
    RangeEntry,
    RangeFingerprint,
    RangeItem,
    SyncConfig,
)

logger = logging.getLogger(__name__)

ValidateCallback = Callable[["RangeStore", Any, ContentStatus], bool]
InsertCallback = Callable[["RangeStore", Any, ContentStatus], None]
ContentStatusCallback = Callable[
    [Any], Union[ContentStatus, Awaitable[ContentStatus]]
]


async def _attach_status(
    entries: Iterable[RangeEntry], content_status_cb: ContentStatusCallback
) -> list[tuple[RangeEntry, ContentStatus]]:
    """Pair each entry with its content status, keeping the entry order."""

    async def one(entry: RangeEntry) -> tuple[RangeEntry, ContentStatus]:
        status = content_status_cb(entry)
        if inspect.isawaitable(status):
            status = await status
        return entry, status

    return list(await asyncio.gather(*(one(entry) for entry in entries)))


class RangeStore(ABC):
    """A store of entries that can take part in set reconciliation."""

    @abstractmethod
    def get_first(self) -> Any:
        """The first key in the store, or a default key if it is empty."""

    @abstractmethod
    def get_fingerprint(self, range: Range) -> Fingerprint:
        """Fingerprint of all entries within ``range``."""

    @abstractmethod
    def entry_put(self, entry: RangeEntry) -> None:
        """Store ``entry``, replacing one with the same key, without prefix deletion."""

    @abstractmethod
    def get_range(self, range: Range) -> Iterator[RangeEntry]:
        """All entries within ``range``, in key order."""

    def get_range_len(self, range: Range) -> int:
        """Number of entries within ``range``."""
        return sum(1 for _ in self.get_range(range))

    @abstractmethod
    def prefixes_of(self, key: Any) -> Iterable[RangeEntry]:
        """Entries whose key is a prefix of ``key``, including ``key`` itself."""

    @abstractmethod
    def remove_prefix_filtered(
        self, prefix: Any, predicate: Callable[[Any], bool]
    ) -> int:
        """Remove entries whose key starts with ``prefix`` and whose value matches.

        Returns the number of entries removed.
        """

    def initial_message(self) -> Message:
        """The message that opens a reconciliation."""
        first = self.get_first()
        whole = Range(first, first)
        return Message([RangeFingerprint(whole, self.get_fingerprint(whole))])

    def put(self, entry: RangeEntry) -> InsertOutcome:
        """Insert ``entry`` if it is newer than every entry on its key or a prefix of it.

        Entries whose key has ``entry``'s key as a prefix and whose value is not
        greater are removed.
        """
        for parent in self.prefixes_of(entry.key):
            if entry.value <= parent.value:
                return InsertOutcome(inserted=False)
        removed = self.remove_prefix_filtered(
            entry.key, lambda value: entry.value >= value
        )
        self.entry_put(entry)
        return InsertOutcome(inserted=True, removed=removed)

    async def process_message(
        self,
        config: SyncConfig,
        message: Message,
        validate_cb: ValidateCallback,
        on_insert_cb: InsertCallback,
        content_status_cb: ContentStatusCallback,
    ) -> Message | None:
        """Process an incoming message and return the reply, or None when done.

        ``validate_cb`` decides whether a received entry is stored,
        ``on_insert_cb`` is told of every entry actually inserted, and
        ``content_status_cb`` gives the status sent along with outgoing entries.
        """
        out: list[RangeFingerprint | RangeItem] = []
        items = [part for part in message.parts if isinstance(part, RangeItem)]
        fingerprints = [
            part for part in message.parts if isinstance(part, RangeFingerprint)
        ]

        for item in items:
            diff = None
            if not item.have_local:
                ours = [
                    entry
                    for entry in self.get_range(item.range)
                    if not any(
                        entry.key == theirs.key and theirs.value >= entry.value
                        for theirs, _ in item.values
                    )
                ]
                diff = await _attach_status(ours, content_status_cb)

            for entry, status in item.values:
                if validate_cb(self, entry, status):
                    if self.put(entry).inserted:
                        on_insert_cb(self, entry, status)

            if diff:
                out.append(RangeItem(item.range, diff, have_local=True))

        for part in fingerprints:
            out.extend(await self._answer_fingerprint(config, part, content_status_cb))

        return Message(out) if out else None

    async def _answer_fingerprint(
        self,
        config: SyncConfig,
        part: RangeFingerprint,
        content_status_cb: ContentStatusCallback,
    ) -> list[RangeFingerprint | RangeItem]:
        range_ = part.range
        if self.get_fingerprint(range_) == part.fingerprint:
            return []

        local_count = self.get_range_len(range_)
        if local_count <= 1 or part.fingerprint == Fingerprint.empty():
            values = list(self.get_range(range_))
            logger.debug(
                "anchor: range=%r local=%d sending %d", range_, local_count, len(values)
            )
            return [
                RangeItem(
                    range_,
                    await _attach_status(values, content_status_cb),
                    have_local=False,
                )
            ]

        logger.debug("recurse: range=%r local=%d", range_, local_count)
        split = config.split_factor

        start_index = 0
        for entry in self.get_range(range_):
            if entry.key >= range_.x:
                break
            start_index += 1

        def pivot(i: int) -> Any:
            offset = (local_count * (i % split + 1)) // split
            offset = (start_index + offset) % local_count
            found = next(islice(self.get_range(range_), offset, None), None)
            if found is None:
                raise RuntimeError("missing entry while choosing a pivot")
            return found.key

        ranges: list[Range] = []
        if range_.is_all():
            for i in range(split):
                x, y = pivot(i), pivot(i + 1)
                if x != y:
                    ranges.append(Range(x, y))
        else:
            ranges.append(Range(range_.x, pivot(0)))
            for i in range(split - 2):
                x, y = pivot(i), pivot(i + 1)
                if x != y:
                    ranges.append(Range(x, y))
            ranges.append(Range(pivot(split - 2), range_.y))

        parts: list[RangeFingerprint | RangeItem] = []
        for sub in ranges:
            chunk = list(self.get_range(sub))
            fingerprint = self.get_fingerprint(sub)
            if len(chunk) > config.max_set_size:
                parts.append(RangeFingerprint(sub, fingerprint))
            else:
                parts.append(
                    RangeItem(
                        sub,
                        await _attach_status(chunk, content_status_cb),
                        have_local=False,
                    )
                )
        return parts