"""Core types for range-based set reconciliation.

Ranges wrap around: ``Range(x, x)`` covers the whole set, ``Range(x, y)``
with ``x < y`` covers ``x <= t < y`` and ``Range(x, y)`` with ``x > y``
covers everything except ``y <= t < x``.
"""

from __future__ import annotations

import enum
import struct
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Generic, Iterator, TypeVar, Union

K = TypeVar("K")

_MASK = 0xFFFFFFFF
_IV = (
    0x6A09E667,
    0xBB67AE85,
    0x3C6EF372,
    0xA54FF53A,
    0x510E527F,
    0x9B05688C,
    0x1F83D9AB,
    0x5BE0CD19,
)
_MSG_PERMUTATION = (2, 6, 3, 10, 7, 0, 4, 13, 1, 11, 12, 5, 9, 14, 15, 8)
_CHUNK_START = 1 << 0
_CHUNK_END = 1 << 1
_PARENT = 1 << 2
_ROOT = 1 << 3
_CHUNK_LEN = 1024
_BLOCK_LEN = 64


def _rotr(value: int, bits: int) -> int:
    return ((value >> bits) | (value << (32 - bits))) & _MASK


def _g(state: list[int], a: int, b: int, c: int, d: int, mx: int, my: int) -> None:
    state[a] = (state[a] + state[b] + mx) & _MASK
    state[d] = _rotr(state[d] ^ state[a], 16)
    state[c] = (state[c] + state[d]) & _MASK
    state[b] = _rotr(state[b] ^ state[c], 12)
    state[a] = (state[a] + state[b] + my) & _MASK
    state[d] = _rotr(state[d] ^ state[a], 8)
    state[c] = (state[c] + state[d]) & _MASK
    state[b] = _rotr(state[b] ^ state[c], 7)


def _round(state: list[int], m: list[int]) -> None:
    _g(state, 0, 4, 8, 12, m[0], m[1])
    _g(state, 1, 5, 9, 13, m[2], m[3])
    _g(state, 2, 6, 10, 14, m[4], m[5])
    _g(state, 3, 7, 11, 15, m[6], m[7])
    _g(state, 0, 5, 10, 15, m[8], m[9])
    _g(state, 1, 6, 11, 12, m[10], m[11])
    _g(state, 2, 7, 8, 13, m[12], m[13])
    _g(state, 3, 4, 9, 14, m[14], m[15])


def _compress(
    cv: tuple[int, ...], block: tuple[int, ...], counter: int, block_len: int, flags: int
) -> list[int]:
    state = [
        *cv,
        *_IV[:4],
        counter & _MASK,
        (counter >> 32) & _MASK,
        block_len,
        flags,
    ]
    words = list(block)
    for _ in range(7):
        _round(state, words)
        words = [words[i] for i in _MSG_PERMUTATION]
    for i in range(8):
        state[i] ^= state[i + 8]
        state[i + 8] ^= cv[i]
    return state


def _block_words(block: bytes) -> tuple[int, ...]:
    return struct.unpack("<16I", block.ljust(_BLOCK_LEN, b"\0"))


@dataclass(frozen=True)
class _Output:
    cv: tuple[int, ...]
    block: tuple[int, ...]
    counter: int
    block_len: int
    flags: int

    def chaining_value(self) -> tuple[int, ...]:
        return tuple(_compress(self.cv, self.block, self.counter, self.block_len, self.flags)[:8])

    def root_bytes(self) -> bytes:
        words = _compress(self.cv, self.block, 0, self.block_len, self.flags | _ROOT)
        return struct.pack("<8I", *words[:8])


def _chunk_output(chunk: bytes, counter: int) -> _Output:
    blocks = [chunk[i : i + _BLOCK_LEN] for i in range(0, len(chunk), _BLOCK_LEN)] or [b""]
    cv = _IV
    flags = _CHUNK_START
    for block in blocks[:-1]:
        cv = tuple(_compress(cv, _block_words(block), counter, _BLOCK_LEN, flags)[:8])
        flags = 0
    last = blocks[-1]
    return _Output(cv, _block_words(last), counter, len(last), flags | _CHUNK_END)


def _parent_output(left: tuple[int, ...], right: tuple[int, ...]) -> _Output:
    return _Output(_IV, left + right, 0, _BLOCK_LEN, _PARENT)


def _blake3(data: bytes) -> bytes:
    """Return the 32-byte BLAKE3 digest of ``data``."""
    chunks = [data[i : i + _CHUNK_LEN] for i in range(0, len(data), _CHUNK_LEN)] or [b""]
    stack: list[tuple[int, ...]] = []
    for counter, chunk in enumerate(chunks[:-1]):
        cv = _chunk_output(chunk, counter).chaining_value()
        total = counter + 1
        while total & 1 == 0:
            cv = _parent_output(stack.pop(), cv).chaining_value()
            total >>= 1
        stack.append(cv)
    output = _chunk_output(chunks[-1], len(chunks) - 1)
    for left in reversed(stack):
        output = _parent_output(left, output.chaining_value())
    return output.root_bytes()


class ContentStatus(enum.Enum):
    """Whether the content of an entry is available locally."""

    COMPLETE = "complete"
    INCOMPLETE = "incomplete"
    MISSING = "missing"


@dataclass(frozen=True)
class Fingerprint:
    """A 32-byte set fingerprint, combined by XOR."""

    digest: bytes

    def __post_init__(self) -> None:
        if len(self.digest) != 32:
            raise ValueError(f"fingerprint must be 32 bytes, got {len(self.digest)}")

    @classmethod
    def empty(cls) -> Fingerprint:
        """The fingerprint of the empty set."""
        return cls(_blake3(b""))

    def __xor__(self, other: Fingerprint) -> Fingerprint:
        if not isinstance(other, Fingerprint):
            return NotImplemented
        return Fingerprint(bytes(a ^ b for a, b in zip(self.digest, other.digest)))

    def __repr__(self) -> str:
        return f"Fp({self.digest.hex()})"


class RangeEntry(ABC):
    """An entry that has an ordered key, an ordered value and a fingerprint."""

    @property
    @abstractmethod
    def key(self) -> Any:
        """The key, which defines the range ordering."""

    @property
    @abstractmethod
    def value(self) -> Any:
        """The value, which defines the time ordering used for prefix deletion."""

    def as_fingerprint(self) -> Fingerprint:
        """Fingerprint of this entry, hashed from the text of its key and value."""
        return Fingerprint(_blake3(repr(self.key).encode() + repr(self.value).encode()))


@dataclass(frozen=True)
class Range(Generic[K]):
    """A wrap-around range of keys: x inclusive, y exclusive."""

    x: K
    y: K

    def is_all(self) -> bool:
        """True if the range covers the whole set."""
        return self.x == self.y

    def contains(self, key: K) -> bool:
        """True if ``key`` lies within this range."""
        if self.x == self.y:
            return True
        if self.x < self.y:  # type: ignore[operator]
            return self.x <= key < self.y  # type: ignore[operator]
        return self.x <= key or key < self.y  # type: ignore[operator]


@dataclass(frozen=True)
class RangeFingerprint(Generic[K]):
    """A range together with the fingerprint of the entries inside it."""

    range: Range[K]
    fingerprint: Fingerprint


@dataclass
class RangeItem:
    """Entries of a range sent to the other participant.

    If ``have_local`` is false, the receiver is asked to send back its own
    entries of the range.
    """

    range: Range[Any]
    values: list[tuple[Any, ContentStatus]] = field(default_factory=list)
    have_local: bool = False


MessagePart = Union[RangeFingerprint, RangeItem]


@dataclass
class Message:
    """One round of the reconciliation protocol."""

    parts: list[MessagePart] = field(default_factory=list)

    def values(self) -> Iterator[tuple[Any, ContentStatus]]:
        """All entries carried by the item parts of this message."""
        for part in self.parts:
            if isinstance(part, RangeItem):
                yield from part.values

    def value_count(self) -> int:
        """Number of entries carried by this message."""
        return sum(1 for _ in self.values())


@dataclass(frozen=True)
class SyncConfig:
    """Tuning of the reconciliation protocol."""

    max_set_size: int = 1
    split_factor: int = 2

    def __post_init__(self) -> None:
        if self.split_factor < 2:
            raise ValueError("split_factor must be at least 2")
        if self.max_set_size < 0:
            raise ValueError("max_set_size must not be negative")


@dataclass(frozen=True)
class InsertOutcome:
    """Result of inserting an entry into a store.

    ``removed`` counts entries dropped because their key had the new key as a
    prefix and their value was not greater.
    """

    inserted: bool
    removed: int = 0