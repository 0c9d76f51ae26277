"""Download policies and the errors and outcomes of replica storage."""

from __future__ import annotations

import binascii
import enum
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Union

BytesLike = Union[bytes, bytearray, memoryview, str]


def _to_bytes(value: BytesLike) -> bytes:
    if isinstance(value, str):
        return value.encode("utf-8")
    return bytes(value)


class OpenError(Exception):
    """Opening a replica failed."""


class ReplicaNotFound(OpenError):
    """The requested replica does not exist."""

    def __init__(self, message: str = "Replica not found") -> None:
        super().__init__(message)


class ImportNamespaceOutcome(enum.Enum):
    """What importing a namespace capability did."""

    INSERTED = "inserted"
    UPGRADED = "upgraded"
    NO_CHANGE = "no_change"


class FilterMode(enum.Enum):
    """How a filter compares its bytes with a key."""

    PREFIX = "prefix"
    EXACT = "exact"


@dataclass(frozen=True)
class FilterKind:
    """A key filter used in download policies.

    Its text form is ``<kind>:<encoding>:<data>`` where kind is ``prefix`` or
    ``exact`` and encoding is ``utf8`` or ``hex``.
    """

    mode: FilterMode
    data: bytes

    def __post_init__(self) -> None:
        object.__setattr__(self, "data", _to_bytes(self.data))

    @classmethod
    def prefix(cls, data: BytesLike) -> FilterKind:
        """A filter matching keys that start with ``data``."""
        return cls(FilterMode.PREFIX, _to_bytes(data))

    @classmethod
    def exact(cls, data: BytesLike) -> FilterKind:
        """A filter matching only the key ``data``."""
        return cls(FilterMode.EXACT, _to_bytes(data))

    @classmethod
    def parse(cls, text: str) -> FilterKind:
        """Parse the text form; raises ValueError if it is malformed."""
        kind, sep, rest = text.partition(":")
        if not sep:
            raise ValueError('missing filter kind, either "prefix:" or "exact:"')
        encoding, sep, rest = rest.partition(":")
        if not sep:
            raise ValueError('missing encoding: either "hex:" or "utf8:"')
        try:
            mode = FilterMode(kind)
        except ValueError:
            raise ValueError(
                f'expected filter kind "prefix:" or "exact:", found {kind}'
            ) from None
        if encoding == "utf8":
            data = rest.encode("utf-8")
        elif encoding == "hex":
            try:
                data = binascii.unhexlify(rest)
            except (binascii.Error, ValueError):
                raise ValueError("failed to decode hex") from None
        else:
            raise ValueError(
                f'expected encoding: either "hex:" or "utf8:", found {encoding}'
            )
        return cls(mode, data)

    def matches(self, key: BytesLike) -> bool:
        """True if ``key`` is matched by this filter."""
        key = _to_bytes(key)
        if self.mode is FilterMode.PREFIX:
            return key.startswith(self.data)
        return key == self.data

    def __str__(self) -> str:
        try:
            encoding, text = "utf8", self.data.decode("utf-8")
        except UnicodeDecodeError:
            encoding, text = "hex", self.data.hex()
        return f"{self.mode.value}:{encoding}:{text}"


class PolicyMode(enum.Enum):
    """Whether the filters of a policy list what is or what is not downloaded."""

    NOTHING_EXCEPT = "nothing_except"
    EVERYTHING_EXCEPT = "everything_except"


@dataclass(frozen=True)
class DownloadPolicy:
    """Decides which content blobs are downloaded.

    The default downloads everything.
    """

    mode: PolicyMode = PolicyMode.EVERYTHING_EXCEPT
    filters: tuple[FilterKind, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "filters", tuple(self.filters))

    @classmethod
    def nothing_except(cls, *filters: FilterKind) -> DownloadPolicy:
        """Download only keys that match one of ``filters``."""
        return cls(PolicyMode.NOTHING_EXCEPT, filters)

    @classmethod
    def everything_except(cls, *filters: FilterKind) -> DownloadPolicy:
        """Download every key that matches none of ``filters``."""
        return cls(PolicyMode.EVERYTHING_EXCEPT, filters)

    def matches(self, key: BytesLike) -> bool:
        """True if an entry with ``key`` should be downloaded."""
        key = _to_bytes(key)
        if self.mode is PolicyMode.NOTHING_EXCEPT:
            return any(f.matches(key) for f in self.filters)
        return not any(f.matches(key) for f in self.filters)


class DownloadPolicyStore(ABC):
    """Read access to the download policies of documents."""

    @abstractmethod
    def get_download_policy(self, namespace: Any) -> DownloadPolicy:
        """The download policy of the document ``namespace``."""