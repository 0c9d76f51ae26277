"""Conversion of 32-byte identifiers into Ed25519 public keys, with caching."""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from typing import Any

from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PublicKey

_P = 2**255 - 19
_D = (-121665 * pow(121666, _P - 2, _P)) % _P


class InvalidPublicKey(ValueError):
    """The bytes are not the encoding of a point on the Ed25519 curve."""


def _decode_public_key(key_bytes: Any) -> Ed25519PublicKey:
    data = bytes(key_bytes)
    if len(data) != 32:
        raise InvalidPublicKey(f"public key must be 32 bytes, got {len(data)}")
    y = (int.from_bytes(data, "little") & ((1 << 255) - 1)) % _P
    y2 = y * y % _P
    u = (y2 - 1) % _P
    v = (_D * y2 + 1) % _P
    x2 = u * pow(v, _P - 2, _P) % _P
    if x2 != 0 and pow(x2, (_P - 1) // 2, _P) != 1:
        raise InvalidPublicKey("point decompression failed")
    try:
        return Ed25519PublicKey.from_public_bytes(data)
    except ValueError as err:
        raise InvalidPublicKey(str(err)) from err


class PublicKeyStore(ABC):
    """Turns 32-byte identifiers into verifying keys."""

    @abstractmethod
    def public_key(self, key_bytes: Any) -> Ed25519PublicKey:
        """The verifying key for ``key_bytes``; raises InvalidPublicKey."""

    def namespace_key(self, namespace: Any) -> Ed25519PublicKey:
        """The verifying key of a namespace id."""
        return self.public_key(bytes(namespace))

    def author_key(self, author: Any) -> Ed25519PublicKey:
        """The verifying key of an author id."""
        return self.public_key(bytes(author))


class UncachedPublicKeyStore(PublicKeyStore):
    """Decodes the key afresh on every call."""

    def public_key(self, key_bytes: Any) -> Ed25519PublicKey:
        return _decode_public_key(key_bytes)


class MemPublicKeyStore(PublicKeyStore):
    """Keeps decoded keys in memory and reuses them."""

    def __init__(self) -> None:
        self._keys: dict[bytes, Ed25519PublicKey] = {}
        self._lock = threading.Lock()

    def public_key(self, key_bytes: Any) -> Ed25519PublicKey:
        data = bytes(key_bytes)
        with self._lock:
            cached = self._keys.get(data)
        if cached is not None:
            return cached
        key = _decode_public_key(data)
        with self._lock:
            return self._keys.setdefault(data, key)