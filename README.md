# docsync

Building blocks for keeping replicated key-value documents in sync between
peers.

## What is in the package

- `docsync.ranger` holds the core types of range-based set reconciliation:
  - `Range` is a wrap-around key range. `Range(x, x)` covers everything.
  - `Fingerprint` is a 32-byte BLAKE3 digest. Fingerprints combine with `^`.
  - `RangeEntry` is the abstract entry type, with a `key` and a `value`.
  - `RangeFingerprint`, `RangeItem` and `Message` are the message types.
  - `SyncConfig` holds `max_set_size`, which defaults to 1, and
    `split_factor`, which defaults to 2 and must be at least 2.
  - `ContentStatus` and `InsertOutcome` are the remaining result types.
- `docsync.reconcile.RangeStore` is the abstract store that takes part in
  reconciliation.
  - `initial_message()` opens a session.
  - `process_message(...)` is a coroutine. It answers an incoming message and
    returns `None` when nothing is left to send.
  - `put(entry)` inserts an entry with prefix deletion. An entry is refused
    when an entry at its key, or at a prefix of its key, has a value that is
    not smaller. Entries whose key has the new key as a prefix, and whose
    value is not greater, are removed.
- `docsync.memstore.MemoryStore` is an in-memory `RangeStore` that keeps one
  entry per key. By default the empty store's first key is `""`, and the
  prefix test is `key.startswith(prefix)`. You can pass your own
  `default_key` and `is_prefix`.
- `docsync.policy` holds the download policies and related types.
  - `DownloadPolicy` decides which keys are downloaded. Build it with
    `nothing_except(...)` or `everything_except(...)`. The default downloads
    everything.
  - `FilterKind` is a prefix or exact filter. Its text form is
    `<prefix|exact>:<utf8|hex>:<data>`.
  - The module also defines the `DownloadPolicyStore` interface,
    `ImportNamespaceOutcome` and the errors `OpenError` and `ReplicaNotFound`.
- `docsync.query` holds `Query` and `QueryBuilder`. A query can filter by
  author, exact key or key prefix. It can also set a limit, an offset, a sort
  order (`SortBy`, `SortDirection`) and whether to include empty entries.
  `KeyFilter` and `AuthorFilter` do the matching.
- `docsync.index` holds two helpers.
  - `IndexKind.from_query` chooses between an author-then-key scan
    (`AuthorKeyIndex`) and a key-then-author scan (`KeyAuthorIndex`).
  - `LatestPerKeySelector` keeps the newest entry of each key from entries
    pushed in key order.
- `docsync.bounds` gives start and end `Bound`s for identifiers ordered as
  `(namespace, author, key)` (`RecordsBounds`) or `(namespace, key, author)`
  (`ByKeyBounds`). It also provides `increment_by_one`.
- `docsync.pubkeys` turns 32-byte identifiers into Ed25519 verifying keys.
  - `UncachedPublicKeyStore` decodes the key on every call.
  - `MemPublicKeyStore` caches decoded keys.
  - Both raise `InvalidPublicKey` for bytes that are not a curve point.

## Installation

```
pip install docsync
```

## Reconciling two stores

Entries are subclasses of `RangeEntry`:

```python
import asyncio
from dataclasses import dataclass

from docsync.memstore import MemoryStore
from docsync.ranger import ContentStatus, RangeEntry, SyncConfig


@dataclass(frozen=True)
class Item(RangeEntry):
    name: str
    version: int

    @property
    def key(self):
        return self.name

    @property
    def value(self):
        return self.version


async def reconcile(alice: MemoryStore, bob: MemoryStore) -> None:
    config = SyncConfig()

    def accept(store, entry, status):
        return True

    def on_insert(store, entry, status):
        pass

    def status(entry):
        return ContentStatus.COMPLETE

    message = alice.initial_message()
    while message is not None:
        reply = await bob.process_message(config, message, accept, on_insert, status)
        if reply is None:
            break
        message = await alice.process_message(config, reply, accept, on_insert, status)


alice, bob = MemoryStore(), MemoryStore()
alice.put(Item("ape", 1))
bob.put(Item("bee", 1))
asyncio.run(reconcile(alice, bob))
print([e.key for e in alice.all()])   # ['ape', 'bee']
```

The content-status callback may return a `ContentStatus` or an awaitable of
one. Once the exchange ends, both stores hold the union of the two sets, with
prefix deletion applied.

## Download policies

```python
from docsync.policy import DownloadPolicy, FilterKind

only_memes = FilterKind.parse("prefix:utf8:memes/")
print(str(only_memes))                     # prefix:utf8:memes/
print(only_memes.matches(b"memes/cat"))    # True

policy = DownloadPolicy.nothing_except(only_memes)
print(policy.matches(b"docs/readme"))      # False
```

`FilterKind.parse` raises `ValueError` on malformed text.

## Queries

```python
from docsync.query import Query, SortBy, SortDirection

query = (
    Query.all()
    .key_prefix(b"hello-")
    .sort_by(SortBy.KEY_AUTHOR, SortDirection.DESC)
    .limit(10)
    .build()
)
```

`sort_by` works only on flat queries (`Query.all()`). `sort_direction` works
only on `Query.single_latest_per_key()` builders.

## What the package does not do

There is no persistent or on-disk store. `MemoryStore` is the only store
provided, and queries and bounds describe what to read without executing it
against storage. The package has no network transport, no document entry,
signature, author or namespace types, and no command-line program.

## Running the tests

```
pip install "docsync[test]"
pytest
```