import asyncio
from dataclasses import dataclass
from functools import reduce
from typing import Any

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from docsync.ranger import (
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
from docsync.reconcile import RangeStore


@dataclass(frozen=True)
class Pair(RangeEntry):
    k: Any
    v: Any

    @property
    def key(self):
        return self.k

    @property
    def value(self):
        return self.v


class DictStore(RangeStore):
    def __init__(self, items=()):
        self.data = {}
        for k, v in items:
            self.put(Pair(k, v))

    def get_first(self):
        return min(self.data) if self.data else ""

    def get_fingerprint(self, range):
        return reduce(
            lambda fp, e: fp ^ e.as_fingerprint(),
            self.get_range(range),
            Fingerprint.empty(),
        )

    def entry_put(self, entry):
        self.data[entry.key] = entry.value

    def get_range(self, range):
        for k in sorted(self.data):
            if range.contains(k):
                yield Pair(k, self.data[k])

    def prefixes_of(self, key):
        return [Pair(k, self.data[k]) for k in sorted(self.data) if key.startswith(k)]

    def remove_prefix_filtered(self, prefix, predicate):
        doomed = [k for k, v in self.data.items() if k.startswith(prefix) and predicate(v)]
        for k in doomed:
            del self.data[k]
        return len(doomed)

    def items(self):
        return sorted(self.data.items())


async def _complete(_entry):
    return ContentStatus.COMPLETE


def _accept(_store, _entry, _status):
    return True


def _ignore(_store, _entry, _status):
    return None


async def _exchange(alice, bob, alice_validate=_accept, bob_validate=_accept, config=None):
    config = config or SyncConfig()
    a_to_b, b_to_a = [], []
    next_to_bob = alice.initial_message()
    rounds = 0
    while next_to_bob is not None:
        assert rounds < 100, "too many rounds"
        rounds += 1
        a_to_b.append(next_to_bob)
        reply = await bob.process_message(config, next_to_bob, bob_validate, _ignore, _complete)
        next_to_bob = None
        if reply is not None:
            b_to_a.append(reply)
            next_to_bob = await alice.process_message(
                config, reply, alice_validate, _ignore, _complete
            )
    return a_to_b, b_to_a


def _sync(alice_set, bob_set, config=None):
    alice, bob = DictStore(alice_set), DictStore(bob_set)
    a_to_b, b_to_a = asyncio.run(_exchange(alice, bob, config=config))
    return alice, bob, a_to_b, b_to_a


def _sent_keys(messages):
    return [entry.key for msg in messages for entry, _ in msg.values()]


def test_paper_1():
    alice_set = [("ape", 1), ("eel", 1), ("fox", 1), ("gnu", 1)]
    bob_set = [("bee", 1), ("cat", 1), ("doe", 1), ("eel", 1), ("fox", 1), ("hog", 1)]
    alice, bob, a_to_b, b_to_a = _sync(alice_set, bob_set)
    assert len(a_to_b) == 3
    assert len(b_to_a) == 2

    assert len(a_to_b[0].parts) == 1
    assert isinstance(a_to_b[0].parts[0], RangeFingerprint)

    assert len(b_to_a[0].parts) == 2
    assert all(isinstance(p, RangeFingerprint) for p in b_to_a[0].parts)

    assert len(a_to_b[1].parts) == 3
    assert isinstance(a_to_b[1].parts[0], RangeFingerprint)
    assert isinstance(a_to_b[1].parts[1], RangeFingerprint)
    assert isinstance(a_to_b[1].parts[2], RangeItem)

    assert len(b_to_a[1].parts) == 2
    assert all(isinstance(p, RangeItem) for p in b_to_a[1].parts)

    expected = sorted(set(alice_set) | set(bob_set))
    assert alice.items() == expected
    assert bob.items() == expected


@pytest.mark.parametrize(
    "alice_set, bob_set, a_count, b_count",
    [
        (
            [("ape", 1), ("bee", 1), ("cat", 1), ("doe", 1), ("eel", 1), ("fox", 1), ("gnu", 1), ("hog", 1)],
            [("ape", 1), ("bee", 1), ("cat", 1), ("doe", 1), ("eel", 1), ("gnu", 1), ("hog", 1)],
            3,
            2,
        ),
        (
            [("ape", 1), ("bee", 1), ("cat", 1), ("doe", 1), ("eel", 1), ("fox", 1), ("gnu", 1), ("hog", 1)],
            [("ape", 1), ("cat", 1), ("eel", 1), ("gnu", 1)],
            3,
            2,
        ),
        ([("ape", 1), ("bee", 1), ("cat", 1)], [("ape", 1), ("cat", 1), ("doe", 1)], 2, 2),
        (
            [("/foo/bar", 1), ("/foo/baz", 1), ("/foo/cat", 1)],
            [("/foo/bar", 1), ("/alice/bar", 1), ("/alice/baz", 1)],
            2,
            2,
        ),
        ([], [("/foo/bar", 1), ("/alice/bar", 1), ("/alice/baz", 1)], 1, 1),
        ([("/foo/bar", 1), ("/foo/baz", 1), ("/foo/cat", 1)], [], 2, 1),
    ],
)
def test_message_counts_and_union(alice_set, bob_set, a_count, b_count):
    alice, bob, a_to_b, b_to_a = _sync(alice_set, bob_set)
    assert len(a_to_b) == a_count
    assert len(b_to_a) == b_count
    expected = sorted(set(alice_set) | set(bob_set))
    assert alice.items() == expected
    assert bob.items() == expected


def test_equal_key_higher_value():
    alice, bob, a_to_b, b_to_a = _sync([("foo", 2)], [("foo", 1)])
    assert len(a_to_b) == 2
    assert len(b_to_a) == 1
    assert alice.items() == [("foo", 2)]
    assert bob.items() == [("foo", 2)]


def test_validate_cb_rejects_everything():
    alice_set = [("alice1", 1), ("alice2", 2)]
    bob_set = [("bob1", 3), ("bob2", 4), ("bob3", 5)]
    alice_seen, bob_seen = [], []

    def validate_alice(_store, entry, _status):
        alice_seen.append((entry.key, entry.value))
        return False

    def validate_bob(_store, entry, _status):
        bob_seen.append((entry.key, entry.value))
        return False

    alice, bob = DictStore(alice_set), DictStore(bob_set)
    asyncio.run(_exchange(alice, bob, validate_alice, validate_bob))
    assert alice.items() == alice_set
    assert bob.items() == bob_set
    assert alice_seen == bob_set
    assert bob_seen == alice_set


def test_put_prefix_rules():
    store = DictStore([("a", 1)])
    assert RangeStore.put(store, Pair("ab", 1)) == InsertOutcome(inserted=False)
    assert store.items() == [("a", 1)]

    # Within a key, an entry only replaces an older value.
    assert RangeStore.put(store, Pair("a", 1)) == InsertOutcome(inserted=False)

    assert RangeStore.put(store, Pair("ab", 2)) == InsertOutcome(inserted=True, removed=0)
    assert store.items() == [("a", 1), ("ab", 2)]

    assert RangeStore.put(store, Pair("a", 3)) == InsertOutcome(inserted=True, removed=2)
    assert store.items() == [("a", 3)]


def test_initial_message():
    store = DictStore([("cat", 1), ("ape", 1)])
    msg = store.initial_message()
    assert len(msg.parts) == 1
    part = msg.parts[0]
    assert isinstance(part, RangeFingerprint)
    assert part.range == Range("ape", "ape")
    assert part.fingerprint == store.get_fingerprint(part.range)


def test_initial_message_empty_store():
    msg = DictStore().initial_message()
    assert msg.parts[0].fingerprint == Fingerprint.empty()
    assert msg.value_count() == 0


def test_get_range_len_default():
    store = DictStore([("a", 1), ("b", 1), ("c", 1), ("d", 1)])
    assert store.get_range_len(Range("b", "d")) == 2
    assert store.get_range_len(Range("c", "b")) == 3
    assert store.get_range_len(Range("a", "a")) == 4


@pytest.mark.asyncio
async def test_identical_stores_finish_immediately():
    items = [("x", 1), ("y", 2)]
    alice, bob = DictStore(items), DictStore(items)
    reply = await bob.process_message(
        SyncConfig(), alice.initial_message(), _accept, _ignore, _complete
    )
    assert reply is None


@pytest.mark.asyncio
async def test_on_insert_and_plain_status_callback():
    alice = DictStore()
    bob = DictStore([("k1", 1)])
    reply = await bob.process_message(
        SyncConfig(),
        alice.initial_message(),
        _accept,
        _ignore,
        lambda _entry: ContentStatus.MISSING,
    )
    assert reply is not None
    assert [(e.key, s) for e, s in reply.values()] == [("k1", ContentStatus.MISSING)]

    inserted = []
    await alice.process_message(
        SyncConfig(),
        reply,
        _accept,
        lambda _store, entry, status: inserted.append((entry.key, status)),
        _complete,
    )
    assert inserted == [("k1", ContentStatus.MISSING)]
    assert alice.items() == [("k1", 1)]


@pytest.mark.asyncio
async def test_item_reply_omits_entries_peer_has():
    store = DictStore([("a", 1), ("b", 5)])
    incoming = Message(
        [RangeItem(Range("a", "a"), [(Pair("a", 2), ContentStatus.COMPLETE)], have_local=False)]
    )
    reply = await store.process_message(SyncConfig(), incoming, _accept, _ignore, _complete)
    assert reply is not None
    assert [(e.key, e.value) for e, _ in reply.values()] == [("b", 5)]
    assert all(p.have_local for p in reply.parts)
    assert store.items() == [("a", 2), ("b", 5)]


def test_split_factor_three_converges():
    alice_set = [(f"k{i}", 1) for i in range(0, 20, 2)]
    bob_set = [(f"k{i}", 1) for i in range(1, 20, 3)]
    alice, bob, _, _ = _sync(alice_set, bob_set, SyncConfig(max_set_size=2, split_factor=3))
    expected = sorted(set(alice_set) | set(bob_set))
    assert alice.items() == expected
    assert bob.items() == expected


_keys = st.from_regex(r"[a-z0-9]{0,5}", fullmatch=True)
_sets = st.dictionaries(_keys, st.integers(0, 254), max_size=10).map(lambda d: sorted(d.items()))


@settings(max_examples=60, deadline=None)
@given(_sets, _sets)
def test_sync_converges_without_duplicates(alice_set, bob_set):
    alice, bob, a_to_b, b_to_a = _sync(alice_set, bob_set)
    assert alice.items() == bob.items()
    sent_by_alice = _sent_keys(a_to_b)
    sent_by_bob = _sent_keys(b_to_a)
    assert len(sent_by_alice) == len(set(sent_by_alice))
    assert len(sent_by_bob) == len(set(sent_by_bob))
    assert set(alice.items()) <= set(alice_set) | set(bob_set)