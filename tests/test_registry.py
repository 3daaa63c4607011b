from __future__ import annotations

import itertools
import random

from toolgateway.registry import InstanceRegistry, Subscriber, SubscriberRegistry

_ids = itertools.count(1)


def _sub(key: str = "global", maxsize: int = 0) -> Subscriber:
    return Subscriber(next(_ids), key=key, maxsize=maxsize)


def test_list_tracks_added_minus_removed():
    reg = SubscriberRegistry()
    rng = random.Random(7)
    pool = [_sub() for _ in range(12)]
    expected: dict[int, Subscriber] = {}

    for _ in range(200):
        sub = rng.choice(pool)
        if rng.random() < 0.6:
            reg.add(sub)
            expected[sub.id] = sub
        else:
            reg.remove(sub)
            expected.pop(sub.id, None)

    listed = reg.list()
    assert {s.id for s in listed} == set(expected)
    assert len(listed) == len({s.id for s in listed})


def test_re_adding_keeps_a_single_entry_in_order():
    reg = SubscriberRegistry()
    a, b = _sub(), _sub()
    reg.add(a)
    reg.add(b)
    reg.add(a)
    assert reg.list() == [a, b]


def test_remove_stale_reference_is_noop():
    reg = SubscriberRegistry()
    a = _sub()
    reg.add(a)
    assert reg.remove(a) is True
    assert reg.remove(a) is False
    assert len(reg) == 0


def test_instance_slot_is_overwritten():
    reg = InstanceRegistry()
    a = _sub("team1")
    b = _sub("team1")
    reg.add(a)
    assert reg.add(b) is a
    assert reg.get("team1") is b
    assert len(reg) == 1


def test_superseded_subscriber_cannot_evict_replacement():
    reg = InstanceRegistry()
    a, b, c = (_sub("k") for _ in range(3))
    reg.add(a)
    reg.add(b)
    reg.add(c)
    # b and a disconnect late, after c took the slot
    assert reg.remove(b) is False
    assert reg.remove(a) is False
    assert reg.get("k") is c
    assert reg.remove(c) is True
    assert reg.get("k") is None


def test_get_with_missing_or_odd_key():
    reg = InstanceRegistry()
    reg.add(_sub("x"))
    assert reg.get(None) is None
    assert reg.get("y") is None
    assert reg.get({"not": "hashable"}) is None


def test_closed_sink_drops_writes_silently():
    sub = _sub(maxsize=2)
    assert sub.send("a") is True
    assert sub.close() is True
    assert sub.close() is False
    assert sub.send("b") is False
    assert sub.sink.drain() == ["a"]


def test_full_sink_drops_instead_of_blocking():
    sub = _sub(maxsize=1)
    assert sub.send("a") is True
    assert sub.send("b") is False
    assert sub.sink.drain() == ["a"]
