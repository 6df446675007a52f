"""
Tests for dense position arithmetic.
"""

import random

import pytest

from blockwright.composition import positions
from blockwright.errors import InvalidArgumentError, NotFoundError
from blockwright.models import BlockTypeId, CompositionEntry


def make_entries(*block_ids):
    return [
        CompositionEntry(block_id=block_id, block_type=BlockTypeId.SKILL, position=i)
        for i, block_id in enumerate(block_ids)
    ]


def order(items):
    return [item.block_id for item in positions.sort_by_position(items)]


def test_is_dense():
    assert positions.is_dense([])
    assert positions.is_dense([2, 0, 1])
    assert not positions.is_dense([0, 2])
    assert not positions.is_dense([0, 0, 1])


def test_shift_range_bounded():
    items = make_entries("a", "b", "c", "d")

    shifted = positions.shift_range(items, 1, 3, 1)

    assert shifted == 2
    assert [i.position for i in items] == [0, 2, 3, 3]


def test_insert_at_front_and_end():
    items = make_entries("a", "b")

    items = positions.insert_at(items, CompositionEntry(block_id="x", block_type=BlockTypeId.SKILL, position=0), 0)
    items = positions.insert_at(items, CompositionEntry(block_id="y", block_type=BlockTypeId.SKILL, position=0))

    assert order(items) == ["x", "a", "b", "y"]
    assert positions.is_dense(i.position for i in items)


def test_insert_out_of_range():
    items = make_entries("a")
    entry = CompositionEntry(block_id="x", block_type=BlockTypeId.SKILL, position=0)

    with pytest.raises(InvalidArgumentError):
        positions.insert_at(items, entry, 2)
    with pytest.raises(InvalidArgumentError):
        positions.insert_at(items, entry, -1)
    assert [i.position for i in items] == [0]


def test_remove_closes_gap():
    items = make_entries("a", "b", "c")

    removed = positions.remove_block(items, "a")

    assert removed.block_id == "a"
    assert order(items) == ["b", "c"]
    assert [i.position for i in positions.sort_by_position(items)] == [0, 1]


def test_remove_missing():
    with pytest.raises(NotFoundError):
        positions.remove_block(make_entries("a"), "z")


def test_move_down_and_up():
    items = make_entries("a", "b", "c", "d")

    assert positions.move_block(items, "a", 2)
    assert order(items) == ["b", "c", "a", "d"]

    assert positions.move_block(items, "d", 0)
    assert order(items) == ["d", "b", "c", "a"]


def test_move_to_same_position():
    items = make_entries("a", "b")

    assert positions.move_block(items, "b", 1) is False
    assert order(items) == ["a", "b"]


def test_move_out_of_range():
    items = make_entries("a", "b")

    with pytest.raises(InvalidArgumentError):
        positions.move_block(items, "a", 2)
    with pytest.raises(NotFoundError):
        positions.move_block(items, "z", 0)


def test_random_operations_stay_dense():
    rng = random.Random(1234)
    items = []
    reference = []
    counter = 0

    for _ in range(500):
        op = rng.choice(["insert", "remove", "move"]) if items else "insert"
        if op == "insert":
            counter += 1
            block_id = f"b{counter}"
            at = rng.randint(0, len(items))
            entry = CompositionEntry(block_id=block_id, block_type=BlockTypeId.SKILL, position=0)
            items = positions.insert_at(items, entry, at)
            reference.insert(at, block_id)
        elif op == "remove":
            block_id = rng.choice(reference)
            positions.remove_block(items, block_id)
            reference.remove(block_id)
        else:
            block_id = rng.choice(reference)
            to = rng.randrange(len(items))
            positions.move_block(items, block_id, to)
            reference.remove(block_id)
            reference.insert(to, block_id)

        assert positions.is_dense(i.position for i in items)
        assert order(items) == reference
