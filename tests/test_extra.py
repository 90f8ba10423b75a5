import itertools

import replica.extra


def test_replicate_makes_independent_copies():
    shared = [1]
    original = {"a": shared, "b": shared}

    copies = replica.extra.replicate(original, 3)

    assert len(copies) == 3
    assert all(copy == original for copy in copies)
    assert len({id(copy["a"]) for copy in copies} | {id(shared)}) == 4
    assert all(copy["a"] is copy["b"] for copy in copies)


def test_replicate_zero():
    assert replica.extra.replicate([1], 0) == []


def test_repeatcall():
    counter = itertools.count()

    assert replica.extra.repeatcall(lambda: next(counter), 3) == [0, 1, 2]
