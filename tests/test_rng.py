"""
Тесты детерминированной случайности.
"""

import random

import pytest

from persona_trust.rng import SeededRandomFactory, pick, weighted_index


class TestSeededRandomFactory:
    """Один (сессия, ход, соль) → одна последовательность"""

    def test_same_key_same_sequence(self):
        factory = SeededRandomFactory()
        a = factory.for_turn("s1", 3, "purchase")
        b = factory.for_turn("s1", 3, "purchase")
        assert [a.random() for _ in range(5)] == [b.random() for _ in range(5)]

    def test_different_turn_or_salt_differs(self):
        factory = SeededRandomFactory()
        base = factory.seed_for("s1", 3, "purchase")
        assert factory.seed_for("s1", 4, "purchase") != base
        assert factory.seed_for("s1", 3, "objection") != base
        assert factory.seed_for("s2", 3, "purchase") != base

    def test_namespace_changes_seed(self):
        assert SeededRandomFactory("a").seed_for("s1", 1) != SeededRandomFactory("b").seed_for("s1", 1)

    def test_new_factory_reproduces(self):
        assert SeededRandomFactory().seed_for("s1", 7, "x") == SeededRandomFactory().seed_for("s1", 7, "x")


class TestPick:
    """Выбор из пула с исключениями"""

    def test_exclude_respected(self):
        rng = random.Random(1)
        for _ in range(50):
            assert pick(rng, ["a", "b"], exclude=["a"]) == "b"

    def test_all_excluded_falls_back(self):
        assert pick(random.Random(1), ["a"], exclude=["a"]) == "a"

    def test_empty_raises(self):
        with pytest.raises(ValueError):
            pick(random.Random(1), [])


class TestWeightedIndex:
    """Индекс по весам"""

    def test_zero_weights(self):
        assert weighted_index(random.Random(1), [0, 0]) == 0

    def test_skew_to_first(self):
        rng = random.Random(42)
        draws = [weighted_index(rng, [0.9, 0.1]) for _ in range(1000)]
        assert draws.count(0) > draws.count(1)

    def test_index_in_range(self):
        rng = random.Random(7)
        for _ in range(200):
            assert 0 <= weighted_index(rng, [0.5, 0.3, 0.2]) <= 2
