"""
Seeded randomness.

Генератор на ход = random.Random, засеянный SHA-256 от
(session_id, turn, salt). Одинаковые сессия+ход+соль → одинаковые
выборки; соседние ходы расходятся. Фабрика инжектируется в генератор
возражений и модель покупки, так что тесты могут подставить свою.
"""

import hashlib
import random
from typing import Any, List, Sequence, TypeVar

T = TypeVar("T")


class SeededRandomFactory:
    """Фабрика детерминированных генераторов"""

    def __init__(self, namespace: str = "persona_trust"):
        self.namespace = namespace

    def seed_for(self, session_id: Any, turn: Any, salt: str = "") -> int:
        material = f"{self.namespace}|{session_id}|{turn}|{salt}".encode("utf-8")
        return int.from_bytes(hashlib.sha256(material).digest()[:8], "big")

    def for_turn(self, session_id: Any, turn: Any, salt: str = "") -> random.Random:
        """Генератор для (сессия, ход, соль)"""
        return random.Random(self.seed_for(session_id, turn, salt))


def pick(rng: random.Random, options: Sequence[T], exclude: Sequence[T] = ()) -> T:
    """
    Выбрать элемент, по возможности не из exclude.

    Если после исключения ничего не осталось — выбор из всего списка.
    """
    if not options:
        raise ValueError("pick() from empty sequence")
    allowed: List[T] = [o for o in options if o not in exclude] or list(options)
    return allowed[rng.randrange(len(allowed))]


def weighted_index(rng: random.Random, weights: Sequence[float]) -> int:
    """Индекс по весам (веса не обязаны давать в сумме 1)"""
    total = float(sum(weights))
    if total <= 0:
        return 0
    point = rng.random() * total
    acc = 0.0
    for index, weight in enumerate(weights):
        acc += weight
        if point < acc:
            return index
    return len(weights) - 1
