"""
Модели данных для анализаторов текстовых сигналов.
"""

from dataclasses import dataclass, field
from typing import List


@dataclass
class FlagSet:
    """Флаги последней реплики менеджера"""
    red: List[str] = field(default_factory=list)     # признаки мошенничества
    green: List[str] = field(default_factory=list)   # укрепляющие доверие упоминания
    gray: List[str] = field(default_factory=list)    # неоднозначные (откладывание)

    @property
    def has_red(self) -> bool:
        return bool(self.red)


@dataclass
class ToneSummary:
    """Сводный тон по окну реплик менеджера"""
    polite: int = 0        # сумма бонусов вежливости (без ограничения)
    pressure: int = 0      # сумма штрафов за давление (<= 0)
    obsequious: int = 0    # сколько реплик с поддакиванием без фактов
