"""
Evidence Classifier.

Нормализует сырые идентификаторы доказательств (кнопки/файлы менеджера)
в канонический словарь и раскладывает их по уровням Hard / Medium / Support.

Использование:
    from persona_trust.evidence import EvidenceClassifier

    classifier = EvidenceClassifier()
    classifier.normalize("Договор")          # "coop_contract_pdf"
    summary = classifier.summarize(["demand", "DEMAND", "сайт"])
    summary.hard, summary.medium             # 1, 1
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, List, Optional

from persona_trust.engine_config import EngineConfig, load_engine_config


class EvidenceTier(Enum):
    """Уровень доказательности"""
    HARD = "hard"         # документы-основания: деманд, полный контракт
    MEDIUM = "medium"     # проверяемые вторичные признаки
    SUPPORT = "support"   # вспомогательные материалы
    UNKNOWN = "unknown"   # ключ вне словаря (проходит как есть)


@dataclass(frozen=True)
class EvidenceSummary:
    """
    Результат классификации набора доказательств.

    Attributes:
        keys: Уникальные канонические ключи (порядок первого появления)
        hard: Количество уникальных HARD
        medium: Количество уникальных MEDIUM
        support: Количество уникальных SUPPORT
    """
    keys: tuple = field(default_factory=tuple)
    hard: int = 0
    medium: int = 0
    support: int = 0

    @property
    def unique(self) -> int:
        return len(self.keys)

    @property
    def key_set(self) -> FrozenSet[str]:
        return frozenset(self.keys)

    def has(self, key: str) -> bool:
        return key in self.key_set

    def has_any(self, keys: Iterable[str]) -> bool:
        return any(k in self.key_set for k in keys)


_WHITESPACE = re.compile(r"\s+")


class EvidenceClassifier:
    """
    Классификатор доказательств.

    Чистая функция от входа: порядок и повторы сырых строк не влияют
    на набор ключей и счётчики уровней.
    """

    def __init__(self, config: Optional[EngineConfig] = None):
        self._config = config or load_engine_config()
        evidence = self._config.evidence

        self._aliases: Dict[str, str] = {
            self._clean(raw): str(canonical)
            for raw, canonical in (evidence.get("aliases") or {}).items()
        }
        self._tiers: Dict[str, EvidenceTier] = {}
        for tier in (EvidenceTier.HARD, EvidenceTier.MEDIUM, EvidenceTier.SUPPORT):
            for key in evidence.tiers.get(tier.value, []) or []:
                self._tiers[str(key)] = tier

        self.full_contract_keys = frozenset(evidence.get("full_contract_keys", []))
        self.demand_keys = frozenset(evidence.get("demand_keys", []))
        self.sample_contract_keys = frozenset(evidence.get("sample_contract_keys", []))
        self.business_card_keys = frozenset(evidence.get("business_card_keys", []))
        self.price_breakdown_keys = frozenset(evidence.get("price_breakdown_keys", []))

    @staticmethod
    def _clean(raw: Any) -> str:
        if raw is None:
            return ""
        return _WHITESPACE.sub(" ", str(raw)).strip().lower()

    def normalize(self, raw: Any) -> str:
        """
        Привести сырой идентификатор к каноническому ключу.

        lower + trim + alias; неизвестная строка возвращается в очищенном виде.
        Пустой вход → "".
        """
        cleaned = self._clean(raw)
        if not cleaned:
            return ""
        if cleaned in self._aliases:
            return self._aliases[cleaned]
        # "Demand-Letter" / "demand letter" → "demand_letter"
        underscored = re.sub(r"[\s\-]+", "_", cleaned)
        if underscored in self._tiers:
            return underscored
        return self._aliases.get(underscored, cleaned)

    def normalize_all(self, raws: Optional[Iterable[Any]]) -> List[str]:
        """Нормализовать список, убрать пустые и дубли (порядок первого появления)."""
        result: List[str] = []
        seen = set()
        for raw in raws or []:
            key = self.normalize(raw)
            if key and key not in seen:
                seen.add(key)
                result.append(key)
        return result

    def tier_of(self, key: str) -> EvidenceTier:
        """Уровень канонического ключа"""
        return self._tiers.get(key, EvidenceTier.UNKNOWN)

    def summarize(self, raws: Optional[Iterable[Any]]) -> EvidenceSummary:
        """Классифицировать набор сырых идентификаторов."""
        keys = self.normalize_all(raws)
        counts = {EvidenceTier.HARD: 0, EvidenceTier.MEDIUM: 0, EvidenceTier.SUPPORT: 0}
        for key in keys:
            tier = self.tier_of(key)
            if tier in counts:
                counts[tier] += 1
        return EvidenceSummary(
            keys=tuple(keys),
            hard=counts[EvidenceTier.HARD],
            medium=counts[EvidenceTier.MEDIUM],
            support=counts[EvidenceTier.SUPPORT],
        )

    def is_demand(self, key: str) -> bool:
        return key in self.demand_keys

    def is_full_contract(self, key: str) -> bool:
        return key in self.full_contract_keys
