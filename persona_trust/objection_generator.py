"""
Objection Generator — возражения персонажа при нехватке доверия.

Срабатывает только при наличии триггера (цена, разрешение на работу,
слот в посольство, способ оплаты, или диалог уже на стадии Payment).
Триггер определяет пул, реплика выбирается seeded-генератором и не
повторяет возражение прошлого хода; уже звучавшие в сессии реплики
берутся только когда свежих не осталось.

Использование:
    from persona_trust.objection_generator import ObjectionGenerator, EvidenceGaps

    generator = ObjectionGenerator()
    objection = generator.choose(
        session_id="sess_1", turn=3, latest_message="Сколько стоит?",
        trust=45, gaps=EvidenceGaps(has_demand=True),
    )
    objection.text, objection.suggested_stage
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional

from persona_trust.dialogue import Stage
from persona_trust.engine_config import EngineConfig, PhraseBank, load_engine_config, load_phrases
from persona_trust.evidence import EvidenceClassifier, EvidenceSummary
from persona_trust.logger import logger
from persona_trust.rng import SeededRandomFactory, pick


class ObjectionTrigger(Enum):
    """Триггер возражения"""
    PRICE = "price"
    WORK_PERMIT = "work_permit"
    SLOT = "slot"
    PAYMENT_CHANNEL = "payment_channel"
    PAYMENT_STAGE = "payment_stage"


# Триггер → пул реплик
TRIGGER_POOLS: Dict[ObjectionTrigger, str] = {
    ObjectionTrigger.PRICE: "objection_budget",
    ObjectionTrigger.WORK_PERMIT: "objection_post_permit",
    ObjectionTrigger.SLOT: "objection_slot_first",
    ObjectionTrigger.PAYMENT_CHANNEL: "objection_generic",
    ObjectionTrigger.PAYMENT_STAGE: "objection_generic",
}

FALLBACK_POOL = "objection_fallback"

# Порядок важен: первый совпавший триггер определяет пул
TRIGGER_PATTERNS: List[tuple] = [
    (ObjectionTrigger.PRICE, r"(сколько стоит|цен[аыу]|ценник|дорог|стоимост|прайс|\bprice\b|\bcost\b|€|евро)"),
    (ObjectionTrigger.WORK_PERMIT, r"(разрешени[еяю] на работу|разрешени[ея]|work permit|\bpermit\b|zaměstnaneck)"),
    (ObjectionTrigger.SLOT, r"(слот|запис[ьи] в посольств|посольств|очеред|\bslot|embassy)"),
    (ObjectionTrigger.PAYMENT_CHANNEL, r"(оплат|переве(д|с)|банк|крипт|usdt|инвойс|сч[её]т|реквизит|invoice|payment|wallet)"),
]

_COMPILED: List[tuple] = [
    (trigger, re.compile(pattern, re.IGNORECASE)) for trigger, pattern in TRIGGER_PATTERNS
]


@dataclass(frozen=True)
class EvidenceGaps:
    """Чего не хватает в доказательствах"""
    has_demand: bool = False
    has_full_contract: bool = False
    unique_kinds: int = 0

    @classmethod
    def from_summary(cls, summary: EvidenceSummary, classifier: EvidenceClassifier) -> "EvidenceGaps":
        return cls(
            has_demand=summary.has_any(classifier.demand_keys),
            has_full_contract=summary.has_any(classifier.full_contract_keys),
            unique_kinds=summary.unique,
        )

    @property
    def has_gaps(self) -> bool:
        return not (self.has_demand and self.has_full_contract and self.unique_kinds >= 2)

    def suggested_stage(self) -> Stage:
        """Следующая стадия по недостающим доказательствам"""
        if not self.has_demand:
            return Stage.DEMAND
        if not self.has_full_contract:
            return Stage.CONTRACT
        if self.unique_kinds < 2:
            return Stage.CANDIDATE
        return Stage.PAYMENT


@dataclass
class Objection:
    """Выбранное возражение"""
    text: str
    pool: str
    trigger: ObjectionTrigger
    suggested_stage: Stage
    repeated_draw: bool = False


def detect_trigger(text: Optional[str], at_payment_stage: bool = False) -> Optional[ObjectionTrigger]:
    """Триггер возражения в реплике менеджера (None если нет)"""
    t = "" if text is None else str(text)
    for trigger, pattern in _COMPILED:
        if pattern.search(t):
            return trigger
    if at_payment_stage:
        return ObjectionTrigger.PAYMENT_STAGE
    return None


class ObjectionGenerator:
    """
    Генератор возражений.

    Attributes:
        trust_ceiling: При доверии не ниже и без пробелов в доказательствах
                       возражение не выдаётся
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        phrases: Optional[PhraseBank] = None,
        rng_factory: Optional[SeededRandomFactory] = None,
    ):
        self.config = config or load_engine_config()
        self.phrases = phrases or load_phrases()
        self.rng_factory = rng_factory or SeededRandomFactory()
        self.trust_ceiling = self.config.policy.get("objection_trust_ceiling", 90)

    @staticmethod
    def _fresh(
        lines: List[str],
        last_objection: str,
        used: Optional[Callable[[str], bool]],
    ) -> List[str]:
        last = (last_objection or "").strip()
        return [
            line for line in lines
            if line.strip() != last and not (used is not None and used(line))
        ]

    def choose(
        self,
        session_id: str,
        turn: int,
        latest_message: Optional[str],
        trust: int,
        gaps: EvidenceGaps,
        last_objection: str = "",
        at_payment_stage: bool = False,
        used: Optional[Callable[[str], bool]] = None,
    ) -> Optional[Objection]:
        """
        Выбрать возражение.

        Args:
            session_id: ID сессии (seed)
            turn: Номер хода (seed)
            latest_message: Последняя реплика менеджера
            trust: Текущее доверие
            gaps: Пробелы в доказательствах
            last_objection: Возражение прошлого хода (не повторяем)
            at_payment_stage: Диалог уже на стадии Payment
            used: Реплика уже звучала в сессии (такие берутся в последнюю очередь)

        Returns:
            Objection или None (нет триггера / доверие достаточно)
        """
        trigger = detect_trigger(latest_message, at_payment_stage)
        if trigger is None:
            return None
        if trust >= self.trust_ceiling and not gaps.has_gaps:
            return None

        pool_name = TRIGGER_POOLS[trigger]
        pool = self.phrases.pool(pool_name) or self.phrases.pool("objection_generic")
        if not pool:
            return None

        rng = self.rng_factory.for_turn(session_id, turn, "objection")
        text = pick(rng, pool)
        repeated = bool(last_objection) and text.strip() == last_objection.strip()
        if repeated or (used is not None and used(text)):
            fallback = self.phrases.pool(FALLBACK_POOL) or []
            sources = [
                (pool_name, self._fresh(pool, last_objection, used)),
                (FALLBACK_POOL, self._fresh(fallback, last_objection, used)),
            ]
            if repeated:
                sources.reverse()
            for name, lines in sources:
                if lines:
                    text, pool_name = pick(rng, lines), name
                    break
            else:
                if repeated and fallback:
                    text = pick(rng, fallback, exclude=[last_objection])
                    pool_name = FALLBACK_POOL

        objection = Objection(
            text=text,
            pool=pool_name,
            trigger=trigger,
            suggested_stage=gaps.suggested_stage(),
            repeated_draw=repeated,
        )
        logger.event(
            "objection_selected",
            trigger=trigger.value,
            pool=pool_name,
            suggested_stage=objection.suggested_stage.value,
            trust=trust,
        )
        return objection
