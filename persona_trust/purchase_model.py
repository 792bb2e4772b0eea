"""
Purchase Decision Model — стохастическое решение персонажа о покупке.

Предусловия (все обязательны): визитка, деманд, пример контракта,
полный контракт о сотрудничестве, доверие >= trust_floor.

Если предусловия выполнены:
    p = step(trust) + бонус за качество отработки возражений, p <= ceiling
    draw < p → покупка: число кандидатов (перекос к малым) и канал оплаты.

Решение детерминировано для (session_id, turn) и необратимо: после
покупки модель для сессии больше не вызывается.
"""

import re
from dataclasses import dataclass
from typing import Dict, List, Optional

from persona_trust.engine_config import EngineConfig, PhraseBank, load_engine_config, load_phrases
from persona_trust.evidence import EvidenceClassifier, EvidenceSummary
from persona_trust.logger import logger
from persona_trust.rng import SeededRandomFactory, weighted_index


# Маркеры качественной отработки возражений (категория → паттерн)
OBJECTION_HANDLING_MARKERS: Dict[str, str] = {
    "empathy": r"(понимаю ваш|понимаю,|понимаю вас|ваши опасения|справедлив|i understand)",
    "value_over_price": r"(ценност|окупа|за эти деньги вы|вы получаете|что входит|value)",
    "safe_small_start": r"(один кандидат|одного кандидата|на тест|с малого|небольш(ой|ого) партии|без риска|start small)",
    "partnership": r"(партн[её]р|вместе|долгосрочн|помогаем людям|наша миссия|partnership)",
    "soft_close": r"(когда будете готовы|решать вам|без спешки|если вам удобно|не тороплю|no pressure)",
}

# Маркеры уговоров сменить канал оплаты на альтернативный
CHANNEL_PITCH_MARKERS: List[str] = [
    r"(usdt|крипт|crypto|stablecoin|binance)",
    r"(без комиссии|дешевле|no fee|cheaper)",
    r"(быстрее|моментальн|мгновенн|instant|faster)",
]

_HANDLING = {name: re.compile(p, re.IGNORECASE) for name, p in OBJECTION_HANDLING_MARKERS.items()}
_PITCH = [re.compile(p, re.IGNORECASE) for p in CHANNEL_PITCH_MARKERS]


def unit_word(units: int) -> str:
    """Согласование слова «кандидат» с числом"""
    n = abs(units) % 100
    if 11 <= n <= 14:
        return "кандидатов"
    last = n % 10
    if last == 1:
        return "кандидат"
    if 2 <= last <= 4:
        return "кандидата"
    return "кандидатов"


def _strength(hits: int, strong_count: int) -> str:
    if hits <= 0:
        return "none"
    if hits >= strong_count:
        return "strong"
    return "weak"


@dataclass
class PurchaseDecision:
    """
    Результат оценки покупки.

    Attributes:
        committed: Покупка состоялась на этом ходу
        probability: Итоговая вероятность покупки
        draw: Выпавшее значение [0, 1)
        handling_quality: none / weak / strong
        units: Число кандидатов (0 если не committed)
        channel: Канал оплаты ("" если не committed)
        reply: Реплика о покупке ("" если не committed)
    """
    committed: bool
    probability: float
    draw: float
    handling_quality: str = "none"
    units: int = 0
    channel: str = ""
    reply: str = ""


class PurchaseModel:
    """Модель решения о покупке."""

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        phrases: Optional[PhraseBank] = None,
        classifier: Optional[EvidenceClassifier] = None,
        rng_factory: Optional[SeededRandomFactory] = None,
    ):
        self.config = config or load_engine_config()
        self.phrases = phrases or load_phrases()
        self.classifier = classifier or EvidenceClassifier(self.config)
        self.rng_factory = rng_factory or SeededRandomFactory()
        self._cfg = self.config.purchase

    def missing_preconditions(self, summary: EvidenceSummary, trust: int) -> List[str]:
        """Список невыполненных предусловий (пустой = можно оценивать)"""
        c = self.classifier
        missing = []
        if not summary.has_any(c.business_card_keys):
            missing.append("business_card")
        if not summary.has_any(c.demand_keys):
            missing.append("demand")
        if not summary.has_any(c.sample_contract_keys):
            missing.append("sample_contract")
        if not summary.has_any(c.full_contract_keys):
            missing.append("full_contract")
        if trust < self._cfg.trust_floor:
            missing.append("trust")
        return missing

    def base_probability(self, trust: int) -> float:
        """Ступенчатая вероятность по доверию"""
        for step in sorted(self._cfg.base_probability, key=lambda s: -s["min_trust"]):
            if trust >= step["min_trust"]:
                return float(step["p"])
        return 0.0

    def handling_quality(self, text: Optional[str]) -> str:
        hits = sum(1 for p in _HANDLING.values() if p.search(text or ""))
        return _strength(hits, self._cfg.strong_marker_count)

    def alternate_channel_probability(self, text: Optional[str], trust: int) -> float:
        """Вероятность согласиться на альтернативный канал (< 1)"""
        channels = self._cfg.channels
        hits = sum(1 for p in _PITCH if p.search(text or ""))
        strength = channels.pitch_strength[_strength(hits, channels.strong_marker_count)]
        scaled = strength * (trust / float(self._cfg.trust_floor))
        return max(0.0, min(channels.alternate_ceiling, scaled))

    def evaluate(
        self,
        session_id: str,
        turn: int,
        trust: int,
        summary: EvidenceSummary,
        latest_message: Optional[str],
        already_committed: bool = False,
    ) -> Optional[PurchaseDecision]:
        """
        Оценить покупку на ходу.

        Returns:
            None — модель не применяется (уже куплено или предусловия не выполнены);
            PurchaseDecision — результат розыгрыша
        """
        if already_committed:
            return None
        missing = self.missing_preconditions(summary, trust)
        if missing:
            logger.debug("Purchase preconditions not met", missing=missing, trust=trust)
            return None

        quality = self.handling_quality(latest_message)
        probability = self.base_probability(trust) + float(self._cfg.objection_handling_bonus[quality])
        probability = max(0.0, min(float(self._cfg.probability_ceiling), probability))

        rng = self.rng_factory.for_turn(session_id, turn, "purchase")
        draw = rng.random()
        logger.metric("purchase_probability", round(probability, 3), trust=trust, quality=quality)

        if draw >= probability:
            return PurchaseDecision(
                committed=False, probability=probability, draw=draw, handling_quality=quality
            )

        units = weighted_index(rng, self._cfg.unit_weights) + 1
        alternate_p = self.alternate_channel_probability(latest_message, trust)
        channels = self._cfg.channels
        channel = channels.alternate if rng.random() < alternate_p else channels.default

        reply = self.phrases.template(
            f"commit_{channel}", units=units, unit_word=unit_word(units)
        ) or self.phrases.template(
            f"commit_{channels.default}", units=units, unit_word=unit_word(units)
        )

        logger.event("purchase_committed", units=units, channel=channel, probability=round(probability, 3))
        return PurchaseDecision(
            committed=True,
            probability=probability,
            draw=draw,
            handling_quality=quality,
            units=units,
            channel=channel,
            reply=reply,
        )
