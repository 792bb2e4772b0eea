"""
Trust Scorer — детерминированный расчёт доверия персонажа.

computeTrust(baseTrust, evidences, history, lastUserText) → int [0, 100]

Доверие НЕ хранится в сессии: каждый ход пересчитывается с нуля
из базового доверия, накопленных доказательств и полной истории.

Порядок расчёта:
    1.  clamp(base)
    2.  доказательства (hard/medium/support, полный контракт, разнообразие)
    3.  бонусы стадий из истории
    4.  тон окна реплик (вежливость, давление, угодливость)
    5.  конкретика + деловой фокус последней реплики
    6.  красные / зелёные флаги последней реплики
    7.  квота личных вопросов (кумулятивная, не сбрасывается)
    8.  бонус вежливости с кулдауном в ходах
    9.  микро-кредиты за «нормальный» диалог
    10. нелинейные ворота 30 / 60 / 75
    11. штраф за стадию Payment ниже третьих ворот
    12. округление half-up + clamp

Использование:
    from persona_trust.trust_scorer import TrustScorer

    scorer = TrustScorer()
    trust = scorer.compute(20, ["demand_letter", "website"], history, "Здравствуйте!")
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from persona_trust.dialogue import (
    DialogueTurn,
    Stage,
    clamp,
    coerce_history,
    coerce_number,
    round_half_up,
    user_messages,
)
from persona_trust.engine_config import EngineConfig, load_engine_config
from persona_trust.evidence import EvidenceClassifier, EvidenceSummary
from persona_trust.text_signals import (
    FlagSet,
    business_focus_score,
    concreteness_score,
    count_payment_mentions,
    detect_flags,
    info_topics,
    is_courtesy,
    is_personal_question,
    tone_from_messages,
)


@dataclass
class TrustBreakdown:
    """
    Разбор расчёта доверия (для логов, тестов и отладки).

    Attributes:
        trust: Итоговое доверие [0, 100]
        raw: Счёт до округления
        components: Вклад каждого шага
        evidence: Сводка доказательств
        flags: Флаги последней реплики
        gate_ceiling: Потолок, который наложили ворота (100 = не ограничено)
        gates_passed: Какие ворота пройдены
    """
    trust: int
    raw: float
    components: Dict[str, float] = field(default_factory=dict)
    evidence: EvidenceSummary = field(default_factory=EvidenceSummary)
    flags: FlagSet = field(default_factory=FlagSet)
    gate_ceiling: int = 100
    gates_passed: Dict[str, bool] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "trust": self.trust,
            "raw": round(self.raw, 2),
            "components": {k: round(v, 2) for k, v in self.components.items()},
            "evidence": {
                "unique": self.evidence.unique,
                "hard": self.evidence.hard,
                "medium": self.evidence.medium,
                "support": self.evidence.support,
            },
            "red_flags": list(self.flags.red),
            "green_flags": list(self.flags.green),
            "gate_ceiling": self.gate_ceiling,
            "gates_passed": dict(self.gates_passed),
        }


class TrustScorer:
    """
    Скорер доверия.

    Без скрытого состояния и случайности: одинаковый вход → одинаковый выход.
    Все веса и пороги берутся из EngineConfig.
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        classifier: Optional[EvidenceClassifier] = None,
    ):
        self.config = config or load_engine_config()
        self.classifier = classifier or EvidenceClassifier(self.config)
        self._scoring = self.config.scoring

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def compute(
        self,
        base_trust: Any = None,
        evidences: Any = None,
        history: Any = None,
        last_user_text: Any = "",
    ) -> int:
        """Итоговое доверие [0, 100]"""
        return self.explain(base_trust, evidences, history, last_user_text).trust

    def explain(
        self,
        base_trust: Any = None,
        evidences: Any = None,
        history: Any = None,
        last_user_text: Any = "",
    ) -> TrustBreakdown:
        """
        Рассчитать доверие с разбором по шагам.

        Args:
            base_trust: Базовое доверие (не число → default_base_trust)
            evidences: Сырые ключи доказательств (None → [])
            history: [{role, content, stage?}, ...] (None → [])
            last_user_text: Последняя реплика менеджера

        Returns:
            TrustBreakdown
        """
        s = self._scoring
        default_base = coerce_number(s.get("default_base_trust", 20), 20)
        base = clamp(coerce_number(base_trust, default_base))

        raw_evidence = evidences if isinstance(evidences, (list, tuple, set)) else []
        summary = self.classifier.summarize(raw_evidence)
        turns = coerce_history(history)
        last_text = "" if last_user_text is None else str(last_user_text)
        messages = user_messages(turns, last_text)
        flags = detect_flags(last_text)

        passes_gate1 = summary.hard >= 1
        passes_gate2 = summary.hard >= 2 or (summary.hard >= 1 and summary.medium >= 1)
        passes_gate3 = summary.hard >= 2 and not flags.has_red
        ceiling = self._gate_ceiling(passes_gate1, passes_gate2, passes_gate3)

        components: Dict[str, float] = {"base": base}
        components["evidence"] = self._evidence_points(summary)
        components["stages"] = self._stage_points(turns, summary)
        components["tone"] = self._tone_points(messages)
        components["concreteness"] = concreteness_score(last_text)
        components["business_focus"] = business_focus_score(last_text)
        components["flags"] = self._flag_points(flags)

        running = sum(components.values())
        components["personal_questions"] = self._personal_question_points(
            messages, last_text, min(running, ceiling)
        )
        components["courtesy"] = self._courtesy_points(messages, last_text)
        components["micro_credits"] = self._micro_credit_points(messages, passes_gate2)

        score = sum(components.values())
        gates = s.gates
        if score > gates.gate1_cap and not passes_gate1:
            score = gates.gate1_cap
        if score > gates.gate2_cap and not passes_gate2:
            score = gates.gate2_cap
        if score > gates.gate3_cap and not passes_gate3:
            score = gates.gate3_cap

        if self._saw_stage(turns, Stage.PAYMENT) and score < gates.gate3_cap:
            penalty = gates.get("payment_stage_penalty", 0)
            components["payment_stage"] = penalty
            score = max(0, score + penalty)

        trust = int(clamp(round_half_up(clamp(score))))
        return TrustBreakdown(
            trust=trust,
            raw=score,
            components=components,
            evidence=summary,
            flags=flags,
            gate_ceiling=ceiling,
            gates_passed={
                "gate1": passes_gate1,
                "gate2": passes_gate2,
                "gate3": passes_gate3,
            },
        )

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _gate_ceiling(self, gate1: bool, gate2: bool, gate3: bool) -> int:
        gates = self._scoring.gates
        if not gate1:
            return gates.gate1_cap
        if not gate2:
            return gates.gate2_cap
        if not gate3:
            return gates.gate3_cap
        return 100

    def _evidence_points(self, summary: EvidenceSummary) -> float:
        s = self._scoring
        points = summary.hard * s.weights.hard
        points += min(s.medium_cap, summary.medium) * s.weights.medium
        points += min(s.support_cap, summary.support) * s.weights.support
        if summary.has_any(self.classifier.full_contract_keys):
            points += s.full_contract_bonus
        for step in s.get("diversity", []) or []:
            if summary.unique >= step["min_kinds"]:
                points += step["bonus"]
        return points

    @staticmethod
    def _saw_stage(turns: List[DialogueTurn], stage: Stage) -> bool:
        return any(t.stage == stage for t in turns)

    def _stage_points(self, turns: List[DialogueTurn], summary: EvidenceSummary) -> float:
        bonus = self._scoring.stage_bonus
        points = 0
        if self._saw_stage(turns, Stage.CANDIDATE) and (summary.hard + summary.medium) > 0:
            points += bonus.candidate
        if self._saw_stage(turns, Stage.CONTRACT) and summary.hard > 0:
            points += bonus.contract
        return points

    def _tone_points(self, messages: List[str]) -> float:
        tone_cfg = self._scoring.tone
        tone = tone_from_messages(messages[-tone_cfg.window:])
        points = min(tone_cfg.politeness_cap, tone.polite) + tone.pressure
        if tone.obsequious >= tone_cfg.obsequious_threshold:
            points += tone_cfg.obsequious_penalty
        return points

    def _flag_points(self, flags: FlagSet) -> float:
        red_weights = self._scoring.red_flags
        green_weights = self._scoring.green_flags
        points = sum(red_weights.get(name, 0) for name in flags.red)
        points += sum(green_weights.get(name, 0) for name in flags.green)
        return points

    def _personal_question_points(
        self,
        messages: List[str],
        last_text: str,
        effective_trust: float,
    ) -> float:
        """
        Квота личных вопросов.

        Ниже floor — штраф за каждый личный вопрос. Выше — бонус, пока
        кумулятивное число уже заданных вопросов меньше cap текущей ступени.
        Квота считается за весь диалог и не сбрасывается при переходе ступени.
        """
        if not is_personal_question(last_text):
            return 0

        pq = self._scoring.personal_questions
        if effective_trust < pq.floor:
            return pq.penalty

        bracket = None
        for step in sorted(pq.brackets, key=lambda b: b["min_trust"]):
            if effective_trust >= step["min_trust"]:
                bracket = step
        if bracket is None:
            return 0

        asked_before = sum(1 for m in messages[:-1] if is_personal_question(m))
        if asked_before < bracket["cap"]:
            return bracket["bonus"]
        return 0

    def _courtesy_points(self, messages: List[str], last_text: str) -> float:
        """
        +bonus за вежливость последней реплики, если за предыдущие
        cooldown_turns реплик менеджера бонус не начислялся.
        Начисления восстанавливаются проигрыванием истории.
        """
        if not last_text.strip() or not is_courtesy(last_text):
            return 0

        cfg = self._scoring.courtesy
        last_granted: Optional[int] = None
        granted_now = False
        for index, message in enumerate(messages):
            granted_now = False
            if not is_courtesy(message):
                continue
            if last_granted is None or index - last_granted > cfg.cooldown_turns:
                last_granted = index
                granted_now = True
        return cfg.bonus if granted_now else 0

    def _micro_credit_points(self, messages: List[str], passes_gate2: bool) -> float:
        cfg = self._scoring.micro_credits
        window = messages[-cfg.window:]
        topics = set()
        for message in window:
            topics |= info_topics(message)
        points = min(cfg.cap, len(topics) * cfg.per_topic)

        pay_hits = count_payment_mentions(messages[-cfg.pay_window:])
        early_pressure = pay_hits >= cfg.pay_hits_threshold and not passes_gate2
        if not early_pressure:
            points += cfg.no_pressure_bonus
        return points


_default_scorer: Optional[TrustScorer] = None


def compute_trust(
    base_trust: Any = None,
    evidences: Any = None,
    history: Any = None,
    last_user_text: Any = "",
) -> int:
    """Расчёт доверия скорером с конфигурацией по умолчанию"""
    global _default_scorer
    if _default_scorer is None:
        _default_scorer = TrustScorer()
    return _default_scorer.compute(base_trust, evidences, history, last_user_text)
