"""
Подсказки менеджеру: грубая оценка его части диалога.

Лёгкая эвристика для фронта тренажёра (POST /api/score), к доверию
персонажа отношения не имеет, кроме поля trust.
"""

import re
from typing import Any, Dict, List, Optional

from persona_trust.dialogue import clamp, coerce_history
from persona_trust.trust_scorer import TrustScorer


GREETING = re.compile(r"(здрав|прив|добрый)", re.IGNORECASE)
VERIFIABLE_FACT = re.compile(r"renovogo", re.IGNORECASE)
FINAL_CTA = re.compile(r"(контракт|сч[её]т|инвойс|готовы начать)", re.IGNORECASE)

GREETING_POINTS = 15
FACT_POINTS = 15
EVIDENCE_POINTS = 35
CTA_POINTS = 35
MIN_EVIDENCES = 2
COACHING_BASE_TRUST = 20


def score_manager(
    history: Any,
    evidences: Optional[List[str]] = None,
    scorer: Optional[TrustScorer] = None,
) -> Dict[str, Any]:
    """
    Оценить реплики менеджера.

    Args:
        history: История диалога [{role, content}]
        evidences: Приложенные доказательства (сырые ключи)
        scorer: Скорер доверия (по умолчанию — с конфигом из пакета)

    Returns:
        {"final", "good", "bad", "trust", "evidences"}
    """
    turns = coerce_history(history)
    user_texts = [t.text for t in turns if t.is_user]
    text = "\n".join(user_texts)
    evidences = list(evidences or [])

    good: List[str] = []
    bad: List[str] = []
    final = 0

    if GREETING.search(text):
        good.append("Вежливое приветствие")
        final += GREETING_POINTS
    else:
        bad.append("Нет приветствия")

    if VERIFIABLE_FACT.search(text):
        good.append("Дали проверяемый факт")
        final += FACT_POINTS

    if len(evidences) >= MIN_EVIDENCES:
        good.append("Приложили ≥2 доказательства")
        final += EVIDENCE_POINTS
    else:
        bad.append("Мало доказательств")

    if FINAL_CTA.search(text):
        good.append("Есть финальный CTA")
        final += CTA_POINTS

    scorer = scorer or TrustScorer()
    trust = scorer.compute(
        COACHING_BASE_TRUST,
        evidences,
        [],
        user_texts[-1] if user_texts else "",
    )

    return {
        "final": int(clamp(final)),
        "good": good,
        "bad": bad,
        "trust": trust,
        "evidences": len(evidences),
    }
