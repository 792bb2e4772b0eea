"""
Text Signal Analyzers — regex-детекторы сигналов в репликах менеджера.

Использование:
    from persona_trust.text_signals import detect_flags, politeness_score

    flags = detect_flags("Платите сразу в USDT, гарантирую 100%")
    flags.red  # ['crypto_upfront', 'impossible_guarantee']
"""

from .analyzers import (
    as_text,
    business_focus_score,
    concreteness_score,
    count_payment_mentions,
    detect_flags,
    info_topics,
    is_courtesy,
    is_obsequious,
    is_personal_question,
    is_unrealistic_timeline,
    mentions_payment,
    politeness_score,
    pressure_score,
    signal_report,
    tone_from_messages,
)
from .models import FlagSet, ToneSummary

__all__ = [
    "FlagSet",
    "ToneSummary",
    "as_text",
    "business_focus_score",
    "concreteness_score",
    "count_payment_mentions",
    "detect_flags",
    "info_topics",
    "is_courtesy",
    "is_obsequious",
    "is_personal_question",
    "is_unrealistic_timeline",
    "mentions_payment",
    "politeness_score",
    "pressure_score",
    "signal_report",
    "tone_from_messages",
]
