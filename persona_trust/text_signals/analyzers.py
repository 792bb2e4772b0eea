"""
Regex-анализаторы текстовых сигналов.

Каждый анализатор — чистая функция text → signal:
регистронезависимая, не бросает исключений на любом входе
(None, пустая строка, длинный текст, экзотический Unicode).
"""

import re
from typing import Any, Dict, Iterable, List, Optional, Pattern, Set

from .markers import (
    BUSINESS_CAP,
    BUSINESS_MARKERS,
    CONCRETENESS_CAP,
    CONCRETENESS_MARKERS,
    COURTESY_MARKER,
    GRAY_FLAG_MARKERS,
    GREEN_FLAG_MARKERS,
    INFO_TOPIC_MARKERS,
    OBSEQUIOUS_ACTION,
    OBSEQUIOUS_AGREEMENT,
    PAYMENT_MENTION,
    PERSONAL_TOPIC,
    POLITENESS_MARKERS,
    PRESSURE_MARKERS,
    QUESTION_CUE,
    RED_FLAG_MARKERS,
    TIMELINE_DOCS,
    TIMELINE_FAST,
)
from .models import FlagSet, ToneSummary


_FLAGS = re.IGNORECASE | re.UNICODE


def _compile(pattern: str) -> Pattern:
    return re.compile(pattern, _FLAGS)


_POLITENESS = [(_compile(p), score) for p, score in POLITENESS_MARKERS]
_PRESSURE = [(_compile(p), score) for p, score in PRESSURE_MARKERS]
_OBSEQ_AGREEMENT = _compile(OBSEQUIOUS_AGREEMENT)
_OBSEQ_ACTION = _compile(OBSEQUIOUS_ACTION)
_COURTESY = _compile(COURTESY_MARKER)
_TIMELINE_DOCS = _compile(TIMELINE_DOCS)
_TIMELINE_FAST = _compile(TIMELINE_FAST)
_CONCRETENESS = {name: _compile(p) for name, p in CONCRETENESS_MARKERS.items()}
_BUSINESS = {name: _compile(p) for name, p in BUSINESS_MARKERS.items()}
_RED = {name: [_compile(p) for p in patterns] for name, patterns in RED_FLAG_MARKERS.items()}
_GREEN = {name: _compile(p) for name, p in GREEN_FLAG_MARKERS.items()}
_GRAY = {name: _compile(p) for name, p in GRAY_FLAG_MARKERS.items()}
_PERSONAL_TOPIC = _compile(PERSONAL_TOPIC)
_QUESTION_CUE = _compile(QUESTION_CUE)
_INFO_TOPICS = {name: _compile(p) for name, p in INFO_TOPIC_MARKERS.items()}
_PAYMENT = _compile(PAYMENT_MENTION)


def as_text(value: Any) -> str:
    """Любой вход → строка в нижнем регистре (None → "")."""
    if value is None:
        return ""
    try:
        return str(value).lower()
    except Exception:
        return ""


def politeness_score(text: Any) -> int:
    """Бонус за приветствие / благодарность / знакомство (без ограничения)."""
    t = as_text(text)
    return sum(score for pattern, score in _POLITENESS if pattern.search(t))


def pressure_score(text: Any) -> int:
    """Штраф (<= 0) за срочность и ультиматумы."""
    t = as_text(text)
    return sum(score for pattern, score in _PRESSURE if pattern.search(t))


def is_obsequious(text: Any) -> bool:
    """Поддакивание без фактов: «ок, как скажете, ищите»."""
    t = as_text(text)
    return bool(_OBSEQ_AGREEMENT.search(t) and _OBSEQ_ACTION.search(t))


def is_unrealistic_timeline(text: Any) -> bool:
    """Документы/виза/регистрация + нереально короткий срок (<= 5 единиц, 48 часов, завтра)."""
    t = as_text(text)
    return bool(_TIMELINE_DOCS.search(t) and _TIMELINE_FAST.search(t))


def concreteness_score(text: Any) -> int:
    """Числа, валюта, даты, города — по +1, не больше CONCRETENESS_CAP."""
    t = as_text(text)
    hits = sum(1 for pattern in _CONCRETENESS.values() if pattern.search(t))
    return min(CONCRETENESS_CAP, hits)


def business_focus_score(text: Any) -> int:
    """Вакансия/зарплата/жильё/график/локация/контракт — по +1, не больше BUSINESS_CAP."""
    t = as_text(text)
    hits = sum(1 for pattern in _BUSINESS.values() if pattern.search(t))
    return min(BUSINESS_CAP, hits)


def detect_flags(text: Any) -> FlagSet:
    """Красные / зелёные / серые флаги реплики."""
    t = as_text(text)
    flags = FlagSet()

    for name, patterns in _RED.items():
        if all(p.search(t) for p in patterns):
            flags.red.append(name)
    if is_unrealistic_timeline(t):
        flags.red.append("unrealistic_timeline")

    flags.green.extend(name for name, p in _GREEN.items() if p.search(t))
    flags.gray.extend(name for name, p in _GRAY.items() if p.search(t))
    return flags


def is_personal_question(text: Any) -> bool:
    """Вопрос о семье / возрасте / хобби."""
    t = as_text(text)
    return bool(_PERSONAL_TOPIC.search(t) and _QUESTION_CUE.search(t))


def is_courtesy(text: Any) -> bool:
    """Маркер вежливости (спасибо / пожалуйста / извините)."""
    return bool(_COURTESY.search(as_text(text)))


def tone_from_messages(messages: Optional[Iterable[Any]]) -> ToneSummary:
    """Сводный тон по окну реплик."""
    summary = ToneSummary()
    for message in messages or []:
        t = as_text(message)
        if not t:
            continue
        summary.polite += politeness_score(t)
        summary.pressure += pressure_score(t)
        if is_obsequious(t):
            summary.obsequious += 1
    return summary


def info_topics(text: Any) -> Set[str]:
    """Информационные темы реплики (вакансия, зарплата, жильё, ...)."""
    t = as_text(text)
    return {name for name, pattern in _INFO_TOPICS.items() if pattern.search(t)}


def mentions_payment(text: Any) -> bool:
    """Упоминание оплаты / счёта / реквизитов."""
    return bool(_PAYMENT.search(as_text(text)))


def count_payment_mentions(messages: Optional[Iterable[Any]]) -> int:
    return sum(1 for m in messages or [] if mentions_payment(m))


def signal_report(text: Any) -> Dict[str, Any]:
    """Все сигналы одной реплики (для логов и отладки)."""
    flags = detect_flags(text)
    return {
        "politeness": politeness_score(text),
        "pressure": pressure_score(text),
        "concreteness": concreteness_score(text),
        "business_focus": business_focus_score(text),
        "red": list(flags.red),
        "green": list(flags.green),
        "gray": list(flags.gray),
        "personal_question": is_personal_question(text),
        "courtesy": is_courtesy(text),
        "topics": sorted(info_topics(text)),
    }
