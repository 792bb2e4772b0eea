"""
Модели диалога: стадии переговоров, реплики истории, приведение типов.

Все функции приведения тотальны: мусор на входе → документированный
fallback, без исключений.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, List, Optional


class Stage(str, Enum):
    """
    Стадии переговоров (порядок = продвинутость).

    Greeting → Demand → Contract → Candidate → Payment → Closing
    """
    GREETING = "Greeting"
    DEMAND = "Demand"
    CONTRACT = "Contract"
    CANDIDATE = "Candidate"
    PAYMENT = "Payment"
    CLOSING = "Closing"

    @property
    def rank(self) -> int:
        return _STAGE_ORDER.index(self)

    @classmethod
    def parse(cls, value: Any) -> Optional["Stage"]:
        """Стадия из строки без учёта регистра; неизвестное → None"""
        if isinstance(value, Stage):
            return value
        if value is None:
            return None
        key = str(value).strip().lower()
        for stage in cls:
            if stage.value.lower() == key:
                return stage
        return None

    @classmethod
    def furthest(cls, *stages: Optional["Stage"]) -> Optional["Stage"]:
        """Самая продвинутая из переданных стадий (None игнорируются)"""
        present = [s for s in stages if s is not None]
        if not present:
            return None
        return max(present, key=lambda s: s.rank)


_STAGE_ORDER = [
    Stage.GREETING,
    Stage.DEMAND,
    Stage.CONTRACT,
    Stage.CANDIDATE,
    Stage.PAYMENT,
    Stage.CLOSING,
]

USER_ROLES = {"user", "manager", "human"}
ASSISTANT_ROLES = {"assistant", "persona", "bot", "ai"}


@dataclass(frozen=True)
class DialogueTurn:
    """Одна реплика истории"""
    role: str                        # "user" | "assistant"
    text: str
    stage: Optional[Stage] = None

    @property
    def is_user(self) -> bool:
        return self.role == "user"


def _turn_from_any(item: Any) -> Optional[DialogueTurn]:
    if isinstance(item, DialogueTurn):
        return item
    if not isinstance(item, dict):
        return None

    raw_role = str(item.get("role") or "").strip().lower()
    if raw_role in USER_ROLES:
        role = "user"
    elif raw_role in ASSISTANT_ROLES:
        role = "assistant"
    else:
        return None

    text = item.get("content")
    if text is None:
        text = item.get("text", item.get("message"))
    return DialogueTurn(
        role=role,
        text="" if text is None else str(text),
        stage=Stage.parse(item.get("stage")),
    )


def coerce_history(history: Any) -> List[DialogueTurn]:
    """
    Привести историю к списку DialogueTurn.

    Принимает dict-ы {role, content|text|message, stage?} и готовые
    DialogueTurn; элементы с неизвестной ролью пропускаются.
    None / не-список → [].
    """
    if not isinstance(history, (list, tuple)):
        return []
    turns = []
    for item in history:
        turn = _turn_from_any(item)
        if turn is not None:
            turns.append(turn)
    return turns


def user_messages(turns: Iterable[DialogueTurn], latest: Optional[str] = None) -> List[str]:
    """
    Реплики менеджера по порядку.

    latest дописывается в конец, если история ещё не заканчивается им.
    """
    messages = [t.text for t in turns if t.is_user]
    latest = (latest or "").strip()
    if latest and (not messages or messages[-1].strip() != latest):
        messages.append(latest)
    return messages


def coerce_number(value: Any, default: float) -> float:
    """Число из произвольного входа; не число / NaN / inf → default"""
    if isinstance(value, bool) or value is None:
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(number) or math.isinf(number):
        return default
    return number


def clamp(value: float, low: float = 0, high: float = 100) -> float:
    return max(low, min(high, value))


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


class ReplySource(str, Enum):
    """Происхождение части ответа персонажа"""
    DRAFT = "draft"          # текст языковой модели
    CANNED = "canned"        # готовая реплика из phrases.yaml
    FACT = "fact"            # факт из деманда
    OBJECTION = "objection"  # возражение
    COMMIT = "commit"        # реплика о покупке


@dataclass
class ReplyPart:
    """Часть итогового ответа"""
    text: str
    source: ReplySource = ReplySource.DRAFT


def join_parts(parts: Iterable[ReplyPart]) -> str:
    return " ".join(p.text.strip() for p in parts if p.text and p.text.strip()).strip()
