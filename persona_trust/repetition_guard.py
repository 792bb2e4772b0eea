"""
Anti-Repetition Guard — персонаж не повторяет одни и те же фразы.

Ответ режется на предложения. Предложение выбрасывается, если:
    - совпадает со стоп-листом (шаблонные фразы ассистента);
    - его нормализованная форма использовалась в пределах cooldown ходов;
    - его нормализованная форма уже исчерпала лимит повторов за сессию;
    - это вопрос, а лимит вопросов в сообщении уже выбран.

Выжившие предложения записываются в журнал фраз сессии. Если не выжило
ничего — возвращается короткий нейтральный филлер, а не пустая строка.

Использование:
    from persona_trust.repetition_guard import RepetitionGuard

    guard = RepetitionGuard(store)
    reply = guard.guard("Покажите контракт. Что за вакансия?", "sess_1", turn=4)
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from persona_trust.dialogue import ReplyPart, ReplySource, join_parts
from persona_trust.engine_config import EngineConfig, PhraseBank, load_engine_config, load_phrases
from persona_trust.logger import logger
from persona_trust.session_store import SessionStore


_SENTENCE_SPLIT = re.compile(r"(?<=[.!?…])\s+")
_PUNCT = re.compile(r"[^\w\s]", re.UNICODE)
_SPACES = re.compile(r"\s+")

# Эти части ответа фильтр не трогает
PROTECTED_SOURCES = {ReplySource.COMMIT, ReplySource.FACT}

DEFAULT_FILLER = "Хм."


def split_sentences(text: Optional[str]) -> List[str]:
    """Разбить текст на предложения"""
    if not text:
        return []
    return [s.strip() for s in _SENTENCE_SPLIT.split(str(text).strip()) if s.strip()]


def normalize_sentence(sentence: str) -> str:
    """lower + ё→е + без пунктуации + схлопнутые пробелы"""
    t = sentence.lower().replace("ё", "е")
    t = _PUNCT.sub(" ", t)
    return _SPACES.sub(" ", t).strip()


@dataclass
class GuardMetrics:
    """Метрики фильтра повторов"""
    processed: int = 0
    dropped_stoplist: int = 0
    dropped_cooldown: int = 0
    dropped_cap: int = 0
    dropped_question: int = 0
    collapsed_to_filler: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return dict(self.__dict__)


@dataclass
class GuardResult:
    """Результат фильтрации"""
    parts: List[ReplyPart] = field(default_factory=list)
    dropped: List[str] = field(default_factory=list)
    collapsed: bool = False

    @property
    def text(self) -> str:
        return join_parts(self.parts)


class RepetitionGuard:
    """
    Фильтр повторов на журнале фраз сессии.

    Attributes:
        cooldown_turns: Сколько ходов фраза «остывает»
        max_repeats: Сколько раз фраза может прозвучать за сессию
        max_questions: Максимум вопросов в одном сообщении
    """

    def __init__(
        self,
        store: SessionStore,
        config: Optional[EngineConfig] = None,
        phrases: Optional[PhraseBank] = None,
    ):
        self.store = store
        self.config = config or load_engine_config()
        self.phrases = phrases or load_phrases()

        rep = self.config.repetition
        self.cooldown_turns = int(rep.cooldown_turns)
        self.max_repeats = int(rep.max_repeats)
        self.max_questions = int(rep.max_questions)
        self._stoplist = [re.compile(p, re.IGNORECASE) for p in rep.get("stoplist", []) or []]
        self.metrics = GuardMetrics()

    def is_stoplisted(self, sentence: str) -> bool:
        return any(p.search(sentence) for p in self._stoplist)

    def filler(self, turn: int) -> str:
        """Филлер по номеру хода (в журнал не пишется)"""
        fillers = self.phrases.pool("fillers")
        if not fillers:
            return DEFAULT_FILLER
        return fillers[turn % len(fillers)]

    def _drop_reason(self, session_id: str, norm: str, turn: int) -> Optional[str]:
        last_used = self.store.phrase_last_used(session_id, norm)
        if last_used is not None and turn - last_used < self.cooldown_turns:
            return "cooldown"
        if self.store.phrase_use_count(session_id, norm) >= self.max_repeats:
            return "cap"
        return None

    def guard_parts(self, parts: Iterable[ReplyPart], session_id: str, turn: int) -> GuardResult:
        """
        Отфильтровать части ответа.

        Части с источником из PROTECTED_SOURCES проходят без изменений.
        """
        self.metrics.processed += 1
        result = GuardResult()
        questions = 0
        seen_now = set()
        to_record: List[str] = []

        for part in parts:
            if part.source in PROTECTED_SOURCES:
                if part.text.strip():
                    result.parts.append(part)
                    questions += part.text.count("?")
                continue

            kept: List[str] = []
            for sentence in split_sentences(part.text):
                norm = normalize_sentence(sentence)
                if not norm:
                    continue
                if self.is_stoplisted(sentence):
                    self.metrics.dropped_stoplist += 1
                    result.dropped.append(sentence)
                    continue
                reason = self._drop_reason(session_id, norm, turn)
                if reason or norm in seen_now:
                    if reason == "cooldown":
                        self.metrics.dropped_cooldown += 1
                    else:
                        self.metrics.dropped_cap += 1
                    result.dropped.append(sentence)
                    continue
                if sentence.endswith("?"):
                    if questions >= self.max_questions:
                        self.metrics.dropped_question += 1
                        result.dropped.append(sentence)
                        continue
                    questions += 1
                seen_now.add(norm)
                to_record.append(norm)
                kept.append(sentence)

            if kept:
                result.parts.append(ReplyPart(" ".join(kept), part.source))

        for norm in to_record:
            self.store.record_phrase(session_id, norm, turn)

        if not result.parts:
            result.parts = [ReplyPart(self.filler(turn), ReplySource.CANNED)]
            result.collapsed = True
            self.metrics.collapsed_to_filler += 1
            logger.event("reply_collapsed_to_filler", dropped=len(result.dropped), turn=turn)

        return result

    def guard(self, candidate: Optional[str], session_id: str, turn: Optional[int] = None) -> str:
        """
        guard(candidateReply, sessionId) → finalReply

        turn=None — текущий ход сессии.
        """
        if turn is None:
            turn = self.store.get_or_create(session_id).turn
        parts = [ReplyPart(candidate or "", ReplySource.DRAFT)]
        return self.guard_parts(parts, session_id, turn).text

    def get_metrics(self) -> Dict[str, Any]:
        return self.metrics.to_dict()
