"""
Session State Store — память персонажа по session id.

Хранит накопленные доказательства, факты деманда, последнюю реплику,
последнее возражение, счётчик ходов, журнал повторов фраз и флаг
совершённой покупки. Доверие здесь НЕ хранится: оно пересчитывается
скорером каждый ход.

Использование:
    from persona_trust.session_store import InMemorySessionStore

    store = InMemorySessionStore(ttl_seconds=6 * 3600)
    is_new = store.bump_evidence("sess_1", "demand_letter", {"salary": "1400 EUR"})
    store.unique_evidence_count("sess_1")   # 1
    turn = store.next_turn("sess_1")        # 1
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Protocol

from persona_trust.demand_facts import DemandFacts
from persona_trust.dialogue import Stage
from persona_trust.logger import logger
from persona_trust.session_lock import SessionLockManager


@dataclass
class EvidenceRecord:
    """Запись о доказательстве в сессии"""
    key: str
    count: int = 1
    first_seen_at: float = 0.0
    last_seen_at: float = 0.0
    details: Dict[str, Any] = field(default_factory=dict)

    def merge_details(self, details: Optional[Dict[str, Any]]) -> None:
        if not details:
            return
        for k, v in details.items():
            if v not in (None, "", [], {}):
                self.details[k] = v


@dataclass
class Commitment:
    """Зафиксированное решение о покупке"""
    turn: int
    units: int
    channel: str


@dataclass
class SessionState:
    """Состояние одной сессии"""
    session_id: str
    evidence: Dict[str, EvidenceRecord] = field(default_factory=dict)
    demand_facts: DemandFacts = field(default_factory=DemandFacts)
    last_reply: str = ""
    last_objection: str = ""
    turn: int = 0
    phrase_last_used: Dict[str, int] = field(default_factory=dict)
    phrase_use_count: Dict[str, int] = field(default_factory=dict)
    commitment: Optional[Commitment] = None
    stage_floor: Optional[Stage] = None
    created_at: float = 0.0
    last_activity: float = 0.0

    @property
    def committed(self) -> bool:
        return self.commitment is not None

    def evidence_keys(self) -> List[str]:
        """Ключи в порядке первого появления"""
        return list(self.evidence.keys())


class SessionStore(Protocol):
    """Интерфейс хранилища сессий (инжектируется в движок)."""

    def get_or_create(self, session_id: str) -> SessionState: ...

    def bump_evidence(
        self, session_id: str, key: str, details: Optional[Dict[str, Any]] = None
    ) -> bool: ...

    def has_evidence(self, session_id: str, key: str) -> bool: ...

    def unique_evidence_count(self, session_id: str) -> int: ...

    def get_demand_facts(self, session_id: str) -> DemandFacts: ...

    def merge_demand_facts(self, session_id: str, facts: DemandFacts) -> DemandFacts: ...

    def next_turn(self, session_id: str) -> int: ...

    def phrase_last_used(self, session_id: str, phrase: str) -> Optional[int]: ...

    def phrase_use_count(self, session_id: str, phrase: str) -> int: ...

    def record_phrase(self, session_id: str, phrase: str, turn: int) -> None: ...

    def mark_committed(self, session_id: str, commitment: Commitment) -> bool: ...

    def lock(self, session_id: str): ...

    def evidence_keys(self, session_id: str) -> List[str]: ...

    def set_last_reply(self, session_id: str, reply: str) -> None: ...

    def set_last_objection(self, session_id: str, objection: str) -> None: ...

    def raise_stage_floor(self, session_id: str, stage: Optional[Stage]) -> Optional[Stage]: ...


class InMemorySessionStore:
    """
    Хранилище сессий в памяти процесса.

    Сессия создаётся лениво при первом обращении. ttl_seconds=None —
    живёт до конца процесса; иначе простаивающая дольше TTL сессия
    удаляется в cleanup_expired() и при следующем обращении создаётся заново.
    """

    def __init__(
        self,
        ttl_seconds: Optional[float] = None,
        time_provider: Optional[Callable[[], float]] = None,
        lock_manager: Optional[SessionLockManager] = None,
    ):
        self._sessions: Dict[str, SessionState] = {}
        self._guard = threading.Lock()
        self._ttl = ttl_seconds
        self._time_provider = time_provider or time.time
        self._locks = lock_manager or SessionLockManager()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def lock(self, session_id: str):
        """Сериализация ходов одной сессии (re-entrant)"""
        return self._locks.lock(session_id)

    def _is_expired(self, state: SessionState, now: float) -> bool:
        return self._ttl is not None and now - state.last_activity >= self._ttl

    def get_or_create(self, session_id: str) -> SessionState:
        """Получить сессию или создать новую (просроченная пересоздаётся)"""
        now = self._time_provider()
        with self._guard:
            state = self._sessions.get(session_id)
            if state is not None and self._is_expired(state, now):
                logger.info("Session expired, recreating", session_id=session_id)
                state = None
            if state is None:
                state = SessionState(session_id=session_id, created_at=now, last_activity=now)
                self._sessions[session_id] = state
                logger.debug("New session created", session_id=session_id)
            state.last_activity = now
            return state

    def get(self, session_id: str) -> Optional[SessionState]:
        """Сессия без создания (None если нет)"""
        with self._guard:
            return self._sessions.get(session_id)

    def cleanup_expired(self) -> int:
        """
        Удалить просроченные сессии.

        Сессия, чей лок сейчас занят ходом, остаётся до следующей уборки.
        """
        if self._ttl is None:
            return 0
        now = self._time_provider()
        removed = 0
        with self._guard:
            expired = [
                sid for sid, state in self._sessions.items()
                if self._is_expired(state, now)
            ]
            for sid in expired:
                if not self._locks.discard(sid):
                    continue
                del self._sessions[sid]
                removed += 1

        if removed:
            logger.info("Cleaned up expired sessions", count=removed)
        return removed

    def __len__(self) -> int:
        with self._guard:
            return len(self._sessions)

    def __contains__(self, session_id: str) -> bool:
        with self._guard:
            return session_id in self._sessions

    # ------------------------------------------------------------------
    # Evidence
    # ------------------------------------------------------------------

    def bump_evidence(
        self,
        session_id: str,
        key: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """
        Учесть доказательство.

        Returns:
            True если ключ встретился в сессии впервые
        """
        state = self.get_or_create(session_id)
        now = self._time_provider()
        record = state.evidence.get(key)
        if record is None:
            record = EvidenceRecord(key=key, first_seen_at=now, last_seen_at=now)
            record.merge_details(details)
            state.evidence[key] = record
            return True

        record.count += 1
        record.last_seen_at = now
        record.merge_details(details)
        return False

    def has_evidence(self, session_id: str, key: str) -> bool:
        return key in self.get_or_create(session_id).evidence

    def unique_evidence_count(self, session_id: str) -> int:
        return len(self.get_or_create(session_id).evidence)

    def evidence_keys(self, session_id: str) -> List[str]:
        return self.get_or_create(session_id).evidence_keys()

    # ------------------------------------------------------------------
    # Demand facts
    # ------------------------------------------------------------------

    def get_demand_facts(self, session_id: str) -> DemandFacts:
        return self.get_or_create(session_id).demand_facts

    def merge_demand_facts(self, session_id: str, facts: DemandFacts) -> DemandFacts:
        """Слить факты (поля не затираются более бедными значениями)"""
        state = self.get_or_create(session_id)
        state.demand_facts = state.demand_facts.merge(facts)
        return state.demand_facts

    # ------------------------------------------------------------------
    # Turns & phrase ledger
    # ------------------------------------------------------------------

    def next_turn(self, session_id: str) -> int:
        """Монотонный счётчик ходов (первый ход = 1)"""
        state = self.get_or_create(session_id)
        state.turn += 1
        return state.turn

    def current_turn(self, session_id: str) -> int:
        return self.get_or_create(session_id).turn

    def phrase_last_used(self, session_id: str, phrase: str) -> Optional[int]:
        return self.get_or_create(session_id).phrase_last_used.get(phrase)

    def phrase_use_count(self, session_id: str, phrase: str) -> int:
        return self.get_or_create(session_id).phrase_use_count.get(phrase, 0)

    def record_phrase(self, session_id: str, phrase: str, turn: int) -> None:
        state = self.get_or_create(session_id)
        state.phrase_last_used[phrase] = turn
        state.phrase_use_count[phrase] = state.phrase_use_count.get(phrase, 0) + 1

    # ------------------------------------------------------------------
    # Replies, objections, commitment
    # ------------------------------------------------------------------

    def set_last_reply(self, session_id: str, reply: str) -> None:
        self.get_or_create(session_id).last_reply = reply

    def set_last_objection(self, session_id: str, objection: str) -> None:
        self.get_or_create(session_id).last_objection = objection

    def is_committed(self, session_id: str) -> bool:
        return self.get_or_create(session_id).committed

    def mark_committed(self, session_id: str, commitment: Commitment) -> bool:
        """
        Зафиксировать покупку. Флаг ставится один раз и навсегда.

        Returns:
            False если сессия уже была committed (повторная фиксация игнорируется)
        """
        state = self.get_or_create(session_id)
        if state.committed:
            return False
        state.commitment = commitment
        return True

    def raise_stage_floor(self, session_id: str, stage: Optional[Stage]) -> Optional[Stage]:
        """Поднять нижнюю границу стадии (никогда не опускается)"""
        state = self.get_or_create(session_id)
        state.stage_floor = Stage.furthest(state.stage_floor, stage)
        return state.stage_floor
