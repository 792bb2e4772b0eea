"""
Persona Engine — один ход скептичного агента.

Порядок хода:
    1. lock(session_id) — ходы одной сессии сериализуются
    2. next_turn — счётчик ходов (сид для возражений и покупки)
    3. ingest — доказательства хода в память сессии
    4. trust — скорер по накопленным доказательствам и истории
    5. draft — черновик из запроса или от языковой модели
    6. policy — пост-правила → финальный ответ

Использование:
    from persona_trust.persona_engine import PersonaEngine, TurnRequest

    engine = PersonaEngine()
    result = engine.process(TurnRequest.from_dict({
        "sessionId": "sess_1",
        "baseTrust": 20,
        "evidences": ["demand"],
        "lastUserText": "Здравствуйте, прислал деманд",
    }))
    result.to_dict()   # {"trust": ..., "reply": ..., "stage": ..., ...}
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from persona_trust.dialogue import Stage, coerce_history, coerce_number
from persona_trust.dialogue_policy import DialoguePolicy, PolicyInput
from persona_trust.engine_config import EngineConfig, PhraseBank, load_engine_config, load_phrases
from persona_trust.evidence import EvidenceClassifier
from persona_trust.feature_flags import FeatureFlags, flags as default_flags
from persona_trust.llm import ChatLLMClient, DraftReply
from persona_trust.logger import logger
from persona_trust.prompts import build_messages
from persona_trust.rng import SeededRandomFactory
from persona_trust.session_store import InMemorySessionStore, SessionStore
from persona_trust.settings import settings
from persona_trust.trust_scorer import TrustScorer


def _pick(data: Dict[str, Any], *names: str) -> Any:
    """Первое присутствующее поле из camelCase / snake_case вариантов"""
    for name in names:
        if name in data and data[name] is not None:
            return data[name]
    return None


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def _as_list(value: Any) -> List[Any]:
    if isinstance(value, (list, tuple)):
        return list(value)
    return []


@dataclass
class TurnRequest:
    """
    Вход одного хода.

    Attributes:
        session_id: Идентификатор сессии тренировки
        base_trust: Базовое доверие (мусор → settings.engine.default_base_trust)
        evidences: Сырые ключи доказательств этого запроса
        history: История [{role, content, stage?}]
        last_user_text: Последняя реплика менеджера
        evidence_details: {ключ: payload} (деманд → факты)
        draft_reply: Готовый черновик (если есть — модель не вызывается)
        draft_stage: Стадия черновика
        stage_hint: Стадия, которую фронт считает текущей (если черновик её не дал)
    """
    session_id: str
    base_trust: float
    evidences: List[Any] = field(default_factory=list)
    history: List[Any] = field(default_factory=list)
    last_user_text: str = ""
    evidence_details: Dict[str, Any] = field(default_factory=dict)
    draft_reply: Optional[str] = None
    draft_stage: Optional[str] = None
    draft_confidence: Optional[float] = None
    draft_actions: List[str] = field(default_factory=list)
    stage_hint: Optional[Stage] = None

    @classmethod
    def from_dict(cls, data: Any) -> "TurnRequest":
        """Разобрать wire-формат; каждое поле приводится, исключений нет"""
        data = data if isinstance(data, dict) else {}
        details = _pick(data, "evidenceDetails", "evidence_details")
        draft_reply = _pick(data, "draftReply", "draft_reply")
        draft_stage = _pick(data, "draftStage", "draft_stage")
        return cls(
            session_id=_as_text(_pick(data, "sessionId", "session_id")).strip() or "anonymous",
            base_trust=coerce_number(
                _pick(data, "baseTrust", "base_trust"),
                settings.engine.default_base_trust,
            ),
            evidences=_as_list(_pick(data, "evidences")),
            history=_as_list(_pick(data, "history")),
            last_user_text=_as_text(_pick(data, "lastUserText", "last_user_text")),
            evidence_details=details if isinstance(details, dict) else {},
            draft_reply=None if draft_reply is None else _as_text(draft_reply),
            draft_stage=None if draft_stage is None else _as_text(draft_stage),
            draft_confidence=coerce_number(_pick(data, "draftConfidence", "draft_confidence"), None),
            draft_actions=[_as_text(a) for a in _as_list(_pick(data, "draftActions", "draft_actions"))],
            stage_hint=Stage.parse(_pick(data, "stage", "stageHint", "stage_hint")),
        )


@dataclass
class TurnResult:
    """Итог хода (wire-формат — to_dict)"""
    trust: int
    evidence_count: int
    reply: str
    stage: Stage
    confidence: int
    need_evidence: bool
    suggested_actions: List[str]
    turn: int = 0
    committed: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "trust": self.trust,
            "evidenceCount": self.evidence_count,
            "reply": self.reply,
            "stage": self.stage.value,
            "confidence": self.confidence,
            "needEvidence": self.need_evidence,
            "suggestedActions": list(self.suggested_actions),
        }


class PersonaEngine:
    """
    Оркестратор хода: память сессии + скорер + черновик + пост-правила.

    Все зависимости инжектируются; по умолчанию — in-memory хранилище,
    конфиг из пакета и LLM клиент из settings.
    """

    def __init__(
        self,
        store: Optional[SessionStore] = None,
        config: Optional[EngineConfig] = None,
        phrases: Optional[PhraseBank] = None,
        llm: Optional[ChatLLMClient] = None,
        rng_factory: Optional[SeededRandomFactory] = None,
        feature_flags: Optional[FeatureFlags] = None,
    ):
        self.config = config or load_engine_config(settings.engine.config_path)
        self.phrases = phrases or load_phrases(settings.engine.phrases_path)
        self.store = store or InMemorySessionStore(ttl_seconds=settings.session.ttl_seconds)
        self.flags = feature_flags or default_flags
        self.llm = llm
        self.history_window = int(settings.engine.history_window)

        self.classifier = EvidenceClassifier(self.config)
        self.scorer = TrustScorer(self.config, self.classifier)
        self.policy = DialoguePolicy(
            self.store,
            config=self.config,
            phrases=self.phrases,
            classifier=self.classifier,
            rng_factory=rng_factory or SeededRandomFactory(),
            feature_flags=self.flags,
        )

    def _draft(
        self,
        request: TurnRequest,
        trust: int,
        evidence_keys: List[str],
    ) -> Optional[DraftReply]:
        """Черновик: из запроса, иначе от модели, иначе None"""
        if request.draft_reply is not None:
            return DraftReply(
                reply=request.draft_reply,
                stage=request.draft_stage,
                confidence=request.draft_confidence,
                suggested_actions=request.draft_actions,
            )
        if self.llm is None or not self.flags.llm_drafts or not self.llm.is_configured:
            return None
        messages = build_messages(
            request.last_user_text,
            trust,
            evidence_keys,
            request.history,
            window=self.history_window,
        )
        return self.llm.draft(messages)

    def process(self, request: TurnRequest) -> TurnResult:
        """
        Обработать один ход.

        Args:
            request: Вход хода

        Returns:
            TurnResult
        """
        session_id = request.session_id
        logger.set_conversation(session_id)

        with self.store.lock(session_id):
            turn = self.store.next_turn(session_id)
            ingest = self.policy.ingest(session_id, request.evidences, request.evidence_details)

            history = coerce_history(request.history)
            breakdown = self.scorer.explain(
                request.base_trust,
                list(ingest.keys),
                history,
                request.last_user_text,
            )
            trust = breakdown.trust
            logger.event(
                "trust_computed",
                trust=trust,
                gate_ceiling=breakdown.gate_ceiling,
                red_flags=breakdown.flags.red,
            )

            draft = self._draft(request, trust, ingest.keys)
            result = self.policy.apply(
                PolicyInput(
                    session_id=session_id,
                    turn=turn,
                    trust=trust,
                    user_text=request.last_user_text,
                    history=history,
                    draft_reply=draft.reply if draft else None,
                    draft_stage=(draft.stage if draft else None) or request.stage_hint,
                    draft_confidence=draft.confidence if draft else None,
                    draft_need_evidence=draft.need_evidence if draft else None,
                    draft_actions=list(draft.suggested_actions) if draft else [],
                ),
                ingest,
            )
            committed = self.store.get_or_create(session_id).committed

        logger.metric("trust", trust, evidence_count=result.evidence_count, turn=turn)
        logger.info(
            "Turn processed",
            turn=turn,
            stage=result.stage.value,
            confidence=result.confidence,
            rules=result.fired_rules,
        )

        return TurnResult(
            trust=trust,
            evidence_count=result.evidence_count,
            reply=result.reply,
            stage=result.stage,
            confidence=result.confidence,
            need_evidence=result.need_evidence,
            suggested_actions=result.suggested_actions,
            turn=turn,
            committed=committed,
        )

    def process_dict(self, data: Any) -> Dict[str, Any]:
        """Wire-формат → wire-формат"""
        return self.process(TurnRequest.from_dict(data)).to_dict()
