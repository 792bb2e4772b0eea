"""
Dialogue Policy — пост-правила поверх черновика языковой модели.

Черновик модели НЕ является ответом: политика переписывает его на основе
доверия, памяти сессии и доказательств. Правила — упорядоченная таблица
PolicyRule(name, predicate, effect), каждое правило работает с TurnContext
и тестируется отдельно.

Порядок правил:
    1.  evidence_acknowledgment — «Деманд вижу» на впервые пришедший ключ
    2.  identity / registration / slot — детерминированные fast-path ответы
    3.  reactive_facts — факты деманда, только если менеджер о них спросил
    4.  banned_draft — запрещённые фразы → просьба о документах
    5.  objection — возражение, если доверия мало для оплаты
    6.  premature_payment — «рано про оплату», если возражения нет
    7.  payment_ready — ворота оплаты пройдены → invoice_request
    8.  purchase — стохастическое решение о покупке (один раз за сессию)
    9.  sanitize — чистка черновика модели
    10. empty_reply — пустой ответ → тематическая готовая реплика
    11. anti_repetition — журнал фраз, кулдауны, лимит вопросов
    (финализация стадии, действий и confidence — после таблицы)

Использование:
    from persona_trust.dialogue_policy import DialoguePolicy, PolicyInput

    policy = DialoguePolicy(store)
    ingest = policy.ingest("sess_1", ["demand"], {"demand": {"salary": "1400 EUR"}})
    result = policy.apply(PolicyInput(session_id="sess_1", turn=1, trust=34, ...), ingest)
"""

import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional

from persona_trust.demand_facts import asked_facts, parse_demand_payload
from persona_trust.dialogue import (
    DialogueTurn,
    ReplyPart,
    ReplySource,
    Stage,
    clamp,
    coerce_number,
    join_parts,
)
from persona_trust.engine_config import EngineConfig, PhraseBank, load_engine_config, load_phrases
from persona_trust.evidence import EvidenceClassifier, EvidenceSummary
from persona_trust.feature_flags import FeatureFlags, flags as default_flags
from persona_trust.logger import logger
from persona_trust.objection_generator import EvidenceGaps, Objection, ObjectionGenerator, detect_trigger
from persona_trust.purchase_model import PurchaseDecision, PurchaseModel
from persona_trust.repetition_guard import RepetitionGuard, normalize_sentence, split_sentences
from persona_trust.rng import SeededRandomFactory, pick
from persona_trust.sanitizer import ReplySanitizer, contains_banned
from persona_trust.session_store import Commitment, SessionState, SessionStore


# =============================================================================
# FAST-PATH И ТЕМАТИЧЕСКИЕ ПАТТЕРНЫ
# =============================================================================

IDENTITY_QUESTION = re.compile(
    r"(кто вы|вы кто|как вас зовут|представьтесь|с кем (я )?говорю|who are you|your name)",
    re.IGNORECASE,
)
REGISTRATION_QUESTION = re.compile(r"(регистрац\w*[^.!?]*\?|registration[^.!?]*\?)", re.IGNORECASE)
SLOT_QUESTION = re.compile(r"((слот|запис\w*|посольств\w*)[^.!?]*\?|\bslots?\b[^.!?]*\?)", re.IGNORECASE)

# Тема реплики менеджера → пул, если ответ остался пустым (порядок важен)
TOPIC_POOLS: List[tuple] = [
    (re.compile(r"(крипт|crypto|usdt|\bbtc\b)", re.IGNORECASE), "crypto_skeptic"),
    (re.compile(r"(слот|запис|посольств)", re.IGNORECASE), "slot_questions"),
    (re.compile(r"(\bhr\b|эйчар|отдел кадров|кадр|контакт)", re.IGNORECASE), "hr_contact"),
    (re.compile(r"(uradprace|у?радпрац)", re.IGNORECASE), "uradprace_push"),
    (re.compile(r"(сколько|цена|дорог|ценник|стоим)", re.IGNORECASE), "bargain"),
    (re.compile(r"(кандидат|people|workers|людей)", re.IGNORECASE), "candidate_test"),
]

FACT_ANSWER_LIMIT = 2


# =============================================================================
# DATA MODELS
# =============================================================================


@dataclass
class IngestResult:
    """
    Результат приёма доказательств хода.

    Attributes:
        new_keys: Ключи, впервые появившиеся в сессии (порядок появления)
        keys: Все канонические ключи сессии после приёма
        facts_updated: Обновились ли факты деманда
    """
    new_keys: List[str] = field(default_factory=list)
    keys: List[str] = field(default_factory=list)
    facts_updated: bool = False


@dataclass
class PolicyInput:
    """Вход пост-правил на один ход"""
    session_id: str
    turn: int
    trust: int
    user_text: str = ""
    history: List[DialogueTurn] = field(default_factory=list)
    draft_reply: Optional[str] = None
    draft_stage: Optional[str] = None
    draft_confidence: Optional[Any] = None
    draft_need_evidence: Optional[bool] = None
    draft_actions: List[str] = field(default_factory=list)


@dataclass
class AckPart(ReplyPart):
    """Подтверждение полученного доказательства"""


@dataclass
class TurnContext:
    """Изменяемый контекст хода, который правила читают и правят"""
    session_id: str
    turn: int
    trust: int
    user_text: str
    state: SessionState
    summary: EvidenceSummary
    gaps: EvidenceGaps
    new_keys: List[str]
    draft_stage: Optional[Stage]
    parts: List[ReplyPart] = field(default_factory=list)
    stage_suggestions: List[Stage] = field(default_factory=list)
    forced_stage: Optional[Stage] = None
    need_evidence: bool = True
    actions: List[str] = field(default_factory=list)
    confidence: float = 0
    confidence_cap: float = 100
    fast_path: bool = False
    objection: Optional[Objection] = None
    purchase: Optional[PurchaseDecision] = None
    fired: List[str] = field(default_factory=list)

    @property
    def text(self) -> str:
        return join_parts(self.parts)

    def has_source(self, source: ReplySource) -> bool:
        return any(p.source == source and p.text.strip() for p in self.parts)

    def replace_reply(self, part: ReplyPart) -> None:
        """Заменить ответ; подтверждения доказательств остаются"""
        self.parts = [p for p in self.parts if isinstance(p, AckPart)] + [part]

    def suggest_stage(self, stage: Optional[Stage]) -> None:
        if stage is not None:
            self.stage_suggestions.append(stage)

    def add_actions(self, *actions: str) -> None:
        self.actions.extend(actions)

    def cap_confidence(self, cap: float) -> None:
        self.confidence_cap = min(self.confidence_cap, cap)


@dataclass
class PolicyRule:
    """Правило пост-обработки: predicate(ctx) → effect(ctx)"""
    name: str
    predicate: Callable[[TurnContext], bool]
    effect: Callable[[TurnContext], None]
    flag: Optional[str] = None


@dataclass
class PolicyResult:
    """Итог пост-правил"""
    reply: str
    stage: Stage
    confidence: int
    need_evidence: bool
    suggested_actions: List[str]
    evidence_count: int
    fired_rules: List[str] = field(default_factory=list)
    objection: Optional[Objection] = None
    purchase: Optional[PurchaseDecision] = None


# =============================================================================
# POLICY
# =============================================================================


class DialoguePolicy:
    """
    Движок пост-правил.

    Состояние хранится только в SessionStore; сама политика без состояния
    между ходами, кроме метрик.
    """

    def __init__(
        self,
        store: SessionStore,
        config: Optional[EngineConfig] = None,
        phrases: Optional[PhraseBank] = None,
        classifier: Optional[EvidenceClassifier] = None,
        rng_factory: Optional[SeededRandomFactory] = None,
        feature_flags: Optional[FeatureFlags] = None,
    ):
        self.store = store
        self.config = config or load_engine_config()
        self.phrases = phrases or load_phrases()
        self.classifier = classifier or EvidenceClassifier(self.config)
        self.rng_factory = rng_factory or SeededRandomFactory()
        self.flags = feature_flags or default_flags

        policy_cfg = self.config.policy
        self.payment_trust = policy_cfg.payment_trust
        self.min_unique_for_payment = policy_cfg.min_unique_evidence_for_payment
        self.whitelist: List[str] = list(policy_cfg.actions_whitelist)
        self.action_aliases: Dict[str, str] = dict(policy_cfg.get("action_aliases", {}) or {})

        self.objections = ObjectionGenerator(self.config, self.phrases, self.rng_factory)
        self.purchase_model = PurchaseModel(self.config, self.phrases, self.classifier, self.rng_factory)
        self.guard = RepetitionGuard(store, self.config, self.phrases)
        self.sanitizer = ReplySanitizer(max_sentences=policy_cfg.max_sentences)

        self.rules: List[PolicyRule] = [
            PolicyRule("evidence_acknowledgment", self._has_new_keys, self._acknowledge_evidence,
                       flag="evidence_acknowledgment"),
            PolicyRule("identity", self._asks_identity, self._answer_identity),
            PolicyRule("registration", self._asks_registration, self._answer_registration),
            PolicyRule("slot", self._asks_slot, self._answer_slot),
            PolicyRule("reactive_facts", self._asks_known_fact, self._answer_facts, flag="reactive_facts"),
            PolicyRule("banned_draft", self._draft_is_banned, self._replace_banned_draft),
            PolicyRule("objection", self._needs_objection, self._raise_objection, flag="objection_generator"),
            PolicyRule("premature_payment", self._premature_payment, self._reject_payment),
            PolicyRule("payment_ready", self._payment_ready, self._request_invoice),
            PolicyRule("purchase", self._purchase_possible, self._evaluate_purchase, flag="purchase_model"),
            PolicyRule("sanitize", self._has_draft, self._sanitize_draft, flag="reply_sanitizer"),
            PolicyRule("empty_reply", self._reply_is_empty, self._fill_empty_reply),
            PolicyRule("anti_repetition", lambda ctx: True, self._guard_repetition, flag="anti_repetition"),
        ]

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    def ingest(
        self,
        session_id: str,
        evidences: Optional[Iterable[Any]],
        details: Optional[Dict[str, Any]] = None,
    ) -> IngestResult:
        """
        Принять доказательства хода в сессию.

        Каждое упоминание увеличивает count ключа; «новым» ключ считается
        только при первом появлении в сессии. Payload деманда разбирается
        в факты и сливается с памятью.
        """
        result = IngestResult()
        details_by_key: Dict[str, Any] = {}
        for raw_key, payload in (details or {}).items():
            key = self.classifier.normalize(raw_key)
            if key:
                details_by_key[key] = payload

        for raw in evidences or []:
            key = self.classifier.normalize(raw)
            if not key:
                continue
            payload = details_by_key.get(key)
            record_details = payload if isinstance(payload, dict) else (
                {"text": payload} if isinstance(payload, str) and payload.strip() else None
            )
            if self.store.bump_evidence(session_id, key, record_details):
                result.new_keys.append(key)
                logger.event("evidence_ingested", key=key)

        for key, payload in details_by_key.items():
            if self.classifier.is_demand(key):
                facts = parse_demand_payload(payload)
                if not facts.is_empty():
                    before = self.store.get_demand_facts(session_id)
                    after = self.store.merge_demand_facts(session_id, facts)
                    result.facts_updated = after != before

        result.keys = self.store.evidence_keys(session_id)
        return result

    # ------------------------------------------------------------------
    # Main entry
    # ------------------------------------------------------------------

    def build_context(self, data: PolicyInput, ingest: IngestResult) -> TurnContext:
        state = self.store.get_or_create(data.session_id)
        summary = self.classifier.summarize(ingest.keys or state.evidence_keys())
        gaps = EvidenceGaps.from_summary(summary, self.classifier)

        draft_stage = Stage.parse(data.draft_stage)
        ctx = TurnContext(
            session_id=data.session_id,
            turn=data.turn,
            trust=int(clamp(data.trust)),
            user_text=data.user_text or "",
            state=state,
            summary=summary,
            gaps=gaps,
            new_keys=list(ingest.new_keys),
            draft_stage=draft_stage,
        )
        draft = (data.draft_reply or "").strip()
        if draft:
            ctx.parts.append(ReplyPart(draft, ReplySource.DRAFT))
        ctx.suggest_stage(draft_stage)
        ctx.need_evidence = (
            bool(data.draft_need_evidence) if data.draft_need_evidence is not None else gaps.has_gaps
        )
        ctx.actions = [str(a) for a in data.draft_actions or []]
        ctx.confidence = clamp(coerce_number(data.draft_confidence, ctx.trust))
        return ctx

    def apply(self, data: PolicyInput, ingest: Optional[IngestResult] = None) -> PolicyResult:
        """
        Применить пост-правила к черновику.

        Args:
            data: Вход хода (доверие уже посчитано)
            ingest: Результат ingest() этого хода (None = без новых доказательств)

        Returns:
            PolicyResult
        """
        ctx = self.build_context(data, ingest or IngestResult())

        for rule in self.rules:
            if rule.flag and not self.flags.is_enabled(rule.flag):
                continue
            if rule.predicate(ctx):
                rule.effect(ctx)
                ctx.fired.append(rule.name)

        return self._finalize(ctx)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _payment_gates_ok(self, ctx: TurnContext) -> bool:
        return ctx.trust >= self.payment_trust and ctx.summary.unique >= self.min_unique_for_payment

    def _line_used(self, session_id: str, line: str) -> bool:
        """Хоть одно предложение реплики уже есть в журнале сессии"""
        return any(
            self.store.phrase_use_count(session_id, normalize_sentence(sentence))
            for sentence in split_sentences(line)
        )

    def _pick_canned(self, ctx: TurnContext, pool_name: str) -> str:
        """Готовая реплика: сначала ещё не звучавшие в сессии"""
        pool = self.phrases.pool(pool_name) or self.phrases.pool("fallback")
        if not pool:
            return ""
        fresh = [
            line for line in pool
            if line != ctx.state.last_reply and not self._line_used(ctx.session_id, line)
        ]
        rng = self.rng_factory.for_turn(ctx.session_id, ctx.turn, f"canned:{pool_name}")
        return pick(rng, fresh or pool, exclude=[ctx.state.last_reply])

    def _evidence_floor(self, ctx: TurnContext) -> Optional[Stage]:
        if ctx.state.committed:
            return Stage.PAYMENT
        if ctx.gaps.has_full_contract:
            return Stage.CONTRACT
        if ctx.gaps.has_demand:
            return Stage.DEMAND
        return None

    # ------------------------------------------------------------------
    # Rules: predicates & effects
    # ------------------------------------------------------------------

    def _has_new_keys(self, ctx: TurnContext) -> bool:
        return bool(ctx.new_keys)

    def _acknowledge_evidence(self, ctx: TurnContext) -> None:
        acks = []
        for key in ctx.new_keys:
            text = self.phrases.template(f"ack_{key}")
            if text and text not in acks:
                acks.append(text)
        ctx.parts = [AckPart(text, ReplySource.CANNED) for text in acks] + ctx.parts

    def _asks_identity(self, ctx: TurnContext) -> bool:
        return bool(IDENTITY_QUESTION.search(ctx.user_text))

    def _answer_identity(self, ctx: TurnContext) -> None:
        ctx.replace_reply(ReplyPart(self._pick_canned(ctx, "identity"), ReplySource.CANNED))
        ctx.fast_path = True

    def _asks_registration(self, ctx: TurnContext) -> bool:
        return not ctx.fast_path and bool(REGISTRATION_QUESTION.search(ctx.user_text))

    def _answer_registration(self, ctx: TurnContext) -> None:
        ctx.replace_reply(ReplyPart(self._pick_canned(ctx, "registration_answers"), ReplySource.CANNED))
        ctx.fast_path = True

    def _asks_slot(self, ctx: TurnContext) -> bool:
        return not ctx.fast_path and bool(SLOT_QUESTION.search(ctx.user_text))

    def _answer_slot(self, ctx: TurnContext) -> None:
        ctx.replace_reply(ReplyPart(self._pick_canned(ctx, "slot_answers"), ReplySource.CANNED))
        ctx.fast_path = True

    def _asks_known_fact(self, ctx: TurnContext) -> bool:
        known = ctx.state.demand_facts.known()
        return any(name in known for name in asked_facts(ctx.user_text))

    def _answer_facts(self, ctx: TurnContext) -> None:
        known = ctx.state.demand_facts.known()
        answered = 0
        for name in asked_facts(ctx.user_text):
            if name not in known or answered >= FACT_ANSWER_LIMIT:
                continue
            text = self.phrases.template(f"fact_{name}", value=known[name])
            if text:
                ctx.parts.append(ReplyPart(text, ReplySource.FACT))
                answered += 1

    def _draft_is_banned(self, ctx: TurnContext) -> bool:
        return any(p.source == ReplySource.DRAFT and contains_banned(p.text) for p in ctx.parts)

    def _replace_banned_draft(self, ctx: TurnContext) -> None:
        ctx.parts = [p for p in ctx.parts if p.source != ReplySource.DRAFT]
        ctx.parts.append(ReplyPart(self._pick_canned(ctx, "ask_docs"), ReplySource.CANNED))
        if ctx.draft_stage == Stage.PAYMENT:
            ctx.forced_stage = Stage.CONTRACT
        ctx.need_evidence = True
        ctx.add_actions("ask_demands", "ask_coop_contract")
        ctx.cap_confidence(self.config.policy.confidence_cap_on_banned)

    def _needs_objection(self, ctx: TurnContext) -> bool:
        if ctx.fast_path or ctx.state.committed or self._payment_gates_ok(ctx):
            return False
        if "banned_draft" in ctx.fired:
            return False
        return detect_trigger(ctx.user_text, ctx.draft_stage == Stage.PAYMENT) is not None

    def _raise_objection(self, ctx: TurnContext) -> None:
        objection = self.objections.choose(
            session_id=ctx.session_id,
            turn=ctx.turn,
            latest_message=ctx.user_text,
            trust=ctx.trust,
            gaps=ctx.gaps,
            last_objection=ctx.state.last_objection,
            at_payment_stage=ctx.draft_stage == Stage.PAYMENT,
            used=lambda line: self._line_used(ctx.session_id, line),
        )
        if objection is None:
            return
        ctx.objection = objection
        ctx.parts = [p for p in ctx.parts if p.source != ReplySource.DRAFT]
        ctx.parts.append(ReplyPart(objection.text, ReplySource.OBJECTION))
        ctx.forced_stage = objection.suggested_stage
        ctx.need_evidence = True
        ctx.cap_confidence(self.config.policy.confidence_cap_on_premature_payment)
        self.store.set_last_objection(ctx.session_id, objection.text)

    def _premature_payment(self, ctx: TurnContext) -> bool:
        return (
            ctx.objection is None
            and ctx.forced_stage is None
            and not ctx.state.committed
            and ctx.draft_stage == Stage.PAYMENT
            and not self._payment_gates_ok(ctx)
        )

    def _reject_payment(self, ctx: TurnContext) -> None:
        ctx.parts = [p for p in ctx.parts if p.source != ReplySource.DRAFT]
        ctx.parts.append(ReplyPart(self._pick_canned(ctx, "too_early_payment"), ReplySource.CANNED))
        ctx.forced_stage = Stage.CONTRACT
        ctx.need_evidence = True
        ctx.add_actions("ask_demands", "ask_coop_contract")
        ctx.cap_confidence(self.config.policy.confidence_cap_on_premature_payment)

    def _payment_ready(self, ctx: TurnContext) -> bool:
        return self._payment_gates_ok(ctx) and ctx.objection is None

    def _request_invoice(self, ctx: TurnContext) -> None:
        ctx.add_actions("invoice_request")
        ctx.suggest_stage(Stage.PAYMENT)
        ctx.need_evidence = False
        ctx.confidence = max(ctx.confidence, ctx.trust)

    def _purchase_possible(self, ctx: TurnContext) -> bool:
        return not ctx.state.committed

    def _evaluate_purchase(self, ctx: TurnContext) -> None:
        decision = self.purchase_model.evaluate(
            session_id=ctx.session_id,
            turn=ctx.turn,
            trust=ctx.trust,
            summary=ctx.summary,
            latest_message=ctx.user_text,
            already_committed=ctx.state.committed,
        )
        ctx.purchase = decision
        if decision is None or not decision.committed:
            return
        committed = self.store.mark_committed(
            ctx.session_id,
            Commitment(turn=ctx.turn, units=decision.units, channel=decision.channel),
        )
        if not committed:
            return
        ctx.parts = [ReplyPart(decision.reply, ReplySource.COMMIT)]
        ctx.objection = None
        ctx.forced_stage = Stage.PAYMENT
        ctx.need_evidence = False
        ctx.add_actions("invoice_request")
        ctx.confidence = max(ctx.confidence, ctx.trust)
        ctx.confidence_cap = 100

    def _has_draft(self, ctx: TurnContext) -> bool:
        return ctx.has_source(ReplySource.DRAFT)

    def _sanitize_draft(self, ctx: TurnContext) -> None:
        cleaned: List[ReplyPart] = []
        for part in ctx.parts:
            if part.source != ReplySource.DRAFT:
                cleaned.append(part)
                continue
            result = self.sanitizer.sanitize(part.text, ctx.user_text)
            if result.changed:
                logger.debug("Draft sanitized", reasons=result.reasons)
            if result.text:
                cleaned.append(ReplyPart(result.text, ReplySource.DRAFT))
        ctx.parts = cleaned

    def _reply_is_empty(self, ctx: TurnContext) -> bool:
        return not any(
            p.text.strip() for p in ctx.parts if not isinstance(p, AckPart)
        )

    def _fill_empty_reply(self, ctx: TurnContext) -> None:
        if self._payment_gates_ok(ctx):
            pool = "closing_ready"
        else:
            pool = "ask_docs"
            for pattern, topic_pool in TOPIC_POOLS:
                if pattern.search(ctx.user_text):
                    pool = topic_pool
                    break
        ctx.parts.append(ReplyPart(self._pick_canned(ctx, pool), ReplySource.CANNED))

    def _guard_repetition(self, ctx: TurnContext) -> None:
        result = self.guard.guard_parts(ctx.parts, ctx.session_id, ctx.turn)
        ctx.parts = result.parts

    # ------------------------------------------------------------------
    # Finalization
    # ------------------------------------------------------------------

    def normalize_actions(self, actions: Iterable[Any], summary: EvidenceSummary) -> List[str]:
        """
        Привести действия к белому списку.

        Алиасы → канон, дубли убираются, порядок — приоритет белого списка,
        действия про уже полученные доказательства выкидываются.
        """
        c = self.classifier
        satisfied = set()
        if summary.has_any(c.demand_keys):
            satisfied.add("ask_demands")
        if summary.has_any(c.full_contract_keys):
            satisfied.add("ask_coop_contract")
        if summary.has_any(c.sample_contract_keys) or summary.has_any(c.full_contract_keys):
            satisfied.add("ask_sample_contract")
        if summary.has_any(c.price_breakdown_keys):
            satisfied.add("ask_price_breakdown")

        requested = set()
        for action in actions:
            name = str(action).strip().lower()
            name = self.action_aliases.get(name, name)
            if name in self.whitelist and name not in satisfied:
                requested.add(name)
        return [a for a in self.whitelist if a in requested]

    def _gap_actions(self, ctx: TurnContext) -> List[str]:
        actions = []
        if not ctx.gaps.has_demand:
            actions.append("ask_demands")
        if not ctx.gaps.has_full_contract:
            actions.append("ask_coop_contract")
        return actions

    def _finalize(self, ctx: TurnContext) -> PolicyResult:
        floor = self.store.raise_stage_floor(ctx.session_id, self._evidence_floor(ctx))

        if ctx.forced_stage is not None:
            stage = ctx.forced_stage
        else:
            stage = Stage.furthest(*ctx.stage_suggestions) or Stage.GREETING
        stage = Stage.furthest(stage, floor) or Stage.GREETING

        # ворота доверия возвращают переговоры к контракту
        if (
            stage.rank > Stage.CANDIDATE.rank
            and not ctx.state.committed
            and not self._payment_gates_ok(ctx)
        ):
            stage = Stage.furthest(Stage.CONTRACT, floor)

        if ctx.need_evidence:
            ctx.add_actions(*self._gap_actions(ctx))
        actions = self.normalize_actions(ctx.actions, ctx.summary)

        confidence = int(round(clamp(min(ctx.confidence, ctx.confidence_cap))))
        reply = ctx.text or self.guard.filler(ctx.turn)
        self.store.set_last_reply(ctx.session_id, reply)
        if ctx.objection is None:
            self.store.set_last_objection(ctx.session_id, "")

        logger.debug(
            "Policy applied",
            rules=ctx.fired,
            stage=stage.value,
            confidence=confidence,
            actions=actions,
        )
        return PolicyResult(
            reply=reply,
            stage=stage,
            confidence=confidence,
            need_evidence=bool(ctx.need_evidence),
            suggested_actions=actions,
            evidence_count=max(0, ctx.summary.unique),
            fired_rules=list(ctx.fired),
            objection=ctx.objection,
            purchase=ctx.purchase,
        )
