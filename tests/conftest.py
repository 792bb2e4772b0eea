"""
Shared pytest fixtures for persona trust tests.

Provides fixtures for:
- Engine config and phrase bank from the package
- In-memory session store with a controllable clock
- Scripted random factory (forces purchase / objection draws)
- Fake LLM client for drafts
- Feature flag overrides
- Engine factory with injected dependencies
"""

import random
from typing import Any, Dict, List, Optional

import pytest

from persona_trust.engine_config import load_engine_config, load_phrases
from persona_trust.evidence import EvidenceClassifier
from persona_trust.feature_flags import FeatureFlags
from persona_trust.llm import DraftReply
from persona_trust.persona_engine import PersonaEngine
from persona_trust.rng import SeededRandomFactory
from persona_trust.session_store import InMemorySessionStore
from persona_trust.trust_scorer import TrustScorer


# =============================================================================
# Config Fixtures
# =============================================================================

@pytest.fixture(scope="session")
def engine_config():
    """Engine config from yaml_config/engine.yaml."""
    return load_engine_config()


@pytest.fixture(scope="session")
def phrases():
    """Phrase bank from yaml_config/phrases.yaml."""
    return load_phrases()


@pytest.fixture
def classifier(engine_config):
    return EvidenceClassifier(engine_config)


@pytest.fixture
def scorer(engine_config, classifier):
    return TrustScorer(engine_config, classifier)


# =============================================================================
# Session Store Fixtures
# =============================================================================

class FakeClock:
    """Управляемые часы для TTL тестов."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    """Store without TTL."""
    return InMemorySessionStore()


@pytest.fixture
def ttl_store(clock):
    """Store with 60s TTL on a fake clock."""
    return InMemorySessionStore(ttl_seconds=60, time_provider=clock)


# =============================================================================
# Randomness Fixtures
# =============================================================================

class ScriptedRandom(random.Random):
    """random.Random, у которого random() отдаёт заданные значения по кругу."""

    def __init__(self, values: List[float]):
        self._values = list(values) or [0.0]
        self._index = 0
        super().__init__(0)

    def random(self) -> float:
        value = self._values[self._index % len(self._values)]
        self._index += 1
        return value


class ScriptedRandomFactory(SeededRandomFactory):
    """Фабрика, выдающая ScriptedRandom на каждый (сессия, ход, соль)."""

    def __init__(self, values: List[float]):
        super().__init__()
        self.values = list(values)
        self.calls: List[tuple] = []

    def for_turn(self, session_id: Any, turn: Any, salt: str = "") -> random.Random:
        self.calls.append((session_id, turn, salt))
        return ScriptedRandom(self.values)


@pytest.fixture
def always_draw_zero():
    """Every draw is 0.0: purchase always commits, first option is picked."""
    return ScriptedRandomFactory([0.0])


@pytest.fixture
def never_commit():
    """Every draw is just below 1.0: purchase never commits."""
    return ScriptedRandomFactory([0.999])


# =============================================================================
# LLM Fixtures
# =============================================================================

class FakeLLM:
    """Фейковый клиент черновиков: отдаёт заданные DraftReply и пишет вызовы."""

    def __init__(self, drafts: Optional[List[Optional[DraftReply]]] = None, configured: bool = True):
        self.drafts = list(drafts or [])
        self.configured = configured
        self.calls: List[List[Dict[str, str]]] = []

    @property
    def is_configured(self) -> bool:
        return self.configured

    def draft(self, messages: List[Dict[str, str]]) -> Optional[DraftReply]:
        self.calls.append(messages)
        if not self.drafts:
            return None
        if len(self.drafts) == 1:
            return self.drafts[0]
        return self.drafts.pop(0)


@pytest.fixture
def fake_llm():
    """Fake LLM factory: fake_llm(DraftReply(...), ...)."""
    def _create(*drafts: Optional[DraftReply], configured: bool = True) -> FakeLLM:
        return FakeLLM(list(drafts), configured=configured)
    return _create


# =============================================================================
# Feature Flags & Engine Fixtures
# =============================================================================

@pytest.fixture
def feature_flags():
    """Isolated FeatureFlags instance (global flags stay untouched)."""
    ff = FeatureFlags()
    yield ff
    ff.clear_all_overrides()


@pytest.fixture
def make_engine(engine_config, phrases, feature_flags):
    """
    Engine factory with injected dependencies.

    Usage:
        engine = make_engine()
        engine = make_engine(rng_factory=always_draw_zero, llm=fake_llm(...))
    """
    def _create(**kwargs: Any) -> PersonaEngine:
        kwargs.setdefault("store", InMemorySessionStore())
        kwargs.setdefault("config", engine_config)
        kwargs.setdefault("phrases", phrases)
        kwargs.setdefault("feature_flags", feature_flags)
        return PersonaEngine(**kwargs)
    return _create


@pytest.fixture
def engine(make_engine):
    return make_engine()
