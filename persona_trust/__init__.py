"""
Persona Trust — движок доверия скептичного визового агента.

Тренажёр переговоров: менеджер уговаривает агента (персонажа) купить
трудоустройство кандидатов, агент верит только доказательствам.

Использование:
    from persona_trust import PersonaEngine, TurnRequest, compute_trust

    trust = compute_trust(20, ["demand_letter", "website"], [], "Здравствуйте")

    engine = PersonaEngine()
    result = engine.process(TurnRequest.from_dict({"sessionId": "s1", "lastUserText": "Привет"}))
"""

from persona_trust.dialogue import Stage
from persona_trust.persona_engine import PersonaEngine, TurnRequest, TurnResult
from persona_trust.session_store import InMemorySessionStore
from persona_trust.trust_scorer import TrustScorer, compute_trust

__version__ = "1.0.0"

__all__ = [
    "PersonaEngine",
    "TurnRequest",
    "TurnResult",
    "InMemorySessionStore",
    "TrustScorer",
    "compute_trust",
    "Stage",
]
