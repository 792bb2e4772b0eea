"""
REST API тренажёра «скептичный агент».

Эндпоинты совместимы с фронтом тренировки:
    GET  /health, /api/ping  — живость
    POST /api/reply          — ход агента (основной)
    POST /chat               — старый роут
    POST /api/score          — подсказки менеджеру

Запуск: uvicorn persona_trust.api:app --host 127.0.0.1 --port 8000
"""

import math
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Literal, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from persona_trust.coaching import score_manager
from persona_trust.llm import ChatLLMClient
from persona_trust.logger import logger
from persona_trust.persona_engine import PersonaEngine, TurnRequest
from persona_trust.settings import settings, validate_settings

_engine: Optional[PersonaEngine] = None

# Потолок для числового evidence (proof_1..proof_n)
MAX_PLACEHOLDER_EVIDENCE = 50


# ── Error helpers ──────────────────────────────────────

class APIError(Exception):
    """Structured API exception with HTTP status code."""

    def __init__(self, status_code: int, code: str, message: str):
        self.status_code = status_code
        self.code = code
        self.message = message
        super().__init__(message)


def _error_payload(code: str, message: str) -> dict:
    return {"error": {"code": code, "message": message}}


# ── Engine ────────────────────────────────────────────

def get_engine() -> PersonaEngine:
    """Движок процесса (создаётся при первом обращении)"""
    global _engine
    if _engine is None:
        _engine = PersonaEngine(llm=ChatLLMClient())
    return _engine


def set_engine(engine: Optional[PersonaEngine]) -> None:
    """Подменить движок (тесты)"""
    global _engine
    _engine = engine


def allowed_origins() -> List[str]:
    raw = settings.get_nested("api.allowed_origins", "") or ""
    return [origin.strip() for origin in str(raw).split(",") if origin.strip()]


def expand_evidences(evidences: Optional[List[Any]], evidence: Optional[float]) -> List[str]:
    """
    Список доказательств из запроса фронта.

    Фронт шлёт либо evidences (список ключей), либо evidence (число);
    число разворачивается в proof_1..proof_n, n не больше MAX_PLACEHOLDER_EVIDENCE.
    """
    if evidences is not None:
        return [str(e) for e in evidences]
    if evidence is not None and math.isfinite(evidence):
        count = min(max(0, int(evidence)), MAX_PLACEHOLDER_EVIDENCE)
        return [f"proof_{i + 1}" for i in range(count)]
    return []


def _history_for_front(history: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    result = []
    for item in history:
        if not isinstance(item, dict):
            continue
        entry = {
            "role": "assistant" if item.get("role") == "assistant" else "user",
            "content": str(item.get("content") or ""),
        }
        if item.get("stage"):
            entry["stage"] = str(item["stage"])
        result.append(entry)
    return result


# ── App ───────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    for err in validate_settings(settings):
        logger.warning("Settings problem", error=err)
    engine = get_engine()
    if engine.llm is not None and not engine.llm.is_configured:
        logger.warning("LLM API key is not set, drafts disabled", env=settings.llm.api_key_env)
    disabled = sorted(name for name, on in engine.flags.get_all_flags().items() if not on)
    logger.info("Persona engine ready", config_version=engine.config.version, disabled_flags=disabled)
    yield


app = FastAPI(title="Persona Trust API", version="1.0.0", lifespan=lifespan)

_origins = allowed_origins()
app.add_middleware(
    CORSMiddleware,
    allow_origins=_origins or ["*"],
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
    allow_credentials=False,
)


@app.exception_handler(APIError)
async def api_error_handler(_: Request, exc: APIError):
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_payload(exc.code, exc.message),
    )


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(_: Request, exc: RequestValidationError):
    errors = exc.errors()
    first_error = errors[0].get("msg") if errors else "Invalid request payload"
    return JSONResponse(
        status_code=400,
        content=_error_payload("BAD_REQUEST", first_error),
    )


# ── Models ────────────────────────────────────────────

class ReplyRequest(BaseModel):
    sessionId: str = "default"
    user_text: str = ""
    evidences: Optional[List[Any]] = None
    evidence: Optional[float] = Field(None, le=MAX_PLACEHOLDER_EVIDENCE, allow_inf_nan=False)
    history: List[Dict[str, Any]] = Field(default_factory=list)
    evidenceDetails: Optional[Dict[str, Any]] = None
    baseTrust: Optional[Any] = None


class HistoryItem(BaseModel):
    role: Literal["user", "assistant"]
    content: str
    stage: Optional[str] = None


class ChatRequest(BaseModel):
    sessionId: str = Field(..., min_length=1)
    message: str = Field(..., min_length=1)
    stage: Optional[Literal["Greeting", "Demand", "Candidate", "Contract", "Payment", "Closing"]] = None
    evidences: Optional[List[str]] = None
    history: Optional[List[HistoryItem]] = None


class ScoreRequest(BaseModel):
    evidences: Optional[List[Any]] = None
    evidence: Optional[float] = Field(None, le=MAX_PLACEHOLDER_EVIDENCE, allow_inf_nan=False)
    history: List[Dict[str, Any]] = Field(default_factory=list)


# ── Endpoints ─────────────────────────────────────────

@app.get("/health")
def health():
    return {"ok": True}


@app.get("/api/ping")
def ping():
    return {"ok": True}


def _run_turn(payload: Dict[str, Any]) -> Dict[str, Any]:
    engine = get_engine()
    engine.store.cleanup_expired()
    return engine.process(TurnRequest.from_dict(payload)).to_dict()


@app.post("/api/reply")
def reply(req: ReplyRequest):
    """
    Ход агента для фронта тренировки.

    NOTE: `def` (не `async def`) — черновик модели синхронный (requests).
    FastAPI запустит в threadpool, ходы одной сессии сериализует движок.
    """
    try:
        result = _run_turn({
            "sessionId": req.sessionId,
            "baseTrust": req.baseTrust,
            "evidences": expand_evidences(req.evidences, req.evidence),
            "history": _history_for_front(req.history),
            "lastUserText": req.user_text,
            "evidenceDetails": req.evidenceDetails,
        })
        return {
            "text": result["reply"],
            "agent": {"name": settings.api.agent_name, "avatar": settings.api.agent_avatar},
            "evidence_delta": 0,
            "meta": {
                "ok": True,
                "trust": result["trust"],
                "evidenceCount": result["evidenceCount"],
                "stage": result["stage"],
                "actions": result["suggestedActions"],
                "confidence": result["confidence"],
                "needEvidence": result["needEvidence"],
            },
        }
    except APIError:
        raise
    except Exception as err:
        logger.exception("Error processing reply")
        raise APIError(500, "INTERNAL", "Internal server error") from err


@app.post("/chat")
def chat(req: ChatRequest):
    """Старый роут: {ok, trust, evidenceCount, result}"""
    try:
        result = _run_turn({
            "sessionId": req.sessionId,
            "evidences": req.evidences or [],
            "history": [h.model_dump(exclude_none=True) for h in req.history or []],
            "lastUserText": req.message,
            "stage": req.stage,
        })
        trust = result.pop("trust")
        evidence_count = result.pop("evidenceCount")
        return {"ok": True, "trust": trust, "evidenceCount": evidence_count, "result": result}
    except APIError:
        raise
    except Exception as err:
        logger.exception("Error processing chat")
        raise APIError(500, "INTERNAL", "Internal server error") from err


@app.post("/api/score")
def score(req: ScoreRequest):
    """Подсказки менеджеру по его репликам"""
    evidences = expand_evidences(req.evidences, req.evidence)
    return score_manager(req.history, evidences, scorer=get_engine().scorer)
