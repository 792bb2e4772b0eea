"""
LLM клиент черновиков для тренажёра.

OpenAI-compatible /chat/completions (по умолчанию Groq) через requests.

Модель отвечает одним JSON-объектом (response_format=json_object), разбор
мягкий: мусорные поля приводятся, а не роняют ход. Неудачный запрос
повторяется с backoff, серия сбоев открывает circuit breaker. При любом
сбое черновик = None, и пост-правила подставят готовую реплику.

Черновик модели никогда не уходит менеджеру как есть — его переписывает
dialogue_policy.
"""

import json
import os
import time
from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict, Iterator, List, Optional

import requests
from pydantic import BaseModel, Field, field_validator

from persona_trust.dialogue import Stage, clamp, coerce_number
from persona_trust.logger import logger
from persona_trust.settings import settings


# =============================================================================
# DRAFT SCHEMA
# =============================================================================


class DraftReply(BaseModel):
    """
    Черновик ответа персонажа от языковой модели.

    Приведение мягкое: мусор в полях не роняет разбор.
    """
    reply: str = Field("", description="Текст ответа для менеджера")
    confidence: Optional[float] = Field(None, description="Уверенность 0-100")
    stage: Optional[str] = Field(None, description="Greeting|Demand|Contract|Candidate|Payment|Closing")
    need_evidence: Optional[bool] = Field(None, alias="needEvidence")
    suggested_actions: List[str] = Field(default_factory=list, alias="suggestedActions")

    model_config = {"populate_by_name": True}

    @field_validator("reply", mode="before")
    @classmethod
    def _coerce_reply(cls, value: Any) -> str:
        if value is None:
            return ""
        return str(value).strip()

    @field_validator("confidence", mode="before")
    @classmethod
    def _coerce_confidence(cls, value: Any) -> Optional[float]:
        number = coerce_number(value, None)
        if number is None:
            return None
        return clamp(number)

    @field_validator("stage", mode="before")
    @classmethod
    def _coerce_stage(cls, value: Any) -> Optional[str]:
        stage = Stage.parse(value)
        return stage.value if stage else None

    @field_validator("need_evidence", mode="before")
    @classmethod
    def _coerce_need_evidence(cls, value: Any) -> Optional[bool]:
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.strip().lower() in ("true", "false"):
            return value.strip().lower() == "true"
        return None

    @field_validator("suggested_actions", mode="before")
    @classmethod
    def _coerce_actions(cls, value: Any) -> List[str]:
        if not isinstance(value, (list, tuple)):
            return []
        return [str(v) for v in value if isinstance(v, (str, int, float)) and not isinstance(v, bool)]


def extract_first_json_object(text: Optional[str]) -> Optional[Dict[str, Any]]:
    """
    Первый сбалансированный JSON-объект в тексте.

    Модели любят оборачивать JSON в ```json ... ``` или дописывать текст
    после него. Скобки внутри строк учитываются.

    Returns:
        dict или None если объекта нет / он не парсится
    """
    if not text:
        return None
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for i in range(start, len(text)):
            ch = text[i]
            if in_string:
                if escaped:
                    escaped = False
                elif ch == "\\":
                    escaped = True
                elif ch == '"':
                    in_string = False
                continue
            if ch == '"':
                in_string = True
            elif ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    try:
                        parsed = json.loads(text[start:i + 1])
                    except ValueError:
                        break
                    if isinstance(parsed, dict):
                        return parsed
                    break
        start = text.find("{", start + 1)
    return None


def parse_draft(content: Optional[str]) -> Optional[DraftReply]:
    """Контент ответа модели → DraftReply (None если JSON не найден)"""
    data = extract_first_json_object(content)
    if data is None:
        return None
    return DraftReply.model_validate(data)

# =============================================================================
# RESILIENCE
# =============================================================================


class CircuitBreaker:
    """
    Circuit breaker черновиков.

    closed → (threshold сбоев подряд) → open на cooldown секунд →
    half-open: следующий запрос пробный, успех закрывает, сбой снова открывает.
    """

    def __init__(self, threshold: int, cooldown: float, clock: Callable[[], float] = time.time):
        self.threshold = threshold
        self.cooldown = cooldown
        self._clock = clock
        self.failures = 0
        self.open_until: Optional[float] = None

    @property
    def is_open(self) -> bool:
        return self.open_until is not None and self._clock() < self.open_until

    def allows_request(self) -> bool:
        if self.open_until is None:
            return True
        if self._clock() < self.open_until:
            return False
        logger.info("Circuit breaker half-open, trial draft allowed")
        self.open_until = None
        return True

    def record_failure(self) -> bool:
        """Учесть сбой; True если breaker только что открылся"""
        self.failures += 1
        if self.failures < self.threshold or self.is_open:
            return False
        self.open_until = self._clock() + self.cooldown
        logger.error("Circuit breaker opened", failures=self.failures, cooldown=self.cooldown)
        return True

    def record_success(self) -> None:
        if self.failures:
            logger.info("Circuit breaker closed", failures=self.failures)
        self.failures = 0
        self.open_until = None


@dataclass
class LLMStats:
    """Счётчики клиента черновиков"""
    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    unparsable_drafts: int = 0
    total_retries: int = 0
    circuit_breaker_trips: int = 0
    total_response_time_ms: float = 0.0

    @property
    def success_rate(self) -> float:
        if not self.total_requests:
            return 100.0
        return 100.0 * self.successful_requests / self.total_requests

    @property
    def average_response_time_ms(self) -> float:
        if not self.successful_requests:
            return 0.0
        return self.total_response_time_ms / self.successful_requests

    def as_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["success_rate"] = round(self.success_rate, 1)
        data["average_response_time_ms"] = round(self.average_response_time_ms, 1)
        return data


# Сбои транспорта и мусорный ответ: повторяем; остальное — баг, пробрасываем
RETRYABLE_ERRORS = (requests.exceptions.RequestException, ValueError)


# =============================================================================
# CLIENT
# =============================================================================


class ChatLLMClient:
    """
    Клиент OpenAI-compatible chat completions.

    Параметры генерации берутся из settings.llm; ключ API — из переменной
    окружения settings.llm.api_key_env (GROQ_API_KEY по умолчанию).
    """

    MAX_RETRIES: int = 3
    INITIAL_DELAY: float = 1.0
    MAX_DELAY: float = 10.0
    BACKOFF_MULTIPLIER: float = 2.0

    CIRCUIT_BREAKER_THRESHOLD: int = 5
    CIRCUIT_BREAKER_TIMEOUT: int = 60

    def __init__(
        self,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[int] = None,
        enable_circuit_breaker: bool = True,
        enable_retry: bool = True,
    ):
        """
        Args:
            model: Модель (settings.llm.model по умолчанию)
            base_url: Базовый URL API, без /chat/completions
            api_key: Ключ; None = взять из окружения
            timeout: Таймаут одного HTTP запроса, секунды
            enable_circuit_breaker: Отключать черновики после серии сбоев
            enable_retry: Повторять неудачный запрос с backoff
        """
        llm_cfg = settings.llm
        self.model = model or llm_cfg.model
        self.base_url = base_url or llm_cfg.base_url
        self.api_key = api_key if api_key is not None else os.environ.get(llm_cfg.api_key_env, "")
        self.timeout = timeout or llm_cfg.timeout

        self.max_attempts = self.MAX_RETRIES if enable_retry else 1
        self.breaker: Optional[CircuitBreaker] = (
            self._new_breaker() if enable_circuit_breaker else None
        )
        self._stats = LLMStats()

    def _new_breaker(self) -> CircuitBreaker:
        return CircuitBreaker(self.CIRCUIT_BREAKER_THRESHOLD, self.CIRCUIT_BREAKER_TIMEOUT)

    def reset_circuit_breaker(self) -> None:
        if self.breaker is not None:
            self.breaker = self._new_breaker()

    @property
    def stats(self) -> LLMStats:
        return self._stats

    @property
    def is_circuit_open(self) -> bool:
        return self.breaker is not None and self.breaker.is_open

    @property
    def is_configured(self) -> bool:
        """Есть ли ключ API (без него черновики не запрашиваются)"""
        return bool(self.api_key)

    def _backoff_delays(self) -> Iterator[float]:
        delay = self.INITIAL_DELAY
        while True:
            yield delay
            delay = min(delay * self.BACKOFF_MULTIPLIER, self.MAX_DELAY)

    # =========================================================================
    # DRAFTS
    # =========================================================================

    def draft(self, messages: List[Dict[str, str]]) -> Optional[DraftReply]:
        """
        Получить черновик ответа персонажа.

        Args:
            messages: Сообщения из prompts.build_messages()

        Returns:
            DraftReply или None (сбой API, открытый circuit breaker,
            ответ без JSON)
        """
        self._stats.total_requests += 1
        if self.breaker is not None and not self.breaker.allows_request():
            logger.warning("Circuit breaker open, draft skipped")
            return None

        started = time.time()
        delays = self._backoff_delays()
        last_error: Optional[Exception] = None

        for attempt in range(1, self.max_attempts + 1):
            try:
                content = self._call_llm(messages)
            except RETRYABLE_ERRORS as e:
                last_error = e
                logger.warning(
                    "LLM draft attempt failed",
                    attempt=attempt,
                    max_attempts=self.max_attempts,
                    error=f"{type(e).__name__}: {str(e)[:100]}",
                )
                if attempt < self.max_attempts:
                    self._stats.total_retries += 1
                    time.sleep(next(delays))
                continue
            return self._on_content(content, started)

        self._stats.failed_requests += 1
        if self.breaker is not None and self.breaker.record_failure():
            self._stats.circuit_breaker_trips += 1
        logger.error("LLM draft failed", error=str(last_error)[:100] if last_error else "unknown")
        return None

    def _on_content(self, content: str, started: float) -> Optional[DraftReply]:
        elapsed_ms = (time.time() - started) * 1000
        self._stats.successful_requests += 1
        self._stats.total_response_time_ms += elapsed_ms
        if self.breaker is not None:
            self.breaker.record_success()

        draft = parse_draft(content)
        if draft is None:
            self._stats.unparsable_drafts += 1
            logger.warning("LLM draft is not JSON", preview=content[:100])
        else:
            logger.debug("LLM draft received", elapsed_ms=round(elapsed_ms, 1), stage=draft.stage)
        return draft

    def _call_llm(self, messages: List[Dict[str, str]]) -> str:
        """
        Один POST /chat/completions без повторов.

        Тесты мокают этот метод.
        """
        llm_cfg = settings.llm
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        response = requests.post(
            f"{self.base_url.rstrip('/')}/chat/completions",
            headers=headers,
            json={
                "model": self.model,
                "messages": messages,
                "temperature": llm_cfg.temperature,
                "top_p": llm_cfg.top_p,
                "frequency_penalty": llm_cfg.frequency_penalty,
                "presence_penalty": llm_cfg.presence_penalty,
                "max_tokens": llm_cfg.max_tokens,
                "response_format": {"type": "json_object"},
            },
            timeout=self.timeout,
        )
        response.raise_for_status()

        choices = response.json().get("choices") or []
        if not choices:
            raise ValueError("LLM returned no choices")
        content = (choices[0].get("message") or {}).get("content") or ""
        if not content:
            raise ValueError("LLM returned an empty message")
        return content

    def get_stats_dict(self) -> Dict[str, Any]:
        data = self._stats.as_dict()
        data["circuit_breaker_open"] = self.is_circuit_open
        return data
