"""
Structured logging тренажёра.

Два формата вывода: читаемый (по умолчанию) и JSON-строка на запись
(LOG_FORMAT=json, для сборщика логов). Каждая запись хода помечается
conversation_id = id сессии тренировки.

Использование:
    from persona_trust.logger import logger

    logger.set_conversation("sess_123")
    logger.info("Turn processed", stage="Contract")
    logger.metric("trust", 54, evidence_count=3)
    logger.event("objection_selected", pool="objection_budget")
"""

import json
import logging
import os
import traceback
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from persona_trust.settings import settings


# Ходы разных сессий идут в threadpool uvicorn: контекст у каждого свой
_conversation_id: ContextVar[Optional[str]] = ContextVar("conversation_id", default=None)
_bound_fields: ContextVar[Dict[str, Any]] = ContextVar("bound_fields", default={})


def _json_mode() -> bool:
    return os.environ.get("LOG_FORMAT", "readable").lower() == "json"


class StructuredLogger:
    """
    Обёртка над logging.Logger с полями записи.

    kwargs каждого вызова становятся полями записи; metric() и event()
    пишут аналитику с уровнем METRIC / EVENT (физически INFO).
    """

    READABLE_FORMAT = "[%(asctime)s] %(levelname)s - %(message)s"

    def __init__(self, name: str):
        self.name = name
        self.logger = logging.getLogger(name)
        if not self.logger.handlers:
            self._configure()

    def _configure(self) -> None:
        level_name = str(settings.get_nested("logging.level", "INFO")).upper()
        level = getattr(logging, level_name, logging.INFO)

        handler = logging.StreamHandler()
        handler.setLevel(level)
        fmt = "%(message)s" if _json_mode() else self.READABLE_FORMAT
        handler.setFormatter(logging.Formatter(fmt, datefmt="%H:%M:%S"))

        self.logger.setLevel(level)
        self.logger.addHandler(handler)
        self.logger.propagate = False

    # ------------------------------------------------------------------
    # Context
    # ------------------------------------------------------------------

    @property
    def conversation_id(self) -> Optional[str]:
        return _conversation_id.get()

    def set_conversation(self, conv_id: Optional[str]) -> None:
        _conversation_id.set(conv_id)

    def clear_conversation(self) -> None:
        _conversation_id.set(None)

    def set_context(self, **fields: Any) -> None:
        """Поля, которые добавляются ко всем записям текущего контекста"""
        _bound_fields.set({**_bound_fields.get(), **fields})

    def clear_context(self) -> None:
        _bound_fields.set({})

    # ------------------------------------------------------------------
    # Formatting
    # ------------------------------------------------------------------

    def _format_structured(self, level: str, message: str, **fields: Any) -> Dict[str, Any]:
        entry: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": level,
            "logger": self.name,
            "message": message,
        }
        if self.conversation_id:
            entry["conversation_id"] = self.conversation_id
        entry.update(_bound_fields.get())
        entry.update(fields)
        return entry

    def _format_readable(self, message: str, **fields: Any) -> str:
        if fields:
            message += " [" + ", ".join(f"{k}={v}" for k, v in fields.items()) + "]"
        if self.conversation_id:
            message = f"[{self.conversation_id}] {message}"
        return message

    def _emit(self, emit: Callable[..., None], level: str, message: str, **fields: Any) -> None:
        if _json_mode():
            entry = self._format_structured(level, message, **fields)
            emit(json.dumps(entry, ensure_ascii=False, default=str))
        else:
            emit(self._format_readable(message, **fields))

    # ------------------------------------------------------------------
    # Levels
    # ------------------------------------------------------------------

    def debug(self, message: str, **fields: Any) -> None:
        self._emit(self.logger.debug, "DEBUG", message, **fields)

    def info(self, message: str, **fields: Any) -> None:
        self._emit(self.logger.info, "INFO", message, **fields)

    def warning(self, message: str, **fields: Any) -> None:
        self._emit(self.logger.warning, "WARNING", message, **fields)

    def error(self, message: str, **fields: Any) -> None:
        self._emit(self.logger.error, "ERROR", message, **fields)

    def exception(self, message: str, **fields: Any) -> None:
        """Ошибка с traceback текущего исключения"""
        if _json_mode():
            fields["traceback"] = traceback.format_exc()
            self._emit(self.logger.error, "ERROR", message, **fields)
        else:
            self.logger.exception(self._format_readable(message, **fields))

    def metric(self, name: str, value: Any, **fields: Any) -> None:
        """
        Числовая метрика для аналитики.

        Example:
            logger.metric("trust", 54, evidence_count=3)
            logger.metric("purchase_probability", 0.35, trust=92)
        """
        self._emit(self.logger.info, "METRIC", name, value=value, **fields)

    def event(self, event_type: str, **fields: Any) -> None:
        """
        Бизнес-событие хода.

        Example:
            logger.event("evidence_ingested", key="demand_letter")
            logger.event("purchase_committed", units=2, channel="bank")
        """
        self._emit(self.logger.info, "EVENT", event_type, **fields)


logger = StructuredLogger("persona_trust")


def create_test_logger(name: str = "test") -> StructuredLogger:
    """Изолированный логгер для тестов"""
    return StructuredLogger(f"persona_trust.{name}")
