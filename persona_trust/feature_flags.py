"""
Feature flags пост-правил.

Каждая подсистема политики (возражения, покупка, фильтр повторов, чистка
черновика, факты деманда, подтверждения доказательств, черновики модели)
выключается без деплоя.

Слои, от слабого к сильному:
    DEFAULTS → settings.yaml (feature_flags) → FF_<NAME> в окружении → set_override()

Использование:
    from persona_trust.feature_flags import flags

    if flags.purchase_model:
        decision = model.evaluate(...)

    flags.set_override("anti_repetition", False)   # тесты
"""

import os
from typing import Dict, Optional

from persona_trust.settings import settings


_TRUE_VALUES = ("true", "1", "yes", "on")


def _env_flag(name: str) -> Optional[bool]:
    raw = os.environ.get(f"FF_{name.upper()}")
    if raw is None:
        return None
    return raw.strip().lower() in _TRUE_VALUES


class FeatureFlags:
    """Набор флагов с runtime overrides."""

    DEFAULTS: Dict[str, bool] = {
        "objection_generator": True,        # возражения при нехватке доверия
        "purchase_model": True,             # стохастическое решение о покупке
        "anti_repetition": True,            # журнал фраз и кулдауны
        "reply_sanitizer": True,            # чистка черновика модели
        "reactive_facts": True,             # факты деманда в ответ на вопрос
        "evidence_acknowledgment": True,    # «Деманд вижу» на новый ключ
        "llm_drafts": True,                 # черновик от языковой модели
    }

    def __init__(self):
        self._resolved: Dict[str, bool] = {}
        self._overrides: Dict[str, bool] = {}
        self._resolve()

    def _resolve(self) -> None:
        resolved = dict(self.DEFAULTS)

        configured = settings.get_nested("feature_flags", {})
        if isinstance(configured, dict):
            resolved.update({k: v for k, v in configured.items() if isinstance(v, bool)})

        for name in list(resolved):
            from_env = _env_flag(name)
            if from_env is not None:
                resolved[name] = from_env

        self._resolved = resolved

    def reload(self) -> None:
        """Перечитать settings и окружение, сбросить overrides"""
        self._overrides.clear()
        self._resolve()

    def is_enabled(self, flag: str) -> bool:
        """Значение флага; неизвестный флаг выключен"""
        return self._overrides.get(flag, self._resolved.get(flag, False))

    def set_override(self, flag: str, value: bool) -> None:
        self._overrides[flag] = bool(value)

    def clear_override(self, flag: str) -> None:
        self._overrides.pop(flag, None)

    def clear_all_overrides(self) -> None:
        self._overrides.clear()

    def get_all_flags(self) -> Dict[str, bool]:
        return {**self._resolved, **self._overrides}

    # ------------------------------------------------------------------
    # Typed access
    # ------------------------------------------------------------------

    @property
    def objection_generator(self) -> bool:
        return self.is_enabled("objection_generator")

    @property
    def purchase_model(self) -> bool:
        return self.is_enabled("purchase_model")

    @property
    def anti_repetition(self) -> bool:
        return self.is_enabled("anti_repetition")

    @property
    def reply_sanitizer(self) -> bool:
        return self.is_enabled("reply_sanitizer")

    @property
    def reactive_facts(self) -> bool:
        return self.is_enabled("reactive_facts")

    @property
    def evidence_acknowledgment(self) -> bool:
        return self.is_enabled("evidence_acknowledgment")

    @property
    def llm_drafts(self) -> bool:
        return self.is_enabled("llm_drafts")


flags = FeatureFlags()
