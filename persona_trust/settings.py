"""
Настройки сервиса: settings.yaml поверх встроенных DEFAULTS.

Файл ищется в PERSONA_SETTINGS, иначе рядом с пакетом. Отсутствующие
в YAML ключи берутся из DEFAULTS, так что частичный файл допустим.

Использование:
    from persona_trust.settings import settings

    settings.llm.model
    settings.get_nested("engine.default_base_trust", 20)
"""

import os
from pathlib import Path
from typing import Any, List, Optional

import yaml


SETTINGS_FILE = Path(__file__).parent / "settings.yaml"
SETTINGS_ENV = "PERSONA_SETTINGS"

DEFAULTS = {
    "llm": {
        "base_url": "https://api.groq.com/openai/v1",
        "model": "llama-3.1-8b-instant",
        "api_key_env": "GROQ_API_KEY",
        "timeout": 30,
        "temperature": 0.35,
        "top_p": 0.9,
        "frequency_penalty": 0.3,
        "presence_penalty": 0.0,
        "max_tokens": 380,
    },
    "engine": {
        "default_base_trust": 20,
        "history_window": 12,
        "config_path": None,
        "phrases_path": None,
    },
    "session": {
        "ttl_seconds": None,
    },
    "api": {
        "allowed_origins": "",
        "agent_name": "Али",
        "agent_avatar": "https://renovogo.com/welcome/training/ali.png",
    },
    "logging": {
        "level": "INFO",
    },
    "feature_flags": {},
}


class DotDict(dict):
    """dict с доступом к ключам как к атрибутам (вложенные dict тоже)"""

    def __getattr__(self, key: str) -> Any:
        if key not in self:
            raise AttributeError(f"Настройка '{key}' не найдена")
        value = self[key]
        return DotDict(value) if isinstance(value, dict) else value

    def __setattr__(self, key: str, value: Any) -> None:
        self[key] = value

    def get_nested(self, path: str, default: Any = None) -> Any:
        """Значение по пути через точку ('llm.model'); нет пути → default"""
        node: Any = self
        for part in path.split("."):
            if not isinstance(node, dict) or part not in node:
                return default
            node = node[part]
        return node


def _deep_merge(base: dict, override: dict) -> dict:
    """Новый dict: override поверх base, вложенные dict сливаются, списки заменяются"""
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = _deep_merge(current, value)
        else:
            merged[key] = value
    return merged


def _settings_path(filepath: Optional[Path]) -> Path:
    if filepath is not None:
        return Path(filepath)
    from_env = os.environ.get(SETTINGS_ENV)
    return Path(from_env) if from_env else SETTINGS_FILE


def load_settings(filepath: Optional[Path] = None) -> DotDict:
    """
    Прочитать настройки.

    Args:
        filepath: YAML файл; None = PERSONA_SETTINGS или settings.yaml пакета

    Returns:
        DotDict: DEFAULTS, перекрытые значениями из файла
    """
    path = _settings_path(filepath)
    config = _deep_merge({}, DEFAULTS)

    if not path.exists():
        # logger сам читает settings, поэтому только print
        print(f"[settings] {path} не найден, работаем на DEFAULTS")
        return DotDict(config)

    with open(path, "r", encoding="utf-8") as f:
        from_file = yaml.safe_load(f) or {}
    return DotDict(_deep_merge(config, from_file))


def validate_settings(settings: DotDict) -> List[str]:
    """
    Проверить настройки.

    Returns:
        Сообщения об ошибках (пусто = всё в порядке)
    """
    errors: List[str] = []
    llm = settings.llm
    engine = settings.engine

    for field in ("model", "base_url"):
        if not llm.get(field):
            errors.append(f"llm.{field} не указан")
    if llm.timeout <= 0:
        errors.append("llm.timeout должен быть > 0")
    if not 0 <= llm.temperature <= 2:
        errors.append("llm.temperature должен быть от 0 до 2")
    if llm.max_tokens < 1:
        errors.append("llm.max_tokens должен быть >= 1")

    base_trust = engine.default_base_trust
    if isinstance(base_trust, bool) or not isinstance(base_trust, (int, float)) or not 0 <= base_trust <= 100:
        errors.append("engine.default_base_trust должен быть от 0 до 100")
    if engine.history_window < 1:
        errors.append("engine.history_window должен быть >= 1")

    ttl = settings.session.ttl_seconds
    if ttl is not None and ttl <= 0:
        errors.append("session.ttl_seconds должен быть > 0 или null")

    return errors


_settings: Optional[DotDict] = None


def get_settings() -> DotDict:
    """Настройки процесса (читаются один раз)"""
    global _settings
    if _settings is None:
        _settings = load_settings()
        for err in validate_settings(_settings):
            print(f"[settings] ошибка: {err}")
    return _settings


def reload_settings() -> DotDict:
    """Сбросить кэш и прочитать файл заново"""
    global _settings
    _settings = None
    return get_settings()


settings = get_settings()
