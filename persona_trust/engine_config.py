"""
Versioned Engine Configuration.

Единый источник весов, порогов и словарей для скорера и пост-правил.
Загружается из yaml_config/engine.yaml, принимает точечные overrides
(для тестов и A/B), валидируется при загрузке.

Usage:
    from persona_trust.engine_config import load_engine_config, load_phrases

    config = load_engine_config()
    config.scoring.gates.gate1_cap          # 30
    config.evidence.tiers.hard              # ['demand_letter', ...]

    phrases = load_phrases()
    phrases.pool("too_early_payment")
"""

from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from persona_trust.settings import DotDict, _deep_merge


_CONFIG_DIR = Path(__file__).parent / "yaml_config"
ENGINE_CONFIG_PATH = _CONFIG_DIR / "engine.yaml"
PHRASES_PATH = _CONFIG_DIR / "phrases.yaml"


class EngineConfigError(ValueError):
    """Конфигурация движка невалидна (ошибки перечислены в errors)."""

    def __init__(self, errors: List[str]):
        self.errors = errors
        super().__init__("; ".join(errors))


class EngineConfig(DotDict):
    """Конфигурация движка с доступом через точку."""

    @property
    def version(self) -> str:
        return str(self.get("version", "unversioned"))


def _load_yaml(file_path: Path) -> Dict[str, Any]:
    with open(file_path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def _is_probability(value: Any) -> bool:
    return isinstance(value, (int, float)) and 0.0 <= value <= 1.0


def validate_engine_config(config: Dict[str, Any]) -> List[str]:
    """
    Проверить конфигурацию движка.

    Returns:
        Список ошибок (пустой если всё OK)
    """
    errors: List[str] = []
    cfg = DotDict(config)

    for section in ("evidence", "scoring", "policy", "purchase", "repetition"):
        if section not in cfg:
            errors.append(f"секция '{section}' отсутствует")
    if errors:
        return errors

    tiers = cfg.evidence.get("tiers", {})
    seen: Dict[str, str] = {}
    for tier in ("hard", "medium", "support"):
        for key in tiers.get(tier, []) or []:
            if key in seen:
                errors.append(f"ключ '{key}' одновременно в {seen[key]} и {tier}")
            seen[key] = tier

    # Квота личных вопросов: cap и bonus не убывают с ростом доверия
    brackets = cfg.scoring.get_nested("personal_questions.brackets", []) or []
    ordered = sorted(brackets, key=lambda b: b.get("min_trust", 0))
    for prev, cur in zip(ordered, ordered[1:]):
        if cur.get("cap", 0) < prev.get("cap", 0):
            errors.append(
                f"personal_questions: cap убывает на min_trust={cur.get('min_trust')}"
            )
        if cur.get("bonus", 0) < prev.get("bonus", 0):
            errors.append(
                f"personal_questions: bonus убывает на min_trust={cur.get('min_trust')}"
            )

    gates = cfg.scoring.get("gates", {})
    caps = [gates.get("gate1_cap", 0), gates.get("gate2_cap", 0), gates.get("gate3_cap", 0)]
    if caps != sorted(caps):
        errors.append("gates: потолки должны расти gate1 <= gate2 <= gate3")

    steps = cfg.purchase.get("base_probability", []) or []
    for step in steps:
        if not _is_probability(step.get("p")):
            errors.append(f"purchase.base_probability: p вне [0,1] ({step})")
    if not _is_probability(cfg.purchase.get("probability_ceiling")):
        errors.append("purchase.probability_ceiling вне [0,1]")

    weights = cfg.purchase.get("unit_weights", []) or []
    if not weights or any(w < 0 for w in weights) or abs(sum(weights) - 1.0) > 1e-6:
        errors.append("purchase.unit_weights должны быть неотрицательны и давать в сумме 1")

    alt_ceiling = cfg.purchase.get_nested("channels.alternate_ceiling")
    if not _is_probability(alt_ceiling) or alt_ceiling >= 1.0:
        errors.append("purchase.channels.alternate_ceiling должен быть в [0,1)")

    if cfg.repetition.get("max_repeats", 0) < 1:
        errors.append("repetition.max_repeats должен быть >= 1")
    if cfg.repetition.get("max_questions", 0) < 0:
        errors.append("repetition.max_questions должен быть >= 0")

    return errors


def load_engine_config(
    path: Optional[Path] = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> EngineConfig:
    """
    Загрузить и провалидировать конфигурацию движка.

    Args:
        path: Путь к YAML (по умолчанию yaml_config/engine.yaml)
        overrides: Частичный словарь, глубоко сливается поверх YAML

    Returns:
        EngineConfig

    Raises:
        EngineConfigError: если конфигурация невалидна
    """
    raw = _load_yaml(Path(path) if path else ENGINE_CONFIG_PATH)
    if overrides:
        raw = _deep_merge(raw, overrides)

    errors = validate_engine_config(raw)
    if errors:
        raise EngineConfigError(errors)

    return EngineConfig(raw)


class PhraseBank:
    """
    Банк готовых реплик персонажа (yaml_config/phrases.yaml).

    Пулы — списки строк, шаблоны — строки с {placeholders}.
    """

    def __init__(self, data: Dict[str, Any]):
        self._pools: Dict[str, List[str]] = {
            name: [str(line) for line in lines]
            for name, lines in (data.get("pools") or {}).items()
        }
        self._templates: Dict[str, str] = {
            name: str(text) for name, text in (data.get("templates") or {}).items()
        }

    def pool(self, name: str) -> List[str]:
        """Получить пул реплик (пустой список если пула нет)"""
        return list(self._pools.get(name, []))

    def template(self, name: str, **values: Any) -> str:
        """Отрендерить шаблон; неизвестный шаблон → пустая строка"""
        text = self._templates.get(name)
        if text is None:
            return ""
        return text.format(**values)

    def has_template(self, name: str) -> bool:
        return name in self._templates


def load_phrases(path: Optional[Path] = None) -> PhraseBank:
    """Загрузить банк реплик."""
    return PhraseBank(_load_yaml(Path(path) if path else PHRASES_PATH))
