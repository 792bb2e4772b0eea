"""
Demand Facts — структурированные факты из деманда работодателя.

Деманд приходит как payload доказательства (dict с английскими или
русскими полями, либо текст вида "Зарплата: 1200 EUR"). Факты
заполняются по мере поступления и никогда не затираются более бедными.

Использование:
    from persona_trust.demand_facts import parse_demand_payload, asked_facts

    facts = parse_demand_payload({"position": "Сварщик", "salary": "1400 EUR"})
    asked_facts("А сколько там платят?")  # ["salary"]
"""

import re
from dataclasses import asdict, dataclass, fields
from typing import Any, Dict, List, Optional


@dataclass
class DemandFacts:
    """Факты деманда (пустая строка = неизвестно)"""
    position: str = ""
    salary: str = ""
    accommodation: str = ""
    hours: str = ""
    schedule: str = ""
    location: str = ""
    period: str = ""

    def is_empty(self) -> bool:
        return not any(getattr(self, f.name) for f in fields(self))

    def known(self) -> Dict[str, str]:
        """Только заполненные поля"""
        return {k: v for k, v in asdict(self).items() if v}

    def merge(self, other: "DemandFacts") -> "DemandFacts":
        """
        Слить факты: поле заменяется только более полным значением.

        Returns:
            Новый DemandFacts (self не меняется)
        """
        merged = {}
        for f in fields(self):
            current = getattr(self, f.name)
            incoming = getattr(other, f.name)
            merged[f.name] = incoming if len(incoming.strip()) > len(current.strip()) else current
        return DemandFacts(**merged)


FACT_NAMES: List[str] = [f.name for f in fields(DemandFacts)]

# Синонимы полей payload → поле DemandFacts
FIELD_ALIASES: Dict[str, str] = {
    "position": "position",
    "job": "position",
    "job_title": "position",
    "vacancy": "position",
    "profession": "position",
    "позиция": "position",
    "должность": "position",
    "вакансия": "position",
    "профессия": "position",
    "salary": "salary",
    "wage": "salary",
    "pay": "salary",
    "зарплата": "salary",
    "оклад": "salary",
    "ставка": "salary",
    "accommodation": "accommodation",
    "housing": "accommodation",
    "accommodation_cost": "accommodation",
    "жилье": "accommodation",
    "жильё": "accommodation",
    "проживание": "accommodation",
    "общежитие": "accommodation",
    "hours": "hours",
    "working_hours": "hours",
    "hours_per_month": "hours",
    "часы": "hours",
    "рабочие часы": "hours",
    "часов в месяц": "hours",
    "schedule": "schedule",
    "shifts": "schedule",
    "график": "schedule",
    "смены": "schedule",
    "location": "location",
    "city": "location",
    "address": "location",
    "place": "location",
    "место работы": "location",
    "город": "location",
    "адрес": "location",
    "локация": "location",
    "period": "period",
    "duration": "period",
    "contract_period": "period",
    "срок": "period",
    "срок контракта": "period",
    "период": "period",
}

# Строка "Метка: значение" в свободном тексте
_LABEL_LINE = re.compile(r"^\s*([^:\n]{2,40}?)\s*[:\-–]\s*(.+?)\s*$", re.MULTILINE)

# Ключевые паттерны, если меток нет
_TEXT_PATTERNS: Dict[str, re.Pattern] = {
    "salary": re.compile(
        r"(\d[\d\s.,]*\s*(?:€|eur|евро|czk|крон|pln|zł|злот)(?:\s*(?:/|в|per)\s*(?:месяц|мес|час|month|hour))?)",
        re.IGNORECASE,
    ),
    "hours": re.compile(
        r"(\d{1,3}\s*(?:-|–|до)?\s*\d{0,3}\s*(?:час(?:а|ов)?|hours?|ч\.?)\s*(?:в\s*(?:месяц|неделю|день)|per\s*(?:month|week|day))?)",
        re.IGNORECASE,
    ),
    "period": re.compile(
        r"((?:на\s*)?\d{1,2}\s*(?:месяц(?:а|ев)?|мес\.?|months?|год(?:а)?|лет|years?))",
        re.IGNORECASE,
    ),
}


def _clean_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        return ", ".join(_clean_value(v) for v in value if _clean_value(v))
    if isinstance(value, dict):
        return ", ".join(f"{k}: {_clean_value(v)}" for k, v in value.items() if _clean_value(v))
    return re.sub(r"\s+", " ", str(value)).strip()


def _field_for(label: Any) -> Optional[str]:
    key = re.sub(r"\s+", " ", str(label)).strip().lower()
    if key in FIELD_ALIASES:
        return FIELD_ALIASES[key]
    return FIELD_ALIASES.get(key.replace(" ", "_"))


def _from_dict(payload: Dict[str, Any]) -> DemandFacts:
    values: Dict[str, str] = {}
    for label, raw in payload.items():
        name = _field_for(label)
        if name is None:
            # вложенный payload: {"demand_letter": {...}} или {"facts": {...}}
            if isinstance(raw, dict):
                nested = _from_dict(raw)
                for k, v in nested.known().items():
                    values.setdefault(k, v)
            elif isinstance(raw, str) and label in ("text", "content", "body"):
                for k, v in _from_text(raw).known().items():
                    values.setdefault(k, v)
            continue
        value = _clean_value(raw)
        if value and len(value) > len(values.get(name, "")):
            values[name] = value
    return DemandFacts(**values)


def _from_text(text: str) -> DemandFacts:
    values: Dict[str, str] = {}
    for match in _LABEL_LINE.finditer(text):
        name = _field_for(match.group(1))
        if name and name not in values:
            values[name] = _clean_value(match.group(2))

    for name, pattern in _TEXT_PATTERNS.items():
        if name in values:
            continue
        match = pattern.search(text)
        if match:
            values[name] = _clean_value(match.group(1))
    return DemandFacts(**values)


def parse_demand_payload(payload: Any) -> DemandFacts:
    """
    Извлечь факты из payload деманда.

    Args:
        payload: dict (поля en/ru, допускается вложенность) или текст

    Returns:
        DemandFacts (пустой, если ничего не распознано)
    """
    if isinstance(payload, dict):
        return _from_dict(payload)
    if isinstance(payload, str) and payload.strip():
        return _from_text(payload)
    return DemandFacts()


# =============================================================================
# ВОПРОСЫ МЕНЕДЖЕРА О ФАКТАХ
# =============================================================================

# Порядок важен: первый совпавший вопрос определяет факт
FACT_QUESTIONS: List[tuple] = [
    ("salary", re.compile(r"(зарплат|сколько (там )?плат|оклад|ставк|salary|how much .*pay)", re.IGNORECASE)),
    ("accommodation", re.compile(r"(жиль|общежит|прожива|где (будут )?жить|accommodation|housing)", re.IGNORECASE)),
    ("hours", re.compile(r"(сколько час|часов в|рабочи[ех] час|working hours|how many hours)", re.IGNORECASE)),
    ("schedule", re.compile(r"(график|смен[аыу]|schedule|shifts?)", re.IGNORECASE)),
    ("location", re.compile(r"(где (это|находится|работа|работать)|какой город|в каком городе|место работы|локаци|where is|location)", re.IGNORECASE)),
    ("position", re.compile(r"(что за (работа|ваканси|позици)|кем работать|какая (работа|позиция|вакансия)|обязанност|job description|what (is the )?job)", re.IGNORECASE)),
    ("period", re.compile(r"(на какой срок|срок контракта|на сколько месяцев|how long is the contract)", re.IGNORECASE)),
]


def asked_facts(text: Any) -> List[str]:
    """Какие факты спрашивает менеджер (в порядке приоритета)"""
    t = "" if text is None else str(text)
    if not t.strip():
        return []
    return [name for name, pattern in FACT_QUESTIONS if pattern.search(t)]
