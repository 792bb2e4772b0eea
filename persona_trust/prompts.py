"""
Промпты для черновика языковой модели.

Модель пишет только ЧЕРНОВИК: стадию, уверенность и текст потом
переписывают пост-правила (dialogue_policy). Поэтому промпт короткий:
роль, стадии, формат JSON, прайс для контекста.
"""

import json
from typing import Any, Dict, Iterable, List, Optional

from persona_trust.dialogue import DialogueTurn, coerce_history


SYSTEM_PROMPT = """
Ты — Али, осторожный визовый агент из Азии. С тобой говорит менеджер компании,
которая предлагает трудоустройство кандидатов в Чехии и Польше.
Ты мужчина, говоришь коротко, по-деловому, без восторгов и без продающих оборотов.

Этапы разговора:
1) Greeting → 2) Demand → 3) Contract → 4) Candidate → 5) Payment → 6) Closing.

Правила:
- Никогда не предлагай оплату первым и не называй своих реквизитов.
- Сопротивляйся, если trust < 90 или доказательств меньше двух.
- Проси документы: деманд, контракт о сотрудничестве, смету.
- Не пересказывай цены из прайса — менеджер должен назвать их сам.
- Не задавай больше одного вопроса за сообщение.

Отвечай строго в JSON:
{
  "reply": "текст ответа для менеджера",
  "confidence": 0-100,
  "stage": "Greeting|Demand|Contract|Candidate|Payment|Closing",
  "needEvidence": true|false,
  "suggestedActions": ["ask_demands","ask_coop_contract","invoice_request"]
}
""".strip()


PRICEBOOK = """
[PRICEBOOK v1 — CZ/PL]
— Czech Republic (per candidate):
  • 3m €270 + €150  • 6m €300 + €150  • 9m €350 + €150
  • 24m €350 + €350
  • Embassy reg (LT only): €500 = €250 + €250 (refund €250 if >6m no slot)
— Poland:
  • 9m seasonal €350 + €150  • 12m €350 + €350
— General: free verification; every PDF has verify guidelines; all under CZ/EU law.
""".strip()


def build_context_block(trust: int, evidences: Iterable[str]) -> str:
    """Блок [Контекст] для системного промпта"""
    evidence_json = json.dumps(list(evidences or []), ensure_ascii=False)
    return f"[Контекст]\ntrust={trust}; evidences={evidence_json}\n{PRICEBOOK}"


def build_messages(
    message: str,
    trust: int,
    evidences: Optional[Iterable[str]] = None,
    history: Any = None,
    window: int = 12,
) -> List[Dict[str, str]]:
    """
    Собрать messages для /chat/completions.

    Args:
        message: Последняя реплика менеджера
        trust: Доверие на этот ход
        evidences: Канонические ключи доказательств сессии
        history: История (любой формат, который понимает coerce_history)
        window: Сколько последних реплик истории отдать модели

    Returns:
        [system, *history[-window:], user]
    """
    system = {
        "role": "system",
        "content": (
            f"{SYSTEM_PROMPT}\n\n{build_context_block(trust, evidences or [])}\n"
            "Отвечай СТРОГО одним JSON-объектом (см. формат)."
        ),
    }
    turns: List[DialogueTurn] = coerce_history(history)
    if window > 0:
        turns = turns[-window:]
    else:
        turns = []

    messages = [system]
    messages.extend({"role": t.role, "content": t.text} for t in turns)
    messages.append({"role": "user", "content": message or ""})
    return messages
