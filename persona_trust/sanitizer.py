"""
Reply Sanitizer — чистка текста языковой модели.

Применяется ТОЛЬКО к черновику модели (готовые реплики, факты деманда
и реплика о покупке сюда не попадают).

Что чистится:
    - платёжная политика: кошельки, «переведите мне», «я оплачу первым»,
      гарантии визы, связи в посольстве, непрошеная крипта;
    - продающие обороты;
    - роботизированные «спасибо за …»;
    - женский род от первого лица (персонаж — мужчина);
    - предложения с ценами (модель пересказывает прайс);
    - длина: не больше max_sentences предложений.
"""

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from persona_trust.repetition_guard import split_sentences


# Запрещённые паттерны (фраза целиком недопустима для персонажа)
BANNED_PATTERNS: List[str] = [
    r"кошел(е|ё)к|кошельк|wallet",
    r"переведите[^.!?]*мне",
    r"я оплачу первым",
    r"гарантир\w*[^.!?]*виз",
    r"связи[^.!?]*посольств",
]

CRYPTO_MENTION = r"(крипт|usdt|\bbtc\b|\beth\b|bitcoin|биткоин|crypto|stablecoin)"

SALESY_PATTERNS: List[str] = [
    r"выгодн\w* предложени",
    r"уникальн\w* (предложени|возможност)",
    r"не упустите",
    r"только сейчас",
    r"специальн\w* (цен|предложени|услови)",
    r"лучш\w* (предложени|цен)",
    r"спешите",
    r"акци[яию]",
]

ROBOTIC_THANKS = r"^\s*(спасибо|благодарю)( вам)? за [^.!?]*[.!]?\s*$"

PRICE_FIGURE = r"(€\s*\d|\d[\d\s.,]*\s*(€|евро|eur\b|euro))"

# Женский род первого лица → мужской
MASCULINE_FORMS: Dict[str, str] = {
    "рада": "рад",
    "готова": "готов",
    "согласна": "согласен",
    "уверена": "уверен",
    "должна": "должен",
    "заинтересована": "заинтересован",
    "поняла": "понял",
    "посмотрела": "посмотрел",
    "проверила": "проверил",
    "получила": "получил",
    "увидела": "увидел",
    "сказала": "сказал",
    "хотела": "хотел",
    "могла": "мог",
    "подумала": "подумал",
    "решила": "решил",
    "изучила": "изучил",
    "прочитала": "прочитал",
    "ждала": "ждал",
}

_BANNED = [re.compile(p, re.IGNORECASE) for p in BANNED_PATTERNS]
_CRYPTO = re.compile(CRYPTO_MENTION, re.IGNORECASE)
_SALESY = [re.compile(p, re.IGNORECASE) for p in SALESY_PATTERNS]
_ROBOTIC = re.compile(ROBOTIC_THANKS, re.IGNORECASE)
_PRICE = re.compile(PRICE_FIGURE, re.IGNORECASE)
_FEMININE = re.compile(r"\b(" + "|".join(MASCULINE_FORMS) + r")\b", re.IGNORECASE)


def contains_banned(text: Optional[str]) -> bool:
    """Есть ли в тексте запрещённая для персонажа фраза"""
    t = text or ""
    return any(p.search(t) for p in _BANNED)


def mentions_crypto(text: Optional[str]) -> bool:
    return bool(_CRYPTO.search(text or ""))


def _masculine(match: "re.Match") -> str:
    word = match.group(0)
    replacement = MASCULINE_FORMS[word.lower()]
    if word[:1].isupper():
        return replacement[:1].upper() + replacement[1:]
    return replacement


def to_masculine(text: str) -> str:
    """Женские формы первого лица → мужские"""
    return _FEMININE.sub(_masculine, text)


@dataclass
class SanitizeResult:
    """Результат чистки"""
    text: str
    removed: List[str] = field(default_factory=list)
    reasons: List[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.reasons)


class ReplySanitizer:
    """Чистка черновика модели."""

    def __init__(self, max_sentences: int = 6):
        self.max_sentences = max_sentences

    def _drop_reason(self, sentence: str, crypto_allowed: bool) -> Optional[str]:
        if any(p.search(sentence) for p in _BANNED):
            return "banned"
        if not crypto_allowed and _CRYPTO.search(sentence):
            return "unsolicited_crypto"
        if any(p.search(sentence) for p in _SALESY):
            return "salesy"
        if _ROBOTIC.match(sentence):
            return "robotic_thanks"
        if _PRICE.search(sentence):
            return "price_figure"
        return None

    def sanitize(self, text: Optional[str], user_text: Optional[str] = None) -> SanitizeResult:
        """
        Почистить черновик.

        Args:
            text: Черновик модели
            user_text: Реплика менеджера (крипта допустима, только если он сам её упомянул)

        Returns:
            SanitizeResult (text может стать пустым — замену выбирает вызывающий)
        """
        crypto_allowed = mentions_crypto(user_text)
        result = SanitizeResult(text="")
        kept: List[str] = []

        for sentence in split_sentences(text):
            reason = self._drop_reason(sentence, crypto_allowed)
            if reason:
                result.removed.append(sentence)
                result.reasons.append(reason)
                continue
            fixed = to_masculine(sentence)
            if fixed != sentence:
                result.reasons.append("gender_agreement")
            kept.append(fixed)

        if len(kept) > self.max_sentences:
            kept = kept[:self.max_sentences]
            result.reasons.append("trimmed")

        result.text = " ".join(kept).strip()
        return result
