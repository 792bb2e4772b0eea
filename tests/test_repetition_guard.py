"""
Тесты фильтра повторов.
"""

import pytest

from persona_trust.dialogue import ReplyPart, ReplySource
from persona_trust.repetition_guard import RepetitionGuard, normalize_sentence, split_sentences


@pytest.fixture
def guard(store, engine_config, phrases):
    return RepetitionGuard(store, engine_config, phrases)


class TestHelpers:
    """Разбиение и нормализация предложений"""

    def test_split(self):
        assert split_sentences("Покажите контракт. Что за вакансия? Ок!") == [
            "Покажите контракт.", "Что за вакансия?", "Ок!",
        ]
        assert split_sentences(None) == []

    def test_normalize(self):
        assert normalize_sentence("  Пришлите  СЧЁТ!!! ") == "пришлите счет"


class TestGuard:
    """Журнал фраз, кулдаун, лимит вопросов"""

    def test_new_text_passes_and_is_recorded(self, guard, store):
        assert guard.guard("Покажите контракт.", "s1", turn=1) == "Покажите контракт."
        assert store.phrase_use_count("s1", "покажите контракт") == 1

    def test_repeat_is_dropped(self, guard):
        guard.guard("Покажите контракт.", "s1", turn=1)
        assert "Покажите контракт" not in guard.guard("Покажите контракт. Что за вакансия?", "s1", turn=2)

    def test_repeat_dropped_after_cooldown_when_cap_reached(self, guard):
        guard.guard("Покажите контракт.", "s1", turn=1)
        result = guard.guard("Покажите контракт.", "s1", turn=20)
        assert result != "Покажите контракт."

    def test_variation_in_case_and_punctuation_is_repeat(self, guard):
        guard.guard("Покажите контракт.", "s1", turn=1)
        assert "контракт" not in guard.guard("ПОКАЖИТЕ контракт!!!", "s1", turn=2).lower()

    def test_only_one_question(self, guard):
        result = guard.guard("Что за вакансия? Какая зарплата? Где жильё?", "s1", turn=1)
        assert result == "Что за вакансия?"

    def test_stoplist(self, guard):
        result = guard.guard("Чем могу помочь? Покажите деманд.", "s1", turn=1)
        assert result == "Покажите деманд."

    def test_same_sentence_twice_in_one_reply(self, guard):
        assert guard.guard("Хорошо. Хорошо.", "s1", turn=1) == "Хорошо."

    def test_all_dropped_collapses_to_filler(self, guard, phrases):
        guard.guard("Покажите контракт.", "s1", turn=1)
        result = guard.guard("Покажите контракт.", "s1", turn=2)
        assert result in phrases.pool("fillers")
        assert guard.get_metrics()["collapsed_to_filler"] == 1

    def test_sessions_independent(self, guard):
        guard.guard("Покажите контракт.", "s1", turn=1)
        assert guard.guard("Покажите контракт.", "s2", turn=1) == "Покажите контракт."


class TestProtectedParts:
    """Реплика о покупке и факты деманда не фильтруются"""

    def test_commit_and_fact_untouched(self, guard):
        parts = [
            ReplyPart("Что за вакансия?", ReplySource.DRAFT),
            ReplyPart("В деманде зарплата 1400 EUR.", ReplySource.FACT),
        ]
        guard.guard_parts(parts, "s1", turn=1)
        result = guard.guard_parts(parts, "s1", turn=2)
        assert "В деманде зарплата 1400 EUR." in result.text
        assert "Что за вакансия?" not in result.text

    def test_protected_question_counts_towards_limit(self, guard):
        parts = [
            ReplyPart("Ладно, убедили. Пришлёте счёт?", ReplySource.COMMIT),
            ReplyPart("Когда начнём?", ReplySource.DRAFT),
        ]
        result = guard.guard_parts(parts, "s1", turn=1)
        assert result.text == "Ладно, убедили. Пришлёте счёт?"
