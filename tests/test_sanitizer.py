"""
Тесты чистки черновика модели.
"""

import pytest

from persona_trust.sanitizer import ReplySanitizer, contains_banned, mentions_crypto, to_masculine


@pytest.fixture
def sanitizer():
    return ReplySanitizer(max_sentences=6)


class TestBanned:
    """Запрещённые фразы"""

    @pytest.mark.parametrize("text", [
        "Скиньте на мой кошелёк.",
        "Переведите деньги мне на карту.",
        "Я оплачу первым, не переживайте.",
        "Гарантирую вам визу.",
        "У меня связи в посольстве.",
    ])
    def test_banned(self, text):
        assert contains_banned(text)

    def test_clean(self):
        assert not contains_banned("Покажите контракт о сотрудничестве.")
        assert not contains_banned(None)


class TestSanitize:
    """Чистка по предложениям"""

    def test_banned_sentence_removed(self, sanitizer):
        result = sanitizer.sanitize("Переведите мне аванс. Покажите контракт.")
        assert result.text == "Покажите контракт."
        assert "banned" in result.reasons

    def test_unsolicited_crypto_removed(self, sanitizer):
        result = sanitizer.sanitize("Можно в USDT. Покажите контракт.", user_text="Вот деманд")
        assert result.text == "Покажите контракт."
        assert "unsolicited_crypto" in result.reasons

    def test_crypto_kept_when_manager_raised_it(self, sanitizer):
        result = sanitizer.sanitize("USDT не люблю.", user_text="Можно оплатить криптой?")
        assert result.text == "USDT не люблю."

    def test_salesy_removed(self, sanitizer):
        assert sanitizer.sanitize("Это выгодное предложение. Ок.").text == "Ок."

    def test_robotic_thanks_removed(self, sanitizer):
        assert sanitizer.sanitize("Спасибо за информацию. Что за вакансия?").text == "Что за вакансия?"

    def test_price_sentence_removed(self, sanitizer):
        assert sanitizer.sanitize("У вас 350 € за кандидата. Дорого.").text == "Дорого."

    def test_feminine_forms_fixed(self, sanitizer):
        result = sanitizer.sanitize("Я готова посмотреть. Рада знакомству.")
        assert result.text == "Я готов посмотреть. Рад знакомству."
        assert "gender_agreement" in result.reasons

    def test_trim_to_max_sentences(self):
        result = ReplySanitizer(max_sentences=2).sanitize("Раз. Два. Три.")
        assert result.text == "Раз. Два."
        assert "trimmed" in result.reasons

    def test_everything_removed_gives_empty(self, sanitizer):
        assert sanitizer.sanitize("Переведите мне деньги.").text == ""

    def test_unchanged(self, sanitizer):
        result = sanitizer.sanitize("Покажите деманд.")
        assert not result.changed


class TestHelpers:
    def test_to_masculine_keeps_case(self):
        assert to_masculine("Согласна") == "Согласен"

    def test_mentions_crypto(self):
        assert mentions_crypto("оплата в BTC")
        assert not mentions_crypto("банковский перевод")
