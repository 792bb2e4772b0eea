"""
Тесты модели решения о покупке.
"""

import pytest

from persona_trust.purchase_model import PurchaseModel, unit_word


FULL_KIT = ["business_card", "demand_letter", "sample_contract_pdf", "coop_contract_pdf"]


@pytest.fixture
def make_model(engine_config, phrases, classifier):
    def _create(rng_factory=None):
        return PurchaseModel(engine_config, phrases, classifier, rng_factory)
    return _create


class TestPreconditions:
    """Все предусловия обязательны"""

    def test_full_kit_passes(self, make_model, classifier):
        model = make_model()
        assert model.missing_preconditions(classifier.summarize(FULL_KIT), 90) == []

    @pytest.mark.parametrize("missing", FULL_KIT)
    def test_each_document_required(self, make_model, classifier, always_draw_zero, missing):
        model = make_model(always_draw_zero)
        kit = [k for k in FULL_KIT if k != missing]
        summary = classifier.summarize(kit)
        assert model.missing_preconditions(summary, 100)
        assert model.evaluate("s1", 1, 100, summary, "") is None

    def test_trust_floor(self, make_model, classifier, always_draw_zero):
        model = make_model(always_draw_zero)
        summary = classifier.summarize(FULL_KIT)
        assert model.missing_preconditions(summary, 69) == ["trust"]
        assert model.evaluate("s1", 1, 69, summary, "") is None

    def test_already_committed(self, make_model, classifier, always_draw_zero):
        model = make_model(always_draw_zero)
        assert model.evaluate("s1", 1, 100, classifier.summarize(FULL_KIT), "", already_committed=True) is None


class TestProbability:
    """Ступенчатая вероятность и бонус за отработку возражений"""

    @pytest.mark.parametrize("trust,p", [(100, 0.50), (95, 0.35), (90, 0.35), (85, 0.05), (70, 0.01)])
    def test_steps(self, make_model, trust, p):
        assert make_model().base_probability(trust) == pytest.approx(p)

    def test_handling_quality(self, make_model):
        model = make_model()
        assert model.handling_quality("Отправил документы") == "none"
        assert model.handling_quality("Понимаю ваши опасения") == "weak"
        assert model.handling_quality("Понимаю ваши опасения, давайте один кандидат на тест") == "strong"

    def test_bonus_added(self, make_model, classifier, never_commit):
        model = make_model(never_commit)
        decision = model.evaluate(
            "s1", 1, 100, classifier.summarize(FULL_KIT),
            "Понимаю ваши опасения, давайте один кандидат на тест",
        )
        assert not decision.committed
        assert decision.probability == pytest.approx(0.60)
        assert decision.handling_quality == "strong"

    def test_alternate_channel_probability_bounded(self, make_model):
        model = make_model()
        assert model.alternate_channel_probability("Отправил", 100) == 0.0
        p = model.alternate_channel_probability("USDT без комиссии и моментально", 100)
        assert 0 < p <= 0.6


class TestCommit:
    """Покупка"""

    def test_commit_on_low_draw(self, make_model, classifier, always_draw_zero):
        model = make_model(always_draw_zero)
        decision = model.evaluate("s1", 3, 100, classifier.summarize(FULL_KIT), "Документы все у вас")
        assert decision.committed
        assert decision.units == 1
        assert decision.channel == "bank"
        assert decision.reply.startswith("Ладно, убедили. На старт 1 кандидат.")

    def test_no_commit_on_high_draw(self, make_model, classifier, never_commit):
        decision = make_model(never_commit).evaluate("s1", 3, 100, classifier.summarize(FULL_KIT), "")
        assert decision is not None
        assert not decision.committed
        assert decision.units == 0
        assert decision.reply == ""

    def test_deterministic_for_session_and_turn(self, make_model, classifier):
        summary = classifier.summarize(FULL_KIT)
        a = make_model().evaluate("sess-x", 5, 100, summary, "")
        b = make_model().evaluate("sess-x", 5, 100, summary, "")
        assert a == b

    def test_units_within_range(self, make_model, classifier):
        model = make_model()
        summary = classifier.summarize(FULL_KIT)
        for turn in range(1, 60):
            decision = model.evaluate("s-range", turn, 100, summary, "")
            if decision.committed:
                assert 1 <= decision.units <= 10
                assert decision.channel in ("bank", "crypto")


class TestUnitWord:
    """Согласование слова «кандидат»"""

    @pytest.mark.parametrize("n,word", [
        (1, "кандидат"), (2, "кандидата"), (4, "кандидата"), (5, "кандидатов"),
        (11, "кандидатов"), (21, "кандидат"), (22, "кандидата"),
    ])
    def test_unit_word(self, n, word):
        assert unit_word(n) == word
