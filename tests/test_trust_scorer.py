"""
Тесты скорера доверия.

Покрывают:
- границы и округление
- монотонность по доказательствам
- ворота 30 / 60 / 75
- штраф за стадию Payment
- кумулятивную квоту личных вопросов
- кулдаун бонуса вежливости
- детерминизм и мусорный вход
"""

import math

import pytest

from persona_trust.trust_scorer import TrustScorer, compute_trust


def user(text, stage=None):
    item = {"role": "user", "content": text}
    if stage:
        item["stage"] = stage
    return item


def assistant(text, stage=None):
    item = {"role": "assistant", "content": text}
    if stage:
        item["stage"] = stage
    return item


RED_FLAG_TEXT = "Гарантирую визу на 100%, связи в посольстве, платите в USDT сразу"


class TestBounds:
    """Доверие всегда целое в [0, 100]"""

    @pytest.mark.parametrize("base", [-500, -1, 0, 20, 99.5, 100, 1000, "abc", None, math.nan, math.inf])
    @pytest.mark.parametrize("evidences", [[], ["demand"], ["demand", "contract", "website", "reviews"]])
    @pytest.mark.parametrize("text", ["", "Здравствуйте, спасибо!", RED_FLAG_TEXT])
    def test_range(self, scorer, base, evidences, text):
        trust = scorer.compute(base, evidences, [user("Добрый день")], text)
        assert isinstance(trust, int)
        assert 0 <= trust <= 100

    def test_red_flags_floor_at_zero(self, scorer):
        assert scorer.compute(0, [], [], RED_FLAG_TEXT) == 0

    def test_full_evidence_reaches_hundred(self, scorer):
        assert scorer.compute(100, ["demand_letter", "coop_contract_pdf"], [], "") == 100

    def test_garbage_base_uses_default(self, scorer):
        assert scorer.compute("abc", [], [], "") == scorer.compute(20, [], [], "")
        assert scorer.compute(None, None, None, None) == scorer.compute(20, [], [], "")


class TestGates:
    """Нелинейные ворота доверия"""

    def test_no_hard_evidence_capped_at_30(self, scorer):
        trust = scorer.compute(20, ["business_card", "website", "reviews"], [], "")
        assert trust <= 30

    def test_no_hard_evidence_capped_even_from_high_base(self, scorer):
        trust = scorer.compute(100, ["business_card", "website", "reviews"], [], "Здравствуйте! Спасибо!")
        assert trust == 30

    def test_single_hard_without_medium_capped_at_60(self, scorer):
        assert scorer.compute(100, ["demand_letter", "business_card"], [], "") == 60

    def test_single_hard_with_medium_capped_at_75(self, scorer):
        assert scorer.compute(100, ["demand_letter", "website"], [], "") == 75

    def test_red_flag_blocks_third_gate(self, scorer):
        breakdown = scorer.explain(100, ["demand_letter", "coop_contract_pdf"], [], "Гарантирую 100%")
        assert breakdown.gates_passed["gate3"] is False
        assert breakdown.trust <= 75

    def test_demand_contract_website_with_candidate_stage(self, scorer):
        history = [
            user("Здравствуйте"),
            assistant("Что за вакансия?", stage="Candidate"),
        ]
        breakdown = scorer.explain(20, ["demand", "coop_contract", "website"], history, "")
        assert 30 < breakdown.trust <= 60
        assert breakdown.gates_passed == {"gate1": True, "gate2": True, "gate3": True}


class TestMonotonicity:
    """Добавление доказательства не снижает доверие"""

    @pytest.mark.parametrize("base", [0, 20, 55, 80])
    @pytest.mark.parametrize("start", [
        [],
        ["website"],
        ["demand_letter"],
        ["demand_letter", "reviews", "business_card"],
    ])
    @pytest.mark.parametrize("extra", ["coop_contract_pdf", "demand_letter", "company_registry", "price_breakdown"])
    @pytest.mark.parametrize("text", ["", "А у вас есть дети?", "Когда оплата? Выставлю счёт"])
    def test_adding_evidence_never_decreases(self, scorer, base, start, extra, text):
        history = [user("Добрый день", stage="Contract")]
        before = scorer.compute(base, start, history, text)
        after = scorer.compute(base, start + [extra], history, text)
        assert after >= before


class TestPaymentStage:
    """Штраф за раннюю стадию Payment"""

    def test_payment_stage_below_third_gate_penalized(self, scorer):
        plain = scorer.compute(20, ["demand_letter"], [], "")
        penalized = scorer.compute(20, ["demand_letter"], [assistant("Оплата?", stage="Payment")], "")
        assert plain - penalized == 8

    def test_no_penalty_above_third_gate(self, scorer):
        history = [assistant("Оплата?", stage="Payment")]
        assert scorer.compute(100, ["demand_letter", "coop_contract_pdf"], history, "") == 100


class TestPersonalQuestionQuota:
    """Квота личных вопросов кумулятивна на весь диалог"""

    PRIOR_QUESTIONS = [
        "А у вас есть дети?",
        "Ваша семья большая?",
        "Сколько вам лет?",
        "Откуда вы родом?",
        "Чем увлекаетесь в свободное время?",
    ]

    def _points(self, scorer, prior_count):
        history = [user(q) for q in self.PRIOR_QUESTIONS[:prior_count]]
        breakdown = scorer.explain(50, ["demand_letter", "coop_contract_pdf"], history, "Какое у вас хобби?")
        return breakdown.components["personal_questions"]

    def test_bonus_while_quota_left(self, scorer):
        # эффективное доверие 74: ступень 70 (cap 5, bonus 2)
        assert self._points(scorer, 3) == 2
        assert self._points(scorer, 4) == 2

    def test_quota_exhausted(self, scorer):
        assert self._points(scorer, 5) == 0

    def test_penalty_below_floor(self, scorer):
        breakdown = scorer.explain(20, [], [], "А у вас есть дети?")
        assert breakdown.components["personal_questions"] == -4

    def test_non_question_ignored(self, scorer):
        breakdown = scorer.explain(50, ["demand_letter"], [], "Моя семья в Праге.")
        assert breakdown.components["personal_questions"] == 0


class TestCourtesy:
    """Бонус вежливости с кулдауном в репликах"""

    def test_bonus_after_cooldown(self, scorer):
        history = [user("Спасибо за ответ"), user("Работа в Праге"), user("Есть общежитие"), user("График сменный")]
        breakdown = scorer.explain(20, [], history, "Спасибо!")
        assert breakdown.components["courtesy"] == 0.5

    def test_no_bonus_within_cooldown(self, scorer):
        breakdown = scorer.explain(20, [], [user("Спасибо за ответ")], "Спасибо!")
        assert breakdown.components["courtesy"] == 0

    def test_first_courtesy_granted(self, scorer):
        breakdown = scorer.explain(20, [], [], "Пожалуйста, посмотрите деманд")
        assert breakdown.components["courtesy"] == 0.5


class TestMicroCredits:
    """Микро-кредиты за темы и отсутствие давления оплатой"""

    def test_topics_add_points(self, scorer):
        history = [user("Вакансия сварщика"), user("Зарплата 1400 евро"), user("Жильё есть")]
        breakdown = scorer.explain(20, [], history, "")
        assert breakdown.components["micro_credits"] == 4

    def test_early_payment_pressure_loses_bonus(self, scorer):
        history = [user("Когда оплата?"), user("Выставлю счёт")]
        breakdown = scorer.explain(20, [], history, "")
        assert breakdown.components["micro_credits"] == 0


class TestDeterminism:
    """Одинаковый вход → одинаковый выход"""

    def test_same_input_same_output(self, scorer):
        history = [user("Здравствуйте"), assistant("Что за вакансия?", stage="Demand")]
        args = (35, ["demand", "website", "визитка"], history, "Зарплата 1400 евро, жильё есть")
        assert scorer.compute(*args) == scorer.compute(*args)

    def test_fresh_scorer_agrees(self, scorer, engine_config):
        args = (20, ["demand", "website"], [user("Добрый день")], "Пришлю контракт")
        assert TrustScorer(engine_config).compute(*args) == scorer.compute(*args)

    def test_module_level_helper(self, scorer):
        args = (20, ["demand"], [], "Здравствуйте")
        assert compute_trust(*args) == scorer.compute(*args)

    def test_evidence_order_irrelevant(self, scorer):
        a = scorer.compute(20, ["demand", "website", "reviews"], [], "")
        b = scorer.compute(20, ["reviews", "website", "demand", "demand"], [], "")
        assert a == b
