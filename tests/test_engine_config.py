"""
Тесты конфигурации движка и банка реплик.
"""

import pytest

from persona_trust.engine_config import (
    EngineConfigError,
    PhraseBank,
    load_engine_config,
    validate_engine_config,
)


class TestEngineConfig:
    """engine.yaml"""

    def test_package_config_valid(self, engine_config):
        assert validate_engine_config(dict(engine_config)) == []
        assert engine_config.version != "unversioned"

    def test_dot_access(self, engine_config):
        assert engine_config.scoring.gates.gate1_cap == 30
        assert engine_config.policy.payment_trust == 90
        assert "demand_letter" in engine_config.evidence.tiers.hard

    def test_overrides_merged(self):
        config = load_engine_config(overrides={"policy": {"payment_trust": 80}})
        assert config.policy.payment_trust == 80
        assert config.policy.min_unique_evidence_for_payment == 2

    def test_decreasing_personal_quota_rejected(self):
        brackets = [
            {"min_trust": 40, "cap": 4, "bonus": 2},
            {"min_trust": 60, "cap": 2, "bonus": 1},
        ]
        with pytest.raises(EngineConfigError) as exc:
            load_engine_config(overrides={"scoring": {"personal_questions": {"brackets": brackets}}})
        assert any("cap" in e for e in exc.value.errors)
        assert any("bonus" in e for e in exc.value.errors)

    def test_unit_weights_must_sum_to_one(self):
        with pytest.raises(EngineConfigError):
            load_engine_config(overrides={"purchase": {"unit_weights": [0.5, 0.1]}})

    def test_alternate_ceiling_below_one(self):
        with pytest.raises(EngineConfigError):
            load_engine_config(overrides={"purchase": {"channels": {"alternate_ceiling": 1.0}}})

    def test_gate_caps_ordered(self):
        with pytest.raises(EngineConfigError):
            load_engine_config(overrides={"scoring": {"gates": {"gate1_cap": 80}}})

    def test_key_in_two_tiers(self):
        with pytest.raises(EngineConfigError):
            load_engine_config(overrides={"evidence": {"tiers": {"medium": ["demand_letter"]}}})

    def test_missing_section(self):
        assert validate_engine_config({"evidence": {}}) == [
            "секция 'scoring' отсутствует",
            "секция 'policy' отсутствует",
            "секция 'purchase' отсутствует",
            "секция 'repetition' отсутствует",
        ]


class TestPhraseBank:
    """phrases.yaml"""

    def test_pools_present(self, phrases):
        for name in ("fallback", "ask_docs", "too_early_payment", "objection_budget", "fillers"):
            assert phrases.pool(name)

    def test_pool_is_a_copy(self, phrases):
        phrases.pool("fillers").append("мусор")
        assert "мусор" not in phrases.pool("fillers")

    def test_template(self, phrases):
        assert phrases.template("fact_salary", value="1400 EUR") == "В деманде зарплата 1400 EUR."
        assert phrases.template("no_such_template") == ""
        assert phrases.pool("no_such_pool") == []

    def test_empty_bank(self):
        bank = PhraseBank({})
        assert bank.pool("fillers") == []
        assert not bank.has_template("ack_demand_letter")
