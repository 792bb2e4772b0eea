"""
Tests for the REST API and its structured error contract.
"""

import pytest
from fastapi.testclient import TestClient

import persona_trust.api as api_mod


@pytest.fixture
def client(monkeypatch, engine):
    monkeypatch.setattr(api_mod, "_engine", engine)
    with TestClient(api_mod.app) as test_client:
        yield test_client


def test_health(client):
    assert client.get("/health").json() == {"ok": True}
    assert client.get("/api/ping").json() == {"ok": True}


def test_reply_expands_numeric_evidence(client):
    resp = client.post("/api/reply", json={
        "sessionId": "s1",
        "user_text": "Добрый день",
        "evidence": 2,
    })

    assert resp.status_code == 200
    body = resp.json()
    assert body["text"]
    assert body["agent"]["name"] == "Али"
    assert body["evidence_delta"] == 0
    assert body["meta"]["ok"] is True
    assert body["meta"]["evidenceCount"] == 2
    assert 0 <= body["meta"]["trust"] <= 100


def test_reply_uses_session_memory(client):
    first = client.post("/api/reply", json={"sessionId": "s1", "evidences": ["demand"]}).json()
    second = client.post("/api/reply", json={"sessionId": "s1", "evidences": ["demand"]}).json()
    assert "Деманд вижу" in first["text"]
    assert "Деманд вижу" not in second["text"]
    assert second["meta"]["evidenceCount"] == 1


def test_reply_garbage_base_trust_is_not_an_error(client):
    resp = client.post("/api/reply", json={"sessionId": "s1", "baseTrust": "abc"})
    assert resp.status_code == 200


def test_reply_rejects_oversized_evidence_count(client):
    resp = client.post("/api/reply", json={"sessionId": "s1", "evidence": 1e12})

    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "BAD_REQUEST"


def test_reply_rejects_infinite_evidence_count(client):
    resp = client.post(
        "/api/reply",
        content='{"sessionId": "s1", "evidence": Infinity}',
        headers={"Content-Type": "application/json"},
    )

    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "BAD_REQUEST"


def test_chat_legacy_shape(client):
    resp = client.post("/chat", json={
        "sessionId": "s1",
        "message": "Добрый день",
        "stage": "Demand",
        "history": [{"role": "assistant", "content": "Здравствуйте", "stage": "Greeting"}],
    })

    assert resp.status_code == 200
    body = resp.json()
    assert body["ok"] is True
    assert body["evidenceCount"] == 0
    assert set(body["result"]) == {"reply", "stage", "confidence", "needEvidence", "suggestedActions"}
    assert body["result"]["stage"] == "Demand"


def test_chat_returns_400_with_structured_error_for_invalid_payload(client):
    resp = client.post("/chat", json={"sessionId": "s1"})

    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "BAD_REQUEST"


def test_chat_returns_400_for_unknown_history_role(client):
    resp = client.post("/chat", json={
        "sessionId": "s1",
        "message": "Привет",
        "history": [{"role": "system", "content": "x"}],
    })

    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "BAD_REQUEST"


def test_reply_returns_500_with_structured_error_for_internal_exception(monkeypatch, client):
    def boom(*_args, **_kwargs):
        raise RuntimeError("boom")

    monkeypatch.setattr(api_mod, "_run_turn", boom)

    resp = client.post("/api/reply", json={"sessionId": "s1"})

    assert resp.status_code == 500
    assert resp.json() == {"error": {"code": "INTERNAL", "message": "Internal server error"}}


def test_chat_returns_500_with_structured_error_for_internal_exception(monkeypatch, client):
    def boom(*_args, **_kwargs):
        raise RuntimeError("boom")

    monkeypatch.setattr(api_mod, "_run_turn", boom)

    resp = client.post("/chat", json={"sessionId": "s1", "message": "Привет"})

    assert resp.status_code == 500
    assert resp.json()["error"]["code"] == "INTERNAL"


def test_score(client):
    resp = client.post("/api/score", json={
        "evidences": ["demand", "contract"],
        "history": [{"role": "user", "content": "Здравствуйте! Мы renovogo, готовы начать"}],
    })

    assert resp.status_code == 200
    body = resp.json()
    assert body["final"] == 100
    assert body["bad"] == []
    assert body["evidences"] == 2


class TestHelpers:
    """Разбор полей фронта"""

    def test_expand_evidences(self):
        assert api_mod.expand_evidences(["demand"], 5) == ["demand"]
        assert api_mod.expand_evidences(None, 3) == ["proof_1", "proof_2", "proof_3"]
        assert api_mod.expand_evidences(None, -1) == []
        assert api_mod.expand_evidences(None, None) == []

    def test_expand_evidences_is_capped(self):
        assert len(api_mod.expand_evidences(None, 1e12)) == api_mod.MAX_PLACEHOLDER_EVIDENCE
        assert api_mod.expand_evidences(None, float("inf")) == []
        assert api_mod.expand_evidences(None, float("nan")) == []

    def test_allowed_origins(self, monkeypatch):
        monkeypatch.setitem(api_mod.settings["api"], "allowed_origins", " https://a.com, ,https://b.com ")
        assert api_mod.allowed_origins() == ["https://a.com", "https://b.com"]
