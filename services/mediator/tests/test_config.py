import pytest

from app.config import DEFAULT_ESCALATION_THRESHOLD, load_settings


def test_defaults(monkeypatch):
    for name in ["OPENAI_API_KEY", "OPENAI_CHAT_MODEL", "MAX_OUTPUT_TOKENS", "RECORD_STORE", "ESCALATION_THRESHOLD", "SESSION_TTL_SECONDS"]:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("MEDIATOR_API_KEY", "secret")

    settings = load_settings()

    assert settings.openai_chat_model == "gpt-4o-mini"
    assert settings.max_output_tokens == 300
    assert settings.record_store == "qdrant"
    assert settings.escalation_threshold == DEFAULT_ESCALATION_THRESHOLD == 20
    assert settings.session_ttl_seconds == 3600


def test_api_key_required(monkeypatch):
    monkeypatch.delenv("MEDIATOR_API_KEY", raising=False)
    with pytest.raises(ValueError):
        load_settings()


def test_unknown_record_store(monkeypatch):
    monkeypatch.setenv("MEDIATOR_API_KEY", "secret")
    monkeypatch.setenv("RECORD_STORE", "postgres")
    with pytest.raises(ValueError):
        load_settings()
