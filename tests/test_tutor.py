import httpx
import openai
import pytest
from exampractice.core import config
from exampractice.core.errors import ConfigurationError, UpstreamError, ValidationFailed
from exampractice.services import tutor


class FakeResponses:
    def __init__(self, owner):
        self.owner = owner

    def create(self, **kwargs):
        self.owner.calls.append(kwargs)
        if self.owner.error is not None:
            raise self.owner.error
        return type("Response", (), {"output_text": self.owner.reply})()


class FakeOpenAI:
    calls = []
    reply = "B is correct."
    error = None

    def __init__(self, api_key=None):
        self.api_key = api_key
        self.responses = FakeResponses(FakeOpenAI)


@pytest.fixture
def fake_openai(monkeypatch):
    FakeOpenAI.calls, FakeOpenAI.reply, FakeOpenAI.error = [], "B is correct.", None
    monkeypatch.setattr(config, "OPENAI_API_KEY", "sk-test")
    monkeypatch.setattr(tutor, "OpenAI", FakeOpenAI)
    return FakeOpenAI


def test_transcript_keeps_last_turns():
    messages = [{"role": "user" if i % 2 == 0 else "assistant", "text": f"m{i}"} for i in range(20)]
    transcript = tutor.build_transcript(messages, 12).splitlines()
    assert len(transcript) == 12
    assert transcript[0] == "User: m8"
    assert transcript[-1] == "Assistant: m19"


def test_ask_forwards_transcript(fake_openai):
    text = tutor.ask_tutor([{"role": "user", "text": "Why B?"}])
    assert text == "B is correct."
    call = fake_openai.calls[0]
    assert call["model"] == config.OPENAI_MODEL
    assert call["instructions"] == tutor.TUTOR_INSTRUCTIONS
    assert call["input"] == "User: Why B?"


def test_missing_key(monkeypatch):
    monkeypatch.setattr(config, "OPENAI_API_KEY", None)
    with pytest.raises(ConfigurationError):
        tutor.ask_tutor([{"role": "user", "text": "hi"}])


def test_needs_a_user_message(fake_openai):
    with pytest.raises(ValidationFailed):
        tutor.ask_tutor([{"role": "assistant", "text": "Hello"}])
    with pytest.raises(ValidationFailed):
        tutor.ask_tutor([{"role": "user", "text": "   "}])
    assert fake_openai.calls == []


def test_upstream_failure(fake_openai):
    request = httpx.Request("POST", "https://api.openai.com/v1/responses")
    fake_openai.error = openai.APIConnectionError(request=request)
    with pytest.raises(UpstreamError):
        tutor.ask_tutor([{"role": "user", "text": "hi"}])


def test_ai_endpoint(client, fake_openai):
    r = client.post("/api/ai", json={"messages": [{"role": "user", "text": "Explain"}]})
    assert r.status_code == 200
    assert r.json() == {"text": "B is correct."}

    fake_openai.reply = None
    assert client.post("/api/ai", json={"messages": [{"role": "user", "text": "Again"}]}).json() == {"text": ""}

    r = client.post("/api/ai", json={"messages": []})
    assert r.status_code == 400


def test_ai_endpoint_without_key(client, monkeypatch):
    monkeypatch.setattr(config, "OPENAI_API_KEY", "")
    r = client.post("/api/ai", json={"messages": [{"role": "user", "text": "Explain"}]})
    assert r.status_code == 500
    assert "OPENAI_API_KEY" in r.json()["error"]
