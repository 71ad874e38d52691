import pytest

from services import gemini_client
from services.gemini_client import GeminiClient


class FakeModels:
    def __init__(self, text):
        self.text = text
        self.calls = []

    def generate_content(self, model, contents, config):
        self.calls.append((model, contents, config))
        return type("Response", (), {"text": self.text})()


class FakeGenaiClient:
    def __init__(self, api_key):
        self.api_key = api_key
        self.models = FakeModels("Oslo Sofa")


@pytest.fixture(autouse=True)
def fake_genai(monkeypatch):
    monkeypatch.setattr(gemini_client.genai, "Client", FakeGenaiClient)


def test_thinking_is_disabled_so_short_answers_fit():
    client = GeminiClient(api_key="g-key")

    config = client.generation_config
    assert config.max_output_tokens == 50
    assert config.thinking_config.thinking_budget == 0


def test_thinking_budget_can_be_left_to_the_model():
    client = GeminiClient(api_key="g-key", thinking_budget=None)
    assert client.generation_config.thinking_config is None


def test_generate_text_sends_prompt_with_config():
    client = GeminiClient(api_key="g-key", model="gemini-2.5-flash")

    assert client.generate_text("Pick one") == "Oslo Sofa"

    (model, contents, config), = client.client.models.calls
    assert model == "gemini-2.5-flash"
    assert contents == ["Pick one"]
    assert config is client.generation_config


def test_missing_key_is_rejected(monkeypatch):
    monkeypatch.delenv("GOOGLE_API_KEY", raising=False)
    with pytest.raises(ValueError):
        GeminiClient()
