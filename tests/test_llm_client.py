"""Tests for the LLM client (OpenAI SDK mocked, no real API calls)."""

from unittest.mock import MagicMock, patch

import httpx
import pytest
from openai import APIConnectionError, OpenAIError

from practice.llm.client import (
    LLMClient,
    LLMConfig,
    LLMConnectionError,
    LLMError,
    LLMNotConfiguredError,
    LLMResponseError,
    Message,
)


def make_response(content, model="gpt-test"):
    response = MagicMock()
    response.choices = [MagicMock()]
    response.choices[0].message.content = content
    response.model = model
    response.usage.prompt_tokens = 10
    response.usage.completion_tokens = 20
    response.usage.total_tokens = 30
    return response


@pytest.fixture
def mock_openai_client():
    """Patch the OpenAI SDK client."""
    with patch("practice.llm.client.OpenAI") as mock:
        mock_instance = MagicMock()
        mock.return_value = mock_instance
        yield mock_instance


def configured(provider="openai"):
    return LLMConfig(provider=provider, model="gpt-test", api_key="sk-test")


class TestLLMConfig:
    """Tests for LLMConfig."""

    def test_from_app_config(self, monkeypatch):
        """Provider settings come from the application config."""
        monkeypatch.setenv("GEMINI_API_KEY", "g-key")
        config = LLMConfig.from_app_config("gemini")

        assert config.provider == "gemini"
        assert config.model == "gemini-1.5-flash"
        assert config.base_url.startswith("https://generativelanguage.googleapis.com")
        assert config.api_key == "g-key"

    def test_default_provider(self):
        config = LLMConfig.from_app_config()
        assert config.provider == "openai"
        assert config.api_key is None

    def test_unknown_provider(self):
        with pytest.raises(LLMError, match="Unknown LLM provider"):
            LLMConfig.from_app_config("nope")


class TestChat:
    """Tests for LLMClient.chat."""

    def test_not_configured(self, mock_openai_client):
        """Without an API key no request is sent."""
        client = LLMClient(config=LLMConfig(api_key=None))
        assert not client.configured
        with pytest.raises(LLMNotConfiguredError):
            client.chat([Message(role="user", content="hi")])
        mock_openai_client.chat.completions.create.assert_not_called()

    def test_success(self, mock_openai_client):
        mock_openai_client.chat.completions.create.return_value = make_response("Hello")
        client = LLMClient(config=configured())

        response = client.chat([Message(role="user", content="hi")], temperature=0.1)

        assert response.content == "Hello"
        assert response.total_tokens == 30
        kwargs = mock_openai_client.chat.completions.create.call_args.kwargs
        assert kwargs["temperature"] == 0.1
        assert kwargs["messages"] == [{"role": "user", "content": "hi"}]

    def test_json_mode_openai(self, mock_openai_client):
        """OpenAI receives response_format json_object."""
        mock_openai_client.chat.completions.create.return_value = make_response("{}")
        LLMClient(config=configured()).chat([Message(role="user", content="x")], json_mode=True)

        kwargs = mock_openai_client.chat.completions.create.call_args.kwargs
        assert kwargs["response_format"] == {"type": "json_object"}

    def test_json_mode_gemini(self, mock_openai_client):
        """Gemini does not receive response_format."""
        mock_openai_client.chat.completions.create.return_value = make_response("{}")
        LLMClient(config=configured("gemini")).chat(
            [Message(role="user", content="x")], json_mode=True
        )

        kwargs = mock_openai_client.chat.completions.create.call_args.kwargs
        assert "response_format" not in kwargs

    def test_connection_error(self, mock_openai_client):
        request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
        mock_openai_client.chat.completions.create.side_effect = APIConnectionError(
            request=request
        )
        with pytest.raises(LLMConnectionError):
            LLMClient(config=configured()).chat([Message(role="user", content="x")])

    def test_other_api_error(self, mock_openai_client):
        mock_openai_client.chat.completions.create.side_effect = OpenAIError("boom")
        with pytest.raises(LLMError, match="boom"):
            LLMClient(config=configured()).chat([Message(role="user", content="x")])

    def test_empty_choices(self, mock_openai_client):
        response = make_response("")
        response.choices = []
        mock_openai_client.chat.completions.create.return_value = response
        with pytest.raises(LLMResponseError):
            LLMClient(config=configured()).chat([Message(role="user", content="x")])


class TestChatJson:
    """Tests for JSON parsing and repair."""

    @pytest.mark.parametrize(
        "content",
        [
            '{"score": 8}',
            'Sure!\n```json\n{"score": 8}\n```',
            'Result: {"score": 8} hope this helps',
            '<think>reasoning {"no": 1}</think>{"score": 8}',
        ],
    )
    def test_parse_variants(self, mock_openai_client, content):
        """JSON is found directly, in fences, inline or after think blocks."""
        mock_openai_client.chat.completions.create.return_value = make_response(content)
        client = LLMClient(config=configured())
        assert client.simple_json("sys", "user") == {"score": 8}

    def test_repair_retry(self, mock_openai_client):
        """An unparsable reply gets one repair request."""
        mock_openai_client.chat.completions.create.side_effect = [
            make_response("not json at all"),
            make_response('{"fixed": true}'),
        ]
        client = LLMClient(config=configured())

        assert client.simple_json("sys", "user") == {"fixed": True}
        assert mock_openai_client.chat.completions.create.call_count == 2
        retry_messages = mock_openai_client.chat.completions.create.call_args.kwargs["messages"]
        assert "not json at all" in retry_messages[-1]["content"]

    def test_gives_up_after_retry(self, mock_openai_client):
        mock_openai_client.chat.completions.create.return_value = make_response("nope")
        with pytest.raises(LLMResponseError, match="Could not get valid JSON"):
            LLMClient(config=configured()).simple_json("sys", "user")

    def test_simple_chat(self, mock_openai_client):
        mock_openai_client.chat.completions.create.return_value = make_response("plain")
        assert LLMClient(config=configured()).simple_chat("sys", "user") == "plain"


class TestAvailability:
    """Tests for is_available."""

    def test_unconfigured_is_unavailable(self, mock_openai_client):
        assert LLMClient(config=LLMConfig()).is_available() is False

    def test_models_list_failure(self, mock_openai_client):
        mock_openai_client.models.list.side_effect = OpenAIError("down")
        assert LLMClient(config=configured()).is_available() is False

    def test_available(self, mock_openai_client):
        assert LLMClient(config=configured()).is_available() is True
