"""Tests for the assistance provider clients."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest
import requests

from assistant.llm_client import (
    AnthropicClient,
    LLMClient,
    LLMProvider,
    MockClient,
    OllamaClient,
    OpenAIClient,
    clean_response,
)


class TestCleanResponse:
    """Tests for response post-processing."""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("  Look closer at the list.  ", "Look closer at the list."),
            ("As an AI language model, I can say lists are ordered.", "I can say lists are ordered."),
            ("As an AI, i think so.", "I think so."),
            ("I'm an AI and i love loops.", "I love loops."),
            ("", ""),
        ],
    )
    def test_clean(self, raw, expected):
        """Whitespace and AI meta-commentary are removed."""
        assert clean_response(raw) == expected


class TestFactory:
    """Tests for LLMClient.create."""

    def test_providers(self):
        """Each provider name yields its client."""
        assert isinstance(LLMClient.create("mock"), MockClient)
        assert isinstance(LLMClient.create("openai"), OpenAIClient)
        assert isinstance(LLMClient.create("anthropic"), AnthropicClient)
        assert isinstance(LLMClient.create("local"), OllamaClient)

    def test_model_and_timeout(self):
        """Model and timeout are passed through."""
        client = LLMClient.create("ollama", model="qwen2.5-coder", timeout=12)

        assert client.model == "qwen2.5-coder"
        assert client.timeout == 12

    def test_env_provider(self, monkeypatch):
        """The provider defaults to LLM_PROVIDER."""
        monkeypatch.setenv("LLM_PROVIDER", "mock")
        assert isinstance(LLMClient.create(), MockClient)

    def test_unknown_provider(self):
        """Unknown providers are rejected."""
        with pytest.raises(ValueError, match="Unknown LLM provider"):
            LLMClient.create("carrier-pigeon")


class TestOllamaClient:
    """Tests for the Ollama client."""

    def test_generate(self):
        """The chat API is called and the reply cleaned."""
        response = MagicMock(status_code=200)
        response.json.return_value = {
            "message": {"content": "  As an AI, I suggest counting first. "},
            "eval_count": 10,
            "prompt_eval_count": 5,
        }
        client = OllamaClient(endpoint="http://ollama:11434", model="llama3.2", timeout=7)

        with patch("requests.post", return_value=response) as post:
            text = client.generate("prompt", system_prompt="persona")

        assert text == "I suggest counting first."
        args, kwargs = post.call_args
        assert args[0] == "http://ollama:11434/api/chat"
        assert kwargs["timeout"] == 7
        assert kwargs["json"]["messages"][0] == {"role": "system", "content": "persona"}
        assert kwargs["json"]["stream"] is False

    def test_error_status(self):
        """Non-200 responses raise."""
        response = MagicMock(status_code=500, text="model not found")
        with patch("requests.post", return_value=response):
            with pytest.raises(RuntimeError, match="model not found"):
                OllamaClient().complete("prompt")

    def test_unavailable(self):
        """Connection errors mean the server is not available."""
        with patch("requests.get", side_effect=requests.ConnectionError("refused")):
            assert OllamaClient().is_available() is False
            assert OllamaClient().list_models() == []

    def test_check_ollama(self):
        """check_ollama reports running models."""
        response = MagicMock(status_code=200)
        response.json.return_value = {"models": [{"name": "llama3.2"}]}
        with patch("requests.get", return_value=response):
            ok, message = LLMClient.check_ollama()

        assert ok is True
        assert "llama3.2" in message


class TestHostedClients:
    """Tests for OpenAI and Anthropic clients with stubbed SDK objects."""

    def test_openai(self):
        """OpenAI chat completions are mapped onto LLMResponse."""
        client = OpenAIClient(api_key="test", model="gpt-4o-mini")
        sdk = MagicMock()
        sdk.chat.completions.create.return_value = MagicMock(
            choices=[MagicMock(message=MagicMock(content="Think in layers."), finish_reason="stop")],
            usage=MagicMock(total_tokens=42),
        )
        client._client = sdk

        result = client.complete("prompt", system="persona")

        assert result.content == "Think in layers."
        assert result.provider is LLMProvider.OPENAI
        assert result.tokens_used == 42
        messages = sdk.chat.completions.create.call_args.kwargs["messages"]
        assert messages[0] == {"role": "system", "content": "persona"}

    def test_anthropic(self):
        """Anthropic messages are mapped onto LLMResponse."""
        client = AnthropicClient(api_key="test")
        sdk = MagicMock()
        sdk.messages.create.return_value = MagicMock(
            content=[MagicMock(text="Dust off the loop.")],
            usage=MagicMock(input_tokens=10, output_tokens=5),
            stop_reason="end_turn",
        )
        client._client = sdk

        assert client.generate("prompt", system_prompt="persona") == "Dust off the loop."
        assert sdk.messages.create.call_args.kwargs["system"] == "persona"
        assert client.complete("prompt").tokens_used == 15


class TestMockClient:
    """Tests for the mock client."""

    def test_scripted_then_canned(self):
        """Scripted responses come first, then canned replies."""
        client = MockClient(["Scripted."])

        assert client.generate("a") == "Scripted."
        assert "error" in client.generate("[ERROR] x").lower()
        assert len(client.calls) == 2
