"""
Unified LLM Client

Provides a consistent interface across the assistance providers:
- Ollama (local models)
- OpenAI
- Anthropic
- Mock (tests and offline play)

Every client exposes generate(prompt, system_prompt) returning cleaned text.
"""

import os
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class LLMProvider(Enum):
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    OLLAMA = "ollama"
    LOCAL = "local"  # Alias for ollama
    MOCK = "mock"


@dataclass
class LLMResponse:
    """Standardized response from any LLM provider."""
    content: str
    model: str
    provider: LLMProvider
    tokens_used: int
    finish_reason: str


# Meta-commentary that breaks the mentor's voice
_META_COMMENTARY = re.compile(
    r"^\s*(?:As an AI[^,.\n]*[,.]?\s*|I'm an AI[^.\n]*?\band\s+)",
    re.IGNORECASE,
)


def clean_response(text: str) -> str:
    """Trim the response and strip leading AI meta-commentary."""
    cleaned = (text or "").strip()
    cleaned = _META_COMMENTARY.sub("", cleaned, count=1)
    if cleaned[:1].islower():
        cleaned = cleaned[0].upper() + cleaned[1:]
    return cleaned


class BaseLLMClient(ABC):
    """Abstract base class for LLM providers."""

    provider: LLMProvider
    max_tokens: int = 500
    timeout: float = 30.0

    @abstractmethod
    def complete(self, prompt: str, system: Optional[str] = None) -> LLMResponse:
        """Generate a completion for the given prompt."""
        pass

    def generate(self, prompt: str, system_prompt: Optional[str] = None) -> str:
        """Generate cleaned response text."""
        return clean_response(self.complete(prompt, system=system_prompt).content)


class OpenAIClient(BaseLLMClient):
    """OpenAI API client."""

    provider = LLMProvider.OPENAI

    def __init__(self, api_key: Optional[str] = None, model: str = "gpt-4o-mini", timeout: float = 30.0) -> None:
        self.api_key = api_key or os.getenv("OPENAI_API_KEY")
        self.model = model
        self.timeout = timeout
        self._client: Any = None

    def _get_client(self) -> Any:
        if self._client is None:
            from openai import OpenAI
            self._client = OpenAI(api_key=self.api_key, timeout=self.timeout)  # type: ignore
        return self._client

    def complete(self, prompt: str, system: Optional[str] = None) -> LLMResponse:
        client = self._get_client()
        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})

        response = client.chat.completions.create(
            model=self.model,
            messages=messages,
            temperature=float(os.getenv("OPENAI_TEMPERATURE", "0.7")),
            max_tokens=int(os.getenv("OPENAI_MAX_TOKENS", str(self.max_tokens))),
        )

        return LLMResponse(
            content=response.choices[0].message.content or "",
            model=self.model,
            provider=LLMProvider.OPENAI,
            tokens_used=response.usage.total_tokens if response.usage else 0,
            finish_reason=response.choices[0].finish_reason,
        )


class AnthropicClient(BaseLLMClient):
    """Anthropic Claude client."""

    provider = LLMProvider.ANTHROPIC

    def __init__(self, api_key: Optional[str] = None, model: str = "claude-3-5-haiku-latest", timeout: float = 30.0) -> None:
        self.api_key = api_key or os.getenv("ANTHROPIC_API_KEY")
        self.model = model
        self.timeout = timeout
        self._client: Any = None

    def _get_client(self) -> Any:
        if self._client is None:
            from anthropic import Anthropic
            self._client = Anthropic(api_key=self.api_key, timeout=self.timeout)  # type: ignore
        return self._client

    def complete(self, prompt: str, system: Optional[str] = None) -> LLMResponse:
        client = self._get_client()

        response = client.messages.create(
            model=self.model,
            max_tokens=self.max_tokens,
            system=system or "",
            messages=[{"role": "user", "content": prompt}],
        )

        return LLMResponse(
            content=response.content[0].text,
            model=self.model,
            provider=LLMProvider.ANTHROPIC,
            tokens_used=response.usage.input_tokens + response.usage.output_tokens,
            finish_reason=response.stop_reason,
        )


class OllamaClient(BaseLLMClient):
    """
    Ollama client using the chat API.

    Supports model discovery and health checks.
    """

    provider = LLMProvider.OLLAMA

    def __init__(
        self,
        endpoint: Optional[str] = None,
        model: Optional[str] = None,
        temperature: float = 0.7,
        timeout: float = 30.0,
    ) -> None:
        self.endpoint = endpoint or os.getenv("OLLAMA_HOST", "http://localhost:11434")
        self.model = model or os.getenv("OLLAMA_MODEL", "llama3.2")
        self.temperature = float(os.getenv("OLLAMA_TEMPERATURE", str(temperature)))
        self.timeout = timeout

    def is_available(self) -> bool:
        """Check if Ollama server is running."""
        import requests
        try:
            response = requests.get(f"{self.endpoint}/api/tags", timeout=5)
            return response.status_code == 200
        except requests.RequestException:
            return False

    def list_models(self) -> list[dict]:
        """List all available models on the Ollama server."""
        import requests
        try:
            response = requests.get(f"{self.endpoint}/api/tags", timeout=10)
            if response.status_code == 200:
                return response.json().get("models", [])
        except requests.RequestException:
            return []
        return []

    def complete(self, prompt: str, system: Optional[str] = None) -> LLMResponse:
        import requests

        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})

        response = requests.post(
            f"{self.endpoint}/api/chat",
            json={
                "model": self.model,
                "messages": messages,
                "stream": False,
                "options": {
                    "temperature": self.temperature,
                    "num_predict": self.max_tokens,
                },
            },
            timeout=self.timeout,
        )

        if response.status_code != 200:
            raise RuntimeError(f"Ollama error: {response.text}")

        data = response.json()

        return LLMResponse(
            content=data["message"]["content"],
            model=self.model or "unknown",
            provider=LLMProvider.LOCAL,
            tokens_used=data.get("eval_count", 0) + data.get("prompt_eval_count", 0),
            finish_reason=data.get("done_reason", "stop"),
        )


class MockClient(BaseLLMClient):
    """Mock client for tests and offline play."""

    provider = LLMProvider.MOCK

    def __init__(self, responses: Optional[list[str]] = None) -> None:
        self.responses = list(responses or [])
        self.calls: list[tuple[str, Optional[str]]] = []

    def complete(self, prompt: str, system: Optional[str] = None) -> LLMResponse:
        self.calls.append((prompt, system))
        if self.responses:
            content = self.responses.pop(0)
        elif "[ERROR]" in prompt:
            content = "Let's brush the dust off that error together. Read its last line first."
        else:
            content = "Think about what the fragment is asking you to find, one step at a time."

        return LLMResponse(
            content=content,
            model="mock",
            provider=LLMProvider.MOCK,
            tokens_used=0,
            finish_reason="stop",
        )


class LLMClient:
    """
    Factory class that returns the appropriate LLM client based on configuration.

    Usage:
        client = LLMClient.create()  # Uses LLM_PROVIDER env var
        client = LLMClient.create(provider="openai", model="gpt-4o-mini")
        text = client.generate("Give me a hint", system_prompt="...")
    """

    @staticmethod
    def create(
        provider: Optional[str] = None,
        model: Optional[str] = None,
        timeout: float = 30.0,
    ) -> BaseLLMClient:
        provider = (provider or os.getenv("LLM_PROVIDER", "ollama")).lower()

        if provider == "openai":
            return OpenAIClient(
                model=model or os.getenv("OPENAI_MODEL", "gpt-4o-mini"),
                timeout=timeout,
            )
        elif provider == "anthropic":
            return AnthropicClient(
                model=model or os.getenv("ANTHROPIC_MODEL", "claude-3-5-haiku-latest"),
                timeout=timeout,
            )
        elif provider in ("ollama", "local"):
            return OllamaClient(model=model, timeout=timeout)
        elif provider == "mock":
            return MockClient()
        else:
            raise ValueError(f"Unknown LLM provider: {provider}")

    @staticmethod
    def check_ollama() -> tuple[bool, str]:
        """Check if Ollama is available and return status message."""
        client = OllamaClient()
        if client.is_available():
            models = client.list_models()
            model_names = [m.get("name", "unknown") for m in models]
            return True, f"Ollama running with {len(models)} models: {', '.join(model_names[:5])}"
        return False, "Ollama not available at " + (client.endpoint or "unknown")
