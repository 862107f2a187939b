"""
Assistance Generator Layer

Provider clients and prompt templates for the Alexandria mentor:
- llm_client.py: Ollama / OpenAI / Anthropic / Mock behind generate()
- prompts/: persona, query and hint tier instructions
"""

from pathlib import Path

# Auto-load .env from the project root
from dotenv import load_dotenv

_env_file = Path(__file__).parent.parent / ".env"
if _env_file.exists():
    load_dotenv(_env_file)
else:
    # Fall back to .env.example for defaults
    _env_example = Path(__file__).parent.parent / ".env.example"
    if _env_example.exists():
        load_dotenv(_env_example)

from .llm_client import BaseLLMClient, LLMClient, MockClient, clean_response

__all__ = ["LLMClient", "BaseLLMClient", "MockClient", "clean_response"]
