"""LLM provider adapters.

Two concrete implementations of ILLMProvider (src/interfaces/llm_provider.py):
    - OpenAILLMProvider    -- gpt-4o (also OpenAI-compatible APIs)
    - AnthropicLLMProvider -- Claude via the Messages API

main.py picks one based on LLM_PROVIDER or whichever API key is set.
"""

from src.providers.llm.anthropic_provider import AnthropicLLMProvider
from src.providers.llm.openai_provider import OpenAILLMProvider

__all__ = ["OpenAILLMProvider", "AnthropicLLMProvider"]
