"""Abstract base class for LLM service providers.

Answer synthesis is the only LLM consumer: one system instruction, one user
turn, low temperature, bounded output.  Implementations wrap OpenAI chat
completions or the Anthropic Messages API.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementations: OpenAILLMProvider, AnthropicLLMProvider
# Located in: src/providers/llm/
class ILLMProvider(ABC):
    """Contract for text-completion backends."""

    @abstractmethod
    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.1,
        max_tokens: int = 1000,
    ) -> str:
        """Generate a text completion from the model.

        Parameters
        ----------
        system_prompt:
            Instruction message that constrains the model's behaviour.
        user_prompt:
            The user turn.
        temperature:
            Sampling temperature (0.0 = deterministic).
        max_tokens:
            Upper bound on generated tokens.

        Returns
        -------
        str
            The model's text response; never empty.

        Raises
        ------
        src.utils.errors.ExternalServiceError
            If the call fails or the model returns no content.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"openai"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if credentials are configured."""
