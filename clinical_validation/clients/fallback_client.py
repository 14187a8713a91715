"""
Fallback LLM Client - Ordered Provider Chain

Tries each configured provider in order (Claude, then OpenAI, then
Gemini by default) and returns the first response. Only
GenerationUnavailable moves the chain forward; when every provider is
unavailable the chain itself raises GenerationUnavailable.

Author: Shubham Singh
Date: December 2025
"""

from typing import List, Optional, Sequence, Tuple

from loguru import logger

from clinical_validation.clients.llm_client import LLMClientProtocol
from clinical_validation.core.exceptions import GenerationUnavailable


class FallbackLLMClient:
    """
    Chains several clients behind one LLMClientProtocol.

    Example:
        >>> client = FallbackLLMClient([anthropic_client, openai_client])
        >>> raw = client.generate(prompt)
        >>> client.last_provider
        'anthropic'
    """

    def __init__(self, clients: Sequence[LLMClientProtocol]):
        if not clients:
            raise ValueError("FallbackLLMClient needs at least one client")
        self._clients: List[LLMClientProtocol] = list(clients)
        self._last_provider: Optional[str] = None

    @property
    def model_name(self) -> str:
        return self._clients[0].model_name

    @property
    def provider_name(self) -> str:
        return ",".join(client.provider_name for client in self._clients)

    @property
    def last_provider(self) -> Optional[str]:
        """
        Provider that produced the most recent response.

        Shared across threads; use generate_with_provider() when the
        provider of one particular call matters.
        """
        return self._last_provider

    def generate(self, prompt: str) -> str:
        text, _ = self.generate_with_provider(prompt)
        return text

    def generate_with_provider(self, prompt: str) -> Tuple[str, str]:
        """Generate and return (text, provider_name of the client that answered)."""
        errors = []
        for client in self._clients:
            try:
                text = client.generate(prompt)
            except GenerationUnavailable as e:
                errors.append(f"{client.provider_name}: {e.message}")
                logger.warning(f"Provider unavailable, trying next | {client.provider_name} | {e}")
                continue
            self._last_provider = client.provider_name
            return text, client.provider_name

        self._last_provider = None
        raise GenerationUnavailable(
            "All providers unavailable: " + "; ".join(errors), provider=self.provider_name
        )
