"""
Clients Layer - Generation Client Abstractions

This layer hides the LLM providers (Anthropic, OpenAI, Gemini) behind one
protocol, so the engine works with any of them, with a fallback chain of
them, or with the offline mock.

Submodules:
    llm_client.py       → Protocol and base implementation
    anthropic_client.py → Anthropic Claude implementation
    openai_client.py    → OpenAI implementation
    gemini_client.py    → Google Gemini implementation
    fallback_client.py  → Ordered provider chain
    mock_client.py      → Deterministic offline client
    factory.py          → Builds the client from configuration

Author: Shubham Singh
Date: December 2025
"""

from clinical_validation.clients.llm_client import (
    LLMClientProtocol,
    BaseLLMClient,
)
from clinical_validation.clients.anthropic_client import AnthropicClient
from clinical_validation.clients.openai_client import OpenAIClient
from clinical_validation.clients.gemini_client import GeminiClient
from clinical_validation.clients.fallback_client import FallbackLLMClient
from clinical_validation.clients.mock_client import MockLLMClient
from clinical_validation.clients.factory import create_llm_client, provider_chain

__all__ = [
    "LLMClientProtocol",
    "BaseLLMClient",
    "AnthropicClient",
    "OpenAIClient",
    "GeminiClient",
    "FallbackLLMClient",
    "MockLLMClient",
    "create_llm_client",
    "provider_chain",
]
