"""
LLM Client Factory - Provider Chain From Configuration

Builds the generation client the engine talks to:

    1. Explicit "mock" primary provider → MockLLMClient
    2. Otherwise every configured provider (primary first, then the
       fallbacks) that has an API key is instantiated
    3. One client → returned as-is; several → FallbackLLMClient
    4. No API key at all → MockLLMClient (offline mode)
    5. Keys present but no client could be built → ConfigurationError

Author: Shubham Singh
Date: December 2025
"""

from typing import List

from loguru import logger

from clinical_validation.clients.anthropic_client import AnthropicClient
from clinical_validation.clients.fallback_client import FallbackLLMClient
from clinical_validation.clients.gemini_client import GeminiClient
from clinical_validation.clients.llm_client import LLMClientProtocol
from clinical_validation.clients.mock_client import MockLLMClient
from clinical_validation.clients.openai_client import OpenAIClient
from clinical_validation.core.config import EngineConfiguration
from clinical_validation.core.enums import LLMProvider
from clinical_validation.core.exceptions import ConfigurationError, GenerationUnavailable


def provider_chain(config: EngineConfiguration) -> List[LLMProvider]:
    """Primary provider followed by fallbacks, duplicates removed."""
    chain: List[LLMProvider] = []
    for name in [config.llm_provider] + list(config.fallback_providers):
        provider = LLMProvider.from_string(name)
        if provider not in chain:
            chain.append(provider)
    return chain


def create_llm_client(config: EngineConfiguration) -> LLMClientProtocol:
    """
    Create the generation client described by config.

    Providers without an API key are skipped. A provider whose SDK fails
    to initialize is skipped with a warning; if that leaves no client while
    a key was configured, ConfigurationError is raised.
    """
    chain = provider_chain(config)
    if chain[0] == LLMProvider.MOCK:
        logger.info("LLM provider set to mock | Using offline MockLLMClient")
        return MockLLMClient(default_word_budget=config.default_word_budget)

    clients: List[LLMClientProtocol] = []
    failures: List[str] = []
    for provider in chain:
        try:
            client = _create_provider_client(provider, config)
        except GenerationUnavailable as e:
            logger.warning(f"Skipping provider {provider.value} | {e}")
            failures.append(f"{provider.value}: {e.message}")
            continue
        if client is not None:
            clients.append(client)

    if not clients and failures:
        # The offline mock only stands in when no credential exists
        raise ConfigurationError(
            "LLM credentials configured but no provider client could be created",
            context={"providers": "; ".join(failures)},
        )

    if not clients:
        logger.info("No LLM credentials configured | Using offline MockLLMClient")
        return MockLLMClient(default_word_budget=config.default_word_budget)

    if len(clients) == 1:
        return clients[0]

    logger.info(f"LLM provider chain | {' -> '.join(c.provider_name for c in clients)}")
    return FallbackLLMClient(clients)


def _create_provider_client(provider: LLMProvider, config: EngineConfiguration):
    common = {
        "timeout": config.generation_timeout,
        "rate_limit_delay": config.rate_limit_delay,
        "max_retries": config.max_retries,
    }
    if provider == LLMProvider.ANTHROPIC and config.anthropic_api_key:
        return AnthropicClient(
            api_key=config.anthropic_api_key, model_name=config.anthropic_model, **common
        )
    if provider == LLMProvider.OPENAI and config.openai_api_key:
        return OpenAIClient(api_key=config.openai_api_key, model_name=config.openai_model, **common)
    if provider == LLMProvider.GEMINI and config.gemini_api_key:
        return GeminiClient(api_key=config.gemini_api_key, model_name=config.gemini_model, **common)
    return None
