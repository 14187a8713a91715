"""
OpenAI Client - OpenAI Chat Completions Implementation

This module provides the concrete implementation of BaseLLMClient for
OpenAI's API (gpt-4o, gpt-4o-mini, ...). Used as the first fallback.

Error Translation:
    openai.RateLimitError   → LLMRateLimitError (retried by base class)
    openai.APITimeoutError  → GenerationUnavailable
    openai.APIError         → GenerationUnavailable

Author: Shubham Singh
Date: December 2025
"""

from loguru import logger

from clinical_validation.clients.llm_client import BaseLLMClient
from clinical_validation.core.exceptions import GenerationUnavailable, LLMRateLimitError


# =============================================================================
# STAGE 1: OPENAI CLIENT IMPLEMENTATION
# =============================================================================


class OpenAIClient(BaseLLMClient):
    """
    OpenAI API client for validation prompts.

    Supported Models:
        - gpt-4o-mini (cost-effective, fast)
        - gpt-4o (high quality)

    Example:
        >>> client = OpenAIClient(api_key="...", model_name="gpt-4o-mini")
        >>> raw = client.generate(prompt)
    """

    def __init__(
        self,
        api_key: str,
        model_name: str = "gpt-4o-mini",
        timeout: float = 30.0,
        rate_limit_delay: float = 0.0,
        max_retries: int = 2,
    ):
        """
        Initialize OpenAI client.

        STAGE 1.1: Initialize base class
        STAGE 1.2: Configure OpenAI SDK
        """
        super().__init__(
            api_key=api_key,
            model_name=model_name,
            timeout=timeout,
            rate_limit_delay=rate_limit_delay,
            max_retries=max_retries,
        )

        self._sdk = None
        self._client = None
        self._initialize_client()

        logger.info(f"OpenAIClient initialized | Model: {model_name}")

    def _initialize_client(self) -> None:
        """
        Initialize the OpenAI client.

        Lazy import to avoid requiring openai at module load.
        """
        try:
            import openai
        except ImportError as e:
            raise GenerationUnavailable(
                "openai package not installed. Install with: pip install openai",
                provider="openai",
                original_error=e,
            )

        self._sdk = openai
        self._client = openai.OpenAI(api_key=self._api_key, timeout=self._timeout, max_retries=0)

    # =========================================================================
    # STAGE 2: API CALL IMPLEMENTATION
    # =========================================================================

    def _call_api(self, prompt: str) -> str:
        try:
            response = self._client.chat.completions.create(
                model=self._model_name,
                messages=[{"role": "user", "content": prompt}],
                temperature=0.0,
                max_tokens=1024,
                response_format={"type": "json_object"},
            )
        except self._sdk.RateLimitError as e:
            raise LLMRateLimitError(provider="openai", original_error=e)
        except self._sdk.APITimeoutError as e:
            raise GenerationUnavailable(
                f"OpenAI request timed out after {self._timeout}s",
                provider="openai",
                original_error=e,
            )
        except self._sdk.APIError as e:
            raise GenerationUnavailable(f"OpenAI API error: {e}", provider="openai", original_error=e)

        if response.choices:
            return response.choices[0].message.content or ""
        return ""

    # =========================================================================
    # STAGE 3: PROPERTIES
    # =========================================================================

    @property
    def provider_name(self) -> str:
        return "openai"
