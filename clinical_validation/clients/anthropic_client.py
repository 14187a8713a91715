"""
Anthropic Client - Claude Messages API Implementation

Primary provider of the validation engine. Translates SDK errors into
domain exceptions:

    anthropic.RateLimitError   → LLMRateLimitError (retried by base class)
    anthropic.APITimeoutError  → GenerationUnavailable
    anthropic.APIError         → GenerationUnavailable

Author: Shubham Singh
Date: December 2025
"""

from loguru import logger

from clinical_validation.clients.llm_client import BaseLLMClient
from clinical_validation.core.exceptions import GenerationUnavailable, LLMRateLimitError


class AnthropicClient(BaseLLMClient):
    """
    Anthropic Claude client for validation prompts.

    Example:
        >>> client = AnthropicClient(api_key="...", model_name="claude-3-5-sonnet-latest")
        >>> raw = client.generate(prompt)
    """

    def __init__(
        self,
        api_key: str,
        model_name: str = "claude-3-5-sonnet-latest",
        timeout: float = 30.0,
        rate_limit_delay: float = 0.0,
        max_retries: int = 2,
        max_tokens: int = 1024,
    ):
        super().__init__(
            api_key=api_key,
            model_name=model_name,
            timeout=timeout,
            rate_limit_delay=rate_limit_delay,
            max_retries=max_retries,
        )
        self._max_tokens = max_tokens
        self._sdk = None
        self._client = None
        self._initialize_client()

        logger.info(f"AnthropicClient initialized | Model: {model_name}")

    def _initialize_client(self) -> None:
        """Lazy import to avoid requiring anthropic at module load."""
        try:
            import anthropic
        except ImportError as e:
            raise GenerationUnavailable(
                "anthropic package not installed. Install with: pip install anthropic",
                provider="anthropic",
                original_error=e,
            )

        self._sdk = anthropic
        # SDK-level retries disabled: BaseLLMClient owns the retry policy
        self._client = anthropic.Anthropic(
            api_key=self._api_key, timeout=self._timeout, max_retries=0
        )

    def _call_api(self, prompt: str) -> str:
        try:
            response = self._client.messages.create(
                model=self._model_name,
                max_tokens=self._max_tokens,
                temperature=0.0,
                messages=[{"role": "user", "content": prompt}],
            )
        except self._sdk.RateLimitError as e:
            raise LLMRateLimitError(provider="anthropic", original_error=e)
        except self._sdk.APITimeoutError as e:
            raise GenerationUnavailable(
                f"Anthropic request timed out after {self._timeout}s",
                provider="anthropic",
                original_error=e,
            )
        except self._sdk.APIError as e:
            raise GenerationUnavailable(
                f"Anthropic API error: {e}", provider="anthropic", original_error=e
            )

        return "".join(
            block.text for block in response.content if getattr(block, "type", "") == "text"
        )

    @property
    def provider_name(self) -> str:
        return "anthropic"
