"""
LLM Client Protocol and Base Implementation

This module defines the interface for generation clients and a base class
with the shared behaviour (rate limiting, rate-limit retry, metrics).

Protocol Pattern:
    - LLMClientProtocol defines the interface
    - BaseLLMClient provides common implementation
    - Concrete clients (AnthropicClient, OpenAIClient, GeminiClient) extend base
    - MockLLMClient and FallbackLLMClient implement the protocol directly

Failure Contract:
    - Rate-limit errors are retried with backoff up to max_retries
    - Every other provider, network or timeout failure is raised at once
      as GenerationUnavailable
    - Empty or malformed text is returned as-is; the response normalizer
      decides what it means

Author: Shubham Singh
Date: December 2025
"""

import time
from abc import ABC, abstractmethod
from typing import Optional, Protocol, runtime_checkable

from loguru import logger

from clinical_validation.core.exceptions import GenerationUnavailable, LLMRateLimitError


# =============================================================================
# STAGE 1: LLM CLIENT PROTOCOL
# =============================================================================


@runtime_checkable
class LLMClientProtocol(Protocol):
    """
    Protocol defining the interface for generation clients.

    Required Methods:
        generate(prompt) → Raw model text

    Properties:
        model_name    → Name of the model being used
        provider_name → Name of the provider (anthropic, openai, gemini, mock)
    """

    def generate(self, prompt: str) -> str:
        """
        Generate text from a prompt.

        Raises:
            GenerationUnavailable: If the model cannot be reached
        """
        ...

    @property
    def model_name(self) -> str:
        ...

    @property
    def provider_name(self) -> str:
        ...


# =============================================================================
# STAGE 2: BASE LLM CLIENT (ABSTRACT)
# =============================================================================


class BaseLLMClient(ABC):
    """
    Abstract base class for provider clients.

    What subclasses must implement:
        - _call_api(prompt): Actual API call, raising GenerationUnavailable
          (or LLMRateLimitError) on failure
        - provider_name: Property returning provider name

    What base class provides:
        - Rate limiting between calls
        - Retry with backoff for rate-limit errors only
        - Call metrics
    """

    def __init__(
        self,
        api_key: str,
        model_name: str,
        timeout: float = 30.0,
        rate_limit_delay: float = 0.0,
        max_retries: int = 2,
        sleep=time.sleep,
    ):
        """
        Initialize base LLM client.

        Args:
            api_key: API key for the provider
            model_name: Name of model to use
            timeout: Seconds before a call is abandoned
            rate_limit_delay: Seconds to wait between API calls
            max_retries: Attempts when the provider rate-limits
            sleep: Sleep function (injectable for tests)
        """
        # =====================================================================
        # STAGE 2.1: STORE CONFIGURATION
        # =====================================================================
        self._api_key = api_key
        self._model_name = model_name
        self._timeout = timeout
        self._rate_limit_delay = rate_limit_delay
        self._max_retries = max(1, max_retries)
        self._sleep = sleep

        # =====================================================================
        # STAGE 2.2: TRACKING STATE
        # =====================================================================
        self._last_call_time: Optional[float] = None
        self._total_calls = 0
        self._failed_calls = 0

    # =========================================================================
    # STAGE 3: PUBLIC API
    # =========================================================================

    def generate(self, prompt: str) -> str:
        """
        Generate text from prompt with rate limiting and rate-limit retry.

        Algorithm:
            1. Apply rate limiting (wait if needed)
            2. Call API; on LLMRateLimitError back off and retry
            3. Any other failure propagates as GenerationUnavailable

        Raises:
            GenerationUnavailable: On provider failure or exhausted retries
        """
        self._apply_rate_limit()

        last_error: Optional[Exception] = None
        for attempt in range(1, self._max_retries + 1):
            try:
                result = self._call_api(prompt)
                self._total_calls += 1
                return result

            except LLMRateLimitError as e:
                last_error = e
                if attempt == self._max_retries:
                    break
                wait_time = e.retry_after or (2**attempt)
                logger.warning(
                    f"Rate limited by {self.provider_name}, "
                    f"waiting {wait_time}s (attempt {attempt}/{self._max_retries})"
                )
                self._sleep(wait_time)

            except GenerationUnavailable:
                self._failed_calls += 1
                raise

            except Exception as e:
                self._failed_calls += 1
                logger.error(f"Unexpected error in {self.provider_name} call: {e}")
                raise GenerationUnavailable(
                    f"{self.provider_name} call failed: {e}",
                    provider=self.provider_name,
                    original_error=e,
                )

        self._failed_calls += 1
        raise GenerationUnavailable(
            f"Rate limited after {self._max_retries} attempts",
            provider=self.provider_name,
            original_error=last_error,
        )

    # =========================================================================
    # STAGE 4: ABSTRACT METHODS
    # =========================================================================

    @abstractmethod
    def _call_api(self, prompt: str) -> str:
        """Make the actual API call. Must be implemented by subclasses."""
        ...

    @property
    @abstractmethod
    def provider_name(self) -> str:
        ...

    # =========================================================================
    # STAGE 5: COMMON IMPLEMENTATION
    # =========================================================================

    @property
    def model_name(self) -> str:
        return self._model_name

    def _apply_rate_limit(self) -> None:
        if self._last_call_time is not None and self._rate_limit_delay > 0:
            elapsed = time.time() - self._last_call_time
            if elapsed < self._rate_limit_delay:
                self._sleep(self._rate_limit_delay - elapsed)
        self._last_call_time = time.time()

    # =========================================================================
    # STAGE 6: METRICS
    # =========================================================================

    @property
    def total_calls(self) -> int:
        """Total number of successful API calls."""
        return self._total_calls

    @property
    def failed_calls(self) -> int:
        """Number of failed API calls."""
        return self._failed_calls

    @property
    def success_rate(self) -> float:
        """Percentage of successful calls."""
        total = self._total_calls + self._failed_calls
        if total == 0:
            return 100.0
        return (self._total_calls / total) * 100


def is_timeout_error(error: Exception) -> bool:
    """Heuristic shared by provider clients to label timeouts in logs."""
    name = type(error).__name__.lower()
    return "timeout" in name or "timed out" in str(error).lower()
