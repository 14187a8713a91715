"""
Gemini Client - Google Gemini API Implementation

This module provides the concrete implementation of BaseLLMClient for
Google's Gemini API (gemini-1.5-flash, gemini-1.5-pro, ...).

Why Separate File:
    1. Single Responsibility: one provider per file
    2. Provider-specific handling: safety settings, request timeout

Author: Shubham Singh
Date: December 2025
"""

from loguru import logger

from clinical_validation.clients.llm_client import BaseLLMClient, is_timeout_error
from clinical_validation.core.exceptions import GenerationUnavailable, LLMRateLimitError


# =============================================================================
# STAGE 1: GEMINI CLIENT IMPLEMENTATION
# =============================================================================

# Medical dictation routinely trips default harm filters
_SAFETY_SETTINGS = [
    {"category": "HARM_CATEGORY_HARASSMENT", "threshold": "BLOCK_NONE"},
    {"category": "HARM_CATEGORY_HATE_SPEECH", "threshold": "BLOCK_NONE"},
    {"category": "HARM_CATEGORY_SEXUALLY_EXPLICIT", "threshold": "BLOCK_NONE"},
    {"category": "HARM_CATEGORY_DANGEROUS_CONTENT", "threshold": "BLOCK_NONE"},
]


class GeminiClient(BaseLLMClient):
    """
    Google Gemini API client for validation prompts.

    Example:
        >>> client = GeminiClient(api_key="...", model_name="gemini-1.5-flash")
        >>> raw = client.generate(prompt)
    """

    def __init__(
        self,
        api_key: str,
        model_name: str = "gemini-1.5-flash",
        timeout: float = 30.0,
        rate_limit_delay: float = 0.0,
        max_retries: int = 2,
    ):
        super().__init__(
            api_key=api_key,
            model_name=model_name,
            timeout=timeout,
            rate_limit_delay=rate_limit_delay,
            max_retries=max_retries,
        )

        self._model = None
        self._initialize_client()

        logger.info(f"GeminiClient initialized | Model: {model_name}")

    def _initialize_client(self) -> None:
        """
        Initialize the Gemini client and model.

        Lazy import to avoid requiring google-generativeai at module load.
        """
        try:
            import google.generativeai as genai
        except ImportError as e:
            raise GenerationUnavailable(
                "google-generativeai package not installed. "
                "Install with: pip install google-generativeai",
                provider="gemini",
                original_error=e,
            )

        genai.configure(api_key=self._api_key)
        self._model = genai.GenerativeModel(
            model_name=self._model_name,
            safety_settings=_SAFETY_SETTINGS,
            generation_config={"temperature": 0.0, "response_mime_type": "application/json"},
        )

    # =========================================================================
    # STAGE 2: API CALL IMPLEMENTATION
    # =========================================================================

    def _call_api(self, prompt: str) -> str:
        try:
            response = self._model.generate_content(
                prompt, request_options={"timeout": self._timeout}
            )
        except Exception as e:
            error_str = str(e).lower()

            if "429" in error_str or "quota" in error_str or "resource exhausted" in error_str:
                raise LLMRateLimitError(provider="gemini", original_error=e)

            if is_timeout_error(e) or "deadline" in error_str:
                raise GenerationUnavailable(
                    f"Gemini request timed out after {self._timeout}s",
                    provider="gemini",
                    original_error=e,
                )

            raise GenerationUnavailable(f"Gemini API error: {e}", provider="gemini", original_error=e)

        feedback = getattr(response, "prompt_feedback", None)
        if feedback is not None and getattr(feedback, "block_reason", None):
            logger.warning(f"Gemini blocked the prompt | Reason: {feedback.block_reason}")
            return ""

        try:
            return response.text or ""
        except ValueError:
            # .text raises when the candidate has no text parts
            return ""

    # =========================================================================
    # STAGE 3: PROPERTIES
    # =========================================================================

    @property
    def provider_name(self) -> str:
        return "gemini"
