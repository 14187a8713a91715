"""
Domain Exceptions for the Clinical Validation Engine

Exception Hierarchy:
    ClinicalValidationError (base)
    ├── ConfigurationError        → Invalid configuration
    ├── InvalidRequestError       → Caller passed unusable arguments
    ├── KnowledgeLookupFailure    → Knowledge store unreachable
    │   └── DatasetLoadError
    ├── GenerationUnavailable     → Model call failed or timed out
    │   └── LLMRateLimitError
    ├── MalformedModelOutput      → Model text could not be parsed
    └── InvalidOverrideRequest    → Override not permitted

Only InvalidRequestError, InvalidOverrideRequest and ConfigurationError ever
reach the caller of ValidationEngine. The others are recovered inside the
engine and turned into a well-formed ValidationResult.

Usage:
    from clinical_validation.core.exceptions import InvalidOverrideRequest

    try:
        engine.validate(..., override_justification="too short")
    except InvalidOverrideRequest as e:
        logger.warning(f"Override rejected: {e.reason}")

Author: Shubham Singh
Date: December 2025
"""

from typing import Optional


# =============================================================================
# STAGE 1: BASE EXCEPTION
# =============================================================================


class ClinicalValidationError(Exception):
    """
    Base exception for all clinical validation errors.

    Attributes:
        message: Human-readable error description
        context: Dictionary of additional context for debugging
    """

    def __init__(self, message: str, context: Optional[dict] = None):
        self.message = message
        self.context = context or {}
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format message with context for display."""
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} [{context_str}]"
        return self.message


# =============================================================================
# STAGE 2: CALLER-FACING ERRORS
# =============================================================================


class ConfigurationError(ClinicalValidationError):
    """
    Error in engine configuration.

    When raised:
        - Unknown LLM provider name
        - Non-positive word budget or TTL
        - Dataset path does not exist
    """

    pass


class InvalidRequestError(ClinicalValidationError):
    """
    The caller passed arguments the engine cannot act on.

    When raised:
        - Empty order reference
        - Attempt history belongs to a different order
        - Attempt numbers that do not strictly increase
        - New attempt on an order that was already overridden
    """

    pass


class InvalidOverrideRequest(ClinicalValidationError):
    """
    Override requested when it is not permitted.

    Raised synchronously before any state changes, so the order's
    attempt history is untouched.

    Attributes:
        order_id: Order the override was requested for
        reason: Why the override was refused
    """

    def __init__(self, order_id: str, reason: str, context: Optional[dict] = None):
        self.order_id = order_id
        self.reason = reason
        merged = {"order_id": order_id}
        merged.update(context or {})
        super().__init__(f"Override rejected: {reason}", context=merged)


# =============================================================================
# STAGE 3: KNOWLEDGE ERRORS
# =============================================================================
# Recovered by CachedKnowledgeStore: lookups degrade to empty results.


class KnowledgeLookupFailure(ClinicalValidationError):
    """
    The durable or fast knowledge tier could not be reached.

    Attributes:
        tier: "durable" or "fast"
        operation: The lookup that failed (get_by_code, search, ...)
    """

    def __init__(
        self,
        message: str,
        tier: str = "durable",
        operation: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        self.tier = tier
        self.operation = operation
        self.original_error = original_error
        super().__init__(
            message,
            context={
                "tier": tier,
                "operation": operation,
                "original_error": str(original_error) if original_error else None,
            },
        )


class DatasetLoadError(KnowledgeLookupFailure):
    """
    The knowledge dataset file could not be loaded.

    When raised:
        - File not found
        - Invalid JSON format
        - Permission denied
    """

    def __init__(self, file_path: str, reason: str):
        self.file_path = file_path
        self.reason = reason
        super().__init__(f"Failed to load dataset from {file_path}: {reason}", operation="load")
        self.context["file_path"] = file_path


# =============================================================================
# STAGE 4: GENERATION ERRORS
# =============================================================================
# Recovered by ValidationEngine: surfaced as a needs_clarification result.


class GenerationUnavailable(ClinicalValidationError):
    """
    The generative model could not produce a response.

    When raised:
        - Network or provider error
        - Request timed out
        - Provider SDK missing or misconfigured
        - Every provider in a fallback chain failed

    Attributes:
        provider: The LLM provider (anthropic, openai, gemini)
        original_error: The wrapped original exception
    """

    def __init__(self, message: str, provider: str, original_error: Optional[Exception] = None):
        self.provider = provider
        self.original_error = original_error
        super().__init__(
            message,
            context={
                "provider": provider,
                "original_error": str(original_error) if original_error else None,
            },
        )


class LLMRateLimitError(GenerationUnavailable):
    """
    Provider rate limit exceeded. The only error BaseLLMClient retries.

    Attributes:
        retry_after: Seconds to wait before retrying (if known)
    """

    def __init__(
        self,
        provider: str,
        retry_after: Optional[float] = None,
        original_error: Optional[Exception] = None,
    ):
        self.retry_after = retry_after
        super().__init__(
            f"Rate limit exceeded for {provider}", provider=provider, original_error=original_error
        )
        self.context["retry_after"] = retry_after


# =============================================================================
# STAGE 5: PARSING ERRORS
# =============================================================================


class MalformedModelOutput(ClinicalValidationError):
    """
    Model text could not be turned into a ValidationResult.

    Never escapes the response normalizer; it is converted into an
    invalid result with generic feedback.

    Attributes:
        stage: Parsing stage that failed ("unparsed", "partial")
    """

    def __init__(self, message: str, stage: str, context: Optional[dict] = None):
        self.stage = stage
        merged = {"stage": stage}
        merged.update(context or {})
        super().__init__(message, context=merged)
