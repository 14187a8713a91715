"""
Enumerations for the Clinical Validation Engine

This module defines the categorical values shared by every layer of the
validation engine.

Enumeration Categories:
    ValidationStatus  → Three-valued verdict for a dictation
    AttemptState      → Position of an order in the retry/override protocol
    KnowledgeDomain   → Which slice of the knowledge base a lookup targets
    LLMProvider       → Supported generative model providers
    ResultSource      → Where a ValidationResult came from

Author: Shubham Singh
Date: December 2025
"""

from enum import Enum
from typing import Dict


# =============================================================================
# STAGE 1: VALIDATION STATUS
# =============================================================================
# The verdict attached to every dictation. Only VALID lets an order be signed.


class ValidationStatus(str, Enum):
    """
    Outcome categories for dictation validation.

    What it does:
        Classifies a dictation as compliant, fixable, or unusable so the
        order workflow can decide whether to sign, ask the physician to
        revise, or reject.

    Status Meanings:
        VALID: Dictation satisfies appropriateness criteria
        NEEDS_CLARIFICATION: Missing detail the physician can add
        INVALID: Requested study is not supported by the dictation
    """

    VALID = "valid"
    NEEDS_CLARIFICATION = "needs_clarification"
    INVALID = "invalid"

    @classmethod
    def from_string(cls, value: str) -> "ValidationStatus":
        """
        Convert a model-provided status string to ValidationStatus.

        Matching is case-insensitive, treats spaces and hyphens as
        underscores, and accepts the synonyms models commonly emit
        ("appropriate", "warning", "rejected", ...).

        Raises:
            ValueError: If no member or synonym matches
        """
        normalized = value.strip().lower().replace("-", "_").replace(" ", "_")
        for member in cls:
            if member.value == normalized:
                return member
        if normalized in _STATUS_SYNONYMS:
            return _STATUS_SYNONYMS[normalized]
        raise ValueError(f"Unknown validation status: {value}")


_STATUS_SYNONYMS: Dict[str, ValidationStatus] = {
    "appropriate": ValidationStatus.VALID,
    "approved": ValidationStatus.VALID,
    "compliant": ValidationStatus.VALID,
    "pass": ValidationStatus.VALID,
    "passed": ValidationStatus.VALID,
    "warning": ValidationStatus.NEEDS_CLARIFICATION,
    "needs_review": ValidationStatus.NEEDS_CLARIFICATION,
    "clarification_needed": ValidationStatus.NEEDS_CLARIFICATION,
    "needs_more_info": ValidationStatus.NEEDS_CLARIFICATION,
    "incomplete": ValidationStatus.NEEDS_CLARIFICATION,
    "inappropriate": ValidationStatus.INVALID,
    "rejected": ValidationStatus.INVALID,
    "fail": ValidationStatus.INVALID,
    "failed": ValidationStatus.INVALID,
    "error": ValidationStatus.INVALID,
}


# =============================================================================
# STAGE 2: ATTEMPT STATE
# =============================================================================
# States of the bounded-retry / override protocol for one order.


class AttemptState(str, Enum):
    """
    State of an order in the retry/override protocol.

    Transitions:
        FIRST_ATTEMPT     → RETRYING          (not valid, below threshold)
        RETRYING          → OVERRIDE_ELIGIBLE (not valid, threshold reached)
        OVERRIDE_ELIGIBLE → OVERRIDDEN        (explicit override with justification)
        any               → RESOLVED          (valid result)
    """

    FIRST_ATTEMPT = "first_attempt"
    RETRYING = "retrying"
    OVERRIDE_ELIGIBLE = "override_eligible"
    OVERRIDDEN = "overridden"
    RESOLVED = "resolved"

    @property
    def is_terminal(self) -> bool:
        """An overridden order accepts no further attempts."""
        return self == AttemptState.OVERRIDDEN


# =============================================================================
# STAGE 3: KNOWLEDGE DOMAIN
# =============================================================================


class KnowledgeDomain(str, Enum):
    """
    Slices of the medical-code knowledge base.

    Each domain has its own cache key prefix and TTL.
    """

    DIAGNOSIS = "diagnosis"
    PROCEDURE = "procedure"
    MAPPING = "mapping"
    DOCUMENT = "document"


# =============================================================================
# STAGE 4: LLM PROVIDER
# =============================================================================


class LLMProvider(str, Enum):
    """Generative model providers the engine can call."""

    ANTHROPIC = "anthropic"
    OPENAI = "openai"
    GEMINI = "gemini"
    MOCK = "mock"

    @classmethod
    def from_string(cls, value: str) -> "LLMProvider":
        """Case-insensitive lookup; 'claude' and 'google' are accepted aliases."""
        normalized = value.strip().lower()
        aliases = {"claude": "anthropic", "google": "gemini", "gpt": "openai"}
        normalized = aliases.get(normalized, normalized)
        for member in cls:
            if member.value == normalized:
                return member
        raise ValueError(f"Unknown LLM provider: {value}")


# =============================================================================
# STAGE 5: RESULT SOURCE
# =============================================================================


class ResultSource(str, Enum):
    """Where a ValidationResult came from (kept for audit)."""

    MODEL = "model"
    MOCK = "mock"
    FALLBACK = "fallback"
    ERROR = "error"
