"""
Core Layer - Domain Models, Enums, and Configuration

This layer contains the side-effect-free foundation of the validation
engine.

Submodules:
    models.py     → Data structures (DiagnosisCode, ValidationResult, AttemptHistory)
    enums.py      → Enumerations (ValidationStatus, AttemptState, KnowledgeDomain)
    constants.py  → Vocabulary and specialty policy tables
    config.py     → Configuration dataclass
    exceptions.py → Domain-specific exceptions

Dependency Rule:
    This layer depends on NOTHING else in the package.
    All other layers may depend on this layer.

Author: Shubham Singh
Date: December 2025
"""

from clinical_validation.core.models import (
    AttemptHistory,
    AttemptRecord,
    CacheEntry,
    CodeMapping,
    DiagnosisCode,
    DictationRequest,
    KnowledgeContext,
    KnowledgeDocument,
    PatientContext,
    ProcedureCode,
    SpecialtyPolicy,
    SuggestedCode,
    ValidationResult,
)
from clinical_validation.core.enums import (
    AttemptState,
    KnowledgeDomain,
    LLMProvider,
    ResultSource,
    ValidationStatus,
)
from clinical_validation.core.config import EngineConfiguration
from clinical_validation.core.exceptions import (
    ClinicalValidationError,
    ConfigurationError,
    GenerationUnavailable,
    InvalidOverrideRequest,
    InvalidRequestError,
    KnowledgeLookupFailure,
    MalformedModelOutput,
)

__all__ = [
    # Models
    "AttemptHistory",
    "AttemptRecord",
    "CacheEntry",
    "CodeMapping",
    "DiagnosisCode",
    "DictationRequest",
    "KnowledgeContext",
    "KnowledgeDocument",
    "PatientContext",
    "ProcedureCode",
    "SpecialtyPolicy",
    "SuggestedCode",
    "ValidationResult",
    # Enums
    "AttemptState",
    "KnowledgeDomain",
    "LLMProvider",
    "ResultSource",
    "ValidationStatus",
    # Configuration
    "EngineConfiguration",
    # Exceptions
    "ClinicalValidationError",
    "ConfigurationError",
    "GenerationUnavailable",
    "InvalidOverrideRequest",
    "InvalidRequestError",
    "KnowledgeLookupFailure",
    "MalformedModelOutput",
]
