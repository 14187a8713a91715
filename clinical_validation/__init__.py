"""
Clinical Validation & Coding Engine

Validates physician imaging-order dictation against appropriate-use
knowledge and returns a structured verdict with suggested ICD-10 and CPT
codes, under a per-specialty feedback word budget and a bounded
retry/override protocol.

Architecture Overview:
    clinical_validation/
    ├── core/           → Domain models, enums, configuration (Layer 0 - Pure)
    ├── extraction/     → Dictation keywords (Layer 1 - Text Processing)
    ├── knowledge/      → Code knowledge, two-tier cache (Layer 1 - Infrastructure)
    ├── policy/         → Specialty word budgets and checklists (Layer 2)
    ├── generation/     → Prompt composition (Layer 3 - Business Logic)
    ├── clients/        → LLM client abstractions (Layer 3 - Infrastructure)
    ├── validation/     → Model output normalization (Layer 4 - Business Logic)
    ├── governance/     → Attempt history and overrides (Layer 4 - Business Logic)
    ├── observability/  → Logging setup
    └── pipeline.py     → Main orchestrator (Layer 5 - Public API)

Quick Start:
    from clinical_validation import ValidationEngine, AttemptHistory

    engine = ValidationEngine.from_environment()
    history = AttemptHistory("ORD-1")
    result = engine.validate("ORD-1", dictation, "Orthopedics", prior_attempts=history)

Author: Shubham Singh
Date: December 2025
"""

__version__ = "1.0.0"
__author__ = "Shubham Singh"

# =============================================================================
# PUBLIC API EXPORTS
# =============================================================================

# Main Entry Point
from clinical_validation.pipeline import EngineStats, ValidationEngine

# Core Models
from clinical_validation.core.models import (
    AttemptHistory,
    AttemptRecord,
    PatientContext,
    SuggestedCode,
    ValidationResult,
)

# Enums
from clinical_validation.core.enums import (
    AttemptState,
    ResultSource,
    ValidationStatus,
)

# Configuration
from clinical_validation.core.config import EngineConfiguration

# Exceptions callers handle
from clinical_validation.core.exceptions import (
    ConfigurationError,
    InvalidOverrideRequest,
    InvalidRequestError,
)

__all__ = [
    # Main Entry Point
    "ValidationEngine",
    "EngineStats",
    # Core Models
    "AttemptHistory",
    "AttemptRecord",
    "PatientContext",
    "SuggestedCode",
    "ValidationResult",
    # Enums
    "AttemptState",
    "ResultSource",
    "ValidationStatus",
    # Configuration
    "EngineConfiguration",
    # Exceptions
    "ConfigurationError",
    "InvalidOverrideRequest",
    "InvalidRequestError",
]
