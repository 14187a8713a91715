"""
Domain Models for the Clinical Validation Engine

This module defines the data structures that flow through the validation
engine. Value objects are frozen dataclasses so that a result, once
produced, can never be mutated by a later retry or override.

Model Hierarchy:
    Knowledge entries
        DiagnosisCode      → ICD-10 diagnosis code with imaging metadata
        ProcedureCode      → CPT procedure code (modality, body part)
        CodeMapping        → Diagnosis/procedure appropriateness rating
        KnowledgeDocument  → Explanatory document for a diagnosis code
        KnowledgeContext   → Everything retrieved for one dictation
    Request / policy
        PatientContext     → Optional age and gender
        DictationRequest   → One validation call
        SpecialtyPolicy    → Word budget and checklist for a specialty
    Results / audit
        SuggestedCode      → A code the model suggests
        ValidationResult   → The verdict returned to the caller
        AttemptRecord      → One immutable entry in an order's audit trail
        AttemptHistory     → Append-only sequence of AttemptRecords
    Cache
        CacheEntry         → Payload with absolute expiry timestamp

Author: Shubham Singh
Date: December 2025
"""

import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from clinical_validation.core.enums import AttemptState, ResultSource, ValidationStatus
from clinical_validation.core.exceptions import InvalidRequestError


def _as_tuple(value: Any) -> Tuple[str, ...]:
    """Accept list, tuple, comma-separated string or None."""
    if not value:
        return ()
    if isinstance(value, str):
        return tuple(part.strip() for part in value.split(",") if part.strip())
    return tuple(str(v) for v in value)


# =============================================================================
# STAGE 1: KNOWLEDGE ENTRIES
# =============================================================================
# Records of the medical-code knowledge base. All are read-only.


@dataclass(frozen=True)
class DiagnosisCode:
    """
    Represents a single ICD-10-CM diagnosis code with imaging metadata.

    Attributes:
        code: ICD-10 code string (e.g., "M54.16")
        description: Human-readable diagnosis
        category: Clinical category (e.g., "Musculoskeletal")
        clinical_notes: Free-text guidance for imaging this diagnosis
        imaging_modalities: Modalities typically used
        primary_imaging: First-line modality
        keywords: Search keywords
        is_billable: Whether the code is a billable leaf code
    """

    code: str
    description: str
    category: Optional[str] = None
    clinical_notes: Optional[str] = None
    imaging_modalities: Tuple[str, ...] = ()
    primary_imaging: Optional[str] = None
    keywords: Tuple[str, ...] = ()
    is_billable: bool = True

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "code": self.code,
            "description": self.description,
            "category": self.category,
            "clinical_notes": self.clinical_notes,
            "imaging_modalities": list(self.imaging_modalities),
            "primary_imaging": self.primary_imaging,
            "keywords": list(self.keywords),
            "is_billable": self.is_billable,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DiagnosisCode":
        """Create from dictionary; accepts database column names too."""
        return cls(
            code=data.get("code", data.get("icd10_code", "")),
            description=data.get("description", ""),
            category=data.get("category"),
            clinical_notes=data.get("clinical_notes"),
            imaging_modalities=_as_tuple(data.get("imaging_modalities")),
            primary_imaging=data.get("primary_imaging"),
            keywords=_as_tuple(data.get("keywords")),
            is_billable=data.get("is_billable", True),
        )


@dataclass(frozen=True)
class ProcedureCode:
    """
    Represents a CPT imaging procedure code.

    Attributes:
        code: CPT code string (e.g., "72148")
        description: Human-readable procedure name
        modality: Imaging modality (MRI, CT, X-ray, ...)
        body_part: Anatomical region imaged
        category: Procedure category
        contrast_required: True/False when known
    """

    code: str
    description: str
    modality: Optional[str] = None
    body_part: Optional[str] = None
    category: Optional[str] = None
    contrast_required: Optional[bool] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "code": self.code,
            "description": self.description,
            "modality": self.modality,
            "body_part": self.body_part,
            "category": self.category,
            "contrast_required": self.contrast_required,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProcedureCode":
        """Create from dictionary; accepts database column names too."""
        return cls(
            code=data.get("code", data.get("cpt_code", "")),
            description=data.get("description", ""),
            modality=data.get("modality"),
            body_part=data.get("body_part"),
            category=data.get("category"),
            contrast_required=data.get("contrast_required"),
        )


@dataclass(frozen=True)
class CodeMapping:
    """
    Appropriateness rating for one diagnosis/procedure pair.

    Attributes:
        diagnosis_code: ICD-10 code
        procedure_code: CPT code
        appropriateness_level: Ordinal guideline rating, 1 (rarely) to 9 (usually)
        evidence_level: Strength of the supporting evidence
        justification: Rationale text
    """

    diagnosis_code: str
    procedure_code: str
    appropriateness_level: int
    evidence_level: Optional[str] = None
    justification: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "diagnosis_code": self.diagnosis_code,
            "procedure_code": self.procedure_code,
            "appropriateness_level": self.appropriateness_level,
            "evidence_level": self.evidence_level,
            "justification": self.justification,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CodeMapping":
        """Create from dictionary; accepts database column names too."""
        return cls(
            diagnosis_code=data.get("diagnosis_code", data.get("icd10_code", "")),
            procedure_code=data.get("procedure_code", data.get("cpt_code", "")),
            appropriateness_level=int(
                data.get("appropriateness_level", data.get("appropriateness", 0)) or 0
            ),
            evidence_level=data.get("evidence_level", data.get("evidence_source")),
            justification=data.get("justification", data.get("refined_justification")),
        )


@dataclass(frozen=True)
class KnowledgeDocument:
    """Explanatory guideline document attached to a diagnosis code."""

    code: str
    title: str
    content: str
    category: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "code": self.code,
            "title": self.title,
            "content": self.content,
            "category": self.category,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "KnowledgeDocument":
        """Create from dictionary; accepts database column names too."""
        return cls(
            code=data.get("code", data.get("icd10_code", "")),
            title=data.get("title", ""),
            content=data.get("content", ""),
            category=data.get("category"),
        )


@dataclass
class KnowledgeContext:
    """
    Knowledge retrieved for one dictation.

    Built by KnowledgeRetriever and consumed by PromptBuilder. An empty
    context is valid: the prompt is then composed without augmentation.
    """

    diagnosis_codes: List[DiagnosisCode] = field(default_factory=list)
    procedure_codes: List[ProcedureCode] = field(default_factory=list)
    mappings: List[CodeMapping] = field(default_factory=list)
    documents: List[KnowledgeDocument] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.diagnosis_codes or self.procedure_codes or self.mappings or self.documents)


# =============================================================================
# STAGE 2: REQUEST AND POLICY MODELS
# =============================================================================


@dataclass(frozen=True)
class PatientContext:
    """
    Optional patient demographics included in the prompt.

    Example:
        >>> PatientContext(age=45, gender="F").describe()
        '45-year-old female'
    """

    age: Optional[int] = None
    gender: Optional[str] = None

    def describe(self) -> str:
        """Render the patient-context line used in the prompt."""
        gender = _GENDER_LABELS.get((self.gender or "").strip().lower(), self.gender)
        if self.age is not None and gender:
            return f"{self.age}-year-old {gender}"
        if self.age is not None:
            return f"{self.age}-year-old patient"
        if gender:
            return f"{gender.capitalize()} patient, age not provided"
        return "Patient demographics not provided"


_GENDER_LABELS = {
    "m": "male",
    "male": "male",
    "f": "female",
    "female": "female",
    "o": "other",
    "other": "other",
    "u": None,
    "unknown": None,
    "": None,
}


@dataclass(frozen=True)
class SpecialtyPolicy:
    """
    Resolved policy for one specialty.

    Attributes:
        specialty: Specialty name as supplied by the caller
        word_budget: Maximum feedback words (> 0)
        checklist: Ordered prose checks for the prompt
        is_registered: False when defaults were used
    """

    specialty: str
    word_budget: int
    checklist: Tuple[str, ...]
    is_registered: bool = True


@dataclass(frozen=True)
class DictationRequest:
    """A single validation call, snapshotted for the audit trail."""

    order_id: str
    raw_text: str
    specialty: str
    patient_context: PatientContext = field(default_factory=PatientContext)
    prior_attempts: Tuple["AttemptRecord", ...] = ()
    override_justification: Optional[str] = None

    @property
    def is_override(self) -> bool:
        return self.override_justification is not None

    @property
    def word_count(self) -> int:
        return len(self.raw_text.split())


# =============================================================================
# STAGE 3: RESULT MODELS
# =============================================================================


@dataclass(frozen=True)
class SuggestedCode:
    """
    A diagnosis or procedure code suggested by the model.

    Attributes:
        code: Code string
        description: Description given by the model (may be empty)
        is_primary: True for the principal diagnosis
        confidence: Model confidence in [0, 1] when reported
    """

    code: str
    description: str = ""
    is_primary: bool = False
    confidence: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "description": self.description,
            "is_primary": self.is_primary,
            "confidence": self.confidence,
        }


@dataclass(frozen=True)
class ValidationResult:
    """
    The verdict returned for one dictation.

    What it does:
        Carries status, word-budgeted feedback, a 0-9 compliance score
        and suggested codes back to the order workflow.

    Invariants:
        - compliance_score in [0, 9]
        - feedback never exceeds the specialty word budget
        - immutable: retries and overrides produce new results

    Attributes:
        status: Three-valued verdict
        feedback: Physician-facing feedback
        compliance_score: Integer 0-9
        suggested_diagnosis_codes: ICD-10 suggestions
        suggested_procedure_codes: CPT suggestions
        overridden: True when accepted through the override protocol
        override_justification: Physician's reason for the override
        internal_reasoning: Model reasoning (not shown to the physician)
        source: Where the result came from
        created_at: Creation timestamp
    """

    status: ValidationStatus
    feedback: str
    compliance_score: int
    suggested_diagnosis_codes: Tuple[SuggestedCode, ...] = ()
    suggested_procedure_codes: Tuple[SuggestedCode, ...] = ()
    overridden: bool = False
    override_justification: Optional[str] = None
    internal_reasoning: Optional[str] = None
    source: ResultSource = ResultSource.MODEL
    created_at: datetime = field(default_factory=datetime.now)

    @property
    def is_valid(self) -> bool:
        return self.status == ValidationStatus.VALID

    @property
    def primary_diagnosis(self) -> Optional[SuggestedCode]:
        for code in self.suggested_diagnosis_codes:
            if code.is_primary:
                return code
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "status": self.status.value,
            "feedback": self.feedback,
            "compliance_score": self.compliance_score,
            "suggested_diagnosis_codes": [c.to_dict() for c in self.suggested_diagnosis_codes],
            "suggested_procedure_codes": [c.to_dict() for c in self.suggested_procedure_codes],
            "overridden": self.overridden,
            "override_justification": self.override_justification,
            "internal_reasoning": self.internal_reasoning,
            "source": self.source.value,
            "created_at": self.created_at.isoformat(),
        }


# =============================================================================
# STAGE 4: AUDIT TRAIL
# =============================================================================


@dataclass(frozen=True)
class AttemptRecord:
    """
    One immutable entry in an order's attempt history.

    Attributes:
        attempt_number: 1-based, strictly increasing per order
        dictation_snapshot: Dictation text as submitted for this attempt
        result: Result produced for this attempt
        state: Protocol state reached after this attempt
        timestamp: When the attempt was committed
    """

    attempt_number: int
    dictation_snapshot: str
    result: ValidationResult
    state: AttemptState
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "attempt_number": self.attempt_number,
            "dictation_snapshot": self.dictation_snapshot,
            "result": self.result.to_dict(),
            "state": self.state.value,
            "timestamp": self.timestamp.isoformat(),
        }


class AttemptHistory:
    """
    Append-only attempt history for one order.

    The caller (order workflow) owns and persists this object; the engine
    only appends to it. Attempt numbers must strictly increase.

    Example:
        >>> history = AttemptHistory("ORD-1")
        >>> len(history)
        0
    """

    def __init__(self, order_id: str, records: Optional[List[AttemptRecord]] = None):
        self._order_id = order_id
        self._records: List[AttemptRecord] = []
        for record in records or []:
            self.append(record)

    @property
    def order_id(self) -> str:
        return self._order_id

    @property
    def records(self) -> Tuple[AttemptRecord, ...]:
        return tuple(self._records)

    @property
    def latest(self) -> Optional[AttemptRecord]:
        return self._records[-1] if self._records else None

    @property
    def latest_attempt_number(self) -> int:
        return self._records[-1].attempt_number if self._records else 0

    def append(self, record: AttemptRecord) -> None:
        """
        Append a record.

        Raises:
            InvalidRequestError: If the attempt number does not increase
        """
        if record.attempt_number <= self.latest_attempt_number:
            raise InvalidRequestError(
                "Attempt numbers must strictly increase",
                context={
                    "order_id": self._order_id,
                    "latest": self.latest_attempt_number,
                    "received": record.attempt_number,
                },
            )
        self._records.append(record)

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self):
        return iter(self._records)


# =============================================================================
# STAGE 5: CACHE ENTRY
# =============================================================================


@dataclass(frozen=True)
class CacheEntry:
    """
    A cached payload with an absolute expiry time (epoch seconds).

    An entry is valid only while now < expiry_timestamp; an expired entry
    is a miss and is never served.
    """

    key: str
    payload: Any
    expiry_timestamp: float

    def is_valid(self, now: Optional[float] = None) -> bool:
        current = time.time() if now is None else now
        return current < self.expiry_timestamp
