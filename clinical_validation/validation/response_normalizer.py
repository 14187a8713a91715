"""
Response Normalizer - Model Text to ValidationResult

Models return almost-JSON in many shapes: fenced blocks, prose around the
object, camelCase or snake_case keys, scores out of 9, 10 or 100. This
module turns any of them into one canonical ValidationResult, or into an
invalid result with generic feedback when the text cannot be used.

Parsing Stages:
    UnparsedOutput  → raw text from the generation client
          │  extract_json_block (fences, outermost {...}, repair)
          ▼
    PartialResult   → field aliases resolved, optional fields defaulted
          │  status synonyms, score scaling, word budget, codes
          ▼
    ValidationResult (canonical)

A stage that cannot proceed raises MalformedModelOutput, which
normalize() converts into the error result. Nothing escapes normalize().

Author: Shubham Singh
Date: December 2025
"""

import ast
import json
import math
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

import json_repair
from loguru import logger

from clinical_validation.core.constants import (
    GENERIC_MALFORMED_FEEDBACK,
    MAX_COMPLIANCE_SCORE,
    MIN_COMPLIANCE_SCORE,
    VALID_SCORE_THRESHOLD,
)
from clinical_validation.core.enums import ResultSource, ValidationStatus
from clinical_validation.core.exceptions import MalformedModelOutput
from clinical_validation.core.models import SuggestedCode, ValidationResult
from clinical_validation.policy.specialty_policy import SpecialtyPolicyProvider


# =============================================================================
# STAGE 1: FIELD ALIASES
# =============================================================================

STATUS_KEYS = ("validationStatus", "validation_status", "status")
SCORE_KEYS = ("complianceScore", "compliance_score", "score")
FEEDBACK_KEYS = ("feedback", "feedback_text", "message")
DIAGNOSIS_KEYS = ("suggestedICD10Codes", "diagnosisCodes", "icd10_codes")
PROCEDURE_KEYS = ("suggestedCPTCodes", "procedureCodes", "cpt_codes")
REASONING_KEYS = ("internalReasoning", "internal_reasoning", "reasoning")

_FENCED_BLOCK = re.compile(r"```(?:json|JSON)?\s*(.*?)```", re.DOTALL)
_RATIO = re.compile(r"^\s*(-?\d+(?:\.\d+)?)\s*/\s*(\d+(?:\.\d+)?)\s*$")


# =============================================================================
# STAGE 2: INTERMEDIATE STAGES
# =============================================================================


@dataclass(frozen=True)
class UnparsedOutput:
    """Raw model text, before any structure has been found."""

    raw_text: str


@dataclass
class PartialResult:
    """
    Structured fields found in the model output, aliases resolved.

    Values are still as the model wrote them (status string, score of any
    scale, code lists of strings or objects).
    """

    status: str
    feedback: str
    compliance_score: Any = None
    diagnosis_codes: List[Any] = field(default_factory=list)
    procedure_codes: List[Any] = field(default_factory=list)
    internal_reasoning: Optional[str] = None


# =============================================================================
# STAGE 3: JSON EXTRACTION
# =============================================================================


def extract_json_block(raw_text: str) -> Dict[str, Any]:
    """
    Locate and parse the JSON object inside model text.

    Candidates are tried in order: a fenced ```json block, the outermost
    {...} span, then the whole text. Each candidate goes through strict
    JSON, then a Python-literal parse (single quotes, True/False/None,
    trailing commas), then json_repair.

    Raises:
        MalformedModelOutput: If no candidate yields a JSON object
    """
    text = (raw_text or "").strip()
    if not text:
        raise MalformedModelOutput("Model returned empty output", stage="unparsed")

    candidates: List[str] = []
    fenced = _FENCED_BLOCK.search(text)
    if fenced:
        candidates.append(fenced.group(1).strip())
    start, end = text.find("{"), text.rfind("}")
    if start != -1 and end > start:
        candidates.append(text[start : end + 1])
    candidates.append(text)

    for candidate in candidates:
        parsed = _parse_candidate(candidate)
        if isinstance(parsed, dict):
            return parsed

    raise MalformedModelOutput(
        "No JSON object found in model output",
        stage="unparsed",
        context={"length": len(text)},
    )


def _parse_candidate(candidate: str) -> Any:
    try:
        return json.loads(candidate)
    except (json.JSONDecodeError, TypeError):
        pass

    try:
        return ast.literal_eval(candidate)
    except (SyntaxError, ValueError, TypeError, MemoryError, RecursionError):
        pass

    if "{" not in candidate:
        return None
    try:
        return json_repair.loads(candidate)
    except Exception as e:
        logger.debug(f"json_repair could not parse candidate | {type(e).__name__}")
        return None


# =============================================================================
# STAGE 4: FIELD NORMALIZATION HELPERS
# =============================================================================


def normalize_compliance_score(value: Any) -> int:
    """
    Map a model-reported score onto the integer 0-9 scale.

    Rules:
        - 0..9 kept as-is (rounded)
        - (9, 100] treated as a percentage
        - a value written with a decimal point in [0, 1] is a fraction
        - "7/10"-style ratios are scaled
        - "85%" is a percentage
        - anything unreadable → 0
        - result always clamped to [0, 9]

    Example:
        >>> normalize_compliance_score(85)
        8
        >>> normalize_compliance_score("0.5")
        5
        >>> normalize_compliance_score("7/10")
        6
    """
    if value is None or isinstance(value, bool):
        return MIN_COMPLIANCE_SCORE

    scaled: Optional[float] = None
    if isinstance(value, str):
        text = value.strip()
        ratio = _RATIO.match(text)
        if ratio:
            denominator = float(ratio.group(2))
            if denominator > 0:
                scaled = float(ratio.group(1)) / denominator * MAX_COMPLIANCE_SCORE
        elif text.endswith("%"):
            number = _to_float(text[:-1])
            if number is not None:
                scaled = number * MAX_COMPLIANCE_SCORE / 100
        else:
            number = _to_float(text)
            if number is not None:
                scaled = _scale_number(number, has_decimal_point="." in text)
    elif isinstance(value, (int, float)):
        scaled = _scale_number(float(value), has_decimal_point=isinstance(value, float))

    if scaled is None or math.isnan(scaled):
        return MIN_COMPLIANCE_SCORE
    rounded = math.floor(scaled + 0.5) if math.isfinite(scaled) else scaled
    return int(max(MIN_COMPLIANCE_SCORE, min(MAX_COMPLIANCE_SCORE, rounded)))


def _to_float(text: str) -> Optional[float]:
    try:
        return float(text.strip())
    except ValueError:
        return None


def _scale_number(number: float, has_decimal_point: bool) -> float:
    if has_decimal_point and 0 < number <= 1:
        return number * MAX_COMPLIANCE_SCORE
    if MAX_COMPLIANCE_SCORE < number <= 100:
        return number * MAX_COMPLIANCE_SCORE / 100
    return number


def normalize_code_list(items: Any, primary_allowed: bool) -> Tuple[SuggestedCode, ...]:
    """
    Convert a model code array into SuggestedCode objects.

    Accepts a list of strings, numbers or objects, or one comma-separated
    string. Duplicate codes are dropped. When primary_allowed, exactly one
    code is primary (the first one flagged, else the first in the list).
    """
    if items is None:
        return ()
    if isinstance(items, str):
        items = [part for part in items.split(",")]
    elif isinstance(items, dict):
        items = [items]
    elif not isinstance(items, (list, tuple)):
        return ()

    codes: List[SuggestedCode] = []
    seen = set()
    primary_taken = False
    for item in items:
        parsed = _parse_code_item(item)
        if parsed is None:
            continue
        code, description, flagged, confidence = parsed
        if code in seen:
            continue
        seen.add(code)
        is_primary = primary_allowed and flagged and not primary_taken
        primary_taken = primary_taken or is_primary
        codes.append(SuggestedCode(code, description, is_primary, confidence))

    if primary_allowed and codes and not primary_taken:
        first = codes[0]
        codes[0] = SuggestedCode(first.code, first.description, True, first.confidence)
    return tuple(codes)


def _code_text(value: Any) -> str:
    # Bare numbers are CPT codes emitted without quotes, e.g. 72148
    if isinstance(value, bool):
        return ""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if isinstance(value, (str, int)):
        return str(value).strip().upper()
    return ""


def _parse_code_item(item: Any) -> Optional[Tuple[str, str, bool, Optional[float]]]:
    if not isinstance(item, dict):
        code = _code_text(item)
        return (code, "", False, None) if code else None

    code = _code_text(_first_present(item, ("code", "icd10", "cpt")))
    if not code:
        return None
    description = str(item.get("description") or item.get("desc") or "").strip()
    flagged = _truthy(item.get("isPrimary", item.get("is_primary", item.get("primary"))))
    confidence = item.get("confidence")
    try:
        confidence = float(confidence) if confidence is not None else None
    except (TypeError, ValueError):
        confidence = None
    return code, description, flagged, confidence


def _truthy(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "yes", "1", "primary")
    return bool(value)


def _first_present(data: Dict[str, Any], keys: Sequence[str]) -> Any:
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return None


# =============================================================================
# STAGE 5: RESPONSE NORMALIZER
# =============================================================================


class ResponseNormalizer:
    """
    Turns raw model text into a canonical ValidationResult.

    What it does:
        Runs the Unparsed → Partial → Canonical stages and enforces the
        result invariants (score range, valid-needs-high-score, word
        budget, single primary diagnosis).

    Why it exists:
        1. Provider differences stop here; the rest of the engine sees
           one shape
        2. Model mistakes become results, never exceptions

    Example:
        >>> normalizer = ResponseNormalizer(SpecialtyPolicyProvider())
        >>> result = normalizer.normalize('{"status": "valid", "score": 8, '
        ...                               '"feedback": "Supported."}', "Orthopedics")
        >>> result.status
        <ValidationStatus.VALID: 'valid'>
    """

    def __init__(self, policy_provider: SpecialtyPolicyProvider):
        self._policy = policy_provider

    def normalize(
        self,
        raw_text: str,
        specialty: Optional[str],
        source: ResultSource = ResultSource.MODEL,
    ) -> ValidationResult:
        """
        Normalize model text. Never raises.

        Unparsable output, or output missing status or feedback, yields an
        invalid result with generic feedback and source=error.
        """
        try:
            partial = self.to_partial(UnparsedOutput(raw_text or ""))
            return self.to_canonical(partial, specialty, source)
        except MalformedModelOutput as e:
            logger.warning(
                f"Malformed model output | Stage: {e.stage} | "
                f"Length: {len(raw_text or '')} | {e.message}"
            )
            return self.error_result(specialty)

    def to_partial(self, unparsed: UnparsedOutput) -> PartialResult:
        """
        Resolve field aliases and default optional fields.

        Raises:
            MalformedModelOutput: If status or feedback is missing
        """
        data = extract_json_block(unparsed.raw_text)

        status = _first_present(data, STATUS_KEYS)
        feedback = _first_present(data, FEEDBACK_KEYS)
        missing = [
            name
            for name, value in (("status", status), ("feedback", feedback))
            if value is None or (isinstance(value, str) and not value.strip())
        ]
        if missing:
            raise MalformedModelOutput(
                f"Required fields missing: {', '.join(missing)}",
                stage="partial",
                context={"keys": sorted(data.keys())},
            )

        reasoning = _first_present(data, REASONING_KEYS)
        return PartialResult(
            status=str(status),
            feedback=str(feedback),
            compliance_score=_first_present(data, SCORE_KEYS),
            diagnosis_codes=_first_present(data, DIAGNOSIS_KEYS) or [],
            procedure_codes=_first_present(data, PROCEDURE_KEYS) or [],
            internal_reasoning=str(reasoning) if reasoning is not None else None,
        )

    def to_canonical(
        self,
        partial: PartialResult,
        specialty: Optional[str],
        source: ResultSource = ResultSource.MODEL,
    ) -> ValidationResult:
        """
        Build the canonical result from a partial one.

        Raises:
            MalformedModelOutput: If the status matches no known value
        """
        try:
            status = ValidationStatus.from_string(partial.status)
        except ValueError:
            raise MalformedModelOutput(
                f"Unrecognized status: {partial.status[:40]}", stage="partial"
            )

        score = normalize_compliance_score(partial.compliance_score)
        if status == ValidationStatus.VALID and score <= VALID_SCORE_THRESHOLD:
            logger.info(f"Downgrading valid result with score {score} to needs_clarification")
            status = ValidationStatus.NEEDS_CLARIFICATION

        return ValidationResult(
            status=status,
            feedback=self._policy.enforce_word_budget(partial.feedback, specialty),
            compliance_score=score,
            suggested_diagnosis_codes=normalize_code_list(
                partial.diagnosis_codes, primary_allowed=True
            ),
            suggested_procedure_codes=normalize_code_list(
                partial.procedure_codes, primary_allowed=False
            ),
            internal_reasoning=partial.internal_reasoning,
            source=source,
        )

    def error_result(self, specialty: Optional[str]) -> ValidationResult:
        return ValidationResult(
            status=ValidationStatus.INVALID,
            feedback=self._policy.enforce_word_budget(GENERIC_MALFORMED_FEEDBACK, specialty),
            compliance_score=MIN_COMPLIANCE_SCORE,
            source=ResultSource.ERROR,
        )
