"""
Validation Layer - Model Output Normalization

Submodules:
    response_normalizer.py → Unparsed → Partial → Canonical result pipeline

Author: Shubham Singh
Date: December 2025
"""

from clinical_validation.validation.response_normalizer import (
    PartialResult,
    ResponseNormalizer,
    UnparsedOutput,
    extract_json_block,
    normalize_code_list,
    normalize_compliance_score,
)

__all__ = [
    "PartialResult",
    "ResponseNormalizer",
    "UnparsedOutput",
    "extract_json_block",
    "normalize_code_list",
    "normalize_compliance_score",
]
