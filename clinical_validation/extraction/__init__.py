"""
Extraction Layer - Dictation Text Processing

Submodules:
    keyword_extractor.py → Search terms, code tokens and keyword categories

Author: Shubham Singh
Date: December 2025
"""

from clinical_validation.extraction.keyword_extractor import (
    CategorizedKeywords,
    categorize_keywords,
    extract_code_tokens,
    extract_keywords,
    is_procedure_code,
)

__all__ = [
    "CategorizedKeywords",
    "categorize_keywords",
    "extract_code_tokens",
    "extract_keywords",
    "is_procedure_code",
]
