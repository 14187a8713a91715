"""
Keyword Extractor - Dictation Text to Clinical Search Terms

This module turns free-text dictation into the ordered list of terms used
to query the knowledge base.

Pipeline Position:
    Dictation → [Keyword Extractor] → Knowledge → Policy → Prompt → LLM → Normalizer
                 ^^^^^^^^^^^^^^^^^
                 You are here

Algorithm (extract_keywords):
    1. Lower-case the text
    2. Tokenize, dropping punctuation (inner hyphens/dots/slashes kept,
       so "x-ray" and "m54.5" survive as single tokens)
    3. Merge known multi-word phrases ("rotator cuff") into one term
    4. Drop stop-words, single characters and pure-numeric tokens
    5. De-duplicate, preserving first occurrence

All functions are pure and deterministic. Empty input yields an empty
list, never an error.

Author: Shubham Singh
Date: December 2025
"""

import re
from dataclasses import dataclass, field
from typing import Iterable, List, Sequence

from clinical_validation.core.constants import (
    ANATOMY_TERMS,
    CLINICAL_PHRASES,
    MODALITY_TERMS,
    STOP_WORDS,
)


# =============================================================================
# STAGE 1: PATTERNS
# =============================================================================

_TOKEN_PATTERN = re.compile(r"[a-z0-9]+(?:[-./][a-z0-9]+)*")
_NUMERIC_PATTERN = re.compile(r"^[0-9]+(?:[-./][0-9]+)*$")

# ICD-10-CM: letter (not U), digit, digit-or-A/B, optional dot extension
_ICD10_PATTERN = re.compile(r"\b([A-TV-Z][0-9][0-9AB](?:\.[0-9A-Z]{1,4})?)\b")
_ICD10_TOKEN_PATTERN = re.compile(r"^[a-tv-z][0-9][0-9ab](?:\.[0-9a-z]{1,4})?$", re.IGNORECASE)
_CPT_PATTERN = re.compile(r"\b([0-9]{5})\b")

# Longest phrases first so "shortness of breath" wins over any shorter prefix
_PHRASES = sorted((tuple(p.split()) for p in CLINICAL_PHRASES), key=len, reverse=True)


# =============================================================================
# STAGE 2: KEYWORD EXTRACTION
# =============================================================================


def _tokenize(text: str) -> List[str]:
    return _TOKEN_PATTERN.findall(text.lower())


def _merge_phrases(tokens: Sequence[str]) -> List[str]:
    merged: List[str] = []
    i = 0
    while i < len(tokens):
        for phrase in _PHRASES:
            if tuple(tokens[i : i + len(phrase)]) == phrase:
                merged.append(" ".join(phrase))
                i += len(phrase)
                break
        else:
            merged.append(tokens[i])
            i += 1
    return merged


def _is_search_term(token: str) -> bool:
    if token in STOP_WORDS:
        return False
    if len(token) < 2:
        return False
    if _NUMERIC_PATTERN.match(token):
        return False
    return True


def extract_keywords(text: str) -> List[str]:
    """
    Extract ordered, de-duplicated clinical search terms from dictation.

    Args:
        text: Raw dictation text (may be empty or None)

    Returns:
        List of lower-case terms in order of first appearance

    Example:
        >>> extract_keywords("Follow-up chest X-ray, no new symptoms.")
        ['follow-up', 'chest', 'x-ray', 'symptoms']
    """
    if not text or not text.strip():
        return []

    keywords: List[str] = []
    seen = set()
    for term in _merge_phrases(_tokenize(text)):
        if term in seen or not _is_search_term(term):
            continue
        seen.add(term)
        keywords.append(term)
    return keywords


def extract_code_tokens(text: str) -> List[str]:
    """
    Find explicit ICD-10 and CPT codes written in the dictation.

    Returns codes upper-cased, de-duplicated, in order of appearance.
    """
    if not text:
        return []

    found = []
    for match in re.finditer(f"{_ICD10_PATTERN.pattern}|{_CPT_PATTERN.pattern}", text.upper()):
        code = match.group(1) or match.group(2)
        if code not in found:
            found.append(code)
    return found


# =============================================================================
# STAGE 3: KEYWORD CATEGORIZATION
# =============================================================================


@dataclass
class CategorizedKeywords:
    """
    Keywords split by the role they play in a knowledge lookup.

    Attributes:
        anatomy_terms: Body parts ("shoulder", "lumbar")
        modalities: Imaging modalities ("mri", "x-ray")
        symptoms: Everything else (symptoms, findings, diagnoses)
        codes: Code-shaped tokens (ICD-10 or 5-digit CPT), upper-cased
    """

    anatomy_terms: List[str] = field(default_factory=list)
    modalities: List[str] = field(default_factory=list)
    symptoms: List[str] = field(default_factory=list)
    codes: List[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.anatomy_terms or self.modalities or self.symptoms or self.codes)


def is_procedure_code(code: str) -> bool:
    """CPT codes are five digits; everything else is treated as ICD-10."""
    return bool(re.fullmatch(r"[0-9]{5}", code.strip()))


def categorize_keywords(keywords: Iterable[str]) -> CategorizedKeywords:
    """
    Split keywords into anatomy, modality, symptom and code groups.

    Order within each group follows the input order.

    Example:
        >>> categorize_keywords(["shoulder", "mri", "pain", "72148"]).codes
        ['72148']
    """
    result = CategorizedKeywords()
    for keyword in keywords:
        term = keyword.strip().lower()
        if not term:
            continue
        if is_procedure_code(term) or _ICD10_TOKEN_PATTERN.match(term):
            result.codes.append(term.upper())
        elif term in MODALITY_TERMS:
            result.modalities.append(term)
        elif term in ANATOMY_TERMS:
            result.anatomy_terms.append(term)
        else:
            result.symptoms.append(term)
    return result
