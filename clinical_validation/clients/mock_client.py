"""
Mock LLM Client - Deterministic Offline Validation

Used whenever no model credential is configured, so the engine and every
test run without network access. It reads the composed prompt back
(dictation between the fixed markers, word budget, candidate codes) and
produces a response with the same JSON shape a real model returns.

Scoring Heuristic (0-9):
    +3 imaging modality named        +2 body part named
    +2 at least one clinical term    +1 three or more clinical terms
    +1 duration or onset documented

    score ≥ 7 → valid, score ≥ 3 → needs_clarification, else invalid

Author: Shubham Singh
Date: December 2025
"""

import json
import re
from typing import Dict, List

from clinical_validation.extraction.keyword_extractor import categorize_keywords, extract_keywords
from clinical_validation.generation.prompt_builder import DICTATION_END, DICTATION_START

_BUDGET_PATTERN = re.compile(r'Limit "feedback" to (\d+) words')
_DURATION_PATTERN = re.compile(
    r"\b(\d+\s*(?:-\s*\d+\s*)?(?:day|week|month|year)s?|chronic|acute|since|onset|ago)\b",
    re.IGNORECASE,
)
_DIAGNOSIS_LINE = re.compile(r"^- ([A-Z][0-9][0-9A-Z](?:\.[0-9A-Z]{1,4})?): ([^|\n]+)", re.MULTILINE)
_PROCEDURE_LINE = re.compile(r"^- ([0-9]{5}): ([^|\n]+)", re.MULTILINE)


class MockLLMClient:
    """
    Offline stand-in for a generative model.

    Deterministic: the same prompt always yields the same text.

    Example:
        >>> raw = MockLLMClient().generate(prompt)
        >>> json.loads(raw)["validationStatus"]
        'valid'
    """

    def __init__(self, default_word_budget: int = 33):
        self._default_word_budget = default_word_budget
        self._total_calls = 0

    @property
    def model_name(self) -> str:
        return "offline-mock"

    @property
    def provider_name(self) -> str:
        return "mock"

    @property
    def total_calls(self) -> int:
        return self._total_calls

    def generate(self, prompt: str) -> str:
        self._total_calls += 1
        dictation = _between(prompt, DICTATION_START, DICTATION_END)
        budget_match = _BUDGET_PATTERN.search(prompt)
        word_budget = int(budget_match.group(1)) if budget_match else self._default_word_budget

        groups = categorize_keywords(extract_keywords(dictation))
        has_duration = bool(_DURATION_PATTERN.search(dictation))

        score = 0
        missing: List[str] = []
        if groups.modalities:
            score += 3
        else:
            missing.append("the requested imaging modality")
        if groups.anatomy_terms:
            score += 2
        else:
            missing.append("the body part to image")
        if groups.symptoms:
            score += 2
            if len(groups.symptoms) >= 3:
                score += 1
        else:
            missing.append("a clinical indication")
        if has_duration:
            score += 1
        else:
            missing.append("symptom duration or onset")
        score = min(score, 9)

        if score >= 7:
            status = "valid"
            feedback = "Dictation supports the requested study."
            if missing:
                feedback += f" Consider adding {missing[0]}."
        elif score >= 3:
            status = "needs_clarification"
            feedback = f"Please document {_join(missing)} to support this order."
        else:
            status = "invalid"
            feedback = f"Order is not supported. Missing {_join(missing)}."

        diagnoses = _candidate_codes(_DIAGNOSIS_LINE, prompt)[:3]
        procedures = _candidate_codes(_PROCEDURE_LINE, prompt)[:2]
        for index, code in enumerate(diagnoses):
            code["isPrimary"] = index == 0

        return json.dumps(
            {
                "validationStatus": status,
                "complianceScore": score,
                "feedback": " ".join(feedback.split()[:word_budget]),
                "suggestedICD10Codes": diagnoses,
                "suggestedCPTCodes": procedures,
                "internalReasoning": (
                    f"Offline heuristic: modality={bool(groups.modalities)}, "
                    f"anatomy={bool(groups.anatomy_terms)}, terms={len(groups.symptoms)}, "
                    f"duration={has_duration}"
                ),
            }
        )


def _between(text: str, start: str, end: str) -> str:
    begin = text.find(start)
    if begin < 0:
        return text
    begin += len(start)
    finish = text.find(end, begin)
    return text[begin:finish if finish >= 0 else len(text)].strip()


def _join(items: List[str]) -> str:
    if len(items) <= 1:
        return "".join(items)
    return ", ".join(items[:-1]) + " and " + items[-1]


def _candidate_codes(pattern: re.Pattern, prompt: str) -> List[Dict]:
    codes: List[Dict] = []
    seen = set()
    for match in pattern.finditer(prompt):
        code = match.group(1)
        if code not in seen:
            seen.add(code)
            codes.append({"code": code, "description": match.group(2).strip()})
    return codes
