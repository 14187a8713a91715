"""Tests for turning model text into canonical validation results."""

import json

import pytest

from clinical_validation.core.constants import GENERIC_MALFORMED_FEEDBACK
from clinical_validation.core.enums import ResultSource, ValidationStatus
from clinical_validation.core.exceptions import MalformedModelOutput
from clinical_validation.validation import (
    ResponseNormalizer,
    UnparsedOutput,
    extract_json_block,
    normalize_code_list,
    normalize_compliance_score,
)

from conftest import model_json


@pytest.fixture
def normalizer(policy_provider):
    return ResponseNormalizer(policy_provider)


class TestExtractJsonBlock:
    def test_plain_json(self):
        assert extract_json_block('{"status": "valid"}') == {"status": "valid"}

    def test_fenced_block_with_prose(self):
        text = 'Here is my answer:\n```json\n{"status": "invalid", "score": 1}\n```\nThanks.'
        assert extract_json_block(text) == {"status": "invalid", "score": 1}

    def test_object_embedded_in_prose(self):
        text = 'Result follows {"status": "valid", "feedback": "ok"} end of message'
        assert extract_json_block(text)["feedback"] == "ok"

    def test_python_literal_style(self):
        text = "{'status': 'valid', 'score': 8, 'primary': True,}"
        assert extract_json_block(text) == {"status": "valid", "score": 8, "primary": True}

    def test_repairs_truncated_json(self):
        parsed = extract_json_block('{"status": "needs_clarification", "feedback": "Add duration')
        assert parsed["status"] == "needs_clarification"

    @pytest.mark.parametrize("text", ["", "   ", "no structure at all"])
    def test_unusable_text_raises(self, text):
        with pytest.raises(MalformedModelOutput) as exc_info:
            extract_json_block(text)
        assert exc_info.value.stage == "unparsed"


class TestNormalizeComplianceScore:
    @pytest.mark.parametrize(
        "value, expected",
        [
            (8, 8),
            (0, 0),
            (9, 9),
            (85, 8),
            (100, 9),
            ("7", 7),
            ("0.5", 5),
            (1.0, 9),
            ("7/10", 6),
            ("9/9", 9),
            ("80%", 7),
            (150, 9),
            (-3, 0),
            ("abc", 0),
            (None, 0),
            (True, 0),
            (float("nan"), 0),
            (6.5, 7),
        ],
    )
    def test_mapping_to_zero_to_nine(self, value, expected):
        assert normalize_compliance_score(value) == expected


class TestNormalizeCodeList:
    def test_first_flagged_is_the_only_primary(self):
        codes = normalize_code_list(
            [
                {"code": "m54.50", "description": "Low back pain"},
                {"code": "M54.16", "isPrimary": True},
                {"code": "M51.26", "is_primary": "true"},
            ],
            primary_allowed=True,
        )
        assert [c.code for c in codes] == ["M54.50", "M54.16", "M51.26"]
        assert [c.is_primary for c in codes] == [False, True, False]

    def test_first_code_becomes_primary_when_none_flagged(self):
        codes = normalize_code_list(["R07.9", "R05.9"], primary_allowed=True)
        assert [c.is_primary for c in codes] == [True, False]

    def test_procedures_never_primary(self):
        codes = normalize_code_list([{"code": "72148", "primary": True}], primary_allowed=False)
        assert not codes[0].is_primary

    def test_comma_separated_string_and_duplicates(self):
        codes = normalize_code_list("71046, 71046 ,73030,", primary_allowed=False)
        assert [c.code for c in codes] == ["71046", "73030"]

    def test_confidence_and_alternate_keys(self):
        codes = normalize_code_list(
            [{"icd10": "J18.9", "desc": "Pneumonia", "confidence": "0.8"}], primary_allowed=True
        )
        assert codes[0].description == "Pneumonia"
        assert codes[0].confidence == 0.8

    @pytest.mark.parametrize(
        "items",
        [
            [72148, 73721],
            [72148.0, "73721"],
            [{"code": 72148}, {"cpt": 73721, "description": "MRI knee"}],
        ],
    )
    def test_numeric_codes(self, items):
        codes = normalize_code_list(items, primary_allowed=False)
        assert [c.code for c in codes] == ["72148", "73721"]

    def test_boolean_is_not_a_code(self):
        assert normalize_code_list([True, 72148], primary_allowed=False)[0].code == "72148"

    @pytest.mark.parametrize("items", [None, 42, [], [None, {}, {"code": ""}]])
    def test_unusable_items(self, items):
        assert normalize_code_list(items, primary_allowed=True) == ()


class TestResponseNormalizer:
    def test_canonical_camel_case(self, normalizer):
        raw = model_json(
            "valid",
            8,
            "Dictation supports the requested MRI.",
            suggestedICD10Codes=[{"code": "M54.16", "description": "Lumbar radiculopathy"}],
            suggestedCPTCodes=[{"code": "72148", "description": "MRI lumbar spine"}],
            internalReasoning="Six weeks of failed therapy documented.",
        )
        result = normalizer.normalize(raw, "Orthopedics")

        assert result.status == ValidationStatus.VALID
        assert result.compliance_score == 8
        assert result.primary_diagnosis.code == "M54.16"
        assert result.suggested_procedure_codes[0].code == "72148"
        assert result.internal_reasoning == "Six weeks of failed therapy documented."
        assert result.source == ResultSource.MODEL

    def test_snake_case_aliases(self, normalizer):
        raw = json.dumps(
            {"validation_status": "Needs Clarification", "compliance_score": "5/9",
             "feedback_text": "Add duration.", "icd10_codes": "R07.9"}
        )
        result = normalizer.normalize(raw, "Family Medicine")
        assert result.status == ValidationStatus.NEEDS_CLARIFICATION
        assert result.compliance_score == 5
        assert result.feedback == "Add duration."
        assert result.suggested_diagnosis_codes[0].code == "R07.9"

    def test_unquoted_procedure_codes(self, normalizer):
        raw = json.dumps(
            {"status": "valid", "score": 8, "message": "Supported.", "cpt_codes": [72148, 72100]}
        )
        result = normalizer.normalize(raw, "Orthopedics")
        assert [c.code for c in result.suggested_procedure_codes] == ["72148", "72100"]

    def test_status_synonym(self, normalizer):
        result = normalizer.normalize(model_json("rejected", 1, "Not supported."), "Oncology")
        assert result.status == ValidationStatus.INVALID

    def test_valid_with_low_score_is_downgraded(self, normalizer):
        result = normalizer.normalize(model_json("valid", 6, "Mostly supported."), "Oncology")
        assert result.status == ValidationStatus.NEEDS_CLARIFICATION
        assert result.compliance_score == 6

    def test_feedback_truncated_to_specialty_budget(self, normalizer):
        feedback = " ".join(["word"] * 80)
        result = normalizer.normalize(model_json("invalid", 2, feedback), "Emergency Medicine")
        assert len(result.feedback.split()) == 25

    def test_missing_required_field_gives_error_result(self, normalizer):
        result = normalizer.normalize('{"status": "valid", "score": 9}', "Orthopedics")
        assert result.status == ValidationStatus.INVALID
        assert result.source == ResultSource.ERROR
        assert result.compliance_score == 0
        assert result.feedback == GENERIC_MALFORMED_FEEDBACK

    def test_unknown_status_gives_error_result(self, normalizer):
        result = normalizer.normalize(model_json("maybe", 5, "Unsure."), "Orthopedics")
        assert result.source == ResultSource.ERROR

    @pytest.mark.parametrize("raw", ["", None, "I cannot help with that.", "[1, 2, 3]"])
    def test_garbage_never_raises(self, normalizer, raw):
        result = normalizer.normalize(raw, "Family Medicine")
        assert result.status == ValidationStatus.INVALID
        assert len(result.feedback.split()) <= 29

    def test_source_is_passed_through(self, normalizer):
        result = normalizer.normalize(model_json(), "Orthopedics", source=ResultSource.FALLBACK)
        assert result.source == ResultSource.FALLBACK

    def test_to_partial_requires_feedback(self, normalizer):
        with pytest.raises(MalformedModelOutput) as exc_info:
            normalizer.to_partial(UnparsedOutput('{"status": "valid", "feedback": "  "}'))
        assert exc_info.value.stage == "partial"
