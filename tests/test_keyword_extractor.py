"""Tests for dictation keyword extraction and categorization."""

from clinical_validation.extraction import (
    categorize_keywords,
    extract_code_tokens,
    extract_keywords,
    is_procedure_code,
)


class TestExtractKeywords:
    def test_follow_up_chest_xray(self):
        assert extract_keywords("Follow-up chest X-ray, no new symptoms.") == [
            "follow-up",
            "chest",
            "x-ray",
            "symptoms",
        ]

    def test_empty_and_blank_input(self):
        assert extract_keywords("") == []
        assert extract_keywords("   \n\t") == []
        assert extract_keywords(None) == []

    def test_merges_clinical_phrases(self):
        keywords = extract_keywords("Shortness of breath and chest pain, rule out pulmonary embolism")
        assert "shortness of breath" in keywords
        assert "chest pain" in keywords
        assert "pulmonary embolism" in keywords
        assert "breath" not in keywords

    def test_drops_stop_words_numbers_and_single_characters(self):
        keywords = extract_keywords("Patient is a 45 year old with pain x 3 weeks in the L knee")
        assert keywords == ["pain", "knee"]

    def test_deduplicates_preserving_first_occurrence(self):
        assert extract_keywords("Knee pain, knee swelling, pain") == ["knee", "pain", "swelling"]

    def test_is_deterministic(self):
        text = "Right shoulder pain with weakness, rotator cuff tear suspected, MRI shoulder"
        assert extract_keywords(text) == extract_keywords(text)


class TestExtractCodeTokens:
    def test_finds_icd10_and_cpt_codes(self):
        tokens = extract_code_tokens("Dx m54.16, order 72148. Also M54.16 again.")
        assert tokens == ["M54.16", "72148"]

    def test_plain_text_has_no_codes(self):
        assert extract_code_tokens("Chest pain for two days") == []


class TestCategorizeKeywords:
    def test_splits_by_role(self):
        groups = categorize_keywords(["shoulder", "mri", "pain", "72148", "m54.50"])
        assert groups.anatomy_terms == ["shoulder"]
        assert groups.modalities == ["mri"]
        assert groups.symptoms == ["pain"]
        assert groups.codes == ["72148", "M54.50"]

    def test_phrase_terms_are_categorized(self):
        groups = categorize_keywords(["rotator cuff", "bone density", "chest pain"])
        assert groups.anatomy_terms == ["rotator cuff"]
        assert groups.modalities == ["bone density"]
        assert groups.symptoms == ["chest pain"]

    def test_empty(self):
        assert categorize_keywords([]).is_empty

    def test_is_procedure_code(self):
        assert is_procedure_code("72148")
        assert not is_procedure_code("M54.50")
        assert not is_procedure_code("7214")
