"""Tests for validation prompt composition."""

from clinical_validation.core.models import CodeMapping, KnowledgeContext, PatientContext
from clinical_validation.extraction import extract_keywords
from clinical_validation.generation import PromptBuilder
from clinical_validation.generation.prompt_builder import (
    DICTATION_END,
    DICTATION_START,
    KNOWLEDGE_TRUNCATION_MARKER,
)
from clinical_validation.knowledge import KnowledgeRetriever


class TestBuildValidationPrompt:
    def test_contains_specialty_budget_and_checklist(self, policy_provider):
        prompt = PromptBuilder(policy_provider).build_validation_prompt(
            "Follow-up chest X-ray, no new symptoms", "Family Medicine"
        )
        assert "**ORDERING SPECIALTY:** Family Medicine" in prompt
        assert 'Limit "feedback" to 29 words' in prompt
        assert "- Was conservative management tried before advanced imaging?" in prompt

    def test_dictation_is_between_markers(self, policy_provider):
        prompt = PromptBuilder(policy_provider).build_validation_prompt(
            "  Knee pain after twisting injury.  ", "Orthopedics"
        )
        start = prompt.index(DICTATION_START) + len(DICTATION_START)
        end = prompt.index(DICTATION_END)
        assert prompt[start:end].strip() == "Knee pain after twisting injury."

    def test_patient_context_line(self, policy_provider):
        builder = PromptBuilder(policy_provider)
        with_patient = builder.build_validation_prompt(
            "Headache", "Neurology", patient_context=PatientContext(age=45, gender="F")
        )
        without_patient = builder.build_validation_prompt("Headache", "Neurology")
        assert "**PATIENT:** 45-year-old female" in with_patient
        assert "**PATIENT:** Patient demographics not provided" in without_patient

    def test_unregistered_specialty_uses_defaults(self, policy_provider):
        prompt = PromptBuilder(policy_provider).build_validation_prompt("Headache", "Astrology")
        assert 'Limit "feedback" to 33 words' in prompt

    def test_override_section_only_when_overriding(self, policy_provider):
        builder = PromptBuilder(policy_provider)
        normal = builder.build_validation_prompt("Headache", "Neurology")
        override = builder.build_validation_prompt(
            "Headache",
            "Neurology",
            override_justification="  Thunderclap onset, worst headache of life.  ",
        )
        assert "OVERRIDE JUSTIFICATION" not in normal
        assert "**PHYSICIAN OVERRIDE JUSTIFICATION:**\nThunderclap onset" in override
        assert "The physician is overriding" in override

    def test_is_deterministic(self, policy_provider, file_store):
        text = "Right shoulder pain, suspected rotator cuff tear, MRI shoulder"
        knowledge = KnowledgeRetriever(file_store).gather(extract_keywords(text))
        builder = PromptBuilder(policy_provider)
        assert builder.build_validation_prompt(text, "Orthopedics", knowledge=knowledge) == (
            builder.build_validation_prompt(text, "Orthopedics", knowledge=knowledge)
        )

    def test_requests_json_schema(self, policy_provider):
        prompt = PromptBuilder(policy_provider).build_validation_prompt("Headache", "Neurology")
        for key in ("validationStatus", "complianceScore", "feedback", "suggestedICD10Codes"):
            assert f'"{key}"' in prompt


class TestFormatKnowledge:
    def test_empty_knowledge(self, policy_provider):
        text = PromptBuilder(policy_provider).format_knowledge(KnowledgeContext())
        assert text == "No reference knowledge available for this dictation."

    def test_lists_codes_and_ratings(self, policy_provider, file_store):
        knowledge = KnowledgeRetriever(file_store).gather(["shoulder", "rotator cuff"])
        text = PromptBuilder(policy_provider).format_knowledge(knowledge)
        assert "Candidate diagnoses (ICD-10):" in text
        assert "- 73221: MRI shoulder joint without contrast" in text
        assert "/9" in text

    def test_caps_size_with_marker(self, policy_provider):
        mappings = [
            CodeMapping(
                diagnosis_code="M54.50",
                procedure_code=f"7{i:04d}",
                appropriateness_level=5,
                justification="x" * 80,
            )
            for i in range(50)
        ]
        builder = PromptBuilder(policy_provider, max_context_chars=500)
        text = builder.format_knowledge(KnowledgeContext(mappings=mappings))
        assert len(text) <= 500
        assert text.endswith(KNOWLEDGE_TRUNCATION_MARKER)
