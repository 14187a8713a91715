"""Tests for specialty word budgets, checklists and feedback truncation."""

import pytest

from clinical_validation.core.constants import BASE_CHECKLIST, SPECIALTY_WORD_BUDGETS
from clinical_validation.core.exceptions import ConfigurationError
from clinical_validation.policy import SpecialtyPolicyProvider, truncate_words


class TestWordBudgets:
    @pytest.mark.parametrize(
        "specialty, budget",
        [
            ("Family Medicine", 29),
            ("family   medicine", 29),
            ("  EMERGENCY MEDICINE ", 25),
            ("Orthopedics", 33),
            ("Oncology", 40),
        ],
    )
    def test_registered_budgets(self, policy_provider, specialty, budget):
        assert policy_provider.resolve_word_budget(specialty) == budget

    @pytest.mark.parametrize("specialty", ["Astrology", "", None])
    def test_unregistered_uses_default(self, policy_provider, specialty):
        assert policy_provider.resolve_word_budget(specialty) == 33
        assert not policy_provider.is_registered(specialty)

    def test_custom_default(self):
        provider = SpecialtyPolicyProvider(word_budgets={}, default_word_budget=12)
        assert provider.resolve_word_budget("Family Medicine") == 12

    def test_non_positive_budgets_rejected(self):
        with pytest.raises(ConfigurationError):
            SpecialtyPolicyProvider(default_word_budget=0)
        with pytest.raises(ConfigurationError):
            SpecialtyPolicyProvider(word_budgets={"Cardiology": -1})


class TestChecklists:
    def test_registered_checklist_returned_verbatim(self, policy_provider):
        checklist = policy_provider.resolve_checklist("orthopedics")
        assert len(checklist) == 4
        assert checklist[-1] == "Is laterality specified?"

    def test_unregistered_checklist_is_base_prefix(self, policy_provider):
        checklist = policy_provider.resolve_checklist("Astrology")
        assert checklist == BASE_CHECKLIST[:3]

    def test_synthesized_length_follows_budget_tier(self):
        provider = SpecialtyPolicyProvider(
            word_budgets={"Tiny": 10, "Small": 25, "Medium": 49, "Large": 80}, checklists={}
        )
        assert len(provider.resolve_checklist("Tiny")) == 2
        assert len(provider.resolve_checklist("Small")) == 3
        assert len(provider.resolve_checklist("Medium")) == 4
        assert len(provider.resolve_checklist("Large")) == 5

    def test_resolve_policy_bundles_everything(self, policy_provider):
        policy = policy_provider.resolve_policy("Emergency Medicine")
        assert policy.word_budget == 25
        assert len(policy.checklist) == 2
        assert policy.is_registered

        fallback = policy_provider.resolve_policy("Astrology")
        assert fallback.word_budget == 33
        assert not fallback.is_registered


class TestWordBudgetEnforcement:
    def test_truncates_to_budget(self, policy_provider):
        text = " ".join(f"word{i}" for i in range(60))
        enforced = policy_provider.enforce_word_budget(text, "Emergency Medicine")
        assert len(enforced.split()) == 25
        assert enforced.startswith("word0 word1")

    def test_short_text_unchanged_apart_from_whitespace(self, policy_provider):
        assert policy_provider.enforce_word_budget("Add  symptom\nduration.", "Oncology") == (
            "Add symptom duration."
        )

    @pytest.mark.parametrize(
        "specialty, budget",
        list(SPECIALTY_WORD_BUDGETS.items()) + [("Astrology", 33)],
    )
    @pytest.mark.parametrize("extra", [-1, 0, 1, 150])
    def test_never_exceeds_budget(self, policy_provider, specialty, budget, extra):
        count = max(0, budget + extra)
        text = " ".join(["x"] * count)
        enforced = policy_provider.enforce_word_budget(text, specialty)
        assert len(enforced.split()) == min(count, budget)

    def test_truncate_words_handles_empty(self):
        assert truncate_words("", 5) == ""
        assert truncate_words(None, 5) == ""
