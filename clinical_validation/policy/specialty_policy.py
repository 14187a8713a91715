"""
Specialty Policy Provider - Word Budgets and Checklists

Resolves an ordering specialty to the policy that shapes validation
feedback:

    resolve_word_budget(specialty) → registered budget or global default
    resolve_checklist(specialty)   → registered checklist or synthesized one
    enforce_word_budget(text, sp)  → hard truncation to the budget
    resolve_policy(specialty)      → SpecialtyPolicy bundling the above

Specialty lookup ignores case and surrounding/inner whitespace runs.

Checklist Synthesis:
    When no checklist is registered, a prefix of BASE_CHECKLIST is used.
    Its length scales with the resolved word budget:

        budget < 25  → 2 checks
        budget < 35  → 3 checks
        budget < 50  → 4 checks
        otherwise    → 5 checks

Author: Shubham Singh
Date: December 2025
"""

from typing import Dict, Mapping, Optional, Sequence, Tuple

from clinical_validation.core.config import ConfigDefaults
from clinical_validation.core.constants import (
    BASE_CHECKLIST,
    CHECKLIST_MAX_CHECKS,
    CHECKLIST_TIERS,
    SPECIALTY_CHECKLISTS,
    SPECIALTY_WORD_BUDGETS,
)
from clinical_validation.core.exceptions import ConfigurationError
from clinical_validation.core.models import SpecialtyPolicy


def _specialty_key(specialty: Optional[str]) -> str:
    return " ".join((specialty or "").split()).lower()


def truncate_words(text: str, max_words: int) -> str:
    """Keep at most max_words whitespace-delimited words. Never expands."""
    words = (text or "").split()
    return " ".join(words[:max_words])


class SpecialtyPolicyProvider:
    """
    Resolves specialty-specific feedback policy.

    Args:
        word_budgets: Specialty → budget (defaults to SPECIALTY_WORD_BUDGETS)
        checklists: Specialty → checklist (defaults to SPECIALTY_CHECKLISTS)
        default_word_budget: Budget for unregistered specialties

    Example:
        >>> provider = SpecialtyPolicyProvider()
        >>> provider.resolve_word_budget("family medicine")
        29
        >>> provider.resolve_word_budget("Astrology")
        33
    """

    def __init__(
        self,
        word_budgets: Optional[Mapping[str, int]] = None,
        checklists: Optional[Mapping[str, Sequence[str]]] = None,
        default_word_budget: int = ConfigDefaults.DEFAULT_WORD_BUDGET,
    ):
        if default_word_budget <= 0:
            raise ConfigurationError(
                "Default word budget must be positive",
                context={"default_word_budget": default_word_budget},
            )

        budgets = SPECIALTY_WORD_BUDGETS if word_budgets is None else word_budgets
        for name, budget in budgets.items():
            if budget <= 0:
                raise ConfigurationError(
                    f"Word budget for {name} must be positive", context={"budget": budget}
                )

        self._default_word_budget = default_word_budget
        self._budgets: Dict[str, int] = {_specialty_key(k): v for k, v in budgets.items()}
        self._checklists: Dict[str, Tuple[str, ...]] = {
            _specialty_key(k): tuple(v)
            for k, v in (SPECIALTY_CHECKLISTS if checklists is None else checklists).items()
        }

    @property
    def default_word_budget(self) -> int:
        return self._default_word_budget

    def is_registered(self, specialty: Optional[str]) -> bool:
        return _specialty_key(specialty) in self._budgets

    def resolve_word_budget(self, specialty: Optional[str]) -> int:
        return self._budgets.get(_specialty_key(specialty), self._default_word_budget)

    def resolve_checklist(self, specialty: Optional[str]) -> Tuple[str, ...]:
        registered = self._checklists.get(_specialty_key(specialty))
        if registered:
            return registered
        return BASE_CHECKLIST[: self.synthesized_check_count(self.resolve_word_budget(specialty))]

    @staticmethod
    def synthesized_check_count(word_budget: int) -> int:
        for upper_bound, checks in CHECKLIST_TIERS:
            if word_budget < upper_bound:
                return checks
        return CHECKLIST_MAX_CHECKS

    def enforce_word_budget(self, text: str, specialty: Optional[str]) -> str:
        return truncate_words(text, self.resolve_word_budget(specialty))

    def resolve_policy(self, specialty: Optional[str]) -> SpecialtyPolicy:
        return SpecialtyPolicy(
            specialty=specialty or "",
            word_budget=self.resolve_word_budget(specialty),
            checklist=self.resolve_checklist(specialty),
            is_registered=self.is_registered(specialty),
        )
