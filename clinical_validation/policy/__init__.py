"""
Policy Layer - Specialty Word Budgets and Checklists

Author: Shubham Singh
Date: December 2025
"""

from clinical_validation.policy.specialty_policy import SpecialtyPolicyProvider, truncate_words

__all__ = ["SpecialtyPolicyProvider", "truncate_words"]
