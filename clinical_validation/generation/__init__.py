"""
Generation Layer - Prompt Composition

Submodules:
    prompt_builder.py → Validation prompt template and knowledge excerpt

Author: Shubham Singh
Date: December 2025
"""

from clinical_validation.generation.prompt_builder import PromptBuilder

__all__ = ["PromptBuilder"]
