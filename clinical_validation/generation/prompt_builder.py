"""
Prompt Builder - Dictation Validation Prompts

This module composes the single prompt sent to the generative model for
one validation attempt. The prompt contains:
    1. The patient-context line
    2. The ordering specialty, its checklist and its word budget
    3. The dictation text (between fixed markers)
    4. The override justification, when the physician is overriding
    5. A size-capped excerpt of retrieved knowledge
    6. The JSON response schema the normalizer expects

Composition is a pure function of its inputs and the policy provider.

Pipeline Position:
    Dictation → Keywords → Knowledge → Policy → [PromptBuilder] → LLM → Normalizer
                                                 ^^^^^^^^^^^^^^^
                                                 You are here

Author: Shubham Singh
Date: December 2025
"""

from typing import List, Optional

from clinical_validation.core.config import ConfigDefaults
from clinical_validation.core.models import KnowledgeContext, PatientContext
from clinical_validation.policy.specialty_policy import SpecialtyPolicyProvider


# =============================================================================
# STAGE 1: PROMPT TEMPLATE
# =============================================================================

DICTATION_START = "<<<DICTATION"
DICTATION_END = "DICTATION>>>"
KNOWLEDGE_TRUNCATION_MARKER = "[... additional knowledge omitted ...]"

VALIDATION_PROMPT_TEMPLATE = """You are a radiology order validation assistant checking whether a physician's dictation justifies the requested imaging study under appropriate-use criteria.

**PATIENT:** {patient_line}

**ORDERING SPECIALTY:** {specialty}

**SPECIALTY CHECKLIST:**
{checklist_section}

**RULES:**
1. Judge only whether the dictation supports the requested imaging.
2. Suggest the ICD-10 diagnosis codes and CPT procedure codes the dictation supports; mark exactly one diagnosis as primary.
3. Score compliance as an integer from 0 (unsupported) to 9 (fully supported). Use "valid" only when the score is 7 or higher.
4. Limit "feedback" to {word_budget} words, addressed to the ordering physician.
{override_rule}
**DICTATION:**
{dictation_start}
{dictation}
{dictation_end}
{override_section}
**REFERENCE KNOWLEDGE:**
{knowledge_section}

**RESPOND IN JSON FORMAT ONLY:**
{{
    "validationStatus": "valid" | "needs_clarification" | "invalid",
    "complianceScore": 0-9,
    "feedback": "at most {word_budget} words",
    "suggestedICD10Codes": [{{"code": "X00.0", "description": "...", "isPrimary": true}}],
    "suggestedCPTCodes": [{{"code": "00000", "description": "..."}}],
    "internalReasoning": "brief reasoning, not shown to the physician"
}}
"""

OVERRIDE_RULE = (
    "5. The physician is overriding after repeated attempts. Evaluate normally and "
    "state in feedback what documentation is still missing.\n"
)


# =============================================================================
# STAGE 2: PROMPT BUILDER CLASS
# =============================================================================


class PromptBuilder:
    """
    Constructs validation prompts.

    What it does:
        Takes dictation, patient context, specialty and retrieved knowledge
        and produces a complete LLM prompt.

    Why it exists:
        1. Prompts can be tested without LLM calls
        2. One place for the response schema the normalizer relies on
        3. Keeps the knowledge excerpt within a fixed size

    Example:
        >>> builder = PromptBuilder(SpecialtyPolicyProvider())
        >>> prompt = builder.build_validation_prompt(
        ...     "Follow-up chest X-ray, no new symptoms", "Family Medicine"
        ... )
        >>> "29 words" in prompt
        True
    """

    def __init__(
        self,
        policy_provider: SpecialtyPolicyProvider,
        max_context_chars: int = ConfigDefaults.DEFAULT_MAX_CONTEXT_CHARS,
    ):
        self._policy = policy_provider
        self._max_context_chars = max_context_chars

    def build_validation_prompt(
        self,
        dictation_text: str,
        specialty: str,
        patient_context: Optional[PatientContext] = None,
        knowledge: Optional[KnowledgeContext] = None,
        override_justification: Optional[str] = None,
    ) -> str:
        """
        Build the complete validation prompt.

        STAGE 2.1: Resolve specialty policy
        STAGE 2.2: Format checklist and knowledge sections
        STAGE 2.3: Assemble final prompt
        """
        # =====================================================================
        # STAGE 2.1: RESOLVE POLICY
        # =====================================================================
        policy = self._policy.resolve_policy(specialty)
        patient = patient_context or PatientContext()

        # =====================================================================
        # STAGE 2.2: FORMAT SECTIONS
        # =====================================================================
        checklist_section = "\n".join(f"- {check}" for check in policy.checklist)
        knowledge_section = self.format_knowledge(knowledge or KnowledgeContext())

        override_section = ""
        if override_justification is not None:
            override_section = (
                f"\n**PHYSICIAN OVERRIDE JUSTIFICATION:**\n{override_justification.strip()}\n"
            )

        # =====================================================================
        # STAGE 2.3: ASSEMBLE FINAL PROMPT
        # =====================================================================
        return VALIDATION_PROMPT_TEMPLATE.format(
            patient_line=patient.describe(),
            specialty=policy.specialty or "Unspecified",
            checklist_section=checklist_section,
            word_budget=policy.word_budget,
            override_rule=OVERRIDE_RULE if override_justification is not None else "",
            dictation_start=DICTATION_START,
            dictation=dictation_text.strip(),
            dictation_end=DICTATION_END,
            override_section=override_section,
            knowledge_section=knowledge_section,
        )

    def format_knowledge(self, knowledge: KnowledgeContext) -> str:
        """
        Serialize retrieved knowledge into at most max_context_chars.

        Lines are dropped whole; a truncation marker ends a capped excerpt.
        """
        if knowledge.is_empty:
            return "No reference knowledge available for this dictation."

        lines = _knowledge_lines(knowledge)
        budget = self._max_context_chars - len(KNOWLEDGE_TRUNCATION_MARKER) - 1
        kept: List[str] = []
        used = 0
        for line in lines:
            cost = len(line) + 1
            if used + cost > budget:
                kept.append(KNOWLEDGE_TRUNCATION_MARKER)
                break
            kept.append(line)
            used += cost
        return "\n".join(kept)


def _knowledge_lines(knowledge: KnowledgeContext) -> List[str]:
    lines: List[str] = []
    if knowledge.diagnosis_codes:
        lines.append("Candidate diagnoses (ICD-10):")
        for dx in knowledge.diagnosis_codes:
            line = f"- {dx.code}: {dx.description}"
            if dx.primary_imaging:
                line += f" | first-line imaging: {dx.primary_imaging}"
            lines.append(line)
            if dx.clinical_notes:
                lines.append(f"  note: {dx.clinical_notes}")
    if knowledge.procedure_codes:
        lines.append("Candidate procedures (CPT):")
        for px in knowledge.procedure_codes:
            lines.append(f"- {px.code}: {px.description}")
    if knowledge.mappings:
        lines.append("Appropriateness ratings (1-9, higher is more appropriate):")
        for m in knowledge.mappings:
            line = f"- {m.diagnosis_code} -> {m.procedure_code}: {m.appropriateness_level}/9"
            if m.evidence_level:
                line += f" ({m.evidence_level})"
            if m.justification:
                line += f" | {m.justification}"
            lines.append(line)
    if knowledge.documents:
        lines.append("Guidance:")
        for doc in knowledge.documents:
            lines.append(f"- {doc.code} {doc.title}: {' '.join(doc.content.split())}")
    return lines
