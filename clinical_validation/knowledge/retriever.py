"""
Knowledge Retriever - Keywords to Prompt Knowledge

Gathers the knowledge entries relevant to one dictation:

    STAGE 1: Look up explicit code tokens directly (CPT vs ICD-10)
    STAGE 2: Rank diagnosis candidates from symptom + anatomy searches
    STAGE 3: Rank procedure candidates from modality + anatomy searches
    STAGE 4: Collect mappings for the chosen diagnoses (best first)
    STAGE 5: Attach explanatory documents for the top diagnoses

Candidates are ranked by how many distinct terms matched them, ties
broken by first appearance, so results are deterministic.

Author: Shubham Singh
Date: December 2025
"""

from typing import Any, Dict, List, Sequence

from loguru import logger

from clinical_validation.core.enums import KnowledgeDomain
from clinical_validation.core.models import KnowledgeContext
from clinical_validation.extraction.keyword_extractor import (
    categorize_keywords,
    is_procedure_code,
)
from clinical_validation.knowledge.store import KnowledgeStore


class KnowledgeRetriever:
    """
    Builds a KnowledgeContext from extracted keywords.

    Args:
        store: Any KnowledgeStore (normally the CachedKnowledgeStore)
        max_diagnoses: Diagnosis codes kept after ranking
        max_procedures: Procedure codes kept after ranking
        max_mappings_per_diagnosis: Best mappings kept per diagnosis
        max_documents: Documents attached (for the top diagnoses)
        per_term_results: Search results considered per term
    """

    def __init__(
        self,
        store: KnowledgeStore,
        max_diagnoses: int = 5,
        max_procedures: int = 5,
        max_mappings_per_diagnosis: int = 3,
        max_documents: int = 2,
        per_term_results: int = 20,
    ):
        self._store = store
        self._max_diagnoses = max_diagnoses
        self._max_procedures = max_procedures
        self._max_mappings = max_mappings_per_diagnosis
        self._max_documents = max_documents
        self._per_term_results = per_term_results

    def gather(self, keywords: Sequence[str], code_tokens: Sequence[str] = ()) -> KnowledgeContext:
        """
        Retrieve knowledge for the given keywords and explicit codes.

        Never raises: a failure anywhere yields an empty context.
        """
        try:
            return self._gather(keywords, code_tokens)
        except Exception as e:
            logger.warning(f"Knowledge retrieval failed, continuing without context | Error: {e}")
            return KnowledgeContext()

    def _gather(self, keywords: Sequence[str], code_tokens: Sequence[str]) -> KnowledgeContext:
        groups = categorize_keywords(keywords)
        context = KnowledgeContext()

        # -----------------------------------------------------------------
        # STAGE 1: Explicit codes
        # -----------------------------------------------------------------
        explicit_dx: List[Any] = []
        explicit_px: List[Any] = []
        for code in _dedupe(list(code_tokens) + groups.codes):
            if is_procedure_code(code):
                entry = self._store.get_by_code(KnowledgeDomain.PROCEDURE, code)
                if entry is not None:
                    explicit_px.append(entry)
            else:
                entry = self._store.get_by_code(KnowledgeDomain.DIAGNOSIS, code)
                if entry is not None:
                    explicit_dx.append(entry)

        # -----------------------------------------------------------------
        # STAGE 2-3: Ranked searches
        # -----------------------------------------------------------------
        ranked_dx = self._ranked_search(
            KnowledgeDomain.DIAGNOSIS, groups.symptoms + groups.anatomy_terms
        )
        ranked_px = self._ranked_search(
            KnowledgeDomain.PROCEDURE, groups.modalities + groups.anatomy_terms
        )
        context.diagnosis_codes = _merge_by_code(explicit_dx, ranked_dx)[: self._max_diagnoses]
        context.procedure_codes = _merge_by_code(explicit_px, ranked_px)[: self._max_procedures]

        # -----------------------------------------------------------------
        # STAGE 4: Mappings
        # -----------------------------------------------------------------
        for dx in context.diagnosis_codes:
            context.mappings.extend(self._store.get_all_mappings_for_code(dx.code)[: self._max_mappings])

        # -----------------------------------------------------------------
        # STAGE 5: Documents
        # -----------------------------------------------------------------
        for dx in context.diagnosis_codes[: self._max_documents]:
            document = self._store.get_by_code(KnowledgeDomain.DOCUMENT, dx.code)
            if document is not None:
                context.documents.append(document)

        logger.debug(
            f"Knowledge gathered | Diagnoses: {len(context.diagnosis_codes)} | "
            f"Procedures: {len(context.procedure_codes)} | Mappings: {len(context.mappings)} | "
            f"Documents: {len(context.documents)}"
        )
        return context

    def _ranked_search(self, domain: KnowledgeDomain, terms: Sequence[str]) -> List[Any]:
        scores: Dict[str, int] = {}
        entries: Dict[str, Any] = {}
        order: List[str] = []
        for term in _dedupe(terms):
            for entry in self._store.search(domain, term, self._per_term_results):
                if entry.code not in entries:
                    entries[entry.code] = entry
                    order.append(entry.code)
                    scores[entry.code] = 0
                scores[entry.code] += 1
        ranked = sorted(order, key=lambda code: (-scores[code], order.index(code)))
        return [entries[code] for code in ranked]


def _dedupe(items: Sequence[str]) -> List[str]:
    seen = []
    for item in items:
        if item not in seen:
            seen.append(item)
    return seen


def _merge_by_code(first: List[Any], second: List[Any]) -> List[Any]:
    merged = list(first)
    known = {entry.code for entry in first}
    for entry in second:
        if entry.code not in known:
            known.add(entry.code)
            merged.append(entry)
    return merged
