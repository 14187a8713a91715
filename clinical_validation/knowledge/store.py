"""
Knowledge Store - Data Access Abstraction

This module defines the single interface through which the engine reads
the medical-code knowledge base, plus the file-backed durable tier.

Architecture:
    KnowledgeStore (Protocol)
    ├── FileBasedKnowledgeStore  → Loads a JSON dataset into memory
    ├── SQLKnowledgeStore        → SQLAlchemy over the knowledge tables (sql_store.py)
    └── CachedKnowledgeStore     → Fast-tier decorator over either (cached_store.py)

Pipeline Position:
    Dictation → Keywords → [Knowledge] → Policy → Prompt → LLM → Normalizer
                           ^^^^^^^^^^^
                           You are here

Every operation is scoped to a KnowledgeDomain. Code lookups are
case-insensitive (codes are stored upper-case), category and search
lookups are case-insensitive substring/equality matches.

Dataset Format (JSON):
    {
        "diagnosis_codes": [{"code": "M54.16", "description": "...", ...}],
        "procedure_codes": [{"code": "72148", "description": "...", ...}],
        "mappings": [{"diagnosis_code": "M54.16", "procedure_code": "72148",
                      "appropriateness_level": 7, ...}],
        "documents": [{"code": "M54.16", "title": "...", "content": "..."}]
    }

Author: Shubham Singh
Date: December 2025
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Tuple, runtime_checkable

from loguru import logger

from clinical_validation.core.constants import SEARCH_RESULT_LIMIT
from clinical_validation.core.enums import KnowledgeDomain
from clinical_validation.core.exceptions import DatasetLoadError
from clinical_validation.core.models import (
    CodeMapping,
    DiagnosisCode,
    KnowledgeDocument,
    ProcedureCode,
)


# Model class per domain; used to rebuild entries from cached payloads.
DOMAIN_MODELS = {
    KnowledgeDomain.DIAGNOSIS: DiagnosisCode,
    KnowledgeDomain.PROCEDURE: ProcedureCode,
    KnowledgeDomain.MAPPING: CodeMapping,
    KnowledgeDomain.DOCUMENT: KnowledgeDocument,
}


def normalize_code(code: str) -> str:
    return code.strip().upper()


def normalize_text_key(value: str) -> str:
    return value.strip().lower()


def sort_mappings(mappings: List[CodeMapping]) -> List[CodeMapping]:
    """Order by appropriateness descending, then procedure code for stability."""
    return sorted(mappings, key=lambda m: (-m.appropriateness_level, m.procedure_code))


# =============================================================================
# STAGE 1: KNOWLEDGE STORE PROTOCOL
# =============================================================================


@runtime_checkable
class KnowledgeStore(Protocol):
    """
    Protocol defining read access to the knowledge base.

    What it does:
        Specifies the lookup operations the retriever and the caching
        decorator rely on, so durable tiers are interchangeable.

    Required Methods:
        get_by_code(domain, code)            → Entry or None
        get_by_category(domain, category)    → List of entries
        get_mapping(diagnosis, procedure)    → CodeMapping or None
        get_all_mappings_for_code(diagnosis) → Mappings, best first
        search(domain, keyword)              → Substring matches (≤ 100)
    """

    def get_by_code(self, domain: KnowledgeDomain, code: str) -> Optional[Any]:
        ...

    def get_by_category(self, domain: KnowledgeDomain, category: str) -> List[Any]:
        ...

    def get_mapping(self, diagnosis_code: str, procedure_code: str) -> Optional[CodeMapping]:
        ...

    def get_all_mappings_for_code(self, diagnosis_code: str) -> List[CodeMapping]:
        ...

    def search(
        self, domain: KnowledgeDomain, keyword: str, max_results: int = SEARCH_RESULT_LIMIT
    ) -> List[Any]:
        ...


# =============================================================================
# STAGE 2: FILE-BASED STORE IMPLEMENTATION
# =============================================================================


class FileBasedKnowledgeStore:
    """
    Knowledge store backed by a local JSON file.

    What it does:
        Loads the knowledge dataset into memory and serves lookups from
        dictionary indices.

    When to use:
        - Development, tests and offline demos
        - Deployments without a knowledge database

    How it works:
        STAGE 2.1: Validate file path
        STAGE 2.2: Load JSON (shared across instances per path)
        STAGE 2.3: Index entries by code, category and pair

    Example:
        >>> store = FileBasedKnowledgeStore("knowledge_base.json")
        >>> store.get_by_code(KnowledgeDomain.DIAGNOSIS, "m54.50").description
        'Low back pain, unspecified'
    """

    # Class-level cache to avoid reparsing the same dataset
    _dataset_cache: Dict[str, Dict] = {}

    def __init__(self, dataset_path: str):
        """
        Initialize store from JSON file.

        Raises:
            DatasetLoadError: If the file cannot be loaded
        """
        # =====================================================================
        # STAGE 2.1: VALIDATE FILE PATH
        # =====================================================================
        self._dataset_path = Path(dataset_path)

        if not self._dataset_path.exists():
            raise DatasetLoadError(str(self._dataset_path), "File not found")

        # =====================================================================
        # STAGE 2.2: INITIALIZE DATA STRUCTURES
        # =====================================================================
        self._by_code: Dict[KnowledgeDomain, Dict[str, Any]] = {
            KnowledgeDomain.DIAGNOSIS: {},
            KnowledgeDomain.PROCEDURE: {},
            KnowledgeDomain.DOCUMENT: {},
        }
        self._mappings_by_pair: Dict[Tuple[str, str], CodeMapping] = {}
        self._mappings_by_diagnosis: Dict[str, List[CodeMapping]] = {}

        # =====================================================================
        # STAGE 2.3: LOAD AND INDEX DATA
        # =====================================================================
        self._load_dataset()

        logger.info(
            f"FileBasedKnowledgeStore initialized | "
            f"Diagnoses: {len(self._by_code[KnowledgeDomain.DIAGNOSIS]):,} | "
            f"Procedures: {len(self._by_code[KnowledgeDomain.PROCEDURE]):,} | "
            f"Mappings: {len(self._mappings_by_pair):,} | "
            f"Documents: {len(self._by_code[KnowledgeDomain.DOCUMENT]):,}"
        )

    # =========================================================================
    # STAGE 3: DATASET LOADING
    # =========================================================================

    def _load_dataset(self) -> None:
        cache_key = str(self._dataset_path.absolute())

        if cache_key in self._dataset_cache:
            logger.debug(f"Using cached dataset: {cache_key}")
            raw_data = self._dataset_cache[cache_key]
        else:
            logger.info(f"Loading knowledge dataset from: {self._dataset_path}")
            try:
                with open(self._dataset_path, "r", encoding="utf-8") as f:
                    raw_data = json.load(f)
            except json.JSONDecodeError as e:
                raise DatasetLoadError(str(self._dataset_path), f"Invalid JSON: {e}")
            except PermissionError:
                raise DatasetLoadError(str(self._dataset_path), "Permission denied")
            except OSError as e:
                raise DatasetLoadError(str(self._dataset_path), str(e))

            if not isinstance(raw_data, dict):
                raise DatasetLoadError(str(self._dataset_path), "Top-level JSON must be an object")
            self._dataset_cache[cache_key] = raw_data

        try:
            for record in raw_data.get("diagnosis_codes", []):
                entry = DiagnosisCode.from_dict(record)
                self._by_code[KnowledgeDomain.DIAGNOSIS][normalize_code(entry.code)] = entry

            for record in raw_data.get("procedure_codes", []):
                entry = ProcedureCode.from_dict(record)
                self._by_code[KnowledgeDomain.PROCEDURE][normalize_code(entry.code)] = entry

            for record in raw_data.get("documents", []):
                entry = KnowledgeDocument.from_dict(record)
                self._by_code[KnowledgeDomain.DOCUMENT][normalize_code(entry.code)] = entry

            for record in raw_data.get("mappings", []):
                mapping = CodeMapping.from_dict(record)
                pair = (normalize_code(mapping.diagnosis_code), normalize_code(mapping.procedure_code))
                self._mappings_by_pair[pair] = mapping
        except (AttributeError, TypeError, ValueError) as e:
            raise DatasetLoadError(str(self._dataset_path), f"Malformed record: {e}")

        for (diagnosis, _), mapping in self._mappings_by_pair.items():
            self._mappings_by_diagnosis.setdefault(diagnosis, []).append(mapping)

    # =========================================================================
    # STAGE 4: PUBLIC API - LOOKUPS
    # =========================================================================

    def get_by_code(self, domain: KnowledgeDomain, code: str) -> Optional[Any]:
        """Return the entry for a code, or None (mappings have no single code)."""
        index = self._by_code.get(domain)
        if index is None:
            return None
        return index.get(normalize_code(code))

    def get_by_category(self, domain: KnowledgeDomain, category: str) -> List[Any]:
        """
        Return entries whose category equals the given one (case-insensitive).

        Procedure codes also match on modality; mappings match on evidence level.
        """
        wanted = normalize_text_key(category)
        if domain == KnowledgeDomain.MAPPING:
            return [
                m
                for m in self._mappings_by_pair.values()
                if (m.evidence_level or "").lower() == wanted
            ]

        results = []
        for entry in self._by_code[domain].values():
            categories = [entry.category]
            if domain == KnowledgeDomain.PROCEDURE:
                categories.append(entry.modality)
            if any((c or "").lower() == wanted for c in categories):
                results.append(entry)
        return results

    def get_mapping(self, diagnosis_code: str, procedure_code: str) -> Optional[CodeMapping]:
        return self._mappings_by_pair.get(
            (normalize_code(diagnosis_code), normalize_code(procedure_code))
        )

    def get_all_mappings_for_code(self, diagnosis_code: str) -> List[CodeMapping]:
        return sort_mappings(self._mappings_by_diagnosis.get(normalize_code(diagnosis_code), []))

    # =========================================================================
    # STAGE 5: PUBLIC API - SEARCH
    # =========================================================================

    def search(
        self, domain: KnowledgeDomain, keyword: str, max_results: int = SEARCH_RESULT_LIMIT
    ) -> List[Any]:
        """
        Case-insensitive substring search.

        Fields searched:
            diagnosis → description, keywords
            procedure → description, body part, modality
            document  → title, content
            mapping   → justification
        """
        query = normalize_text_key(keyword)
        if not query:
            return []
        limit = min(max_results, SEARCH_RESULT_LIMIT)

        if domain == KnowledgeDomain.MAPPING:
            pool = self._mappings_by_pair.values()
        else:
            pool = self._by_code[domain].values()

        results = []
        for entry in pool:
            if query in _searchable_text(domain, entry):
                results.append(entry)
                if len(results) >= limit:
                    break
        return results

    # =========================================================================
    # STAGE 6: PROPERTIES
    # =========================================================================

    @property
    def dataset_path(self) -> Path:
        return self._dataset_path

    def count(self, domain: KnowledgeDomain) -> int:
        if domain == KnowledgeDomain.MAPPING:
            return len(self._mappings_by_pair)
        return len(self._by_code[domain])


def _searchable_text(domain: KnowledgeDomain, entry: Any) -> str:
    if domain == KnowledgeDomain.DIAGNOSIS:
        parts = [entry.description, " ".join(entry.keywords)]
    elif domain == KnowledgeDomain.PROCEDURE:
        parts = [entry.description, entry.body_part or "", entry.modality or ""]
    elif domain == KnowledgeDomain.DOCUMENT:
        parts = [entry.title, entry.content]
    else:
        parts = [entry.justification or ""]
    return " ".join(parts).lower()
