"""
Cached Knowledge Store - Two-tier Read-through Decorator

Wraps any durable KnowledgeStore with a fast-tier CacheBackend. The
read-through algorithm is written once and shared by every operation:

    1. Normalize the key (codes upper-cased, text keys lower-cased)
    2. Fast tier hit within TTL → return
    3. Miss → query durable tier
    4. Durable hit → populate fast tier with the domain TTL, return
    5. Durable failure → log, return None / []
    6. Fast-tier failure → log, treat as a miss

The caller never sees a lookup failure: validation proceeds
without knowledge augmentation instead of aborting.

TTL per operation:
    diagnosis / procedure codes → ttl_codes (near-static)
    mappings                    → ttl_mappings (periodic guideline review)
    documents                   → ttl_documents
    search results              → ttl_search

Author: Shubham Singh
Date: December 2025
"""

from dataclasses import dataclass
from typing import Any, Callable, List, Optional

from loguru import logger

from clinical_validation.core.constants import SEARCH_RESULT_LIMIT
from clinical_validation.core.enums import KnowledgeDomain
from clinical_validation.core.models import CodeMapping
from clinical_validation.knowledge.cache import CacheBackend
from clinical_validation.knowledge.store import (
    DOMAIN_MODELS,
    KnowledgeStore,
    normalize_code,
    normalize_text_key,
)


@dataclass(frozen=True)
class CacheTTLs:
    """Fast-tier TTLs in seconds."""

    codes: int = 24 * 60 * 60
    mappings: int = 6 * 60 * 60
    documents: int = 12 * 60 * 60
    search: int = 60 * 60

    def for_domain(self, domain: KnowledgeDomain) -> int:
        if domain == KnowledgeDomain.MAPPING:
            return self.mappings
        if domain == KnowledgeDomain.DOCUMENT:
            return self.documents
        return self.codes


@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0
    durable_failures: int = 0
    fast_tier_failures: int = 0


# =============================================================================
# STAGE 1: CACHED STORE
# =============================================================================


class CachedKnowledgeStore:
    """
    KnowledgeStore decorator adding a fast tier and failure isolation.

    What it does:
        Serves repeated lookups from the fast tier and shields the engine
        from durable-tier outages.

    Args:
        durable: The backing KnowledgeStore (file or SQL)
        cache: Fast-tier backend (memory or Redis)
        ttls: Per-domain TTLs
        cache_enabled: Initial state of the administrative toggle

    Example:
        >>> store = CachedKnowledgeStore(FileBasedKnowledgeStore(path), MemoryCacheBackend())
        >>> store.get_by_code(KnowledgeDomain.DIAGNOSIS, " m54.50 ").code
        'M54.50'
    """

    def __init__(
        self,
        durable: KnowledgeStore,
        cache: CacheBackend,
        ttls: Optional[CacheTTLs] = None,
        cache_enabled: bool = True,
    ):
        self._durable = durable
        self._cache = cache
        self._ttls = ttls or CacheTTLs()
        self._cache_enabled = cache_enabled
        self._stats = CacheStats()

    # =========================================================================
    # STAGE 2: ADMINISTRATION
    # =========================================================================

    def set_cache_enabled(self, enabled: bool) -> None:
        """Bypass (False) or use (True) the fast tier. Entries are kept."""
        self._cache_enabled = bool(enabled)
        logger.info(f"Knowledge cache {'enabled' if self._cache_enabled else 'disabled'}")

    @property
    def cache_enabled(self) -> bool:
        return self._cache_enabled

    @property
    def stats(self) -> CacheStats:
        return self._stats

    # =========================================================================
    # STAGE 3: KNOWLEDGE STORE OPERATIONS
    # =========================================================================

    def get_by_code(self, domain: KnowledgeDomain, code: str) -> Optional[Any]:
        key = normalize_code(code)
        if not key or domain == KnowledgeDomain.MAPPING:
            return None
        payload = self._read_through(
            cache_key=f"{domain.value}:code:{key}",
            ttl=self._ttls.for_domain(domain),
            operation="get_by_code",
            fetch=lambda: _dump_one(self._durable.get_by_code(domain, key)),
        )
        return _load_one(domain, payload)

    def get_by_category(self, domain: KnowledgeDomain, category: str) -> List[Any]:
        key = normalize_text_key(category)
        if not key:
            return []
        payload = self._read_through(
            cache_key=f"{domain.value}:category:{key}",
            ttl=self._ttls.for_domain(domain),
            operation="get_by_category",
            fetch=lambda: _dump_many(self._durable.get_by_category(domain, key)),
        )
        return _load_many(domain, payload)

    def get_mapping(self, diagnosis_code: str, procedure_code: str) -> Optional[CodeMapping]:
        dx, px = normalize_code(diagnosis_code), normalize_code(procedure_code)
        if not dx or not px:
            return None
        payload = self._read_through(
            cache_key=f"mapping:pair:{dx}:{px}",
            ttl=self._ttls.mappings,
            operation="get_mapping",
            fetch=lambda: _dump_one(self._durable.get_mapping(dx, px)),
        )
        return _load_one(KnowledgeDomain.MAPPING, payload)

    def get_all_mappings_for_code(self, diagnosis_code: str) -> List[CodeMapping]:
        dx = normalize_code(diagnosis_code)
        if not dx:
            return []
        payload = self._read_through(
            cache_key=f"mapping:all:{dx}",
            ttl=self._ttls.mappings,
            operation="get_all_mappings_for_code",
            fetch=lambda: _dump_many(self._durable.get_all_mappings_for_code(dx)),
        )
        return _load_many(KnowledgeDomain.MAPPING, payload)

    def search(
        self, domain: KnowledgeDomain, keyword: str, max_results: int = SEARCH_RESULT_LIMIT
    ) -> List[Any]:
        key = normalize_text_key(keyword)
        if not key:
            return []
        # Always cache the full capped result so different max_results share an entry
        payload = self._read_through(
            cache_key=f"{domain.value}:search:{key}",
            ttl=self._ttls.search,
            operation="search",
            fetch=lambda: _dump_many(self._durable.search(domain, key, SEARCH_RESULT_LIMIT)),
        )
        limit = min(max_results, SEARCH_RESULT_LIMIT)
        return _load_many(domain, payload)[:limit]

    # =========================================================================
    # STAGE 4: READ-THROUGH ALGORITHM
    # =========================================================================

    def _read_through(
        self, cache_key: str, ttl: int, operation: str, fetch: Callable[[], Any]
    ) -> Any:
        """
        Shared two-tier lookup.

        Returns the raw payload (dict, list of dicts, or None). Empty
        payloads are returned but never cached.
        """
        # 4.1: Fast tier
        if self._cache_enabled:
            try:
                entry = self._cache.get(cache_key)
            except Exception as e:
                self._stats.fast_tier_failures += 1
                logger.warning(f"Fast tier unavailable, treating as miss | Key: {cache_key} | {e}")
                entry = None
            if entry is not None:
                self._stats.hits += 1
                return entry.payload
        self._stats.misses += 1

        # 4.2: Durable tier
        try:
            payload = fetch()
        except Exception as e:
            self._stats.durable_failures += 1
            logger.warning(
                f"Durable knowledge tier unavailable | Operation: {operation} | "
                f"Key: {cache_key} | Error: {e}"
            )
            return None

        # 4.3: Populate fast tier
        if self._cache_enabled and payload:
            try:
                self._cache.set(cache_key, payload, ttl)
            except Exception as e:
                self._stats.fast_tier_failures += 1
                logger.warning(f"Fast tier write failed | Key: {cache_key} | {e}")

        return payload


# =============================================================================
# STAGE 5: PAYLOAD SERIALIZATION
# =============================================================================
# Payloads are plain dicts so the same entry works in memory and in Redis.


def _dump_one(entry: Any) -> Optional[dict]:
    return entry.to_dict() if entry is not None else None


def _dump_many(entries: List[Any]) -> List[dict]:
    return [entry.to_dict() for entry in entries]


def _load_one(domain: KnowledgeDomain, payload: Optional[dict]) -> Optional[Any]:
    if not payload:
        return None
    return DOMAIN_MODELS[domain].from_dict(payload)


def _load_many(domain: KnowledgeDomain, payload: Optional[List[dict]]) -> List[Any]:
    if not payload:
        return []
    model = DOMAIN_MODELS[domain]
    return [model.from_dict(item) for item in payload]
