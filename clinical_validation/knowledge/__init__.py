"""
Knowledge Layer - Medical-code Knowledge Access

Submodules:
    store.py        → KnowledgeStore protocol and JSON-backed durable tier
    sql_store.py    → SQLAlchemy durable tier
    cache.py        → Fast-tier backends (memory, Redis)
    cached_store.py → Two-tier read-through decorator
    retriever.py    → Keyword-driven knowledge gathering for prompts

Author: Shubham Singh
Date: December 2025
"""

from clinical_validation.knowledge.store import (
    FileBasedKnowledgeStore,
    KnowledgeStore,
)
from clinical_validation.knowledge.sql_store import SQLKnowledgeStore
from clinical_validation.knowledge.cache import (
    CacheBackend,
    MemoryCacheBackend,
    RedisCacheBackend,
)
from clinical_validation.knowledge.cached_store import CachedKnowledgeStore, CacheTTLs
from clinical_validation.knowledge.retriever import KnowledgeRetriever

__all__ = [
    "KnowledgeStore",
    "FileBasedKnowledgeStore",
    "SQLKnowledgeStore",
    "CacheBackend",
    "MemoryCacheBackend",
    "RedisCacheBackend",
    "CachedKnowledgeStore",
    "CacheTTLs",
    "KnowledgeRetriever",
]
