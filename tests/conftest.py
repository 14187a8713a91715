"""Shared fixtures for the clinical validation test-suite."""

import json
from typing import List, Optional

import pytest

from clinical_validation.core.config import ConfigDefaults, EngineConfiguration
from clinical_validation.core.exceptions import GenerationUnavailable
from clinical_validation.knowledge import (
    CachedKnowledgeStore,
    FileBasedKnowledgeStore,
    MemoryCacheBackend,
)
from clinical_validation.pipeline import ValidationEngine
from clinical_validation.policy import SpecialtyPolicyProvider


class FakeClock:
    """Manually advanced time source (epoch seconds)."""

    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class ScriptedLLMClient:
    """
    Returns queued responses in order; the last one repeats.

    A queued exception instance is raised instead of returned.
    """

    def __init__(self, responses: Optional[List] = None, provider: str = "scripted"):
        self._responses = list(responses or [])
        self._provider = provider
        self.prompts: List[str] = []

    @property
    def model_name(self) -> str:
        return "scripted-model"

    @property
    def provider_name(self) -> str:
        return self._provider

    def queue(self, *responses) -> None:
        self._responses.extend(responses)

    def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if not self._responses:
            raise GenerationUnavailable("No scripted response", provider=self._provider)
        response = self._responses[0] if len(self._responses) == 1 else self._responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class CountingStore:
    """Wraps a KnowledgeStore and counts calls per operation."""

    def __init__(self, inner):
        self._inner = inner
        self.calls = {}

    def _count(self, name):
        self.calls[name] = self.calls.get(name, 0) + 1

    def get_by_code(self, domain, code):
        self._count("get_by_code")
        return self._inner.get_by_code(domain, code)

    def get_by_category(self, domain, category):
        self._count("get_by_category")
        return self._inner.get_by_category(domain, category)

    def get_mapping(self, diagnosis_code, procedure_code):
        self._count("get_mapping")
        return self._inner.get_mapping(diagnosis_code, procedure_code)

    def get_all_mappings_for_code(self, diagnosis_code):
        self._count("get_all_mappings_for_code")
        return self._inner.get_all_mappings_for_code(diagnosis_code)

    def search(self, domain, keyword, max_results=100):
        self._count("search")
        return self._inner.search(domain, keyword, max_results)


class UnavailableStore:
    """Durable tier whose every call fails, as when the database is down."""

    def _fail(self, *args, **kwargs):
        raise ConnectionError("knowledge database unreachable")

    get_by_code = _fail
    get_by_category = _fail
    get_mapping = _fail
    get_all_mappings_for_code = _fail
    search = _fail


def model_json(
    status: str = "valid",
    score=8,
    feedback: str = "Dictation supports the requested study.",
    **extra,
) -> str:
    payload = {"validationStatus": status, "complianceScore": score, "feedback": feedback}
    payload.update(extra)
    return json.dumps(payload)


@pytest.fixture
def dataset_path() -> str:
    return ConfigDefaults.DEFAULT_DATASET_PATH


@pytest.fixture
def file_store(dataset_path) -> FileBasedKnowledgeStore:
    return FileBasedKnowledgeStore(dataset_path)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def memory_cache(clock) -> MemoryCacheBackend:
    return MemoryCacheBackend(max_entries=100, clock=clock)


@pytest.fixture
def counting_store(file_store) -> CountingStore:
    return CountingStore(file_store)


@pytest.fixture
def cached_store(counting_store, memory_cache) -> CachedKnowledgeStore:
    return CachedKnowledgeStore(counting_store, memory_cache)


@pytest.fixture
def policy_provider() -> SpecialtyPolicyProvider:
    return SpecialtyPolicyProvider()


@pytest.fixture
def config(dataset_path) -> EngineConfiguration:
    return EngineConfiguration(llm_provider="mock", knowledge_dataset_path=dataset_path)


@pytest.fixture
def scripted_client() -> ScriptedLLMClient:
    return ScriptedLLMClient()


@pytest.fixture
def engine(config, cached_store, scripted_client) -> ValidationEngine:
    return ValidationEngine(config, store=cached_store, llm_client=scripted_client)
