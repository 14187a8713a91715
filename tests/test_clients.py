"""Tests for generation clients: retry policy, provider chain, offline mock, factory."""

import json
import sys
from types import SimpleNamespace

import pytest

from clinical_validation.clients import (
    AnthropicClient,
    OpenAIClient,
    BaseLLMClient,
    FallbackLLMClient,
    LLMClientProtocol,
    MockLLMClient,
    create_llm_client,
    provider_chain,
)
from clinical_validation.core.config import EngineConfiguration
from clinical_validation.core.enums import LLMProvider
from clinical_validation.core.exceptions import (
    ConfigurationError,
    GenerationUnavailable,
    LLMRateLimitError,
)
from clinical_validation.generation import PromptBuilder
from clinical_validation.knowledge import KnowledgeRetriever
from clinical_validation.extraction import extract_keywords

from conftest import ScriptedLLMClient


class StubProviderClient(BaseLLMClient):
    """BaseLLMClient whose API call replays scripted outcomes."""

    def __init__(self, outcomes, **kwargs):
        self.sleeps = []
        super().__init__(api_key="test", model_name="stub-model", sleep=self.sleeps.append, **kwargs)
        self._outcomes = list(outcomes)

    def _call_api(self, prompt: str) -> str:
        outcome = self._outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    @property
    def provider_name(self) -> str:
        return "stub"


class TestBaseLLMClient:
    def test_success(self):
        client = StubProviderClient(["{}"])
        assert client.generate("prompt") == "{}"
        assert client.total_calls == 1
        assert client.success_rate == 100.0

    def test_rate_limit_is_retried_with_backoff(self):
        client = StubProviderClient(
            [LLMRateLimitError("stub", retry_after=5), LLMRateLimitError("stub"), "ok"],
            max_retries=3,
        )
        assert client.generate("prompt") == "ok"
        assert client.sleeps == [5, 4]

    def test_rate_limit_exhaustion_raises_unavailable(self):
        client = StubProviderClient([LLMRateLimitError("stub")] * 2, max_retries=2)
        with pytest.raises(GenerationUnavailable) as exc_info:
            client.generate("prompt")
        assert exc_info.value.provider == "stub"
        assert client.failed_calls == 1

    def test_unavailable_is_not_retried(self):
        client = StubProviderClient(
            [GenerationUnavailable("timeout", provider="stub"), "never reached"], max_retries=3
        )
        with pytest.raises(GenerationUnavailable):
            client.generate("prompt")
        assert client.sleeps == []

    def test_unexpected_errors_become_unavailable(self):
        client = StubProviderClient([RuntimeError("socket closed")])
        with pytest.raises(GenerationUnavailable) as exc_info:
            client.generate("prompt")
        assert isinstance(exc_info.value.original_error, RuntimeError)
        assert client.success_rate == 0.0


class TestAnthropicClient:
    def test_joins_text_blocks(self):
        client = AnthropicClient(api_key="test-key")
        calls = []

        def create(**kwargs):
            calls.append(kwargs)
            return SimpleNamespace(
                content=[
                    SimpleNamespace(type="text", text='{"status": '),
                    SimpleNamespace(type="tool_use", text="ignored"),
                    SimpleNamespace(type="text", text='"valid"}'),
                ]
            )

        client._client = SimpleNamespace(messages=SimpleNamespace(create=create))

        assert client.generate("prompt") == '{"status": "valid"}'
        assert calls[0]["temperature"] == 0.0
        assert calls[0]["messages"] == [{"role": "user", "content": "prompt"}]
        assert client.provider_name == "anthropic"


class TestFallbackLLMClient:
    def test_first_available_provider_wins(self):
        primary = ScriptedLLMClient(
            [GenerationUnavailable("down", provider="anthropic")], provider="anthropic"
        )
        secondary = ScriptedLLMClient(["from openai"], provider="openai")
        chain = FallbackLLMClient([primary, secondary])

        assert chain.generate("prompt") == "from openai"
        assert chain.last_provider == "openai"
        assert chain.provider_name == "anthropic,openai"

    def test_generate_with_provider_reports_answering_client(self):
        chain = FallbackLLMClient(
            [
                ScriptedLLMClient([GenerationUnavailable("down", provider="anthropic")],
                                  provider="anthropic"),
                ScriptedLLMClient(["from openai"], provider="openai"),
            ]
        )
        assert chain.generate_with_provider("prompt") == ("from openai", "openai")

    def test_primary_used_when_healthy(self):
        chain = FallbackLLMClient(
            [ScriptedLLMClient(["a"], provider="anthropic"), ScriptedLLMClient(["b"], provider="openai")]
        )
        assert chain.generate("prompt") == "a"
        assert chain.last_provider == "anthropic"

    def test_all_unavailable_raises(self):
        chain = FallbackLLMClient(
            [ScriptedLLMClient(provider="anthropic"), ScriptedLLMClient(provider="openai")]
        )
        with pytest.raises(GenerationUnavailable) as exc_info:
            chain.generate("prompt")
        assert "All providers unavailable" in exc_info.value.message
        assert chain.last_provider is None

    def test_other_errors_are_not_swallowed(self):
        chain = FallbackLLMClient(
            [ScriptedLLMClient([KeyError("bug")]), ScriptedLLMClient(["b"], provider="openai")]
        )
        with pytest.raises(KeyError):
            chain.generate("prompt")

    def test_requires_clients(self):
        with pytest.raises(ValueError):
            FallbackLLMClient([])


class TestMockLLMClient:
    def _prompt(self, text, specialty, policy_provider, file_store):
        knowledge = KnowledgeRetriever(file_store).gather(extract_keywords(text))
        return PromptBuilder(policy_provider).build_validation_prompt(
            text, specialty, knowledge=knowledge
        )

    def test_satisfies_protocol(self):
        assert isinstance(MockLLMClient(), LLMClientProtocol)

    def test_well_documented_dictation_is_valid(self, policy_provider, file_store):
        prompt = self._prompt(
            "Right shoulder pain and weakness for 8 weeks, suspected rotator cuff tear. MRI shoulder.",
            "Orthopedics",
            policy_provider,
            file_store,
        )
        response = json.loads(MockLLMClient().generate(prompt))

        assert response["validationStatus"] == "valid"
        assert response["complianceScore"] >= 7
        assert "73221" in [c["code"] for c in response["suggestedCPTCodes"]]
        assert [c["isPrimary"] for c in response["suggestedICD10Codes"]][0] is True

    def test_vague_dictation_needs_clarification(self, policy_provider, file_store):
        prompt = self._prompt("Knee pain.", "Family Medicine", policy_provider, file_store)
        response = json.loads(MockLLMClient().generate(prompt))
        assert response["validationStatus"] == "needs_clarification"
        assert len(response["feedback"].split()) <= 29

    def test_empty_dictation_is_invalid(self, policy_provider):
        prompt = PromptBuilder(policy_provider).build_validation_prompt("", "Orthopedics")
        response = json.loads(MockLLMClient().generate(prompt))
        assert response["validationStatus"] == "invalid"
        assert response["complianceScore"] == 0

    def test_is_deterministic(self, policy_provider, file_store):
        prompt = self._prompt("Chest pain for 2 days. Chest X-ray.", "Emergency Medicine",
                              policy_provider, file_store)
        client = MockLLMClient()
        assert client.generate(prompt) == client.generate(prompt)
        assert client.total_calls == 2


class TestFactory:
    def test_provider_chain_deduplicates(self):
        config = EngineConfiguration(llm_provider="claude", fallback_providers=["openai", "anthropic"])
        assert provider_chain(config) == [LLMProvider.ANTHROPIC, LLMProvider.OPENAI]

    def test_mock_provider(self, config):
        assert isinstance(create_llm_client(config), MockLLMClient)

    def test_no_credentials_falls_back_to_mock(self):
        client = create_llm_client(EngineConfiguration())
        assert client.provider_name == "mock"

    def test_single_credential_returns_that_client(self):
        client = create_llm_client(EngineConfiguration(anthropic_api_key="test-key"))
        assert isinstance(client, AnthropicClient)

    def test_several_credentials_build_a_chain(self):
        config = EngineConfiguration(anthropic_api_key="test-key", openai_api_key="test-key")
        client = create_llm_client(config)
        assert isinstance(client, FallbackLLMClient)
        assert client.provider_name == "anthropic,openai"

    def test_missing_sdk_with_credential_is_a_configuration_error(self, monkeypatch):
        monkeypatch.setitem(sys.modules, "anthropic", None)
        config = EngineConfiguration(anthropic_api_key="test-key", fallback_providers=[])

        with pytest.raises(ConfigurationError) as exc_info:
            create_llm_client(config)
        assert "anthropic" in exc_info.value.context["providers"]

    def test_missing_sdk_skips_to_next_credentialed_provider(self, monkeypatch):
        monkeypatch.setitem(sys.modules, "anthropic", None)
        config = EngineConfiguration(anthropic_api_key="test-key", openai_api_key="test-key")

        client = create_llm_client(config)
        assert isinstance(client, OpenAIClient)
