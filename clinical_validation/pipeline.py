"""
Clinical Validation Engine - Main Orchestrator

This is the PUBLIC API entry point for dictation validation. It
coordinates all layers (extraction, knowledge, policy, generation,
normalization, governance) behind one call.

Architecture Diagram:
    ┌─────────────────────────────────────────────────────────────────────┐
    │                          ValidationEngine                           │
    │                         (This Orchestrator)                         │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                     │
    │  ┌──────────┐   ┌───────────┐   ┌────────┐   ┌─────┐   ┌─────────┐  │
    │  │ Keywords │ → │ Knowledge │ → │ Prompt │ → │ LLM │ → │Normalize│  │
    │  └──────────┘   └───────────┘   └────────┘   └─────┘   └─────────┘  │
    │                                                             │       │
    │                                   ┌──────────────────────┐  │       │
    │                                   │ AttemptTracker commit│ ◄┘       │
    │                                   └──────────────────────┘          │
    └─────────────────────────────────────────────────────────────────────┘

Failure Handling:
    - Knowledge store down      → validation continues without context
    - Model unavailable/timeout → needs_clarification result
    - Unreadable model output   → invalid result with generic feedback
    - Bad caller arguments      → InvalidRequestError
    - Override not permitted    → InvalidOverrideRequest (history untouched)

Usage:
    from clinical_validation import ValidationEngine

    engine = ValidationEngine.from_environment()
    history = AttemptHistory("ORD-1001")
    result = engine.validate(
        order_id="ORD-1001",
        dictation_text="Right shoulder pain for 6 weeks, request MRI",
        specialty="Orthopedics",
        prior_attempts=history,
    )

Author: Shubham Singh
Date: December 2025
"""

import dataclasses
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from loguru import logger

from clinical_validation.clients import (
    FallbackLLMClient,
    LLMClientProtocol,
    MockLLMClient,
    create_llm_client,
)
from clinical_validation.core.config import EngineConfiguration
from clinical_validation.core.constants import (
    GENERATION_UNAVAILABLE_FEEDBACK,
    MIN_COMPLIANCE_SCORE,
)
from clinical_validation.core.enums import ResultSource, ValidationStatus
from clinical_validation.core.exceptions import GenerationUnavailable, InvalidRequestError
from clinical_validation.core.models import (
    AttemptHistory,
    DictationRequest,
    PatientContext,
    ValidationResult,
)
from clinical_validation.extraction import extract_code_tokens, extract_keywords
from clinical_validation.generation import PromptBuilder
from clinical_validation.governance import AttemptTracker
from clinical_validation.knowledge import (
    CachedKnowledgeStore,
    CacheTTLs,
    FileBasedKnowledgeStore,
    KnowledgeRetriever,
    KnowledgeStore,
    MemoryCacheBackend,
    RedisCacheBackend,
    SQLKnowledgeStore,
)
from clinical_validation.observability import order_context, setup_logging
from clinical_validation.policy import SpecialtyPolicyProvider
from clinical_validation.validation import ResponseNormalizer


@dataclass
class EngineStats:
    validations: int = 0
    valid_results: int = 0
    generation_failures: int = 0
    malformed_outputs: int = 0
    overrides: int = 0


# =============================================================================
# STAGE 1: ENGINE CLASS
# =============================================================================


class ValidationEngine:
    """
    Main orchestrator for dictation validation.

    What it does:
        Validates one dictation per call and records the attempt in the
        caller's AttemptHistory, enforcing the retry/override protocol.

    Why it exists:
        1. Simple API: one method for the order workflow to call
        2. Encapsulation: knowledge, prompting and parsing stay hidden
        3. Configuration: every collaborator built from one config
        4. Testability: every collaborator can be injected

    How it works:
        STAGE 1: Initialize all components from configuration
        STAGE 2: On validate():
            2.1 Check caller arguments (and override eligibility)
            2.2 Extract keywords and gather knowledge
            2.3 Compose prompt and call the model
            2.4 Normalize the response
            2.5 Commit the attempt (or apply the override)

    The engine holds no per-order state; calls for different orders are
    independent. Per-order serialization is the caller's job.

    Example:
        >>> engine = ValidationEngine(EngineConfiguration())
        >>> result = engine.validate("ORD-1", "Follow-up chest X-ray", "Family Medicine")
        >>> result.status in ValidationStatus
        True
    """

    def __init__(
        self,
        config: EngineConfiguration,
        store: Optional[KnowledgeStore] = None,
        retriever: Optional[KnowledgeRetriever] = None,
        policy_provider: Optional[SpecialtyPolicyProvider] = None,
        prompt_builder: Optional[PromptBuilder] = None,
        llm_client: Optional[LLMClientProtocol] = None,
        normalizer: Optional[ResponseNormalizer] = None,
        tracker: Optional[AttemptTracker] = None,
    ):
        """
        Initialize engine with configuration and optional component overrides.

        Args:
            config: Engine configuration
            store: Optional knowledge store override (normally cached store)
            retriever: Optional retriever override
            policy_provider: Optional specialty policy override
            prompt_builder: Optional prompt builder override
            llm_client: Optional generation client override (for testing)
            normalizer: Optional normalizer override
            tracker: Optional attempt tracker override
        """
        # =====================================================================
        # STAGE 1.1: STORE CONFIGURATION
        # =====================================================================
        self._config = config

        # =====================================================================
        # STAGE 1.2: INITIALIZE KNOWLEDGE LAYER
        # =====================================================================
        self._store = store if store is not None else self._create_store(config)
        self._retriever = retriever or KnowledgeRetriever(self._store)

        # =====================================================================
        # STAGE 1.3: INITIALIZE POLICY AND PROMPTING
        # =====================================================================
        self._policy = policy_provider or SpecialtyPolicyProvider(
            default_word_budget=config.default_word_budget
        )
        self._prompt_builder = prompt_builder or PromptBuilder(
            self._policy, max_context_chars=config.max_context_chars
        )

        # =====================================================================
        # STAGE 1.4: INITIALIZE LLM CLIENT AND NORMALIZER
        # =====================================================================
        self._llm_client = llm_client or create_llm_client(config)
        self._normalizer = normalizer or ResponseNormalizer(self._policy)

        # =====================================================================
        # STAGE 1.5: INITIALIZE GOVERNANCE
        # =====================================================================
        self._tracker = tracker or AttemptTracker(
            override_attempt_threshold=config.override_attempt_threshold,
            min_override_justification_length=config.min_override_justification_length,
        )

        # =====================================================================
        # STAGE 1.6: TRACKING STATE
        # =====================================================================
        self._stats = EngineStats()
        self._stats_lock = threading.Lock()

        logger.info(
            f"ValidationEngine initialized | "
            f"Provider: {self._llm_client.provider_name} | "
            f"Model: {self._llm_client.model_name} | "
            f"Cache: {'on' if config.cache_enabled else 'off'}"
        )

    # =========================================================================
    # STAGE 2: MAIN VALIDATION API
    # =========================================================================

    def validate(
        self,
        order_id: str,
        dictation_text: str,
        specialty: str,
        patient_context: Optional[PatientContext] = None,
        prior_attempts: Optional[AttemptHistory] = None,
        override_justification: Optional[str] = None,
    ) -> ValidationResult:
        """
        Validate one dictation and record the attempt.

        Args:
            order_id: Order reference; must be non-empty
            dictation_text: Physician dictation
            specialty: Ordering specialty (unknown names use defaults)
            patient_context: Optional demographics for the prompt
            prior_attempts: The order's AttemptHistory; appended to in
                place. A fresh history is used when omitted.
            override_justification: When given, this call is an override
                request

        Returns:
            The committed ValidationResult

        Raises:
            InvalidRequestError: Missing order reference, a history for
                another order, or an order that was already overridden
            InvalidOverrideRequest: Override not permitted (nothing appended)
        """
        # =====================================================================
        # STAGE 2.1: CALLER-LEVEL CHECKS
        # =====================================================================
        request, history = self._build_request(
            order_id, dictation_text, specialty, patient_context, prior_attempts,
            override_justification,
        )

        with order_context(request.order_id, specialty=request.specialty):
            if request.is_override:
                self._tracker.check_override(history, request.override_justification)
            elif self._tracker.current_state(history).is_terminal:
                raise InvalidRequestError(
                    "Order was overridden; no further attempts are accepted",
                    context={"order_id": request.order_id},
                )

            logger.info(
                f"Validating dictation | Attempt: {self._tracker.next_attempt_number(history)} | "
                f"Words: {request.word_count} | Override: {request.is_override}"
            )

            # =================================================================
            # STAGE 2.2 - 2.4: KNOWLEDGE, PROMPT, GENERATION, NORMALIZATION
            # =================================================================
            result = self._run_model(request)
            if result is None:
                result = self._unavailable_result(request, history)

            # =================================================================
            # STAGE 2.5: COMMIT
            # =================================================================
            if request.is_override:
                record = self._tracker.apply_override(
                    history, request.raw_text, result, request.override_justification
                )
                self._count("overrides")
            else:
                record = self._tracker.commit(history, request.raw_text, result)

            self._count("validations")
            if record.result.is_valid:
                self._count("valid_results")

            logger.info(
                f"Validation complete | Status: {record.result.status.value} | "
                f"Score: {record.result.compliance_score} | State: {record.state.value} | "
                f"Source: {record.result.source.value}"
            )
            return record.result

    def _build_request(
        self,
        order_id,
        dictation_text,
        specialty,
        patient_context,
        prior_attempts,
        override_justification,
    ):
        if not isinstance(order_id, str) or not order_id.strip():
            raise InvalidRequestError("Order reference is required")
        if not isinstance(dictation_text, str):
            raise InvalidRequestError(
                "Dictation text must be a string", context={"order_id": order_id}
            )

        history = prior_attempts if prior_attempts is not None else AttemptHistory(order_id)
        if history.order_id != order_id:
            raise InvalidRequestError(
                "Attempt history belongs to a different order",
                context={"order_id": order_id, "history_order_id": history.order_id},
            )

        request = DictationRequest(
            order_id=order_id,
            raw_text=dictation_text,
            specialty=specialty or "",
            patient_context=patient_context or PatientContext(),
            prior_attempts=history.records,
            override_justification=override_justification,
        )
        return request, history

    def _run_model(self, request: DictationRequest) -> Optional[ValidationResult]:
        """Run one model pass. Returns None when generation is unavailable."""
        keywords = extract_keywords(request.raw_text)
        knowledge = self._retriever.gather(keywords, extract_code_tokens(request.raw_text))

        prompt = self._prompt_builder.build_validation_prompt(
            dictation_text=request.raw_text,
            specialty=request.specialty,
            patient_context=request.patient_context,
            knowledge=knowledge,
            override_justification=request.override_justification,
        )

        try:
            raw_text, source = self._generate(prompt)
        except GenerationUnavailable as e:
            self._count("generation_failures")
            logger.warning(f"Generation unavailable | Provider: {e.provider} | {e.message}")
            return None

        result = self._normalizer.normalize(raw_text, request.specialty, source)
        if result.source == ResultSource.ERROR:
            self._count("malformed_outputs")
        return result

    def _unavailable_result(
        self, request: DictationRequest, history: AttemptHistory
    ) -> ValidationResult:
        # An override keeps the latest verdict when the model cannot be reached,
        # re-stamped and held to this request's specialty budget
        if request.is_override and history.latest is not None:
            latest = history.latest.result
            return dataclasses.replace(
                latest,
                feedback=self._policy.enforce_word_budget(latest.feedback, request.specialty),
                created_at=datetime.now(),
            )

        return ValidationResult(
            status=ValidationStatus.NEEDS_CLARIFICATION,
            feedback=self._policy.enforce_word_budget(
                GENERATION_UNAVAILABLE_FEEDBACK, request.specialty
            ),
            compliance_score=MIN_COMPLIANCE_SCORE,
            source=ResultSource.ERROR,
        )

    def _generate(self, prompt: str):
        """Call the model; returns the raw text and where it came from."""
        if isinstance(self._llm_client, MockLLMClient):
            return self._llm_client.generate(prompt), ResultSource.MOCK
        if isinstance(self._llm_client, FallbackLLMClient):
            # Provider is taken from this call, not from shared client state
            raw_text, provider = self._llm_client.generate_with_provider(prompt)
            primary = self._llm_client.provider_name.split(",")[0]
            source = ResultSource.MODEL if provider == primary else ResultSource.FALLBACK
            return raw_text, source
        return self._llm_client.generate(prompt), ResultSource.MODEL

    def _count(self, counter: str) -> None:
        with self._stats_lock:
            setattr(self._stats, counter, getattr(self._stats, counter) + 1)

    # =========================================================================
    # STAGE 3: ADMINISTRATION
    # =========================================================================

    def set_cache_enabled(self, enabled: bool) -> None:
        """Turn the knowledge fast tier on or off."""
        if isinstance(self._store, CachedKnowledgeStore):
            self._store.set_cache_enabled(enabled)
        else:
            logger.warning("Knowledge store has no cache tier; set_cache_enabled ignored")

    # =========================================================================
    # STAGE 4: FACTORY METHODS
    # =========================================================================

    @classmethod
    def from_environment(cls, env_file: Optional[str] = None) -> "ValidationEngine":
        """
        Create engine from environment variables.

        Raises:
            ConfigurationError: If configuration is invalid
        """
        config = EngineConfiguration.from_environment(env_file=env_file)
        setup_logging(config.log_level, config.log_json)
        return cls(config)

    @staticmethod
    def _create_store(config: EngineConfiguration) -> CachedKnowledgeStore:
        """Durable tier (SQL or JSON file) behind the fast tier (Redis or memory)."""
        if config.knowledge_database_url:
            durable = SQLKnowledgeStore(config.knowledge_database_url)
        else:
            durable = FileBasedKnowledgeStore(config.knowledge_dataset_path)

        if config.redis_url:
            cache = RedisCacheBackend(config.redis_url)
        else:
            cache = MemoryCacheBackend(max_entries=config.memory_cache_size)

        ttls = CacheTTLs(
            codes=config.ttl_codes,
            mappings=config.ttl_mappings,
            documents=config.ttl_documents,
            search=config.ttl_search,
        )
        return CachedKnowledgeStore(durable, cache, ttls=ttls, cache_enabled=config.cache_enabled)

    # =========================================================================
    # STAGE 5: PROPERTIES AND METRICS
    # =========================================================================

    @property
    def stats(self) -> EngineStats:
        return self._stats

    @property
    def config(self) -> EngineConfiguration:
        return self._config

    @property
    def store(self) -> KnowledgeStore:
        return self._store

    @property
    def llm_client(self) -> LLMClientProtocol:
        return self._llm_client

    @property
    def policy_provider(self) -> SpecialtyPolicyProvider:
        return self._policy


# =============================================================================
# STAGE 6: SMOKE TEST
# =============================================================================

if __name__ == "__main__":
    import sys

    setup_logging("INFO")

    print("\n--- Clinical Validation Engine Smoke Test ---\n")

    try:
        print("1. Initializing engine from environment...")
        engine = ValidationEngine.from_environment()
        print(f"   [OK] Provider: {engine.llm_client.provider_name}")

        print("\n2. Validating a sample dictation...")
        history = AttemptHistory("SMOKE-1")
        result = engine.validate(
            order_id="SMOKE-1",
            dictation_text="Right shoulder pain for 6 weeks after fall, weakness on abduction. MRI shoulder.",
            specialty="Orthopedics",
            patient_context=PatientContext(age=52, gender="M"),
            prior_attempts=history,
        )
        print(f"   - Status: {result.status.value}")
        print(f"   - Score: {result.compliance_score}/9")
        print(f"   - Feedback: {result.feedback}")
        for code in result.suggested_diagnosis_codes:
            print(f"     * {code.code}{' (primary)' if code.is_primary else ''}: {code.description}")

        print("\n[OK] SMOKE TEST PASSED")

    except Exception as e:
        print(f"\n[FAIL] SMOKE TEST FAILED: {e}")
        import traceback

        traceback.print_exc()
        sys.exit(1)
