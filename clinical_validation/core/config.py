"""
Configuration for the Clinical Validation Engine

This module defines the configuration dataclass used to initialize the
validation engine. Configuration is:
    1. Loaded from environment variables (with .env support)
    2. Validated at startup to fail fast on misconfiguration
    3. Passed explicitly to every component (no global state)

Configuration Hierarchy:
    EngineConfiguration (main config)
    ├── LLM Settings (provider chain, API keys, models, timeout)
    ├── Knowledge Settings (dataset path, database URL, Redis URL)
    ├── Cache Settings (enabled flag, per-domain TTLs)
    ├── Governance Settings (override threshold, justification length)
    ├── Policy Settings (default word budget, prompt context size)
    └── Logging Settings (level, JSON output)

Usage:
    from clinical_validation.core.config import EngineConfiguration

    # Load from environment
    config = EngineConfiguration.from_environment()

    # Or configure programmatically
    config = EngineConfiguration(
        anthropic_api_key="your-key",
        knowledge_dataset_path="path/to/knowledge_base.json",
    )

Author: Shubham Singh
Date: December 2025
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from clinical_validation.core.enums import LLMProvider
from clinical_validation.core.exceptions import ConfigurationError


# =============================================================================
# STAGE 1: DEFAULT VALUES
# =============================================================================


class ConfigDefaults:
    """Default configuration values."""

    # -------------------------------------------------------------------------
    # 1.1 LLM Provider Defaults
    # -------------------------------------------------------------------------
    DEFAULT_LLM_PROVIDER = "anthropic"
    DEFAULT_FALLBACK_PROVIDERS = "openai,gemini"
    DEFAULT_ANTHROPIC_MODEL = "claude-3-5-sonnet-latest"
    DEFAULT_OPENAI_MODEL = "gpt-4o-mini"
    DEFAULT_GEMINI_MODEL = "gemini-1.5-flash"
    DEFAULT_GENERATION_TIMEOUT = 30.0  # seconds
    DEFAULT_RATE_LIMIT_DELAY = 0.0  # seconds between API calls
    DEFAULT_MAX_RETRIES = 2

    # -------------------------------------------------------------------------
    # 1.2 Cache Defaults (seconds)
    # -------------------------------------------------------------------------
    DEFAULT_TTL_CODES = 24 * 60 * 60
    DEFAULT_TTL_MAPPINGS = 6 * 60 * 60
    DEFAULT_TTL_DOCUMENTS = 12 * 60 * 60
    DEFAULT_TTL_SEARCH = 60 * 60
    DEFAULT_MEMORY_CACHE_SIZE = 10_000

    # -------------------------------------------------------------------------
    # 1.3 Governance Defaults
    # -------------------------------------------------------------------------
    DEFAULT_OVERRIDE_ATTEMPT_THRESHOLD = 3
    DEFAULT_MIN_OVERRIDE_JUSTIFICATION_LENGTH = 20

    # -------------------------------------------------------------------------
    # 1.4 Policy Defaults
    # -------------------------------------------------------------------------
    DEFAULT_WORD_BUDGET = 33
    DEFAULT_MAX_CONTEXT_CHARS = 6000

    # -------------------------------------------------------------------------
    # 1.5 File Path Defaults
    # -------------------------------------------------------------------------
    DEFAULT_DATASET_PATH = str(Path(__file__).parent.parent / "data" / "knowledge_base.json")


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


# =============================================================================
# STAGE 2: CONFIGURATION DATACLASS
# =============================================================================


@dataclass
class EngineConfiguration:
    """
    Configuration for the clinical validation engine.

    What it does:
        Encapsulates every setting needed to build the knowledge store,
        the generation client chain and the governance rules.

    Why it exists:
        1. Single source of truth for all configuration
        2. Validated at startup to fail fast on errors
        3. Supports both environment and programmatic configuration

    Example:
        >>> config = EngineConfiguration.from_environment()
        >>> config.override_attempt_threshold
        3
    """

    # -------------------------------------------------------------------------
    # 2.1 LLM Provider Configuration
    # -------------------------------------------------------------------------
    llm_provider: str = ConfigDefaults.DEFAULT_LLM_PROVIDER
    """Primary provider: 'anthropic', 'openai', 'gemini' or 'mock'."""

    fallback_providers: List[str] = field(
        default_factory=lambda: ConfigDefaults.DEFAULT_FALLBACK_PROVIDERS.split(",")
    )
    """Providers tried in order when the primary fails."""

    anthropic_api_key: Optional[str] = None
    anthropic_model: str = ConfigDefaults.DEFAULT_ANTHROPIC_MODEL

    openai_api_key: Optional[str] = None
    openai_model: str = ConfigDefaults.DEFAULT_OPENAI_MODEL

    gemini_api_key: Optional[str] = None
    gemini_model: str = ConfigDefaults.DEFAULT_GEMINI_MODEL

    generation_timeout: float = ConfigDefaults.DEFAULT_GENERATION_TIMEOUT
    """Seconds before a model call is treated as unavailable."""

    rate_limit_delay: float = ConfigDefaults.DEFAULT_RATE_LIMIT_DELAY
    max_retries: int = ConfigDefaults.DEFAULT_MAX_RETRIES
    """Attempts per provider on rate-limit errors only."""

    # -------------------------------------------------------------------------
    # 2.2 Knowledge Store Configuration
    # -------------------------------------------------------------------------
    knowledge_dataset_path: Optional[str] = ConfigDefaults.DEFAULT_DATASET_PATH
    """JSON knowledge dataset (used when no database URL is set)."""

    knowledge_database_url: Optional[str] = None
    """SQLAlchemy URL of the durable knowledge database."""

    redis_url: Optional[str] = None
    """Redis URL for the fast tier; in-process memory cache when unset."""

    # -------------------------------------------------------------------------
    # 2.3 Cache Configuration
    # -------------------------------------------------------------------------
    cache_enabled: bool = True
    ttl_codes: int = ConfigDefaults.DEFAULT_TTL_CODES
    ttl_mappings: int = ConfigDefaults.DEFAULT_TTL_MAPPINGS
    ttl_documents: int = ConfigDefaults.DEFAULT_TTL_DOCUMENTS
    ttl_search: int = ConfigDefaults.DEFAULT_TTL_SEARCH
    memory_cache_size: int = ConfigDefaults.DEFAULT_MEMORY_CACHE_SIZE

    # -------------------------------------------------------------------------
    # 2.4 Governance Configuration
    # -------------------------------------------------------------------------
    override_attempt_threshold: int = ConfigDefaults.DEFAULT_OVERRIDE_ATTEMPT_THRESHOLD
    min_override_justification_length: int = (
        ConfigDefaults.DEFAULT_MIN_OVERRIDE_JUSTIFICATION_LENGTH
    )

    # -------------------------------------------------------------------------
    # 2.5 Policy Configuration
    # -------------------------------------------------------------------------
    default_word_budget: int = ConfigDefaults.DEFAULT_WORD_BUDGET
    max_context_chars: int = ConfigDefaults.DEFAULT_MAX_CONTEXT_CHARS

    # -------------------------------------------------------------------------
    # 2.6 Logging Configuration
    # -------------------------------------------------------------------------
    log_level: str = "INFO"
    log_json: bool = False

    # -------------------------------------------------------------------------
    # 2.7 Validation Methods
    # -------------------------------------------------------------------------

    def validate(self) -> None:
        """
        Validate configuration parameters.

        Checks:
            1. Every configured provider name is known
            2. Dataset path exists when it is the durable tier
            3. Numeric parameters are in valid ranges

        Raises:
            ConfigurationError: If configuration is invalid
        """
        for provider in [self.llm_provider] + list(self.fallback_providers):
            try:
                LLMProvider.from_string(provider)
            except ValueError:
                raise ConfigurationError(
                    f"Unknown LLM provider: {provider}",
                    context={"setting": "LLM_PROVIDER", "provider": provider},
                )

        if not self.knowledge_database_url:
            if not self.knowledge_dataset_path:
                raise ConfigurationError(
                    "Either a knowledge database URL or a dataset path is required",
                    context={"setting": "KNOWLEDGE_DATASET_PATH"},
                )
            if not Path(self.knowledge_dataset_path).exists():
                raise ConfigurationError(
                    f"Knowledge dataset file not found: {self.knowledge_dataset_path}",
                    context={
                        "setting": "KNOWLEDGE_DATASET_PATH",
                        "path": self.knowledge_dataset_path,
                    },
                )

        positive = {
            "ttl_codes": self.ttl_codes,
            "ttl_mappings": self.ttl_mappings,
            "ttl_documents": self.ttl_documents,
            "ttl_search": self.ttl_search,
            "default_word_budget": self.default_word_budget,
            "override_attempt_threshold": self.override_attempt_threshold,
            "max_context_chars": self.max_context_chars,
            "max_retries": self.max_retries,
            "memory_cache_size": self.memory_cache_size,
        }
        for name, value in positive.items():
            if value <= 0:
                raise ConfigurationError(
                    f"{name} must be positive, got {value}", context={"setting": name}
                )

        if self.generation_timeout <= 0:
            raise ConfigurationError(
                f"generation_timeout must be positive, got {self.generation_timeout}",
                context={"setting": "GENERATION_TIMEOUT"},
            )

        if self.min_override_justification_length < 1:
            raise ConfigurationError(
                "min_override_justification_length must be at least 1",
                context={"setting": "MIN_OVERRIDE_JUSTIFICATION_LENGTH"},
            )

    @property
    def has_llm_credentials(self) -> bool:
        return bool(self.anthropic_api_key or self.openai_api_key or self.gemini_api_key)

    # -------------------------------------------------------------------------
    # 2.8 Factory Methods
    # -------------------------------------------------------------------------

    @classmethod
    def from_environment(
        cls, env_file: Optional[str] = None, validate_on_load: bool = True
    ) -> "EngineConfiguration":
        """
        Load configuration from environment variables.

        STAGE 1: Load .env file (if specified or found)
        STAGE 2: Read environment variables
        STAGE 3: Convert to typed configuration
        STAGE 4: Validate configuration (optional)

        Args:
            env_file: Path to .env file (optional, auto-detected if not provided)
            validate_on_load: Whether to validate after loading

        Returns:
            Configured EngineConfiguration instance

        Raises:
            ConfigurationError: If settings are invalid
        """
        # STAGE 1: Load .env file
        if env_file:
            load_dotenv(env_file)
        else:
            for location in (Path.cwd() / ".env", Path.cwd() / "clinical_validation" / ".env"):
                if location.exists():
                    load_dotenv(location)
                    break

        # STAGE 2: Read environment variables
        fallback_raw = os.getenv("LLM_FALLBACK_PROVIDERS", ConfigDefaults.DEFAULT_FALLBACK_PROVIDERS)
        fallback_providers = [p.strip().lower() for p in fallback_raw.split(",") if p.strip()]

        # STAGE 3: Create configuration
        try:
            config = cls(
                # LLM settings
                llm_provider=os.getenv("LLM_PROVIDER", ConfigDefaults.DEFAULT_LLM_PROVIDER).lower(),
                fallback_providers=fallback_providers,
                anthropic_api_key=os.getenv("ANTHROPIC_API_KEY"),
                anthropic_model=os.getenv("ANTHROPIC_MODEL", ConfigDefaults.DEFAULT_ANTHROPIC_MODEL),
                openai_api_key=os.getenv("OPENAI_API_KEY"),
                openai_model=os.getenv("OPENAI_MODEL", ConfigDefaults.DEFAULT_OPENAI_MODEL),
                gemini_api_key=os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_API_KEY"),
                gemini_model=os.getenv("GEMINI_MODEL", ConfigDefaults.DEFAULT_GEMINI_MODEL),
                generation_timeout=float(
                    os.getenv("GENERATION_TIMEOUT", ConfigDefaults.DEFAULT_GENERATION_TIMEOUT)
                ),
                rate_limit_delay=float(
                    os.getenv("RATE_LIMIT_DELAY", ConfigDefaults.DEFAULT_RATE_LIMIT_DELAY)
                ),
                max_retries=int(os.getenv("MAX_RETRIES", ConfigDefaults.DEFAULT_MAX_RETRIES)),
                # Knowledge settings
                knowledge_dataset_path=os.getenv(
                    "KNOWLEDGE_DATASET_PATH", ConfigDefaults.DEFAULT_DATASET_PATH
                ),
                knowledge_database_url=os.getenv("KNOWLEDGE_DATABASE_URL"),
                redis_url=os.getenv("REDIS_URL"),
                # Cache settings
                cache_enabled=_env_bool("CACHE_ENABLED", True),
                ttl_codes=int(os.getenv("CACHE_TTL_CODES", ConfigDefaults.DEFAULT_TTL_CODES)),
                ttl_mappings=int(
                    os.getenv("CACHE_TTL_MAPPINGS", ConfigDefaults.DEFAULT_TTL_MAPPINGS)
                ),
                ttl_documents=int(
                    os.getenv("CACHE_TTL_DOCUMENTS", ConfigDefaults.DEFAULT_TTL_DOCUMENTS)
                ),
                ttl_search=int(os.getenv("CACHE_TTL_SEARCH", ConfigDefaults.DEFAULT_TTL_SEARCH)),
                memory_cache_size=int(
                    os.getenv("MEMORY_CACHE_SIZE", ConfigDefaults.DEFAULT_MEMORY_CACHE_SIZE)
                ),
                # Governance settings
                override_attempt_threshold=int(
                    os.getenv(
                        "OVERRIDE_ATTEMPT_THRESHOLD",
                        ConfigDefaults.DEFAULT_OVERRIDE_ATTEMPT_THRESHOLD,
                    )
                ),
                min_override_justification_length=int(
                    os.getenv(
                        "MIN_OVERRIDE_JUSTIFICATION_LENGTH",
                        ConfigDefaults.DEFAULT_MIN_OVERRIDE_JUSTIFICATION_LENGTH,
                    )
                ),
                # Policy settings
                default_word_budget=int(
                    os.getenv("DEFAULT_WORD_BUDGET", ConfigDefaults.DEFAULT_WORD_BUDGET)
                ),
                max_context_chars=int(
                    os.getenv("MAX_CONTEXT_CHARS", ConfigDefaults.DEFAULT_MAX_CONTEXT_CHARS)
                ),
                # Logging settings
                log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
                log_json=_env_bool("LOG_JSON", False),
            )
        except ValueError as e:
            raise ConfigurationError(f"Invalid numeric setting: {e}")

        # STAGE 4: Validate
        if validate_on_load:
            config.validate()

        return config

    def to_dict(self) -> dict:
        """Convert configuration to dictionary (for logging/debugging)."""
        return {
            "llm_provider": self.llm_provider,
            "fallback_providers": list(self.fallback_providers),
            "anthropic_model": self.anthropic_model,
            "openai_model": self.openai_model,
            "gemini_model": self.gemini_model,
            "anthropic_api_key": "***" if self.anthropic_api_key else None,
            "openai_api_key": "***" if self.openai_api_key else None,
            "gemini_api_key": "***" if self.gemini_api_key else None,
            "generation_timeout": self.generation_timeout,
            "knowledge_dataset_path": self.knowledge_dataset_path,
            "knowledge_database_url": "***" if self.knowledge_database_url else None,
            "redis_url": "***" if self.redis_url else None,
            "cache_enabled": self.cache_enabled,
            "ttl_codes": self.ttl_codes,
            "ttl_mappings": self.ttl_mappings,
            "ttl_documents": self.ttl_documents,
            "ttl_search": self.ttl_search,
            "override_attempt_threshold": self.override_attempt_threshold,
            "min_override_justification_length": self.min_override_justification_length,
            "default_word_budget": self.default_word_budget,
        }
