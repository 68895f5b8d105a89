"""
Configuration Management for Formateur

Loads configuration from ~/.formateur/config.json and environment variables.
"""

import os
import json
import logging
from pathlib import Path
from dataclasses import dataclass, field
from typing import List

from dotenv import load_dotenv

logger = logging.getLogger("formateur.common.config")

# Default config paths
CONFIG_DIR = Path.home() / ".formateur"
CONFIG_PATH = CONFIG_DIR / "config.json"

DEFAULT_ALLOWED_ORIGINS = [
    "http://localhost:5173",
]


@dataclass
class LLMConfig:
    """LLM provider configuration shared by every pipeline stage"""
    provider: str = "openai"
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-sonnet-4-20250514"
    openai_api_key: str = ""
    openai_model: str = "gpt-4o"
    google_api_key: str = ""
    google_model: str = "gemini-2.0-flash"
    # Per-stage overrides (empty = provider default model)
    reasoning_model: str = ""
    answer_model: str = ""
    single_call_model: str = ""

    def default_model(self) -> str:
        return {
            "anthropic": self.anthropic_model,
            "openai": self.openai_model,
            "google": self.google_model,
        }.get(self.provider.lower(), "")

    def model_for(self, stage: str) -> str:
        """Resolve the model for a stage: "reasoning", "answer" or "single_call"."""
        override = getattr(self, f"{stage}_model", "")
        return override or self.default_model()


@dataclass
class EmbeddingConfig:
    """Embedding model configuration"""
    mode: str = "openai"  # "openai" or "femb" (fastembed, on-device)
    model: str = "text-embedding-3-small"
    dimension: int = 1536


@dataclass
class VectorIndexConfig:
    """Qdrant vector index configuration"""
    url: str = "http://localhost:6333"
    api_key: str = ""
    collection: str = "formateur"
    namespace: str = "formation"
    timeout: int = 30


@dataclass
class PipelineConfig:
    """Question answering pipeline configuration"""
    mode: str = "two_phase"  # "two_phase" or "single_call"
    top_k: int = 5
    language: str = "auto"  # "auto", "fr" or "en"
    default_language: str = "fr"
    organization: str = "CAF"
    call_timeout: float = 30.0
    max_retries: int = 2
    retry_base_delay: float = 0.5
    retry_max_delay: float = 8.0
    quote_preview_chars: int = 120
    partial_quote_chars: int = 150
    max_context_chars: int = 12000
    strict_keyword_coverage: bool = True


@dataclass
class ServerConfig:
    """HTTP server configuration"""
    host: str = "0.0.0.0"
    port: int = 3002
    allowed_origins: List[str] = field(default_factory=lambda: list(DEFAULT_ALLOWED_ORIGINS))
    log_level: str = "INFO"


@dataclass
class FormateurConfig:
    """Main Formateur configuration"""
    llm: LLMConfig = field(default_factory=LLMConfig)
    embedding: EmbeddingConfig = field(default_factory=EmbeddingConfig)
    vector_index: VectorIndexConfig = field(default_factory=VectorIndexConfig)
    pipeline: PipelineConfig = field(default_factory=PipelineConfig)
    server: ServerConfig = field(default_factory=ServerConfig)


def _parse_section(cls, data: dict, name: str):
    """Build a config section from its dict, ignoring unknown keys."""
    section = data.get(name) or {}
    if not isinstance(section, dict):
        logger.warning("Config section %r is not an object, using defaults", name)
        return cls()
    defaults = cls()
    known = {}
    for key, value in section.items():
        if key not in cls.__dataclass_fields__:
            continue
        try:
            known[key] = _coerce(getattr(defaults, key), value)
        except (ValueError, TypeError):
            logger.warning("Ignoring invalid value for %s.%s: %r", name, key, value)
    unknown = set(section) - set(cls.__dataclass_fields__)
    if unknown:
        logger.warning("Ignoring unknown keys in config section %r: %s", name, sorted(unknown))
    return cls(**known)


def _coerce(default, value):
    """Convert a config file value to the type of the field default."""
    if isinstance(default, bool):
        return _parse_bool(value)
    if isinstance(default, list):
        if isinstance(value, str):
            return _parse_origins(value)
        if isinstance(value, list) and all(isinstance(v, str) for v in value):
            return list(value)
        raise TypeError(f"expected a list of strings, got {type(value).__name__}")
    if isinstance(value, (dict, list, bool)) or value is None:
        raise TypeError(f"expected {type(default).__name__}, got {type(value).__name__}")
    return type(default)(value)


def _parse_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    lowered = str(value).strip().lower()
    if lowered in ("true", "1", "yes"):
        return True
    if lowered in ("false", "0", "no"):
        return False
    raise ValueError(f"not a boolean: {value!r}")


def _env_override(target, attr: str, env_var: str, cast=str) -> None:
    val = os.getenv(env_var)
    if not val:
        return
    try:
        setattr(target, attr, cast(val))
    except ValueError:
        logger.warning("Ignoring invalid value for %s: %r", env_var, val)


def _parse_origins(value: str) -> List[str]:
    return [o.strip() for o in value.split(",") if o.strip()]


def load_config() -> FormateurConfig:
    """
    Load configuration from file and environment variables.

    Priority (highest to lowest):
    1. Environment variables (a local .env file is loaded first)
    2. Config file (~/.formateur/config.json)
    3. Default values
    """
    load_dotenv()
    config = FormateurConfig()

    # Load from config file if exists
    if CONFIG_PATH.exists():
        try:
            with open(CONFIG_PATH) as f:
                data = json.load(f)

            config.llm = _parse_section(LLMConfig, data, "llm")
            config.embedding = _parse_section(EmbeddingConfig, data, "embedding")
            config.vector_index = _parse_section(VectorIndexConfig, data, "vector_index")
            config.pipeline = _parse_section(PipelineConfig, data, "pipeline")
            config.server = _parse_section(ServerConfig, data, "server")
        except (json.JSONDecodeError, IOError, TypeError, AttributeError) as e:
            logger.warning("Failed to load config file %s: %s", CONFIG_PATH, e)
            config = FormateurConfig()

    # LLM env var overrides
    _env_llm_map = {
        "OPENAI_API_KEY": "openai_api_key",
        "OPENAI_MODEL": "openai_model",
        "ANTHROPIC_API_KEY": "anthropic_api_key",
        "ANTHROPIC_MODEL": "anthropic_model",
        "GOOGLE_API_KEY": "google_api_key",
        "GEMINI_API_KEY": "google_api_key",
        "GOOGLE_MODEL": "google_model",
        "FORMATEUR_LLM_PROVIDER": "provider",
        "FORMATEUR_REASONING_MODEL": "reasoning_model",
        "FORMATEUR_ANSWER_MODEL": "answer_model",
        "FORMATEUR_SINGLE_CALL_MODEL": "single_call_model",
    }
    for env_var, attr in _env_llm_map.items():
        _env_override(config.llm, attr, env_var)

    _env_override(config.embedding, "mode", "EMBEDDING_MODE")
    _env_override(config.embedding, "model", "EMBEDDING_MODEL")

    _env_override(config.vector_index, "url", "QDRANT_URL")
    _env_override(config.vector_index, "api_key", "QDRANT_API_KEY")
    _env_override(config.vector_index, "collection", "QDRANT_COLLECTION")
    _env_override(config.vector_index, "namespace", "FORMATEUR_NAMESPACE")

    _env_override(config.pipeline, "mode", "FORMATEUR_MODE")
    _env_override(config.pipeline, "top_k", "FORMATEUR_TOP_K", int)
    _env_override(config.pipeline, "language", "FORMATEUR_LANGUAGE")
    _env_override(config.pipeline, "organization", "FORMATEUR_ORGANIZATION")
    _env_override(config.pipeline, "call_timeout", "FORMATEUR_CALL_TIMEOUT", float)

    _env_override(config.server, "port", "PORT", int)
    _env_override(config.server, "allowed_origins", "ALLOWED_ORIGINS", _parse_origins)
    _env_override(config.server, "log_level", "LOG_LEVEL")

    return config
