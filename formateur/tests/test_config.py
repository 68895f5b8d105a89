"""Tests for configuration loading -- file, env overrides, defaults."""

import json
import os
import pytest
from unittest.mock import patch


@pytest.fixture
def load(tmp_path):
    """load_config() against a temp config file, a clean env and no .env file"""
    from formateur.common.config import load_config

    config_file = tmp_path / "config.json"

    def _load(data=None, env=None, raw=None):
        if raw is not None:
            config_file.write_text(raw)
        elif data is not None:
            config_file.write_text(json.dumps(data))
        with patch("formateur.common.config.CONFIG_PATH", config_file), \
             patch("formateur.common.config.load_dotenv"), \
             patch.dict(os.environ, env or {}, clear=True):
            return load_config()

    return _load


class TestDefaults:
    def test_llm_config_defaults(self):
        from formateur.common.config import LLMConfig
        cfg = LLMConfig()
        assert cfg.provider == "openai"
        assert cfg.openai_api_key == ""
        assert cfg.reasoning_model == ""

    def test_pipeline_config_defaults(self):
        from formateur.common.config import PipelineConfig
        cfg = PipelineConfig()
        assert cfg.mode == "two_phase"
        assert cfg.top_k == 5
        assert cfg.default_language == "fr"
        assert cfg.strict_keyword_coverage is True

    def test_server_defaults(self):
        from formateur.common.config import ServerConfig
        cfg = ServerConfig()
        assert cfg.port == 3002
        assert cfg.allowed_origins == ["http://localhost:5173"]

    def test_missing_file_gives_defaults(self, load):
        cfg = load()
        assert cfg.pipeline.top_k == 5
        assert cfg.vector_index.namespace == "formation"


class TestModelResolution:
    def test_default_model_follows_provider(self):
        from formateur.common.config import LLMConfig
        assert LLMConfig(provider="anthropic").default_model() == "claude-sonnet-4-20250514"
        assert LLMConfig(provider="google").default_model() == "gemini-2.0-flash"

    def test_stage_override(self):
        from formateur.common.config import LLMConfig
        cfg = LLMConfig(provider="openai", single_call_model="o4-mini")
        assert cfg.model_for("single_call") == "o4-mini"
        assert cfg.model_for("reasoning") == "gpt-4o"


class TestLoadConfig:
    def test_file_sections(self, load):
        cfg = load({
            "llm": {"provider": "anthropic", "anthropic_api_key": "sk-ant"},
            "pipeline": {"mode": "single_call", "top_k": 8},
            "vector_index": {"collection": "caf"},
        })
        assert cfg.llm.provider == "anthropic"
        assert cfg.llm.anthropic_api_key == "sk-ant"
        assert cfg.pipeline.mode == "single_call"
        assert cfg.pipeline.top_k == 8
        assert cfg.vector_index.collection == "caf"

    def test_unknown_keys_ignored(self, load, caplog):
        import logging
        with caplog.at_level(logging.WARNING, logger="formateur.common.config"):
            cfg = load({"pipeline": {"top_k": 3, "bogus": True}})
        assert cfg.pipeline.top_k == 3
        assert "bogus" in caplog.text

    def test_file_values_coerced_to_field_types(self, load):
        cfg = load({
            "pipeline": {"top_k": "7", "call_timeout": 12, "strict_keyword_coverage": "false"},
            "server": {"port": "8080", "allowed_origins": "http://a.test, http://b.test"},
        })
        assert cfg.pipeline.top_k == 7
        assert isinstance(cfg.pipeline.top_k, int)
        assert cfg.pipeline.call_timeout == 12.0
        assert isinstance(cfg.pipeline.call_timeout, float)
        assert cfg.pipeline.strict_keyword_coverage is False
        assert cfg.server.port == 8080
        assert cfg.server.allowed_origins == ["http://a.test", "http://b.test"]

    def test_wrong_typed_file_values_keep_defaults(self, load, caplog):
        import logging
        with caplog.at_level(logging.WARNING, logger="formateur.common.config"):
            cfg = load({
                "pipeline": {"top_k": "five", "call_timeout": [1], "strict_keyword_coverage": "maybe", "mode": "single_call"},
                "server": {"allowed_origins": [1, 2]},
            })
        assert cfg.pipeline.top_k == 5
        assert cfg.pipeline.call_timeout == 30.0
        assert cfg.pipeline.strict_keyword_coverage is True
        assert cfg.pipeline.mode == "single_call"
        assert cfg.server.allowed_origins == ["http://localhost:5173"]
        assert "Ignoring invalid value for pipeline.top_k" in caplog.text
        assert "Ignoring invalid value for server.allowed_origins" in caplog.text

    def test_malformed_file_falls_back_to_defaults(self, load, caplog):
        import logging
        with caplog.at_level(logging.WARNING, logger="formateur.common.config"):
            cfg = load(raw="{not json")
        assert cfg.pipeline.top_k == 5
        assert "Failed to load config file" in caplog.text

    def test_env_overrides_file(self, load):
        cfg = load(
            {"pipeline": {"top_k": 8}, "llm": {"provider": "anthropic"}},
            env={
                "FORMATEUR_TOP_K": "3",
                "FORMATEUR_LLM_PROVIDER": "openai",
                "OPENAI_API_KEY": "sk-env",
                "FORMATEUR_MODE": "single_call",
            },
        )
        assert cfg.pipeline.top_k == 3
        assert cfg.llm.provider == "openai"
        assert cfg.llm.openai_api_key == "sk-env"
        assert cfg.pipeline.mode == "single_call"

    def test_gemini_key_alias(self, load):
        cfg = load({}, env={"GEMINI_API_KEY": "g-key"})
        assert cfg.llm.google_api_key == "g-key"

    def test_invalid_numeric_env_ignored(self, load, caplog):
        import logging
        with caplog.at_level(logging.WARNING, logger="formateur.common.config"):
            cfg = load({}, env={"FORMATEUR_TOP_K": "many", "PORT": "80a"})
        assert cfg.pipeline.top_k == 5
        assert cfg.server.port == 3002
        assert "FORMATEUR_TOP_K" in caplog.text

    def test_allowed_origins_env(self, load):
        cfg = load({}, env={"ALLOWED_ORIGINS": "http://a.test, http://b.test,"})
        assert cfg.server.allowed_origins == ["http://a.test", "http://b.test"]

    def test_qdrant_env(self, load):
        cfg = load({}, env={"QDRANT_URL": "http://qdrant:6333", "FORMATEUR_NAMESPACE": "ns"})
        assert cfg.vector_index.url == "http://qdrant:6333"
        assert cfg.vector_index.namespace == "ns"
