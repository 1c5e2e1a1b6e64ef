"""Tests for configuration loading, environment overrides and validation."""

from pathlib import Path

import pytest

from procure_recon.config import (
    Config,
    ConfigValidationError,
    LLMConfig,
    StorageConfig,
    create_default_config,
    load_config,
)

ENV_VARS = [
    "RAW_DATA_DIR",
    "STORAGE_DIR",
    "STORAGE_BACKEND",
    "STORAGE_PREFIX",
    "SUPABASE_URL",
    "SUPABASE_SERVICE_ROLE_KEY",
    "SUPABASE_BUCKET",
    "STATE_DB_PATH",
    "RECON_LLM_ENABLED",
    "OLLAMA_URL",
    "OLLAMA_MODEL",
    "OLLAMA_TIMEOUT",
    "OLLAMA_AUTH_HEADER",
    "PROCESS_BATCH_SIZE",
    "CONFIDENCE_THRESHOLD",
    "AMOUNT_TOLERANCE_PCT",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep the developer's environment out of these tests."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class TestLoadConfig:
    """Test load_config."""

    def test_missing_file_gives_defaults(self, tmp_path):
        config = load_config(tmp_path / "absent.yaml")

        assert config.storage.raw_data_dir == Path("data_lake/raw")
        assert config.storage.backend == "local"
        assert config.llm.enabled is False
        assert config.reconciliation.confidence_threshold == 0.75
        assert config.reconciliation.amount_tolerance_pct == 0.02
        assert config.processing.batch_size == 25
        assert config.processing.claim_timeout_seconds == 900
        assert config.state_db_path == Path("data/state.db")

    def test_yaml_values(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            """
storage:
  raw_data_dir: "/srv/raw"
  prefix: "tenant-a"
llm:
  enabled: true
  model: "llama3"
reconciliation:
  amount_tolerance_pct: 0.05
processing:
  batch_size: 10
state_db_path: "/srv/state.db"
"""
        )

        config = load_config(path)

        assert config.storage.raw_data_dir == Path("/srv/raw")
        assert config.storage.prefix == "tenant-a"
        assert config.llm.enabled is True
        assert config.llm.model == "llama3"
        assert config.reconciliation.amount_tolerance_pct == 0.05
        assert config.processing.batch_size == 10
        assert config.state_db_path == Path("/srv/state.db")

    def test_empty_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("")
        assert load_config(path).processing.batch_size == 25

    def test_env_overrides(self, tmp_path, monkeypatch):
        """Environment variables take precedence over the file."""
        path = tmp_path / "config.yaml"
        path.write_text("processing:\n  batch_size: 10\nllm:\n  enabled: true\n")
        monkeypatch.setenv("PROCESS_BATCH_SIZE", "3")
        monkeypatch.setenv("RECON_LLM_ENABLED", "false")
        monkeypatch.setenv("OLLAMA_URL", "http://gpu-box:11434")
        monkeypatch.setenv("CONFIDENCE_THRESHOLD", "0.6")
        monkeypatch.setenv("RAW_DATA_DIR", str(tmp_path / "inbox"))

        config = load_config(path)

        assert config.processing.batch_size == 3
        assert config.llm.enabled is False
        assert config.llm.ollama_url == "http://gpu-box:11434"
        assert config.reconciliation.confidence_threshold == 0.6
        assert config.storage.raw_data_dir == tmp_path / "inbox"

    def test_unrecognized_bool_keeps_file_value(self, tmp_path, monkeypatch):
        path = tmp_path / "config.yaml"
        path.write_text("llm:\n  enabled: true\n")
        monkeypatch.setenv("RECON_LLM_ENABLED", "yes please")

        assert load_config(path).llm.enabled is True

    def test_malformed_number_override(self, tmp_path, monkeypatch):
        monkeypatch.setenv("PROCESS_BATCH_SIZE", "lots")
        with pytest.raises(ConfigValidationError, match="PROCESS_BATCH_SIZE"):
            load_config(tmp_path / "absent.yaml")

    def test_invalid_values_rejected(self, tmp_path, monkeypatch):
        monkeypatch.setenv("CONFIDENCE_THRESHOLD", "1.5")
        with pytest.raises(ConfigValidationError, match="confidence_threshold"):
            load_config(tmp_path / "absent.yaml")

    def test_supabase_requires_credentials(self, tmp_path, monkeypatch):
        monkeypatch.setenv("STORAGE_BACKEND", "supabase")
        with pytest.raises(ConfigValidationError) as exc_info:
            load_config(tmp_path / "absent.yaml")
        assert "supabase_url" in str(exc_info.value)
        assert "supabase_service_role_key" in str(exc_info.value)


class TestValidate:
    """Test Config.validate."""

    def test_defaults_are_valid(self):
        assert Config().validate() == []

    def test_unknown_backend(self):
        config = Config(storage=StorageConfig(backend="s3"))
        assert any("storage.backend" in e for e in config.validate())

    def test_batch_size_positive(self):
        config = Config()
        config.processing.batch_size = 0
        assert config.validate() == ["processing.batch_size must be positive"]

    def test_llm_url_required_when_enabled(self):
        config = Config(llm=LLMConfig(enabled=True, ollama_url=""))
        assert config.validate() == ["llm.ollama_url is required when LLM is enabled"]


class TestCreateDefaultConfig:
    def test_written_file_loads(self, tmp_path):
        path = tmp_path / "nested" / "config.yaml"
        create_default_config(path)

        assert path.exists()
        config = load_config(path)
        assert config.storage.supabase_bucket == "recon-storage"
        assert config.llm.timeout_seconds == 120
