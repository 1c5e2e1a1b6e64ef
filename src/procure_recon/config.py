"""
Configuration management (SSOT).

This module defines ALL configuration for the reconciliation pipeline.
All config keys are defined here; no other module should invent config keys.

The Config object is built once at process start by load_config() and passed
explicitly into every component. Nothing reads configuration from module
globals or the environment after startup.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from .errors import ReconError


class ConfigValidationError(ReconError):
    """Raised when configuration validation fails."""

    pass


STORAGE_BACKENDS = ("local", "supabase")


@dataclass
class StorageConfig:
    """Raw file discovery and artifact storage.

    - raw_data_dir: Directory scanned for incoming PO/invoice/GRN files
    - backend: "local" writes artifacts under storage_dir,
      "supabase" writes them to a Supabase Storage bucket
    - prefix: Optional object key prefix for every artifact
    """

    raw_data_dir: Path = field(default_factory=lambda: Path("data_lake/raw"))
    backend: str = "local"
    storage_dir: Path = field(default_factory=lambda: Path("storage"))
    prefix: str = ""
    supabase_url: str | None = None
    supabase_service_role_key: str | None = None
    supabase_bucket: str = "recon-storage"
    timeout_seconds: int = 30


@dataclass
class LLMConfig:
    """Local LLM (Ollama) configuration.

    - enabled: Master switch (default OFF → heuristic extraction only)
    - ollama_url: Can be localhost, LAN IP, or remote URL
    - auth_header: Optional auth header for proxied deployments
    """

    enabled: bool = False
    ollama_url: str = "http://localhost:11434"
    auth_header: str | None = None
    model: str = "qwen2.5:7b-instruct-q4_K_M"
    # Request timeout (seconds)
    timeout_seconds: int = 120

    def is_remote(self) -> bool:
        """Check if Ollama URL is remote (not localhost)."""
        url_lower = self.ollama_url.lower()
        return not any(
            local in url_lower
            for local in ["localhost", "127.0.0.1", "::1", "host.docker.internal"]
        )


@dataclass
class ReconciliationConfig:
    """Reconciliation rule settings."""

    # Documents below this extraction confidence flag the transaction
    confidence_threshold: float = 0.75
    # Allowed fractional deviation between PO and invoice totals (0.02 = 2%)
    amount_tolerance_pct: float = 0.02


@dataclass
class ProcessingConfig:
    """Batch processing settings."""

    batch_size: int = 25
    # Claims older than this may be taken over by another run
    claim_timeout_seconds: int = 900


@dataclass
class Config:
    """Application configuration (SSOT).

    All configuration is centralized here. No other module should define
    configuration keys or defaults.
    """

    storage: StorageConfig = field(default_factory=StorageConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)
    reconciliation: ReconciliationConfig = field(default_factory=ReconciliationConfig)
    processing: ProcessingConfig = field(default_factory=ProcessingConfig)
    state_db_path: Path = field(default_factory=lambda: Path("data/state.db"))

    def validate(self) -> list[str]:
        """Validate configuration completeness and consistency.

        Returns:
            List of validation errors (empty if valid)
        """
        errors: list[str] = []

        if self.storage.backend not in STORAGE_BACKENDS:
            errors.append(
                f"storage.backend must be one of {', '.join(STORAGE_BACKENDS)}, "
                f"got: {self.storage.backend}"
            )
        if self.storage.backend == "supabase":
            if not self.storage.supabase_url:
                errors.append("storage.supabase_url is required for the supabase backend")
            if not self.storage.supabase_service_role_key:
                errors.append(
                    "storage.supabase_service_role_key is required for the supabase backend"
                )

        if self.llm.enabled and not self.llm.ollama_url:
            errors.append("llm.ollama_url is required when LLM is enabled")

        if not 0 <= self.reconciliation.confidence_threshold <= 1:
            errors.append("reconciliation.confidence_threshold must be between 0 and 1")
        if not 0 <= self.reconciliation.amount_tolerance_pct <= 1:
            errors.append("reconciliation.amount_tolerance_pct must be between 0 and 1")

        if self.processing.batch_size <= 0:
            errors.append("processing.batch_size must be positive")
        if self.processing.claim_timeout_seconds <= 0:
            errors.append("processing.claim_timeout_seconds must be positive")

        return errors


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name, "").lower()
    if value == "true":
        return True
    if value == "false":
        return False
    return default


def _env_number(name: str, default, cast):
    value = os.environ.get(name, "")
    if not value:
        return cast(default)
    try:
        return cast(value)
    except ValueError as e:
        raise ConfigValidationError(f"{name} must be a number, got: {value!r}") from e


def load_config(config_path: Path) -> Config:
    """
    Load configuration from YAML file.

    Environment variables can override config values:
    - RAW_DATA_DIR, STORAGE_DIR, STORAGE_BACKEND, STORAGE_PREFIX
    - SUPABASE_URL, SUPABASE_SERVICE_ROLE_KEY, SUPABASE_BUCKET
    - STATE_DB_PATH
    - RECON_LLM_ENABLED (true/false)
    - OLLAMA_URL, OLLAMA_MODEL, OLLAMA_TIMEOUT, OLLAMA_AUTH_HEADER
    - PROCESS_BATCH_SIZE
    - CONFIDENCE_THRESHOLD
    - AMOUNT_TOLERANCE_PCT

    Raises:
        ConfigValidationError: If an override is malformed or the
            resulting configuration is inconsistent
    """
    if config_path.exists():
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
    else:
        data = {}

    # Storage config
    storage_data = data.get("storage", {})
    storage = StorageConfig(
        raw_data_dir=Path(
            os.environ.get("RAW_DATA_DIR", storage_data.get("raw_data_dir", "data_lake/raw"))
        ),
        backend=os.environ.get("STORAGE_BACKEND", storage_data.get("backend", "local")),
        storage_dir=Path(os.environ.get("STORAGE_DIR", storage_data.get("storage_dir", "storage"))),
        prefix=os.environ.get("STORAGE_PREFIX", storage_data.get("prefix", "")),
        supabase_url=os.environ.get("SUPABASE_URL", storage_data.get("supabase_url")),
        supabase_service_role_key=os.environ.get(
            "SUPABASE_SERVICE_ROLE_KEY", storage_data.get("supabase_service_role_key")
        ),
        supabase_bucket=os.environ.get(
            "SUPABASE_BUCKET", storage_data.get("supabase_bucket", "recon-storage")
        ),
        timeout_seconds=storage_data.get("timeout_seconds", 30),
    )

    # LLM config
    llm_data = data.get("llm", {})
    llm = LLMConfig(
        enabled=_env_bool("RECON_LLM_ENABLED", llm_data.get("enabled", False)),
        ollama_url=os.environ.get(
            "OLLAMA_URL", llm_data.get("ollama_url", "http://localhost:11434")
        ),
        auth_header=os.environ.get("OLLAMA_AUTH_HEADER", llm_data.get("auth_header")),
        model=os.environ.get("OLLAMA_MODEL", llm_data.get("model", "qwen2.5:7b-instruct-q4_K_M")),
        timeout_seconds=_env_number("OLLAMA_TIMEOUT", llm_data.get("timeout_seconds", 120), int),
    )

    # Reconciliation config
    recon_data = data.get("reconciliation", {})
    reconciliation = ReconciliationConfig(
        confidence_threshold=_env_number(
            "CONFIDENCE_THRESHOLD", recon_data.get("confidence_threshold", 0.75), float
        ),
        amount_tolerance_pct=_env_number(
            "AMOUNT_TOLERANCE_PCT", recon_data.get("amount_tolerance_pct", 0.02), float
        ),
    )

    # Processing config
    processing_data = data.get("processing", {})
    processing = ProcessingConfig(
        batch_size=_env_number("PROCESS_BATCH_SIZE", processing_data.get("batch_size", 25), int),
        claim_timeout_seconds=processing_data.get("claim_timeout_seconds", 900),
    )

    # State DB
    state_db = os.environ.get("STATE_DB_PATH", data.get("state_db_path", "data/state.db"))

    config = Config(
        storage=storage,
        llm=llm,
        reconciliation=reconciliation,
        processing=processing,
        state_db_path=Path(state_db),
    )

    errors = config.validate()
    if errors:
        raise ConfigValidationError("Invalid configuration: " + "; ".join(errors))

    return config


def create_default_config(config_path: Path) -> None:
    """Create a default configuration file."""
    default_config = """# Procurement Reconciliation Pipeline Configuration

# Raw file discovery and artifact storage
storage:
  raw_data_dir: "data_lake/raw"          # Scanned for .txt/.md/.pdf documents
  backend: "local"                       # local | supabase
  storage_dir: "storage"                 # Artifact root for the local backend
  prefix: ""                             # Optional object key prefix
  supabase_url: null                     # Required for the supabase backend
  supabase_service_role_key: null        # Required for the supabase backend
  supabase_bucket: "recon-storage"
  timeout_seconds: 30

# Local LLM settings (Ollama)
# When disabled, a regex heuristic extractor is used (confidence 0.4)
llm:
  enabled: false
  ollama_url: "http://localhost:11434"
  auth_header: null                      # Optional auth header for proxied deployments
  model: "qwen2.5:7b-instruct-q4_K_M"
  timeout_seconds: 120

# Reconciliation rules
reconciliation:
  confidence_threshold: 0.75             # Below this: LOW_CONFIDENCE
  amount_tolerance_pct: 0.02             # Allowed PO/invoice total deviation (fraction)

# Batch processing
processing:
  batch_size: 25
  claim_timeout_seconds: 900

# State database path
state_db_path: "data/state.db"
"""

    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, "w") as f:
        f.write(default_config)
