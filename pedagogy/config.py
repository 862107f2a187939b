"""Engine configuration management."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from pedagogy.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

# Key names used by the host environment's key-value storage.
MODEL_PREFS_KEY = "aicodepedagogy_model_prefs"
LLM_ENABLED_KEY = "aicodepedagogy_llm_enabled"

REQUEST_POLICIES = ("cancel", "queue")


@dataclass
class PedagogyConfig:
    """Configuration for the pedagogy engine."""

    # Paths
    package_root: Path = field(default_factory=lambda: Path(__file__).parent)
    curriculum_path: Optional[Path] = None
    progress_path: Optional[Path] = None
    preferences_path: Optional[Path] = None

    # Assistance generator (provider/model come from stored preferences or env)
    llm_provider: str = "ollama"
    llm_model: Optional[str] = None
    assistance_enabled: bool = False
    assistance_timeout: float = 30.0
    history_window: int = 6
    request_policy: str = "cancel"

    # Hint tier thresholds (attempts on the current cell)
    structural_after: int = 2
    scaffold_after: int = 4

    # Interpreter
    execution_timeout: float = 10.0

    def __post_init__(self) -> None:
        """Initialize derived paths and validate settings."""
        if self.curriculum_path is None:
            self.curriculum_path = self.package_root / "curriculum" / "stages.yaml"

        if self.request_policy not in REQUEST_POLICIES:
            raise ConfigurationError(
                f"Unknown request policy: {self.request_policy}. "
                f"Valid policies: {', '.join(REQUEST_POLICIES)}",
                config_key="request_policy",
            )

        if not 0 < self.structural_after < self.scaffold_after:
            raise ConfigurationError(
                "Tier thresholds must satisfy 0 < structural_after < scaffold_after",
                config_key="structural_after",
            )

        if self.history_window < 0:
            raise ConfigurationError("history_window must not be negative", config_key="history_window")

    def load_preferences(self, path: Optional[Path] = None) -> PedagogyConfig:
        """
        Apply persisted UI preferences (provider, model, assistance flag).

        The preferences file is owned by the host environment; it is only
        read here, never written.

        Args:
            path: JSON file of host key-value storage. Defaults to preferences_path.

        Returns:
            self, for chaining.
        """
        path = path or self.preferences_path
        if path is None or not Path(path).exists():
            return self

        try:
            with open(path, "r", encoding="utf-8") as f:
                store = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Failed to load preferences from {path}: {e}")
            return self

        prefs = store.get(MODEL_PREFS_KEY) or {}
        if isinstance(prefs, str):
            try:
                prefs = json.loads(prefs)
            except json.JSONDecodeError:
                prefs = {}

        if prefs.get("provider"):
            self.llm_provider = prefs["provider"]
        if prefs.get("model"):
            self.llm_model = prefs["model"]

        if LLM_ENABLED_KEY in store:
            self.assistance_enabled = str(store[LLM_ENABLED_KEY]).lower() in ("1", "true", "yes")

        return self

    @classmethod
    def from_env(cls) -> PedagogyConfig:
        """Load configuration from environment variables."""
        config = cls(
            llm_provider=os.getenv("LLM_PROVIDER", "ollama"),
            llm_model=os.getenv("LLM_MODEL"),
            assistance_enabled=os.getenv("PEDAGOGY_ASSISTANCE_ENABLED", "false").lower() == "true",
            assistance_timeout=float(os.getenv("PEDAGOGY_ASSISTANCE_TIMEOUT", "30")),
            history_window=int(os.getenv("PEDAGOGY_HISTORY_WINDOW", "6")),
            request_policy=os.getenv("PEDAGOGY_REQUEST_POLICY", "cancel"),
            structural_after=int(os.getenv("PEDAGOGY_STRUCTURAL_AFTER", "2")),
            scaffold_after=int(os.getenv("PEDAGOGY_SCAFFOLD_AFTER", "4")),
            execution_timeout=float(os.getenv("PEDAGOGY_EXECUTION_TIMEOUT", "10")),
        )

        # Override paths if specified in environment
        if env_curriculum := os.getenv("PEDAGOGY_CURRICULUM"):
            config.curriculum_path = Path(env_curriculum)

        if env_progress := os.getenv("PEDAGOGY_PROGRESS_FILE"):
            config.progress_path = Path(env_progress)

        if env_prefs := os.getenv("PEDAGOGY_PREFERENCES_FILE"):
            config.preferences_path = Path(env_prefs)
            config.load_preferences()

        return config

    def to_dict(self) -> dict:
        """Convert configuration to dictionary."""
        return {
            "paths": {
                "curriculum": str(self.curriculum_path) if self.curriculum_path else None,
                "progress": str(self.progress_path) if self.progress_path else None,
                "preferences": str(self.preferences_path) if self.preferences_path else None,
            },
            "assistance": {
                "provider": self.llm_provider,
                "model": self.llm_model,
                "enabled": self.assistance_enabled,
                "timeout": self.assistance_timeout,
                "history_window": self.history_window,
                "request_policy": self.request_policy,
            },
            "tiers": {
                "structural_after": self.structural_after,
                "scaffold_after": self.scaffold_after,
            },
            "interpreter": {
                "timeout": self.execution_timeout,
            },
        }


# Global default configuration
_default_config: Optional[PedagogyConfig] = None


def get_config() -> PedagogyConfig:
    """Get the global configuration, creating from environment if needed."""
    global _default_config
    if _default_config is None:
        _default_config = PedagogyConfig.from_env()
    return _default_config


def set_config(config: PedagogyConfig) -> None:
    """Set the global configuration."""
    global _default_config
    _default_config = config
