"""
Configuration for setu-gateway.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

PLUGIN_NAME = "datasette-setu"

# Providers that need an API key before they can be called
KEYED_PROVIDERS = ("gemini", "openai")

DEFAULT_MODELS = {
    "gemini": "gemini-2.0-flash",
    "ollama": "llama3.1:8b",
    "openai": "gpt-4o-mini",
}

DEFAULT_BASE_URLS = {
    "gemini": "https://generativelanguage.googleapis.com/v1beta",
    "ollama": "http://localhost:11434",
    "openai": "https://api.openai.com/v1",
}


@dataclass
class LLMConfig:
    """Generative completion provider configuration."""

    provider: str = "gemini"  # gemini, ollama, openai
    model: str = "gemini-2.0-flash"
    base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    api_key: str | None = None
    api_key_env: str | None = "GOOGLE_GENERATIVE_AI_API_KEY"
    timeout_seconds: float = 30.0

    def get_api_key(self) -> str | None:
        """Get API key from config or environment."""
        if self.api_key:
            return self.api_key
        if self.api_key_env:
            return os.environ.get(self.api_key_env) or None
        return None

    def is_available(self) -> bool:
        """Check whether the provider can be called at all."""
        if self.provider not in DEFAULT_MODELS:
            return False
        if self.provider in KEYED_PROVIDERS:
            return self.get_api_key() is not None
        return bool(self.base_url)


@dataclass
class TranslationConfig:
    """Retry policy for voice-to-catalog translation."""

    max_attempts: int = 3
    base_delay_seconds: float = 1.0
    backoff_factor: float = 2.0
    lexical_recovery: bool = True


@dataclass
class SimulatorConfig:
    """Buyer network simulation settings."""

    delay_seconds: float = 8.0
    variance: float = 0.10


@dataclass
class GatewayConfig:
    """Complete setu-gateway configuration."""

    db_path: Path = field(default_factory=lambda: Path("setu.db"))

    llm: LLMConfig = field(default_factory=LLMConfig)
    translation: TranslationConfig = field(default_factory=TranslationConfig)
    simulator: SimulatorConfig = field(default_factory=SimulatorConfig)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "GatewayConfig":
        """Create config from a dictionary (e.g., from YAML)."""
        config = cls()

        if "db_path" in data:
            config.db_path = Path(data["db_path"])

        if "llm" in data:
            llm = data["llm"]
            provider = llm.get("provider", "gemini")
            config.llm = LLMConfig(
                provider=provider,
                model=llm.get("model", DEFAULT_MODELS.get(provider, "")),
                base_url=llm.get("base_url", DEFAULT_BASE_URLS.get(provider, "")),
                api_key=llm.get("api_key"),
                api_key_env=llm.get(
                    "api_key_env",
                    "GOOGLE_GENERATIVE_AI_API_KEY" if provider == "gemini" else None,
                ),
                timeout_seconds=llm.get("timeout_seconds", 30.0),
            )

        if "translation" in data:
            tr = data["translation"]
            config.translation = TranslationConfig(
                max_attempts=tr.get("max_attempts", 3),
                base_delay_seconds=tr.get("base_delay_seconds", 1.0),
                backoff_factor=tr.get("backoff_factor", 2.0),
                lexical_recovery=tr.get("lexical_recovery", True),
            )

        if "simulator" in data:
            sim = data["simulator"]
            config.simulator = SimulatorConfig(
                delay_seconds=sim.get("delay_seconds", 8.0),
                variance=sim.get("variance", 0.10),
            )

        return config

    @classmethod
    def from_yaml(cls, path: Path) -> "GatewayConfig":
        """Load config from a YAML file (datasette.yaml format)."""
        if not path.exists():
            return cls()

        with open(path) as f:
            data = yaml.safe_load(f) or {}

        # Config lives under plugins.datasette-setu
        plugin_config = data.get("plugins", {}).get(PLUGIN_NAME, {})
        return cls.from_dict(plugin_config)

    def to_dict(self) -> dict[str, Any]:
        """Convert config to dictionary for JSON serialization."""
        return {
            "db_path": str(self.db_path),
            "llm": {
                "provider": self.llm.provider,
                "model": self.llm.model,
                "base_url": self.llm.base_url,
                "timeout_seconds": self.llm.timeout_seconds,
            },
            "translation": {
                "max_attempts": self.translation.max_attempts,
                "base_delay_seconds": self.translation.base_delay_seconds,
                "backoff_factor": self.translation.backoff_factor,
                "lexical_recovery": self.translation.lexical_recovery,
            },
            "simulator": {
                "delay_seconds": self.simulator.delay_seconds,
                "variance": self.simulator.variance,
            },
        }
