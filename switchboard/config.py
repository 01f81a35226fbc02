"""Configuration management for switchboard."""

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .models import ProviderKind, resolve_provider
from .providers.base import ProviderConfig
from .servers.handle import ServerConfig
from .servers.loader import load_servers_from_config
from .tools.catalog import DEFAULT_SEPARATOR

_log = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "~/.config/switchboard/config.yaml"

_DEFAULT_MODELS = {
    ProviderKind.OPENAI: "gpt-4o",
    ProviderKind.OPENROUTER: "qwen/qwen3-32b",
    ProviderKind.GPTGOD: "gpt-4o",
    ProviderKind.CLAUDE: "claude-sonnet-4-5",
    ProviderKind.GEMINI: "gemini-2.5-flash",
    ProviderKind.HUGGINGFACE: "mistralai/Mistral-7B-Instruct-v0.3",
}

_ENV_KEYS = {
    ProviderKind.OPENAI: "OPENAI_API_KEY",
    ProviderKind.OPENROUTER: "OPENROUTER_API_KEY",
    ProviderKind.GPTGOD: "GPTGOD_API_KEY",
    ProviderKind.CLAUDE: "ANTHROPIC_API_KEY",
    ProviderKind.GEMINI: "GEMINI_API_KEY",
    ProviderKind.HUGGINGFACE: "HUGGINGFACE_API_KEY",
}


def default_config() -> Dict[str, Any]:
    return {
        "providers": {
            kind.value: {
                "enabled": False,
                "api_key": f"${{{_ENV_KEYS[kind]}}}",
                "model": _DEFAULT_MODELS[kind],
                "temperature": 0.7,
            }
            for kind in ProviderKind
        },
        "servers": [],
        "discovery": {"timeout": 10.0},
        "tools": {
            "separator": DEFAULT_SEPARATOR,
            "sequential_thinking": True,
        },
        "logging": {"level": "WARNING"},
    }


class ConfigManager:
    """Manage switchboard configuration from YAML."""

    def __init__(self, config_path: Optional[str] = None):
        self.config_path = Path(config_path or DEFAULT_CONFIG_PATH).expanduser()
        self.data = self._load_config()

    def _load_config(self) -> Dict[str, Any]:
        if not self.config_path.exists():
            self._create_default_config()
        return self._read_yaml()

    def _read_yaml(self) -> Dict[str, Any]:
        """Read and parse the YAML file. A broken file yields an empty config."""
        try:
            with open(self.config_path, "r") as f:
                content = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            _log.error("Error reading config %s: %s", self.config_path, e)
            return {}
        return content if isinstance(content, dict) else {}

    def _create_default_config(self) -> None:
        self.config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.config_path, "w") as f:
            yaml.safe_dump(default_config(), f, default_flow_style=False, sort_keys=False)

    def _resolve_env_var(self, value: Any) -> str:
        """Resolve environment variable references like ${VAR_NAME}."""
        value = "" if value is None else str(value)
        if not value.startswith("${") or not value.endswith("}"):
            return value
        return os.getenv(value[2:-1], "")

    def _provider_entry(self, kind: ProviderKind) -> Dict[str, Any]:
        providers = self.data.get("providers") or {}
        for name, entry in providers.items():
            if resolve_provider(name) is kind and isinstance(entry, dict):
                return entry
        return {}

    def get_provider_config(self, provider: Any) -> Optional[ProviderConfig]:
        """Get configuration for one provider, or None if disabled or keyless."""
        kind = resolve_provider(provider)
        if kind is None:
            return None
        entry = self._provider_entry(kind)
        if not entry.get("enabled", False):
            return None

        api_key = self._resolve_env_var(entry.get("api_key", ""))
        if not api_key:
            return None

        return ProviderConfig(
            api_key=api_key,
            model=entry.get("model", ""),
            base_url=entry.get("base_url"),
            temperature=entry.get("temperature", 0.7),
            max_tokens=entry.get("max_tokens"),
            timeout=entry.get("timeout", 60.0),
        )

    def get_provider_configs(self) -> Dict[ProviderKind, ProviderConfig]:
        """Configs for every enabled provider with a resolved key."""
        configs = {}
        for kind in ProviderKind:
            config = self.get_provider_config(kind)
            if config is not None:
                configs[kind] = config
        return configs

    def get_enabled_providers(self) -> list[ProviderKind]:
        providers = self.data.get("providers") or {}
        enabled = []
        for name, entry in providers.items():
            kind = resolve_provider(name)
            if kind is not None and isinstance(entry, dict) and entry.get("enabled", False):
                enabled.append(kind)
        return enabled

    def get_server_configs(self) -> tuple[ServerConfig, ...]:
        return load_servers_from_config(self.data.get("servers"))

    def get_discovery_timeout(self) -> float:
        discovery = self.data.get("discovery") or {}
        return float(discovery.get("timeout", 10.0))

    def get_tools_config(self) -> Dict[str, Any]:
        defaults = {
            "separator": DEFAULT_SEPARATOR,
            "sequential_thinking": True,
        }
        config = self.data.get("tools") or {}
        return {**defaults, **config}

    def get_logging_level(self) -> str:
        return str((self.data.get("logging") or {}).get("level", "WARNING")).upper()

    def save(self) -> None:
        with open(self.config_path, "w") as f:
            yaml.safe_dump(self.data, f, default_flow_style=False, sort_keys=False)
