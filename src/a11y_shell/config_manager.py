# src/a11y_shell/config_manager.py
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

from a11y_auditor.model import AuditConfig, EngineConfig
from a11y_extraction.model import ExtractionOptions
from a11y_providers.model import ProviderConfig, ProviderKind
from a11y_rules.presets import apply_preset

logger = logging.getLogger(__name__)

SETTINGS_PATH = Path(__file__).resolve().parent / "settings.json"


class ConfigManager:
    """
    Singleton holding the CLI configuration.
    Defaults come from settings.json; changes made at runtime stay in memory.
    """
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super(ConfigManager, cls).__new__(cls)
            cls._instance._initialize()
        return cls._instance

    def _initialize(self):
        self._config: Dict[str, Any] = {}
        self.reset()

    def get_all(self) -> Dict[str, Any]:
        return self._config

    def get_nested(self, key_path: str, default: Optional[Any] = None) -> Any:
        """Looks up a dotted path such as 'batch.concurrency'."""
        value = self._config
        for key in key_path.split("."):
            if not isinstance(value, dict):
                return default
            value = value.get(key)
        return value if value is not None else default

    def set_nested(self, key_path: str, value: Any) -> bool:
        """
        Sets a dotted path in memory. When the key already holds a value the
        new one is cast to that type, so '5' stays an int for 'batch.concurrency'.
        """
        keys = key_path.split(".")
        d = self._config
        for key in keys[:-1]:
            d = d.setdefault(key, {})
            if not isinstance(d, dict):
                logger.error("Cannot set value: '%s' is not a section.", key)
                return False

        original_value = d.get(keys[-1])
        if original_value is not None:
            value = self._cast(key_path, value, original_value)

        d[keys[-1]] = value
        logger.debug("Configuration updated: %s = %s", key_path, value)
        return True

    @staticmethod
    def _cast(key_path: str, value: Any, original_value: Any) -> Any:
        if isinstance(original_value, bool) and isinstance(value, str):
            return value.strip().lower() in ("1", "true", "yes", "on")
        try:
            return type(original_value)(value)
        except (ValueError, TypeError):
            logger.warning(
                "Could not cast new value for '%s' to type %s. Storing as given.",
                key_path, type(original_value).__name__,
            )
            return value

    def reset(self):
        """Reloads the configuration from settings.json."""
        if not SETTINGS_PATH.exists():
            logger.warning("settings.json not found at %s. Using empty config.", SETTINGS_PATH)
            self._config = {}
            return
        try:
            with open(SETTINGS_PATH, "r", encoding="utf-8") as f:
                self._config = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error("Failed to load settings.json: %s", e, exc_info=True)
            self._config = {}


config_manager = ConfigManager()


def _provider_config(settings: ConfigManager, overrides: Dict[str, Any]) -> ProviderConfig:
    kind = overrides.get("provider") or settings.get_nested("provider.kind", "mock")
    api_key_env = settings.get_nested("provider.api_key_env", "A11Y_AUDIT_API_KEY")
    return ProviderConfig(
        provider=ProviderKind(kind),
        api_key=overrides.get("api_key") or os.environ.get(api_key_env) or None,
        model=overrides.get("model") or settings.get_nested("provider.model") or None,
        base_url=settings.get_nested("provider.base_url") or None,
        timeout_ms=settings.get_nested("provider.timeout_ms", 30_000),
        max_retries=settings.get_nested("provider.max_retries", 3),
        rpm=settings.get_nested("provider.rpm") or None,
    )


def build_audit_config(
        overrides: Optional[Dict[str, Any]] = None,
        settings: Optional[ConfigManager] = None,
) -> AuditConfig:
    """
    Builds a validated AuditConfig from settings.json plus command-line
    overrides (`preset`, `provider`, `model`, `api_key`, `concurrency`,
    `browser`). None-valued overrides are ignored.
    """
    settings = settings or config_manager
    overrides = {k: v for k, v in (overrides or {}).items() if v is not None}

    config = AuditConfig(
        parallelism=settings.get_nested("audit.parallelism", 3),
        rule_timeout_ms=settings.get_nested("audit.rule_timeout_ms", 60_000),
        overall_timeout_ms=settings.get_nested("audit.overall_timeout_ms", 300_000),
        cache_enabled=settings.get_nested("audit.cache_enabled", True),
        cache_ttl_ms=settings.get_nested("audit.cache_ttl_ms", 3_600_000),
        vision=settings.get_nested("audit.vision", False),
        max_vision_images=settings.get_nested("audit.max_vision_images", 20),
        concurrency=overrides.get("concurrency") or settings.get_nested("batch.concurrency", 3),
        ai_provider=_provider_config(settings, overrides),
        extraction=ExtractionOptions(browser=overrides.get("browser") or settings.get_nested("batch.browser", "auto")),
        engine=EngineConfig(),
    )

    preset = overrides.get("preset") or settings.get_nested("audit.preset", "standard")
    return apply_preset(config, preset)
