"""Settings dataclasses and the read-only settings loader."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping

__all__ = [
    "Settings",
    "SettingsStore",
    "BrowserUseSettings",
    "AssistantBrowserUse",
    "redact_secret",
]

LOGGER = logging.getLogger(__name__)
_DEFAULT_SETTINGS_PATH = Path.home() / ".aicore" / "settings.json"
_ENV_OVERRIDES: Mapping[str, str] = {
    "AICORE_API_KEY": "api_key",
    "AICORE_BASE_URL": "base_url",
    "AICORE_MODEL": "model",
    "AICORE_ORGANIZATION": "organization",
}
_BOOL_ENV_OVERRIDES: Mapping[str, str] = {
    "AICORE_DEBUG_LOGGING": "debug_logging",
}
_FLOAT_ENV_OVERRIDES: Mapping[str, str] = {
    "AICORE_REQUEST_TIMEOUT": "request_timeout",
    "AICORE_TEMPERATURE": "temperature",
}
_INT_ENV_OVERRIDES: Mapping[str, str] = {
    "AICORE_MAX_RETRIES": "max_retries",
    "AICORE_MAX_TOOL_ITERATIONS": "max_tool_iterations",
}
# Browser-use overrides target the nested ``browser_use`` section.
_BROWSER_ENV_OVERRIDES: Mapping[str, tuple[str, str]] = {
    "AICORE_BROWSER_ENABLED": ("enabled", "bool"),
    "AICORE_BROWSER_TOOLSET": ("toolset", "str"),
    "AICORE_BROWSER_MAX_SNAPSHOT_SIZE": ("max_snapshot_size", "int"),
    "AICORE_BROWSER_TRACKING": ("enable_tracking", "bool"),
    "AICORE_BROWSER_COMMAND_TIMEOUT": ("command_timeout", "float"),
}
_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}


@dataclass(slots=True)
class BrowserUseSettings:
    """Global browser-automation toggles."""

    enabled: bool = False
    toolset: str = "standard"
    max_snapshot_size: int = 50_000
    enable_screencast: bool = False
    enable_tracking: bool = False
    inject_system_prompt: bool = True
    command_timeout: float = 30.0


@dataclass(slots=True)
class AssistantBrowserUse:
    """Per-assistant override of the browser toolset."""

    enabled: bool = False
    toolset: str = "standard"


@dataclass(slots=True)
class Settings:
    """User-configurable settings read at startup."""

    base_url: str = "https://api.openai.com/v1"
    api_key: str = ""
    model: str = "gpt-4o-mini"
    temperature: float = 0.2
    organization: str | None = None
    request_timeout: float = 90.0
    max_retries: int = 3
    retry_min_seconds: float = 0.5
    retry_max_seconds: float = 6.0
    max_tool_iterations: int = 8
    default_headers: dict[str, str] = field(default_factory=dict)
    debug_logging: bool = False
    browser_use: BrowserUseSettings = field(default_factory=BrowserUseSettings)
    assistants: dict[str, AssistantBrowserUse] = field(default_factory=dict)

    def browser_use_for(self, assistant_id: str | None = None) -> AssistantBrowserUse:
        """Resolve the effective toggle and toolset for one assistant.

        Without an assistant id the global section applies. An assistant
        that has no override stays disabled and inherits the global toolset.
        """

        if assistant_id is None:
            return AssistantBrowserUse(enabled=self.browser_use.enabled, toolset=self.browser_use.toolset)
        override = self.assistants.get(assistant_id)
        if override is None:
            return AssistantBrowserUse(enabled=False, toolset=self.browser_use.toolset)
        return override


class SettingsStore:
    """Read-only loader for :class:`Settings`.

    The core never writes settings; persistence belongs to the host
    application. Missing or unreadable files produce defaults.
    """

    def __init__(self, path: Path | str | None = None) -> None:
        self._path = Path(path) if path is not None else _DEFAULT_SETTINGS_PATH

    @property
    def path(self) -> Path:
        """Return the resolved path backing this store."""

        return self._path

    def load(self, *, overrides: Mapping[str, Any] | None = None) -> Settings:
        """Load settings from disk, applying runtime/environment overrides when present."""

        payload = self._read_payload()
        settings = Settings()
        if payload:
            data = _filter_fields(payload)
            data["browser_use"] = _build_section(BrowserUseSettings, data.get("browser_use"), "browser_use")
            data["assistants"] = _build_assistants(data.get("assistants"))
            try:
                settings = Settings(**data)
            except TypeError as exc:
                LOGGER.warning("Settings payload contained unexpected data: %s", exc)
                settings = Settings()

        if overrides:
            settings = self._apply_overrides(settings, overrides, source="runtime")

        settings = self._apply_env_overrides(settings)
        LOGGER.debug(
            "Settings loaded from %s (model=%s, api_key=%s, browser_use=%s)",
            self._path,
            settings.model,
            redact_secret(settings.api_key),
            settings.browser_use.enabled,
        )
        return settings

    def _read_payload(self) -> Dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            payload = json.loads(self._path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except (OSError, json.JSONDecodeError) as exc:
            LOGGER.warning("Settings file %s is not valid JSON: %s", self._path, exc)
            return {}
        if not isinstance(payload, dict):
            LOGGER.warning("Settings file %s does not contain an object", self._path)
            return {}
        return payload

    def _apply_overrides(
        self,
        settings: Settings,
        overrides: Mapping[str, Any],
        *,
        source: str = "runtime",
    ) -> Settings:
        allowed = {field.name for field in fields(Settings)}
        filtered: Dict[str, Any] = {}
        for key, value in overrides.items():
            if key not in allowed or value is None:
                continue
            filtered[key] = value
        if filtered:
            LOGGER.debug("Applying %s settings overrides: %s", source, sorted(filtered))
            settings = replace(settings, **filtered)
        return settings

    def _apply_env_overrides(self, settings: Settings) -> Settings:
        overrides: Dict[str, Any] = {}
        for env_name, field_name in _ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is not None:
                overrides[field_name] = value
        for env_name, field_name in _BOOL_ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is not None:
                overrides[field_name] = value.strip().lower() in _TRUE_VALUES
        for env_name, field_name in _INT_ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is None:
                continue
            try:
                overrides[field_name] = int(value, 10)
            except ValueError:
                LOGGER.warning("Environment override %s=%s is not a valid integer", env_name, value)
        for env_name, field_name in _FLOAT_ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is None:
                continue
            try:
                overrides[field_name] = float(value)
            except ValueError:
                LOGGER.warning("Environment override %s=%s is not a valid float", env_name, value)

        browser_overrides: Dict[str, Any] = {}
        for env_name, (field_name, kind) in _BROWSER_ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is None:
                continue
            try:
                browser_overrides[field_name] = _convert(value, kind)
            except ValueError:
                LOGGER.warning("Environment override %s=%s is not a valid %s", env_name, value, kind)
        if browser_overrides:
            overrides["browser_use"] = replace(settings.browser_use, **browser_overrides)

        if overrides:
            settings = self._apply_overrides(settings, overrides, source="environment")
        return settings


def _convert(value: str, kind: str) -> Any:
    if kind == "bool":
        return value.strip().lower() in _TRUE_VALUES
    if kind == "int":
        return int(value, 10)
    if kind == "float":
        return float(value)
    return value


def _filter_fields(payload: Mapping[str, Any]) -> Dict[str, Any]:
    allowed = {field.name for field in fields(Settings)}
    return {key: value for key, value in payload.items() if key in allowed}


def _build_section(cls: type, payload: Any, label: str) -> Any:
    if not isinstance(payload, Mapping):
        return cls()
    allowed = {field.name for field in fields(cls)}
    try:
        return cls(**{key: value for key, value in payload.items() if key in allowed})
    except TypeError as exc:  # pragma: no cover - filtered above
        LOGGER.warning("Settings section %s is invalid: %s", label, exc)
        return cls()


def _build_assistants(payload: Any) -> dict[str, AssistantBrowserUse]:
    if not isinstance(payload, Mapping):
        return {}
    result: dict[str, AssistantBrowserUse] = {}
    for assistant_id, entry in payload.items():
        result[str(assistant_id)] = _build_section(AssistantBrowserUse, entry, f"assistants.{assistant_id}")
    return result


def redact_secret(value: str) -> str:
    stripped = (value or "").strip()
    if not stripped:
        return ""
    if len(stripped) <= 4:
        return "*" * len(stripped)
    return f"{stripped[:2]}{'*' * (len(stripped) - 4)}{stripped[-2:]}"
