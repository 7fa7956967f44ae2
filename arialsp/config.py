"""Client settings.

Settings use the editor's camelCase keys (``aria.lsp.serverPath``) as
aliases so a settings file written for the editor can be loaded directly.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Set

from pydantic import BaseModel, ConfigDict, Field

from arialsp.utils.events import EventEmitter

logger = logging.getLogger("arialsp.config")

SECTION = "aria"


class LspSettings(BaseModel):
    """Language server settings."""

    model_config = ConfigDict(populate_by_name=True)

    server_path: Optional[str] = Field(
        default=None,
        alias="serverPath",
        description="Path to the language server executable",
    )


class InlayHintSettings(BaseModel):
    """Inlay hint overlay settings."""

    model_config = ConfigDict(populate_by_name=True)

    enabled: bool = Field(default=True, description="Show inlay hints from the server")
    request_timeout: float = Field(
        default=5.0,
        gt=0,
        alias="requestTimeout",
        description="Seconds to wait for a custom/inlay_hint response",
    )


class AriaSettings(BaseModel):
    """All settings under the ``aria`` section."""

    model_config = ConfigDict(populate_by_name=True)

    lsp: LspSettings = Field(default_factory=LspSettings)
    inlay_hints: InlayHintSettings = Field(default_factory=InlayHintSettings, alias="inlayHints")


def _flatten(data: Dict[str, Any], prefix: str) -> Dict[str, Any]:
    flat: Dict[str, Any] = {}
    for key, value in data.items():
        name = f"{prefix}.{key}"
        if isinstance(value, dict):
            flat.update(_flatten(value, name))
        else:
            flat[name] = value
    return flat


def flatten_settings(settings: AriaSettings) -> Dict[str, Any]:
    """Flatten settings into dotted editor keys, e.g. ``aria.lsp.serverPath``."""
    return _flatten(settings.model_dump(by_alias=True), SECTION)


class ConfigurationChangeEvent:
    """Describes which settings keys changed."""

    def __init__(self, changed_keys: Set[str]):
        self.changed_keys = changed_keys

    def affects_configuration(self, section: str) -> bool:
        """Check whether a section or key was changed.

        Args:
            section: Dotted section, e.g. ``aria.inlayHints``.

        Returns:
            True if the section itself or any key below it changed.
        """
        return any(key == section or key.startswith(section + ".") for key in self.changed_keys)


class Configuration:
    """Holds the current settings and notifies listeners when they change."""

    def __init__(self, settings: Optional[AriaSettings] = None):
        self.settings = settings or AriaSettings()
        self.on_did_change_configuration: EventEmitter[ConfigurationChangeEvent] = EventEmitter(
            "onDidChangeConfiguration"
        )

    @classmethod
    def from_file(cls, path: str) -> "Configuration":
        """Load settings from a JSON file.

        The file may either hold the ``aria`` section directly or a mapping
        with an ``aria`` key.

        Args:
            path: Path to the settings file.

        Returns:
            The loaded configuration.
        """
        file_path = Path(path)
        if not file_path.is_file():
            raise ValueError(f"Settings file not found: {path}")

        data = json.loads(file_path.read_text(encoding="utf-8"))
        if SECTION in data:
            data = data[SECTION]
        logger.info(f"Loaded settings from {path}")
        return cls(AriaSettings.model_validate(data))

    def update(self, settings: AriaSettings) -> ConfigurationChangeEvent:
        """Replace the settings and fire a change event if anything changed.

        Call this on the event loop: asynchronous listeners are scheduled as
        tasks and are not run when no loop is running.

        Args:
            settings: The new settings.

        Returns:
            The change event (possibly with no changed keys).
        """
        before = flatten_settings(self.settings)
        after = flatten_settings(settings)
        changed = {key for key in before.keys() | after.keys() if before.get(key) != after.get(key)}
        self.settings = settings
        event = ConfigurationChangeEvent(changed)
        if changed:
            logger.debug(f"Configuration changed: {sorted(changed)}")
            self.on_did_change_configuration.fire(event)
        return event
