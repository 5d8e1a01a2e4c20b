"""
App settings merging.

Reconciles the user's app settings with the keys the Java function runtime
requires. Each key keeps track of where its value came from:

    FORCED     - always set to a fixed value, a differing user value is overwritten
    DEFAULTED  - set only when the user left it absent or empty
    USER       - passed through untouched
"""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Mapping, Optional

from appservice_deployer.constants import (
    APPINSIGHTS_INSTRUMENTATION_KEY,
    FUNCTIONS_EXTENSION_VERSION_NAME,
    FUNCTIONS_EXTENSION_VERSION_VALUE,
    FUNCTIONS_WORKER_RUNTIME_NAME,
    FUNCTIONS_WORKER_RUNTIME_VALUE,
    GUID_PATTERN,
)
from appservice_deployer.core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

FORCED_SETTINGS = {
    FUNCTIONS_WORKER_RUNTIME_NAME: FUNCTIONS_WORKER_RUNTIME_VALUE,
}

DEFAULTED_SETTINGS = {
    FUNCTIONS_EXTENSION_VERSION_NAME: FUNCTIONS_EXTENSION_VERSION_VALUE,
}


class SettingSource(Enum):
    FORCED = "forced"
    DEFAULTED = "defaulted"
    USER = "user"


@dataclass
class AppSettingsMap:
    """
    Ordered app settings with per-key provenance.

    Attributes:
        values: Setting name -> value, in insertion order
        sources: Setting name -> SettingSource
        removed: Keys that must be dropped from an existing app on update
        warnings: Warnings produced while merging
        notes: Informational notes produced while merging
    """
    values: Dict[str, str] = field(default_factory=dict)
    sources: Dict[str, SettingSource] = field(default_factory=dict)
    removed: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    notes: List[str] = field(default_factory=list)

    @classmethod
    def from_user_settings(cls, user_settings: Optional[Mapping[str, str]]) -> "AppSettingsMap":
        settings = cls()
        for name, value in (user_settings or {}).items():
            settings.set(name, value, SettingSource.USER)
        return settings

    def set(self, name: str, value: str, source: SettingSource) -> None:
        self.values[name] = value
        self.sources[name] = source
        if name in self.removed:
            self.removed.remove(name)

    def remove(self, name: str) -> None:
        self.values.pop(name, None)
        self.sources.pop(name, None)
        if name not in self.removed:
            self.removed.append(name)

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.values.get(name, default)

    def as_dict(self) -> Dict[str, str]:
        return dict(self.values)

    def __contains__(self, name: str) -> bool:
        return name in self.values

    def __getitem__(self, name: str) -> str:
        return self.values[name]

    def __len__(self) -> int:
        return len(self.values)


def merge_app_settings(user_settings: Optional[Mapping[str, str]]) -> AppSettingsMap:
    """
    Merge user settings with the forced and defaulted runtime settings.

    An empty value counts as absent. Warnings and notes are logged and kept on
    the result, they never abort the merge.

    Args:
        user_settings: The user's app settings, may be None

    Returns:
        AppSettingsMap containing every forced and defaulted key.

    Example:
        >>> merged = merge_app_settings({"FUNCTIONS_WORKER_RUNTIME": "python"})
        >>> merged["FUNCTIONS_WORKER_RUNTIME"]
        'java'
        >>> merged.warnings
        ["Function worker runtime doesn't meet the requirement, change it from python to java"]
    """
    settings = AppSettingsMap.from_user_settings(user_settings)

    for name, required in FORCED_SETTINGS.items():
        current = settings.get(name)
        if not current:
            settings.set(name, required, SettingSource.FORCED)
            note = f"Set {name} to {required}"
            settings.notes.append(note)
            logger.info(note)
        elif current != required:
            settings.set(name, required, SettingSource.FORCED)
            warning = (
                f"Function worker runtime doesn't meet the requirement, "
                f"change it from {current} to {required}"
            )
            settings.warnings.append(warning)
            logger.warning(warning)
        else:
            settings.sources[name] = SettingSource.FORCED

    for name, default in DEFAULTED_SETTINGS.items():
        if not settings.get(name):
            settings.set(name, default, SettingSource.DEFAULTED)
            note = f"Set {name} to default value {default}"
            settings.notes.append(note)
            logger.info(note)

    return settings


def is_valid_instrumentation_key(key: str) -> bool:
    return re.match(GUID_PATTERN, key) is not None


def bind_application_insights(
    settings: AppSettingsMap,
    instrumentation_key: Optional[str] = None,
    disabled: bool = False
) -> AppSettingsMap:
    """
    Bind an Application Insights instrumentation key to the app settings.

    A key already present in the app settings wins. Otherwise the explicit
    key is added unless insights are disabled. When disabled, the key is
    marked for removal so an existing app loses it on update.

    Raises:
        ConfigurationError: If the explicit key is not a GUID.
    """
    if disabled:
        if settings.get(APPINSIGHTS_INSTRUMENTATION_KEY):
            logger.warning(
                f"Application Insights is disabled, dropping {APPINSIGHTS_INSTRUMENTATION_KEY} from app settings"
            )
        settings.remove(APPINSIGHTS_INSTRUMENTATION_KEY)
        return settings

    if settings.get(APPINSIGHTS_INSTRUMENTATION_KEY):
        logger.debug(f"Using {APPINSIGHTS_INSTRUMENTATION_KEY} from app settings")
        return settings

    if instrumentation_key:
        if not is_valid_instrumentation_key(instrumentation_key):
            raise ConfigurationError(
                f"Invalid Application Insights instrumentation key '{instrumentation_key}', "
                f"it must be a GUID."
            )
        settings.set(APPINSIGHTS_INSTRUMENTATION_KEY, instrumentation_key, SettingSource.USER)
    return settings
