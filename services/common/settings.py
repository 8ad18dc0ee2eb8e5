"""
Settings base class used instead of pydantic_settings.

Values are resolved from keyword arguments, then environment variables
(including aliases), then a ``.env`` file, then the declared default.
Tests swap configuration by setting environment variables and resetting a
service's cached settings object.
"""

from __future__ import annotations

import json
import os
from abc import ABC
from pathlib import Path
from typing import Any, Dict, List, Optional, Type, TypeVar, Union, get_type_hints

T = TypeVar("T", bound="BaseSettings")


class AliasChoices:
    """Multiple environment variable names accepted for one field."""

    def __init__(self, *choices: str) -> None:
        self.choices = list(choices)


class FieldInfo:
    """Information about a field in a settings class."""

    def __init__(
        self,
        default: Any = None,
        description: str = "",
        validation_alias: Optional[Union[str, list, AliasChoices]] = None,
        required: bool = False,
    ) -> None:
        self.default = default
        self.description = description
        self.validation_alias = validation_alias
        self.required = required


def Field(
    default: Any = None,
    *,
    description: str = "",
    validation_alias: Optional[Union[str, list, AliasChoices]] = None,
    **kwargs: Any,
) -> Any:
    """Create a field descriptor for settings. ``default=...`` marks it required."""
    required = default is ...
    return FieldInfo(
        default=None if required else default,
        description=description,
        validation_alias=validation_alias,
        required=required,
    )


class SettingsConfigDict:
    """Configuration for settings loading."""

    def __init__(
        self,
        env_file: Optional[str] = None,
        env_file_encoding: str = "utf-8",
        case_sensitive: bool = True,
        extra: str = "forbid",
    ) -> None:
        self.env_file = env_file
        self.env_file_encoding = env_file_encoding
        self.case_sensitive = case_sensitive
        self.extra = extra


class BaseSettings(ABC):
    """Base class for settings that loads from environment variables."""

    model_config: SettingsConfigDict = SettingsConfigDict()

    def __init__(self, **kwargs: Any) -> None:
        env_file_vars: Dict[str, str] = {}
        if self.model_config.env_file:
            env_file_vars = self._load_env_file(self.model_config.env_file)

        for field_name, field_type in get_type_hints(self.__class__).items():
            if field_name.startswith("_") or field_name == "model_config":
                continue

            declared = getattr(self.__class__, field_name, None)
            if isinstance(declared, FieldInfo):
                info = declared
            else:
                info = FieldInfo(default=declared)

            if field_name in kwargs:
                value = kwargs[field_name]
            else:
                value = self._lookup(field_name, info, env_file_vars)
                if value is None:
                    if info.required:
                        raise ValueError(
                            f"Required field '{field_name}' not found in environment"
                        )
                    value = info.default

            if value is not None:
                value = self._convert_value(value, field_type)
            setattr(self, field_name, value)

    def _env_names(self, field_name: str, info: FieldInfo) -> List[str]:
        names: List[str] = []
        alias = info.validation_alias
        if isinstance(alias, AliasChoices):
            names.extend(alias.choices)
        elif isinstance(alias, list):
            names.extend(alias)
        elif alias:
            names.append(alias)
        names.append(field_name.upper())
        if not self.model_config.case_sensitive:
            names.extend([name.lower() for name in names])
        return names

    def _lookup(
        self, field_name: str, info: FieldInfo, env_file_vars: Dict[str, str]
    ) -> Optional[str]:
        for env_name in self._env_names(field_name, info):
            if env_name in os.environ:
                return os.environ[env_name]
            if env_name in env_file_vars:
                return env_file_vars[env_name]
        return None

    def _load_env_file(self, env_file_path: str) -> Dict[str, str]:
        """Load KEY=VALUE pairs from a .env file, ignoring comments."""
        env_vars: Dict[str, str] = {}
        env_path = Path(env_file_path)
        if not env_path.exists():
            return env_vars

        with open(env_path, "r", encoding=self.model_config.env_file_encoding) as f:
            for line in f:
                line = line.strip()
                if line and not line.startswith("#") and "=" in line:
                    key, value = line.split("=", 1)
                    env_vars[key.strip()] = value.strip().strip("\"'")
        return env_vars

    def _convert_value(self, value: Any, target_type: Type) -> Any:
        """Convert a string value to the target type."""
        if not isinstance(value, str):
            return value

        if target_type is bool:
            return value.lower() in ("true", "1", "yes", "on")
        if target_type is int:
            return int(value)
        if target_type is float:
            return float(value)

        origin = getattr(target_type, "__origin__", None)
        if origin is list:
            if value.startswith("[") and value.endswith("]"):
                return json.loads(value)
            items = [item.strip() for item in value.split(",") if item.strip()]
            item_types = getattr(target_type, "__args__", ())
            if item_types:
                return [self._convert_value(item, item_types[0]) for item in items]
            return items

        if origin is Union:
            non_none_types = [
                arg for arg in target_type.__args__ if arg is not type(None)
            ]
            if non_none_types:
                return self._convert_value(value, non_none_types[0])

        return value
