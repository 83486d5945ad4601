"""
Config file sources for Mimir.

A knowledge base is configured from at most a user file, a project file and
one explicit file. Each file becomes one settings source; the sources are
merged in order by `MimirConfig.load_hierarchical`.
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Type, Union

import yaml
from loguru import logger
from pydantic.fields import FieldInfo
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource

from core.exceptions import ConfigurationError

# Checked in this order inside each search directory
CONFIG_FILE_NAMES = [
    'mimir.yaml',
    'mimir.yml',
    'mimir.json',
    '.mimir.yaml',
    '.mimir.yml',
    '.mimir.json',
]

USER_CONFIG_DIR = Path('.config') / 'mimir'


def deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Merge nested dictionaries; values from `override` win."""
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class ConfigFileSource(PydanticBaseSettingsSource):
    """Settings read from one YAML or JSON file.

    An optional file that is missing or unreadable contributes nothing and
    logs a warning. A required file raises ConfigurationError instead.
    """

    format_name = 'config'

    def __init__(self, settings_cls: Type[BaseSettings], path: Union[str, Path], required: bool = False):
        super().__init__(settings_cls)
        self.path = Path(path)
        self.required = required
        self._data = self._read()

    def parse(self, text: str) -> Any:
        raise NotImplementedError

    def _read(self) -> Dict[str, Any]:
        if not self.path.is_file():
            return self._skip("not found")

        try:
            data = self.parse(self.path.read_text(encoding='utf-8'))
        except (OSError, ValueError, yaml.YAMLError) as e:
            return self._skip(f"failed to load: {e}", e)

        if data is None:
            return {}
        if not isinstance(data, dict):
            return self._skip(f"expected a mapping at the top level, got {type(data).__name__}")

        logger.debug(f"Loaded {self.format_name} config from {self.path}")
        return data

    def _skip(self, reason: str, cause: Optional[Exception] = None) -> Dict[str, Any]:
        if self.required:
            raise ConfigurationError("config_file", str(self.path), reason) from cause
        logger.warning(f"Ignoring config file {self.path}: {reason}")
        return {}

    def get_field_value(self, field: FieldInfo, field_name: str) -> Tuple[Any, str, bool]:
        if field_name in self._data:
            return self._data[field_name], field_name, True
        return None, field_name, False

    def __call__(self) -> Dict[str, Any]:
        return self._data

    def __repr__(self) -> str:
        return f'{self.__class__.__name__}({self.path})'


class YamlConfigSettingsSource(ConfigFileSource):
    """Config file in YAML."""

    format_name = 'YAML'

    def parse(self, text: str) -> Any:
        return yaml.safe_load(text)


class JsonConfigSettingsSource(ConfigFileSource):
    """Config file in JSON."""

    format_name = 'JSON'

    def parse(self, text: str) -> Any:
        return json.loads(text)


_SOURCES_BY_SUFFIX: Dict[str, Type[ConfigFileSource]] = {
    '.yaml': YamlConfigSettingsSource,
    '.yml': YamlConfigSettingsSource,
    '.json': JsonConfigSettingsSource,
}


def create_config_sources(
    settings_cls: Type[BaseSettings],
    config_files: Optional[List[Union[str, Path]]] = None,
    required: bool = False,
) -> List[ConfigFileSource]:
    """
    Create one settings source per config file, keeping the given order.

    Args:
        settings_cls: Settings class the sources feed
        config_files: Files to read, lowest priority first
        required: Fail on missing or unreadable files instead of warning

    Returns:
        Settings sources in the same order as `config_files`

    Raises:
        ConfigurationError: If a file has an unsupported extension
    """
    sources: List[ConfigFileSource] = []
    for config_file in config_files or []:
        path = Path(config_file)
        source_cls = _SOURCES_BY_SUFFIX.get(path.suffix.lower())
        if source_cls is None:
            raise ConfigurationError(
                "config_file", str(path), f"Unsupported format, expected one of {sorted(_SOURCES_BY_SUFFIX)}"
            )
        sources.append(source_cls(settings_cls, path, required))
    return sources


def find_config_files(search_dirs: Optional[List[Union[str, Path]]] = None) -> List[Path]:
    """
    Find config files, lowest priority first.

    Args:
        search_dirs: Directories to search (defaults to the user config
            directory followed by the working directory)

    Returns:
        Existing config files in `search_dirs` order
    """
    if search_dirs is None:
        search_dirs = [Path.home() / USER_CONFIG_DIR, Path.cwd()]

    found: List[Path] = []
    for directory in map(Path, search_dirs):
        found.extend(
            directory / name for name in CONFIG_FILE_NAMES
            if (directory / name).is_file()
        )
    return found
