"""
Archive build definitions loaded from YAML.

A config file holds either a single archive mapping or an ``archives`` list.
Values are layered: built-in defaults, the file's ``defaults`` mapping,
ARCHIVER_* environment variables, then the keys of each archive.

Example:

    defaults:
      type: tar.gz
      out_mode: "640"
    archives:
      - name: build/site.tar.gz
        dir: [public]
        exclude_list: [public/secret.txt]
      - name: build/notes.zip
        type: zip
        file: [README.md, {path: docs/usage.md}]
        content:
          - src: aGVsbG8K
            file_path: hello.txt
"""

import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from archive_ops.archive_builder import ArchiveBuildSpec, ContentBlock
from archive_ops.errors import ConfigurationError
from colored_logger import get_colored_logger

logger = get_colored_logger(__name__)

DEFAULT_BUILD_CONFIG: Dict[str, Any] = {
    "type": "zip",
    "out_mode": None,
    "resolve_symlink": False,
    "flatten": False,
    "exclude_list": [],
}

ENV_OVERRIDES = {
    "ARCHIVER_TYPE": "type",
    "ARCHIVER_OUT_MODE": "out_mode",
    "ARCHIVER_RESOLVE_SYMLINK": "resolve_symlink",
    "ARCHIVER_FLATTEN": "flatten",
}

ARCHIVE_KEYS = {
    "name",
    "type",
    "out_mode",
    "resolve_symlink",
    "flatten",
    "exclude_list",
    "file",
    "dir",
    "content",
}


def load_build_config(config_path: Union[str, Path]) -> List[ArchiveBuildSpec]:
    """
    Load archive definitions from a YAML file.

    Args:
        config_path: Path to the YAML file

    Returns:
        One ArchiveBuildSpec per archive, in file order

    Raises:
        ConfigurationError: If the file cannot be read or is invalid
    """
    config_file = Path(config_path)

    try:
        with open(config_file, "r", encoding="utf-8") as f:
            raw_config = yaml.safe_load(f)
    except OSError as e:
        raise ConfigurationError(f"Cannot read config file {config_file}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {config_file}: {e}") from e

    specs = parse_build_config(raw_config)
    logger.debug("Loaded %d archive definitions from %s", len(specs), config_file)
    return specs


def parse_build_config(
    raw_config: Any, environ: Optional[Dict[str, str]] = None
) -> List[ArchiveBuildSpec]:
    """
    Turn an already parsed YAML document into archive definitions.

    Args:
        raw_config: Result of ``yaml.safe_load``
        environ: Environment to read overrides from (default: os.environ)

    Raises:
        ConfigurationError: If the document does not describe any archive
    """
    if not isinstance(raw_config, dict):
        raise ConfigurationError("Config must be a mapping")

    file_defaults = raw_config.get("defaults") or {}
    if not isinstance(file_defaults, dict):
        raise ConfigurationError("'defaults' must be a mapping")

    defaults = _deep_merge(DEFAULT_BUILD_CONFIG, file_defaults)
    defaults = _apply_env_overrides(defaults, os.environ if environ is None else environ)

    if "archives" in raw_config:
        archives = raw_config["archives"]
        if not isinstance(archives, list) or not archives:
            raise ConfigurationError("'archives' must be a non-empty list")
    else:
        archives = [{k: v for k, v in raw_config.items() if k != "defaults"}]

    return [
        _build_spec(_deep_merge(defaults, archive), index)
        for index, archive in enumerate(_require_mappings(archives))
    ]


def _require_mappings(archives: List[Any]) -> List[Dict[str, Any]]:
    for index, archive in enumerate(archives):
        if not isinstance(archive, dict):
            raise ConfigurationError(f"Archive #{index + 1} must be a mapping")
    return archives


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """
    Deep merge two dictionaries.

    Args:
        base: Base dictionary
        override: Dictionary to merge into base

    Returns:
        Merged dictionary
    """
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def _apply_env_overrides(
    config: Dict[str, Any], environ: Dict[str, str]
) -> Dict[str, Any]:
    """
    Apply ARCHIVER_* environment variables to the defaults.

    Example: ARCHIVER_TYPE=tar.gz, ARCHIVER_FLATTEN=true
    """
    result = config.copy()

    for env_key, config_key in ENV_OVERRIDES.items():
        if env_key not in environ:
            continue
        env_value = environ[env_key]
        if config_key in ("resolve_symlink", "flatten"):
            result[config_key] = _convert_env_bool(env_key, env_value)
        else:
            result[config_key] = env_value.strip()
        logger.debug("Config override from %s: %s", env_key, env_value)

    return result


def _convert_env_bool(env_key: str, value: str) -> bool:
    if value.lower() in ("true", "yes", "1", "on"):
        return True
    if value.lower() in ("false", "no", "0", "off"):
        return False
    raise ConfigurationError(f"{env_key} must be a boolean, got {value!r}")


def _build_spec(archive: Dict[str, Any], index: int) -> ArchiveBuildSpec:
    label = f"Archive #{index + 1}"

    unknown = sorted(set(archive) - ARCHIVE_KEYS)
    if unknown:
        logger.warning("%s: ignoring unknown keys %s", label, ", ".join(unknown))

    name = archive.get("name")
    if not isinstance(name, str) or not name.strip():
        raise ConfigurationError(f"{label}: 'name' is required")
    label = f"Archive {name!r}"

    archive_type = archive.get("type")
    if not isinstance(archive_type, str):
        raise ConfigurationError(f"{label}: 'type' must be a string")

    out_mode = archive.get("out_mode")
    if out_mode is not None and not isinstance(out_mode, str):
        # Unquoted YAML numbers lose their octal meaning (0644 loads as 420)
        raise ConfigurationError(
            f"{label}: 'out_mode' must be a quoted octal string such as \"644\""
        )

    return ArchiveBuildSpec(
        name=name,
        type=archive_type,
        out_mode=out_mode,
        resolve_symlink=_require_bool(archive, "resolve_symlink", label),
        flatten=_require_bool(archive, "flatten", label),
        exclude_list=tuple(_require_str_list(archive, "exclude_list", label)),
        files=tuple(_path_entries(archive, "file", label)),
        dirs=tuple(_path_entries(archive, "dir", label)),
        contents=tuple(_content_entries(archive, label)),
    )


def _require_bool(archive: Dict[str, Any], key: str, label: str) -> bool:
    value = archive.get(key, False)
    if not isinstance(value, bool):
        raise ConfigurationError(f"{label}: '{key}' must be true or false")
    return value


def _require_str_list(archive: Dict[str, Any], key: str, label: str) -> List[str]:
    values = archive.get(key) or []
    if not isinstance(values, list) or not all(isinstance(v, str) for v in values):
        raise ConfigurationError(f"{label}: '{key}' must be a list of paths")
    return values


def _path_entries(archive: Dict[str, Any], key: str, label: str) -> List[str]:
    entries = archive.get(key) or []
    if not isinstance(entries, list):
        raise ConfigurationError(f"{label}: '{key}' must be a list")

    paths = []
    for entry in entries:
        if isinstance(entry, dict):
            entry = entry.get("path")
        if not isinstance(entry, str) or not entry:
            raise ConfigurationError(
                f"{label}: each '{key}' entry needs a path string"
            )
        paths.append(entry)
    return paths


def _content_entries(archive: Dict[str, Any], label: str) -> List[ContentBlock]:
    entries = archive.get("content") or []
    if not isinstance(entries, list):
        raise ConfigurationError(f"{label}: 'content' must be a list")

    blocks = []
    for entry in entries:
        if not isinstance(entry, dict):
            raise ConfigurationError(f"{label}: each 'content' entry must be a mapping")
        src = entry.get("src")
        file_path = entry.get("file_path")
        if not isinstance(src, str) or not isinstance(file_path, str) or not file_path:
            raise ConfigurationError(
                f"{label}: 'content' entries need 'src' and 'file_path' strings"
            )
        blocks.append(ContentBlock(src=src, file_path=file_path))
    return blocks
