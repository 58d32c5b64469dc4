"""
Build settings loading and merging for ispacbuild.

Build settings let a team keep the knobs of an .ispac build (which
configuration to build, output directory, protection level, parameter
overrides, version stamping) next to the project instead of on the command
line.

Settings Layers
---------------
1. **Outer settings** (ispacbuild.yaml in any ancestor directory)
   - Shared defaults for every project below that directory
   - Outermost file is applied first

2. **Project settings** (ispacbuild.yaml next to the .dtproj)
   - Project-specific overrides

3. **Explicit settings** (--settings FILE)
   - Applied last, overrides everything found by the upward walk

Merge Behavior
--------------
The loader performs deep merging with "last wins" semantics:
  - **Dicts**: Recursively merged (keys from overlay override base)
  - **Lists**: Completely replaced (NOT appended/extended)
  - **Scalars**: Overwritten (strings, numbers, booleans)

Recognised Keys
---------------
    build:
      configuration: Development
      protection_level: EncryptSensitiveWithPassword
      output_dir: bin
    parameters:
      BatchSize: 500
    version:
      major: 1
      minor: 2
      build: 42
      comments: nightly
    description: Nightly ETL build

Passwords are never read from settings files.

Path Resolution
---------------
A relative build.output_dir is resolved against the .dtproj directory.

Error Handling
--------------
- ConfigError: YAML parse errors, empty or non-mapping files, bad key types
- ProjectFileNotFoundError: An explicit settings file does not exist
- All errors are chained with "from err" for better debugging
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from ispacbuild.exceptions import ConfigError, ProjectFileNotFoundError
from ispacbuild.logging import get_global_logger

SETTINGS_FILE_NAME = "ispacbuild.yaml"

_MAPPING_KEYS = ("build", "parameters", "version")
_SCALAR_TYPES = (str, int, float, bool)

# -------------------------------
# YAML helpers
# -------------------------------


def _load_yaml_file(p: Path) -> dict[str, Any]:
    """
    Load a settings YAML file and return its top-level mapping.

    Raises:
      ProjectFileNotFoundError - when file does not exist
      ConfigError              - invalid YAML, empty file, or non-mapping top level
    """
    if not p.is_file():
        raise ProjectFileNotFoundError(p)
    try:
        with p.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as err:
        raise ConfigError(f"Error parsing YAML: {p}: {err}") from err
    if data is None:
        raise ConfigError(f"Settings file is empty: {p}")
    if not isinstance(data, dict):
        raise ConfigError(f"Top-level YAML must be a mapping (dict): {p}")
    return data


# -------------------------------
# Merge logic
# -------------------------------


def _deep_merge_dicts(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    """
    Deep-merge two dicts with "overlay wins".

    Rules:
      - dict + dict -> deep merge
      - list + list -> overlay REPLACES base (not concatenated)
      - everything else -> overlay overwrites base

    This function does not mutate inputs; returns a new dict.
    """
    result: dict[str, Any] = dict(base)
    for k, v in overlay.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge_dicts(result[k], v)
        else:
            result[k] = v
    return result


# -------------------------------
# Settings discovery
# -------------------------------


def _find_settings_files(start_dir: Path) -> list[Path]:
    """
    Walk upward from 'start_dir' collecting ispacbuild.yaml files.
    Returns them outermost first, so later files override earlier ones.
    """
    found = []
    for parent in [start_dir] + list(start_dir.parents):
        candidate = parent / SETTINGS_FILE_NAME
        if candidate.is_file():
            found.append(candidate)
    found.reverse()
    return found


# -------------------------------
# Validation and normalisation
# -------------------------------


def _validate_settings(cfg: dict[str, Any], origin: str) -> None:
    """
    Check the types of the recognised keys. Unknown keys are left alone.
    """
    for key in _MAPPING_KEYS:
        if key in cfg and cfg[key] is not None and not isinstance(cfg[key], dict):
            raise ConfigError(f"'{key}' must be a mapping in {origin}")

    for name, value in (cfg.get("parameters") or {}).items():
        if value is not None and not isinstance(value, _SCALAR_TYPES):
            raise ConfigError(
                f"Parameter {name!r} in {origin} must be a scalar value, "
                f"got {type(value).__name__}"
            )

    description = cfg.get("description")
    if description is not None and not isinstance(description, _SCALAR_TYPES):
        raise ConfigError(f"'description' must be a string in {origin}")


def _stringify_scalars(section: dict[str, Any]) -> dict[str, str | None]:
    """YAML turns 500 into an int; parameters and versions are strings."""
    result: dict[str, str | None] = {}
    for key, value in section.items():
        if value is None:
            result[str(key)] = None
        elif isinstance(value, bool):
            result[str(key)] = "true" if value else "false"
        else:
            result[str(key)] = str(value)
    return result


def _resolve_known_paths(cfg: dict[str, Any], project_dir: Path) -> None:
    """
    Resolve build.output_dir against the project directory if relative.
    Modifies cfg in place.
    """
    build = cfg.get("build")
    if not isinstance(build, dict):
        return
    raw_path = build.get("output_dir")
    if isinstance(raw_path, str) and raw_path:
        p = Path(raw_path)
        if not p.is_absolute():
            build["output_dir"] = str((project_dir / p).resolve())


# -------------------------------
# Public API
# -------------------------------


def load_build_settings(
    project_path: Path,
    settings_path: Path | None = None,
) -> dict[str, Any]:
    """
    Load and merge the effective build settings for a project.

    Steps
      1) Collect ispacbuild.yaml files from the .dtproj directory upward.
      2) Merge them outermost first (dicts deep-merge, lists replace).
      3) Merge the explicit settings file on top, if given.
      4) Validate recognised keys and normalise parameter/version values
         to strings.
      5) Resolve build.output_dir against the project directory.

    Returns
      A merged settings dict. Missing sections are returned as empty dicts
      ("build", "parameters", "version").

    Raises
      ConfigError on YAML parse errors or invalid structure,
      ProjectFileNotFoundError if settings_path does not exist.
    """
    logger = get_global_logger()

    project_path = Path(project_path).resolve()
    project_dir = project_path.parent

    files = _find_settings_files(project_dir)
    if settings_path is not None:
        files.append(Path(settings_path).resolve())

    merged: dict[str, Any] = {}
    for settings_file in files:
        logger.verbose("CONFIG", f"Loading settings: {settings_file}")
        data = _load_yaml_file(settings_file)
        _validate_settings(data, str(settings_file))
        merged = _deep_merge_dicts(merged, data)

    if files:
        logger.verbose("CONFIG", f"Deep merged {len(files)} settings file(s)")
    else:
        logger.debug("CONFIG", "No settings files found, using defaults")

    for key in _MAPPING_KEYS:
        merged[key] = dict(merged.get(key) or {})
    merged["parameters"] = _stringify_scalars(merged["parameters"])
    merged["version"] = _stringify_scalars(merged["version"])
    if merged.get("description") is not None:
        merged["description"] = str(merged["description"])

    _resolve_known_paths(merged, project_dir)

    if "password" in merged["build"] or "new_password" in merged["build"]:
        logger.warning("CONFIG", "Passwords in settings files are ignored")
        merged["build"].pop("password", None)
        merged["build"].pop("new_password", None)

    logger.debug("CONFIG", f"Settings sources: {[str(f) for f in files]}")

    return merged
