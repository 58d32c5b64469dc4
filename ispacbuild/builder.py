# Copyright 2025 Roger Cibrian
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Build orchestration for ispacbuild.

This module turns an SSIS source layout (.dtproj plus sibling files) into a
deployable .ispac archive, combining build settings from ispacbuild.yaml
files with explicit overrides.

Build Process:

1. Load build settings (ispacbuild.yaml layers plus --settings)
2. Load the project from the .dtproj with the chosen configuration
3. Apply parameter overrides, version fields and description
4. Save <output_dir>/<project name>.ispac

Resolution Order (first wins):

- configuration: argument, build.configuration, "Development"
- output_dir: argument, build.output_dir, <project dir>/bin/<configuration>
- protection_level: argument, build.protection_level, the manifest's level
  (DontSaveSensitive if the manifest declares a user-key level)
- parameters: explicit overrides are applied on top of settings parameters

Example:
    Build with defaults from ispacbuild.yaml:

        from pathlib import Path
        from ispacbuild.builder import build_project

        result = build_project(Path("Etl/Etl.dtproj"))
        print(result.output_path)

    Re-encrypt under a new password:

        result = build_project(
            Path("Etl/Etl.dtproj"),
            configuration="Production",
            protection_level="EncryptSensitiveWithPassword",
            password="old",
            new_password="new",
        )

"""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path

from ispacbuild.config import load_build_settings
from ispacbuild.exceptions import ConfigError
from ispacbuild.logging import get_global_logger
from ispacbuild.parameters import ParameterSource
from ispacbuild.project import Project
from ispacbuild.protection import ProtectionLevel
from ispacbuild.results import BuildResult

DEFAULT_CONFIGURATION = "Development"

_VERSION_FIELDS = {
    "major": "version_major",
    "minor": "version_minor",
    "build": "version_build",
    "comments": "version_comments",
}


def _resolve_protection_level(
    requested: ProtectionLevel | str | None, project: Project
) -> ProtectionLevel:
    """Pick the level to save with; fall back to the manifest's own level."""
    logger = get_global_logger()

    if isinstance(requested, ProtectionLevel):
        return requested
    if requested:
        try:
            return ProtectionLevel.from_name(requested)
        except ValueError as err:
            raise ConfigError(str(err)) from err

    declared = project.protection_level
    if declared.is_saveable:
        return declared

    logger.warning(
        "BUILD",
        f"Manifest protection level {declared} cannot be written, "
        f"saving with {ProtectionLevel.DONT_SAVE_SENSITIVE}",
    )
    return ProtectionLevel.DONT_SAVE_SENSITIVE


def _apply_overrides(
    project: Project, overrides: Mapping[str, str | None]
) -> tuple[str, ...]:
    logger = get_global_logger()
    applied = []
    for name, value in overrides.items():
        if project.update_parameter(name, value, ParameterSource.MANUAL):
            logger.verbose("BUILD", f"Override applied: {name}")
            applied.append(name)
        else:
            logger.warning("BUILD", f"Parameter not found, override ignored: {name}")
    return tuple(applied)


def build_project(
    project_path: Path,
    *,
    configuration: str | None = None,
    output_dir: Path | None = None,
    protection_level: ProtectionLevel | str | None = None,
    password: str | None = None,
    new_password: str | None = None,
    parameters: Mapping[str, str | None] | None = None,
    settings_path: Path | None = None,
) -> BuildResult:
    """Build an .ispac archive from a .dtproj source layout.

    Args:
        project_path: Path to the .dtproj file.
        configuration: Build configuration to apply. Default: from settings
            or "Development".
        output_dir: Directory for the .ispac. Default: from settings or
            <project dir>/bin/<configuration>.
        protection_level: Level to save with, as an enum or its name.
            Default: from settings or the manifest's level.
        password: Password used to read protected source files. Also used
            to encrypt the output when new_password is not given.
        new_password: Password used to encrypt the output archive.
        parameters: Parameter overrides (name -> value), applied with
            ParameterSource.MANUAL after settings parameters.
        settings_path: Explicit settings file merged over the discovered ones.

    Returns:
        BuildResult describing the written archive.

    Raises:
        ConfigError: If settings are invalid or name an unknown protection level.
        IspacBuildError: Any load or save failure from Project.

    Note:
        Unknown parameter names are reported as warnings and otherwise
        ignored, the same way Project.update_parameter treats them.
    """
    logger = get_global_logger()
    project_path = Path(project_path).resolve()

    logger.step(1, 4, "Loading build settings...")
    settings = load_build_settings(project_path, settings_path)
    build_settings = settings["build"]

    configuration = configuration or build_settings.get("configuration") or DEFAULT_CONFIGURATION
    configuration = str(configuration)

    if output_dir is None:
        configured_dir = build_settings.get("output_dir")
        if configured_dir:
            output_dir = Path(configured_dir)
        else:
            output_dir = project_path.parent / "bin" / configuration
    output_dir = Path(output_dir)

    logger.step(2, 4, f"Loading project ({configuration})...")
    project = Project().load_from_dtproj(project_path, configuration, password)

    logger.step(3, 4, "Applying overrides...")
    overrides: dict[str, str | None] = dict(settings["parameters"])
    if parameters:
        overrides.update(parameters)
    applied = _apply_overrides(project, overrides)

    for key, attribute in _VERSION_FIELDS.items():
        value = settings["version"].get(key)
        if value is not None:
            logger.verbose("BUILD", f"Setting {attribute} = {value}")
            setattr(project, attribute, value)
    if settings.get("description") is not None:
        project.description = settings["description"]

    level = _resolve_protection_level(
        protection_level or build_settings.get("protection_level"), project
    )

    logger.step(4, 4, "Writing archive...")
    output_path = output_dir / f"{project_path.stem}.ispac"
    encryption_password = new_password if new_password is not None else password
    project.save(output_path, level, encryption_password)

    logger.verbose("BUILD", f"Build complete: {output_path}")

    return BuildResult(
        project_path=project_path,
        output_path=output_path,
        configuration=configuration,
        protection_level=level.value,
        parameter_count=len(project.parameters),
        overridden_parameters=applied,
        connection_count=len(project.connection_names),
        package_count=len(project.package_names),
        status="success",
    )
