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

"""SSIS project aggregate: load from .ispac or .dtproj, save as .ispac.

A Project is created empty and becomes usable once one of the load methods
completes. There is no unload; a loaded Project stays loaded.

Loading From an Archive
-----------------------
Each zip entry is dispatched to a ProjectFile by extension (.manifest,
.params, .conmgr, .dtsx). .xml entries are archive metadata and skipped;
anything else aborts the load with UnexpectedEntryError. Parameters are
merged from Project.params and the manifest only. An archive is final, so
no configuration overlay is applied.

Loading From a Source Layout
----------------------------
1. Check the .dtproj declares the Project deployment model.
2. Initialize the manifest from the embedded SSIS:Project node.
3. Initialize Project.params, then connection managers and packages in the
   order the manifest declares them, from sibling files.
4. Merge parameters: Project.params first, then the manifest (manifest wins
   on duplicate names).
5. Apply the named build configuration (mandatory).
6. Apply <name>.dtproj.user if present, nulling the listed parameters.

Loads build into local state and commit only on success, so a failed load
leaves the Project untouched.

Saving
------
One protection level and password apply to every file in the archive.
save() writes to "<destination>.part" and atomically replaces the
destination, so a failed save never leaves a partial .ispac behind.

Example:
    from pathlib import Path
    from ispacbuild import Project, ParameterSource, ProtectionLevel

    project = Project()
    project.load_from_dtproj(Path("Etl/Etl.dtproj"), "Development")
    project.update_parameter("BatchSize", "500", ParameterSource.MANUAL)
    project.save(
        Path("bin/Etl.ispac"),
        ProtectionLevel.ENCRYPT_SENSITIVE_WITH_PASSWORD,
        "secret",
    )
"""

from __future__ import annotations

from collections.abc import Mapping
import copy
import os
from pathlib import Path
from types import MappingProxyType
from typing import BinaryIO, Union
import xml.etree.ElementTree as ET
import zipfile

from ispacbuild.archive import (
    CONTENT_TYPES_ENTRY,
    CONTENT_TYPES_XML,
    DTPROJ_EXTENSION,
    ISPAC_EXTENSION,
    MANIFEST_ENTRY,
    PARAMS_ENTRY,
    USER_CONFIGURATION_SUFFIX,
    is_metadata_entry,
    logical_name,
    part_name,
)
from ispacbuild.exceptions import (
    InvalidFormatError,
    ProjectAlreadyLoadedError,
    ProjectFileNotFoundError,
    ProjectNotLoadedError,
    UnexpectedEntryError,
    UnsupportedDeploymentModelError,
    WrongExtensionError,
)
from ispacbuild.files import FileKind, Manifest, ProjectFile
from ispacbuild.logging import get_global_logger
from ispacbuild.overlays import BuildConfiguration, UserConfiguration
from ispacbuild.parameters import Parameter, ParameterSource, ParameterTable
from ispacbuild.protection import ProtectionLevel, validate_protection
from ispacbuild.xmlutil import child_text, find_child, parse_xml, ssis

PathLike = Union[str, os.PathLike]

SUPPORTED_DEPLOYMENT_MODEL = "Project"


def _manifest_field(name: str, doc: str) -> property:
    def getter(self: Project) -> str | None:
        manifest = self.manifest
        return None if manifest is None else getattr(manifest, name)

    def setter(self: Project, value: str | None) -> None:
        self._require_loaded()
        setattr(self.manifest, name, value)

    return property(getter, setter, doc=doc)


class Project:
    """An SSIS project that can be loaded and saved as an .ispac archive."""

    def __init__(self) -> None:
        self._manifest_file: ProjectFile | None = None
        self._params_file: ProjectFile | None = None
        self._connections: dict[str, ProjectFile] = {}
        self._packages: dict[str, ProjectFile] = {}
        self._parameters = ParameterTable()
        self._loaded = False

    # -------------------------------
    # Read surface
    # -------------------------------

    @property
    def loaded(self) -> bool:
        return self._loaded

    @property
    def manifest(self) -> Manifest | None:
        """Manifest view, or None before the project is loaded."""
        if not self._loaded or self._manifest_file is None:
            return None
        return Manifest(self._manifest_file)

    @property
    def protection_level(self) -> ProtectionLevel:
        """Protection level declared by the manifest (DontSaveSensitive before load)."""
        manifest = self.manifest
        if manifest is None:
            return ProtectionLevel.DONT_SAVE_SENSITIVE
        return manifest.protection_level

    version_major = _manifest_field("version_major", "Manifest VersionMajor.")
    version_minor = _manifest_field("version_minor", "Manifest VersionMinor.")
    version_build = _manifest_field("version_build", "Manifest VersionBuild.")
    version_comments = _manifest_field("version_comments", "Manifest VersionComments.")
    description = _manifest_field("description", "Manifest Description.")

    @property
    def parameters(self) -> Mapping[str, Parameter]:
        """Read-only view of the merged parameter table."""
        return self._parameters.view

    @property
    def connections(self) -> Mapping[str, ProjectFile]:
        return MappingProxyType(self._connections)

    @property
    def packages(self) -> Mapping[str, ProjectFile]:
        return MappingProxyType(self._packages)

    @property
    def connection_names(self) -> tuple[str, ...]:
        return tuple(self._connections)

    @property
    def package_names(self) -> tuple[str, ...]:
        return tuple(self._packages)

    # -------------------------------
    # State helpers
    # -------------------------------

    def _require_loaded(self) -> None:
        if not self._loaded:
            raise ProjectNotLoadedError()

    def _require_unloaded(self) -> None:
        if self._loaded:
            raise ProjectAlreadyLoadedError()

    def _commit(
        self,
        manifest_file: ProjectFile,
        params_file: ProjectFile,
        connections: dict[str, ProjectFile],
        packages: dict[str, ProjectFile],
        table: ParameterTable,
    ) -> None:
        self._manifest_file = manifest_file
        self._params_file = params_file
        self._connections = connections
        self._packages = packages
        self._parameters = table
        self._loaded = True

    # -------------------------------
    # Mutation
    # -------------------------------

    def update_parameter(
        self, name: str, value: str | None, source: ParameterSource
    ) -> bool:
        """Set a parameter value; unknown names are ignored.

        Returns:
            True if a parameter with that name exists and was updated.

        Raises:
            ProjectNotLoadedError: If the project has not been loaded.
        """
        self._require_loaded()
        return self._parameters.update(name, value, source)

    # -------------------------------
    # Loading
    # -------------------------------

    def load_from_ispac(self, path: PathLike, password: str | None = None) -> Project:
        """Load a project from a packaged .ispac archive.

        Args:
            path: Path to the .ispac file.
            password: Password for protected entries.

        Returns:
            self.

        Raises:
            ProjectAlreadyLoadedError: If the project is already loaded.
            ProjectFileNotFoundError: If the archive does not exist.
            WrongExtensionError: If the file is not an .ispac.
            UnexpectedEntryError: If the archive holds an unknown entry.
            InvalidFormatError: If the archive is not a zip or lacks the
                manifest or params entry.
            DecryptionError: If an entry cannot be decrypted.
        """
        logger = get_global_logger()
        self._require_unloaded()

        path = Path(path)
        if not path.is_file():
            raise ProjectFileNotFoundError(path)
        if path.suffix.lower() != ISPAC_EXTENSION:
            raise WrongExtensionError(path, ISPAC_EXTENSION)

        logger.verbose("PROJECT", f"Loading archive: {path}")

        manifest_file: ProjectFile | None = None
        params_file: ProjectFile | None = None
        connections: dict[str, ProjectFile] = {}
        packages: dict[str, ProjectFile] = {}

        try:
            with zipfile.ZipFile(path, "r") as archive:
                for info in archive.infolist():
                    if info.is_dir():
                        continue
                    entry_name = info.filename
                    kind = FileKind.from_name(entry_name)
                    if kind is None:
                        if is_metadata_entry(entry_name):
                            logger.debug("ARCHIVE", f"Skipping metadata entry: {entry_name}")
                            continue
                        raise UnexpectedEntryError(entry_name, path)

                    name = logical_name(entry_name)
                    logger.debug("ARCHIVE", f"Reading {kind.name.lower()} entry: {entry_name}")
                    with archive.open(info) as stream:
                        project_file = ProjectFile(kind, name).initialize(stream, password)

                    if kind is FileKind.MANIFEST:
                        if manifest_file is not None:
                            raise InvalidFormatError(f"Archive {path} contains more than one manifest.")
                        manifest_file = project_file
                    elif kind is FileKind.PARAMS:
                        if params_file is not None:
                            raise InvalidFormatError(f"Archive {path} contains more than one params file.")
                        params_file = project_file
                    elif kind is FileKind.CONNECTION:
                        connections[name] = project_file
                    else:
                        packages[name] = project_file
        except zipfile.BadZipFile as err:
            raise InvalidFormatError(f"File {path} is not a valid zip archive: {err}") from err

        if manifest_file is None:
            raise InvalidFormatError(f"Archive {path} does not contain {MANIFEST_ENTRY}.")
        if params_file is None:
            raise InvalidFormatError(f"Archive {path} does not contain {PARAMS_ENTRY}.")

        table = ParameterTable()
        table.merge(params_file.parameters, manifest_file.parameters)

        self._commit(manifest_file, params_file, connections, packages, table)
        logger.verbose(
            "PROJECT",
            f"Loaded {len(connections)} connection(s), {len(packages)} package(s), "
            f"{len(table)} parameter(s)",
        )
        return self

    def load_from_dtproj(
        self,
        path: PathLike,
        configuration_name: str,
        password: str | None = None,
    ) -> Project:
        """Load a project from its unpacked source layout.

        Args:
            path: Path to the .dtproj project definition.
            configuration_name: Build configuration to apply (e.g. "Development").
            password: Password for protected files and values.

        Returns:
            self.

        Raises:
            ProjectAlreadyLoadedError: If the project is already loaded.
            ProjectFileNotFoundError: If the .dtproj or a sibling file is missing.
            WrongExtensionError: If the file is not a .dtproj.
            UnsupportedDeploymentModelError: If the deployment model is not Project.
            InvalidFormatError: If the embedded manifest is missing or a file
                has the wrong shape.
            ConfigurationNotFoundError: If the named configuration is absent.
            DecryptionError: If a protected payload cannot be decrypted.
        """
        logger = get_global_logger()
        self._require_unloaded()

        path = Path(path)
        if not path.is_file():
            raise ProjectFileNotFoundError(path)
        if path.suffix.lower() != DTPROJ_EXTENSION:
            raise WrongExtensionError(path, DTPROJ_EXTENSION)

        logger.verbose("PROJECT", f"Loading project definition: {path}")

        raw = path.read_bytes()
        definition = parse_xml(raw, path.name)
        _validate_deployment_model(definition)

        manifest_node = _find_manifest_node(definition)
        if manifest_node is None:
            raise InvalidFormatError(f"Project manifest node was not found in {path}.")

        project_dir = path.parent

        manifest_file = ProjectFile(FileKind.MANIFEST, MANIFEST_ENTRY).initialize(
            ET.tostring(manifest_node, encoding="utf-8"), password
        )
        manifest = Manifest(manifest_file)

        params_file = ProjectFile(FileKind.PARAMS, PARAMS_ENTRY).initialize(
            project_dir / PARAMS_ENTRY, password
        )

        connections: dict[str, ProjectFile] = {}
        for name in manifest.connection_manager_names:
            logger.debug("PROJECT", f"Reading connection manager: {name}")
            connections[name] = ProjectFile(FileKind.CONNECTION, name).initialize(
                project_dir / name, password
            )

        packages: dict[str, ProjectFile] = {}
        for name in manifest.package_names:
            logger.debug("PROJECT", f"Reading package: {name}")
            packages[name] = ProjectFile(FileKind.PACKAGE, name).initialize(
                project_dir / name, password
            )

        table = ParameterTable()
        table.merge(params_file.parameters, manifest_file.parameters)

        configuration = BuildConfiguration(configuration_name).initialize(raw, password)
        table.update_many(configuration.parameters.items(), ParameterSource.CONFIGURATION)

        user_path = path.with_name(path.name + USER_CONFIGURATION_SUFFIX)
        if user_path.is_file():
            logger.verbose("PROJECT", f"Applying user configuration: {user_path.name}")
            user_configuration = UserConfiguration(configuration_name).initialize(
                user_path, password
            )
            table.update_many(
                ((name, None) for name in user_configuration.parameters),
                ParameterSource.USER_CONFIGURATION,
            )

        self._commit(manifest_file, params_file, connections, packages, table)
        logger.verbose(
            "PROJECT",
            f"Loaded {len(connections)} connection(s), {len(packages)} package(s), "
            f"{len(table)} parameter(s)",
        )
        return self

    # -------------------------------
    # Saving
    # -------------------------------

    def save(
        self,
        path: PathLike,
        protection_level: ProtectionLevel = ProtectionLevel.DONT_SAVE_SENSITIVE,
        password: str | None = None,
    ) -> Path:
        """Save the project as an .ispac archive.

        Args:
            path: Destination .ispac path. Replaced if it exists; parent
                directories are created.
            protection_level: Protection applied to every file in the archive.
            password: Required for the password-based levels.

        Returns:
            The destination path.

        Raises:
            ProjectNotLoadedError: If the project has not been loaded.
            WrongExtensionError: If the destination is not an .ispac.
            MissingPasswordError: If a password-based level lacks a password.
            UnsupportedProtectionLevelError: For the user-key levels.
        """
        logger = get_global_logger()
        self._require_loaded()

        path = Path(path)
        if path.suffix.lower() != ISPAC_EXTENSION:
            raise WrongExtensionError(path, ISPAC_EXTENSION)
        validate_protection(protection_level, password)

        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_name(path.name + ".part")
        logger.verbose("ARCHIVE", f"Writing to: {tmp}")

        try:
            with tmp.open("wb") as stream:
                self.save_to_stream(stream, protection_level, password)
            tmp.replace(path)
        finally:
            if tmp.exists():
                tmp.unlink()

        logger.verbose("ARCHIVE", f"Saved {path} ({protection_level.value})")
        return path

    def save_to_stream(
        self,
        stream: BinaryIO,
        protection_level: ProtectionLevel,
        password: str | None = None,
    ) -> None:
        """Write the project as an .ispac zip archive to a binary stream.

        Raises:
            ProjectNotLoadedError: If the project has not been loaded.
            MissingPasswordError: If a password-based level lacks a password.
            UnsupportedProtectionLevelError: For the user-key levels.
        """
        logger = get_global_logger()
        self._require_loaded()
        validate_protection(protection_level, password)

        with zipfile.ZipFile(stream, "w", compression=zipfile.ZIP_DEFLATED) as archive:
            _write_entry(archive, MANIFEST_ENTRY, self._manifest_file, protection_level, password)
            _write_entry(archive, PARAMS_ENTRY, self._params_file, protection_level, password)
            archive.writestr(CONTENT_TYPES_ENTRY, CONTENT_TYPES_XML.encode("utf-8"))

            for name, project_file in self._connections.items():
                _write_entry(archive, part_name(name), project_file, protection_level, password)

            for name, project_file in self._packages.items():
                _write_entry(archive, part_name(name), project_file, protection_level, password)

        logger.debug(
            "ARCHIVE",
            f"Wrote {3 + len(self._connections) + len(self._packages)} entries",
        )


def _write_entry(
    archive: zipfile.ZipFile,
    entry_name: str,
    project_file: ProjectFile,
    protection_level: ProtectionLevel,
    password: str | None,
) -> None:
    get_global_logger().debug("ARCHIVE", f"Writing entry: {entry_name}")
    with archive.open(entry_name, "w") as entry:
        project_file.save(entry, protection_level, password)


def _validate_deployment_model(definition: ET.Element) -> None:
    deployment_model = child_text(definition, "DeploymentModel")
    if deployment_model is not None:
        deployment_model = deployment_model.strip()
    if deployment_model != SUPPORTED_DEPLOYMENT_MODEL:
        raise UnsupportedDeploymentModelError(deployment_model)


def _find_manifest_node(definition: ET.Element) -> ET.Element | None:
    content = find_child(definition, "DeploymentModelSpecificContent")
    manifest = find_child(content, "Manifest") if content is not None else None
    if manifest is None:
        return None
    node = manifest.find(ssis("Project"))
    if node is None:
        return None
    node = copy.deepcopy(node)
    node.tail = None
    return node
