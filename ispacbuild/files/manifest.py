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

"""Project manifest (@Project.manifest) metadata and declarations.

Manifest Layout:

    <SSIS:Project SSIS:ProtectionLevel="DontSaveSensitive">
      <SSIS:Properties>
        <SSIS:Property SSIS:Name="VersionMajor">1</SSIS:Property>
        ... VersionMinor, VersionBuild, VersionComments, Description ...
      </SSIS:Properties>
      <SSIS:Packages>
        <SSIS:Package SSIS:Name="Load.dtsx" SSIS:EntryPoint="1" />
      </SSIS:Packages>
      <SSIS:ConnectionManagers>
        <SSIS:ConnectionManager SSIS:Name="Source.conmgr" />
      </SSIS:ConnectionManagers>
      <SSIS:DeploymentInfo>
        <SSIS:ProjectConnectionParameters>
          <SSIS:Parameter SSIS:Name="CM.Source.ConnectionString">...</SSIS:Parameter>
        </SSIS:ProjectConnectionParameters>
        <SSIS:PackageInfo>
          <SSIS:PackageMetaData SSIS:Name="Load.dtsx">
            <SSIS:Parameters>
              <SSIS:Parameter SSIS:Name="BatchSize">...</SSIS:Parameter>
            </SSIS:Parameters>
          </SSIS:PackageMetaData>
        </SSIS:PackageInfo>
      </SSIS:DeploymentInfo>
    </SSIS:Project>

Project connection parameters keep their declared names. Package parameters
are keyed as "<package stem>::<name>" (e.g. "Load::BatchSize").
"""

from __future__ import annotations

from pathlib import PurePosixPath
from typing import TYPE_CHECKING
import xml.etree.ElementTree as ET

from ispacbuild.exceptions import InvalidFormatError
from ispacbuild.files.params import read_parameter
from ispacbuild.parameters import Parameter
from ispacbuild.protection import ProtectionLevel
from ispacbuild.xmlutil import find_property, ssis

if TYPE_CHECKING:
    from ispacbuild.files.project_file import ProjectFile

PROTECTION_LEVEL_ATTR = ssis("ProtectionLevel")


def read_protection_level(root: ET.Element) -> ProtectionLevel:
    raw = root.get(PROTECTION_LEVEL_ATTR)
    if not raw:
        return ProtectionLevel.DONT_SAVE_SENSITIVE
    try:
        return ProtectionLevel.from_name(raw)
    except ValueError as err:
        raise InvalidFormatError(f"Manifest declares an invalid protection level: {err}") from err


def with_protection_level(root: ET.Element, level: ProtectionLevel) -> ET.Element:
    """Root element to serialize when saving under ``level``."""
    root.set(PROTECTION_LEVEL_ATTR, level.value)
    return root


def _declared_names(root: ET.Element, container: str, item: str) -> tuple[str, ...]:
    names = []
    for element in root.iterfind(f"{ssis(container)}/{ssis(item)}"):
        name = element.get(ssis("Name"))
        if name:
            names.append(name)
    return tuple(names)


def read_manifest_parameters(root: ET.Element) -> dict[str, Parameter]:
    """Read project connection parameters and package parameters."""
    parameters: dict[str, Parameter] = {}
    deployment_info = root.find(ssis("DeploymentInfo"))
    if deployment_info is None:
        return parameters

    for element in deployment_info.iterfind(
        f"{ssis('ProjectConnectionParameters')}/{ssis('Parameter')}"
    ):
        name = element.get(ssis("Name"))
        if name:
            parameters[name] = read_parameter(element, name)

    for package in deployment_info.iterfind(f"{ssis('PackageInfo')}/{ssis('PackageMetaData')}"):
        package_name = package.get(ssis("Name"), "")
        stem = PurePosixPath(package_name.replace("\\", "/")).stem
        for element in package.iterfind(f"{ssis('Parameters')}/{ssis('Parameter')}"):
            name = element.get(ssis("Name"))
            if name:
                key = f"{stem}::{name}"
                parameters[key] = read_parameter(element, key)

    return parameters


def _metadata_property(name: str, doc: str) -> property:
    def getter(self: Manifest) -> str | None:
        element = find_property(self._root, name)
        return None if element is None else element.text

    def setter(self: Manifest, value: str | None) -> None:
        element = find_property(self._root, name)
        if element is None:
            properties = self._root.find(ssis("Properties"))
            if properties is None:
                properties = ET.SubElement(self._root, ssis("Properties"))
            element = ET.SubElement(properties, ssis("Property"), {ssis("Name"): name})
        element.text = value

    return property(getter, setter, doc=doc)


class Manifest:
    """Typed view over an initialized MANIFEST project file.

    Writes go straight to the manifest document, so they are persisted the
    next time the file is saved.
    """

    def __init__(self, project_file: ProjectFile) -> None:
        self._root = project_file.document

    version_major = _metadata_property("VersionMajor", "Major version number.")
    version_minor = _metadata_property("VersionMinor", "Minor version number.")
    version_build = _metadata_property("VersionBuild", "Build number.")
    version_comments = _metadata_property("VersionComments", "Free-text version comments.")
    description = _metadata_property("Description", "Project description.")

    @property
    def protection_level(self) -> ProtectionLevel:
        return read_protection_level(self._root)

    @protection_level.setter
    def protection_level(self, level: ProtectionLevel) -> None:
        with_protection_level(self._root, level)

    @property
    def connection_manager_names(self) -> tuple[str, ...]:
        """Project connection manager file names, in declared order."""
        return _declared_names(self._root, "ConnectionManagers", "ConnectionManager")

    @property
    def package_names(self) -> tuple[str, ...]:
        """Package file names, in declared order."""
        return _declared_names(self._root, "Packages", "Package")
