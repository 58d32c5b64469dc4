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

"""Configuration overlays from .dtproj and .dtproj.user documents.

A project definition carries named build configurations, each with its own
parameter values. The per-user .dtproj.user file carries a parallel set of
configurations listing parameters whose sensitive values were overridden
locally.

Overlay Layers
--------------
1. **Build configuration** (BuildConfiguration, from the .dtproj)
   Path: /Project/Configurations/Configuration[Name]/Options/
         ParameterConfigurationValues/ConfigurationSetting
   Values are taken as stored (after decrypting protected values).

2. **User configuration** (UserConfiguration, from the .dtproj.user)
   Path: /DataTransformationsUserConfiguration/Configurations/
         Configuration[Name]/Options/ParameterConfigurationSensitiveValues/
         ConfigurationSetting
   Only the parameter names are exposed. Every value is None, whatever the
   file stores, so no plaintext secret is ever read through this path.

Both readers raise ConfigurationNotFoundError when no configuration block
has the requested name. Element lookups ignore namespaces.

Example:
    from pathlib import Path
    from ispacbuild.overlays import BuildConfiguration

    overlay = BuildConfiguration("Development").initialize(Path("Etl.dtproj"))
    for name, value in overlay.parameters.items():
        print(name, value)
"""

from __future__ import annotations

from collections.abc import Mapping
from types import MappingProxyType
import xml.etree.ElementTree as ET

from ispacbuild.exceptions import ConfigurationNotFoundError, InvalidFormatError
from ispacbuild.files import read_source
from ispacbuild.files.project_file import Source
from ispacbuild.logging import get_global_logger
from ispacbuild.protection import decode
from ispacbuild.xmlutil import child_text, find_child, local_name, parse_xml


class _ConfigurationOverlay:
    """Shared lookup of a named configuration block."""

    root_name = ""
    settings_element = ""
    label = ""

    def __init__(self, name: str) -> None:
        self.name = name
        self._parameters: dict[str, str | None] = {}

    @property
    def parameters(self) -> Mapping[str, str | None]:
        """Parameter name -> override value for the selected configuration."""
        return MappingProxyType(self._parameters)

    def _load(self, raw: bytes, password: str | None) -> ET.Element:
        return decode(raw, password)

    def _value(self, setting: ET.Element) -> str | None:
        return child_text(setting, "Value")

    def initialize(self, source: Source, password: str | None = None) -> _ConfigurationOverlay:
        """Read the overrides of the configuration named at construction.

        Args:
            source: Path, raw bytes or binary stream of the document.
            password: Password for protected values (build configuration).

        Returns:
            self.

        Raises:
            ProjectFileNotFoundError: If a path source does not exist.
            InvalidFormatError: If the document has the wrong root element.
            ConfigurationNotFoundError: If no block matches the name.
        """
        logger = get_global_logger()
        root = self._load(read_source(source), password)

        if local_name(root.tag) != self.root_name:
            raise InvalidFormatError(
                f"Not a {self.label} document: expected root element "
                f"{self.root_name}, found {local_name(root.tag)}."
            )

        block = self._find_block(root)
        if block is None:
            raise ConfigurationNotFoundError(self.name)

        parameters: dict[str, str | None] = {}
        options = find_child(block, "Options")
        settings = find_child(options, self.settings_element) if options is not None else None
        if settings is not None:
            for setting in settings:
                if local_name(setting.tag) != "ConfigurationSetting":
                    continue
                name = child_text(setting, "Name")
                if name:
                    parameters[name.strip()] = self._value(setting)

        self._parameters = parameters
        logger.verbose(
            "CONFIG",
            f"{self.label} '{self.name}': {len(parameters)} parameter override(s)",
        )
        return self

    def _find_block(self, root: ET.Element) -> ET.Element | None:
        configurations = find_child(root, "Configurations")
        if configurations is None:
            return None
        for block in configurations:
            if local_name(block.tag) != "Configuration":
                continue
            if (child_text(block, "Name") or "").strip() == self.name:
                return block
        return None


class BuildConfiguration(_ConfigurationOverlay):
    """Named build configuration read from a .dtproj document."""

    root_name = "Project"
    settings_element = "ParameterConfigurationValues"
    label = "Build configuration"


class UserConfiguration(_ConfigurationOverlay):
    """Named user configuration read from a .dtproj.user document.

    Values are always None; only the fact that a parameter was overridden
    locally is exposed.
    """

    root_name = "DataTransformationsUserConfiguration"
    settings_element = "ParameterConfigurationSensitiveValues"
    label = "User configuration"

    def _load(self, raw: bytes, password: str | None) -> ET.Element:
        # Values are discarded, so there is nothing to decrypt.
        return parse_xml(raw, "user configuration")

    def _value(self, setting: ET.Element) -> str | None:
        return None
