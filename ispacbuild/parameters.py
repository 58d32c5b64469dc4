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

"""Project parameters and the precedence-ordered parameter table.

Every parameter remembers which source last wrote it. Sources are ordered
from lowest to highest precedence:

1. DEFAULT - declared in Project.params or the manifest
2. CONFIGURATION - the named build configuration in the .dtproj
3. USER_CONFIGURATION - the local .dtproj.user overlay
4. MANUAL - explicit overrides from build settings or the command line

The table does not reject out-of-order writes. The project applies sources in
increasing precedence order, so the last write is the one that should win.

A Parameter may be bound to the XML element holding its value in the
declaring document. Writes go through to that element, which is how resolved
values end up in a saved .ispac.

Example:
    from ispacbuild.parameters import Parameter, ParameterSource, ParameterTable

    table = ParameterTable()
    table.merge({"P1": Parameter("P1", "A")})
    table.update("P1", "X", ParameterSource.CONFIGURATION)
    table.update("Unknown", "Y", ParameterSource.CONFIGURATION)  # no-op
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from enum import IntEnum
from types import MappingProxyType
import xml.etree.ElementTree as ET

from ispacbuild.logging import get_global_logger, mask_value


class ParameterSource(IntEnum):
    """Where a parameter value came from, lowest precedence first."""

    DEFAULT = 0
    CONFIGURATION = 1
    USER_CONFIGURATION = 2
    MANUAL = 3


class Parameter:
    """A named project parameter.

    Attributes:
        name: Unique key within a project.
        value: Current value (None when unset or stripped).
        sensitive: Whether the declaring file marked the value sensitive.
        source: Source of the last write.
    """

    def __init__(
        self,
        name: str,
        value: str | None,
        sensitive: bool = False,
        source: ParameterSource = ParameterSource.DEFAULT,
        value_element: ET.Element | None = None,
    ) -> None:
        self._name = name
        self._value = value
        self._sensitive = sensitive
        self._source = source
        self._value_element = value_element

    @property
    def name(self) -> str:
        return self._name

    @property
    def value(self) -> str | None:
        return self._value

    @property
    def sensitive(self) -> bool:
        return self._sensitive

    @property
    def source(self) -> ParameterSource:
        return self._source

    def set_value(self, value: str | None, source: ParameterSource) -> None:
        """Replace the value and record the writing source."""
        self._value = value
        self._source = source
        if self._value_element is not None:
            for child in list(self._value_element):
                self._value_element.remove(child)
            self._value_element.text = value

    def __repr__(self) -> str:
        shown = mask_value(self._value, self._sensitive)
        return (
            f"Parameter(name={self._name!r}, value={shown!r}, "
            f"sensitive={self._sensitive}, source={self._source.name})"
        )


class ParameterTable:
    """Ordered name -> Parameter store owned by a project."""

    def __init__(self) -> None:
        self._parameters: dict[str, Parameter] = {}
        self._view = MappingProxyType(self._parameters)

    @property
    def view(self) -> Mapping[str, Parameter]:
        """Read-only live view of the table."""
        return self._view

    def merge(self, *declarations: Mapping[str, Parameter]) -> None:
        """Add declared parameters; later declarations win on duplicate names."""
        logger = get_global_logger()
        for declared in declarations:
            for name, parameter in declared.items():
                if name in self._parameters:
                    logger.debug("PARAMS", f"Parameter {name} redeclared, last declaration wins")
                self._parameters[name] = parameter

    def update(self, name: str, value: str | None, source: ParameterSource) -> bool:
        """Set a parameter value if the name is known.

        Returns:
            True if the parameter exists and was updated, False otherwise.
            Unknown names are tolerated so configuration files can carry
            entries for parameters that no longer exist.
        """
        logger = get_global_logger()
        parameter = self._parameters.get(name)
        if parameter is None:
            logger.debug("PARAMS", f"Ignoring unknown parameter: {name}")
            return False
        parameter.set_value(value, source)
        logger.verbose(
            "PARAMS",
            f"{name} = {mask_value(value, parameter.sensitive)} ({source.name})",
        )
        return True

    def update_many(
        self, values: Iterable[tuple[str, str | None]], source: ParameterSource
    ) -> int:
        """Apply several updates from one source; returns how many matched."""
        return sum(1 for name, value in values if self.update(name, value, source))

    def __contains__(self, name: object) -> bool:
        return name in self._parameters

    def __len__(self) -> int:
        return len(self._parameters)
