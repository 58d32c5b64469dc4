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

"""Parameter declarations in Project.params (and the manifest).

Both files declare parameters with the same element shape:

    <SSIS:Parameter SSIS:Name="P1">
      <SSIS:Properties>
        <SSIS:Property SSIS:Name="Sensitive">0</SSIS:Property>
        <SSIS:Property SSIS:Name="Value">A</SSIS:Property>
        ...
      </SSIS:Properties>
    </SSIS:Parameter>
"""

from __future__ import annotations

import xml.etree.ElementTree as ET

from ispacbuild.exceptions import InvalidFormatError
from ispacbuild.parameters import Parameter
from ispacbuild.xmlutil import find_property, is_sensitive, mark_sensitive, ssis


def read_parameter(element: ET.Element, name: str) -> Parameter:
    """Build a Parameter bound to the Value property of a declaration.

    A missing Value property is created so later writes are persisted.
    Sensitive values get the Sensitive="1" marker the codec looks for.
    """
    flag = find_property(element, "Sensitive")
    value_element = find_property(element, "Value")
    if value_element is None:
        properties = element.find(ssis("Properties"))
        if properties is None:
            properties = ET.SubElement(element, ssis("Properties"))
        value_element = ET.SubElement(properties, ssis("Property"), {ssis("Name"): "Value"})

    sensitive = (flag is not None and (flag.text or "").strip() == "1") or is_sensitive(
        value_element
    )
    if sensitive:
        mark_sensitive(value_element)

    return Parameter(name, value_element.text, sensitive=sensitive, value_element=value_element)


def read_params_parameters(root: ET.Element) -> dict[str, Parameter]:
    """Read every parameter declared at the top level of Project.params."""
    parameters: dict[str, Parameter] = {}
    for element in root.iterfind(ssis("Parameter")):
        name = element.get(ssis("Name"))
        if not name:
            raise InvalidFormatError("Project.params declares a parameter without a name.")
        parameters[name] = read_parameter(element, name)
    return parameters
