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

"""Shared XML helpers for SSIS documents.

Project documents are handled with xml.etree.ElementTree. The SSIS, DTS,
xsi and xsd namespace prefixes are registered on import so serialized
documents keep their familiar prefixes instead of ns0/ns1.
"""

from __future__ import annotations

from collections.abc import Iterator
import xml.etree.ElementTree as ET

from ispacbuild.exceptions import InvalidFormatError

SSIS_NS = "www.microsoft.com/SqlServer/SSIS"
DTS_NS = "www.microsoft.com/SqlServer/Dts"
XSI_NS = "http://www.w3.org/2001/XMLSchema-instance"
XSD_NS = "http://www.w3.org/2001/XMLSchema"

ET.register_namespace("SSIS", SSIS_NS)
ET.register_namespace("DTS", DTS_NS)
ET.register_namespace("xsi", XSI_NS)
ET.register_namespace("xsd", XSD_NS)

_TRUE_VALUES = ("1", "true", "-1")


def ssis(name: str) -> str:
    """Qualified name in the SSIS namespace."""
    return f"{{{SSIS_NS}}}{name}"


def local_name(tag: str) -> str:
    """Strip the {namespace} part of a qualified tag or attribute name."""
    return tag.rsplit("}", 1)[-1]


def parse_xml(data: bytes, what: str = "document") -> ET.Element:
    """Parse XML bytes into an element tree root.

    Raises:
        InvalidFormatError: If the bytes are not well-formed XML.
    """
    try:
        return ET.fromstring(data)
    except ET.ParseError as err:
        raise InvalidFormatError(f"Failed to parse {what}: {err}") from err


def to_bytes(root: ET.Element) -> bytes:
    """Serialize an element as a UTF-8 document with an XML declaration."""
    return ET.tostring(root, encoding="utf-8", xml_declaration=True)


def is_sensitive(element: ET.Element) -> bool:
    """True when the element carries a Sensitive="1" marker in any namespace."""
    for key, value in element.attrib.items():
        if local_name(key) == "Sensitive" and value.strip().lower() in _TRUE_VALUES:
            return True
    return False


def mark_sensitive(element: ET.Element) -> None:
    """Add the SSIS:Sensitive="1" marker unless an equivalent marker exists."""
    if not is_sensitive(element):
        element.set(ssis("Sensitive"), "1")


def _has_sensitive_descendant(element: ET.Element) -> bool:
    return any(is_sensitive(d) for d in element.iter() if d is not element)


def iter_sensitive(root: ET.Element) -> Iterator[ET.Element]:
    """Yield the innermost sensitive elements.

    A marked container holding a marked descendant is skipped, so only the
    value elements are touched and the structure around them survives.
    """
    for element in root.iter():
        if is_sensitive(element) and not _has_sensitive_descendant(element):
            yield element


def find_property(parent: ET.Element, name: str) -> ET.Element | None:
    """Find <SSIS:Property SSIS:Name="name"> under parent's SSIS:Properties."""
    for prop in parent.iterfind(f"{ssis('Properties')}/{ssis('Property')}"):
        if prop.get(ssis("Name")) == name:
            return prop
    return None


def child_text(parent: ET.Element, tag: str) -> str | None:
    """Text of the first direct child with the given local name."""
    for child in parent:
        if local_name(child.tag) == tag:
            return child.text
    return None


def find_child(parent: ET.Element, tag: str) -> ET.Element | None:
    """First direct child with the given local name, ignoring namespaces."""
    for child in parent:
        if local_name(child.tag) == tag:
            return child
    return None
