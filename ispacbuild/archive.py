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

"""Layout of the .ispac archive.

An .ispac is a zip container holding:

- @Project.manifest
- Project.params
- [Content_Types].xml (fixed content)
- one entry per connection manager and per package

Connection and package entries are named after their project-relative file
name, escaped like an OPC part URI ("Load Data.dtsx" -> "Load%20Data.dtsx")
with the leading "/" dropped.
"""

from __future__ import annotations

from pathlib import PurePosixPath
from urllib.parse import quote, unquote

ISPAC_EXTENSION = ".ispac"
DTPROJ_EXTENSION = ".dtproj"
USER_CONFIGURATION_SUFFIX = ".user"

MANIFEST_ENTRY = "@Project.manifest"
PARAMS_ENTRY = "Project.params"
CONTENT_TYPES_ENTRY = "[Content_Types].xml"

# Entries with these extensions are archive metadata and are skipped on load.
METADATA_EXTENSIONS = (".xml",)

CONTENT_TYPES_XML = (
    '<?xml version="1.0" encoding="utf-8"?>'
    '<Types xmlns="http://schemas.openxmlformats.org/package/2006/content-types">'
    '<Default Extension="dtsx" ContentType="text/xml" />'
    '<Default Extension="conmgr" ContentType="text/xml" />'
    '<Default Extension="params" ContentType="text/xml" />'
    '<Default Extension="manifest" ContentType="text/xml" />'
    "</Types>\r\n"
)

# RFC 3986 pchar minus the percent sign, plus "/" as the segment separator.
_PART_SAFE = "/-._~!$&'()*+,;=:@"


def part_name(logical_name: str) -> str:
    """Archive entry name for a project-relative file name."""
    path = logical_name.replace("\\", "/").lstrip("/")
    part_uri = "/" + quote(path, safe=_PART_SAFE)
    return part_uri[1:]


def logical_name(entry_name: str) -> str:
    """Project-relative file name for an archive entry (inverse of part_name)."""
    return unquote(entry_name)


def is_metadata_entry(entry_name: str) -> bool:
    return PurePosixPath(entry_name).suffix.lower() in METADATA_EXTENSIONS
