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

"""Project files: manifest, params, connection managers and packages.

All four kinds share one loader/saver contract and differ only in the
document shape they expect and what they expose. A ProjectFile is tagged
with its FileKind; kind-specific behavior (parameter extraction, pre-save
adjustments) is looked up in small registries keyed by kind.

Lifecycle:

    ProjectFile(kind)            unloaded
      .initialize(src, pw)       payload decoded, sensitive values decrypted
      .save(stream, level, pw)   payload re-encoded under ``level``

Example:
    from pathlib import Path
    from ispacbuild.files import FileKind, ProjectFile
    from ispacbuild.protection import ProtectionLevel

    params = ProjectFile(FileKind.PARAMS).initialize(Path("Project.params"), None)
    print(list(params.parameters))

    with open("out.params", "wb") as f:
        params.save(f, ProtectionLevel.ENCRYPT_SENSITIVE_WITH_PASSWORD, "pw")
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
import copy
from enum import Enum
import os
from pathlib import Path, PurePosixPath
from types import MappingProxyType
from typing import BinaryIO, Union
import xml.etree.ElementTree as ET

from ispacbuild.exceptions import (
    InvalidFormatError,
    ProjectFileNotFoundError,
    ProjectFileNotInitializedError,
)
from ispacbuild.files.manifest import read_manifest_parameters, with_protection_level
from ispacbuild.files.params import read_params_parameters
from ispacbuild.logging import get_global_logger
from ispacbuild.parameters import Parameter
from ispacbuild.protection import ProtectionLevel, decode, encode
from ispacbuild.xmlutil import local_name

Source = Union[str, os.PathLike, bytes, bytearray, BinaryIO]


class FileKind(Enum):
    """The four project file kinds, with their extension and root element."""

    MANIFEST = (".manifest", "Project")
    PARAMS = (".params", "Parameters")
    CONNECTION = (".conmgr", "ConnectionManager")
    PACKAGE = (".dtsx", "Executable")

    def __init__(self, extension: str, root_name: str) -> None:
        self.extension = extension
        self.root_name = root_name

    @classmethod
    def from_name(cls, file_name: str) -> FileKind | None:
        """Kind for a file name based on its extension, or None."""
        suffix = PurePosixPath(file_name.replace("\\", "/")).suffix.lower()
        for kind in cls:
            if kind.extension == suffix:
                return kind
        return None


def read_source(source: Source) -> bytes:
    """Read raw bytes from a path, a bytes object, or a binary stream.

    Raises:
        ProjectFileNotFoundError: If a path source does not exist.
    """
    if isinstance(source, (bytes, bytearray)):
        return bytes(source)
    if isinstance(source, (str, os.PathLike)):
        path = Path(source)
        if not path.is_file():
            raise ProjectFileNotFoundError(path)
        return path.read_bytes()
    return source.read()


_ParameterReader = Callable[[ET.Element], "dict[str, Parameter]"]
_PreSave = Callable[[ET.Element, ProtectionLevel], ET.Element]

_PARAMETER_READERS: dict[FileKind, _ParameterReader] = {
    FileKind.MANIFEST: read_manifest_parameters,
    FileKind.PARAMS: read_params_parameters,
}

_PRE_SAVE: dict[FileKind, _PreSave] = {
    FileKind.MANIFEST: with_protection_level,
}


class ProjectFile:
    """One project document of a given kind.

    Attributes:
        kind: The file's FileKind.
        name: Project-relative logical name (used for archive placement).
    """

    def __init__(self, kind: FileKind, name: str | None = None) -> None:
        self.kind = kind
        self.name = name
        self._document: ET.Element | None = None
        self._parameters: dict[str, Parameter] = {}

    @property
    def initialized(self) -> bool:
        return self._document is not None

    @property
    def document(self) -> ET.Element:
        """Root element of the decoded document."""
        if self._document is None:
            raise ProjectFileNotInitializedError(
                f"{self.kind.name.lower()} file {self.name or ''} has not been initialized."
            )
        return self._document

    @property
    def parameters(self) -> Mapping[str, Parameter]:
        """Parameters declared by this file (empty for connections and packages)."""
        return MappingProxyType(self._parameters)

    def initialize(self, source: Source, password: str | None = None) -> ProjectFile:
        """Decode the payload and extract the kind's declarations.

        Args:
            source: Path, raw bytes or binary stream holding the document.
            password: Password for protected payloads.

        Returns:
            self, to allow ``ProjectFile(kind).initialize(...)`` chaining.

        Raises:
            ProjectFileNotFoundError: If a path source does not exist.
            InvalidFormatError: If the document is malformed or its root
                element does not match the kind.
            DecryptionError: If the payload cannot be decrypted.
        """
        logger = get_global_logger()
        label = self.name or self.kind.name.lower()
        logger.debug("FILES", f"Initializing {label}")

        raw = read_source(source)
        document = decode(raw, password)

        root_name = local_name(document.tag)
        if root_name != self.kind.root_name:
            raise InvalidFormatError(
                f"{label} is not a valid {self.kind.extension} document: "
                f"expected root element {self.kind.root_name}, found {root_name}."
            )

        reader = _PARAMETER_READERS.get(self.kind)
        self._parameters = reader(document) if reader else {}
        self._document = document
        return self

    def to_bytes(self, protection_level: ProtectionLevel, password: str | None = None) -> bytes:
        """Encode the document under the given protection level."""
        document = self.document
        pre_save = _PRE_SAVE.get(self.kind)
        if pre_save is not None:
            document = pre_save(copy.deepcopy(document), protection_level)
        return encode(document, protection_level, password)

    def save(
        self,
        destination: BinaryIO,
        protection_level: ProtectionLevel,
        password: str | None = None,
    ) -> None:
        """Write the encoded document to a binary stream.

        Raises:
            ProjectFileNotInitializedError: If initialize() has not run.
            MissingPasswordError: If a password-based level lacks a password.
            UnsupportedProtectionLevelError: For the user-key levels.
        """
        destination.write(self.to_bytes(protection_level, password))

    def __repr__(self) -> str:
        state = "initialized" if self.initialized else "unloaded"
        return f"ProjectFile(kind={self.kind.name}, name={self.name!r}, {state})"
