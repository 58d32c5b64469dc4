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

"""Exception hierarchy for ispacbuild.

This module defines the errors raised while loading, transforming and saving
SSIS projects. Library users can distinguish between:

- ProjectStateError: An operation was attempted in the wrong project state
- ProjectFileNotFoundError: A required file or path does not exist
- FormatMismatchError: Wrong extension, unsupported deployment model,
  unexpected archive entry, or a document with the wrong shape
- ConfigurationNotFoundError: The requested build configuration is absent
- ProtectionError: Encryption/decryption failures and password problems
- ConfigError: Invalid build settings files

All exceptions inherit from IspacBuildError, allowing users to catch every
ispacbuild error with a single except clause if needed. Errors carry their
context (file name, configuration name, entry name) as attributes so callers
can surface it verbatim.

Example:
    Catching specific error types:
        ```python
        from pathlib import Path
        from ispacbuild import Project
        from ispacbuild.exceptions import ConfigurationNotFoundError, DecryptionError

        project = Project()
        try:
            project.load_from_dtproj(Path("Etl.dtproj"), "Release", password="pw")
        except ConfigurationNotFoundError as e:
            print(f"No configuration named {e.configuration_name}")
        except DecryptionError as e:
            print(f"Bad password: {e}")
        ```
"""

from __future__ import annotations

from pathlib import Path

__all__ = [
    "IspacBuildError",
    "ProjectStateError",
    "ProjectNotLoadedError",
    "ProjectAlreadyLoadedError",
    "ProjectFileNotInitializedError",
    "ProjectFileNotFoundError",
    "FormatMismatchError",
    "WrongExtensionError",
    "UnsupportedDeploymentModelError",
    "InvalidFormatError",
    "UnexpectedEntryError",
    "ConfigurationNotFoundError",
    "ProtectionError",
    "DecryptionError",
    "MissingPasswordError",
    "UnsupportedProtectionLevelError",
    "ConfigError",
]


class IspacBuildError(Exception):
    """Base exception for all ispacbuild errors."""

    pass


class ProjectStateError(IspacBuildError):
    """Raised when an operation is not valid in the current project state."""

    pass


class ProjectNotLoadedError(ProjectStateError):
    """Raised when a project is mutated or saved before a successful load."""

    def __init__(self, message: str = "Project has not been loaded.") -> None:
        super().__init__(message)


class ProjectAlreadyLoadedError(ProjectStateError):
    """Raised when a load is attempted on a project that is already loaded."""

    def __init__(self, message: str = "Project has already been loaded.") -> None:
        super().__init__(message)


class ProjectFileNotInitializedError(ProjectStateError):
    """Raised when a project file is saved or queried before initialize()."""

    pass


class ProjectFileNotFoundError(IspacBuildError, FileNotFoundError):
    """Raised when a required project file does not exist.

    Attributes:
        path: The path that could not be found.
    """

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        super().__init__(
            f"File {self.path} does not exist or you don't have permissions to access it."
        )


class FormatMismatchError(IspacBuildError):
    """Raised when an input does not have the expected format.

    This covers wrong file extensions, unsupported deployment models,
    unexpected archive entries and documents with the wrong shape.
    """

    pass


class WrongExtensionError(FormatMismatchError):
    """Raised when a file does not carry the required extension.

    Attributes:
        path: Offending path.
        expected: Required extension, including the leading dot.
    """

    def __init__(self, path: Path | str, expected: str) -> None:
        self.path = Path(path)
        self.expected = expected
        super().__init__(
            f"File {self.path} must have a {expected} extension. "
            f"Currently: {self.path.suffix or '(none)'}"
        )


class UnsupportedDeploymentModelError(FormatMismatchError):
    """Raised when a project definition is not using the Project deployment model.

    Attributes:
        deployment_model: The model declared by the document (None when absent).
    """

    def __init__(self, deployment_model: str | None) -> None:
        self.deployment_model = deployment_model
        super().__init__(
            "This build method only applies to the Project deployment model. "
            f"Found: {deployment_model!r}"
        )


class InvalidFormatError(FormatMismatchError):
    """Raised when a document cannot be parsed or has the wrong root element."""

    pass


class UnexpectedEntryError(FormatMismatchError):
    """Raised when an archive contains an entry that cannot be classified.

    Attributes:
        entry_name: Name of the offending entry.
        archive_path: Archive being loaded, when known.
    """

    def __init__(self, entry_name: str, archive_path: Path | str | None = None) -> None:
        self.entry_name = entry_name
        self.archive_path = Path(archive_path) if archive_path else None
        where = f" in {self.archive_path}" if self.archive_path else ""
        super().__init__(f"Unexpected file {entry_name}{where}.")


class ConfigurationNotFoundError(IspacBuildError):
    """Raised when the requested build configuration block does not exist.

    Attributes:
        configuration_name: Name that was requested.
    """

    def __init__(self, configuration_name: str) -> None:
        self.configuration_name = configuration_name
        super().__init__(f"Configuration {configuration_name!r} was not found.")


class ProtectionError(IspacBuildError):
    """Base class for encryption and decryption errors."""

    pass


class DecryptionError(ProtectionError):
    """Raised when a protected payload cannot be decrypted.

    This covers a missing password, a wrong password, and tampered data.
    """

    pass


class MissingPasswordError(ProtectionError):
    """Raised when a password-based protection level is requested without a password."""

    def __init__(self, protection_level: str) -> None:
        self.protection_level = protection_level
        super().__init__(
            f"Protection level {protection_level} requires a password."
        )


class UnsupportedProtectionLevelError(ProtectionError):
    """Raised when saving with a protection level this tool cannot produce."""

    def __init__(self, protection_level: str) -> None:
        self.protection_level = protection_level
        super().__init__(
            f"Protection level {protection_level} is not supported for saving. "
            "Use DontSaveSensitive, ServerStorage, EncryptSensitiveWithPassword "
            "or EncryptAllWithPassword."
        )


class ConfigError(IspacBuildError):
    """Raised for build settings errors.

    This exception is raised when there are problems with:

    - YAML parsing (syntax errors, invalid structure)
    - Settings files whose top level is not a mapping
    - Invalid values (unknown protection level, malformed overrides)

    Example:
        Catching configuration errors:
            ```python
            from ispacbuild.config import load_build_settings
            from ispacbuild.exceptions import ConfigError

            try:
                settings = load_build_settings(Path("Etl.dtproj"))
            except ConfigError as e:
                print(f"Settings error: {e}")
            ```
    """

    pass
