"""
Project file handling for ispacbuild.

Every document that makes up an SSIS project (manifest, Project.params,
connection managers, packages) is a ProjectFile tagged with its FileKind.
The manifest additionally gets a typed Manifest view for its metadata and
declared file lists.

Public API:

FileKind : enum
    MANIFEST, PARAMS, CONNECTION, PACKAGE (extension + expected root).
ProjectFile : class
    initialize(source, password) / save(stream, protection_level, password).
Manifest : class
    Version fields, description, protection level, connection and package names.
"""

from .manifest import Manifest
from .project_file import FileKind, ProjectFile, read_source

__all__ = ["FileKind", "Manifest", "ProjectFile", "read_source"]
