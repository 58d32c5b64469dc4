"""
ispacbuild - SSIS project builder

A Python library and CLI for turning SQL Server Integration Services
projects into deployable .ispac archives, without Visual Studio.

ispacbuild provides:
  - Loading projects from a .dtproj source layout or an existing .ispac
  - Build configuration and per-user (.dtproj.user) parameter overlays
  - Parameter overrides with a recorded value source
  - Protection-level handling (strip, encrypt sensitive, encrypt all)
  - Layered YAML build settings (ispacbuild.yaml)

Quick Start
-----------
Build the Development configuration:

    $ ispacbuild build Etl/Etl.dtproj

Inspect an archive:

    $ ispacbuild inspect Etl/bin/Development/Etl.ispac

For full CLI documentation:

    $ ispacbuild --help

Package Structure
-----------------
cli : module
    Command-line interface with argparse.
builder : module
    High-level build orchestration.
project : module
    The Project aggregate (load .dtproj/.ispac, save .ispac).
files : package
    Project files (manifest, params, connection managers, packages).
protection : package
    Protection levels and the payload encryption codec.
overlays : module
    Build configuration and user configuration readers.
config : package
    YAML build settings loading and merging.

Public API
----------
The primary interface is the CLI, but key types are exported for
programmatic use:

    from ispacbuild import Project, ParameterSource, ProtectionLevel
    from ispacbuild import build_project, load_build_settings

For more details, see the individual module docstrings.

Project Information
-------------------
Author: Roger Cibrian
License: Apache-2.0
"""

__version__ = "0.1.0"
__author__ = "Roger Cibrian"
__license__ = "Apache-2.0"
__description__ = "Build and inspect SSIS .ispac deployment archives"

# Re-export commonly used types and functions for convenience
from ispacbuild.builder import build_project
from ispacbuild.config import load_build_settings
from ispacbuild.parameters import Parameter, ParameterSource
from ispacbuild.project import Project
from ispacbuild.protection import ProtectionLevel
from ispacbuild.results import BuildResult

__all__ = [
    "__version__",
    "__author__",
    "__license__",
    "__description__",
    "Project",
    "Parameter",
    "ParameterSource",
    "ProtectionLevel",
    "BuildResult",
    "build_project",
    "load_build_settings",
]
