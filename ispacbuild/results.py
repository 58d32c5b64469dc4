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

"""Public API return types for ispacbuild.

All dataclasses are frozen (immutable) to prevent accidental mutation of
return values.

Example:
    Using result types:
        ```python
        from pathlib import Path
        from ispacbuild import build_project

        result = build_project(Path("Etl/Etl.dtproj"), configuration="Development")
        print(result.output_path)  # Attribute access, not dict access
        ```

Note:
    Only public API return types belong in this module. Domain types
    (like Parameter or ProjectFile) remain co-located with their logic.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class BuildResult:
    """Result from building an .ispac archive from a .dtproj.

    Attributes:
        project_path: Path to the .dtproj that was built.
        output_path: Path to the written .ispac archive.
        configuration: Build configuration that was applied.
        protection_level: Protection level name the archive was saved with.
        parameter_count: Number of parameters in the merged table.
        overridden_parameters: Names updated from settings or the command line.
        connection_count: Number of connection managers packaged.
        package_count: Number of packages packaged.
        status: Always "success" for a successful build.
    """

    project_path: Path
    output_path: Path
    configuration: str
    protection_level: str
    parameter_count: int
    overridden_parameters: tuple[str, ...]
    connection_count: int
    package_count: int
    status: str
