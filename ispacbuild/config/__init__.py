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

"""Build settings loading for ispacbuild.

This module loads YAML build settings with a layered approach:

  - Shared settings in ancestor directories (ispacbuild.yaml)
  - Project settings next to the .dtproj (ispacbuild.yaml)
  - An explicit settings file passed on the command line

Dicts are merged recursively and lists/scalars are replaced (last wins).

Public API:

- load_build_settings: Load and merge settings for a project

Example:
    Basic usage:

        from pathlib import Path
        from ispacbuild.config import load_build_settings

        settings = load_build_settings(Path("Etl/Etl.dtproj"))
        print(settings["build"].get("configuration", "Development"))

"""

from .loader import SETTINGS_FILE_NAME, load_build_settings

__all__ = ["SETTINGS_FILE_NAME", "load_build_settings"]
