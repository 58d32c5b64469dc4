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

"""Command-line interface for ispacbuild.

This module provides the main CLI entry point for the ispacbuild tool,
offering commands for building and inspecting SSIS .ispac archives.

Commands:

    build: Build an .ispac archive from a .dtproj source layout
    inspect: Show the contents of an .ispac or .dtproj

Example:
    Build with the Development configuration:
        ```bash
        $ ispacbuild build Etl/Etl.dtproj
        ```

    Build Production, encrypting sensitive values:
        ```bash
        $ ispacbuild build Etl/Etl.dtproj -c Production \\
            --protection-level EncryptSensitiveWithPassword --password secret
        ```

    Override parameters:
        ```bash
        $ ispacbuild build Etl/Etl.dtproj -p BatchSize=500 -p Load::Target=dbo.Sales
        ```

    Inspect an archive:
        ```bash
        $ ispacbuild inspect bin/Development/Etl.ispac --password secret
        ```

Exit Codes:

- 0: Success
- 1: Error (settings, format, protection, or missing files)

Note:
    The CLI uses argparse for command parsing (stdlib, zero dependencies).
    Each command has its own handler function (cmd_<command>).
    Verbose mode shows full tracebacks on errors for debugging.
    Debug mode implies verbose mode.

"""

from __future__ import annotations

import argparse
from importlib.metadata import version
from pathlib import Path
import sys

from ispacbuild.archive import ISPAC_EXTENSION
from ispacbuild.builder import DEFAULT_CONFIGURATION, build_project
from ispacbuild.exceptions import (
    ConfigError,
    FormatMismatchError,
    IspacBuildError,
    ProtectionError,
)
from ispacbuild.logging import get_logger, mask_value, set_global_logger
from ispacbuild.project import Project
from ispacbuild.protection import ProtectionLevel


def _parse_assignment(text: str) -> tuple[str, str]:
    """argparse type for NAME=VALUE parameter overrides."""
    name, sep, value = text.partition("=")
    if not sep or not name.strip():
        raise argparse.ArgumentTypeError(f"expected NAME=VALUE, got {text!r}")
    return name.strip(), value


def _report_error(err: Exception, args: argparse.Namespace) -> int:
    print(f"Error: {err}")
    if args.verbose or args.debug:
        import traceback

        traceback.print_exc()
    return 1


def cmd_build(args: argparse.Namespace) -> int:
    """Handler for 'ispacbuild build' command.

    Loads the .dtproj with the chosen configuration, applies build settings
    and command-line overrides, and writes the .ispac archive.

    Args:
        args: Parsed command-line arguments containing the project path,
            configuration, output directory, protection options, overrides
            and flags.

    Returns:
        Exit code (0 for success, 1 for failure).

    """
    # Configure global logger
    logger = get_logger(verbose=args.verbose, debug=args.debug)
    set_global_logger(logger)

    project_path = Path(args.project).resolve()
    output_dir = Path(args.output_dir) if args.output_dir else None
    settings_path = Path(args.settings) if args.settings else None

    if not project_path.exists():
        print(f"Error: Project file not found: {project_path}")
        return 1

    print(f"Building project: {project_path}")
    if output_dir:
        print(f"Output directory: {output_dir}")
    print()

    try:
        result = build_project(
            project_path,
            configuration=args.configuration,
            output_dir=output_dir,
            protection_level=args.protection_level,
            password=args.password,
            new_password=args.new_password,
            parameters=dict(args.parameters or []),
            settings_path=settings_path,
        )
    except (ConfigError, FormatMismatchError, ProtectionError) as err:
        return _report_error(err, args)
    except IspacBuildError as err:
        # Catch any other ispacbuild errors we might have missed
        return _report_error(err, args)

    # Display results
    print("=" * 70)
    print("BUILD RESULTS")
    print("=" * 70)
    print(f"Project:          {result.project_path}")
    print(f"Configuration:    {result.configuration}")
    print(f"Protection Level: {result.protection_level}")
    print(f"Parameters:       {result.parameter_count}")
    print(f"Overrides:        {len(result.overridden_parameters)}")
    print(f"Connections:      {result.connection_count}")
    print(f"Packages:         {result.package_count}")
    print(f"Output:           {result.output_path}")
    print(f"Status:           {result.status}")
    print("=" * 70)
    print()
    print("[SUCCESS] Project built successfully!")

    return 0


def cmd_inspect(args: argparse.Namespace) -> int:
    """Handler for 'ispacbuild inspect' command.

    Loads an .ispac archive (or a .dtproj with a configuration) and prints
    its protection level, version, files and parameters. Sensitive values
    are masked.

    Args:
        args: Parsed command-line arguments containing the path,
            configuration, password and flags.

    Returns:
        Exit code (0 for success, 1 for failure).

    """
    logger = get_logger(verbose=args.verbose, debug=args.debug)
    set_global_logger(logger)

    path = Path(args.path).resolve()
    if not path.exists():
        print(f"Error: File not found: {path}")
        return 1

    project = Project()
    try:
        if path.suffix.lower() == ISPAC_EXTENSION:
            project.load_from_ispac(path, args.password)
        else:
            project.load_from_dtproj(
                path, args.configuration or DEFAULT_CONFIGURATION, args.password
            )
    except IspacBuildError as err:
        return _report_error(err, args)

    print("=" * 70)
    print("PROJECT")
    print("=" * 70)
    print(f"Path:             {path}")
    print(f"Protection Level: {project.protection_level}")
    version_text = ".".join(
        part or "0"
        for part in (project.version_major, project.version_minor, project.version_build)
    )
    print(f"Version:          {version_text}")
    if project.version_comments:
        print(f"Comments:         {project.version_comments}")
    if project.description:
        print(f"Description:      {project.description}")
    print()

    print(f"Connections ({len(project.connection_names)}):")
    for name in project.connection_names:
        print(f"  {name}")
    print(f"Packages ({len(project.package_names)}):")
    for name in project.package_names:
        print(f"  {name}")
    print()

    print(f"Parameters ({len(project.parameters)}):")
    for name, parameter in project.parameters.items():
        shown = mask_value(parameter.value, parameter.sensitive)
        print(f"  {name} = {shown}  [{parameter.source.name.lower()}]")
    print("=" * 70)

    return 0


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the ispacbuild CLI.

    This function is registered as the 'ispacbuild' console script in
    pyproject.toml.
    """
    parser = argparse.ArgumentParser(
        prog="ispacbuild",
        description="ispacbuild - build and inspect SSIS .ispac deployment archives",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"ispacbuild {version('ispacbuild')}",
    )

    subparsers = parser.add_subparsers(
        dest="command",
        help="Available commands",
        required=True,
    )

    level_names = [level.value for level in ProtectionLevel if level.is_saveable]

    # 'build' command
    parser_build = subparsers.add_parser(
        "build",
        help="Build an .ispac archive from a .dtproj",
        description="Load an SSIS project, apply a build configuration and overrides, and write an .ispac archive.",
    )
    parser_build.add_argument(
        "project",
        help="Path to the .dtproj file",
    )
    parser_build.add_argument(
        "-c",
        "--configuration",
        default=None,
        help=f"Build configuration to apply (default: from settings or {DEFAULT_CONFIGURATION})",
    )
    parser_build.add_argument(
        "-o",
        "--output-dir",
        default=None,
        help="Directory for the .ispac (default: from settings or bin/<configuration>)",
    )
    parser_build.add_argument(
        "--protection-level",
        choices=level_names,
        default=None,
        help="Protection level for the archive (default: from settings or the manifest)",
    )
    parser_build.add_argument(
        "--password",
        default=None,
        help="Password for protected source files",
    )
    parser_build.add_argument(
        "--new-password",
        default=None,
        help="Password to encrypt the archive with (default: --password)",
    )
    parser_build.add_argument(
        "-p",
        "--parameter",
        dest="parameters",
        action="append",
        type=_parse_assignment,
        metavar="NAME=VALUE",
        help="Override a parameter value (repeatable)",
    )
    parser_build.add_argument(
        "--settings",
        default=None,
        help="Extra settings YAML merged over ispacbuild.yaml files",
    )
    parser_build.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show progress and high-level status updates",
    )
    parser_build.add_argument(
        "-d",
        "--debug",
        action="store_true",
        help="Show detailed debugging output (implies --verbose)",
    )
    parser_build.set_defaults(func=cmd_build)

    # 'inspect' command
    parser_inspect = subparsers.add_parser(
        "inspect",
        help="Show the contents of an .ispac or .dtproj",
        description="Print protection level, version, files and parameters (sensitive values masked).",
    )
    parser_inspect.add_argument(
        "path",
        help="Path to an .ispac archive or .dtproj file",
    )
    parser_inspect.add_argument(
        "-c",
        "--configuration",
        default=None,
        help=f"Configuration for .dtproj input (default: {DEFAULT_CONFIGURATION})",
    )
    parser_inspect.add_argument(
        "--password",
        default=None,
        help="Password for protected content",
    )
    parser_inspect.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show progress and high-level status updates",
    )
    parser_inspect.add_argument(
        "-d",
        "--debug",
        action="store_true",
        help="Show detailed debugging output (implies --verbose)",
    )
    parser_inspect.set_defaults(func=cmd_inspect)

    # Parse and dispatch
    args = parser.parse_args(argv)

    exit_code = args.func(args)
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
