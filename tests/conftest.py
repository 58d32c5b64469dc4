"""
Pytest configuration and shared fixtures for ispacbuild tests.

This module provides reusable fixtures that write small but complete SSIS
project layouts (.dtproj, Project.params, .conmgr, .dtsx, .dtproj.user)
into a temporary directory.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any

import pytest
import yaml

from ispacbuild.logging import SilentLogger, set_global_logger

PROJECT_NAME = "Etl"
CONNECTION_NAME = "Warehouse.conmgr"
PACKAGE_NAME = "Load Sales.dtsx"

# Defaults declared by Project.params
PARAMS_DEFAULTS = {"P1": "A", "P2": "B"}
SECRET = "s3cret-value"
CONNECTION_PASSWORD = "hunter2"

DEFAULT_CONFIGURATIONS = {
    "Development": {"P1": "X"},
    "Production": {"P1": "PROD", "P2": "PROD-B", "Missing": "ignored"},
}


def _property(name: str, value: str | None) -> str:
    text = "" if value is None else value
    return f'<SSIS:Property SSIS:Name="{name}">{text}</SSIS:Property>'


def _parameter(name: str, value: str | None, sensitive: bool = False) -> str:
    return (
        f'<SSIS:Parameter SSIS:Name="{name}">'
        "<SSIS:Properties>"
        f'{_property("Sensitive", "1" if sensitive else "0")}'
        f'{_property("DataType", "18")}'
        f'{_property("Value", value)}'
        "</SSIS:Properties>"
        "</SSIS:Parameter>"
    )


def params_xml(
    parameters: Mapping[str, str | None] | None = None, secret: str | None = SECRET
) -> str:
    """Project.params with plain parameters and one sensitive ApiKey."""
    parameters = PARAMS_DEFAULTS if parameters is None else parameters
    body = "".join(_parameter(name, value) for name, value in parameters.items())
    if secret is not None:
        body += _parameter("ApiKey", secret, sensitive=True)
    return (
        '<?xml version="1.0"?>\n'
        '<SSIS:Parameters xmlns:SSIS="www.microsoft.com/SqlServer/SSIS">'
        f"{body}"
        "</SSIS:Parameters>"
    )


def manifest_xml(protection_level: str = "DontSaveSensitive") -> str:
    """SSIS:Project manifest node declaring one connection and one package."""
    return (
        '<SSIS:Project SSIS:ProtectionLevel="{level}" '
        'xmlns:SSIS="www.microsoft.com/SqlServer/SSIS">'
        "<SSIS:Properties>"
        '{name}{major}{minor}{build}{comments}{description}'
        "</SSIS:Properties>"
        "<SSIS:Packages>"
        f'<SSIS:Package SSIS:Name="{PACKAGE_NAME}" SSIS:EntryPoint="1" />'
        "</SSIS:Packages>"
        "<SSIS:ConnectionManagers>"
        f'<SSIS:ConnectionManager SSIS:Name="{CONNECTION_NAME}" />'
        "</SSIS:ConnectionManagers>"
        "<SSIS:DeploymentInfo>"
        "<SSIS:ProjectConnectionParameters>"
        "{conn_string}"
        "</SSIS:ProjectConnectionParameters>"
        "<SSIS:PackageInfo>"
        f'<SSIS:PackageMetaData SSIS:Name="{PACKAGE_NAME}">'
        "<SSIS:Parameters>{region}</SSIS:Parameters>"
        "</SSIS:PackageMetaData>"
        "</SSIS:PackageInfo>"
        "</SSIS:DeploymentInfo>"
        "</SSIS:Project>"
    ).format(
        level=protection_level,
        name=_property("Name", PROJECT_NAME),
        major=_property("VersionMajor", "1"),
        minor=_property("VersionMinor", "0"),
        build=_property("VersionBuild", "7"),
        comments=_property("VersionComments", None),
        description=_property("Description", "Sample project"),
        conn_string=_parameter(
            "CM.Warehouse.ConnectionString", "Data Source=.;Initial Catalog=Warehouse;"
        ),
        region=_parameter("Region", "North"),
    )


def _configuration(name: str, values: Mapping[str, str]) -> str:
    settings = "".join(
        "<ConfigurationSetting>"
        f"<Id>{index:08d}-0000-0000-0000-000000000000</Id>"
        f"<Name>{parameter}</Name>"
        f'<Value xsi:type="xsd:string">{value}</Value>'
        "</ConfigurationSetting>"
        for index, (parameter, value) in enumerate(values.items())
    )
    return (
        "<Configuration>"
        f"<Name>{name}</Name>"
        "<Options>"
        f"<ParameterConfigurationValues>{settings}</ParameterConfigurationValues>"
        "</Options>"
        "</Configuration>"
    )


def dtproj_xml(
    protection_level: str = "DontSaveSensitive",
    configurations: Mapping[str, Mapping[str, str]] | None = None,
    deployment_model: str = "Project",
) -> str:
    configurations = DEFAULT_CONFIGURATIONS if configurations is None else configurations
    blocks = "".join(_configuration(n, v) for n, v in configurations.items())
    return (
        '<?xml version="1.0" encoding="utf-8"?>\n'
        '<Project xmlns:xsi="http://www.w3.org/2001/XMLSchema-instance" '
        'xmlns:xsd="http://www.w3.org/2001/XMLSchema">'
        "<ProductVersion>15.0.2000.68</ProductVersion>"
        f"<DeploymentModel>{deployment_model}</DeploymentModel>"
        "<DeploymentModelSpecificContent>"
        f"<Manifest>{manifest_xml(protection_level)}</Manifest>"
        "</DeploymentModelSpecificContent>"
        f"<Configurations>{blocks}</Configurations>"
        "</Project>"
    )


def user_configuration_xml(name: str, parameters: Mapping[str, str]) -> str:
    settings = "".join(
        "<ConfigurationSetting>"
        "<Id>00000000-0000-0000-0000-000000000001</Id>"
        f"<Name>{parameter}</Name>"
        f'<Value xsi:type="xsd:string" Sensitive="1">{value}</Value>'
        "</ConfigurationSetting>"
        for parameter, value in parameters.items()
    )
    return (
        '<?xml version="1.0" encoding="utf-8"?>\n'
        "<DataTransformationsUserConfiguration "
        'xmlns:xsi="http://www.w3.org/2001/XMLSchema-instance" '
        'xmlns:xsd="http://www.w3.org/2001/XMLSchema">'
        "<Configurations><Configuration>"
        f"<Name>{name}</Name>"
        "<Options>"
        f"<ParameterConfigurationSensitiveValues>{settings}</ParameterConfigurationSensitiveValues>"
        "</Options>"
        "</Configuration></Configurations>"
        "</DataTransformationsUserConfiguration>"
    )


CONNECTION_XML = (
    '<?xml version="1.0"?>\n'
    '<DTS:ConnectionManager xmlns:DTS="www.microsoft.com/SqlServer/Dts" '
    'DTS:ObjectName="Warehouse" DTS:CreationName="OLEDB">'
    "<DTS:ObjectData>"
    '<DTS:ConnectionManager DTS:ConnectionString="Data Source=.;Initial Catalog=Warehouse;">'
    f'<DTS:Password DTS:Name="Password" Sensitive="1">{CONNECTION_PASSWORD}</DTS:Password>'
    "</DTS:ConnectionManager>"
    "</DTS:ObjectData>"
    "</DTS:ConnectionManager>"
)

PACKAGE_XML = (
    '<?xml version="1.0"?>\n'
    '<DTS:Executable xmlns:DTS="www.microsoft.com/SqlServer/Dts" '
    'DTS:ObjectName="Load Sales" DTS:ExecutableType="Microsoft.Package">'
    '<DTS:Property DTS:Name="PackageFormatVersion">8</DTS:Property>'
    "<DTS:Executables />"
    "</DTS:Executable>"
)


@pytest.fixture(autouse=True)
def silent_logger():
    """Reset the global logger so tests never inherit CLI verbosity."""
    set_global_logger(SilentLogger())
    yield
    set_global_logger(SilentLogger())


@pytest.fixture
def tmp_test_dir(tmp_path: Path) -> Path:
    """
    Provide a temporary directory for test artifacts.

    Automatically cleaned up after test completion.
    """
    return tmp_path


@pytest.fixture
def sample_project(tmp_path: Path) -> Callable[..., Path]:
    """
    Factory fixture that writes an SSIS source layout and returns the .dtproj.

    The layout declares parameters P1, P2 and sensitive ApiKey in
    Project.params, CM.Warehouse.ConnectionString and "Load Sales::Region"
    in the manifest, one connection manager and one package (with a space
    in its name). Configurations: Development (P1=X) and Production.

    Example:
        def test_something(sample_project):
            dtproj = sample_project(user_parameters={"P2": "local"})
    """

    def _create(
        *,
        directory: str = "Etl",
        protection_level: str = "DontSaveSensitive",
        configurations: Mapping[str, Mapping[str, str]] | None = None,
        params: Mapping[str, str | None] | None = None,
        user_parameters: Mapping[str, str] | None = None,
        user_configuration_name: str = "Development",
        deployment_model: str = "Project",
    ) -> Path:
        project_dir = tmp_path / directory
        project_dir.mkdir(parents=True, exist_ok=True)

        dtproj = project_dir / f"{PROJECT_NAME}.dtproj"
        dtproj.write_text(
            dtproj_xml(protection_level, configurations, deployment_model),
            encoding="utf-8",
        )
        (project_dir / "Project.params").write_text(params_xml(params), encoding="utf-8")
        (project_dir / CONNECTION_NAME).write_text(CONNECTION_XML, encoding="utf-8")
        (project_dir / PACKAGE_NAME).write_text(PACKAGE_XML, encoding="utf-8")

        if user_parameters is not None:
            (project_dir / f"{PROJECT_NAME}.dtproj.user").write_text(
                user_configuration_xml(user_configuration_name, user_parameters),
                encoding="utf-8",
            )
        return dtproj

    return _create


@pytest.fixture
def create_yaml_file(tmp_path: Path):
    """
    Factory fixture to create YAML files in the temp directory.

    Usage:
        def test_something(create_yaml_file):
            path = create_yaml_file("Etl/ispacbuild.yaml", {"build": {...}})
    """

    def _create(name: str, data: dict[str, Any]) -> Path:
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            yaml.dump(data, f)
        return path

    return _create


@pytest.fixture
def manifest_bytes() -> Callable[..., bytes]:
    """Factory fixture returning a standalone manifest document."""

    def _create(protection_level: str = "DontSaveSensitive") -> bytes:
        return manifest_xml(protection_level).encode("utf-8")

    return _create


@pytest.fixture
def params_bytes() -> bytes:
    """Project.params document with P1, P2 and the sensitive ApiKey."""
    return params_xml().encode("utf-8")


@pytest.fixture
def user_configuration_bytes() -> Callable[..., bytes]:
    """Factory fixture returning a .dtproj.user document."""

    def _create(name: str = "Development", parameters: Mapping[str, str] | None = None) -> bytes:
        parameters = {} if parameters is None else parameters
        return user_configuration_xml(name, parameters).encode("utf-8")

    return _create


@pytest.fixture
def dtproj_bytes() -> Callable[..., bytes]:
    """Factory fixture returning a .dtproj document."""

    def _create(**kwargs: Any) -> bytes:
        return dtproj_xml(**kwargs).encode("utf-8")

    return _create
