"""
Tests for ispacbuild.overlays module.

Tests configuration overlay readers including:
- Build configuration values from a .dtproj
- User configuration names from a .dtproj.user (values always None)
- Missing configuration names
- Documents with the wrong root element
"""

from __future__ import annotations

import io

import pytest

from ispacbuild.exceptions import ConfigurationNotFoundError, InvalidFormatError
from ispacbuild.overlays import BuildConfiguration, UserConfiguration

pytestmark = pytest.mark.unit


class TestUserConfiguration:
    """Tests for UserConfiguration."""

    def test_parameters_exposed_without_values(self, user_configuration_bytes):
        """Test that listed parameters are exposed with None values."""
        raw = user_configuration_bytes(
            "Development", {"Parameter1": "Value1", "Parameter2": "Value2"}
        )

        config = UserConfiguration("Development").initialize(io.BytesIO(raw), "anything")

        assert set(config.parameters) == {"Parameter1", "Parameter2"}
        assert config.parameters["Parameter1"] is None
        assert config.parameters["Parameter2"] is None

    def test_no_parameters(self, user_configuration_bytes):
        """Test that an empty configuration block gives an empty mapping."""
        config = UserConfiguration("Development").initialize(user_configuration_bytes())

        assert len(config.parameters) == 0

    def test_missing_configuration_raises(self, user_configuration_bytes):
        """Test that an unknown name raises with the requested name attached."""
        raw = user_configuration_bytes("5f0c2a7e9b3d4c1a8e6f0b2d4a6c8e0f")

        with pytest.raises(ConfigurationNotFoundError) as exc_info:
            UserConfiguration("Development").initialize(raw)

        assert exc_info.value.configuration_name == "Development"

    def test_wrong_root_raises(self, dtproj_bytes):
        """Test that a .dtproj is not accepted as a user configuration."""
        with pytest.raises(InvalidFormatError):
            UserConfiguration("Development").initialize(dtproj_bytes())


class TestBuildConfiguration:
    """Tests for BuildConfiguration."""

    def test_values_read(self, dtproj_bytes):
        """Test that configuration values are read by parameter name."""
        config = BuildConfiguration("Production").initialize(dtproj_bytes())

        assert dict(config.parameters) == {
            "P1": "PROD",
            "P2": "PROD-B",
            "Missing": "ignored",
        }

    def test_selects_named_block(self, dtproj_bytes):
        config = BuildConfiguration("Development").initialize(dtproj_bytes())
        assert dict(config.parameters) == {"P1": "X"}

    def test_missing_configuration_raises(self, dtproj_bytes):
        """Test that an unknown configuration name raises."""
        with pytest.raises(ConfigurationNotFoundError) as exc_info:
            BuildConfiguration("Staging").initialize(dtproj_bytes())

        assert exc_info.value.configuration_name == "Staging"

    def test_reads_from_path(self, sample_project):
        dtproj = sample_project()
        config = BuildConfiguration("Development").initialize(dtproj)
        assert config.parameters["P1"] == "X"
