"""Tests for configuration."""

import os
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from provision_planner.config import Settings, get_settings


class TestSettings:
    """Tests for Settings class."""

    def test_default_values(self) -> None:
        """Test default configuration values."""
        settings = Settings()

        assert settings.debug is False
        assert settings.separate_requests is True
        assert settings.default_vm_count == 1
        assert settings.unresolved_network_policy == "degrade"
        assert settings.distributed_switch_prefix == "dvs_"
        assert settings.vnic_profile_min_version == "5.9"
        assert settings.request_version == "1.1"

    def test_fail_on_unresolved_network(self) -> None:
        """Test unresolved network policy property."""
        assert Settings(unresolved_network_policy="fail").fail_on_unresolved_network is True
        assert Settings().fail_on_unresolved_network is False

    def test_invalid_policy_rejected(self) -> None:
        """Test that an unknown unresolved network policy is rejected."""
        with pytest.raises(ValidationError):
            Settings(unresolved_network_policy="ignore")

    def test_env_prefix(self) -> None:
        """Test that environment variables use correct prefix."""
        with patch.dict(
            os.environ,
            {
                "PROVISION_PLANNER_DEBUG": "true",
                "PROVISION_PLANNER_SEPARATE_REQUESTS": "false",
                "PROVISION_PLANNER_MANAGEIQ_URL": "https://cfme.example.com",
            },
        ):
            settings = Settings()

            assert settings.debug is True
            assert settings.separate_requests is False
            assert settings.manageiq_url == "https://cfme.example.com"

    def test_env_file(self, tmp_path, monkeypatch) -> None:
        """Test settings are read from a .env file in the working directory."""
        (tmp_path / ".env").write_text(
            "PROVISION_PLANNER_RHV_USERNAME=admin@internal\nUNRELATED=1\n"
        )
        monkeypatch.chdir(tmp_path)

        assert Settings().rhv_username == "admin@internal"

    def test_get_settings_returns_settings(self) -> None:
        """Test get_settings returns a Settings instance."""
        settings = get_settings()
        assert isinstance(settings, Settings)
