"""Configuration management for the provision request planner."""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="PROVISION_PLANNER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Planning behaviour
    debug: bool = Field(default=False, description="Log every planner input and payload")
    separate_requests: bool = Field(
        default=True, description="Create one provision request per VM"
    )
    default_vm_count: int = Field(
        default=1, description="VM count used when no dialog or custom value is set"
    )
    unresolved_network_policy: Literal["degrade", "fail"] = Field(
        default="degrade",
        description="What to do with a network name found in no catalog",
    )
    distributed_switch_prefix: str = Field(
        default="dvs_", description="Name prefix marking distributed vswitch port groups"
    )
    request_version: str = Field(default="1.1", description="Provision request payload version")

    # vNIC profile lookup
    vnic_profile_provider_pattern: str = Field(
        default="Redhat", description="Provider type pattern that uses vNIC profile ids"
    )
    vnic_profile_min_version: str = Field(
        default="5.9", description="Minimum automation server version for vNIC profile ids"
    )

    # ManageIQ REST API
    manageiq_url: str = Field(default="https://localhost", description="ManageIQ base URL")
    manageiq_username: str = Field(default="admin", description="ManageIQ API user")
    manageiq_password: str | None = Field(default=None, description="ManageIQ API password")
    manageiq_verify_ssl: bool = Field(default=False, description="Verify ManageIQ TLS cert")
    request_timeout_seconds: int = Field(default=30, description="HTTP request timeout")

    # Virtualization management API credentials
    rhv_username: str | None = Field(default=None, description="RHV manager API user")
    rhv_password: str | None = Field(default=None, description="RHV manager API password")
    rhv_verify_ssl: bool = Field(default=False, description="Verify RHV manager TLS cert")

    @property
    def fail_on_unresolved_network(self) -> bool:
        """Check if unresolved networks abort planning."""
        return self.unresolved_network_policy == "fail"


def get_settings() -> Settings:
    """Get application settings singleton."""
    return Settings()
