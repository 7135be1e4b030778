"""Interfaces of the external collaborators used while planning."""

from typing import Protocol

from .models import (
    CloudSubnet,
    InfrastructureNetwork,
    ManagementSystem,
    ProvisionRequestHandle,
    ProvisionRequestPlan,
    TemplateRecord,
)


class NetworkCatalog(Protocol):
    """Infrastructure LAN and cloud subnet lookups."""

    def find_infrastructure_network(self, name: str) -> InfrastructureNetwork | None: ...

    def find_cloud_subnet(self, name: str) -> CloudSubnet | None: ...


class TemplateCatalog(Protocol):
    """Template and provider lookups."""

    def find_template_by_guid(self, guid: str) -> TemplateRecord | None: ...

    def get_management_system(self, ems_id: str) -> ManagementSystem | None: ...

    def server_version(self) -> str: ...


class ProvisioningEngine(Protocol):
    """Creates provision requests."""

    def submit(self, plan: ProvisionRequestPlan) -> ProvisionRequestHandle: ...


class Catalog(NetworkCatalog, TemplateCatalog, Protocol):
    """Every lookup the planner needs."""
