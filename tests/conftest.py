"""Pytest fixtures for provision request planner tests."""

import itertools
from unittest.mock import MagicMock

import pytest

from provision_planner.config import Settings
from provision_planner.models import (
    CloudSubnet,
    InfrastructureNetwork,
    LocationOptions,
    ManagementSystem,
    ProvisionRequestHandle,
    Requester,
    TemplateRecord,
    TemplateSpec,
)
from provision_planner.task import InMemoryTask


@pytest.fixture
def settings() -> Settings:
    """Create test settings."""
    return Settings(
        debug=False,
        separate_requests=True,
        default_vm_count=1,
        unresolved_network_policy="degrade",
        distributed_switch_prefix="dvs_",
        vnic_profile_provider_pattern="Redhat",
        vnic_profile_min_version="5.9",
        manageiq_url="https://miq.example.com",
        manageiq_username="admin",
        manageiq_password="smartvm",
        rhv_username="admin@internal",
        rhv_password="secret",
    )


@pytest.fixture
def requester() -> Requester:
    """Create a requesting user."""
    return Requester(
        userid="jdoe",
        email="jdoe@example.com",
        first_name="Jane",
        last_name="Doe",
    )


@pytest.fixture
def vmware_ems() -> ManagementSystem:
    """Create a VMware provider record."""
    return ManagementSystem(
        id="1",
        type="ManageIQ::Providers::Vmware::InfraManager",
        hostname="vcenter.example.com",
    )


@pytest.fixture
def rhv_ems() -> ManagementSystem:
    """Create a Red Hat Virtualization provider record."""
    return ManagementSystem(
        id="2",
        type="ManageIQ::Providers::Redhat::InfraManager",
        hostname="rhvm.example.com",
        username="admin@internal",
        password="secret",
    )


@pytest.fixture
def templates() -> list[TemplateSpec]:
    """Create two selected templates."""
    return [
        TemplateSpec(name="rhel8-template", guid="guid-1"),
        TemplateSpec(name="rhel9-template", guid="guid-2"),
    ]


@pytest.fixture
def locations() -> list[LocationOptions]:
    """Create one location per template."""
    return [
        LocationOptions(provisioning_network="prod_net", domain_name="a.example.com"),
        LocationOptions(provisioning_network="dev_net", domain_name="b.example.com"),
    ]


@pytest.fixture
def mock_catalog(vmware_ems: ManagementSystem) -> MagicMock:
    """Create a catalog where every network is a plain infrastructure LAN."""
    catalog = MagicMock()
    catalog.find_infrastructure_network.side_effect = lambda name: InfrastructureNetwork(
        name=name, switch_shared=False
    )
    catalog.find_cloud_subnet.return_value = None
    catalog.find_template_by_guid.side_effect = lambda guid: TemplateRecord(
        guid=guid, name=f"template-{guid}", ems_id="1"
    )
    catalog.get_management_system.return_value = vmware_ems
    catalog.server_version.return_value = "5.11.0.0"
    return catalog


@pytest.fixture
def cloud_subnet() -> CloudSubnet:
    """Create a cloud subnet record."""
    return CloudSubnet(
        name="private-a",
        id="10",
        cloud_network_id="20",
        availability_zone_id="30",
    )


@pytest.fixture
def mock_engine() -> MagicMock:
    """Create a provisioning engine returning sequential request ids."""
    engine = MagicMock()
    counter = itertools.count(1000)
    engine.submit.side_effect = lambda plan: ProvisionRequestHandle(id=str(next(counter)))
    return engine


@pytest.fixture
def task() -> InMemoryTask:
    """Create a service template provision task with dialog options."""
    return InMemoryTask(
        id="task-1",
        destination_id="service-42",
        options={
            "parsed_dialog_options": (
                "---\n"
                "0:\n"
                "  :number_of_vms: '5'\n"
                "  :templates: |\n"
                "    - :name: rhel8-template\n"
                "      :guid: guid-1\n"
                "    - :name: rhel9-template\n"
                "      :guid: guid-2\n"
                "  :location_0_provisioning_network: prod_net\n"
                "  :location_1_provisioning_network: dev_net\n"
                "  :vm_memory: 4096\n"
            ),
            "parsed_dialog_tags": "---\n0:\n  :environment: dev\n",
            "custom_vm_fields": {"cores_per_socket": 2},
            "custom_additional_values": {},
        },
    )
