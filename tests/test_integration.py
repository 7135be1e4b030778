"""Integration tests for the provision request planner.

These tests run the full workflow from task options to ledger. They use
mocked catalogs and engines but real interactions between components.
"""

from unittest.mock import MagicMock

import responses

from provision_planner.config import Settings
from provision_planner.ledger import LEDGER_OPTION
from provision_planner.models import (
    InfrastructureNetwork,
    ManagementSystem,
    ProvisionRequestHandle,
    Requester,
    TemplateRecord,
)
from provision_planner.service import plan_from_task, provision_from_task
from provision_planner.task import InMemoryTask


def submitted_plans(engine: MagicMock) -> list:
    return [call.args[0] for call in engine.submit.call_args_list]


class TestProvisionFromTask:
    """Integration tests for provision_from_task."""

    def test_separate_requests_workflow(
        self,
        settings: Settings,
        task: InMemoryTask,
        requester: Requester,
        mock_catalog: MagicMock,
        mock_engine: MagicMock,
    ) -> None:
        """Test 5 VMs over 2 templates create 5 single-VM requests."""
        result = provision_from_task(task, requester, settings, mock_catalog, mock_engine)

        assert result.ok
        assert result.request_ids == ["1000", "1001", "1002", "1003", "1004"]
        plans = submitted_plans(mock_engine)
        assert all(p.vm_fields.number_of_vms == 1 for p in plans)
        assert plans[0].vm_fields.values["vm_memory"] == "4096"
        assert plans[0].vm_fields.values["cores_per_socket"] == 2
        assert plans[0].tags == {"environment": "dev"}
        assert plans[0].additional_values.values["service_id"] == "service-42"
        assert task.get_option(LEDGER_OPTION) == {
            0: "1000",
            1: "1001",
            2: "1002",
            3: "1003",
            4: "1004",
        }

    def test_single_request_workflow(
        self,
        settings: Settings,
        task: InMemoryTask,
        requester: Requester,
        mock_catalog: MagicMock,
        mock_engine: MagicMock,
    ) -> None:
        """Test one request per template carries the template's allocation."""
        result = provision_from_task(
            task, requester, settings, mock_catalog, mock_engine, separate_requests=False
        )

        assert result.request_ids == ["1000", "1001"]
        assert [p.number_of_vms for p in submitted_plans(mock_engine)] == [3, 2]

    def test_ledger_appends_to_existing(
        self,
        settings: Settings,
        task: InMemoryTask,
        requester: Requester,
        mock_catalog: MagicMock,
        mock_engine: MagicMock,
    ) -> None:
        """Test earlier request ids are kept ahead of new ones."""
        task.set_option(LEDGER_OPTION, {0: "old-1", 1: "old-2"})

        provision_from_task(
            task, requester, settings, mock_catalog, mock_engine, separate_requests=False
        )

        assert task.get_option(LEDGER_OPTION) == {0: "old-1", 1: "old-2", 2: "1000", 3: "1001"}

    def test_distributed_switch_rename_reaches_payload(
        self,
        settings: Settings,
        task: InMemoryTask,
        requester: Requester,
        mock_catalog: MagicMock,
        mock_engine: MagicMock,
    ) -> None:
        """Test the renamed network is used for vlan and network_name."""
        mock_catalog.find_infrastructure_network.side_effect = lambda name: InfrastructureNetwork(
            name=name, switch_shared=(name == "prod_net")
        )

        provision_from_task(
            task, requester, settings, mock_catalog, mock_engine, separate_requests=False
        )

        first, second = submitted_plans(mock_engine)
        assert first.vm_fields.values["vlan"] == "dvs_prod_net"
        assert first.additional_values.values["network_name"] == "dvs_prod_net"
        assert second.vm_fields.values["vlan"] == "dev_net"

    def test_missing_templates_recorded_on_task(
        self,
        settings: Settings,
        requester: Requester,
        mock_catalog: MagicMock,
        mock_engine: MagicMock,
    ) -> None:
        """Test a fatal input error is recorded and nothing is submitted."""
        task = InMemoryTask(id="task-2", options={"parsed_dialog_options": "number_of_vms: 2\n"})

        result = provision_from_task(task, requester, settings, mock_catalog, mock_engine)

        assert not result.ok
        assert result.error == "Selected templates must be specified"
        assert task.result == "error"
        assert task.reason == "Selected templates must be specified"
        assert task.get_option(LEDGER_OPTION) is None
        mock_engine.submit.assert_not_called()

    def test_partial_failure_records_created_requests(
        self,
        settings: Settings,
        task: InMemoryTask,
        requester: Requester,
        mock_catalog: MagicMock,
        mock_engine: MagicMock,
    ) -> None:
        """Test requests created before a failure are still put in the ledger."""
        mock_engine.submit.side_effect = [
            ProvisionRequestHandle(id="1"),
            RuntimeError("quota exceeded"),
        ]

        result = provision_from_task(
            task, requester, settings, mock_catalog, mock_engine, separate_requests=False
        )

        assert not result.ok
        assert "quota exceeded" in (result.error or "")
        assert result.request_ids == ["1"]
        assert task.get_option(LEDGER_OPTION) == {0: "1"}
        assert task.result == "error"

    def test_unsupported_task_type(
        self,
        settings: Settings,
        requester: Requester,
        mock_catalog: MagicMock,
        mock_engine: MagicMock,
    ) -> None:
        """Test an unsupported task type is recorded as an error."""
        task = InMemoryTask(id="task-3", object_type="miq_provision")

        result = provision_from_task(task, requester, settings, mock_catalog, mock_engine)

        assert task.result == "error"
        assert "Can not handle vmdb_object_type: miq_provision" in (result.error or "")


class TestPlanFromTask:
    """Integration tests for the dry run."""

    def test_builds_without_submitting(
        self,
        settings: Settings,
        task: InMemoryTask,
        requester: Requester,
        mock_catalog: MagicMock,
        mock_engine: MagicMock,
    ) -> None:
        """Test the dry run builds requests but submits nothing."""
        built = plan_from_task(task, requester, settings, mock_catalog, mock_engine)

        assert [len(item.plans) for item in built] == [3, 2]
        assert [item.network.name for item in built] == ["prod_net", "dev_net"]
        mock_engine.submit.assert_not_called()
        assert task.get_option(LEDGER_OPTION) is None


class TestPartialFailureLedger:
    """Requests created before a lookup failure always reach the ledger."""

    def mixed_providers(
        self, mock_catalog: MagicMock, vmware_ems: ManagementSystem, rhv_ems: ManagementSystem
    ) -> None:
        mock_catalog.find_template_by_guid.side_effect = lambda guid: TemplateRecord(
            guid=guid, name=f"template-{guid}", ems_id="1" if guid == "guid-1" else "2"
        )
        mock_catalog.get_management_system.side_effect = lambda ems_id: (
            vmware_ems if ems_id == "1" else rhv_ems
        )

    def test_unreadable_profile_listing(
        self,
        settings: Settings,
        task: InMemoryTask,
        requester: Requester,
        mock_catalog: MagicMock,
        mock_engine: MagicMock,
        vmware_ems: ManagementSystem,
        rhv_ems: ManagementSystem,
    ) -> None:
        """Test an HTML vNIC profile listing on the second template."""
        self.mixed_providers(mock_catalog, vmware_ems, rhv_ems)
        api = "https://rhvm.example.com/ovirt-engine/api"

        with responses.RequestsMock() as rsps:
            rsps.add(responses.GET, api, json={}, status=200)
            rsps.add(
                responses.GET,
                f"{api}/vnicprofiles",
                body="<html>proxy login</html>",
                status=200,
                content_type="text/html",
            )
            result = provision_from_task(
                task, requester, settings, mock_catalog, mock_engine, separate_requests=False
            )

        assert not result.ok
        assert "Failed to list vNIC profiles" in (result.error or "")
        assert result.request_ids == ["1000"]
        assert task.get_option(LEDGER_OPTION) == {0: "1000"}
        assert task.result == "error"

    def test_unexpected_collaborator_error(
        self,
        settings: Settings,
        task: InMemoryTask,
        requester: Requester,
        mock_catalog: MagicMock,
        mock_engine: MagicMock,
        vmware_ems: ManagementSystem,
        rhv_ems: ManagementSystem,
    ) -> None:
        """Test a non-planner exception still keeps the created requests."""
        self.mixed_providers(mock_catalog, vmware_ems, rhv_ems)
        resolver = MagicMock()
        resolver.vnic_profile_id.side_effect = KeyError("id")

        result = provision_from_task(
            task,
            requester,
            settings,
            mock_catalog,
            mock_engine,
            resolver_factory=lambda ems: resolver,
            separate_requests=False,
        )

        assert not result.ok
        assert "Unexpected error while planning" in (result.error or "")
        assert result.request_ids == ["1000"]
        assert task.get_option(LEDGER_OPTION) == {0: "1000"}
        assert task.reason == result.error
