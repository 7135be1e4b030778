"""Layered merge of computed, custom and dialog fields into request sections.

Later layers win on key collisions:

    computed -> custom (programmatic) -> dialog (user) -> forced

Forced values (``number_of_vms`` and the template ``request_type``) always
match the distribution decision and cannot be overridden.
"""

from collections.abc import Mapping
from typing import Any

from .models import (
    AdditionalValues,
    NetworkSpec,
    ProvisionRequestPlan,
    Requester,
    TemplateFields,
    TemplateSpec,
    VmFields,
)


def merge_layers(*layers: Mapping[str, Any] | None) -> dict[str, Any]:
    """Merge mappings left to right, skipping empty layers."""
    merged: dict[str, Any] = {}
    for layer in layers:
        if layer:
            merged.update({str(key): value for key, value in layer.items()})
    return merged


class FieldMerger:
    """Builds the sections of a provision request for one template."""

    def __init__(self, request_version: str = "1.1") -> None:
        self.request_version = request_version

    def template_fields(self, template: TemplateSpec) -> TemplateFields:
        return TemplateFields.from_spec(template)

    def vm_fields(
        self,
        network: NetworkSpec,
        custom_vm_fields: Mapping[str, Any] | None,
        dialog_options: Mapping[str, Any] | None,
        number_of_vms: int,
    ) -> VmFields:
        values = merge_layers(network.fields, custom_vm_fields, dialog_options)
        values["number_of_vms"] = number_of_vms
        if values.get("vm_memory") is not None:
            values["vm_memory"] = str(values["vm_memory"])
        return VmFields(values)

    def additional_values(
        self,
        service_id: Any,
        network: NetworkSpec,
        custom_additional_values: Mapping[str, Any] | None,
        dialog_options: Mapping[str, Any] | None,
        number_of_vms: int,
    ) -> AdditionalValues:
        computed = {"service_id": service_id, "network_name": network.name}
        values = merge_layers(computed, custom_additional_values, dialog_options)
        values["number_of_vms"] = number_of_vms
        return AdditionalValues(values)

    def build_plan(
        self,
        *,
        template: TemplateSpec,
        network: NetworkSpec,
        requester_fields: Mapping[str, Any],
        tags: Mapping[str, Any] | None,
        service_id: Any,
        custom_vm_fields: Mapping[str, Any] | None,
        custom_additional_values: Mapping[str, Any] | None,
        dialog_options: Mapping[str, Any] | None,
        number_of_vms: int,
    ) -> ProvisionRequestPlan:
        """Assemble a complete provision request plan."""
        return ProvisionRequestPlan(
            template_fields=self.template_fields(template),
            vm_fields=self.vm_fields(network, custom_vm_fields, dialog_options, number_of_vms),
            requester_fields=dict(requester_fields),
            tags=dict(tags or {}),
            additional_values=self.additional_values(
                service_id, network, custom_additional_values, dialog_options, number_of_vms
            ),
            version=self.request_version,
        )


def requester_fields(requester: Requester) -> dict[str, Any]:
    """Requester section, built once per planning run."""
    return requester.to_requester_fields()
