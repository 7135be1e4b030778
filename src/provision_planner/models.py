"""Data models for the provision request planner."""

import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class NetworkKind(Enum):
    """Kind of network a template is provisioned onto."""

    INFRASTRUCTURE = "infrastructure"
    DISTRIBUTED_VSWITCH = "distributed-vswitch"
    CLOUD_SUBNET = "cloud-subnet"


@dataclass(frozen=True)
class Requester:
    """User requesting the new VMs."""

    userid: str
    email: str | None = None
    first_name: str | None = None
    last_name: str | None = None

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> "Requester":
        """Create a Requester from a mapping such as a task file section."""
        return cls(
            userid=str(data["userid"]),
            email=data.get("email"),
            first_name=data.get("first_name"),
            last_name=data.get("last_name"),
        )

    def to_requester_fields(self) -> dict[str, Any]:
        """Requester section of a provision request.

        ``user_name`` must be the login, otherwise the engine attributes the
        request to its default admin user.
        """
        return {
            "user_name": self.userid,
            "owner_email": self.email,
            "owner_first_name": self.first_name,
            "owner_last_name": self.last_name,
        }


@dataclass
class TemplateSpec:
    """A template selected for provisioning."""

    name: str
    guid: str
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> "TemplateSpec":
        """Create a TemplateSpec from a dialog template entry."""
        extra = {str(k): v for k, v in data.items() if str(k) not in ("name", "guid")}
        return cls(name=str(data["name"]), guid=str(data["guid"]), extra=extra)

    def as_fields(self) -> dict[str, Any]:
        """Template descriptor as a plain mapping."""
        return {"name": self.name, "guid": self.guid, **self.extra}


@dataclass(frozen=True)
class InfrastructureNetwork:
    """Infrastructure LAN record."""

    name: str
    switch_shared: bool = False


@dataclass(frozen=True)
class CloudSubnet:
    """Cloud subnet record."""

    name: str
    id: str
    cloud_network_id: str | None = None
    availability_zone_id: str | None = None


NetworkRecord = InfrastructureNetwork | CloudSubnet


@dataclass
class NetworkSpec:
    """Resolved network for one template, with its placement fields."""

    name: str
    kind: NetworkKind
    record: NetworkRecord | None = None
    fields: dict[str, Any] = field(default_factory=dict)

    @property
    def resolved(self) -> bool:
        """Check if the name was found in a catalog."""
        return self.record is not None


@dataclass
class ManagementSystem:
    """Provider (external management system) that owns a template."""

    id: str
    type: str
    hostname: str
    username: str | None = None
    password: str | None = field(default=None, repr=False)


@dataclass
class TemplateRecord:
    """Catalog entry for a template."""

    guid: str
    name: str
    ems_id: str | None = None


@dataclass
class TemplateFields:
    """Template section of a provision request."""

    values: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_spec(cls, spec: TemplateSpec) -> "TemplateFields":
        values = spec.as_fields()
        values["request_type"] = "template"
        return cls(values=values)


@dataclass
class VmFields:
    """VM section of a provision request."""

    values: dict[str, Any] = field(default_factory=dict)

    @property
    def number_of_vms(self) -> int:
        return int(self.values.get("number_of_vms", 0))


@dataclass
class AdditionalValues:
    """Additional values (ws values) section of a provision request."""

    values: dict[str, Any] = field(default_factory=dict)

    @property
    def number_of_vms(self) -> int:
        return int(self.values.get("number_of_vms", 0))


@dataclass
class ProvisionRequestPlan:
    """Payload of a single provision request."""

    template_fields: TemplateFields
    vm_fields: VmFields
    requester_fields: dict[str, Any]
    tags: dict[str, Any]
    additional_values: AdditionalValues
    ems_custom_attrs: dict[str, Any] = field(default_factory=dict)
    miq_custom_attrs: dict[str, Any] = field(default_factory=dict)
    version: str = "1.1"

    @property
    def number_of_vms(self) -> int:
        return self.vm_fields.number_of_vms

    def with_vm_count(self, count: int) -> "ProvisionRequestPlan":
        """Independent copy of this plan asking for ``count`` VMs."""
        plan = copy.deepcopy(self)
        plan.vm_fields.values["number_of_vms"] = count
        plan.additional_values.values["number_of_vms"] = count
        return plan

    def to_payload(self) -> dict[str, Any]:
        """Convert to the string-keyed provision request body."""

        def stringify(values: dict[Any, Any]) -> dict[str, Any]:
            return {str(k): v for k, v in values.items()}

        return {
            "version": self.version,
            "template_fields": stringify(self.template_fields.values),
            "vm_fields": stringify(self.vm_fields.values),
            "requester": stringify(self.requester_fields),
            "tags": stringify(self.tags),
            "additional_values": stringify(self.additional_values.values),
            "ems_custom_attributes": stringify(self.ems_custom_attrs),
            "miq_custom_attributes": stringify(self.miq_custom_attrs),
        }


@dataclass(frozen=True)
class ProvisionRequestHandle:
    """Identifier of a request created by the provisioning engine."""

    id: str
    href: str | None = None


@dataclass
class LocationOptions:
    """Dialog options for one location (one per selected template)."""

    provisioning_network: str | None = None
    destination_network: str | None = None
    destination_network_gateway: str | None = None
    domain_name: str | None = None
    cloud_flavor: str | None = None
    cloud_ssh_key: str | None = None

    @classmethod
    def from_dialog(cls, dialog_options: dict[str, Any], index: int) -> "LocationOptions":
        """Read the ``location_<index>_*`` dialog options."""

        def option(name: str) -> Any:
            return dialog_options.get(f"location_{index}_{name}")

        return cls(
            provisioning_network=option("provisioning_network"),
            destination_network=option("destination_network"),
            destination_network_gateway=option("destination_network_gateway"),
            domain_name=option("domain_name"),
            cloud_flavor=option("cloud_flavor"),
            cloud_ssh_key=option("cloud_ssh_key"),
        )

    def custom_additional_values(self) -> dict[str, Any]:
        return {
            "destination_network": self.destination_network,
            "destination_network_gateway": self.destination_network_gateway,
            "domain_name": self.domain_name,
        }

    def custom_vm_fields(self) -> dict[str, Any]:
        """Cloud specific VM fields, skipping blank values."""
        fields: dict[str, Any] = {}
        if self.cloud_flavor:
            fields["instance_type"] = self.cloud_flavor
        if self.cloud_ssh_key:
            fields["guest_access_key_pair"] = self.cloud_ssh_key
        return fields


@dataclass
class PlanResult:
    """Outcome of one planning run."""

    handles: list[ProvisionRequestHandle] = field(default_factory=list)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def request_ids(self) -> list[str]:
        return [handle.id for handle in self.handles]
