"""Network classification and placement field derivation."""

import re
from collections.abc import Callable
from typing import Any

import structlog

from .catalog import Catalog
from .config import Settings
from .errors import NetworkNotFoundError, TemplateNotFoundError
from .models import (
    CloudSubnet,
    InfrastructureNetwork,
    ManagementSystem,
    NetworkKind,
    NetworkRecord,
    NetworkSpec,
    TemplateSpec,
)
from .vnic_profiles import VnicProfileResolver

logger = structlog.get_logger()

ResolverFactory = Callable[[ManagementSystem], VnicProfileResolver]


def version_at_least(version: str, minimum: str) -> bool:
    """Compare dotted versions numerically ("5.10" >= "5.9").

    A version without a leading number (e.g. "master") counts as newest, an
    empty one as oldest.
    """
    if not version.strip():
        return False

    def parts(value: str) -> list[int] | None:
        numbers = []
        for piece in value.strip().split("."):
            match = re.match(r"\d+", piece)
            if not match:
                break
            numbers.append(int(match.group()))
        return numbers or None

    current = parts(version)
    if current is None:
        return True
    required = parts(minimum) or [0]

    width = max(len(current), len(required))
    current += [0] * (width - len(current))
    required += [0] * (width - len(required))
    return current >= required


class NetworkClassifier:
    """Works out the kind of a network and the VM placement fields for it."""

    def __init__(
        self,
        settings: Settings,
        catalog: Catalog,
        resolver_factory: ResolverFactory | None = None,
    ) -> None:
        self.settings = settings
        self.catalog = catalog
        self.resolver_factory = resolver_factory or self._default_resolver
        self._server_version: str | None = None

    def _default_resolver(self, ems: ManagementSystem) -> VnicProfileResolver:
        return VnicProfileResolver(
            ems,
            verify_ssl=self.settings.rhv_verify_ssl,
            timeout=self.settings.request_timeout_seconds,
        )

    def lookup(self, name: str) -> NetworkRecord | None:
        """Find a network by name, infrastructure catalog first."""
        return self.catalog.find_infrastructure_network(
            name
        ) or self.catalog.find_cloud_subnet(name)

    def classify(self, name: str, template: TemplateSpec) -> NetworkSpec:
        """Resolve ``name`` into a NetworkSpec for provisioning ``template``.

        Raises:
            NetworkNotFoundError: If the name is unknown and the unresolved
                network policy is "fail"
        """
        record = self.lookup(name)
        if record is None:
            if self.settings.fail_on_unresolved_network:
                raise NetworkNotFoundError(f"Network {name!r} not found in any catalog")
            logger.warning("Network not found in any catalog, using name as is", network=name)

        prefix = self.settings.distributed_switch_prefix
        kind = NetworkKind.INFRASTRUCTURE
        if isinstance(record, InfrastructureNetwork) and record.switch_shared:
            kind = NetworkKind.DISTRIBUTED_VSWITCH
            # Rename before anything reads the name.
            if not name.startswith(prefix):
                name = f"{prefix}{name}"
        elif record is not None and name.startswith(prefix):
            kind = NetworkKind.DISTRIBUTED_VSWITCH

        fields: dict[str, Any]
        if isinstance(record, CloudSubnet):
            kind = NetworkKind.CLOUD_SUBNET
            fields = {
                "placement_auto": False,
                "cloud_subnet": record.id,
                "cloud_network": record.cloud_network_id,
                "placement_availability_zone": record.availability_zone_id,
            }
        else:
            fields = {
                "placement_auto": True,
                "vlan": self.vlan_for(name, template),
            }
        fields["network_adapters"] = 1

        logger.info("Classified network", network=name, kind=kind.value)
        return NetworkSpec(name=name, kind=kind, record=record, fields=fields)

    def vlan_for(self, name: str, template: TemplateSpec) -> str:
        """Value of the ``vlan`` field: a vNIC profile id or the network name."""
        ems = self._management_system(template)
        if ems is not None and self._uses_vnic_profiles(ems):
            return self.resolver_factory(ems).vnic_profile_id(name)
        return name

    def _management_system(self, template: TemplateSpec) -> ManagementSystem | None:
        record = self.catalog.find_template_by_guid(template.guid)
        if record is None:
            raise TemplateNotFoundError(
                f"Template {template.name!r} (guid {template.guid}) not found"
            )
        if not record.ems_id:
            return None
        return self.catalog.get_management_system(record.ems_id)

    def _uses_vnic_profiles(self, ems: ManagementSystem) -> bool:
        if not re.search(self.settings.vnic_profile_provider_pattern, ems.type):
            return False
        if self._server_version is None:
            self._server_version = self.catalog.server_version()
        return version_at_least(self._server_version, self.settings.vnic_profile_min_version)
