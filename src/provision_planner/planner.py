"""Plans and submits the provision requests for a service provisioning task."""

from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

import structlog

from .catalog import Catalog, ProvisioningEngine
from .config import Settings
from .distributor import distribute_vm_count
from .errors import InvalidInputError, MissingTemplatesError, PlannerError, SubmissionError
from .field_merger import FieldMerger, merge_layers, requester_fields
from .models import (
    LocationOptions,
    NetworkSpec,
    ProvisionRequestHandle,
    ProvisionRequestPlan,
    Requester,
    TemplateSpec,
)
from .network import NetworkClassifier, ResolverFactory
from .task import resolve_vm_count

logger = structlog.get_logger()


@dataclass
class TemplateWork:
    """Everything needed to build the requests of one template."""

    index: int
    template: TemplateSpec
    location: LocationOptions
    vm_count: int
    custom_vm_fields: dict[str, Any] = field(default_factory=dict)
    custom_additional_values: dict[str, Any] = field(default_factory=dict)

    @property
    def network_name(self) -> str:
        return str(self.location.provisioning_network)


@dataclass
class TemplatePlans:
    """Requests built for one template."""

    work: TemplateWork
    network: NetworkSpec
    plans: list[ProvisionRequestPlan]


def union_handles(
    handles: Sequence[ProvisionRequestHandle], new: Sequence[ProvisionRequestHandle]
) -> list[ProvisionRequestHandle]:
    """Append ``new`` to ``handles`` skipping ids already present."""
    seen = {handle.id for handle in handles}
    merged = list(handles)
    for handle in new:
        if handle.id not in seen:
            seen.add(handle.id)
            merged.append(handle)
    return merged


class RequestPlanner:
    """Distributes VMs across templates and creates their provision requests.

    Templates are processed strictly in order. A failure while resolving or
    submitting one template stops the run; requests already created are
    attached to the raised error and are not rolled back.
    """

    def __init__(
        self,
        settings: Settings,
        catalog: Catalog,
        engine: ProvisioningEngine,
        resolver_factory: ResolverFactory | None = None,
        debug: bool | None = None,
    ) -> None:
        self.settings = settings
        self.catalog = catalog
        self.engine = engine
        self.resolver_factory = resolver_factory
        self.debug = settings.debug if debug is None else debug
        self.merger = FieldMerger(settings.request_version)

    def prepare(
        self,
        templates: Sequence[TemplateSpec],
        locations: Sequence[LocationOptions],
        dialog_options: Mapping[str, Any],
        custom_vm_fields: Mapping[str, Any] | None = None,
        custom_additional_values: Mapping[str, Any] | None = None,
        total_vm_count: int | None = None,
    ) -> list[TemplateWork]:
        """Validate inputs and allocate VMs to templates.

        Nothing is looked up or submitted here, so a validation failure
        leaves no side effects.

        Raises:
            MissingTemplatesError: If no templates were selected
            InvalidInputError: If the VM count or a provisioning network is
                missing or invalid
        """
        if not templates:
            raise MissingTemplatesError()

        custom_vm_fields = dict(custom_vm_fields or {})
        custom_additional_values = dict(custom_additional_values or {})
        if total_vm_count is None:
            total_vm_count = resolve_vm_count(
                dict(dialog_options),
                custom_vm_fields,
                custom_additional_values,
                default=self.settings.default_vm_count,
            )
        if total_vm_count < 0:
            raise InvalidInputError(f"Number of VMs must not be negative: {total_vm_count}")

        allocation = distribute_vm_count(total_vm_count, len(templates))
        logger.info(
            "Distributed VMs across templates",
            number_of_vms=total_vm_count,
            templates=len(templates),
            allocation=allocation,
        )

        work = []
        for index, (template, vm_count) in enumerate(zip(templates, allocation, strict=True)):
            location = locations[index] if index < len(locations) else LocationOptions()
            if vm_count > 0 and not location.provisioning_network:
                raise InvalidInputError(
                    f"No provisioning network selected for location {index} "
                    f"(template {template.name!r})"
                )
            work.append(
                TemplateWork(
                    index=index,
                    template=template,
                    location=location,
                    vm_count=vm_count,
                    custom_vm_fields=merge_layers(
                        custom_vm_fields, location.custom_vm_fields()
                    ),
                    custom_additional_values=merge_layers(
                        custom_additional_values, location.custom_additional_values()
                    ),
                )
            )
        return work

    def iter_plans(
        self,
        work: Sequence[TemplateWork],
        *,
        service_id: Any,
        requester: Requester,
        dialog_options: Mapping[str, Any],
        tags: Mapping[str, Any] | None = None,
        separate_requests: bool | None = None,
    ) -> Iterator[TemplatePlans]:
        """Resolve networks and build requests, one template at a time."""
        if separate_requests is None:
            separate_requests = self.settings.separate_requests

        # Fresh classifier per run so catalog answers are never reused across runs.
        classifier = NetworkClassifier(self.settings, self.catalog, self.resolver_factory)
        requester_section = requester_fields(requester)

        for item in work:
            if item.vm_count == 0:
                logger.info("No VMs allocated, skipping template", template=item.template.name)
                continue

            if separate_requests:
                number_of_requests, vms_per_request = item.vm_count, 1
            else:
                number_of_requests, vms_per_request = 1, item.vm_count

            network = classifier.classify(item.network_name, item.template)
            plan = self.merger.build_plan(
                template=item.template,
                network=network,
                requester_fields=requester_section,
                tags=tags,
                service_id=service_id,
                custom_vm_fields=item.custom_vm_fields,
                custom_additional_values=item.custom_additional_values,
                dialog_options=dialog_options,
                number_of_vms=vms_per_request,
            )
            plans = [plan.with_vm_count(vms_per_request) for _ in range(number_of_requests)]

            if self.debug:
                logger.info(
                    "Built provision request",
                    template=item.template.name,
                    network=network.name,
                    network_kind=network.kind.value,
                    requests=number_of_requests,
                    payload=plan.to_payload(),
                )
            yield TemplatePlans(work=item, network=network, plans=plans)

    def create_provision_requests(
        self,
        *,
        service_id: Any,
        requester: Requester,
        templates: Sequence[TemplateSpec],
        locations: Sequence[LocationOptions],
        dialog_options: Mapping[str, Any],
        tags: Mapping[str, Any] | None = None,
        custom_vm_fields: Mapping[str, Any] | None = None,
        custom_additional_values: Mapping[str, Any] | None = None,
        total_vm_count: int | None = None,
        separate_requests: bool | None = None,
    ) -> list[ProvisionRequestHandle]:
        """Create the provision requests and return their handles in order.

        Raises:
            PlannerError: On any failure. ``handles`` on the error lists the
                requests created before it.
        """
        if self.debug:
            logger.info(
                "Creating provision requests",
                service_id=service_id,
                requester=requester.userid,
                number_of_vms=total_vm_count,
                templates=[t.name for t in templates],
                dialog_options=dict(dialog_options),
                tags=dict(tags or {}),
                custom_vm_fields=dict(custom_vm_fields or {}),
                custom_additional_values=dict(custom_additional_values or {}),
                separate_requests=separate_requests,
            )

        work = self.prepare(
            templates,
            locations,
            dialog_options,
            custom_vm_fields,
            custom_additional_values,
            total_vm_count,
        )

        handles: list[ProvisionRequestHandle] = []
        try:
            for built in self.iter_plans(
                work,
                service_id=service_id,
                requester=requester,
                dialog_options=dialog_options,
                tags=tags,
                separate_requests=separate_requests,
            ):
                for plan in built.plans:
                    created = self._submit(plan, built.work.template)
                    handles = union_handles(handles, [created])
        except PlannerError as e:
            e.handles = union_handles(handles, e.handles)
            raise
        except Exception as e:
            raise PlannerError(f"Unexpected error while planning: {e}", handles=handles) from e

        logger.info("Created provision requests", requests=[h.id for h in handles])
        return handles

    def _submit(self, plan: ProvisionRequestPlan, template: TemplateSpec) -> ProvisionRequestHandle:
        logger.info(
            "Submitting provision request",
            template=template.name,
            number_of_vms=plan.number_of_vms,
        )
        try:
            return self.engine.submit(plan)
        except PlannerError:
            raise
        except Exception as e:
            raise SubmissionError(
                f"Provision request for template {template.name!r} failed: {e}"
            ) from e
