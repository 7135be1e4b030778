"""Entry point that runs the planner for a service provisioning task."""

import structlog

from .catalog import Catalog, ProvisioningEngine
from .config import Settings
from .errors import PlannerError
from .ledger import RequestIdLedger
from .models import LocationOptions, PlanResult, ProvisionRequestHandle, Requester
from .network import ResolverFactory
from .planner import RequestPlanner, TemplatePlans
from .task import ProvisioningTask, load_task_inputs, parse_templates

logger = structlog.get_logger()


def provision_from_task(
    task: ProvisioningTask,
    requester: Requester,
    settings: Settings,
    catalog: Catalog,
    engine: ProvisioningEngine,
    resolver_factory: ResolverFactory | None = None,
    separate_requests: bool | None = None,
) -> PlanResult:
    """Create the provision requests described by the task's options.

    The ids of every created request are appended to the task's ledger, also
    when a later request fails. Fatal errors are recorded on the task and
    returned in the result rather than raised.
    """
    handles: list[ProvisionRequestHandle] = []
    error: PlannerError | None = None
    try:
        inputs = load_task_inputs(task)
        templates = parse_templates(inputs.dialog_options)
        locations = [
            LocationOptions.from_dialog(inputs.dialog_options, index)
            for index in range(len(templates))
        ]
        planner = RequestPlanner(settings, catalog, engine, resolver_factory)
        handles = planner.create_provision_requests(
            service_id=task.destination_id,
            requester=requester,
            templates=templates,
            locations=locations,
            dialog_options=inputs.dialog_options,
            tags=inputs.dialog_tags,
            custom_vm_fields=inputs.custom_vm_fields,
            custom_additional_values=inputs.custom_additional_values,
            separate_requests=separate_requests,
        )
    except PlannerError as e:
        error = e
        handles = e.handles

    if handles:
        RequestIdLedger(task).append([handle.id for handle in handles])

    if error is not None:
        reason = str(error)
        logger.error(
            "Provisioning failed",
            task=task.id,
            error_type=type(error).__name__,
            reason=reason,
            created=len(handles),
        )
        task.record_error(reason)
        return PlanResult(handles=handles, error=reason)

    return PlanResult(handles=handles)


def plan_from_task(
    task: ProvisioningTask,
    requester: Requester,
    settings: Settings,
    catalog: Catalog,
    engine: ProvisioningEngine,
    resolver_factory: ResolverFactory | None = None,
    separate_requests: bool | None = None,
) -> list[TemplatePlans]:
    """Build the requests for the task without submitting them.

    Raises:
        PlannerError: If the inputs are invalid or a lookup fails
    """
    inputs = load_task_inputs(task)
    templates = parse_templates(inputs.dialog_options)
    locations = [
        LocationOptions.from_dialog(inputs.dialog_options, index)
        for index in range(len(templates))
    ]
    planner = RequestPlanner(settings, catalog, engine, resolver_factory)
    work = planner.prepare(
        templates,
        locations,
        inputs.dialog_options,
        inputs.custom_vm_fields,
        inputs.custom_additional_values,
    )
    return list(
        planner.iter_plans(
            work,
            service_id=task.destination_id,
            requester=requester,
            dialog_options=inputs.dialog_options,
            tags=inputs.dialog_tags,
            separate_requests=separate_requests,
        )
    )
