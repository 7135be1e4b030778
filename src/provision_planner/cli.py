"""CLI entrypoint for the provision request planner."""

import json
import logging
from pathlib import Path
from typing import Optional

import structlog
import typer
import yaml
from rich.console import Console
from rich.table import Table

from .config import Settings, get_settings
from .errors import InvalidInputError, PlannerError
from .ledger import RequestIdLedger
from .manageiq import ManageIQClient
from .models import Requester
from .service import plan_from_task, provision_from_task
from .task import YamlFileTask

app = typer.Typer(
    name="provision-planner",
    help="Plan and submit VM provision requests for a service provisioning task",
    add_completion=False,
)
console = Console()


def configure_logging(debug: bool) -> None:
    """Configure structured logging."""
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.DEBUG if debug else logging.INFO
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def _settings(debug: bool) -> Settings:
    settings = get_settings()
    if debug:
        settings.debug = True
    configure_logging(settings.debug)
    return settings


def _open_task(task_file: Path) -> YamlFileTask:
    try:
        return YamlFileTask(task_file)
    except (OSError, yaml.YAMLError, InvalidInputError) as e:
        console.print(f"❌ Cannot load task file {task_file}: {e}")
        raise typer.Exit(1) from e


def _requester(task: YamlFileTask) -> Requester:
    try:
        return Requester.from_mapping(task.requester)
    except KeyError as e:
        console.print(f"❌ Task {task.id} has no requester userid")
        raise typer.Exit(1) from e


@app.command()
def plan(
    task_file: Path = typer.Argument(..., help="Task YAML file"),
    separate: Optional[bool] = typer.Option(
        None, "--separate/--single", help="One request per VM, or one per template"
    ),
    debug: bool = typer.Option(False, help="Log inputs and payloads"),
    show_payloads: bool = typer.Option(False, help="Print every request payload as JSON"),
) -> None:
    """Show the provision requests that would be created, without submitting."""
    settings = _settings(debug)
    task = _open_task(task_file)
    requester = _requester(task)
    client = ManageIQClient.from_settings(settings)
    try:
        built = plan_from_task(
            task, requester, settings, client, client, separate_requests=separate
        )
    except PlannerError as e:
        console.print(f"❌ Planning failed: {e}")
        raise typer.Exit(1) from e
    finally:
        client.close()

    table = Table(title=f"Provision requests for task {task.id}")
    table.add_column("Template", style="cyan")
    table.add_column("Network", style="green")
    table.add_column("Kind")
    table.add_column("Requests", justify="right")
    table.add_column("VMs per request", justify="right")
    for item in built:
        table.add_row(
            item.work.template.name,
            item.network.name,
            item.network.kind.value,
            str(len(item.plans)),
            str(item.plans[0].number_of_vms),
        )
    console.print(table)

    for item in built:
        if not item.network.resolved:
            console.print(
                f"⚠️  Network {item.network.name} was not found in any catalog, "
                "its name is used as the vlan"
            )

    if show_payloads:
        for item in built:
            console.print_json(json.dumps(item.plans[0].to_payload(), default=str))


@app.command()
def submit(
    task_file: Path = typer.Argument(..., help="Task YAML file"),
    separate: Optional[bool] = typer.Option(
        None, "--separate/--single", help="One request per VM, or one per template"
    ),
    debug: bool = typer.Option(False, help="Log inputs and payloads"),
) -> None:
    """Create the provision requests and record their ids on the task."""
    settings = _settings(debug)
    task = _open_task(task_file)
    requester = _requester(task)
    client = ManageIQClient.from_settings(settings)
    try:
        result = provision_from_task(
            task, requester, settings, client, client, separate_requests=separate
        )
    finally:
        client.close()

    for request_id in result.request_ids:
        console.print(f"✅ Created provision request {request_id}")
    if not result.ok:
        console.print(f"❌ Provisioning failed: {result.error}")
        raise typer.Exit(1)


@app.command()
def ledger(task_file: Path = typer.Argument(..., help="Task YAML file")) -> None:
    """Show the provision request ids recorded on the task."""
    _settings(debug=False)
    task = _open_task(task_file)
    entries = RequestIdLedger(task).entries()
    if not entries:
        console.print("No provision requests recorded")
        return

    table = Table(title=f"Provision requests of task {task.id}")
    table.add_column("Index", justify="right")
    table.add_column("Request id", style="cyan")
    for index, request_id in entries.items():
        table.add_row(str(index), request_id)
    console.print(table)


if __name__ == "__main__":
    app()
