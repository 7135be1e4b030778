"""Service provisioning task access and option parsing."""

import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol

import structlog
import yaml

from .errors import InvalidInputError, MissingTemplatesError
from .models import TemplateSpec

logger = structlog.get_logger()

SUPPORTED_OBJECT_TYPE = "service_template_provision_task"


class ProvisioningTask(Protocol):
    """Task that owns the service the new VMs belong to."""

    @property
    def id(self) -> str: ...

    @property
    def destination_id(self) -> str | None: ...

    @property
    def object_type(self) -> str: ...

    def get_option(self, key: str) -> Any: ...

    def set_option(self, key: str, value: Any) -> None: ...

    def record_error(self, reason: str) -> None: ...


@dataclass
class InMemoryTask:
    """Task held in memory, for embedding the planner in another process."""

    id: str
    destination_id: str | None = None
    object_type: str = SUPPORTED_OBJECT_TYPE
    options: dict[str, Any] = field(default_factory=dict)
    result: str | None = None
    reason: str | None = None

    def get_option(self, key: str) -> Any:
        return self.options.get(key)

    def set_option(self, key: str, value: Any) -> None:
        self.options[key] = value

    def record_error(self, reason: str) -> None:
        self.result = "error"
        self.reason = reason


class YamlFileTask:
    """Task persisted as a YAML document.

    Every write replaces the whole file atomically so readers never see a
    partially written ledger.
    """

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        self.data = self._load()

    def _load(self) -> dict[str, Any]:
        with open(self.path) as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise InvalidInputError(f"Task file {self.path} must contain a mapping")
        data.setdefault("options", {})
        return data

    def _save(self) -> None:
        fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.")
        try:
            with os.fdopen(fd, "w") as f:
                yaml.safe_dump(self.data, f, default_flow_style=False, sort_keys=False)
            os.replace(tmp_path, self.path)
        except BaseException:
            os.unlink(tmp_path)
            raise

    @property
    def id(self) -> str:
        return str(self.data.get("id", self.path.stem))

    @property
    def destination_id(self) -> str | None:
        value = self.data.get("destination_id")
        return None if value is None else str(value)

    @property
    def object_type(self) -> str:
        return str(self.data.get("object_type", SUPPORTED_OBJECT_TYPE))

    @property
    def requester(self) -> dict[str, Any]:
        return dict(self.data.get("requester") or {})

    @property
    def result(self) -> str | None:
        return self.data.get("result")

    @property
    def reason(self) -> str | None:
        return self.data.get("reason")

    def get_option(self, key: str) -> Any:
        return self.data["options"].get(key)

    def set_option(self, key: str, value: Any) -> None:
        self.data["options"][key] = value
        self._save()

    def record_error(self, reason: str) -> None:
        self.data["result"] = "error"
        self.data["reason"] = reason
        self._save()


def _normalize_keys(value: Any) -> Any:
    """Strip the leading ':' of Ruby symbol keys dumped to YAML."""
    if isinstance(value, dict):
        return {
            (key.lstrip(":") if isinstance(key, str) else key): _normalize_keys(item)
            for key, item in value.items()
        }
    if isinstance(value, list):
        return [_normalize_keys(item) for item in value]
    return value


def _unwrap_sequence(options: dict[Any, Any]) -> dict[Any, Any]:
    """Dialog parsers key options by dialog sequence; use sequence 0 if present."""
    for key in (0, "0"):
        nested = options.get(key)
        if isinstance(nested, dict):
            return nested
    return options


def yaml_option(task: ProvisioningTask, key: str) -> Any:
    """Read an option holding a YAML document, parsing it if needed."""
    value = task.get_option(key)
    if value is None:
        return None
    if isinstance(value, str):
        try:
            return yaml.safe_load(value)
        except yaml.YAMLError as e:
            raise InvalidInputError(f"Option {key!r} is not valid YAML: {e}") from e
    return value


def _mapping_option(task: ProvisioningTask, key: str) -> dict[str, Any]:
    value = _normalize_keys(yaml_option(task, key))
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise InvalidInputError(f"Option {key!r} must be a mapping")
    return _unwrap_sequence(value)


@dataclass
class TaskInputs:
    """Options read from a provisioning task."""

    dialog_options: dict[str, Any] = field(default_factory=dict)
    dialog_tags: dict[str, Any] = field(default_factory=dict)
    custom_vm_fields: dict[str, Any] = field(default_factory=dict)
    custom_additional_values: dict[str, Any] = field(default_factory=dict)


def load_task_inputs(task: ProvisioningTask) -> TaskInputs:
    """Read dialog options, tags and custom fields from the task.

    Raises:
        InvalidInputError: If the task type is not supported or an option is
            malformed
    """
    if task.object_type != SUPPORTED_OBJECT_TYPE:
        raise InvalidInputError(f"Can not handle vmdb_object_type: {task.object_type}")

    inputs = TaskInputs(
        dialog_options=_mapping_option(task, "parsed_dialog_options"),
        dialog_tags=_mapping_option(task, "parsed_dialog_tags"),
        custom_vm_fields=_mapping_option(task, "custom_vm_fields"),
        custom_additional_values=_mapping_option(task, "custom_additional_values"),
    )
    logger.debug(
        "Loaded task inputs",
        task=task.id,
        dialog_options=list(inputs.dialog_options),
        dialog_tags=list(inputs.dialog_tags),
    )
    return inputs


def parse_templates(dialog_options: dict[str, Any]) -> list[TemplateSpec]:
    """Parse the ``templates`` dialog option into TemplateSpecs.

    Raises:
        MissingTemplatesError: If no templates were selected
        InvalidInputError: If an entry lacks a name or guid
    """
    raw = dialog_options.get("templates")
    if isinstance(raw, str):
        try:
            raw = yaml.safe_load(raw)
        except yaml.YAMLError as e:
            raise InvalidInputError(f"Selected templates are not valid YAML: {e}") from e
    if not raw:
        raise MissingTemplatesError()
    if not isinstance(raw, list):
        raise InvalidInputError("Selected templates must be a list")

    templates = []
    for entry in _normalize_keys(raw):
        if not isinstance(entry, dict) or not entry.get("guid") or not entry.get("name"):
            raise InvalidInputError(f"Template entry needs a name and guid: {entry!r}")
        templates.append(TemplateSpec.from_mapping(entry))
    logger.info("Parsed selected templates", templates=[t.name for t in templates])
    return templates


def _as_vm_count(value: Any) -> int:
    if isinstance(value, bool):
        raise InvalidInputError(f"Invalid number of VMs: {value!r}")
    try:
        count = int(str(value).strip())
    except ValueError as e:
        raise InvalidInputError(f"Invalid number of VMs: {value!r}") from e
    if count < 0:
        raise InvalidInputError(f"Number of VMs must not be negative: {count}")
    return count


def resolve_vm_count(
    dialog_options: dict[str, Any],
    custom_vm_fields: dict[str, Any],
    custom_additional_values: dict[str, Any],
    default: int = 1,
) -> int:
    """Total VM count: dialog, then custom VM fields, then custom additional values."""
    for source in (dialog_options, custom_vm_fields, custom_additional_values):
        value = source.get("number_of_vms")
        if value is not None and value != "":
            return _as_vm_count(value)
    return default
