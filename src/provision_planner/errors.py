"""Exceptions raised while planning and submitting provision requests."""

from .models import ProvisionRequestHandle


class PlannerError(Exception):
    """Base exception for provision planning errors.

    ``handles`` holds the requests created before the failure. They are not
    rolled back.
    """

    def __init__(
        self, message: str, handles: list[ProvisionRequestHandle] | None = None
    ) -> None:
        super().__init__(message)
        self.handles: list[ProvisionRequestHandle] = list(handles or [])


class InvalidInputError(PlannerError):
    """Planner inputs are unusable."""


class MissingTemplatesError(InvalidInputError):
    """No templates were selected."""

    def __init__(self, message: str = "Selected templates must be specified") -> None:
        super().__init__(message)


class NotFoundError(PlannerError):
    """A referenced object could not be found."""


class NetworkNotFoundError(NotFoundError):
    """Network name is in neither the infrastructure nor the cloud catalog."""


class ProfileNotFoundError(NotFoundError):
    """No vNIC profile carries the requested name."""


class TemplateNotFoundError(NotFoundError):
    """Template guid is unknown to the catalog."""


class ManagementConnectionError(PlannerError):
    """Virtualization management API is unreachable or rejected the credentials."""


class CatalogError(PlannerError):
    """Catalog lookup failed at the transport or HTTP level."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class SubmissionError(PlannerError):
    """Provisioning engine rejected a request."""
