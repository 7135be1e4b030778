"""
ManageIQ REST API client.

Looks up LANs, cloud subnets, templates and providers, and creates provision
requests. Implements every catalog and engine interface the planner needs.

Usage:
    from provision_planner.manageiq import ManageIQClient

    client = ManageIQClient.from_settings(get_settings())
    subnet = client.find_cloud_subnet("private-a")
    handle = client.submit(plan)
"""

from typing import Any

import requests
import structlog
import urllib3
from requests.exceptions import RequestException

from .config import Settings
from .errors import CatalogError, SubmissionError
from .models import (
    CloudSubnet,
    InfrastructureNetwork,
    ManagementSystem,
    ProvisionRequestHandle,
    ProvisionRequestPlan,
    TemplateRecord,
)

logger = structlog.get_logger()


def _quote_filter_value(value: str) -> str:
    return "'" + value.replace("'", "\\'") + "'"


class ManageIQClient:
    """ManageIQ REST API client.

    Attributes:
        base_url: API root, e.g. ``https://miq.example.com/api``
        session: Authenticated requests session
        provider_username: User filled into provider records (the API never
            returns provider passwords)
        provider_password: Password filled into provider records
    """

    def __init__(
        self,
        url: str,
        username: str,
        password: str | None,
        verify_ssl: bool = False,
        timeout: int = 30,
        provider_username: str | None = None,
        provider_password: str | None = None,
    ) -> None:
        self.base_url = f"{url.rstrip('/')}/api"
        self.timeout = timeout
        self.provider_username = provider_username
        self.provider_password = provider_password

        self.session = requests.Session()
        self.session.auth = (username, password or "")
        self.session.verify = verify_ssl
        self.session.headers.update(
            {"Accept": "application/json", "Content-Type": "application/json"}
        )
        if not verify_ssl:
            urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

    @classmethod
    def from_settings(cls, settings: Settings) -> "ManageIQClient":
        return cls(
            url=settings.manageiq_url,
            username=settings.manageiq_username,
            password=settings.manageiq_password,
            verify_ssl=settings.manageiq_verify_ssl,
            timeout=settings.request_timeout_seconds,
            provider_username=settings.rhv_username,
            provider_password=settings.rhv_password,
        )

    def close(self) -> None:
        self.session.close()

    def _request(
        self,
        method: str,
        endpoint: str,
        params: list[tuple[str, str]] | None = None,
        data: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Make an API request and return the decoded JSON body.

        Raises:
            CatalogError: On transport errors, HTTP errors or non-JSON bodies
        """
        url = f"{self.base_url}{endpoint}"
        logger.debug("ManageIQ request", method=method, endpoint=endpoint)
        try:
            response = self.session.request(
                method=method, url=url, params=params, json=data, timeout=self.timeout
            )
        except RequestException as e:
            raise CatalogError(f"Cannot reach ManageIQ at {self.base_url}: {e}") from e

        if response.status_code >= 400:
            message = f"API error {response.status_code}"
            try:
                error = response.json().get("error", {})
                if isinstance(error, dict) and error.get("message"):
                    message = f"{message}: {error['message']}"
            except ValueError:
                if response.text:
                    message = f"{message}: {response.text}"
            raise CatalogError(
                f"{method} {endpoint} failed: {message}", status_code=response.status_code
            )

        try:
            body = response.json()
        except ValueError as e:
            raise CatalogError(f"{method} {endpoint} returned a non-JSON body") from e
        return body if isinstance(body, dict) else {}

    def _find_one(
        self, collection: str, attribute: str, value: str, attributes: str
    ) -> dict[str, Any] | None:
        params = [
            ("expand", "resources"),
            ("attributes", attributes),
            ("filter[]", f"{attribute}={_quote_filter_value(value)}"),
        ]
        resources = self._request("GET", f"/{collection}", params=params).get("resources", [])
        if not resources:
            return None
        if len(resources) > 1:
            logger.warning(
                "Lookup matched several resources, using the first",
                collection=collection,
                attribute=attribute,
                value=value,
                matches=len(resources),
            )
        first: dict[str, Any] = resources[0]
        return first

    def find_infrastructure_network(self, name: str) -> InfrastructureNetwork | None:
        resource = self._find_one("lans", "name", name, "name,switch")
        if resource is None:
            return None
        switch = resource.get("switch") or {}
        return InfrastructureNetwork(
            name=str(resource.get("name", name)),
            switch_shared=bool(switch.get("shared", False)),
        )

    def find_cloud_subnet(self, name: str) -> CloudSubnet | None:
        resource = self._find_one(
            "cloud_subnets", "name", name, "name,cloud_network_id,availability_zone_id"
        )
        if resource is None:
            return None
        if resource.get("id") is None:
            raise CatalogError(f"Cloud subnet {name!r} has no id")

        def optional(key: str) -> str | None:
            value = resource.get(key)
            return None if value is None else str(value)

        return CloudSubnet(
            name=str(resource.get("name", name)),
            id=str(resource["id"]),
            cloud_network_id=optional("cloud_network_id"),
            availability_zone_id=optional("availability_zone_id"),
        )

    def find_template_by_guid(self, guid: str) -> TemplateRecord | None:
        resource = self._find_one("templates", "guid", guid, "guid,name,ems_id")
        if resource is None:
            return None
        ems_id = resource.get("ems_id")
        return TemplateRecord(
            guid=str(resource.get("guid", guid)),
            name=str(resource.get("name", "")),
            ems_id=None if ems_id is None else str(ems_id),
        )

    def get_management_system(self, ems_id: str) -> ManagementSystem | None:
        try:
            resource = self._request(
                "GET", f"/providers/{ems_id}", params=[("attributes", "type,hostname")]
            )
        except CatalogError as e:
            if e.status_code == 404:
                return None
            raise
        return ManagementSystem(
            id=str(resource.get("id", ems_id)),
            type=str(resource.get("type", "")),
            hostname=str(resource.get("hostname", "")),
            username=self.provider_username,
            password=self.provider_password,
        )

    def server_version(self) -> str:
        """Version of the ManageIQ server behind the API."""
        server_info = self._request("GET", "").get("server_info", {})
        return str(server_info.get("version", ""))

    def submit(self, plan: ProvisionRequestPlan) -> ProvisionRequestHandle:
        """Create a provision request.

        Raises:
            SubmissionError: If the request is rejected or cannot be sent
        """
        body = {"action": "create", "resource": plan.to_payload()}
        try:
            response = self._request("POST", "/provision_requests", data=body)
        except CatalogError as e:
            raise SubmissionError(str(e)) from e

        results = response.get("results") or []
        if not results or "id" not in results[0]:
            raise SubmissionError(f"Provision request created no request: {response}")

        created = results[0]
        handle = ProvisionRequestHandle(id=str(created["id"]), href=created.get("href"))
        logger.info("Created provision request", request_id=handle.id)
        return handle
