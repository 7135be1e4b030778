"""vNIC profile lookup against the Red Hat Virtualization manager REST API.

RHV binds a VM network interface to a vNIC profile id rather than to a
network name. The resolver opens a connection per lookup, tests it, lists the
profiles and closes it again.

Usage:
    resolver = VnicProfileResolver(ems)
    profile_id = resolver.vnic_profile_id("dvs_prod_net")
"""

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import requests
import structlog
import urllib3
from requests.exceptions import RequestException

from .errors import InvalidInputError, ManagementConnectionError, ProfileNotFoundError
from .models import ManagementSystem

logger = structlog.get_logger()


class VnicProfileResolver:
    """Resolves a vNIC profile name to its id on one management system."""

    def __init__(
        self,
        ems: ManagementSystem | None,
        verify_ssl: bool = False,
        timeout: int = 30,
    ) -> None:
        if ems is None or not ems.hostname:
            raise InvalidInputError("Invalid EMS")
        self.ems = ems
        self.verify_ssl = verify_ssl
        self.timeout = timeout
        self.base_url = f"https://{ems.hostname}/ovirt-engine/api"

        if not verify_ssl:
            urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

    @contextmanager
    def connection(self) -> Iterator[requests.Session]:
        """Open and test a session, closing it on exit.

        Raises:
            ManagementConnectionError: If the API is unreachable or rejects
                the credentials
        """
        session = requests.Session()
        session.verify = self.verify_ssl
        session.auth = (self.ems.username or "", self.ems.password or "")
        session.headers.update({"Accept": "application/json", "Version": "4"})
        try:
            self._test(session)
            yield session
        finally:
            session.close()

    def _test(self, session: requests.Session) -> None:
        try:
            response = session.get(self.base_url, timeout=self.timeout)
        except RequestException as e:
            raise ManagementConnectionError(
                f"Cannot connect to {self.ems.hostname}: {e}"
            ) from e

        if response.status_code in (401, 403):
            raise ManagementConnectionError(
                f"Authentication to {self.ems.hostname} failed ({response.status_code})"
            )
        if response.status_code >= 400:
            raise ManagementConnectionError(
                f"Connection test to {self.ems.hostname} failed ({response.status_code})"
            )

    def list_profiles(self, session: requests.Session) -> list[dict[str, Any]]:
        """List the vNIC profiles known to the manager."""
        try:
            response = session.get(f"{self.base_url}/vnicprofiles", timeout=self.timeout)
            response.raise_for_status()
            body = response.json()
        except (RequestException, ValueError) as e:
            raise ManagementConnectionError(
                f"Failed to list vNIC profiles on {self.ems.hostname}: {e}"
            ) from e

        if not isinstance(body, dict):
            raise ManagementConnectionError(
                f"Unexpected vNIC profile listing from {self.ems.hostname}"
            )
        profiles = body.get("vnic_profile") or []
        return [p for p in profiles if isinstance(p, dict)]

    def vnic_profile_id(self, profile_name: str) -> str:
        """Return the id of the profile named ``profile_name``.

        When several profiles share the name the first one listed wins.

        Raises:
            ProfileNotFoundError: If no profile has that name
            ManagementConnectionError: If the manager cannot be reached
        """
        with self.connection() as session:
            profiles = self.list_profiles(session)

        matches = [p for p in profiles if p.get("name") == profile_name]
        if not matches:
            raise ProfileNotFoundError(
                f"vNIC profile {profile_name!r} not found on {self.ems.hostname}"
            )
        if len(matches) > 1:
            logger.warning(
                "Multiple vNIC profiles share a name, using the first",
                profile=profile_name,
                ids=[p.get("id") for p in matches],
            )

        if matches[0].get("id") is None:
            raise ProfileNotFoundError(
                f"vNIC profile {profile_name!r} on {self.ems.hostname} has no id"
            )
        profile_id = str(matches[0]["id"])
        logger.info("Resolved vNIC profile", profile=profile_name, profile_id=profile_id)
        return profile_id
