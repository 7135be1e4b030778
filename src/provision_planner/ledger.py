"""Append-only record of the provision requests created for a task."""

from collections.abc import Mapping, Sequence
from typing import Any

import structlog

from .task import ProvisioningTask

logger = structlog.get_logger()

LEDGER_OPTION = "provision_request_ids"


class RequestIdLedger:
    """Index to request id mapping stored on the task.

    The service state machine waits on these requests later. Existing entries
    keep their order; new ids are appended and the whole mapping is reindexed
    from 0 and written back in one ``set_option`` call. Ids are not
    deduplicated.
    """

    def __init__(self, task: ProvisioningTask) -> None:
        self.task = task

    @staticmethod
    def merge(existing: Mapping[Any, Any] | None, new_ids: Sequence[str]) -> dict[int, str]:
        """Dense mapping of existing ids followed by ``new_ids``."""
        ids = [str(value) for value in (existing or {}).values()]
        ids.extend(str(request_id) for request_id in new_ids)
        return dict(enumerate(ids))

    def entries(self) -> dict[int, str]:
        return self.merge(self.task.get_option(LEDGER_OPTION), [])

    def append(self, new_ids: Sequence[str]) -> dict[int, str]:
        """Append ``new_ids`` and persist the result."""
        ledger = self.merge(self.task.get_option(LEDGER_OPTION), new_ids)
        self.task.set_option(LEDGER_OPTION, ledger)
        logger.info(
            "Recorded provision request ids",
            task=self.task.id,
            added=len(new_ids),
            total=len(ledger),
        )
        return ledger
