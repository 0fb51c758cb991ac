"""
Current-instance selection for a portal tab.

The accessible instances come from the API; the selected one is remembered by
id in the tab's sessionStorage. Overlapping refreshes are sequenced so a slow,
older response can never overwrite a newer one.
"""

from __future__ import annotations

from typing import Optional

import structlog

from teamd_shared.schemas.instances import InstanceResponse

from .browser import StorageArea
from .client import ApiError, TeamDClient

log = structlog.get_logger()

CURRENT_INSTANCE_KEY = "teamd-current-instance"


class InstanceNotAccessibleError(LookupError):
    pass


class InstanceSelection:
    def __init__(
        self,
        client: TeamDClient,
        storage: StorageArea,
        *,
        storage_key: str = CURRENT_INSTANCE_KEY,
    ):
        self._client = client
        self._storage = storage
        self._storage_key = storage_key
        self._sequence = 0
        self.instances: list[InstanceResponse] = []
        self.current: Optional[InstanceResponse] = None

    async def refresh(self) -> list[InstanceResponse]:
        """Reload accessible instances and restore the stored selection if still valid."""
        self._sequence += 1
        sequence = self._sequence
        try:
            instances = await self._client.list_instances()
        except ApiError:
            if sequence != self._sequence:
                log.info("instances.stale_refresh_failed", sequence=sequence)
                return self.instances
            raise

        if sequence != self._sequence:
            log.info("instances.stale_refresh_discarded", sequence=sequence, latest=self._sequence)
            return self.instances

        self.instances = instances
        self._restore()
        return instances

    def select(self, instance_id: int) -> InstanceResponse:
        for instance in self.instances:
            if instance.id == instance_id:
                self.current = instance
                self._storage.set_item(self._storage_key, str(instance.id))
                log.info("instances.selected", instance_id=instance.id)
                return instance
        raise InstanceNotAccessibleError(f"Instance {instance_id} is not accessible")

    def clear(self) -> None:
        """Forget everything, including the outcome of any refresh in flight."""
        self._sequence += 1
        self.instances = []
        self.current = None
        self._storage.remove_item(self._storage_key)

    def _restore(self) -> None:
        stored = self._storage.get_item(self._storage_key)
        wanted = self.current.id if self.current else None
        if stored:
            try:
                wanted = int(stored)
            except ValueError:
                wanted = None

        self.current = next((i for i in self.instances if i.id == wanted), None)
        if self.current is None and stored:
            log.info("instances.stored_selection_dropped", instance_id=stored)
            self._storage.remove_item(self._storage_key)
