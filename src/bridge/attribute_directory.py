import logging
import threading
from types import MappingProxyType
from typing import Dict, Iterable, Mapping, Optional

from bridge.models.device import AppDeviceId, AttributeMap

logger = logging.getLogger(__name__)


class AttributeDirectory:
    """
    Table of device attributes, replaced as a whole on every refresh.

    Readers get an immutable snapshot. A refresh builds a complete new table
    and publishes it with a single reference swap, so a reader sees either the
    old or the new table and never a mix of both.
    """

    def __init__(self):
        self._snapshot: Mapping[AppDeviceId, AttributeMap] = MappingProxyType({})
        self._write_lock = threading.Lock()
        self._generation = 0

    def snapshot(self) -> Mapping[AppDeviceId, AttributeMap]:
        """Current table; stays valid and unchanged after later refreshes."""
        return self._snapshot

    @property
    def generation(self) -> int:
        """Number of tables published so far."""
        return self._generation

    def get(self, app_device_id: AppDeviceId) -> Optional[AttributeMap]:
        return self._snapshot.get(app_device_id)

    def app_entries(self, app_id: str) -> Dict[AppDeviceId, AttributeMap]:
        """Entries of one application in the current table."""
        return {key: value for key, value in self._snapshot.items() if key.app_id == app_id}

    def replace(self, entries: Mapping[AppDeviceId, AttributeMap]) -> Mapping[AppDeviceId, AttributeMap]:
        """Publish a new table. Returns the published snapshot."""
        with self._write_lock:
            return self._publish(entries)

    def _publish(self, entries: Mapping[AppDeviceId, AttributeMap]) -> Mapping[AppDeviceId, AttributeMap]:
        # caller holds _write_lock
        new_snapshot = MappingProxyType(dict(entries))
        self._snapshot = new_snapshot
        self._generation += 1
        logger.info(f"Attribute directory updated: {len(new_snapshot)} devices (generation {self._generation})")
        return new_snapshot

    def merge_refresh(self, refreshed: Mapping[str, Mapping[AppDeviceId, AttributeMap]],
                      stale_apps: Iterable[str] = ()) -> Mapping[AppDeviceId, AttributeMap]:
        """
        Publish the result of a refresh cycle.

        Args:
            refreshed: new entries per application that was queried successfully
            stale_apps: applications whose query failed; their previous entries are kept
        """
        stale = set(stale_apps)
        with self._write_lock:
            entries: Dict[AppDeviceId, AttributeMap] = {
                key: value for key, value in self._snapshot.items() if key.app_id in stale
            }
            for app_entries in refreshed.values():
                entries.update(app_entries)
            return self._publish(entries)
