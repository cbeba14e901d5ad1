"""
Claim Table - the only shared mutable state while zones are being filled.

Maps plant id -> owning zone id with compare-and-set semantics, so a plant
is committed to at most one zone. Zones also take turns per plant: zone k
decides plant j only after zone k-1 has moved past it. That keeps the
outcome identical to a sequential greedy pass in zone priority order while
the zone tasks themselves overlap.
"""

import logging
import threading
import time
from typing import Dict, Iterable, Optional

log = logging.getLogger(__name__)


class ClaimTable:
    """
    Thread-safe plant claim table with ordered zone turns.

    The lock is held only for a single check-and-set or cursor update,
    never across a zone's whole iteration.

    Usage:
        table = ClaimTable(plant_ids, zone_ids)
        if table.await_turn(zone_index, plant_index, deadline):
            won = table.claim(plant_id, zone_id)
        table.advance(zone_index, plant_index + 1)
    """

    def __init__(self, plant_ids: Iterable[str], zone_ids: Iterable[str]):
        self._owners: Dict[str, Optional[str]] = {pid: None for pid in plant_ids}
        self._zone_ids = list(zone_ids)
        self._cursors = [0] * len(self._zone_ids)
        self._total = len(self._owners)
        self._lock = threading.Lock()
        self._turn = threading.Condition(self._lock)
        self._aborted = False

    # ------------------------------------------------------------------
    # Claims
    # ------------------------------------------------------------------

    def claim(self, plant_id: str, zone_id: str) -> bool:
        """Atomically give plant_id to zone_id. Returns False if already owned."""
        with self._lock:
            if self._owners.get(plant_id) is not None:
                return False
            self._owners[plant_id] = zone_id
            return True

    def owner(self, plant_id: str) -> Optional[str]:
        with self._lock:
            return self._owners.get(plant_id)

    def snapshot(self) -> Dict[str, str]:
        """Copy of plant id -> zone id for every claimed plant."""
        with self._lock:
            return {pid: zid for pid, zid in self._owners.items() if zid is not None}

    # ------------------------------------------------------------------
    # Turns
    # ------------------------------------------------------------------

    def await_turn(self, zone_index: int, plant_index: int, deadline: Optional[float] = None) -> bool:
        """
        Block until every higher-priority zone has decided plant_index.

        Args:
            zone_index: Priority position of the waiting zone
            plant_index: Position of the plant in the sorted plant list
            deadline: time.monotonic() value after which waiting stops

        Returns:
            True when it is this zone's turn, False if aborted or out of time
        """
        if zone_index == 0:
            return not self._aborted
        with self._turn:
            while self._cursors[zone_index - 1] <= plant_index:
                if self._aborted:
                    return False
                timeout = None
                if deadline is not None:
                    timeout = deadline - time.monotonic()
                    if timeout <= 0:
                        return False
                self._turn.wait(timeout)
            return not self._aborted

    def advance(self, zone_index: int, position: int) -> None:
        """Record that a zone has decided every plant before position."""
        with self._turn:
            if position > self._cursors[zone_index]:
                self._cursors[zone_index] = position
                self._turn.notify_all()

    def finish(self, zone_index: int) -> None:
        """Release every zone waiting behind this one."""
        self.advance(zone_index, self._total)

    def abort(self) -> None:
        """Wake all waiters and make further turns fail (deadline expiry)."""
        with self._turn:
            self._aborted = True
            self._turn.notify_all()
        log.debug("Claim table aborted")

    @property
    def aborted(self) -> bool:
        return self._aborted
