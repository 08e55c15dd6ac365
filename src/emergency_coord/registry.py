from __future__ import annotations

import logging
from dataclasses import replace
from typing import Dict, List, Optional

from emergency_coord.access import AccessGuard, Action, is_null_address
from emergency_coord.errors import InvalidInput, NotFound
from emergency_coord.models import AuditEvent, EventType, Principal, Responder

logger = logging.getLogger(__name__)


def next_average(average: float, completed: int, elapsed: float) -> tuple[int, float]:
    """Fold one more response duration into a running mean.

    Returns the new (count, average). The first completion takes the
    elapsed time as-is.
    """
    count = completed + 1
    if count == 1:
        return count, float(elapsed)
    return count, (average * (count - 1) + elapsed) / count


class ResponderRegistry:
    def __init__(self, guard: AccessGuard) -> None:
        self.guard = guard
        self._responders: Dict[Principal, Responder] = {}

    def get(self, address: Principal) -> Responder:
        return self._responders.get(address) or Responder(address=address)

    def is_registered(self, address: Principal) -> bool:
        return address in self._responders

    def responders(self, active_only: bool = False) -> List[Responder]:
        responders = sorted(self._responders.values(), key=lambda r: r.address)
        if active_only:
            return [r for r in responders if r.is_active]
        return responders

    def register(self, caller: Principal, address: Principal, name: str, specialty: str, now: float) -> List[AuditEvent]:
        """Create or overwrite a responder record.

        Re-registering an existing address replaces the record and resets
        its counters to zero.
        """
        self.guard.require(caller, Action.ADMIN_ONLY)
        if is_null_address(address):
            raise InvalidInput("responder address is required")
        name = (name or "").strip()
        specialty = (specialty or "").strip()
        if not name:
            raise InvalidInput("responder name is required")
        if not specialty:
            raise InvalidInput("responder specialty is required")

        replaced = address in self._responders
        self._responders[address] = Responder(
            address=address,
            name=name,
            specialty=specialty,
            is_active=True,
            is_verified=True,
        )
        logger.info(
            "RESPONDER_REGISTERED",
            extra={"responder": address, "specialty": specialty, "replaced": replaced},
        )
        return [
            AuditEvent(
                event_type=EventType.RESPONDER_REGISTERED,
                timestamp=now,
                actor=caller,
                responder=address,
                details={"name": name, "specialty": specialty, "replaced": replaced},
            )
        ]

    def deactivate(self, caller: Principal, address: Principal, now: float) -> List[AuditEvent]:
        self.guard.require(caller, Action.ADMIN_ONLY)
        if is_null_address(address):
            raise InvalidInput("responder address is required")
        current = self._responders.get(address)
        if current is None:
            raise NotFound(f"responder {address!r} is not registered")

        self._responders[address] = replace(current, is_active=False)
        logger.info("RESPONDER_DEACTIVATED", extra={"responder": address})
        return [
            AuditEvent(
                event_type=EventType.RESPONDER_DEACTIVATED,
                timestamp=now,
                actor=caller,
                responder=address,
            )
        ]

    def authorize_reporter(self, caller: Principal, address: Principal, now: float) -> List[AuditEvent]:
        self.guard.require(caller, Action.ADMIN_ONLY)
        if is_null_address(address):
            raise InvalidInput("reporter address is required")

        added = self.guard.add_reporter(address)
        logger.info("REPORTER_AUTHORIZED", extra={"reporter": address, "added": added})
        return [
            AuditEvent(
                event_type=EventType.REPORTER_AUTHORIZED,
                timestamp=now,
                actor=caller,
                details={"reporter": address, "added": added},
            )
        ]

    def record_response(self, address: Principal, elapsed: float) -> Optional[Responder]:
        # Only the lifecycle manager's resolution path calls this.
        current = self._responders.get(address)
        if current is None:
            return None
        count, average = next_average(current.average_response_time, current.total_responses, elapsed)
        updated = replace(current, total_responses=count, average_response_time=average)
        self._responders[address] = updated
        logger.info(
            "RESPONSE_RECORDED",
            extra={"responder": address, "elapsed": elapsed, "total_responses": count, "average": average},
        )
        return updated
