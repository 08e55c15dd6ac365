from __future__ import annotations

from typing import List, Optional, Tuple

from emergency_coord.clock import Clock
from emergency_coord.lifecycle import EmergencyLifecycleManager
from emergency_coord.models import Emergency, EmergencyStatus, Principal, Responder, Severity
from emergency_coord.registry import ResponderRegistry


class QueryInterface:
    """Read-only projections. No authorization is required to read."""

    def __init__(
        self,
        lifecycle: EmergencyLifecycleManager,
        registry: ResponderRegistry,
        clock: Clock,
        response_time_limit: float,
    ) -> None:
        self.lifecycle = lifecycle
        self.registry = registry
        self.clock = clock
        self.response_time_limit = response_time_limit

    def get_emergency(self, emergency_id: int) -> Emergency:
        return self.lifecycle.get(emergency_id)

    def get_responder(self, address: Principal) -> Responder:
        return self.registry.get(address)

    def get_assignment_history(self, emergency_id: int) -> Tuple[Principal, ...]:
        return self.lifecycle.assignment_history(emergency_id)

    def total_emergencies(self) -> int:
        return self.lifecycle.count

    def is_response_overdue(self, emergency_id: int) -> bool:
        return self._overdue(self.lifecycle.get(emergency_id), self.clock.now())

    def _overdue(self, emergency: Emergency, now: float) -> bool:
        if emergency.status.is_terminal:
            return False
        return (now - emergency.reported_at) > self.response_time_limit

    def list_emergencies(
        self,
        status: Optional[EmergencyStatus] = None,
        severity: Optional[Severity] = None,
    ) -> List[Emergency]:
        out = self.lifecycle.emergencies()
        if status is not None:
            out = [e for e in out if e.status is status]
        if severity is not None:
            out = [e for e in out if e.severity is severity]
        return out

    def overdue_emergencies(self) -> List[Emergency]:
        now = self.clock.now()
        return [e for e in self.lifecycle.emergencies() if self._overdue(e, now)]

    def list_responders(self, active_only: bool = False) -> List[Responder]:
        return self.registry.responders(active_only=active_only)
