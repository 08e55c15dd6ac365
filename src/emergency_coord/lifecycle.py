"""Incident lifecycle: reporting, assignment and status transitions.

    REPORTED -> ACKNOWLEDGED -> IN_PROGRESS -> RESOLVED

CANCELLED is reachable from every non-terminal state. RESOLVED and
CANCELLED are terminal. Under the strict policy only these edges (plus
ACKNOWLEDGED -> RESOLVED) are accepted; the permissive policy accepts any
status from any state, including repeated resolutions.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from enum import Enum
from typing import Dict, FrozenSet, List, Tuple, Union

from emergency_coord.access import AccessGuard, Action, is_null_address
from emergency_coord.errors import InvalidInput, InvalidState, NotFound
from emergency_coord.models import (
    AuditEvent,
    Emergency,
    EmergencyStatus,
    EventType,
    Principal,
    Severity,
)
from emergency_coord.registry import ResponderRegistry

logger = logging.getLogger(__name__)


class TransitionPolicy(str, Enum):
    STRICT = "strict"
    PERMISSIVE = "permissive"


STRICT_TRANSITIONS: Dict[EmergencyStatus, FrozenSet[EmergencyStatus]] = {
    EmergencyStatus.REPORTED: frozenset({EmergencyStatus.ACKNOWLEDGED, EmergencyStatus.CANCELLED}),
    EmergencyStatus.ACKNOWLEDGED: frozenset(
        {EmergencyStatus.IN_PROGRESS, EmergencyStatus.RESOLVED, EmergencyStatus.CANCELLED}
    ),
    EmergencyStatus.IN_PROGRESS: frozenset({EmergencyStatus.RESOLVED, EmergencyStatus.CANCELLED}),
    EmergencyStatus.RESOLVED: frozenset(),
    EmergencyStatus.CANCELLED: frozenset(),
}

ASSIGNABLE_STATUSES = frozenset({EmergencyStatus.REPORTED, EmergencyStatus.ACKNOWLEDGED})


def coerce_severity(value: Union[Severity, str, int]) -> Severity:
    if isinstance(value, Severity):
        return value
    if isinstance(value, bool):
        raise InvalidInput(f"unknown severity {value!r}")
    try:
        if isinstance(value, str):
            return Severity[value.strip().upper()]
        return Severity(value)
    except (KeyError, ValueError) as exc:
        raise InvalidInput(f"unknown severity {value!r}") from exc


def coerce_status(value: Union[EmergencyStatus, str]) -> EmergencyStatus:
    if isinstance(value, EmergencyStatus):
        return value
    try:
        return EmergencyStatus(str(value).strip().upper())
    except ValueError as exc:
        raise InvalidInput(f"unknown status {value!r}") from exc


def coerce_policy(value: Union[TransitionPolicy, str]) -> TransitionPolicy:
    if isinstance(value, TransitionPolicy):
        return value
    try:
        return TransitionPolicy(str(value).strip().lower())
    except ValueError as exc:
        raise ValueError(f"unknown status transition policy {value!r}") from exc


class EmergencyLifecycleManager:
    def __init__(
        self,
        guard: AccessGuard,
        registry: ResponderRegistry,
        policy: Union[TransitionPolicy, str] = TransitionPolicy.STRICT,
    ) -> None:
        self.guard = guard
        self.registry = registry
        self.policy = coerce_policy(policy)
        self._emergencies: Dict[int, Emergency] = {}
        self._assignments: Dict[int, List[Principal]] = {}
        self._counter = 0

    @property
    def count(self) -> int:
        return self._counter

    def get(self, emergency_id: int) -> Emergency:
        if not self._exists(emergency_id):
            raise NotFound(f"emergency {emergency_id!r} does not exist")
        return self._emergencies[emergency_id]

    def assignment_history(self, emergency_id: int) -> Tuple[Principal, ...]:
        self.get(emergency_id)
        return tuple(self._assignments.get(emergency_id, ()))

    def emergencies(self) -> List[Emergency]:
        return [self._emergencies[i] for i in range(1, self._counter + 1)]

    def report(
        self,
        caller: Principal,
        location: str,
        description: str,
        severity: Union[Severity, str, int],
        now: float,
    ) -> Tuple[int, List[AuditEvent]]:
        self.guard.require(caller, Action.AUTHORIZED_REPORTER)
        location = (location or "").strip()
        description = (description or "").strip()
        if not location:
            raise InvalidInput("location is required")
        if not description:
            raise InvalidInput("description is required")
        severity = coerce_severity(severity)

        emergency_id = self._counter + 1
        self._emergencies[emergency_id] = Emergency(
            emergency_id=emergency_id,
            reporter=caller,
            location=location,
            description=description,
            severity=severity,
            status=EmergencyStatus.REPORTED,
            reported_at=now,
        )
        self._counter = emergency_id
        logger.info(
            "EMERGENCY_REPORTED",
            extra={"emergency_id": emergency_id, "reporter": caller, "severity": severity.name},
        )
        event = AuditEvent(
            event_type=EventType.EMERGENCY_REPORTED,
            timestamp=now,
            actor=caller,
            emergency_id=emergency_id,
            new_status=EmergencyStatus.REPORTED,
            details={"location": location, "severity": severity.name},
        )
        return emergency_id, [event]

    def assign(self, caller: Principal, emergency_id: int, responder: Principal, now: float) -> List[AuditEvent]:
        self.guard.require(caller, Action.ADMIN_ONLY)
        current = self.get(emergency_id)
        if is_null_address(responder):
            raise InvalidInput("responder address is required")
        record = self.registry.get(responder)
        if not record.is_active:
            raise InvalidState(f"responder {responder!r} is not active")
        if current.status not in ASSIGNABLE_STATUSES:
            raise InvalidState(f"emergency {emergency_id} cannot be assigned while {current.status.value}")

        old_status = current.status
        self._emergencies[emergency_id] = replace(
            current,
            assigned_responder=responder,
            status=EmergencyStatus.ACKNOWLEDGED,
            response_started_at=now,
        )
        self._assignments.setdefault(emergency_id, []).append(responder)
        logger.info(
            "RESPONDER_ASSIGNED",
            extra={"emergency_id": emergency_id, "responder": responder, "old_status": old_status.value},
        )
        return [
            AuditEvent(
                event_type=EventType.RESPONDER_ASSIGNED,
                timestamp=now,
                actor=caller,
                emergency_id=emergency_id,
                responder=responder,
            ),
            AuditEvent(
                event_type=EventType.EMERGENCY_STATUS_UPDATED,
                timestamp=now,
                actor=caller,
                emergency_id=emergency_id,
                responder=responder,
                old_status=old_status,
                new_status=EmergencyStatus.ACKNOWLEDGED,
            ),
        ]

    def check_transition(self, old: EmergencyStatus, new: EmergencyStatus) -> None:
        if self.policy is TransitionPolicy.PERMISSIVE:
            return
        if new not in STRICT_TRANSITIONS[old]:
            raise InvalidState(f"cannot move emergency from {old.value} to {new.value}")

    def update_status(
        self,
        caller: Principal,
        emergency_id: int,
        new_status: Union[EmergencyStatus, str],
        now: float,
    ) -> List[AuditEvent]:
        current = self._emergencies.get(emergency_id) if self._exists(emergency_id) else None
        self.guard.require(caller, Action.EMERGENCY_PARTY, emergency=current)
        if current is None:
            raise NotFound(f"emergency {emergency_id!r} does not exist")
        new_status = coerce_status(new_status)
        old_status = current.status
        self.check_transition(old_status, new_status)

        self._emergencies[emergency_id] = replace(current, status=new_status)
        details = {}
        if new_status is EmergencyStatus.RESOLVED and current.assigned_responder is not None:
            elapsed = now - current.response_started_at
            updated = self.registry.record_response(current.assigned_responder, elapsed)
            details["elapsed"] = elapsed
            if updated is not None:
                details["average_response_time"] = updated.average_response_time

        logger.info(
            "EMERGENCY_STATUS_UPDATED",
            extra={
                "emergency_id": emergency_id,
                "principal": caller,
                "old_status": old_status.value,
                "new_status": new_status.value,
            },
        )
        return [
            AuditEvent(
                event_type=EventType.EMERGENCY_STATUS_UPDATED,
                timestamp=now,
                actor=caller,
                emergency_id=emergency_id,
                responder=current.assigned_responder,
                old_status=old_status,
                new_status=new_status,
                details=details,
            )
        ]

    def verify(self, caller: Principal, emergency_id: int, now: float) -> List[AuditEvent]:
        self.guard.require(caller, Action.ADMIN_ONLY)
        current = self.get(emergency_id)
        self._emergencies[emergency_id] = replace(current, verified=True)
        logger.info("EMERGENCY_VERIFIED", extra={"emergency_id": emergency_id})
        return [
            AuditEvent(
                event_type=EventType.EMERGENCY_VERIFIED,
                timestamp=now,
                actor=caller,
                emergency_id=emergency_id,
                details={"already_verified": current.verified},
            )
        ]

    def _exists(self, emergency_id: int) -> bool:
        if isinstance(emergency_id, bool) or not isinstance(emergency_id, int):
            return False
        return 1 <= emergency_id <= self._counter
