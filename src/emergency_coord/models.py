from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, Dict, Optional

Principal = str

ZERO_ADDRESS: Principal = "0x0000000000000000000000000000000000000000"


class Severity(IntEnum):
    LOW = 0
    MEDIUM = 1
    HIGH = 2
    CRITICAL = 3


class EmergencyStatus(str, Enum):
    REPORTED = "REPORTED"
    ACKNOWLEDGED = "ACKNOWLEDGED"
    IN_PROGRESS = "IN_PROGRESS"
    RESOLVED = "RESOLVED"
    CANCELLED = "CANCELLED"

    @property
    def is_terminal(self) -> bool:
        return self in (EmergencyStatus.RESOLVED, EmergencyStatus.CANCELLED)


class EventType(str, Enum):
    EMERGENCY_REPORTED = "EmergencyReported"
    RESPONDER_ASSIGNED = "ResponderAssigned"
    EMERGENCY_STATUS_UPDATED = "EmergencyStatusUpdated"
    EMERGENCY_VERIFIED = "EmergencyVerified"
    RESPONDER_REGISTERED = "ResponderRegistered"
    RESPONDER_DEACTIVATED = "ResponderDeactivated"
    REPORTER_AUTHORIZED = "ReporterAuthorized"


@dataclass(frozen=True)
class Emergency:
    emergency_id: int
    reporter: Principal
    location: str
    description: str
    severity: Severity
    status: EmergencyStatus
    reported_at: float
    assigned_responder: Optional[Principal] = None
    response_started_at: float = 0.0
    verified: bool = False


@dataclass(frozen=True)
class Responder:
    """Registry record. An unregistered address reads as the all-default record."""

    address: Principal = ZERO_ADDRESS
    name: str = ""
    specialty: str = ""
    is_active: bool = False
    is_verified: bool = False
    total_responses: int = 0
    average_response_time: float = 0.0

    @property
    def is_registered(self) -> bool:
        return bool(self.name)


@dataclass(frozen=True)
class AuditEvent:
    event_type: EventType
    timestamp: float
    actor: Principal
    emergency_id: Optional[int] = None
    responder: Optional[Principal] = None
    old_status: Optional[EmergencyStatus] = None
    new_status: Optional[EmergencyStatus] = None
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_type": self.event_type.value,
            "timestamp": self.timestamp,
            "actor": self.actor,
            "emergency_id": self.emergency_id,
            "responder": self.responder,
            "old_status": self.old_status.value if self.old_status else None,
            "new_status": self.new_status.value if self.new_status else None,
            "details": dict(self.details),
        }
