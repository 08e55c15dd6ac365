from __future__ import annotations

from emergency_coord.analytics import responder_performance, status_distribution
from emergency_coord.clock import ManualClock
from emergency_coord.engine import EmergencyCoordinationEngine
from emergency_coord.events import InMemoryEventLog
from emergency_coord.logging_setup import configure_logging
from emergency_coord.models import EmergencyStatus, Severity

ADMIN = "0xA11CE"
REPORTER = "0xB0B"
MEDIC = "0xMED12"


def main() -> None:
    configure_logging()
    clock = ManualClock(start=1_700_000_000)
    audit = InMemoryEventLog()
    engine = EmergencyCoordinationEngine(ADMIN, clock=clock, sinks=[audit])

    engine.register_responder(ADMIN, MEDIC, "Unit MED-12", "Medical")
    engine.authorize_reporter(ADMIN, REPORTER)

    emergency_id = engine.report_emergency(
        REPORTER,
        location="5th Ave & 23rd St",
        description="Cyclist down, unconscious, bleeding from head.",
        severity=Severity.HIGH,
    )
    clock.advance(60)
    engine.assign_responder(ADMIN, emergency_id, MEDIC)
    clock.advance(5 * 60)
    engine.update_emergency_status(MEDIC, emergency_id, EmergencyStatus.IN_PROGRESS)
    clock.advance(10 * 60)
    engine.update_emergency_status(MEDIC, emergency_id, EmergencyStatus.RESOLVED)

    emergency = engine.get_emergency(emergency_id)
    medic = engine.get_responder(MEDIC)

    print("=== Emergency Coordination Demo ===")
    print(f"Emergency #{emergency.emergency_id}: {emergency.severity.name} at {emergency.location}")
    print(f"Status: {emergency.status.value} | Responder: {emergency.assigned_responder}")
    print(f"Overdue: {engine.is_response_overdue(emergency_id)}")
    print(
        f"{medic.name}: {medic.total_responses} response(s), "
        f"average {medic.average_response_time / 60:.1f} min"
    )

    print("\nStatus distribution:")
    for status, count in status_distribution(engine.list_emergencies()).items():
        print(f" - {status}: {count}")

    print("\nResponder performance:")
    print(responder_performance(engine.list_responders()).to_string(index=False))

    print("\nAudit trail:")
    for event in audit.events:
        transition = ""
        if event.new_status is not None:
            old = event.old_status.value if event.old_status else "-"
            transition = f" {old} -> {event.new_status.value}"
        print(f" - [{event.timestamp:.0f}] {event.event_type.value} by {event.actor}{transition}")


if __name__ == "__main__":
    main()
