import logging
import threading
import time

import pytest

from conftest import ADMIN, REPORTER, RESPONDER, STRANGER
from emergency_coord import config
from emergency_coord.clock import ManualClock, SystemClock
from emergency_coord.engine import EmergencyCoordinationEngine
from emergency_coord.errors import EngineError, ErrorKind, InvalidState, Unauthorized
from emergency_coord.events import InMemoryEventLog
from emergency_coord.lifecycle import TransitionPolicy
from emergency_coord.models import EmergencyStatus, EventType, Severity


class _BrokenSink:
    def append(self, event) -> None:
        raise RuntimeError("ledger unavailable")


def test_full_incident_scenario(engine, clock, audit) -> None:
    engine.register_responder(ADMIN, RESPONDER, "Unit MED-1", "Medical")
    engine.authorize_reporter(ADMIN, REPORTER)

    emergency_id = engine.report_emergency(REPORTER, "Central Station", "Man collapsed on platform", Severity.HIGH)
    assert emergency_id == 1
    assert engine.get_emergency(emergency_id).status is EmergencyStatus.REPORTED

    engine.assign_responder(ADMIN, emergency_id, RESPONDER)
    emergency = engine.get_emergency(emergency_id)
    assert emergency.status is EmergencyStatus.ACKNOWLEDGED
    assert emergency.assigned_responder == RESPONDER

    engine.update_emergency_status(RESPONDER, emergency_id, EmergencyStatus.IN_PROGRESS)
    clock.advance(15 * 60)
    engine.update_emergency_status(RESPONDER, emergency_id, EmergencyStatus.RESOLVED)

    responder = engine.get_responder(RESPONDER)
    assert responder.total_responses == 1
    assert responder.average_response_time == 15 * 60

    assert [e.event_type for e in audit.events] == [
        EventType.RESPONDER_REGISTERED,
        EventType.REPORTER_AUTHORIZED,
        EventType.EMERGENCY_REPORTED,
        EventType.RESPONDER_ASSIGNED,
        EventType.EMERGENCY_STATUS_UPDATED,
        EventType.EMERGENCY_STATUS_UPDATED,
        EventType.EMERGENCY_STATUS_UPDATED,
    ]
    assert all(e.emergency_id == emergency_id for e in audit.events[2:])


def test_stranger_is_rejected_everywhere(staffed) -> None:
    emergency_id = staffed.report_emergency(REPORTER, "Harbor", "Boat taking on water", Severity.CRITICAL)
    calls = [
        lambda: staffed.report_emergency(STRANGER, "x", "y", Severity.LOW),
        lambda: staffed.assign_responder(STRANGER, emergency_id, RESPONDER),
        lambda: staffed.update_emergency_status(STRANGER, emergency_id, EmergencyStatus.CANCELLED),
        lambda: staffed.register_responder(STRANGER, STRANGER, "Me", "Fire"),
        lambda: staffed.authorize_reporter(STRANGER, STRANGER),
        lambda: staffed.deactivate_responder(STRANGER, RESPONDER),
        lambda: staffed.verify_emergency(STRANGER, emergency_id),
    ]
    for call in calls:
        with pytest.raises(Unauthorized) as info:
            call()
        assert info.value.kind is ErrorKind.UNAUTHORIZED


def test_rejected_operation_emits_nothing_and_logs(staffed, audit, caplog) -> None:
    before = len(audit)
    with caplog.at_level(logging.WARNING, logger="emergency_coord.engine"):
        with pytest.raises(EngineError):
            staffed.assign_responder(ADMIN, 7, RESPONDER)

    assert len(audit) == before
    assert any(r.getMessage() == "OPERATION_REJECTED" and r.kind == "NOT_FOUND" for r in caplog.records)


def test_error_to_dict() -> None:
    err = InvalidState("responder is not active")
    assert err.to_dict() == {"error": "INVALID_STATE", "detail": "responder is not active"}


def test_failing_sink_does_not_undo_commit(clock, audit, caplog) -> None:
    engine = EmergencyCoordinationEngine(ADMIN, clock=clock, sinks=[_BrokenSink(), audit], policy="strict")
    with caplog.at_level(logging.ERROR, logger="emergency_coord.events"):
        engine.register_responder(ADMIN, RESPONDER, "Unit", "Police")

    assert engine.get_responder(RESPONDER).is_active
    assert [e.event_type for e in audit.events] == [EventType.RESPONDER_REGISTERED]
    assert any(r.getMessage() == "EVENT_SINK_FAILED" for r in caplog.records)


def test_subscribe_adds_sink(engine) -> None:
    late = InMemoryEventLog()
    engine.subscribe(late)
    engine.authorize_reporter(ADMIN, REPORTER)
    assert late.of_type(EventType.REPORTER_AUTHORIZED)


class _GatedReportLog:
    """Holds the first EmergencyReported event until released."""

    def __init__(self) -> None:
        self.ids = []
        self.entered = threading.Event()
        self.release = threading.Event()

    def append(self, event) -> None:
        if event.event_type is not EventType.EMERGENCY_REPORTED:
            return
        if not self.entered.is_set():
            self.entered.set()
            self.release.wait(timeout=5)
        self.ids.append(event.emergency_id)


def test_events_reach_sinks_in_commit_order(staffed) -> None:
    log = _GatedReportLog()
    staffed.subscribe(log)

    first = threading.Thread(
        target=staffed.report_emergency, args=(REPORTER, "Tunnel", "Smoke in tunnel", Severity.HIGH)
    )
    first.start()
    assert log.entered.wait(timeout=5)

    second = threading.Thread(
        target=staffed.report_emergency, args=(REPORTER, "Ferry", "Passenger overboard", Severity.CRITICAL)
    )
    second.start()
    deadline = time.monotonic() + 5
    while staffed.total_emergencies() < 2 and time.monotonic() < deadline:
        time.sleep(0.01)
    assert staffed.total_emergencies() == 2

    log.release.set()
    first.join(timeout=5)
    second.join(timeout=5)

    assert log.ids == [1, 2]


def test_sink_may_read_engine_while_receiving(staffed) -> None:
    seen = []

    class Reader:
        def append(self, event) -> None:
            if event.emergency_id is not None:
                seen.append(staffed.get_emergency(event.emergency_id).status)

    staffed.subscribe(Reader())
    staffed.report_emergency(REPORTER, "Quay", "Crane collapse", Severity.HIGH)

    assert seen == [EmergencyStatus.REPORTED]


def test_concurrent_reports_get_unique_ids(staffed) -> None:
    results = []
    lock = threading.Lock()

    def worker() -> None:
        for _ in range(25):
            emergency_id = staffed.report_emergency(REPORTER, "Stadium", "Crowd crush", Severity.CRITICAL)
            with lock:
                results.append(emergency_id)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=10)

    assert sorted(results) == list(range(1, 201))
    assert staffed.total_emergencies() == 200


def test_policy_defaults_to_config(monkeypatch) -> None:
    monkeypatch.setattr(config, "STATUS_TRANSITION_POLICY", "permissive")
    engine = EmergencyCoordinationEngine(ADMIN, clock=ManualClock())
    assert engine.policy is TransitionPolicy.PERMISSIVE


def test_unknown_policy_is_rejected() -> None:
    with pytest.raises(ValueError):
        EmergencyCoordinationEngine(ADMIN, clock=ManualClock(), policy="anything-goes")


def test_response_limit_override(clock) -> None:
    engine = EmergencyCoordinationEngine(ADMIN, clock=clock, response_time_limit=60)
    emergency_id = engine.report_emergency(ADMIN, "Lab", "Chemical spill", Severity.HIGH)
    clock.advance(61)
    assert engine.is_response_overdue(emergency_id)


def test_system_clock_never_goes_backwards() -> None:
    clock = SystemClock()
    readings = [clock.now() for _ in range(50)]
    assert readings == sorted(readings)


def test_manual_clock_refuses_negative_advance() -> None:
    with pytest.raises(ValueError):
        ManualClock().advance(-1)
