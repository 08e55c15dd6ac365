import pytest

from emergency_coord.clock import ManualClock
from emergency_coord.engine import EmergencyCoordinationEngine
from emergency_coord.events import InMemoryEventLog

ADMIN = "0xADMIN"
REPORTER = "0xREPORTER"
RESPONDER = "0xRESPONDER"
STRANGER = "0xSTRANGER"

START = 1_700_000_000.0


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock(start=START)


@pytest.fixture
def audit() -> InMemoryEventLog:
    return InMemoryEventLog()


@pytest.fixture
def engine(clock: ManualClock, audit: InMemoryEventLog) -> EmergencyCoordinationEngine:
    return EmergencyCoordinationEngine(ADMIN, clock=clock, sinks=[audit], policy="strict", response_time_limit=1800)


@pytest.fixture
def staffed(engine: EmergencyCoordinationEngine) -> EmergencyCoordinationEngine:
    """Engine with one active responder and one authorized reporter."""
    engine.register_responder(ADMIN, RESPONDER, "Unit MED-1", "Medical")
    engine.authorize_reporter(ADMIN, REPORTER)
    return engine
