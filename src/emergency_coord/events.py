from __future__ import annotations

import json
import logging
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Protocol, Union

from emergency_coord.config import AUDIT_DB_PATH
from emergency_coord.models import AuditEvent, EmergencyStatus, EventType

logger = logging.getLogger(__name__)


class EventSink(Protocol):
    def append(self, event: AuditEvent) -> None: ...


class InMemoryEventLog:
    """Append-only list of events, kept in emission order."""

    def __init__(self) -> None:
        self._events: List[AuditEvent] = []
        self._lock = threading.Lock()

    def append(self, event: AuditEvent) -> None:
        with self._lock:
            self._events.append(event)

    @property
    def events(self) -> List[AuditEvent]:
        with self._lock:
            return list(self._events)

    def of_type(self, event_type: EventType) -> List[AuditEvent]:
        return [e for e in self.events if e.event_type is event_type]

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)


class SqliteAuditLog:
    """Durable audit trail backed by a single sqlite table."""

    def __init__(self, db_path: Union[str, Path, None] = None) -> None:
        self.db_path = Path(db_path) if db_path is not None else AUDIT_DB_PATH
        self._lock = threading.Lock()
        self.init_db()

    def init_db(self) -> None:
        with self._conn() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS audit_events (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    event_type TEXT NOT NULL,
                    timestamp REAL NOT NULL,
                    actor TEXT NOT NULL,
                    emergency_id INTEGER,
                    responder TEXT,
                    old_status TEXT,
                    new_status TEXT,
                    details TEXT NOT NULL DEFAULT '{}'
                )
                """
            )

    @contextmanager
    def _conn(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        finally:
            conn.close()

    def append(self, event: AuditEvent) -> None:
        with self._lock, self._conn() as conn:
            conn.execute(
                "INSERT INTO audit_events "
                "(event_type,timestamp,actor,emergency_id,responder,old_status,new_status,details) "
                "VALUES (?,?,?,?,?,?,?,?)",
                (
                    event.event_type.value,
                    event.timestamp,
                    event.actor,
                    event.emergency_id,
                    event.responder,
                    event.old_status.value if event.old_status else None,
                    event.new_status.value if event.new_status else None,
                    json.dumps(event.details, sort_keys=True),
                ),
            )

    def read_all(self, emergency_id: Optional[int] = None) -> List[AuditEvent]:
        query = "SELECT * FROM audit_events"
        params: tuple = ()
        if emergency_id is not None:
            query += " WHERE emergency_id=?"
            params = (emergency_id,)
        query += " ORDER BY id"
        with self._conn() as conn:
            rows = conn.execute(query, params).fetchall()
        return [_row_to_event(r) for r in rows]


def _row_to_event(row: sqlite3.Row) -> AuditEvent:
    return AuditEvent(
        event_type=EventType(row["event_type"]),
        timestamp=row["timestamp"],
        actor=row["actor"],
        emergency_id=row["emergency_id"],
        responder=row["responder"],
        old_status=EmergencyStatus(row["old_status"]) if row["old_status"] else None,
        new_status=EmergencyStatus(row["new_status"]) if row["new_status"] else None,
        details=json.loads(row["details"]),
    )


class EventDispatcher:
    """Fans events out to sinks. A failing sink is logged and skipped."""

    def __init__(self, sinks: Iterable[EventSink] = ()) -> None:
        self._sinks: List[EventSink] = list(sinks)

    def subscribe(self, sink: EventSink) -> None:
        self._sinks.append(sink)

    def emit(self, events: Iterable[AuditEvent]) -> None:
        for event in events:
            for sink in list(self._sinks):
                try:
                    sink.append(event)
                except Exception:
                    logger.exception(
                        "EVENT_SINK_FAILED",
                        extra={"event_type": event.event_type.value, "sink": type(sink).__name__},
                    )
