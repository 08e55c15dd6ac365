from __future__ import annotations

import logging
import threading
from collections import deque
from typing import Callable, Deque, Iterable, List, Optional, Tuple, TypeVar, Union

from emergency_coord import config
from emergency_coord.access import AccessGuard
from emergency_coord.clock import Clock, SystemClock
from emergency_coord.errors import EngineError
from emergency_coord.events import EventDispatcher, EventSink
from emergency_coord.lifecycle import EmergencyLifecycleManager, TransitionPolicy
from emergency_coord.models import AuditEvent, Emergency, EmergencyStatus, Principal, Responder, Severity
from emergency_coord.queries import QueryInterface
from emergency_coord.registry import ResponderRegistry

logger = logging.getLogger(__name__)

T = TypeVar("T")


class EmergencyCoordinationEngine:
    """Single stateful entry point for incident coordination.

    Every mutating call takes the caller principal first, runs under one
    global lock and either commits fully or raises an ``EngineError`` with
    nothing changed. Events are queued in commit order under that lock and
    handed to the sinks after it is released, so a slow or failing sink
    never affects the commit and sinks still see events in commit order.
    """

    def __init__(
        self,
        admin: Principal,
        *,
        clock: Optional[Clock] = None,
        sinks: Iterable[EventSink] = (),
        response_time_limit: Optional[float] = None,
        policy: Union[TransitionPolicy, str, None] = None,
    ) -> None:
        self.clock = clock or SystemClock()
        self.guard = AccessGuard(admin)
        self.registry = ResponderRegistry(self.guard)
        self.lifecycle = EmergencyLifecycleManager(
            self.guard,
            self.registry,
            policy=policy if policy is not None else config.STATUS_TRANSITION_POLICY,
        )
        limit = response_time_limit if response_time_limit is not None else config.RESPONSE_TIME_LIMIT_SECONDS
        self.queries = QueryInterface(self.lifecycle, self.registry, self.clock, float(limit))
        self.dispatcher = EventDispatcher(sinks)
        self._lock = threading.RLock()
        self._emit_lock = threading.RLock()
        self._pending: Deque[AuditEvent] = deque()
        logger.info(
            "ENGINE_INITIALIZED",
            extra={"admin": admin, "policy": self.lifecycle.policy.value, "response_time_limit": float(limit)},
        )

    @property
    def admin(self) -> Principal:
        return self.guard.admin

    @property
    def policy(self) -> TransitionPolicy:
        return self.lifecycle.policy

    def subscribe(self, sink: EventSink) -> None:
        self.dispatcher.subscribe(sink)

    def _mutate(self, operation: str, caller: Principal, apply: Callable[[float], Tuple[T, List[AuditEvent]]]) -> T:
        with self._lock:
            now = self.clock.now()
            try:
                result, events = apply(now)
            except EngineError as exc:
                logger.warning(
                    "OPERATION_REJECTED",
                    extra={"operation": operation, "principal": caller, "kind": exc.kind.value, "detail": exc.message},
                )
                raise
            self._pending.extend(events)
        self._drain()
        return result

    def _drain(self) -> None:
        # Never taken while holding _lock, so sinks may read the engine.
        with self._emit_lock:
            while True:
                try:
                    event = self._pending.popleft()
                except IndexError:
                    return
                self.dispatcher.emit([event])

    # Mutations

    def report_emergency(
        self,
        caller: Principal,
        location: str,
        description: str,
        severity: Union[Severity, str, int],
    ) -> int:
        return self._mutate(
            "report_emergency",
            caller,
            lambda now: self.lifecycle.report(caller, location, description, severity, now),
        )

    def assign_responder(self, caller: Principal, emergency_id: int, responder: Principal) -> None:
        self._mutate(
            "assign_responder",
            caller,
            lambda now: (None, self.lifecycle.assign(caller, emergency_id, responder, now)),
        )

    def update_emergency_status(
        self,
        caller: Principal,
        emergency_id: int,
        status: Union[EmergencyStatus, str],
    ) -> None:
        self._mutate(
            "update_emergency_status",
            caller,
            lambda now: (None, self.lifecycle.update_status(caller, emergency_id, status, now)),
        )

    def verify_emergency(self, caller: Principal, emergency_id: int) -> None:
        self._mutate(
            "verify_emergency",
            caller,
            lambda now: (None, self.lifecycle.verify(caller, emergency_id, now)),
        )

    def register_responder(self, caller: Principal, address: Principal, name: str, specialty: str) -> None:
        self._mutate(
            "register_responder",
            caller,
            lambda now: (None, self.registry.register(caller, address, name, specialty, now)),
        )

    def deactivate_responder(self, caller: Principal, address: Principal) -> None:
        self._mutate(
            "deactivate_responder",
            caller,
            lambda now: (None, self.registry.deactivate(caller, address, now)),
        )

    def authorize_reporter(self, caller: Principal, address: Principal) -> None:
        self._mutate(
            "authorize_reporter",
            caller,
            lambda now: (None, self.registry.authorize_reporter(caller, address, now)),
        )

    # Queries

    def get_emergency(self, emergency_id: int) -> Emergency:
        with self._lock:
            return self.queries.get_emergency(emergency_id)

    def get_responder(self, address: Principal) -> Responder:
        with self._lock:
            return self.queries.get_responder(address)

    def get_assignment_history(self, emergency_id: int) -> Tuple[Principal, ...]:
        with self._lock:
            return self.queries.get_assignment_history(emergency_id)

    def is_response_overdue(self, emergency_id: int) -> bool:
        with self._lock:
            return self.queries.is_response_overdue(emergency_id)

    def total_emergencies(self) -> int:
        with self._lock:
            return self.queries.total_emergencies()

    def is_authorized_reporter(self, address: Principal) -> bool:
        with self._lock:
            return self.guard.is_authorized_reporter(address)

    def list_emergencies(
        self,
        status: Optional[EmergencyStatus] = None,
        severity: Optional[Severity] = None,
    ) -> List[Emergency]:
        with self._lock:
            return self.queries.list_emergencies(status=status, severity=severity)

    def overdue_emergencies(self) -> List[Emergency]:
        with self._lock:
            return self.queries.overdue_emergencies()

    def list_responders(self, active_only: bool = False) -> List[Responder]:
        with self._lock:
            return self.queries.list_responders(active_only=active_only)
