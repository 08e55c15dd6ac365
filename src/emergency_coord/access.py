from __future__ import annotations

import logging
from enum import Enum
from typing import FrozenSet, Optional, Set

from emergency_coord.errors import InvalidInput, Unauthorized
from emergency_coord.models import ZERO_ADDRESS, Emergency, Principal, Responder

logger = logging.getLogger(__name__)


class Action(str, Enum):
    ADMIN_ONLY = "AdminOnly"
    ACTIVE_RESPONDER_ONLY = "ActiveResponderOnly"
    AUTHORIZED_REPORTER = "AuthorizedReporter"
    EMERGENCY_PARTY = "EmergencyParty"


def is_null_address(address: Optional[Principal]) -> bool:
    return not address or address == ZERO_ADDRESS


class AccessGuard:
    """Decides whether a principal may perform an action.

    The guard holds the two authorization sets: the single admin fixed at
    construction and the authorized-reporter set. Responder and emergency
    records are passed in by the caller as context. Anything that does not
    match a rule is denied.
    """

    def __init__(self, admin: Principal) -> None:
        if is_null_address(admin):
            raise InvalidInput("admin address is required")
        self._admin = admin
        self._reporters: Set[Principal] = set()

    @property
    def admin(self) -> Principal:
        return self._admin

    @property
    def reporters(self) -> FrozenSet[Principal]:
        return frozenset(self._reporters)

    def is_admin(self, principal: Optional[Principal]) -> bool:
        return not is_null_address(principal) and principal == self._admin

    def is_authorized_reporter(self, principal: Optional[Principal]) -> bool:
        return self.is_admin(principal) or (not is_null_address(principal) and principal in self._reporters)

    def add_reporter(self, address: Principal) -> bool:
        """Returns False when the address was already authorized."""
        if address in self._reporters:
            return False
        self._reporters.add(address)
        return True

    def authorize(
        self,
        principal: Optional[Principal],
        action: Action,
        *,
        responder: Optional[Responder] = None,
        emergency: Optional[Emergency] = None,
    ) -> bool:
        if is_null_address(principal):
            return False

        if action is Action.ADMIN_ONLY:
            return self.is_admin(principal)

        if action is Action.AUTHORIZED_REPORTER:
            return self.is_authorized_reporter(principal)

        if action is Action.ACTIVE_RESPONDER_ONLY:
            return responder is not None and responder.address == principal and responder.is_active

        if action is Action.EMERGENCY_PARTY:
            if self.is_admin(principal):
                return True
            if emergency is None:
                return False
            return principal in (emergency.assigned_responder, emergency.reporter)

        return False

    def require(
        self,
        principal: Optional[Principal],
        action: Action,
        *,
        responder: Optional[Responder] = None,
        emergency: Optional[Emergency] = None,
    ) -> None:
        if not self.authorize(principal, action, responder=responder, emergency=emergency):
            logger.warning("ACCESS_DENIED", extra={"principal": principal, "action": action.value})
            raise Unauthorized(f"{principal!r} is not allowed to perform {action.value}")
