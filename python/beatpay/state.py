"""Checkout state machine.

Tracks where a checkout is in the settlement protocol so the caller can
restore it (for example after a page reload) without reading ad-hoc
flags. Persistence goes through an injected storage.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Protocol

from .errors import InvalidStateTransition

logger = logging.getLogger(__name__)


class CheckoutState(str, Enum):
    IDLE = "idle"
    AWAITING_SIGNATURE = "awaiting_signature"
    SUBMITTED = "submitted"
    CONFIRMING = "confirming"
    SETTLED = "settled"
    FAILED = "failed"


_TRANSITIONS: dict[CheckoutState, set[CheckoutState]] = {
    CheckoutState.IDLE: {CheckoutState.AWAITING_SIGNATURE, CheckoutState.FAILED},
    CheckoutState.AWAITING_SIGNATURE: {CheckoutState.SUBMITTED, CheckoutState.FAILED},
    CheckoutState.SUBMITTED: {CheckoutState.CONFIRMING, CheckoutState.FAILED},
    CheckoutState.CONFIRMING: {
        CheckoutState.SETTLED,
        CheckoutState.FAILED,
        CheckoutState.AWAITING_SIGNATURE,  # next item of a batch
        CheckoutState.IDLE,
    },
    CheckoutState.SETTLED: {CheckoutState.IDLE, CheckoutState.AWAITING_SIGNATURE},
    CheckoutState.FAILED: {CheckoutState.IDLE},
}


class StateStorage(Protocol):
    def get(self, key: str) -> str | None:
        ...

    def set(self, key: str, value: str) -> None:
        ...


class InMemoryStateStorage:
    def __init__(self) -> None:
        self._values: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        self._values[key] = value


class CheckoutStateMachine:
    """Finite-state machine for one checkout, persisted under ``key``.

    A confirmation timeout leaves the machine in CONFIRMING: the payment
    is pending verification, not failed.
    """

    def __init__(self, storage: StateStorage, key: str = "checkout"):
        self._storage = storage
        self._key = key

    @property
    def state(self) -> CheckoutState:
        stored = self._storage.get(self._key)
        return CheckoutState(stored) if stored else CheckoutState.IDLE

    def can_transition(self, target: CheckoutState) -> bool:
        return target in _TRANSITIONS[self.state]

    def transition(self, target: CheckoutState) -> None:
        current = self.state
        if target not in _TRANSITIONS[current]:
            raise InvalidStateTransition(current.value, target.value)
        logger.debug("Checkout %s: %s -> %s", self._key, current.value, target.value)
        self._storage.set(self._key, target.value)

    def reset(self) -> None:
        if self.state != CheckoutState.IDLE:
            self.transition(CheckoutState.IDLE)
