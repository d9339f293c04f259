"""Tests for the checkout state machine."""

import pytest

from beatpay.errors import InvalidStateTransition
from beatpay.state import CheckoutState, CheckoutStateMachine, InMemoryStateStorage


@pytest.fixture
def machine():
    return CheckoutStateMachine(InMemoryStateStorage())


class TestCheckoutStateMachine:
    def test_starts_idle(self, machine):
        assert machine.state == CheckoutState.IDLE

    def test_happy_path(self, machine):
        for target in (
            CheckoutState.AWAITING_SIGNATURE,
            CheckoutState.SUBMITTED,
            CheckoutState.CONFIRMING,
            CheckoutState.SETTLED,
        ):
            machine.transition(target)

        assert machine.state == CheckoutState.SETTLED

    def test_cannot_skip_submission(self, machine):
        machine.transition(CheckoutState.AWAITING_SIGNATURE)

        with pytest.raises(InvalidStateTransition) as exc_info:
            machine.transition(CheckoutState.SETTLED)

        assert exc_info.value.code == "invalid_state_transition"
        assert machine.state == CheckoutState.AWAITING_SIGNATURE

    def test_failed_only_resets(self, machine):
        machine.transition(CheckoutState.FAILED)

        assert not machine.can_transition(CheckoutState.AWAITING_SIGNATURE)
        machine.reset()
        assert machine.state == CheckoutState.IDLE

    def test_state_survives_reload(self):
        storage = InMemoryStateStorage()
        CheckoutStateMachine(storage, key="cart-1").transition(CheckoutState.AWAITING_SIGNATURE)

        restored = CheckoutStateMachine(storage, key="cart-1")

        assert restored.state == CheckoutState.AWAITING_SIGNATURE
        assert CheckoutStateMachine(storage, key="cart-2").state == CheckoutState.IDLE

    def test_reset_from_idle_is_noop(self, machine):
        machine.reset()

        assert machine.state == CheckoutState.IDLE
