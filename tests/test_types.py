"""Tests for stake_ops.types models."""

import pytest

from stake_ops.exceptions import StateTransitionError, ValidationError
from stake_ops.types import (
    CallTarget,
    ClassifiedError,
    ErrorKind,
    Operation,
    OperationKind,
    OperationState,
    Result,
    UserPosition,
)

ACCOUNT = "0x00000000000000000000000000000000000000AA"
POOL = "0x00000000000000000000000000000000000000Bb"


def _operation(kind: OperationKind = OperationKind.STAKE, amount: int | None = 10) -> Operation:
    return Operation(kind=kind, account=ACCOUNT, target=CallTarget(POOL, "stake"), amount=amount)


def test_operation_starts_idle() -> None:
    operation = _operation()

    assert operation.state is OperationState.IDLE
    assert operation.transitions == [OperationState.IDLE]
    assert operation.tx_handle is None
    assert not operation.is_terminal
    assert len(operation.operation_id) == 32


def test_guard_key_is_case_insensitive() -> None:
    assert _operation().guard_key == (OperationKind.STAKE, ACCOUNT.lower(), POOL.lower())


@pytest.mark.parametrize("amount", [None, 0, -1])
def test_amount_kinds_require_positive_amount(amount: int | None) -> None:
    with pytest.raises(ValidationError):
        _operation(amount=amount)


@pytest.mark.parametrize("kind", [OperationKind.HARVEST, OperationKind.COMPOUND])
def test_harvest_and_compound_carry_no_amount(kind: OperationKind) -> None:
    assert _operation(kind, amount=None).amount is None
    with pytest.raises(ValidationError):
        _operation(kind, amount=5)


def test_advance_moves_forward_only() -> None:
    operation = _operation()

    assert operation.advance(OperationState.PREPARING) is OperationState.IDLE
    assert operation.advance(OperationState.AWAITING_SIGNATURE) is OperationState.PREPARING

    with pytest.raises(StateTransitionError):
        operation.advance(OperationState.PREPARING)
    with pytest.raises(StateTransitionError):
        operation.advance(OperationState.AWAITING_SIGNATURE)


def test_terminal_states_are_sticky() -> None:
    operation = _operation()
    operation.advance(OperationState.PREPARING)
    operation.advance(OperationState.FAILED)

    assert operation.is_terminal
    for state in (OperationState.SUCCEEDED, OperationState.TIMED_OUT, OperationState.CONFIRMING):
        with pytest.raises(StateTransitionError):
            operation.advance(state)
    assert operation.transitions == [
        OperationState.IDLE,
        OperationState.PREPARING,
        OperationState.FAILED,
    ]


def test_handle_is_assigned_once() -> None:
    operation = _operation()
    operation.attach_handle("0x01")

    with pytest.raises(StateTransitionError):
        operation.attach_handle("0x02")
    assert operation.tx_handle == "0x01"


def test_state_ranks() -> None:
    assert OperationState.IDLE.rank < OperationState.PREPARING.rank
    assert OperationState.SUBMITTED.rank < OperationState.CONFIRMING.rank
    assert {
        state for state in OperationState if state.is_terminal
    } == {OperationState.SUCCEEDED, OperationState.FAILED, OperationState.TIMED_OUT}


def test_result_error_kind() -> None:
    error = ClassifiedError(ErrorKind.TIMED_OUT, "not confirmed yet")
    result = Result(False, OperationKind.STAKE, OperationState.TIMED_OUT, str(error), error=error)

    assert result.error_kind is ErrorKind.TIMED_OUT
    assert result.message == "not confirmed yet"
    assert Result(True, OperationKind.STAKE, OperationState.SUCCEEDED, "ok").error_kind is None


def test_user_position_lock() -> None:
    position = UserPosition(staked_amount=1, pending_reward=0, lock_end_timestamp=1_000)

    assert position.is_locked(now=999)
    assert not position.is_locked(now=1_000)


def test_call_target_selector() -> None:
    assert CallTarget(POOL, "claim").selector == f"{POOL}:claim"
