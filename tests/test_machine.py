"""Tests for the operation state machine lifecycle."""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from typing import Any

import pytest

from stake_ops.cache import CacheKey
from stake_ops.cancellation import CancellationToken
from stake_ops.evm.receipts import ReceiptOutcome
from stake_ops.exceptions import NetworkError, SubmissionError, UserRejectedError
from stake_ops.machine import OperationStateMachine
from stake_ops.operations import (
    ApproveParams,
    HarvestParams,
    StakeParams,
    get_profile,
)
from stake_ops.types import (
    ClassifiedError,
    ErrorKind,
    Operation,
    OperationKind,
    OperationState,
    PollOutcome,
    PoolParameters,
    UserPosition,
)

ACCOUNT = "0x00000000000000000000000000000000000000Aa"
POOL = "0x0000000000000000000000000000000000000001"
TOKEN = "0x0000000000000000000000000000000000000002"
TX_HASH = "0x" + "ab" * 32


class FakeNonces:
    def __init__(self, start: int = 7) -> None:
        self.next = start
        self.calls = 0

    async def next_nonce(self, account: str) -> int:
        self.calls += 1
        nonce = self.next
        self.next += 1
        return nonce


class FakeGas:
    def __init__(self, price: int = 130, error: Exception | None = None) -> None:
        self.price = price
        self.error = error
        self.calls = 0

    async def current_premium_gas_price(self) -> int:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.price


class FakeSubmitter:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.calls: list[dict[str, Any]] = []

    async def submit(
        self, operation: Operation, nonce: int, gas_price: int, gas_limit: int
    ) -> str:
        self.calls.append(
            {
                "operation": operation,
                "state": operation.state,
                "nonce": nonce,
                "gas_price": gas_price,
                "gas_limit": gas_limit,
            }
        )
        if self.error is not None:
            raise self.error
        return TX_HASH


class FakePoller:
    """Returns ``outcome`` once ``gate`` opens (immediately when no gate is given)."""

    def __init__(self, outcome: PollOutcome = PollOutcome.SUCCESS, gate: Any = None) -> None:
        self.outcome = outcome
        self.gate = gate
        self.started: asyncio.Event | None = None
        self.calls: list[dict[str, Any]] = []

    async def await_outcome(
        self,
        tx_handle: str,
        timeout: float,
        *,
        poll_interval: float,
        cancel_token: CancellationToken | None = None,
    ) -> ReceiptOutcome:
        self.calls.append(
            {"tx_handle": tx_handle, "timeout": timeout, "poll_interval": poll_interval}
        )
        if self.started is not None:
            self.started.set()
        if self.gate == "cancel":
            assert cancel_token is not None
            if await cancel_token.sleep(5):
                return ReceiptOutcome(PollOutcome.CANCELLED)
        elif self.gate is not None:
            await self.gate.wait()
        receipt = {"status": 1 if self.outcome is PollOutcome.SUCCESS else 0}
        if self.outcome in (PollOutcome.SUCCESS, PollOutcome.REVERTED):
            return ReceiptOutcome(self.outcome, receipt, attempts=1)
        return ReceiptOutcome(self.outcome, attempts=3)


class FakeCache:
    def __init__(self, *, allowance: int = 10**24, staked: int = 0) -> None:
        self.allowance_value = allowance
        self.staked = staked
        self.invalidated: list[set[CacheKey]] = []

    async def balance_of(self, token: str, account: str) -> int:
        return 10**24

    async def allowance(self, token: str, owner: str, spender: str) -> int:
        return self.allowance_value

    async def pool_parameters(self, pool: str) -> PoolParameters:
        return PoolParameters(
            total_staked=10**24,
            reward_rate_per_unit_time=10**18,
            min_stake=0,
            max_stake=0,
            lock_period_seconds=0,
        )

    async def user_position(self, pool: str, account: str) -> UserPosition:
        return UserPosition(staked_amount=self.staked, pending_reward=0, lock_end_timestamp=0)

    async def pending_reward(self, pool: str, account: str) -> int:
        return 0

    async def invalidate(self, keys: Iterable[CacheKey]) -> None:
        self.invalidated.append(set(keys))


def _machine(
    *,
    nonces: FakeNonces | None = None,
    gas: FakeGas | None = None,
    submitter: FakeSubmitter | None = None,
    poller: FakePoller | None = None,
    cache: FakeCache | None = None,
    **kwargs: Any,
) -> OperationStateMachine:
    return OperationStateMachine(
        account=ACCOUNT,
        nonce_allocator=nonces or FakeNonces(),
        gas_pricer=gas or FakeGas(),
        submitter=submitter or FakeSubmitter(),
        poller=poller or FakePoller(),
        cache=cache or FakeCache(),
        **kwargs,
    )


def _stake(value: int = 100) -> StakeParams:
    return StakeParams(pool=POOL, token=TOKEN, value=value)


# ----------------------------------------------------------------------
# Happy path
# ----------------------------------------------------------------------
def test_successful_stake_walks_every_state_in_order() -> None:
    nonces, gas, submitter, cache = FakeNonces(), FakeGas(), FakeSubmitter(), FakeCache()
    machine = _machine(nonces=nonces, gas=gas, submitter=submitter, cache=cache)
    seen: list[tuple[OperationState, OperationState]] = []
    machine.subscribe(lambda op, previous, new: seen.append((previous, new)))

    result = asyncio.run(machine.begin(OperationKind.STAKE, _stake()))

    assert result.success is True
    assert result.state is OperationState.SUCCEEDED
    assert result.transaction_hash == TX_HASH
    assert TX_HASH in result.message
    assert result.error is None
    assert result.receipt == {"status": 1}
    assert seen == [
        (OperationState.IDLE, OperationState.PREPARING),
        (OperationState.PREPARING, OperationState.AWAITING_SIGNATURE),
        (OperationState.AWAITING_SIGNATURE, OperationState.SUBMITTED),
        (OperationState.SUBMITTED, OperationState.CONFIRMING),
        (OperationState.CONFIRMING, OperationState.SUCCEEDED),
    ]

    call = submitter.calls[0]
    assert call["state"] is OperationState.AWAITING_SIGNATURE
    assert call["nonce"] == 7
    assert call["gas_price"] == 130
    assert call["gas_limit"] == 300_000
    assert call["operation"].target.function_name == "stake"
    assert call["operation"].target.abi_role == "staking"
    assert cache.invalidated == [set(get_profile(OperationKind.STAKE).invalidates)]
    assert machine.in_flight() == []
    assert machine.history[-1].operation_id == result.operation_id


def test_overrides_reach_submitter_and_poller() -> None:
    submitter, poller = FakeSubmitter(), FakePoller()
    machine = _machine(
        submitter=submitter,
        poller=poller,
        poll_intervals={OperationKind.HARVEST: 0.5},
    )

    asyncio.run(
        machine.begin(OperationKind.HARVEST, HarvestParams(POOL), gas_limit=42, timeout=9.0)
    )

    assert submitter.calls[0]["gas_limit"] == 42
    assert poller.calls[0]["timeout"] == 9.0
    assert poller.calls[0]["poll_interval"] == 0.5


def test_configured_timeout_per_kind() -> None:
    poller = FakePoller()
    machine = _machine(poller=poller, timeouts={OperationKind.STAKE: 30.0})

    asyncio.run(machine.begin(OperationKind.STAKE, _stake()))

    assert poller.calls[0] == {"tx_handle": TX_HASH, "timeout": 30.0, "poll_interval": 2.0}


def test_fresh_nonce_per_submission() -> None:
    nonces, submitter = FakeNonces(), FakeSubmitter()
    machine = _machine(nonces=nonces, submitter=submitter)

    asyncio.run(machine.begin(OperationKind.STAKE, _stake()))
    asyncio.run(machine.begin(OperationKind.HARVEST, HarvestParams(POOL)))

    assert nonces.calls == 2
    assert [call["nonce"] for call in submitter.calls] == [7, 8]


# ----------------------------------------------------------------------
# Failures
# ----------------------------------------------------------------------
def test_gas_price_failure_fails_before_nonce_and_signer() -> None:
    nonces, submitter = FakeNonces(), FakeSubmitter()
    gas = FakeGas(error=NetworkError("Failed to read gas price", endpoint="https://rpc"))
    machine = _machine(nonces=nonces, gas=gas, submitter=submitter)

    result = asyncio.run(machine.begin(OperationKind.STAKE, _stake()))

    assert result.success is False
    assert result.state is OperationState.FAILED
    assert result.error_kind is ErrorKind.NETWORK_UNAVAILABLE
    assert result.transaction_hash is None
    assert nonces.calls == 0
    assert submitter.calls == []


def test_validation_failure_never_touches_network() -> None:
    gas, submitter = FakeGas(), FakeSubmitter()
    machine = _machine(gas=gas, submitter=submitter, cache=FakeCache(allowance=0))

    result = asyncio.run(machine.begin(OperationKind.STAKE, _stake()))

    assert result.state is OperationState.FAILED
    assert result.error_kind is ErrorKind.VALIDATION_FAILED
    assert result.error is not None and result.error.reason == "allowance"
    assert gas.calls == 0
    assert submitter.calls == []


def test_non_positive_amount_is_rejected_without_operation() -> None:
    machine = _machine()

    result = asyncio.run(machine.begin(OperationKind.STAKE, _stake(value=0)))

    assert result.error_kind is ErrorKind.VALIDATION_FAILED
    assert result.operation_id is None
    assert machine.history == ()


def test_mismatched_kind_is_rejected() -> None:
    result = asyncio.run(_machine().begin(OperationKind.UNSTAKE, _stake()))

    assert result.success is False
    assert result.error_kind is ErrorKind.VALIDATION_FAILED


def test_user_rejection_is_terminal_without_handle() -> None:
    machine = _machine(submitter=FakeSubmitter(error=UserRejectedError("User rejected")))

    result = asyncio.run(machine.begin(OperationKind.STAKE, _stake()))

    assert result.state is OperationState.FAILED
    assert result.error_kind is ErrorKind.USER_REJECTED
    assert result.transaction_hash is None


@pytest.mark.parametrize(
    ("classified", "expected"),
    [
        (
            ClassifiedError(ErrorKind.INSUFFICIENT_BALANCE, "Insufficient balance"),
            ErrorKind.INSUFFICIENT_BALANCE,
        ),
        (ClassifiedError(ErrorKind.UNKNOWN, "nonce too low"), ErrorKind.SUBMISSION_ERROR),
        (None, ErrorKind.SUBMISSION_ERROR),
    ],
)
def test_submission_errors_are_classified(
    classified: ClassifiedError | None, expected: ErrorKind
) -> None:
    details = {"classified": classified} if classified is not None else {}
    error = SubmissionError("Failed to submit", function_name="stake", details=details)
    machine = _machine(submitter=FakeSubmitter(error=error))

    result = asyncio.run(machine.begin(OperationKind.STAKE, _stake()))

    assert result.state is OperationState.FAILED
    assert result.error_kind is expected


def test_revert_keeps_handle_and_receipt() -> None:
    cache = FakeCache()
    machine = _machine(poller=FakePoller(PollOutcome.REVERTED), cache=cache)

    result = asyncio.run(machine.begin(OperationKind.STAKE, _stake()))

    assert result.state is OperationState.FAILED
    assert result.error_kind is ErrorKind.CONTRACT_REVERT
    assert result.transaction_hash == TX_HASH
    assert result.receipt == {"status": 0}
    assert cache.invalidated == []


def test_missing_receipt_times_out_rather_than_fails() -> None:
    machine = _machine(poller=FakePoller(PollOutcome.TIMED_OUT))

    result = asyncio.run(machine.begin(OperationKind.STAKE, _stake()))

    assert result.state is OperationState.TIMED_OUT
    assert result.error_kind is ErrorKind.TIMED_OUT
    assert result.transaction_hash == TX_HASH
    assert TX_HASH in result.message
    assert "may still succeed" in result.message
    assert "failed" not in result.message.lower()


def test_unexpected_submitter_error_becomes_unknown_result() -> None:
    machine = _machine(submitter=FakeSubmitter(error=RuntimeError("boom")))

    result = asyncio.run(machine.begin(OperationKind.STAKE, _stake()))

    assert result.state is OperationState.FAILED
    assert result.error_kind is ErrorKind.UNKNOWN
    assert machine.in_flight() == []


def test_listener_errors_do_not_break_lifecycle() -> None:
    machine = _machine()

    def broken(*_: Any) -> None:
        raise RuntimeError("listener exploded")

    machine.subscribe(broken)
    result = asyncio.run(machine.begin(OperationKind.STAKE, _stake()))

    assert result.success is True


def test_unsubscribe_stops_notifications() -> None:
    machine = _machine()
    seen: list[OperationState] = []
    unsubscribe = machine.subscribe(lambda op, previous, new: seen.append(new))
    unsubscribe()

    asyncio.run(machine.begin(OperationKind.STAKE, _stake()))

    assert seen == []


# ----------------------------------------------------------------------
# Single flight and cancellation
# ----------------------------------------------------------------------
def test_second_stake_while_first_in_flight_is_rejected() -> None:
    async def scenario() -> tuple[Any, Any, OperationState]:
        gate = asyncio.Event()
        poller = FakePoller(gate=gate)
        poller.started = asyncio.Event()
        machine = _machine(poller=poller)

        first = asyncio.create_task(machine.begin(OperationKind.STAKE, _stake()))
        await poller.started.wait()
        slot = machine.slot_state(OperationKind.STAKE, POOL)
        second = await machine.begin(OperationKind.STAKE, _stake(50))
        gate.set()
        return await first, second, slot

    first, second, slot = asyncio.run(scenario())

    assert slot is OperationState.CONFIRMING
    assert second.success is False
    assert second.error_kind is ErrorKind.ALREADY_IN_PROGRESS
    assert second.operation_id == first.operation_id
    assert first.success is True


def test_different_kinds_on_same_pool_may_overlap() -> None:
    async def scenario() -> tuple[Any, Any]:
        gate = asyncio.Event()
        poller = FakePoller(gate=gate)
        poller.started = asyncio.Event()
        machine = _machine(poller=poller)

        stake = asyncio.create_task(machine.begin(OperationKind.STAKE, _stake()))
        await poller.started.wait()
        harvest = asyncio.create_task(machine.begin(OperationKind.HARVEST, HarvestParams(POOL)))
        await asyncio.sleep(0)
        gate.set()
        return await stake, await harvest

    stake, harvest = asyncio.run(scenario())

    assert stake.success is True
    assert harvest.success is True


def test_slot_is_released_after_terminal_state() -> None:
    machine = _machine(poller=FakePoller(PollOutcome.REVERTED))

    asyncio.run(machine.begin(OperationKind.STAKE, _stake()))

    assert machine.slot_state(OperationKind.STAKE, POOL) is OperationState.IDLE
    retry = asyncio.run(machine.begin(OperationKind.STAKE, _stake()))
    assert retry.error_kind is not ErrorKind.ALREADY_IN_PROGRESS


def test_cancelled_consumer_receives_no_late_transitions() -> None:
    async def scenario(machine: OperationStateMachine, token: CancellationToken) -> Any:
        task = asyncio.create_task(
            machine.begin(OperationKind.STAKE, _stake(), cancel_token=token)
        )
        await asyncio.sleep(0.01)
        token.cancel()
        return await task

    seen: list[OperationState] = []
    machine = _machine(poller=FakePoller(gate="cancel"))
    machine.subscribe(lambda op, previous, new: seen.append(new))
    token = CancellationToken()

    result = asyncio.run(scenario(machine, token))

    assert seen[-1] is OperationState.CONFIRMING
    assert result.success is False
    assert result.state is OperationState.CONFIRMING
    assert result.transaction_hash == TX_HASH
    assert "Stopped tracking" in result.message
    assert machine.in_flight() == []


def test_cancel_before_signature_skips_submission() -> None:
    submitter = FakeSubmitter()
    machine = _machine(submitter=submitter)
    token = CancellationToken()
    token.cancel()

    result = asyncio.run(machine.begin(OperationKind.STAKE, _stake(), cancel_token=token))

    assert submitter.calls == []
    assert result.state is OperationState.PREPARING
    assert result.transaction_hash is None


# ----------------------------------------------------------------------
# History
# ----------------------------------------------------------------------
def test_history_is_bounded() -> None:
    machine = _machine(history_size=2)

    for value in (1, 2, 3):
        asyncio.run(
            machine.begin(
                OperationKind.APPROVE, ApproveParams(token=TOKEN, spender=POOL, value=value)
            )
        )

    assert [operation.amount for operation in machine.history] == [2, 3]


def test_archived_operation_states_never_regress() -> None:
    machine = _machine(poller=FakePoller(PollOutcome.TIMED_OUT))

    asyncio.run(machine.begin(OperationKind.STAKE, _stake()))

    ranks = [state.rank for state in machine.history[0].transitions]
    assert ranks == sorted(ranks)
    assert machine.history[0].is_terminal
