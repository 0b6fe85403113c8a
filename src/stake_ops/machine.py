"""Single lifecycle coordinator for every mutating operation."""

from __future__ import annotations

import logging
import time
from collections import deque
from collections.abc import Callable
from dataclasses import replace
from typing import Any, Protocol

from .cache import ReadCache
from .cancellation import CancellationToken
from .classifier import classify_local_failure
from .exceptions import NetworkError, SubmissionError, UserRejectedError, ValidationError
from .operations import OperationParams, get_profile
from .types import (
    ClassifiedError,
    ErrorKind,
    Operation,
    OperationKind,
    OperationState,
    PollOutcome,
    Result,
)

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_SIZE = 50

TransitionListener = Callable[[Operation, OperationState, OperationState], None]


class NonceSource(Protocol):
    async def next_nonce(self, account: str) -> int: ...


class GasPriceSource(Protocol):
    async def current_premium_gas_price(self) -> int: ...


class Submitter(Protocol):
    async def submit(
        self, operation: Operation, nonce: int, gas_price: int, gas_limit: int
    ) -> str: ...


class Poller(Protocol):
    async def await_outcome(
        self,
        tx_handle: str,
        timeout: float,
        *,
        poll_interval: float,
        cancel_token: CancellationToken | None = None,
    ) -> Any: ...


_SUCCESS_MESSAGES = {
    OperationKind.APPROVE: "Approval confirmed",
    OperationKind.STAKE: "Stake confirmed",
    OperationKind.UNSTAKE: "Unstake confirmed",
    OperationKind.HARVEST: "Rewards claimed",
    OperationKind.COMPOUND: "Rewards compounded",
    OperationKind.ADD_LIQUIDITY: "Liquidity added",
    OperationKind.REMOVE_LIQUIDITY: "Liquidity removed",
    OperationKind.CONTRIBUTE: "Contribution confirmed",
    OperationKind.EMERGENCY_WITHDRAW: "Emergency withdrawal confirmed",
}


class OperationStateMachine:
    """Drive operations through Preparing, signature, submission and confirmation.

    At most one non-terminal operation exists per (kind, account, target);
    a second ``begin`` for the same slot returns ``ALREADY_IN_PROGRESS``.
    Results are always returned, never raised.
    """

    def __init__(
        self,
        *,
        account: str,
        nonce_allocator: NonceSource,
        gas_pricer: GasPriceSource,
        submitter: Submitter,
        poller: Poller,
        cache: ReadCache,
        timeouts: dict[OperationKind, float] | None = None,
        poll_intervals: dict[OperationKind, float] | None = None,
        history_size: int = DEFAULT_HISTORY_SIZE,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._account = account
        self._nonces = nonce_allocator
        self._gas = gas_pricer
        self._submitter = submitter
        self._poller = poller
        self._cache = cache
        self._timeouts = dict(timeouts or {})
        self._poll_intervals = dict(poll_intervals or {})
        self._clock = clock
        self._in_flight: dict[tuple[OperationKind, str, str], Operation] = {}
        self._history: deque[Operation] = deque(maxlen=history_size)
        self._listeners: list[TransitionListener] = []

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------
    @property
    def account(self) -> str:
        return self._account

    @property
    def history(self) -> tuple[Operation, ...]:
        return tuple(self._history)

    def in_flight(self) -> list[Operation]:
        return list(self._in_flight.values())

    def slot_state(self, kind: OperationKind, contract: str) -> OperationState:
        """State of the (kind, target) slot for this account; IDLE when free."""

        operation = self._in_flight.get(self._guard_key(kind, contract))
        return operation.state if operation is not None else OperationState.IDLE

    def subscribe(self, listener: TransitionListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------
    async def begin(
        self,
        kind: OperationKind,
        params: OperationParams,
        *,
        gas_limit: int | None = None,
        timeout: float | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> Result:
        if params.kind is not kind:
            error = ClassifiedError(
                kind=ErrorKind.VALIDATION_FAILED,
                message=f"Parameters for {params.kind.value} cannot start a {kind.value}",
                reason="params",
            )
            return Result(False, kind, OperationState.FAILED, error.message, error=error)

        key = self._guard_key(kind, params.contract)
        if key in self._in_flight:
            logger.warning("Rejecting %s: already in progress on %s", kind.value, params.contract)
            error = ClassifiedError(
                kind=ErrorKind.ALREADY_IN_PROGRESS,
                message=f"A {kind.value} operation is already in progress",
            )
            return Result(
                False,
                kind,
                OperationState.FAILED,
                error.message,
                error=error,
                operation_id=self._in_flight[key].operation_id,
            )

        now = self._clock()
        try:
            target = replace(params.build(self._account, now), abi_role=params.abi_role)
            operation = Operation(
                kind=kind,
                account=self._account,
                target=target,
                amount=params.amount if kind.carries_amount else None,
                started_at=now,
            )
        except ValidationError as exc:
            error = classify_local_failure(exc)
            logger.info("Rejected %s before preparation: %s", kind.value, exc.message)
            return Result(False, kind, OperationState.FAILED, error.message, error=error)

        self._in_flight[key] = operation
        token = cancel_token or CancellationToken()
        try:
            return await self._run(operation, params, token, gas_limit, timeout)
        except Exception as exc:
            logger.exception("Unexpected %s failure", kind.value)
            error = ClassifiedError(kind=ErrorKind.UNKNOWN, message=str(exc), raw_message=str(exc))
            if operation.is_terminal:
                return self._result(operation, error.message)
            return self._fail(operation, error, token)
        finally:
            self._in_flight.pop(key, None)
            self._history.append(operation)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    async def _run(
        self,
        operation: Operation,
        params: OperationParams,
        token: CancellationToken,
        gas_limit: int | None,
        timeout: float | None,
    ) -> Result:
        kind = operation.kind
        profile = get_profile(kind)
        self._transition(operation, OperationState.PREPARING, token)

        logger.debug("Stage %s: validate inputs", kind.value)
        try:
            await params.validate(self._account, self._cache)
        except (ValidationError, NetworkError) as exc:
            return self._fail(operation, classify_local_failure(exc), token)

        logger.debug("Stage %s: resolve gas price and nonce", kind.value)
        try:
            gas_price = await self._gas.current_premium_gas_price()
            nonce = await self._nonces.next_nonce(self._account)
        except NetworkError as exc:
            return self._fail(operation, classify_local_failure(exc), token)

        if token.cancelled:
            return self._abandoned(operation)

        self._transition(operation, OperationState.AWAITING_SIGNATURE, token)
        try:
            tx_handle = await self._submitter.submit(
                operation, nonce, gas_price, gas_limit or profile.gas_limit
            )
        except UserRejectedError as exc:
            error = ClassifiedError(
                kind=ErrorKind.USER_REJECTED,
                message="Transaction rejected by user",
                raw_message=str(exc.details.get("error", exc.message)),
            )
            return self._fail(operation, error, token)
        except SubmissionError as exc:
            return self._fail(operation, self._submission_error(exc), token)
        except NetworkError as exc:
            return self._fail(operation, classify_local_failure(exc), token)

        operation.attach_handle(tx_handle)
        window = timeout if timeout is not None else self._timeouts.get(kind, profile.timeout)
        operation.deadline = self._clock() + window
        self._transition(operation, OperationState.SUBMITTED, token)
        self._transition(operation, OperationState.CONFIRMING, token)

        outcome = await self._poller.await_outcome(
            tx_handle,
            window,
            poll_interval=self._poll_intervals.get(kind, profile.poll_interval),
            cancel_token=token,
        )

        if outcome.outcome is PollOutcome.CANCELLED or token.cancelled:
            return self._abandoned(operation)

        if outcome.outcome is PollOutcome.SUCCESS:
            self._transition(operation, OperationState.SUCCEEDED, token)
            await self._invalidate(operation)
            return self._result(
                operation, f"{_SUCCESS_MESSAGES[kind]} ({tx_handle})", outcome.receipt
            )

        if outcome.outcome is PollOutcome.REVERTED:
            error = ClassifiedError(
                kind=ErrorKind.CONTRACT_REVERT,
                message=f"Transaction {tx_handle} reverted on-chain",
            )
            return self._fail(operation, error, token, receipt=outcome.receipt)

        error = ClassifiedError(
            kind=ErrorKind.TIMED_OUT,
            message=(
                f"Transaction {tx_handle} was submitted but not confirmed within "
                f"{window:.0f}s; it may still succeed. Check it before retrying."
            ),
        )
        operation.error = error
        self._transition(operation, OperationState.TIMED_OUT, token)
        return self._result(operation, error.message)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _guard_key(self, kind: OperationKind, contract: str) -> tuple[OperationKind, str, str]:
        return (kind, self._account.lower(), contract.lower())

    def _transition(
        self, operation: Operation, new_state: OperationState, token: CancellationToken
    ) -> None:
        previous = operation.advance(new_state)
        logger.debug(
            "Operation %s (%s): %s -> %s",
            operation.operation_id,
            operation.kind.value,
            previous.value,
            new_state.value,
        )
        if token.cancelled:
            return
        for listener in list(self._listeners):
            try:
                listener(operation, previous, new_state)
            except Exception:
                logger.exception("Transition listener failed for %s", operation.operation_id)

    def _fail(
        self,
        operation: Operation,
        error: ClassifiedError,
        token: CancellationToken,
        *,
        receipt: dict[str, Any] | None = None,
    ) -> Result:
        operation.error = error
        self._transition(operation, OperationState.FAILED, token)
        logger.info("Operation %s failed: %s", operation.kind.value, error.message)
        return self._result(operation, error.message, receipt)

    def _abandoned(self, operation: Operation) -> Result:
        logger.info(
            "Stopped tracking %s operation %s in state %s",
            operation.kind.value,
            operation.operation_id,
            operation.state.value,
        )
        message = "Stopped tracking this operation"
        if operation.tx_handle:
            message = f"Stopped tracking transaction {operation.tx_handle}"
        return self._result(operation, message)

    def _result(
        self,
        operation: Operation,
        message: str,
        receipt: dict[str, Any] | None = None,
    ) -> Result:
        return Result(
            success=operation.state is OperationState.SUCCEEDED,
            kind=operation.kind,
            state=operation.state,
            message=message,
            transaction_hash=operation.tx_handle,
            error=operation.error,
            operation_id=operation.operation_id,
            receipt=receipt,
        )

    def _submission_error(self, exc: SubmissionError) -> ClassifiedError:
        classified = exc.details.get("classified")
        if not isinstance(classified, ClassifiedError):
            return ClassifiedError(
                kind=ErrorKind.SUBMISSION_ERROR, message=exc.message, raw_message=exc.message
            )
        if classified.kind is ErrorKind.UNKNOWN:
            return ClassifiedError(
                kind=ErrorKind.SUBMISSION_ERROR,
                message=exc.message,
                raw_message=classified.raw_message,
            )
        return classified

    async def _invalidate(self, operation: Operation) -> None:
        keys = get_profile(operation.kind).invalidates
        try:
            await self._cache.invalidate(keys)
        except Exception:
            logger.exception(
                "Cache invalidation failed after %s (%s)",
                operation.kind.value,
                operation.tx_handle,
            )
