"""Type definitions and data models for the staking operations coordinator."""

import time
import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any

from .exceptions import StateTransitionError, ValidationError


class OperationKind(Enum):
    """Mutating actions the coordinator knows how to submit."""

    APPROVE = "approve"
    STAKE = "stake"
    UNSTAKE = "unstake"
    HARVEST = "harvest"
    COMPOUND = "compound"
    ADD_LIQUIDITY = "add_liquidity"
    REMOVE_LIQUIDITY = "remove_liquidity"
    CONTRIBUTE = "contribute"
    EMERGENCY_WITHDRAW = "emergency_withdraw"

    @property
    def carries_amount(self) -> bool:
        return self not in (OperationKind.HARVEST, OperationKind.COMPOUND)


class OperationState(Enum):
    """Lifecycle states of a single operation."""

    IDLE = "idle"
    PREPARING = "preparing"
    AWAITING_SIGNATURE = "awaiting_signature"
    SUBMITTED = "submitted"
    CONFIRMING = "confirming"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_STATES

    @property
    def rank(self) -> int:
        return _STATE_RANK[self]


_TERMINAL_STATES = frozenset(
    {OperationState.SUCCEEDED, OperationState.FAILED, OperationState.TIMED_OUT}
)

_STATE_RANK = {
    OperationState.IDLE: 0,
    OperationState.PREPARING: 1,
    OperationState.AWAITING_SIGNATURE: 2,
    OperationState.SUBMITTED: 3,
    OperationState.CONFIRMING: 4,
    OperationState.SUCCEEDED: 5,
    OperationState.FAILED: 5,
    OperationState.TIMED_OUT: 5,
}


class ErrorKind(Enum):
    """Classified failure categories surfaced to callers."""

    VALIDATION_FAILED = "validation_failed"
    USER_REJECTED = "user_rejected"
    INSUFFICIENT_BALANCE = "insufficient_balance"
    BELOW_MINIMUM = "below_minimum"
    EXCEEDS_MAXIMUM = "exceeds_maximum"
    CONTRACT_REVERT = "contract_revert"
    SUBMISSION_ERROR = "submission_error"
    TIMED_OUT = "timed_out"
    NETWORK_UNAVAILABLE = "network_unavailable"
    ALREADY_IN_PROGRESS = "already_in_progress"
    UNKNOWN = "unknown"


class PollOutcome(Enum):
    """Result of waiting on a submitted transaction."""

    SUCCESS = "success"
    REVERTED = "reverted"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"


class CompoundFrequency(Enum):
    """Notional reinvestment schedule used by the projection engine."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"

    @property
    def periods_per_year(self) -> int:
        return _PERIODS_PER_YEAR[self]


_PERIODS_PER_YEAR = {
    CompoundFrequency.DAILY: 365,
    CompoundFrequency.WEEKLY: 52,
    CompoundFrequency.MONTHLY: 12,
}


@dataclass(frozen=True)
class ClassifiedError:
    """Tagged error variant; ``raw_message`` is kept for diagnostics."""

    kind: ErrorKind
    message: str
    reason: str | None = None
    raw_message: str | None = None

    def __str__(self) -> str:
        return self.message


@dataclass(frozen=True)
class CallTarget:
    """Contract address plus the function and arguments a write call resolves to."""

    address: str
    function_name: str
    args: tuple[Any, ...] = ()
    value: int = 0
    abi_role: str | None = None

    @property
    def selector(self) -> str:
        return f"{self.address}:{self.function_name}"


@dataclass(frozen=True)
class PoolParameters:
    """Read-only pool configuration supplied by the read cache."""

    total_staked: int
    reward_rate_per_unit_time: int
    min_stake: int
    max_stake: int
    lock_period_seconds: int
    early_withdraw_penalty_percent: Decimal = Decimal(0)
    compound_bonus_percent: Decimal = Decimal(0)
    decimals: int = 18


@dataclass(frozen=True)
class UserPosition:
    """Account position in a staking pool as last read from the ledger."""

    staked_amount: int
    pending_reward: int
    lock_end_timestamp: int
    last_harvest_timestamp: int = 0

    def is_locked(self, now: float | None = None) -> bool:
        current = time.time() if now is None else now
        return self.lock_end_timestamp > current


@dataclass(frozen=True)
class ProjectionRequest:
    """Inputs to the reward projection engine."""

    principal: Decimal | float | int
    apr_percent: Decimal | float | int
    duration_days: int
    compound_frequency: CompoundFrequency = CompoundFrequency.DAILY
    compound_mode: bool = True

    def __post_init__(self) -> None:
        if self.duration_days < 0:
            raise ValidationError(
                "Duration cannot be negative", field="duration_days", value=self.duration_days
            )


@dataclass(frozen=True)
class BreakdownPoint:
    """Position value (principal included) at a day offset for both curves."""

    day: int
    simple_value: float
    compound_value: float


@dataclass(frozen=True)
class ProjectionResult:
    """Simple and compound reward projection for one request."""

    simple_reward: float
    simple_roi_percent: float
    compound_reward: float
    compound_roi_percent: float
    total_with_compound: float
    difference: float
    breakdown: tuple[BreakdownPoint, ...] = ()
    compound_mode: bool = True

    @classmethod
    def zero(cls, compound_mode: bool = True) -> "ProjectionResult":
        return cls(
            simple_reward=0.0,
            simple_roi_percent=0.0,
            compound_reward=0.0,
            compound_roi_percent=0.0,
            total_with_compound=0.0,
            difference=0.0,
            breakdown=(),
            compound_mode=compound_mode,
        )

    @property
    def reward(self) -> float:
        """Reward for the mode the request selected."""
        return self.compound_reward if self.compound_mode else self.simple_reward

    @property
    def roi_percent(self) -> float:
        return self.compound_roi_percent if self.compound_mode else self.simple_roi_percent


@dataclass
class Operation:
    """One in-flight or completed mutating action.

    Owned by the state machine for its lifetime. ``state`` only moves forward
    and ``tx_handle`` is assigned at most once.
    """

    kind: OperationKind
    account: str
    target: CallTarget
    amount: int | None = None
    operation_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    state: OperationState = OperationState.IDLE
    tx_handle: str | None = None
    error: ClassifiedError | None = None
    started_at: float = field(default_factory=time.time)
    deadline: float | None = None
    transitions: list[OperationState] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.kind.carries_amount:
            if self.amount is None or self.amount <= 0:
                raise ValidationError(
                    f"{self.kind.value} requires a positive amount",
                    field="amount",
                    value=self.amount,
                )
        elif self.amount is not None:
            raise ValidationError(
                f"{self.kind.value} does not take an amount", field="amount", value=self.amount
            )
        if not self.transitions:
            self.transitions.append(self.state)

    @property
    def is_terminal(self) -> bool:
        return self.state.is_terminal

    @property
    def guard_key(self) -> tuple[OperationKind, str, str]:
        return (self.kind, self.account.lower(), self.target.address.lower())

    def advance(self, new_state: OperationState) -> OperationState:
        """Move to ``new_state`` and return the state that was left."""

        previous = self.state
        if previous.is_terminal or new_state.rank <= previous.rank:
            raise StateTransitionError(self.operation_id, previous.value, new_state.value)
        self.state = new_state
        self.transitions.append(new_state)
        return previous

    def attach_handle(self, tx_handle: str) -> None:
        if self.tx_handle is not None:
            raise StateTransitionError(self.operation_id, self.state.value, "attach_handle")
        self.tx_handle = tx_handle


@dataclass
class Result:
    """Terminal outcome of an operation, returned instead of raising."""

    success: bool
    kind: OperationKind
    state: OperationState
    message: str
    transaction_hash: str | None = None
    error: ClassifiedError | None = None
    operation_id: str | None = None
    receipt: dict[str, Any] | None = None

    @property
    def error_kind(self) -> ErrorKind | None:
        return self.error.kind if self.error is not None else None

