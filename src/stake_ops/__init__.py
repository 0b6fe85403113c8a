"""Stake Ops - staking, liquidity and launchpad operations for EVM wallets.

Every mutating call runs through a single operation state machine that
guards duplicate submissions, classifies failures and returns a ``Result``.
"""

from .calculator import CalculatorState
from .cancellation import CancellationToken
from .classifier import classify_error
from .evm import ClientConfig, StakingClient
from .exceptions import (
    NetworkError,
    StakeOpsError,
    StateTransitionError,
    SubmissionError,
    UserRejectedError,
    ValidationError,
)
from .machine import OperationStateMachine
from .operations import (
    AddLiquidityParams,
    ApproveParams,
    CompoundParams,
    ContributeParams,
    EmergencyWithdrawParams,
    HarvestParams,
    RemoveLiquidityParams,
    StakeParams,
    UnstakeParams,
)
from .projection import pool_apr, project
from .types import (
    ClassifiedError,
    CompoundFrequency,
    ErrorKind,
    Operation,
    OperationKind,
    OperationState,
    PoolParameters,
    ProjectionRequest,
    ProjectionResult,
    Result,
    UserPosition,
)
from .utils import apply_slippage, from_base_units, to_base_units

__version__ = "0.1.0"

__all__ = [
    # Clients
    "StakingClient",
    "ClientConfig",
    "OperationStateMachine",
    "CalculatorState",
    "CancellationToken",
    # Operation parameters
    "ApproveParams",
    "StakeParams",
    "UnstakeParams",
    "HarvestParams",
    "CompoundParams",
    "EmergencyWithdrawParams",
    "AddLiquidityParams",
    "RemoveLiquidityParams",
    "ContributeParams",
    # Types and enums
    "OperationKind",
    "OperationState",
    "ErrorKind",
    "CompoundFrequency",
    "ClassifiedError",
    "Operation",
    "Result",
    "PoolParameters",
    "UserPosition",
    "ProjectionRequest",
    "ProjectionResult",
    # Exceptions
    "StakeOpsError",
    "NetworkError",
    "ValidationError",
    "SubmissionError",
    "UserRejectedError",
    "StateTransitionError",
    # Utility functions
    "classify_error",
    "project",
    "pool_apr",
    "to_base_units",
    "from_base_units",
    "apply_slippage",
]
