"""Read-cache boundary consumed by validation and refreshed after success."""

from __future__ import annotations

from collections.abc import Iterable
from enum import Enum
from typing import Protocol

from .types import PoolParameters, UserPosition


class CacheKey(Enum):
    """Data sources an operation can make stale."""

    BALANCE = "balance"
    NATIVE_BALANCE = "native_balance"
    ALLOWANCE = "allowance"
    POOL_PARAMETERS = "pool_parameters"
    USER_POSITION = "user_position"
    PENDING_REWARD = "pending_reward"
    LP_BALANCE = "lp_balance"
    SALE_INFO = "sale_info"


class ReadCache(Protocol):
    """Periodic read cache owned outside the coordinator."""

    async def balance_of(self, token: str, account: str) -> int: ...

    async def allowance(self, token: str, owner: str, spender: str) -> int: ...

    async def pool_parameters(self, pool: str) -> PoolParameters: ...

    async def user_position(self, pool: str, account: str) -> UserPosition: ...

    async def pending_reward(self, pool: str, account: str) -> int: ...

    async def invalidate(self, keys: Iterable[CacheKey]) -> None: ...
