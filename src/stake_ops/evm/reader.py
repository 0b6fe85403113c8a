"""Chain-backed implementation of the read-cache boundary."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterable
from decimal import Decimal
from typing import Any, TypeVar

from ..cache import CacheKey
from ..exceptions import NetworkError
from ..operations import AbiRole
from ..types import PoolParameters, UserPosition
from .connections import Web3Connections

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ChainReadCache:
    """Read balances, allowances and pool state from contracts, memoised until invalidated."""

    def __init__(self, connections: Web3Connections, *, token_decimals: int = 18) -> None:
        self._connections = connections
        self._token_decimals = token_decimals
        self._entries: dict[CacheKey, dict[tuple[str, ...], Any]] = {}

    async def balance_of(self, token: str, account: str) -> int:
        return await self._memo(
            CacheKey.BALANCE,
            (token, account),
            lambda: self._call(token, AbiRole.ERC20, "balanceOf", account),
        )

    async def allowance(self, token: str, owner: str, spender: str) -> int:
        return await self._memo(
            CacheKey.ALLOWANCE,
            (token, owner, spender),
            lambda: self._call(token, AbiRole.ERC20, "allowance", owner, spender),
        )

    async def pool_parameters(self, pool: str) -> PoolParameters:
        async def read() -> PoolParameters:
            total_staked = await self._call(pool, AbiRole.STAKING, "totalStaked")
            reward_rate = await self._call(pool, AbiRole.STAKING, "rewardRate")
            min_stake = await self._call(pool, AbiRole.STAKING, "minStake")
            max_stake = await self._call(pool, AbiRole.STAKING, "maxStake")
            lock_period = await self._call(pool, AbiRole.STAKING, "lockPeriod")
            penalty = await self._call(pool, AbiRole.STAKING, "earlyWithdrawPenalty")
            bonus = await self._call(pool, AbiRole.STAKING, "compoundBonus")
            return PoolParameters(
                total_staked=int(total_staked),
                reward_rate_per_unit_time=int(reward_rate),
                min_stake=int(min_stake),
                max_stake=int(max_stake),
                lock_period_seconds=int(lock_period),
                early_withdraw_penalty_percent=Decimal(penalty),
                compound_bonus_percent=Decimal(bonus),
                decimals=self._token_decimals,
            )

        return await self._memo(CacheKey.POOL_PARAMETERS, (pool,), read)

    async def user_position(self, pool: str, account: str) -> UserPosition:
        async def read() -> UserPosition:
            details = await self._call(pool, AbiRole.STAKING, "getStakeDetails", account)
            staked, pending, lock_end = details[0], details[1], details[2]
            return UserPosition(
                staked_amount=int(staked),
                pending_reward=int(pending),
                lock_end_timestamp=int(lock_end),
            )

        return await self._memo(CacheKey.USER_POSITION, (pool, account), read)

    async def pending_reward(self, pool: str, account: str) -> int:
        return await self._memo(
            CacheKey.PENDING_REWARD,
            (pool, account),
            lambda: self._call(pool, AbiRole.STAKING, "pendingReward", account),
        )

    async def invalidate(self, keys: Iterable[CacheKey]) -> None:
        dropped = []
        for key in keys:
            if self._entries.pop(key, None) is not None:
                dropped.append(key.value)
        logger.debug("Invalidated cache entries: %s", ", ".join(sorted(dropped)) or "none")

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    async def _memo(
        self, key: CacheKey, args: tuple[str, ...], read: Callable[[], Awaitable[T]]
    ) -> T:
        bucket = self._entries.setdefault(key, {})
        lookup = tuple(arg.lower() for arg in args)
        if lookup in bucket:
            return bucket[lookup]
        value = await read()
        bucket[lookup] = value
        return value

    async def _call(self, address: str, role: str, function_name: str, *args: Any) -> Any:
        contract = self._connections.contract(address, role)
        try:
            return await getattr(contract.functions, function_name)(*args).call()
        except Exception as exc:
            raise NetworkError(
                f"Failed to read {function_name}",
                endpoint=address,
                details={"args": list(args), "error": str(exc)},
            ) from exc
