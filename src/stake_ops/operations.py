"""Per-kind operation parameters and the profile table driving the state machine."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import ClassVar

from .cache import CacheKey, ReadCache
from .constants import DEFAULT_SLIPPAGE_PERCENT, MAX_UINT256, GasLimit
from .exceptions import ValidationError
from .types import CallTarget, OperationKind
from .utils import apply_slippage, call_deadline

logger = logging.getLogger(__name__)

DEFAULT_RECEIPT_TIMEOUT = 120.0
EXTENDED_RECEIPT_TIMEOUT = 180.0
DEFAULT_POLL_INTERVAL = 2.0
EXTENDED_POLL_INTERVAL = 3.0


class AbiRole:
    """ABI families a call target can resolve against."""

    ERC20 = "erc20"
    STAKING = "staking"
    MASTERCHEF = "masterchef"
    ROUTER = "router"
    LAUNCHPAD = "launchpad"


@dataclass(frozen=True)
class OperationProfile:
    """Fixed per-kind settings: gas, confirmation window, cache fallout."""

    kind: OperationKind
    gas_limit: int
    timeout: float
    poll_interval: float
    invalidates: frozenset[CacheKey]


def _profile(
    kind: OperationKind,
    gas_limit: GasLimit,
    invalidates: set[CacheKey],
    *,
    extended: bool = False,
) -> OperationProfile:
    return OperationProfile(
        kind=kind,
        gas_limit=int(gas_limit),
        timeout=EXTENDED_RECEIPT_TIMEOUT if extended else DEFAULT_RECEIPT_TIMEOUT,
        poll_interval=EXTENDED_POLL_INTERVAL if extended else DEFAULT_POLL_INTERVAL,
        invalidates=frozenset(invalidates),
    )


PROFILES: dict[OperationKind, OperationProfile] = {
    OperationKind.APPROVE: _profile(
        OperationKind.APPROVE, GasLimit.APPROVE, {CacheKey.ALLOWANCE}
    ),
    OperationKind.STAKE: _profile(
        OperationKind.STAKE,
        GasLimit.STAKE,
        {CacheKey.BALANCE, CacheKey.ALLOWANCE, CacheKey.USER_POSITION, CacheKey.POOL_PARAMETERS},
    ),
    OperationKind.UNSTAKE: _profile(
        OperationKind.UNSTAKE,
        GasLimit.UNSTAKE,
        {
            CacheKey.BALANCE,
            CacheKey.USER_POSITION,
            CacheKey.PENDING_REWARD,
            CacheKey.POOL_PARAMETERS,
        },
    ),
    OperationKind.HARVEST: _profile(
        OperationKind.HARVEST,
        GasLimit.HARVEST,
        {CacheKey.PENDING_REWARD, CacheKey.BALANCE, CacheKey.USER_POSITION},
    ),
    OperationKind.COMPOUND: _profile(
        OperationKind.COMPOUND,
        GasLimit.COMPOUND,
        {CacheKey.PENDING_REWARD, CacheKey.USER_POSITION, CacheKey.POOL_PARAMETERS},
    ),
    OperationKind.EMERGENCY_WITHDRAW: _profile(
        OperationKind.EMERGENCY_WITHDRAW,
        GasLimit.EMERGENCY_WITHDRAW,
        {
            CacheKey.BALANCE,
            CacheKey.USER_POSITION,
            CacheKey.PENDING_REWARD,
            CacheKey.POOL_PARAMETERS,
        },
    ),
    OperationKind.ADD_LIQUIDITY: _profile(
        OperationKind.ADD_LIQUIDITY,
        GasLimit.ADD_LIQUIDITY,
        {CacheKey.BALANCE, CacheKey.NATIVE_BALANCE, CacheKey.ALLOWANCE, CacheKey.LP_BALANCE},
        extended=True,
    ),
    OperationKind.REMOVE_LIQUIDITY: _profile(
        OperationKind.REMOVE_LIQUIDITY,
        GasLimit.REMOVE_LIQUIDITY,
        {CacheKey.BALANCE, CacheKey.NATIVE_BALANCE, CacheKey.ALLOWANCE, CacheKey.LP_BALANCE},
        extended=True,
    ),
    OperationKind.CONTRIBUTE: _profile(
        OperationKind.CONTRIBUTE,
        GasLimit.CONTRIBUTE,
        {CacheKey.BALANCE, CacheKey.NATIVE_BALANCE, CacheKey.ALLOWANCE, CacheKey.SALE_INFO},
        extended=True,
    ),
}


def get_profile(kind: OperationKind) -> OperationProfile:
    return PROFILES[kind]


# ----------------------------------------------------------------------
# Parameters
# ----------------------------------------------------------------------
class OperationParams(ABC):
    """Caller-supplied inputs for one operation kind."""

    kind: ClassVar[OperationKind]
    abi_role: ClassVar[str]

    @property
    @abstractmethod
    def contract(self) -> str:
        """Address the write call is sent to."""

    @property
    def amount(self) -> int | None:
        return None

    @abstractmethod
    def build(self, account: str, now: float | None = None) -> CallTarget:
        """Resolve the call signature, arguments and attached value."""

    async def validate(self, account: str, cache: ReadCache) -> None:
        """Local checks run in Preparing; raise ``ValidationError`` to stop."""

        _require_positive("amount", self.amount)


@dataclass(frozen=True)
class ApproveParams(OperationParams):
    token: str
    spender: str
    value: int = 0
    unlimited: bool = False

    kind: ClassVar[OperationKind] = OperationKind.APPROVE
    abi_role: ClassVar[str] = AbiRole.ERC20

    @property
    def contract(self) -> str:
        return self.token

    @property
    def amount(self) -> int:
        return MAX_UINT256 if self.unlimited else self.value

    def build(self, account: str, now: float | None = None) -> CallTarget:
        return CallTarget(self.token, "approve", (self.spender, self.amount))


@dataclass(frozen=True)
class StakeParams(OperationParams):
    pool: str
    token: str
    value: int
    pool_id: int | None = None

    kind: ClassVar[OperationKind] = OperationKind.STAKE

    @property
    def abi_role(self) -> str:  # type: ignore[override]
        return AbiRole.STAKING if self.pool_id is None else AbiRole.MASTERCHEF

    @property
    def contract(self) -> str:
        return self.pool

    @property
    def amount(self) -> int:
        return self.value

    def build(self, account: str, now: float | None = None) -> CallTarget:
        if self.pool_id is None:
            return CallTarget(self.pool, "stake", (self.value,))
        return CallTarget(self.pool, "deposit", (self.pool_id, self.value))

    async def validate(self, account: str, cache: ReadCache) -> None:
        _require_positive("amount", self.value)

        params = await cache.pool_parameters(self.pool)
        if params.min_stake and self.value < params.min_stake:
            raise ValidationError(
                "Amount is below the pool minimum stake",
                field="amount",
                value=self.value,
                details={"min_stake": params.min_stake},
            )

        if params.max_stake:
            position = await cache.user_position(self.pool, account)
            if position.staked_amount + self.value > params.max_stake:
                raise ValidationError(
                    "Amount would exceed the pool maximum stake",
                    field="amount",
                    value=self.value,
                    details={
                        "max_stake": params.max_stake,
                        "staked_amount": position.staked_amount,
                    },
                )

        await _require_allowance(cache, self.token, account, self.pool, self.value)


@dataclass(frozen=True)
class UnstakeParams(OperationParams):
    pool: str
    value: int
    pool_id: int | None = None

    kind: ClassVar[OperationKind] = OperationKind.UNSTAKE

    @property
    def abi_role(self) -> str:  # type: ignore[override]
        return AbiRole.STAKING if self.pool_id is None else AbiRole.MASTERCHEF

    @property
    def contract(self) -> str:
        return self.pool

    @property
    def amount(self) -> int:
        return self.value

    def build(self, account: str, now: float | None = None) -> CallTarget:
        if self.pool_id is None:
            return CallTarget(self.pool, "unstake", (self.value,))
        return CallTarget(self.pool, "withdraw", (self.pool_id, self.value))

    async def validate(self, account: str, cache: ReadCache) -> None:
        _require_positive("amount", self.value)
        position = await cache.user_position(self.pool, account)
        if self.value > position.staked_amount:
            raise ValidationError(
                "Amount exceeds the staked balance",
                field="amount",
                value=self.value,
                details={"staked_amount": position.staked_amount},
            )


@dataclass(frozen=True)
class HarvestParams(OperationParams):
    pool: str
    pool_id: int | None = None

    kind: ClassVar[OperationKind] = OperationKind.HARVEST

    @property
    def abi_role(self) -> str:  # type: ignore[override]
        return AbiRole.STAKING if self.pool_id is None else AbiRole.MASTERCHEF

    @property
    def contract(self) -> str:
        return self.pool

    def build(self, account: str, now: float | None = None) -> CallTarget:
        if self.pool_id is None:
            return CallTarget(self.pool, "claim")
        return CallTarget(self.pool, "harvest", (self.pool_id,))

    async def validate(self, account: str, cache: ReadCache) -> None:
        return None


@dataclass(frozen=True)
class CompoundParams(OperationParams):
    pool: str

    kind: ClassVar[OperationKind] = OperationKind.COMPOUND
    abi_role: ClassVar[str] = AbiRole.STAKING

    @property
    def contract(self) -> str:
        return self.pool

    def build(self, account: str, now: float | None = None) -> CallTarget:
        return CallTarget(self.pool, "compound")

    async def validate(self, account: str, cache: ReadCache) -> None:
        return None


@dataclass(frozen=True)
class EmergencyWithdrawParams(OperationParams):
    """Forfeit pending rewards and pull ``value`` (the whole stake) out early."""

    pool: str
    value: int
    pool_id: int | None = None

    kind: ClassVar[OperationKind] = OperationKind.EMERGENCY_WITHDRAW

    @property
    def abi_role(self) -> str:  # type: ignore[override]
        return AbiRole.STAKING if self.pool_id is None else AbiRole.MASTERCHEF

    @property
    def contract(self) -> str:
        return self.pool

    @property
    def amount(self) -> int:
        return self.value

    def build(self, account: str, now: float | None = None) -> CallTarget:
        if self.pool_id is None:
            return CallTarget(self.pool, "emergencyWithdraw")
        return CallTarget(self.pool, "emergencyWithdraw", (self.pool_id,))

    async def validate(self, account: str, cache: ReadCache) -> None:
        _require_positive("amount", self.value)
        position = await cache.user_position(self.pool, account)
        if position.staked_amount <= 0:
            raise ValidationError("Nothing is staked in this pool", field="amount", value=0)


@dataclass(frozen=True)
class AddLiquidityParams(OperationParams):
    router: str
    token_a: str
    token_b: str
    amount_a: int
    amount_b: int
    recipient: str | None = None
    wrapped_native: str | None = None
    slippage_percent: int = DEFAULT_SLIPPAGE_PERCENT

    kind: ClassVar[OperationKind] = OperationKind.ADD_LIQUIDITY
    abi_role: ClassVar[str] = AbiRole.ROUTER

    @property
    def contract(self) -> str:
        return self.router

    @property
    def amount(self) -> int:
        return self.amount_a

    @property
    def native_side(self) -> str | None:
        return _native_side(self.wrapped_native, self.token_a, self.token_b)

    def build(self, account: str, now: float | None = None) -> CallTarget:
        to = self.recipient or account
        deadline = call_deadline(now)
        side = self.native_side

        if side is None:
            return CallTarget(
                self.router,
                "addLiquidity",
                (
                    self.token_a,
                    self.token_b,
                    self.amount_a,
                    self.amount_b,
                    apply_slippage(self.amount_a, self.slippage_percent),
                    apply_slippage(self.amount_b, self.slippage_percent),
                    to,
                    deadline,
                ),
            )

        if side == "a":
            token, token_amount, native_amount = self.token_b, self.amount_b, self.amount_a
        else:
            token, token_amount, native_amount = self.token_a, self.amount_a, self.amount_b

        return CallTarget(
            self.router,
            "addLiquidityETH",
            (
                token,
                token_amount,
                apply_slippage(token_amount, self.slippage_percent),
                apply_slippage(native_amount, self.slippage_percent),
                to,
                deadline,
            ),
            value=native_amount,
        )

    async def validate(self, account: str, cache: ReadCache) -> None:
        _require_positive("amount_a", self.amount_a)
        _require_positive("amount_b", self.amount_b)
        apply_slippage(self.amount_a, self.slippage_percent)

        side = self.native_side
        if side != "a":
            await _require_allowance(cache, self.token_a, account, self.router, self.amount_a)
        if side != "b":
            await _require_allowance(cache, self.token_b, account, self.router, self.amount_b)


@dataclass(frozen=True)
class RemoveLiquidityParams(OperationParams):
    """Burn ``lp_amount`` pair tokens; ``min_a``/``min_b`` are quoted outputs before slippage."""

    router: str
    token_a: str
    token_b: str
    lp_token: str
    lp_amount: int
    min_a: int = 0
    min_b: int = 0
    recipient: str | None = None
    wrapped_native: str | None = None
    slippage_percent: int = DEFAULT_SLIPPAGE_PERCENT

    kind: ClassVar[OperationKind] = OperationKind.REMOVE_LIQUIDITY
    abi_role: ClassVar[str] = AbiRole.ROUTER

    @property
    def contract(self) -> str:
        return self.router

    @property
    def amount(self) -> int:
        return self.lp_amount

    def build(self, account: str, now: float | None = None) -> CallTarget:
        to = self.recipient or account
        deadline = call_deadline(now)
        min_out_a = apply_slippage(self.min_a, self.slippage_percent)
        min_out_b = apply_slippage(self.min_b, self.slippage_percent)
        side = _native_side(self.wrapped_native, self.token_a, self.token_b)

        if side is None:
            return CallTarget(
                self.router,
                "removeLiquidity",
                (
                    self.token_a,
                    self.token_b,
                    self.lp_amount,
                    min_out_a,
                    min_out_b,
                    to,
                    deadline,
                ),
            )

        if side == "a":
            token, min_token, min_native = self.token_b, min_out_b, min_out_a
        else:
            token, min_token, min_native = self.token_a, min_out_a, min_out_b

        return CallTarget(
            self.router,
            "removeLiquidityETH",
            (token, self.lp_amount, min_token, min_native, to, deadline),
        )

    async def validate(self, account: str, cache: ReadCache) -> None:
        _require_positive("lp_amount", self.lp_amount)
        apply_slippage(self.lp_amount, self.slippage_percent)
        await _require_allowance(cache, self.lp_token, account, self.router, self.lp_amount)


@dataclass(frozen=True)
class ContributeParams(OperationParams):
    sale: str
    sale_id: int
    value: int
    native: bool = True
    payment_token: str | None = None

    kind: ClassVar[OperationKind] = OperationKind.CONTRIBUTE
    abi_role: ClassVar[str] = AbiRole.LAUNCHPAD

    @property
    def contract(self) -> str:
        return self.sale

    @property
    def amount(self) -> int:
        return self.value

    def build(self, account: str, now: float | None = None) -> CallTarget:
        return CallTarget(
            self.sale,
            "contribute",
            (self.sale_id, self.value),
            value=self.value if self.native else 0,
        )

    async def validate(self, account: str, cache: ReadCache) -> None:
        _require_positive("amount", self.value)
        if self.native:
            return
        if not self.payment_token:
            raise ValidationError(
                "Token-denominated sales need a payment token",
                field="payment_token",
                value=self.payment_token,
            )
        await _require_allowance(cache, self.payment_token, account, self.sale, self.value)


# ----------------------------------------------------------------------
# Helpers
# ----------------------------------------------------------------------
def _require_positive(field_name: str, value: int | None) -> None:
    if value is None or value <= 0:
        raise ValidationError(f"{field_name} must be positive", field=field_name, value=value)


async def _require_allowance(
    cache: ReadCache, token: str, owner: str, spender: str, amount: int
) -> None:
    allowance = await cache.allowance(token, owner, spender)
    if allowance < amount:
        logger.debug(
            "Allowance check failed token=%s spender=%s allowance=%s needed=%s",
            token,
            spender,
            allowance,
            amount,
        )
        raise ValidationError(
            "Allowance is insufficient; approve the token first",
            field="allowance",
            value=allowance,
            details={"token": token, "spender": spender, "required": amount},
        )


def _native_side(wrapped_native: str | None, token_a: str, token_b: str) -> str | None:
    if not wrapped_native:
        return None
    wrapped = wrapped_native.lower()
    if token_a.lower() == wrapped:
        return "a"
    if token_b.lower() == wrapped:
        return "b"
    return None
