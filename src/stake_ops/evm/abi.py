"""Minimal ABI fragments for the contracts the coordinator writes to and reads from."""

from typing import Any


def _fn(
    name: str,
    inputs: list[tuple[str, str]],
    outputs: list[tuple[str, str]] | None = None,
    *,
    mutability: str = "nonpayable",
) -> dict[str, Any]:
    return {
        "type": "function",
        "name": name,
        "inputs": [{"name": arg, "type": typ} for arg, typ in inputs],
        "outputs": [{"name": arg, "type": typ} for arg, typ in (outputs or [])],
        "stateMutability": mutability,
    }


ERC20_abi = [
    _fn("approve", [("spender", "address"), ("amount", "uint256")], [("", "bool")]),
    _fn(
        "allowance",
        [("owner", "address"), ("spender", "address")],
        [("", "uint256")],
        mutability="view",
    ),
    _fn("balanceOf", [("account", "address")], [("", "uint256")], mutability="view"),
    _fn("decimals", [], [("", "uint8")], mutability="view"),
]

Staking_abi = [
    _fn("stake", [("_amount", "uint256")]),
    _fn("unstake", [("_amount", "uint256")]),
    _fn("claim", []),
    _fn("compound", []),
    _fn("emergencyWithdraw", []),
    _fn("pendingReward", [("_user", "address")], [("", "uint256")], mutability="view"),
    _fn(
        "getStakeDetails",
        [("_user", "address")],
        [
            ("stakedAmount", "uint256"),
            ("pendingRewards", "uint256"),
            ("lockEndTime", "uint256"),
            ("isLocked", "bool"),
            ("penaltyIfWithdrawNow", "uint256"),
        ],
        mutability="view",
    ),
    _fn("totalStaked", [], [("", "uint256")], mutability="view"),
    _fn("rewardRate", [], [("", "uint256")], mutability="view"),
    _fn("minStake", [], [("", "uint256")], mutability="view"),
    _fn("maxStake", [], [("", "uint256")], mutability="view"),
    _fn("lockPeriod", [], [("", "uint256")], mutability="view"),
    _fn("earlyWithdrawPenalty", [], [("", "uint256")], mutability="view"),
    _fn("compoundBonus", [], [("", "uint256")], mutability="view"),
]

MasterChef_abi = [
    _fn("deposit", [("_pid", "uint256"), ("_amount", "uint256")]),
    _fn("withdraw", [("_pid", "uint256"), ("_amount", "uint256")]),
    _fn("harvest", [("_pid", "uint256")]),
    _fn("emergencyWithdraw", [("_pid", "uint256")]),
    _fn(
        "pendingReward",
        [("_pid", "uint256"), ("_user", "address")],
        [("", "uint256")],
        mutability="view",
    ),
]

Router_abi = [
    _fn(
        "addLiquidity",
        [
            ("tokenA", "address"),
            ("tokenB", "address"),
            ("amountADesired", "uint256"),
            ("amountBDesired", "uint256"),
            ("amountAMin", "uint256"),
            ("amountBMin", "uint256"),
            ("to", "address"),
            ("deadline", "uint256"),
        ],
        [("amountA", "uint256"), ("amountB", "uint256"), ("liquidity", "uint256")],
    ),
    _fn(
        "addLiquidityETH",
        [
            ("token", "address"),
            ("amountTokenDesired", "uint256"),
            ("amountTokenMin", "uint256"),
            ("amountETHMin", "uint256"),
            ("to", "address"),
            ("deadline", "uint256"),
        ],
        [("amountToken", "uint256"), ("amountETH", "uint256"), ("liquidity", "uint256")],
        mutability="payable",
    ),
    _fn(
        "removeLiquidity",
        [
            ("tokenA", "address"),
            ("tokenB", "address"),
            ("liquidity", "uint256"),
            ("amountAMin", "uint256"),
            ("amountBMin", "uint256"),
            ("to", "address"),
            ("deadline", "uint256"),
        ],
        [("amountA", "uint256"), ("amountB", "uint256")],
    ),
    _fn(
        "removeLiquidityETH",
        [
            ("token", "address"),
            ("liquidity", "uint256"),
            ("amountTokenMin", "uint256"),
            ("amountETHMin", "uint256"),
            ("to", "address"),
            ("deadline", "uint256"),
        ],
        [("amountToken", "uint256"), ("amountETH", "uint256")],
    ),
]

Launchpad_abi = [
    _fn(
        "contribute",
        [("_idoId", "uint256"), ("_amount", "uint256")],
        mutability="payable",
    ),
]
