"""Example: Approve, stake and harvest against a staking pool."""

from __future__ import annotations

import asyncio
import logging
import os

from dotenv import load_dotenv

from stake_ops import ClientConfig, OperationState, StakingClient, to_base_units

load_dotenv()

logging.basicConfig(
    level=os.getenv("LOGLEVEL", "INFO"),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

STAKE_AMOUNT = "25"


def print_transition(operation, previous: OperationState, new: OperationState) -> None:
    print(f"  [{operation.kind.value}] {previous.value} -> {new.value}")


async def main() -> None:
    """Stake ``STAKE_AMOUNT`` tokens, approving first when the allowance is short."""

    config = ClientConfig.from_env()
    client = StakingClient(config)
    client.subscribe(print_transition)

    await client.connect()
    try:
        amount = to_base_units(STAKE_AMOUNT)
        print(f"Connected as {client.address}")

        if await client.needs_approval(amount):
            print("Allowance too low, approving stake token")
            approval = await client.approve(amount)
            print(approval.message)
            if not approval.success:
                return

        stake = await client.stake(amount)
        print(stake.message)
        if not stake.success:
            if stake.error is not None:
                print(f"Error kind: {stake.error.kind.value}")
            return

        harvest = await client.harvest()
        print(harvest.message)
    finally:
        await client.disconnect()


if __name__ == "__main__":
    asyncio.run(main())
