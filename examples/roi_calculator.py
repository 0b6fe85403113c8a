"""Example: Project staking rewards from live pool parameters."""

from __future__ import annotations

import asyncio
import logging
import os

from dotenv import load_dotenv

from stake_ops import ClientConfig, CompoundFrequency, StakingClient

load_dotenv()

logging.basicConfig(
    level=os.getenv("LOGLEVEL", "INFO"),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

AMOUNT = os.getenv("CALC_AMOUNT", "1000")


async def main() -> None:
    client = StakingClient(ClientConfig.from_env())
    await client.connect()
    try:
        state = await client.calculator()
    finally:
        await client.disconnect()

    state.set_amount(AMOUNT)
    print(f"Pool APR: {state.apr_percent:.2f}%")

    for preset in ("30D", "1Y", "5Y"):
        state.set_duration(preset)
        for frequency in CompoundFrequency:
            state.set_compound_frequency(frequency)
            result = state.projection()
            usd = state.usd_value(result.compound_reward)
            usd_text = f" (~${usd:.2f})" if usd is not None else ""
            print(
                f"{preset:>3} {frequency.value:<7} simple={result.simple_reward:.4f} "
                f"compound={result.compound_reward:.4f}{usd_text} "
                f"extra={result.difference:.4f}"
            )


if __name__ == "__main__":
    asyncio.run(main())
