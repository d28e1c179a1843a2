"""Rock, Paper, Scissors between two participant backends.

Requires a running ``reach rpc-server`` hosting the tutorial program. Settings
come from ``REACH_RPC_*`` environment variables.
"""

from __future__ import annotations

import asyncio
import random
from typing import Any

from loguru import logger

from reach_rpc import Reach
from reach_rpc.logging_utils import configure_logging

HAND = ["Rock", "Paper", "Scissors"]
OUTCOME = ["Bob wins", "Draw", "Alice wins"]


class Player:
    def __init__(self, name: str, reach: Reach) -> None:
        self.name = name
        self._reach = reach

    def get_hand(self) -> int:
        hand = random.randrange(3)
        logger.info("{} played {}", self.name, HAND[hand])
        return hand

    def inform_timeout(self) -> None:
        logger.info("{} observed a timeout", self.name)

    async def see_outcome(self, outcome: Any) -> None:
        index = await self._reach.rpc("/stdlib/bigNumberToNumber", outcome)
        logger.info("{} saw outcome {}", self.name, OUTCOME[index])

    def callbacks(self) -> dict[str, Any]:
        return {
            "stdlib.hasRandom": True,
            "getHand": self.get_hand,
            "seeOutcome": self.see_outcome,
            "informTimeout": self.inform_timeout,
        }


async def main() -> None:
    configure_logging()
    async with Reach.connect() as reach:
        alice_acc = await reach.new_test_account(balance=10)
        bob_acc = await reach.new_test_account(balance=10)

        async def balance(account: Any) -> Any:
            return await reach.format_currency(await reach.balance_of(account))

        before_alice, before_bob = await balance(alice_acc), await balance(bob_acc)
        ctc_alice = await reach.deploy(alice_acc)
        alice = Player("Alice", reach)
        bob = Player("Bob", reach)

        async def run_bob() -> None:
            async def accept_wager(amount: Any) -> None:
                logger.info("Bob accepts the wager of {}", await reach.format_currency(amount))

            ctc_bob = await reach.attach(bob_acc, await reach.get_contract_info(ctc_alice))
            await reach.rpc_interactive("/backend/Bob", [ctc_bob], {**bob.callbacks(), "acceptWager": accept_wager})
            await reach.forget_contract(ctc_bob)

        await asyncio.gather(
            reach.rpc_interactive(
                "/backend/Alice",
                [ctc_alice],
                {**alice.callbacks(), "wager": await reach.parse_currency(5), "deadline": 10},
            ),
            run_bob(),
        )

        after_alice, after_bob = await balance(alice_acc), await balance(bob_acc)
        logger.info("Alice went from {} to {}", before_alice, after_alice)
        logger.info("Bob went from {} to {}", before_bob, after_bob)

        await asyncio.gather(reach.forget_accounts([alice_acc, bob_acc]), reach.forget_contract(ctc_alice))


if __name__ == "__main__":
    asyncio.run(main())
