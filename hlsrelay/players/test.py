import asyncio
import json
from typing import Callable, Coroutine, List, Any

import aiohttp

from hlsrelay.utils.errors import RelayError


async def run_player_test(player_function: Callable[..., Coroutine[Any, Any, Any]], test_ids: List[str]):
    async with aiohttp.ClientSession() as session:
        for test_id in test_ids:
            print("-" * 50)
            print(f"Testing Player: {player_function.__name__}")
            print(f"Testing ID: {test_id}")

            try:
                source = await player_function(session, test_id)
                print("\n--- SUCCESS ---")
                print(json.dumps(source.to_dict(), indent=2))
            except (RelayError, aiohttp.ClientError, asyncio.TimeoutError) as e:
                print("\n--- FAILURE ---")
                print(f"{type(e).__name__}: {e}")

            print("-" * 50)
            print()


def run_tests(player_function: Callable, test_ids: List[str]):
    """Manual smoke test against live hosts: python -m hlsrelay.players.<name>"""
    asyncio.run(run_player_test(player_function, test_ids))
