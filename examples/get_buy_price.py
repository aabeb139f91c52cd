#!/usr/bin/env python3
"""Print what one bitcoin costs right now."""

import asyncio
import sys

from colorama import Fore, Style

from coinbase_client.client import PublicClient
from coinbase_client.config import load_config
from coinbase_client.errors import CoinbaseError
from coinbase_client.logger import setup_logging


async def main(pair: str) -> int:
    cfg = load_config()
    setup_logging(cfg.logs_dir)
    async with PublicClient(config=cfg) as client:
        try:
            price = await client.buy_price(pair)
        except CoinbaseError as exc:
            print(f"{Fore.RED}Request failed: {exc}{Style.RESET_ALL}", file=sys.stderr)
            return 1
    base = pair.split("-")[0]
    print(f"To buy 1 {base}, you need {Fore.GREEN}{price.amount}{Style.RESET_ALL} {price.currency}.")
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main(sys.argv[1] if len(sys.argv) > 1 else "BTC-USD")))
