"""Wallet balances shown next to a transfer form.

- :py:func:`receiver_native_balance`: whether the recipient can pay for
  gas on the destination chain
- :py:func:`token_balances`: balances for a token list, one failing
  lookup does not hide the others
"""

import asyncio
import logging
from decimal import Decimal

from bridge_routes.chain import ChainClient
from bridge_routes.config import BridgeConfig, TokenConfig
from bridge_routes.decimals import to_decimal

logger = logging.getLogger(__name__)

#: Fractional digits kept for displayed balances
BALANCE_DECIMALS = 6


async def receiver_native_balance(config: BridgeConfig, chain_client: ChainClient, wallet: str, dest_chain: str | int) -> Decimal:
    """Gas token balance of the recipient on the destination chain.

    :return:
        Human readable balance, truncated to :py:data:`BALANCE_DECIMALS`.
    """
    chain_name = config.to_chain_name(dest_chain)
    gas_token = config.gas_token_for(chain_name)
    raw = await chain_client.get_native_balance(wallet, chain_name)
    decimals = config.get_token_decimals(gas_token, gas_token.native_chain)
    return to_decimal(raw, decimals, places=BALANCE_DECIMALS)


async def _token_balance(config: BridgeConfig, chain_client: ChainClient, wallet: str, token: TokenConfig, chain_name: str) -> Decimal | None:
    if token.token_id is None:
        # Gas tokens have no token id and exist unwrapped on their own chain only
        if config.get_chain(chain_name).gas_token != token.key:
            return None
        raw = await chain_client.get_native_balance(wallet, chain_name)
    else:
        raw = await chain_client.get_token_balance(wallet, token.token_id, chain_name)
        if raw is None:
            return None
    return to_decimal(raw, config.get_token_decimals(token, chain_name), places=BALANCE_DECIMALS)


async def token_balances(
    config: BridgeConfig,
    chain_client: ChainClient,
    wallet: str,
    tokens: list[TokenConfig],
    chain: str | int,
) -> dict[str, Decimal | None]:
    """Balances of ``wallet`` for every token in ``tokens`` on ``chain``.

    Lookups run concurrently.

    :return:
        Token key to balance. ``None`` when the token has no representation
        on ``chain`` or its lookup failed.
    """
    chain_name = config.to_chain_name(chain)
    results = await asyncio.gather(
        *(_token_balance(config, chain_client, wallet, token, chain_name) for token in tokens),
        return_exceptions=True,
    )

    balances = {}
    for token, result in zip(tokens, results):
        if isinstance(result, Exception):
            logger.warning("Failed to fetch %s balance of %s on %s: %s", token.key, wallet, chain_name, result)
            result = None
        balances[token.key] = result
    return balances
