"""USDC burn-and-mint transfers over Circle CCTP.

USDC is burned on the source chain and minted natively on the
destination, so the recipient gets native USDC instead of a wrapped
token. Minting needs two signatures: the guardian VAA and Circle's
attestation of the burn, see :py:mod:`bridge_routes.cctp.attestation`.

Both variants only move USDC between its native deployments on chains
with a CCTP domain.
"""

import logging

from bridge_routes.config import ChainConfig, Route, TokenConfig
from bridge_routes.errors import UnsupportedOperation
from bridge_routes.messages import MessageProtocol, SignedMessage, UnsignedMessage
from bridge_routes.routes.base import RouteStrategy
from bridge_routes.routes.bridge import ManualRoute
from bridge_routes.routes.relay import AutomaticRoute

logger = logging.getLogger(__name__)


def is_cctp_pair(route: RouteStrategy, source_token: TokenConfig, dest_token: TokenConfig, source_chain: ChainConfig, dest_chain: ChainConfig) -> bool:
    """Native USDC on both ends, between two different CCTP chains."""
    if source_chain.name == dest_chain.name:
        return False
    if not (route.is_supported_chain(source_chain.name) and route.is_supported_chain(dest_chain.name)):
        return False
    config = route.config
    return config.is_cctp_token(source_token, source_chain.name) and config.is_cctp_token(dest_token, dest_chain.name)


def is_cctp_token_on(route: RouteStrategy, token: TokenConfig, chain: str | int | None) -> bool:
    if token.symbol != "USDC":
        return False
    if chain is None:
        return True
    return route.is_supported_chain(chain) and route.config.is_cctp_token(token, chain)


async def fetch_cctp_signed_message(route: RouteStrategy, message: UnsignedMessage) -> SignedMessage:
    """Wait until both the VAA and Circle's attestation of the burn are available.

    Circle attests after source chain finality, which can lag the
    guardians, so both lookups share one bounded poll.

    :raise AttestationNotFound:
        Either signature is missing after the allowed number of attempts.

    :raise AttestationTimeout:
        Either signature is missing at the deadline.
    """
    route.check_message(message)
    source = route.context.circle_attestation_source
    assert source is not None, f"{route.route.value} route needs a Circle attestation source"

    signed = await route.context.attestation_fetcher.fetch(message, circle_source=source)
    logger.info("CCTP attestations ready for %s", message.tx_hash)
    return signed


class CCTPManualRoute(ManualRoute):
    """USDC burn-and-mint, the recipient mints on the destination."""

    route = Route.cctp_manual
    protocol = MessageProtocol.cctp

    def is_supported_chain(self, chain: str | int) -> bool:
        chain_config = self.config.find_chain(chain)
        if chain_config is None:
            return False
        return chain_config.contracts.cctp_token_messenger is not None and chain_config.cctp_domain is not None

    def is_supported_pair(self, source_token: TokenConfig, dest_token: TokenConfig, source_chain: ChainConfig, dest_chain: ChainConfig) -> bool:
        return is_cctp_pair(self, source_token, dest_token, source_chain, dest_chain)

    async def is_supported_source_token(self, token: TokenConfig | None, dest_token: TokenConfig | None = None, source_chain: str | int | None = None) -> bool:
        return token is not None and is_cctp_token_on(self, token, source_chain)

    async def is_supported_dest_token(self, token: TokenConfig | None, source_token: TokenConfig | None = None, dest_chain: str | int | None = None) -> bool:
        return token is not None and is_cctp_token_on(self, token, dest_chain)

    async def get_signed_message(self, message: UnsignedMessage) -> SignedMessage:
        return await fetch_cctp_signed_message(self, message)

    async def redeem(self, dest_chain: str | int, signed_message: SignedMessage, payer: str) -> str:
        if signed_message.circle_attestation is None:
            raise UnsupportedOperation(f"Cannot mint {signed_message.tx_hash} without a Circle attestation")
        return await super().redeem(dest_chain, signed_message, payer)


class CCTPRelayRoute(AutomaticRoute):
    """USDC burn-and-mint completed by the CCTP relayer, with optional gas drop-off."""

    route = Route.cctp_relay
    protocol = MessageProtocol.cctp

    def is_supported_chain(self, chain: str | int) -> bool:
        chain_config = self.config.find_chain(chain)
        if chain_config is None:
            return False
        return chain_config.contracts.cctp_relayer is not None and chain_config.cctp_domain is not None

    def is_supported_pair(self, source_token: TokenConfig, dest_token: TokenConfig, source_chain: ChainConfig, dest_chain: ChainConfig) -> bool:
        return is_cctp_pair(self, source_token, dest_token, source_chain, dest_chain)

    def _is_supported_token(self, token: TokenConfig, other: TokenConfig | None, chain: str | int | None, is_source: bool) -> bool:
        if other is not None and other.symbol != "USDC":
            return False
        return is_cctp_token_on(self, token, chain)

    async def get_signed_message(self, message: UnsignedMessage) -> SignedMessage:
        return await fetch_cctp_signed_message(self, message)
