"""Transfers to and from Cosmos chains through the IBC gateway.

Tokens bridged to a Cosmos chain go to the gateway on the bridge's own
Cosmos chain, which forwards them over IBC. The reverse direction is an
IBC transfer to the gateway, which emits the bridge message. Both
directions complete without user action and without a fee deducted from
the amount.
"""

import logging
from decimal import Decimal

from bridge_routes.config import ChainConfig, Route, TokenConfig, TokenId
from bridge_routes.decimals import NO_INPUT, from_decimal, to_fixed_decimals
from bridge_routes.errors import UnsupportedOperation
from bridge_routes.messages import MessageProtocol, SignedMessage, TransferDisplayData, TransferDisplayRow, UnsignedMessage
from bridge_routes.routes.base import DISPLAY_DECIMALS, RouteOptions, RouteStrategy
from bridge_routes.routes.bridge import is_gateway_bound, is_token_bridge_chain

logger = logging.getLogger(__name__)


def is_gateway_chain(chain: ChainConfig) -> bool:
    """Cosmos chain reachable through the IBC gateway."""
    return chain.is_cosmos and chain.contracts.ibc_gateway is not None


class CosmosGatewayRoute(RouteStrategy):
    """Automatic transfer where at least one side is a Cosmos chain."""

    route = Route.cosmos_gateway
    protocol = MessageProtocol.ibc

    AUTOMATIC_DEPOSIT = True

    def is_supported_chain(self, chain: str | int) -> bool:
        chain_config = self.config.find_chain(chain)
        if chain_config is None:
            return False
        return is_gateway_chain(chain_config) or is_token_bridge_chain(chain_config)

    def is_supported_pair(self, source_token: TokenConfig, dest_token: TokenConfig, source_chain: ChainConfig, dest_chain: ChainConfig) -> bool:
        if source_chain.name == dest_chain.name:
            return False
        if not (is_gateway_chain(source_chain) or is_gateway_chain(dest_chain)):
            return False
        if not (self.is_supported_chain(source_chain.name) and self.is_supported_chain(dest_chain.name)):
            return False
        return self.config.is_same_family(source_token, dest_token)

    async def is_supported_source_token(self, token: TokenConfig | None, dest_token: TokenConfig | None = None, source_chain: str | int | None = None) -> bool:
        return token is not None and self._is_supported_token(token, dest_token, source_chain)

    async def is_supported_dest_token(self, token: TokenConfig | None, source_token: TokenConfig | None = None, dest_chain: str | int | None = None) -> bool:
        return token is not None and self._is_supported_token(token, source_token, dest_chain)

    def _is_supported_token(self, token: TokenConfig, other: TokenConfig | None, chain: str | int | None) -> bool:
        if chain is not None and not self.is_supported_chain(chain):
            return False
        if other is not None and not self.config.is_same_family(token, other):
            return False
        return True

    def protocol_for(self, source_chain: str | int) -> MessageProtocol:
        """Cosmos chains send over IBC, the rest through the token bridge."""
        if self.config.get_chain(source_chain).is_cosmos:
            return MessageProtocol.ibc
        return MessageProtocol.token_bridge

    def accepts_message(self, message: UnsignedMessage) -> bool:
        if message.protocol == MessageProtocol.ibc:
            return True
        return is_gateway_bound(self.config, message)

    async def estimate_send_gas(
        self,
        token: TokenId | str,
        amount: Decimal | str,
        source_chain: str | int,
        sender: str,
        dest_chain: str | int,
        recipient: str,
        options: RouteOptions = None,
    ) -> Decimal:
        source = self.config.get_chain(source_chain)
        token_config = self.config.resolve_send_token(token, source.name)
        gas = await self.chain_client.estimate_send_gas(
            token,
            from_decimal(amount, self.token_decimals(token_config, source.name)),
            source.name,
            sender,
            self.config.to_chain_name(dest_chain),
            recipient,
            self.protocol_for(source.name),
        )
        return self.to_gas_amount(gas, source.name)

    async def estimate_claim_gas(self, dest_chain: str | int, signed_message: SignedMessage | None = None) -> Decimal:
        raise UnsupportedOperation("Gateway transfers are completed by the gateway, there is no claim")

    async def send(
        self,
        token: TokenId | str,
        amount: Decimal | str,
        source_chain: str | int,
        sender: str,
        dest_chain: str | int,
        recipient: str,
        options: RouteOptions = None,
    ) -> str:
        source = self.config.get_chain(source_chain)
        dest = self.config.get_chain(dest_chain)
        if not self.is_supported_chain(source.name):
            raise UnsupportedOperation(f"Gateway transfers are not supported from {source.name}")

        self.validate_amounts(amount, options)

        token_config = self.config.resolve_send_token(token, source.name)
        raw_amount = from_decimal(amount, self.token_decimals(token_config, source.name))
        protocol = self.protocol_for(source.name)

        logger.info("Sending %s %s from %s to %s through the gateway over %s", amount, token_config.symbol, source.name, dest.name, protocol.value)
        tx = await self.chain_client.send(token, raw_amount, source.name, sender, dest.name, recipient, protocol)
        logger.info("Gateway transfer submitted on %s: %s", source.name, tx)
        return tx

    async def redeem(self, dest_chain: str | int, signed_message: SignedMessage, payer: str) -> str:
        raise UnsupportedOperation("Gateway transfers are redeemed by the gateway relayer, manual redeem is not offered")

    async def get_preview(
        self,
        token: TokenConfig,
        dest_token: TokenConfig,
        amount: Decimal | str | float,
        source_chain: str | int,
        dest_chain: str | int,
        send_gas_estimate: Decimal | None,
        claim_gas_estimate: Decimal | None,
        options: RouteOptions = None,
    ) -> TransferDisplayData:
        source_gas = self.config.gas_token_for(source_chain)
        gas_text = f"~ {send_gas_estimate} {source_gas.name}" if send_gas_estimate is not None else NO_INPUT
        return [
            TransferDisplayRow("Amount", f"{to_fixed_decimals(amount, DISPLAY_DECIMALS)} {dest_token.name}"),
            TransferDisplayRow(
                "Total fee estimates",
                gas_text,
                rows=[TransferDisplayRow("Source chain gas estimate", gas_text, is_estimate=True)],
                is_estimate=True,
            ),
        ]
