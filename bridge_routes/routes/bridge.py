"""Manual token bridge transfers.

The token is locked (or burned, if it is a wrapped asset) on the source
chain and minted on the destination once the user submits the signed
VAA there. The user pays destination gas for the redemption, nothing is
deducted from the transferred amount.

:py:class:`ManualRoute` holds what all user-redeemed mechanisms share,
:py:class:`BridgeRoute` adds the token bridge availability rules.
"""

import logging
from decimal import Decimal

from bridge_routes.config import BridgeConfig, ChainConfig, Route, TokenConfig, TokenId
from bridge_routes.decimals import NO_INPUT, from_decimal, to_fixed_decimals
from bridge_routes.errors import UnsupportedOperation
from bridge_routes.messages import MessageProtocol, PayloadType, SignedMessage, TransferDisplayData, TransferDisplayRow, UnsignedMessage
from bridge_routes.routes.base import DISPLAY_DECIMALS, RouteOptions, RouteStrategy

logger = logging.getLogger(__name__)


def is_token_bridge_chain(chain: ChainConfig) -> bool:
    """Token bridge contract deployed, and not a Cosmos chain (those go through the gateway)."""
    return chain.contracts.token_bridge is not None and not chain.is_cosmos


def is_gateway_bound(config: BridgeConfig, message: UnsignedMessage) -> bool:
    """Token bridge message addressed to a Cosmos chain, which the gateway completes."""
    dest_chain = config.find_chain(message.to_chain)
    return message.protocol == MessageProtocol.token_bridge and dest_chain is not None and dest_chain.is_cosmos


class ManualRoute(RouteStrategy):
    """Transfers the recipient completes by redeeming on the destination chain."""

    payload_type = PayloadType.manual

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
        raw_amount = from_decimal(amount, self.token_decimals(token_config, source.name))
        gas = await self.chain_client.estimate_send_gas(
            token,
            raw_amount,
            source.name,
            sender,
            self.config.to_chain_name(dest_chain),
            recipient,
            self.protocol,
        )
        return self.to_gas_amount(gas, source.name)

    async def estimate_claim_gas(self, dest_chain: str | int, signed_message: SignedMessage | None = None) -> Decimal:
        assert signed_message is not None, "Cannot estimate claim gas without a signed message"
        dest = self.config.to_chain_name(dest_chain)
        gas = await self.chain_client.estimate_claim_gas(dest, signed_message)
        return self.to_gas_amount(gas, dest)

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
            raise UnsupportedOperation(f"{self.route.value} route is not deployed on {source.name}")

        self.validate_amounts(amount, options)

        token_config = self.config.resolve_send_token(token, source.name)
        raw_amount = from_decimal(amount, self.token_decimals(token_config, source.name))

        logger.info(
            "Sending %s %s from %s to %s via %s route",
            amount,
            token_config.symbol,
            source.name,
            dest.name,
            self.route.value,
        )
        tx = await self.chain_client.send(token, raw_amount, source.name, sender, dest.name, recipient, self.protocol)
        logger.info("Transfer submitted on %s: %s", source.name, tx)
        return tx

    async def redeem(self, dest_chain: str | int, signed_message: SignedMessage, payer: str) -> str:
        self.check_message(signed_message)
        dest = self.config.to_chain_name(dest_chain)
        logger.info("Redeeming %s on %s, payer %s", signed_message.tx_hash, dest, payer)
        tx = await self.chain_client.redeem(dest, signed_message, payer)
        logger.info("Redeem submitted on %s: %s", dest, tx)
        return tx

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
        dest_gas = self.config.gas_token_for(dest_chain)
        receive_amount = self.compute_receive_amount(amount, options)

        total_fees = NO_INPUT
        if send_gas_estimate is not None and claim_gas_estimate is not None:
            total_fees = f"{send_gas_estimate} {source_gas.name} & {claim_gas_estimate} {dest_gas.name}"

        return [
            TransferDisplayRow("Amount", f"{to_fixed_decimals(receive_amount, DISPLAY_DECIMALS)} {dest_token.name}"),
            TransferDisplayRow(
                "Total fee estimates",
                total_fees,
                rows=[
                    TransferDisplayRow(
                        "Source chain gas estimate",
                        f"~ {send_gas_estimate} {source_gas.name}" if send_gas_estimate is not None else NO_INPUT,
                        is_estimate=True,
                    ),
                    TransferDisplayRow(
                        "Destination chain gas estimate",
                        f"~ {claim_gas_estimate} {dest_gas.name}" if claim_gas_estimate is not None else NO_INPUT,
                        is_estimate=True,
                    ),
                ],
                is_estimate=True,
            ),
        ]


class BridgeRoute(ManualRoute):
    """Manual lock-and-mint token bridge transfer."""

    route = Route.bridge
    protocol = MessageProtocol.token_bridge

    def is_supported_chain(self, chain: str | int) -> bool:
        chain_config = self.config.find_chain(chain)
        return chain_config is not None and is_token_bridge_chain(chain_config)

    def accepts_message(self, message: UnsignedMessage) -> bool:
        return super().accepts_message(message) and not is_gateway_bound(self.config, message)

    def is_supported_pair(self, source_token: TokenConfig, dest_token: TokenConfig, source_chain: ChainConfig, dest_chain: ChainConfig) -> bool:
        if source_chain.name == dest_chain.name:
            return False
        if not (is_token_bridge_chain(source_chain) and is_token_bridge_chain(dest_chain)):
            return False
        return self.config.is_same_family(source_token, dest_token)

    async def is_supported_source_token(self, token: TokenConfig | None, dest_token: TokenConfig | None = None, source_chain: str | int | None = None) -> bool:
        if token is None:
            return False
        if source_chain is not None and not self.is_supported_chain(source_chain):
            return False
        if dest_token is not None and not self.config.is_same_family(token, dest_token):
            return False
        return True

    async def is_supported_dest_token(self, token: TokenConfig | None, source_token: TokenConfig | None = None, dest_chain: str | int | None = None) -> bool:
        if token is None:
            return False
        if dest_chain is not None:
            if not self.is_supported_chain(dest_chain):
                return False
            # Gas tokens can only be received unwrapped on their own chain
            if token.is_native and token.native_chain != self.config.to_chain_name(dest_chain):
                return False
        if source_token is not None and not self.config.is_same_family(token, source_token):
            return False
        return True
