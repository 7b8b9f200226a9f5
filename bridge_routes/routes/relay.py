"""Automatically relayed token bridge transfers.

The user sends through the relayer contract on the source chain. An
off-chain relayer picks up the signed VAA and redeems it on the
destination, taking its fee from the transferred amount. Part of the
amount can be swapped to destination gas ("native gas drop-off") so the
recipient can transact right away.

Amounts:

- ``receive = send - to_native_token - relayer_fee``
- ``min_send = (relayer_fee + to_native_token) * 1.05``

:py:class:`AutomaticRoute` holds the fee logic shared with the CCTP
relay route, :py:class:`RelayRoute` adds the token bridge rules.
"""

import abc
import logging
from decimal import Decimal

from bridge_routes.config import ChainConfig, Route, TokenConfig, TokenId
from bridge_routes.decimals import MAX_DECIMALS, NO_INPUT, as_decimal, denormalize_amount, from_decimal, to_decimal, to_fixed_decimals
from bridge_routes.errors import ArithmeticInvalid, UnsupportedOperation
from bridge_routes.messages import MessageProtocol, PayloadType, SignedMessage, TransferDisplayData, TransferDisplayRow, UnsignedMessage
from bridge_routes.routes.base import DISPLAY_DECIMALS, RelayOptions, RouteOptions, RouteStrategy
from bridge_routes.routes.bridge import is_gateway_bound, is_token_bridge_chain

logger = logging.getLogger(__name__)


class AutomaticRoute(RouteStrategy):
    """Transfers redeemed by an off-chain relayer for a fee."""

    payload_type = PayloadType.automatic

    AUTOMATIC_DEPOSIT = True
    NATIVE_GAS_DROPOFF_SUPPORTED = True

    def has_relayer(self, chain: ChainConfig) -> bool:
        """Relayer contract of this mechanism deployed on ``chain``."""
        return self.is_supported_chain(chain.name)

    async def is_accepted_token(self, token: TokenConfig) -> bool:
        """Whether the relayer contract takes ``token``."""
        return await self.chain_client.is_accepted_token(self.config.get_wrapped_token_id(token), self.protocol)

    async def check_route_available(self, source_token: TokenConfig, dest_token: TokenConfig, amount: Decimal, source_chain: ChainConfig, dest_chain: ChainConfig) -> bool:
        if not self.is_supported_pair(source_token, dest_token, source_chain, dest_chain):
            return False

        if not (self.has_relayer(source_chain) and self.has_relayer(dest_chain)):
            return False

        if not await self.is_accepted_token(source_token):
            return False

        try:
            relayer_fee = await self.get_relayer_fee(source_chain.name, dest_chain.name, source_token.key)
        except Exception as e:
            logger.info("Could not fetch %s relayer fee %s -> %s for %s: %s", self.route.value, source_chain.name, dest_chain.name, source_token.key, e)
            return False

        decimals = self.token_decimals(source_token, source_chain.name)
        min_amount = self.get_min_send_amount(RelayOptions(relayer_fee=to_decimal(relayer_fee, decimals)))
        return amount >= min_amount

    async def is_supported_source_token(self, token: TokenConfig | None, dest_token: TokenConfig | None = None, source_chain: str | int | None = None) -> bool:
        if token is None:
            return False
        if not self._is_supported_token(token, dest_token, source_chain, is_source=True):
            return False
        return await self.is_accepted_token(token)

    async def is_supported_dest_token(self, token: TokenConfig | None, source_token: TokenConfig | None = None, dest_chain: str | int | None = None) -> bool:
        if token is None:
            return False
        if not self._is_supported_token(token, source_token, dest_chain, is_source=False):
            return False
        return await self.is_accepted_token(token)

    @abc.abstractmethod
    def _is_supported_token(self, token: TokenConfig, other: TokenConfig | None, chain: str | int | None, is_source: bool) -> bool:
        """Static half of the token support checks."""

    def compute_receive_amount(self, send_amount: Decimal | int | float | str | None, options: RouteOptions = None) -> Decimal:
        """``send - to_native_token - relayer_fee``.

        The result is negative when the fees exceed the amount. It is not
        clamped, see :py:meth:`validate_amounts`.
        """
        if send_amount is None:
            return Decimal(0)
        options = options or RelayOptions()
        return as_decimal(send_amount) - options.to_native_token - as_decimal(options.relayer_fee)

    def compute_send_amount(self, receive_amount: Decimal | int | float | str | None, options: RouteOptions = None) -> Decimal:
        """``receive + to_native_token``."""
        if receive_amount is None:
            return Decimal(0)
        options = options or RelayOptions()
        return as_decimal(receive_amount) + options.to_native_token

    def validate_amounts(self, send_amount: Decimal | int | float | str, options: RouteOptions = None) -> Decimal:
        """Check a relayed send before submission.

        :raise ArithmeticInvalid:
            The relayer fee is not quoted, the amount does not reach the
            minimum send amount, or the receive amount would be negative.
        """
        if options is None or options.relayer_fee is None:
            raise ArithmeticInvalid(f"Relayer fee must be quoted before sending via {self.route.value} route")
        receive_amount = super().validate_amounts(send_amount, options)
        min_amount = self.get_min_send_amount(options)
        if as_decimal(send_amount) < min_amount:
            raise ArithmeticInvalid(f"Amount {send_amount} is below the minimum {min_amount} of {self.route.value} route")
        return receive_amount

    async def get_relayer_fee(self, source_chain: str | int, dest_chain: str | int, token: str) -> int:
        """Current relayer fee for sending ``token``.

        :param token:
            Token key.

        :return:
            Raw fee in units of the token on the source chain.
        """
        token_config = self.config.get_token(token)
        return await self.chain_client.get_relayer_fee(
            self.config.to_chain_name(source_chain),
            self.config.to_chain_name(dest_chain),
            self.config.get_wrapped_token_id(token_config),
            self.protocol,
        )

    async def native_token_amount(self, dest_chain: str | int, token: TokenId, amount: int, wallet: str) -> int:
        """Raw destination gas received for swapping raw ``amount`` of ``token``."""
        return await self.chain_client.calculate_native_token_amount(self.config.to_chain_name(dest_chain), token, amount, wallet)

    async def max_swap_amount(self, dest_chain: str | int, token: TokenId, wallet: str) -> int:
        """Largest raw amount of ``token`` the relayer swaps to gas for ``wallet``."""
        return await self.chain_client.calculate_max_swap_amount(self.config.to_chain_name(dest_chain), token, wallet)

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
        options = options or RelayOptions()
        source = self.config.get_chain(source_chain)
        token_config = self.config.resolve_send_token(token, source.name)
        decimals = self.token_decimals(token_config, source.name)
        gas = await self.chain_client.estimate_send_with_relay_gas(
            token,
            from_decimal(amount, decimals),
            source.name,
            sender,
            self.config.to_chain_name(dest_chain),
            recipient,
            from_decimal(options.to_native_token, decimals),
            self.protocol,
        )
        return self.to_gas_amount(gas, source.name)

    async def estimate_claim_gas(self, dest_chain: str | int, signed_message: SignedMessage | None = None) -> Decimal:
        raise UnsupportedOperation(f"Manual claim is not offered for {self.route.value} transfers")

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
            raise UnsupportedOperation(f"Send with relay is not supported on {source.name}")

        self.validate_amounts(amount, options)

        token_config = self.config.resolve_send_token(token, source.name)
        decimals = self.token_decimals(token_config, source.name)
        raw_amount = from_decimal(amount, decimals)
        raw_to_native = from_decimal(options.to_native_token, decimals)

        logger.info(
            "Sending %s %s from %s to %s via %s route, relayer fee %s, to native %s",
            amount,
            token_config.symbol,
            source.name,
            dest.name,
            self.route.value,
            options.relayer_fee,
            options.to_native_token,
        )
        tx = await self.chain_client.send_with_relay(
            token,
            raw_amount,
            source.name,
            sender,
            dest.name,
            recipient,
            raw_to_native,
            self.protocol,
        )
        logger.info("Relayed transfer submitted on %s: %s", source.name, tx)
        return tx

    async def redeem(self, dest_chain: str | int, signed_message: SignedMessage, payer: str) -> str:
        raise UnsupportedOperation(f"{self.route.value} transfers are redeemed by the relayer, manual redeem is not offered")

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
        options = options or RelayOptions()
        source_gas = self.config.gas_token_for(source_chain)
        dest_gas = self.config.gas_token_for(dest_chain)
        relayer_fee = options.relayer_fee
        is_native = token.key == source_gas.key

        # Gas and relayer fee are in the same unit when sending the gas token
        total_fees = NO_INPUT
        if send_gas_estimate is not None and relayer_fee is not None:
            fee = to_fixed_decimals(relayer_fee + (send_gas_estimate if is_native else 0), DISPLAY_DECIMALS)
            if is_native:
                total_fees = f"{fee} {token.name}"
            else:
                total_fees = f"{send_gas_estimate} {source_gas.name} & {fee} {token.name}"

        receive_amount = self.compute_receive_amount(amount, options)

        rows = [TransferDisplayRow("Amount", f"{to_fixed_decimals(receive_amount, DISPLAY_DECIMALS)} {dest_token.name}")]
        if options.receive_native_amount > 0:
            rows.append(
                TransferDisplayRow(
                    "Native gas on destination",
                    f"{options.receive_native_amount} {dest_gas.name}",
                    is_estimate=True,
                )
            )
        rows.append(
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
                        "Relayer fee",
                        f"{relayer_fee} {token.name}" if relayer_fee is not None else NO_INPUT,
                    ),
                ],
                is_estimate=True,
            )
        )
        return rows

    async def get_transfer_source_info(self, message: UnsignedMessage) -> TransferDisplayData:
        token = self.config.get_token(message.token_key)
        dest_gas = self.config.gas_token_for(message.to_chain)
        return [
            TransferDisplayRow("Amount", f"{self.format_canonical(message.amount)} {token.name}"),
            self._gas_fee_row(message.from_chain, message.gas_fee),
            TransferDisplayRow("Relayer fee", f"{self.format_canonical(message.relayer_fee or 0)} {token.name}"),
            TransferDisplayRow(
                "Convert to native gas token",
                f"≈ {self.format_canonical(message.to_native_token_amount or 0)} {token.name} → {dest_gas.name}",
                is_estimate=True,
            ),
        ]

    async def get_transfer_dest_info(self, message: UnsignedMessage, receive_tx: str | None = None) -> TransferDisplayData:
        """Destination summary of a relayed transfer.

        The gas drop-off is read from the relayer's swap event when the
        redeem transaction is known and the event is found. Otherwise it is
        estimated from the requested amount at the current rate, and the row
        is flagged with ``is_estimate``.
        """
        token = self.config.get_token(message.token_key)
        dest_gas = self.config.gas_token_for(message.to_chain)

        native_gas_amount, is_estimate = await self.fetch_native_gas_received(message, receive_tx)

        receive_amount = message.amount - (message.relayer_fee or 0) - (message.to_native_token_amount or 0)
        if receive_amount < 0:
            raise ArithmeticInvalid(f"Fees exceed the amount of relayed transfer {message.tx_hash}")

        if native_gas_amount is None:
            native_gas_text = NO_INPUT
        elif is_estimate:
            native_gas_text = f"≈ {to_fixed_decimals(native_gas_amount, MAX_DECIMALS)} {dest_gas.name}"
        else:
            native_gas_text = f"{to_fixed_decimals(native_gas_amount, MAX_DECIMALS)} {dest_gas.name}"

        return [
            TransferDisplayRow("Amount", f"{self.format_canonical(receive_amount)} {token.name}"),
            TransferDisplayRow("Native gas token", native_gas_text, is_estimate=is_estimate),
        ]

    async def fetch_native_gas_received(self, message: UnsignedMessage, receive_tx: str | None = None) -> tuple[Decimal | None, bool]:
        """Destination gas delivered to the recipient.

        :return:
            ``(amount, is_estimate)``. The amount is in destination gas token
            units, ``None`` if it cannot be estimated either.
        """
        dest = message.to_chain
        dest_gas = self.config.gas_token_for(dest)

        if receive_tx is not None:
            try:
                swapped = await self.chain_client.fetch_swap_event(message)
            except Exception as e:
                # Event indexing lags behind, fall back to the estimate
                logger.warning("Could not fetch swap event of %s on %s: %s", message.tx_hash, dest, e)
                swapped = None
            if swapped is not None:
                return to_decimal(swapped, self.gas_decimals(dest), MAX_DECIMALS), False

        if not message.to_native_token_amount:
            # No drop-off requested, nothing to wait for
            return Decimal(0), False

        token = self.config.get_token(message.token_key)
        raw_token_amount = denormalize_amount(message.to_native_token_amount, self.token_decimals(token, dest))
        try:
            estimate = await self.native_token_amount(dest, message.token_id, raw_token_amount, message.recipient)
        except Exception as e:
            logger.warning("Could not estimate native gas of %s on %s: %s", message.tx_hash, dest, e)
            return None, True

        decimals = self.config.get_token_decimals(dest_gas, dest)
        return to_decimal(estimate, decimals, MAX_DECIMALS), True


class RelayRoute(AutomaticRoute):
    """Automatically relayed lock-and-mint token bridge transfer."""

    route = Route.relay
    protocol = MessageProtocol.token_bridge

    def is_supported_chain(self, chain: str | int) -> bool:
        chain_config = self.config.find_chain(chain)
        return chain_config is not None and chain_config.contracts.relayer is not None

    def accepts_message(self, message: UnsignedMessage) -> bool:
        return super().accepts_message(message) and not is_gateway_bound(self.config, message)

    def is_supported_pair(self, source_token: TokenConfig, dest_token: TokenConfig, source_chain: ChainConfig, dest_chain: ChainConfig) -> bool:
        if source_chain.name == dest_chain.name:
            return False
        if not (is_token_bridge_chain(source_chain) and is_token_bridge_chain(dest_chain)):
            return False
        return self.config.is_same_family(source_token, dest_token)

    def _is_supported_token(self, token: TokenConfig, other: TokenConfig | None, chain: str | int | None, is_source: bool) -> bool:
        if chain is not None:
            chain_config = self.config.get_chain(chain)
            if not (is_token_bridge_chain(chain_config) and self.has_relayer(chain_config)):
                return False
            if not is_source and token.is_native and token.native_chain != chain_config.name:
                return False
        if other is not None and not self.config.is_same_family(token, other):
            return False
        return True
