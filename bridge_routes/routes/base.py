"""Shared contract of all transfer mechanisms.

Each mechanism is one :py:class:`RouteStrategy` subclass tagged with a
:py:class:`~bridge_routes.config.Route` value. The dispatcher in
:py:mod:`bridge_routes.routes.operator` only relies on this interface,
so adding a mechanism means adding a subclass and registering it.

Human readable amounts are :py:class:`~decimal.Decimal` in the units of
the token being sent. Raw integer amounts only appear when talking to the
:py:class:`~bridge_routes.chain.ChainClient` and inside messages.
"""

import abc
import asyncio
import logging
from dataclasses import dataclass
from decimal import Decimal

from bridge_routes.attestation import AttestationFetcher
from bridge_routes.cctp.attestation import CircleAttestationSource
from bridge_routes.chain import ChainClient
from bridge_routes.config import BridgeConfig, ChainConfig, Route, TokenConfig, TokenId
from bridge_routes.decimals import MAX_DECIMALS, NO_INPUT, as_decimal, round_decimals, to_decimal, to_fixed_decimals
from bridge_routes.errors import ArithmeticInvalid, InvalidPayload
from bridge_routes.messages import MessageProtocol, PayloadType, SignedMessage, TransferDisplayData, TransferDisplayRow, UnsignedMessage

logger = logging.getLogger(__name__)

#: Quoted fees are multiplied by this before comparing against the send amount.
#:
#: Fees are quoted before the transaction is signed. If they move up
#: before the contract executes, a send at exactly the quote would revert.
MIN_SEND_FEE_MARGIN = Decimal("1.05")

#: Fractional digits of :py:meth:`RouteStrategy.get_min_send_amount`
MIN_SEND_AMOUNT_DECIMALS = 6

#: Fractional digits of amounts in preview rows
DISPLAY_DECIMALS = 6


@dataclass(slots=True, frozen=True)
class RelayOptions:
    """Per-transfer parameters of automatically relayed routes.

    All amounts are in units of the token being sent.
    """

    #: Relayer fee quoted for this transfer, ``None`` if not quoted yet
    relayer_fee: Decimal | None = None

    #: Part of the amount the relayer swaps to destination gas
    to_native_token: Decimal = Decimal(0)

    #: Destination gas the recipient is expected to get for :py:attr:`to_native_token`
    receive_native_amount: Decimal = Decimal(0)

    def __post_init__(self):
        if self.relayer_fee is not None:
            object.__setattr__(self, "relayer_fee", as_decimal(self.relayer_fee))
        object.__setattr__(self, "to_native_token", as_decimal(self.to_native_token))
        object.__setattr__(self, "receive_native_amount", as_decimal(self.receive_native_amount))


#: Route options. Manual routes take ``None``.
RouteOptions = RelayOptions | None


@dataclass(slots=True)
class RouteContext:
    """Collaborators shared by all route strategies."""

    config: BridgeConfig
    chain_client: ChainClient
    attestation_fetcher: AttestationFetcher

    #: Needed by the CCTP routes only
    circle_attestation_source: CircleAttestationSource | None = None


class RouteStrategy(abc.ABC):
    """A transfer mechanism.

    Subclasses set the class attributes and implement the abstract methods.
    """

    #: Tag used as the dispatcher registry key
    route: Route

    #: Protocol of the messages this mechanism emits
    protocol: MessageProtocol

    #: Payload id of the messages this mechanism emits, ``None`` accepts any
    payload_type: PayloadType | None = None

    #: Transfers complete without the user redeeming on the destination
    AUTOMATIC_DEPOSIT = False

    #: Part of the transfer can be swapped to destination gas
    NATIVE_GAS_DROPOFF_SUPPORTED = False

    def __init__(self, context: RouteContext):
        self.context = context
        self.config = context.config
        self.chain_client = context.chain_client

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} route={self.route.value}>"

    @abc.abstractmethod
    def is_supported_chain(self, chain: str | int) -> bool:
        """Whether the mechanism is deployed on ``chain``.

        Static configuration lookup only.
        """

    @abc.abstractmethod
    def is_supported_pair(self, source_token: TokenConfig, dest_token: TokenConfig, source_chain: ChainConfig, dest_chain: ChainConfig) -> bool:
        """Whether the mechanism can carry ``source_token`` to ``dest_token`` between the chains.

        Static configuration checks only.
        """

    @abc.abstractmethod
    async def is_supported_source_token(self, token: TokenConfig | None, dest_token: TokenConfig | None = None, source_chain: str | int | None = None) -> bool:
        """Whether ``token`` can be sent with this mechanism."""

    @abc.abstractmethod
    async def is_supported_dest_token(self, token: TokenConfig | None, source_token: TokenConfig | None = None, dest_chain: str | int | None = None) -> bool:
        """Whether ``token`` can be received with this mechanism."""

    async def check_route_available(self, source_token: TokenConfig, dest_token: TokenConfig, amount: Decimal, source_chain: ChainConfig, dest_chain: ChainConfig) -> bool:
        """Mechanism specific availability checks.

        Called by :py:meth:`is_route_available` with resolved configuration.
        May raise, the caller turns failures into ``False``.
        """
        return self.is_supported_pair(source_token, dest_token, source_chain, dest_chain)

    async def is_route_available(
        self,
        source_token: str,
        dest_token: str,
        amount: Decimal | str | float | int,
        source_chain: str | int,
        dest_chain: str | int,
    ) -> bool:
        """Whether this route can carry the transfer right now.

        Never raises. Unknown tokens or chains, disabled routes and failing
        network probes all answer ``False``.

        :param source_token:
            Token key of the token sent.
        :param dest_token:
            Token key of the token received.
        :param amount:
            Human readable amount sent.
        """
        if not self.config.is_route_enabled(self.route):
            return False

        if source_token not in self.config.tokens or dest_token not in self.config.tokens:
            return False

        try:
            source = self.config.get_chain(source_chain)
            dest = self.config.get_chain(dest_chain)
        except KeyError:
            return False

        try:
            return await self.check_route_available(
                self.config.get_token(source_token),
                self.config.get_token(dest_token),
                as_decimal(amount),
                source,
                dest,
            )
        except Exception:
            logger.warning(
                "Availability check of %s route failed for %s -> %s (%s -> %s), treating as unavailable",
                self.route.value,
                source_token,
                dest_token,
                source.name,
                dest.name,
                exc_info=True,
            )
            return False

    async def supported_source_tokens(self, tokens: list[TokenConfig], dest_token: TokenConfig | None = None, source_chain: str | int | None = None) -> list[TokenConfig]:
        """Filter ``tokens`` to those this route can send.

        Each token is checked concurrently. A failing check excludes only its token.
        """
        results = await asyncio.gather(
            *(self.is_supported_source_token(token, dest_token, source_chain) for token in tokens),
            return_exceptions=True,
        )
        return self._filter_supported(tokens, results)

    async def supported_dest_tokens(self, tokens: list[TokenConfig], source_token: TokenConfig | None = None, dest_chain: str | int | None = None) -> list[TokenConfig]:
        """Filter ``tokens`` to those this route can receive.

        Each token is checked concurrently. A failing check excludes only its token.
        """
        results = await asyncio.gather(
            *(self.is_supported_dest_token(token, source_token, dest_chain) for token in tokens),
            return_exceptions=True,
        )
        return self._filter_supported(tokens, results)

    def _filter_supported(self, tokens: list[TokenConfig], results: list) -> list[TokenConfig]:
        supported = []
        for token, result in zip(tokens, results):
            if isinstance(result, Exception):
                logger.warning("Token support check of %s failed on %s route: %s", token.key, self.route.value, result)
                continue
            if result is True:
                supported.append(token)
        return supported

    def compute_receive_amount(self, send_amount: Decimal | int | float | str | None, options: RouteOptions = None) -> Decimal:
        """Amount the recipient gets for ``send_amount``.

        Identity for routes without fees taken from the transferred amount.
        """
        return as_decimal(send_amount)

    def compute_send_amount(self, receive_amount: Decimal | int | float | str | None, options: RouteOptions = None) -> Decimal:
        """Amount to send for the recipient to get ``receive_amount``."""
        return as_decimal(receive_amount)

    def get_min_send_amount(self, options: RouteOptions = None) -> Decimal:
        """Smallest amount worth sending given the fees in ``options``.

        ``(relayer_fee + to_native_token) * 1.05``, rounded to 6 decimals.
        Zero when there are no fees.
        """
        if options is None:
            return Decimal(0)
        fees = as_decimal(options.relayer_fee) + options.to_native_token
        return round_decimals(fees * MIN_SEND_FEE_MARGIN, MIN_SEND_AMOUNT_DECIMALS)

    def validate_amounts(self, send_amount: Decimal | int | float | str, options: RouteOptions = None) -> Decimal:
        """Check a send amount before submission.

        :return:
            Receive amount.

        :raise ArithmeticInvalid:
            The receive amount would be negative.
        """
        receive_amount = self.compute_receive_amount(send_amount, options)
        if receive_amount < 0:
            raise ArithmeticInvalid(f"Sending {send_amount} does not cover the fees of {self.route.value} route, receive amount would be {receive_amount}")
        return receive_amount

    @abc.abstractmethod
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
        """Source chain gas cost of :py:meth:`send`, in source gas token units."""

    @abc.abstractmethod
    async def estimate_claim_gas(self, dest_chain: str | int, signed_message: SignedMessage | None = None) -> Decimal:
        """Destination chain gas cost of :py:meth:`redeem`, in destination gas token units."""

    @abc.abstractmethod
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
        """Submit the transfer on the source chain.

        :param token:
            :py:class:`~bridge_routes.config.TokenId`, token key or ``"native"``.

        :return:
            Source chain transaction id.

        :raise UnsupportedOperation:
            The mechanism is not deployed on ``source_chain``.
        """

    @abc.abstractmethod
    async def redeem(self, dest_chain: str | int, signed_message: SignedMessage, payer: str) -> str:
        """Complete the transfer on the destination chain.

        :return:
            Destination chain transaction id.

        :raise UnsupportedOperation:
            For automatic routes, which an off-chain relayer completes.
        """

    def accepts_message(self, message: UnsignedMessage) -> bool:
        """Whether ``message`` was emitted by this mechanism."""
        if message.protocol != self.protocol:
            return False
        return self.payload_type is None or message.payload_type == self.payload_type

    def check_message(self, message: UnsignedMessage):
        """:raise InvalidPayload: ``message`` belongs to another mechanism."""
        if not self.accepts_message(message):
            raise InvalidPayload(
                f"Wrong payload for {self.route.value} route: tx {message.tx_hash} is a {message.protocol.value} message with payload {message.payload_type.name}",
            )

    async def get_message(self, tx: str, chain: str | int) -> UnsignedMessage:
        """Parse the bridge message emitted by a source chain transaction.

        :raise InvalidPayload:
            The transaction was not sent with this mechanism.
        """
        message = await self.chain_client.get_message(tx, self.config.to_chain_name(chain))
        self.check_message(message)
        return message

    async def get_signed_message(self, message: UnsignedMessage) -> SignedMessage:
        """Wait for the attestation of ``message``.

        :raise AttestationNotFound:
            Not signed before polling gave up.
        :raise AttestationTimeout:
            Not signed before the deadline.
        """
        self.check_message(message)
        return await self.context.attestation_fetcher.fetch(message)

    async def is_transfer_completed(self, dest_chain: str | int, signed_message: SignedMessage) -> bool:
        return await self.chain_client.is_transfer_completed(self.config.to_chain_name(dest_chain), signed_message)

    @abc.abstractmethod
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
        """Summary shown before the user confirms the transfer."""

    async def get_transfer_source_info(self, message: UnsignedMessage) -> TransferDisplayData:
        """Summary of the source side of a submitted transfer."""
        token = self.config.get_token(message.token_key)
        return [
            TransferDisplayRow("Amount", f"{self.format_canonical(message.amount)} {token.name}"),
            self._gas_fee_row(message.from_chain, message.gas_fee),
        ]

    async def get_transfer_dest_info(self, message: UnsignedMessage, receive_tx: str | None = None) -> TransferDisplayData:
        """Summary of the destination side of a transfer.

        :param receive_tx:
            Destination chain transaction, once known.
        """
        token = self.config.get_token(message.token_key)
        gas_fee = None
        if receive_tx is not None:
            gas_fee = await self.chain_client.get_transaction_fee(message.to_chain, receive_tx)
        return [
            TransferDisplayRow("Amount", f"{self.format_canonical(message.amount)} {token.name}"),
            self._gas_fee_row(message.to_chain, gas_fee),
        ]

    def token_decimals(self, token: TokenConfig, chain: str | int) -> int:
        return self.config.get_token_decimals(token, chain)

    def gas_decimals(self, chain: str | int) -> int:
        return self.config.get_token_decimals(self.config.gas_token_for(chain), chain)

    def to_gas_amount(self, raw: int, chain: str | int) -> Decimal:
        """Raw gas token amount to human units, cut to canonical precision."""
        return to_decimal(raw, self.gas_decimals(chain), MAX_DECIMALS)

    @staticmethod
    def format_canonical(raw: int) -> str:
        """Display string of a canonical precision amount."""
        return to_fixed_decimals(to_decimal(raw, MAX_DECIMALS), MAX_DECIMALS)

    def _gas_fee_row(self, chain: str, raw_fee: int | None) -> TransferDisplayRow:
        if raw_fee is None:
            return TransferDisplayRow("Gas fee", NO_INPUT)
        gas_token = self.config.gas_token_for(chain)
        return TransferDisplayRow("Gas fee", f"{to_fixed_decimals(self.to_gas_amount(raw_fee, chain), MAX_DECIMALS)} {gas_token.name}")
