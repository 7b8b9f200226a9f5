"""Chain access consumed by the route strategies.

Transaction construction, signing and RPC access per chain family live
in the host application. It hands the routes an object implementing
:py:class:`ChainClient`. Amounts crossing this interface are raw integers
in the precision of the chain they refer to, unless noted otherwise.
"""

from typing import Protocol

from bridge_routes.config import TokenId
from bridge_routes.messages import MessageProtocol, SignedMessage, UnsignedMessage


class ChainClient(Protocol):
    """RPC and wallet access for all connected chains."""

    async def get_native_balance(self, wallet: str, chain: str) -> int:
        """Gas token balance of ``wallet``."""
        ...

    async def get_token_balance(self, wallet: str, token_id: TokenId, chain: str) -> int | None:
        """Balance of a token on ``chain``, ``None`` if the token has no representation there."""
        ...

    async def estimate_send_gas(self, token: TokenId | str, amount: int, source_chain: str, sender: str, dest_chain: str, recipient: str, protocol: MessageProtocol) -> int:
        """Gas cost of a manual transfer, raw units of the source gas token."""
        ...

    async def estimate_send_with_relay_gas(self, token: TokenId | str, amount: int, source_chain: str, sender: str, dest_chain: str, recipient: str, to_native_token: int, protocol: MessageProtocol) -> int:
        """Gas cost of a relayed transfer, raw units of the source gas token."""
        ...

    async def estimate_claim_gas(self, dest_chain: str, signed_message: SignedMessage) -> int:
        """Gas cost of redeeming on the destination, raw units of the destination gas token."""
        ...

    async def send(self, token: TokenId | str, amount: int, source_chain: str, sender: str, dest_chain: str, recipient: str, protocol: MessageProtocol) -> str:
        """Sign and submit a manual transfer. Returns the transaction id."""
        ...

    async def send_with_relay(self, token: TokenId | str, amount: int, source_chain: str, sender: str, dest_chain: str, recipient: str, to_native_token: int, protocol: MessageProtocol) -> str:
        """Sign and submit a relayed transfer. Returns the transaction id."""
        ...

    async def redeem(self, dest_chain: str, signed_message: SignedMessage, payer: str) -> str:
        """Sign and submit the destination chain redemption. Returns the transaction id."""
        ...

    async def get_message(self, tx: str, chain: str) -> UnsignedMessage:
        """Parse the bridge message emitted by a source chain transaction."""
        ...

    async def is_accepted_token(self, token_id: TokenId, protocol: MessageProtocol) -> bool:
        """Whether the relayer contract accepts the token."""
        ...

    async def get_relayer_fee(self, source_chain: str, dest_chain: str, token_id: TokenId, protocol: MessageProtocol) -> int:
        """Current relayer fee, raw units of the sent token on the source chain."""
        ...

    async def calculate_native_token_amount(self, dest_chain: str, token_id: TokenId, amount: int, wallet: str) -> int:
        """Destination gas received for swapping ``amount`` of the token, at the current rate."""
        ...

    async def calculate_max_swap_amount(self, dest_chain: str, token_id: TokenId, wallet: str) -> int:
        """Largest amount of the token the relayer will swap to gas."""
        ...

    async def fetch_swap_event(self, message: UnsignedMessage) -> int | None:
        """Gas actually delivered by the relayer, ``None`` if no swap event is found."""
        ...

    async def fetch_redeem_tx(self, message: UnsignedMessage) -> str | None:
        """Destination chain transaction that completed the transfer, if any."""
        ...

    async def is_transfer_completed(self, dest_chain: str, signed_message: SignedMessage) -> bool:
        """Whether the signed message has been redeemed on the destination."""
        ...

    async def get_transaction_fee(self, chain: str, tx: str) -> int | None:
        """Gas paid by a transaction, raw units of the chain's gas token."""
        ...
