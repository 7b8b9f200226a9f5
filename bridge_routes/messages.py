"""Bridge messages and display data.

A transfer produces one :py:class:`UnsignedMessage` when its source chain
transaction is parsed, and one :py:class:`SignedMessage` once the
attestation network has signed it.
"""

import enum
from dataclasses import dataclass, field, fields

from hexbytes import HexBytes

from bridge_routes.config import TokenId


class PayloadType(enum.IntEnum):
    """Token bridge payload id, fixed when the message is emitted."""

    #: Plain transfer, the recipient redeems
    manual = 1

    #: Transfer with payload for the relayer contract
    automatic = 3


class MessageProtocol(enum.Enum):
    """Which on-chain protocol emitted the message."""

    token_bridge = "token_bridge"
    cctp = "cctp"
    ibc = "ibc"


@dataclass(slots=True, frozen=True)
class UnsignedMessage:
    """A parsed source chain transfer, not yet attested.

    All amounts are raw integers in the canonical precision
    (:py:data:`~bridge_routes.decimals.MAX_DECIMALS`).
    """

    #: Source chain transaction id
    tx_hash: str

    from_chain: str
    to_chain: str

    #: Token on its native chain
    token_id: TokenId

    #: Key of the token family in :py:class:`~bridge_routes.config.BridgeConfig`
    token_key: str

    #: Decimals of the token on the source chain
    token_decimals: int

    #: Amount sent, canonical precision
    amount: int

    sender: str
    recipient: str

    payload_type: PayloadType
    protocol: MessageProtocol

    #: Emitter contract of the message, hex without ``0x``, 32 bytes
    emitter_address: str

    #: Emitter sequence number
    sequence: int

    #: Source chain block of the transaction
    block: int | None = None

    #: Gas paid on the source chain, raw units of the gas token
    gas_fee: int | None = None

    #: Relayer fee deducted from the amount, canonical precision. Automatic transfers only.
    relayer_fee: int | None = None

    #: Amount swapped to destination gas, canonical precision. Automatic transfers only.
    to_native_token_amount: int | None = None

    @property
    def message_id(self) -> tuple[str, str, int]:
        """Unique key of the message: ``(emitter chain, emitter, sequence)``."""
        return self.from_chain, self.emitter_address, self.sequence

    @property
    def is_automatic(self) -> bool:
        return self.payload_type == PayloadType.automatic


@dataclass(slots=True, frozen=True, kw_only=True)
class SignedMessage(UnsignedMessage):
    """A message with its attestation.

    Never changes once created. The same message always maps to the same bytes.
    """

    #: Signed VAA bytes from the guardian network
    vaa: HexBytes

    #: CCTP message bytes, CCTP transfers only
    circle_message: HexBytes | None = None

    #: Circle attestation over :py:attr:`circle_message`, CCTP transfers only
    circle_attestation: HexBytes | None = None

    @classmethod
    def from_unsigned(
        cls,
        message: UnsignedMessage,
        vaa: bytes,
        circle_message: bytes | None = None,
        circle_attestation: bytes | None = None,
    ) -> "SignedMessage":
        values = {f.name: getattr(message, f.name) for f in fields(UnsignedMessage)}
        return cls(
            **values,
            vaa=HexBytes(vaa),
            circle_message=HexBytes(circle_message) if circle_message is not None else None,
            circle_attestation=HexBytes(circle_attestation) if circle_attestation is not None else None,
        )


@dataclass(slots=True)
class TransferDisplayRow:
    """One ``(title, value)`` line of a transfer summary."""

    title: str
    value: str

    #: Nested breakdown lines, e.g. individual fees under a total
    rows: list["TransferDisplayRow"] = field(default_factory=list)

    #: ``True`` when :py:attr:`value` is an approximation, not an observed on-chain value
    is_estimate: bool = False


#: Transfer summary rows in display order
TransferDisplayData = list[TransferDisplayRow]
