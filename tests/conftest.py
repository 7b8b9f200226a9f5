"""Shared fixtures: a small multi-chain configuration and in-memory chain and attestation fakes."""

import copy
import itertools

import pytest

from bridge_routes.attestation import AttestationConfig, AttestationFetcher
from bridge_routes.cctp.attestation import CCTPAttestation
from bridge_routes.config import BridgeConfig, TokenId
from bridge_routes.decimals import normalize_amount
from bridge_routes.messages import MessageProtocol, PayloadType, SignedMessage, UnsignedMessage
from bridge_routes.routes.base import RouteContext
from bridge_routes.routes.operator import RouteOperator

#: Fixture chains:
#:
#: - ethereum and avalanche have every EVM contract and a CCTP domain
#: - fantom has the token bridge but no relayer
#: - osmosis is a Cosmos chain behind the IBC gateway
CONFIG_DATA = {
    "chains": {
        "ethereum": {
            "chain_id": 2,
            "platform": "evm",
            "gas_token": "ETH",
            "cctp_domain": 0,
            "contracts": {
                "core": "0x98f3c9e6e3face36baad05fe09d375ef1464288b",
                "token_bridge": "0x3ee18b2214aff97000d974cf647e7c347e8fa585",
                "relayer": "0xcafd2f0a35a4459fa40c0517e17e6fa2939441ca",
                "cctp_token_messenger": "0xbd3fa81b58ba92a82136038b25adec7066af3155",
                "cctp_relayer": "0x4cb69fae7e7af841e44e1a1c30af640739378bb2",
            },
        },
        "avalanche": {
            "chain_id": 6,
            "platform": "evm",
            "gas_token": "AVAX",
            "cctp_domain": 1,
            "contracts": {
                "core": "0x54a8e5f9c4cba08f9943965859f6c34eaf03e26c",
                "token_bridge": "0x0e082f06ff657d94310cb8ce8b0d9a04541d8052",
                "relayer": "0xcafd2f0a35a4459fa40c0517e17e6fa2939441ca",
                "cctp_token_messenger": "0x6b25532e1060ce10cc3b0a99e5683b91bfde6982",
                "cctp_relayer": "0x4cb69fae7e7af841e44e1a1c30af640739378bb2",
            },
        },
        "fantom": {
            "chain_id": 10,
            "platform": "evm",
            "gas_token": "FTM",
            "contracts": {
                "core": "0x126783a6cb203a3e35344528b26ca3a0489a1485",
                "token_bridge": "0x7c9fc5741288cdfdd83ceb07f3ea7e22618d79d2",
            },
        },
        "osmosis": {
            "chain_id": 20,
            "platform": "cosmos",
            "gas_token": "OSMO",
            "contracts": {
                "ibc_gateway": "wormhole14ejqjyq8um4p3xfqj74yld5waqljf88fz25yxnma0cngspxe3les00fpjx",
            },
        },
    },
    "tokens": {
        "ETH": {"symbol": "ETH", "native_chain": "ethereum", "decimals": {"evm": 18, "default": 8}, "wrapped_asset": "WETH"},
        "WETH": {
            "symbol": "WETH",
            "native_chain": "ethereum",
            "decimals": {"evm": 18, "default": 8},
            "token_id": {"chain": "ethereum", "address": "0xc02aaa39b223fe8d0a0e5c4f27ead9083c756cc2"},
        },
        "AVAX": {"symbol": "AVAX", "native_chain": "avalanche", "decimals": {"evm": 18, "default": 8}, "wrapped_asset": "WAVAX"},
        "WAVAX": {
            "symbol": "WAVAX",
            "native_chain": "avalanche",
            "decimals": {"evm": 18, "default": 8},
            "token_id": {"chain": "avalanche", "address": "0xb31f66aa3c1e785363f0875a1b74e27b85fd66c7"},
        },
        "FTM": {"symbol": "FTM", "native_chain": "fantom", "decimals": {"evm": 18, "default": 8}, "wrapped_asset": "WFTM"},
        "WFTM": {
            "symbol": "WFTM",
            "native_chain": "fantom",
            "decimals": {"evm": 18, "default": 8},
            "token_id": {"chain": "fantom", "address": "0x21be370d5312f44cb42ce377bc9b8a0cef1a4c83"},
        },
        "OSMO": {
            "symbol": "OSMO",
            "native_chain": "osmosis",
            "decimals": {"default": 6},
            "token_id": {"chain": "osmosis", "address": "uosmo"},
        },
        "USDCeth": {
            "symbol": "USDC",
            "native_chain": "ethereum",
            "decimals": {"default": 6},
            "token_id": {"chain": "ethereum", "address": "0xa0b86991c6218b36c1d19d4a2e9eb0ce3606eb48"},
            "display_name": "USDC",
        },
        "USDCavax": {
            "symbol": "USDC",
            "native_chain": "avalanche",
            "decimals": {"default": 6},
            "token_id": {"chain": "avalanche", "address": "0xb97ef9ef8734c71904d8002f8b6bc66dd9c48a6e"},
            "display_name": "USDC",
        },
    },
}


class FakeChainClient:
    """In-memory :py:class:`~bridge_routes.chain.ChainClient`.

    Every sent transfer is recorded in :py:attr:`sent` and produces a
    parsed message retrievable with :py:meth:`get_message`.
    """

    def __init__(self, config: BridgeConfig):
        self.config = config
        self.sequence = itertools.count(1)

        #: Raw relayer fee returned for every pair, in source token units
        self.relayer_fee = 2_000_000

        #: Exception raised by :py:meth:`get_relayer_fee` instead of answering
        self.relayer_fee_error: Exception | None = None

        #: Accepted token ids, ``None`` accepts everything
        self.accepted_tokens: set[TokenId] | None = None

        #: Token ids whose acceptance check raises
        self.failing_tokens: set[TokenId] = set()

        #: Raw gas cost of every send, 0.0021 in 18 decimal gas tokens
        self.send_gas = 2_100_000_000_000_000
        self.claim_gas = 1_000_000_000_000_000

        #: Raw gas token balance of every wallet
        self.native_balance = 10**18

        #: Raw token balances by token id, missing ids hold 10**9
        self.token_balances: dict[TokenId, int | None] = {}

        #: Token ids whose balance lookup raises
        self.failing_balances: set[TokenId] = set()

        #: Raw gas token received per raw token swapped
        self.native_rate = 10**12

        #: Raw gas swapped according to the on-chain swap event, ``None`` if not indexed
        self.swap_event: int | None = None
        self.swap_event_error: Exception | None = None

        #: Relayer redeem transaction is found after this many lookups, ``None`` never
        self.redeem_after: int | None = 1
        self.redeem_lookups = 0

        #: Destination says the transfer was already redeemed
        self.completed = False

        self.transaction_fee: int | None = 500_000_000_000_000

        self.sent: list[dict] = []
        self.redeemed: list[tuple[str, SignedMessage, str]] = []
        self.messages: dict[str, UnsignedMessage] = {}

    def _record(self, token, amount, source_chain, sender, dest_chain, recipient, protocol, payload_type, to_native_token=0) -> str:
        sequence = next(self.sequence)
        tx = f"0x{sequence:064x}"
        token_config = self.config.resolve_send_token(token, source_chain)
        decimals = self.config.get_token_decimals(token_config, source_chain)
        relayer_fee = None
        to_native = None
        if payload_type == PayloadType.automatic:
            relayer_fee = normalize_amount(self.relayer_fee, decimals)
            to_native = normalize_amount(to_native_token, decimals)
        self.messages[tx] = UnsignedMessage(
            tx_hash=tx,
            from_chain=source_chain,
            to_chain=dest_chain,
            token_id=self.config.get_wrapped_token_id(token_config),
            token_key=token_config.key,
            token_decimals=decimals,
            amount=normalize_amount(amount, decimals),
            sender=sender,
            recipient=recipient,
            payload_type=payload_type,
            protocol=protocol,
            emitter_address="00" * 12 + "3ee18b2214aff97000d974cf647e7c347e8fa585",
            sequence=sequence,
            block=1000 + sequence,
            gas_fee=self.send_gas,
            relayer_fee=relayer_fee,
            to_native_token_amount=to_native,
        )
        self.sent.append(
            {
                "tx": tx,
                "token": token,
                "amount": amount,
                "source_chain": source_chain,
                "dest_chain": dest_chain,
                "protocol": protocol,
                "to_native_token": to_native_token,
            }
        )
        return tx

    async def get_native_balance(self, wallet, chain):
        return self.native_balance

    async def get_token_balance(self, wallet, token_id, chain):
        if token_id in self.failing_balances:
            raise ConnectionError(f"RPC down while reading {token_id} balance")
        return self.token_balances.get(token_id, 10**9)

    async def estimate_send_gas(self, token, amount, source_chain, sender, dest_chain, recipient, protocol):
        return self.send_gas

    async def estimate_send_with_relay_gas(self, token, amount, source_chain, sender, dest_chain, recipient, to_native_token, protocol):
        return self.send_gas

    async def estimate_claim_gas(self, dest_chain, signed_message):
        return self.claim_gas

    async def send(self, token, amount, source_chain, sender, dest_chain, recipient, protocol):
        payload_type = PayloadType.automatic if protocol == MessageProtocol.ibc else PayloadType.manual
        return self._record(token, amount, source_chain, sender, dest_chain, recipient, protocol, payload_type)

    async def send_with_relay(self, token, amount, source_chain, sender, dest_chain, recipient, to_native_token, protocol):
        return self._record(token, amount, source_chain, sender, dest_chain, recipient, protocol, PayloadType.automatic, to_native_token)

    async def redeem(self, dest_chain, signed_message, payer):
        self.redeemed.append((dest_chain, signed_message, payer))
        return f"0xredeem{len(self.redeemed)}"

    async def get_message(self, tx, chain):
        return self.messages[tx]

    async def is_accepted_token(self, token_id, protocol):
        if token_id in self.failing_tokens:
            raise ConnectionError(f"RPC down while checking {token_id}")
        return self.accepted_tokens is None or token_id in self.accepted_tokens

    async def get_relayer_fee(self, source_chain, dest_chain, token_id, protocol):
        if self.relayer_fee_error is not None:
            raise self.relayer_fee_error
        return self.relayer_fee

    async def calculate_native_token_amount(self, dest_chain, token_id, amount, wallet):
        return amount * self.native_rate

    async def calculate_max_swap_amount(self, dest_chain, token_id, wallet):
        return 50_000_000

    async def fetch_swap_event(self, message):
        if self.swap_event_error is not None:
            raise self.swap_event_error
        return self.swap_event

    async def fetch_redeem_tx(self, message):
        self.redeem_lookups += 1
        if self.redeem_after is not None and self.redeem_lookups >= self.redeem_after:
            return f"0xrelayed{message.sequence}"
        return None

    async def is_transfer_completed(self, dest_chain, signed_message):
        return self.completed

    async def get_transaction_fee(self, chain, tx):
        return self.transaction_fee


class FakeAttestationSource:
    """Guardians sign every message after ``ready_after`` lookups. ``None`` never signs."""

    def __init__(self, ready_after: int | None = 1):
        self.ready_after = ready_after
        self.calls = 0

    async def fetch_signed_vaa(self, message):
        self.calls += 1
        if self.ready_after is not None and self.calls >= self.ready_after:
            return b"\x01vaa" + message.sequence.to_bytes(8, "big")
        return None


class FakeCircleAttestationSource:
    """Circle attests every burn after ``ready_after`` lookups, unless :py:attr:`ready` is cleared."""

    def __init__(self, ready_after: int = 1):
        self.ready = True
        self.ready_after = ready_after
        self.calls = 0

    async def fetch_attestation(self, message):
        self.calls += 1
        if not self.ready or self.calls < self.ready_after:
            return None
        return CCTPAttestation(message=b"\x02msg", attestation=b"\x03sig", status="complete")


@pytest.fixture()
def config_data() -> dict:
    return copy.deepcopy(CONFIG_DATA)


@pytest.fixture()
def bridge_config(config_data) -> BridgeConfig:
    return BridgeConfig.from_dict(config_data)


@pytest.fixture()
def chain_client(bridge_config) -> FakeChainClient:
    return FakeChainClient(bridge_config)


@pytest.fixture()
def attestation_source() -> FakeAttestationSource:
    return FakeAttestationSource()


@pytest.fixture()
def circle_source() -> FakeCircleAttestationSource:
    return FakeCircleAttestationSource()


@pytest.fixture()
def attestation_fetcher(attestation_source) -> AttestationFetcher:
    return AttestationFetcher(attestation_source, AttestationConfig.create_test_config())


@pytest.fixture()
def route_context(bridge_config, chain_client, attestation_fetcher, circle_source) -> RouteContext:
    return RouteContext(bridge_config, chain_client, attestation_fetcher, circle_source)


@pytest.fixture()
def operator(route_context) -> RouteOperator:
    return RouteOperator.create(route_context)
