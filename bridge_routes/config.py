"""Static chain, token and route configuration.

The host application loads these tables once at start up, typically from
JSON, and passes the resulting :py:class:`BridgeConfig` to the route
strategies. Nothing mutates the tables afterwards.

Example::

    from bridge_routes.config import BridgeConfig, Route

    config = BridgeConfig.from_dict(
        {
            "chains": {
                "ethereum": {"chain_id": 2, "platform": "evm", "gas_token": "ETH", "contracts": {"token_bridge": "0x3ee1..."}},
            },
            "tokens": {
                "ETH": {"symbol": "ETH", "native_chain": "ethereum", "decimals": {"evm": 18, "default": 8}, "wrapped_asset": "WETH"},
            },
            "routes": ["bridge", "relay"],
        }
    )
    assert config.is_route_enabled(Route.relay)
"""

import enum
import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping

from eth_utils import is_address, to_checksum_address

logger = logging.getLogger(__name__)

#: Key for the fallback entry of :py:attr:`TokenConfig.decimals`
DEFAULT_DECIMALS_KEY = "default"

#: Pseudo token address meaning the chain's gas token
NATIVE_TOKEN = "native"


class Route(enum.Enum):
    """Transfer mechanisms.

    The value is the identifier used in configuration files.
    """

    #: Manual lock-and-mint token bridge transfer, the user redeems on the destination
    bridge = "bridge"

    #: Token bridge transfer completed by an off-chain relayer, with optional gas drop-off
    relay = "relay"

    #: USDC burn-and-mint, the user receives on the destination
    cctp_manual = "cctp_manual"

    #: USDC burn-and-mint completed by an off-chain relayer
    cctp_relay = "cctp_relay"

    #: Transfer to or from a Cosmos chain through the IBC gateway
    cosmos_gateway = "cosmos_gateway"


#: Auto-selection order when several routes can carry the same transfer
ROUTE_PREFERENCE: tuple[Route, ...] = (
    Route.cosmos_gateway,
    Route.cctp_relay,
    Route.cctp_manual,
    Route.relay,
    Route.bridge,
)


@dataclass(slots=True, frozen=True)
class TokenId:
    """A token on one specific chain."""

    #: Chain name, e.g. ``"ethereum"``
    chain: str

    #: Token address in the chain's native address format
    address: str

    def __post_init__(self):
        # EVM addresses compare equal regardless of checksum casing
        if self.address.startswith("0x") and is_address(self.address):
            object.__setattr__(self, "address", to_checksum_address(self.address))


@dataclass(slots=True, frozen=True)
class ChainContracts:
    """Bridge contract addresses deployed on a chain.

    ``None`` means the contract does not exist there and the routes
    depending on it are not available on the chain.
    """

    core: str | None = None
    token_bridge: str | None = None
    relayer: str | None = None
    cctp_token_messenger: str | None = None
    cctp_relayer: str | None = None
    ibc_gateway: str | None = None


@dataclass(slots=True, frozen=True)
class ChainConfig:
    """One chain connected to the bridge."""

    #: Chain name used as the key everywhere else
    name: str

    #: Bridge protocol chain id (not the EVM chain id)
    chain_id: int

    #: Chain family: ``"evm"``, ``"solana"``, ``"cosmos"``, ...
    platform: str

    #: Token key of the gas token
    gas_token: str

    contracts: ChainContracts = field(default_factory=ChainContracts)

    #: Circle CCTP domain id, ``None`` if USDC burn-and-mint is not available
    cctp_domain: int | None = None

    @property
    def is_cosmos(self) -> bool:
        return self.platform == "cosmos"


@dataclass(slots=True, frozen=True)
class TokenConfig:
    """A token family, minted on its native chain and wrapped elsewhere."""

    key: str
    symbol: str

    #: Chain where the token is minted
    native_chain: str

    #: Decimals by chain name or platform name, with a ``"default"`` fallback
    decimals: Mapping[str, int]

    #: Token on its native chain. ``None`` for gas tokens, see :py:attr:`wrapped_asset`.
    token_id: TokenId | None = None

    #: Key of the wrapped counterpart of a gas token, e.g. ``"WETH"`` for ``"ETH"``
    wrapped_asset: str | None = None

    display_name: str | None = None

    def __post_init__(self):
        assert DEFAULT_DECIMALS_KEY in self.decimals, f"Token {self.key} has no default decimals"
        assert self.token_id is not None or self.wrapped_asset is not None, f"Token {self.key} needs a token_id or a wrapped_asset"
        object.__setattr__(self, "decimals", MappingProxyType(dict(self.decimals)))

    @property
    def name(self) -> str:
        """Name shown to the user."""
        return self.display_name or self.symbol

    @property
    def is_native(self) -> bool:
        """Gas token without a contract address."""
        return self.token_id is None


@dataclass(slots=True, frozen=True)
class BridgeConfig:
    """All static tables the routes need.

    Pass one instance to :py:class:`~bridge_routes.routes.base.RouteContext`.
    """

    chains: Mapping[str, ChainConfig]
    tokens: Mapping[str, TokenConfig]

    #: Routes switched on for this deployment
    enabled_routes: frozenset[Route] = frozenset(Route)

    def __post_init__(self):
        object.__setattr__(self, "chains", MappingProxyType(dict(self.chains)))
        object.__setattr__(self, "tokens", MappingProxyType(dict(self.tokens)))
        for token in self.tokens.values():
            assert token.native_chain in self.chains, f"Token {token.key} native chain {token.native_chain} not configured"
            if token.wrapped_asset is not None:
                assert token.wrapped_asset in self.tokens, f"Token {token.key} wrapped asset {token.wrapped_asset} not configured"
        for chain in self.chains.values():
            assert chain.gas_token in self.tokens, f"Chain {chain.name} gas token {chain.gas_token} not configured"

    @classmethod
    def from_dict(cls, data: dict) -> "BridgeConfig":
        """Build the tables from plain JSON-like dicts.

        :param data:
            Dict with ``chains``, ``tokens`` and optional ``routes`` keys.
            See the module docstring for the layout.
        """
        chains = {}
        for name, raw in data["chains"].items():
            chains[name] = ChainConfig(
                name=name,
                chain_id=int(raw["chain_id"]),
                platform=raw["platform"],
                gas_token=raw["gas_token"],
                contracts=ChainContracts(**raw.get("contracts", {})),
                cctp_domain=raw.get("cctp_domain"),
            )

        tokens = {}
        for key, raw in data["tokens"].items():
            token_id = raw.get("token_id")
            tokens[key] = TokenConfig(
                key=key,
                symbol=raw["symbol"],
                native_chain=raw["native_chain"],
                decimals=raw["decimals"],
                token_id=TokenId(chain=token_id["chain"], address=token_id["address"]) if token_id else None,
                wrapped_asset=raw.get("wrapped_asset"),
                display_name=raw.get("display_name"),
            )

        routes = data.get("routes")
        enabled = frozenset(Route(r) for r in routes) if routes is not None else frozenset(Route)

        logger.debug("Loaded bridge config: %d chains, %d tokens, routes %s", len(chains), len(tokens), sorted(r.value for r in enabled))
        return cls(chains=chains, tokens=tokens, enabled_routes=enabled)

    def is_route_enabled(self, route: Route) -> bool:
        return route in self.enabled_routes

    def get_chain(self, chain: str | int) -> ChainConfig:
        """Look up a chain by name or bridge chain id.

        :raise KeyError:
            Unknown chain.
        """
        if isinstance(chain, int):
            for config in self.chains.values():
                if config.chain_id == chain:
                    return config
            raise KeyError(f"Unknown chain id: {chain}")
        return self.chains[chain]

    def find_chain(self, chain: str | int) -> ChainConfig | None:
        """Like :py:meth:`get_chain`, but ``None`` for a chain that is not configured."""
        try:
            return self.get_chain(chain)
        except KeyError:
            return None

    def to_chain_id(self, chain: str | int) -> int:
        return self.get_chain(chain).chain_id

    def to_chain_name(self, chain: str | int) -> str:
        return self.get_chain(chain).name

    def get_contracts(self, chain: str | int) -> ChainContracts:
        return self.get_chain(chain).contracts

    def get_token(self, key: str) -> TokenConfig:
        """:raise KeyError: Unknown token key."""
        return self.tokens[key]

    def gas_token_for(self, chain: str | int) -> TokenConfig:
        return self.tokens[self.get_chain(chain).gas_token]

    def get_wrapped_token_id(self, token: TokenConfig) -> TokenId:
        """Token id used on the bridge for a token family.

        Gas tokens travel as their wrapped ERC-20 (or equivalent).
        """
        if token.token_id is not None:
            return token.token_id
        return self.tokens[token.wrapped_asset].token_id

    def get_token_decimals(self, token: TokenConfig, chain: str | int) -> int:
        """Decimals of ``token`` on ``chain``.

        Looks up the chain name, then the chain platform, then ``"default"``.
        """
        chain_config = self.get_chain(chain)
        decimals = token.decimals
        if chain_config.name in decimals:
            return decimals[chain_config.name]
        if chain_config.platform in decimals:
            return decimals[chain_config.platform]
        return decimals[DEFAULT_DECIMALS_KEY]

    def find_token_by_id(self, token_id: TokenId) -> TokenConfig | None:
        """Reverse lookup of a token family by its native token id."""
        for token in self.tokens.values():
            if token.token_id == token_id:
                return token
        return None

    def resolve_send_token(self, token: TokenId | str, chain: str | int) -> TokenConfig:
        """Token family of a send request.

        :param token:
            :py:class:`TokenId`, a token key, or ``"native"`` for the gas token of ``chain``.

        :raise KeyError:
            Token is not configured.
        """
        if isinstance(token, TokenId):
            config = self.find_token_by_id(token)
            if config is None:
                raise KeyError(f"Unknown token: {token}")
            return config
        if token == NATIVE_TOKEN:
            return self.gas_token_for(chain)
        return self.tokens[token]

    def is_same_family(self, a: TokenConfig, b: TokenConfig) -> bool:
        """Whether two tokens are the same asset on the bridge."""
        return self.get_wrapped_token_id(a) == self.get_wrapped_token_id(b)

    def is_cctp_token(self, token: TokenConfig, chain: str | int) -> bool:
        """Native USDC on a chain with a CCTP domain."""
        chain_config = self.get_chain(chain)
        return token.symbol == "USDC" and token.native_chain == chain_config.name and chain_config.cctp_domain is not None
