"""Static configuration lookups."""

import pytest

from bridge_routes.config import NATIVE_TOKEN, ROUTE_PREFERENCE, BridgeConfig, Route, TokenId


def test_from_dict_enables_all_routes_by_default(bridge_config):
    assert bridge_config.enabled_routes == frozenset(Route)
    assert len(bridge_config.chains) == 4


def test_from_dict_route_subset(config_data):
    config = BridgeConfig.from_dict({**config_data, "routes": ["bridge"]})
    assert config.is_route_enabled(Route.bridge)
    assert not config.is_route_enabled(Route.relay)


def test_route_preference():
    assert ROUTE_PREFERENCE == (Route.cosmos_gateway, Route.cctp_relay, Route.cctp_manual, Route.relay, Route.bridge)


def test_chain_lookup_by_name_and_id(bridge_config):
    assert bridge_config.get_chain(6).name == "avalanche"
    assert bridge_config.to_chain_id("ethereum") == 2
    assert bridge_config.to_chain_name(20) == "osmosis"
    assert bridge_config.get_chain("osmosis").is_cosmos

    with pytest.raises(KeyError):
        bridge_config.get_chain("solana")

    with pytest.raises(KeyError):
        bridge_config.get_chain(999)


def test_token_id_checksums_evm_address():
    a = TokenId("ethereum", "0xa0b86991c6218b36c1d19d4a2e9eb0ce3606eb48")
    b = TokenId("ethereum", "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48")
    assert a == b
    assert a.address == "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48"

    # Non-EVM addresses are left alone
    assert TokenId("osmosis", "uosmo").address == "uosmo"


def test_token_decimals_lookup_order(bridge_config):
    eth = bridge_config.get_token("ETH")
    # Platform entry
    assert bridge_config.get_token_decimals(eth, "avalanche") == 18
    # Default entry on a non-EVM chain
    assert bridge_config.get_token_decimals(eth, "osmosis") == 8


def test_gas_token_wrapping(bridge_config):
    eth = bridge_config.get_token("ETH")
    weth = bridge_config.get_token("WETH")
    assert eth.is_native
    assert not weth.is_native
    assert bridge_config.get_wrapped_token_id(eth) == weth.token_id
    assert bridge_config.is_same_family(eth, weth)
    assert not bridge_config.is_same_family(eth, bridge_config.get_token("WAVAX"))


def test_resolve_send_token(bridge_config):
    assert bridge_config.resolve_send_token(NATIVE_TOKEN, "avalanche").key == "AVAX"
    assert bridge_config.resolve_send_token("USDCeth", "ethereum").key == "USDCeth"
    usdc_id = bridge_config.get_token("USDCavax").token_id
    assert bridge_config.resolve_send_token(usdc_id, "avalanche").key == "USDCavax"

    with pytest.raises(KeyError):
        bridge_config.resolve_send_token(TokenId("ethereum", "0x" + "00" * 20), "ethereum")


def test_is_cctp_token(bridge_config):
    usdc_eth = bridge_config.get_token("USDCeth")
    assert bridge_config.is_cctp_token(usdc_eth, "ethereum")
    # Not native there
    assert not bridge_config.is_cctp_token(usdc_eth, "avalanche")
    # No CCTP domain
    assert not bridge_config.is_cctp_token(usdc_eth, "fantom")
    assert not bridge_config.is_cctp_token(bridge_config.get_token("WETH"), "ethereum")


def test_config_rejects_dangling_gas_token():
    with pytest.raises(AssertionError):
        BridgeConfig.from_dict(
            {
                "chains": {"ethereum": {"chain_id": 2, "platform": "evm", "gas_token": "ETH"}},
                "tokens": {},
            }
        )


def test_chain_lookups_by_name_and_id(bridge_config):
    assert bridge_config.to_chain_id("fantom") == 10
    assert bridge_config.to_chain_name(10) == "fantom"
    assert bridge_config.gas_token_for(20).key == "OSMO"

    contracts = bridge_config.get_contracts("fantom")
    assert contracts.token_bridge
    assert contracts.relayer is None

    with pytest.raises(KeyError):
        bridge_config.get_chain(99)


def test_find_token_by_id(bridge_config):
    wftm = bridge_config.get_token("WFTM")
    assert bridge_config.find_token_by_id(wftm.token_id).key == "WFTM"
    assert bridge_config.find_token_by_id(TokenId("fantom", "0x" + "00" * 20)) is None


def test_find_chain(bridge_config):
    assert bridge_config.find_chain(2).name == "ethereum"
    assert bridge_config.find_chain("solana") is None
    assert bridge_config.find_chain(99) is None
