"""Cosmos gateway route."""

from decimal import Decimal

import pytest

from bridge_routes.config import Route
from bridge_routes.errors import UnsupportedOperation
from bridge_routes.messages import MessageProtocol
from bridge_routes.routes.gateway import CosmosGatewayRoute

SENDER = "0x" + "01" * 20
RECIPIENT = "osmo1cyyzpxplxdzkeea7kwsydadg87357qnahakaks"


@pytest.fixture()
def route(route_context) -> CosmosGatewayRoute:
    return CosmosGatewayRoute(route_context)


def test_unknown_chain_is_not_supported(route):
    assert route.is_supported_chain("osmosis")
    assert not route.is_supported_chain("solana")


def test_flags(route):
    assert route.route == Route.cosmos_gateway
    assert route.AUTOMATIC_DEPOSIT
    assert not route.NATIVE_GAS_DROPOFF_SUPPORTED


@pytest.mark.asyncio
async def test_available_only_with_cosmos_side(route):
    assert await route.is_route_available("WETH", "WETH", Decimal(1), "ethereum", "osmosis")
    assert await route.is_route_available("OSMO", "OSMO", Decimal(1), "osmosis", "avalanche")
    assert not await route.is_route_available("WETH", "WETH", Decimal(1), "ethereum", "avalanche")
    assert not await route.is_route_available("WETH", "WAVAX", Decimal(1), "ethereum", "osmosis")


def test_no_fees(route):
    assert route.compute_receive_amount(Decimal(5)) == Decimal(5)
    assert route.get_min_send_amount() == 0


@pytest.mark.asyncio
async def test_send_protocol_depends_on_source(route, chain_client):
    await route.send("WETH", Decimal(1), "ethereum", SENDER, "osmosis", RECIPIENT)
    await route.send("OSMO", Decimal(1), "osmosis", RECIPIENT, "ethereum", SENDER)

    assert chain_client.sent[0]["protocol"] == MessageProtocol.token_bridge
    assert chain_client.sent[1]["protocol"] == MessageProtocol.ibc
    # OSMO has 6 decimals
    assert chain_client.sent[1]["amount"] == 1_000_000


@pytest.mark.asyncio
async def test_accepts_messages_in_both_directions(route, chain_client):
    to_cosmos = await route.send("WETH", Decimal(1), "ethereum", SENDER, "osmosis", RECIPIENT)
    from_cosmos = await route.send("OSMO", Decimal(1), "osmosis", RECIPIENT, "ethereum", SENDER)

    assert (await route.get_message(to_cosmos, "ethereum")).to_chain == "osmosis"
    assert (await route.get_message(from_cosmos, "osmosis")).protocol == MessageProtocol.ibc

    evm_only = await chain_client.send("WETH", 10**18, "ethereum", SENDER, "avalanche", SENDER, MessageProtocol.token_bridge)
    assert not route.accepts_message(chain_client.messages[evm_only])


@pytest.mark.asyncio
async def test_completed_by_gateway(route):
    with pytest.raises(UnsupportedOperation):
        await route.redeem("osmosis", None, RECIPIENT)

    with pytest.raises(UnsupportedOperation):
        await route.estimate_claim_gas("osmosis")


@pytest.mark.asyncio
async def test_preview(route, bridge_config):
    weth = bridge_config.get_token("WETH")
    rows = await route.get_preview(weth, weth, Decimal("0.25"), "ethereum", "osmosis", Decimal("0.0021"), None)
    assert rows[0].value == "0.25 WETH"
    assert rows[1].value == "~ 0.0021 ETH"
