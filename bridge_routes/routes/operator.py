"""Route registry and dispatcher.

:py:class:`RouteOperator` holds one strategy per :py:class:`~bridge_routes.config.Route`
and answers the questions that span all of them: which routes can carry
a transfer, which one to pick, which tokens can be sent at all.

Example::

    from bridge_routes.routes import RouteContext, RouteOperator

    operator = RouteOperator.create(RouteContext(config, chain_client, fetcher))
    route = await operator.select_route("USDCeth", "USDCavax", Decimal(100), "ethereum", "avalanche")
    tx = await operator.send(route, "USDCeth", Decimal(100), "ethereum", sender, "avalanche", recipient)
"""

import asyncio
import logging
from decimal import Decimal
from typing import Iterable

from bridge_routes.config import ROUTE_PREFERENCE, Route, TokenConfig, TokenId
from bridge_routes.errors import InvalidPayload, RouteUnavailable, UnknownRoute
from bridge_routes.messages import SignedMessage, UnsignedMessage
from bridge_routes.routes.base import RouteContext, RouteOptions, RouteStrategy
from bridge_routes.routes.bridge import BridgeRoute
from bridge_routes.routes.cctp import CCTPManualRoute, CCTPRelayRoute
from bridge_routes.routes.gateway import CosmosGatewayRoute
from bridge_routes.routes.relay import RelayRoute

logger = logging.getLogger(__name__)

#: Strategies registered by :py:meth:`RouteOperator.create`
DEFAULT_ROUTE_CLASSES: tuple[type[RouteStrategy], ...] = (
    BridgeRoute,
    RelayRoute,
    CCTPManualRoute,
    CCTPRelayRoute,
    CosmosGatewayRoute,
)


class RouteOperator:
    """Dispatches calls to the strategy registered for a route tag."""

    def __init__(self, routes: Iterable[RouteStrategy]):
        self.routes: dict[Route, RouteStrategy] = {}
        for strategy in routes:
            assert strategy.route not in self.routes, f"Route registered twice: {strategy.route.value}"
            self.routes[strategy.route] = strategy

    @classmethod
    def create(cls, context: RouteContext, route_classes: Iterable[type[RouteStrategy]] = DEFAULT_ROUTE_CLASSES) -> "RouteOperator":
        """Instantiate every strategy with a shared context."""
        return cls(route_class(context) for route_class in route_classes)

    def get_route(self, route: Route) -> RouteStrategy:
        """:raise UnknownRoute: Nothing registered for ``route``."""
        try:
            return self.routes[route]
        except KeyError:
            raise UnknownRoute(f"No strategy registered for route {route}") from None

    async def is_route_available(self, route: Route, source_token: str, dest_token: str, amount: Decimal | str | float | int, source_chain: str | int, dest_chain: str | int) -> bool:
        return await self.get_route(route).is_route_available(source_token, dest_token, amount, source_chain, dest_chain)

    async def available_routes(self, source_token: str, dest_token: str, amount: Decimal | str | float | int, source_chain: str | int, dest_chain: str | int) -> list[Route]:
        """All routes that can carry the transfer, in preference order.

        Routes are probed concurrently.
        """
        candidates = [route for route in ROUTE_PREFERENCE if route in self.routes]
        results = await asyncio.gather(
            *(self.routes[route].is_route_available(source_token, dest_token, amount, source_chain, dest_chain) for route in candidates),
            return_exceptions=True,
        )
        available = []
        for route, result in zip(candidates, results):
            if isinstance(result, Exception):
                logger.warning("Availability probe of %s route raised: %s", route.value, result)
                continue
            if result:
                available.append(route)
        return available

    async def select_route(
        self,
        source_token: str,
        dest_token: str,
        amount: Decimal | str | float | int,
        source_chain: str | int,
        dest_chain: str | int,
        route: Route | None = None,
    ) -> Route:
        """Pick the route for a transfer.

        :param route:
            Pinned route. Used as is if available.

        :raise RouteUnavailable:
            The pinned route, or every route, cannot carry the transfer.
        """
        if route is not None:
            if await self.is_route_available(route, source_token, dest_token, amount, source_chain, dest_chain):
                return route
            raise RouteUnavailable(f"Route {route.value} cannot carry {amount} {source_token} from {source_chain} to {dest_token} on {dest_chain}")

        available = await self.available_routes(source_token, dest_token, amount, source_chain, dest_chain)
        if not available:
            raise RouteUnavailable(f"No route can carry {amount} {source_token} from {source_chain} to {dest_token} on {dest_chain}")

        selected = available[0]
        logger.info("Selected %s route for %s -> %s (%s -> %s), available: %s", selected.value, source_token, dest_token, source_chain, dest_chain, [r.value for r in available])
        return selected

    async def all_supported_source_tokens(self, tokens: list[TokenConfig], dest_token: TokenConfig | None = None, source_chain: str | int | None = None) -> list[TokenConfig]:
        """Tokens sendable by at least one route.

        :return:
            Union over routes, each token once, in the order of ``tokens``.
        """
        results = await asyncio.gather(
            *(strategy.supported_source_tokens(tokens, dest_token, source_chain) for strategy in self._enabled_routes()),
            return_exceptions=True,
        )
        return self._union(tokens, results)

    async def all_supported_dest_tokens(self, tokens: list[TokenConfig], source_token: TokenConfig | None = None, dest_chain: str | int | None = None) -> list[TokenConfig]:
        """Tokens receivable through at least one route."""
        results = await asyncio.gather(
            *(strategy.supported_dest_tokens(tokens, source_token, dest_chain) for strategy in self._enabled_routes()),
            return_exceptions=True,
        )
        return self._union(tokens, results)

    def _enabled_routes(self) -> list[RouteStrategy]:
        return [strategy for route, strategy in self.routes.items() if strategy.config.is_route_enabled(route)]

    def _union(self, tokens: list[TokenConfig], results: list) -> list[TokenConfig]:
        keys = set()
        for result in results:
            if isinstance(result, Exception):
                logger.warning("Token support fan-out failed: %s", result)
                continue
            keys.update(token.key for token in result)
        return [token for token in tokens if token.key in keys]

    def compute_receive_amount(self, route: Route, send_amount: Decimal | int | float | str | None, options: RouteOptions = None) -> Decimal:
        return self.get_route(route).compute_receive_amount(send_amount, options)

    def compute_send_amount(self, route: Route, receive_amount: Decimal | int | float | str | None, options: RouteOptions = None) -> Decimal:
        return self.get_route(route).compute_send_amount(receive_amount, options)

    def get_min_send_amount(self, route: Route, options: RouteOptions = None) -> Decimal:
        return self.get_route(route).get_min_send_amount(options)

    def route_for_message(self, message: UnsignedMessage) -> Route:
        """Which route emitted ``message``.

        Checked in preference order, the gateway claims token bridge
        messages addressed to Cosmos chains before the relay route does.

        :raise InvalidPayload:
            No registered route accepts the message.
        """
        for route in ROUTE_PREFERENCE:
            strategy = self.routes.get(route)
            if strategy is not None and strategy.accepts_message(message):
                return route
        raise InvalidPayload(f"No route accepts {message.protocol.value} message {message.tx_hash} with payload {message.payload_type.name}")

    async def send(
        self,
        route: Route,
        token: TokenId | str,
        amount: Decimal | str,
        source_chain: str | int,
        sender: str,
        dest_chain: str | int,
        recipient: str,
        options: RouteOptions = None,
    ) -> str:
        return await self.get_route(route).send(token, amount, source_chain, sender, dest_chain, recipient, options)

    async def redeem(self, route: Route, dest_chain: str | int, signed_message: SignedMessage, payer: str) -> str:
        return await self.get_route(route).redeem(dest_chain, signed_message, payer)

    async def get_message(self, route: Route, tx: str, chain: str | int) -> UnsignedMessage:
        return await self.get_route(route).get_message(tx, chain)

    async def get_signed_message(self, route: Route, message: UnsignedMessage) -> SignedMessage:
        return await self.get_route(route).get_signed_message(message)
