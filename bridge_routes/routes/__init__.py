"""Transfer mechanisms and the dispatcher choosing between them."""

from bridge_routes.routes.base import RelayOptions, RouteContext, RouteOptions, RouteStrategy
from bridge_routes.routes.bridge import BridgeRoute, ManualRoute
from bridge_routes.routes.cctp import CCTPManualRoute, CCTPRelayRoute
from bridge_routes.routes.gateway import CosmosGatewayRoute
from bridge_routes.routes.operator import RouteOperator
from bridge_routes.routes.relay import AutomaticRoute, RelayRoute

__all__ = [
    "AutomaticRoute",
    "BridgeRoute",
    "CCTPManualRoute",
    "CCTPRelayRoute",
    "CosmosGatewayRoute",
    "ManualRoute",
    "RelayOptions",
    "RelayRoute",
    "RouteContext",
    "RouteOperator",
    "RouteOptions",
    "RouteStrategy",
]
