"""Cross-chain token transfer routes.

- :py:mod:`bridge_routes.routes`: transfer mechanisms and the dispatcher
- :py:mod:`bridge_routes.attestation`: waiting for signed bridge messages
- :py:mod:`bridge_routes.tracker`: transfer lifecycle
- :py:mod:`bridge_routes.decimals`: amount conversions between chains
- :py:mod:`bridge_routes.balances`: wallet balances for the transfer form
"""
