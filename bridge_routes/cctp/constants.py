"""Circle CCTP constants.

CCTP moves native USDC by burning it on the source chain and minting it
on the destination:

1. Source chain: ``depositForBurn()`` on TokenMessenger burns USDC
2. Circle's Iris attestation service signs the burn event
3. Destination chain: ``receiveMessage()`` on MessageTransmitter mints USDC

CCTP identifies chains by its own domain ids, configured per chain in
:py:attr:`bridge_routes.config.ChainConfig.cctp_domain`.

- `CCTP documentation <https://developers.circle.com/cctp>`_
"""

#: Circle Iris attestation API base URL (mainnet).
IRIS_API_BASE_URL = "https://iris-api.circle.com"

#: Circle Iris attestation API base URL (testnet).
IRIS_API_SANDBOX_URL = "https://iris-api-sandbox.circle.com"

CCTP_DOMAIN_ETHEREUM = 0
CCTP_DOMAIN_AVALANCHE = 1
CCTP_DOMAIN_OPTIMISM = 2
CCTP_DOMAIN_ARBITRUM = 3
CCTP_DOMAIN_SOLANA = 5
CCTP_DOMAIN_BASE = 6
CCTP_DOMAIN_POLYGON = 7

#: Mapping from CCTP domain ID to human-readable chain name, for logging.
CCTP_DOMAIN_NAMES: dict[int, str] = {
    CCTP_DOMAIN_ETHEREUM: "Ethereum",
    CCTP_DOMAIN_AVALANCHE: "Avalanche",
    CCTP_DOMAIN_OPTIMISM: "Optimism",
    CCTP_DOMAIN_ARBITRUM: "Arbitrum",
    CCTP_DOMAIN_SOLANA: "Solana",
    CCTP_DOMAIN_BASE: "Base",
    CCTP_DOMAIN_POLYGON: "Polygon",
}
