"""Circle CCTP attestation service client.

CCTP transfers need a second attestation next to the guardian VAA:
Circle's Iris service signs the USDC burn event, and the destination
MessageTransmitter only mints against that signature.

Iris reports the burn through these states:

- **404**: transaction not yet indexed by Circle
- **pending_confirmations**: burn detected, waiting for block finality
- **complete**: attestation signed and ready

Example::

    from bridge_routes.cctp.attestation import CircleAttestationSource
    from bridge_routes.cctp.constants import IRIS_API_BASE_URL
    from bridge_routes.session import create_attestation_session

    source = CircleAttestationSource(config, create_attestation_session(IRIS_API_BASE_URL))
    attestation = await source.fetch_attestation(message)
    if attestation is not None:
        print(attestation.attestation.hex())
"""

import asyncio
import logging
from dataclasses import dataclass

from bridge_routes.cctp.constants import CCTP_DOMAIN_NAMES
from bridge_routes.config import BridgeConfig
from bridge_routes.errors import InvalidPayload
from bridge_routes.messages import UnsignedMessage
from bridge_routes.session import AttestationSession

logger = logging.getLogger(__name__)

#: HTTP 404 status code indicating resource not found
HTTP_NOT_FOUND = 404


@dataclass(slots=True, frozen=True)
class CCTPAttestation:
    """Attestation data for a CCTP burn event.

    Contains the message and attestation needed to call
    ``receiveMessage()`` on the destination chain's MessageTransmitter.
    """

    #: The CCTP message bytes to relay to the destination chain
    message: bytes

    #: The signed attestation bytes from Circle's Iris service
    attestation: bytes

    #: Status from Iris API (e.g. "complete")
    status: str


def fetch_circle_attestation(
    session: AttestationSession,
    source_domain: int,
    transaction_hash: str,
    timeout: float = 30.0,
) -> CCTPAttestation | None:
    """One-shot check for a completed Iris attestation.

    :param session:
        Session pointing at an Iris API base URL.

    :param source_domain:
        CCTP domain ID of the source chain (e.g. 0 for Ethereum).

    :param transaction_hash:
        Transaction hash of the burn on the source chain.

    :return:
        :class:`CCTPAttestation`, or ``None`` while the burn is not
        indexed or still waiting for finality.

    :raises requests.HTTPError:
        If the Iris API returns a non-retryable error response.
    """
    # Iris API requires 0x-prefixed transaction hash
    if not transaction_hash.startswith("0x"):
        transaction_hash = f"0x{transaction_hash}"

    domain_name = CCTP_DOMAIN_NAMES.get(source_domain, f"domain-{source_domain}")
    url = f"{session.api_url}/v2/messages/{source_domain}?transactionHash={transaction_hash}"

    response = session.get(url, timeout=timeout)

    # Iris API returns 404 when the transaction is not yet indexed
    if response.status_code == HTTP_NOT_FOUND:
        logger.debug("Circle attestation not yet indexed (404) for %s on %s", transaction_hash, domain_name)
        return None

    response.raise_for_status()

    data = response.json()
    messages = data.get("messages", [])
    if not messages:
        return None

    msg = messages[0]
    status = msg.get("status", "")
    attestation_hex = msg.get("attestation")

    if status != "complete" or not attestation_hex or attestation_hex == "PENDING":
        logger.debug("Circle attestation status for %s on %s: %s", transaction_hash, domain_name, status)
        return None

    message_hex = msg.get("message", "")
    return CCTPAttestation(
        message=bytes.fromhex(message_hex.replace("0x", "")),
        attestation=bytes.fromhex(attestation_hex.replace("0x", "")),
        status=status,
    )


class CircleAttestationSource:
    """Looks up Circle attestations for parsed CCTP messages.

    HTTP calls run in a worker thread.
    """

    def __init__(self, config: BridgeConfig, session: AttestationSession, request_timeout: float = 30.0):
        self.config = config
        self.session = session
        self.request_timeout = request_timeout

    async def fetch_attestation(self, message: UnsignedMessage) -> CCTPAttestation | None:
        """One-shot lookup for the burn in ``message``.

        :raise InvalidPayload:
            The source chain has no CCTP domain.
        """
        source_domain = self.config.get_chain(message.from_chain).cctp_domain
        if source_domain is None:
            raise InvalidPayload(f"Chain {message.from_chain} is not CCTP-enabled")
        return await asyncio.to_thread(
            fetch_circle_attestation,
            self.session,
            source_domain,
            message.tx_hash,
            self.request_timeout,
        )
