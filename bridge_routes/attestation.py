"""Guardian attestation (VAA) retrieval.

After a transfer is submitted on the source chain, the guardian network
observes the emitted message and signs it once the source chain reaches
finality. The signed message, the VAA, is what the destination chain
accepts as proof.

This module polls a guardian REST endpoint for the VAA:

- **404**: message not yet signed, retry later
- **200**: ``vaaBytes`` holds the base64 encoded signed VAA

"Not yet signed" is the normal answer for the first minutes of every
transfer, so :py:meth:`AttestationFetcher.poll` reports it as a typed
result instead of raising. :py:meth:`AttestationFetcher.fetch` is the
raising variant for callers that want the signed message or an error.

Example::

    from bridge_routes.attestation import GUARDIAN_API_URL, AttestationFetcher, AttestationReady, GuardianAttestationSource
    from bridge_routes.session import create_attestation_session

    session = create_attestation_session(GUARDIAN_API_URL)
    fetcher = AttestationFetcher(GuardianAttestationSource(config, session))

    result = await fetcher.poll(message)
    if isinstance(result, AttestationReady):
        print(result.signed_message.vaa.hex())
"""

import asyncio
import base64
import logging
import time
from dataclasses import dataclass
from typing import Callable, Protocol

from hexbytes import HexBytes

from bridge_routes.cctp.attestation import CCTPAttestation, CircleAttestationSource
from bridge_routes.config import BridgeConfig
from bridge_routes.errors import AttestationNotFound, AttestationTimeout
from bridge_routes.messages import SignedMessage, UnsignedMessage
from bridge_routes.session import AttestationSession

logger = logging.getLogger(__name__)

#: Guardian REST API served by Wormholescan (mainnet)
GUARDIAN_API_URL = "https://api.wormholescan.io"

#: Guardian REST API served by Wormholescan (testnet)
GUARDIAN_TESTNET_API_URL = "https://api.testnet.wormholescan.io"

#: HTTP 404 status code indicating the VAA is not signed yet
HTTP_NOT_FOUND = 404

#: Callback invoked after every poll attempt with ``(status, attempt)``.
#: *status* is ``"pending"`` or ``"complete"``.
AttestationCallback = Callable[[str, int], None]


class AttestationSource(Protocol):
    """Anything that can look up a signed VAA once, without waiting."""

    async def fetch_signed_vaa(self, message: UnsignedMessage) -> bytes | None:
        """Signed VAA bytes, or ``None`` if the guardians have not signed yet."""
        ...


def fetch_signed_vaa(
    session: AttestationSession,
    chain_id: int,
    emitter_address: str,
    sequence: int,
    timeout: float = 30.0,
) -> bytes | None:
    """One-shot lookup of a signed VAA.

    Does not block or retry beyond the session's HTTP retry policy.

    :param session:
        Session from :py:func:`~bridge_routes.session.create_attestation_session`.

    :param chain_id:
        Bridge chain id of the emitter chain.

    :param emitter_address:
        Emitter contract, 32 byte hex.

    :param sequence:
        Emitter sequence number of the message.

    :return:
        VAA bytes, or ``None`` if not signed yet.

    :raises requests.HTTPError:
        If the API returns a non-retryable error (not 404).
    """
    emitter = emitter_address.removeprefix("0x").lower().rjust(64, "0")
    url = f"{session.api_url}/v1/signed_vaa/{chain_id}/{emitter}/{sequence}"

    response = session.get(url, timeout=timeout)

    if response.status_code == HTTP_NOT_FOUND:
        return None

    response.raise_for_status()

    data = response.json()
    vaa_b64 = data.get("vaaBytes")
    if not vaa_b64:
        return None

    return base64.b64decode(vaa_b64)


class GuardianAttestationSource:
    """:py:class:`AttestationSource` backed by the guardian REST API.

    HTTP calls are blocking, they run in a worker thread so the event
    loop keeps serving other transfers.
    """

    def __init__(self, config: BridgeConfig, session: AttestationSession, request_timeout: float = 30.0):
        self.config = config
        self.session = session
        self.request_timeout = request_timeout

    async def fetch_signed_vaa(self, message: UnsignedMessage) -> bytes | None:
        chain_id = self.config.to_chain_id(message.from_chain)
        return await asyncio.to_thread(
            fetch_signed_vaa,
            self.session,
            chain_id,
            message.emitter_address,
            message.sequence,
            self.request_timeout,
        )


@dataclass(slots=True)
class AttestationConfig:
    """How long and how often to poll for a signed message.

    Example:

    .. code-block:: python

        # Production (default)
        config = AttestationConfig()

        # Fast-fail for tests
        config = AttestationConfig.create_test_config()
    """

    #: Seconds between poll attempts
    poll_interval: float = 5.0

    #: Give up after this many attempts
    max_attempts: int = 240

    #: Give up after this many seconds, whichever bound comes first
    timeout: float = 1800.0

    @classmethod
    def create_test_config(cls) -> "AttestationConfig":
        """Poll config that does not sleep, for tests."""
        return cls(poll_interval=0.0, max_attempts=3, timeout=60.0)


#: Default production polling configuration
DEFAULT_ATTESTATION_CONFIG = AttestationConfig()


@dataclass(slots=True, frozen=True)
class AttestationReady:
    """The message is signed."""

    signed_message: SignedMessage
    attempts: int


@dataclass(slots=True, frozen=True)
class AttestationPending:
    """Not signed within the allowed number of attempts."""

    attempts: int


@dataclass(slots=True, frozen=True)
class AttestationTimedOut:
    """Not signed before the deadline."""

    attempts: int
    elapsed: float


#: Outcome of :py:meth:`AttestationFetcher.poll`
AttestationResult = AttestationReady | AttestationPending | AttestationTimedOut


class AttestationFetcher:
    """Bounded polling for signed messages, with a cache.

    Signed messages never change, so each one is fetched from the source
    at most once per fetcher. The same holds for Circle attestations of
    CCTP burns, which are polled together with the VAA when a
    ``circle_source`` is passed.

    Each poll attempt is independent. Cancelling the awaiting task
    abandons the poll and leaves nothing behind.
    """

    def __init__(self, source: AttestationSource, config: AttestationConfig = DEFAULT_ATTESTATION_CONFIG):
        self.source = source
        self.config = config
        self._cache: dict[tuple[str, str, int], HexBytes] = {}
        self._circle_cache: dict[tuple[str, str, int], CCTPAttestation] = {}

    async def fetch_once(self, message: UnsignedMessage, circle_source: CircleAttestationSource | None = None) -> SignedMessage | None:
        """Single lookup, no waiting.

        :param circle_source:
            Also require Circle's attestation of the burn.

        :return:
            Signed message, or ``None`` if not signed yet.
        """
        key = message.message_id
        vaa = self._cache.get(key)
        if vaa is None:
            raw = await self.source.fetch_signed_vaa(message)
            if raw is None:
                return None
            vaa = HexBytes(raw)
            self._cache[key] = vaa

        if circle_source is None:
            return SignedMessage.from_unsigned(message, vaa)

        circle = self._circle_cache.get(key)
        if circle is None:
            circle = await circle_source.fetch_attestation(message)
            if circle is None:
                logger.debug("VAA of %s is signed, Circle attestation pending", message.tx_hash)
                return None
            self._circle_cache[key] = circle
        return SignedMessage.from_unsigned(message, vaa, circle.message, circle.attestation)

    async def poll(
        self,
        message: UnsignedMessage,
        on_attempt: AttestationCallback | None = None,
        circle_source: CircleAttestationSource | None = None,
    ) -> AttestationResult:
        """Poll until the message is signed or a bound is hit.

        :param message:
            Parsed source chain message.

        :param on_attempt:
            Optional progress callback, see :py:data:`AttestationCallback`.

        :param circle_source:
            For CCTP transfers, also wait for Circle's attestation within the same bounds.

        :return:
            :py:class:`AttestationReady`, :py:class:`AttestationPending`
            when :py:attr:`AttestationConfig.max_attempts` ran out, or
            :py:class:`AttestationTimedOut` when the deadline passed.

        :raises requests.HTTPError:
            If the attestation API returns a non-retryable error.
        """
        config = self.config
        start_time = time.monotonic()
        attempt = 0

        logger.info(
            "Waiting for attestation of %s on %s: emitter=%s, sequence=%d",
            message.tx_hash,
            message.from_chain,
            message.emitter_address,
            message.sequence,
        )

        while True:
            elapsed = time.monotonic() - start_time

            if attempt >= config.max_attempts:
                logger.info("Attestation for %s not available after %d attempts", message.tx_hash, attempt)
                return AttestationPending(attempts=attempt)

            if elapsed >= config.timeout:
                logger.info("Attestation for %s not available after %.1fs", message.tx_hash, elapsed)
                return AttestationTimedOut(attempts=attempt, elapsed=elapsed)

            attempt += 1
            # First attempt at INFO so the user sees the poll started, then DEBUG
            log_level = logging.INFO if attempt == 1 else logging.DEBUG
            logger.log(
                log_level,
                "Polling attestation: tx=%s, attempt=%d, elapsed=%.1fs",
                message.tx_hash,
                attempt,
                elapsed,
            )

            signed = await self.fetch_once(message, circle_source)

            if signed is not None:
                if on_attempt is not None:
                    on_attempt("complete", attempt)
                logger.info("Attestation ready for %s after %d attempts (%.1fs)", message.tx_hash, attempt, elapsed)
                return AttestationReady(signed_message=signed, attempts=attempt)

            if on_attempt is not None:
                on_attempt("pending", attempt)

            await asyncio.sleep(config.poll_interval)

    async def fetch(
        self,
        message: UnsignedMessage,
        on_attempt: AttestationCallback | None = None,
        circle_source: CircleAttestationSource | None = None,
    ) -> SignedMessage:
        """Poll and return the signed message or raise.

        :raise AttestationNotFound:
            Not signed within the allowed number of attempts.

        :raise AttestationTimeout:
            Not signed before the deadline.
        """
        result = await self.poll(message, on_attempt=on_attempt, circle_source=circle_source)
        if isinstance(result, AttestationReady):
            return result.signed_message
        if isinstance(result, AttestationPending):
            raise AttestationNotFound(f"Attestation not found for tx {message.tx_hash} after {result.attempts} attempts")
        raise AttestationTimeout(f"Attestation not ready after {result.elapsed:.1f}s for tx {message.tx_hash} on {message.from_chain}")
