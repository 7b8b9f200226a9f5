"""Transfer lifecycle state machine.

A :py:class:`TransferTracker` follows one transfer from the source chain
transaction to the funds arriving on the destination chain:

.. code-block:: text

    submitted -> attestation_pending -> attestation_ready
        -> automatic_relay_pending -> completed        (automatic routes)
        -> awaiting_manual_redeem  -> redeemed         (manual routes)

    attestation_pending -> failed                      (attestation bound hit)

``completed``, ``redeemed`` and ``failed`` are terminal. Nothing moves a
transfer out of them.

Relayers work on their own schedule, so an automatic transfer waits for
the relayer without a deadline unless the caller sets one.

Example::

    tracker = await TransferTracker.submit(route, "USDCeth", Decimal(100), "ethereum", sender, "avalanche", recipient)
    state = await tracker.run()
    if state == TransferState.awaiting_manual_redeem:
        await tracker.redeem(payer=recipient)
"""

import asyncio
import enum
import logging
from decimal import Decimal
from typing import Callable, Iterable

from tqdm_loggable.auto import tqdm

from bridge_routes.config import TokenId
from bridge_routes.errors import AttestationNotFound, AttestationTimeout, InvalidTransferState
from bridge_routes.messages import SignedMessage, UnsignedMessage
from bridge_routes.routes.base import RouteOptions, RouteStrategy

logger = logging.getLogger(__name__)


class TransferState(enum.Enum):
    """Where a transfer is in its lifecycle."""

    #: Source chain transaction sent
    submitted = "submitted"

    #: Message parsed, waiting for the attestation network to sign it
    attestation_pending = "attestation_pending"

    #: Signed message available
    attestation_ready = "attestation_ready"

    #: Waiting for the off-chain relayer to redeem
    automatic_relay_pending = "automatic_relay_pending"

    #: Relayer redeemed on the destination chain
    completed = "completed"

    #: Waiting for the user to redeem on the destination chain
    awaiting_manual_redeem = "awaiting_manual_redeem"

    #: Redeemed on the destination chain, by the user or anyone else
    redeemed = "redeemed"

    #: Attestation did not arrive within the polling bounds
    failed = "failed"


#: States nothing moves out of
TERMINAL_STATES = frozenset({TransferState.completed, TransferState.redeemed, TransferState.failed})

#: Legal moves of the state machine
ALLOWED_TRANSITIONS: dict[TransferState, frozenset[TransferState]] = {
    TransferState.submitted: frozenset({TransferState.attestation_pending}),
    TransferState.attestation_pending: frozenset({TransferState.attestation_ready, TransferState.failed}),
    TransferState.attestation_ready: frozenset({TransferState.automatic_relay_pending, TransferState.awaiting_manual_redeem}),
    TransferState.automatic_relay_pending: frozenset({TransferState.completed}),
    TransferState.awaiting_manual_redeem: frozenset({TransferState.redeemed}),
    TransferState.completed: frozenset(),
    TransferState.redeemed: frozenset(),
    TransferState.failed: frozenset(),
}

#: Text shown to the user per state
STATUS_TEXT: dict[TransferState, str] = {
    TransferState.submitted: "Transaction submitted",
    TransferState.attestation_pending: "Waiting for attestation",
    TransferState.attestation_ready: "Attestation ready",
    TransferState.automatic_relay_pending: "Unknown but likely pending",
    TransferState.completed: "Completed",
    TransferState.awaiting_manual_redeem: "Ready to redeem",
    TransferState.redeemed: "Redeemed",
    TransferState.failed: "Failed",
}

#: Progress bar position of each state, used by :py:func:`track_transfers_parallel`
STATE_PROGRESS: dict[TransferState, int] = {
    TransferState.submitted: 0,
    TransferState.attestation_pending: 1,
    TransferState.attestation_ready: 2,
    TransferState.automatic_relay_pending: 3,
    TransferState.awaiting_manual_redeem: 3,
    TransferState.completed: 4,
    TransferState.redeemed: 4,
    TransferState.failed: 4,
}

#: Called with ``(tracker, old_state, new_state)`` after every transition
StateChangeCallback = Callable[["TransferTracker", TransferState, TransferState], None]


class TransferTracker:
    """Drives one transfer through its lifecycle.

    Owned by the caller that submitted the transfer. Not safe to advance
    from several tasks at once.
    """

    def __init__(
        self,
        strategy: RouteStrategy,
        tx_hash: str,
        source_chain: str | int,
        dest_chain: str | int,
        on_state_change: StateChangeCallback | None = None,
    ):
        """
        :param strategy:
            Route the transfer was sent with.

        :param tx_hash:
            Source chain transaction id.

        :param on_state_change:
            Optional callback, see :py:data:`StateChangeCallback`.
        """
        self.strategy = strategy
        self.tx_hash = tx_hash
        self.source_chain = strategy.config.to_chain_name(source_chain)
        self.dest_chain = strategy.config.to_chain_name(dest_chain)
        self.on_state_change = on_state_change

        self.state = TransferState.submitted

        #: Parsed source chain message, once known
        self.message: UnsignedMessage | None = None

        #: Attested message, once known
        self.signed_message: SignedMessage | None = None

        #: Destination chain transaction completing the transfer, if observed
        self.redeem_tx: str | None = None

        #: Why the transfer failed
        self.error: Exception | None = None

        #: How many times the destination was checked for the relayer
        self.relay_polls = 0

    def __repr__(self) -> str:
        return f"<TransferTracker {self.tx_hash} {self.source_chain} -> {self.dest_chain} via {self.strategy.route.value}: {self.state.value}>"

    @classmethod
    async def submit(
        cls,
        strategy: RouteStrategy,
        token: TokenId | str,
        amount: Decimal | str,
        source_chain: str | int,
        sender: str,
        dest_chain: str | int,
        recipient: str,
        options: RouteOptions = None,
        on_state_change: StateChangeCallback | None = None,
    ) -> "TransferTracker":
        """Send the transfer and start tracking it in ``submitted``."""
        tx_hash = await strategy.send(token, amount, source_chain, sender, dest_chain, recipient, options)
        return cls(strategy, tx_hash, source_chain, dest_chain, on_state_change)

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    @property
    def status_text(self) -> str:
        return STATUS_TEXT[self.state]

    def _transition(self, new_state: TransferState):
        old_state = self.state
        if old_state in TERMINAL_STATES:
            logger.debug("Transfer %s is %s, ignoring move to %s", self.tx_hash, old_state.value, new_state.value)
            return

        if new_state not in ALLOWED_TRANSITIONS[old_state]:
            raise InvalidTransferState(f"Transfer {self.tx_hash} cannot move from {old_state.value} to {new_state.value}")

        self.state = new_state
        logger.info("Transfer %s: %s -> %s", self.tx_hash, old_state.value, new_state.value)
        if self.on_state_change is not None:
            self.on_state_change(self, old_state, new_state)

    async def advance(self) -> TransferState:
        """Perform one lifecycle step.

        Waiting for the attestation is a single step bounded by the
        attestation fetcher's config. Waiting for a relayer or for an
        external redeem is one destination chain check per step.

        :return:
            State after the step.
        """
        state = self.state

        if state in TERMINAL_STATES:
            return state

        if state == TransferState.submitted:
            self.message = await self.strategy.get_message(self.tx_hash, self.source_chain)
            self._transition(TransferState.attestation_pending)

        elif state == TransferState.attestation_pending:
            try:
                self.signed_message = await self.strategy.get_signed_message(self.message)
            except (AttestationNotFound, AttestationTimeout) as e:
                logger.warning("Attestation of %s did not arrive: %s", self.tx_hash, e)
                self.error = e
                self._transition(TransferState.failed)
            else:
                self._transition(TransferState.attestation_ready)

        elif state == TransferState.attestation_ready:
            if self.strategy.AUTOMATIC_DEPOSIT:
                self._transition(TransferState.automatic_relay_pending)
            else:
                self._transition(TransferState.awaiting_manual_redeem)

        elif state == TransferState.automatic_relay_pending:
            self.relay_polls += 1
            try:
                receive_tx = await self.strategy.chain_client.fetch_redeem_tx(self.message)
            except Exception as e:
                logger.warning("Relay completion lookup of %s failed, still pending: %s", self.tx_hash, e)
                receive_tx = None
            if receive_tx is not None:
                self.redeem_tx = receive_tx
                self._transition(TransferState.completed)

        elif state == TransferState.awaiting_manual_redeem:
            if await self.strategy.is_transfer_completed(self.dest_chain, self.signed_message):
                logger.info("Transfer %s was redeemed by another party", self.tx_hash)
                self._transition(TransferState.redeemed)

        return self.state

    async def run(self, relay_poll_interval: float = 5.0, max_relay_polls: int | None = None) -> TransferState:
        """Advance until the transfer is terminal or waits for the user.

        :param relay_poll_interval:
            Seconds between destination chain checks for the relayer.

        :param max_relay_polls:
            Stop checking for the relayer after this many checks and
            return ``automatic_relay_pending``. ``None`` waits forever.

        :return:
            ``completed``, ``redeemed``, ``failed``, ``awaiting_manual_redeem``,
            or ``automatic_relay_pending`` when ``max_relay_polls`` ran out.
        """
        while not self.is_terminal:
            state = self.state

            if state == TransferState.awaiting_manual_redeem:
                # One check for a redeem done by someone else
                await self.advance()
                break

            if state == TransferState.automatic_relay_pending:
                if max_relay_polls is not None and self.relay_polls >= max_relay_polls:
                    logger.info("Transfer %s still pending after %d relay checks", self.tx_hash, self.relay_polls)
                    break
                await self.advance()
                if self.state == TransferState.automatic_relay_pending:
                    await asyncio.sleep(relay_poll_interval)
                continue

            await self.advance()

        return self.state

    async def redeem(self, payer: str) -> str:
        """Redeem a manual transfer on the destination chain.

        :return:
            Destination chain transaction id.

        :raise InvalidTransferState:
            The transfer is not waiting for a manual redeem.
        """
        if self.state != TransferState.awaiting_manual_redeem:
            raise InvalidTransferState(f"Transfer {self.tx_hash} is {self.state.value}, cannot redeem")
        tx = await self.strategy.redeem(self.dest_chain, self.signed_message, payer)
        self.redeem_tx = tx
        self._transition(TransferState.redeemed)
        return tx


async def track_transfers_parallel(
    trackers: Iterable[TransferTracker],
    progress: bool = True,
    relay_poll_interval: float = 5.0,
    max_relay_polls: int | None = None,
) -> list[TransferState | BaseException]:
    """Run several trackers concurrently.

    A failing tracker does not stop the others.

    :param progress:
        Show a ``tqdm`` progress bar advancing as transfers change state.

    :return:
        Final state of each tracker, or the exception it raised, in input order.
    """
    trackers = list(trackers)
    if not trackers:
        return []

    n_steps = max(STATE_PROGRESS.values())
    progress_bar = tqdm(
        total=len(trackers) * n_steps,
        desc="Bridge transfers",
        unit="step",
        disable=not progress,
    )

    def _make_callback(tracker: TransferTracker) -> StateChangeCallback:
        user_callback = tracker.on_state_change

        def on_state_change(t: TransferTracker, old_state: TransferState, new_state: TransferState):
            # Failure jumps to the end of the bar
            advance = max(0, STATE_PROGRESS[new_state] - STATE_PROGRESS[old_state])
            if advance > 0:
                progress_bar.update(advance)
            counts = {}
            for other in trackers:
                counts[other.state.value] = counts.get(other.state.value, 0) + 1
            progress_bar.set_postfix_str(", ".join(f"{k}: {v}" for k, v in sorted(counts.items())))
            if user_callback is not None:
                user_callback(t, old_state, new_state)

        return on_state_change

    user_callbacks = [tracker.on_state_change for tracker in trackers]
    for tracker in trackers:
        progress_bar.update(STATE_PROGRESS[tracker.state])
        tracker.on_state_change = _make_callback(tracker)

    try:
        results = await asyncio.gather(
            *(tracker.run(relay_poll_interval=relay_poll_interval, max_relay_polls=max_relay_polls) for tracker in trackers),
            return_exceptions=True,
        )
    finally:
        progress_bar.close()
        for tracker, user_callback in zip(trackers, user_callbacks):
            tracker.on_state_change = user_callback

    for tracker, result in zip(trackers, results):
        if isinstance(result, BaseException):
            logger.warning("Tracking transfer %s failed: %s", tracker.tx_hash, result)
    return results
