"""Exceptions raised by route strategies, the dispatcher and the transfer tracker.

The hierarchy tells the caller what to do next:

- :class:`RouteUnavailable`: pick another route
- :class:`AttestationNotFound`, :class:`AttestationTimeout`: wait and retry
- :class:`UnsupportedOperation`, :class:`InvalidPayload`: programming errors, do not retry
- :class:`ArithmeticInvalid`: show a validation error to the user

Each class also derives from the closest built-in exception, so code
catching e.g. :class:`TimeoutError` keeps working.
"""


class RouteError(Exception):
    """Base class for all errors raised by :py:mod:`bridge_routes`."""


class RouteUnavailable(RouteError):
    """Route, token or chain combination is not supported."""


class UnknownRoute(RouteError, KeyError):
    """Route tag is not registered with the dispatcher."""

    def __str__(self) -> str:
        # KeyError quotes its argument
        return Exception.__str__(self)


class AttestationNotFound(RouteError, LookupError):
    """Attestation network has not signed the message yet."""


class AttestationTimeout(RouteError, TimeoutError):
    """Polling for a signed message ran past its deadline."""


class UnsupportedOperation(RouteError, NotImplementedError):
    """The transfer mechanism deliberately does not offer this capability.

    E.g. manual redemption of an automatically relayed transfer.
    """


class InvalidPayload(RouteError, ValueError):
    """A parsed message belongs to a different transfer mechanism."""


class ArithmeticInvalid(RouteError, ArithmeticError):
    """Computed amount is negative or fee data needed for the computation is missing."""


class InvalidTransferState(RouteError):
    """Transfer tracker was asked for an action its current state does not allow."""
