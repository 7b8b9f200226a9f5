"""Token amount conversions across chains with different decimal precision.

Bridge messages carry amounts in a canonical precision of :py:data:`MAX_DECIMALS`
decimal places. A token with 18 decimals on its home chain loses its extra
digits when it crosses the bridge, a token with 6 decimals gains trailing zeros.

Conversions that lose precision always truncate towards zero. Rounding up
would credit the recipient with more value than was locked on the source chain.

Raw amounts are integers in the smallest unit of a token. Human readable
amounts are :py:class:`decimal.Decimal`.

Example::

    from bridge_routes.decimals import normalize_amount, to_normalized_decimals

    # 1 USDC at 6 decimals
    assert normalize_amount(1_000_000, 6) == 100_000_000

    # 9 decimal token, last digit is dropped, not rounded
    assert to_normalized_decimals(1_123_456_789, 9) == Decimal("1.12345678")
"""

from decimal import ROUND_DOWN, ROUND_HALF_UP, Context, Decimal, getcontext, localcontext

from bridge_routes.errors import ArithmeticInvalid

#: Canonical precision of amounts inside bridge messages
MAX_DECIMALS = 8

#: Placeholder shown in display rows when a value is not known
NO_INPUT = "-"


def as_decimal(value: Decimal | int | float | str | None) -> Decimal:
    """Convert user input to Decimal.

    Floats go through ``str()`` so ``0.1`` becomes ``Decimal("0.1")``
    instead of its binary approximation.

    :return:
        ``Decimal(0)`` for ``None``
    """
    if value is None:
        return Decimal(0)
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def _exact_context(value: Decimal, places: int = 0) -> Context:
    """Arithmetic context wide enough to hold ``value`` with ``places`` fractional digits."""
    context = getcontext().copy()
    context.prec = max(context.prec, value.adjusted() + abs(places) + 2)
    return context


def _check_raw(amount: int):
    if amount < 0:
        raise ArithmeticInvalid(f"Raw token amount cannot be negative: {amount}")


def normalize_amount(amount: int, decimals: int, canonical_decimals: int = MAX_DECIMALS) -> int:
    """Convert a raw amount from token precision to the canonical bridge precision.

    :param amount:
        Raw amount in the token's native precision.

    :param decimals:
        Decimals of the token on the chain the amount comes from.

    :param canonical_decimals:
        Target precision, :py:data:`MAX_DECIMALS` unless testing.

    :return:
        Raw amount in canonical precision. Excess digits are truncated.
    """
    _check_raw(amount)
    if decimals > canonical_decimals:
        return amount // 10 ** (decimals - canonical_decimals)
    return amount * 10 ** (canonical_decimals - decimals)


def denormalize_amount(amount: int, decimals: int, canonical_decimals: int = MAX_DECIMALS) -> int:
    """Convert a raw canonical amount back to token precision.

    Exact inverse of :py:func:`normalize_amount` when the value fits the
    canonical precision. Truncates when the token has fewer decimals than
    the canonical precision and the amount has digits beyond them.
    """
    _check_raw(amount)
    if decimals > canonical_decimals:
        return amount * 10 ** (decimals - canonical_decimals)
    return amount // 10 ** (canonical_decimals - decimals)


def truncate_decimals(value: Decimal, places: int) -> Decimal:
    """Cut a decimal to ``places`` fractional digits without rounding."""
    with localcontext(_exact_context(value, places)):
        return value.quantize(Decimal(1).scaleb(-places), rounding=ROUND_DOWN)


def round_decimals(value: Decimal, places: int) -> Decimal:
    """Round half up to ``places`` fractional digits."""
    with localcontext(_exact_context(value, places)):
        return value.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)


def to_decimal(raw: int | str, decimals: int, places: int | None = None) -> Decimal:
    """Format a raw amount into a human readable decimal.

    :param raw:
        Raw integer amount, or its string form.

    :param decimals:
        Token decimals the raw amount is expressed in.

    :param places:
        Optionally truncate the result to this many fractional digits.
    """
    value = Decimal(int(raw))
    with localcontext(_exact_context(value, decimals)):
        value = value.scaleb(-decimals)
    if places is not None and places < decimals:
        value = truncate_decimals(value, places)
    return value


def from_decimal(amount: Decimal | int | float | str, decimals: int) -> int:
    """Parse a human readable amount into raw units.

    Digits beyond the token precision are truncated.

    :raise ArithmeticInvalid:
        If the amount is negative.
    """
    value = as_decimal(amount)
    if value < 0:
        raise ArithmeticInvalid(f"Token amount cannot be negative: {value}")
    truncated = truncate_decimals(value, decimals)
    with localcontext(_exact_context(truncated, decimals)):
        return int(truncated.scaleb(decimals))


def to_normalized_decimals(raw: int, decimals: int, max_decimals: int = MAX_DECIMALS) -> Decimal:
    """Human readable value of a raw amount, cut to the canonical precision.

    ``to_normalized_decimals(1_123_456_789, 9) == Decimal("1.12345678")``
    """
    return to_decimal(raw, decimals, places=max_decimals)


def to_fixed_decimals(value: Decimal | int | float | str, places: int) -> str:
    """Display string with at most ``places`` fractional digits, truncated.

    Trailing zeros are not padded: ``to_fixed_decimals("1.5", 6) == "1.5"``.
    """
    value = truncate_decimals(as_decimal(value), places)
    with localcontext(_exact_context(value, places)):
        text = format(value.normalize(), "f") if value != 0 else "0"
    return text
