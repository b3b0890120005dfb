"""
Shared helpers for the per-exchange normalizers.

Normalizers are pure: no I/O, no shared state. Absent optional numbers
default to zero; anything that cannot become a valid canonical entity
raises NormalizationError carrying the raw payload.
"""

from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Mapping, Optional, Type, TypeVar

from pydantic import ValidationError

from exchange_gateway.errors import NormalizationError
from exchange_gateway.models.balance import Balance
from exchange_gateway.models.order import Order, OrderRequest, OrderStatus, OrderType
from exchange_gateway.models.ticker import Ticker

ZERO = Decimal("0")
HUNDRED = Decimal("100")

E = TypeVar("E", bound=Enum)


def require_field(raw: Any, key: str, exchange_id: str) -> Any:
    """
    Fetch a required field from a raw mapping.

    Raises:
        NormalizationError: If ``raw`` is not a mapping or the key is absent/null.
    """
    if not isinstance(raw, Mapping):
        raise NormalizationError(
            f"Expected an object, got {type(raw).__name__}",
            exchange_id=exchange_id,
            raw=raw,
        )
    value = raw.get(key)
    if value is None or value == "":
        raise NormalizationError(
            f"Missing required field '{key}'",
            exchange_id=exchange_id,
            raw=raw,
        )
    return value


def to_decimal(
    value: Any,
    field: str,
    exchange_id: str,
    default: Optional[Decimal] = None,
) -> Decimal:
    """
    Convert a raw value to Decimal.

    Args:
        value: String or number from the exchange payload.
        field: Field name, for error messages.
        exchange_id: Exchange the value came from.
        default: Returned when value is None or "" (None means required).

    Raises:
        NormalizationError: If the value is missing (no default) or not numeric.
    """
    if value is None or value == "":
        if default is not None:
            return default
        raise NormalizationError(
            f"Missing numeric field '{field}'",
            exchange_id=exchange_id,
            raw=value,
        )
    if isinstance(value, bool):
        raise NormalizationError(
            f"Field '{field}' is not numeric: {value!r}",
            exchange_id=exchange_id,
            raw=value,
        )
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise NormalizationError(
            f"Field '{field}' is not numeric: {value!r}",
            exchange_id=exchange_id,
            raw=value,
        ) from e
    if not result.is_finite():
        raise NormalizationError(
            f"Field '{field}' is not finite: {value!r}",
            exchange_id=exchange_id,
            raw=value,
        )
    return result


def make_balance(
    currency: Any,
    free: Decimal,
    locked: Decimal,
    exchange_id: str,
    raw: Any = None,
) -> Balance:
    """
    Build a Balance from free and locked amounts.

    Raises:
        NormalizationError: If any amount is negative or the currency is empty.
    """
    if not currency or not isinstance(currency, str):
        raise NormalizationError(
            "Balance entry has no currency",
            exchange_id=exchange_id,
            raw=raw,
        )
    try:
        return Balance(
            currency=currency.upper(),
            free=free,
            locked=locked,
            total=free + locked,
        )
    except ValidationError as e:
        raise NormalizationError(
            f"Invalid balance for {currency}: {e.errors()[0]['msg']}",
            exchange_id=exchange_id,
            raw=raw,
        ) from e


def balance_from_total(
    currency: Any,
    total: Decimal,
    free: Decimal,
    exchange_id: str,
    raw: Any = None,
) -> Balance:
    """
    Build a Balance from total and free amounts (locked = total - free).

    Raises:
        NormalizationError: If free exceeds total.
    """
    locked = total - free
    if locked < ZERO:
        raise NormalizationError(
            f"Free amount ({free}) exceeds total ({total}) for {currency}",
            exchange_id=exchange_id,
            raw=raw,
        )
    return make_balance(currency, free, locked, exchange_id, raw)


def change_from_open(last: Decimal, open_price: Decimal) -> tuple[Decimal, Decimal]:
    """
    Absolute and percent 24h change from the opening price.

    Returns:
        tuple: (absolute, percent); percent is 0 when open is 0.
    """
    absolute = last - open_price
    if open_price == ZERO:
        return absolute, ZERO
    return absolute, absolute / open_price * HUNDRED


def change_from_ratio(last: Decimal, ratio: Decimal) -> tuple[Decimal, Decimal]:
    """
    Absolute and percent 24h change from a fractional change ratio.

    ``ratio`` is relative to the opening price (0.0123 == +1.23%).
    """
    denominator = Decimal("1") + ratio
    if denominator == ZERO:
        return ZERO, ratio * HUNDRED
    open_price = last / denominator
    return last - open_price, ratio * HUNDRED


def ms_to_datetime(value: Any, exchange_id: str) -> datetime:
    """
    Convert a millisecond epoch timestamp to an aware UTC datetime.

    Missing values map to the current time.
    """
    if value is None or value == "":
        return datetime.now(timezone.utc)
    try:
        return datetime.fromtimestamp(int(value) / 1000, tz=timezone.utc)
    except (TypeError, ValueError, OverflowError, OSError) as e:
        raise NormalizationError(
            f"Invalid timestamp: {value!r}",
            exchange_id=exchange_id,
            raw=value,
        ) from e


def iso_to_datetime(value: Any, exchange_id: str) -> datetime:
    """
    Parse an ISO-8601 timestamp ("2024-01-01T00:00:00.123456Z").

    Missing values map to the current time.
    """
    if value is None or value == "":
        return datetime.now(timezone.utc)
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError as e:
        raise NormalizationError(
            f"Invalid timestamp: {value!r}",
            exchange_id=exchange_id,
            raw=value,
        ) from e
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def make_ticker(exchange_id: str, raw: Any = None, **fields: Any) -> Ticker:
    """
    Build a Ticker, converting validation failures into NormalizationError.

    Raises:
        NormalizationError: If the values break ticker invariants (e.g. high < low).
    """
    try:
        return Ticker(exchange_id=exchange_id, **fields)
    except ValidationError as e:
        raise NormalizationError(
            f"Invalid ticker: {e.errors()[0]['msg']}",
            exchange_id=exchange_id,
            raw=raw,
        ) from e


def make_order(exchange_id: str, raw: Any = None, **fields: Any) -> Order:
    """
    Build an Order, converting validation failures into NormalizationError.
    """
    try:
        return Order(exchange_id=exchange_id, **fields)
    except ValidationError as e:
        raise NormalizationError(
            f"Invalid order: {e.errors()[0]['msg']}",
            exchange_id=exchange_id,
            raw=raw,
        ) from e


def to_enum(enum_cls: Type[E], value: Any, field: str, exchange_id: str, raw: Any = None) -> E:
    """
    Convert a raw string to a member of a lower-case string enum.

    Raises:
        NormalizationError: If the value is not a known member.
    """
    try:
        return enum_cls(str(value).lower())
    except ValueError as e:
        raise NormalizationError(
            f"Unknown {field}: {value!r}",
            exchange_id=exchange_id,
            raw=raw if raw is not None else value,
        ) from e


def map_status(
    status_map: Mapping[str, OrderStatus],
    value: Any,
    exchange_id: str,
    raw: Any = None,
) -> OrderStatus:
    """
    Translate an exchange order status through its status map.

    Raises:
        NormalizationError: If the status is not in the map.
    """
    status = status_map.get(str(value))
    if status is None:
        raise NormalizationError(
            f"Unknown order status: {value!r}",
            exchange_id=exchange_id,
            raw=raw if raw is not None else value,
        )
    return status


def order_from_ack(
    exchange_id: str,
    order_id: Any,
    request: OrderRequest,
    symbol: str,
    raw: Any = None,
    status: OrderStatus = OrderStatus.SUBMITTED,
) -> Order:
    """
    Build an Order from a placement acknowledgement that only carries ids.

    Quantity, price and side come from the request that was sent.

    Raises:
        NormalizationError: If the acknowledgement has no order id.
    """
    if order_id is None or order_id == "":
        raise NormalizationError(
            "Order acknowledgement has no order id",
            exchange_id=exchange_id,
            raw=raw,
        )
    return make_order(
        exchange_id,
        raw,
        order_id=str(order_id),
        symbol=symbol,
        side=request.side,
        order_type=request.order_type,
        quantity=request.quantity,
        price=request.price if request.order_type == OrderType.LIMIT else None,
        status=status,
        created_at=datetime.now(timezone.utc),
        client_order_id=request.client_order_id,
    )
