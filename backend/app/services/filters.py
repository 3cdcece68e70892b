"""Transaction filtering and signed aggregation.

A ``TransactionFilter`` holds up to seven independent, optional predicates.
``build_conditions`` turns the present ones into a single ``WHERE`` fragment
joined by ``AND``; absent fields add nothing, so an empty filter is a plain
full scan.
"""

import re
import uuid
from dataclasses import dataclass, fields
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Iterable

from psycopg import sql

from app.core.errors import InvalidFilter
from app.models.public import Category, Transaction, TransactionKind

_DATE_ONLY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
# "+" in an unencoded query string arrives as a space.
_SPACE_OFFSET_RE = re.compile(r"(T[0-9:.]+) (\d{2}:?\d{2})$")

# One clause per filter field, in the order they are appended.
_CLAUSES: tuple[tuple[str, sql.SQL], ...] = (
    ("user_id", sql.SQL("user_id = %s")),
    ("category", sql.SQL("category = %s")),
    ("kind", sql.SQL("transaction_type = %s::transaction_type")),
    ("amount_min", sql.SQL("amount >= %s")),
    ("amount_max", sql.SQL("amount <= %s")),
    ("start_time", sql.SQL("created_at >= %s")),
    ("end_time", sql.SQL("created_at <= %s")),
)


@dataclass(frozen=True)
class TransactionFilter:
    user_id: uuid.UUID | None = None
    category: Category | None = None
    kind: TransactionKind | None = None
    amount_min: Decimal | None = None
    amount_max: Decimal | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None

    @classmethod
    def from_params(
        cls,
        user_id: str | None = None,
        category: str | None = None,
        transaction_type: str | None = None,
        amount_min: str | None = None,
        amount_max: str | None = None,
        start_timestamp: str | None = None,
        end_timestamp: str | None = None,
    ) -> "TransactionFilter":
        """Build a filter from raw query-string values.

        Blank values count as absent. Anything malformed raises
        ``InvalidFilter`` naming the offending parameter.
        """
        return cls(
            user_id=parse_uuid_param(user_id, "user_id"),
            category=parse_enum_param(category, Category, "category"),
            kind=parse_enum_param(transaction_type, TransactionKind, "transaction_type"),
            amount_min=parse_decimal_param(amount_min, "amount_min"),
            amount_max=parse_decimal_param(amount_max, "amount_max"),
            start_time=parse_timestamp_param(start_timestamp, "start_timestamp"),
            end_time=parse_timestamp_param(end_timestamp, "end_timestamp", end_of_day=True),
        )

    def is_empty(self) -> bool:
        return all(getattr(self, f.name) is None for f in fields(self))


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def parse_uuid_param(value: Any, field_name: str) -> uuid.UUID | None:
    if _blank(value):
        return None
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value).strip())
    except (TypeError, ValueError, AttributeError):
        raise InvalidFilter(f"Invalid {field_name}")


def parse_enum_param(value: Any, enum_cls: type[Enum], field_name: str) -> Any:
    if _blank(value):
        return None
    try:
        return enum_cls(value.strip() if isinstance(value, str) else value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise InvalidFilter(f"Invalid {field_name}, expected one of: {allowed}")


def parse_decimal_param(value: Any, field_name: str) -> Decimal | None:
    if _blank(value):
        return None
    if isinstance(value, bool):
        raise InvalidFilter(f"Invalid {field_name}")
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation:
        raise InvalidFilter(f"Invalid {field_name}, expected a decimal number")
    if not amount.is_finite():
        raise InvalidFilter(f"Invalid {field_name}, expected a decimal number")
    return amount


def parse_timestamp_param(value: Any, field_name: str, end_of_day: bool = False) -> datetime | None:
    """Parse an ISO-8601 date-time or a bare ``YYYY-MM-DD`` date into UTC.

    Bare dates cover the whole day: midnight for a start bound, the last
    microsecond of the day for an end bound.
    """
    if _blank(value):
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        raw = str(value).strip()
        if _DATE_ONLY_RE.fullmatch(raw):
            try:
                d = date.fromisoformat(raw)
            except ValueError:
                raise InvalidFilter(f"Invalid {field_name}, expected ISO-8601 timestamp")
            dt = datetime.combine(d, time.min, tzinfo=timezone.utc)
            if end_of_day:
                dt += timedelta(days=1) - timedelta(microseconds=1)
            return dt
        raw = _SPACE_OFFSET_RE.sub(r"\1+\2", raw)
        if raw.endswith(("Z", "z")):
            raw = raw[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(raw)
        except ValueError:
            raise InvalidFilter(f"Invalid {field_name}, expected ISO-8601 timestamp")
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def build_conditions(flt: TransactionFilter) -> tuple[sql.Composable, list[Any]]:
    """Return the ``WHERE`` fragment for ``flt`` and its bound parameters."""
    clauses: list[sql.Composable] = []
    params: list[Any] = []
    for field_name, clause in _CLAUSES:
        value = getattr(flt, field_name)
        if value is None:
            continue
        clauses.append(clause)
        params.append(value.value if isinstance(value, Enum) else value)

    if not clauses:
        return sql.SQL(""), params
    return sql.SQL(" WHERE ") + sql.SQL(" AND ").join(clauses), params


def signed_amount(kind: TransactionKind | str, amount: Decimal) -> Decimal:
    """Income counts as ``+amount``, Expense as ``-amount``."""
    kind = TransactionKind(kind)
    if kind is TransactionKind.INCOME:
        return amount
    return -amount


def sum_signed_amounts(transactions: Iterable[Transaction]) -> Decimal:
    total = Decimal("0")
    for tx in transactions:
        total += signed_amount(tx.transaction_type, tx.amount)
    return total
