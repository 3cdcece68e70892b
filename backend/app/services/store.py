import logging
import uuid
from contextlib import contextmanager
from decimal import Decimal
from typing import Any, Iterator

import psycopg
from passlib.hash import bcrypt
from psycopg import sql
from psycopg.errors import ForeignKeyViolation, UniqueViolation
from psycopg_pool import ConnectionPool

from app.core.errors import DuplicateKey, InvalidAmount, InvalidInput, NotFound, StorageUnavailable
from app.models.public import Category, Transaction, TransactionKind, User
from app.services.filters import TransactionFilter, build_conditions, sum_signed_amounts

logger = logging.getLogger(__name__)

AMOUNT_SCALE = 4
# NUMERIC(19,4) leaves 15 digits before the point.
AMOUNT_INTEGER_DIGITS = 15
PASSWORD_MAX_BYTES = 72

_USER_FIELDS = "id, email, name, created_at, updated_at"
_TRANSACTION_FIELDS = (
    "id, user_id, transaction_type::text AS transaction_type, amount, category, "
    "description, created_at, last_updated_at"
)


def validate_amount(amount: Any) -> Decimal:
    """Return ``amount`` as a Decimal, rejecting anything that is not a
    finite positive number that fits the ``NUMERIC(19,4)`` amount column."""
    if isinstance(amount, bool) or not isinstance(amount, (Decimal, int, float, str)):
        raise InvalidAmount("Invalid amount")
    if isinstance(amount, float):
        amount = str(amount)
    try:
        value = Decimal(amount)
    except ArithmeticError:
        raise InvalidAmount("Invalid amount")
    if not value.is_finite():
        raise InvalidAmount("Invalid amount")
    if value <= 0:
        raise InvalidAmount("Amount must be greater than zero")
    if value.as_tuple().exponent < -AMOUNT_SCALE:
        raise InvalidAmount(f"Amount supports at most {AMOUNT_SCALE} decimal places")
    if value.adjusted() >= AMOUNT_INTEGER_DIGITS:
        raise InvalidAmount(f"Amount supports at most {AMOUNT_INTEGER_DIGITS} integer digits")
    return value


def normalize_email(email: str | None) -> str:
    return (email or "").strip()


class RecordStore:
    """Users and transactions persisted in PostgreSQL.

    Each method is a single read or write on one pooled connection. Driver
    errors are translated into ``app.core.errors`` types; nothing is retried.
    """

    def __init__(self, pool: ConnectionPool, password_min_len: int = 8, health_timeout: float = 2.0):
        self.pool = pool
        self.password_min_len = password_min_len
        self.health_timeout = health_timeout

    @contextmanager
    def _connection(self, timeout: float | None = None) -> Iterator[psycopg.Connection]:
        try:
            with self.pool.connection(timeout=timeout) as conn:
                yield conn
        # PoolTimeout and PoolClosed are OperationalError subclasses.
        except psycopg.OperationalError as exc:
            logger.error("Storage unavailable: %s", exc)
            raise StorageUnavailable("Database unavailable") from exc

    def ping(self) -> None:
        with self._connection(timeout=self.health_timeout) as conn:
            conn.execute("SELECT 1")

    def create_user(self, email: str, name: str, credential: str) -> User:
        email = normalize_email(email)
        name = (name or "").strip()
        credential = credential or ""
        if not email or not name:
            raise InvalidInput("email and name required")
        if len(credential) < self.password_min_len:
            raise InvalidInput(f"Password too short (min {self.password_min_len})")
        if len(credential.encode("utf-8")) > PASSWORD_MAX_BYTES:
            raise InvalidInput(f"Password too long (max {PASSWORD_MAX_BYTES} bytes)")

        pw_hash = bcrypt.hash(credential)
        with self._connection() as conn, conn.cursor() as cur:
            try:
                cur.execute(
                    f"""
                    INSERT INTO users (email, name, password_hash)
                    VALUES (%s, %s, %s)
                    RETURNING {_USER_FIELDS}
                    """,
                    (email, name, pw_hash),
                )
                row = cur.fetchone()
                conn.commit()
            except UniqueViolation:
                conn.rollback()
                raise DuplicateKey(f"User with email {email} already exists")

        user = User.model_validate(row)
        logger.info("Created user %s", user.id)
        return user

    def find_user_by_email(self, email: str) -> User | None:
        email = normalize_email(email)
        with self._connection() as conn, conn.cursor() as cur:
            cur.execute(f"SELECT {_USER_FIELDS} FROM users WHERE email=%s", (email,))
            row = cur.fetchone()
        return User.model_validate(row) if row else None

    def get_user_by_email(self, email: str) -> User:
        user = self.find_user_by_email(email)
        if user is None:
            raise NotFound(f"User {email} not found")
        return user

    def list_users(self) -> list[User]:
        with self._connection() as conn, conn.cursor() as cur:
            cur.execute(f"SELECT {_USER_FIELDS} FROM users ORDER BY created_at, email")
            rows = cur.fetchall()
        return [User.model_validate(row) for row in rows]

    def delete_user(self, email: str) -> None:
        """Remove a user; the foreign key cascade removes their transactions."""
        email = normalize_email(email)
        with self._connection() as conn, conn.cursor() as cur:
            cur.execute("DELETE FROM users WHERE email=%s RETURNING id", (email,))
            row = cur.fetchone()
            if not row:
                conn.rollback()
                raise NotFound(f"User {email} not found")
            conn.commit()
        logger.info("Deleted user %s", row["id"])

    def create_transaction(
        self,
        user_id: uuid.UUID,
        kind: TransactionKind,
        amount: Any,
        category: Category | None = None,
        description: str | None = None,
    ) -> Transaction:
        value = validate_amount(amount)
        try:
            kind = TransactionKind(kind)
        except ValueError:
            raise InvalidInput(f"Invalid transaction_type: {kind}")
        try:
            category = Category(category) if category is not None else Category.OTHER
        except ValueError:
            raise InvalidInput(f"Invalid category: {category}")

        with self._connection() as conn, conn.cursor() as cur:
            try:
                cur.execute(
                    f"""
                    INSERT INTO transactions (user_id, transaction_type, amount, category, description)
                    VALUES (%s, %s::transaction_type, %s, %s, %s)
                    RETURNING {_TRANSACTION_FIELDS}
                    """,
                    (user_id, kind.value, value, category.value, description or ""),
                )
                row = cur.fetchone()
                conn.commit()
            except ForeignKeyViolation:
                conn.rollback()
                raise NotFound(f"User {user_id} not found")
            except psycopg.DataError as exc:
                conn.rollback()
                raise InvalidInput(f"Invalid transaction: {exc}")

        tx = Transaction.model_validate(row)
        logger.info("Created %s transaction %s for user %s", kind.value, tx.id, user_id)
        return tx

    def list_transactions(self, flt: TransactionFilter) -> list[Transaction]:
        """Transactions matching ``flt``, newest first."""
        where, params = build_conditions(flt)
        query = sql.SQL("SELECT {fields} FROM transactions{where} ORDER BY created_at DESC, id DESC").format(
            fields=sql.SQL(_TRANSACTION_FIELDS),
            where=where,
        )
        with self._connection() as conn, conn.cursor() as cur:
            cur.execute(query, params)
            rows = cur.fetchall()
        return [Transaction.model_validate(row) for row in rows]

    def aggregate(self, flt: TransactionFilter) -> Decimal:
        """Signed sum of the matching transactions; ``0`` when none match."""
        return sum_signed_amounts(self.list_transactions(flt))
