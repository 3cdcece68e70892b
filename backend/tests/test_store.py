import pathlib
import sys
import unittest
import uuid
from decimal import Decimal

BACKEND_ROOT = pathlib.Path(__file__).resolve().parents[1]
for path in (BACKEND_ROOT, BACKEND_ROOT / "tests"):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))

import psycopg
from passlib.hash import bcrypt
from psycopg.errors import ForeignKeyViolation, NumericValueOutOfRange, UniqueViolation
from psycopg_pool import PoolTimeout

from app.core.errors import DuplicateKey, InvalidAmount, InvalidInput, NotFound, StorageUnavailable
from app.models.public import Category, TransactionKind
from app.services.filters import TransactionFilter
from app.services.store import RecordStore, validate_amount
from fakes import ConnectionSpy, PoolSpy, transaction_row, user_row


def make_store(*outcomes) -> tuple[RecordStore, ConnectionSpy]:
    conn = ConnectionSpy(outcomes)
    return RecordStore(PoolSpy(conn)), conn


class ValidateAmountTests(unittest.TestCase):
    def test_accepts_positive_decimals(self):
        self.assertEqual(validate_amount(Decimal("42.75")), Decimal("42.75"))
        self.assertEqual(validate_amount("0.0001"), Decimal("0.0001"))
        self.assertEqual(validate_amount(2500), Decimal("2500"))
        self.assertEqual(validate_amount(42.75), Decimal("42.75"))

    def test_rejects_non_positive_and_malformed(self):
        for value in (0, Decimal("0"), Decimal("-1"), "-0.01", "abc", "NaN", "Infinity", None, True, [1]):
            with self.subTest(value=value):
                with self.assertRaises(InvalidAmount):
                    validate_amount(value)

    def test_rejects_more_than_four_decimal_places(self):
        with self.assertRaises(InvalidAmount):
            validate_amount(Decimal("1.00001"))

    def test_rejects_amounts_wider_than_the_column(self):
        self.assertEqual(validate_amount("999999999999999.9999"), Decimal("999999999999999.9999"))
        for value in (Decimal("1e16"), "10000000000000000", "1000000000000000", 10**15):
            with self.subTest(value=value):
                with self.assertRaises(InvalidAmount):
                    validate_amount(value)

    def test_invalid_amount_is_invalid_input(self):
        self.assertTrue(issubclass(InvalidAmount, InvalidInput))


class UserStoreTests(unittest.TestCase):
    def test_create_user_hashes_credential(self):
        row = user_row()
        store, conn = make_store([row])

        user = store.create_user("alice@example.com", "Alice", "password123")

        self.assertEqual(user.id, row["id"])
        self.assertEqual(user.email, "alice@example.com")
        self.assertIn("INSERT INTO users", conn.last_sql)
        email, name, stored = conn.last_params
        self.assertEqual((email, name), ("alice@example.com", "Alice"))
        self.assertNotEqual(stored, "password123")
        self.assertTrue(bcrypt.verify("password123", stored))
        self.assertEqual(conn.commits, 1)

    def test_user_model_withholds_credential(self):
        store, _ = make_store([user_row(password_hash="secret")])
        user = store.create_user("alice@example.com", "Alice", "password123")
        self.assertNotIn("password_hash", user.model_dump())
        self.assertNotIn("password", user.model_dump())

    def test_duplicate_email_raises_duplicate_key(self):
        store, conn = make_store(UniqueViolation("duplicate key value violates unique constraint"))

        with self.assertRaises(DuplicateKey):
            store.create_user("alice@example.com", "Alice", "password123")
        self.assertEqual(conn.commits, 0)
        self.assertEqual(conn.rollbacks, 1)

    def test_rejects_bad_credentials_before_storage(self):
        store, conn = make_store()
        with self.assertRaises(InvalidInput):
            store.create_user("alice@example.com", "Alice", "short")
        with self.assertRaises(InvalidInput):
            store.create_user("alice@example.com", "Alice", "x" * 73)
        with self.assertRaises(InvalidInput):
            store.create_user("  ", "Alice", "password123")
        self.assertEqual(conn.calls, [])

    def test_find_user_by_email_is_exact_match(self):
        store, conn = make_store([])
        self.assertIsNone(store.find_user_by_email("Alice@example.com"))
        self.assertIn("WHERE email=%s", conn.last_sql)
        self.assertEqual(conn.last_params, ("Alice@example.com",))

    def test_email_lookup_ignores_surrounding_whitespace(self):
        store, conn = make_store([user_row()], [user_row()])
        store.create_user(" alice@example.com ", "Alice", "password123")
        self.assertEqual(conn.last_params[0], "alice@example.com")
        user = store.find_user_by_email(" alice@example.com")
        self.assertEqual(user.email, "alice@example.com")
        self.assertEqual(conn.last_params, ("alice@example.com",))

    def test_get_user_by_email_raises_not_found(self):
        store, _ = make_store([])
        with self.assertRaises(NotFound):
            store.get_user_by_email("nobody@example.com")

    def test_list_users(self):
        store, conn = make_store([user_row(), user_row(email="bob@example.com", name="Bob")])
        users = store.list_users()
        self.assertEqual([u.email for u in users], ["alice@example.com", "bob@example.com"])
        self.assertNotIn("password", conn.last_sql)

    def test_delete_user(self):
        store, conn = make_store([{"id": uuid.uuid4()}])
        store.delete_user("alice@example.com")
        self.assertIn("DELETE FROM users", conn.last_sql)
        self.assertEqual(conn.commits, 1)

    def test_delete_unknown_user_raises_not_found(self):
        store, conn = make_store([])
        with self.assertRaises(NotFound):
            store.delete_user("nobody@example.com")
        self.assertEqual(conn.commits, 0)


class TransactionStoreTests(unittest.TestCase):
    def test_create_transaction_defaults(self):
        user_id = uuid.uuid4()
        store, conn = make_store([transaction_row(kind="Expense", amount="42.7500", user_id=user_id)])

        tx = store.create_transaction(user_id, TransactionKind.EXPENSE, Decimal("42.75"))

        self.assertEqual(tx.user_id, user_id)
        self.assertIs(tx.transaction_type, TransactionKind.EXPENSE)
        self.assertIn("%s::transaction_type", conn.last_sql)
        self.assertEqual(conn.last_params, (user_id, "Expense", Decimal("42.75"), "Other", ""))
        self.assertEqual(conn.commits, 1)

    def test_create_transaction_with_category_and_description(self):
        user_id = uuid.uuid4()
        store, conn = make_store([transaction_row(user_id=user_id)])
        store.create_transaction(user_id, "Income", "2500.00", Category.OTHER, "salary")
        self.assertEqual(conn.last_params, (user_id, "Income", Decimal("2500.00"), "Other", "salary"))

    def test_invalid_amount_persists_nothing(self):
        store, conn = make_store()
        for amount in (0, Decimal("-5"), "abc"):
            with self.subTest(amount=amount):
                with self.assertRaises(InvalidAmount):
                    store.create_transaction(uuid.uuid4(), TransactionKind.INCOME, amount)
        self.assertEqual(conn.calls, [])

    def test_unknown_kind_or_category_persists_nothing(self):
        store, conn = make_store()
        with self.assertRaises(InvalidInput):
            store.create_transaction(uuid.uuid4(), "Transfer", Decimal("1"))
        with self.assertRaises(InvalidInput):
            store.create_transaction(uuid.uuid4(), TransactionKind.EXPENSE, Decimal("1"), "Travel")
        self.assertEqual(conn.calls, [])

    def test_out_of_range_value_from_database_is_invalid_input(self):
        store, conn = make_store(NumericValueOutOfRange("numeric field overflow"))
        with self.assertRaises(InvalidInput):
            store.create_transaction(uuid.uuid4(), TransactionKind.INCOME, Decimal("1"))
        self.assertEqual(conn.commits, 0)
        self.assertEqual(conn.rollbacks, 1)

    def test_unknown_user_raises_not_found(self):
        store, conn = make_store(ForeignKeyViolation("insert or update violates foreign key constraint"))
        with self.assertRaises(NotFound):
            store.create_transaction(uuid.uuid4(), TransactionKind.INCOME, Decimal("1"))
        self.assertEqual(conn.commits, 0)
        self.assertEqual(conn.rollbacks, 1)

    def test_list_transactions_orders_newest_first(self):
        user_id = uuid.uuid4()
        store, conn = make_store([transaction_row(user_id=user_id)])

        txs = store.list_transactions(TransactionFilter(user_id=user_id, kind=TransactionKind.INCOME))

        self.assertEqual(len(txs), 1)
        self.assertIn("FROM transactions WHERE user_id = %s AND transaction_type", conn.last_sql)
        self.assertTrue(conn.last_sql.endswith("ORDER BY created_at DESC, id DESC"))
        self.assertEqual(conn.last_params, [user_id, "Income"])

    def test_list_transactions_without_filter_is_full_scan(self):
        store, conn = make_store([])
        self.assertEqual(store.list_transactions(TransactionFilter()), [])
        self.assertNotIn("WHERE", conn.last_sql)
        self.assertEqual(conn.last_params, [])

    def test_aggregate_applies_sign_by_kind(self):
        user_id = uuid.uuid4()
        store, _ = make_store(
            [
                transaction_row(kind="Expense", amount="42.7500", category="Groceries", user_id=user_id),
                transaction_row(kind="Income", amount="2500.0000", user_id=user_id),
            ]
        )
        self.assertEqual(store.aggregate(TransactionFilter(user_id=user_id)), Decimal("2457.25"))

    def test_aggregate_of_nothing_is_zero(self):
        store, _ = make_store([])
        self.assertEqual(store.aggregate(TransactionFilter(category=Category.HOLIDAYS)), Decimal("0"))


class StorageAvailabilityTests(unittest.TestCase):
    def test_ping_uses_health_timeout(self):
        pool = PoolSpy()
        store = RecordStore(pool, health_timeout=1.5)
        store.ping()
        self.assertEqual(pool.timeouts, [1.5])
        self.assertEqual(pool.conn.last_sql, "SELECT 1")

    def test_unreachable_database(self):
        store = RecordStore(PoolSpy(error=psycopg.OperationalError("connection refused")))
        with self.assertRaises(StorageUnavailable):
            store.ping()
        with self.assertRaises(StorageUnavailable):
            store.list_users()

    def test_pool_checkout_timeout(self):
        store = RecordStore(PoolSpy(error=PoolTimeout("couldn't get a connection after 30.00 sec")))
        with self.assertRaises(StorageUnavailable):
            store.list_transactions(TransactionFilter())

    def test_query_failure_mid_request(self):
        store, _ = make_store(psycopg.OperationalError("server closed the connection unexpectedly"))
        with self.assertRaises(StorageUnavailable):
            store.find_user_by_email("alice@example.com")


if __name__ == "__main__":
    unittest.main()
