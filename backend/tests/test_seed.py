import pathlib
import sys
import unittest
from decimal import Decimal

BACKEND_ROOT = pathlib.Path(__file__).resolve().parents[1]
for path in (BACKEND_ROOT, BACKEND_ROOT / "tests"):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))

from app.seed import SEED_TRANSACTIONS, SEED_USERS, seed
from app.services.filters import TransactionFilter
from fakes import MemoryStore


class SeedTests(unittest.TestCase):
    def test_seed_is_idempotent(self):
        store = MemoryStore()

        first = seed(store)
        second = seed(store)

        self.assertEqual(first, {"users": len(SEED_USERS), "transactions": len(SEED_TRANSACTIONS)})
        self.assertEqual(second, {"users": 0, "transactions": 0})
        self.assertEqual(len(store.transactions), len(SEED_TRANSACTIONS))

    def test_seeded_alice_balance(self):
        store = MemoryStore()
        seed(store)
        alice = store.get_user_by_email("alice@example.com")
        self.assertEqual(store.aggregate(TransactionFilter(user_id=alice.id)), Decimal("2457.25"))


if __name__ == "__main__":
    unittest.main()
