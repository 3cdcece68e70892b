"""Load a few demo users and transactions into the database.

Safe to run repeatedly: existing users are left alone and a transaction is
only added when its user has none with the same description.
"""

import logging
from decimal import Decimal

from app.core.config import load_settings
from app.core.log import setup_logging
from app.db.migrations import run_migrations
from app.db.pool import close_db_pool, create_db_pool, open_db_pool
from app.models.public import Category, TransactionKind
from app.services.filters import TransactionFilter
from app.services.store import RecordStore

logger = logging.getLogger(__name__)

SEED_USERS = [
    {"email": "alice@example.com", "name": "Alice", "password": "password123"},
    {"email": "bob@example.com", "name": "Bob", "password": "password123"},
    {"email": "carol@example.com", "name": "Carol", "password": "password123"},
]

SEED_TRANSACTIONS = [
    ("alice@example.com", TransactionKind.INCOME, Decimal("2500"), Category.OTHER, "seed: salary"),
    ("alice@example.com", TransactionKind.EXPENSE, Decimal("42.75"), Category.GROCERIES, "seed: groceries"),
    ("bob@example.com", TransactionKind.EXPENSE, Decimal("18"), Category.RESTAURANT, "seed: lunch"),
    ("carol@example.com", TransactionKind.INCOME, Decimal("120"), Category.OTHER, "seed: refund"),
]


def seed(store: RecordStore) -> dict[str, int]:
    created = {"users": 0, "transactions": 0}
    for user in SEED_USERS:
        if store.find_user_by_email(user["email"]) is None:
            store.create_user(user["email"], user["name"], user["password"])
            created["users"] += 1

    for email, kind, amount, category, description in SEED_TRANSACTIONS:
        user = store.get_user_by_email(email)
        existing = store.list_transactions(TransactionFilter(user_id=user.id))
        if any(tx.description == description for tx in existing):
            continue
        store.create_transaction(user.id, kind, amount, category, description)
        created["transactions"] += 1
    return created


def main() -> None:
    settings = load_settings()
    setup_logging(settings.log_level)
    pool = create_db_pool(settings)
    open_db_pool(pool)
    try:
        if settings.run_migrations:
            run_migrations(pool, settings.migrations_dir)
        created = seed(RecordStore(pool, password_min_len=settings.password_min_len))
    finally:
        close_db_pool(pool)
    logger.info("Seed complete: %d user(s), %d transaction(s) added", created["users"], created["transactions"])
    logger.info("Try these users: %s", ", ".join(u["email"] for u in SEED_USERS))


if __name__ == "__main__":
    main()
