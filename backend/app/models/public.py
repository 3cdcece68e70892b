import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class TransactionKind(str, Enum):
    INCOME = "Income"
    EXPENSE = "Expense"


class Category(str, Enum):
    GROCERIES = "Groceries"
    RESTAURANT = "Restaurant"
    HOUSING = "Housing"
    HOLIDAYS = "Holidays"
    SHOPPING = "Shopping"
    ENTERTAINMENT = "Entertainment"
    OTHER = "Other"


class User(BaseModel):
    id: uuid.UUID
    email: str
    name: str
    created_at: datetime
    updated_at: datetime


class Transaction(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    transaction_type: TransactionKind
    amount: Decimal
    category: Category
    description: str = ""
    created_at: datetime
    last_updated_at: datetime


class UserCreateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    email: str = Field(min_length=1, max_length=255)
    name: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1)


class TransactionCreateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    user_email: str = Field(min_length=1)
    transaction_type: TransactionKind
    amount: Decimal
    category: Category | None = None
    description: str | None = None


class MessageResponse(BaseModel):
    message: str


class UserCreatedResponse(MessageResponse):
    name: str


class UserResponse(MessageResponse):
    user: User


class UserListResponse(MessageResponse):
    users: list[User]


class TransactionCreatedResponse(MessageResponse):
    transaction: Transaction


class TransactionListResponse(MessageResponse):
    transactions: list[Transaction]


class AmountResponse(MessageResponse):
    amount: Decimal
