from fastapi import APIRouter, Depends

from app.core.errors import InvalidFilter
from app.models.public import (
    AmountResponse,
    MessageResponse,
    TransactionCreatedResponse,
    TransactionCreateRequest,
    TransactionListResponse,
    UserCreatedResponse,
    UserCreateRequest,
    UserListResponse,
    UserResponse,
)
from app.services.filters import TransactionFilter
from app.services.state import get_store
from app.services.store import RecordStore

router = APIRouter(prefix="/api")


def require_filter(
    user_id: str | None = None,
    category: str | None = None,
    transaction_type: str | None = None,
    amount_min: str | None = None,
    amount_max: str | None = None,
    start_timestamp: str | None = None,
    end_timestamp: str | None = None,
) -> TransactionFilter:
    # The all-users scan stays internal to the store.
    flt = TransactionFilter.from_params(
        user_id=user_id,
        category=category,
        transaction_type=transaction_type,
        amount_min=amount_min,
        amount_max=amount_max,
        start_timestamp=start_timestamp,
        end_timestamp=end_timestamp,
    )
    if flt.user_id is None:
        raise InvalidFilter("user_id required")
    return flt


@router.post("/users", response_model=UserCreatedResponse)
def create_user(payload: UserCreateRequest, store: RecordStore = Depends(get_store)):
    user = store.create_user(payload.email, payload.name, payload.password)
    return UserCreatedResponse(message="User created successfully", name=user.name)


@router.get("/users", response_model=UserListResponse)
def list_users(store: RecordStore = Depends(get_store)):
    return UserListResponse(message="Users retrieved successfully", users=store.list_users())


@router.get("/users/{email}", response_model=UserResponse)
def get_user(email: str, store: RecordStore = Depends(get_store)):
    return UserResponse(message="User retrieved successfully", user=store.get_user_by_email(email))


@router.delete("/users/{email}", response_model=MessageResponse)
def delete_user(email: str, store: RecordStore = Depends(get_store)):
    store.delete_user(email)
    return MessageResponse(message="User deleted successfully")


@router.post("/transactions", response_model=TransactionCreatedResponse)
def create_transaction(payload: TransactionCreateRequest, store: RecordStore = Depends(get_store)):
    user = store.get_user_by_email(payload.user_email)
    tx = store.create_transaction(
        user.id,
        payload.transaction_type,
        payload.amount,
        payload.category,
        payload.description,
    )
    return TransactionCreatedResponse(message="Transaction created successfully", transaction=tx)


@router.get("/transactions", response_model=TransactionListResponse)
def list_transactions(
    flt: TransactionFilter = Depends(require_filter),
    store: RecordStore = Depends(get_store),
):
    return TransactionListResponse(
        message="Transactions retrieved successfully",
        transactions=store.list_transactions(flt),
    )


@router.get("/transactions/amount", response_model=AmountResponse)
def transactions_amount(
    flt: TransactionFilter = Depends(require_filter),
    store: RecordStore = Depends(get_store),
):
    return AmountResponse(message="Transactions sum retrieved successfully", amount=store.aggregate(flt))
