import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from app.core.errors import StorageUnavailable
from app.services.state import get_store
from app.services.store import RecordStore

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health")
def health():
    return {"status": "ok", "message": "Wallet API is running"}


@router.get("/health/db")
def db_health(store: RecordStore = Depends(get_store)):
    try:
        store.ping()
    except StorageUnavailable:
        logger.warning("Database health check failed")
        return JSONResponse(status_code=503, content={"status": "error", "database": "unreachable"})
    return {"status": "ok", "database": "connected"}
