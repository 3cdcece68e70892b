from fastapi import Request

from app.services.store import RecordStore


def get_store(req: Request) -> RecordStore:
    return req.app.state.store
