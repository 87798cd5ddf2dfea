from functools import lru_cache

from fastapi import Depends

from app.core.config import settings
from app.core.database import SessionLocal
from app.services.approval_engine import ApprovalEngine
from app.services.requisition_store import (
    InMemoryRequisitionStore,
    RequisitionStore,
    SqlRequisitionStore,
)
from app.services.requisitions import RequisitionService
from app.services.users import UserDirectory


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@lru_cache
def get_store() -> RequisitionStore:
    # one store per process: its per-requisition locks must be shared by every request
    if settings.STORE_BACKEND == "memory":
        return InMemoryRequisitionStore(reference_prefix=settings.REFERENCE_PREFIX)
    if settings.STORE_BACKEND == "sql":
        return SqlRequisitionStore(SessionLocal, reference_prefix=settings.REFERENCE_PREFIX)
    raise RuntimeError(f"Unknown STORE_BACKEND: {settings.STORE_BACKEND}")


@lru_cache
def get_directory() -> UserDirectory:
    return UserDirectory(SessionLocal)


def get_engine(store: RequisitionStore = Depends(get_store)) -> ApprovalEngine:
    return ApprovalEngine(store)


def get_service(
    store: RequisitionStore = Depends(get_store),
    directory: UserDirectory = Depends(get_directory),
) -> RequisitionService:
    return RequisitionService(store, directory)
