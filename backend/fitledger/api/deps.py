"""FastAPI dependencies: session context from the optional JWT, stores and engines built on it."""

import logging
from datetime import datetime
from typing import Annotated

from fastapi import Depends, HTTPException, Path, Request

from fitledger.core.auth import decode_token
from fitledger.core.session import ANONYMOUS, SessionContext
from fitledger.db.session import async_session_maker
from fitledger.services.document_store import DocumentStore, SqlDocumentStore
from fitledger.services.history import HistoryScanner
from fitledger.services.ledger_store import DailyLedgerStore
from fitledger.services.meals import MealService
from fitledger.services.profile_store import ProfileStore
from fitledger.services.records import RecordTracker
from fitledger.services.routines import RoutineStore
from fitledger.services.workout_sync import WorkoutSyncEngine

logger = logging.getLogger(__name__)

_document_store: DocumentStore | None = None


def get_document_store() -> DocumentStore:
    """Process-wide SQL-backed store. Tests override this dependency with an in-memory store."""
    global _document_store
    if _document_store is None:
        _document_store = SqlDocumentStore(async_session_maker)
    return _document_store


async def get_session_context(request: Request) -> SessionContext:
    """
    Bearer token -> SessionContext(sub, premium claim). Without a token the request runs
    anonymously: reads return empty ledgers and writes are skipped.
    """
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        return ANONYMOUS
    if not auth_header.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Not authenticated")
    token = auth_header[7:].strip()
    if not token:
        raise HTTPException(status_code=401, detail="Not authenticated")
    try:
        payload = decode_token(token)
    except Exception:
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(status_code=401, detail="Invalid token")
    return SessionContext(user_id=str(user_id), is_premium=bool(payload.get("premium", False)))


async def require_user(
    ctx: Annotated[SessionContext, Depends(get_session_context)],
) -> SessionContext:
    if not ctx.is_authenticated:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return ctx


def ledger_date(date: Annotated[str, Path(description="YYYY-MM-DD")]) -> str:
    try:
        return datetime.strptime(date, "%Y-%m-%d").date().isoformat()
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid date format. Use YYYY-MM-DD.")


Store = Annotated[DocumentStore, Depends(get_document_store)]
Ctx = Annotated[SessionContext, Depends(get_session_context)]
LedgerDate = Annotated[str, Depends(ledger_date)]


def get_ledger_store(store: Store, ctx: Ctx) -> DailyLedgerStore:
    return DailyLedgerStore(store, ctx)


def get_sync_engine(ledger: Annotated[DailyLedgerStore, Depends(get_ledger_store)]) -> WorkoutSyncEngine:
    return WorkoutSyncEngine(ledger)


def get_history_scanner(ledger: Annotated[DailyLedgerStore, Depends(get_ledger_store)]) -> HistoryScanner:
    return HistoryScanner(ledger)


def get_meal_service(
    ledger: Annotated[DailyLedgerStore, Depends(get_ledger_store)],
    scanner: Annotated[HistoryScanner, Depends(get_history_scanner)],
) -> MealService:
    return MealService(ledger, scanner)


def get_profile_store(store: Store, ctx: Ctx) -> ProfileStore:
    return ProfileStore(store, ctx)


def get_record_tracker(profiles: Annotated[ProfileStore, Depends(get_profile_store)]) -> RecordTracker:
    return RecordTracker(profiles)


def get_routine_store(store: Store, ctx: Ctx) -> RoutineStore:
    return RoutineStore(store, ctx)
