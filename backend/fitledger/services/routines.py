"""Workout routines (reusable templates) at users/{uid}/workout_routines/{id}."""
from __future__ import annotations

import logging

from fitledger.core.errors import NotFoundError
from fitledger.core.session import SessionContext
from fitledger.schemas.ledger import WorkoutEntry, WorkoutRoutine
from fitledger.services.document_store import DocumentStore
from fitledger.services.workout_sync import workout_as_template

logger = logging.getLogger(__name__)

COLLECTION = "workout_routines"


class RoutineStore:
    def __init__(self, store: DocumentStore, ctx: SessionContext) -> None:
        self.store = store
        self.ctx = ctx

    def _path(self, routine_id: str) -> str:
        return f"{self.ctx.collection_path(COLLECTION)}/{routine_id}"

    async def list_routines(self) -> list[WorkoutRoutine]:
        if not self.ctx.is_authenticated:
            return []
        docs = await self.store.query(self.ctx.collection_path(COLLECTION))
        routines = [WorkoutRoutine.model_validate(d.data) for d in docs]
        routines.sort(key=lambda r: r.name.lower())
        return routines

    async def get_routine(self, routine_id: str) -> WorkoutRoutine:
        data = await self.store.get(self._path(routine_id)) if self.ctx.is_authenticated else None
        if not data:
            raise NotFoundError("Routine", routine_id)
        return WorkoutRoutine.model_validate(data)

    async def save_workout_as_routine(self, workout: WorkoutEntry) -> WorkoutRoutine:
        """Store workout as a template; a routine with the same name (case-insensitive) is replaced."""
        wanted = workout.name.strip().lower()
        existing = next((r for r in await self.list_routines() if r.name.strip().lower() == wanted), None)
        routine = workout_as_template(workout, routine_id=existing.id if existing else None)
        if not self.ctx.is_authenticated:
            logger.warning("Routine %r not saved: no authenticated user", workout.name)
            return routine
        await self.store.set(self._path(routine.id), routine.model_dump(mode="json"))
        logger.info("Routine %s %s from workout %s", routine.id, "replaced" if existing else "created", workout.id)
        return routine

    async def delete_routine(self, routine_id: str) -> None:
        if not self.ctx.is_authenticated:
            return
        await self.store.delete(self._path(routine_id))
