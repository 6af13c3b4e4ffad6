"""
Workout sessions and their mirror entries in the flat exercise list.

A mirror entry projects a workout (session level, calories + duration) or one workout
exercise (duration only) into `DailyLog.exercises` so the nutrition summary sees it. Mirrors
are tagged with `kind` and `source_id`; the `sync-<source_id>` id is kept for clients.

Every operation is load -> modify -> one whole-document write. Mirrors are never patched:
they are removed and re-created from their source, so calling an operation again after a
partial failure converges to the same ledger.

Concurrency: two operations on the same date that overlap (say a history-driven auto-fill and
a set-completion save) can lose the earlier write, since the store has no compare-and-swap.
Callers on one device should await each operation before starting the next for that date.
"""
from __future__ import annotations

import logging
from typing import Any

from fitledger.core.errors import MirrorEntryError, NotFoundError
from fitledger.schemas.ledger import (
    DailyLog,
    EntryKind,
    ExerciseEntry,
    SetPerformance,
    WorkoutEntry,
    WorkoutExercise,
    WorkoutExerciseTemplate,
    WorkoutRoutine,
    mirror_id,
    utcnow,
)
from fitledger.services.ledger_store import DailyLedgerStore, new_id
from fitledger.services.read_retry import read_with_backoff

logger = logging.getLogger(__name__)


def workout_mirror(workout: WorkoutEntry) -> ExerciseEntry:
    return ExerciseEntry(
        id=mirror_id(workout.id),
        name=f"Workout: {workout.name}",
        calories_burned=workout.calories_burned,
        duration_minutes=workout.duration_minutes or 0,
        workout_id=workout.id,
        kind=EntryKind.workout_mirror,
        source_id=workout.id,
    )


def exercise_mirror(workout_id: str, exercise: WorkoutExercise) -> ExerciseEntry:
    # Calories are attributed at session level; exercise mirrors carry duration only
    return ExerciseEntry(
        id=mirror_id(exercise.id),
        name=exercise.name,
        calories_burned=0,
        duration_minutes=exercise.duration_minutes or 0,
        workout_id=workout_id,
        kind=EntryKind.exercise_mirror,
        source_id=exercise.id,
    )


def _references_workout(entry: ExerciseEntry, workout_id: str) -> bool:
    if entry.workout_id == workout_id:
        return True
    return entry.kind == EntryKind.workout_mirror and entry.source_id == workout_id


def _mirrors_exercise(entry: ExerciseEntry, exercise_id: str) -> bool:
    return entry.kind == EntryKind.exercise_mirror and entry.source_id == exercise_id


def apply_upsert(log: DailyLog, workout: WorkoutEntry, mirror_to_ledger: bool) -> DailyLog:
    """Replace or append workout, drop every mirror that points at it, re-create the session mirror."""
    idx = next((i for i, w in enumerate(log.workouts) if w.id == workout.id), None)
    if idx is None:
        log.workouts.append(workout)
    else:
        log.workouts[idx] = workout
    log.exercises = [e for e in log.exercises if not _references_workout(e, workout.id)]
    if mirror_to_ledger and workout.calories_burned and workout.calories_burned > 0:
        log.exercises.append(workout_mirror(workout))
    return log


def apply_removal(log: DailyLog, workout_id: str) -> DailyLog:
    log.workouts = [w for w in log.workouts if w.id != workout_id]
    log.exercises = [e for e in log.exercises if not _references_workout(e, workout_id)]
    return log


def mirror_violations(log: DailyLog) -> list[ExerciseEntry]:
    """Mirror entries whose source is gone, plus duplicate mirrors of one source."""
    workout_ids = {w.id for w in log.workouts}
    exercise_keys = {(w.id, ex.id) for w in log.workouts for ex in w.exercises}
    seen: set[tuple[EntryKind, str | None]] = set()
    bad = []
    for entry in log.exercises:
        if not entry.is_mirror:
            continue
        key = (entry.kind, entry.source_id)
        if key in seen:
            bad.append(entry)
            continue
        seen.add(key)
        if entry.kind == EntryKind.workout_mirror and entry.source_id not in workout_ids:
            bad.append(entry)
        elif entry.kind == EntryKind.exercise_mirror and (entry.workout_id, entry.source_id) not in exercise_keys:
            bad.append(entry)
    return bad


class WorkoutSyncEngine:
    def __init__(self, ledger: DailyLedgerStore) -> None:
        self.ledger = ledger

    async def _load_workout(self, date: str, workout_id: str) -> tuple[DailyLog, WorkoutEntry]:
        log = await self.ledger.get(date)
        workout = log.find_workout(workout_id)
        if workout is None:
            raise NotFoundError("Workout", workout_id)
        return log, workout

    async def get_workout(self, date: str, workout_id: str) -> WorkoutEntry | None:
        log = await self.ledger.get(date)
        workout = log.find_workout(workout_id)
        if workout is None:
            logger.debug(
                "Workout %s not in ledger %s (available: %s)",
                workout_id,
                date,
                ", ".join(w.id for w in log.workouts) or "none",
            )
        return workout

    async def load_workout_summary(self, date: str, workout_id: str) -> WorkoutEntry:
        """Read a just-saved workout, retrying briefly while its performance is not visible yet."""

        def has_performance(w: WorkoutEntry | None) -> bool:
            return w is not None and any(ex.performance for ex in w.exercises)

        workout = await read_with_backoff(lambda: self.get_workout(date, workout_id), has_performance)
        if workout is None:
            raise NotFoundError("Workout", workout_id)
        return workout

    async def add_workout(
        self, date: str, name: str, calories_burned: float = 0, duration_minutes: float = 0
    ) -> str:
        """Ad hoc draft session; returns its id."""
        log = await self.ledger.get(date)
        workout = WorkoutEntry(
            id=new_id(),
            name=name,
            calories_burned=calories_burned,
            duration_minutes=duration_minutes,
        )
        log.workouts.append(workout)
        await self.ledger.put(date, log)
        return workout.id

    async def instantiate_from_routine(self, date: str, routine: WorkoutRoutine, mirror_to_ledger: bool) -> str:
        """New draft session copied from a routine with fresh ids; optional per-exercise mirrors."""
        log = await self.ledger.get(date)
        workout = WorkoutEntry(
            id=new_id(),
            name=routine.name,
            duration_minutes=routine.default_duration_minutes or 0,
            calories_burned=routine.default_calories_burned or 0,
            exercises=[WorkoutExercise(id=new_id(), **tmpl.model_dump()) for tmpl in routine.exercises],
        )
        log.workouts.append(workout)
        if mirror_to_ledger:
            log.exercises.extend(exercise_mirror(workout.id, ex) for ex in workout.exercises)
        await self.ledger.put(date, log)
        logger.info("Workout %s instantiated from routine %s on %s", workout.id, routine.id, date)
        return workout.id

    async def upsert_workout(self, date: str, workout: WorkoutEntry, mirror_to_ledger: bool) -> DailyLog:
        log = await self.ledger.get(date)
        apply_upsert(log, workout, mirror_to_ledger)
        await self.ledger.put(date, log)
        return log

    async def record_set_performance(
        self,
        date: str,
        workout_id: str,
        exercise_id: str,
        performance: list[SetPerformance],
        mirror_to_ledger: bool,
    ) -> WorkoutEntry:
        """
        Store an exercise's sets and mark it completed. Session calories are left as they are;
        with mirror_to_ledger a nonzero value already on the workout (e.g. a routine default) is mirrored.
        """
        _, workout = await self._load_workout(date, workout_id)
        exercise = workout.find_exercise(exercise_id)
        if exercise is None:
            raise NotFoundError("Exercise", exercise_id)
        exercise.performance = list(performance)
        exercise.completed = True
        await self.upsert_workout(date, workout, mirror_to_ledger)
        return workout

    async def finish(
        self,
        date: str,
        workout_id: str,
        *,
        calories_burned: float | None = None,
        duration_minutes: float | None = None,
    ) -> WorkoutEntry:
        """Complete the session, stamping final calories/duration; the session mirror is always refreshed."""
        _, workout = await self._load_workout(date, workout_id)
        if calories_burned is not None:
            workout.calories_burned = calories_burned
        if duration_minutes is not None:
            workout.duration_minutes = duration_minutes
        workout.completed = True
        await self.upsert_workout(date, workout, mirror_to_ledger=True)
        logger.info("Workout %s finished on %s (%.0f kcal)", workout_id, date, workout.calories_burned)
        return workout

    async def remove_workout(self, date: str, workout_id: str) -> DailyLog:
        log = await self.ledger.get(date)
        apply_removal(log, workout_id)
        await self.ledger.put(date, log)
        return log

    async def increment_pr_count(self, date: str, workout_id: str) -> WorkoutEntry:
        log, workout = await self._load_workout(date, workout_id)
        workout.new_prs += 1
        await self.ledger.put(date, log)
        return workout

    # Standalone entries (manual cardio, gym sync)

    async def add_standalone_exercise(
        self,
        date: str,
        name: str,
        calories_burned: float,
        duration_minutes: float,
        exercise_id: str | None = None,
    ) -> ExerciseEntry:
        log = await self.ledger.get(date)
        entry = ExerciseEntry(
            id=new_id(),
            exercise_id=exercise_id,
            name=name,
            calories_burned=calories_burned,
            duration_minutes=duration_minutes,
        )
        log.exercises.append(entry)
        await self.ledger.put(date, log)
        return entry

    async def remove_standalone_exercise(self, date: str, entry_id: str) -> DailyLog:
        log = await self.ledger.get(date)
        entry = next((e for e in log.exercises if e.id == entry_id), None)
        if entry is None:
            return log
        if entry.is_mirror:
            raise MirrorEntryError(entry_id)
        log.exercises = [e for e in log.exercises if e.id != entry_id]
        await self.ledger.put(date, log)
        return log

    # Exercises nested in a workout

    async def add_exercise_to_workout(
        self,
        date: str,
        workout_id: str,
        exercise: WorkoutExerciseTemplate,
        mirror_to_ledger: bool,
    ) -> WorkoutExercise:
        log, workout = await self._load_workout(date, workout_id)
        new_exercise = WorkoutExercise(id=new_id(), **exercise.model_dump())
        workout.exercises.append(new_exercise)
        if mirror_to_ledger:
            log.exercises.append(exercise_mirror(workout_id, new_exercise))
        await self.ledger.put(date, log)
        return new_exercise

    async def remove_exercise_from_workout(self, date: str, workout_id: str, exercise_id: str) -> DailyLog:
        log, workout = await self._load_workout(date, workout_id)
        if workout.find_exercise(exercise_id) is None:
            raise NotFoundError("Exercise", exercise_id)
        workout.exercises = [ex for ex in workout.exercises if ex.id != exercise_id]
        log.exercises = [e for e in log.exercises if not _mirrors_exercise(e, exercise_id)]
        await self.ledger.put(date, log)
        return log

    async def update_exercise_in_workout(
        self, date: str, workout_id: str, exercise_id: str, changes: dict[str, Any]
    ) -> WorkoutExercise:
        """Apply changes to a nested exercise; its mirror (if any) is rebuilt from the result."""
        log, workout = await self._load_workout(date, workout_id)
        idx = next((i for i, ex in enumerate(workout.exercises) if ex.id == exercise_id), None)
        if idx is None:
            raise NotFoundError("Exercise", exercise_id)
        current = workout.exercises[idx]
        updated = WorkoutExercise.model_validate({**current.model_dump(), **changes, "id": exercise_id})
        workout.exercises[idx] = updated

        old_mirror = next((e for e in log.exercises if _mirrors_exercise(e, exercise_id)), None)
        if old_mirror is not None:
            log.exercises = [e for e in log.exercises if not _mirrors_exercise(e, exercise_id)]
            fresh = exercise_mirror(workout_id, updated)
            fresh.timestamp = old_mirror.timestamp
            log.exercises.append(fresh)
        await self.ledger.put(date, log)
        return updated

    async def repair(self, date: str) -> int:
        """Drop orphaned and duplicate mirrors left by an interrupted sequence; returns how many."""
        log = await self.ledger.get(date)
        bad = mirror_violations(log)
        if not bad:
            return 0
        bad_ids = {id(e) for e in bad}
        log.exercises = [e for e in log.exercises if id(e) not in bad_ids]
        await self.ledger.put(date, log)
        logger.warning("Repaired %d mirror entries in ledger %s", len(bad), date)
        return len(bad)


def workout_as_template(workout: WorkoutEntry, routine_id: str | None = None) -> WorkoutRoutine:
    """Routine template from a session: same exercises without ids, completion reset."""
    return WorkoutRoutine(
        id=routine_id or new_id(),
        name=workout.name,
        exercises=[
            WorkoutExerciseTemplate.model_validate(ex.model_dump(exclude={"id", "performance", "completed"}))
            for ex in workout.exercises
        ],
        default_duration_minutes=workout.duration_minutes,
        default_calories_burned=workout.calories_burned,
        created_at=utcnow(),
    )
