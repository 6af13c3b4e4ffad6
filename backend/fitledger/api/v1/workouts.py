"""Workouts API: session lifecycle, nested exercises, set logging, routines and exercise history."""

import logging
from datetime import date as date_cls
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query

from fitledger.api.deps import (
    Ctx,
    LedgerDate,
    get_history_scanner,
    get_profile_store,
    get_record_tracker,
    get_routine_store,
    get_sync_engine,
)
from fitledger.schemas.ledger import (
    AddWorkoutExerciseRequest,
    CreateWorkoutRequest,
    DailyLog,
    ExerciseHistoryItem,
    FinishWorkoutRequest,
    RecordPerformanceRequest,
    RecordSetRequest,
    SetPerformance,
    UpdateWorkoutExerciseRequest,
    UpsertWorkoutRequest,
    WorkoutEntry,
    WorkoutExercise,
    WorkoutRoutine,
)
from fitledger.services.history import HistoryScanner
from fitledger.services.performance import count_logged_sets, estimate_session_calories
from fitledger.services.profile_store import ProfileStore
from fitledger.services.records import RecordTracker, SetRecordResult
from fitledger.services.routines import RoutineStore
from fitledger.services.workout_sync import WorkoutSyncEngine

logger = logging.getLogger(__name__)

router = APIRouter(tags=["workouts"])

Engine = Annotated[WorkoutSyncEngine, Depends(get_sync_engine)]
Scanner = Annotated[HistoryScanner, Depends(get_history_scanner)]
Routines = Annotated[RoutineStore, Depends(get_routine_store)]
Profiles = Annotated[ProfileStore, Depends(get_profile_store)]
Records = Annotated[RecordTracker, Depends(get_record_tracker)]

# Body weight used for calorie estimates when the user has no profile yet
DEFAULT_BODY_WEIGHT_KG = 70.0


def _mirror(ctx, requested: bool | None) -> bool:
    """Explicit choice wins; otherwise premium users mirror automatically."""
    return ctx.auto_mirror if requested is None else requested


def _parse_day(value: str | None, name: str) -> date_cls | None:
    if value is None:
        return None
    try:
        return date_cls.fromisoformat(value)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid {name}. Use YYYY-MM-DD.")


@router.get("/workout-templates/recent", response_model=list[WorkoutRoutine])
async def recent_workout_templates(
    scanner: Scanner,
    days: Annotated[int | None, Query(ge=1, le=60)] = None,
    as_of: Annotated[str | None, Query(description="YYYY-MM-DD; default today")] = None,
) -> list[WorkoutRoutine]:
    """Recent sessions (one per name) offered as templates."""
    return await scanner.recent_workout_templates(days, _parse_day(as_of, "as_of"))


@router.post("/workouts/{date}", status_code=201)
async def create_workout(date: LedgerDate, engine: Engine, body: CreateWorkoutRequest) -> dict:
    """Start an ad hoc (draft) session."""
    workout_id = await engine.add_workout(date, body.name, body.calories_burned, body.duration_minutes)
    return {"id": workout_id}


@router.post("/workouts/{date}/from-routine/{routine_id}", status_code=201)
async def create_workout_from_routine(
    date: LedgerDate,
    routine_id: str,
    engine: Engine,
    routines: Routines,
    ctx: Ctx,
    mirror_to_ledger: bool | None = None,
) -> dict:
    routine = await routines.get_routine(routine_id)
    workout_id = await engine.instantiate_from_routine(date, routine, _mirror(ctx, mirror_to_ledger))
    return {"id": workout_id}


@router.get("/workouts/{date}/{workout_id}", response_model=WorkoutEntry)
async def get_workout(date: LedgerDate, workout_id: str, engine: Engine) -> WorkoutEntry:
    workout = await engine.get_workout(date, workout_id)
    if workout is None:
        raise HTTPException(status_code=404, detail="Workout not found")
    return workout


@router.get("/workouts/{date}/{workout_id}/summary", response_model=WorkoutEntry)
async def get_workout_summary(date: LedgerDate, workout_id: str, engine: Engine) -> WorkoutEntry:
    """Workout right after saving its last sets; briefly retries until the performance is visible."""
    return await engine.load_workout_summary(date, workout_id)


@router.put("/workouts/{date}/{workout_id}", response_model=DailyLog)
async def upsert_workout(
    date: LedgerDate, workout_id: str, engine: Engine, ctx: Ctx, body: UpsertWorkoutRequest
) -> DailyLog:
    """Replace or create the session; its ledger mirror is rebuilt from it."""
    if body.workout.id != workout_id:
        raise HTTPException(status_code=400, detail="Workout id in body does not match the URL")
    return await engine.upsert_workout(date, body.workout, _mirror(ctx, body.mirror_to_ledger))


@router.delete("/workouts/{date}/{workout_id}", response_model=DailyLog)
async def remove_workout(date: LedgerDate, workout_id: str, engine: Engine) -> DailyLog:
    """Remove the session together with every entry mirroring it."""
    return await engine.remove_workout(date, workout_id)


@router.post("/workouts/{date}/{workout_id}/finish", response_model=WorkoutEntry)
async def finish_workout(
    date: LedgerDate,
    workout_id: str,
    engine: Engine,
    profiles: Profiles,
    body: FinishWorkoutRequest | None = None,
) -> WorkoutEntry:
    """
    Complete the session and mirror its calories into the ledger.
    Without explicit calories, an intensity (RPE 1-10) estimates them from logged sets and body weight.
    """
    body = body or FinishWorkoutRequest()
    calories = body.calories_burned
    if calories is None and body.intensity is not None:
        workout = await engine.get_workout(date, workout_id)
        if workout is None:
            raise HTTPException(status_code=404, detail="Workout not found")
        profile = await profiles.get()
        weight = profile.weight_kg if profile else DEFAULT_BODY_WEIGHT_KG
        duration = body.duration_minutes if body.duration_minutes is not None else workout.duration_minutes
        calories = estimate_session_calories(body.intensity, weight, count_logged_sets(workout), duration)
        logger.debug("Estimated %s kcal for workout %s (RPE %s)", calories, workout_id, body.intensity)
    return await engine.finish(date, workout_id, calories_burned=calories, duration_minutes=body.duration_minutes)


@router.post("/workouts/{date}/{workout_id}/routine", response_model=WorkoutRoutine, status_code=201)
async def save_as_routine(date: LedgerDate, workout_id: str, engine: Engine, routines: Routines) -> WorkoutRoutine:
    """Promote a session to a routine (replaces a routine with the same name)."""
    workout = await engine.get_workout(date, workout_id)
    if workout is None:
        raise HTTPException(status_code=404, detail="Workout not found")
    return await routines.save_workout_as_routine(workout)


# Exercises nested in a workout


@router.post("/workouts/{date}/{workout_id}/exercises", response_model=WorkoutExercise, status_code=201)
async def add_exercise(
    date: LedgerDate, workout_id: str, engine: Engine, ctx: Ctx, body: AddWorkoutExerciseRequest
) -> WorkoutExercise:
    return await engine.add_exercise_to_workout(
        date, workout_id, body.exercise, _mirror(ctx, body.mirror_to_ledger)
    )


@router.patch("/workouts/{date}/{workout_id}/exercises/{exercise_id}", response_model=WorkoutExercise)
async def update_exercise(
    date: LedgerDate, workout_id: str, exercise_id: str, engine: Engine, body: UpdateWorkoutExerciseRequest
) -> WorkoutExercise:
    changes = body.model_dump(exclude_unset=True)
    if not changes:
        raise HTTPException(status_code=400, detail="No fields to update")
    return await engine.update_exercise_in_workout(date, workout_id, exercise_id, changes)


@router.delete("/workouts/{date}/{workout_id}/exercises/{exercise_id}", response_model=DailyLog)
async def remove_exercise(date: LedgerDate, workout_id: str, exercise_id: str, engine: Engine) -> DailyLog:
    return await engine.remove_exercise_from_workout(date, workout_id, exercise_id)


@router.put("/workouts/{date}/{workout_id}/exercises/{exercise_id}/performance", response_model=WorkoutEntry)
async def record_performance(
    date: LedgerDate,
    workout_id: str,
    exercise_id: str,
    engine: Engine,
    ctx: Ctx,
    body: RecordPerformanceRequest,
) -> WorkoutEntry:
    """Store the sets of one exercise and mark it completed."""
    return await engine.record_set_performance(
        date, workout_id, exercise_id, body.performance, _mirror(ctx, body.mirror_to_ledger)
    )


@router.post("/workouts/{date}/{workout_id}/sets", response_model=SetRecordResult)
async def record_set(
    date: LedgerDate, workout_id: str, engine: Engine, records: Records, body: RecordSetRequest
) -> SetRecordResult:
    """Check one completed set against the personal record for that exercise."""
    return await records.record_set(engine, date, workout_id, body.exercise_name, body.weight, body.reps)


# Routines


@router.get("/routines", response_model=list[WorkoutRoutine])
async def list_routines(routines: Routines) -> list[WorkoutRoutine]:
    return await routines.list_routines()


@router.get("/routines/{routine_id}", response_model=WorkoutRoutine)
async def get_routine(routine_id: str, routines: Routines) -> WorkoutRoutine:
    return await routines.get_routine(routine_id)


@router.delete("/routines/{routine_id}", status_code=204)
async def delete_routine(routine_id: str, routines: Routines) -> None:
    await routines.delete_routine(routine_id)


# Exercise history


@router.get("/exercises/{exercise_name}/last", response_model=list[SetPerformance] | None)
async def last_exercise_performance(
    exercise_name: str,
    scanner: Scanner,
    before: Annotated[str | None, Query(description="YYYY-MM-DD; default today")] = None,
    exclude_workout_id: str | None = None,
) -> list[SetPerformance] | None:
    """Sets from the last completed session of this exercise (for pre-filling), or null."""
    start = _parse_day(before, "before") or date_cls.today()
    return await scanner.last_exercise_performance(exercise_name, start, exclude_workout_id)


@router.get("/exercises/{exercise_name}/history", response_model=list[ExerciseHistoryItem])
async def exercise_history(
    exercise_name: str,
    scanner: Scanner,
    limit: Annotated[int | None, Query(ge=1, le=100)] = None,
    as_of: Annotated[str | None, Query(description="YYYY-MM-DD; default today")] = None,
) -> list[ExerciseHistoryItem]:
    return await scanner.exercise_history(exercise_name, limit, _parse_day(as_of, "as_of"))
