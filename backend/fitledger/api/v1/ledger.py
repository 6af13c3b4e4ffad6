"""Daily ledger API: food entries, meal sections, saved meals and standalone exercise entries."""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query

from fitledger.api.deps import Ctx, LedgerDate, get_ledger_store, get_meal_service, get_sync_engine
from fitledger.schemas.ledger import (
    AddEntriesRequest,
    AddFoodRequest,
    AddStandaloneExerciseRequest,
    DailyLog,
    DailyLogEntry,
    ExerciseEntry,
    MealMatch,
    RepeatMealRequest,
    SavedMeal,
    SaveMealRequest,
)
from fitledger.services.ledger_store import DailyLedgerStore
from fitledger.services.meals import MealService
from fitledger.services.workout_sync import WorkoutSyncEngine

router = APIRouter(tags=["ledger"])

Ledger = Annotated[DailyLedgerStore, Depends(get_ledger_store)]
Meals = Annotated[MealService, Depends(get_meal_service)]
Engine = Annotated[WorkoutSyncEngine, Depends(get_sync_engine)]


def _history_window(ctx, requested: int | None) -> int:
    """Requested lookback, never beyond what the user's plan allows."""
    if requested is None:
        return ctx.history_days
    return min(requested, ctx.history_days)


@router.get("/ledger/{date}", response_model=DailyLog)
async def get_ledger(date: LedgerDate, ledger: Ledger) -> DailyLog:
    """Ledger for one day; empty when nothing was logged (or not signed in)."""
    return await ledger.get(date)


@router.post("/ledger/{date}/food", response_model=DailyLogEntry, status_code=201)
async def add_food(date: LedgerDate, ledger: Ledger, body: AddFoodRequest) -> DailyLogEntry:
    return await ledger.add_food(date, body.food, body.servings, body.meal_category)


@router.post("/ledger/{date}/entries", response_model=DailyLog, status_code=201)
async def add_entries(date: LedgerDate, ledger: Ledger, body: AddEntriesRequest) -> DailyLog:
    """Append entries with client-generated ids (bulk logging, optimistic clients)."""
    return await ledger.add_entries(date, body.entries)


@router.delete("/ledger/{date}/entries/{entry_id}", response_model=DailyLog)
async def remove_entry(date: LedgerDate, entry_id: str, ledger: Ledger) -> DailyLog:
    return await ledger.remove_entry(date, entry_id)


@router.delete("/ledger/{date}/meals/{meal_category}", response_model=DailyLog)
async def remove_meal_section(date: LedgerDate, meal_category: str, ledger: Ledger) -> DailyLog:
    """Remove every entry of one meal section."""
    return await ledger.remove_meal_section(date, meal_category)


@router.get("/ledger/{date}/meals/{meal_category}/last", response_model=MealMatch | None)
async def last_meal(
    date: LedgerDate,
    meal_category: str,
    meals: Meals,
    ctx: Ctx,
    max_days_back: Annotated[int | None, Query(ge=1, le=365)] = None,
) -> MealMatch | None:
    """Most recent earlier meal of this section within the plan's history window, or null."""
    return await meals.scanner.last_matching_meal_entries(meal_category, date, _history_window(ctx, max_days_back))


@router.post("/ledger/{date}/meals/{meal_category}/repeat", response_model=DailyLog, status_code=201)
async def repeat_last_meal(
    date: LedgerDate,
    meal_category: str,
    meals: Meals,
    ctx: Ctx,
    body: RepeatMealRequest | None = None,
    max_days_back: Annotated[int | None, Query(ge=1, le=365)] = None,
) -> DailyLog:
    """Copy the last matching meal into this day. 404 when there is nothing to repeat."""
    local_view = body.local_view if body else None
    log = await meals.repeat_last_meal(date, meal_category, local_view, _history_window(ctx, max_days_back))
    if log is None:
        raise HTTPException(status_code=404, detail=f"No previous {meal_category} meal to repeat")
    return log


# Saved meals


@router.post("/ledger/{date}/saved-meals", response_model=SavedMeal, status_code=201)
async def save_meal(date: LedgerDate, meals: Meals, body: SaveMealRequest) -> SavedMeal:
    """Save the entries of one meal section of this day as a reusable meal."""
    return await meals.save_meal_from_section(date, body.name, body.meal_category)


@router.get("/saved-meals", response_model=list[SavedMeal])
async def list_saved_meals(meals: Meals) -> list[SavedMeal]:
    return await meals.list_saved_meals()


@router.delete("/saved-meals/{meal_id}", status_code=204)
async def delete_saved_meal(meal_id: str, meals: Meals) -> None:
    await meals.delete_saved_meal(meal_id)


@router.post("/ledger/{date}/saved-meals/{meal_id}/log", response_model=list[DailyLogEntry], status_code=201)
async def log_saved_meal(
    date: LedgerDate,
    meal_id: str,
    meals: Meals,
    meal_category: Annotated[str, Query(min_length=1)],
) -> list[DailyLogEntry]:
    return await meals.log_saved_meal(date, meal_id, meal_category)


# Standalone exercise entries


@router.post("/ledger/{date}/exercises", response_model=ExerciseEntry, status_code=201)
async def add_standalone_exercise(
    date: LedgerDate, engine: Engine, body: AddStandaloneExerciseRequest
) -> ExerciseEntry:
    """Manual cardio or synced activity; counts toward the day's burned calories."""
    return await engine.add_standalone_exercise(
        date, body.name, body.calories_burned, body.duration_minutes, body.exercise_id
    )


@router.delete("/ledger/{date}/exercises/{entry_id}", response_model=DailyLog)
async def remove_standalone_exercise(date: LedgerDate, entry_id: str, engine: Engine) -> DailyLog:
    """Remove an authored entry. Mirror entries follow their workout and are rejected with 409."""
    return await engine.remove_standalone_exercise(date, entry_id)


@router.post("/ledger/{date}/repair")
async def repair_ledger(date: LedgerDate, engine: Engine) -> dict:
    """Drop orphaned or duplicate mirror entries left by an interrupted update."""
    removed = await engine.repair(date)
    return {"removed": removed}
