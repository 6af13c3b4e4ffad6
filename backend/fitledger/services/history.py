"""
Backward scans over past ledgers: repeat-last-meal lookup, last performance of an exercise,
exercise history and recent sessions as templates.

The meal scan fetches the whole logs collection and sorts it in memory (bounded by the
user's history); the exercise scans read one ledger per day.
"""
from __future__ import annotations

import logging
from datetime import date, timedelta

from fitledger.config import settings
from fitledger.schemas.ledger import (
    ExerciseHistoryItem,
    MealMatch,
    SetPerformance,
    WorkoutEntry,
    WorkoutRoutine,
)
from fitledger.services.ledger_store import DailyLedgerStore
from fitledger.services.performance import best_one_rep_max
from fitledger.services.workout_sync import workout_as_template

logger = logging.getLogger(__name__)

HISTORY_TEMPLATE_PREFIX = "hist-"


def parse_date(value: str | date) -> date:
    if isinstance(value, date):
        return value
    return date.fromisoformat(value)


def _newest_first(workouts: list[WorkoutEntry]) -> list[WorkoutEntry]:
    return sorted(workouts, key=lambda w: w.timestamp, reverse=True)


class HistoryScanner:
    def __init__(self, ledger: DailyLedgerStore) -> None:
        self.ledger = ledger

    async def last_matching_meal_entries(
        self,
        meal_category: str,
        before_date: str | date,
        max_days_back: int | None = None,
    ) -> MealMatch | None:
        """
        Entries of meal_category from the most recent day strictly before before_date that has any.
        Days older than before_date - max_days_back are not considered (the boundary day is).
        max_days_back defaults to the session's entitlement window.
        """
        before = parse_date(before_date)
        days = self.ledger.ctx.history_days if max_days_back is None else max_days_back
        cutoff = before - timedelta(days=days)

        logs = await self.ledger.list_logs()
        logs.sort(key=lambda log: log.date, reverse=True)
        for log in logs:
            log_day = parse_date(log.date)
            if log_day >= before:
                continue
            if log_day < cutoff:
                break
            matches = [e for e in log.entries if e.meal_category == meal_category]
            if matches:
                return MealMatch(date=log.date, entries=matches)
        logger.debug("No %r meal within %d days before %s", meal_category, days, before)
        return None

    async def last_exercise_performance(
        self,
        exercise_name: str,
        before_date: str | date,
        exclude_workout_id: str | None = None,
    ) -> list[SetPerformance] | None:
        """Most recent completed performance of exercise_name, walking back from before_date itself."""
        start = parse_date(before_date)
        wanted = exercise_name.strip().lower()
        for offset in range(settings.last_performance_lookback_days + 1):
            day = (start - timedelta(days=offset)).isoformat()
            log = await self.ledger.get(day)
            for workout in _newest_first(log.workouts):
                if workout.id == exclude_workout_id:
                    continue
                for ex in workout.exercises:
                    if ex.name.strip().lower() == wanted and ex.completed and ex.performance:
                        return ex.performance
        return None

    async def exercise_history(
        self,
        exercise_name: str,
        limit: int | None = None,
        as_of: str | date | None = None,
    ) -> list[ExerciseHistoryItem]:
        """Up to limit past performances, newest first; one item per workout."""
        limit = settings.exercise_history_default_limit if limit is None else limit
        start = parse_date(as_of) if as_of is not None else date.today()
        wanted = exercise_name.strip().lower()
        items: list[ExerciseHistoryItem] = []
        if limit <= 0:
            return items
        for offset in range(settings.exercise_history_lookback_days + 1):
            day = (start - timedelta(days=offset)).isoformat()
            log = await self.ledger.get(day)
            for workout in _newest_first(log.workouts):
                ex = next(
                    (e for e in workout.exercises if e.name.strip().lower() == wanted and e.completed and e.performance),
                    None,
                )
                if ex is None:
                    continue
                items.append(
                    ExerciseHistoryItem(
                        date=day,
                        performance=ex.performance,
                        best_one_rep_max=best_one_rep_max(ex.performance),
                    )
                )
                if len(items) >= limit:
                    return items
        return items

    async def recent_workout_templates(
        self,
        days: int | None = None,
        as_of: str | date | None = None,
    ) -> list[WorkoutRoutine]:
        """Sessions with exercises from the last days, one per name, as routine templates."""
        days = settings.recent_templates_days if days is None else days
        start = parse_date(as_of) if as_of is not None else date.today()
        seen: set[str] = set()
        templates: list[WorkoutRoutine] = []
        for offset in range(days):
            day = (start - timedelta(days=offset)).isoformat()
            log = await self.ledger.get(day)
            for workout in _newest_first(log.workouts):
                key = workout.name.strip().lower()
                if not workout.exercises or key in seen:
                    continue
                seen.add(key)
                templates.append(workout_as_template(workout, routine_id=f"{HISTORY_TEMPLATE_PREFIX}{workout.id}"))
        return templates
