"""Personal records (best estimated 1RM per exercise name) kept on the user profile."""
from __future__ import annotations

import logging
from dataclasses import dataclass

from fitledger.services.performance import one_rep_max
from fitledger.services.profile_store import ProfileStore
from fitledger.services.workout_sync import WorkoutSyncEngine

logger = logging.getLogger(__name__)


@dataclass
class SetRecordResult:
    exercise_name: str
    one_rep_max: float
    is_new_record: bool


class RecordTracker:
    def __init__(self, profiles: ProfileStore) -> None:
        self.profiles = profiles

    async def personal_records(self) -> dict[str, float]:
        profile = await self.profiles.get()
        return dict(profile.personal_records) if profile else {}

    async def update_personal_record(self, exercise_name: str, candidate_1rm: float) -> bool:
        """Persist candidate_1rm if it beats the stored record; False without a profile."""
        profile = await self.profiles.get()
        if profile is None:
            return False
        current = profile.personal_records.get(exercise_name, 0)
        if candidate_1rm <= current:
            return False
        stored = await self.profiles.save_personal_record(exercise_name, candidate_1rm)
        if stored:
            logger.info("New personal record for %s: %.1f (was %.1f)", exercise_name, candidate_1rm, current)
        return stored

    async def record_set(
        self,
        engine: WorkoutSyncEngine,
        date: str,
        workout_id: str,
        exercise_name: str,
        weight: float,
        reps: int,
    ) -> SetRecordResult:
        estimate = one_rep_max(weight, reps)
        improved = await self.update_personal_record(exercise_name, estimate)
        if improved:
            try:
                await engine.increment_pr_count(date, workout_id)
            except Exception:
                # Record already stored; counter is best-effort
                logger.exception("Failed to bump PR count on workout %s (%s)", workout_id, date)
        return SetRecordResult(exercise_name=exercise_name, one_rep_max=estimate, is_new_record=improved)
