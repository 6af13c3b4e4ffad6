"""User document at users/{uid}: profile, derived goals and meal section names, merged in place."""
from __future__ import annotations

import logging

from fitledger.config import settings
from fitledger.core.errors import NotFoundError
from fitledger.core.session import SessionContext
from fitledger.schemas.profile import UserGoals, UserProfile
from fitledger.services.document_store import DocumentStore
from fitledger.services.metabolic import apply_profile_targets

logger = logging.getLogger(__name__)


def default_goals() -> UserGoals:
    return UserGoals(
        daily_calories=settings.default_daily_calories,
        daily_protein=settings.default_daily_protein,
        daily_carbs=settings.default_daily_carbs,
        daily_fats=settings.default_daily_fats,
    )


class ProfileStore:
    def __init__(self, store: DocumentStore, ctx: SessionContext) -> None:
        self.store = store
        self.ctx = ctx

    async def _user_doc(self) -> dict:
        if not self.ctx.is_authenticated:
            return {}
        return await self.store.get(self.ctx.user_path()) or {}

    async def _merge(self, fields: dict, what: str) -> bool:
        if not self.ctx.is_authenticated:
            logger.warning("%s write skipped: no authenticated user", what)
            return False
        await self.store.set(self.ctx.user_path(), fields, merge=True)
        return True

    async def get(self) -> UserProfile | None:
        data = (await self._user_doc()).get("user_profile")
        if not data:
            return None
        return UserProfile.model_validate(data)

    async def save(self, profile: UserProfile) -> UserProfile:
        """Recompute tdee/targets and store profile and goals in one merge write."""
        profile = apply_profile_targets(profile)
        goals = UserGoals.from_targets(profile.target_macros)
        await self._merge(
            {
                "user_profile": profile.model_dump(mode="json"),
                "user_goals": goals.model_dump(mode="json"),
            },
            "Profile",
        )
        return profile

    async def update_weight(self, weight_kg: float) -> UserProfile:
        profile = await self.get()
        if profile is None:
            raise NotFoundError("Profile", self.ctx.user_id or "anonymous")
        return await self.save(profile.model_copy(update={"weight_kg": weight_kg}))

    async def save_personal_record(self, exercise_name: str, one_rep_max: float) -> bool:
        return await self._merge(
            {"user_profile": {"personal_records": {exercise_name: one_rep_max}}},
            "Personal record",
        )

    async def get_goals(self) -> UserGoals:
        data = (await self._user_doc()).get("user_goals")
        return UserGoals.model_validate(data) if data else default_goals()

    async def save_goals(self, goals: UserGoals) -> None:
        await self._merge({"user_goals": goals.model_dump(mode="json")}, "Goals")

    async def get_meal_sections(self) -> list[str]:
        sections = (await self._user_doc()).get("meal_sections")
        return list(sections) if sections else settings.meal_sections

    async def save_meal_sections(self, sections: list[str]) -> None:
        await self._merge({"meal_sections": list(sections)}, "Meal sections")
