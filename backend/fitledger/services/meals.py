"""Repeat-last-meal and saved meals (users/{uid}/saved_meals/{id})."""
from __future__ import annotations

import logging
from collections.abc import Callable

from fitledger.core.errors import NotFoundError
from fitledger.schemas.ledger import DailyLog, DailyLogEntry, SavedMeal
from fitledger.services.history import HistoryScanner
from fitledger.services.ledger_store import DailyLedgerStore, calculate_totals, clone_for_category, new_id

logger = logging.getLogger(__name__)

COLLECTION = "saved_meals"


class MealService:
    def __init__(self, ledger: DailyLedgerStore, scanner: HistoryScanner) -> None:
        self.ledger = ledger
        self.scanner = scanner

    @property
    def _ctx(self):
        return self.ledger.ctx

    def _path(self, meal_id: str) -> str:
        return f"{self._ctx.collection_path(COLLECTION)}/{meal_id}"

    async def repeat_last_meal(
        self,
        date: str,
        meal_category: str,
        local_view: DailyLog | None = None,
        max_days_back: int | None = None,
        on_overlay: Callable[[DailyLog], None] | None = None,
    ) -> DailyLog | None:
        """
        Copy the most recent earlier meal of meal_category into date. None when there is nothing
        to repeat within the window; otherwise the stored ledger after the optimistic write.
        """
        match = await self.scanner.last_matching_meal_entries(meal_category, date, max_days_back)
        if match is None:
            return None
        clones = clone_for_category(match.entries, meal_category)
        logger.info("Repeating %d %r entries from %s into %s", len(clones), meal_category, match.date, date)
        return await self.ledger.apply_optimistic(date, local_view, clones, on_overlay)

    async def save_meal(self, name: str, items: list[DailyLogEntry]) -> SavedMeal:
        meal = SavedMeal(id=new_id(), name=name, items=items, total_nutrition=calculate_totals(items))
        if not self._ctx.is_authenticated:
            logger.warning("Saved meal %r not stored: no authenticated user", name)
            return meal
        await self.ledger.store.set(self._path(meal.id), meal.model_dump(mode="json"))
        return meal

    async def save_meal_from_section(self, date: str, name: str, meal_category: str) -> SavedMeal:
        log = await self.ledger.get(date)
        items = [e for e in log.entries if e.meal_category == meal_category]
        if not items:
            raise NotFoundError("Meal section", f"{date}/{meal_category}")
        return await self.save_meal(name, items)

    async def list_saved_meals(self) -> list[SavedMeal]:
        if not self._ctx.is_authenticated:
            return []
        docs = await self.ledger.store.query(self._ctx.collection_path(COLLECTION))
        meals = [SavedMeal.model_validate(d.data) for d in docs]
        meals.sort(key=lambda m: m.created_at, reverse=True)
        return meals

    async def get_saved_meal(self, meal_id: str) -> SavedMeal:
        data = await self.ledger.store.get(self._path(meal_id)) if self._ctx.is_authenticated else None
        if not data:
            raise NotFoundError("Saved meal", meal_id)
        return SavedMeal.model_validate(data)

    async def delete_saved_meal(self, meal_id: str) -> None:
        if not self._ctx.is_authenticated:
            return
        await self.ledger.store.delete(self._path(meal_id))

    async def log_saved_meal(self, date: str, meal_id: str, meal_category: str) -> list[DailyLogEntry]:
        meal = await self.get_saved_meal(meal_id)
        return await self.ledger.clone_entries(date, meal.items, meal_category)
