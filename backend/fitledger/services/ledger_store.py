"""
Daily ledger persistence: one document per (user, date) at users/{uid}/logs/{date}.

Every write is a whole-document overwrite with no merge and no compare-and-swap, so two
load-modify-store sequences against the same date can clobber each other. This is accepted
for a single user on a single device; where an optimistic local view exists, new rows carry
locally generated ids so a reload reconciles instead of silently dropping them.
"""
from __future__ import annotations

import logging
import uuid
from collections.abc import Callable, Iterable

from fitledger.core.errors import OptimisticWriteFailed
from fitledger.core.session import SessionContext
from fitledger.schemas.ledger import DailyLog, DailyLogEntry, FoodItem, NutritionInfo, utcnow
from fitledger.services.document_store import DocumentStore

logger = logging.getLogger(__name__)


def new_id() -> str:
    return uuid.uuid4().hex


def calculate_totals(entries: Iterable[DailyLogEntry]) -> NutritionInfo:
    """Sum of entry nutrition. Always recomputed from scratch."""
    calories = protein = carbs = fats = 0.0
    for entry in entries:
        calories += entry.nutrition.calories
        protein += entry.nutrition.protein
        carbs += entry.nutrition.carbs
        fats += entry.nutrition.fats
    return NutritionInfo(calories=calories, protein=protein, carbs=carbs, fats=fats)


def with_entries(log: DailyLog, entries: list[DailyLogEntry]) -> DailyLog:
    """Copy of log with entries replaced and totals re-derived."""
    return log.model_copy(update={"entries": entries, "totals": calculate_totals(entries)})


class DailyLedgerStore:
    def __init__(self, store: DocumentStore, ctx: SessionContext) -> None:
        self.store = store
        self.ctx = ctx

    async def get(self, date: str) -> DailyLog:
        """Ledger for date; an empty skeleton when nothing was written yet or nobody is signed in."""
        if not self.ctx.is_authenticated:
            return DailyLog.empty(date)
        data = await self.store.get(self.ctx.log_path(date))
        if not data:
            return DailyLog.empty(date)
        log = DailyLog.model_validate(data)
        if log.date != date:
            log = log.model_copy(update={"date": date})
        return log

    async def put(self, date: str, log: DailyLog) -> None:
        """Overwrite the whole ledger document for date."""
        if not self.ctx.is_authenticated:
            logger.warning("Ledger write for %s skipped: no authenticated user", date)
            return
        await self.store.set(self.ctx.log_path(date), log.model_dump(mode="json"))

    async def list_logs(self) -> list[DailyLog]:
        """Every stored ledger of the user (full collection fetch, unordered)."""
        if not self.ctx.is_authenticated:
            return []
        docs = await self.store.query(self.ctx.collection_path("logs"))
        out = []
        for doc in docs:
            log = DailyLog.model_validate(doc.data)
            if log.date != doc.id:
                log = log.model_copy(update={"date": doc.id})
            out.append(log)
        return out

    # Food entries

    async def add_food(
        self,
        date: str,
        food: FoodItem,
        servings: float = 1,
        meal_category: str = "Snacks & Drinks",
    ) -> DailyLogEntry:
        entry = DailyLogEntry(
            id=new_id(),
            food_id=food.id,
            food_name=food.name,
            nutrition=NutritionInfo(
                calories=food.nutrition.calories * servings,
                protein=food.nutrition.protein * servings,
                carbs=food.nutrition.carbs * servings,
                fats=food.nutrition.fats * servings,
            ),
            servings=servings,
            meal_category=meal_category,
        )
        await self.add_entries(date, [entry])
        return entry

    async def add_entries(self, date: str, new_entries: list[DailyLogEntry]) -> DailyLog:
        """Append entries whose ids were generated by the caller."""
        log = await self.get(date)
        log = with_entries(log, [*log.entries, *new_entries])
        await self.put(date, log)
        return log

    async def clone_entries(
        self, date: str, entries: Iterable[DailyLogEntry], meal_category: str
    ) -> list[DailyLogEntry]:
        """Copy entries into date under meal_category with fresh ids and timestamps."""
        clones = clone_for_category(entries, meal_category)
        await self.add_entries(date, clones)
        return clones

    async def remove_entry(self, date: str, entry_id: str) -> DailyLog:
        log = await self.get(date)
        log = with_entries(log, [e for e in log.entries if e.id != entry_id])
        await self.put(date, log)
        return log

    async def remove_meal_section(self, date: str, meal_category: str) -> DailyLog:
        log = await self.get(date)
        log = with_entries(log, [e for e in log.entries if e.meal_category != meal_category])
        await self.put(date, log)
        return log

    async def apply_optimistic(
        self,
        date: str,
        local_view: DailyLog | None,
        new_entries: list[DailyLogEntry],
        on_overlay: Callable[[DailyLog], None] | None = None,
    ) -> DailyLog:
        """
        Merge pre-identified entries into the caller's pending local view, hand the overlay
        to on_overlay before the write starts, then persist. On a failed write the overlay
        is discarded: the authoritative ledger is reloaded and raised with OptimisticWriteFailed.
        """
        base = local_view if local_view is not None else DailyLog.empty(date)
        overlay = with_entries(base, [*base.entries, *new_entries])
        if on_overlay is not None:
            on_overlay(overlay)
        try:
            return await self.add_entries(date, new_entries)
        except Exception as e:
            logger.warning("Optimistic write for %s failed, reloading ledger: %s", date, e)
            authoritative = await self.get(date)
            raise OptimisticWriteFailed(date, authoritative) from e


def clone_for_category(entries: Iterable[DailyLogEntry], meal_category: str) -> list[DailyLogEntry]:
    now = utcnow()
    return [
        entry.model_copy(update={"id": new_id(), "timestamp": now, "meal_category": meal_category}, deep=True)
        for entry in entries
    ]
