"""Tests for WorkoutSyncEngine: lifecycle, mirror invariants, self-healing and errors."""

import pytest

from fitledger.core.errors import MirrorEntryError, NotFoundError
from fitledger.schemas.ledger import (
    DailyLog,
    EntryKind,
    ExerciseEntry,
    SetPerformance,
    WorkoutEntry,
    WorkoutExerciseTemplate,
    WorkoutRoutine,
)
from fitledger.services.workout_sync import WorkoutSyncEngine, mirror_violations

DAY = "2026-03-10"

SETS = [SetPerformance(set_number=1, weight=100, reps=5), SetPerformance(set_number=2, weight=100, reps=5)]


def _routine() -> WorkoutRoutine:
    return WorkoutRoutine(
        id="r1",
        name="Push Day",
        exercises=[
            WorkoutExerciseTemplate(name="Bench Press", sets=3, reps=5, weight=100),
            WorkoutExerciseTemplate(name="Dips", sets=3, reps=10, duration_minutes=8),
        ],
        default_duration_minutes=60,
    )


def _mirrors(log: DailyLog, kind: EntryKind) -> list[ExerciseEntry]:
    return [e for e in log.exercises if e.kind == kind]


@pytest.mark.asyncio
async def test_instantiate_from_routine_creates_draft_with_fresh_ids(engine: WorkoutSyncEngine, ledger):
    wid = await engine.instantiate_from_routine(DAY, _routine(), mirror_to_ledger=False)
    log = await ledger.get(DAY)
    workout = log.find_workout(wid)
    assert workout.name == "Push Day"
    assert workout.status.value == "draft"
    assert workout.duration_minutes == 60
    ids = [ex.id for ex in workout.exercises]
    assert len(set(ids)) == 2
    assert log.exercises == []


@pytest.mark.asyncio
async def test_instantiate_with_mirroring_adds_zero_calorie_exercise_mirrors(engine, ledger):
    wid = await engine.instantiate_from_routine(DAY, _routine(), mirror_to_ledger=True)
    log = await ledger.get(DAY)
    mirrors = _mirrors(log, EntryKind.exercise_mirror)
    assert len(mirrors) == 2
    assert all(m.calories_burned == 0 and m.workout_id == wid for m in mirrors)
    workout = log.find_workout(wid)
    assert {m.id for m in mirrors} == {f"sync-{ex.id}" for ex in workout.exercises}
    assert mirror_violations(log) == []


@pytest.mark.asyncio
async def test_upsert_is_idempotent(engine, ledger):
    workout = WorkoutEntry(id="w1", name="Legs", calories_burned=350, duration_minutes=50)
    await engine.upsert_workout(DAY, workout, mirror_to_ledger=True)
    first = await ledger.get(DAY)
    await engine.upsert_workout(DAY, workout, mirror_to_ledger=True)
    second = await ledger.get(DAY)

    assert len(second.workouts) == 1
    session = _mirrors(second, EntryKind.workout_mirror)
    assert len(session) == 1
    assert session[0].id == "sync-w1"
    assert session[0].name == "Workout: Legs"
    assert session[0].calories_burned == 350
    assert [e.id for e in first.exercises] == [e.id for e in second.exercises]


@pytest.mark.asyncio
async def test_upsert_without_calories_or_mirroring_has_no_session_mirror(engine, ledger):
    await engine.upsert_workout(DAY, WorkoutEntry(id="w1", name="Mobility"), mirror_to_ledger=True)
    await engine.upsert_workout(DAY, WorkoutEntry(id="w2", name="Run", calories_burned=300), mirror_to_ledger=False)
    log = await ledger.get(DAY)
    assert log.exercises == []
    assert len(log.workouts) == 2


@pytest.mark.asyncio
async def test_upsert_collapses_exercise_mirrors_into_session_mirror(engine, ledger):
    wid = await engine.instantiate_from_routine(DAY, _routine(), mirror_to_ledger=True)
    log = await ledger.get(DAY)
    workout = log.find_workout(wid)
    workout.calories_burned = 400
    await engine.upsert_workout(DAY, workout, mirror_to_ledger=True)

    log = await ledger.get(DAY)
    assert _mirrors(log, EntryKind.exercise_mirror) == []
    assert [m.id for m in _mirrors(log, EntryKind.workout_mirror)] == [f"sync-{wid}"]


@pytest.mark.asyncio
async def test_remove_workout_drops_every_mirror(engine, ledger):
    wid = await engine.instantiate_from_routine(DAY, _routine(), mirror_to_ledger=True)
    await engine.upsert_workout(DAY, WorkoutEntry(id="other", name="Run", calories_burned=200), True)
    cardio = await engine.add_standalone_exercise(DAY, "Bike", 150, 20)

    await engine.remove_workout(DAY, wid)
    log = await ledger.get(DAY)
    assert log.find_workout(wid) is None
    assert all(e.workout_id != wid for e in log.exercises)
    assert {e.id for e in log.exercises} == {"sync-other", cardio.id}
    assert mirror_violations(log) == []


@pytest.mark.asyncio
async def test_record_set_performance_marks_exercise_completed(engine, ledger):
    wid = await engine.instantiate_from_routine(DAY, _routine(), mirror_to_ledger=False)
    workout = (await ledger.get(DAY)).find_workout(wid)
    eid = workout.exercises[0].id

    updated = await engine.record_set_performance(DAY, wid, eid, SETS, mirror_to_ledger=False)
    assert updated.status.value == "in_progress"
    stored = (await ledger.get(DAY)).find_workout(wid)
    assert stored.exercises[0].completed is True
    assert stored.exercises[0].performance == SETS


@pytest.mark.asyncio
async def test_record_set_performance_mirrors_existing_session_calories(engine, ledger):
    routine = _routine()
    routine.default_calories_burned = 250
    wid = await engine.instantiate_from_routine(DAY, routine, mirror_to_ledger=False)
    eid = (await ledger.get(DAY)).find_workout(wid).exercises[0].id

    updated = await engine.record_set_performance(DAY, wid, eid, SETS, mirror_to_ledger=True)
    assert updated.calories_burned == 250
    assert updated.completed is False
    session = _mirrors(await ledger.get(DAY), EntryKind.workout_mirror)
    assert [(m.id, m.calories_burned) for m in session] == [(f"sync-{wid}", 250)]


@pytest.mark.asyncio
async def test_record_set_performance_missing_targets(engine):
    with pytest.raises(NotFoundError):
        await engine.record_set_performance(DAY, "nope", "e1", SETS, False)
    wid = await engine.add_workout(DAY, "Pull")
    with pytest.raises(NotFoundError):
        await engine.record_set_performance(DAY, wid, "missing", SETS, False)


@pytest.mark.asyncio
async def test_finish_mirrors_calories_once(engine, ledger):
    wid = await engine.add_workout(DAY, "Pull")
    workout = await engine.finish(DAY, wid, calories_burned=320, duration_minutes=45)
    assert workout.completed is True

    log = await ledger.get(DAY)
    session = _mirrors(log, EntryKind.workout_mirror)
    assert len(session) == 1
    assert session[0].calories_burned == 320
    assert session[0].duration_minutes == 45

    await engine.finish(DAY, wid)
    log = await ledger.get(DAY)
    assert len(_mirrors(log, EntryKind.workout_mirror)) == 1


@pytest.mark.asyncio
async def test_finish_unknown_workout(engine):
    with pytest.raises(NotFoundError):
        await engine.finish(DAY, "ghost")


@pytest.mark.asyncio
async def test_exercise_mirror_follows_update_and_removal(engine, ledger):
    wid = await engine.add_workout(DAY, "Cardio")
    exercise = await engine.add_exercise_to_workout(
        DAY, wid, WorkoutExerciseTemplate(name="Rower", duration_minutes=10), mirror_to_ledger=True
    )
    log = await ledger.get(DAY)
    assert [(m.id, m.duration_minutes) for m in log.exercises] == [(f"sync-{exercise.id}", 10)]

    await engine.update_exercise_in_workout(DAY, wid, exercise.id, {"name": "Erg", "duration_minutes": 15})
    log = await ledger.get(DAY)
    assert len(log.exercises) == 1
    assert log.exercises[0].name == "Erg"
    assert log.exercises[0].duration_minutes == 15
    assert log.find_workout(wid).exercises[0].name == "Erg"

    await engine.remove_exercise_from_workout(DAY, wid, exercise.id)
    log = await ledger.get(DAY)
    assert log.exercises == []
    assert log.find_workout(wid).exercises == []


@pytest.mark.asyncio
async def test_update_without_mirror_does_not_create_one(engine, ledger):
    wid = await engine.add_workout(DAY, "Cardio")
    exercise = await engine.add_exercise_to_workout(
        DAY, wid, WorkoutExerciseTemplate(name="Rower"), mirror_to_ledger=False
    )
    await engine.update_exercise_in_workout(DAY, wid, exercise.id, {"sets": 4})
    log = await ledger.get(DAY)
    assert log.exercises == []
    assert log.find_workout(wid).exercises[0].sets == 4


@pytest.mark.asyncio
async def test_nested_exercise_operations_require_workout(engine):
    template = WorkoutExerciseTemplate(name="Squat")
    with pytest.raises(NotFoundError):
        await engine.add_exercise_to_workout(DAY, "ghost", template, True)
    with pytest.raises(NotFoundError):
        await engine.update_exercise_in_workout(DAY, "ghost", "e1", {"sets": 1})
    with pytest.raises(NotFoundError):
        await engine.remove_exercise_from_workout(DAY, "ghost", "e1")


@pytest.mark.asyncio
async def test_standalone_entries_and_mirror_protection(engine, ledger):
    entry = await engine.add_standalone_exercise(DAY, "Swim", 250, 30)
    assert entry.kind == EntryKind.authored
    await engine.upsert_workout(DAY, WorkoutEntry(id="w1", name="Legs", calories_burned=300), True)

    with pytest.raises(MirrorEntryError):
        await engine.remove_standalone_exercise(DAY, "sync-w1")

    await engine.remove_standalone_exercise(DAY, entry.id)
    # Absent entries are a no-op
    await engine.remove_standalone_exercise(DAY, entry.id)
    log = await ledger.get(DAY)
    assert [e.id for e in log.exercises] == ["sync-w1"]


@pytest.mark.asyncio
async def test_standalone_sync_prefixed_id_is_not_a_mirror(engine, ledger):
    # Ids never decide the entry kind for new entries
    log = await ledger.get(DAY)
    log.exercises.append(
        ExerciseEntry(id="sync-import-1", name="Garmin ride", calories_burned=400, kind=EntryKind.authored)
    )
    await ledger.put(DAY, log)
    await engine.remove_standalone_exercise(DAY, "sync-import-1")
    assert (await ledger.get(DAY)).exercises == []


@pytest.mark.asyncio
async def test_increment_pr_count(engine, ledger):
    wid = await engine.add_workout(DAY, "Push")
    await engine.increment_pr_count(DAY, wid)
    await engine.increment_pr_count(DAY, wid)
    assert (await ledger.get(DAY)).find_workout(wid).new_prs == 2


@pytest.mark.asyncio
async def test_repair_drops_orphans_left_by_interrupted_sequence(engine, ledger, memory_store, ctx):
    # A workout deleted by an older client that did not clean up its mirrors
    await engine.upsert_workout(DAY, WorkoutEntry(id="w1", name="Legs", calories_burned=300), True)
    raw = await memory_store.get(ctx.log_path(DAY))
    raw["workouts"] = []
    raw["exercises"].append(dict(raw["exercises"][0]))
    await memory_store.set(ctx.log_path(DAY), raw)

    log = await ledger.get(DAY)
    assert len(mirror_violations(log)) == 2
    assert await engine.repair(DAY) == 2
    assert (await ledger.get(DAY)).exercises == []
    assert await engine.repair(DAY) == 0


@pytest.mark.asyncio
async def test_upsert_heals_duplicate_mirrors(engine, ledger, memory_store, ctx):
    workout = WorkoutEntry(id="w1", name="Legs", calories_burned=300)
    await engine.upsert_workout(DAY, workout, True)
    raw = await memory_store.get(ctx.log_path(DAY))
    raw["exercises"].append(dict(raw["exercises"][0]))
    await memory_store.set(ctx.log_path(DAY), raw)

    await engine.upsert_workout(DAY, workout, True)
    log = await ledger.get(DAY)
    assert [e.id for e in log.exercises] == ["sync-w1"]


@pytest.mark.asyncio
async def test_legacy_mirror_without_kind_is_classified(ledger, memory_store, ctx):
    await memory_store.set(
        ctx.log_path(DAY),
        {
            "date": DAY,
            "workouts": [{"id": "w1", "name": "Legs", "exercises": [{"id": "e1", "name": "Squat"}]}],
            "exercises": [
                {"id": "sync-w1", "name": "Workout: Legs", "calories_burned": 300, "workout_id": "w1"},
                {"id": "sync-e1", "name": "Squat", "workout_id": "w1"},
                {"id": "abc", "name": "Walk", "calories_burned": 80},
            ],
        },
    )
    log = await ledger.get(DAY)
    kinds = [e.kind for e in log.exercises]
    assert kinds == [EntryKind.workout_mirror, EntryKind.exercise_mirror, EntryKind.authored]
    assert log.exercises[1].source_id == "e1"
    assert mirror_violations(log) == []


@pytest.mark.asyncio
async def test_load_workout_summary_returns_stale_after_retries(engine, monkeypatch):
    from fitledger.config import settings

    monkeypatch.setattr(settings, "read_retry_base_delay_seconds", 0)
    wid = await engine.add_workout(DAY, "Push")
    # No performance recorded yet: retries run out and the incomplete workout is returned
    workout = await engine.load_workout_summary(DAY, wid)
    assert workout.id == wid

    await engine.add_exercise_to_workout(DAY, wid, WorkoutExerciseTemplate(name="Bench", performance=SETS), False)
    workout = await engine.load_workout_summary(DAY, wid)
    assert workout.exercises[0].performance == SETS

    with pytest.raises(NotFoundError):
        await engine.load_workout_summary(DAY, "ghost")
