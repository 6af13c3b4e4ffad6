"""Pydantic schemas for the daily ledger document and its nested records."""

import enum
from datetime import datetime, timezone

from pydantic import BaseModel, Field, field_validator, model_validator

MIRROR_ID_PREFIX = "sync-"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def mirror_id(source_id: str) -> str:
    return f"{MIRROR_ID_PREFIX}{source_id}"


class NutritionInfo(BaseModel):
    calories: float = 0
    protein: float = 0
    carbs: float = 0
    fats: float = 0
    serving_size: str | None = None
    serving_weight: float | None = None
    serving_weight_unit: str | None = None


class FoodItem(BaseModel):
    """Food to log: nutrition is per one serving."""

    id: str
    name: str
    nutrition: NutritionInfo


class DailyLogEntry(BaseModel):
    id: str
    food_id: str
    food_name: str
    nutrition: NutritionInfo  # already multiplied by servings
    timestamp: datetime = Field(default_factory=utcnow)
    servings: float = 1
    meal_category: str | None = None


class EntryKind(str, enum.Enum):
    authored = "authored"
    workout_mirror = "workout_mirror"
    exercise_mirror = "exercise_mirror"


class ExerciseEntry(BaseModel):
    """Calorie-bearing item in the flat exercise list consumed by the nutrition summary."""

    id: str
    exercise_id: str | None = None
    name: str
    calories_burned: float = 0
    duration_minutes: float = 0
    timestamp: datetime = Field(default_factory=utcnow)
    workout_id: str | None = None  # back-reference only
    kind: EntryKind = EntryKind.authored
    source_id: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _classify_legacy(cls, data):
        # Documents written before `kind` existed only carry the id prefix
        if not isinstance(data, dict) or data.get("kind"):
            return data
        entry_id = str(data.get("id") or "")
        if not entry_id.startswith(MIRROR_ID_PREFIX):
            return data
        source = entry_id[len(MIRROR_ID_PREFIX):]
        data = dict(data)
        data["source_id"] = source
        if data.get("workout_id") == source:
            data["kind"] = EntryKind.workout_mirror.value
        else:
            data["kind"] = EntryKind.exercise_mirror.value
        return data

    @property
    def is_mirror(self) -> bool:
        return self.kind != EntryKind.authored


class SetPerformance(BaseModel):
    set_number: int = Field(..., ge=1)
    weight: float = Field(0, ge=0)
    reps: int = Field(0, ge=0)


class WorkoutExerciseTemplate(BaseModel):
    """Exercise shape without an id: routine templates and new-exercise requests."""

    name: str = Field(..., min_length=1, max_length=256)
    sets: int | None = Field(None, ge=0)
    reps: int | None = Field(None, ge=0)
    weight: float | None = Field(None, ge=0)
    duration_minutes: float | None = Field(None, ge=0)
    rest_time: int | None = Field(None, ge=0, description="Rest between sets, seconds")
    performance: list[SetPerformance] | None = None
    completed: bool = False


class WorkoutExercise(WorkoutExerciseTemplate):
    id: str


class WorkoutStatus(str, enum.Enum):
    draft = "draft"
    in_progress = "in_progress"
    completed = "completed"


class WorkoutEntry(BaseModel):
    id: str
    name: str
    duration_minutes: float = 0
    calories_burned: float = 0
    timestamp: datetime = Field(default_factory=utcnow)
    exercises: list[WorkoutExercise] = Field(default_factory=list)
    new_prs: int = 0
    completed: bool = False

    @property
    def status(self) -> WorkoutStatus:
        if self.completed:
            return WorkoutStatus.completed
        if any(ex.completed for ex in self.exercises):
            return WorkoutStatus.in_progress
        return WorkoutStatus.draft

    def find_exercise(self, exercise_id: str) -> WorkoutExercise | None:
        return next((ex for ex in self.exercises if ex.id == exercise_id), None)


class WorkoutRoutine(BaseModel):
    id: str
    name: str
    exercises: list[WorkoutExerciseTemplate] = Field(default_factory=list)
    default_duration_minutes: float | None = None
    default_calories_burned: float | None = None
    created_at: datetime = Field(default_factory=utcnow)


class DailyLog(BaseModel):
    date: str = Field(..., description="YYYY-MM-DD")
    entries: list[DailyLogEntry] = Field(default_factory=list)
    exercises: list[ExerciseEntry] = Field(default_factory=list)
    workouts: list[WorkoutEntry] = Field(default_factory=list)
    totals: NutritionInfo = Field(default_factory=NutritionInfo)

    @classmethod
    def empty(cls, date: str) -> "DailyLog":
        return cls(date=date)

    def find_workout(self, workout_id: str) -> WorkoutEntry | None:
        return next((w for w in self.workouts if w.id == workout_id), None)


class SavedMeal(BaseModel):
    id: str
    name: str
    items: list[DailyLogEntry] = Field(default_factory=list)
    total_nutrition: NutritionInfo = Field(default_factory=NutritionInfo)
    created_at: datetime = Field(default_factory=utcnow)


class MealMatch(BaseModel):
    date: str
    entries: list[DailyLogEntry]


class ExerciseHistoryItem(BaseModel):
    date: str
    performance: list[SetPerformance]
    best_one_rep_max: float = 0


# Request bodies


class AddFoodRequest(BaseModel):
    food: FoodItem
    servings: float = Field(1, gt=0, le=100)
    meal_category: str = "Snacks & Drinks"


class AddEntriesRequest(BaseModel):
    """Entries with ids generated by the client (optimistic views keep the same ids)."""

    entries: list[DailyLogEntry] = Field(..., min_length=1)


class AddStandaloneExerciseRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=256)
    calories_burned: float = Field(0, ge=0, le=20000)
    duration_minutes: float = Field(0, ge=0, le=1440)
    exercise_id: str | None = None


class CreateWorkoutRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=256)
    calories_burned: float = Field(0, ge=0, le=20000)
    duration_minutes: float = Field(0, ge=0, le=1440)


class AddWorkoutExerciseRequest(BaseModel):
    exercise: WorkoutExerciseTemplate
    mirror_to_ledger: bool | None = None


class UpdateWorkoutExerciseRequest(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=256)
    sets: int | None = Field(None, ge=0)
    reps: int | None = Field(None, ge=0)
    weight: float | None = Field(None, ge=0)
    duration_minutes: float | None = Field(None, ge=0)
    rest_time: int | None = Field(None, ge=0)
    completed: bool | None = None

    @field_validator("name", "completed")
    @classmethod
    def _not_null(cls, value, info):
        if value is None:
            raise ValueError(f"{info.field_name} cannot be null")
        return value


class RecordPerformanceRequest(BaseModel):
    performance: list[SetPerformance] = Field(..., min_length=1)
    mirror_to_ledger: bool | None = None


class RecordSetRequest(BaseModel):
    exercise_name: str = Field(..., min_length=1, max_length=256)
    weight: float = Field(..., ge=0)
    reps: int = Field(..., ge=0)


class FinishWorkoutRequest(BaseModel):
    calories_burned: float | None = Field(None, ge=0, le=20000)
    duration_minutes: float | None = Field(None, ge=0, le=1440)
    intensity: int | None = Field(None, ge=1, le=10, description="RPE; estimates calories when calories_burned is omitted")


class UpsertWorkoutRequest(BaseModel):
    workout: WorkoutEntry
    mirror_to_ledger: bool | None = None


class SaveMealRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=256)
    meal_category: str


class RepeatMealRequest(BaseModel):
    """Optional local view the client already shows; the new rows are merged into it."""

    local_view: DailyLog | None = None
