"""Pydantic schemas for the user profile, derived targets and goals."""

import enum
from datetime import date, datetime, timezone

from pydantic import BaseModel, Field


class Gender(str, enum.Enum):
    male = "male"
    female = "female"


class ActivityLevel(str, enum.Enum):
    none = "none"
    sedentary = "sedentary"  # legacy
    light = "light"
    moderate = "moderate"
    active = "active"
    very_active = "very_active"  # legacy


class Goal(str, enum.Enum):
    lose = "lose"
    maintain = "maintain"
    gain = "gain"


class DietPace(str, enum.Enum):
    slow = "slow"
    normal = "normal"
    fast = "fast"


class UserType(str, enum.Enum):
    casual = "casual"
    athletic = "athletic"


class MacroTargets(BaseModel):
    calories: int = 0
    protein: int = 0
    carbs: int = 0
    fats: int = 0


class UserGoals(BaseModel):
    daily_calories: int
    daily_protein: int
    daily_carbs: int
    daily_fats: int

    @classmethod
    def from_targets(cls, targets: MacroTargets) -> "UserGoals":
        return cls(
            daily_calories=targets.calories,
            daily_protein=targets.protein,
            daily_carbs=targets.carbs,
            daily_fats=targets.fats,
        )


class UserProfile(BaseModel):
    id: str
    name: str = ""
    username: str | None = None
    gender: Gender
    age: int = Field(..., ge=0, le=130)
    height_cm: float = Field(..., gt=0)
    weight_kg: float = Field(..., gt=0)
    target_weight_kg: float = Field(..., gt=0)
    activity_level: ActivityLevel = ActivityLevel.moderate
    goal: Goal = Goal.maintain
    diet_pace: DietPace = DietPace.normal
    user_type: UserType = UserType.casual
    tdee: float = 0
    target_macros: MacroTargets = Field(default_factory=MacroTargets)
    date_of_birth: date | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    personal_records: dict[str, float] = Field(default_factory=dict)
    is_premium: bool = False
    is_admin: bool = False


class ProfileUpdate(BaseModel):
    """Body for PUT /profile. Derived fields (tdee, targets, records) are computed server-side."""

    name: str = ""
    username: str | None = None
    gender: Gender
    age: int | None = Field(None, ge=0, le=130)
    date_of_birth: date | None = None
    height_cm: float = Field(..., gt=0, le=300)
    weight_kg: float = Field(..., gt=0, le=500)
    target_weight_kg: float = Field(..., gt=0, le=500)
    activity_level: ActivityLevel = ActivityLevel.moderate
    goal: Goal = Goal.maintain
    diet_pace: DietPace = DietPace.normal
    user_type: UserType = UserType.casual


class WeightUpdate(BaseModel):
    weight_kg: float = Field(..., gt=0, le=500)


class TargetsPreviewRequest(BaseModel):
    gender: Gender
    age: int = Field(..., ge=0, le=130)
    height_cm: float = Field(..., gt=0, le=300)
    weight_kg: float = Field(..., gt=0, le=500)
    target_weight_kg: float = Field(..., gt=0, le=500)
    activity_level: ActivityLevel = ActivityLevel.moderate
    goal: Goal = Goal.maintain
    diet_pace: DietPace = DietPace.normal
    user_type: UserType = UserType.casual


class TargetsPreviewResponse(BaseModel):
    bmr: float
    tdee: float
    targets: MacroTargets


class TargetWeightCheck(BaseModel):
    is_valid: bool
    error: str | None = None
    min: float
    max: float


class TargetWeightCheckRequest(BaseModel):
    weight_kg: float = Field(..., gt=0)
    target_weight_kg: float = Field(..., gt=0)
    height_cm: float = Field(..., gt=0)


class MealSectionsUpdate(BaseModel):
    sections: list[str] = Field(..., min_length=1)
