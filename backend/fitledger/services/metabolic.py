"""
Metabolic targets: basal rate (Mifflin-St Jeor), daily expenditure and the macro split.
Pure functions; callers are responsible for sane input ranges.
"""
from __future__ import annotations

import enum
import math
from datetime import date
from typing import TypeVar

from fitledger.core.errors import InvalidEnumError
from fitledger.schemas.profile import (
    ActivityLevel,
    DietPace,
    Gender,
    Goal,
    MacroTargets,
    TargetWeightCheck,
    UserProfile,
    UserType,
)

ACTIVITY_MULTIPLIERS: dict[ActivityLevel, float] = {
    ActivityLevel.none: 1.2,
    ActivityLevel.sedentary: 1.2,
    ActivityLevel.light: 1.35,
    ActivityLevel.moderate: 1.55,
    ActivityLevel.active: 1.75,
    ActivityLevel.very_active: 1.9,
}

# Share of expenditure targeted per goal. No calorie floor is applied.
CALORIE_FACTORS: dict[Goal, float] = {
    Goal.lose: 0.80,
    Goal.maintain: 1.00,
    Goal.gain: 1.15,
}

# Protein grams per kg of (clamped) goal weight
PROTEIN_BASE_FACTORS: dict[Goal, float] = {
    Goal.lose: 2.0,
    Goal.maintain: 1.6,
    Goal.gain: 2.0,
}
ATHLETIC_PROTEIN_BONUS = 0.2
PROTEIN_CEILING_G: dict[Gender, float] = {
    Gender.male: 260.0,
    Gender.female: 220.0,
}

LOW_CALORIE_BAND = 1600
HIGH_CALORIE_BAND = 2800
MIN_FAT_G_PER_KG = 0.6

KCAL_PER_G_PROTEIN = 4
KCAL_PER_G_CARBS = 4
KCAL_PER_G_FAT = 9

MIN_SAFE_BMI = 18.0
MAX_SAFE_BMI = 40.0
MAX_GAIN_RATIO = 1.3

E = TypeVar("E", bound=enum.Enum)


def _coerce(enum_cls: type[E], value: E | str, field: str) -> E:
    try:
        return enum_cls(value)
    except ValueError:
        raise InvalidEnumError(field, value, [m.value for m in enum_cls]) from None


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def basal_rate(weight_kg: float, height_cm: float, age_years: float, gender: Gender | str) -> float:
    """Basal metabolic rate in kcal/day (Mifflin-St Jeor)."""
    g = _coerce(Gender, gender, "gender")
    bmr = 10 * weight_kg + 6.25 * height_cm - 5 * age_years
    return bmr + 5 if g == Gender.male else bmr - 161


def daily_expenditure(basal: float, activity_level: ActivityLevel | str) -> float:
    """Total daily energy expenditure: basal rate times the activity multiplier."""
    level = _coerce(ActivityLevel, activity_level, "activity_level")
    return basal * ACTIVITY_MULTIPLIERS[level]


def macro_targets(
    expenditure: float,
    goal: Goal | str,
    target_weight_kg: float,
    current_weight_kg: float,
    gender: Gender | str,
    pace: DietPace | str = DietPace.normal,
    user_type: UserType | str = UserType.casual,
) -> MacroTargets:
    """
    Daily calorie and macro targets. Steps run in a fixed order because each one
    consumes the previous result: calories -> protein -> fat -> carbs.
    Values stay unrounded until the return.
    """
    goal_ = _coerce(Goal, goal, "goal")
    gender_ = _coerce(Gender, gender, "gender")
    _coerce(DietPace, pace, "diet_pace")  # validated; the factors are fixed per goal
    user_type_ = _coerce(UserType, user_type, "user_type")

    # 1. Calories
    calories = expenditure * CALORIE_FACTORS[goal_]

    # 2. Protein on a clamped goal weight, capped per gender
    factor = PROTEIN_BASE_FACTORS[goal_]
    if user_type_ == UserType.athletic:
        factor += ATHLETIC_PROTEIN_BONUS
    if goal_ == Goal.lose:
        protein_weight = max(target_weight_kg, current_weight_kg * 0.8)
    elif goal_ == Goal.gain:
        protein_weight = min(target_weight_kg, current_weight_kg * 1.2)
    else:
        protein_weight = target_weight_kg
    protein_g = min(protein_weight * factor, PROTEIN_CEILING_G[gender_])
    protein_kcal = protein_g * KCAL_PER_G_PROTEIN

    # 3. Fat by calorie band, raised to the per-kg floor
    if calories < LOW_CALORIE_BAND:
        fat_share = 0.30
    elif calories > HIGH_CALORIE_BAND:
        fat_share = 0.20
    else:
        fat_share = 0.25
    fat_kcal = calories * fat_share
    fat_g = fat_kcal / KCAL_PER_G_FAT
    min_fat_g = target_weight_kg * MIN_FAT_G_PER_KG
    if fat_g < min_fat_g:
        fat_g = min_fat_g
        fat_kcal = fat_g * KCAL_PER_G_FAT

    # 4. Carbs fill the remainder; when protein+fat exceed the target the total follows them
    carb_kcal = calories - (protein_kcal + fat_kcal)
    if carb_kcal < 0:
        carb_kcal = 0.0
        calories = protein_kcal + fat_kcal
    carbs_g = carb_kcal / KCAL_PER_G_CARBS

    return MacroTargets(
        calories=_round_half_up(calories),
        protein=_round_half_up(protein_g),
        carbs=_round_half_up(carbs_g),
        fats=_round_half_up(fat_g),
    )


def calculate_age(date_of_birth: date | None, today: date | None = None) -> int:
    """Whole years since date_of_birth; 0 when unknown."""
    if date_of_birth is None:
        return 0
    today = today or date.today()
    age = today.year - date_of_birth.year
    if (today.month, today.day) < (date_of_birth.month, date_of_birth.day):
        age -= 1
    return age


def validate_target_weight(current_weight_kg: float, target_weight_kg: float, height_cm: float) -> TargetWeightCheck:
    """
    Safe target range: BMI 18 at the bottom; at the top the lesser of BMI 40 and a 30% gain,
    or the current weight if it is already above BMI 40.
    """
    height_m = height_cm / 100
    min_weight = MIN_SAFE_BMI * height_m * height_m
    bmi40 = MAX_SAFE_BMI * height_m * height_m
    if current_weight_kg > bmi40:
        max_weight = current_weight_kg
    else:
        max_weight = min(bmi40, current_weight_kg * MAX_GAIN_RATIO)

    if target_weight_kg < min_weight:
        return TargetWeightCheck(
            is_valid=False,
            error=f"Target weight is too low (BMI < 18). Minimum safe weight for your height is {min_weight:.1f}kg.",
            min=min_weight,
            max=max_weight,
        )
    if target_weight_kg > max_weight:
        if max_weight == bmi40:
            msg = f"Target weight is too high (BMI > 40). Maximum safe weight for your height is {max_weight:.1f}kg."
        else:
            msg = f"Target gain is too aggressive (>30%). Maximum recommended target is {max_weight:.1f}kg."
        return TargetWeightCheck(is_valid=False, error=msg, min=min_weight, max=max_weight)
    return TargetWeightCheck(is_valid=True, min=min_weight, max=max_weight)


def profile_targets(profile: UserProfile) -> tuple[float, MacroTargets]:
    """(tdee, targets) for a profile's current biometrics and goal."""
    bmr = basal_rate(profile.weight_kg, profile.height_cm, profile.age, profile.gender)
    tdee = daily_expenditure(bmr, profile.activity_level)
    targets = macro_targets(
        tdee,
        profile.goal,
        profile.target_weight_kg,
        profile.weight_kg,
        profile.gender,
        profile.diet_pace,
        profile.user_type,
    )
    return tdee, targets


def apply_profile_targets(profile: UserProfile) -> UserProfile:
    """Copy of profile with tdee and target_macros recomputed."""
    tdee, targets = profile_targets(profile)
    return profile.model_copy(update={"tdee": round(tdee), "target_macros": targets})
