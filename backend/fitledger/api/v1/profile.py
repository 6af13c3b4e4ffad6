"""Profile API: biometrics, derived targets, goals, meal sections and personal records."""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException

from fitledger.api.deps import get_profile_store, get_record_tracker, require_user
from fitledger.core.session import SessionContext
from fitledger.schemas.profile import (
    MealSectionsUpdate,
    ProfileUpdate,
    TargetsPreviewRequest,
    TargetsPreviewResponse,
    TargetWeightCheck,
    TargetWeightCheckRequest,
    UserGoals,
    UserProfile,
    WeightUpdate,
)
from fitledger.services.metabolic import (
    basal_rate,
    calculate_age,
    daily_expenditure,
    macro_targets,
    validate_target_weight,
)
from fitledger.services.profile_store import ProfileStore
from fitledger.services.records import RecordTracker

router = APIRouter(prefix="/profile", tags=["profile"])

Profiles = Annotated[ProfileStore, Depends(get_profile_store)]
User = Annotated[SessionContext, Depends(require_user)]


@router.get("", response_model=UserProfile)
async def get_profile(profiles: Profiles) -> UserProfile:
    profile = await profiles.get()
    if profile is None:
        raise HTTPException(status_code=404, detail="Profile not found")
    return profile


@router.put("", response_model=UserProfile)
async def put_profile(ctx: User, profiles: Profiles, body: ProfileUpdate) -> UserProfile:
    """Create or replace the profile; tdee, targets and daily goals are recomputed."""
    age = body.age
    if age is None:
        if body.date_of_birth is None:
            raise HTTPException(status_code=422, detail="Either age or date_of_birth is required")
        age = calculate_age(body.date_of_birth)
    existing = await profiles.get()
    fields = body.model_dump(exclude={"age"})
    if existing is not None:
        profile = existing.model_copy(update={**fields, "age": age, "is_premium": ctx.is_premium})
    else:
        profile = UserProfile(id=ctx.require_user_id(), age=age, is_premium=ctx.is_premium, **fields)
    check = validate_target_weight(profile.weight_kg, profile.target_weight_kg, profile.height_cm)
    if not check.is_valid:
        raise HTTPException(status_code=422, detail=check.error)
    return await profiles.save(profile)


@router.put("/weight", response_model=UserProfile)
async def update_weight(ctx: User, profiles: Profiles, body: WeightUpdate) -> UserProfile:
    """Log a new body weight; targets follow it."""
    return await profiles.update_weight(body.weight_kg)


@router.post("/targets/preview", response_model=TargetsPreviewResponse)
async def preview_targets(body: TargetsPreviewRequest) -> TargetsPreviewResponse:
    """Targets for the given biometrics without storing anything (onboarding)."""
    bmr = basal_rate(body.weight_kg, body.height_cm, body.age, body.gender)
    tdee = daily_expenditure(bmr, body.activity_level)
    targets = macro_targets(
        tdee,
        body.goal,
        body.target_weight_kg,
        body.weight_kg,
        body.gender,
        body.diet_pace,
        body.user_type,
    )
    return TargetsPreviewResponse(bmr=bmr, tdee=tdee, targets=targets)


@router.post("/target-weight/check", response_model=TargetWeightCheck)
async def check_target_weight(body: TargetWeightCheckRequest) -> TargetWeightCheck:
    return validate_target_weight(body.weight_kg, body.target_weight_kg, body.height_cm)


@router.get("/goals", response_model=UserGoals)
async def get_goals(profiles: Profiles) -> UserGoals:
    return await profiles.get_goals()


@router.put("/goals", response_model=UserGoals)
async def put_goals(ctx: User, profiles: Profiles, body: UserGoals) -> UserGoals:
    await profiles.save_goals(body)
    return body


@router.get("/meal-sections", response_model=list[str])
async def get_meal_sections(profiles: Profiles) -> list[str]:
    return await profiles.get_meal_sections()


@router.put("/meal-sections", response_model=list[str])
async def put_meal_sections(ctx: User, profiles: Profiles, body: MealSectionsUpdate) -> list[str]:
    await profiles.save_meal_sections(body.sections)
    return body.sections


@router.get("/records", response_model=dict[str, float])
async def get_personal_records(records: Annotated[RecordTracker, Depends(get_record_tracker)]) -> dict[str, float]:
    return await records.personal_records()
