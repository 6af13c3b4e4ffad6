"""Strength and session math: one-rep-max estimates and workout calorie estimate."""
from __future__ import annotations

from collections.abc import Iterable

from fitledger.schemas.ledger import SetPerformance, WorkoutEntry

# RPE -> MET-like value; RPE <= 5 and >= 10 are clamped to the ends
INTENSITY_VALUES: dict[int, float] = {
    6: 4.5,
    7: 5.5,
    8: 6.5,
    9: 7.5,
}
LOW_INTENSITY_VALUE = 3.5
MAX_INTENSITY_VALUE = 8.5
SESSION_CALORIE_CAP = 600
# Without logged sets assume half of the session was active work
IDLE_DUTY_CYCLE = 0.5


def one_rep_max(weight: float, reps: int) -> float:
    """Epley estimate weight * (1 + reps / 30). A single rep is the exact max."""
    if weight <= 0 or reps <= 0:
        return 0.0
    if reps == 1:
        return weight
    return weight * (1 + reps / 30)


def best_one_rep_max(performance: Iterable[SetPerformance]) -> float:
    return max((one_rep_max(p.weight, p.reps) for p in performance), default=0.0)


def intensity_value(intensity: int) -> float:
    if intensity <= 5:
        return LOW_INTENSITY_VALUE
    if intensity >= 10:
        return MAX_INTENSITY_VALUE
    return INTENSITY_VALUES[intensity]


def estimate_session_calories(
    intensity: int,
    body_weight_kg: float,
    total_sets: int,
    duration_minutes: float = 0,
) -> int:
    """
    kcal = intensity value * body weight * active hours, capped at 600.
    Active time counts one minute per logged set.
    """
    active_hours = total_sets / 60
    if total_sets == 0 and duration_minutes > 0:
        active_hours = (duration_minutes / 60) * IDLE_DUTY_CYCLE
    kcal = round(intensity_value(intensity) * body_weight_kg * active_hours)
    return min(kcal, SESSION_CALORIE_CAP)


def count_logged_sets(workout: WorkoutEntry) -> int:
    return sum(len(ex.performance) for ex in workout.exercises if ex.performance)
