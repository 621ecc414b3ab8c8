"""Goal and progress evaluation.

Pure functions, no I/O. Ratios are in [0, 1]; percentages are whole numbers
for display.
"""

DEFAULT_ML_PER_POINT = 100
DEFAULT_POINTS_PER_LEVEL = 1000


def progress(value: float, goal: float) -> float:
    """Share of 'goal' reached, capped at 1. A goal of 0 or less gives 0."""
    if goal <= 0:
        return 0.0
    return min(max(value, 0) / goal, 1.0)


def percentage(value: float, goal: float) -> int:
    """progress() as a whole percentage (0-100)."""
    return int(progress(value, goal) * 100)


def goal_met(value: float, goal: float) -> bool:
    return goal > 0 and value >= goal


def remaining(value: float, goal: float) -> int:
    """How much is left to reach the goal, never negative."""
    return max(int(goal - value), 0)


def points_for_water_addition(amount_ml: int, ml_per_point: int = DEFAULT_ML_PER_POINT) -> int:
    """One point per full 100 ml logged."""
    if amount_ml <= 0:
        return 0
    return amount_ml // ml_per_point


def next_level_points(current_level: int, points_per_level: int = DEFAULT_POINTS_PER_LEVEL) -> int:
    """Cumulative points at which 'current_level' is complete."""
    return max(current_level, 1) * points_per_level


def level_progress(
    total_points: int, current_level: int, points_per_level: int = DEFAULT_POINTS_PER_LEVEL
) -> float:
    """Progress through the current level.

    Level L starts at (L-1) * 1000 points and completes at L * 1000.
    """
    level = max(current_level, 1)
    start = (level - 1) * points_per_level
    ratio = (total_points - start) / points_per_level
    return min(max(ratio, 0.0), 1.0)


def step_motivation(steps: int, goal: int) -> tuple[str, str]:
    """Headline and detail line for the dashboard's motivation card."""
    ratio = progress(steps, goal)
    if ratio >= 1:
        headline = "🎉 Amazing! You've reached your step goal!"
        detail = "You're a fitness champion! Time to celebrate and set new goals."
    else:
        if ratio >= 0.5:
            headline = "🔥 You're halfway there! Keep it up!"
        else:
            headline = "🌟 Every step counts! Let's get moving!"
        detail = f"Just {remaining(steps, goal):,} more steps to reach your goal!"
    return headline, detail
