from typing import List, Tuple

MILESTONE_STEP_MILES = 0.25
FIRST_MILESTONE_MILES = MILESTONE_STEP_MILES


def check_milestones(cumulative_miles: float,
                     next_milestone_miles: float,
                     step: float = MILESTONE_STEP_MILES) -> Tuple[List[float], float]:
    """
    Return every threshold reached by cumulative_miles, starting at
    next_milestone_miles, and the threshold to wait for afterwards.
    A single big jump (GPS gap) yields all the skipped thresholds.
    """
    crossed: List[float] = []
    # work in step indices so repeated additions don't drift (0.1-style error)
    k = round(next_milestone_miles / step)
    threshold = k * step
    while cumulative_miles >= threshold:
        crossed.append(threshold)
        k += 1
        threshold = k * step
    if not crossed:
        return crossed, next_milestone_miles
    return crossed, threshold


def milestone_message(threshold_miles: float) -> str:
    return f"You've reached {threshold_miles:.2f} miles"
