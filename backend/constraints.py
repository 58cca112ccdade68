"""
Placement predicates.

Each check looks at the grids in a SearchState and never mutates them.
first_violation() runs them in a fixed order and stops at the first failure.
"""

from typing import Optional

from models import SearchState, Task, Teacher

OCCUPIED = 'occupied'
TEACHER_UNAVAILABLE = 'teacher_unavailable'
TEACHER_BUSY = 'teacher_busy'
DAILY_LIMIT = 'daily_limit'


def is_cell_free(task: Task, day_idx: int, period: int, state: SearchState) -> bool:
    return state.class_grid[task.class_index][day_idx][period] is None


def is_teacher_available(task: Task, day: str, teachers: list[Teacher]) -> bool:
    if not task.teacher.is_resolved:
        return True
    return teachers[task.teacher.teacher_index].is_available(day)


def is_teacher_free(task: Task, day_idx: int, period: int, state: SearchState) -> bool:
    if not task.teacher.is_resolved:
        return True
    return not state.teacher_busy[task.teacher.teacher_index][day_idx][period]


def daily_count(task: Task, day_idx: int, state: SearchState) -> int:
    """Periods of task.subject already placed for the task's class on that day."""
    return sum(1 for cell in state.class_grid[task.class_index][day_idx] if cell == task.subject)


def is_within_clump_limit(task: Task, day_idx: int, state: SearchState, clump_limit: int) -> bool:
    return daily_count(task, day_idx, state) < clump_limit


def first_violation(
    task: Task,
    day_idx: int,
    period: int,
    state: SearchState,
    teachers: list[Teacher],
    days: list[str],
    clump_limit: int,
) -> Optional[str]:
    """Name of the first failed check, or None if the placement is valid."""
    if not is_cell_free(task, day_idx, period, state):
        return OCCUPIED
    if not is_teacher_available(task, days[day_idx], teachers):
        return TEACHER_UNAVAILABLE
    if not is_teacher_free(task, day_idx, period, state):
        return TEACHER_BUSY
    if not is_within_clump_limit(task, day_idx, state, clump_limit):
        return DAILY_LIMIT
    return None


def is_valid_placement(task, day_idx, period, state, teachers, days, clump_limit) -> bool:
    return first_violation(task, day_idx, period, state, teachers, days, clump_limit) is None
