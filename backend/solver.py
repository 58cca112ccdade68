"""
School Timetable Solver - Backtracking Implementation

Places every subject-period a class needs into a (day, period) slot so that no
class cell or teacher is double-booked, restricted teachers only work on their
days, and no subject clumps more than `clump_limit` times on one day.

Plain depth-first backtracking with no propagation. Fine for tens of classes
with tens of requirements over roughly 40 weekly slots; worst case is
exponential, so every search runs under a node budget and a wall-clock deadline.
"""

import logging
import random
import time
from dataclasses import dataclass
from typing import Callable, Optional

from constraints import is_valid_placement
from diagnostics import preflight_checks, probe_feasibility
from models import (
    DEFAULT_CLUMP_LIMIT, DEFAULT_MAX_NODES, DEFAULT_MAX_TIME_SECONDS, DRAFT_STATUS,
    FAILURE_MESSAGE, UNASSIGNED, ClassUnit, InputError, SearchState, Task, Teacher, TimeSlot,
)
from normalizer import build_tasks, parse_classes, parse_teachers, validate_input

logger = logging.getLogger(__name__)

# Stop reasons
SOLVED = 'solved'
EXHAUSTED = 'exhausted'
NODE_LIMIT = 'node_limit'
TIME_LIMIT = 'time_limit'
CANCELLED = 'cancelled'
PREFLIGHT = 'preflight'

# How many placements between deadline / cancellation checks
CHECK_INTERVAL = 256


def prioritize_tasks(tasks: list[Task], teachers: list[Teacher], days: list[str], rng: random.Random) -> list[Task]:
    """Order tasks most-constrained first.

    Tasks taught by a part-time teacher (available on a strict subset of the
    week) go first since they have the fewest valid slots. Everything else is
    ordered randomly from `rng`, so unseeded runs give different timetables.
    """
    def sort_key(task: Task) -> tuple:
        restricted = (
            task.teacher.is_resolved
            and teachers[task.teacher.teacher_index].is_part_time(days)
        )
        return (0 if restricted else 1, rng.random())

    return sorted(tasks, key=sort_key)


@dataclass
class Frame:
    slots: list  # shuffled (day_idx, period) domain
    cursor: int = 0
    placed: Optional[tuple] = None


class BacktrackingSearch:
    """Depth-first search over a prioritized task list.

    Frames are kept on an explicit stack instead of the call stack so that
    large inputs do not hit the interpreter recursion limit. Frame i holds the
    shuffled slot domain of task i and the slot currently committed for it.
    """

    def __init__(
        self,
        tasks: list[Task],
        state: SearchState,
        teachers: list[Teacher],
        days: list[str],
        periods: int,
        clump_limit: int,
        rng: random.Random,
        max_nodes: int = DEFAULT_MAX_NODES,
        max_time_seconds: float = DEFAULT_MAX_TIME_SECONDS,
        should_stop: Optional[Callable[[], bool]] = None,
    ):
        self.tasks = tasks
        self.state = state
        self.teachers = teachers
        self.days = days
        self.periods = periods
        self.clump_limit = clump_limit
        self.rng = rng
        self.max_nodes = max_nodes
        self.deadline = time.time() + max_time_seconds
        self.should_stop = should_stop
        self.nodes = 0
        self.stop_reason = None

    def slot_domain(self) -> list:
        slots = [(d, p) for d in range(len(self.days)) for p in range(self.periods)]
        self.rng.shuffle(slots)
        return slots

    def next_valid_slot(self, task: Task, frame: Frame) -> Optional[tuple]:
        while frame.cursor < len(frame.slots):
            day_idx, period = frame.slots[frame.cursor]
            frame.cursor += 1
            if is_valid_placement(task, day_idx, period, self.state, self.teachers, self.days, self.clump_limit):
                return day_idx, period
        return None

    def budget_exceeded(self) -> bool:
        if self.nodes >= self.max_nodes:
            self.stop_reason = NODE_LIMIT
            return True
        if self.nodes % CHECK_INTERVAL == 0:
            if time.time() > self.deadline:
                self.stop_reason = TIME_LIMIT
                return True
            if self.should_stop is not None and self.should_stop():
                self.stop_reason = CANCELLED
                return True
        return False

    def run(self) -> bool:
        """Place every task. On failure the grids keep whatever was placed."""
        frames: list[Frame] = []
        depth = 0

        while depth < len(self.tasks):
            if depth == len(frames):
                frames.append(Frame(slots=self.slot_domain()))
            frame = frames[depth]
            task = self.tasks[depth]

            # Returning here means everything below failed: undo and try the next slot
            if frame.placed is not None:
                self.state.clear(task, *frame.placed)
                frame.placed = None

            slot = self.next_valid_slot(task, frame)
            if slot is None:
                frames.pop()
                depth -= 1
                if depth < 0:
                    self.stop_reason = EXHAUSTED
                    logger.debug(f'Search exhausted after {self.nodes} placements')
                    return False
                continue

            if self.budget_exceeded():
                logger.debug(f'Search stopped ({self.stop_reason}) at depth {depth}/{len(self.tasks)} after {self.nodes} placements')
                return False

            self.state.place(task, *slot)
            frame.placed = slot
            self.nodes += 1
            depth += 1

        self.stop_reason = SOLVED
        return True


def format_schedules(
    classes: list[ClassUnit],
    teachers: list[Teacher],
    days: list[str],
    periods: int,
    state: SearchState,
) -> list[dict]:
    """Build per-class schedule and teacher assignment maps keyed "{day}-{period}"."""
    schedules = []
    for c_idx, cls in enumerate(classes):
        schedule = {}
        teacher_assignments = {}
        for d_idx, day in enumerate(days):
            for p in range(periods):
                subject = state.class_grid[c_idx][d_idx][p]
                if subject is None:
                    continue
                key = TimeSlot(day, p).key
                schedule[key] = subject
                t_idx = state.cell_teacher[c_idx][d_idx][p]
                teacher_assignments[key] = teachers[t_idx].name if t_idx is not None else UNASSIGNED

        schedules.append({
            'className': cls.name,
            'schedule': schedule,
            'teacherAssignments': teacher_assignments,
            'status': DRAFT_STATUS,
        })
    return schedules


def generate_timetable(
    classes: list[dict],
    teachers: list[dict],
    days: list[str],
    periods: int,
    clump_limit: int = DEFAULT_CLUMP_LIMIT,
    seed: Optional[int] = None,
    max_nodes: int = DEFAULT_MAX_NODES,
    max_time_seconds: float = DEFAULT_MAX_TIME_SECONDS,
    should_stop: Optional[Callable[[], bool]] = None,
    diagnose: bool = False,
) -> dict:
    """
    Main entry point for timetable generation.

    Args:
        classes: List of class dicts with id, name, subjects
            (each {name, weeklyFrequency, teacherId?, preferredTeacherName?})
        teachers: List of teacher dicts with id, name, subjectSpecialization, availableDays?
        days: Ordered day labels
        periods: Teaching periods per day (breaks already removed)
        clump_limit: Maximum periods of one subject per class per day
        seed: Random seed for task tie-breaking and slot shuffling; None = fresh randomness
        max_nodes: Maximum placements the search may commit
        max_time_seconds: Wall-clock budget for the search
        should_stop: Optional callable polled during search; returning True cancels it
        diagnose: On failure, also run the CP-SAT feasibility probe

    Returns:
        Dict with schedules, globalConflicts, success, diagnostics.
        When success is False the schedules are partial and not authoritative.

    Raises:
        InputError: malformed input (empty days, non-positive periods, ...)
    """
    start_time = time.time()

    validate_input(classes, days, periods)
    if not isinstance(clump_limit, int) or isinstance(clump_limit, bool) or clump_limit < 1:
        raise InputError(f'clump_limit must be a positive integer, got {clump_limit!r}.')

    class_objs = parse_classes(classes)
    teacher_objs = parse_teachers(teachers)
    tasks, unresolved = build_tasks(class_objs, teacher_objs)

    diagnostics = {
        'totalTasks': len(tasks),
        'unassignedTasks': sum(1 for t in tasks if not t.teacher.is_resolved),
        'unresolvedRequirements': unresolved,
        'nodesExpanded': 0,
        'stopReason': None,
    }

    state = SearchState.empty(len(class_objs), len(teacher_objs), len(days), periods)

    preflight_errors = preflight_checks(class_objs, teacher_objs, tasks, days, periods, clump_limit)
    if preflight_errors:
        for err in preflight_errors:
            logger.warning(f'Preflight: {err}')
        diagnostics['preflightErrors'] = preflight_errors
        diagnostics['stopReason'] = PREFLIGHT
        success = False
    else:
        rng = random.Random(seed)
        ordered = prioritize_tasks(tasks, teacher_objs, days, rng)
        search = BacktrackingSearch(
            ordered, state, teacher_objs, days, periods, clump_limit, rng,
            max_nodes=max_nodes,
            max_time_seconds=max_time_seconds,
            should_stop=should_stop,
        )
        success = search.run()
        diagnostics['nodesExpanded'] = search.nodes
        diagnostics['stopReason'] = search.stop_reason

    if not success and diagnose and not preflight_errors:
        diagnostics['feasibilityProbe'] = probe_feasibility(
            tasks, teacher_objs, days, periods, clump_limit,
            seed=seed or 0,
        )

    elapsed = time.time() - start_time
    logger.info(
        f"Timetable {'solved' if success else 'incomplete'}: {len(class_objs)} classes, "
        f"{len(tasks)} tasks, {diagnostics['nodesExpanded']} placements, {elapsed:.2f}s"
    )

    return {
        'schedules': format_schedules(class_objs, teacher_objs, days, periods, state),
        'globalConflicts': [] if success else [FAILURE_MESSAGE],
        'success': success,
        'diagnostics': diagnostics,
    }
