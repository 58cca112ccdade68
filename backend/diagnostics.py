"""
Infeasibility diagnostics.

preflight_checks() catches inputs that no placement can satisfy using simple
counting, so the backtracking search is never started for them.
probe_feasibility() rebuilds the problem as a CP-SAT model and asks OR-Tools
whether any timetable exists at all. It is only used after a failed search,
to tell an impossible input apart from an exhausted search budget.
"""

import logging
from collections import Counter, defaultdict

from ortools.sat.python import cp_model

from models import ClassUnit, Task, Teacher

logger = logging.getLogger(__name__)

STATUS_NAMES = {0: 'UNKNOWN', 1: 'MODEL_INVALID', 2: 'FEASIBLE', 3: 'INFEASIBLE', 4: 'OPTIMAL'}


def teacher_days(teacher: Teacher, days: list[str]) -> list[str]:
    return [d for d in days if teacher.is_available(d)]


def preflight_checks(
    classes: list[ClassUnit],
    teachers: list[Teacher],
    tasks: list[Task],
    days: list[str],
    periods: int,
    clump_limit: int,
) -> list[str]:
    """Return human-readable reasons the input can never be scheduled."""
    errors = []
    week_slots = len(days) * periods

    class_load = Counter(t.class_index for t in tasks)
    for c_idx, count in sorted(class_load.items()):
        if count > week_slots:
            errors.append(
                f"Class '{classes[c_idx].name}' needs {count} periods but the week only has {week_slots}"
            )

    subject_load = Counter((t.class_index, t.subject) for t in tasks)
    for (c_idx, subject), count in subject_load.items():
        max_per_week = clump_limit * len(days)
        if count > max_per_week:
            errors.append(
                f"Class '{classes[c_idx].name}' needs '{subject}' {count} times but at most "
                f"{clump_limit} per day allows only {max_per_week}"
            )

    # Restricted teachers also cap how many days a subject can spread over
    teacher_subject_load = Counter(
        (t.class_index, t.subject, t.teacher.teacher_index)
        for t in tasks if t.teacher.is_resolved
    )
    for (c_idx, subject, t_idx), count in teacher_subject_load.items():
        teacher = teachers[t_idx]
        if not teacher.is_part_time(days):
            continue
        open_days = teacher_days(teacher, days)
        max_per_week = clump_limit * len(open_days)
        if count > max_per_week:
            errors.append(
                f"Class '{classes[c_idx].name}' needs '{subject}' {count} times from {teacher.name}, "
                f"who is available on {len(open_days)} day(s) ({', '.join(open_days) or 'none'}); "
                f"at most {max_per_week} fit"
            )

    teacher_load = Counter(t.teacher.teacher_index for t in tasks if t.teacher.is_resolved)
    for t_idx, count in sorted(teacher_load.items()):
        teacher = teachers[t_idx]
        capacity = len(teacher_days(teacher, days)) * periods
        if count > capacity:
            errors.append(
                f"Teacher '{teacher.name}' is assigned {count} periods but is only available for {capacity}"
            )

    return errors


def probe_feasibility(
    tasks: list[Task],
    teachers: list[Teacher],
    days: list[str],
    periods: int,
    clump_limit: int,
    time_limit: float = 10.0,
    seed: int = 0,
) -> str:
    """Solve the same problem with CP-SAT and return the solver status name.

    Tasks of the same class, subject and teacher are interchangeable, so they
    are grouped and each group gets one boolean per allowed slot.
    """
    groups = Counter((t.class_index, t.subject, t.teacher.teacher_index) for t in tasks)
    if not groups:
        return STATUS_NAMES[cp_model.OPTIMAL]

    model = cp_model.CpModel()

    by_class_slot = defaultdict(list)  # (class, day, period) -> vars
    by_teacher_slot = defaultdict(list)  # (teacher, day, period) -> vars
    by_class_subject_day = defaultdict(list)  # (class, subject, day) -> vars

    for g_idx, ((c_idx, subject, t_idx), count) in enumerate(groups.items()):
        group_vars = []
        for d_idx, day in enumerate(days):
            if t_idx is not None and not teachers[t_idx].is_available(day):
                continue
            for p in range(periods):
                var = model.NewBoolVar(f'g{g_idx}_d{d_idx}_p{p}')
                group_vars.append(var)
                by_class_slot[(c_idx, d_idx, p)].append(var)
                by_class_subject_day[(c_idx, subject, d_idx)].append(var)
                if t_idx is not None:
                    by_teacher_slot[(t_idx, d_idx, p)].append(var)

        if len(group_vars) < count:
            return STATUS_NAMES[cp_model.INFEASIBLE]
        model.Add(sum(group_vars) == count)

    for cell_vars in by_class_slot.values():
        if len(cell_vars) > 1:
            model.AddAtMostOne(cell_vars)
    for slot_vars in by_teacher_slot.values():
        if len(slot_vars) > 1:
            model.AddAtMostOne(slot_vars)
    for day_vars in by_class_subject_day.values():
        if len(day_vars) > clump_limit:
            model.Add(sum(day_vars) <= clump_limit)

    solver = cp_model.CpSolver()
    solver.parameters.random_seed = seed
    solver.parameters.max_time_in_seconds = time_limit
    solver.parameters.num_search_workers = 1  # Deterministic with seed

    status = solver.Solve(model)
    status_name = STATUS_NAMES.get(status, str(status))
    logger.debug(f'Feasibility probe: {status_name} ({len(groups)} groups, {solver.WallTime():.2f}s)')
    return status_name
