"""
Data types for the timetable solver.

Everything here is allocated per solve call. Nothing in this module holds
mutable state at import time.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

# Constants
DEFAULT_CLUMP_LIMIT = 2
DEFAULT_MAX_NODES = 500_000
DEFAULT_MAX_TIME_SECONDS = 20.0
UNASSIGNED = 'unassigned'
DRAFT_STATUS = 'Draft'
FAILURE_MESSAGE = 'Could not fully satisfy all constraints. Some classes may be incomplete.'


class InputError(ValueError):
    """Malformed solver input. Raised before any search starts."""


class Resolution(Enum):
    EXACT = 'exact'  # teacherId matched
    BY_NAME = 'by_name'  # preferredTeacherName matched
    BY_SPECIALIZATION = 'by_specialization'  # first teacher teaching the subject
    UNASSIGNED = 'unassigned'


@dataclass
class Teacher:
    id: str
    name: str
    subject_specialization: list = field(default_factory=list)
    available_days: Optional[list] = None  # None or [] = every day

    def is_available(self, day: str) -> bool:
        if not self.available_days:
            return True
        return day in self.available_days

    def is_part_time(self, days: list) -> bool:
        """True when the teacher can only work a strict subset of `days`."""
        if not self.available_days:
            return False
        week = set(days)
        return (set(self.available_days) & week) < week


@dataclass
class SubjectRequirement:
    name: str
    weekly_frequency: int
    teacher_id: Optional[str] = None
    preferred_teacher_name: Optional[str] = None


@dataclass
class ClassUnit:
    id: str
    name: str
    subjects: list = field(default_factory=list)  # list[SubjectRequirement]


@dataclass(frozen=True)
class TeacherRef:
    resolution: Resolution
    teacher_index: Optional[int] = None

    @property
    def is_resolved(self) -> bool:
        return self.resolution is not Resolution.UNASSIGNED

    @classmethod
    def unassigned(cls) -> 'TeacherRef':
        return cls(Resolution.UNASSIGNED)


@dataclass
class Task:
    id: str  # "{classId}-{subject}-{n}"
    class_index: int
    subject: str
    teacher: TeacherRef


@dataclass(frozen=True)
class TimeSlot:
    day: str
    period_index: int

    @property
    def key(self) -> str:
        return f'{self.day}-{self.period_index}'


@dataclass
class SearchState:
    """Grids mutated by one search.

    class_grid[c][d][p]    -> subject name or None
    cell_teacher[c][d][p]  -> teacher index or None
    teacher_busy[t][d][p]  -> bool
    """
    class_grid: list
    cell_teacher: list
    teacher_busy: list

    @classmethod
    def empty(cls, num_classes: int, num_teachers: int, num_days: int, periods: int) -> 'SearchState':
        return cls(
            class_grid=[[[None] * periods for _ in range(num_days)] for _ in range(num_classes)],
            cell_teacher=[[[None] * periods for _ in range(num_days)] for _ in range(num_classes)],
            teacher_busy=[[[False] * periods for _ in range(num_days)] for _ in range(num_teachers)],
        )

    def place(self, task: Task, day_idx: int, period: int):
        self.class_grid[task.class_index][day_idx][period] = task.subject
        if task.teacher.is_resolved:
            self.cell_teacher[task.class_index][day_idx][period] = task.teacher.teacher_index
            self.teacher_busy[task.teacher.teacher_index][day_idx][period] = True

    def clear(self, task: Task, day_idx: int, period: int):
        self.class_grid[task.class_index][day_idx][period] = None
        if task.teacher.is_resolved:
            self.cell_teacher[task.class_index][day_idx][period] = None
            self.teacher_busy[task.teacher.teacher_index][day_idx][period] = False

    def placed_count(self) -> int:
        return sum(
            1
            for class_days in self.class_grid
            for day in class_days
            for cell in day
            if cell is not None
        )
