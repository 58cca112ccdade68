"""
Input normalization: validate raw dicts, convert them to dataclasses,
resolve teachers and expand subject requirements into atomic tasks.
"""

import logging

from models import (
    ClassUnit, InputError, Resolution, SubjectRequirement, Task, Teacher, TeacherRef,
)

logger = logging.getLogger(__name__)


def validate_input(classes: list[dict], days: list[str], periods: int, allow_empty_classes: bool = True):
    """Reject malformed input before any search starts.

    The HTTP layer passes allow_empty_classes=False so that an empty request is
    refused; the solver itself treats an empty class list as trivially solved.
    """
    if not days:
        raise InputError('No days provided. At least one day is required.')
    if len(set(days)) != len(days):
        raise InputError(f'Duplicate day labels in {days}.')
    # bool is an int subclass; True is not a period count
    if not isinstance(periods, int) or isinstance(periods, bool) or periods <= 0:
        raise InputError(f'periods must be a positive integer, got {periods!r}.')
    if not classes and not allow_empty_classes:
        raise InputError('No classes provided. At least one class is required.')

    for cls in classes or []:
        if not cls.get('id') or not cls.get('name'):
            raise InputError(f'Class is missing an id or name: {cls!r}')
        for subj in cls.get('subjects') or []:
            freq = subj.get('weeklyFrequency')
            if not isinstance(freq, int) or isinstance(freq, bool) or freq <= 0:
                raise InputError(
                    f"Class '{cls['name']}' subject '{subj.get('name')}' has invalid "
                    f"weeklyFrequency {freq!r}; expected a positive integer."
                )
            if not subj.get('name'):
                raise InputError(f"Class '{cls['name']}' has a subject without a name.")


def parse_teachers(teachers: list[dict]) -> list[Teacher]:
    result = []
    for t in teachers or []:
        if not t.get('id') or not t.get('name'):
            raise InputError(f'Teacher is missing an id or name: {t!r}')
        result.append(Teacher(
            id=t['id'],
            name=t['name'],
            subject_specialization=list(t.get('subjectSpecialization') or []),
            available_days=list(t['availableDays']) if t.get('availableDays') else None,
        ))
    return result


def parse_classes(classes: list[dict]) -> list[ClassUnit]:
    return [
        ClassUnit(
            id=cls['id'],
            name=cls['name'],
            subjects=[
                SubjectRequirement(
                    name=s['name'],
                    weekly_frequency=s['weeklyFrequency'],
                    teacher_id=s.get('teacherId'),
                    preferred_teacher_name=s.get('preferredTeacherName'),
                )
                for s in cls.get('subjects') or []
            ],
        )
        for cls in classes or []
    ]


def resolve_teacher(requirement: SubjectRequirement, teachers: list[Teacher]) -> TeacherRef:
    """Find the teacher for a subject requirement.

    Ranked: explicit id, then preferred name, then the first teacher whose
    specializations include the subject. An id or name that matches nobody
    falls through to the next rank.
    """
    if requirement.teacher_id:
        for i, t in enumerate(teachers):
            if t.id == requirement.teacher_id:
                return TeacherRef(Resolution.EXACT, i)

    if requirement.preferred_teacher_name:
        for i, t in enumerate(teachers):
            if t.name == requirement.preferred_teacher_name:
                return TeacherRef(Resolution.BY_NAME, i)

    for i, t in enumerate(teachers):
        if requirement.name in t.subject_specialization:
            return TeacherRef(Resolution.BY_SPECIALIZATION, i)

    return TeacherRef.unassigned()


def build_tasks(classes: list[ClassUnit], teachers: list[Teacher]) -> tuple[list[Task], list[dict]]:
    """Expand every requirement into weekly_frequency tasks.

    Returns (tasks, unresolved) where unresolved lists the requirements no
    teacher could be found for. Those are still scheduled, without teacher
    checks.
    """
    tasks = []
    unresolved = []

    for c_idx, cls in enumerate(classes):
        for req in cls.subjects:
            ref = resolve_teacher(req, teachers)
            if not ref.is_resolved:
                logger.warning(f"No teacher found for '{req.name}' in class '{cls.name}'; scheduling as {Resolution.UNASSIGNED.value}")
                unresolved.append({'className': cls.name, 'subject': req.name})
            elif (req.teacher_id or req.preferred_teacher_name) and ref.resolution is Resolution.BY_SPECIALIZATION:
                logger.debug(f"Requested teacher for '{req.name}' in '{cls.name}' not found; using specialist {teachers[ref.teacher_index].name}")

            for n in range(req.weekly_frequency):
                tasks.append(Task(
                    id=f'{cls.id}-{req.name}-{n}',
                    class_index=c_idx,
                    subject=req.name,
                    teacher=ref,
                ))

    return tasks, unresolved
