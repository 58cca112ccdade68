"""Shared fixtures for the timetable solver tests."""

from collections import Counter

import pytest

WEEK = ['Monday', 'Tuesday', 'Wednesday', 'Thursday', 'Friday']


@pytest.fixture
def week():
    return list(WEEK)


def make_teacher(id, name, subjects, available_days=None):
    t = {'id': id, 'name': name, 'subjectSpecialization': list(subjects)}
    if available_days is not None:
        t['availableDays'] = list(available_days)
    return t


def make_class(id, name, *subjects):
    """subjects: (name, weeklyFrequency) or (name, weeklyFrequency, extra-dict) tuples."""
    reqs = []
    for s in subjects:
        req = {'name': s[0], 'weeklyFrequency': s[1]}
        if len(s) > 2:
            req.update(s[2])
        reqs.append(req)
    return {'id': id, 'name': name, 'subjects': reqs}


@pytest.fixture
def teacher_factory():
    return make_teacher


@pytest.fixture
def class_factory():
    return make_class


def assert_valid_timetable(result, classes, teachers, clump_limit=2):
    """Check every hard rule on a result. Frequencies are only checked on success."""
    availability = {t['name']: t.get('availableDays') for t in teachers}
    teacher_slots = {}

    for sched in result['schedules']:
        assert set(sched['schedule']) == set(sched['teacherAssignments'])
        per_day = Counter()
        for key, subject in sched['schedule'].items():
            day, period = key.rsplit('-', 1)
            assert int(period) >= 0
            per_day[(day, subject)] += 1

            teacher = sched['teacherAssignments'][key]
            if teacher == 'unassigned':
                continue
            assert (teacher, key) not in teacher_slots, (
                f"{teacher} double-booked at {key}: {teacher_slots[(teacher, key)]} and {sched['className']}"
            )
            teacher_slots[(teacher, key)] = sched['className']
            if availability.get(teacher):
                assert day in availability[teacher]

        assert all(count <= clump_limit for count in per_day.values()), per_day

    if result['success']:
        assert result['globalConflicts'] == []
        for cls, sched in zip(classes, result['schedules']):
            expected = Counter()
            for s in cls['subjects']:
                expected[s['name']] += s['weeklyFrequency']
            assert Counter(sched['schedule'].values()) == expected
    else:
        assert len(result['globalConflicts']) == 1


@pytest.fixture
def check_timetable():
    return assert_valid_timetable
