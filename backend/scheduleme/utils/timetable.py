"""Timetable grid layout and conflict detection.

Lessons are placed into hourly slots by the hour of their start time.
The daily grid has one column per school; the weekly grid has one group
of columns per business day, each group holding only the schools that
actually have lessons that day.
"""

from collections import defaultdict
from datetime import date
from itertools import combinations
from typing import Dict, Iterable, List, Optional, Sequence

from .. import models
from ..schemas import lesson_out, school_out
from .dates import format_date, time_to_minutes

TIME_SLOTS = [f"{h:02d}:00" for h in range(8, 21)]
_SLOT_HOURS = {int(s[:2]) for s in TIME_SLOTS}


def start_hour(lesson: models.Lesson) -> int:
    return int(lesson.start_time.split(":")[0])


def filter_lessons(
    lessons: Iterable[models.Lesson],
    school_id: Optional[str] = None,
    teacher_id: Optional[str] = None,
) -> List[models.Lesson]:
    """Keep lessons matching the school/teacher filters; `None` or `all` match everything."""
    out = []
    for lesson in lessons:
        if school_id not in (None, "all") and lesson.school_id != school_id:
            continue
        if teacher_id not in (None, "all") and lesson.teacher_id != teacher_id:
            continue
        out.append(lesson)
    return out


def _bucket(lessons: Iterable[models.Lesson]) -> Dict[tuple, List[models.Lesson]]:
    cells = defaultdict(list)
    for lesson in lessons:
        cells[(lesson.date, start_hour(lesson), lesson.school_id)].append(lesson)
    return cells


def _unslotted(lessons: Iterable[models.Lesson]) -> List[dict]:
    return [lesson_out(lesson) for lesson in lessons if start_hour(lesson) not in _SLOT_HOURS]


def active_schools(day_lessons: Sequence[models.Lesson], schools: Dict[str, models.School]) -> List[models.School]:
    """Distinct schools of `day_lessons` in order of first appearance.

    Lessons pointing at unknown schools are not given a column.
    """
    seen = []
    for lesson in day_lessons:
        if lesson.school_id in schools and lesson.school_id not in seen:
            seen.append(lesson.school_id)
    return [schools[sid] for sid in seen]


def daily_grid(
    day: date,
    lessons: Iterable[models.Lesson],
    schools: Sequence[models.School],
    school_id: Optional[str] = None,
    teacher_id: Optional[str] = None,
) -> dict:
    """Lay out one day's lessons as time slots by school columns."""
    date_str = format_date(day)
    day_lessons = [lesson for lesson in filter_lessons(lessons, school_id, teacher_id) if lesson.date == date_str]
    columns = list(schools) if school_id in (None, "all") else [s for s in schools if s.id == school_id]
    cells = _bucket(day_lessons)
    slots = []
    for time in TIME_SLOTS:
        hour = int(time[:2])
        slots.append({
            'time': time,
            'cells': [
                {'schoolId': s.id, 'lessons': [lesson_out(l) for l in cells.get((date_str, hour, s.id), [])]}
                for s in columns
            ],
        })
    return {
        'date': date_str,
        'schools': [school_out(s) for s in columns],
        'lessonCount': len(day_lessons),
        'slots': slots,
        'unslotted': _unslotted(day_lessons),
    }


def weekly_grid(
    days: Sequence[date],
    lessons: Iterable[models.Lesson],
    schools: Dict[str, models.School],
    school_id: Optional[str] = None,
    teacher_id: Optional[str] = None,
) -> dict:
    """Lay out a week as time slots by (day, active school) columns."""
    filtered = filter_lessons(lessons, school_id, teacher_id)
    by_date = defaultdict(list)
    for lesson in filtered:
        by_date[lesson.date].append(lesson)
    day_configs = []
    for d in days:
        date_str = format_date(d)
        day_lessons = by_date.get(date_str, [])
        day_configs.append((date_str, day_lessons, active_schools(day_lessons, schools)))

    cells = _bucket(filtered)
    slots = []
    for time in TIME_SLOTS:
        hour = int(time[:2])
        row = []
        for date_str, _, day_schools in day_configs:
            for s in day_schools:
                row.append({
                    'date': date_str,
                    'schoolId': s.id,
                    'lessons': [lesson_out(l) for l in cells.get((date_str, hour, s.id), [])],
                })
        slots.append({'time': time, 'cells': row})

    week_lessons = [l for _, day_lessons, _ in day_configs for l in day_lessons]
    return {
        'weekStart': format_date(days[0]) if days else None,
        'days': [
            {
                'date': date_str,
                'weekday': d.strftime('%a'),
                'lessonCount': len(day_lessons),
                'schools': [school_out(s) for s in day_schools],
            }
            for d, (date_str, day_lessons, day_schools) in zip(days, day_configs)
        ],
        'slots': slots,
        'unslotted': _unslotted(week_lessons),
    }


def _overlaps(a: models.Lesson, b: models.Lesson) -> bool:
    a_start, a_end = time_to_minutes(a.start_time), time_to_minutes(a.end_time)
    b_start, b_end = time_to_minutes(b.start_time), time_to_minutes(b.end_time)
    return a_start < b_end and b_start < a_end


def find_conflicts(lessons: Iterable[models.Lesson]) -> List[dict]:
    """Return overlapping lesson pairs that share a teacher or a room.

    Unassigned lessons (empty teacher) never clash on the teacher, and
    lessons without a room never clash on the room.
    """
    by_date = defaultdict(list)
    for lesson in lessons:
        by_date[lesson.date].append(lesson)
    conflicts = []
    for day in sorted(by_date):
        for a, b in combinations(by_date[day], 2):
            if not _overlaps(a, b):
                continue
            if a.teacher_id and a.teacher_id == b.teacher_id:
                conflicts.append({'kind': 'teacher', 'date': day, 'teacherId': a.teacher_id, 'lessonIds': [a.id, b.id]})
            if a.room and a.room == b.room and a.school_id == b.school_id:
                conflicts.append({'kind': 'room', 'date': day, 'schoolId': a.school_id, 'room': a.room, 'lessonIds': [a.id, b.id]})
    return conflicts


def conflicts_for(lesson: models.Lesson, others: Iterable[models.Lesson]) -> List[dict]:
    """Conflicts between `lesson` and lessons on the same date."""
    peers = [o for o in others if o.date == lesson.date and o.id != lesson.id]
    return [c for c in find_conflicts([lesson] + peers) if lesson.id in c['lessonIds']]
