"""Teacher hours report: filtering, sorting, totals and CSV export."""

import csv
import io
import math
from typing import Dict, Iterable, List, Optional

from .. import models
from .dates import time_to_minutes

UNKNOWN = "Unknown"
SORT_FIELDS = (
    "teacherName", "teacherId", "date", "startTime", "endTime",
    "durationMinutes", "schoolName", "subject", "grade",
)
CSV_HEADERS = ['Teacher', 'Date', 'Start Time', 'End Time', 'Duration (min)', 'School', 'Subject', 'Grade']


def _is_set(value: Optional[str]) -> bool:
    return value not in (None, "", "all")


def build_rows(
    lessons: Iterable[models.Lesson],
    teachers: Dict[str, models.Teacher],
    schools: Dict[str, models.School],
    date_from: Optional[str] = None,
    date_to: Optional[str] = None,
    teacher_id: Optional[str] = None,
    school_id: Optional[str] = None,
) -> List[dict]:
    """Filter lessons and turn each into a report row.

    Date bounds compare the `YYYY-MM-DD` strings directly and are
    inclusive. Lessons whose teacher or school no longer exists are kept
    and labelled "Unknown".
    """
    rows = []
    for lesson in lessons:
        if date_from and lesson.date < date_from:
            continue
        if date_to and lesson.date > date_to:
            continue
        if _is_set(teacher_id) and lesson.teacher_id != teacher_id:
            continue
        if _is_set(school_id) and lesson.school_id != school_id:
            continue
        teacher = teachers.get(lesson.teacher_id)
        school = schools.get(lesson.school_id)
        rows.append({
            'teacherName': f"{teacher.first_name} {teacher.last_name}" if teacher else UNKNOWN,
            'teacherId': lesson.teacher_id,
            'date': lesson.date,
            'startTime': lesson.start_time,
            'endTime': lesson.end_time,
            'durationMinutes': time_to_minutes(lesson.end_time) - time_to_minutes(lesson.start_time),
            'schoolName': school.name if school and school.name else UNKNOWN,
            'subject': lesson.subject,
            'grade': lesson.grade,
        })
    return rows


def sort_rows(rows: List[dict], field: str = "date", direction: str = "desc") -> List[dict]:
    """Return `rows` sorted by `field`.

    Numbers compare numerically, everything else as case-insensitive
    text. Equal keys keep their input order in both directions.
    """
    if field not in SORT_FIELDS:
        raise ValueError(f"unknown sort field: {field}")
    if direction not in ("asc", "desc"):
        raise ValueError("direction must be 'asc' or 'desc'")

    def key(row):
        value = row[field]
        if isinstance(value, (int, float)):
            return value
        return str(value).casefold()

    return sorted(rows, key=key, reverse=(direction == "desc"))


def totals(rows: List[dict]) -> dict:
    total_minutes = sum(r['durationMinutes'] for r in rows)
    # round half up, as displayed to users
    average = math.floor(total_minutes / len(rows) + 0.5) if rows else 0
    return {
        'totalLessons': len(rows),
        'totalMinutes': total_minutes,
        'totalHours': total_minutes // 60,
        'remainingMinutes': total_minutes % 60,
        'averageMinutes': average,
    }


def rows_to_csv(rows: List[dict]) -> str:
    """Render report rows as CSV text with a header line."""
    sio = io.StringIO()
    writer = csv.writer(sio, lineterminator='\n')
    writer.writerow(CSV_HEADERS)
    for r in rows:
        writer.writerow([
            r['teacherName'], r['date'], r['startTime'], r['endTime'],
            r['durationMinutes'], r['schoolName'], r['subject'], r['grade'],
        ])
    return sio.getvalue()
