"""Whole-dataset snapshots for backup and moving data between instances.

A snapshot is one JSON document holding every teacher, school and
lesson in the wire format used by the API. User accounts are not part
of it because they carry credentials.
"""

from datetime import datetime, timezone
from typing import Iterable, List, Tuple

from pydantic import ValidationError

from .. import models
from ..schemas import LessonIn, SchoolIn, TeacherIn, lesson_out, school_out, teacher_out

SNAPSHOT_VERSION = 1


def build_snapshot(
    teachers: Iterable[models.Teacher],
    schools: Iterable[models.School],
    lessons: Iterable[models.Lesson],
) -> dict:
    return {
        'version': SNAPSHOT_VERSION,
        'exportedAt': datetime.now(timezone.utc).isoformat(),
        'teachers': [teacher_out(t) for t in teachers],
        'schools': [school_out(s) for s in schools],
        'lessons': [lesson_out(l) for l in lessons],
    }


def _parse_items(kind: str, items: list, schema) -> list:
    out = []
    for idx, item in enumerate(items):
        try:
            parsed = schema.model_validate(item)
        except ValidationError as e:
            raise ValueError(f"{kind}[{idx}]: {e.errors()[0]['msg']}")
        if not parsed.id:
            raise ValueError(f"{kind}[{idx}]: missing id")
        out.append(parsed)
    return out


def parse_snapshot(doc: dict) -> Tuple[List[TeacherIn], List[SchoolIn], List[LessonIn]]:
    """Validate a snapshot document and return its typed records.

    Raises ValueError for an unsupported version or a malformed record.
    Every record must carry its id so re-importing is idempotent.
    """
    if doc.get('version') != SNAPSHOT_VERSION:
        raise ValueError(f"unsupported snapshot version: {doc.get('version')!r}")
    for key in ('teachers', 'schools', 'lessons'):
        if not isinstance(doc.get(key), list):
            raise ValueError(f"snapshot is missing the '{key}' list")
    return (
        _parse_items('teachers', doc['teachers'], TeacherIn),
        _parse_items('schools', doc['schools'], SchoolIn),
        _parse_items('lessons', doc['lessons'], LessonIn),
    )
