"""CLI script to seed demo teachers and schools into the backend DB.
Usage: python scripts/seed_demo.py [--with-lessons]
"""
import sys
import argparse
import pathlib
from datetime import date
# Ensure `backend/` is on sys.path so `scheduleme` package imports work when running this script directly
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
from sqlmodel import Session
from scheduleme.database import engine, create_db_and_tables
from scheduleme import services
from scheduleme.schemas import LessonIn, SchoolIn, TeacherIn
from scheduleme.utils.dates import format_date, week_days

DEMO_TEACHERS = [
    {'id': 't1', 'firstName': 'John', 'lastName': 'Doe', 'color': '#6366f1'},
    {'id': 't2', 'firstName': 'Jane', 'lastName': 'Smith', 'color': '#10b981'},
]
DEMO_SCHOOLS = [
    {'id': 's1', 'name': 'Lincoln High', 'sortOrder': 0},
    {'id': 's2', 'name': 'Westside Academy', 'sortOrder': 1},
]


def main(with_lessons: bool = False):
    """Upsert the demo teachers and schools.

    With `with_lessons` a few lessons are also placed into the current
    week so the timetable views have something to show.
    """
    create_db_and_tables()
    with Session(engine) as session:
        for t in DEMO_TEACHERS:
            services.TeacherService(session).save(TeacherIn.model_validate(t))
        for s in DEMO_SCHOOLS:
            services.SchoolService(session).save(SchoolIn.model_validate(s))
        print(f'Seeded {len(DEMO_TEACHERS)} teachers and {len(DEMO_SCHOOLS)} schools')
        if not with_lessons:
            return
        lesson_svc = services.LessonService(session)
        days = week_days(date.today())
        created = 0
        for i, day in enumerate(days[:5]):
            teacher = DEMO_TEACHERS[i % 2]
            school = DEMO_SCHOOLS[i % 2]
            payload = LessonIn.model_validate({
                'id': f'demo-{format_date(day)}',
                'grade': str(5 + i),
                'teacherId': teacher['id'],
                'schoolId': school['id'],
                'date': format_date(day),
                'startTime': f'{9 + i:02d}:00',
            })
            lesson, conflicts = lesson_svc.save(payload)
            created += 1
            if conflicts:
                print(f'Lesson {lesson.id} overlaps {len(conflicts)} other lesson(s)')
        print(f'Seeded {created} lessons for the week of {format_date(days[0])}')


if __name__ == '__main__':
    parser = argparse.ArgumentParser()
    parser.add_argument('--with-lessons', action='store_true', help='Also add demo lessons to the current week')
    args = parser.parse_args()
    main(with_lessons=args.with_lessons)
