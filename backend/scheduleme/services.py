"""Business logic services used by HTTP controllers.

This module holds small service classes that coordinate repositories
and the timetable/report helpers. Services validate input, apply
defaults and persist through repositories. Validation problems raise
`ValueError`; lookups of missing records return `None` so controllers
can answer 404.
"""

import logging
import re
import uuid
from datetime import date, datetime, timedelta, timezone
from typing import List, Optional, Tuple

import jwt
from passlib.context import CryptContext
from sqlmodel import Session

from . import models, repositories
from .config import settings
from .schemas import LessonIn, SchoolIn, TeacherIn, UserIn, lesson_out
from .utils import dates, reports, timetable
from .utils.snapshot import build_snapshot, parse_snapshot

PWD_CTX = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
ROLES = {r.value for r in models.Role}
STATUSES = {s.value for s in models.LessonStatus}

DEFAULT_SUBJECT = "English"
DEFAULT_START = "09:00"
DEFAULT_DURATION_MINUTES = 45
DEFAULT_ROOM = "101"
DASHBOARD_LIMIT = 9

logger = logging.getLogger("scheduleme.services")


def new_id() -> str:
    return uuid.uuid4().hex


class AuthService:
    """Password login and token issuing."""
    def __init__(self, session: Session):
        self.session = session
        self.user_repo = repositories.UserRepository(session)

    def authenticate(self, email: str, password: str) -> Optional[str]:
        """Verify credentials and return a signed JWT token on success.

        Returns `None` if the account is unknown, has no password set or
        the password does not match.
        """
        user = self.user_repo.get_by_email(email.strip().lower())
        if not user or not user.password_hash:
            return None
        if not PWD_CTX.verify(password, user.password_hash):
            return None
        expire = datetime.now(timezone.utc) + timedelta(hours=settings.JWT_EXPIRE_HOURS)
        payload = {"user_id": user.id, "email": user.email, "role": user.role, "exp": int(expire.timestamp())}
        return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


class TeacherService:
    def __init__(self, session: Session):
        self.session = session
        self.repo = repositories.TeacherRepository(session)

    def save(self, payload: TeacherIn) -> models.Teacher:
        """Create or fully replace a teacher (upsert by id)."""
        t = models.Teacher(
            id=payload.id or new_id(),
            first_name=payload.first_name or "",
            last_name=payload.last_name or "",
            color=payload.color or "#6366f1",
        )
        return self.repo.save(t)

    def update(self, teacher_id: str, payload: TeacherIn) -> Optional[models.Teacher]:
        t = self.repo.get(teacher_id)
        if not t:
            return None
        for field, value in payload.model_dump(exclude_unset=True, exclude={'id'}).items():
            if value is not None:
                setattr(t, field, value)
        return self.repo.save(t)


class SchoolService:
    def __init__(self, session: Session):
        self.session = session
        self.repo = repositories.SchoolRepository(session)

    def save(self, payload: SchoolIn) -> models.School:
        """Create or fully replace a school (upsert by id)."""
        s = models.School(
            id=payload.id or new_id(),
            name=payload.name or "",
            address=payload.address or "",
            sort_order=payload.sort_order or 0,
        )
        return self.repo.save(s)

    def update(self, school_id: str, payload: SchoolIn) -> Optional[models.School]:
        s = self.repo.get(school_id)
        if not s:
            return None
        for field, value in payload.model_dump(exclude_unset=True, exclude={'id'}).items():
            if value is not None:
                setattr(s, field, value)
        return self.repo.save(s)


class LessonService:
    """Validate, default and persist lessons."""
    def __init__(self, session: Session):
        self.session = session
        self.repo = repositories.LessonRepository(session)
        self.teacher_repo = repositories.TeacherRepository(session)
        self.school_repo = repositories.SchoolRepository(session)

    def build(self, payload: LessonIn) -> models.Lesson:
        """Turn a create payload into a `Lesson`, filling in defaults.

        Missing values get the same defaults as the "new lesson" form:
        English at 09:00 for 45 minutes in room 101, at the first school.
        """
        start = payload.start_time or DEFAULT_START
        end = payload.end_time or dates.add_minutes(start, DEFAULT_DURATION_MINUTES)
        school_id = payload.school_id
        if not school_id:
            first = self.school_repo.first()
            school_id = first.id if first else ""
        return models.Lesson(
            id=payload.id or new_id(),
            subject=payload.subject or DEFAULT_SUBJECT,
            grade=payload.grade or "",
            teacher_id=payload.teacher_id or "",
            school_id=school_id,
            date=payload.date or dates.format_date(date.today()),
            start_time=start,
            end_time=end,
            room=payload.room if payload.room is not None else DEFAULT_ROOM,
            status=payload.status or models.LessonStatus.UPCOMING.value,
            topic=payload.topic,
            notes=payload.notes,
        )

    def validate(self, lesson: models.Lesson, check_refs: bool = True) -> None:
        """Raise ValueError if the lesson is malformed.

        With `check_refs` a non-empty teacher or school id must exist.
        """
        dates.parse_date(lesson.date)
        start = dates.time_to_minutes(lesson.start_time)
        end = dates.time_to_minutes(lesson.end_time)
        if end <= start:
            raise ValueError("endTime must be after startTime")
        if lesson.status not in STATUSES:
            raise ValueError(f"invalid status: {lesson.status!r}")
        if not check_refs:
            return
        if lesson.teacher_id and not self.teacher_repo.get(lesson.teacher_id):
            raise ValueError("Teacher not found")
        if lesson.school_id and not self.school_repo.get(lesson.school_id):
            raise ValueError("School not found")

    def save(self, payload: LessonIn) -> Tuple[models.Lesson, List[dict]]:
        """Create or fully replace a lesson; return it with its conflicts."""
        lesson = self.build(payload)
        self.validate(lesson)
        saved = self.repo.save(lesson)
        return saved, self._conflicts(saved)

    def update(self, lesson_id: str, payload: LessonIn) -> Optional[Tuple[models.Lesson, List[dict]]]:
        """Apply the fields present in `payload` to an existing lesson.

        Explicit nulls clear `topic` and `notes` and are ignored elsewhere.
        """
        lesson = self.repo.get(lesson_id)
        if not lesson:
            return None
        for field, value in payload.model_dump(exclude_unset=True, exclude={'id'}).items():
            if value is None and field not in ('topic', 'notes'):
                continue
            setattr(lesson, field, value)
        try:
            self.validate(lesson)
        except ValueError:
            self.session.rollback()
            raise
        saved = self.repo.save(lesson)
        return saved, self._conflicts(saved)

    def _conflicts(self, lesson: models.Lesson) -> List[dict]:
        same_day = self.repo.list(date_from=lesson.date, date_to=lesson.date)
        conflicts = timetable.conflicts_for(lesson, same_day)
        if conflicts:
            logger.info("lesson %s saved with %d conflict(s)", lesson.id, len(conflicts))
        return conflicts


class UserService:
    """Manage application accounts and their roles."""
    def __init__(self, session: Session):
        self.session = session
        self.repo = repositories.UserRepository(session)
        self.teacher_repo = repositories.TeacherRepository(session)

    def _check(self, email: Optional[str], role: Optional[str], teacher_id: Optional[str]) -> None:
        if email is not None and not EMAIL_RE.match(email):
            raise ValueError("Invalid email format")
        if role is not None and role not in ROLES:
            raise ValueError("Invalid role. Must be admin, teacher, or viewer")
        if teacher_id and not self.teacher_repo.get(teacher_id):
            raise ValueError("Teacher not found")

    def save(self, payload: UserIn) -> models.AppUser:
        """Create a user, or update role/teacher of the user with that email."""
        email = (payload.email or "").strip().lower()
        role = payload.role or models.Role.VIEWER.value
        teacher_id = payload.teacher_id or None
        self._check(email, role, teacher_id)
        user = self.repo.get_by_email(email)
        if user and email == settings.DEFAULT_ADMIN_EMAIL and role != models.Role.ADMIN.value:
            raise ValueError("Cannot change role of default admin user")
        if user:
            user.role = role
            user.teacher_id = teacher_id
        else:
            user_id = payload.id or new_id()
            if self.repo.get(user_id):
                raise ValueError("User id already in use")
            user = models.AppUser(id=user_id, email=email, role=role, teacher_id=teacher_id)
        if payload.password:
            user.password_hash = PWD_CTX.hash(payload.password)
        return self.repo.save(user)

    def update(self, user_id: str, payload: UserIn) -> Optional[models.AppUser]:
        user = self.repo.get(user_id)
        if not user:
            return None
        fields = payload.model_dump(exclude_unset=True, exclude={'id'})
        if not fields:
            raise ValueError("No valid fields to update")
        email = fields.get('email')
        if email is not None:
            email = email.strip().lower()
        is_default_admin = user.email == settings.DEFAULT_ADMIN_EMAIL
        if is_default_admin and email and email != settings.DEFAULT_ADMIN_EMAIL:
            raise ValueError("Cannot change email of default admin user")
        if is_default_admin and fields.get('role') not in (None, models.Role.ADMIN.value):
            raise ValueError("Cannot change role of default admin user")
        self._check(email, fields.get('role'), fields.get('teacher_id'))
        if email is not None and email != user.email:
            other = self.repo.get_by_email(email)
            if other and other.id != user.id:
                raise ValueError("Email already in use")
            user.email = email
        if fields.get('role') is not None:
            user.role = fields['role']
        if 'teacher_id' in fields:
            user.teacher_id = fields['teacher_id'] or None
        if fields.get('password'):
            user.password_hash = PWD_CTX.hash(fields['password'])
        return self.repo.save(user)

    def delete(self, user_id: str) -> bool:
        """Delete a user; return False if it does not exist."""
        user = self.repo.get(user_id)
        if not user:
            return False
        if user.email == settings.DEFAULT_ADMIN_EMAIL:
            raise ValueError("Cannot delete default admin user")
        self.repo.delete(user)
        return True


class ScheduleService:
    """Timetable views and bulk schedule operations."""
    def __init__(self, session: Session):
        self.session = session
        self.lesson_repo = repositories.LessonRepository(session)
        self.school_repo = repositories.SchoolRepository(session)

    def week(self, offset: int = 0, anchor: Optional[date] = None, school_id: Optional[str] = None, teacher_id: Optional[str] = None) -> dict:
        days = dates.week_days(anchor, offset)
        lessons = self.lesson_repo.list_on_dates([dates.format_date(d) for d in days])
        return timetable.weekly_grid(days, lessons, self.school_repo.as_map(), school_id, teacher_id)

    def day(self, day: date, school_id: Optional[str] = None, teacher_id: Optional[str] = None) -> dict:
        date_str = dates.format_date(day)
        lessons = self.lesson_repo.list(date_from=date_str, date_to=date_str)
        return timetable.daily_grid(day, lessons, self.school_repo.list(), school_id, teacher_id)

    def copy_week(self, offset: int = 0, keep_teachers: bool = True, anchor: Optional[date] = None) -> List[models.Lesson]:
        """Clone every lesson of the selected week into the following week.

        Clones get fresh ids and status `upcoming`; with `keep_teachers`
        off they are left unassigned.
        """
        days = [dates.format_date(d) for d in dates.week_days(anchor, offset)]
        current = self.lesson_repo.list_on_dates(days)
        if not current:
            raise ValueError("No sessions found to duplicate.")
        clones = []
        for lesson in current:
            clones.append(models.Lesson(
                id=new_id(),
                subject=lesson.subject,
                grade=lesson.grade,
                teacher_id=lesson.teacher_id if keep_teachers else "",
                school_id=lesson.school_id,
                date=dates.shift_date(lesson.date, 7),
                start_time=lesson.start_time,
                end_time=lesson.end_time,
                room=lesson.room,
                status=models.LessonStatus.UPCOMING.value,
                topic=lesson.topic,
                notes=lesson.notes,
            ))
        created = self.lesson_repo.add_all(clones)
        logger.info("cloned %d lessons from week of %s", len(created), days[0])
        return created

    def conflicts(self, date_from: Optional[str] = None, date_to: Optional[str] = None) -> List[dict]:
        return timetable.find_conflicts(self.lesson_repo.list(date_from=date_from, date_to=date_to))

    def dashboard(self) -> dict:
        lessons = self.lesson_repo.list()
        return {'total': len(lessons), 'upcoming': [lesson_out(l) for l in lessons[:DASHBOARD_LIMIT]]}


class ReportService:
    """Teacher hours report."""
    def __init__(self, session: Session):
        self.session = session
        self.lesson_repo = repositories.LessonRepository(session)
        self.teacher_repo = repositories.TeacherRepository(session)
        self.school_repo = repositories.SchoolRepository(session)

    def teacher_hours(
        self,
        date_from: Optional[str] = None,
        date_to: Optional[str] = None,
        teacher_id: Optional[str] = None,
        school_id: Optional[str] = None,
        sort: str = "date",
        direction: str = "desc",
    ) -> dict:
        for bound in (date_from, date_to):
            if bound:
                dates.parse_date(bound)
        rows = reports.build_rows(
            self.lesson_repo.list(),
            self.teacher_repo.as_map(),
            self.school_repo.as_map(),
            date_from=date_from,
            date_to=date_to,
            teacher_id=teacher_id,
            school_id=school_id,
        )
        rows = reports.sort_rows(rows, sort, direction)
        return {'rows': rows, 'totals': reports.totals(rows)}

    def teacher_hours_csv(self, **filters) -> Tuple[str, str]:
        """Return `(filename, csv_text)` for the filtered report."""
        report = self.teacher_hours(**filters)
        filename = f"teacher_hours_{dates.format_date(date.today())}.csv"
        return filename, reports.rows_to_csv(report['rows'])


class SnapshotService:
    """Export and import the full teacher/school/lesson dataset."""
    def __init__(self, session: Session):
        self.session = session
        self.teacher_repo = repositories.TeacherRepository(session)
        self.school_repo = repositories.SchoolRepository(session)
        self.lesson_repo = repositories.LessonRepository(session)

    def export(self) -> dict:
        return build_snapshot(self.teacher_repo.list(), self.school_repo.list(), self.lesson_repo.list())

    def import_(self, doc: dict) -> dict:
        """Upsert every record of a snapshot in one transaction.

        Records are validated up front; nothing is written if any record
        is malformed. References between records are not checked since
        exported data may legitimately point at deleted teachers.
        """
        teachers, schools, lessons = parse_snapshot(doc)
        lesson_svc = LessonService(self.session)
        built = []
        for idx, item in enumerate(lessons):
            lesson = lesson_svc.build(item)
            try:
                lesson_svc.validate(lesson, check_refs=False)
            except ValueError as e:
                raise ValueError(f"lessons[{idx}]: {e}")
            built.append(lesson)
        for t in teachers:
            self.session.merge(models.Teacher(
                id=t.id, first_name=t.first_name or "", last_name=t.last_name or "", color=t.color or "#6366f1",
            ))
        for s in schools:
            self.session.merge(models.School(
                id=s.id, name=s.name or "", address=s.address or "", sort_order=s.sort_order or 0,
            ))
        for lesson in built:
            self.session.merge(lesson)
        self.session.commit()
        counts = {'teachers': len(teachers), 'schools': len(schools), 'lessons': len(built)}
        logger.info("imported snapshot %s", counts)
        return counts
