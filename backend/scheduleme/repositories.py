"""Repository classes encapsulating database operations.

Each repository is small and focused on a single table (teachers,
schools, lessons, users). Repositories return SQLModel objects and
perform commits/refreshes where appropriate; lookups that miss return
`None` and leave the HTTP mapping to the controllers.
"""

from typing import Dict, List, Optional, Tuple
from sqlmodel import Session, select
from sqlalchemy import func
from . import models


class TeacherRepository:
    """CRUD operations for `Teacher` objects."""
    def __init__(self, session: Session):
        self.session = session

    def list(self) -> List[models.Teacher]:
        stmt = select(models.Teacher).order_by(models.Teacher.last_name, models.Teacher.first_name)
        return self.session.exec(stmt).all()

    def get(self, teacher_id: str) -> Optional[models.Teacher]:
        return self.session.get(models.Teacher, teacher_id)

    def save(self, teacher: models.Teacher) -> models.Teacher:
        """Insert or update `teacher` by primary key."""
        teacher = self.session.merge(teacher)
        self.session.commit()
        self.session.refresh(teacher)
        return teacher

    def delete(self, teacher: models.Teacher) -> None:
        """Delete a teacher and unlink any user accounts pointing at it.

        Lessons keep their `teacher_id`; reports render such lessons with
        an unknown teacher.
        """
        linked = self.session.exec(select(models.AppUser).where(models.AppUser.teacher_id == teacher.id)).all()
        for u in linked:
            u.teacher_id = None
            self.session.add(u)
        self.session.delete(teacher)
        self.session.commit()

    def as_map(self) -> Dict[str, models.Teacher]:
        return {t.id: t for t in self.list()}


class SchoolRepository:
    """CRUD operations for `School` objects."""
    def __init__(self, session: Session):
        self.session = session

    def list(self) -> List[models.School]:
        stmt = select(models.School).order_by(models.School.sort_order, models.School.name)
        return self.session.exec(stmt).all()

    def get(self, school_id: str) -> Optional[models.School]:
        return self.session.get(models.School, school_id)

    def first(self) -> Optional[models.School]:
        """Return the first school in display order, if any."""
        stmt = select(models.School).order_by(models.School.sort_order, models.School.name).limit(1)
        return self.session.exec(stmt).first()

    def save(self, school: models.School) -> models.School:
        school = self.session.merge(school)
        self.session.commit()
        self.session.refresh(school)
        return school

    def delete(self, school: models.School) -> None:
        self.session.delete(school)
        self.session.commit()

    def as_map(self) -> Dict[str, models.School]:
        return {s.id: s for s in self.list()}


class LessonRepository:
    """CRUD and range queries for `Lesson` objects."""
    def __init__(self, session: Session):
        self.session = session

    def list(
        self,
        date_from: Optional[str] = None,
        date_to: Optional[str] = None,
        teacher_id: Optional[str] = None,
        school_id: Optional[str] = None,
    ) -> List[models.Lesson]:
        """Return lessons ordered by date and start time.

        Date bounds are inclusive; `None` disables a filter.
        """
        stmt = select(models.Lesson)
        if date_from:
            stmt = stmt.where(models.Lesson.date >= date_from)
        if date_to:
            stmt = stmt.where(models.Lesson.date <= date_to)
        if teacher_id is not None:
            stmt = stmt.where(models.Lesson.teacher_id == teacher_id)
        if school_id is not None:
            stmt = stmt.where(models.Lesson.school_id == school_id)
        stmt = stmt.order_by(models.Lesson.date, models.Lesson.start_time)
        return self.session.exec(stmt).all()

    def list_history(self) -> List[models.Lesson]:
        """Return all lessons newest first."""
        stmt = select(models.Lesson).order_by(models.Lesson.date.desc(), models.Lesson.start_time.desc())
        return self.session.exec(stmt).all()

    def list_on_dates(self, dates: List[str]) -> List[models.Lesson]:
        stmt = select(models.Lesson).where(models.Lesson.date.in_(dates)).order_by(models.Lesson.date, models.Lesson.start_time)
        return self.session.exec(stmt).all()

    def get(self, lesson_id: str) -> Optional[models.Lesson]:
        return self.session.get(models.Lesson, lesson_id)

    def save(self, lesson: models.Lesson) -> models.Lesson:
        lesson = self.session.merge(lesson)
        self.session.commit()
        self.session.refresh(lesson)
        return lesson

    def add_all(self, lessons: List[models.Lesson]) -> List[models.Lesson]:
        """Insert several new lessons in one transaction."""
        for lesson in lessons:
            self.session.add(lesson)
        self.session.commit()
        for lesson in lessons:
            self.session.refresh(lesson)
        return lessons

    def delete(self, lesson: models.Lesson) -> None:
        self.session.delete(lesson)
        self.session.commit()

    def count(self) -> int:
        return self.session.exec(select(func.count()).select_from(models.Lesson)).one()


class UserRepository:
    """CRUD operations for `AppUser` objects."""
    def __init__(self, session: Session):
        self.session = session

    def list_with_teachers(self) -> List[Tuple[models.AppUser, Optional[models.Teacher]]]:
        """Return `(user, teacher)` pairs ordered by email; `teacher` may be `None`."""
        stmt = (
            select(models.AppUser, models.Teacher)
            .join(models.Teacher, models.AppUser.teacher_id == models.Teacher.id, isouter=True)
            .order_by(models.AppUser.email)
        )
        return self.session.exec(stmt).all()

    def get(self, user_id: str) -> Optional[models.AppUser]:
        return self.session.get(models.AppUser, user_id)

    def get_by_email(self, email: str) -> Optional[models.AppUser]:
        stmt = select(models.AppUser).where(models.AppUser.email == email)
        return self.session.exec(stmt).first()

    def save(self, user: models.AppUser) -> models.AppUser:
        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
        return user

    def delete(self, user: models.AppUser) -> None:
        self.session.delete(user)
        self.session.commit()
