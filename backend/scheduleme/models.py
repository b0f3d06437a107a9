"""SQLModel data models.

This module defines the application's database tables using SQLModel.
Identifiers are short strings generated by the API (or supplied by the
client) so records can be moved between databases by the snapshot
import without renumbering.
"""

from enum import Enum
from typing import Optional
from sqlmodel import SQLModel, Field
from datetime import datetime, timezone


class LessonStatus(str, Enum):
    UPCOMING = "upcoming"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Role(str, Enum):
    ADMIN = "admin"
    TEACHER = "teacher"
    VIEWER = "viewer"


class Teacher(SQLModel, table=True):
    """A member of the teaching staff.

    `color` is a CSS color used by clients to tint the teacher's lessons.
    """
    __tablename__ = "teachers"

    id: str = Field(primary_key=True)
    first_name: str = ""
    last_name: str = ""
    color: str = "#6366f1"


class School(SQLModel, table=True):
    """A school (branch) where lessons take place.

    Schools are listed by `sort_order` first and then by name.
    """
    __tablename__ = "schools"

    id: str = Field(primary_key=True)
    name: str = ""
    address: str = ""
    sort_order: int = 0


class Lesson(SQLModel, table=True):
    """A single scheduled lesson.

    `date` is stored as `YYYY-MM-DD` and times as `HH:MM`, so ordering by
    the text columns matches chronological order. An empty `teacher_id`
    marks an unassigned lesson.
    """
    __tablename__ = "lessons"

    id: str = Field(primary_key=True)
    subject: str = ""
    grade: str = ""
    teacher_id: str = Field(default="", index=True)
    school_id: str = Field(default="", index=True)
    date: str = Field(index=True)
    start_time: str
    end_time: str
    room: str = ""
    status: str = LessonStatus.UPCOMING.value
    topic: Optional[str] = None
    notes: Optional[str] = None


class AppUser(SQLModel, table=True):
    """An account allowed to use the application.

    `role` decides what the account may change; `teacher_id` optionally
    links the account to a `Teacher` record.
    """
    __tablename__ = "app_users"

    id: str = Field(primary_key=True)
    email: str = Field(index=True, unique=True, nullable=False)
    role: str = Role.VIEWER.value
    teacher_id: Optional[str] = Field(default=None, foreign_key="teachers.id")
    password_hash: Optional[str] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
