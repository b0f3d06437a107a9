"""Pydantic request/response schemas used by the API.

Schemas keep API input/output shapes stable. The wire format uses
camelCase keys; inputs additionally accept the snake_case spelling of
every key so rows exported straight from the database can be posted
back unchanged.
"""

from pydantic import AliasChoices, BaseModel, Field
from typing import Optional
from . import models


def _alias(camel: str, snake: str):
    return Field(default=None, validation_alias=AliasChoices(camel, snake))


class LoginIn(BaseModel):
    """Payload for the login endpoint."""
    email: str
    password: str


class TokenOut(BaseModel):
    """Authentication response containing an access token."""
    access_token: str


class TeacherIn(BaseModel):
    """Create/update payload for a teacher. Unset fields are left alone on PATCH."""
    id: Optional[str] = None
    first_name: Optional[str] = _alias("firstName", "first_name")
    last_name: Optional[str] = _alias("lastName", "last_name")
    color: Optional[str] = None


class SchoolIn(BaseModel):
    """Create/update payload for a school."""
    id: Optional[str] = None
    name: Optional[str] = None
    address: Optional[str] = None
    sort_order: Optional[int] = _alias("sortOrder", "sort_order")


class LessonIn(BaseModel):
    """Create/update payload for a lesson."""
    id: Optional[str] = None
    subject: Optional[str] = None
    grade: Optional[str] = None
    teacher_id: Optional[str] = _alias("teacherId", "teacher_id")
    school_id: Optional[str] = _alias("schoolId", "school_id")
    date: Optional[str] = None
    start_time: Optional[str] = _alias("startTime", "start_time")
    end_time: Optional[str] = _alias("endTime", "end_time")
    room: Optional[str] = None
    status: Optional[str] = None
    topic: Optional[str] = None
    notes: Optional[str] = None


class UserIn(BaseModel):
    """Create/update payload for an application user.

    On PATCH an explicit `teacherId: null` clears the teacher link, while
    omitting the key leaves it unchanged.
    """
    id: Optional[str] = None
    email: Optional[str] = None
    role: Optional[str] = None
    teacher_id: Optional[str] = _alias("teacherId", "teacher_id")
    password: Optional[str] = None


class CopyWeekIn(BaseModel):
    """Request body for cloning a week of lessons into the following week."""
    offset: int = 0
    keep_teachers: bool = Field(default=True, validation_alias=AliasChoices("keepTeachers", "keep_teachers"))
    anchor: Optional[str] = None


def teacher_out(t: models.Teacher) -> dict:
    return {'id': t.id, 'firstName': t.first_name, 'lastName': t.last_name, 'color': t.color}


def school_out(s: models.School) -> dict:
    return {'id': s.id, 'name': s.name, 'address': s.address, 'sortOrder': s.sort_order}


def lesson_out(lesson: models.Lesson) -> dict:
    return {
        'id': lesson.id,
        'subject': lesson.subject,
        'grade': lesson.grade,
        'teacherId': lesson.teacher_id,
        'schoolId': lesson.school_id,
        'date': lesson.date,
        'startTime': lesson.start_time,
        'endTime': lesson.end_time,
        'room': lesson.room,
        'status': lesson.status,
        'topic': lesson.topic,
        'notes': lesson.notes,
    }


def user_out(u: models.AppUser, teacher: Optional[models.Teacher] = None) -> dict:
    """Serialize a user; `teacher` fills the joined teacher name columns."""
    return {
        'id': u.id,
        'email': u.email,
        'role': u.role,
        'teacherId': u.teacher_id,
        'teacherFirstName': teacher.first_name if teacher else None,
        'teacherLastName': teacher.last_name if teacher else None,
    }
