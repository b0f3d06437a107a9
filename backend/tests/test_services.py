from datetime import date

import pytest

from scheduleme import models, repositories, services
from scheduleme.config import settings
from scheduleme.schemas import LessonIn, UserIn


def _seed(session):
    session.add(models.School(id="b", name="Alpha", sort_order=1))
    session.add(models.School(id="a", name="Zeta", sort_order=0))
    session.add(models.Teacher(id="t1", first_name="John", last_name="Doe"))
    session.commit()


def test_new_lesson_gets_form_defaults(session):
    _seed(session)
    lesson = services.LessonService(session).build(LessonIn(date="2024-01-01", start_time="10:30"))
    assert lesson.subject == "English"
    assert lesson.end_time == "11:15"
    assert lesson.room == "101"
    assert lesson.status == "upcoming"
    assert lesson.school_id == "a"  # first school by sort order, not by name
    assert lesson.teacher_id == ""


def test_lesson_validation(session):
    _seed(session)
    svc = services.LessonService(session)
    with pytest.raises(ValueError, match="after"):
        svc.save(LessonIn(date="2024-01-01", start_time="10:00", end_time="09:00"))
    with pytest.raises(ValueError, match="Teacher not found"):
        svc.save(LessonIn(date="2024-01-01", teacher_id="nobody"))
    with pytest.raises(ValueError, match="status"):
        svc.save(LessonIn(date="2024-01-01", status="postponed"))


def test_update_keeps_unset_fields_and_clears_notes(session):
    _seed(session)
    svc = services.LessonService(session)
    lesson, _ = svc.save(LessonIn(id="l1", date="2024-01-01", teacher_id="t1", notes="bring books"))
    updated, _ = svc.update("l1", LessonIn.model_validate({'room': '202', 'notes': None}))
    assert updated.room == "202"
    assert updated.teacher_id == "t1"
    assert updated.notes is None
    assert svc.update("missing", LessonIn(room="1")) is None


def test_copy_week_clones_into_next_week(session):
    _seed(session)
    svc = services.LessonService(session)
    svc.save(LessonIn(id="mon", date="2024-01-01", teacher_id="t1", status="completed"))
    svc.save(LessonIn(id="sat", date="2024-01-06", teacher_id="t1"))
    svc.save(LessonIn(id="sun", date="2024-01-07", teacher_id="t1"))

    schedule = services.ScheduleService(session)
    clones = schedule.copy_week(offset=0, keep_teachers=False, anchor=date(2024, 1, 3))
    assert sorted(c.date for c in clones) == ["2024-01-08", "2024-01-13"]
    assert all(c.teacher_id == "" for c in clones)
    assert all(c.status == "upcoming" for c in clones)
    assert all(c.id not in ("mon", "sat") for c in clones)

    with pytest.raises(ValueError, match="No sessions"):
        schedule.copy_week(offset=5, anchor=date(2024, 1, 3))


def test_user_upsert_by_email(session):
    _seed(session)
    svc = services.UserService(session)
    first = svc.save(UserIn(email=" Teacher@Example.com ", role="teacher", teacher_id="t1"))
    assert first.email == "teacher@example.com"
    again = svc.save(UserIn(email="teacher@example.com", role="viewer"))
    assert again.id == first.id
    assert again.role == "viewer"
    assert again.teacher_id is None


def test_default_admin_is_protected(session):
    admin = models.AppUser(id="admin-1", email=settings.DEFAULT_ADMIN_EMAIL, role="admin")
    session.add(admin)
    session.commit()
    svc = services.UserService(session)
    with pytest.raises(ValueError, match="Cannot delete"):
        svc.delete("admin-1")
    with pytest.raises(ValueError, match="Cannot change email"):
        svc.update("admin-1", UserIn(email="other@example.com"))
    with pytest.raises(ValueError, match="Cannot change role"):
        svc.update("admin-1", UserIn(role="viewer"))


def test_deleting_teacher_unlinks_users(session):
    _seed(session)
    user = services.UserService(session).save(UserIn(email="t@example.com", role="teacher", teacher_id="t1"))
    repo = repositories.TeacherRepository(session)
    repo.delete(repo.get("t1"))
    session.refresh(user)
    assert user.teacher_id is None


def test_authenticate_requires_password(session):
    svc = services.UserService(session)
    svc.save(UserIn(email="nopass@example.com"))
    svc.save(UserIn(email="pass@example.com", password="secret"))
    auth = services.AuthService(session)
    assert auth.authenticate("nopass@example.com", "") is None
    assert auth.authenticate("pass@example.com", "wrong") is None
    assert auth.authenticate("PASS@example.com", "secret")
