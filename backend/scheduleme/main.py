"""FastAPI application entrypoint and HTTP controllers.

This module defines the HTTP endpoints of the ScheduleMe backend.
Controllers are intentionally thin: they accept requests, delegate to
services, and map `ValueError`s to 400 and missing records to 404.

Endpoints implemented:
- POST /auth/login, GET /auth/me
- /api/teachers, /api/schools, /api/lessons, /api/users (+ /{id})
- GET /api/lessons/history
- GET /api/schedule/week, GET /api/schedule/day, GET /api/schedule/conflicts
- POST /api/schedule/copy-week
- GET /api/dashboard
- GET /api/reports/teacher-hours, GET /api/reports/teacher-hours.csv
- GET/POST /api/snapshot
"""

from fastapi import Body, FastAPI, Depends, HTTPException, Query, Request
from fastapi.responses import HTMLResponse, Response
from fastapi.middleware.cors import CORSMiddleware
from sqlmodel import Session
from typing import Optional
from datetime import date
import json
import logging
import os
import time
import uuid
from .database import create_db_and_tables, get_session
from . import services, repositories, models
from .auth import get_current_user, require_admin
from .config import settings
from .schemas import (
    CopyWeekIn, LessonIn, LoginIn, SchoolIn, TeacherIn, UserIn,
    lesson_out, school_out, teacher_out, user_out,
)
from .utils.dates import parse_date
from .utils.rate_limit import InMemoryRateLimiter

app = FastAPI(title="ScheduleMe API")
logger = logging.getLogger("scheduleme.api")
if not logger.handlers:
    logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))
login_rate_limiter = InMemoryRateLimiter()

if settings.ALLOW_DEV_CORS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

create_db_and_tables()

_LOGGED_PREFIXES = ("/api", "/auth")


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    req_id = request.headers.get("X-Request-ID", uuid.uuid4().hex)
    request.state.request_id = req_id
    started = time.perf_counter()
    logged = request.url.path.startswith(_LOGGED_PREFIXES)
    context = {
        "request_id": req_id,
        "path": request.url.path,
        "method": request.method,
        "client": request.client.host if request.client else "unknown",
    }
    try:
        response = await call_next(request)
    except Exception:
        context["duration_ms"] = round((time.perf_counter() - started) * 1000.0, 2)
        logger.exception("request_failed %s", json.dumps(context, ensure_ascii=True))
        raise
    response.headers["X-Request-ID"] = req_id
    if logged:
        context["status_code"] = response.status_code
        context["duration_ms"] = round((time.perf_counter() - started) * 1000.0, 2)
        logger.info("request_done %s", json.dumps(context, ensure_ascii=True))
    return response


def _none_if_all(value: Optional[str]) -> Optional[str]:
    return None if value in (None, "", "all") else value


def _enforce_login_rate_limit(request: Request) -> None:
    key = f"{request.client.host if request.client else 'unknown'}:{request.url.path}"
    allowed, retry_after = login_rate_limiter.allow(
        key, settings.LOGIN_RATE_LIMIT_PER_MIN, settings.LOGIN_RATE_LIMIT_WINDOW_SECONDS
    )
    if not allowed:
        raise HTTPException(
            status_code=429,
            detail=f"rate limit exceeded; retry after {retry_after}s",
            headers={"Retry-After": str(retry_after)},
        )


# --- auth ---------------------------------------------------------------

@app.post('/auth/login')
def login(payload: LoginIn, request: Request, db: Session = Depends(get_session)):
    """Authenticate with email and password and return a JWT token.

    The token carries `user_id`, `email` and `role` and is signed with
    the configured JWT secret.
    """
    _enforce_login_rate_limit(request)
    token = services.AuthService(db).authenticate(payload.email, payload.password)
    if not token:
        logger.info("login_failed %s", payload.email)
        raise HTTPException(status_code=401, detail='invalid credentials')
    return {'access_token': token}


@app.get('/auth/me')
def me(user: models.AppUser = Depends(get_current_user), db: Session = Depends(get_session)):
    teacher = repositories.TeacherRepository(db).get(user.teacher_id) if user.teacher_id else None
    return user_out(user, teacher)


# --- teachers -----------------------------------------------------------

@app.get('/api/teachers')
def list_teachers(db: Session = Depends(get_session), user: models.AppUser = Depends(get_current_user)):
    return [teacher_out(t) for t in repositories.TeacherRepository(db).list()]


@app.post('/api/teachers')
def save_teacher(payload: TeacherIn, db: Session = Depends(get_session), user: models.AppUser = Depends(require_admin)):
    t = services.TeacherService(db).save(payload)
    return {'teacher': teacher_out(t)}


@app.get('/api/teachers/{teacher_id}')
def get_teacher(teacher_id: str, db: Session = Depends(get_session), user: models.AppUser = Depends(get_current_user)):
    t = repositories.TeacherRepository(db).get(teacher_id)
    if not t:
        raise HTTPException(status_code=404, detail='Not found')
    return teacher_out(t)


@app.patch('/api/teachers/{teacher_id}')
def update_teacher(teacher_id: str, payload: TeacherIn, db: Session = Depends(get_session), user: models.AppUser = Depends(require_admin)):
    t = services.TeacherService(db).update(teacher_id, payload)
    if not t:
        raise HTTPException(status_code=404, detail='Not found')
    return {'teacher': teacher_out(t)}


@app.delete('/api/teachers/{teacher_id}', status_code=204)
def delete_teacher(teacher_id: str, db: Session = Depends(get_session), user: models.AppUser = Depends(require_admin)):
    repo = repositories.TeacherRepository(db)
    t = repo.get(teacher_id)
    if not t:
        raise HTTPException(status_code=404, detail='Not found')
    repo.delete(t)
    return Response(status_code=204)


# --- schools ------------------------------------------------------------

@app.get('/api/schools')
def list_schools(db: Session = Depends(get_session), user: models.AppUser = Depends(get_current_user)):
    return [school_out(s) for s in repositories.SchoolRepository(db).list()]


@app.post('/api/schools')
def save_school(payload: SchoolIn, db: Session = Depends(get_session), user: models.AppUser = Depends(require_admin)):
    s = services.SchoolService(db).save(payload)
    return {'school': school_out(s)}


@app.get('/api/schools/{school_id}')
def get_school(school_id: str, db: Session = Depends(get_session), user: models.AppUser = Depends(get_current_user)):
    s = repositories.SchoolRepository(db).get(school_id)
    if not s:
        raise HTTPException(status_code=404, detail='Not found')
    return school_out(s)


@app.patch('/api/schools/{school_id}')
def update_school(school_id: str, payload: SchoolIn, db: Session = Depends(get_session), user: models.AppUser = Depends(require_admin)):
    s = services.SchoolService(db).update(school_id, payload)
    if not s:
        raise HTTPException(status_code=404, detail='Not found')
    return {'school': school_out(s)}


@app.delete('/api/schools/{school_id}', status_code=204)
def delete_school(school_id: str, db: Session = Depends(get_session), user: models.AppUser = Depends(require_admin)):
    repo = repositories.SchoolRepository(db)
    s = repo.get(school_id)
    if not s:
        raise HTTPException(status_code=404, detail='Not found')
    repo.delete(s)
    return Response(status_code=204)


# --- lessons ------------------------------------------------------------

@app.get('/api/lessons')
def list_lessons(
    date_from: Optional[str] = None,
    date_to: Optional[str] = None,
    teacher_id: Optional[str] = None,
    school_id: Optional[str] = None,
    db: Session = Depends(get_session),
    user: models.AppUser = Depends(get_current_user),
):
    """List lessons by date and start time, optionally filtered."""
    lessons = repositories.LessonRepository(db).list(
        date_from=date_from,
        date_to=date_to,
        teacher_id=_none_if_all(teacher_id),
        school_id=_none_if_all(school_id),
    )
    return [lesson_out(l) for l in lessons]


@app.get('/api/lessons/history')
def lesson_history(db: Session = Depends(get_session), user: models.AppUser = Depends(get_current_user)):
    """Audit feed: every lesson, newest first."""
    return [lesson_out(l) for l in repositories.LessonRepository(db).list_history()]


@app.post('/api/lessons')
def save_lesson(payload: LessonIn, db: Session = Depends(get_session), user: models.AppUser = Depends(require_admin)):
    """Create or replace a lesson.

    Overlaps with other lessons of the same teacher or room are returned
    as `conflicts`; they do not prevent saving.
    """
    try:
        lesson, conflicts = services.LessonService(db).save(payload)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {'lesson': lesson_out(lesson), 'conflicts': conflicts}


@app.get('/api/lessons/{lesson_id}')
def get_lesson(lesson_id: str, db: Session = Depends(get_session), user: models.AppUser = Depends(get_current_user)):
    lesson = repositories.LessonRepository(db).get(lesson_id)
    if not lesson:
        raise HTTPException(status_code=404, detail='Not found')
    return lesson_out(lesson)


@app.patch('/api/lessons/{lesson_id}')
def update_lesson(lesson_id: str, payload: LessonIn, db: Session = Depends(get_session), user: models.AppUser = Depends(require_admin)):
    try:
        result = services.LessonService(db).update(lesson_id, payload)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if result is None:
        raise HTTPException(status_code=404, detail='Not found')
    lesson, conflicts = result
    return {'lesson': lesson_out(lesson), 'conflicts': conflicts}


@app.delete('/api/lessons/{lesson_id}', status_code=204)
def delete_lesson(lesson_id: str, db: Session = Depends(get_session), user: models.AppUser = Depends(require_admin)):
    repo = repositories.LessonRepository(db)
    lesson = repo.get(lesson_id)
    if not lesson:
        raise HTTPException(status_code=404, detail='Not found')
    repo.delete(lesson)
    return Response(status_code=204)


# --- users --------------------------------------------------------------

@app.get('/api/users')
def list_users(db: Session = Depends(get_session), user: models.AppUser = Depends(require_admin)):
    return [user_out(u, t) for u, t in repositories.UserRepository(db).list_with_teachers()]


@app.post('/api/users')
def save_user(payload: UserIn, db: Session = Depends(get_session), user: models.AppUser = Depends(require_admin)):
    try:
        u = services.UserService(db).save(payload)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {'user': user_out(u)}


@app.get('/api/users/{user_id}')
def get_user(user_id: str, db: Session = Depends(get_session), user: models.AppUser = Depends(require_admin)):
    u = repositories.UserRepository(db).get(user_id)
    if not u:
        raise HTTPException(status_code=404, detail='User not found')
    teacher = repositories.TeacherRepository(db).get(u.teacher_id) if u.teacher_id else None
    return user_out(u, teacher)


@app.patch('/api/users/{user_id}')
def update_user(user_id: str, payload: UserIn, db: Session = Depends(get_session), user: models.AppUser = Depends(require_admin)):
    svc = services.UserService(db)
    if not svc.repo.get(user_id):
        raise HTTPException(status_code=404, detail='User not found')
    try:
        u = svc.update(user_id, payload)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {'user': user_out(u)}


@app.delete('/api/users/{user_id}')
def delete_user(user_id: str, db: Session = Depends(get_session), user: models.AppUser = Depends(require_admin)):
    try:
        deleted = services.UserService(db).delete(user_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not deleted:
        raise HTTPException(status_code=404, detail='User not found')
    return {'success': True}


# --- schedule -----------------------------------------------------------

@app.get('/api/schedule/week')
def schedule_week(
    offset: int = 0,
    anchor: Optional[date] = None,
    school_id: Optional[str] = None,
    teacher_id: Optional[str] = None,
    db: Session = Depends(get_session),
    user: models.AppUser = Depends(get_current_user),
):
    """Weekly grid for the week `offset` weeks away from `anchor` (default today)."""
    try:
        return services.ScheduleService(db).week(offset, anchor, _none_if_all(school_id), _none_if_all(teacher_id))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.get('/api/schedule/day')
def schedule_day(
    day: date = Query(..., alias="date"),
    school_id: Optional[str] = None,
    teacher_id: Optional[str] = None,
    db: Session = Depends(get_session),
    user: models.AppUser = Depends(get_current_user),
):
    return services.ScheduleService(db).day(day, _none_if_all(school_id), _none_if_all(teacher_id))


@app.get('/api/schedule/conflicts')
def schedule_conflicts(
    date_from: Optional[str] = None,
    date_to: Optional[str] = None,
    db: Session = Depends(get_session),
    user: models.AppUser = Depends(get_current_user),
):
    return services.ScheduleService(db).conflicts(date_from, date_to)


@app.post('/api/schedule/copy-week')
def copy_week(payload: CopyWeekIn, db: Session = Depends(get_session), user: models.AppUser = Depends(require_admin)):
    """Duplicate the selected week's lessons into the following week."""
    svc = services.ScheduleService(db)
    try:
        anchor = parse_date(payload.anchor) if payload.anchor else None
        created = svc.copy_week(payload.offset, payload.keep_teachers, anchor)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {'created': len(created), 'lessons': [lesson_out(l) for l in created]}


@app.get('/api/dashboard')
def dashboard(db: Session = Depends(get_session), user: models.AppUser = Depends(get_current_user)):
    return services.ScheduleService(db).dashboard()


# --- reports ------------------------------------------------------------

def _report_filters(
    date_from: Optional[str] = None,
    date_to: Optional[str] = None,
    teacher_id: Optional[str] = None,
    school_id: Optional[str] = None,
    sort: str = "date",
    direction: str = "desc",
) -> dict:
    return {
        'date_from': date_from or None,
        'date_to': date_to or None,
        'teacher_id': _none_if_all(teacher_id),
        'school_id': _none_if_all(school_id),
        'sort': sort,
        'direction': direction,
    }


@app.get('/api/reports/teacher-hours')
def teacher_hours(filters: dict = Depends(_report_filters), db: Session = Depends(get_session), user: models.AppUser = Depends(get_current_user)):
    """Teacher hours report rows and totals for the selected filters."""
    try:
        return services.ReportService(db).teacher_hours(**filters)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.get('/api/reports/teacher-hours.csv')
def teacher_hours_csv(filters: dict = Depends(_report_filters), db: Session = Depends(get_session), user: models.AppUser = Depends(get_current_user)):
    """Download the teacher hours report as a CSV attachment."""
    try:
        filename, content = services.ReportService(db).teacher_hours_csv(**filters)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return Response(
        content=content,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# --- snapshot -----------------------------------------------------------

@app.get('/api/snapshot')
def export_snapshot(db: Session = Depends(get_session), user: models.AppUser = Depends(require_admin)):
    return services.SnapshotService(db).export()


@app.post('/api/snapshot')
def import_snapshot(doc: dict = Body(...), db: Session = Depends(get_session), user: models.AppUser = Depends(require_admin)):
    """Upsert all teachers, schools and lessons from a snapshot document."""
    try:
        counts = services.SnapshotService(db).import_(doc)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {'imported': counts}


# --- misc ---------------------------------------------------------------

@app.get("/", response_class=HTMLResponse)
def home():
    """Minimal homepage for quick manual testing."""
    return """
    <!DOCTYPE html>
    <html>
    <head><meta charset="UTF-8" /><title>ScheduleMe API</title></head>
    <body style="font-family: Arial, sans-serif; margin: 32px;">
      <h1>ScheduleMe API</h1>
      <p>Log in with <code>POST /auth/login</code>, then call the <code>/api</code> routes with the bearer token.</p>
      <p><a href="/docs">Swagger UI</a></p>
    </body>
    </html>
    """


@app.get("/health")
def health():
    """Lightweight health check for uptime monitoring."""
    return {"status": "ok"}
