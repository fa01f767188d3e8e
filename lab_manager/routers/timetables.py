from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from lab_manager.database import get_db
from lab_manager.models.lab import Lab
from lab_manager.models.lab_class import LabClass
from lab_manager.models.lab_session import LabSession
from lab_manager.models.timetable import Timetable
from lab_manager.schemas.timetable import (
    SessionIn, SessionOut, SessionUpdate,
    TimetableCheckIn, TimetableIn, TimetableOut, TimetableUpdate,
)
from lab_manager.services.conflict_checker import ConflictResult, ScheduleConflictChecker
from lab_manager.storage import Storage
from lab_manager.utils.auth import get_current_user, require_instructor
from lab_manager.utils.deps import get_checker, get_storage
from lab_manager.utils.excel_export import make_filename, timetable_to_xlsx_bytes
from lab_manager.utils.timeslots import (
    DAY_NAMES,
    format_minutes,
    parse_hhmm,
    parse_time_range,
    session_bounds,
    strip_tz,
    validate_day_of_week,
)

import logging
logger = logging.getLogger("app.timetables")


router = APIRouter(tags=["Timetables & Sessions"])

TIME_FIELDS = ("class_id", "lab_id", "day_of_week", "start_time", "end_time")


def conflict_response(result: ConflictResult) -> JSONResponse:
    return JSONResponse(
        status_code=409,
        content={
            "error": "SCHEDULE_CONFLICT",
            "conflictType": result.conflict_type,
            "conflicts": [c.to_dict() for c in result.conflicts],
            "message": result.message,
        },
    )


def _normalise(value: str) -> str:
    # "9:00" -> "09:00" so the unique (class, day, start) key compares equal
    return format_minutes(parse_hhmm(value))


def _get_class_or_404(db: Session, class_id: int) -> LabClass:
    c = db.get(LabClass, class_id)
    if not c:
        raise HTTPException(status_code=404, detail="Class not found")
    return c


# ===== weekly timetable =====

@router.get("/timetables", response_model=List[TimetableOut])
def list_timetables(
    db: Session = Depends(get_db),
    user=Depends(get_current_user),
    class_id: Optional[int] = Query(None),
    lab_id: Optional[int] = Query(None),
    include_inactive: bool = Query(False),
):
    q = db.query(Timetable)
    if class_id is not None:
        q = q.filter(Timetable.class_id == class_id)
    if lab_id is not None:
        q = q.filter(Timetable.lab_id == lab_id)
    if not include_inactive:
        q = q.filter(Timetable.is_active.is_(True))
    return q.order_by(Timetable.day_of_week.asc(), Timetable.start_time.asc()).all()


@router.post("/timetables/check")
def check_timetable(
    body: TimetableCheckIn,
    checker: ScheduleConflictChecker = Depends(get_checker),
    user=Depends(get_current_user),
):
    result = checker.check_timetable(
        lab_id=body.lab_id,
        day_of_week=body.day_of_week,
        start_time=body.start_time,
        end_time=body.end_time,
        exclude_id=body.exclude_id,
        class_id=body.class_id,
    )
    return result.to_dict()


@router.post("/timetables", response_model=TimetableOut, status_code=201)
def create_timetable(
    body: TimetableIn,
    storage: Storage = Depends(get_storage),
    checker: ScheduleConflictChecker = Depends(get_checker),
    instructor=Depends(require_instructor),
):
    result = checker.check_timetable(
        lab_id=body.lab_id,
        day_of_week=body.day_of_week,
        start_time=body.start_time,
        end_time=body.end_time,
        class_id=body.class_id,
    )
    if result.has_conflicts:
        return conflict_response(result)

    db = storage.db
    _get_class_or_404(db, body.class_id)
    if not db.get(Lab, body.lab_id):
        raise HTTPException(status_code=404, detail="Lab not found")

    t = Timetable(
        class_id=body.class_id,
        lab_id=body.lab_id,
        day_of_week=body.day_of_week,
        start_time=_normalise(body.start_time),
        end_time=_normalise(body.end_time),
    )
    with storage.transaction():
        db.add(t)
    db.refresh(t)
    logger.info("Created timetable %s class=%s lab=%s %s %s-%s",
                t.id, t.class_id, t.lab_id, DAY_NAMES[t.day_of_week], t.start_time, t.end_time)
    return t


@router.patch("/timetables/{timetable_id}", response_model=TimetableOut)
def update_timetable(
    timetable_id: int,
    body: TimetableUpdate,
    storage: Storage = Depends(get_storage),
    checker: ScheduleConflictChecker = Depends(get_checker),
    instructor=Depends(require_instructor),
):
    db = storage.db
    t = db.get(Timetable, timetable_id)
    if not t:
        raise HTTPException(status_code=404, detail="Timetable not found")

    data = body.model_dump(exclude_unset=True)
    merged = {k: data.get(k, getattr(t, k)) for k in TIME_FIELDS}
    time_changed = any(k in data and data[k] != getattr(t, k) for k in TIME_FIELDS)
    reactivated = data.get("is_active") is True and not t.is_active
    will_be_active = data.get("is_active", t.is_active)

    # only re-check a slot that will be live and whose placement changed
    if will_be_active and (time_changed or reactivated):
        result = checker.check_timetable(
            lab_id=merged["lab_id"],
            day_of_week=merged["day_of_week"],
            start_time=merged["start_time"],
            end_time=merged["end_time"],
            exclude_id=t.id,
            class_id=merged["class_id"],
        )
        if result.has_conflicts:
            return conflict_response(result)
    elif time_changed:
        validate_day_of_week(merged["day_of_week"])
        parse_time_range(merged["start_time"], merged["end_time"])

    if "class_id" in data:
        _get_class_or_404(db, merged["class_id"])
    if "lab_id" in data and not db.get(Lab, merged["lab_id"]):
        raise HTTPException(status_code=404, detail="Lab not found")

    with storage.transaction():
        for k, v in data.items():
            if k in ("start_time", "end_time"):
                v = _normalise(v)
            setattr(t, k, v)
    db.refresh(t)
    return t


@router.delete("/timetables/{timetable_id}", status_code=204)
def delete_timetable(
    timetable_id: int,
    storage: Storage = Depends(get_storage),
    instructor=Depends(require_instructor),
):
    t = storage.db.get(Timetable, timetable_id)
    if not t:
        raise HTTPException(status_code=404, detail="Timetable not found")
    with storage.transaction():
        # sessions may still point at the slot
        storage.db.query(LabSession).filter(LabSession.timetable_id == timetable_id).update(
            {LabSession.timetable_id: None}, synchronize_session=False
        )
        storage.db.delete(t)
    return Response(status_code=204)


@router.get("/classes/{class_id}/timetable/export")
def export_class_timetable(class_id: int, db: Session = Depends(get_db), user=Depends(get_current_user)):
    c = _get_class_or_404(db, class_id)
    rows = (
        db.query(Timetable, Lab.name)
        .join(Lab, Lab.id == Timetable.lab_id)
        .filter(Timetable.class_id == class_id, Timetable.is_active.is_(True))
        .order_by(Timetable.day_of_week.asc(), Timetable.start_time.asc())
        .all()
    )
    content = timetable_to_xlsx_bytes(rows, sheet_name=c.display_name)
    filename = make_filename(c.display_name)
    return Response(
        content=content,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# ===== one-off sessions =====

@router.get("/classes/{class_id}/sessions", response_model=List[SessionOut])
def list_class_sessions(
    class_id: int,
    db: Session = Depends(get_db),
    user=Depends(get_current_user),
    include_inactive: bool = Query(False),
):
    _get_class_or_404(db, class_id)
    q = db.query(LabSession).filter(LabSession.class_id == class_id)
    if not include_inactive:
        q = q.filter(LabSession.is_active.is_(True))
    return q.order_by(LabSession.scheduled_at.asc()).all()


@router.post("/sessions", response_model=SessionOut, status_code=201)
def create_session(
    body: SessionIn,
    storage: Storage = Depends(get_storage),
    checker: ScheduleConflictChecker = Depends(get_checker),
    instructor=Depends(require_instructor),
):
    c = _get_class_or_404(storage.db, body.class_id)
    if body.timetable_id is not None:
        t = storage.db.get(Timetable, body.timetable_id)
        if not t or t.class_id != c.id:
            raise HTTPException(status_code=400, detail="timetable_id does not belong to this class")

    scheduled_at = strip_tz(body.scheduled_at)
    result = checker.check_session(
        lab_id=c.lab_id,
        scheduled_at=scheduled_at,
        duration=body.duration,
        class_id=c.id,
    )
    if result.has_conflicts:
        return conflict_response(result)

    s = LabSession(
        title=body.title,
        description=body.description,
        class_id=c.id,
        timetable_id=body.timetable_id,
        scheduled_at=scheduled_at,
        duration=body.duration,
    )
    with storage.transaction():
        storage.db.add(s)
    storage.db.refresh(s)
    logger.info("Created session %s class=%s at %s (%d min)", s.id, c.id, s.scheduled_at, s.duration)
    return s


@router.patch("/sessions/{session_id}", response_model=SessionOut)
def update_session(
    session_id: int,
    body: SessionUpdate,
    storage: Storage = Depends(get_storage),
    checker: ScheduleConflictChecker = Depends(get_checker),
    instructor=Depends(require_instructor),
):
    s = storage.db.get(LabSession, session_id)
    if not s:
        raise HTTPException(status_code=404, detail="Session not found")

    data = body.model_dump(exclude_unset=True)
    if data.get("scheduled_at") is not None:
        data["scheduled_at"] = strip_tz(data["scheduled_at"])

    time_changed = any(
        k in data and data[k] != getattr(s, k) for k in ("scheduled_at", "duration")
    )
    reactivated = data.get("is_active") is True and not s.is_active
    will_be_active = data.get("is_active", s.is_active)
    if will_be_active and (time_changed or reactivated):
        c = storage.get_class(s.class_id)
        result = checker.check_session(
            lab_id=c.lab_id,
            scheduled_at=data.get("scheduled_at", s.scheduled_at),
            duration=data.get("duration", s.duration),
            exclude_id=s.id,
            class_id=c.id,
        )
        if result.has_conflicts:
            return conflict_response(result)
    elif time_changed:
        session_bounds(data.get("scheduled_at", s.scheduled_at), data.get("duration", s.duration))

    with storage.transaction():
        for k, v in data.items():
            setattr(s, k, v)
    storage.db.refresh(s)
    return s


@router.delete("/sessions/{session_id}", status_code=204)
def delete_session(
    session_id: int,
    storage: Storage = Depends(get_storage),
    instructor=Depends(require_instructor),
):
    s = storage.db.get(LabSession, session_id)
    if not s:
        raise HTTPException(status_code=404, detail="Session not found")
    # soft delete: assignments keep pointing at it
    with storage.transaction():
        s.is_active = False
    return Response(status_code=204)
