from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from lab_manager.database import get_db
from lab_manager.models.lab import Lab
from lab_manager.models.lab_class import LabClass
from lab_manager.models.user import User
from lab_manager.schemas.lab_class import ClassCreate, ClassOut, ClassUpdate
from lab_manager.schemas.user import check_trade_section
from lab_manager.utils.auth import get_current_user, require_instructor

import logging
logger = logging.getLogger("app.classes")


router = APIRouter(prefix="/classes", tags=["Classes"])

DUPLICATE_CLASS = "Class for this grade, trade and section already exists for this semester/year"


def display_name(grade_level: int, trade_type: str, section: str) -> str:
    # "11 NM A"
    return f"{grade_level} {trade_type} {section}"


def _check_refs(db: Session, lab_id: Optional[int], instructor_id: Optional[int]):
    if lab_id is not None and not db.get(Lab, lab_id):
        raise HTTPException(status_code=400, detail="lab_id not found")
    if instructor_id is not None:
        u = db.get(User, instructor_id)
        if not u or u.role != "instructor":
            raise HTTPException(status_code=400, detail="instructor_id not found")


@router.get("", response_model=List[ClassOut])
def list_classes(
    db: Session = Depends(get_db),
    user=Depends(get_current_user),
    lab_id: Optional[int] = Query(None),
    instructor_id: Optional[int] = Query(None),
):
    q = db.query(LabClass)
    if lab_id is not None:
        q = q.filter(LabClass.lab_id == lab_id)
    if instructor_id is not None:
        q = q.filter(LabClass.instructor_id == instructor_id)
    return q.order_by(LabClass.grade_level.asc(), LabClass.trade_type.asc(), LabClass.section.asc()).all()


@router.get("/{class_id}", response_model=ClassOut)
def get_class(class_id: int, db: Session = Depends(get_db), user=Depends(get_current_user)):
    c = db.get(LabClass, class_id)
    if not c:
        raise HTTPException(status_code=404, detail="Class not found")
    return c


@router.post("", response_model=ClassOut, status_code=201)
def create_class(body: ClassCreate, db: Session = Depends(get_db), instructor=Depends(require_instructor)):
    _check_refs(db, body.lab_id, body.instructor_id)

    c = LabClass(
        **body.model_dump(),
        display_name=display_name(body.grade_level, body.trade_type, body.section),
    )
    db.add(c)
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        logger.warning("Duplicate class: %s", e.orig)
        raise HTTPException(status_code=409, detail=DUPLICATE_CLASS)
    db.refresh(c)
    return c


@router.patch("/{class_id}", response_model=ClassOut)
def update_class(
    class_id: int,
    body: ClassUpdate,
    db: Session = Depends(get_db),
    instructor=Depends(require_instructor),
):
    c = db.get(LabClass, class_id)
    if not c:
        raise HTTPException(status_code=404, detail="Class not found")

    data = body.model_dump(exclude_unset=True)
    _check_refs(db, data.get("lab_id"), data.get("instructor_id"))

    trade_type = data.get("trade_type", c.trade_type)
    section = data.get("section", c.section)
    try:
        check_trade_section(trade_type, section)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    for k, v in data.items():
        setattr(c, k, v)
    c.display_name = display_name(c.grade_level, c.trade_type, c.section)

    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        logger.warning("Duplicate class: %s", e.orig)
        raise HTTPException(status_code=409, detail=DUPLICATE_CLASS)
    db.refresh(c)
    return c


@router.delete("/{class_id}", status_code=204)
def delete_class(class_id: int, db: Session = Depends(get_db), instructor=Depends(require_instructor)):
    c = db.get(LabClass, class_id)
    if not c:
        raise HTTPException(status_code=404, detail="Class not found")
    db.delete(c)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="Cannot delete class: it is referenced by other records")
    return Response(status_code=204)
