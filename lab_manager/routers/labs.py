from typing import List

from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from lab_manager.database import get_db
from lab_manager.models.computer import Computer
from lab_manager.models.lab import Lab
from lab_manager.schemas.lab import (
    ComputerCreate, ComputerOut, ComputerUpdate,
    LabCreate, LabOut, LabUpdate,
)
from lab_manager.utils.auth import get_current_user, require_instructor

import logging
logger = logging.getLogger("app.labs")


router = APIRouter(tags=["Labs"])


def _commit_or_409(db: Session, detail: str):
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        logger.warning("%s: %s", detail, e.orig)
        raise HTTPException(status_code=409, detail=detail)


@router.get("/labs", response_model=List[LabOut])
def list_labs(db: Session = Depends(get_db), user=Depends(get_current_user)):
    return db.query(Lab).order_by(Lab.name.asc()).all()


@router.get("/labs/{lab_id}", response_model=LabOut)
def get_lab(lab_id: int, db: Session = Depends(get_db), user=Depends(get_current_user)):
    lab = db.get(Lab, lab_id)
    if not lab:
        raise HTTPException(status_code=404, detail="Lab not found")
    return lab


@router.post("/labs", response_model=LabOut, status_code=201)
def create_lab(body: LabCreate, db: Session = Depends(get_db), instructor=Depends(require_instructor)):
    lab = Lab(**body.model_dump())
    db.add(lab)
    _commit_or_409(db, "Lab with this name already exists")
    db.refresh(lab)
    return lab


@router.patch("/labs/{lab_id}", response_model=LabOut)
def update_lab(lab_id: int, body: LabUpdate, db: Session = Depends(get_db), instructor=Depends(require_instructor)):
    lab = db.get(Lab, lab_id)
    if not lab:
        raise HTTPException(status_code=404, detail="Lab not found")
    for k, v in body.model_dump(exclude_unset=True).items():
        setattr(lab, k, v)
    _commit_or_409(db, "Lab with this name already exists")
    db.refresh(lab)
    return lab


@router.delete("/labs/{lab_id}", status_code=204)
def delete_lab(lab_id: int, db: Session = Depends(get_db), instructor=Depends(require_instructor)):
    lab = db.get(Lab, lab_id)
    if not lab:
        raise HTTPException(status_code=404, detail="Lab not found")
    db.delete(lab)
    _commit_or_409(db, "Cannot delete lab: it is referenced by other records")
    return Response(status_code=204)


@router.get("/labs/{lab_id}/computers", response_model=List[ComputerOut])
def list_lab_computers(lab_id: int, db: Session = Depends(get_db), user=Depends(get_current_user)):
    if not db.get(Lab, lab_id):
        raise HTTPException(status_code=404, detail="Lab not found")
    return (
        db.query(Computer)
        .filter(Computer.lab_id == lab_id)
        .order_by(Computer.name.asc())
        .all()
    )


@router.post("/computers", response_model=ComputerOut, status_code=201)
def create_computer(body: ComputerCreate, db: Session = Depends(get_db), instructor=Depends(require_instructor)):
    if not db.get(Lab, body.lab_id):
        raise HTTPException(status_code=400, detail="lab_id not found")
    c = Computer(**body.model_dump())
    db.add(c)
    _commit_or_409(db, "Computer with this name already exists in this lab")
    db.refresh(c)
    return c


@router.patch("/computers/{computer_id}", response_model=ComputerOut)
def update_computer(
    computer_id: int,
    body: ComputerUpdate,
    db: Session = Depends(get_db),
    instructor=Depends(require_instructor),
):
    c = db.get(Computer, computer_id)
    if not c:
        raise HTTPException(status_code=404, detail="Computer not found")
    for k, v in body.model_dump(exclude_unset=True).items():
        setattr(c, k, v)
    _commit_or_409(db, "Computer with this name already exists in this lab")
    db.refresh(c)
    return c


@router.delete("/computers/{computer_id}", status_code=204)
def delete_computer(computer_id: int, db: Session = Depends(get_db), instructor=Depends(require_instructor)):
    c = db.get(Computer, computer_id)
    if not c:
        raise HTTPException(status_code=404, detail="Computer not found")
    db.delete(c)
    _commit_or_409(db, "Cannot delete computer: it is referenced by other records")
    return Response(status_code=204)
