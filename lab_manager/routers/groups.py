from collections import defaultdict
from typing import List

import pandas as pd
from fastapi import APIRouter, Depends, File, HTTPException, Response, UploadFile
from sqlalchemy.orm import Session

from lab_manager.database import get_db
from lab_manager.models.enrollment import Enrollment
from lab_manager.models.group import Group
from lab_manager.models.lab_class import LabClass
from lab_manager.models.user import User
from lab_manager.schemas.group import (
    EnrollIn, EnrollmentOut, EnrollResultOut,
    GroupCreate, GroupOut, GroupUpdate, GroupWithMembersOut,
    LeaderIn, MemberIn,
    RosterImportOut, RosterRowOut,
)
from lab_manager.services.group_assignor import AssignmentFailure, GroupAssignor
from lab_manager.utils.auth import get_current_user, require_instructor
from lab_manager.utils.deps import get_assignor, unwrap

import logging
logger = logging.getLogger("app.groups")


router = APIRouter(tags=["Groups & Enrollments"])

EMAIL_COLUMNS = ("email", "e-mail", "student_email", "mail")


def _get_class_or_404(db: Session, class_id: int) -> LabClass:
    c = db.get(LabClass, class_id)
    if not c:
        raise HTTPException(status_code=404, detail="Class not found")
    return c


# ===== groups =====

@router.get("/classes/{class_id}/groups", response_model=List[GroupWithMembersOut])
def list_class_groups(class_id: int, db: Session = Depends(get_db), user=Depends(get_current_user)):
    _get_class_or_404(db, class_id)
    groups = (
        db.query(Group)
        .filter(Group.class_id == class_id)
        .order_by(Group.created_at.asc(), Group.id.asc())
        .all()
    )
    rows = (
        db.query(Enrollment.group_id, Enrollment.student_id)
        .filter(Enrollment.class_id == class_id, Enrollment.is_active.is_(True), Enrollment.group_id.isnot(None))
        .all()
    )
    members = defaultdict(list)
    for group_id, student_id in rows:
        members[group_id].append(student_id)

    return [
        GroupWithMembersOut(
            **GroupOut.model_validate(g).model_dump(),
            member_count=len(members[g.id]),
            member_ids=sorted(members[g.id]),
        )
        for g in groups
    ]


@router.post("/classes/{class_id}/groups", response_model=GroupOut, status_code=201)
def create_group(
    class_id: int,
    body: GroupCreate,
    assignor: GroupAssignor = Depends(get_assignor),
    instructor=Depends(require_instructor),
):
    ok = unwrap(assignor.create_group_with_students(
        class_id=class_id,
        name=body.name,
        student_ids=body.student_ids,
        leader_id=body.leader_id,
        computer_id=body.computer_id,
        max_members=body.max_members,
    ))
    return ok.group


@router.patch("/groups/{group_id}", response_model=GroupOut)
def update_group(
    group_id: int,
    body: GroupUpdate,
    assignor: GroupAssignor = Depends(get_assignor),
    instructor=Depends(require_instructor),
):
    data = body.model_dump(exclude_unset=True)
    ok = unwrap(assignor.update_group(
        group_id,
        name=data.get("name"),
        max_members=data.get("max_members"),
        computer_id=data.get("computer_id"),
        # explicit null unbinds the computer
        clear_computer="computer_id" in data and data["computer_id"] is None,
    ))
    return ok.group


@router.put("/groups/{group_id}/leader", response_model=GroupOut)
def set_group_leader(
    group_id: int,
    body: LeaderIn,
    assignor: GroupAssignor = Depends(get_assignor),
    instructor=Depends(require_instructor),
):
    return unwrap(assignor.set_leader(group_id, body.student_id)).group


@router.post("/groups/{group_id}/members", response_model=EnrollmentOut)
def add_group_member(
    group_id: int,
    body: MemberIn,
    assignor: GroupAssignor = Depends(get_assignor),
    instructor=Depends(require_instructor),
):
    return unwrap(assignor.add_member(group_id, body.student_id)).enrollment


@router.delete("/groups/{group_id}/members/{student_id}", response_model=EnrollmentOut)
def remove_group_member(
    group_id: int,
    student_id: int,
    assignor: GroupAssignor = Depends(get_assignor),
    instructor=Depends(require_instructor),
):
    return unwrap(assignor.remove_member(group_id, student_id)).enrollment


@router.delete("/groups/{group_id}", status_code=204)
def delete_group(
    group_id: int,
    assignor: GroupAssignor = Depends(get_assignor),
    instructor=Depends(require_instructor),
):
    unwrap(assignor.delete_group(group_id))
    return Response(status_code=204)


# ===== enrollments =====

@router.get("/classes/{class_id}/enrollments", response_model=List[EnrollmentOut])
def list_class_enrollments(class_id: int, db: Session = Depends(get_db), user=Depends(get_current_user)):
    _get_class_or_404(db, class_id)
    return (
        db.query(Enrollment)
        .filter(Enrollment.class_id == class_id, Enrollment.is_active.is_(True))
        .order_by(Enrollment.seat_number.asc(), Enrollment.id.asc())
        .all()
    )


@router.post("/classes/{class_id}/enroll", response_model=EnrollResultOut, status_code=201)
def enroll_student(
    class_id: int,
    body: EnrollIn,
    assignor: GroupAssignor = Depends(get_assignor),
    instructor=Depends(require_instructor),
):
    ok = unwrap(assignor.assign_student(class_id, body.student_id))
    return EnrollResultOut(
        enrollment=EnrollmentOut.model_validate(ok.enrollment),
        group=GroupOut.model_validate(ok.group),
        group_created=ok.group_created,
    )


@router.delete("/enrollments/{enrollment_id}", response_model=EnrollmentOut)
def drop_enrollment(
    enrollment_id: int,
    assignor: GroupAssignor = Depends(get_assignor),
    instructor=Depends(require_instructor),
):
    return unwrap(assignor.drop_enrollment(enrollment_id)).enrollment


# ===== roster import =====

def to_str(v):
    if pd.isna(v):
        return None
    s = str(v).strip()
    return None if s == "" or s.lower() == "nan" else s


def read_roster(file: UploadFile) -> pd.DataFrame:
    name = (file.filename or "").lower()
    if name.endswith(".csv"):
        df = pd.read_csv(file.file, dtype=str)
    else:
        df = pd.read_excel(file.file, dtype=str)
    df.columns = [str(c).strip().lower() for c in df.columns]
    return df


def find_email_column(df: pd.DataFrame):
    for col in EMAIL_COLUMNS:
        if col in df.columns:
            return col
    return None


@router.post("/classes/{class_id}/roster/import", response_model=RosterImportOut)
def import_roster(
    class_id: int,
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    assignor: GroupAssignor = Depends(get_assignor),
    instructor=Depends(require_instructor),
):
    """
    Enroll every student listed in an .xlsx/.csv (one email per row) through
    the same first-fit placement as single enrollment. Rows are independent:
    a failed row does not undo the ones before it.
    """
    _get_class_or_404(db, class_id)
    try:
        df = read_roster(file)
    except Exception as e:
        logger.warning("Unreadable roster for class %s: %s", class_id, e)
        raise HTTPException(status_code=400, detail="Cannot read roster file")

    col = find_email_column(df)
    if col is None:
        raise HTTPException(status_code=400, detail="Roster must have an 'email' column")

    out = []
    for i, row in df.iterrows():
        email = to_str(row.get(col))
        if not email:
            continue
        email = email.lower()
        student = db.query(User).filter(User.email == email).first()
        if student is None:
            out.append(RosterRowOut(row=int(i) + 2, email=email, ok=False, error="Student not found"))
            continue

        result = assignor.assign_student(class_id, student.id)
        if isinstance(result, AssignmentFailure):
            out.append(RosterRowOut(row=int(i) + 2, email=email, ok=False, error=result.error.message))
        else:
            out.append(RosterRowOut(
                row=int(i) + 2,
                email=email,
                ok=True,
                seat_number=result.enrollment.seat_number,
                group_id=result.group.id,
            ))

    enrolled = sum(1 for r in out if r.ok)
    logger.info("Roster import class=%s: %d enrolled, %d failed", class_id, enrolled, len(out) - enrolled)
    return RosterImportOut(enrolled=enrolled, failed=len(out) - enrolled, rows=out)
