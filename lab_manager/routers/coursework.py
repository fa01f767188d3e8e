import json
from datetime import datetime
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from lab_manager.database import get_db
from lab_manager.models.coursework import Assignment, Grade, Submission
from lab_manager.models.enrollment import Enrollment
from lab_manager.models.lab_session import LabSession
from lab_manager.schemas.coursework import (
    AssignmentIn, AssignmentOut,
    GradeIn, GradeOut,
    SubmissionIn, SubmissionOut,
)
from lab_manager.utils.auth import get_current_user, require_instructor
from lab_manager.utils.timeslots import strip_tz

import logging
logger = logging.getLogger("app.coursework")


router = APIRouter(tags=["Coursework"])


@router.post("/assignments", response_model=AssignmentOut, status_code=201)
def create_assignment(body: AssignmentIn, db: Session = Depends(get_db), instructor=Depends(require_instructor)):
    if not db.get(LabSession, body.session_id):
        raise HTTPException(status_code=404, detail="Session not found")
    a = Assignment(**body.model_dump())
    a.due_date = strip_tz(a.due_date)
    db.add(a)
    db.commit()
    db.refresh(a)
    return a


@router.get("/sessions/{session_id}/assignments", response_model=List[AssignmentOut])
def list_session_assignments(session_id: int, db: Session = Depends(get_db), user=Depends(get_current_user)):
    if not db.get(LabSession, session_id):
        raise HTTPException(status_code=404, detail="Session not found")
    return (
        db.query(Assignment)
        .filter(Assignment.session_id == session_id)
        .order_by(Assignment.due_date.asc())
        .all()
    )


@router.post("/assignments/{assignment_id}/submissions", response_model=SubmissionOut, status_code=201)
def submit_assignment(
    assignment_id: int,
    body: SubmissionIn,
    db: Session = Depends(get_db),
    user=Depends(get_current_user),
):
    if user.role != "student":
        raise HTTPException(status_code=403, detail="Student only")

    row = (
        db.query(Assignment, LabSession.class_id)
        .join(LabSession, LabSession.id == Assignment.session_id)
        .filter(Assignment.id == assignment_id)
        .first()
    )
    if not row:
        raise HTTPException(status_code=404, detail="Assignment not found")
    assignment, class_id = row

    enrollment = (
        db.query(Enrollment)
        .filter(
            Enrollment.class_id == class_id,
            Enrollment.student_id == user.id,
            Enrollment.is_active.is_(True),
        )
        .first()
    )
    if not enrollment:
        raise HTTPException(status_code=403, detail="Not enrolled in this class")

    now = datetime.utcnow()
    s = Submission(
        assignment_id=assignment.id,
        student_id=user.id,
        group_id=enrollment.group_id,
        files=json.dumps(body.files),
        submitted_at=now,
        is_late=now > assignment.due_date,
    )
    db.add(s)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="Already submitted")
    db.refresh(s)
    return s


@router.post("/submissions/{submission_id}/grade", response_model=GradeOut, status_code=201)
def grade_submission(
    submission_id: int,
    body: GradeIn,
    db: Session = Depends(get_db),
    instructor=Depends(require_instructor),
):
    row = (
        db.query(Submission, Assignment.max_points)
        .join(Assignment, Assignment.id == Submission.assignment_id)
        .filter(Submission.id == submission_id)
        .first()
    )
    if not row:
        raise HTTPException(status_code=404, detail="Submission not found")
    submission, max_points = row

    if body.score > max_points:
        raise HTTPException(status_code=400, detail=f"Score cannot exceed {max_points}")

    g = Grade(
        submission_id=submission.id,
        instructor_id=instructor.id,
        score=body.score,
        max_score=max_points,
        rubric_scores=body.rubric_scores,
        feedback=body.feedback,
    )
    db.add(g)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="Submission already graded")
    db.refresh(g)
    logger.info("Graded submission %s: %d/%d", submission.id, g.score, g.max_score)
    return g


@router.get("/students/{student_id}/grades", response_model=List[GradeOut])
def list_student_grades(student_id: int, db: Session = Depends(get_db), user=Depends(get_current_user)):
    if user.role != "instructor" and user.id != student_id:
        raise HTTPException(status_code=403, detail="Not allowed")
    return (
        db.query(Grade)
        .join(Submission, Submission.id == Grade.submission_id)
        .filter(Submission.student_id == student_id)
        .order_by(Grade.graded_at.asc())
        .all()
    )
