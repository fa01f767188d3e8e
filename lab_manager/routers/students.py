from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from lab_manager.database import get_db
from lab_manager.models.enrollment import Enrollment
from lab_manager.models.user import User
from lab_manager.schemas.group import EnrollmentOut
from lab_manager.schemas.user import UserOut
from lab_manager.utils.auth import get_current_user, require_instructor


router = APIRouter(prefix="/students", tags=["Students"])


@router.get("", response_model=List[UserOut])
def list_students(db: Session = Depends(get_db), instructor=Depends(require_instructor)):
    return (
        db.query(User)
        .filter(User.role == "student")
        .order_by(User.last_name.asc(), User.first_name.asc())
        .all()
    )


@router.get("/{student_id}/enrollments", response_model=List[EnrollmentOut])
def list_student_enrollments(student_id: int, db: Session = Depends(get_db), user=Depends(get_current_user)):
    # students only see their own
    if user.role != "instructor" and user.id != student_id:
        raise HTTPException(status_code=403, detail="Not allowed")
    return (
        db.query(Enrollment)
        .filter(Enrollment.student_id == student_id)
        .order_by(Enrollment.enrolled_at.asc())
        .all()
    )
