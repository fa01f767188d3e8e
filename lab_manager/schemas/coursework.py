from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class AssignmentIn(BaseModel):
    title: str
    description: Optional[str] = None
    session_id: int
    due_date: datetime
    max_points: int = Field(default=100, ge=1)
    rubric: Optional[str] = None


class AssignmentOut(AssignmentIn):
    model_config = ConfigDict(from_attributes=True)

    id: int


class SubmissionIn(BaseModel):
    files: List[str] = Field(default_factory=list)


class SubmissionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    assignment_id: int
    student_id: int
    group_id: Optional[int] = None
    files: Optional[str] = None
    submitted_at: datetime
    is_late: bool


class GradeIn(BaseModel):
    score: int = Field(ge=0)
    rubric_scores: Optional[str] = None
    feedback: Optional[str] = None


class GradeOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    submission_id: int
    instructor_id: int
    score: int
    max_score: int
    rubric_scores: Optional[str] = None
    feedback: Optional[str] = None
    graded_at: datetime
