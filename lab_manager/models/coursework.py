from datetime import datetime

from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func

from lab_manager.database import Base


class Assignment(Base):
    __tablename__ = "assignments"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    session_id = Column(Integer, ForeignKey("sessions.id"), nullable=False, index=True)
    due_date = Column(DateTime, nullable=False)
    max_points = Column(Integer, nullable=False, default=100)
    rubric = Column(Text, nullable=True)  # JSON
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class Submission(Base):
    __tablename__ = "submissions"
    __table_args__ = (
        UniqueConstraint("assignment_id", "student_id", name="uq_submissions_assignment_student"),
    )

    id = Column(Integer, primary_key=True, index=True)
    assignment_id = Column(Integer, ForeignKey("assignments.id"), nullable=False, index=True)
    student_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    # submissions outlive the group that made them
    group_id = Column(Integer, ForeignKey("groups.id", ondelete="SET NULL"), nullable=True)
    files = Column(Text, nullable=True)  # JSON list of paths
    submitted_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    is_late = Column(Boolean, nullable=False, default=False)


class Grade(Base):
    __tablename__ = "grades"
    __table_args__ = (
        UniqueConstraint("submission_id", name="uq_grades_submission"),
    )

    id = Column(Integer, primary_key=True, index=True)
    submission_id = Column(Integer, ForeignKey("submissions.id"), nullable=False)
    instructor_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    score = Column(Integer, nullable=False)
    max_score = Column(Integer, nullable=False)
    rubric_scores = Column(Text, nullable=True)  # JSON
    feedback = Column(Text, nullable=True)
    graded_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
