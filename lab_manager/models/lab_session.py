from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey
from sqlalchemy.sql import func

from lab_manager.database import Base


class LabSession(Base):
    __tablename__ = "sessions"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    class_id = Column(Integer, ForeignKey("classes.id"), nullable=False, index=True)
    timetable_id = Column(Integer, ForeignKey("timetables.id"), nullable=True)
    # naive UTC
    scheduled_at = Column(DateTime, nullable=False, index=True)
    duration = Column(Integer, nullable=False)  # minutes
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
