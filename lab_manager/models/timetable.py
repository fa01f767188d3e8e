from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func

from lab_manager.database import Base


class Timetable(Base):
    __tablename__ = "timetables"
    __table_args__ = (
        UniqueConstraint("class_id", "day_of_week", "start_time", name="uq_timetables_class_day_start"),
    )

    id = Column(Integer, primary_key=True, index=True)
    class_id = Column(Integer, ForeignKey("classes.id"), nullable=False, index=True)
    day_of_week = Column(Integer, nullable=False)  # 1=Mon .. 7=Sun
    start_time = Column(String(5), nullable=False)  # "09:00"
    end_time = Column(String(5), nullable=False)
    lab_id = Column(Integer, ForeignKey("labs.id"), nullable=False, index=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
