from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func

from lab_manager.database import Base


class LabClass(Base):
    __tablename__ = "classes"
    __table_args__ = (
        UniqueConstraint(
            "grade_level", "trade_type", "section", "semester", "year",
            name="uq_classes_grade_trade_section_term",
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False)
    code = Column(String(50), nullable=False)

    grade_level = Column(Integer, nullable=False)  # 11 / 12
    trade_type = Column(String(2), nullable=False)  # NM / M / C
    section = Column(String(1), nullable=False)
    display_name = Column(String(50), nullable=False)  # "11 NM A"

    lab_id = Column(Integer, ForeignKey("labs.id"), nullable=False, index=True)
    instructor_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    semester = Column(String(20), nullable=False)
    year = Column(Integer, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
