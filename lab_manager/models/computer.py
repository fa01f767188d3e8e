from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func

from lab_manager.database import Base


class Computer(Base):
    __tablename__ = "computers"
    __table_args__ = (
        UniqueConstraint("name", "lab_id", name="uq_computers_name_lab"),
    )

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    lab_id = Column(Integer, ForeignKey("labs.id"), nullable=False, index=True)
    specs = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
