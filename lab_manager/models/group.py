from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func

from lab_manager.database import Base


class Group(Base):
    __tablename__ = "groups"
    __table_args__ = (
        UniqueConstraint("name", "class_id", name="uq_groups_name_class"),
    )

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    class_id = Column(Integer, ForeignKey("classes.id"), nullable=False, index=True)

    # cleared, never cascaded, when the leader leaves
    leader_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    lab_id = Column(Integer, ForeignKey("labs.id"), nullable=True)
    computer_id = Column(Integer, ForeignKey("computers.id"), nullable=True, index=True)

    max_members = Column(Integer, nullable=False, default=4)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
