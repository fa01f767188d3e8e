from datetime import datetime

from sqlalchemy import Column, Integer, String, TIMESTAMP

from lab_manager.database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, nullable=False)
    password_hash = Column(String, nullable=False)
    # instructor / student
    role = Column(String(20), nullable=False, default="student")
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)

    # students only
    grade_level = Column(Integer, nullable=True)
    trade_type = Column(String(2), nullable=True)
    section = Column(String(1), nullable=True)

    created_at = Column(TIMESTAMP, default=datetime.utcnow)
