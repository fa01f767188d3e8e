from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

TradeType = Literal["NM", "M", "C"]


def check_trade_section(trade_type: Optional[str], section: Optional[str]):
    # NM: A-F, M / C: A-B
    if trade_type and section:
        allowed = "ABCDEF" if trade_type == "NM" else "AB"
        if len(section) != 1 or section not in allowed:
            raise ValueError("Section must be A-F for Non Medical (NM), A-B for Medical (M) or Commerce (C)")


class UserBase(BaseModel):
    email: str
    first_name: str
    last_name: str


class UserCreate(UserBase):
    password: str = Field(min_length=6)
    grade_level: Optional[int] = Field(default=None, ge=11, le=12)
    trade_type: Optional[TradeType] = None
    section: Optional[str] = None

    @model_validator(mode="after")
    def _validate_student_fields(self):
        provided = [self.grade_level, self.trade_type, self.section]
        if any(v is not None for v in provided) and not all(v is not None for v in provided):
            raise ValueError("Grade level, trade type, and section must all be provided together")
        check_trade_section(self.trade_type, self.section)
        return self


class UserOut(UserBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    role: str
    grade_level: Optional[int] = None
    trade_type: Optional[str] = None
    section: Optional[str] = None
    created_at: Optional[datetime] = None
