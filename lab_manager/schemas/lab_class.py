from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from lab_manager.schemas.user import TradeType, check_trade_section


class ClassBase(BaseModel):
    name: str
    code: str
    grade_level: int = Field(ge=11, le=12)
    trade_type: TradeType
    section: str
    lab_id: int
    instructor_id: int
    semester: str
    year: int


class ClassCreate(ClassBase):
    @model_validator(mode="after")
    def _validate_section(self):
        check_trade_section(self.trade_type, self.section)
        return self


class ClassUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = None
    code: Optional[str] = None
    grade_level: Optional[int] = Field(default=None, ge=11, le=12)
    trade_type: Optional[TradeType] = None
    section: Optional[str] = None
    lab_id: Optional[int] = None
    instructor_id: Optional[int] = None
    semester: Optional[str] = None
    year: Optional[int] = None
    is_active: Optional[bool] = None


class ClassOut(ClassBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    display_name: str
    is_active: bool
