from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

# "HH:MM" shape is validated by the conflict checker so that
# a malformed time is reported the same way on every route


class TimetableIn(BaseModel):
    class_id: int
    lab_id: int
    day_of_week: int
    start_time: str
    end_time: str


class TimetableUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    class_id: Optional[int] = None
    lab_id: Optional[int] = None
    day_of_week: Optional[int] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    is_active: Optional[bool] = None


class TimetableCheckIn(BaseModel):
    lab_id: int
    day_of_week: int
    start_time: str
    end_time: str
    class_id: Optional[int] = None
    exclude_id: Optional[int] = None


class TimetableOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    class_id: int
    lab_id: int
    day_of_week: int
    start_time: str
    end_time: str
    is_active: bool


class SessionIn(BaseModel):
    title: str
    description: Optional[str] = None
    class_id: int
    timetable_id: Optional[int] = None
    scheduled_at: datetime
    duration: int = Field(description="minutes")


class SessionUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    title: Optional[str] = None
    description: Optional[str] = None
    scheduled_at: Optional[datetime] = None
    duration: Optional[int] = None
    is_active: Optional[bool] = None


class SessionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    description: Optional[str] = None
    class_id: int
    timetable_id: Optional[int] = None
    scheduled_at: datetime
    duration: int
    is_active: bool
