from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class GroupCreate(BaseModel):
    name: str
    student_ids: List[int] = Field(default_factory=list)
    leader_id: Optional[int] = None
    computer_id: Optional[int] = None
    max_members: Optional[int] = Field(default=None, ge=1, le=10)


class GroupUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = None
    max_members: Optional[int] = Field(default=None, ge=1, le=10)
    computer_id: Optional[int] = None


class LeaderIn(BaseModel):
    student_id: int


class MemberIn(BaseModel):
    student_id: int


class GroupOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    class_id: int
    leader_id: Optional[int] = None
    lab_id: Optional[int] = None
    computer_id: Optional[int] = None
    max_members: int


class GroupWithMembersOut(GroupOut):
    member_count: int
    member_ids: List[int]


class EnrollIn(BaseModel):
    student_id: int


class EnrollmentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    student_id: int
    class_id: int
    group_id: Optional[int] = None
    seat_number: Optional[str] = None
    enrolled_at: datetime
    is_active: bool


class EnrollResultOut(BaseModel):
    enrollment: EnrollmentOut
    group: GroupOut
    group_created: bool


class RosterRowOut(BaseModel):
    row: int
    email: Optional[str] = None
    ok: bool
    seat_number: Optional[str] = None
    group_id: Optional[int] = None
    error: Optional[str] = None


class RosterImportOut(BaseModel):
    enrolled: int
    failed: int
    rows: List[RosterRowOut]
