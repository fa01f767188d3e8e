from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class LabBase(BaseModel):
    name: str
    description: Optional[str] = None
    location: str
    capacity: int = Field(ge=1)


class LabCreate(LabBase):
    pass


class LabUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = None
    description: Optional[str] = None
    location: Optional[str] = None
    capacity: Optional[int] = Field(default=None, ge=1)


class LabOut(LabBase):
    model_config = ConfigDict(from_attributes=True)

    id: int


class ComputerBase(BaseModel):
    name: str
    lab_id: int
    specs: Optional[str] = None


class ComputerCreate(ComputerBase):
    pass


class ComputerUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = None
    specs: Optional[str] = None
    is_active: Optional[bool] = None


class ComputerOut(ComputerBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    is_active: bool
