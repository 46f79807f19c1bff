"""Job posting schemas."""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class JobBase(BaseModel):
    """Fields an employer controls on a posting. Extra client fields are kept."""

    model_config = ConfigDict(extra="allow")

    description: Optional[str] = Field(None, description="Full job description")
    location: Optional[str] = Field(None, description="Work location")
    jobType: Optional[str] = Field(None, description="full-time, part-time, contract, ...")
    category: Optional[str] = None
    salary: Optional[str] = Field(None, description="Free-form salary text")
    requirements: Optional[list[str]] = None
    deadline: Optional[str] = Field(None, description="Application deadline (ISO date)")


class JobCreate(JobBase):
    title: str = Field(min_length=1, max_length=200, description="Job title")


class JobUpdate(JobBase):
    title: Optional[str] = Field(None, min_length=1, max_length=200)

    def changes(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True)


class JobCreatedResponse(BaseModel):
    id: str = Field(description="New job id")
    verificationStatus: str = Field(description="Always 'pending' for a new posting")
