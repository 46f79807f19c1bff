"""Application workflow schemas."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ApplicationCreate(BaseModel):
    """Jobseeker's application form. Extra client fields are stored as-is."""

    model_config = ConfigDict(extra="allow")

    coverLetter: Optional[str] = Field(None, max_length=10000)
    resumeUrl: Optional[str] = None
    phone: Optional[str] = None
    expectedSalary: Optional[str] = None


class InterviewSchedule(BaseModel):
    interview_date: str = Field(min_length=1, description="Interview date (ISO date)")
    interview_time: Optional[str] = Field(None, description="Interview time, e.g. 14:30")
    location: Optional[str] = Field(None, description="Address or meeting link")
    notes: Optional[str] = Field(None, max_length=2000)


class ApplicationCreatedResponse(BaseModel):
    id: str = Field(description="New application id")
    status: str = Field(description="Initial status")
