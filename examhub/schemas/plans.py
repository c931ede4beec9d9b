"""
Pydantic schemas for test plan endpoints.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, PositiveInt

from examhub.models import ExecutionStatus, TimingType


class PlanConfiguration(BaseModel):
    """What a plan selects from the question bank."""

    topics: List[PositiveInt] = Field(default_factory=list)
    subtopics: List[PositiveInt] = Field(default_factory=list)
    total_question_count: PositiveInt = Field(..., alias="totalQuestionCount")

    class Config:
        populate_by_name = True


class TestPlanCreate(BaseModel):
    """Schema for creating a test plan."""

    student_id: PositiveInt = Field(..., alias="studentId")
    board_id: Optional[PositiveInt] = Field(None, alias="boardId")
    template_id: Optional[PositiveInt] = Field(None, alias="templateId")
    test_type: str = Field("TOPIC", alias="testType", max_length=50)
    timing_type: TimingType = Field(TimingType.UNTIMED, alias="timingType")
    time_limit: Optional[PositiveInt] = Field(
        None, alias="timeLimit", description="Minutes; required for timed plans"
    )
    description: Optional[str] = Field(None, max_length=2000)
    scheduled_for: Optional[datetime] = Field(None, alias="scheduledFor")
    configuration: PlanConfiguration

    class Config:
        populate_by_name = True


class TestPlanUpdate(BaseModel):
    """Only descriptive metadata of a plan can change."""

    description: Optional[str] = Field(None, max_length=2000)
    scheduled_for: Optional[datetime] = Field(None, alias="scheduledFor")

    class Config:
        populate_by_name = True
        extra = "forbid"


class ExecutionSummary(BaseModel):
    id: int
    status: ExecutionStatus
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    score: Optional[int] = None

    class Config:
        from_attributes = True


class TestPlanResponse(BaseModel):
    """Schema for a test plan."""

    id: int
    student_id: int
    planned_by: int
    board_id: Optional[int] = None
    template_id: Optional[int] = None
    test_type: str
    timing_type: TimingType
    time_limit: Optional[int] = None
    configuration: Dict[str, Any]
    description: Optional[str] = None
    scheduled_for: Optional[datetime] = None
    planned_at: datetime
    latest_execution: Optional[ExecutionSummary] = None

    class Config:
        from_attributes = True
