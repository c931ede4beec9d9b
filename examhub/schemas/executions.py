"""
Pydantic schemas for test execution endpoints.

Request bodies use the camelCase field names web clients send (questionId,
timeTaken, endTime); responses are snake_case like the rest of the API.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, PositiveInt

from examhub.core.test_data import TestDataDocument
from examhub.models import ExecutionStatus

# Fields that would let a student read the answer key before finishing
_ANSWER_KEY_FIELDS = ("correct_answer", "correct_answer_plain")


def document_payload(document: TestDataDocument, reveal_answers: bool) -> Dict[str, Any]:
    """Serialize a document, hiding the answer key unless reveal_answers is set."""
    payload = document.to_payload()
    if not reveal_answers:
        for question in payload["questions"]:
            for field in _ANSWER_KEY_FIELDS:
                question.pop(field, None)
    return payload


class TestExecutionResponse(BaseModel):
    """Schema for a test execution row."""

    id: int = Field(..., description="Test execution ID")
    test_plan_id: int = Field(..., description="Test plan this execution belongs to")
    student_id: int = Field(..., description="Owning student")
    status: ExecutionStatus = Field(..., description="Lifecycle status")
    started_at: Optional[datetime] = None
    paused_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    score: Optional[int] = Field(
        None, description="Percentage score, set only once completed"
    )
    version: int = Field(..., description="Optimistic concurrency version")
    created_at: datetime

    class Config:
        """Pydantic configuration."""

        from_attributes = True


class ExecutionDetailResponse(BaseModel):
    """An execution together with its test data document."""

    execution: TestExecutionResponse
    test_data: Dict[str, Any] = Field(..., alias="testData")

    class Config:
        populate_by_name = True


class SubmitAnswerRequest(BaseModel):
    """Schema for submitting one answer."""

    question_id: PositiveInt = Field(..., alias="questionId")
    answer: str = Field(..., min_length=1, max_length=10000)
    time_spent: Optional[float] = Field(
        None, alias="timeSpent", ge=0, description="Seconds spent on the question"
    )

    class Config:
        populate_by_name = True


class ResponseSlotSchema(BaseModel):
    question_id: int
    student_answer: Optional[str] = None
    is_correct: Optional[bool] = None
    time_spent: Optional[float] = None

    class Config:
        from_attributes = True


class SubmitAnswerResponse(BaseModel):
    execution: TestExecutionResponse
    response: ResponseSlotSchema


class SubmitAllAnswersRequest(BaseModel):
    """
    Schema for submitting a batch of answers.

    Entries are checked by the service so a malformed entry is reported as a
    400 listing every invalid entry rather than a 422.
    """

    end_time: Optional[Any] = Field(
        None,
        alias="endTime",
        description="Epoch milliseconds or ISO-8601 instant; defaults to now",
    )
    responses: List[Any] = Field(
        default_factory=list,
        description="Entries of the form {questionId, answer, timeTaken}",
    )

    class Config:
        populate_by_name = True


class ScoreResponse(BaseModel):
    """Schema for a score calculation."""

    execution_id: int
    status: ExecutionStatus
    score: int = Field(..., ge=0, le=100)
    correct_answers: int
    total_questions: int


class ExecutionResultsResponse(BaseModel):
    """Review data for a completed execution."""

    execution_id: int
    test_plan_id: int
    student_id: int
    status: ExecutionStatus
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    score: int = Field(..., ge=0, le=100)
    total_questions: int
    correct_answers: int
    questions: List[Dict[str, Any]]
    responses: List[Dict[str, Any]]
    timing: Dict[str, Any]
