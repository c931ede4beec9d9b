"""
Test execution endpoints.

Every route resolves the caller from the bearer token and delegates to
ExecutionService; typed service errors are mapped to HTTP statuses by the
application's exception handlers.
"""
import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Path
from sqlalchemy.orm import Session

from examhub.core.auth import get_current_user
from examhub.models import ExecutionStatus, User, get_db
from examhub.schemas.executions import (
    ExecutionDetailResponse,
    ExecutionResultsResponse,
    ResponseSlotSchema,
    ScoreResponse,
    SubmitAllAnswersRequest,
    SubmitAnswerRequest,
    SubmitAnswerResponse,
    TestExecutionResponse,
    document_payload,
)
from examhub.services.execution_service import ExecutionService

router = APIRouter()
logger = logging.getLogger(__name__)

ExecutionId = Annotated[int, Path(gt=0, description="Test execution ID")]


def _detail(execution, document) -> ExecutionDetailResponse:
    return ExecutionDetailResponse(
        execution=TestExecutionResponse.model_validate(execution),
        test_data=document_payload(
            document, reveal_answers=execution.status == ExecutionStatus.COMPLETED
        ),
    )


@router.get("/{execution_id}", response_model=ExecutionDetailResponse)
def get_execution(
    execution_id: ExecutionId,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Get an execution with its questions and responses.

    The answer key is only included once the execution is completed.
    """
    execution, document = ExecutionService(db).get_execution(
        execution_id, current_user.id
    )
    return _detail(execution, document)


@router.post("/{execution_id}/start", response_model=TestExecutionResponse)
def start_execution(
    execution_id: ExecutionId,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Start a NOT_STARTED execution. Returns 400 if it has already started."""
    execution = ExecutionService(db).start_execution(execution_id, current_user.id)
    return TestExecutionResponse.model_validate(execution)


@router.post("/{execution_id}/pause", response_model=TestExecutionResponse)
def pause_execution(
    execution_id: ExecutionId,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Pause an IN_PROGRESS execution."""
    execution = ExecutionService(db).pause_execution(execution_id, current_user.id)
    return TestExecutionResponse.model_validate(execution)


@router.post("/{execution_id}/resume", response_model=TestExecutionResponse)
def resume_execution(
    execution_id: ExecutionId,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Resume a PAUSED execution."""
    execution = ExecutionService(db).resume_execution(execution_id, current_user.id)
    return TestExecutionResponse.model_validate(execution)


@router.post("/{execution_id}/abandon", response_model=TestExecutionResponse)
def abandon_execution(
    execution_id: ExecutionId,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Abandon an execution that has not finished. No score is recorded."""
    execution = ExecutionService(db).abandon_execution(execution_id, current_user.id)
    return TestExecutionResponse.model_validate(execution)


@router.post("/{execution_id}/answers", response_model=SubmitAnswerResponse)
def submit_answer(
    submission: SubmitAnswerRequest,
    execution_id: ExecutionId,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Record the answer to one question.

    Re-submitting an answer for the same question replaces it. Returns 404
    if the question is not part of the execution.
    """
    execution, slot = ExecutionService(db).submit_answer(
        execution_id,
        current_user.id,
        question_id=submission.question_id,
        answer=submission.answer,
        time_spent=submission.time_spent,
    )
    return SubmitAnswerResponse(
        execution=TestExecutionResponse.model_validate(execution),
        response=ResponseSlotSchema.model_validate(slot, from_attributes=True),
    )


@router.post("/{execution_id}/submitAllAnswers", response_model=ExecutionDetailResponse)
def submit_all_answers(
    submission: SubmitAllAnswersRequest,
    execution_id: ExecutionId,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Record a batch of answers.

    Returns 400 if the execution is not in progress or any entry is missing
    its questionId, answer or numeric timeTaken.
    """
    execution, document = ExecutionService(db).submit_all_answers(
        execution_id,
        current_user.id,
        responses=submission.responses,
        end_time=submission.end_time,
    )
    return _detail(execution, document)


@router.post("/{execution_id}/complete", response_model=ExecutionDetailResponse)
def complete_execution(
    execution_id: ExecutionId,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Finish an IN_PROGRESS execution and compute its score."""
    execution, document = ExecutionService(db).complete_execution(
        execution_id, current_user.id
    )
    return _detail(execution, document)


@router.post("/{execution_id}/calculate-score", response_model=ScoreResponse)
def calculate_score(
    execution_id: ExecutionId,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Re-grade every response and return the score."""
    summary = ExecutionService(db).calculate_and_update_test_score(
        execution_id, current_user.id
    )
    return ScoreResponse(
        execution_id=summary.execution_id,
        status=summary.status,
        score=summary.score,
        correct_answers=summary.correct_answers,
        total_questions=summary.total_questions,
    )


@router.get("/{execution_id}/results", response_model=ExecutionResultsResponse)
def get_execution_results(
    execution_id: ExecutionId,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Results of a completed execution. Returns 400 before completion."""
    results = ExecutionService(db).get_execution_results(execution_id, current_user.id)
    execution = results.execution
    payload = document_payload(results.document, reveal_answers=True)
    return ExecutionResultsResponse(
        execution_id=execution.id,
        test_plan_id=execution.test_plan_id,
        student_id=execution.student_id,
        status=execution.status,
        started_at=execution.started_at,
        completed_at=execution.completed_at,
        score=results.score,
        total_questions=results.total_questions,
        correct_answers=results.correct_answers,
        questions=payload["questions"],
        responses=payload["responses"],
        timing=payload["timing"],
    )
