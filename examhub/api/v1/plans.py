"""
Test plan endpoints, including creation of executions from a plan.
"""
from typing import Annotated

from fastapi import APIRouter, Depends, Path, status
from sqlalchemy.orm import Session

from examhub.core.auth import get_current_user
from examhub.models import User, get_db
from examhub.schemas.executions import TestExecutionResponse
from examhub.schemas.plans import (
    ExecutionSummary,
    TestPlanCreate,
    TestPlanResponse,
    TestPlanUpdate,
)
from examhub.services.execution_service import ExecutionService
from examhub.services.plan_service import PlanService, PlanView

router = APIRouter()

PlanId = Annotated[int, Path(gt=0, description="Test plan ID")]


def _plan_response(view: PlanView) -> TestPlanResponse:
    latest = (
        ExecutionSummary.model_validate(view.latest_execution)
        if view.latest_execution is not None
        else None
    )
    return TestPlanResponse.model_validate(view.plan).model_copy(
        update={"latest_execution": latest}
    )


@router.post("", response_model=TestPlanResponse, status_code=status.HTTP_201_CREATED)
def create_plan(
    plan_data: TestPlanCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Create a test plan for a student.

    Samples the requested number of active questions from the selected
    subtopics (or topics, or the whole bank) and fixes them for every
    execution of the plan.
    """
    plan = PlanService(db).create_plan(current_user, plan_data)
    return _plan_response(PlanView(plan, None))


@router.get("/{plan_id}", response_model=TestPlanResponse)
def get_plan(
    plan_id: PlanId,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Get a plan with a summary of its latest execution."""
    return _plan_response(PlanService(db).get_plan(plan_id, current_user.id))


@router.patch("/{plan_id}", response_model=TestPlanResponse)
def update_plan(
    plan_update: TestPlanUpdate,
    plan_id: PlanId,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Update a plan's description or schedule. Planner only."""
    return _plan_response(
        PlanService(db).update_plan(plan_id, current_user.id, plan_update)
    )


@router.post(
    "/{plan_id}/executions",
    response_model=TestExecutionResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_execution(
    plan_id: PlanId,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Create an execution of the plan.

    If the plan already has an execution that has not been started, that
    execution is returned instead of a new one.
    """
    execution = ExecutionService(db).create_execution(plan_id, current_user.id)
    return TestExecutionResponse.model_validate(execution)
