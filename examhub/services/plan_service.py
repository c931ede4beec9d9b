"""
Test plan authoring.

A plan fixes the question set of every execution created from it: the
questions are sampled once, at creation, and their ids are stored in the
plan configuration.
"""
import logging
import random
from typing import List, NamedTuple, Optional

from sqlalchemy.orm import Session

from examhub.core.analytics import AnalyticsTracker
from examhub.core.config import settings
from examhub.core.db_error_handling import handle_db_error
from examhub.core.error_responses import ErrorMessages
from examhub.core.errors import NotFoundError, UnauthorizedError, ValidationError
from examhub.models import (
    Question,
    Subtopic,
    TestExecution,
    TestPlan,
    TimingType,
    User,
    UserRole,
)
from examhub.schemas.plans import TestPlanCreate, TestPlanUpdate

logger = logging.getLogger(__name__)

# Roles that may author plans for a student
PLANNER_ROLES = (UserRole.TUTOR, UserRole.PARENT, UserRole.ADMIN)


class PlanView(NamedTuple):
    plan: TestPlan
    latest_execution: Optional[TestExecution]


class PlanService:
    """Create, read and update test plans."""

    def __init__(self, db: Session, rng: Optional[random.Random] = None):
        self.db = db
        self.rng = rng or random.Random()

    def _get_plan(self, plan_id: int) -> TestPlan:
        plan = self.db.get(TestPlan, plan_id)
        if plan is None:
            raise NotFoundError(f"Test plan {plan_id} not found.")
        return plan

    def _latest_execution(self, plan_id: int) -> Optional[TestExecution]:
        return (
            self.db.query(TestExecution)
            .filter(TestExecution.test_plan_id == plan_id)
            .order_by(TestExecution.id.desc())
            .first()
        )

    def _candidate_questions(
        self, topic_ids: List[int], subtopic_ids: List[int]
    ) -> List[Question]:
        """Active questions in the subtopics, else the topics, else the whole bank."""
        query = self.db.query(Question).filter(Question.is_active.is_(True))
        if subtopic_ids:
            query = query.filter(Question.subtopic_id.in_(subtopic_ids))
        elif topic_ids:
            query = query.join(Subtopic, Question.subtopic_id == Subtopic.id).filter(
                Subtopic.topic_id.in_(topic_ids)
            )
        return query.order_by(Question.id).all()

    def create_plan(self, planner: User, data: TestPlanCreate) -> TestPlan:
        """
        Create a plan for a student and sample its questions.

        Raises:
            UnauthorizedError: If the planner is not a tutor, parent or admin
            ValidationError: If the student is unknown or not a student, a
                timed plan has no time limit, the question count is out of
                range or the bank has too few matching questions
        """
        if planner.role not in PLANNER_ROLES:
            raise UnauthorizedError(ErrorMessages.PLAN_ACCESS_DENIED)

        student = self.db.get(User, data.student_id)
        if student is None:
            raise ValidationError(ErrorMessages.STUDENT_NOT_FOUND)
        if student.role != UserRole.STUDENT:
            raise ValidationError(ErrorMessages.NOT_A_STUDENT)

        if data.timing_type == TimingType.TIMED and not data.time_limit:
            raise ValidationError(ErrorMessages.TIME_LIMIT_REQUIRED)

        config = data.configuration
        needed = config.total_question_count
        if not 1 <= needed <= settings.MAX_PLAN_QUESTIONS:
            raise ValidationError(
                ErrorMessages.question_count_out_of_range(settings.MAX_PLAN_QUESTIONS)
            )

        candidates = self._candidate_questions(config.topics, config.subtopics)
        if len(candidates) < needed:
            raise ValidationError(
                ErrorMessages.not_enough_questions(len(candidates), needed)
            )
        chosen = self.rng.sample(candidates, needed)

        plan = TestPlan(
            student_id=student.id,
            planned_by=planner.id,
            board_id=data.board_id,
            template_id=data.template_id,
            test_type=data.test_type,
            timing_type=data.timing_type,
            time_limit=data.time_limit if data.timing_type == TimingType.TIMED else None,
            configuration={
                "topics": list(config.topics),
                "subtopics": list(config.subtopics),
                "totalQuestionCount": needed,
                "question_ids": [q.id for q in chosen],
            },
            description=data.description,
            scheduled_for=data.scheduled_for,
        )
        with handle_db_error(self.db, "create test plan"):
            self.db.add(plan)
            self.db.commit()
        self.db.refresh(plan)

        logger.info(
            f"Planner {planner.id} created plan {plan.id} for student {student.id} "
            f"with {needed} questions",
            extra={"plan_id": plan.id, "user_id": planner.id},
        )
        AnalyticsTracker.track_plan_created(
            user_id=planner.id, plan_id=plan.id, question_count=needed
        )
        return plan

    def get_plan(self, plan_id: int, user_id: int) -> PlanView:
        """
        Read a plan with its most recent execution.

        Raises:
            NotFoundError: If the plan does not exist
            UnauthorizedError: If the caller is neither its student nor planner
        """
        plan = self._get_plan(plan_id)
        if user_id not in (plan.student_id, plan.planned_by):
            raise UnauthorizedError(ErrorMessages.PLAN_ACCESS_DENIED)
        return PlanView(plan, self._latest_execution(plan.id))

    def update_plan(self, plan_id: int, user_id: int, data: TestPlanUpdate) -> PlanView:
        """
        Update a plan's description or schedule. The question set never changes.

        Raises:
            NotFoundError: If the plan does not exist
            UnauthorizedError: If the caller is not the planner
        """
        plan = self._get_plan(plan_id)
        if user_id != plan.planned_by:
            raise UnauthorizedError(ErrorMessages.PLAN_UPDATE_DENIED)

        changes = data.model_dump(exclude_unset=True)
        with handle_db_error(self.db, "update test plan"):
            for field, value in changes.items():
                setattr(plan, field, value)
            self.db.commit()
        self.db.refresh(plan)

        logger.info(
            f"Plan {plan.id} updated: {sorted(changes)}",
            extra={"plan_id": plan.id, "user_id": user_id},
        )
        return PlanView(plan, self._latest_execution(plan.id))
