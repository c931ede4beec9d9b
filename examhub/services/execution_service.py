"""
Test execution orchestration.

ExecutionService drives one attempt at a test plan: creation from the plan's
question set, lifecycle transitions, answer recording, completion and
scoring. Every mutating call is a single read-modify-write of one
TestExecution row guarded by the row's version counter, so two writers that
read the same version cannot both commit.

Services raise the typed errors from examhub.core.errors; examhub.main maps
them to HTTP responses.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, List, Mapping, NamedTuple, Optional, Sequence, Union

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from examhub.core.analytics import AnalyticsTracker, EventType
from examhub.core.config import settings
from examhub.core.datetime_utils import ensure_timezone_aware, parse_client_instant, utc_now
from examhub.core.db_error_handling import handle_db_error
from examhub.core.error_responses import ErrorMessages
from examhub.core.errors import NotFoundError, UnauthorizedError, ValidationError
from examhub.core.execution_state import (
    ExecutionAction,
    apply_transition,
    require_answerable,
)
from examhub.core.test_data import (
    ResponseSlot,
    SubmittedResponse,
    TestDataDocument,
    calculate_score_percentage,
)
from examhub.models import (
    ExecutionStatus,
    Question,
    TestExecution,
    TestPlan,
)

logger = logging.getLogger(__name__)


class AnswerOutcome(NamedTuple):
    """Result of recording a single answer."""

    execution: TestExecution
    response: ResponseSlot


class CompletionResult(NamedTuple):
    """A completed execution together with its graded document."""

    execution: TestExecution
    document: TestDataDocument


@dataclass
class ScoreSummary:
    execution_id: int
    status: ExecutionStatus
    score: int
    correct_answers: int
    total_questions: int


@dataclass
class ExecutionResults:
    """Review data for a completed execution."""

    execution: TestExecution
    document: TestDataDocument
    total_questions: int
    correct_answers: int
    score: int


def _submission_label(entry: Any, position: int) -> str:
    if isinstance(entry, Mapping):
        for key in ("questionId", "question_id"):
            if entry.get(key) is not None:
                return str(entry[key])
    return f"entry {position + 1}"


def parse_submissions(entries: Sequence[Any]) -> List[SubmittedResponse]:
    """
    Validate the entries of a bulk submission.

    Each entry needs a positive question id, a non-blank answer and a numeric
    time taken. Entries may use camelCase (questionId, timeTaken) or
    snake_case keys.

    Raises:
        ValidationError: If the list is empty or any entry is invalid; the
            message lists every invalid entry
    """
    if not entries:
        raise ValidationError(ErrorMessages.NO_ANSWERS_TO_SUBMIT)

    parsed: List[SubmittedResponse] = []
    invalid: List[str] = []
    for position, entry in enumerate(entries):
        try:
            parsed.append(SubmittedResponse.model_validate(entry))
        except PydanticValidationError:
            invalid.append(_submission_label(entry, position))

    if invalid:
        raise ValidationError(
            ErrorMessages.invalid_submissions(invalid),
            details={"invalid_entries": invalid},
        )
    return parsed


class ExecutionService:
    """Operations on test executions for one database session."""

    def __init__(self, db: Session, auto_complete: Optional[bool] = None):
        self.db = db
        self.auto_complete = (
            settings.EXECUTION_AUTO_COMPLETE if auto_complete is None else auto_complete
        )

    # ------------------------------------------------------------------
    # Loading and authorization
    # ------------------------------------------------------------------

    def _get_plan(self, plan_id: int) -> TestPlan:
        plan = self.db.get(TestPlan, plan_id)
        if plan is None:
            raise NotFoundError(f"Test plan {plan_id} not found.")
        return plan

    def _get_owned_execution(self, execution_id: int, user_id: int) -> TestExecution:
        """
        Load an execution and check the caller is its student.

        Raises:
            NotFoundError: If the execution does not exist
            UnauthorizedError: If the caller is not the owning student
        """
        execution = self.db.get(TestExecution, execution_id)
        if execution is None:
            raise NotFoundError(f"Test execution {execution_id} not found.")
        if execution.student_id != user_id:
            logger.warning(
                f"User {user_id} denied access to execution {execution_id}",
                extra={"execution_id": execution_id, "user_id": user_id},
            )
            raise UnauthorizedError(ErrorMessages.EXECUTION_ACCESS_DENIED)
        return execution

    @staticmethod
    def _document(execution: TestExecution) -> TestDataDocument:
        return TestDataDocument.parse(execution.test_data, execution.id)

    @staticmethod
    def _store(execution: TestExecution, document: TestDataDocument) -> None:
        execution.test_data = document.dumps()

    def _finalize(
        self, execution: TestExecution, document: TestDataDocument, now: datetime
    ) -> int:
        """
        Grade the whole document and move the execution to COMPLETED.

        Shared by explicit completion and auto-completion so both compute and
        persist the score the same way.

        Returns:
            The score
        """
        apply_transition(execution, ExecutionAction.COMPLETE, now)
        correct = document.regrade()
        score = calculate_score_percentage(correct, document.total_questions)
        if document.timing.test_end_time is None:
            document.timing.test_end_time = now
        execution.score = score
        return score

    def _track_completed(self, execution: TestExecution, document: TestDataDocument) -> None:
        duration = None
        if execution.started_at and execution.completed_at:
            duration = int(
                (
                    ensure_timezone_aware(execution.completed_at)
                    - ensure_timezone_aware(execution.started_at)
                ).total_seconds()
            )
        AnalyticsTracker.track_execution_completed(
            user_id=execution.student_id,
            execution_id=execution.id,
            score=execution.score,
            correct=document.correct_count,
            total=document.total_questions,
            duration_seconds=duration,
        )

    # ------------------------------------------------------------------
    # Creation and reads
    # ------------------------------------------------------------------

    def create_execution(self, plan_id: int, user_id: int) -> TestExecution:
        """
        Create an attempt at a plan, or return the plan's unstarted one.

        The plan's student and its planner may both create the attempt; it is
        always owned by the plan's student.

        Raises:
            NotFoundError: If the plan does not exist
            UnauthorizedError: If the caller is neither student nor planner
            ValidationError: If the plan already has an execution in progress
                or paused, or its questions are no longer in the bank
        """
        plan = self._get_plan(plan_id)
        if user_id not in (plan.student_id, plan.planned_by):
            raise UnauthorizedError(ErrorMessages.PLAN_ACCESS_DENIED)

        latest = (
            self.db.query(TestExecution)
            .filter(TestExecution.test_plan_id == plan.id)
            .order_by(TestExecution.id.desc())
            .first()
        )
        if latest is not None:
            if latest.status == ExecutionStatus.NOT_STARTED:
                logger.info(
                    f"Reusing unstarted execution {latest.id} for plan {plan.id}",
                    extra={"execution_id": latest.id, "plan_id": plan.id},
                )
                return latest
            if latest.status in (ExecutionStatus.IN_PROGRESS, ExecutionStatus.PAUSED):
                raise ValidationError(
                    ErrorMessages.active_execution_exists(latest.id),
                    details={"execution_id": latest.id},
                )

        question_ids = list((plan.configuration or {}).get("question_ids") or [])
        if not question_ids:
            raise ValidationError(ErrorMessages.PLAN_HAS_NO_QUESTIONS)

        rows = self.db.query(Question).filter(Question.id.in_(question_ids)).all()
        by_id = {q.id: q for q in rows}
        missing = [qid for qid in question_ids if qid not in by_id]
        if missing:
            raise ValidationError(
                f"Questions no longer available: {', '.join(str(q) for q in missing)}."
            )

        document = TestDataDocument.from_questions(
            (by_id[qid] for qid in question_ids),
            total_time_allowed=plan.time_limit,
        )
        execution = TestExecution(
            test_plan_id=plan.id,
            student_id=plan.student_id,
            status=ExecutionStatus.NOT_STARTED,
            test_data=document.dumps(),
        )

        with handle_db_error(
            self.db,
            "create test execution",
            conflict_message=ErrorMessages.EXECUTION_ALREADY_ACTIVE,
        ):
            self.db.add(execution)
            self.db.commit()
        self.db.refresh(execution)

        logger.info(
            f"Created execution {execution.id} for plan {plan.id} "
            f"with {document.total_questions} questions",
            extra={"execution_id": execution.id, "plan_id": plan.id},
        )
        AnalyticsTracker.track_execution_event(
            EventType.EXECUTION_CREATED,
            user_id=user_id,
            execution_id=execution.id,
            plan_id=plan.id,
            question_count=document.total_questions,
        )
        return execution

    def get_execution(self, execution_id: int, user_id: int) -> CompletionResult:
        """Owner-only read of an execution and its parsed document."""
        execution = self._get_owned_execution(execution_id, user_id)
        return CompletionResult(execution, self._document(execution))

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def _transition(
        self,
        execution_id: int,
        user_id: int,
        action: ExecutionAction,
        event: EventType,
    ) -> TestExecution:
        execution = self._get_owned_execution(execution_id, user_id)
        now = utc_now()
        with handle_db_error(
            self.db, f"{action.value} test execution", execution_id=execution_id
        ):
            if action is ExecutionAction.START:
                document = self._document(execution)
                apply_transition(execution, action, now)
                document.timing.test_start_time = now
                self._store(execution, document)
            else:
                apply_transition(execution, action, now)
            self.db.commit()
        self.db.refresh(execution)

        AnalyticsTracker.track_execution_event(
            event, user_id=user_id, execution_id=execution.id
        )
        return execution

    def start_execution(self, execution_id: int, user_id: int) -> TestExecution:
        """
        Start a NOT_STARTED execution.

        Raises:
            ValidationError: If the execution has already started or finished
        """
        return self._transition(
            execution_id, user_id, ExecutionAction.START, EventType.EXECUTION_STARTED
        )

    def pause_execution(self, execution_id: int, user_id: int) -> TestExecution:
        return self._transition(
            execution_id, user_id, ExecutionAction.PAUSE, EventType.EXECUTION_PAUSED
        )

    def resume_execution(self, execution_id: int, user_id: int) -> TestExecution:
        return self._transition(
            execution_id, user_id, ExecutionAction.RESUME, EventType.EXECUTION_RESUMED
        )

    def abandon_execution(self, execution_id: int, user_id: int) -> TestExecution:
        """Abandon any non-terminal execution. The score stays empty."""
        return self._transition(
            execution_id, user_id, ExecutionAction.ABANDON, EventType.EXECUTION_ABANDONED
        )

    # ------------------------------------------------------------------
    # Answers
    # ------------------------------------------------------------------

    def submit_answer(
        self,
        execution_id: int,
        user_id: int,
        question_id: int,
        answer: str,
        time_spent: Optional[float] = None,
    ) -> AnswerOutcome:
        """
        Grade and record one answer. Re-submitting overwrites the earlier answer.

        With auto-complete enabled, recording the last missing answer
        completes the execution and computes its score.

        Raises:
            ValidationError: If the execution is not IN_PROGRESS
            NotFoundError: If the question is not part of the execution
        """
        execution = self._get_owned_execution(execution_id, user_id)
        require_answerable(ExecutionStatus(execution.status))

        completed = False
        with handle_db_error(self.db, "submit answer", execution_id=execution_id):
            document = self._document(execution)
            slot = document.record_answer(question_id, answer, time_spent)
            if self.auto_complete and document.all_answered():
                self._finalize(execution, document, utc_now())
                completed = True
            self._store(execution, document)
            self.db.commit()
        self.db.refresh(execution)

        AnalyticsTracker.track_execution_event(
            EventType.ANSWER_SUBMITTED,
            user_id=user_id,
            execution_id=execution.id,
            question_id=question_id,
            is_correct=slot.is_correct,
        )
        if completed:
            self._track_completed(execution, document)
        return AnswerOutcome(execution, slot)

    def submit_all_answers(
        self,
        execution_id: int,
        user_id: int,
        responses: Sequence[Any],
        end_time: Union[int, float, str, datetime, None] = None,
    ) -> CompletionResult:
        """
        Grade and merge a batch of answers into the execution.

        Questions not mentioned in the batch keep their current answer. The
        timing end instant is set from end_time (epoch milliseconds or
        ISO-8601; defaults to now). The execution stays IN_PROGRESS unless
        auto-complete is enabled and every question now has an answer.

        Raises:
            ValidationError: If the execution is not IN_PROGRESS, the batch
                is empty or malformed, references questions outside the
                execution, or end_time cannot be parsed
        """
        execution = self._get_owned_execution(execution_id, user_id)
        require_answerable(ExecutionStatus(execution.status))

        submissions = parse_submissions(responses)
        try:
            ended_at = parse_client_instant(end_time)
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Invalid end time: {end_time!r}.") from e

        completed = False
        with handle_db_error(self.db, "submit all answers", execution_id=execution_id):
            document = self._document(execution)
            known = {q.question_id for q in document.questions}
            unknown = {s.question_id for s in submissions} - known
            if unknown:
                raise ValidationError(
                    ErrorMessages.unknown_questions(unknown),
                    details={"question_ids": sorted(unknown)},
                )
            document.merge_submissions(submissions)
            document.timing.test_end_time = ended_at
            if self.auto_complete and document.all_answered():
                self._finalize(execution, document, utc_now())
                completed = True
            self._store(execution, document)
            self.db.commit()
        self.db.refresh(execution)

        AnalyticsTracker.track_execution_event(
            EventType.ANSWERS_SUBMITTED,
            user_id=user_id,
            execution_id=execution.id,
            answer_count=len(submissions),
        )
        if completed:
            self._track_completed(execution, document)
        return CompletionResult(execution, document)

    # ------------------------------------------------------------------
    # Completion and scoring
    # ------------------------------------------------------------------

    def complete_execution(self, execution_id: int, user_id: int) -> CompletionResult:
        """
        Finish an IN_PROGRESS execution, grading every answer.

        Status, completed_at, score and the graded document are written in
        one commit.

        Raises:
            ValidationError: If the execution is NOT_STARTED, PAUSED or
                already finished
        """
        execution = self._get_owned_execution(execution_id, user_id)
        with handle_db_error(self.db, "complete test execution", execution_id=execution_id):
            document = self._document(execution)
            self._finalize(execution, document, utc_now())
            self._store(execution, document)
            self.db.commit()
        self.db.refresh(execution)

        self._track_completed(execution, document)
        return CompletionResult(execution, document)

    def calculate_and_update_test_score(
        self, execution_id: int, user_id: int
    ) -> ScoreSummary:
        """
        Re-grade every response and recompute the score.

        Unanswered questions count as incorrect. The graded responses are
        persisted; the score column is only written for COMPLETED
        executions, since an unfinished attempt has no score of record.
        An ABANDONED execution is frozen: its score is computed but nothing
        is written. Calling this twice without answer changes yields the
        same result.
        """
        execution = self._get_owned_execution(execution_id, user_id)
        document = self._document(execution)
        correct = document.regrade()
        score = calculate_score_percentage(correct, document.total_questions)

        if execution.status != ExecutionStatus.ABANDONED:
            with handle_db_error(
                self.db, "calculate test score", execution_id=execution_id
            ):
                self._store(execution, document)
                if execution.status == ExecutionStatus.COMPLETED:
                    execution.score = score
                self.db.commit()
            self.db.refresh(execution)

        logger.info(
            f"Scored execution {execution.id}: {correct}/{document.total_questions} = {score}",
            extra={"execution_id": execution.id},
        )
        return ScoreSummary(
            execution_id=execution.id,
            status=ExecutionStatus(execution.status),
            score=score,
            correct_answers=correct,
            total_questions=document.total_questions,
        )

    def get_execution_results(self, execution_id: int, user_id: int) -> ExecutionResults:
        """
        Results of a completed execution.

        Raises:
            ValidationError: If the execution is not COMPLETED
        """
        execution = self._get_owned_execution(execution_id, user_id)
        if execution.status != ExecutionStatus.COMPLETED:
            raise ValidationError(ErrorMessages.RESULTS_NOT_AVAILABLE)

        document = self._document(execution)
        correct = document.correct_count
        score = execution.score
        if score is None:
            score = calculate_score_percentage(correct, document.total_questions)
        return ExecutionResults(
            execution=execution,
            document=document,
            total_questions=document.total_questions,
            correct_answers=correct,
            score=score,
        )
