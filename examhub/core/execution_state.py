"""
Lifecycle rules for test executions.

    NOT_STARTED --start--> IN_PROGRESS --pause--> PAUSED --resume--> IN_PROGRESS
    IN_PROGRESS --complete--> COMPLETED
    any non-terminal --abandon--> ABANDONED

COMPLETED and ABANDONED are terminal. Every other (state, action) pair is
rejected with a ValidationError whose message names the failed precondition.
"""
import enum
import logging
from datetime import datetime
from typing import Optional

from examhub.core.datetime_utils import utc_now
from examhub.core.errors import ValidationError
from examhub.models.models import ExecutionStatus, TestExecution

logger = logging.getLogger(__name__)


class ExecutionAction(str, enum.Enum):
    """Explicit lifecycle actions."""

    START = "start"
    PAUSE = "pause"
    RESUME = "resume"
    COMPLETE = "complete"
    ABANDON = "abandon"


TERMINAL_STATUSES = frozenset({ExecutionStatus.COMPLETED, ExecutionStatus.ABANDONED})

TRANSITIONS: dict[tuple[ExecutionStatus, ExecutionAction], ExecutionStatus] = {
    (ExecutionStatus.NOT_STARTED, ExecutionAction.START): ExecutionStatus.IN_PROGRESS,
    (ExecutionStatus.IN_PROGRESS, ExecutionAction.PAUSE): ExecutionStatus.PAUSED,
    (ExecutionStatus.PAUSED, ExecutionAction.RESUME): ExecutionStatus.IN_PROGRESS,
    (ExecutionStatus.IN_PROGRESS, ExecutionAction.COMPLETE): ExecutionStatus.COMPLETED,
    (ExecutionStatus.NOT_STARTED, ExecutionAction.ABANDON): ExecutionStatus.ABANDONED,
    (ExecutionStatus.IN_PROGRESS, ExecutionAction.ABANDON): ExecutionStatus.ABANDONED,
    (ExecutionStatus.PAUSED, ExecutionAction.ABANDON): ExecutionStatus.ABANDONED,
}


class TransitionMessages:
    """User-facing messages for rejected transitions."""

    ALREADY_STARTED = "Test has already started."
    NOT_IN_PROGRESS = "Test is not in progress."
    NOT_PAUSED = "Test is not paused."
    COMPLETE_NOT_STARTED = (
        "Cannot complete test. Test must be started first. "
        'Please click "Start Test" before attempting to complete the test.'
    )
    COMPLETE_ALREADY_COMPLETED = (
        "Cannot complete test. Test has already been completed."
    )
    COMPLETE_PAUSED = (
        "Cannot complete test while it is paused. Please resume the test first."
    )
    ANSWER_NOT_STARTED = (
        "Cannot submit answers. Test must be started first. "
        'Please click "Start Test" before submitting answers.'
    )
    ANSWER_PAUSED = "Cannot submit answers while the test is paused. Please resume the test first."

    @staticmethod
    def already_finished(status: ExecutionStatus) -> str:
        return f"Test has already been {status.value.lower()}. No further changes are allowed."

    @staticmethod
    def illegal(status: ExecutionStatus, action: ExecutionAction) -> str:
        return f"Cannot {action.value} a test execution in status {status.value}."


def _rejection_message(status: ExecutionStatus, action: ExecutionAction) -> str:
    if action is ExecutionAction.START:
        if status in TERMINAL_STATUSES:
            return TransitionMessages.already_finished(status)
        return TransitionMessages.ALREADY_STARTED
    if action is ExecutionAction.PAUSE:
        return TransitionMessages.NOT_IN_PROGRESS
    if action is ExecutionAction.RESUME:
        return TransitionMessages.NOT_PAUSED
    if action is ExecutionAction.COMPLETE:
        if status is ExecutionStatus.NOT_STARTED:
            return TransitionMessages.COMPLETE_NOT_STARTED
        if status is ExecutionStatus.PAUSED:
            return TransitionMessages.COMPLETE_PAUSED
        if status is ExecutionStatus.COMPLETED:
            return TransitionMessages.COMPLETE_ALREADY_COMPLETED
        return TransitionMessages.already_finished(status)
    if action is ExecutionAction.ABANDON:
        return TransitionMessages.already_finished(status)
    return TransitionMessages.illegal(status, action)


def next_status(status: ExecutionStatus, action: ExecutionAction) -> ExecutionStatus:
    """
    Return the status reached by applying action in status.

    Raises:
        ValidationError: If the transition is not allowed
    """
    target = TRANSITIONS.get((status, action))
    if target is None:
        raise ValidationError(
            _rejection_message(status, action),
            details={"status": status.value, "action": action.value},
        )
    return target


def require_answerable(status: ExecutionStatus) -> None:
    """
    Answers may only be recorded while the execution is IN_PROGRESS.

    Raises:
        ValidationError: For any other status
    """
    if status is ExecutionStatus.IN_PROGRESS:
        return
    if status is ExecutionStatus.NOT_STARTED:
        raise ValidationError(TransitionMessages.ANSWER_NOT_STARTED)
    if status is ExecutionStatus.PAUSED:
        raise ValidationError(TransitionMessages.ANSWER_PAUSED)
    raise ValidationError(TransitionMessages.already_finished(status))


def apply_transition(
    execution: TestExecution,
    action: ExecutionAction,
    now: Optional[datetime] = None,
) -> ExecutionStatus:
    """
    Move an execution to its next status and stamp the matching timestamp.

    Scoring on completion is the caller's responsibility; this only touches
    status and lifecycle timestamps.

    Returns:
        The new status
    """
    current = ExecutionStatus(execution.status)
    target = next_status(current, action)
    now = now or utc_now()

    if action is ExecutionAction.START:
        execution.started_at = now
    elif action is ExecutionAction.PAUSE:
        execution.paused_at = now
    elif action is ExecutionAction.RESUME:
        execution.paused_at = None
    elif action is ExecutionAction.COMPLETE:
        execution.completed_at = now
        execution.paused_at = None

    execution.status = target
    logger.info(
        f"Execution {execution.id} transitioned {current.value} -> {target.value}",
        extra={"execution_id": execution.id},
    )
    return target
