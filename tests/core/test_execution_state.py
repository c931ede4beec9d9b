"""
Tests for the execution lifecycle state machine.
"""
from datetime import datetime, timezone
from itertools import product
from types import SimpleNamespace

import pytest

from examhub.core.errors import ValidationError
from examhub.core.execution_state import (
    TERMINAL_STATUSES,
    TRANSITIONS,
    ExecutionAction,
    apply_transition,
    next_status,
    require_answerable,
)
from examhub.models import ExecutionStatus

NOW = datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)


def _execution(status, **fields):
    defaults = {
        "id": 1,
        "status": status,
        "started_at": None,
        "paused_at": None,
        "completed_at": None,
    }
    defaults.update(fields)
    return SimpleNamespace(**defaults)


class TestNextStatus:
    """Tests for the transition table."""

    @pytest.mark.parametrize(
        "status, action, expected",
        [
            (ExecutionStatus.NOT_STARTED, ExecutionAction.START, ExecutionStatus.IN_PROGRESS),
            (ExecutionStatus.IN_PROGRESS, ExecutionAction.PAUSE, ExecutionStatus.PAUSED),
            (ExecutionStatus.PAUSED, ExecutionAction.RESUME, ExecutionStatus.IN_PROGRESS),
            (ExecutionStatus.IN_PROGRESS, ExecutionAction.COMPLETE, ExecutionStatus.COMPLETED),
            (ExecutionStatus.NOT_STARTED, ExecutionAction.ABANDON, ExecutionStatus.ABANDONED),
            (ExecutionStatus.PAUSED, ExecutionAction.ABANDON, ExecutionStatus.ABANDONED),
        ],
    )
    def test_legal_transitions(self, status, action, expected):
        assert next_status(status, action) == expected

    def test_every_other_pair_is_rejected(self):
        for status, action in product(ExecutionStatus, ExecutionAction):
            if (status, action) in TRANSITIONS:
                continue
            with pytest.raises(ValidationError):
                next_status(status, action)

    def test_terminal_states_have_no_exits(self):
        for (status, _action) in TRANSITIONS:
            assert status not in TERMINAL_STATUSES

    def test_completed_only_reachable_from_in_progress(self):
        sources = {
            status
            for (status, _action), target in TRANSITIONS.items()
            if target == ExecutionStatus.COMPLETED
        }
        assert sources == {ExecutionStatus.IN_PROGRESS}


class TestRejectionMessages:
    """Rejected transitions name the failed precondition."""

    def test_start_twice(self):
        with pytest.raises(ValidationError, match="already started"):
            next_status(ExecutionStatus.IN_PROGRESS, ExecutionAction.START)

    def test_complete_before_start(self):
        with pytest.raises(ValidationError, match="started first"):
            next_status(ExecutionStatus.NOT_STARTED, ExecutionAction.COMPLETE)

    def test_complete_while_paused(self):
        with pytest.raises(ValidationError, match="resume"):
            next_status(ExecutionStatus.PAUSED, ExecutionAction.COMPLETE)

    def test_complete_twice(self):
        with pytest.raises(ValidationError, match="already been completed"):
            next_status(ExecutionStatus.COMPLETED, ExecutionAction.COMPLETE)

    def test_pause_when_not_in_progress(self):
        with pytest.raises(ValidationError, match="not in progress"):
            next_status(ExecutionStatus.PAUSED, ExecutionAction.PAUSE)

    def test_resume_when_not_paused(self):
        with pytest.raises(ValidationError, match="not paused"):
            next_status(ExecutionStatus.IN_PROGRESS, ExecutionAction.RESUME)

    def test_error_details_name_the_transition(self):
        with pytest.raises(ValidationError) as exc_info:
            next_status(ExecutionStatus.ABANDONED, ExecutionAction.RESUME)

        assert exc_info.value.details == {"status": "ABANDONED", "action": "resume"}


class TestApplyTransition:
    """Tests for timestamps set by apply_transition."""

    def test_start_sets_started_at(self):
        execution = _execution(ExecutionStatus.NOT_STARTED)

        apply_transition(execution, ExecutionAction.START, NOW)

        assert execution.status == ExecutionStatus.IN_PROGRESS
        assert execution.started_at == NOW

    def test_pause_then_resume_clears_paused_at(self):
        execution = _execution(ExecutionStatus.IN_PROGRESS, started_at=NOW)

        apply_transition(execution, ExecutionAction.PAUSE, NOW)
        assert execution.paused_at == NOW

        apply_transition(execution, ExecutionAction.RESUME, NOW)
        assert execution.paused_at is None
        assert execution.status == ExecutionStatus.IN_PROGRESS

    def test_complete_sets_completed_at(self):
        execution = _execution(ExecutionStatus.IN_PROGRESS, started_at=NOW)

        apply_transition(execution, ExecutionAction.COMPLETE, NOW)

        assert execution.status == ExecutionStatus.COMPLETED
        assert execution.completed_at == NOW

    def test_rejected_transition_leaves_execution_untouched(self):
        execution = _execution(ExecutionStatus.NOT_STARTED)

        with pytest.raises(ValidationError):
            apply_transition(execution, ExecutionAction.COMPLETE, NOW)

        assert execution.status == ExecutionStatus.NOT_STARTED
        assert execution.completed_at is None


class TestRequireAnswerable:
    def test_in_progress_accepts_answers(self):
        require_answerable(ExecutionStatus.IN_PROGRESS)

    @pytest.mark.parametrize(
        "status, message",
        [
            (ExecutionStatus.NOT_STARTED, "started first"),
            (ExecutionStatus.PAUSED, "paused"),
            (ExecutionStatus.COMPLETED, "completed"),
            (ExecutionStatus.ABANDONED, "abandoned"),
        ],
    )
    def test_other_statuses_reject_answers(self, status, message):
        with pytest.raises(ValidationError, match=message):
            require_answerable(status)
