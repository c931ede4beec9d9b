"""
User-facing error messages and HTTPException builders.

Services raise the typed errors in examhub.core.errors with messages taken
from ErrorMessages; request-layer code (auth dependencies) raises
HTTPException through the builder below.

Message guidelines:
- Sentence case, ending with a period
- Include relevant IDs in parentheses when they help the client: "(ID: 123)"
- Never include stack traces, SQL or other internals
"""

from typing import Iterable, NoReturn

from fastapi import HTTPException, status


class ErrorMessages:
    """Centralized error message constants and templates."""

    # Authentication (401)
    INVALID_TOKEN = "Invalid authentication token."
    INVALID_TOKEN_TYPE = "Invalid token type."
    INVALID_TOKEN_PAYLOAD = "Invalid token payload."
    USER_NOT_FOUND_AUTH = "User not found."

    # Authorization (403)
    EXECUTION_ACCESS_DENIED = "Not authorized to access this test execution."
    PLAN_ACCESS_DENIED = "Not authorized to access this test plan."
    PLAN_UPDATE_DENIED = "Only the planner can modify this test plan."

    # Conflict (409)
    CONCURRENT_MODIFICATION = (
        "The test execution was modified by another request. "
        "Please reload and try again."
    )
    EXECUTION_ALREADY_ACTIVE = (
        "An active test execution already exists for this plan. "
        "Please finish or abandon it before starting a new one."
    )

    # Bad request (400)
    NO_ANSWERS_TO_SUBMIT = "No answers to submit."
    RESULTS_NOT_AVAILABLE = (
        "Test results are only available after completing the test."
    )
    STUDENT_NOT_FOUND = "Student not found."
    NOT_A_STUDENT = "Test plans can only be created for users with the student role."
    TIME_LIMIT_REQUIRED = "A time limit is required for timed tests."
    PLAN_HAS_NO_QUESTIONS = "Test plan has no questions configured."

    # Server (500)
    INTERNAL_ERROR = "An unexpected error occurred. Please try again later."

    @staticmethod
    def active_execution_exists(execution_id: int) -> str:
        """Includes the id so clients can offer to resume the existing execution."""
        return (
            f"An active test execution already exists for this plan (ID: {execution_id}). "
            "Please finish or abandon it before starting a new one."
        )

    @staticmethod
    def invalid_submissions(question_ids: Iterable[object]) -> str:
        ids_str = ", ".join(str(qid) for qid in question_ids)
        return (
            f"Invalid answers for questions: {ids_str}. "
            "Each answer needs a question id, a non-empty answer and a numeric time taken."
        )

    @staticmethod
    def unknown_questions(question_ids: Iterable[int]) -> str:
        ids_str = ", ".join(str(qid) for qid in sorted(question_ids))
        return (
            f"Invalid question IDs: {ids_str}. "
            "These questions do not belong to this test execution."
        )

    @staticmethod
    def not_enough_questions(found: int, needed: int) -> str:
        return f"Not enough questions available. Found {found}, needed {needed}."

    @staticmethod
    def question_count_out_of_range(maximum: int) -> str:
        return f"Question count must be between 1 and {maximum}."


def raise_unauthorized(
    detail: str,
    include_www_authenticate: bool = True,
) -> NoReturn:
    """Raise a 401 Unauthorized exception."""
    headers = {"WWW-Authenticate": "Bearer"} if include_www_authenticate else None
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers=headers,
    )
