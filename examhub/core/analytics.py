"""
Analytics event tracking for test plans and executions.

Events are emitted as structured log records on the "examhub" logger tree so
any log shipper can forward them. No external analytics platform is wired in.
"""
import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from examhub.core.config import settings

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    """Analytics event types."""

    PLAN_CREATED = "plan.created"

    EXECUTION_CREATED = "execution.created"
    EXECUTION_STARTED = "execution.started"
    EXECUTION_PAUSED = "execution.paused"
    EXECUTION_RESUMED = "execution.resumed"
    EXECUTION_COMPLETED = "execution.completed"
    EXECUTION_ABANDONED = "execution.abandoned"

    ANSWER_SUBMITTED = "answer.submitted"
    ANSWERS_SUBMITTED = "answer.bulk_submitted"

    SLOW_REQUEST = "performance.slow_request"
    API_ERROR = "api.error"


class AnalyticsTracker:
    """Analytics event tracker."""

    @staticmethod
    def track_event(
        event_type: EventType,
        user_id: Optional[int] = None,
        properties: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Track an analytics event.

        Example:
            AnalyticsTracker.track_event(
                EventType.EXECUTION_COMPLETED,
                user_id=123,
                properties={"execution_id": 7, "score": 75},
            )
        """
        event_data = {
            "event": event_type.value,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "user_id": user_id,
            "properties": properties or {},
            "environment": settings.ENV,
        }
        logger.info(
            f"Analytics Event: {event_type.value}",
            extra={"event_data": event_data, "user_id": user_id},
        )

    @staticmethod
    def track_plan_created(user_id: int, plan_id: int, question_count: int) -> None:
        AnalyticsTracker.track_event(
            EventType.PLAN_CREATED,
            user_id=user_id,
            properties={"plan_id": plan_id, "question_count": question_count},
        )

    @staticmethod
    def track_execution_event(
        event_type: EventType,
        user_id: int,
        execution_id: int,
        **properties: Any,
    ) -> None:
        """Track a lifecycle event for one execution."""
        AnalyticsTracker.track_event(
            event_type,
            user_id=user_id,
            properties={"execution_id": execution_id, **properties},
        )

    @staticmethod
    def track_execution_completed(
        user_id: int,
        execution_id: int,
        score: int,
        correct: int,
        total: int,
        duration_seconds: Optional[int] = None,
    ) -> None:
        """Track test completion."""
        AnalyticsTracker.track_event(
            EventType.EXECUTION_COMPLETED,
            user_id=user_id,
            properties={
                "execution_id": execution_id,
                "score": score,
                "correct_answers": correct,
                "total_questions": total,
                "duration_seconds": duration_seconds,
            },
        )

    @staticmethod
    def track_slow_request(
        method: str, path: str, duration_seconds: float, status_code: int
    ) -> None:
        AnalyticsTracker.track_event(
            EventType.SLOW_REQUEST,
            properties={
                "method": method,
                "path": path,
                "duration_seconds": duration_seconds,
                "status_code": status_code,
            },
        )

    @staticmethod
    def track_api_error(
        method: str,
        path: str,
        error_type: str,
        error_message: str,
        user_id: Optional[int] = None,
    ) -> None:
        """Track API error."""
        AnalyticsTracker.track_event(
            EventType.API_ERROR,
            user_id=user_id,
            properties={
                "method": method,
                "path": path,
                "error_type": error_type,
                "error_message": error_message,
            },
        )
