"""
Models package for the ExamHub backend.
"""
from .base import Base, engine, SessionLocal, get_db
from .models import (
    User,
    UserRole,
    Subject,
    Topic,
    Subtopic,
    Question,
    TestPlan,
    TimingType,
    TestExecution,
    ExecutionStatus,
    ACTIVE_EXECUTION_STATUSES,
)

__all__ = [
    "Base",
    "engine",
    "SessionLocal",
    "get_db",
    "User",
    "UserRole",
    "Subject",
    "Topic",
    "Subtopic",
    "Question",
    "TestPlan",
    "TimingType",
    "TestExecution",
    "ExecutionStatus",
    "ACTIVE_EXECUTION_STATUSES",
]
