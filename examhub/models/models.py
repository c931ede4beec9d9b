"""
Database models for the ExamHub test authoring and execution backend.
"""
from sqlalchemy import (
    JSON,
    Column,
    Integer,
    String,
    Boolean,
    DateTime,
    ForeignKey,
    Text,
    Enum,
    Index,
    CheckConstraint,
    text,
)
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
import enum

from .base import Base


class UserRole(str, enum.Enum):
    """Platform role enumeration."""

    STUDENT = "student"
    TUTOR = "tutor"
    PARENT = "parent"
    ADMIN = "admin"


class TimingType(str, enum.Enum):
    """Whether a test plan is time-boxed."""

    TIMED = "TIMED"
    UNTIMED = "UNTIMED"


class ExecutionStatus(str, enum.Enum):
    """Test execution status enumeration."""

    NOT_STARTED = "NOT_STARTED"
    IN_PROGRESS = "IN_PROGRESS"
    PAUSED = "PAUSED"
    COMPLETED = "COMPLETED"
    ABANDONED = "ABANDONED"


# Statuses in which an execution still occupies its plan
ACTIVE_EXECUTION_STATUSES = (
    ExecutionStatus.NOT_STARTED,
    ExecutionStatus.IN_PROGRESS,
    ExecutionStatus.PAUSED,
)

_ACTIVE_STATUS_SQL = "status IN ({})".format(
    ", ".join(f"'{s.value}'" for s in ACTIVE_EXECUTION_STATUSES)
)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    """Platform user. Credentials live with the authentication provider."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    first_name = Column(String(100))
    last_name = Column(String(100))
    role = Column(Enum(UserRole), nullable=False, default=UserRole.STUDENT)
    created_at = Column(DateTime(timezone=True), default=_utc_now, nullable=False)

    # Relationships
    student_plans = relationship(
        "TestPlan",
        back_populates="student",
        foreign_keys="TestPlan.student_id",
    )
    planned_plans = relationship(
        "TestPlan",
        back_populates="planner",
        foreign_keys="TestPlan.planned_by",
    )


class Subject(Base):
    """Top level of the question bank hierarchy (e.g. Mathematics)."""

    __tablename__ = "subjects"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False, unique=True)

    topics = relationship(
        "Topic", back_populates="subject", cascade="all, delete-orphan"
    )


class Topic(Base):
    """Topic within a subject (e.g. Algebra)."""

    __tablename__ = "topics"

    id = Column(Integer, primary_key=True, index=True)
    subject_id = Column(
        Integer, ForeignKey("subjects.id", ondelete="CASCADE"), nullable=False
    )
    name = Column(String(200), nullable=False)

    subject = relationship("Subject", back_populates="topics")
    subtopics = relationship(
        "Subtopic", back_populates="topic", cascade="all, delete-orphan"
    )


class Subtopic(Base):
    """Subtopic within a topic (e.g. Linear equations). Questions hang off it."""

    __tablename__ = "subtopics"

    id = Column(Integer, primary_key=True, index=True)
    topic_id = Column(
        Integer, ForeignKey("topics.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name = Column(String(200), nullable=False)

    topic = relationship("Topic", back_populates="subtopics")
    questions = relationship("Question", back_populates="subtopic")


class Question(Base):
    """Question bank entry."""

    __tablename__ = "questions"

    id = Column(Integer, primary_key=True, index=True)
    subtopic_id = Column(
        Integer, ForeignKey("subtopics.id", ondelete="CASCADE"), nullable=False, index=True
    )
    question_text = Column(Text, nullable=False)
    options = Column(JSON)  # JSON array for multiple choice, null for open-ended
    difficulty_level = Column(Integer, nullable=False, default=1)
    correct_answer = Column(Text)  # Markup (KaTeX) form
    correct_answer_plain = Column(Text)  # Plain text form
    is_markup = Column(
        Boolean, default=False, nullable=False
    )  # Which correct answer form is authoritative
    is_active = Column(Boolean, default=True, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=_utc_now, nullable=False)

    subtopic = relationship("Subtopic", back_populates="questions")

    __table_args__ = (
        CheckConstraint(
            "correct_answer IS NOT NULL OR correct_answer_plain IS NOT NULL",
            name="ck_questions_has_correct_answer",
        ),
    )


class TestPlan(Base):
    """
    Immutable description of what a student will be asked.

    The configuration payload records the selected topics, subtopics, the
    requested question count and the ids of the questions chosen at planning
    time. Only descriptive metadata changes after creation.
    """

    __tablename__ = "test_plans"

    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    planned_by = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    board_id = Column(Integer, nullable=True)  # Exam board reference
    template_id = Column(Integer, nullable=True)  # Test template reference
    test_type = Column(String(50), nullable=False, default="TOPIC")
    timing_type = Column(Enum(TimingType), nullable=False, default=TimingType.UNTIMED)
    time_limit = Column(Integer, nullable=True)  # Minutes, only for TIMED plans
    configuration = Column(JSON, nullable=False)
    description = Column(Text, nullable=True)
    scheduled_for = Column(DateTime(timezone=True), nullable=True)
    planned_at = Column(DateTime(timezone=True), default=_utc_now, nullable=False)

    student = relationship(
        "User", back_populates="student_plans", foreign_keys=[student_id]
    )
    planner = relationship(
        "User", back_populates="planned_plans", foreign_keys=[planned_by]
    )
    executions = relationship(
        "TestExecution",
        back_populates="test_plan",
        cascade="all, delete-orphan",
        order_by="TestExecution.id",
    )


class TestExecution(Base):
    """
    A single attempt at a test plan.

    test_data holds the JSON-encoded document with the question snapshots,
    the per-question responses and timing metadata. The version column is
    the optimistic lock: every UPDATE is conditioned on the version that was
    read, so a concurrent writer fails instead of overwriting answers.
    """

    __tablename__ = "test_executions"

    id = Column(Integer, primary_key=True, index=True)
    test_plan_id = Column(
        Integer,
        ForeignKey("test_plans.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    student_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    status = Column(
        Enum(ExecutionStatus),
        default=ExecutionStatus.NOT_STARTED,
        nullable=False,
        index=True,
    )
    started_at = Column(DateTime(timezone=True), nullable=True)
    paused_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    score = Column(Integer, nullable=True)  # Percentage, set on completion
    test_data = Column(Text, nullable=False)
    version = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utc_now, nullable=False)

    test_plan = relationship("TestPlan", back_populates="executions")
    student = relationship("User")

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        # One non-terminal execution per plan
        Index(
            "ix_test_executions_plan_active",
            "test_plan_id",
            unique=True,
            postgresql_where=text(_ACTIVE_STATUS_SQL),
            sqlite_where=text(_ACTIVE_STATUS_SQL),
        ),
        CheckConstraint(
            "score IS NULL OR status = 'COMPLETED'",
            name="ck_test_executions_score_on_completion",
        ),
        CheckConstraint(
            "score IS NULL OR (score >= 0 AND score <= 100)",
            name="ck_test_executions_score_range",
        ),
    )
