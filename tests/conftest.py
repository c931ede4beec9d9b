"""
Pytest configuration and shared fixtures for testing.
"""
import os
from pathlib import Path

# Settings and the engine are built at import time; point them at a throwaway
# SQLite file inside tests/ before anything from examhub is imported.
_TEST_DB = Path(__file__).parent / "test.db"
os.environ["DATABASE_URL"] = f"sqlite:///{_TEST_DB}"
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("JWT_SECRET_KEY", "test-jwt-secret-key")
os.environ.setdefault("ENV", "test")
os.environ.setdefault("DEBUG", "False")
os.environ.setdefault("EXECUTION_AUTO_COMPLETE", "False")

from contextlib import asynccontextmanager  # noqa: E402
from typing import Callable, Dict, List  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from examhub.core.security import create_access_token  # noqa: E402
from examhub.main import app  # noqa: E402
from examhub.models import (  # noqa: E402
    Base,
    Question,
    SessionLocal,
    Subject,
    Subtopic,
    TestPlan,
    TimingType,
    Topic,
    User,
    UserRole,
    engine,
    get_db,
)


@asynccontextmanager
async def _test_lifespan(app):
    """No-op lifespan for tests; tables are managed by the db_session fixture."""
    yield


app.router.lifespan_context = _test_lifespan


@pytest.fixture(scope="function")
def db_session():
    """
    Create a fresh database session for each test.
    """
    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db_session):
    """
    Create a test client with database dependency override.

    Each request gets its own session on the same database file that
    db_session writes to.
    """

    def override_get_db():
        db = SessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def _make_user(db, email: str, role: UserRole, first_name: str) -> User:
    user = User(email=email, first_name=first_name, last_name="Test", role=role)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def student(db_session):
    return _make_user(db_session, "student@example.com", UserRole.STUDENT, "Sam")


@pytest.fixture
def other_student(db_session):
    return _make_user(db_session, "other@example.com", UserRole.STUDENT, "Alex")


@pytest.fixture
def tutor(db_session):
    return _make_user(db_session, "tutor@example.com", UserRole.TUTOR, "Taylor")


@pytest.fixture
def auth_headers_for() -> Callable[[User], Dict[str, str]]:
    """Build bearer headers for any user."""

    def _headers(user: User) -> Dict[str, str]:
        token = create_access_token({"user_id": user.id})
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def student_headers(student, auth_headers_for):
    return auth_headers_for(student)


@pytest.fixture
def tutor_headers(tutor, auth_headers_for):
    return auth_headers_for(tutor)


@pytest.fixture
def question_bank(db_session) -> Dict[str, object]:
    """
    A small question bank.

    Algebra holds the four active questions used by plans; Geometry holds
    one active and one retired question.
    """
    maths = Subject(name="Mathematics")
    algebra = Topic(subject=maths, name="Algebra")
    geometry = Topic(subject=maths, name="Geometry")
    linear = Subtopic(topic=algebra, name="Linear equations")
    fractions = Subtopic(topic=algebra, name="Fractions")
    angles = Subtopic(topic=geometry, name="Angles")
    db_session.add_all([maths, algebra, geometry, linear, fractions, angles])
    db_session.flush()

    questions = [
        Question(
            subtopic_id=linear.id,
            question_text="Solve x + 2 = 6",
            difficulty_level=1,
            correct_answer_plain="4",
            is_markup=False,
        ),
        Question(
            subtopic_id=fractions.id,
            question_text="Simplify 2/4",
            difficulty_level=2,
            correct_answer="\\frac{1}{2}",
            correct_answer_plain="1/2",
            is_markup=True,
        ),
        Question(
            subtopic_id=linear.id,
            question_text="Which option solves 3x = 6?",
            options=["A) 1", "B) 2", "C) 3", "D) 6"],
            difficulty_level=1,
            correct_answer_plain="B",
            is_markup=False,
        ),
        Question(
            subtopic_id=fractions.id,
            question_text="Write one quarter as a decimal",
            difficulty_level=2,
            correct_answer="0.25",
            is_markup=False,
        ),
    ]
    extra = [
        Question(
            subtopic_id=angles.id,
            question_text="How many degrees in a right angle?",
            difficulty_level=1,
            correct_answer_plain="90",
        ),
        Question(
            subtopic_id=angles.id,
            question_text="Retired question",
            difficulty_level=1,
            correct_answer_plain="x",
            is_active=False,
        ),
    ]
    db_session.add_all(questions + extra)
    db_session.commit()

    return {
        "algebra": algebra,
        "geometry": geometry,
        "linear": linear,
        "fractions": fractions,
        "angles": angles,
        "questions": questions,
        "extra": extra,
    }


@pytest.fixture
def correct_answers(question_bank) -> List[str]:
    """Accepted answers for question_bank["questions"], in order."""
    return ["4", "\\frac{1}{2}", "b", "0.25"]


@pytest.fixture
def plan(db_session, student, tutor, question_bank) -> TestPlan:
    """A plan for the student covering the four algebra questions."""
    question_ids = [q.id for q in question_bank["questions"]]
    test_plan = TestPlan(
        student_id=student.id,
        planned_by=tutor.id,
        test_type="TOPIC",
        timing_type=TimingType.TIMED,
        time_limit=30,
        configuration={
            "topics": [question_bank["algebra"].id],
            "subtopics": [],
            "totalQuestionCount": len(question_ids),
            "question_ids": question_ids,
        },
        description="Algebra check-in",
    )
    db_session.add(test_plan)
    db_session.commit()
    db_session.refresh(test_plan)
    return test_plan
