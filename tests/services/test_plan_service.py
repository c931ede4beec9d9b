"""
Tests for PlanService.
"""
import random

import pytest

from examhub.core.errors import NotFoundError, UnauthorizedError, ValidationError
from examhub.models import TimingType, User, UserRole
from examhub.schemas.plans import TestPlanCreate, TestPlanUpdate
from examhub.services.execution_service import ExecutionService
from examhub.services.plan_service import PlanService


@pytest.fixture
def service(db_session):
    return PlanService(db_session, rng=random.Random(7))


def _create_request(student_id, count=2, **overrides):
    payload = {
        "studentId": student_id,
        "configuration": {"totalQuestionCount": count},
    }
    payload.update(overrides)
    return TestPlanCreate.model_validate(payload)


class TestCreatePlan:
    def test_plan_stores_sampled_question_ids(self, service, tutor, student, question_bank):
        request = _create_request(
            student.id,
            count=3,
            configuration={
                "topics": [question_bank["algebra"].id],
                "totalQuestionCount": 3,
            },
        )

        plan = service.create_plan(tutor, request)

        algebra_ids = {q.id for q in question_bank["questions"]}
        chosen = plan.configuration["question_ids"]
        assert len(chosen) == 3
        assert len(set(chosen)) == 3
        assert set(chosen) <= algebra_ids
        assert plan.configuration["totalQuestionCount"] == 3
        assert plan.planned_by == tutor.id
        assert plan.student_id == student.id

    def test_subtopics_take_precedence_over_topics(
        self, service, tutor, student, question_bank
    ):
        request = _create_request(
            student.id,
            configuration={
                "topics": [question_bank["geometry"].id],
                "subtopics": [question_bank["fractions"].id],
                "totalQuestionCount": 2,
            },
        )

        plan = service.create_plan(tutor, request)

        fraction_ids = {
            q.id for q in question_bank["questions"] if q.subtopic_id == question_bank["fractions"].id
        }
        assert set(plan.configuration["question_ids"]) == fraction_ids

    def test_inactive_questions_are_never_chosen(self, service, tutor, student, question_bank):
        request = _create_request(
            student.id,
            configuration={
                "subtopics": [question_bank["angles"].id],
                "totalQuestionCount": 1,
            },
        )

        plan = service.create_plan(tutor, request)

        assert plan.configuration["question_ids"] == [question_bank["extra"][0].id]

    def test_not_enough_questions(self, service, tutor, student, question_bank):
        request = _create_request(
            student.id,
            configuration={
                "subtopics": [question_bank["angles"].id],
                "totalQuestionCount": 2,
            },
        )

        with pytest.raises(ValidationError, match="Found 1, needed 2"):
            service.create_plan(tutor, request)

    def test_question_count_above_limit(self, service, tutor, student, question_bank):
        with pytest.raises(ValidationError, match="between 1 and"):
            service.create_plan(tutor, _create_request(student.id, count=10_000))

    def test_timed_plan_requires_time_limit(self, service, tutor, student, question_bank):
        request = _create_request(student.id, timingType="TIMED")

        with pytest.raises(ValidationError, match="time limit"):
            service.create_plan(tutor, request)

    def test_untimed_plan_drops_time_limit(self, service, tutor, student, question_bank):
        plan = service.create_plan(tutor, _create_request(student.id, timeLimit=20))

        assert plan.timing_type == TimingType.UNTIMED
        assert plan.time_limit is None

    def test_timed_plan_keeps_time_limit(self, service, tutor, student, question_bank):
        plan = service.create_plan(
            tutor, _create_request(student.id, timingType="TIMED", timeLimit=45)
        )

        assert plan.time_limit == 45

    def test_students_cannot_plan(self, service, student, other_student, question_bank):
        with pytest.raises(UnauthorizedError):
            service.create_plan(student, _create_request(other_student.id))

    def test_target_must_be_a_student(self, service, tutor, question_bank):
        with pytest.raises(
            ValidationError, match="created for users with the student role"
        ):
            service.create_plan(tutor, _create_request(tutor.id))

    def test_unknown_student(self, service, tutor, question_bank):
        with pytest.raises(ValidationError, match="Student not found"):
            service.create_plan(tutor, _create_request(9999))

    def test_parent_can_plan(self, service, db_session, student, question_bank):
        parent = User(email="parent@example.com", role=UserRole.PARENT)
        db_session.add(parent)
        db_session.commit()

        plan = service.create_plan(parent, _create_request(student.id))

        assert plan.planned_by == parent.id

    def test_plan_does_not_create_an_execution(self, service, tutor, student, question_bank):
        plan = service.create_plan(tutor, _create_request(student.id))

        assert service.get_plan(plan.id, student.id).latest_execution is None

    def test_execution_uses_the_planned_questions(
        self, service, db_session, tutor, student, question_bank
    ):
        plan = service.create_plan(tutor, _create_request(student.id, count=3))

        execution = ExecutionService(db_session).create_execution(plan.id, student.id)

        document = ExecutionService(db_session).get_execution(execution.id, student.id).document
        assert [q.question_id for q in document.questions] == plan.configuration["question_ids"]


class TestGetPlan:
    def test_student_and_planner_can_read(self, service, plan, student, tutor):
        assert service.get_plan(plan.id, student.id).plan.id == plan.id
        assert service.get_plan(plan.id, tutor.id).plan.id == plan.id

    def test_stranger_cannot_read(self, service, plan, other_student):
        with pytest.raises(UnauthorizedError):
            service.get_plan(plan.id, other_student.id)

    def test_missing_plan(self, service, student):
        with pytest.raises(NotFoundError):
            service.get_plan(9999, student.id)

    def test_latest_execution_is_included(self, service, db_session, plan, student):
        execution = ExecutionService(db_session).create_execution(plan.id, student.id)

        view = service.get_plan(plan.id, student.id)

        assert view.latest_execution.id == execution.id


class TestUpdatePlan:
    def test_planner_updates_description(self, service, plan, tutor):
        view = service.update_plan(
            plan.id, tutor.id, TestPlanUpdate(description="Fractions focus")
        )

        assert view.plan.description == "Fractions focus"

    def test_unset_fields_are_untouched(self, service, plan, tutor):
        view = service.update_plan(
            plan.id, tutor.id, TestPlanUpdate.model_validate({"scheduledFor": "2030-01-01T09:00:00Z"})
        )

        assert view.plan.description == "Algebra check-in"
        assert view.plan.scheduled_for is not None

    def test_student_cannot_update(self, service, plan, student):
        with pytest.raises(UnauthorizedError):
            service.update_plan(plan.id, student.id, TestPlanUpdate(description="mine now"))

    def test_question_set_cannot_be_changed(self):
        with pytest.raises(Exception):
            TestPlanUpdate.model_validate({"configuration": {"question_ids": [1]}})
