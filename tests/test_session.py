import asyncio

import pytest

from edusoluce.domain.models import AssessmentMode, KnowledgeMode, MaturityMode
from edusoluce.domain.session import (
    NO_QUESTIONS_NOTICE,
    AssessmentSession,
    SessionState,
    resolve_scoring_modes,
)
from edusoluce.infrastructure.exceptions import (
    CatalogIntegrityError,
    ConfigurationError,
    InvalidResponseError,
    PersistenceError,
    SessionStateError,
    ValidationError,
)
from factories import RecordingStore, make_area, make_definition, make_question


def knowledge_definition():
    first = (make_question("q1", "first", 10, 0), make_question("q2", "first", 10, 1))
    last = (make_question("q3", "last", 10, 2), make_question("q4", "last", 10, 3))
    return make_definition(make_area("first", first), make_area("last", last))


def answer_all(session, answers):
    for question_id, option in answers.items():
        session.answer_question(question_id, option)


def walk_to_review(session):
    answer_all(session, {"q1": 0, "q2": 1})
    assert session.advance()
    answer_all(session, {"q3": 2, "q4": 0})
    assert session.advance()
    assert session.state is SessionState.REVIEW_CONFIRMATION


class TestNavigation:
    def test_initial_state(self):
        session = AssessmentSession(knowledge_definition())
        assert session.state is SessionState.IN_AREA
        assert session.area_index == 0
        assert session.current_area.id == "first"
        assert len(session.responses) == 0

    def test_advance_requires_every_question(self):
        session = AssessmentSession(knowledge_definition())
        session.answer_question("q1", 0)
        assert session.has_response() is False
        assert session.advance() is False
        assert session.area_index == 0

        session.answer_question("q2", 3)
        assert session.advance() is True
        assert session.area_index == 1

    def test_unanswered_question_on_last_area_blocks_review(self):
        session = AssessmentSession(knowledge_definition())
        answer_all(session, {"q1": 0, "q2": 1})
        session.advance()
        session.answer_question("q3", 2)

        assert session.is_last_area
        assert session.advance() is False
        assert session.state is SessionState.IN_AREA
        assert session.unanswered_areas() == ["last"]

    def test_back_keeps_responses(self):
        session = AssessmentSession(knowledge_definition())
        assert session.back() is False

        answer_all(session, {"q1": 0, "q2": 1})
        session.advance()
        session.answer_question("q3", 1)
        assert session.back() is True

        assert session.area_index == 0
        assert session.responses.answer_for("q1") == 0
        assert session.responses.answer_for("q3") == 1
        assert session.has_response()

    def test_review_returns_to_last_area(self):
        session = AssessmentSession(knowledge_definition())
        walk_to_review(session)
        before = session.responses.copy()

        session.review_answers()

        assert session.state is SessionState.IN_AREA
        assert session.area_index == 1
        assert session.responses == before
        session.answer_question("q4", 3)
        assert session.advance()
        assert session.state is SessionState.REVIEW_CONFIRMATION

    def test_maturity_mode_gates_on_area_selection(self):
        definition = make_definition(make_area("a"), make_area("b"))
        session = AssessmentSession(definition, mode=AssessmentMode.MATURITY)
        assert session.advance() is False
        session.select_level(2)
        assert session.advance()
        session.select_level(4, area_id="b")
        assert session.advance()
        assert session.state is SessionState.REVIEW_CONFIRMATION

    def test_answers_outside_current_area_are_rejected(self):
        session = AssessmentSession(knowledge_definition())
        with pytest.raises(ValidationError):
            session.answer_question("q3", 0)
        with pytest.raises(ValidationError):
            session.select_level(1)
        with pytest.raises(InvalidResponseError):
            session.answer_question("q1", 4)

    def test_state_misuse(self):
        session = AssessmentSession(knowledge_definition())
        with pytest.raises(SessionStateError):
            session.review_answers()
        with pytest.raises(SessionStateError):
            asyncio.run(session.confirm_submit())
        with pytest.raises(SessionStateError):
            session.results

        walk_to_review(session)
        with pytest.raises(SessionStateError):
            session.answer_question("q1", 1)
        with pytest.raises(SessionStateError):
            session.advance()


class TestFallback:
    def test_empty_question_bank_falls_back_with_notice(self, catalog):
        definition = catalog.get_assessment("ferpa-classroom-teachers")
        session = AssessmentSession(definition, mode=AssessmentMode.QUESTIONS)

        assert isinstance(session.modes["education-records-understanding"], KnowledgeMode)
        assert isinstance(session.modes["student-work-privacy"], MaturityMode)
        assert set(session.notices) == {
            "classroom-disclosure-management",
            "student-work-privacy",
            "directory-information-classroom",
        }
        assert session.notices["student-work-privacy"] == NO_QUESTIONS_NOTICE.format(
            title="Student Work Privacy"
        )
        assert session.current_notice is None

    def test_maturity_session_without_levels_uses_questions(self):
        questions = (make_question("q1", "quiz"),)
        definition = make_definition(make_area("quiz", questions, with_levels=False))
        modes, notices = resolve_scoring_modes(definition, AssessmentMode.MATURITY)
        assert modes["quiz"] == KnowledgeMode(questions)
        assert "quiz" in notices

    def test_area_without_any_mechanism(self):
        definition = make_definition(make_area("empty", with_levels=False))
        with pytest.raises(CatalogIntegrityError):
            AssessmentSession(definition)

    def test_fallback_areas_are_flagged_in_results(self, catalog):
        definition = catalog.get_assessment("student-privacy-rights")
        session = AssessmentSession(definition)
        while session.state is SessionState.IN_AREA:
            mode = session.current_mode
            if isinstance(mode, KnowledgeMode):
                for question in mode.questions:
                    session.answer_question(question.id, question.correct_answer)
            else:
                session.select_level(3)
            session.advance()

        outcome = asyncio.run(session.confirm_submit())

        flags = {a.area_id: a.used_fallback for a in outcome.areas}
        assert flags["understanding-education-records"] is False
        assert flags["parental-rights-transition"] is True
        # (100 + 80 + 80 + 80) / 4
        assert outcome.percentage == 85
        assert outcome.passed is True


class TestSubmission:
    def test_anonymous_session_skips_persistence(self):
        session = AssessmentSession(knowledge_definition())
        walk_to_review(session)

        outcome = asyncio.run(session.confirm_submit())

        assert session.state is SessionState.RESULTS
        assert session.is_anonymous
        assert outcome == session.results
        with pytest.raises(SessionStateError):
            session.build_records()

    def test_user_session_requires_store(self):
        with pytest.raises(ConfigurationError):
            AssessmentSession(knowledge_definition(), user_id="u-1")

    def test_successful_submission_saves_one_record_per_area(self):
        store = RecordingStore()
        session = AssessmentSession(knowledge_definition(), user_id="u-1", store=store)
        walk_to_review(session)

        outcome = asyncio.run(session.confirm_submit())

        assert session.state is SessionState.RESULTS
        assert [r.area_id for r in store.saved] == ["first", "last"]
        # 3 of 4 equally weighted questions
        assert outcome.percentage == 75
        first, last = store.saved
        assert first.user_id == "u-1"
        assert first.assessment_type == "teacher"
        assert first.score == 75
        assert first.current_level == 5
        assert last.current_level == 3
        assert first.responses == {"q1": 0, "q2": 1}
        assert first.remediation_actions["Level 1→2"] == "first: move to 2"
        assert first.gap_indicators == ("first gap",)

    def test_maturity_record_fields(self):
        store = RecordingStore()
        area = make_area("records")
        session = AssessmentSession(
            make_definition(area), mode=AssessmentMode.MATURITY, user_id="u-1", store=store
        )
        session.select_level(1)
        session.advance()

        asyncio.run(session.confirm_submit())

        (record,) = store.saved
        assert record.current_level == 2
        assert record.score == 40
        assert record.responses == {"records": 1}

    def test_failed_save_returns_to_review_and_retry_is_identical(self):
        store = RecordingStore(failures=1)
        session = AssessmentSession(knowledge_definition(), user_id="u-1", store=store)
        walk_to_review(session)
        before = session.responses.copy()
        expected = session.build_records()

        with pytest.raises(PersistenceError) as exc_info:
            asyncio.run(session.confirm_submit())

        assert exc_info.value.retryable is True
        assert "Please try again" in exc_info.value.user_message
        assert session.state is SessionState.REVIEW_CONFIRMATION
        assert session.responses == before
        assert session.last_error is exc_info.value

        asyncio.run(session.confirm_submit())

        assert session.state is SessionState.RESULTS
        assert tuple(store.saved) == expected
        assert session.last_error is None

    def test_unexpected_store_error_is_wrapped(self):
        store = RecordingStore(failures=1, error=RuntimeError("disk full"))
        session = AssessmentSession(knowledge_definition(), user_id="u-1", store=store)
        walk_to_review(session)

        with pytest.raises(PersistenceError) as exc_info:
            asyncio.run(session.confirm_submit())

        assert isinstance(exc_info.value.__cause__, RuntimeError)
        assert exc_info.value.area_id == "first"
        assert session.state is SessionState.REVIEW_CONFIRMATION

    def test_results_are_read_only(self):
        session = AssessmentSession(knowledge_definition())
        walk_to_review(session)
        asyncio.run(session.confirm_submit())

        with pytest.raises(SessionStateError):
            session.back()
        with pytest.raises(SessionStateError):
            asyncio.run(session.confirm_submit())

    def test_cancelled_save_returns_to_review(self):
        store = RecordingStore(failures=1, error=asyncio.CancelledError())
        session = AssessmentSession(knowledge_definition(), user_id="u-1", store=store)
        walk_to_review(session)
        before = session.responses.copy()

        with pytest.raises(asyncio.CancelledError):
            asyncio.run(session.confirm_submit())

        assert session.state is SessionState.REVIEW_CONFIRMATION
        assert session.responses == before
        assert session.last_error.area_id == "first"

        asyncio.run(session.confirm_submit())
        assert session.state is SessionState.RESULTS
        assert [r.area_id for r in store.saved] == ["first", "last"]
