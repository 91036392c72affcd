import pytest

from edusoluce.domain.models import (
    AssessmentMode,
    KnowledgeMode,
    MaturityMode,
    ResponseSet,
)
from edusoluce.domain.scoring import (
    badge_tier,
    calculate_assessment_score,
    calculate_maturity_score,
    clamp_level,
    classify,
    is_passing,
    level_from_percentage,
    remediation_for,
    remediation_key,
    round_percentage,
    score_area,
    summarize_assessment,
)
from factories import make_area, make_definition, make_question


def answered(questions, answers):
    responses = ResponseSet()
    for question, answer in zip(questions, answers, strict=True):
        if answer is not None:
            responses.record_answer(question, answer)
    return responses


def levels(areas, indices):
    responses = ResponseSet()
    for area, index in zip(areas, indices, strict=True):
        responses.record_level(area, index)
    return responses


@pytest.mark.parametrize(
    "percentage,label",
    [
        (0, "Level 1 - Initial"),
        (20, "Level 1 - Initial"),
        (21, "Level 2 - Developing"),
        (40, "Level 2 - Developing"),
        (41, "Level 3 - Defined"),
        (60, "Level 3 - Defined"),
        (61, "Level 4 - Managed"),
        (80, "Level 4 - Managed"),
        (81, "Level 5 - Optimized"),
        (100, "Level 5 - Optimized"),
    ],
)
def test_classify_band_boundaries(percentage, label):
    assert classify(percentage) == label


def test_level_from_percentage_matches_classification():
    for percentage in range(101):
        assert classify(percentage).startswith(f"Level {level_from_percentage(percentage)} ")


def test_two_correct_answers_score_full_marks():
    questions = [make_question("q1", "a", 10, 0), make_question("q2", "a", 10, 2)]
    result = calculate_assessment_score(answered(questions, [0, 2]), questions)
    assert (result.score, result.total_points, result.correct_answers) == (100, 20, 2)


def test_only_heaviest_question_correct_scores_half():
    questions = [
        make_question("q1", "a", 5, 0),
        make_question("q2", "a", 10, 0),
        make_question("q3", "a", 15, 0),
    ]
    result = calculate_assessment_score(answered(questions, [1, 1, 0]), questions)
    assert result.score == 50
    assert result.total_points == 30
    assert result.correct_answers == 1


def test_unanswered_questions_count_as_incorrect():
    questions = [make_question("q1", "a", 10, 0), make_question("q2", "a", 10, 0)]
    result = calculate_assessment_score(answered(questions, [0, None]), questions)
    assert result.score == 50
    assert result.correct_answers == 1


def test_empty_question_list_scores_zero():
    result = calculate_assessment_score(ResponseSet(), [])
    assert (result.score, result.total_points, result.correct_answers) == (0, 0, 0)


PATTERNS = {
    "all_correct": lambda i, q: q.correct_answer,
    "all_wrong": lambda i, q: (q.correct_answer + 1) % 4,
    "alternating": lambda i, q: q.correct_answer if i % 2 == 0 else (q.correct_answer + 2) % 4,
    "half_unanswered": lambda i, q: q.correct_answer if i % 2 == 0 else None,
    "none_answered": lambda i, q: None,
}


@pytest.mark.parametrize("size", [1, 2, 3, 6, 11])
@pytest.mark.parametrize("pattern", sorted(PATTERNS))
def test_knowledge_score_stays_within_bounds(size, pattern):
    questions = [make_question(f"q{i}", "a", (i % 5) + 1, i % 4) for i in range(size)]
    answers = [PATTERNS[pattern](i, q) for i, q in enumerate(questions)]

    result = calculate_assessment_score(answered(questions, answers), questions)

    assert 0 <= result.score <= 100
    assert 0 <= result.correct_answers <= len(questions)
    assert result.total_points == sum(q.points for q in questions)
    if pattern == "all_correct":
        assert result.score == 100
    elif pattern in ("all_wrong", "none_answered"):
        assert result.score == 0
        assert result.correct_answers == 0


def test_rounding_is_half_up():
    assert round_percentage(1, 8) == 13  # 12.5
    assert round_percentage(5, 8) == 63  # 62.5
    assert round_percentage(2, 3) == 67
    assert round_percentage(0, 0) == 0

    questions = [make_question("q1", "a", 1, 0), make_question("q2", "a", 7, 0)]
    assert calculate_assessment_score(answered(questions, [0, 1]), questions).score == 13


def test_four_areas_at_level_three_is_defined():
    areas = [make_area(f"area-{i}") for i in range(4)]
    result = calculate_maturity_score(levels(areas, [2, 2, 2, 2]), areas)
    assert result.total_score == 12
    assert result.max_score == 20
    assert result.percentage == 60
    assert result.maturity_level == "Level 3 - Defined"


def test_maturity_extremes():
    areas = [make_area(f"area-{i}") for i in range(3)]
    lowest = calculate_maturity_score(levels(areas, [0, 0, 0]), areas)
    highest = calculate_maturity_score(levels(areas, [4, 4, 4]), areas)
    assert (lowest.percentage, lowest.maturity_level) == (20, "Level 1 - Initial")
    assert (highest.percentage, highest.maturity_level) == (100, "Level 5 - Optimized")


def test_maturity_score_ignores_unanswered_areas_in_total_only():
    areas = [make_area("a"), make_area("b")]
    responses = ResponseSet()
    responses.record_level(areas[0], 4)
    result = calculate_maturity_score(responses, areas)
    assert result.total_score == 5
    assert result.max_score == 10
    assert result.percentage == 50


def test_maturity_score_without_areas():
    result = calculate_maturity_score(ResponseSet(), [])
    assert (result.percentage, result.total_score, result.max_score) == (0, 0, 0)
    assert result.maturity_level == "Level 1 - Initial"


def test_remediation_keys_stop_at_top_level():
    assert [remediation_key(n) for n in range(1, 6)] == [
        "Level 1→2",
        "Level 2→3",
        "Level 3→4",
        "Level 4→5",
        None,
    ]


def test_remediation_lookup():
    area = make_area("records")
    assert remediation_for(area, 3) == "records: move to 4"
    assert remediation_for(area, 5) is None


def test_clamp_level_rejects_out_of_range():
    assert clamp_level(1) == 1
    assert clamp_level(5) == 5
    with pytest.raises(ValueError):
        clamp_level(0)
    with pytest.raises(ValueError):
        clamp_level(6)


def test_badge_tiers():
    assert [badge_tier(n) for n in range(1, 6)] == [
        "beginner",
        "beginner",
        "intermediate",
        "intermediate",
        "advanced",
    ]


def test_passing_threshold_is_inclusive():
    assert is_passing(70)
    assert not is_passing(69)
    assert is_passing(50, passing_score=50)


class TestAreaScoring:
    def test_maturity_area_breakdown(self):
        area = make_area("records")
        responses = levels([area], [1])
        result = score_area(area, MaturityMode(area.states), responses)

        assert result.level == 2
        assert result.percentage == 40
        assert result.selected_state == area.states[1]
        assert result.badge_tier == "beginner"
        assert result.remediation == "records: move to 3"
        assert result.mode is AssessmentMode.MATURITY

    def test_knowledge_area_level_comes_from_band(self):
        questions = (make_question("q1", "quiz", 10, 0), make_question("q2", "quiz", 10, 0))
        area = make_area("quiz", questions)
        result = score_area(area, KnowledgeMode(questions), answered(questions, [0, 1]))

        assert result.percentage == 50
        assert result.level == 3
        assert result.selected_state == area.states[2]
        assert result.remediation == "quiz: move to 4"

    def test_unanswered_maturity_area(self):
        area = make_area("records")
        result = score_area(area, MaturityMode(area.states), ResponseSet())
        assert result.level is None
        assert result.percentage == 0
        assert result.badge_tier is None
        assert result.remediation is None

    def test_top_level_has_no_remediation(self):
        area = make_area("records")
        result = score_area(area, MaturityMode(area.states), levels([area], [4]))
        assert result.level == 5
        assert result.badge_tier == "advanced"
        assert result.remediation is None


class TestSummary:
    def test_all_knowledge_areas_weight_by_points(self):
        q1 = (make_question("q1", "a", 10, 0),)
        q2 = (make_question("q2", "b", 30, 0),)
        definition = make_definition(make_area("a", q1), make_area("b", q2))
        modes = {"a": KnowledgeMode(q1), "b": KnowledgeMode(q2)}
        responses = answered(q1 + q2, [0, 1])

        outcome = summarize_assessment(definition, modes, responses, AssessmentMode.QUESTIONS)

        assert outcome.percentage == 25
        assert outcome.total_score == 1
        assert outcome.max_score == 2
        assert outcome.maturity_level == "Level 2 - Developing"
        assert outcome.passed is False
        assert [a.used_fallback for a in outcome.areas] == [False, False]

    def test_all_maturity_areas(self):
        areas = [make_area("a"), make_area("b")]
        definition = make_definition(*areas)
        modes = {a.id: MaturityMode(a.states) for a in areas}

        outcome = summarize_assessment(
            definition, modes, levels(areas, [3, 4]), AssessmentMode.MATURITY
        )

        assert outcome.percentage == 90
        assert outcome.total_score == 9
        assert outcome.max_score == 10
        assert outcome.passed is True

    def test_mixed_modes_average_area_percentages(self):
        questions = (make_question("q1", "quiz", 10, 0), make_question("q2", "quiz", 10, 0))
        quiz = make_area("quiz", questions)
        fallback = make_area("fallback")
        definition = make_definition(quiz, fallback)
        modes = {"quiz": KnowledgeMode(questions), "fallback": MaturityMode(fallback.states)}
        responses = answered(questions, [0, 0])
        responses.record_level(fallback, 1)

        outcome = summarize_assessment(definition, modes, responses, AssessmentMode.QUESTIONS)

        # (100 + 40) / 2
        assert outcome.percentage == 70
        assert outcome.total_score == 5 + 2
        assert outcome.max_score == 10
        assert outcome.passed is True
        assert [a.used_fallback for a in outcome.areas] == [False, True]

    def test_custom_passing_score(self):
        areas = [make_area("a")]
        modes = {"a": MaturityMode(areas[0].states)}
        outcome = summarize_assessment(
            make_definition(*areas), modes, levels(areas, [3]), AssessmentMode.MATURITY, 90
        )
        assert outcome.percentage == 80
        assert outcome.passed is False
