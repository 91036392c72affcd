from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from decimal import ROUND_HALF_UP, Decimal

from .models import (
    MATURITY_LEVEL_COUNT,
    Area,
    AreaResult,
    AssessmentDefinition,
    AssessmentMode,
    AssessmentOutcome,
    ExperienceLevel,
    KnowledgeMode,
    KnowledgeScore,
    MaturityScore,
    Question,
    ResponseSet,
    ScoringMode,
)

logger = logging.getLogger(__name__)

MATURITY_LEVELS: dict[int, str] = {
    1: "Level 1 - Initial",
    2: "Level 2 - Developing",
    3: "Level 3 - Defined",
    4: "Level 4 - Managed",
    5: "Level 5 - Optimized",
}

# Inclusive lower bound of each 20-point band, highest first.
LEVEL_THRESHOLDS: tuple[tuple[int, int], ...] = ((81, 5), (61, 4), (41, 3), (21, 2), (0, 1))

DEFAULT_PASSING_SCORE = 70


def clamp_level(level: int) -> int:
    if not (1 <= level <= MATURITY_LEVEL_COUNT):
        raise ValueError("Maturity level must be between 1 and 5 inclusive.")
    return int(level)


def round_percentage(numerator: int, denominator: int) -> int:
    """100 * numerator / denominator rounded half-up; 0 when denominator is 0."""
    if denominator <= 0:
        return 0
    ratio = Decimal(100 * numerator) / Decimal(denominator)
    return int(ratio.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def level_from_percentage(percentage: int) -> int:
    for lower_bound, level in LEVEL_THRESHOLDS:
        if percentage >= lower_bound:
            return level
    return 1


def classify(percentage: int) -> str:
    """
    Map a 0-100 percentage to its maturity label.

    >>> classify(20), classify(21)
    ('Level 1 - Initial', 'Level 2 - Developing')
    """
    return MATURITY_LEVELS[level_from_percentage(percentage)]


def remediation_key(level: int) -> str | None:
    """Key of the upgrade guidance for `level`; None at the top level."""
    level = clamp_level(level)
    if level >= MATURITY_LEVEL_COUNT:
        return None
    return f"Level {level}→{level + 1}"


def remediation_for(area: Area, level: int) -> str | None:
    key = remediation_key(level)
    if key is None:
        return None
    return area.remediation_actions.get(key)


def badge_tier(level: int) -> ExperienceLevel:
    level = clamp_level(level)
    if level <= 2:
        return "beginner"
    if level <= 4:
        return "intermediate"
    return "advanced"


def is_passing(percentage: int, passing_score: int = DEFAULT_PASSING_SCORE) -> bool:
    return percentage >= passing_score


def calculate_assessment_score(
    responses: ResponseSet, questions: Sequence[Question]
) -> KnowledgeScore:
    """
    Point-weighted knowledge score.

    Unanswered questions count as incorrect; an empty question list scores 0.
    """
    total_points = 0
    earned_points = 0
    correct_answers = 0

    for question in questions:
        total_points += question.points
        if responses.answer_for(question.id) == question.correct_answer:
            earned_points += question.points
            correct_answers += 1

    return KnowledgeScore(
        score=round_percentage(earned_points, total_points),
        total_points=total_points,
        correct_answers=correct_answers,
    )


def calculate_maturity_score(responses: ResponseSet, areas: Sequence[Area]) -> MaturityScore:
    """
    Aggregate self-reported levels across areas.

    Each selection is a zero-based state index, so it contributes index + 1
    points out of 5 per area.
    """
    total_score = 0
    for area in areas:
        selected = responses.level_for(area.id)
        if selected is not None:
            total_score += selected + 1
    max_score = len(areas) * MATURITY_LEVEL_COUNT
    percentage = round_percentage(total_score, max_score)
    return MaturityScore(
        percentage=percentage,
        maturity_level=classify(percentage),
        total_score=total_score,
        max_score=max_score,
    )


def score_area(
    area: Area, mode: ScoringMode, responses: ResponseSet, used_fallback: bool = False
) -> AreaResult:
    if isinstance(mode, KnowledgeMode):
        percentage = calculate_assessment_score(responses, mode.questions).score
        level: int | None = level_from_percentage(percentage)
    else:
        selected = responses.level_for(area.id)
        level = None if selected is None else selected + 1
        percentage = 0 if level is None else round_percentage(level, MATURITY_LEVEL_COUNT)

    if level is None:
        return AreaResult(
            area_id=area.id,
            area_title=area.title,
            mode=mode.kind,
            level=None,
            percentage=0,
            selected_state=None,
            badge_tier=None,
            remediation=None,
            used_fallback=used_fallback,
        )

    states = area.states
    return AreaResult(
        area_id=area.id,
        area_title=area.title,
        mode=mode.kind,
        level=level,
        percentage=percentage,
        selected_state=states[level - 1] if states else None,
        badge_tier=badge_tier(level),
        remediation=remediation_for(area, level),
        used_fallback=used_fallback,
    )


def summarize_assessment(
    definition: AssessmentDefinition,
    modes: Mapping[str, ScoringMode],
    responses: ResponseSet,
    session_mode: AssessmentMode,
    passing_score: int = DEFAULT_PASSING_SCORE,
) -> AssessmentOutcome:
    """
    Overall score, classification and per-area breakdown of a response set.

    - All areas in knowledge mode: point-weighted score over every question.
    - All areas in maturity mode: aggregate of selected levels.
    - Mixed: half-up mean of the per-area percentages, so a fallback area
      weighs the same as a questioned one.
    """
    knowledge_areas = [a for a in definition.areas if isinstance(modes[a.id], KnowledgeMode)]
    maturity_areas = [a for a in definition.areas if not isinstance(modes[a.id], KnowledgeMode)]

    area_results = tuple(
        score_area(area, modes[area.id], responses, modes[area.id].kind != session_mode)
        for area in definition.areas
    )

    if not maturity_areas:
        questions = [q for area in knowledge_areas for q in modes[area.id].questions]
        knowledge = calculate_assessment_score(responses, questions)
        percentage = knowledge.score
        total_score = knowledge.correct_answers
        max_score = len(questions)
    elif not knowledge_areas:
        maturity = calculate_maturity_score(responses, maturity_areas)
        percentage = maturity.percentage
        total_score = maturity.total_score
        max_score = maturity.max_score
    else:
        percentage = round_percentage(
            sum(r.percentage for r in area_results), 100 * len(area_results)
        )
        total_score = sum(r.level or 0 for r in area_results)
        max_score = len(area_results) * MATURITY_LEVEL_COUNT

    logger.debug(
        "Scored assessment %s: %d%% across %d areas", definition.id, percentage, len(area_results)
    )
    return AssessmentOutcome(
        assessment_id=definition.id,
        mode=session_mode,
        percentage=percentage,
        maturity_level=classify(percentage),
        total_score=total_score,
        max_score=max_score,
        passed=is_passing(percentage, passing_score),
        areas=area_results,
    )
