"""Weighted scoring of questionnaire answers."""

import math
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Sequence, Tuple, Union

from scorecard.taxonomy import DIMENSIONS, MAX_POINTS_PER_QUESTION, DimensionDefinition, get_question

AnswerValue = Union[float, Sequence[float]]
AnswerSet = Mapping[str, AnswerValue]

STAGE_LEADING = "Leading"
STAGE_SCALING = "Scaling"
STAGE_BUILDING = "Building"
STAGE_FOUNDATION = "Foundation"

# Persisted rows and the dashboard use an older vocabulary for the same bands.
LEGACY_STAGE_LABELS: Dict[str, str] = {
    STAGE_LEADING: "Leading",
    STAGE_SCALING: "Growing",
    STAGE_BUILDING: "Developing",
    STAGE_FOUNDATION: "Starting",
}
_CANONICAL_BY_LEGACY = {legacy: canonical for canonical, legacy in LEGACY_STAGE_LABELS.items()}

_STAGE_DESCRIPTIONS = {
    STAGE_LEADING: "Best-in-class performance! You're setting the benchmark.",
    STAGE_SCALING: "Strong foundation. Ready for aggressive growth.",
    STAGE_BUILDING: "Good foundation. Optimization will accelerate growth.",
    STAGE_FOUNDATION: "Significant opportunities for improvement ahead.",
}


class InvalidAnswerError(ValueError):
    """Raised when an answer carries points outside the question's option set."""


@dataclass(frozen=True)
class DimensionResult:
    name: str
    percentage: int
    weight: float
    weighted_score: float
    color: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "percentage": self.percentage,
            "weight": self.weight,
            "weightedScore": self.weighted_score,
            "color": self.color,
        }


@dataclass(frozen=True)
class ScoreResult:
    dimension_scores: Tuple[DimensionResult, ...]
    total_score: int

    def get(self, name: str) -> DimensionResult | None:
        for dimension in self.dimension_scores:
            if dimension.name == name:
                return dimension
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "dimensionScores": [dimension.to_dict() for dimension in self.dimension_scores],
            "totalScore": self.total_score,
        }


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positives, matching browser ``Math.round``."""
    return int(math.floor(value + 0.5))


def _clamp(value: int, low: int = 0, high: int = 100) -> int:
    return max(low, min(high, value))


def _points(answer: Any) -> float:
    if answer is None:
        return 0.0
    if isinstance(answer, (list, tuple, set, frozenset)):
        return float(sum(answer))
    return float(answer)


def validate_answers(answers: AnswerSet) -> None:
    """Reject point values that no option of the question can produce.

    Unknown question ids are ignored so older drafts keep loading.
    """
    for question_id, answer in answers.items():
        question = get_question(question_id)
        if question is None or answer is None:
            continue
        allowed = question.allowed_points
        if isinstance(answer, (list, tuple, set, frozenset)):
            if not question.multi_select:
                raise InvalidAnswerError(f"Question {question_id} accepts a single answer")
            values = list(answer)
            if len(values) > len(allowed):
                raise InvalidAnswerError(f"Question {question_id} has more selections than options")
            for value in values:
                if value not in allowed:
                    raise InvalidAnswerError(f"Invalid points {value!r} for question {question_id}")
            continue
        if isinstance(answer, bool) or not isinstance(answer, (int, float)):
            raise InvalidAnswerError(f"Invalid answer type for question {question_id}")
        if question.multi_select:
            # a bare number for a multi-select question is read as one selection
            if answer not in allowed:
                raise InvalidAnswerError(f"Invalid points {answer!r} for question {question_id}")
        elif answer not in allowed:
            raise InvalidAnswerError(f"Invalid points {answer!r} for question {question_id}")


def calculate_scores(
    answers: AnswerSet,
    dimensions: Sequence[DimensionDefinition] = DIMENSIONS,
) -> ScoreResult:
    """Compute per-dimension percentages and the weighted total.

    Unanswered questions count as zero and unknown ids are ignored. Each
    question slot contributes 25 to the dimension's maximum, multi-select
    answers are summed. Percentages are rounded half-up and clamped to
    ``[0, 100]`` before weighting.
    """
    results: List[DimensionResult] = []
    for dimension in dimensions:
        total_points = 0.0
        max_points = 0.0
        for question in dimension.questions:
            total_points += _points(answers.get(question.id))
            max_points += MAX_POINTS_PER_QUESTION

        percentage = round_half_up(total_points / max_points * 100) if max_points > 0 else 0
        percentage = _clamp(percentage)
        results.append(
            DimensionResult(
                name=dimension.name,
                percentage=percentage,
                weight=dimension.weight,
                weighted_score=percentage * dimension.weight,
                color=dimension.color,
            )
        )

    total = round_half_up(sum(result.weighted_score for result in results))
    return ScoreResult(dimension_scores=tuple(results), total_score=_clamp(total))


def score_stage(total_score: float) -> str:
    if total_score >= 80:
        return STAGE_LEADING
    if total_score >= 60:
        return STAGE_SCALING
    if total_score >= 40:
        return STAGE_BUILDING
    return STAGE_FOUNDATION


def legacy_stage(total_score: float) -> str:
    return LEGACY_STAGE_LABELS[score_stage(total_score)]


def normalize_stage(label: str | None) -> str | None:
    """Map either stage vocabulary onto the canonical one."""
    if label is None:
        return None
    return _CANONICAL_BY_LEGACY.get(label, label)


def stage_description(stage: str) -> str:
    return _STAGE_DESCRIPTIONS.get(normalize_stage(stage) or "", "Growing your digital presence.")


def priority_action(percentage: float) -> str:
    if percentage < 40:
        return "Critical gaps requiring immediate attention"
    if percentage < 60:
        return "Needs optimization for better performance"
    return "Good foundation, refine for excellence"


def top_priorities(result: ScoreResult, count: int = 3) -> List[DimensionResult]:
    return sorted(result.dimension_scores, key=lambda dimension: dimension.percentage)[:count]


def dimension_recommendations(result: ScoreResult) -> List[Dict[str, Any]]:
    recommendations = []
    for dimension in result.dimension_scores:
        name = dimension.name.lower()
        if dimension.percentage < 40:
            items = [
                f"Conduct a comprehensive audit of your {name}",
                "Allocate immediate resources to address critical gaps",
                "Set up tracking to measure improvements",
                "Consider professional consultation for rapid improvement",
            ]
        elif dimension.percentage < 70:
            items = [
                f"Optimize existing {name} processes",
                "Test new strategies to improve performance",
                "Benchmark against industry leaders",
                "Implement A/B testing for continuous improvement",
            ]
        else:
            items = [
                f"Scale successful {name} strategies",
                "Explore advanced optimization techniques",
                "Consider automation to maintain excellence",
                "Share best practices across your organization",
            ]
        recommendations.append({**dimension.to_dict(), "recommendations": items})
    return recommendations
