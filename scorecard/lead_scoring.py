"""Lead qualification heuristics for completed scorecards."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from scorecard.scoring import AnswerSet, ScoreResult

PAIN_POINT_DIMENSIONS = ("Lead Generation", "Content Strategy")


class LeadPriority(str, Enum):
    HOT = "Hot"
    WARM = "Warm"
    COLD = "Cold"


@dataclass(frozen=True)
class LeadQuality:
    score: int
    priority: LeadPriority
    readiness: str
    recommended_action: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "score": self.score,
            "priority": self.priority.value,
            "readiness": self.readiness,
            "recommendedAction": self.recommended_action,
        }

    def to_meta(self) -> Dict[str, Any]:
        return {
            "leadScore": self.score,
            "leadPriority": self.priority.value,
            "leadReadiness": self.readiness,
            "recommendedAction": self.recommended_action,
        }


_CLASSIFICATIONS = {
    LeadPriority.HOT: (
        "Ready to Buy",
        "Schedule demo call within 24 hours. High intent, multiple pain points.",
    ),
    LeadPriority.WARM: (
        "Evaluating Solutions",
        "Send case study + schedule consultation within 3 days.",
    ),
    LeadPriority.COLD: (
        "Early Research",
        "Add to nurture sequence. Send educational content weekly.",
    ),
}


def _overall_points(total_score: float) -> int:
    if total_score < 40:
        return 10
    if total_score < 60:
        return 20
    if total_score < 80:
        return 30
    return 40


def _weakest_points(score_result: ScoreResult) -> int:
    percentages = [dimension.percentage for dimension in score_result.dimension_scores]
    weakest = min(percentages) if percentages else 0
    if weakest < 30:
        return 30
    if weakest < 50:
        return 20
    return 10


def _pain_point_points(score_result: ScoreResult) -> int:
    values = []
    for name in PAIN_POINT_DIMENSIONS:
        dimension = score_result.get(name)
        values.append(dimension.percentage if dimension else 0)
    if any(value < 50 for value in values):
        return 30
    if any(value < 70 for value in values):
        return 20
    return 10


def classify_lead_score(lead_score: int) -> Tuple[LeadPriority, str, str]:
    if lead_score >= 70:
        priority = LeadPriority.HOT
    elif lead_score >= 50:
        priority = LeadPriority.WARM
    else:
        priority = LeadPriority.COLD
    readiness, action = _CLASSIFICATIONS[priority]
    return priority, readiness, action


def calculate_lead_quality(
    score_result: ScoreResult,
    answers: Optional[AnswerSet] = None,
) -> LeadQuality:
    """Return the lead priority for a scored submission.

    Three capped buckets are added together: the overall score (10-40), the
    weakest dimension (10-30) and the pain-point dimensions Lead Generation
    and Content Strategy (10-30). A dimension missing from the result counts
    as 0%.

    Args:
        score_result: Output of :func:`scorecard.scoring.calculate_scores`.
        answers: Raw answers for the submission. Reserved for answer-level
            signals; the current rules only read the dimension percentages.

    Returns:
        LeadQuality: Score, priority, readiness label and next action.
    """
    lead_score = (
        _overall_points(score_result.total_score)
        + _weakest_points(score_result)
        + _pain_point_points(score_result)
    )
    priority, readiness, action = classify_lead_score(lead_score)
    return LeadQuality(
        score=lead_score,
        priority=priority,
        readiness=readiness,
        recommended_action=action,
    )
