"""Dashboard aggregation over stored scorecard submissions."""

import csv
import io
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from sqlmodel import select

from scorecard.cache import SnapshotCache
from scorecard.db import DashboardSnapshot, Dimension, DimensionScore, ScorecardResponse, get_session
from scorecard.lead_scoring import LeadPriority
from scorecard.scoring import round_half_up

logger = logging.getLogger(__name__)

DEFAULT_RANGE = "30d"
RANGE_DAYS = {"7d": 7, "30d": 30, "90d": 90}
ALL_TIME_START = datetime(2020, 1, 1)
RECENT_LIMIT = 20

INDUSTRY_KEYWORDS: Tuple[Tuple[Tuple[str, ...], str], ...] = (
    (("tech", "software"), "Technology"),
    (("health", "medical"), "Healthcare"),
    (("finance", "bank"), "Finance"),
    (("retail", "shop"), "Retail"),
)
CSV_HEADER = ["Company", "Email", "Score", "Stage", "Priority", "Date"]


@dataclass(frozen=True)
class SubmissionView:
    id: Optional[int]
    company_name: str
    email: str
    total_score: float
    total_stage: Optional[str]
    created_at: Optional[datetime]
    lead_priority: Optional[str]
    lead_score: Optional[int]
    lead_readiness: Optional[str]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "company_name": self.company_name,
            "email": self.email,
            "total_score": self.total_score,
            "total_stage": self.total_stage,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "lead_priority": self.lead_priority,
            "lead_score": self.lead_score,
            "lead_readiness": self.lead_readiness,
        }


def _field(row: Any, name: str) -> Any:
    if isinstance(row, Mapping):
        return row.get(name)
    return getattr(row, name, None)


def normalize_submission(row: Any) -> SubmissionView:
    """Build a read view of a stored submission.

    Lead fields live in direct columns on newer rows and only in the ``meta``
    blob on older ones; the column wins when both are set.
    """
    meta = _field(row, "meta") or {}
    return SubmissionView(
        id=_field(row, "id"),
        company_name=_field(row, "company_name") or "",
        email=_field(row, "email") or "",
        total_score=_field(row, "total_score") or 0,
        total_stage=_field(row, "total_stage"),
        created_at=_field(row, "created_at"),
        lead_priority=_field(row, "lead_priority") or meta.get("leadPriority"),
        lead_score=_field(row, "lead_score") or meta.get("leadScore"),
        lead_readiness=_field(row, "lead_readiness") or meta.get("leadReadiness"),
    )


def time_window(range_key: str, now: Optional[datetime] = None) -> Tuple[datetime, datetime]:
    """Return ``(start, previous_start)`` for a dashboard range key."""
    now = now or datetime.utcnow()
    if range_key == "all":
        return ALL_TIME_START, ALL_TIME_START
    days = RANGE_DAYS.get(range_key, RANGE_DAYS[DEFAULT_RANGE])
    return now - timedelta(days=days), now - timedelta(days=days * 2)


def count_priority(submissions: Iterable[SubmissionView], priority: str) -> int:
    return sum(1 for submission in submissions if submission.lead_priority == priority)


def average_score(submissions: Sequence[SubmissionView]) -> float:
    # empty windows average to 0 rather than NaN
    return sum(submission.total_score or 0 for submission in submissions) / (len(submissions) or 1)


def percentage_change(current: float, previous: float) -> int:
    if previous <= 0:
        return 0
    return round_half_up((current - previous) / previous * 100)


def calculate_trends(current: Sequence[SubmissionView], previous: Sequence[SubmissionView]) -> Dict[str, int]:
    hot = LeadPriority.HOT.value
    return {
        "submissionsChange": percentage_change(len(current), len(previous)),
        "scoreChange": percentage_change(average_score(current), average_score(previous)),
        "hotLeadsChange": percentage_change(count_priority(current, hot), count_priority(previous, hot)),
    }


def dimension_averages(rows: Iterable[Tuple[Optional[str], Optional[float]]]) -> List[Dict[str, Any]]:
    """Group ``(dimension_name, percentage)`` rows into averages, best first."""
    totals: Dict[str, List[float]] = {}
    for name, percentage in rows:
        if not name or percentage is None:
            continue
        bucket = totals.setdefault(name, [0.0, 0])
        bucket[0] += percentage
        bucket[1] += 1
    averages = [
        {"dimension_name": name, "avg_percentage": total / count, "count": int(count)}
        for name, (total, count) in totals.items()
    ]
    averages.sort(key=lambda item: item["avg_percentage"], reverse=True)
    return averages


def classify_industry(company_name: Optional[str]) -> str:
    company = (company_name or "").lower()
    for keywords, industry in INDUSTRY_KEYWORDS:
        if any(keyword in company for keyword in keywords):
            return industry
    return "General"


def conversion_metrics(submissions: Sequence[SubmissionView]) -> Dict[str, Any]:
    if not submissions:
        return {"hotLeadRate": 0, "averageResponseTime": "N/A", "topPerformingIndustry": "N/A"}

    hot = count_priority(submissions, LeadPriority.HOT.value)
    industries: Dict[str, int] = {}
    for submission in submissions:
        industry = classify_industry(submission.company_name)
        industries[industry] = industries.get(industry, 0) + 1
    # max() keeps the first label seen on ties
    top_industry = max(industries.items(), key=lambda item: item[1])[0]

    return {
        "hotLeadRate": round_half_up(hot / len(submissions) * 100),
        # TODO: derive from first follow-up timestamps once outreach is tracked
        "averageResponseTime": "< 2 hours",
        "topPerformingIndustry": top_industry,
    }


def build_dashboard(
    current: Sequence[SubmissionView],
    previous: Sequence[SubmissionView],
    dimension_rows: Iterable[Tuple[Optional[str], Optional[float]]],
    *,
    range_key: str = DEFAULT_RANGE,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Assemble the dashboard payload from already-loaded windows.

    ``current`` is expected newest first.
    """
    now = now or datetime.utcnow()
    return {
        "totalSubmissions": len(current),
        "averageScore": round(average_score(current), 2),
        "hotLeads": count_priority(current, LeadPriority.HOT.value),
        "warmLeads": count_priority(current, LeadPriority.WARM.value),
        "coldLeads": count_priority(current, LeadPriority.COLD.value),
        "trends": calculate_trends(current, previous),
        "conversionMetrics": conversion_metrics(current),
        "recentSubmissions": [submission.to_dict() for submission in current[:RECENT_LIMIT]],
        "dimensionAverages": dimension_averages(dimension_rows),
        "metadata": {
            "timeRange": range_key,
            "generatedAt": now.isoformat(),
            "dataFreshness": "live",
        },
    }


def filter_submissions(
    submissions: Iterable[SubmissionView],
    *,
    search: Optional[str] = None,
    priority: Optional[str] = None,
) -> List[SubmissionView]:
    term = (search or "").lower()
    wanted = (priority or "all").lower()
    filtered = []
    for submission in submissions:
        if term and term not in submission.company_name.lower() and term not in submission.email.lower():
            continue
        if wanted != "all" and (submission.lead_priority or "").lower() != wanted:
            continue
        filtered.append(submission)
    return filtered


def export_csv(
    submissions: Iterable[SubmissionView],
    *,
    search: Optional[str] = None,
    priority: Optional[str] = None,
) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for submission in filter_submissions(submissions, search=search, priority=priority):
        writer.writerow(
            [
                submission.company_name,
                submission.email,
                submission.total_score,
                submission.total_stage or "",
                submission.lead_priority or "N/A",
                submission.created_at.date().isoformat() if submission.created_at else "",
            ]
        )
    return buffer.getvalue()


async def fetch_submissions(start: datetime, end: Optional[datetime] = None) -> List[SubmissionView]:
    async with get_session() as session:
        statement = select(ScorecardResponse).where(ScorecardResponse.created_at >= start)
        if end is not None:
            statement = statement.where(ScorecardResponse.created_at < end)
        statement = statement.order_by(ScorecardResponse.created_at.desc())
        rows = (await session.exec(statement)).all()
    return [normalize_submission(row) for row in rows]


async def fetch_dimension_rows(start: datetime) -> List[Tuple[str, int]]:
    async with get_session() as session:
        statement = (
            select(Dimension.name, DimensionScore.percentage)
            .join(Dimension, DimensionScore.dimension_id == Dimension.id)
            .where(DimensionScore.created_at >= start)
        )
        rows = (await session.exec(statement)).all()
    return [(name, percentage) for name, percentage in rows]


class DashboardService:
    """Loads dashboard data and keeps the last payload per range in a cache."""

    def __init__(self, cache: Optional[SnapshotCache] = None):
        self.cache = cache or SnapshotCache()

    async def compute(self, range_key: str = DEFAULT_RANGE, now: Optional[datetime] = None) -> Dict[str, Any]:
        now = now or datetime.utcnow()
        start, previous_start = time_window(range_key, now)
        current = await fetch_submissions(start)
        try:
            previous = await fetch_submissions(previous_start, start)
        except Exception as exc:
            logger.warning("Previous period query failed: %s", exc)
            previous = []
        try:
            dimension_rows = await fetch_dimension_rows(start)
        except Exception as exc:
            logger.warning("Dimension scores query failed: %s", exc)
            dimension_rows = []
        return build_dashboard(current, previous, dimension_rows, range_key=range_key, now=now)

    async def get_stats(self, range_key: str = DEFAULT_RANGE, skip_cache: bool = False) -> Tuple[Dict[str, Any], bool]:
        """Return ``(payload, cache_hit)``."""
        if not skip_cache:
            cached = self.cache.get(range_key)
            if cached is not None:
                logger.info("Returning cached dashboard data for %s", range_key)
                return cached, True

        logger.info("Fetching fresh dashboard data for %s", range_key)
        payload = await self.compute(range_key)
        self.cache.set(range_key, payload)
        return payload, False

    def clear_cache(self) -> None:
        self.cache.clear()

    async def export(
        self,
        range_key: str = DEFAULT_RANGE,
        *,
        search: Optional[str] = None,
        priority: Optional[str] = None,
    ) -> str:
        start, _ = time_window(range_key)
        submissions = await fetch_submissions(start)
        return export_csv(submissions, search=search, priority=priority)

    async def record_snapshot(self, range_key: str = DEFAULT_RANGE) -> DashboardSnapshot:
        payload = await self.compute(range_key)
        snapshot = DashboardSnapshot(time_range=range_key, payload=payload)
        async with get_session() as session:
            session.add(snapshot)
            await session.commit()
            await session.refresh(snapshot)
        return snapshot


dashboard_service = DashboardService()
