"""Scorecard submission flow: validate, score, persist, and email."""

import logging
import os
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

from sqlmodel import select

from scorecard import monitoring
from scorecard.analytics import dashboard_service
from scorecard.db import Dimension, DimensionScore, ScorecardResponse, get_session
from scorecard.drafts import clear_draft, sanitize_input
from scorecard.emails import render_results_email
from scorecard.integrations import brevo
from scorecard.lead_scoring import LeadQuality, calculate_lead_quality
from scorecard.scoring import (
    AnswerSet,
    InvalidAnswerError,
    ScoreResult,
    calculate_scores,
    legacy_stage,
    score_stage,
    validate_answers,
)

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class SubmissionValidationError(ValueError):
    """Raised when a submission is rejected before any work is done."""


class SubmissionFailedError(RuntimeError):
    """Raised when an upstream step fails and the fail-open policy is off."""


@dataclass
class SubmissionOutcome:
    response_id: Optional[int]
    score: ScoreResult
    stage: str
    lead: LeadQuality
    persisted: bool = False
    email_sent: bool = False


def fail_open() -> bool:
    """Whether upstream failures still report success to the visitor."""
    return os.getenv("SCORECARD_FAIL_OPEN", "true").strip().lower() not in {"0", "false", "no", "off"}


def validate_identity(email: Optional[str], company: Optional[str]) -> tuple[str, str]:
    email = sanitize_input(email)
    company = sanitize_input(company)
    if not email or not company:
        raise SubmissionValidationError("Missing required fields")
    if not EMAIL_PATTERN.match(email):
        raise SubmissionValidationError("Invalid email address")
    return email, company


async def persist_submission(
    *,
    email: str,
    company: str,
    answers: Mapping[str, Any],
    score: ScoreResult,
    lead: LeadQuality,
    created_at: Optional[datetime] = None,
) -> int:
    """Insert the response row, then one dimension row per dimension."""
    async with get_session() as session:
        response = ScorecardResponse(
            created_at=created_at or datetime.utcnow(),
            company_name=company,
            email=email,
            total_score=score.total_score,
            total_stage=legacy_stage(score.total_score),
            answers=dict(answers),
            lead_score=lead.score,
            lead_priority=lead.priority.value,
            lead_readiness=lead.readiness,
            meta=lead.to_meta(),
        )
        session.add(response)
        await session.flush()

        dimension_ids: Dict[str, int] = {
            row.name: row.id for row in (await session.exec(select(Dimension))).all()
        }
        missing: List[str] = []
        for dimension in score.dimension_scores:
            dimension_id = dimension_ids.get(dimension.name)
            if dimension_id is None:
                missing.append(dimension.name)
                continue
            session.add(
                DimensionScore(
                    response_id=response.id,
                    dimension_id=dimension_id,
                    percentage=dimension.percentage,
                    created_at=response.created_at,
                )
            )
        await session.commit()
        await session.refresh(response)

    if missing:
        logger.warning("No dimension rows for %s; skipped their scores", ", ".join(missing))
    return response.id


async def send_results(email: str, company: str, score: ScoreResult, stage: str) -> Dict[str, Any]:
    subject, html = render_results_email(company, score, stage)
    result = await brevo.send_email(email, company, subject, html)
    logger.info("Results email sent to %s (message %s)", email, result.get("messageId"))
    return result


async def submit_scorecard(
    *,
    email: Optional[str],
    company: Optional[str],
    answers: AnswerSet,
    draft_key: Optional[str] = None,
) -> SubmissionOutcome:
    """Score and store a completed scorecard, then email the results.

    Validation problems raise :class:`SubmissionValidationError`. Storage and
    email failures are logged and, under the fail-open policy, swallowed so
    the visitor still sees their results; otherwise they raise
    :class:`SubmissionFailedError`.
    """
    email, company = validate_identity(email, company)
    try:
        validate_answers(answers)
    except InvalidAnswerError as exc:
        raise SubmissionValidationError(str(exc)) from exc

    score = calculate_scores(answers)
    stage = score_stage(score.total_score)
    lead = calculate_lead_quality(score, answers)
    outcome = SubmissionOutcome(response_id=None, score=score, stage=stage, lead=lead)
    logger.info(
        "New scorecard submission company=%s score=%s priority=%s",
        company,
        score.total_score,
        lead.priority.value,
    )

    failures: List[BaseException] = []
    try:
        outcome.response_id = await persist_submission(
            email=email, company=company, answers=answers, score=score, lead=lead
        )
        outcome.persisted = True
    except Exception as exc:
        monitoring.capture_exception(exc)
        failures.append(exc)

    await monitoring.record_event(
        "scorecard_submitted",
        {
            "response_id": outcome.response_id,
            "total_score": score.total_score,
            "lead_priority": lead.priority.value,
            "persisted": outcome.persisted,
        },
    )

    if brevo.is_configured():
        try:
            await send_results(email, company, score, stage)
            outcome.email_sent = True
        except Exception as exc:
            monitoring.capture_exception(exc)
            failures.append(exc)
    else:
        logger.warning("BREVO_API_KEY not set; skipping results email")

    if outcome.persisted:
        dashboard_service.clear_cache()

    if failures and not fail_open():
        raise SubmissionFailedError("Scorecard submission failed") from failures[0]

    if draft_key:
        try:
            await clear_draft(draft_key)
        except Exception as exc:
            logger.warning("Could not clear draft %s: %s", draft_key, exc)

    return outcome
