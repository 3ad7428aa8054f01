"""FastAPI application for the Growth Scorecard and its dashboard."""

import logging
import os
from datetime import datetime

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from scorecard import monitoring
from scorecard.analytics import DEFAULT_RANGE, dashboard_service
from scorecard.auth import DashboardAuthMiddleware
from scorecard.db import init_db
from scorecard.drafts import QuestionnaireSession, clear_draft, load_draft, save_draft
from scorecard.integrations import brevo
from scorecard.lead_scoring import calculate_lead_quality
from scorecard.schemas import (
    DraftIn,
    DraftOut,
    ResultsEmailIn,
    ScoreIn,
    ScoreOut,
    SubmissionIn,
    SubmissionOut,
)
from scorecard.scoring import InvalidAnswerError, calculate_scores, score_stage, validate_answers
from scorecard.submissions import SubmissionFailedError, SubmissionValidationError, send_results, submit_scorecard
from scorecard.taxonomy import taxonomy_payload, validate_taxonomy

logger = logging.getLogger(__name__)

CACHE_HEADER = "private, max-age=300"

monitoring.init_monitoring()
validate_taxonomy()

scheduler = AsyncIOScheduler()

app = FastAPI(title="Growth Scorecard API")
app.add_middleware(
    CORSMiddleware,
    allow_origins=os.getenv("CORS_ALLOW_ORIGINS", "*").split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(DashboardAuthMiddleware, protected_prefixes={"/dashboard-stats"})


SNAPSHOT_JOB_ID = "dashboard-snapshot"


def register_jobs(target: AsyncIOScheduler) -> None:
    # coroutine functions are awaited on the scheduler's event loop
    if not target.get_job(SNAPSHOT_JOB_ID):
        target.add_job(
            dashboard_service.record_snapshot,
            "cron",
            hour=3,
            minute=0,
            id=SNAPSHOT_JOB_ID,
        )


@app.on_event("startup")
async def on_startup():
    await init_db()
    if not scheduler.running:
        scheduler.start()
    register_jobs(scheduler)


@app.on_event("shutdown")
async def on_shutdown():
    if scheduler.running:
        scheduler.shutdown(wait=False)


@app.get("/healthz")
async def health_check():
    return {"status": "ok"}


@app.get("/scorecard/questions")
async def scorecard_questions():
    return {"dimensions": taxonomy_payload()}


@app.post("/scorecard/score", response_model=ScoreOut)
async def score_answers(payload: ScoreIn):
    """Score answers without storing anything.

    Args:
        payload: Answers keyed by question id.

    Returns:
        ScoreOut: Dimension breakdown, total, stage and lead quality.
    """
    try:
        validate_answers(payload.answers)
    except InvalidAnswerError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    result = calculate_scores(payload.answers)
    lead = calculate_lead_quality(result, payload.answers)
    return ScoreOut(
        totalScore=result.total_score,
        stage=score_stage(result.total_score),
        dimensionScores=[dimension.to_dict() for dimension in result.dimension_scores],
        leadQuality=lead.to_dict(),
    )


@app.post("/submit-scorecard", response_model=SubmissionOut)
async def submit(payload: SubmissionIn):
    """Store a completed scorecard and send the results email.

    Args:
        payload: Identity fields, answers and an optional draft key to clear.

    Returns:
        SubmissionOut: Server-side score plus what was persisted and sent.
    """
    try:
        outcome = await submit_scorecard(
            email=payload.email,
            company=payload.company,
            answers=payload.answers,
            draft_key=payload.draft_key,
        )
    except SubmissionValidationError as exc:
        return JSONResponse({"error": str(exc)}, status_code=400)
    except SubmissionFailedError as exc:
        return JSONResponse({"error": str(exc)}, status_code=502)
    except Exception as exc:
        monitoring.capture_exception(exc)
        return JSONResponse({"error": "Internal server error"}, status_code=500)

    return SubmissionOut(
        success=True,
        response_id=outcome.response_id,
        totalScore=outcome.score.total_score,
        stage=outcome.stage,
        leadPriority=outcome.lead.priority.value,
        persisted=outcome.persisted,
        email_sent=outcome.email_sent,
    )


@app.post("/send-results-email")
async def send_results_email(payload: ResultsEmailIn):
    if not brevo.is_configured():
        logger.error("BREVO_API_KEY not configured")
        return JSONResponse({"error": "Email service not configured"}, status_code=500)
    try:
        validate_answers(payload.answers)
    except InvalidAnswerError as exc:
        return JSONResponse({"error": str(exc)}, status_code=400)

    result = calculate_scores(payload.answers)
    stage = score_stage(result.total_score)
    try:
        sent = await send_results(payload.email, payload.company, result, stage)
    except Exception as exc:
        monitoring.capture_exception(exc)
        return JSONResponse({"error": "Failed to send email"}, status_code=500)
    return {"success": True, "messageId": sent.get("messageId")}


def _draft_out(questionnaire: QuestionnaireSession) -> DraftOut:
    return DraftOut(
        **questionnaire.to_payload(),
        progress=questionnaire.progress,
        totalSteps=questionnaire.total_steps,
    )


@app.get("/drafts/{client_id}", response_model=DraftOut)
async def get_draft(client_id: str):
    return _draft_out(await load_draft(client_id))


@app.put("/drafts/{client_id}", response_model=DraftOut)
async def put_draft(client_id: str, payload: DraftIn):
    questionnaire = QuestionnaireSession.from_payload(payload.model_dump())
    await save_draft(client_id, questionnaire)
    return _draft_out(questionnaire)


@app.delete("/drafts/{client_id}")
async def delete_draft(client_id: str):
    removed = await clear_draft(client_id)
    return {"ok": True, "removed": removed}


@app.get("/dashboard-stats")
async def dashboard_stats(range: str = DEFAULT_RANGE, skipCache: bool = False):
    """Return dashboard aggregates for the requested range.

    Args:
        range: One of ``7d``, ``30d``, ``90d`` or ``all``.
        skipCache: Force a fresh computation.

    Returns:
        JSONResponse: Dashboard payload with cache headers.
    """
    try:
        payload, hit = await dashboard_service.get_stats(range, skip_cache=skipCache)
    except Exception as exc:
        monitoring.capture_exception(exc)
        return JSONResponse(
            {
                "error": "Failed to fetch dashboard stats",
                "timestamp": datetime.utcnow().isoformat(),
            },
            status_code=500,
        )
    headers = {"Cache-Control": CACHE_HEADER, "X-Cache": "HIT" if hit else "MISS"}
    if not hit:
        headers["X-Generated-At"] = datetime.utcnow().isoformat()
    return JSONResponse(payload, headers=headers)


@app.delete("/dashboard-stats")
async def clear_dashboard_cache():
    dashboard_service.clear_cache()
    return {"message": "Cache cleared successfully", "timestamp": datetime.utcnow().isoformat()}


@app.get("/dashboard-stats/export")
async def export_dashboard(range: str = DEFAULT_RANGE, search: str | None = None, priority: str | None = None):
    try:
        body = await dashboard_service.export(range, search=search, priority=priority)
    except Exception as exc:
        monitoring.capture_exception(exc)
        return JSONResponse({"error": "Failed to export submissions"}, status_code=500)
    headers = {"Content-Disposition": f'attachment; filename="scorecard-data-{range}.csv"'}
    return Response(content=body, media_type="text/csv", headers=headers)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("API_PORT", "8000")))
