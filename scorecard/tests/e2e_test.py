import asyncio
import csv
import io
from datetime import datetime, timezone

import jwt
import pytest
import pytest_asyncio
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

pytestmark = pytest.mark.asyncio

SECRET = "dashboard-test-secret-with-enough-bytes"


def _answers(points=25):
    from scorecard.taxonomy import all_questions

    answers = {}
    for question in all_questions():
        if question.multi_select:
            answers[question.id] = [option.points for option in question.options] if points else []
        else:
            answers[question.id] = points
    return answers


@pytest_asyncio.fixture
async def app_context(monkeypatch, tmp_path):
    db_path = tmp_path / "test_e2e.db"

    monkeypatch.setenv("DASHBOARD_JWT_SECRET", SECRET)
    monkeypatch.setenv("BREVO_API_KEY", "test-key")
    monkeypatch.setenv("SENTRY_DSN", "")
    monkeypatch.delenv("SCORECARD_FAIL_OPEN", raising=False)

    import scorecard.analytics as analytics
    import scorecard.db as db
    import scorecard.main as main
    from scorecard.integrations import brevo

    # Point every session at a throwaway SQLite file
    engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}", future=True)
    monkeypatch.setattr(db, "engine", engine)
    monkeypatch.setattr(
        db,
        "async_session_factory",
        sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False),
    )
    await db.init_db()
    analytics.dashboard_service.clear_cache()

    sent_emails = []

    async def fake_send_email(to, name, subject, html):
        sent_emails.append({"to": to, "name": name, "subject": subject, "html": html})
        return {"messageId": f"message-{len(sent_emails)}"}

    monkeypatch.setattr(brevo, "send_email", fake_send_email)

    try:
        yield {"app": main.app, "db": db, "brevo": brevo, "sent_emails": sent_emails}
    finally:
        analytics.dashboard_service.clear_cache()
        await engine.dispose()


def _auth_headers():
    token = jwt.encode({"sub": "admin-1", "email": "admin@example.com"}, SECRET, algorithm="HS256")
    return {"Authorization": f"Bearer {token}"}


def _client(app):
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


async def test_submission_flows_into_dashboard(app_context):
    app = app_context["app"]
    db = app_context["db"]

    async with _client(app) as client:
        health = await client.get("/healthz")
        assert health.status_code == 200

        questions = await client.get("/scorecard/questions")
        assert questions.status_code == 200
        assert len(questions.json()["dimensions"]) == 8

        draft = await client.put(
            "/drafts/visitor-1",
            json={"answers": {"q1": 25}, "currentStep": 1, "email": "owner@acme.io", "company": "Acme Software"},
        )
        assert draft.status_code == 200
        assert draft.json()["progress"] == pytest.approx(8.0)
        assert (await client.get("/drafts/visitor-1")).json()["answers"] == {"q1": 25}

        # Client-side score is ignored; the server recomputes it
        submitted = await client.post(
            "/submit-scorecard",
            json={
                "email": "owner@acme.io",
                "company": "Acme Software",
                "answers": _answers(25),
                "score": {"totalScore": 3},
                "draft_key": "visitor-1",
            },
        )
        assert submitted.status_code == 200
        body = submitted.json()
        assert body["success"] is True
        assert body["totalScore"] == 100
        assert body["stage"] == "Leading"
        assert body["leadPriority"] == "Warm"
        assert body["persisted"] is True
        assert body["email_sent"] is True

        sent = app_context["sent_emails"]
        assert len(sent) == 1
        assert sent[0]["subject"] == "Your Growth Score: 100/100 - Leading Stage"

        restored = (await client.get("/drafts/visitor-1")).json()
        assert restored["answers"] == {}
        assert restored["currentStep"] == 0

        low = await client.post(
            "/submit-scorecard",
            json={"email": "cfo@bank.ng", "company": "First Bank", "answers": _answers(0)},
        )
        assert low.json()["leadPriority"] == "Hot"

        async with db.get_session() as session:
            stored = (await session.exec(select(db.ScorecardResponse).order_by(db.ScorecardResponse.id))).all()
            assert [row.total_stage for row in stored] == ["Leading", "Starting"]
            assert stored[0].meta["leadPriority"] == "Warm"
            scores = (await session.exec(select(db.DimensionScore))).all()
            assert len(scores) == 16
            events = (await session.exec(select(db.AnalyticsEvent))).all()
            assert [event.event for event in events] == ["scorecard_submitted", "scorecard_submitted"]

        unauthorized = await client.get("/dashboard-stats")
        assert unauthorized.status_code == 401

        headers = _auth_headers()
        first = await client.get("/dashboard-stats", params={"range": "30d"}, headers=headers)
        assert first.status_code == 200
        assert first.headers["X-Cache"] == "MISS"
        assert "X-Generated-At" in first.headers
        stats = first.json()
        assert stats["totalSubmissions"] == 2
        assert stats["averageScore"] == 50
        assert stats["hotLeads"] == 1
        assert stats["warmLeads"] == 1
        assert stats["recentSubmissions"][0]["company_name"] == "First Bank"
        assert {item["dimension_name"] for item in stats["dimensionAverages"]} == {
            "Digital Foundation",
            "Brand Positioning",
            "Content Strategy",
            "Lead Generation",
            "Paid Acquisition",
            "Sales Enablement",
            "Customer Retention",
            "African Market Fit",
        }
        assert all(item["avg_percentage"] == 50 for item in stats["dimensionAverages"])

        second = await client.get("/dashboard-stats", params={"range": "30d"}, headers=headers)
        assert second.headers["X-Cache"] == "HIT"
        assert second.json() == stats

        fresh = await client.get("/dashboard-stats", params={"range": "30d", "skipCache": "true"}, headers=headers)
        assert fresh.headers["X-Cache"] == "MISS"

        cleared = await client.delete("/dashboard-stats", headers=headers)
        assert cleared.json()["message"] == "Cache cleared successfully"
        after_clear = await client.get("/dashboard-stats", params={"range": "30d"}, headers=headers)
        assert after_clear.headers["X-Cache"] == "MISS"

        export = await client.get("/dashboard-stats/export", params={"range": "30d", "priority": "hot"}, headers=headers)
        assert export.status_code == 200
        assert export.headers["content-disposition"] == 'attachment; filename="scorecard-data-30d.csv"'
        rows = list(csv.reader(io.StringIO(export.text)))
        assert rows[0] == ["Company", "Email", "Score", "Stage", "Priority", "Date"]
        assert [row[0] for row in rows[1:]] == ["First Bank"]


async def test_new_submission_invalidates_dashboard_cache(app_context):
    async with _client(app_context["app"]) as client:
        headers = _auth_headers()
        empty = await client.get("/dashboard-stats", headers=headers)
        assert empty.json()["totalSubmissions"] == 0

        await client.post(
            "/submit-scorecard",
            json={"email": "owner@acme.io", "company": "Acme", "answers": _answers(18)},
        )
        refreshed = await client.get("/dashboard-stats", headers=headers)
        assert refreshed.headers["X-Cache"] == "MISS"
        assert refreshed.json()["totalSubmissions"] == 1


async def test_nightly_snapshot_is_stored(app_context):
    import scorecard.analytics as analytics

    db = app_context["db"]
    async with _client(app_context["app"]) as client:
        await client.post(
            "/submit-scorecard",
            json={"email": "owner@acme.io", "company": "Acme Retail", "answers": _answers(25)},
        )

    snapshot = await analytics.dashboard_service.record_snapshot("7d")
    assert snapshot.id is not None
    async with db.get_session() as session:
        stored = (await session.exec(select(db.DashboardSnapshot))).all()
    assert len(stored) == 1
    assert stored[0].time_range == "7d"
    assert stored[0].payload["totalSubmissions"] == 1
    assert stored[0].payload["conversionMetrics"]["topPerformingIndustry"] == "Retail"


async def test_scheduled_snapshot_job_writes_row(app_context):
    import scorecard.main as main

    db = app_context["db"]
    scheduler = AsyncIOScheduler(event_loop=asyncio.get_running_loop())
    main.register_jobs(scheduler)
    main.register_jobs(scheduler)
    assert [job.id for job in scheduler.get_jobs()] == [main.SNAPSHOT_JOB_ID]

    scheduler.start()
    stored = []
    try:
        scheduler.modify_job(main.SNAPSHOT_JOB_ID, next_run_time=datetime.now(timezone.utc))
        for _ in range(100):
            await asyncio.sleep(0.05)
            async with db.get_session() as session:
                stored = (await session.exec(select(db.DashboardSnapshot))).all()
            if stored:
                break
    finally:
        scheduler.shutdown(wait=False)

    assert len(stored) == 1
    assert stored[0].time_range == "30d"
    assert stored[0].payload["totalSubmissions"] == 0


async def test_storage_failure_is_fail_open_by_default(app_context, monkeypatch):
    import scorecard.submissions as submissions

    db = app_context["db"]

    async def failing_persist(**kwargs):
        raise RuntimeError("database unavailable")

    monkeypatch.setattr(submissions, "persist_submission", failing_persist)

    async with _client(app_context["app"]) as client:
        headers = _auth_headers()
        primed = await client.get("/dashboard-stats", headers=headers)
        assert primed.headers["X-Cache"] == "MISS"

        response = await client.post(
            "/submit-scorecard", json={"email": "owner@acme.io", "company": "Acme", "answers": _answers(25)}
        )
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["persisted"] is False
        assert body["response_id"] is None
        assert body["email_sent"] is True
        assert body["totalScore"] == 100

        # nothing was stored, so the cached dashboard stays valid
        cached = await client.get("/dashboard-stats", headers=headers)
        assert cached.headers["X-Cache"] == "HIT"
        assert cached.json()["totalSubmissions"] == 0

        monkeypatch.setenv("SCORECARD_FAIL_OPEN", "false")
        strict = await client.post(
            "/submit-scorecard", json={"email": "owner@acme.io", "company": "Acme", "answers": _answers(25)}
        )
        assert strict.status_code == 502
        assert strict.json() == {"error": "Scorecard submission failed"}

    async with db.get_session() as session:
        assert (await session.exec(select(db.ScorecardResponse))).all() == []


async def test_event_logging_failure_does_not_block_submission(app_context, monkeypatch):
    from scorecard import monitoring

    db = app_context["db"]

    def broken_session():
        raise RuntimeError("events table unavailable")

    monkeypatch.setattr(monitoring, "get_session", broken_session)
    monkeypatch.setenv("SCORECARD_FAIL_OPEN", "false")

    assert await monitoring.record_event("scorecard_submitted", {}) is False

    async with _client(app_context["app"]) as client:
        response = await client.post(
            "/submit-scorecard", json={"email": "owner@acme.io", "company": "Acme", "answers": _answers(18)}
        )
    assert response.status_code == 200
    assert response.json()["persisted"] is True
    assert response.json()["email_sent"] is True

    async with db.get_session() as session:
        assert len((await session.exec(select(db.ScorecardResponse))).all()) == 1
        assert (await session.exec(select(db.AnalyticsEvent))).all() == []


async def test_submission_validation_errors(app_context):
    async with _client(app_context["app"]) as client:
        missing = await client.post("/submit-scorecard", json={"email": "", "company": "Acme", "answers": {}})
        assert missing.status_code == 400
        assert missing.json() == {"error": "Missing required fields"}

        bad_email = await client.post("/submit-scorecard", json={"email": "not-an-email", "company": "Acme"})
        assert bad_email.status_code == 400
        assert bad_email.json() == {"error": "Invalid email address"}

        bad_points = await client.post(
            "/submit-scorecard", json={"email": "owner@acme.io", "company": "Acme", "answers": {"q1": 17}}
        )
        assert bad_points.status_code == 400

        score = await client.post("/scorecard/score", json={"answers": {"q25": [6.25, 7]}})
        assert score.status_code == 400

    assert app_context["sent_emails"] == []


async def test_score_endpoint(app_context):
    async with _client(app_context["app"]) as client:
        response = await client.post("/scorecard/score", json={"answers": {"q1": 25, "q2": 25, "q3": 25, "q4": 25}})
    assert response.status_code == 200
    body = response.json()
    assert body["totalScore"] == 15
    assert body["stage"] == "Foundation"
    assert body["leadQuality"] == {
        "score": 70,
        "priority": "Hot",
        "readiness": "Ready to Buy",
        "recommendedAction": "Schedule demo call within 24 hours. High intent, multiple pain points.",
    }
    assert body["dimensionScores"][0]["weightedScore"] == pytest.approx(15.0)


async def test_email_failure_is_fail_open_by_default(app_context, monkeypatch):
    brevo = app_context["brevo"]

    async def failing_send(to, name, subject, html):
        raise brevo.EmailDeliveryError("provider down")

    monkeypatch.setattr(brevo, "send_email", failing_send)

    async with _client(app_context["app"]) as client:
        response = await client.post(
            "/submit-scorecard", json={"email": "owner@acme.io", "company": "Acme", "answers": _answers(10)}
        )
        assert response.status_code == 200
        assert response.json()["persisted"] is True
        assert response.json()["email_sent"] is False

        monkeypatch.setenv("SCORECARD_FAIL_OPEN", "false")
        strict = await client.post(
            "/submit-scorecard", json={"email": "owner@acme.io", "company": "Acme", "answers": _answers(10)}
        )
        assert strict.status_code == 502

        direct = await client.post(
            "/send-results-email", json={"email": "owner@acme.io", "company": "Acme", "answers": _answers(10)}
        )
        assert direct.status_code == 500
        assert direct.json() == {"error": "Failed to send email"}


async def test_send_results_email_endpoint(app_context, monkeypatch):
    async with _client(app_context["app"]) as client:
        sent = await client.post(
            "/send-results-email", json={"email": "owner@acme.io", "company": "Acme", "answers": _answers(25)}
        )
        assert sent.status_code == 200
        assert sent.json() == {"success": True, "messageId": "message-1"}

        monkeypatch.delenv("BREVO_API_KEY")
        unconfigured = await client.post(
            "/send-results-email", json={"email": "owner@acme.io", "company": "Acme", "answers": {}}
        )
        assert unconfigured.status_code == 500
        assert unconfigured.json() == {"error": "Email service not configured"}

        # Without a provider the submission still succeeds
        submitted = await client.post(
            "/submit-scorecard", json={"email": "owner@acme.io", "company": "Acme", "answers": {}}
        )
        assert submitted.json()["email_sent"] is False
        assert submitted.json()["persisted"] is True


async def test_dashboard_rejects_bad_tokens(app_context, monkeypatch):
    async with _client(app_context["app"]) as client:
        forged = jwt.encode({"sub": "admin-1"}, "some-other-secret-with-enough-bytes", algorithm="HS256")
        response = await client.get("/dashboard-stats", headers={"Authorization": f"Bearer {forged}"})
        assert response.status_code == 401

        no_subject = jwt.encode({"email": "admin@example.com"}, SECRET, algorithm="HS256")
        response = await client.get("/dashboard-stats", headers={"Authorization": f"Bearer {no_subject}"})
        assert response.status_code == 401

        monkeypatch.delenv("DASHBOARD_JWT_SECRET")
        response = await client.get("/dashboard-stats", headers=_auth_headers())
        assert response.status_code == 500
