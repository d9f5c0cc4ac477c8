import pytest
from fastapi.testclient import TestClient

from cobrafacil.main import app
from cobrafacil.core.auth_dependencies import AccessContext, get_access_context
from cobrafacil.workers.scheduler import TaskScheduler
import cobrafacil.workers.scheduler as scheduler_module
import cobrafacil.api.job_routes as job_routes


@pytest.mark.asyncio
async def test_scheduler_registers_daily_jobs():
    task_scheduler = TaskScheduler(timezone="America/Sao_Paulo")
    task_scheduler.start()
    try:
        jobs = {job.id: job for job in task_scheduler.scheduler.get_jobs()}
        assert set(jobs) == {"overdue_check", "bills_due", "loan_reminders"}
        assert "hour='8', minute='0'" in str(jobs["overdue_check"].trigger)
        assert "hour='9', minute='0'" in str(jobs["loan_reminders"].trigger)
    finally:
        task_scheduler.stop()


@pytest.mark.asyncio
async def test_failing_job_is_logged_not_raised(monkeypatch):
    async def broken(today=None):
        raise RuntimeError("mongo unavailable")

    monkeypatch.setattr(scheduler_module.overdue_service, "check_overdue_loans", broken)
    result = await TaskScheduler().run_overdue_check()
    assert result == {"error": "overdue check failed"}


def test_manual_job_trigger_is_owner_only(monkeypatch):
    async def fake_reminders(today=None):
        return {"checked_loans": 2, "due_today": 1, "sent_count": 1, "early_reminders_sent": 0}

    monkeypatch.setattr(job_routes.reminder_service, "check_loan_reminders", fake_reminders)
    try:
        app.dependency_overrides[get_access_context] = lambda: AccessContext(user_id="o1", effective_user_id="o1")
        resp = TestClient(app).post("/jobs/loan-reminders")
        assert resp.status_code == 200
        assert resp.json()["due_today"] == 1

        app.dependency_overrides[get_access_context] = lambda: AccessContext(
            user_id="e1", effective_user_id="o1", is_employee=True,
        )
        assert TestClient(app).post("/jobs/loan-reminders").status_code == 403
    finally:
        app.dependency_overrides = {}
