# Overview: Background sweepers (quote expiration, overdue invoices) on APScheduler.

from __future__ import annotations

from datetime import datetime

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from .quote_service import SweepResult, expire_quotes
from .receivables_service import mark_overdue_invoices
from ..time_utils import utcnow


EXPIRATION_JOB_ID = "quote_expiration_sweep"
OVERDUE_JOB_ID = "invoice_overdue_sweep"


class _Sweeper:
    """
    Periodic idempotent job bound to one Flask app.

    The sweeper owns its BackgroundScheduler: start() runs the job once
    immediately and then on the interval trigger, stop() shuts the scheduler
    down. execute_once() is the manual trigger and returns the run's result.
    """

    job_id: str = ""

    def __init__(self, app, trigger: IntervalTrigger):
        self.app = app
        self.trigger = trigger
        self.scheduler: BackgroundScheduler | None = None
        self.last_run_at: datetime | None = None
        self.last_result = None

    @property
    def running(self) -> bool:
        return self.scheduler is not None and self.scheduler.running

    def _sweep(self, now: datetime | None):
        raise NotImplementedError

    def _describe(self, result) -> str:
        return str(result)

    def execute_once(self, now: datetime | None = None):
        with self.app.app_context():
            result = self._sweep(now)
            self.last_run_at = utcnow()
            self.last_result = result
            return result

    def _run_job(self) -> None:
        try:
            result = self.execute_once()
        except Exception:
            self.app.logger.exception("Scheduled job %s failed", self.job_id)
            return
        self.app.logger.info("Scheduled job %s finished: %s", self.job_id, self._describe(result))

    def start(self) -> None:
        if self.running:
            return

        self._run_job()

        scheduler = BackgroundScheduler(timezone="UTC")
        scheduler.add_job(
            self._run_job,
            trigger=self.trigger,
            id=self.job_id,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        scheduler.start()
        self.scheduler = scheduler
        self.app.logger.info("Started %s (%s)", self.job_id, self.trigger)

    def stop(self) -> None:
        if self.scheduler is None:
            return
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
        self.scheduler = None
        self.app.logger.info("Stopped %s", self.job_id)


class ExpirationSweeper(_Sweeper):
    """Moves sent/accepted quotes past valid_until to expired."""

    job_id = EXPIRATION_JOB_ID

    def __init__(self, app, interval_minutes: int = 60):
        super().__init__(app, IntervalTrigger(minutes=interval_minutes))
        self.interval_minutes = interval_minutes

    def _sweep(self, now: datetime | None) -> SweepResult:
        return expire_quotes(now)

    def _describe(self, result: SweepResult) -> str:
        return (
            f"checked={result.checked} expired={result.expired} "
            f"successful={result.successful} failed={result.failed}"
        )


class OverdueSweeper(_Sweeper):
    """Flags open invoices past their due date as overdue."""

    job_id = OVERDUE_JOB_ID

    def __init__(self, app, interval_hours: int = 24):
        super().__init__(app, IntervalTrigger(hours=interval_hours))
        self.interval_hours = interval_hours

    def _sweep(self, now: datetime | None) -> int:
        return mark_overdue_invoices(now)

    def _describe(self, result: int) -> str:
        return f"marked_overdue={result}"


def init_sweepers(app) -> None:
    """Create both sweepers and register them in app.extensions; start them if enabled."""
    if app.extensions.get("expiration_sweeper") is not None:
        return

    expiration = ExpirationSweeper(app, app.config.get("QUOTE_EXPIRY_INTERVAL_MINUTES", 60))
    overdue = OverdueSweeper(app, app.config.get("OVERDUE_SWEEP_INTERVAL_HOURS", 24))
    app.extensions["expiration_sweeper"] = expiration
    app.extensions["overdue_sweeper"] = overdue

    if app.config.get("SCHEDULER_ENABLED"):
        expiration.start()
        overdue.start()
