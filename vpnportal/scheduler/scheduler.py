"""APScheduler-based maintenance jobs."""
import logging
from typing import Any, Callable, Dict, List, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from apscheduler.jobstores.base import JobLookupError
from fastapi import APIRouter, Depends

from vpnportal.db.models_auth import User
from vpnportal.services.auth import get_admin_user
from vpnportal.services.errors import NotFound

logger = logging.getLogger(__name__)

# Default schedule: interval in minutes for each maintenance task
DEFAULT_SCHEDULE = {
    "sweep_captchas":        {"minutes": 1},
    "purge_revoked_tokens":  {"minutes": 60},
    "purge_expired_invites": {"minutes": 24 * 60},
}


def _sweep_captchas() -> None:
    """Drop expired captcha challenges."""
    from vpnportal.services.captcha import get_captcha_store

    get_captcha_store().sweep()


def _purge_revoked_tokens() -> None:
    """Delete revocation entries for tokens that have expired anyway."""
    from vpnportal.db.database import SessionLocal
    from vpnportal.services.auth import SessionAuthenticator

    db = SessionLocal()
    try:
        n = SessionAuthenticator(db).purge_revoked()
        if n:
            logger.info(f"Purged {n} revoked tokens")
    except Exception as e:
        logger.error(f"Failed to purge revoked tokens: {e}")
        db.rollback()
    finally:
        db.close()


def _purge_expired_invites() -> None:
    """Delete unused invites long past their expiry."""
    from vpnportal.db.database import SessionLocal
    from vpnportal.services.invites import InviteLedger

    db = SessionLocal()
    try:
        n = InviteLedger(db).purge_expired()
        if n:
            logger.info(f"Purged {n} expired invites")
    except Exception as e:
        logger.error(f"Failed to purge expired invites: {e}")
        db.rollback()
    finally:
        db.close()


_DEFAULT_FUNCS: Dict[str, Callable] = {
    "sweep_captchas": _sweep_captchas,
    "purge_revoked_tokens": _purge_revoked_tokens,
    "purge_expired_invites": _purge_expired_invites,
}


class SchedulerService:
    """Scheduled task service using APScheduler BackgroundScheduler.

    Provides methods to add, list, and remove scheduled jobs.
    """

    def __init__(self) -> None:
        self._scheduler = BackgroundScheduler()
        self._started = False

    @property
    def is_running(self) -> bool:
        """Whether the scheduler is currently running."""
        return self._started

    def start(self) -> None:
        """Start the scheduler. Safe to call multiple times."""
        if self._started:
            return
        self._scheduler.start()
        self._started = True
        logger.info("Scheduler started")

    def stop(self) -> None:
        """Stop the scheduler. Safe to call when not running."""
        if not self._started:
            return
        self._scheduler.shutdown(wait=False)
        self._started = False
        logger.info("Scheduler stopped")

    def add_interval_job(
        self,
        func: Callable,
        minutes: int,
        name: str,
    ) -> str:
        """Schedule a job to run at a fixed interval.

        Args:
            func: The callable to execute.
            minutes: Interval in minutes.
            name: Human-readable job name (also used as job ID).

        Returns:
            The job ID.
        """
        trigger = IntervalTrigger(minutes=minutes)
        job = self._scheduler.add_job(func, trigger=trigger, id=name, name=name, replace_existing=True)
        logger.info(f"Added interval job '{name}' every {minutes}m")
        return job.id

    def list_jobs(self) -> List[Dict[str, Any]]:
        """List all scheduled jobs.

        Returns:
            List of dicts with id, name, trigger, and next_run_time.
        """
        jobs = self._scheduler.get_jobs()
        return [
            {
                "id": job.id,
                "name": job.name,
                "trigger": str(job.trigger),
                "next_run_time": str(job.next_run_time) if job.next_run_time else None,
            }
            for job in jobs
        ]

    def remove_job(self, job_id: str) -> bool:
        """Remove a scheduled job by ID.

        Returns:
            True if removed, False if not found.
        """
        try:
            self._scheduler.remove_job(job_id)
            logger.info(f"Removed job '{job_id}'")
            return True
        except JobLookupError:
            return False

    def setup_default_jobs(self) -> None:
        """Register all jobs from DEFAULT_SCHEDULE."""
        for name, config in DEFAULT_SCHEDULE.items():
            func = _DEFAULT_FUNCS.get(name)
            if func:
                self.add_interval_job(func, minutes=config["minutes"], name=name)


# ---------------------------------------------------------------------------
# Singleton for app-wide use
# ---------------------------------------------------------------------------
_scheduler_service: Optional[SchedulerService] = None


def get_scheduler_service() -> SchedulerService:
    """Get or create the global SchedulerService singleton."""
    global _scheduler_service
    if _scheduler_service is None:
        _scheduler_service = SchedulerService()
    return _scheduler_service


# ---------------------------------------------------------------------------
# FastAPI router
# ---------------------------------------------------------------------------
router = APIRouter(prefix="/scheduler", tags=["scheduler"])


@router.get("/jobs")
def list_scheduled_jobs(admin: User = Depends(get_admin_user)) -> List[Dict[str, Any]]:
    """List all scheduled jobs."""
    service = get_scheduler_service()
    return service.list_jobs()


@router.delete("/jobs/{job_id}")
def delete_scheduled_job(job_id: str, admin: User = Depends(get_admin_user)) -> Dict[str, Any]:
    """Remove a scheduled job by ID."""
    service = get_scheduler_service()
    removed = service.remove_job(job_id)
    if not removed:
        raise NotFound(f"Job '{job_id}' not found")
    return {"status": "removed", "job_id": job_id}
