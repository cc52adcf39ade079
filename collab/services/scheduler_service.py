"""
Team Collaboration Setup Engine
Scheduler Service — periodic background jobs.

Architecture:
    - Job functions register themselves with ``@register_job``
    - Each job has a ScheduledJob row (config, run history, lease)
    - One SchedulerService instance per app, kept in app.extensions["scheduler"]
    - A daemon thread ticks every SCHEDULER_TICK_SECONDS and runs due jobs
    - Before running a job the instance claims the row lease with a
      conditional UPDATE; if another process holds an unexpired lease
      the run is skipped
    - Jobs can also be triggered manually through the admin API
"""

from __future__ import annotations

import logging
import os
import socket
import threading
import time
import uuid
from contextlib import nullcontext
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable

from flask import Flask, current_app, has_app_context
from sqlalchemy import or_, update

from collab.core.clock import as_utc, get_clock
from collab.models import db
from collab.models.scheduling import ScheduledJob

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
#  Job Registry
# ═══════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class JobSpec:
    name: str
    fn: Callable
    interval_seconds: int
    interval_config_key: str | None = None


_job_registry: dict[str, JobSpec] = {}


def register_job(name: str, *, interval_seconds: int = 60, interval_config_key: str | None = None):
    """Decorator to register a job function.

    Usage:
        @register_job("setup_confirmation_sweep",
                      interval_config_key="SETUP_SWEEP_INTERVAL_SECONDS")
        def sweep_expired_setups(app):
            ...
    """
    def decorator(fn: Callable) -> Callable:
        _job_registry[name] = JobSpec(name, fn, interval_seconds, interval_config_key)
        return fn
    return decorator


def get_registered_jobs() -> dict[str, JobSpec]:
    """Return all registered job specs."""
    return dict(_job_registry)


def _default_owner() -> str:
    return f"{socket.gethostname()}:{os.getpid()}:{uuid.uuid4().hex[:8]}"


class SchedulerService:
    """
    App-scoped scheduler.

    Jobs are executed within the Flask app context of the app this
    instance was initialised with.
    """

    def __init__(self, app: Flask | None = None, owner: str | None = None) -> None:
        self.app: Flask | None = None
        self.owner = owner or _default_owner()
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        if app is not None:
            self.init_app(app)

    def init_app(self, app: Flask) -> None:
        """Bind to the app and publish the instance in app.extensions."""
        self.app = app
        app.extensions["scheduler"] = self
        logger.info("SchedulerService initialized with %d registered jobs",
                    len(_job_registry))

    # ── Job records ──────────────────────────────────────────────────────

    def interval_for(self, spec: JobSpec) -> int:
        if spec.interval_config_key and self.app is not None:
            return int(self.app.config.get(spec.interval_config_key, spec.interval_seconds))
        return spec.interval_seconds

    def ensure_jobs_registered(self) -> list[ScheduledJob]:
        """Create missing ScheduledJob rows. Needs an app context."""
        created = []
        for name, spec in _job_registry.items():
            if ScheduledJob.query.filter_by(job_name=name).first():
                continue
            job = ScheduledJob(
                job_name=name,
                description=(spec.fn.__doc__ or f"Scheduled job: {name}").strip(),
                interval_seconds=self.interval_for(spec),
                status="active",
                is_enabled=True,
                run_count=0,
                error_count=0,
            )
            db.session.add(job)
            created.append(job)
        if created:
            db.session.commit()
            logger.info("Created %d scheduled job records", len(created))
        return created

    # ── Lease ────────────────────────────────────────────────────────────

    def _lease_seconds(self) -> int:
        if self.app is not None:
            return int(self.app.config.get("SCHEDULER_LEASE_SECONDS", 120))
        return 120

    def acquire_lease(self, job_name: str, now: datetime | None = None) -> bool:
        """Claim a free or expired lease. Not re-entrant, even for this instance."""
        now = as_utc(now or get_clock().now())
        result = db.session.execute(
            update(ScheduledJob)
            .where(
                ScheduledJob.job_name == job_name,
                or_(
                    ScheduledJob.lease_owner.is_(None),
                    ScheduledJob.lease_expires_at < now,
                ),
            )
            .values(lease_owner=self.owner,
                    lease_expires_at=now + timedelta(seconds=self._lease_seconds()))
            .execution_options(synchronize_session=False)
        )
        db.session.commit()
        return result.rowcount == 1

    def release_lease(self, job_name: str) -> None:
        db.session.execute(
            update(ScheduledJob)
            .where(ScheduledJob.job_name == job_name, ScheduledJob.lease_owner == self.owner)
            .values(lease_owner=None, lease_expires_at=None)
            .execution_options(synchronize_session=False)
        )
        db.session.commit()

    # ── Execution ────────────────────────────────────────────────────────

    def _app_context(self):
        """Reuse the active context of our app, otherwise push a new one."""
        if has_app_context() and current_app._get_current_object() is self.app:
            return nullcontext()
        return self.app.app_context()

    def run_job(self, job_name: str) -> dict:
        """
        Execute a single job by name under its lease.

        Returns:
            Dict with job_name, status (success / failed / skipped / error),
            duration_ms, result and error.
        """
        spec = _job_registry.get(job_name)
        if not spec:
            return {"job_name": job_name, "status": "error", "error": f"Unknown job: {job_name}"}
        if not self.app:
            return {"job_name": job_name, "status": "error", "error": "Scheduler not initialized"}

        with self._app_context():
            self.ensure_jobs_registered()
            if not self.acquire_lease(job_name):
                logger.info("Job %s skipped: lease held elsewhere", job_name,
                            extra={"job_name": job_name})
                return {"job_name": job_name, "status": "skipped",
                        "error": "lease held by another scheduler"}

            start = time.monotonic()
            result = None
            error = None
            status = "success"
            try:
                result = spec.fn(self.app)
            except Exception as exc:
                db.session.rollback()
                status = "failed"
                error = str(exc)
                logger.exception("Job %s failed: %s", job_name, exc,
                                 extra={"job_name": job_name})

            duration_ms = int((time.monotonic() - start) * 1000)

            try:
                job_record = ScheduledJob.query.filter_by(job_name=job_name).first()
                job_record.record_run(
                    now=get_clock().now(),
                    status=status,
                    duration_ms=duration_ms,
                    result=result if isinstance(result, dict) else {"output": str(result)},
                    error=error,
                )
                db.session.commit()
            except Exception:
                db.session.rollback()
                logger.exception("Failed to update job record for %s", job_name)
            finally:
                self.release_lease(job_name)

        logger.info("Job %s finished: %s", job_name, status,
                    extra={"job_name": job_name, "duration_ms": duration_ms})
        return {
            "job_name": job_name,
            "status": status,
            "duration_ms": duration_ms,
            "result": result,
            "error": error,
        }

    def due_jobs(self, now: datetime | None = None) -> list[str]:
        """Names of enabled jobs whose interval has elapsed. Needs an app context."""
        now = as_utc(now or get_clock().now())
        due = []
        for name in _job_registry:
            job = ScheduledJob.query.filter_by(job_name=name).first()
            if job is None or not job.is_enabled:
                continue
            last = as_utc(job.last_run_at)
            if last is None or last + timedelta(seconds=job.interval_seconds) <= now:
                due.append(name)
        return due

    def tick(self) -> list[dict]:
        """Run every due job once."""
        with self._app_context():
            self.ensure_jobs_registered()
            names = self.due_jobs()
        return [self.run_job(name) for name in names]

    # ── Background thread ────────────────────────────────────────────────

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="collab-scheduler", daemon=True)
        self._thread.start()
        logger.info("Scheduler thread started (owner=%s)", self.owner)

    def stop(self, timeout: float | None = 5.0) -> None:
        self._stop.set()
        if self._thread:
            self._thread.join(timeout)
            self._thread = None

    @property
    def running(self) -> bool:
        return bool(self._thread and self._thread.is_alive())

    def _loop(self) -> None:
        interval = int(self.app.config.get("SCHEDULER_TICK_SECONDS", 5))
        while not self._stop.wait(interval):
            try:
                self.tick()
            except Exception:
                logger.exception("Scheduler tick failed")

    # ── Admin helpers ────────────────────────────────────────────────────

    def list_jobs(self) -> list[dict]:
        """List all registered jobs with their DB status."""
        jobs = []
        for name in _job_registry:
            job_record = ScheduledJob.query.filter_by(job_name=name).first()
            jobs.append({
                "job_name": name,
                "registered": True,
                "db_record": job_record.to_dict() if job_record else None,
            })
        return jobs

    def toggle_job(self, job_name: str, enabled: bool) -> dict | None:
        """Enable or disable a scheduled job."""
        job_record = ScheduledJob.query.filter_by(job_name=job_name).first()
        if not job_record:
            return None
        job_record.is_enabled = enabled
        job_record.status = "active" if enabled else "paused"
        db.session.commit()
        return job_record.to_dict()
