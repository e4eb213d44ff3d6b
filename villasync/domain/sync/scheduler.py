"""
Sync Scheduler - periodic sync, calendar import, health check and cleanup jobs

Integration batches (quick, full and manual) share one global gate so at most
one of them touches the integrations at a time. Scheduled batches that find
the gate busy skip their tick; manual requests fail fast. A health-check
watchdog force-releases a gate held past the stale threshold.
"""

import asyncio
import logging
import threading
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from sqlalchemy.orm import Session

from ...config import (
    CALENDAR_SYNC_INTERVAL_MINUTES,
    CLEANUP_INTERVAL_HOURS,
    DEFAULT_SYNC_FREQUENCY_HOURS,
    FULL_SYNC_DELAY_SECONDS,
    FULL_SYNC_INTERVAL_MINUTES,
    HEALTH_CHECK_INTERVAL_MINUTES,
    HEALTH_CHECK_WINDOW_MINUTES,
    QUICK_SYNC_DELAY_SECONDS,
    QUICK_SYNC_INTERVAL_MINUTES,
    QUICK_SYNC_MIN_AGE_MINUTES,
    STALE_ERROR_INTEGRATION_DAYS,
    STALE_SYNC_MINUTES,
    SYNC_LOG_RETENTION_DAYS,
)
from ...credential_vault import decrypt_credentials
from ...database import SessionLocal
from ...models_sync import Integration
from ...services.notification_service import SyncNotifier
from ..bookings.repository import BookingRepository
from ..calendar.service import ICalService
from ..integrations.adapters import ADAPTERS, AdapterRegistry
from ..integrations.repository import IntegrationRepository
from .exceptions import SyncInProgressError
from .orchestrator import SyncOrchestrator
from .repository import SyncLogRepository
from .schemas import JobStatus, SchedulerStatus, SyncResult
from .triggers import AsyncioIntervalTrigger, IntervalTrigger, TriggerHandle

logger = logging.getLogger(__name__)

WATCHDOG_MESSAGE = "Sync timeout - marked as failed by health check"
LARGE_SYNC_THRESHOLD = 5

JOB_INTERVALS = {
    "quick_sync": QUICK_SYNC_INTERVAL_MINUTES * 60,
    "full_sync": FULL_SYNC_INTERVAL_MINUTES * 60,
    "calendar_sync": CALENDAR_SYNC_INTERVAL_MINUTES * 60,
    "cleanup": CLEANUP_INTERVAL_HOURS * 3600,
    "health_check": HEALTH_CHECK_INTERVAL_MINUTES * 60,
}


def should_sync(integration: Integration, now: datetime) -> bool:
    """True when the integration was never synced or its sync frequency has elapsed"""
    if integration.last_sync is None:
        return True
    frequency = integration.sync_frequency or DEFAULT_SYNC_FREQUENCY_HOURS
    hours_since_last_sync = (now - integration.last_sync).total_seconds() / 3600
    return hours_since_last_sync >= frequency


def summarize_results(results: list[SyncResult]) -> dict[str, Any]:
    return {
        "total": len(results),
        "successful": sum(1 for r in results if r.success),
        "failed": sum(1 for r in results if not r.success),
        "newBookings": sum(r.newBookings for r in results),
        "updatedBookings": sum(r.updatedBookings for r in results),
        "errorCount": sum(r.errorCount for r in results),
        "errors": [
            f"{r.platform} (integration {r.integrationId}): {e.get('message')}"
            for r in results
            for e in r.errors
        ],
    }


# ============================================================================
# GATE
# ============================================================================


class GateState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"


@dataclass(frozen=True)
class GateLease:
    token: str
    holder: str
    acquired_at: datetime


class SyncGate:
    """Global mutual exclusion for integration batches"""

    def __init__(self, clock: Callable[[], datetime] = datetime.utcnow):
        self.clock = clock
        self._lock = threading.Lock()
        self._lease: Optional[GateLease] = None

    @property
    def state(self) -> GateState:
        return GateState.RUNNING if self._lease else GateState.IDLE

    @property
    def lease(self) -> Optional[GateLease]:
        return self._lease

    def try_acquire(self, holder: str) -> Optional[str]:
        """Atomically move Idle -> Running; returns a release token or None when busy"""
        with self._lock:
            if self._lease is not None:
                return None
            self._lease = GateLease(uuid.uuid4().hex, holder, self.clock())
            return self._lease.token

    def release(self, token: str) -> bool:
        """Release only if token belongs to the current lease"""
        with self._lock:
            if self._lease is None or self._lease.token != token:
                return False
            self._lease = None
            return True

    def is_stale(self, now: datetime, threshold: timedelta) -> bool:
        lease = self._lease
        return lease is not None and now - lease.acquired_at > threshold

    def force_release(self) -> Optional[GateLease]:
        with self._lock:
            lease, self._lease = self._lease, None
            return lease


@dataclass
class JobState:
    name: str
    interval_seconds: Optional[float] = None
    state: str = GateState.IDLE.value
    last_started_at: Optional[datetime] = None
    last_finished_at: Optional[datetime] = None
    last_outcome: Optional[str] = None
    last_error: Optional[str] = None
    run_count: int = 0

    def to_status(self) -> JobStatus:
        return JobStatus(
            name=self.name,
            state=self.state,
            intervalSeconds=self.interval_seconds,
            lastStartedAt=self.last_started_at,
            lastFinishedAt=self.last_finished_at,
            lastOutcome=self.last_outcome,
            lastError=self.last_error,
            runCount=self.run_count,
        )


# ============================================================================
# SCHEDULER
# ============================================================================


class SyncScheduler:
    def __init__(
        self,
        session_factory: Callable[[], Session] = SessionLocal,
        registry: AdapterRegistry = ADAPTERS,
        notifier_factory: Optional[Callable[[Session], Any]] = SyncNotifier,
        clock: Callable[[], datetime] = datetime.utcnow,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        transport: Any = None,
        quick_sync_delay: float = QUICK_SYNC_DELAY_SECONDS,
        full_sync_delay: float = FULL_SYNC_DELAY_SECONDS,
        intervals: Optional[dict[str, float]] = None,
    ):
        self.session_factory = session_factory
        self.registry = registry
        self.notifier_factory = notifier_factory
        self.clock = clock
        self.sleep = sleep
        self.transport = transport
        self.quick_sync_delay = quick_sync_delay
        self.full_sync_delay = full_sync_delay
        self.intervals = {**JOB_INTERVALS, **(intervals or {})}

        self.gate = SyncGate(clock)
        self.jobs = {name: JobState(name, interval) for name, interval in self.intervals.items()}
        self._trigger: Optional[IntervalTrigger] = None
        self._handles: list[TriggerHandle] = []

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        return self._trigger is not None

    def start(self, trigger: Optional[IntervalTrigger] = None) -> None:
        if self._trigger is not None:
            logger.warning("⚠️ Sync scheduler already running")
            return

        self._trigger = trigger or AsyncioIntervalTrigger()
        runners = {
            "quick_sync": self.run_quick_sync,
            "full_sync": self.run_full_sync,
            "calendar_sync": self.run_calendar_sync,
            "cleanup": self.run_cleanup,
            "health_check": self.run_health_check,
        }
        for name, runner in runners.items():
            self._handles.append(self._trigger.schedule(name, self.intervals[name], runner))
        logger.info(f"✅ Sync scheduler started with {len(runners)} jobs")

    def stop(self) -> None:
        for handle in self._handles:
            handle.cancel()
        self._handles = []
        self._trigger = None
        logger.info("🛑 Sync scheduler stopped")

    def status(self) -> SchedulerStatus:
        lease = self.gate.lease
        return SchedulerStatus(
            running=self.is_running,
            syncInProgress=lease is not None,
            gateHolder=lease.holder if lease else None,
            gateAcquiredAt=lease.acquired_at if lease else None,
            jobs=[job.to_status() for job in self.jobs.values()],
        )

    # ------------------------------------------------------------------
    # Job plumbing
    # ------------------------------------------------------------------

    async def _run_job(self, name: str, func: Callable[[], Awaitable[Any]]) -> Any:
        """Run a named job unless that job is already running"""
        job = self.jobs[name]
        if job.state == GateState.RUNNING.value:
            logger.info(f"⏭️ Job '{name}' still running, skipping this tick")
            return None

        job.state = GateState.RUNNING.value
        job.run_count += 1
        run_id = job.run_count
        job.last_started_at = self.clock()
        try:
            outcome = await func()
        except Exception as e:
            if job.run_count == run_id:
                job.last_outcome = "failed"
                job.last_error = str(e)
            raise
        else:
            if job.run_count == run_id:
                job.last_outcome = "skipped" if outcome is None else "success"
                job.last_error = None
            return outcome
        finally:
            # A watchdog may have reset this job while it was stuck
            if job.run_count == run_id:
                job.state = GateState.IDLE.value
                job.last_finished_at = self.clock()

    def _orchestrator(self, db: Session) -> SyncOrchestrator:
        notifier = self.notifier_factory(db) if self.notifier_factory else None
        return SyncOrchestrator(db, registry=self.registry, notifier=notifier, clock=self.clock)

    async def _sync_batch(
        self, db: Session, integrations: list[Integration], trigger: str, delay: float
    ) -> list[SyncResult]:
        """Sync integrations one after another with a courtesy delay between them"""
        orchestrator = self._orchestrator(db)
        results = []
        for index, integration in enumerate(integrations):
            if index and delay:
                await self.sleep(delay)
            try:
                results.append(await orchestrator.sync_integration(integration, trigger))
            except Exception as e:
                db.rollback()
                logger.error(f"❌ Unexpected error syncing integration {integration.id}: {e}")
                results.append(
                    SyncResult(
                        success=False,
                        status="failed",
                        integrationId=integration.id,
                        platform=integration.platform,
                        errorCount=1,
                        errors=[{"message": str(e), "bookingId": None, "timestamp": self.clock().isoformat()}],
                        message=str(e),
                    )
                )
        return results

    # ------------------------------------------------------------------
    # Integration batches
    # ------------------------------------------------------------------

    async def run_quick_sync(self) -> Optional[dict[str, Any]]:
        return await self._run_job("quick_sync", self._quick_sync)

    async def _quick_sync(self) -> Optional[dict[str, Any]]:
        token = self.gate.try_acquire("quick_sync")
        if token is None:
            logger.info("⏭️ Quick sync skipped - another sync is in progress")
            return None

        try:
            with self.session_factory() as db:
                now = self.clock()
                cutoff = now - timedelta(minutes=QUICK_SYNC_MIN_AGE_MINUTES)
                candidates = IntegrationRepository.get_quick_sync_candidates(db, cutoff)
                due = [integration for integration in candidates if should_sync(integration, now)]
                logger.info(f"🔄 Quick sync: {len(due)} of {len(candidates)} integrations due")

                summary = summarize_results(await self._sync_batch(db, due, "automatic", self.quick_sync_delay))
        finally:
            self.gate.release(token)

        logger.info(f"📊 Quick sync finished: {summary['successful']}/{summary['total']} successful")
        return summary

    async def run_full_sync(self) -> Optional[dict[str, Any]]:
        return await self._run_job("full_sync", self._full_sync)

    async def _full_sync(self) -> Optional[dict[str, Any]]:
        token = self.gate.try_acquire("full_sync")
        if token is None:
            logger.info("⏭️ Full sync skipped - another sync is in progress")
            return None

        try:
            with self.session_factory() as db:
                now = self.clock()
                integrations = IntegrationRepository.get_active_integrations(db, auto_sync_only=True)
                due = [integration for integration in integrations if should_sync(integration, now)]
                logger.info(f"🔄 Full sync: {len(due)} of {len(integrations)} integrations due")

                summary = summarize_results(await self._sync_batch(db, due, "scheduled", self.full_sync_delay))

                if summary["newBookings"] > LARGE_SYNC_THRESHOLD or summary["errorCount"] > 0:
                    await self._send_report(db, summary)
        finally:
            self.gate.release(token)

        logger.info(
            f"📊 Full sync finished: {summary['successful']}/{summary['total']} successful, "
            f"{summary['newBookings']} new bookings"
        )
        return summary

    async def _send_report(self, db: Session, summary: dict[str, Any]) -> None:
        if not self.notifier_factory:
            return
        try:
            await self.notifier_factory(db).send_sync_report(summary)
        except Exception as e:
            logger.warning(f"⚠️ Failed to send full sync report: {e}")

    async def trigger_manual_sync(
        self, tenant_id: str, platform: Optional[str] = None, villa_id: Optional[int] = None
    ) -> list[SyncResult]:
        """
        Sync a tenant's active integrations now.

        Raises:
            SyncInProgressError: If another batch holds the gate
        """
        token = self.gate.try_acquire(f"manual:{tenant_id}")
        if token is None:
            lease = self.gate.lease
            logger.warning(f"⚠️ Manual sync for tenant {tenant_id} rejected - sync in progress")
            raise SyncInProgressError(lease.holder if lease else "")

        try:
            with self.session_factory() as db:
                return await self._orchestrator(db).sync_tenant(tenant_id, platform, villa_id, trigger="manual")
        finally:
            self.gate.release(token)

    async def sync_all(self, tenant_id: str) -> list[SyncResult]:
        return await self.trigger_manual_sync(tenant_id)

    # ------------------------------------------------------------------
    # Calendar feeds
    # ------------------------------------------------------------------

    async def run_calendar_sync(self) -> Optional[dict[str, int]]:
        return await self._run_job("calendar_sync", self._calendar_sync)

    async def _calendar_sync(self) -> dict[str, int]:
        totals = {"villas": 0, "failed": 0, "imported": 0, "updated": 0}
        with self.session_factory() as db:
            service = ICalService(db, transport=self.transport, clock=self.clock)
            for villa in BookingRepository.get_calendar_villas(db):
                totals["villas"] += 1
                try:
                    result = await service.sync_villa_calendar(villa)
                except Exception as e:
                    db.rollback()
                    logger.error(f"❌ Calendar sync failed for villa {villa.id}: {e}")
                    totals["failed"] += 1
                    continue
                if not result.success:
                    totals["failed"] += 1
                totals["imported"] += result.imported
                totals["updated"] += result.updated

        logger.info(
            f"📅 Calendar sync finished: {totals['villas']} villas, {totals['imported']} imported, "
            f"{totals['failed']} failed"
        )
        return totals

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    async def run_cleanup(self) -> Optional[dict[str, int]]:
        return await self._run_job("cleanup", self._cleanup)

    async def _cleanup(self) -> dict[str, int]:
        now = self.clock()
        with self.session_factory() as db:
            deleted_logs = SyncLogRepository.delete_sync_logs_before(
                db, now - timedelta(days=SYNC_LOG_RETENTION_DAYS)
            )
            completed = BookingRepository.complete_past_bookings(db, now)
            deactivated = IntegrationRepository.deactivate_stale_error_integrations(
                db, now - timedelta(days=STALE_ERROR_INTEGRATION_DAYS)
            )

        logger.info(
            f"🧹 Cleanup: {deleted_logs} sync logs deleted, {completed} bookings completed, "
            f"{deactivated} integrations deactivated"
        )
        return {"deletedLogs": deleted_logs, "completedBookings": completed, "deactivatedIntegrations": deactivated}

    async def run_health_check(self) -> Optional[dict[str, int]]:
        return await self._run_job("health_check", self._health_check)

    async def _health_check(self) -> dict[str, int]:
        now = self.clock()
        totals = {"checked": 0, "healthy": 0, "unhealthy": 0, "watchdogReleased": 0}

        with self.session_factory() as db:
            if self._watchdog(db, now):
                totals["watchdogReleased"] = 1

            cutoff = now - timedelta(minutes=HEALTH_CHECK_WINDOW_MINUTES)
            for integration in IntegrationRepository.get_health_check_candidates(db, cutoff):
                healthy, message = await self._probe(integration)
                integration.health_status = "healthy" if healthy else "unhealthy"
                integration.health_message = message
                integration.last_health_check = now
                db.commit()

                totals["checked"] += 1
                totals["healthy" if healthy else "unhealthy"] += 1
                if not healthy:
                    logger.warning(f"⚠️ Integration {integration.id} ({integration.platform}) unhealthy: {message}")

        return totals

    async def _probe(self, integration: Integration) -> tuple[bool, str]:
        adapter_class = self.registry.get_or_none(integration.platform)
        if adapter_class is None:
            return False, f"Unknown platform: {integration.platform}"
        try:
            result = await adapter_class(decrypt_credentials(integration.credentials)).test_connection()
        except Exception as e:
            return False, str(e)
        return result.success, result.message

    def _watchdog(self, db: Session, now: datetime) -> bool:
        """Force-release a gate held past the stale threshold and record the timeout"""
        if not self.gate.is_stale(now, timedelta(minutes=STALE_SYNC_MINUTES)):
            return False

        lease = self.gate.force_release()
        if lease is None:
            return False

        logger.error(f"❌ Sync '{lease.holder}' held the gate since {lease.acquired_at}, forcing release")
        job = self.jobs.get(lease.holder)
        if job is not None:
            job.state = GateState.IDLE.value
            job.last_outcome = "timeout"
            job.last_error = WATCHDOG_MESSAGE
            job.last_finished_at = now

        SyncLogRepository.create_sync_log(
            db,
            platform="scheduler",
            trigger="scheduled",
            status="failed",
            error_count=1,
            error_details=[{"message": WATCHDOG_MESSAGE, "bookingId": None, "timestamp": now.isoformat()}],
            duration_ms=int((now - lease.acquired_at).total_seconds() * 1000),
        )
        return True
