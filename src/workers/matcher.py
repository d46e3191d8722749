"""
Matching Cycle & Background Worker
==================================

One cycle
---------
1. Read every PENDING booking (a failure here aborts the cycle).
2. Partition them with ``GroupMatcher`` -- recomputed from scratch, no
   grouping survives from an earlier cycle.
3. Hand the groups to ``DispatchCoordinator``; each group commits or
   stays pending on its own.

Triggers
--------
* ``POST /api/v1/trigger-matching`` calls ``run_matching_cycle`` directly.
* The background loop calls it every ``MATCHING_INTERVAL_SECONDS`` under
  a **Redis distributed lock**, so scheduled cycles on different processes
  do not pile up.  The lock only saves work: manual triggers bypass it and
  the vehicle compare-and-set keeps concurrent cycles correct.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.config import settings
from src.domain.matching import GroupMatcher, MatchingRules
from src.infrastructure.database import async_session_factory
from src.infrastructure.locks import DistributedLock, LockNotAcquired
from src.infrastructure.redis_client import get_redis
from src.infrastructure.repositories import BookingRepository, to_ride_request
from src.workers.dispatch import DispatchCoordinator, DispatchOutcome

logger = logging.getLogger(__name__)

_task: asyncio.Task | None = None
_stop_event: asyncio.Event | None = None


@dataclass
class MatchingReport:
    pending: int = 0
    groups: int = 0
    outcomes: list[DispatchOutcome] = field(default_factory=list)

    @property
    def confirmed(self) -> list[DispatchOutcome]:
        return [o for o in self.outcomes if o.succeeded]

    @property
    def failed(self) -> list[DispatchOutcome]:
        return [o for o in self.outcomes if not o.succeeded]


# ── Public API ────────────────────────────────────────────────────────


async def run_matching_cycle(
    session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
    rules: Optional[MatchingRules] = None,
) -> MatchingReport:
    """Execute one matching cycle and report every group's outcome."""
    factory = session_factory or async_session_factory

    async with factory() as session:
        pending = await BookingRepository(session).get_pending()

    if not pending:
        return MatchingReport()

    groups = GroupMatcher(rules or settings.matching_rules()).match(
        to_ride_request(b) for b in pending
    )
    coordinator = DispatchCoordinator(
        factory, timeout_seconds=settings.dispatch_timeout_seconds
    )
    outcomes = await coordinator.dispatch_all(groups)

    report = MatchingReport(
        pending=len(pending), groups=len(groups), outcomes=outcomes
    )
    logger.info(
        "Matching cycle: %d pending, %d groups, %d rides confirmed, %d left pending",
        report.pending, report.groups, len(report.confirmed), len(report.failed),
    )
    return report


async def start_matching_loop() -> None:
    global _task, _stop_event
    if settings.matching_interval_seconds <= 0:
        logger.info("Matching worker disabled (interval=0)")
        return
    _stop_event = asyncio.Event()
    _task = asyncio.create_task(_loop())
    logger.info(
        "Matching worker started (interval=%ds)", settings.matching_interval_seconds
    )


async def stop_matching_loop() -> None:
    if _stop_event:
        _stop_event.set()
    if _task:
        _task.cancel()
        try:
            await _task
        except asyncio.CancelledError:
            pass
    logger.info("Matching worker stopped")


# ── Internals ─────────────────────────────────────────────────────────


async def _loop() -> None:
    """Periodic loop: run a matching cycle then sleep."""
    assert _stop_event is not None
    while not _stop_event.is_set():
        try:
            await _scheduled_cycle()
        except Exception:
            logger.exception("Unhandled error in matching cycle")
        # Wait for the interval or until stop is signalled
        try:
            await asyncio.wait_for(
                _stop_event.wait(), timeout=settings.matching_interval_seconds
            )
            break
        except asyncio.TimeoutError:
            pass  # next cycle


async def _scheduled_cycle() -> Optional[MatchingReport]:
    redis = await get_redis()
    try:
        async with DistributedLock(redis, "matching_engine", ttl_seconds=60):
            return await run_matching_cycle()
    except LockNotAcquired:
        logger.debug("Lock held by another worker – skipping cycle")
        return None
