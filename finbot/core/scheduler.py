# -*- coding: utf-8 -*-
from __future__ import annotations

import logging
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from finbot.services.sessions import SessionStore

log = logging.getLogger(__name__)


def start_scheduler(store: SessionStore, sweep_minutes: int = 5) -> AsyncIOScheduler:
    """Periodic jobs; needs a running event loop."""
    scheduler = AsyncIOScheduler()

    @scheduler.scheduled_job("interval", minutes=sweep_minutes, id="sessions_sweep")
    async def tick_sessions() -> None:
        removed = store.sweep()
        if removed:
            log.debug("sessions sweep removed=%s left=%s", removed, len(store))

    scheduler.start()
    log.info("Scheduler started sweep_minutes=%s", sweep_minutes)
    return scheduler
