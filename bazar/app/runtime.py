"""Process-level wiring of the credit engine.

One ``CreditRuntime`` is created per process. It owns the read-through
cache and the database engine; leaving ``create_credit_runtime`` clears the
cache and disposes the engine.
"""

from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import date
from typing import AsyncGenerator, Callable, Optional

from bazar.app.core.cache import ReadThroughCache
from bazar.app.core.config import settings
from bazar.app.core.logging import get_logger, setup_logging
from bazar.app.core.utils import get_current_date
from bazar.app.services.admin_credits import AdminCreditService
from bazar.app.services.credit_service import CreditService
from bazar.app.services.eligibility import EligibilityEngine
from bazar.app.services.ledger import CreditLedger
from bazar.app.services.readers import CreditReaders
from bazar.app.services.stats import CommunityStatsReader
from bazar.app.services.store import CreditStore, SqlCreditStore

logger = get_logger(__name__)


@dataclass
class CreditRuntime:
    cache: ReadThroughCache
    store: CreditStore
    readers: CreditReaders
    engine: EligibilityEngine
    ledger: CreditLedger
    stats: CommunityStatsReader
    admin: AdminCreditService
    credits: CreditService


def build_credit_runtime(
    store: CreditStore,
    cache: Optional[ReadThroughCache] = None,
    today: Callable[[], date] = get_current_date,
) -> CreditRuntime:
    """Assemble the services around ``store`` and ``cache``."""
    cache = cache if cache is not None else ReadThroughCache()
    readers = CreditReaders(cache, store)
    engine = EligibilityEngine(readers, today=today)
    ledger = CreditLedger(store, today=today)
    stats = CommunityStatsReader(cache, store, readers)
    return CreditRuntime(
        cache=cache,
        store=store,
        readers=readers,
        engine=engine,
        ledger=ledger,
        stats=stats,
        admin=AdminCreditService(store, cache),
        credits=CreditService(cache, engine, ledger, stats),
    )


@asynccontextmanager
async def create_credit_runtime(
    configure_logging: bool = True,
) -> AsyncGenerator[CreditRuntime, None]:
    """Start the credit engine against the configured database.

    Usage:
        async with create_credit_runtime() as runtime:
            result = await runtime.credits.check_eligibility(user_id)
    """
    from bazar.app.db.async_session import close_async_engine, init_async_db

    if configure_logging:
        setup_logging()

    await init_async_db(drop_first=settings.debug)
    runtime = build_credit_runtime(SqlCreditStore())
    logger.info("Credit runtime started", extra={"debug_mode": settings.debug})
    try:
        yield runtime
    finally:
        runtime.cache.clear_all()
        await close_async_engine()
        logger.info("Credit runtime stopped")
