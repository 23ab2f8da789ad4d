"""FastAPI application entry point."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from personnel_ledger.api.errors import register_error_handlers
from personnel_ledger.api.router import api_router
from personnel_ledger.audit.store import AuditLog
from personnel_ledger.config import Settings, settings
from personnel_ledger.db.database import Database
from personnel_ledger.identity.index import IdentityIndex
from personnel_ledger.identity.resolver import IdentityResolver
from personnel_ledger.ledger.ledger import PayrollLedger
from personnel_ledger.processing.batch import ReportProcessor
from personnel_ledger.reporting.aggregator import Aggregator
from personnel_ledger.reporting.csv_export import PayrollCsvExporter
from personnel_ledger.review.queue import ReviewQueue
from personnel_ledger.review.repository import ReviewRepository

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


async def init_services(app: FastAPI, db: Database, config: Settings) -> None:
    """Create every component on an open database and put it in app state.

    Tables are created if missing. Components share the one database
    client and receive their thresholds from config.
    """
    audit = AuditLog(db)
    await audit.init_schema()

    index = IdentityIndex(
        db,
        audit,
        cache_ttl_seconds=config.identity_cache_ttl_seconds,
        cache_max_size=config.identity_cache_max_size,
        overtime_multiplier=config.overtime_multiplier,
    )
    await index.initialize()

    reviews = ReviewRepository(db, audit)
    await reviews.initialize()

    ledger = PayrollLedger(
        db,
        index,
        reviews,
        audit,
        max_hours_per_day=config.max_hours_per_day,
        overtime_multiplier=config.overtime_multiplier,
        doubletime_multiplier=config.doubletime_multiplier,
    )
    await ledger.initialize()

    resolver = IdentityResolver(
        index,
        reviews,
        activity=ledger,
        fuzzy_threshold=config.fuzzy_match_threshold,
        context_threshold=config.context_match_threshold,
        recent_window_days=config.recent_window_days,
    )

    app.state.db = db
    app.state.audit_log = audit
    app.state.identity_index = index
    app.state.review_repository = reviews
    app.state.ledger = ledger
    app.state.identity_resolver = resolver
    app.state.review_queue = ReviewQueue(reviews, index, resolver, ledger)
    app.state.report_processor = ReportProcessor(resolver, ledger, reviews)
    app.state.aggregator = Aggregator(ledger, index)
    app.state.csv_exporter = PayrollCsvExporter(ledger, index)
    logger.info("Identity, ledger and review services initialized")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan management.

    Startup:
    - Connect the database
    - Create tables and wire services

    Shutdown:
    - Close database connection
    """
    logger.info(f"Starting {settings.app_name}...")

    db = Database()
    await db.connect()
    await init_services(app, db, settings)

    yield

    logger.info(f"Shutting down {settings.app_name}...")
    await db.close()


app = FastAPI(
    title=settings.app_name,
    description="Personnel identity resolution and payroll ledger",
    version=settings.app_version,
    lifespan=lifespan,
)

app.include_router(api_router)
register_error_handlers(app)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "personnel_ledger.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
