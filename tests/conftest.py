"""Pytest configuration and fixtures."""

from collections.abc import AsyncIterator, Awaitable, Callable
from decimal import Decimal
from pathlib import Path

import pytest
from httpx import ASGITransport, AsyncClient

from personnel_ledger.audit.store import AuditLog
from personnel_ledger.config import Settings
from personnel_ledger.db.database import Database
from personnel_ledger.identity.index import IdentityIndex
from personnel_ledger.identity.resolver import IdentityResolver
from personnel_ledger.identity.schemas import Identity
from personnel_ledger.ledger.ledger import PayrollLedger
from personnel_ledger.main import app, init_services
from personnel_ledger.processing.batch import ReportProcessor
from personnel_ledger.reporting.aggregator import Aggregator
from personnel_ledger.reporting.csv_export import PayrollCsvExporter
from personnel_ledger.review.queue import ReviewQueue
from personnel_ledger.review.repository import ReviewRepository

MakeIdentity = Callable[..., Awaitable[Identity]]

APP_STATE = (
    "db",
    "audit_log",
    "identity_index",
    "review_repository",
    "ledger",
    "identity_resolver",
    "review_queue",
    "report_processor",
    "aggregator",
    "csv_exporter",
)


@pytest.fixture
async def db(tmp_path: Path) -> AsyncIterator[Database]:
    """Temp file database, connected."""
    client = Database(url=f"file:{tmp_path / 'test.db'}")
    await client.connect()
    yield client
    await client.close()


@pytest.fixture
async def audit(db: Database) -> AuditLog:
    log = AuditLog(db)
    await log.init_schema()
    return log


@pytest.fixture
async def index(db: Database, audit: AuditLog) -> IdentityIndex:
    identity_index = IdentityIndex(db, audit)
    await identity_index.initialize()
    return identity_index


@pytest.fixture
async def reviews(db: Database, audit: AuditLog) -> ReviewRepository:
    repo = ReviewRepository(db, audit)
    await repo.initialize()
    return repo


@pytest.fixture
async def ledger(
    db: Database,
    index: IdentityIndex,
    reviews: ReviewRepository,
    audit: AuditLog,
) -> PayrollLedger:
    payroll = PayrollLedger(db, index, reviews, audit)
    await payroll.initialize()
    return payroll


@pytest.fixture
def resolver(
    index: IdentityIndex,
    reviews: ReviewRepository,
    ledger: PayrollLedger,
) -> IdentityResolver:
    """Resolver with default thresholds and the ledger as activity source."""
    return IdentityResolver(index, reviews, activity=ledger)


@pytest.fixture
def queue(
    reviews: ReviewRepository,
    index: IdentityIndex,
    resolver: IdentityResolver,
    ledger: PayrollLedger,
) -> ReviewQueue:
    return ReviewQueue(reviews, index, resolver, ledger)


@pytest.fixture
def processor(
    resolver: IdentityResolver,
    ledger: PayrollLedger,
    reviews: ReviewRepository,
) -> ReportProcessor:
    return ReportProcessor(resolver, ledger, reviews)


@pytest.fixture
def aggregator(ledger: PayrollLedger, index: IdentityIndex) -> Aggregator:
    return Aggregator(ledger, index)


@pytest.fixture
def exporter(ledger: PayrollLedger, index: IdentityIndex) -> PayrollCsvExporter:
    return PayrollCsvExporter(ledger, index)


@pytest.fixture
def make_identity(index: IdentityIndex) -> MakeIdentity:
    """Factory for identities, optionally with a completed profile.

    aliases defaults to the full name only (no first-name alias).
    """

    async def make(
        name: str,
        aliases: list[str] | None = None,
        employee_number: str | None = None,
        hourly_rate: Decimal | str | None = None,
        overtime_rate: Decimal | str | None = None,
    ) -> Identity:
        identity = await index.create_identity(name, [name] if aliases is None else aliases)
        if employee_number is not None or hourly_rate is not None:
            identity = await index.complete_profile(
                identity.id,
                employee_number=employee_number,
                hourly_rate=hourly_rate,
                overtime_rate=overtime_rate,
                actor="test",
            )
        return identity

    return make


@pytest.fixture
async def client(db: Database) -> AsyncIterator[AsyncClient]:
    """Create async test client for the FastAPI app on the temp database."""
    await init_services(app, db, Settings())

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    # Clean up app state
    for name in APP_STATE:
        delattr(app.state, name)
