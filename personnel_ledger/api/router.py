"""API router aggregation."""

from fastapi import APIRouter

from personnel_ledger.api.aggregates import router as aggregates_router
from personnel_ledger.api.health import router as health_router
from personnel_ledger.api.identities import router as identities_router
from personnel_ledger.api.ledger import router as ledger_router
from personnel_ledger.api.reports import router as reports_router
from personnel_ledger.api.review import router as review_router

api_router = APIRouter()
api_router.include_router(health_router)
api_router.include_router(identities_router)
# Batch entry point for extracted report tuples
api_router.include_router(reports_router)
api_router.include_router(ledger_router)
api_router.include_router(review_router)
# Read-side aggregates and CSV export
api_router.include_router(aggregates_router)
