"""
API Version 1 Router.

Aggregates all v1 endpoint routers.
"""

from fastapi import APIRouter

from crm.backend.api.v1.endpoints import bulk, contacts, statistics, tagging, timeline

router = APIRouter()

router.include_router(bulk.router, prefix="/bulk", tags=["bulk"])
router.include_router(contacts.router, prefix="/contacts", tags=["contacts"])
router.include_router(timeline.router, prefix="/timeline", tags=["timeline"])
router.include_router(tagging.router, prefix="/tagging", tags=["tagging"])
router.include_router(statistics.router, prefix="/statistics", tags=["statistics"])
