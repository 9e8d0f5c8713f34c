"""
API Router

Everything is mounted under /api.
"""

from fastapi import APIRouter
from entraide_shared.schemas.common import ErrorResponse
from . import auth, projects, users
from .resources import materiel_router, outils_router, transport_router

# Every endpoint answers failures with the same envelope
ERROR_RESPONSES = {status: {"model": ErrorResponse} for status in (400, 401, 403, 404, 409, 502)}

router = APIRouter(responses=ERROR_RESPONSES)

router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
router.include_router(projects.router, prefix="/projects", tags=["Projects"])
router.include_router(materiel_router, prefix="/materiel", tags=["Materiel"])
router.include_router(outils_router, prefix="/outils", tags=["Outils"])
router.include_router(transport_router, prefix="/transport", tags=["Transport"])
router.include_router(users.router, prefix="/users", tags=["Users"])


@router.get("/health", tags=["System"])
async def health_check():
    """Health check endpoint for liveness probes."""
    return {"status": "ok"}
