"""FastAPI API endpoints under /api.

Endpoint groups: health + settings, lorebook library (CRUD, import, export),
lorebook entries (nested under /api/lorebooks/{lorebook_id}/entries), and the
activation preview (/api/activate).
"""

from fastapi import APIRouter

from .activation import router as activation_router
from .lorebooks import router as lorebooks_router
from .settings import router as settings_router

router = APIRouter()
router.include_router(settings_router)
router.include_router(lorebooks_router)
router.include_router(activation_router)
