"""Health check and settings endpoints."""

from fastapi import APIRouter, HTTPException
from pydantic import ValidationError

from backend.store import get_storage
from storyloom.models import ActivationSettings

router = APIRouter()


@router.get("/health")
async def health():
    """Health check."""
    return {"status": "ok"}


@router.get("/settings")
async def get_settings():
    """Get app settings (lorebook scan depth, token budget, recursion)."""
    return get_storage().get_config()


@router.patch("/settings")
async def update_settings(body: dict):
    """Update app settings (partial merge). Lorebook values are checked before saving."""
    storage = get_storage()
    try:
        ActivationSettings.from_config({**storage.get_config(), **body})
    except ValidationError as e:
        raise HTTPException(400, f"Invalid lorebook settings: {e}")
    return storage.update_config(body)
