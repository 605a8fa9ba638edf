"""Lorebook library and entry CRUD endpoints."""

from typing import Any

from fastapi import APIRouter, HTTPException
from pydantic import ValidationError

from backend.store import get_storage
from storyloom.importer import LorebookImportError, fetch_lorebook
from storyloom.models import Lorebook, LorebookEntry
from storyloom.parser import LorebookParseError, parse_lorebook, to_standalone_format
from storyloom.storage import EntryNotFoundError, LorebookNotFoundError

from .models import CreateLorebook, ImportUrlBody, UpdateLorebook

router = APIRouter()


def _summary(lorebook_id: str, lorebook: Lorebook) -> dict[str, Any]:
    return {
        "id": lorebook_id,
        "name": lorebook.name,
        "description": lorebook.description,
        "entry_count": len(lorebook.entries),
    }


def _get_or_404(lorebook_id: str) -> Lorebook:
    lorebook = get_storage().get_lorebook(lorebook_id)
    if lorebook is None:
        raise HTTPException(404, "Lorebook not found")
    return lorebook


# ── Library ──────────────────────────────────────────────


@router.get("/lorebooks")
async def list_lorebooks():
    """List all lorebooks in the library."""
    return {"lorebooks": get_storage().list_lorebooks()}


@router.post("/lorebooks", status_code=201)
async def create_lorebook(body: CreateLorebook):
    """Create an empty lorebook."""
    name = body.name.strip()
    if not name:
        raise HTTPException(400, "Lorebook name is required")
    storage = get_storage()
    lorebook_id = storage.create_lorebook(name, body.description)
    return _summary(lorebook_id, storage.get_lorebook(lorebook_id))


@router.post("/lorebooks/import", status_code=201)
async def import_lorebook(body: dict[str, Any]):
    """Import a lorebook from its JSON (standalone or V2 embedded shape)."""
    try:
        lorebook = parse_lorebook(body)
    except LorebookParseError as e:
        raise HTTPException(400, f"Failed to import lorebook: {e}")
    lorebook_id = get_storage().import_lorebook(lorebook)
    return _summary(lorebook_id, lorebook)


@router.post("/lorebooks/import-url", status_code=201)
async def import_lorebook_url(body: ImportUrlBody):
    """Fetch a lorebook JSON file from a URL and import it."""
    if not body.url.strip():
        raise HTTPException(400, "URL is required")
    try:
        lorebook = await fetch_lorebook(body.url.strip())
    except LorebookImportError as e:
        raise HTTPException(400, f"Failed to import lorebook from URL: {e}")
    lorebook_id = get_storage().import_lorebook(lorebook)
    return _summary(lorebook_id, lorebook)


@router.get("/lorebooks/{lorebook_id}")
async def get_lorebook(lorebook_id: str):
    """Get a lorebook with all its entries."""
    return {"lorebook": _get_or_404(lorebook_id).model_dump(by_alias=True)}


@router.get("/lorebooks/{lorebook_id}/export")
async def export_lorebook(lorebook_id: str):
    """Export a lorebook in the standalone world-info file shape."""
    return to_standalone_format(_get_or_404(lorebook_id))


@router.put("/lorebooks/{lorebook_id}")
async def update_lorebook(lorebook_id: str, body: UpdateLorebook):
    """Update lorebook metadata (name, description, scan settings)."""
    fields = body.model_dump(exclude_unset=True)
    if "name" in fields:
        if not fields["name"] or not fields["name"].strip():
            raise HTTPException(400, "Lorebook name is required")
        fields["name"] = fields["name"].strip()
    try:
        lorebook = get_storage().update_lorebook(lorebook_id, fields)
    except LorebookNotFoundError:
        raise HTTPException(404, "Lorebook not found")
    return _summary(lorebook_id, lorebook)


@router.delete("/lorebooks/{lorebook_id}")
async def delete_lorebook(lorebook_id: str):
    """Delete a lorebook from the library."""
    if not get_storage().delete_lorebook(lorebook_id):
        raise HTTPException(404, "Lorebook not found")
    return {"success": True}


# ── Entries ──────────────────────────────────────────────


@router.post("/lorebooks/{lorebook_id}/entries", status_code=201)
async def add_entry(lorebook_id: str, body: LorebookEntry):
    """Add an entry; its id is assigned by the server."""
    fields = body.model_dump(exclude_unset=True, exclude={"id", "lorebook_name"})
    try:
        entry = get_storage().add_entry(lorebook_id, fields)
    except LorebookNotFoundError:
        raise HTTPException(404, "Lorebook not found")
    return {"entry": entry.model_dump(by_alias=True)}


@router.put("/lorebooks/{lorebook_id}/entries/{entry_id}")
async def update_entry(lorebook_id: str, entry_id: str, body: dict[str, Any]):
    """Merge fields into an entry. The entry id cannot be changed."""
    try:
        entry = get_storage().update_entry(lorebook_id, entry_id, body)
    except LorebookNotFoundError:
        raise HTTPException(404, "Lorebook not found")
    except EntryNotFoundError:
        raise HTTPException(404, "Entry not found")
    except ValidationError as e:
        raise HTTPException(422, str(e))
    return {"entry": entry.model_dump(by_alias=True)}


@router.delete("/lorebooks/{lorebook_id}/entries/{entry_id}")
async def delete_entry(lorebook_id: str, entry_id: str):
    """Remove an entry from a lorebook."""
    try:
        get_storage().delete_entry(lorebook_id, entry_id)
    except LorebookNotFoundError:
        raise HTTPException(404, "Lorebook not found")
    except EntryNotFoundError:
        raise HTTPException(404, "Entry not found")
    return {"success": True}
