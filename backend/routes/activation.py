"""Activation preview: which entries a scan text would activate, and the
world-information text a generation prompt would receive."""

from fastapi import APIRouter, HTTPException
from pydantic import ValidationError

from backend.activation import activate_lorebooks
from backend.store import get_storage
from storyloom.prompts import (
    PromptError,
    build_world_info_section,
    render_prompt,
    world_info_context,
)

from .models import ActivateBody

router = APIRouter()


@router.post("/activate")
async def activate(body: ActivateBody):
    """Activate stored lorebooks against a scan text."""
    try:
        entries = activate_lorebooks(body.lorebook_ids, body.scan_text, body.settings)
    except ValidationError as e:
        raise HTTPException(400, f"Invalid lorebook settings: {e}")

    show_comments = body.show_comments
    if show_comments is None:
        show_comments = bool(get_storage().get_config().get("showPrompt"))

    if body.template:
        try:
            world_info = render_prompt(body.template, world_info_context(entries))
        except PromptError as e:
            raise HTTPException(400, str(e))
    else:
        world_info = build_world_info_section(entries, show_comments=show_comments)

    return {
        "entries": [e.model_dump(by_alias=True) for e in entries],
        "world_info": world_info,
    }
