"""Pydantic request models for API endpoints.

Bodies accept both camelCase (frontend) and snake_case field names.
"""

from typing import Any

from storyloom.models import CamelModel


class CreateLorebook(CamelModel):
    name: str
    description: str = ""


class UpdateLorebook(CamelModel):
    name: str | None = None
    description: str | None = None
    scan_depth: int | None = None
    token_budget: int | None = None
    recursive_scanning: bool | None = None


class ImportUrlBody(CamelModel):
    url: str


class ActivateBody(CamelModel):
    lorebook_ids: list[str]
    scan_text: str = ""
    settings: dict[str, Any] | None = None  # per-call overrides, app settings keys
    show_comments: bool | None = None  # defaults to the showPrompt setting
    template: str | None = None  # Handlebars template for the world-info text
