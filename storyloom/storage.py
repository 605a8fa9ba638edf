"""JSON file storage.

All state is stored in flat JSON files under a configurable base directory.
There is no database or ORM; reads and writes go through plain helper
methods that load and dump JSON.

Directory layout:

    {base}/
      lorebooks/
        {id}.json      ← one Lorebook (camelCase fields), id is a uuid4 hex
      config.json      ← app settings, merged over _CONFIG_DEFAULTS at read time

Config: get_config() returns defaults merged with stored values.
update_config() applies partial updates: scalars overwritten,
unknown keys kept as-is.
"""

from __future__ import annotations

import json
import logging
import re
import uuid
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from storyloom.models import Lorebook, LorebookEntry

logger = logging.getLogger(__name__)

_CONFIG_DEFAULTS: dict[str, Any] = {
    "lorebookScanDepth": 2000,
    "lorebookTokenBudget": 1800,
    "lorebookRecursionDepth": 3,
    "lorebookEnableRecursion": True,
    "showPrompt": False,
}

# ids are uuid4 hex, as generated by create_lorebook/import_lorebook
_LOREBOOK_ID = re.compile(r"[0-9a-f]{32}")


class LorebookNotFoundError(KeyError):
    """Raised when a lorebook id has no file."""


class EntryNotFoundError(KeyError):
    """Raised when an entry id is not in the lorebook."""


class Storage:
    def __init__(self, base_path: Path) -> None:
        self._base = base_path
        self._lorebook_root = base_path / "lorebooks"
        self._lorebook_root.mkdir(parents=True, exist_ok=True)

    # ------------------------------------------------------------------
    # Internal path helpers
    # ------------------------------------------------------------------

    @property
    def lorebooks_dir(self) -> Path:
        return self._lorebook_root

    def _lorebook_file(self, lorebook_id: str) -> Path | None:
        """Path for a lorebook id, or None if the id is not a stored-lorebook id."""
        if not _LOREBOOK_ID.fullmatch(lorebook_id):
            return None
        return self._lorebook_root / f"{lorebook_id}.json"

    def _config_file(self) -> Path:
        return self._base / "config.json"

    def _read_json(self, path: Path) -> Any:
        return json.loads(path.read_text())

    def _write_json(self, path: Path, data: Any) -> None:
        path.write_text(json.dumps(data, indent=2))

    def _require(self, lorebook_id: str) -> Lorebook:
        lorebook = self.get_lorebook(lorebook_id)
        if lorebook is None:
            raise LorebookNotFoundError(lorebook_id)
        return lorebook

    # ------------------------------------------------------------------
    # Lorebooks
    # ------------------------------------------------------------------

    def list_lorebooks(self) -> list[dict[str, Any]]:
        """Summaries of every stored lorebook, sorted by name."""
        summaries = []
        for path in self._lorebook_root.glob("*.json"):
            try:
                lorebook = Lorebook.model_validate_json(path.read_text())
            except ValidationError as e:
                logger.warning("unreadable lorebook file %s, skipped: %s", path.name, e)
                continue
            summaries.append({
                "id": path.stem,
                "name": lorebook.name,
                "description": lorebook.description,
                "entry_count": len(lorebook.entries),
            })
        return sorted(summaries, key=lambda s: s["name"].lower())

    def get_lorebook(self, lorebook_id: str) -> Lorebook | None:
        path = self._lorebook_file(lorebook_id)
        if path is None or not path.is_file():
            return None
        return Lorebook.model_validate_json(path.read_text())

    def save_lorebook(self, lorebook_id: str, lorebook: Lorebook) -> None:
        path = self._lorebook_file(lorebook_id)
        if path is None:
            raise ValueError(f"Invalid lorebook id: {lorebook_id!r}")
        path.write_text(lorebook.model_dump_json(by_alias=True, indent=2))

    def create_lorebook(self, name: str, description: str = "") -> str:
        """Store an empty lorebook and return its new id."""
        lorebook_id = uuid.uuid4().hex
        self.save_lorebook(lorebook_id, Lorebook(name=name, description=description))
        return lorebook_id

    def import_lorebook(self, lorebook: Lorebook) -> str:
        lorebook_id = uuid.uuid4().hex
        self.save_lorebook(lorebook_id, lorebook)
        logger.info("imported lorebook %r as %s (%d entries)",
                    lorebook.name, lorebook_id, len(lorebook.entries))
        return lorebook_id

    def update_lorebook(self, lorebook_id: str, fields: dict[str, Any]) -> Lorebook:
        """Overwrite metadata fields; entries are never replaced here."""
        lorebook = self._require(lorebook_id)
        fields = {k: v for k, v in fields.items() if k != "entries"}
        updated = Lorebook.model_validate({**lorebook.model_dump(), **fields})
        self.save_lorebook(lorebook_id, updated)
        return updated

    def delete_lorebook(self, lorebook_id: str) -> bool:
        path = self._lorebook_file(lorebook_id)
        if path is None or not path.is_file():
            return False
        path.unlink()
        return True

    def load_lorebooks(self, lorebook_ids: list[str]) -> list[Lorebook]:
        """Load several lorebooks, skipping ids with no file."""
        books = []
        for lorebook_id in lorebook_ids:
            lorebook = self.get_lorebook(lorebook_id)
            if lorebook is None:
                logger.warning("lorebook %s not found, skipped", lorebook_id)
                continue
            books.append(lorebook)
        return books

    # ------------------------------------------------------------------
    # Entries
    # ------------------------------------------------------------------

    def add_entry(self, lorebook_id: str, fields: dict[str, Any]) -> LorebookEntry:
        """Append an entry with the next integer id (max existing + 1, or 0)."""
        lorebook = self._require(lorebook_id)
        int_ids = [e.id for e in lorebook.entries if isinstance(e.id, int)]
        entry_id = max(int_ids) + 1 if int_ids else 0
        entry = LorebookEntry.model_validate({
            "display_index": entry_id,
            **fields,
            "id": entry_id,
        })
        lorebook.entries.append(entry)
        self.save_lorebook(lorebook_id, lorebook)
        return entry

    def update_entry(
        self, lorebook_id: str, entry_id: int | str, fields: dict[str, Any]
    ) -> LorebookEntry:
        """Merge fields into an entry. The entry id cannot change."""
        lorebook = self._require(lorebook_id)
        for i, entry in enumerate(lorebook.entries):
            if str(entry.id) == str(entry_id):
                merged = {**entry.model_dump(), **fields, "id": entry.id}
                lorebook.entries[i] = LorebookEntry.model_validate(merged)
                self.save_lorebook(lorebook_id, lorebook)
                return lorebook.entries[i]
        raise EntryNotFoundError(entry_id)

    def delete_entry(self, lorebook_id: str, entry_id: int | str) -> None:
        lorebook = self._require(lorebook_id)
        remaining = [e for e in lorebook.entries if str(e.id) != str(entry_id)]
        if len(remaining) == len(lorebook.entries):
            raise EntryNotFoundError(entry_id)
        lorebook.entries = remaining
        self.save_lorebook(lorebook_id, lorebook)

    # ------------------------------------------------------------------
    # Config
    # ------------------------------------------------------------------

    def get_config(self) -> dict[str, Any]:
        """Read config, returning defaults merged with stored values."""
        config = dict(_CONFIG_DEFAULTS)
        path = self._config_file()
        if path.is_file():
            config.update(self._read_json(path))
        return config

    def update_config(self, fields: dict[str, Any]) -> dict[str, Any]:
        """Merge fields into config and persist. Returns full config."""
        config = self.get_config()
        config.update(fields)
        self._write_json(self._config_file(), config)
        return config
