"""Lorebook parsing for standalone world-info files and V2 card-embedded books.

Two persisted shapes are normalized into the canonical Lorebook model:

  standalone  {"name": ..., "entries": {"0": {...}, "1": {...}}}
              entry fields: uid, key, keysecondary, order, disable,
              excludeRecursion, use_regex, ...
  v2          character_book from a V2 character card:
              {"name": ..., "entries": [{...}, ...]}
              entry fields: keys, secondary_keys, insertion_order, enabled,
              case_sensitive, prevent_recursion, ...

to_standalone_format() writes a Lorebook back out in the standalone shape.
"""

import json
from typing import Any, Literal

from pydantic import ValidationError

from storyloom.models import Lorebook, LorebookEntry, SelectiveLogic

SourceFormat = Literal["standalone", "v2"]

POSITIONS = {
    "before_char": 0,
    "after_char": 1,
    "before_example": 2,
    "after_example": 3,
    "top_an": 4,
    "bottom_an": 5,
    "at_depth": 6,
    "outlet": 7,
}


class LorebookParseError(ValueError):
    """Raised when lorebook data is not valid JSON or lacks an entries collection."""


def _load_json(data: str | bytes | dict) -> dict[str, Any]:
    if isinstance(data, dict):
        return data
    try:
        parsed = json.loads(data)
    except json.JSONDecodeError as e:
        raise LorebookParseError(f"Lorebook is not valid JSON: {e}") from e
    if not isinstance(parsed, dict):
        raise LorebookParseError(f"Lorebook must be a JSON object, got {type(parsed).__name__}")
    return parsed


def _as_list(value: Any) -> list[str]:
    if isinstance(value, list):
        return value
    return [value] if value else []


def _first_set(*values: Any, default: Any = None) -> Any:
    """First value that is not None (the JSON 'present' test)."""
    for value in values:
        if value is not None:
            return value
    return default


def normalize_position(position: Any) -> int:
    """Map a V2 position name to its number; unknown names mean after_char."""
    if isinstance(position, int):
        return position
    return POSITIONS.get(position, 1)


def selective_logic_name(value: int) -> str:
    try:
        return SelectiveLogic(value).name
    except ValueError:
        return SelectiveLogic.AND_ANY.name


def normalize_entry(raw: dict[str, Any], source_format: SourceFormat) -> LorebookEntry:
    """Map one raw entry dict from either format onto LorebookEntry."""
    if not isinstance(raw, dict):
        raise LorebookParseError(f"Lorebook entry must be an object, got {type(raw).__name__}")
    if source_format == "standalone":
        entry_id = raw.get("uid") or raw.get("id") or 0
        fields = {
            "id": entry_id,
            "keys": raw["key"] if isinstance(raw.get("key"), list) else [raw.get("key") or ""],
            "secondary_keys": _as_list(raw.get("keysecondary")),
            "content": raw.get("content") or "",
            "comment": raw.get("comment") or "",
            "enabled": not raw.get("disable"),
            "constant": bool(raw.get("constant")),
            "selective": bool(raw.get("selective")),
            "selective_logic": raw.get("selectiveLogic") or 0,
            "insertion_order": _first_set(raw.get("order"), default=100),
            "position": normalize_position(raw.get("position") or 0),
            "case_sensitive": bool(raw.get("caseSensitive")),
            "match_whole_words": bool(raw.get("matchWholeWords")),
            "use_regex": bool(raw.get("use_regex") or raw.get("useRegex")),
            "probability": _first_set(raw.get("probability"), default=100),
            "use_probability": bool(raw.get("useProbability")),
            "depth": raw.get("depth") or 4,
            "scan_depth": raw.get("scanDepth") or None,
            "group": raw.get("group") or "",
            "prevent_recursion": bool(raw.get("preventRecursion") or raw.get("excludeRecursion")),
            "delay_until_recursion": bool(raw.get("delayUntilRecursion")),
            "display_index": _first_set(raw.get("displayIndex"), raw.get("id"), default=0),
            "extensions": raw.get("extensions") or {},
        }
    else:
        entry_id = raw.get("id") or 0
        fields = {
            "id": entry_id,
            "keys": raw["keys"] if isinstance(raw.get("keys"), list) else [raw.get("keys") or ""],
            "secondary_keys": _as_list(raw.get("secondary_keys")),
            "content": raw.get("content") or "",
            "comment": raw.get("comment") or raw.get("name") or "",
            "enabled": _first_set(raw.get("enabled"), default=True),
            "constant": bool(raw.get("constant")),
            "selective": bool(raw.get("selective")),
            "selective_logic": _first_set(raw.get("selective_logic"), default=0),
            "insertion_order": _first_set(raw.get("insertion_order"), default=raw.get("priority") or 100),
            "position": normalize_position(raw.get("position")),
            "case_sensitive": bool(raw.get("case_sensitive")),
            "match_whole_words": bool(raw.get("match_whole_words")),
            "use_regex": bool(raw.get("use_regex")),
            "probability": _first_set(raw.get("probability"), default=100),
            "use_probability": bool(raw.get("use_probability")),
            "depth": raw.get("depth") or 4,
            "scan_depth": raw.get("scan_depth") or None,
            "group": raw.get("group") or "",
            "prevent_recursion": bool(raw.get("prevent_recursion") or raw.get("excludeRecursion")),
            "delay_until_recursion": bool(raw.get("delay_until_recursion")),
            "display_index": _first_set(raw.get("display_index"), default=entry_id),
            "extensions": raw.get("extensions") or {},
        }
    try:
        return LorebookEntry(**fields)
    except ValidationError as e:
        raise LorebookParseError(f"Invalid lorebook entry {entry_id!r}: {e}") from e


def _lorebook_fields(data: dict[str, Any], default_name: str) -> dict[str, Any]:
    return {
        "name": data.get("name") or default_name,
        "description": data.get("description") or "",
        "scan_depth": data.get("scan_depth") or data.get("scanDepth") or None,
        "token_budget": data.get("token_budget") or data.get("tokenBudget") or None,
        "recursive_scanning": _first_set(data.get("recursive_scanning"), default=True),
        "extensions": data.get("extensions") or {},
    }


def parse_standalone_lorebook(data: str | bytes | dict) -> Lorebook:
    """Parse a standalone world-info file (entries keyed by numeric strings)."""
    book = _load_json(data)
    entries = book.get("entries")
    if entries is None:
        raise LorebookParseError("Invalid lorebook format: missing entries")
    if not isinstance(entries, (dict, list)):
        raise LorebookParseError("Invalid lorebook format: entries must be an object or array")
    raw_entries = entries.values() if isinstance(entries, dict) else entries
    return Lorebook(
        **_lorebook_fields(book, "Untitled Lorebook"),
        entries=[normalize_entry(e, "standalone") for e in raw_entries],
    )


def parse_embedded_lorebook(character_book: dict[str, Any] | None) -> Lorebook:
    """Parse the character_book object embedded in a V2 character card."""
    if not character_book or character_book.get("entries") is None:
        raise LorebookParseError("Invalid embedded lorebook: missing entries")
    return Lorebook(
        **_lorebook_fields(character_book, "Character Lorebook"),
        entries=[normalize_entry(e, "v2") for e in character_book["entries"]],
    )


def parse_lorebook(data: str | bytes | dict) -> Lorebook:
    """Parse either shape: an entries list means V2, an entries map means standalone."""
    book = _load_json(data)
    if isinstance(book.get("entries"), list):
        return parse_embedded_lorebook(book)
    return parse_standalone_lorebook(book)


def to_standalone_format(lorebook: Lorebook) -> dict[str, Any]:
    """Convert a Lorebook back into the standalone file shape for export."""
    entries = {}
    for index, entry in enumerate(lorebook.entries):
        entries[str(index)] = {
            "uid": entry.id,
            "key": entry.keys,
            "keysecondary": entry.secondary_keys,
            "comment": entry.comment,
            "content": entry.content,
            "constant": entry.constant,
            "selective": entry.selective,
            "selectiveLogic": entry.selective_logic,
            "order": entry.insertion_order,
            "position": entry.position,
            "disable": not entry.enabled,
            "caseSensitive": entry.case_sensitive,
            "matchWholeWords": entry.match_whole_words,
            "use_regex": entry.use_regex,
            "probability": entry.probability,
            "useProbability": entry.use_probability,
            "depth": entry.depth,
            "scanDepth": entry.scan_depth,
            "group": entry.group,
            "excludeRecursion": entry.prevent_recursion,
            "delayUntilRecursion": entry.delay_until_recursion,
            "displayIndex": entry.display_index,
            "extensions": entry.extensions,
        }
    return {
        "name": lorebook.name,
        "description": lorebook.description,
        "scan_depth": lorebook.scan_depth,
        "token_budget": lorebook.token_budget,
        "recursive_scanning": lorebook.recursive_scanning,
        "entries": entries,
        "extensions": lorebook.extensions,
    }
