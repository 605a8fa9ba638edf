"""Core domain models.

The activation engine, parser, storage and routes all operate on these types.
Pydantic is used for validation and serialisation at every data boundary.
Persisted JSON uses camelCase field names (the shape the frontend expects);
Python code uses the snake_case attribute names.
"""

from __future__ import annotations

import math
import re
from enum import IntEnum
from functools import cached_property
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

CHARS_PER_TOKEN = 4

_DELIMITED_REGEX = re.compile(r"^/(.+)/([gimuy]*)$")


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SelectiveLogic(IntEnum):
    """How secondary-key matches combine with a primary-key match."""

    AND_ANY = 0
    NOT_ANY = 1
    NOT_ALL = 2
    AND_ALL = 3


# ---------------------------------------------------------------------------
# Keys: a trigger is either a literal string or a regex with flags
# ---------------------------------------------------------------------------

class LiteralKey(BaseModel):
    model_config = ConfigDict(frozen=True)

    text: str


class RegexKey(BaseModel):
    model_config = ConfigDict(frozen=True)

    pattern: str
    flags: str = ""  # letters from "/pattern/flags": i, m, g, u, y


Key = LiteralKey | RegexKey


def parse_key(raw: str, use_regex: bool = False, case_sensitive: bool = False) -> Key:
    """Turn a stored key string into a LiteralKey or RegexKey.

    "/pattern/flags" is only unwrapped for regex entries; a literal entry
    keeps a slash-wrapped key as plain text.
    """
    if not use_regex:
        return LiteralKey(text=raw)
    m = _DELIMITED_REGEX.match(raw)
    if m:
        return RegexKey(pattern=m.group(1), flags=m.group(2))
    return RegexKey(pattern=raw, flags="" if case_sensitive else "i")


# ---------------------------------------------------------------------------
# Entries and lorebooks
# ---------------------------------------------------------------------------

class LorebookEntry(CamelModel):
    """One keyword-triggered world-info snippet, in canonical form."""

    id: int | str = 0
    keys: list[str] = Field(default_factory=list)
    secondary_keys: list[str] = Field(default_factory=list)
    content: str = ""
    comment: str = ""
    enabled: bool = True
    constant: bool = False
    selective: bool = False
    selective_logic: int = 0  # SelectiveLogic value; unknown values pass permissively
    insertion_order: int = 100
    case_sensitive: bool = False
    match_whole_words: bool = False
    use_regex: bool = False
    probability: float = 100
    use_probability: bool = False
    group: str = ""
    prevent_recursion: bool = False
    delay_until_recursion: bool = False

    # Stored for round-trips; the engine ignores these
    position: int = 1
    depth: int = 4
    scan_depth: int | None = None
    display_index: int | str | None = None
    extensions: dict[str, Any] = Field(default_factory=dict)

    # Set on the copies returned by the activation engine
    lorebook_name: str | None = None

    # Parsed once per entry; the stored key strings stay as they are
    @cached_property
    def primary_match_keys(self) -> tuple[Key, ...]:
        return tuple(parse_key(k, self.use_regex, self.case_sensitive) for k in self.keys)

    @cached_property
    def secondary_match_keys(self) -> tuple[Key, ...]:
        return tuple(parse_key(k, self.use_regex, self.case_sensitive) for k in self.secondary_keys)

    @property
    def group_key(self) -> str:
        return (self.group or "").strip()

    @property
    def token_cost(self) -> int:
        """Estimated tokens, ~4 characters per token, rounded up."""
        return math.ceil(len(self.content) / CHARS_PER_TOKEN)


class Lorebook(CamelModel):
    """A named, ordered collection of entries."""

    name: str = "Untitled Lorebook"
    description: str = ""
    scan_depth: int | None = None
    token_budget: int | None = None
    recursive_scanning: bool = True
    entries: list[LorebookEntry] = Field(default_factory=list)
    extensions: dict[str, Any] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Per-call engine configuration
# ---------------------------------------------------------------------------

class ActivationSettings(CamelModel):
    scan_depth: int = 2000  # tokens of story tail to scan
    token_budget: int = 1800  # max tokens of lorebook content
    recursion_depth: int = 3
    enable_recursion: bool = True

    @property
    def scan_chars(self) -> int:
        return self.scan_depth * CHARS_PER_TOKEN

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> ActivationSettings:
        """Build settings from app config keys (lorebookScanDepth etc.).

        Zero or missing numbers fall back to the defaults; recursion is only
        disabled by an explicit False.
        """
        defaults = cls()
        return cls(
            scan_depth=config.get("lorebookScanDepth") or defaults.scan_depth,
            token_budget=config.get("lorebookTokenBudget") or defaults.token_budget,
            recursion_depth=config.get("lorebookRecursionDepth") or defaults.recursion_depth,
            enable_recursion=config.get("lorebookEnableRecursion") is not False,
        )
