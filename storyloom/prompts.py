"""World-information prompt formatting for activated lorebook entries.

format_for_prompt() and build_world_info_section() produce plain text.
render_prompt() renders a user-supplied Handlebars template; the template
context for lorebook data comes from world_info_context().
"""

from collections.abc import Callable, Sequence
from functools import lru_cache
from typing import Any

import pybars

from storyloom.models import LorebookEntry

WORLD_INFO_HEADER = "=== WORLD INFORMATION ==="

TEMPLATE_CACHE_SIZE = 128

_compiler = pybars.Compiler()


class PromptError(Exception):
    """Raised when a Handlebars template fails to compile or render."""


def _helper_take(this, options, items, count):
    """{{#take array N}}...{{/take}} iterates over the first N items."""
    result = []
    for item in list(items)[:int(count)]:
        result.extend(options["fn"](item))
    return result


_HELPERS: dict[str, Callable] = {
    "take": _helper_take,
}


@lru_cache(maxsize=TEMPLATE_CACHE_SIZE)
def _compile(template_str: str) -> Callable:
    return _compiler.compile(template_str)


def render_prompt(template_str: str, context: dict[str, Any]) -> str:
    """Compile and render a Handlebars template with the given context.

    The most recently used TEMPLATE_CACHE_SIZE templates stay compiled.
    """
    try:
        compiled = _compile(template_str)
        return str(compiled(context, helpers=_HELPERS))
    except Exception as e:
        raise PromptError(f"Template error: {e}") from e


def _entry_text(entry: LorebookEntry, show_comment: bool) -> str:
    if show_comment and entry.comment:
        return f"<!-- {entry.comment} -->\n{entry.content}"
    return entry.content


def format_for_prompt(entries: Sequence[LorebookEntry] | None) -> str:
    """Join entries with blank lines, each preceded by its comment if it has one."""
    if not entries:
        return ""
    return "\n\n".join(_entry_text(e, show_comment=True) for e in entries)


def build_world_info_section(
    entries: Sequence[LorebookEntry] | None,
    show_comments: bool = False,
    header: str = WORLD_INFO_HEADER,
) -> str:
    """Return the world-information block for a generation prompt, or "" if empty."""
    if not entries:
        return ""
    body = "\n\n".join(_entry_text(e, show_comments) for e in entries)
    return f"\n{header}\n\n{body}\n"


def world_info_context(entries: Sequence[LorebookEntry] | None) -> dict[str, Any]:
    """Template variables for lorebook data: has_lorebook, lorebook_entries."""
    entries = entries or []
    return {
        "has_lorebook": bool(entries),
        "lorebook_entries": [
            {"content": e.content, "comment": e.comment, "lorebook": e.lorebook_name or ""}
            for e in entries
        ],
    }
