"""Lorebook activation engine.

Given lorebooks and a window of story text, decides which entries go into the
generation prompt:

  1. Pool entries from every lorebook, tagged with the source lorebook name.
  2. Trim the scan text to its last scan_depth * 4 characters.
  3. Activate entries (constant flag or keyword match, then probability gate),
     then re-scan the content of newly activated entries, up to
     recursion_depth hops.
  4. Sort by insertion_order, ascending.
  5. Collapse each inclusion group to one weighted-random winner.
  6. Keep entries in order until the next one would exceed the token budget.

Nothing here raises for bad entry data: an invalid regex key is logged and
treated as non-matching, and empty input gives an empty result.

Randomness (probability gate, group pick) comes from an injectable source with
a random() method returning a float in [0, 1), so tests can force both
branches. Each call's state (the processed-id set) is local to that call.
"""

from __future__ import annotations

import logging
import random
import re
from collections.abc import Sequence
from typing import Protocol

from storyloom.models import (
    ActivationSettings,
    Key,
    Lorebook,
    LorebookEntry,
    RegexKey,
    SelectiveLogic,
    parse_key,
)

logger = logging.getLogger(__name__)

# Flag letters from "/pattern/flags" keys → re flags; g/u/y do not apply to search()
_REGEX_FLAGS = {"i": re.IGNORECASE, "m": re.MULTILINE, "s": re.DOTALL}


class RandomSource(Protocol):
    def random(self) -> float: ...


# ---------------------------------------------------------------------------
# Key matching
# ---------------------------------------------------------------------------

def _regex_flags(flags: str) -> int:
    value = 0
    for letter in flags:
        value |= _REGEX_FLAGS.get(letter, 0)
    return value


def _match_regex(key: RegexKey, text: str) -> bool:
    try:
        compiled = re.compile(key.pattern, _regex_flags(key.flags))
    except re.error as e:
        logger.warning("Invalid lorebook regex key /%s/%s: %s", key.pattern, key.flags, e)
        return False
    return compiled.search(text) is not None


def match_key(key: Key | str, text: str, entry: LorebookEntry) -> bool:
    """Return True if a single key matches text under the entry's match flags.

    Plain strings are converted with parse_key() using the entry's flags.
    """
    if isinstance(key, str):
        key = parse_key(key, entry.use_regex, entry.case_sensitive)

    if isinstance(key, RegexKey):
        if not key.pattern:
            return False
        return _match_regex(key, text)

    needle = key.text
    if not needle:
        return False
    if not entry.case_sensitive:
        needle = needle.lower()
        text = text.lower()
    if entry.match_whole_words:
        pattern = rf"\b{re.escape(needle)}\b"
        return re.search(pattern, text) is not None
    return needle in text


def _selective_passes(logic: int, matches: list[bool]) -> bool:
    if logic == SelectiveLogic.AND_ANY:
        return any(matches)
    if logic == SelectiveLogic.NOT_ANY:
        return not any(matches)
    if logic == SelectiveLogic.NOT_ALL:
        return not all(matches)
    if logic == SelectiveLogic.AND_ALL:
        return all(matches)
    return True


def check_activation(entry: LorebookEntry, text: str) -> bool:
    """Keyword check: any primary key, then secondary keys per selective logic."""
    if not entry.keys:
        return False
    if not any(match_key(k, text, entry) for k in entry.primary_match_keys):
        return False
    if entry.selective and entry.secondary_keys:
        matches = [match_key(k, text, entry) for k in entry.secondary_match_keys]
        return _selective_passes(entry.selective_logic, matches)
    return True


def scan_window(text: str, max_chars: int) -> str:
    """Return the last max_chars characters of text (recent story matters most)."""
    if len(text) > max_chars:
        return text[-max_chars:]
    return text


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------

class LorebookActivator:
    """Selects active lorebook entries for a scan text.

    Args:
        settings: Scan depth, token budget and recursion tunables.
                  Defaults to ActivationSettings().
        rng:      Random source for probability gates and group picks.
                  Defaults to a fresh random.Random().
    """

    def __init__(
        self,
        settings: ActivationSettings | None = None,
        rng: RandomSource | None = None,
    ) -> None:
        self.settings = settings or ActivationSettings()
        self._rng = rng or random.Random()

    def activate(
        self,
        lorebooks: Sequence[Lorebook] | None,
        scan_text: str | None,
    ) -> list[LorebookEntry]:
        """Return activated entries, sorted by insertion order and within budget."""
        if not lorebooks:
            return []

        pool = [
            entry.model_copy(update={"lorebook_name": book.name})
            for book in lorebooks
            for entry in book.entries
        ]
        if not pool:
            return []

        window = scan_window(scan_text or "", self.settings.scan_chars)
        activated = self.activate_at_depth(pool, window, 0, set())
        activated.sort(key=lambda e: e.insertion_order)
        budgeted = self.apply_token_budget(activated)

        logger.debug(
            "lorebook activation pool=%d activated=%d kept=%d",
            len(pool), len(activated), len(budgeted),
        )
        return budgeted

    def activate_at_depth(
        self,
        entries: Sequence[LorebookEntry],
        scan_text: str,
        depth: int,
        processed_ids: set,
    ) -> list[LorebookEntry]:
        """Activate entries against scan_text, then recurse into their content.

        processed_ids is shared with the recursive calls; every entry added to
        it is never evaluated again in the same activation.
        """
        if depth > self.settings.recursion_depth:
            return []

        activated: list[LorebookEntry] = []

        for entry in entries:
            if entry.id in processed_ids:
                continue
            if not entry.enabled:
                continue
            if entry.delay_until_recursion and depth == 0:
                continue
            if not entry.constant and not check_activation(entry, scan_text):
                continue
            if entry.use_probability and not self.check_probability(entry.probability):
                continue

            activated.append(entry)
            processed_ids.add(entry.id)

        if (
            self.settings.enable_recursion
            and depth < self.settings.recursion_depth
            and activated
        ):
            recursive_text = "\n\n".join(
                e.content for e in activated if not e.prevent_recursion
            )
            if recursive_text:
                activated.extend(
                    self.activate_at_depth(entries, recursive_text, depth + 1, processed_ids)
                )

        return activated

    def check_probability(self, probability: float) -> bool:
        """Roll [0, 100) and pass if below probability."""
        return self._rng.random() * 100 < probability

    def resolve_groups(self, entries: Sequence[LorebookEntry]) -> list[LorebookEntry]:
        """Keep one weighted-random winner per inclusion group.

        Ungrouped entries and winners keep their positions; losers are dropped.
        """
        groups: dict[str, list[int]] = {}
        for i, entry in enumerate(entries):
            if entry.group_key:
                groups.setdefault(entry.group_key, []).append(i)

        winners: set[int] = set()
        for indices in groups.values():
            winners.add(self._pick_weighted(entries, indices))

        return [e for i, e in enumerate(entries) if not e.group_key or i in winners]

    def _pick_weighted(self, entries: Sequence[LorebookEntry], indices: list[int]) -> int:
        """Weight = insertion_order (100 if zero); first cumulative weight >= draw wins."""
        if len(indices) == 1:
            return indices[0]
        weights = [entries[i].insertion_order or 100 for i in indices]
        remaining = self._rng.random() * sum(weights)
        for i, weight in zip(indices, weights):
            remaining -= weight
            if remaining <= 0:
                return i
        return indices[-1]

    def apply_token_budget(self, entries: Sequence[LorebookEntry]) -> list[LorebookEntry]:
        """Resolve groups, then keep entries until the next would overflow the budget."""
        total = 0
        kept: list[LorebookEntry] = []
        for entry in self.resolve_groups(entries):
            cost = entry.token_cost
            if total + cost > self.settings.token_budget:
                break
            kept.append(entry)
            total += cost
        return kept
