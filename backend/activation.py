"""Run the activation engine against stored lorebooks and app settings.

Shared by the /api/activate route and the MCP activate_lorebooks tool.
Per-call overrides use the same keys as the app settings
(lorebookScanDepth, lorebookTokenBudget, lorebookRecursionDepth,
lorebookEnableRecursion).
"""

from typing import Any

from storyloom.activator import LorebookActivator, RandomSource
from storyloom.models import ActivationSettings, LorebookEntry

from backend.store import get_storage


def activate_lorebooks(
    lorebook_ids: list[str],
    scan_text: str,
    overrides: dict[str, Any] | None = None,
    rng: RandomSource | None = None,
) -> list[LorebookEntry]:
    """Load the given lorebooks and return their active entries for scan_text.

    Raises pydantic.ValidationError if a lorebook setting is not a valid number.
    """
    storage = get_storage()
    config = storage.get_config()
    if overrides:
        config.update(overrides)
    activator = LorebookActivator(ActivationSettings.from_config(config), rng=rng)
    return activator.activate(storage.load_lorebooks(lorebook_ids), scan_text)
