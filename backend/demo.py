"""Create a demo lorebook for development/testing."""

import shutil

from backend.store import get_storage
from storyloom.parser import parse_standalone_lorebook

DEMO_LOREBOOK = {
    "name": "Dragon's Hollow",
    "description": "World info for a mountain village terrorized by a young dragon.",
    "entries": {
        "0": {
            "uid": 0,
            "key": ["Dragon's Hollow", "the village"],
            "comment": "Village",
            "content": "Dragon's Hollow is a half-burned village in a mountain pass. "
            "Its people distrust strangers and whisper about Emberwing.",
            "order": 100,
        },
        "1": {
            "uid": 1,
            "key": ["Emberwing"],
            "comment": "The dragon",
            "content": "Emberwing is a young red dragon who nests in the old mine above the village.",
            "order": 200,
        },
        "2": {
            "uid": 2,
            "key": ["old mine"],
            "comment": "The mine",
            "content": "The old mine collapsed decades ago. Dwarven runes still glow on its walls.",
            "order": 300,
        },
        "3": {
            "uid": 3,
            "key": [],
            "constant": True,
            "comment": "Tone",
            "content": "The story is grim but hopeful; magic is rare and feared.",
            "order": 10,
        },
        "4": {
            "uid": 4,
            "key": ["weather", "sky"],
            "comment": "Weather: storm",
            "content": "A storm rolls in over the pass.",
            "group": "weather",
            "order": 100,
        },
        "5": {
            "uid": 5,
            "key": ["weather", "sky"],
            "comment": "Weather: clear",
            "content": "The sky is cold and clear.",
            "group": "weather",
            "order": 100,
        },
    },
}


def create_demo_data() -> str:
    """Wipe existing lorebooks and store the demo lorebook. Returns its id."""
    storage = get_storage()
    lorebooks_dir = storage.lorebooks_dir
    if lorebooks_dir.exists():
        shutil.rmtree(lorebooks_dir)
    lorebooks_dir.mkdir(parents=True, exist_ok=True)
    return storage.import_lorebook(parse_standalone_lorebook(DEMO_LOREBOOK))
