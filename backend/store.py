"""Process-wide Storage instance shared by the routes and the MCP server."""

from pathlib import Path

from storyloom.storage import Storage

_storage: Storage | None = None


def init_storage(data_dir: Path) -> Storage:
    global _storage
    data_dir.mkdir(parents=True, exist_ok=True)
    _storage = Storage(data_dir)
    return _storage


def get_storage() -> Storage:
    assert _storage is not None, "Call init_storage() before using storage"
    return _storage
