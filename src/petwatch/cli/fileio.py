"""Small async file helpers shared by the cache and the queue."""

from __future__ import annotations

import anyio


async def atomic_write_text(path: anyio.Path, content: str) -> None:
    """Write ``content`` to ``path`` through a temp file and a rename.

    Readers see either the old document or the new one, never a partial write.

    Raises:
        OSError: If the directory cannot be created or the write fails.
    """
    await path.parent.mkdir(parents=True, exist_ok=True)
    temp_path = path.with_name(f".{path.name}.tmp")
    try:
        await temp_path.write_text(content, encoding="utf-8")
        await temp_path.replace(path)
    finally:
        if await temp_path.exists():
            await temp_path.unlink(missing_ok=True)
