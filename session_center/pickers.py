from __future__ import annotations

from typing import Optional, Protocol


class Picker(Protocol):
    """File and folder selection; ``None`` means the user cancelled."""

    async def pick_directory(self, title: str) -> Optional[str]:
        ...

    async def pick_db_file(self, title: str) -> Optional[str]:
        ...
