from __future__ import annotations

import asyncio
import shutil
from pathlib import Path

from .exceptions import SessionError


class SessionStore:
    """
    On-disk session folder for one instance: `<session_path>/<instance_id>`.

    The transport owns the file format inside the folder; this class only
    creates it and wipes it after a logout.
    """

    def __init__(self, session_path: str | Path, instance_id: str) -> None:
        self.root = Path(session_path)
        self.instance_id = instance_id

    @property
    def path(self) -> Path:
        return self.root / self.instance_id

    def exists(self) -> bool:
        return self.path.is_dir() and any(self.path.iterdir())

    def ensure(self) -> Path:
        try:
            self.path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise SessionError(f"cannot create session folder {self.path}: {e}") from e
        return self.path

    async def purge(self) -> bool:
        """Remove the folder. Returns False when there was nothing to remove."""

        if not self.path.exists():
            return False
        try:
            await asyncio.to_thread(shutil.rmtree, self.path)
        except OSError as e:
            raise SessionError(f"cannot remove session folder {self.path}: {e}") from e
        return True
