"""File-based storage for route exports."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from pathlib import Path

from ..config import settings


class FileStorage:
    """Thin wrapper around the data root for storing exported route files."""

    def __init__(self, root: Path | None = None) -> None:
        self.root = (root or settings.data_root).resolve()
        self.output_root = self.root / "exports"
        self.output_root.mkdir(parents=True, exist_ok=True)

    def make_run_directory(self, prefix: str = "route") -> Path:
        timestamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
        path = self.output_root / f"{prefix}_{timestamp}_{uuid.uuid4().hex[:6]}"
        path.mkdir(parents=True, exist_ok=False)
        return path

    def write_text(self, path: Path, content: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", encoding="utf-8") as handle:
            handle.write(content)
