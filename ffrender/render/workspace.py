"""Per-job temp file namespace."""

import logging
import shutil
from pathlib import Path

logger = logging.getLogger(__name__)


def cleanup_files(*paths: str | Path | None) -> None:
    """Delete files, ignoring ones that are already gone."""
    for path in paths:
        if not path:
            continue
        try:
            Path(path).unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"[CLEANUP] Failed to delete {path}: {e}")


def clear_directory(directory: str | Path, keep: tuple[str, ...] = (".gitkeep",)) -> int:
    """Remove everything inside ``directory`` except ``keep`` names.

    Returns:
        Number of entries removed.
    """
    root = Path(directory)
    root.mkdir(parents=True, exist_ok=True)
    removed = 0
    for entry in root.iterdir():
        if entry.name in keep:
            continue
        try:
            if entry.is_dir() and not entry.is_symlink():
                shutil.rmtree(entry)
            else:
                entry.unlink()
            removed += 1
        except OSError as e:
            logger.warning(f"[CLEANUP] Failed to remove {entry}: {e}")
    return removed


class JobWorkspace:
    """Names and tracks every local file a job creates.

    All names embed the job id so concurrent jobs never collide in the shared
    temp directory. ``cleanup`` deletes every tracked file and may be called
    more than once.
    """

    def __init__(self, job_id: str, root: str | Path):
        self.job_id = job_id
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)
        self._files: list[Path] = []
        self._kept: set[Path] = set()

    @property
    def files(self) -> list[Path]:
        return list(self._files)

    def path(self, suffix: str) -> Path:
        """Reserve ``<root>/<job_id><suffix>`` and track it for cleanup."""
        return self.track(self.root / f"{self.job_id}{suffix}")

    def track(self, path: str | Path) -> Path:
        path = Path(path)
        if path not in self._files:
            self._files.append(path)
        return path

    def keep(self, path: str | Path) -> None:
        """Exclude a tracked file from cleanup (a locally served output)."""
        self._kept.add(Path(path))

    def cleanup(self) -> None:
        targets = [p for p in self._files if p not in self._kept]
        cleanup_files(*targets)
        logger.debug(f"[CLEANUP] Job {self.job_id}: removed {len(targets)} tracked files")
