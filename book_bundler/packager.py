from __future__ import annotations

import zipfile
from pathlib import Path
from typing import List


class PackagingError(RuntimeError):
    """Raised when the archive could not be produced."""


def collect_files(root: Path) -> List[Path]:
    return sorted(path for path in root.rglob("*") if path.is_file())


def zip_directory(root: Path, archive_path: Path) -> int:
    """Archive every file under ``root`` with paths relative to it.

    A failed or empty archive is removed before the error is raised.
    """
    files = collect_files(root)
    archive_path.parent.mkdir(parents=True, exist_ok=True)
    added = 0
    try:
        with zipfile.ZipFile(archive_path, "w", compression=zipfile.ZIP_DEFLATED) as archive:
            for path in files:
                archive.write(path, path.relative_to(root).as_posix())
                added += 1
    except (OSError, zipfile.BadZipFile) as exc:
        archive_path.unlink(missing_ok=True)
        raise PackagingError(f"Could not write {archive_path.name}: {exc}") from exc
    if added == 0:
        archive_path.unlink(missing_ok=True)
        raise PackagingError(f"No files found to archive in {root}.")
    return added
