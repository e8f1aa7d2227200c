"""Filesystem operations for the to-send and sent folders."""

from __future__ import annotations

import os
import shutil
from pathlib import Path


class FileService:
    """List pending files and move delivered ones."""

    def list_files(self, directory: str | Path) -> list[Path]:
        """Regular files directly inside ``directory``, sorted by name.

        Raises:
            OSError: If the directory can't be read.
        """
        return sorted(
            (entry for entry in Path(directory).iterdir() if entry.is_file()),
            key=lambda entry: entry.name,
        )

    def move_file(self, source: str | Path, destination_dir: str | Path) -> Path:
        """Move ``source`` into ``destination_dir``, keeping its name.

        The destination directory is created when missing. An existing file
        with the same name is never overwritten: the new name is claimed
        atomically (hard link, or exclusive create when linking isn't
        possible) before the source is removed.

        Returns:
            The new path of the file.

        Raises:
            FileExistsError: If the destination already has a file with that name.
            OSError: If the directory can't be created or the move fails.
        """
        source = Path(source)
        destination_dir = Path(destination_dir)
        if not source.name:
            raise ValueError(f"Invalid source path: no filename: {source}")

        destination_dir.mkdir(parents=True, exist_ok=True)
        destination = destination_dir / source.name

        try:
            os.link(source, destination)
        except FileExistsError as e:
            raise FileExistsError(f"{destination} already exists") from e
        except OSError:
            # Different filesystem, or links not supported
            _copy_exclusive(source, destination)

        source.unlink()
        return destination


def _copy_exclusive(source: Path, destination: Path) -> None:
    try:
        dst = open(destination, "xb")
    except FileExistsError as e:
        raise FileExistsError(f"{destination} already exists") from e

    try:
        with dst, open(source, "rb") as src:
            shutil.copyfileobj(src, dst)
        shutil.copystat(source, destination)
    except OSError:
        destination.unlink(missing_ok=True)
        raise
