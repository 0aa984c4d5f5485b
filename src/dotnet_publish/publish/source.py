"""Working directory replacement with publish output.

Destructive: every entry of the working directory that is not a preserved
build-metadata file is deleted, then the publish output is moved in. There is
no rollback; a failure mid-way aborts immediately.
"""

from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path

from ..errors import SourceRemovalError

logger = logging.getLogger(__name__)


def _is_within(path: Path, root: Path) -> bool:
    try:
        path.relative_to(root)
    except ValueError:
        return False
    return True


class SourceReplacer:
    """Replaces a working directory's contents with publish output."""

    def _check_output(self, output_dir: Path, working_dir: Path, excluded: frozenset[str]) -> None:
        """Pre-flight checks; nothing has been touched yet when these fail."""
        if not output_dir.is_dir():
            raise SourceRemovalError(f"publish output directory does not exist: {output_dir}")
        if _is_within(output_dir, working_dir):
            raise SourceRemovalError(
                f"publish output directory {output_dir} is inside working directory {working_dir}"
            )
        for dirpath, dirnames, filenames in os.walk(output_dir):
            for name in (*dirnames, *filenames):
                if name in excluded:
                    raise SourceRemovalError(
                        f"publish output contains reserved entry "
                        f"{os.path.join(dirpath, name)}"
                    )

    def _prune(self, path: Path, excluded: frozenset[str]) -> bool:
        """Delete everything under path except excluded names.

        Returns:
            True if path was kept (it is, or contains, an excluded entry)
        """
        if path.name in excluded:
            return True
        if path.is_symlink() or not path.is_dir():
            path.unlink()
            return False

        kept = False
        for child in sorted(path.iterdir()):
            if self._prune(child, excluded):
                kept = True
        if not kept:
            path.rmdir()
        return kept

    def _move_into(self, source: Path, destination: Path) -> None:
        """Move source to destination, merging into a directory kept by pruning."""
        if not os.path.lexists(destination):
            shutil.move(str(source), str(destination))
            return
        if destination.is_dir() and not destination.is_symlink() and source.is_dir():
            for child in sorted(source.iterdir()):
                self._move_into(child, destination / child.name)
            source.rmdir()
            return
        raise SourceRemovalError(f"cannot move {source}: {destination} already exists")

    def replace(self, working_dir: str, output_dir: str, *exclusions: str) -> None:
        """Replace working_dir contents with output_dir contents.

        Args:
            working_dir: Directory whose source is removed
            output_dir: Directory holding the publish output
            *exclusions: File names preserved wherever they occur in working_dir

        Raises:
            SourceRemovalError: On the first deletion or move failure, or if
                the output could clobber a preserved entry
        """
        work = Path(working_dir).resolve()
        output = Path(output_dir).resolve()
        excluded = frozenset(exclusions)

        self._check_output(output, work, excluded)

        try:
            children = sorted(work.iterdir())
        except OSError as e:
            raise SourceRemovalError(f"could not list {work}: {e}") from e

        for child in children:
            try:
                if self._prune(child, excluded):
                    logger.debug(f"Preserved {child}")
            except OSError as e:
                raise SourceRemovalError(f"could not remove {child}: {e}") from e

        try:
            entries = sorted(output.iterdir())
        except OSError as e:
            raise SourceRemovalError(f"could not list {output}: {e}") from e

        for entry in entries:
            try:
                self._move_into(entry, work / entry.name)
            except OSError as e:
                raise SourceRemovalError(f"could not move {entry} into {work}: {e}") from e

        logger.debug(f"Replaced {work} with {len(entries)} publish output entries")
