"""NuGet.Config staging from a platform service binding.

A private package feed may need credentials, so users can hand in their own
NuGet.Config through a binding of type "nuget". Until restore and publish are
separated, NuGet only picks the file up from the project directory (or above),
so it is copied into the working directory for the duration of the publish.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from types import TracebackType

from ..errors import BindingResolutionError
from ..utils.bindings import BindingResolver

logger = logging.getLogger(__name__)

NUGET_BINDING_TYPE = "nuget"

# NuGet looks the file up case-sensitively: https://github.com/NuGet/Home/issues/1427
NUGET_CONFIG_FILENAME = "NuGet.Config"

# Owner read/write only; the file may carry feed credentials
STAGED_FILE_MODE = 0o600


class StagedCredential:
    """Release handle for a credential file copied into the working directory.

    Usage:
        staged = stage_nuget_config(platform, workdir, resolver)
        try:
            ...
        finally:
            if staged is not None:
                staged.release()
    """

    def __init__(self, path: str):
        self._path = path
        self._released = False

    @property
    def path(self) -> str:
        """Absolute path of the staged file."""
        return self._path

    @property
    def released(self) -> bool:
        return self._released

    def release(self) -> None:
        """Remove the staged file. Idempotent; a file already gone is fine.

        Raises:
            OSError: If the file exists but cannot be removed
        """
        if self._released:
            return
        try:
            os.remove(self._path)
            logger.debug(f"Removed staged {self._path}")
        except FileNotFoundError:
            logger.debug(f"Staged {self._path} already gone")
        self._released = True

    def __enter__(self) -> StagedCredential:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.release()

    def __repr__(self) -> str:
        return f"StagedCredential(path={self._path!r}, released={self._released})"


def _write_private(path: str, data: bytes) -> None:
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, STAGED_FILE_MODE)
    with os.fdopen(fd, "wb") as f:
        f.write(data)
    # O_CREAT mode only applies to new files
    os.chmod(path, STAGED_FILE_MODE)


def stage_nuget_config(
    platform_path: str,
    working_dir: str,
    resolver: BindingResolver,
) -> StagedCredential | None:
    """Copy a bound NuGet.Config into the working directory.

    Args:
        platform_path: Platform directory (bindings live under <platform>/bindings)
        working_dir: Application working directory
        resolver: Binding resolver

    Returns:
        Release handle for the staged file, or None if no nuget binding exists

    Raises:
        BindingResolutionError: If bindings are ambiguous, the binding lacks a
            NuGet.Config entry, or the file cannot be copied
    """
    binding = resolver.resolve_one(NUGET_BINDING_TYPE, platform_dir=platform_path)
    if binding is None:
        return None

    logger.info("Using NuGet.Config binding")

    source = binding.entries.get(NUGET_CONFIG_FILENAME)
    if source is None:
        raise BindingResolutionError(
            f"binding '{binding.name}' of type '{NUGET_BINDING_TYPE}' "
            f"has no {NUGET_CONFIG_FILENAME} entry"
        )

    try:
        data = Path(source).read_bytes()
    except OSError as e:
        raise BindingResolutionError(f"could not read {source}: {e}") from e

    destination = os.path.join(working_dir, NUGET_CONFIG_FILENAME)
    if os.path.lexists(destination):
        logger.warning(f"Replacing existing {destination} with the bound {NUGET_CONFIG_FILENAME}")
    try:
        _write_private(destination, data)
    except OSError as e:
        try:
            os.remove(destination)
        except FileNotFoundError:
            pass
        raise BindingResolutionError(f"could not stage {destination}: {e}") from e

    logger.debug(f"Staged {source} -> {destination}")
    return StagedCredential(destination)
