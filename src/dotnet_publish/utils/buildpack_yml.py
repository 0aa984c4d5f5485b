"""Legacy buildpack.yml parsing."""

from __future__ import annotations

import logging
import os
from typing import Any

import yaml

from ..errors import ParseError

logger = logging.getLogger(__name__)

BUILDPACK_YML = "buildpack.yml"
CONFIG_SECTION = "dotnet-build"
PROJECT_PATH_KEY = "project-path"


def _load(path: str) -> Any:
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f)


def parse_project_path(path: str) -> str:
    """Read `dotnet-build.project-path` from a buildpack.yml file.

    Args:
        path: Path to buildpack.yml

    Returns:
        Project path, or an empty string when the file or key is absent

    Raises:
        ParseError: If the file exists but is not valid YAML of the expected shape
    """
    if not os.path.exists(path):
        logger.debug(f"No {BUILDPACK_YML} at {path}")
        return ""

    try:
        document = _load(path)
    except yaml.YAMLError as e:
        raise ParseError(f"invalid {BUILDPACK_YML} at {path}: {e}") from e
    except UnicodeDecodeError as e:
        raise ParseError(f"invalid {BUILDPACK_YML} at {path}: not valid UTF-8: {e}") from e
    except OSError as e:
        raise ParseError(f"could not read {BUILDPACK_YML} at {path}: {e}") from e

    if document is None:
        return ""
    if not isinstance(document, dict):
        raise ParseError(f"invalid {BUILDPACK_YML} at {path}: expected a mapping")

    section = document.get(CONFIG_SECTION)
    if section is None:
        return ""
    if not isinstance(section, dict):
        raise ParseError(
            f"invalid {BUILDPACK_YML} at {path}: '{CONFIG_SECTION}' must be a mapping"
        )

    project_path = section.get(PROJECT_PATH_KEY)
    if project_path is None:
        return ""
    if not isinstance(project_path, str):
        raise ParseError(
            f"invalid {BUILDPACK_YML} at {path}: "
            f"'{CONFIG_SECTION}.{PROJECT_PATH_KEY}' must be a string"
        )

    return project_path.strip()
