"""Platform service binding discovery.

Bindings are looked up under the binding root, which is one of:
1. $SERVICE_BINDING_ROOT (when set)
2. <platform>/bindings

Two on-disk layouts are understood:
- Kubernetes service bindings: <binding>/type, <binding>/provider, entries as files
- Legacy CNB bindings: <binding>/metadata/kind, <binding>/metadata/provider,
  entries under <binding>/secret/
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from ..errors import BindingResolutionError

logger = logging.getLogger(__name__)

# Files that describe a binding rather than carry one of its entries
_METADATA_FILES = frozenset({"type", "provider"})


@dataclass(frozen=True)
class Binding:
    """A single service binding and its entries."""

    name: str
    path: Path
    type: str
    provider: str = ""
    entries: dict[str, Path] = field(default_factory=dict)
    """Entry name → file holding its value."""


def _read_value(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8").strip()
    except UnicodeDecodeError as e:
        raise BindingResolutionError(f"binding file {path} is not valid UTF-8: {e}") from e


def _load_binding(binding_dir: Path) -> Binding | None:
    """Load one binding directory, or None if it is not a binding at all."""
    type_file = binding_dir / "type"
    legacy_kind = binding_dir / "metadata" / "kind"

    if type_file.is_file():
        provider_file = binding_dir / "provider"
        entries = {
            entry.name: entry
            for entry in binding_dir.iterdir()
            if entry.is_file() and entry.name not in _METADATA_FILES
            and not entry.name.startswith("..")
        }
        return Binding(
            name=binding_dir.name,
            path=binding_dir,
            type=_read_value(type_file),
            provider=_read_value(provider_file) if provider_file.is_file() else "",
            entries=entries,
        )

    if legacy_kind.is_file():
        provider_file = binding_dir / "metadata" / "provider"
        secret_dir = binding_dir / "secret"
        entries = {}
        if secret_dir.is_dir():
            entries = {
                entry.name: entry for entry in secret_dir.iterdir() if entry.is_file()
            }
        return Binding(
            name=binding_dir.name,
            path=binding_dir,
            type=_read_value(legacy_kind),
            provider=_read_value(provider_file) if provider_file.is_file() else "",
            entries=entries,
        )

    logger.debug(f"Skipping {binding_dir}: no type or metadata/kind file")
    return None


class BindingResolver:
    """Resolves service bindings by type and optional provider."""

    def __init__(self, service_binding_root: str | None = None):
        """Initialize resolver.

        Args:
            service_binding_root: Explicit binding root ($SERVICE_BINDING_ROOT),
                takes precedence over <platform>/bindings
        """
        self._service_binding_root = service_binding_root

    def binding_root(self, platform_dir: str) -> Path:
        """Directory that holds one subdirectory per binding."""
        if self._service_binding_root:
            return Path(self._service_binding_root)
        return Path(platform_dir) / "bindings"

    def resolve(self, binding_type: str, provider: str = "", platform_dir: str = "") -> list[Binding]:
        """Return all bindings matching type (and provider, if given).

        Comparisons are case-insensitive. A missing binding root is not an error.

        Raises:
            BindingResolutionError: If the binding root or a binding file cannot be read
        """
        root = self.binding_root(platform_dir)
        if not root.is_dir():
            logger.debug(f"No binding root at {root}")
            return []

        matches: list[Binding] = []
        try:
            for binding_dir in sorted(root.iterdir()):
                if not binding_dir.is_dir() or binding_dir.name.startswith("."):
                    continue
                binding = _load_binding(binding_dir)
                if binding is None:
                    continue
                if binding.type.lower() != binding_type.lower():
                    continue
                if provider and binding.provider.lower() != provider.lower():
                    continue
                matches.append(binding)
        except OSError as e:
            raise BindingResolutionError(f"failed to read bindings under {root}: {e}") from e

        return matches

    def resolve_one(self, binding_type: str, provider: str = "", platform_dir: str = "") -> Binding | None:
        """Resolve at most one binding.

        Returns:
            The binding, or None when no binding matches

        Raises:
            BindingResolutionError: If more than one binding matches
        """
        matches = self.resolve(binding_type, provider, platform_dir)
        if not matches:
            return None
        if len(matches) > 1:
            names = ", ".join(b.name for b in matches)
            raise BindingResolutionError(
                f"expected at most 1 binding with type '{binding_type}' "
                f"but got {len(matches)}: {names}"
            )
        return matches[0]
