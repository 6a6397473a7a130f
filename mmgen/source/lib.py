"""Source unit reading.

Locates and reads the code that diagrams are generated from. A unit is a
single file, or the set of files making up a component (``type:name``)
under the conventional ``internal/<dir>`` layout of a Go service.
"""

import logging
from collections.abc import Iterable
from pathlib import Path
from typing import Protocol, runtime_checkable

from ..config import get_source_root

logger = logging.getLogger(__name__)

# Base directories per component type, relative to the source root.
COMPONENT_DIRS: dict[str, tuple[str, ...]] = {
    "service": ("internal/services",),
    "repository": ("internal/repositories",),
    "adapter": ("internal/adapters",),
    "config": ("internal/config",),
    "model": ("internal/models", "internal/model"),
}


class SourceNotFoundError(FileNotFoundError):
    """Raised when a unit or component directory does not exist."""


class InvalidUnitError(ValueError):
    """Raised when a unit identifier cannot be read as source."""


@runtime_checkable
class SourceReader(Protocol):
    """Protocol for anything that can produce source text for a unit."""

    def read_unit(self, identifier: str | Path) -> str:
        """Read one unit.

        Raises:
            SourceNotFoundError: Unit does not exist.
            InvalidUnitError: Unit exists but is not readable source.
        """
        ...


def parse_component_spec(spec: str) -> tuple[str, str]:
    """Split a ``type:name`` component spec.

    Example:
        >>> parse_component_spec("service:orders")
        ('service', 'orders')

    Raises:
        InvalidUnitError: If the spec is not exactly ``type:name``.
    """
    parts = spec.split(":")
    if len(parts) != 2 or not all(p.strip() for p in parts):
        raise InvalidUnitError(
            f"invalid component specification: {spec} (should be 'type:name')"
        )
    return parts[0].strip(), parts[1].strip()


class FileSourceReader:
    """Reads source units from a directory tree.

    Example:
        >>> reader = FileSourceReader("/src/shop")
        >>> code = reader.read_unit("cmd/main.go")
        >>> files = reader.find_component_files("service", "orders")
    """

    def __init__(
        self,
        root: Path | str | None = None,
        extensions: Iterable[str] = (".go",),
    ):
        """Initialize reader.

        Args:
            root: Source root. Defaults to MMGEN_SOURCE_ROOT or the cwd.
            extensions: File suffixes accepted as source.
        """
        self._root = get_source_root(root)
        self._extensions = tuple(e.lower() for e in extensions)

    @property
    def root(self) -> Path:
        return self._root

    @property
    def extensions(self) -> tuple[str, ...]:
        return self._extensions

    def resolve(self, identifier: str | Path) -> Path:
        path = Path(identifier)
        return path if path.is_absolute() else self._root / path

    def validate_unit(self, identifier: str | Path) -> Path:
        """Check a unit path and return it resolved against the root."""
        path = self.resolve(identifier)
        if path.suffix.lower() not in self._extensions:
            raise InvalidUnitError(
                f"{path.name}: expected a file ending in {', '.join(self._extensions)}"
            )
        if not path.exists():
            raise SourceNotFoundError(f"source file not found: {path}")
        if not path.is_file():
            raise InvalidUnitError(f"not a file: {path}")
        return path

    def read_unit(self, identifier: str | Path) -> str:
        path = self.validate_unit(identifier)
        try:
            return path.read_text(encoding="utf-8")
        except UnicodeDecodeError as e:
            raise InvalidUnitError(f"{path} is not UTF-8 text: {e}") from e

    def read_files(self, paths: Iterable[Path], *, label: bool = False) -> str:
        """Read and join several units.

        Args:
            paths: Files to read, in order.
            label: Prefix each file with a ``// File: <name>`` line.
        """
        contents = []
        for path in paths:
            code = self.read_unit(path)
            contents.append(f"// File: {Path(path).name}\n{code}" if label else code)
        return "\n\n".join(contents)

    def find_component_files(self, component_type: str, name: str) -> list[Path]:
        """Find files belonging to one named component.

        Files directly in the component directory match when their name
        contains the component name or type. Adapters usually live in their
        own subdirectory, so every file under a subdirectory whose name ends
        with the component name is included too.

        Raises:
            InvalidUnitError: Unknown component type.
            SourceNotFoundError: The component directory does not exist.
        """
        base = self._component_dir(component_type)
        if base is None:
            raise SourceNotFoundError(
                f"no directory for {component_type} components under {self._root}"
            )

        pattern = name.lower()
        found = []
        for path in sorted(base.rglob("*")):
            if not self._is_source(path):
                continue
            relative = path.relative_to(base)
            if len(relative.parts) == 1:
                file_name = path.name.lower()
                if pattern in file_name or component_type.lower() in file_name:
                    found.append(path)
            elif component_type == "adapter" and any(
                part.lower().endswith(pattern) for part in relative.parts[:-1]
            ):
                found.append(path)

        logger.debug("Found %d file(s) for %s %s", len(found), component_type, name)
        return found

    def find_all_component_files(self, component_types: Iterable[str]) -> list[Path]:
        """Find every source file for the given component types.

        Unknown types and missing directories are skipped.
        """
        found: list[Path] = []
        for component_type in component_types:
            if component_type not in COMPONENT_DIRS:
                logger.debug("Skipping unsupported component type %s", component_type)
                continue
            base = self._component_dir(component_type)
            if base is None:
                continue
            found.extend(p for p in sorted(base.rglob("*")) if self._is_source(p))
        return found

    def _component_dir(self, component_type: str) -> Path | None:
        if component_type not in COMPONENT_DIRS:
            raise InvalidUnitError(f"unsupported component type: {component_type}")
        for candidate in COMPONENT_DIRS[component_type]:
            path = self._root / candidate
            if path.is_dir():
                return path
        return None

    def _is_source(self, path: Path) -> bool:
        return path.is_file() and path.suffix.lower() in self._extensions


__all__ = [
    "COMPONENT_DIRS",
    "FileSourceReader",
    "InvalidUnitError",
    "SourceNotFoundError",
    "SourceReader",
    "parse_component_spec",
]
