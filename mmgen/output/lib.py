"""Output writing for generated diagrams.

Saves diagrams as ``.mmd`` files and, for project maps, splits a combined
class diagram into one file per component type.
"""

import logging
import re
from dataclasses import dataclass
from pathlib import Path

from ..diagram import DiagramKind, clean_diagram_output, extract_component_sections

logger = logging.getLogger(__name__)

DIAGRAM_EXTENSION = "mmd"

_UNSAFE_CHARS_RE = re.compile(r"[^\w.-]+")


@dataclass
class DiagramOutput:
    """A diagram written to disk.

    Attributes:
        name: Base file name without extension.
        content: Diagram text as written.
        path: Output file path.
    """

    name: str
    content: str
    path: Path


def diagram_filename(*parts: str) -> str:
    """Build a filesystem-safe base name from parts.

    Example:
        >>> diagram_filename("service", "orders/v2", "class")
        'service_orders_v2_class'
    """
    joined = "_".join(p for p in parts if p)
    return _UNSAFE_CHARS_RE.sub("_", joined).strip("_") or "diagram"


class OutputWriter:
    """Writes diagrams into an output directory.

    Example:
        >>> writer = OutputWriter(Path("diagrams"))
        >>> writer.save("project_class", diagram).path
        PosixPath('diagrams/project_class.mmd')
    """

    def __init__(self, out_dir: Path | str):
        """Initialize writer.

        Args:
            out_dir: Directory to write into. Created on first save.
        """
        self._out_dir = Path(out_dir)

    @property
    def out_dir(self) -> Path:
        return self._out_dir

    def save(
        self,
        name: str,
        diagram: str,
        extension: str = DIAGRAM_EXTENSION,
    ) -> DiagramOutput:
        """Clean and save one diagram.

        Args:
            name: Base file name.
            diagram: Diagram text (fenced or not).
            extension: File extension without the dot.

        Returns:
            DiagramOutput describing the written file.
        """
        self._out_dir.mkdir(parents=True, exist_ok=True)
        content = clean_diagram_output(diagram)
        path = self._out_dir / f"{name}.{extension}"
        path.write_text(content + "\n", encoding="utf-8")
        logger.info("Diagram saved to %s", path)
        return DiagramOutput(name=name, content=content, path=path)

    def save_split(self, diagram: str, kind: DiagramKind | str) -> list[DiagramOutput]:
        """Save a project map as one file per component plus the full map.

        Section bodies get their own ``classDiagram`` header so each file
        is a standalone diagram. A map without component sections is saved
        whole as ``project_<kind>``.
        """
        kind = DiagramKind.parse(kind).value
        sections = extract_component_sections(diagram)
        if not sections:
            return [self.save(diagram_filename("project", kind), diagram)]

        outputs = []
        for component, body in sections.items():
            section = f"classDiagram\n{body}"
            try:
                outputs.append(self.save(diagram_filename(component, kind), section))
            except OSError as e:
                logger.warning("Error saving %s: %s", component, e)

        outputs.append(self.save(diagram_filename("project", kind, "full"), diagram))
        return outputs


__all__ = [
    "DIAGRAM_EXTENSION",
    "DiagramOutput",
    "OutputWriter",
    "diagram_filename",
]
