"""Source/sink annotations that tie exemplar documentation to code lines.

Exemplar modules mark the line where tainted input enters with a
``# [source]`` comment and the line where it is used unsafely with
``# [sink]``. Files with several independent pairs number them:
``# [source 2]`` / ``# [sink 2]``. A line may carry both markers when taint
and use coincide.
"""

import functools
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

MARKER_RE = re.compile(r"#.*?\[(source|sink)(?:\s+(\d+))?\]")
_ANY_MARKER_RE = re.compile(r"\[(source|sink)(?:\s+(\d+))?\]")

# Annotation paths are stored relative to the directory holding the packages.
PROJECT_ROOT = Path(__file__).resolve().parent.parent


@dataclass(frozen=True)
class SourceSinkAnnotation:
    """A source/sink line pair inside a named file."""

    file: str
    source_line: int
    sink_line: int
    ordinal: Optional[int] = None

    def __post_init__(self):
        for label, value in (("source_line", self.source_line), ("sink_line", self.sink_line)):
            if not isinstance(value, int) or isinstance(value, bool) or value < 1:
                raise ValueError(f"{label} must be a positive integer, got {value!r}")
        if self.sink_line < self.source_line:
            raise ValueError(
                f"sink line {self.sink_line} precedes source line {self.source_line} in {self.file}"
            )
        if self.ordinal is not None and self.ordinal < 1:
            raise ValueError(f"ordinal must be positive, got {self.ordinal}")

    def resolve(self) -> Path:
        path = Path(self.file)
        return path if path.is_absolute() else PROJECT_ROOT / path

    def snippet(self, context: int = 2) -> str:
        """Return the annotated lines with surrounding context."""
        lines = self.resolve().read_text(encoding="utf-8").split("\n")
        start = max(0, self.source_line - context - 1)
        end = min(len(lines), self.sink_line + context)
        snippet_lines = []
        for i in range(start, end):
            lineno = i + 1
            if lineno == self.source_line and lineno == self.sink_line:
                prefix = "S/K "
            elif lineno == self.source_line:
                prefix = "SRC "
            elif lineno == self.sink_line:
                prefix = "SNK "
            else:
                prefix = "    "
            snippet_lines.append(f"{prefix}{lineno:4d} | {lines[i]}")
        return "\n".join(snippet_lines)

    def to_dict(self) -> dict:
        return {
            "file": self.file,
            "source_line": self.source_line,
            "sink_line": self.sink_line,
            "ordinal": self.ordinal,
        }


def _display_path(path: Path) -> str:
    try:
        return path.relative_to(PROJECT_ROOT).as_posix()
    except ValueError:
        return str(path)


def parse_annotations(content: str, file: str) -> tuple:
    """Pair up the source/sink markers found in ``content``.

    Returns annotations ordered by ordinal (unnumbered pair first).
    Raises ValueError for a marker without its partner or a duplicated marker.
    """
    found = {}
    for lineno, line in enumerate(content.split("\n"), 1):
        comment = MARKER_RE.search(line)
        if not comment:
            continue
        for m in _ANY_MARKER_RE.finditer(line, comment.start()):
            role = m.group(1)
            ordinal = int(m.group(2)) if m.group(2) else None
            slot = found.setdefault(ordinal, {})
            if role in slot:
                label = f"[{role}{'' if ordinal is None else ' ' + str(ordinal)}]"
                raise ValueError(f"{file}:{lineno}: duplicate {label} marker")
            slot[role] = lineno

    annotations = []
    for ordinal in sorted(found, key=lambda o: (o is not None, o or 0)):
        slot = found[ordinal]
        if "source" not in slot or "sink" not in slot:
            missing = "sink" if "source" in slot else "source"
            raise ValueError(f"{file}: pair {ordinal or '(unnumbered)'} has no [{missing}] marker")
        annotations.append(
            SourceSinkAnnotation(
                file=file,
                source_line=slot["source"],
                sink_line=slot["sink"],
                ordinal=ordinal,
            )
        )
    return tuple(annotations)


@functools.lru_cache(maxsize=None)
def collect_annotations(path: str) -> tuple:
    """Parse the annotation markers of a source file (cached per path)."""
    resolved = Path(os.path.abspath(path))
    with open(resolved, "r", encoding="utf-8") as fh:
        content = fh.read()
    return parse_annotations(content, _display_path(resolved))
