"""Data model shared by the builder and the live server."""

import pathlib
from dataclasses import dataclass, field
from typing import List


@dataclass
class SourceDocument:
    """A content file discovered during a build pass."""

    path: pathlib.Path
    collection: str
    text: str
    mtime: float

    @property
    def stem(self) -> str:
        return self.path.stem


@dataclass
class RenderedPage:
    """HTML produced for one source document, not yet written."""

    output_path: pathlib.Path
    html: bytes
    source: SourceDocument


@dataclass
class BuildResult:
    """Summary of a full build."""

    pages: List[RenderedPage] = field(default_factory=list)
    duration_ms: float = 0.0

    @property
    def page_count(self) -> int:
        return len(self.pages)
