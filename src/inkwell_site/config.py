"""Site configuration for inkwell."""

import pathlib
from dataclasses import dataclass, field
from typing import Optional, Tuple


@dataclass
class SiteConfig:
    """Configuration for building and serving a site.

    Every default is the layout a site is expected to have; only ``root``
    normally changes.
    """

    root: pathlib.Path = field(default_factory=lambda: pathlib.Path("."))
    content_dir: str = "content"
    templates_dir: str = "templates"
    output_dir: str = "output"
    collections: Tuple[str, ...] = ("pages", "projects")
    base_template: str = "base.html"
    site_title: str = "My Site"
    index_document: str = "pages/index.html"
    not_found_document: str = "pages/404.html"
    host: str = "127.0.0.1"
    http_port: int = 7878
    ws_port: int = 7879
    poll_interval: float = 2.0
    restart_grace: float = 1.0
    bind_retries: int = 5
    bind_backoff: float = 0.2
    verbose: bool = False

    def __post_init__(self):
        self.root = pathlib.Path(self.root).resolve()
        self.collections = tuple(self.collections)

    @property
    def content_path(self) -> pathlib.Path:
        return self.root / self.content_dir

    @property
    def templates_path(self) -> pathlib.Path:
        return self.root / self.templates_dir

    @property
    def output_path(self) -> pathlib.Path:
        return self.root / self.output_dir

    def collection_content_path(self, collection: str) -> pathlib.Path:
        """Directory holding the source documents of a collection."""
        return self.content_path / collection

    def collection_output_path(self, collection: str) -> pathlib.Path:
        """Directory the rendered pages of a collection are written to."""
        return self.output_path / collection

    def template_path(self, name: str) -> pathlib.Path:
        return self.templates_path / name

    def reload_url(self, ws_port: Optional[int] = None) -> str:
        """WebSocket URL browsers use for the reload channel."""
        port = self.ws_port if ws_port is None else ws_port
        return f"ws://{self.host}:{port}"
