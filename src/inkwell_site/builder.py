"""Full site builds: every collection is rendered and written on each call."""

import logging
import pathlib
import time
from typing import List

from .config import SiteConfig
from .errors import BuildError
from .model import BuildResult, RenderedPage, SourceDocument
from .renderer import render

logger = logging.getLogger(__name__)


def discover_documents(config: SiteConfig, collection: str) -> List[SourceDocument]:
    """Read the plain files directly under a collection's content directory.

    Subdirectories are not descended into. Files are returned in name order so
    repeated builds write identical output.
    """
    content_dir = config.collection_content_path(collection)
    try:
        entries = sorted(content_dir.iterdir())
        documents = []
        for path in entries:
            if not path.is_file():
                continue
            documents.append(
                SourceDocument(
                    path=path,
                    collection=collection,
                    text=path.read_text(encoding="utf-8"),
                    mtime=path.stat().st_mtime,
                )
            )
    except (OSError, UnicodeDecodeError) as e:
        raise BuildError(f"Cannot read collection {collection!r} at {content_dir}: {e}") from e
    return documents


def render_collection(config: SiteConfig, collection: str) -> List[RenderedPage]:
    """Render every document in a collection without writing anything."""
    output_dir = config.collection_output_path(collection)
    pages = []
    for document in discover_documents(config, collection):
        html = render(document.text, collection, config)
        pages.append(
            RenderedPage(
                output_path=output_dir / f"{document.stem}.html",
                html=html.encode("utf-8"),
                source=document,
            )
        )
    return pages


def write_pages(config: SiteConfig, pages: List[RenderedPage]) -> None:
    """Write rendered pages, creating each collection's output directory."""
    for collection in config.collections:
        output_dir = config.collection_output_path(collection)
        try:
            output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise BuildError(f"Cannot create output directory {output_dir}: {e}") from e

    for page in pages:
        try:
            page.output_path.write_bytes(page.html)
        except OSError as e:
            raise BuildError(f"Cannot write {page.output_path}: {e}") from e
        logger.debug(f"Wrote {page.source.path} -> {page.output_path}")


def build_site(config: SiteConfig) -> BuildResult:
    """Rebuild the whole site.

    All collections are rendered before the first file is written, so a missing
    content directory or template leaves the previous output untouched. A write
    failure aborts the remaining writes; pages already written are kept.

    Raises:
        BuildError: If content, templates or output can't be read or written.
    """
    start = time.perf_counter()
    pages: List[RenderedPage] = []
    for collection in config.collections:
        pages.extend(render_collection(config, collection))

    write_pages(config, pages)

    result = BuildResult(pages=pages, duration_ms=(time.perf_counter() - start) * 1000)
    logger.debug(f"Built {result.page_count} pages into {config.output_path}")
    return result


STARTER_FILES = {
    "content/pages/index.md": "# Welcome\nThis site was built by inkwell.\n[Projects](/projects/example.html)\n",
    "content/pages/404.md": "# Not Found\nThe page you requested does not exist.\n[Home](/)\n",
    "content/projects/example.md": "# Example Project\nDescribe your project here.\n",
    "templates/base.html": (
        "<!DOCTYPE html>\n<html>\n<head>\n<meta charset=\"utf-8\">\n"
        "<title>{{ title }}</title>\n</head>\n<body>\n{{ content }}\n</body>\n</html>\n"
    ),
    "templates/pages.html": '<main class="page">\n{{ content }}\n</main>\n',
    "templates/projects.html": '<article class="project">\n{{ content }}\n</article>\n',
}


def init_project(project_dir: pathlib.Path) -> None:
    """Create a starter site with content, templates and a 404 page.

    Existing files are left alone.
    """
    project_dir = pathlib.Path(project_dir)
    for relative, text in STARTER_FILES.items():
        path = project_dir / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        if not path.exists():
            path.write_text(text, encoding="utf-8")
