"""Convert source documents to HTML and wrap them in templates.

The conversion is line-oriented: every input line becomes exactly
one element. Headings and links are recognised per line; everything else,
blank lines included, becomes its own paragraph.
"""

import pathlib
from typing import List, Optional

from .config import SiteConfig
from .errors import TemplateError

CONTENT_PLACEHOLDER = "{{ content }}"
TITLE_PLACEHOLDER = "{{ title }}"

# Longest marker first so "## " is not read as a level-1 heading.
HEADING_MARKERS = [("#" * level + " ", level) for level in range(6, 0, -1)]


def split_lines(text: str) -> List[str]:
    """Split text into lines; a trailing newline does not add an empty line."""
    if not text:
        return []
    lines = text.split("\n")
    if lines[-1] == "":
        lines.pop()
    return [line[:-1] if line.endswith("\r") else line for line in lines]


def _heading(line: str) -> Optional[str]:
    for marker, level in HEADING_MARKERS:
        if line.startswith(marker):
            return f"<h{level}>{line[len(marker):]}</h{level}>"
    return None


def _link(line: str) -> Optional[str]:
    if not line.startswith("[") or "](" not in line:
        return None
    end_bracket = line.index("]")
    start_paren = line.index("(")
    end_paren = line.find(")")
    if end_paren < start_paren:
        return None
    text = line[1:end_bracket]
    url = line[start_paren + 1 : end_paren]
    return f'<a href="{url}">{text}</a>'


def convert_line(line: str) -> str:
    """Convert a single source line to a single HTML element."""
    return _heading(line) or _link(line) or f"<p>{line}</p>"


def markdown_to_html(text: str) -> str:
    """Convert document text to HTML, one element per line."""
    return "".join(convert_line(line) + "\n" for line in split_lines(text))


def _read_template(path: pathlib.Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise TemplateError(f"Cannot read template {path}: {e}") from e


def apply_template(config: SiteConfig, collection: str, content: str) -> str:
    """Wrap rendered content in the collection template, then the base template."""
    template = _read_template(config.template_path(f"{collection}.html"))
    collection_content = template.replace(CONTENT_PLACEHOLDER, content)

    base = _read_template(config.template_path(config.base_template))
    return base.replace(CONTENT_PLACEHOLDER, collection_content).replace(
        TITLE_PLACEHOLDER, config.site_title
    )


def render(source: str, collection: str, config: SiteConfig) -> str:
    """Render a source document of ``collection`` to a complete HTML page."""
    return apply_template(config, collection, markdown_to_html(source))
