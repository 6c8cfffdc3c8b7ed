"""Static site builder for inkwell: content collections rendered to HTML."""

__version__ = "2026.10.0"

from .builder import build_site, init_project
from .config import SiteConfig
from .errors import BuildError, InkwellError, ServerError, TemplateError
from .renderer import markdown_to_html, render

__all__ = [
    "__version__",
    "build_site",
    "init_project",
    "markdown_to_html",
    "render",
    "SiteConfig",
    "InkwellError",
    "BuildError",
    "TemplateError",
    "ServerError",
]
