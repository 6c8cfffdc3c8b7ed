"""Shared fixtures for inkwell tests."""

import os
import time

import pytest

from inkwell_site.config import SiteConfig

BASE_TEMPLATE = "<html><head><title>{{ title }}</title></head><body>{{ content }}</body></html>"
PAGES_TEMPLATE = "<main>{{ content }}</main>"
PROJECTS_TEMPLATE = "<article>{{ content }}</article>"


@pytest.fixture
def site_root(tmp_path):
    """A minimal site with both collections, templates and a 404 page."""
    root = tmp_path / "site"
    pages = root / "content" / "pages"
    projects = root / "content" / "projects"
    templates = root / "templates"
    for directory in (pages, projects, templates):
        directory.mkdir(parents=True)

    (pages / "index.md").write_text("# Home\nWelcome")
    (pages / "404.md").write_text("# Missing")
    (projects / "demo.md").write_text("## Demo\n[repo](http://example.com)")

    (templates / "base.html").write_text(BASE_TEMPLATE)
    (templates / "pages.html").write_text(PAGES_TEMPLATE)
    (templates / "projects.html").write_text(PROJECTS_TEMPLATE)
    return root


@pytest.fixture
def config(site_root):
    """Config for the test site with OS-assigned ports and fast polling."""
    return SiteConfig(
        root=site_root,
        http_port=0,
        ws_port=0,
        poll_interval=0.05,
        restart_grace=2.0,
        bind_retries=3,
        bind_backoff=0.05,
    )


def wait_until(predicate, timeout=5.0, interval=0.02):
    """Poll ``predicate`` until it is truthy or the timeout passes."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return bool(predicate())


def touch_later(path, text=None, seconds=5):
    """Rewrite ``path`` and push its mtime clearly past anything seen so far."""
    if text is not None:
        path.write_text(text)
    future = time.time() + seconds
    os.utime(path, (future, future))
