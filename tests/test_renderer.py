"""Tests for the line-oriented renderer and template application."""

import pytest

from inkwell_site.errors import TemplateError
from inkwell_site.renderer import (
    apply_template,
    convert_line,
    markdown_to_html,
    render,
    split_lines,
)


@pytest.mark.parametrize("level", range(1, 7))
def test_heading_levels(level):
    line = "#" * level + " Title text"
    assert convert_line(line) == f"<h{level}>Title text</h{level}>"


def test_heading_requires_space():
    assert convert_line("#Title") == "<p>#Title</p>"


def test_seven_hashes_is_not_a_heading():
    # Only the first six markers form the level; the rest is content.
    assert convert_line("####### x") == "<p>####### x</p>"


def test_heading_rendered_once_per_line():
    html = markdown_to_html("## Two\n## Two")
    assert html.count("<h2>Two</h2>") == 2
    assert "<h1>" not in html


def test_link_line():
    assert convert_line("[go](http://x)") == '<a href="http://x">go</a>'


def test_link_uses_first_brackets_and_parens():
    assert convert_line("[a](b) and (c)") == '<a href="b">a</a>'


def test_link_is_evaluated_per_line():
    html = markdown_to_html("[go\n](http://x)")
    assert html == "<p>[go</p>\n<p>](http://x)</p>\n"


def test_link_with_closing_paren_before_open_is_paragraph():
    assert convert_line("[a)](b") == "<p>[a)](b</p>"


def test_plain_line_is_paragraph():
    assert convert_line("Just text") == "<p>Just text</p>"


def test_blank_lines_become_empty_paragraphs():
    assert markdown_to_html("a\n\nb") == "<p>a</p>\n<p></p>\n<p>b</p>\n"


def test_no_escaping():
    assert convert_line("<b>bold</b>") == "<p><b>bold</b></p>"


@pytest.mark.parametrize(
    "text",
    [
        "one",
        "# h\n[l](u)\n\ntext",
        "a\n\n\n\nb\n",
        "###### deep\n# top\nplain\r\nmore\r\n",
    ],
)
def test_one_element_per_line(text):
    html = markdown_to_html(text)
    assert len(html.splitlines()) == len(split_lines(text))


def test_split_lines_trailing_newline_and_crlf():
    assert split_lines("") == []
    assert split_lines("a\n") == ["a"]
    assert split_lines("a\r\nb") == ["a", "b"]
    assert split_lines("\n") == [""]


def test_apply_template_nests_collection_in_base(config):
    html = apply_template(config, "pages", "<p>x</p>\n")
    assert html == (
        "<html><head><title>My Site</title></head>"
        "<body><main><p>x</p>\n</main></body></html>"
    )


def test_render_projects_collection(config):
    html = render("## Demo", "projects", config)
    assert "<article><h2>Demo</h2>\n</article>" in html


def test_missing_collection_template(config):
    with pytest.raises(TemplateError):
        render("text", "drafts", config)


def test_missing_base_template(config):
    (config.templates_path / "base.html").unlink()
    with pytest.raises(TemplateError):
        render("text", "pages", config)


def test_undecodable_template(config):
    (config.templates_path / "pages.html").write_bytes(b"\xff\xfe{{ content }}")
    with pytest.raises(TemplateError, match="pages.html"):
        render("text", "pages", config)
