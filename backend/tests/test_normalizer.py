# tests/test_normalizer.py
import pytest

from novelshelf.core.importing.normalizer import html_to_text, normalize, strip_tags


SAMPLES = [
    "",
    "plain text",
    "<p>One</p><p>Two</p>",
    "<p>  spaced   out  </p>\n\n\n\n<p>next</p>",
    "line one<br/>line two<BR >line three",
    "<script>var a = '<p>';</script><p>kept</p>",
    "<STYLE type='text/css'>p { color: red }</STYLE>text",
    "a < b and c > d",
    "<scr<script>x</script>ipt>alert(1)</script>",
    "<<b>>bold<</b>>",
    "tabs\tand\r\nwindows\rnewlines",
    " non-breaking spaces separator",
    "<div><p>nested <b>bold</b> <i>italic</i></p></div>",
    "   \n\n   ",
]


# ------------------------------------------------------------------
# html_to_text
# ------------------------------------------------------------------

class TestHtmlToText:

    def test_paragraphs_become_blank_line_separated(self):
        assert html_to_text("<p>One</p><p>Two</p>") == "One\n\nTwo"

    def test_line_breaks(self):
        assert html_to_text("a<br>b<br/>c") == "a\nb\nc"

    def test_script_and_style_removed_with_content(self):
        text = html_to_text("<script>alert('x')</script><style>p{}</style><p>Body</p>")
        assert text == "Body"

    def test_script_removal_is_case_insensitive(self):
        assert html_to_text("<SCRIPT>bad()</SCRIPT>good") == "good"

    def test_tags_replaced_by_spaces(self):
        assert html_to_text("one<span>two</span>three") == "one two three"

    def test_inline_whitespace_collapsed_and_lines_trimmed(self):
        assert html_to_text("  a   b \t c  \n   d  ") == "a b c\nd"

    def test_runs_of_blank_lines_collapse(self):
        assert html_to_text("a\n\n\n\n\nb") == "a\n\nb"

    def test_empty_input(self):
        assert html_to_text("") == ""
        assert html_to_text(None) == ""

    def test_normalize_is_html_to_text(self):
        assert normalize is html_to_text

    @pytest.mark.parametrize("markup", SAMPLES)
    def test_idempotent(self, markup):
        once = html_to_text(markup)
        assert html_to_text(once) == once

    @pytest.mark.parametrize("markup", SAMPLES)
    def test_output_has_no_tags_or_edge_whitespace(self, markup):
        text = html_to_text(markup)
        assert text == text.strip()
        assert "\n\n\n" not in text
        assert "<script" not in text.lower()
        assert all(line == line.strip() for line in text.split("\n"))


# ------------------------------------------------------------------
# strip_tags
# ------------------------------------------------------------------

class TestStripTags:

    def test_collapses_everything_to_single_spaces(self):
        assert strip_tags("<p>One</p>\n\n<p>Two</p>") == "One Two"

    def test_empty(self):
        assert strip_tags("") == ""
