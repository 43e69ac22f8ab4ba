"""Tests for the bleach-backed sanitizer."""

import logging

import pytest

from docrender.errors import ValidationFailure
from docrender.sanitizer import BleachSanitizer, close_dangling_tables


@pytest.fixture
def sanitizer():
    return BleachSanitizer()


class TestBleachSanitizer:
    """Allowlist behavior."""

    def test_script_rejected(self, sanitizer):
        with pytest.raises(ValidationFailure) as excinfo:
            sanitizer.sanitize("<p>hi</p><script>alert(1)</script>", "content")
        assert excinfo.value.status_code == 400
        assert excinfo.value.details == {"field": "content"}

    def test_script_rejected_case_insensitive(self, sanitizer):
        with pytest.raises(ValidationFailure, match="header"):
            sanitizer.sanitize("< SCRIPT src='x'></SCRIPT>", "header")

    def test_event_handlers_stripped(self, sanitizer):
        cleaned = sanitizer.sanitize('<p onclick="steal()">hi</p>', "content")
        assert cleaned == "<p>hi</p>"

    def test_iframe_removed(self, sanitizer, caplog):
        with caplog.at_level(logging.WARNING):
            cleaned = sanitizer.sanitize('<p>a</p><iframe src="https://evil.example.com"></iframe>', "content")
        assert "iframe" not in cleaned
        assert "Removing 1 iframe(s) from content" in caplog.text

    def test_page_break_marker_kept(self, sanitizer):
        html = '<p>A</p><div class="page-break"></div><p>B</p>'
        assert sanitizer.sanitize(html, "content") == html

    def test_data_uri_image_kept(self, sanitizer, png_data_uri):
        cleaned = sanitizer.sanitize(f'<img src="{png_data_uri}" width="10">', "content")
        assert png_data_uri in cleaned
        assert 'width="10"' in cleaned

    def test_javascript_href_removed(self, sanitizer):
        cleaned = sanitizer.sanitize('<a href="javascript:alert(1)">x</a>', "content")
        assert "javascript" not in cleaned

    def test_disallowed_css_dropped(self, sanitizer):
        cleaned = sanitizer.sanitize('<p style="color: red; position: fixed">x</p>', "content")
        assert "color:" in cleaned
        assert "red" in cleaned
        assert "position" not in cleaned

    def test_placeholders_survive(self, sanitizer):
        html = "<div>{{company}} - Page {{page}}</div>"
        assert sanitizer.sanitize(html, "footer") == html

    def test_empty_input(self, sanitizer):
        assert sanitizer.sanitize("", "footer") == ""

    def test_unclosed_table_keeps_following_content(self, sanitizer, caplog):
        with caplog.at_level(logging.WARNING):
            cleaned = sanitizer.sanitize("<table><tr><td>x</td></tr><p>after</p>", "content")
        assert "after" in cleaned
        assert cleaned.index("</table>") < cleaned.index("after")
        assert "Closing unclosed table in content" in caplog.text


class TestCloseDanglingTables:
    """Repair of unclosed tables before cleaning."""

    def test_closed_after_last_row(self):
        html = "<table><tr><td>a</td></tr><tr><td>b</td></tr><p>after</p>"
        assert close_dangling_tables(html) == (
            "<table><tr><td>a</td></tr><tr><td>b</td></tr></table><p>after</p>"
        )

    def test_balanced_markup_untouched(self):
        html = "<table><tr><td>a</td></tr></table><p>after</p>"
        assert close_dangling_tables(html) == html

    def test_no_rows_closed_at_end(self):
        assert close_dangling_tables("<table>text") == "<table>text</table>"
