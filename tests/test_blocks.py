"""Tests for block model extraction."""

import logging

import pytest

from docrender.blocks import BlockExtractor, split_pages, split_segments, strip_tags
from docrender.models import Heading, ImageBlock, ListBlock, PageBreak, Paragraph, Table


class TestStripTags:
    """Tests for markup flattening."""

    def test_removes_markup(self):
        assert strip_tags("<div><b>Dear</b> John,</div>") == "Dear John,"

    def test_entities(self):
        assert strip_tags("<p>Hello&nbsp;World &amp; co</p>") == "Hello World & co"

    def test_line_breaks(self):
        assert strip_tags("<p>line one<br/>line two</p>") == "line one\nline two"

    def test_block_tags_separate_words(self):
        assert strip_tags("<td>A</td><td>B</td>") == "A B"


class TestSplitPages:
    """Tests for explicit page-break splitting."""

    @pytest.mark.parametrize("k", [0, 1, 2, 5])
    def test_k_markers_give_k_plus_one_parts(self, k):
        html = '<div class="page-break"></div>'.join(f"<p>{i}</p>" for i in range(k + 1))
        assert len(split_pages(html)) == k + 1

    def test_marker_variants(self):
        html = "<p>A</p><div class='page-break'></div><p>B</p><div id='x' class=\"foo page-break\"></div><p>C</p>"
        assert len(split_pages(html)) == 3

    def test_similar_class_is_not_a_marker(self):
        assert len(split_pages('<div class="page-break-inside"></div><p>A</p>')) == 1


class TestSplitSegments:
    """Tests for block boundary detection."""

    def test_splits_at_block_openers(self):
        segments = [s for s, _ in split_segments("<p>A</p><h2>T</h2><ul><li>x</li></ul>")]
        assert segments == ["<p>A</p>", "<h2>T</h2>", "<ul><li>x</li></ul>"]

    def test_nested_blocks_stay_in_container(self):
        segments = list(split_segments("<table><tr><td><p>x</p><img src='a'></td></tr></table><p>after</p>"))
        assert len(segments) == 2
        assert segments[0][0].startswith("<table>")

    def test_whitespace_segments_dropped(self):
        segments = [s for s, _ in split_segments("<p>A</p>\n   \n<p>B</p>")]
        assert [s.strip() for s in segments] == ["<p>A</p>", "<p>B</p>"]

    def test_image_inside_open_paragraph_is_inline(self):
        flags = [inline for _, inline in split_segments("<p>Logo <img src='x'> text</p><img src='y'>")]
        assert flags == [False, True, False]


class TestBlockExtractor:
    """Tests for block classification and conversion."""

    def test_page_break_scenario(self, extractor):
        pages = extractor.extract_pages("<p>A</p><div class='page-break'></div><p>B</p>")

        assert len(pages) == 2
        assert pages[0].blocks == (Paragraph("A"),)
        assert pages[1].blocks == (Paragraph("B"),)
        assert [p.number for p in pages] == [1, 2]

    @pytest.mark.parametrize("k", [0, 1, 3])
    def test_page_count_follows_markers(self, extractor, k):
        html = "<p>x</p>" + '<div class="page-break"></div>' * k
        pages = extractor.extract_pages(html)
        assert len(pages) == k + 1
        assert [p.index for p in pages] == list(range(k + 1))

    def test_page_break_blocks_in_flat_sequence(self, extractor):
        blocks = extractor.extract_blocks('<p>A</p><div class="page-break"></div><p>B</p>')
        assert blocks == [Paragraph("A"), PageBreak(), Paragraph("B")]

    def test_plain_div_is_paragraph(self, extractor):
        assert extractor.extract_blocks("<div>Dear John,</div>") == [Paragraph("Dear John,")]

    def test_heading_levels(self, extractor):
        blocks = extractor.extract_blocks("<h1>Title</h1><h4>Sub <em>title</em></h4>")
        assert blocks == [Heading(1, "Title"), Heading(4, "Sub title")]

    def test_unordered_and_ordered_lists(self, extractor):
        blocks = extractor.extract_blocks("<ul><li>one</li><li>two</li></ul><ol><li>first</li></ol>")
        assert blocks == [
            ListBlock(items=("one", "two"), ordered=False),
            ListBlock(items=("first",), ordered=True),
        ]

    def test_list_without_items_degrades_to_paragraph(self, extractor, caplog):
        with caplog.at_level(logging.WARNING):
            blocks = extractor.extract_blocks("<ul>just text</ul>")
        assert blocks == [Paragraph("just text")]
        assert "List has no extractable items" in caplog.text

    def test_table_rows_and_cells(self, extractor):
        html = "<table><tr><th>Name</th><th>Qty</th></tr><tr><td>Widget</td><td>3</td></tr></table>"
        blocks = extractor.extract_blocks(html)
        assert blocks == [Table(rows=(("Name", "Qty"), ("Widget", "3")))]
        assert blocks[0].column_count == 2

    def test_unclosed_row_degrades_to_paragraph(self, extractor, caplog):
        with caplog.at_level(logging.WARNING):
            blocks = extractor.extract_blocks("<table><tr><td>A</td><td>B</td></table>")
        assert blocks == [Paragraph("A B")]
        assert "rendering it as a paragraph" in caplog.text

    def test_unclosed_table_keeps_following_blocks(self, extractor, caplog):
        with caplog.at_level(logging.WARNING):
            blocks = extractor.extract_blocks("<table><tr><td>x</td></tr><p>after</p><h2>Next</h2>")
        assert blocks == [Table(rows=(("x",),)), Paragraph("after"), Heading(2, "Next")]
        assert "Unclosed table or list" in caplog.text

    def test_unclosed_list_keeps_following_blocks(self, extractor):
        blocks = extractor.extract_blocks("<ul><li>a</li><li>b</li><p>after</p>")
        assert blocks == [ListBlock(items=("a", "b")), Paragraph("after")]

    def test_unclosed_table_without_rows_keeps_text(self, extractor):
        assert extractor.extract_blocks("<table><p>loose</p>") == [Paragraph("loose")]

    def test_table_without_rows_degrades_to_paragraph(self, extractor):
        assert extractor.extract_blocks("<table>loose text</table>") == [Paragraph("loose text")]

    def test_malformed_table_does_not_stop_later_pages(self, extractor):
        pages = extractor.extract_pages(
            "<table><tr><td>broken</td></table><div class='page-break'></div><p>next</p>"
        )
        assert pages[0].blocks == (Paragraph("broken"),)
        assert pages[1].blocks == (Paragraph("next"),)

    def test_data_uri_image(self, extractor, png_bytes, png_data_uri):
        blocks = extractor.extract_blocks(f'<img src="{png_data_uri}" width="120" height="80">')
        assert len(blocks) == 1
        image = blocks[0]
        assert isinstance(image, ImageBlock)
        assert image.data == png_bytes
        assert (image.width, image.height) == (120, 80)
        assert image.inline is False

    def test_remote_image_is_fetched(self, extractor, fetcher, png_bytes):
        blocks = extractor.extract_blocks("<img src='https://cdn.example.com/logo.png'>")
        assert blocks[0].data == png_bytes
        assert fetcher.calls == [("https://cdn.example.com/logo.png", 2.0)]

    def test_failed_fetch_skips_only_that_image(self, extractor, caplog):
        with caplog.at_level(logging.WARNING):
            blocks = extractor.extract_blocks("<p>before</p><img src='https://slow.example.com/x.png'><p>after</p>")
        assert blocks == [Paragraph("before"), Paragraph("after")]
        assert "Skipping image" in caplog.text

    def test_image_without_fetcher_is_skipped(self):
        blocks = BlockExtractor().extract_blocks("<img src='https://cdn.example.com/logo.png'><p>ok</p>")
        assert blocks == [Paragraph("ok")]

    def test_image_without_source_is_skipped(self, extractor):
        assert extractor.extract_blocks("<img alt='nothing'>") == []

    def test_inline_image_splits_paragraph(self, extractor, png_data_uri):
        blocks = extractor.extract_blocks(f"<p>Logo <img src='{png_data_uri}'> after</p>")
        assert blocks[0] == Paragraph("Logo")
        assert isinstance(blocks[1], ImageBlock) and blocks[1].inline is True
        assert blocks[2] == Paragraph("after")

    def test_empty_content_gives_one_empty_page(self, extractor):
        pages = extractor.extract_pages("")
        assert len(pages) == 1
        assert pages[0].blocks == ()
