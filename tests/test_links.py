"""Tests for link extraction, rewriting and classification."""

import re

import pytest

from linkharvest.links import (
    LinkKind,
    Rewrite,
    apply_rewrites,
    classify_link,
    count_kinds,
    extract_links,
    extract_links_from_file,
    sort_unique,
)
from linkharvest.profiles import ATO_PROFILE, TIO_PROFILE


class TestExtractLinks:
    """Test pattern extraction from text."""

    def test_ato_link_inside_csv_html(self):
        lines = ['1,"<p>Try it: <a href=""https://ato.pxeger.com/run?1=m72kNGE"">ATO</a></p>"\n']
        assert list(extract_links(lines, ATO_PROFILE.link_pattern)) == ["https://ato.pxeger.com/run?1=m72kNGE"]

    def test_multiple_matches_per_line_in_order(self):
        lines = ["(https://tio.run/##b) and (http://jelly.tryitonline.net/#code=a&amp;input=)"]
        assert list(extract_links(lines, TIO_PROFILE.link_pattern)) == [
            "https://tio.run/##b",
            "http://jelly.tryitonline.net/#code=a&amp;input=",
        ]

    def test_matches_do_not_cross_lines(self):
        lines = ["see https://ato.pxeger.com/run1AB==\n", "next line\n"]
        assert list(extract_links(lines, ATO_PROFILE.link_pattern)) == ["https://ato.pxeger.com/run1AB=="]

    def test_link_stops_at_whitespace(self):
        lines = ["https://tio.run/##abc is short"]
        assert list(extract_links(lines, TIO_PROFILE.link_pattern)) == ["https://tio.run/##abc"]

    def test_other_hosts_are_ignored(self):
        lines = ["https://example.com/tio.run https://ato.pxeger.com/about"]
        assert list(extract_links(lines, ATO_PROFILE.link_pattern)) == []

    def test_compiled_pattern(self):
        assert list(extract_links(["a1 b22"], re.compile(r"\d+"))) == ["1", "22"]

    def test_from_file(self, tmp_path):
        path = tmp_path / "QueryResults.csv"
        path.write_bytes(b'Body\r\n"https://tio.run/##x\xff"\r\n"https://tio.run/nexus/retina#code=a"\r\n')
        links = list(extract_links_from_file(path, TIO_PROFILE.link_pattern))
        assert links == ["https://tio.run/##x\ufffd", "https://tio.run/nexus/retina#code=a"]


class TestRewrite:
    """Test canonicalization rules."""

    def test_ato_missing_question_mark(self):
        rewrite = ATO_PROFILE.output_rewrites[0]
        assert rewrite.apply("https://ato.pxeger.com/run1AB==") == "https://ato.pxeger.com/run?1AB=="

    def test_canonical_form_unchanged(self):
        rewrite = ATO_PROFILE.output_rewrites[0]
        assert rewrite.apply("https://ato.pxeger.com/run?1AB==") == "https://ato.pxeger.com/run?1AB=="
        assert not rewrite.matches("https://ato.pxeger.com/run?1AB==")

    def test_only_first_occurrence_replaced(self):
        assert Rewrite("&amp;", "&").apply("#code=a&amp;input=&amp;args=") == "#code=a&input=&amp;args="

    def test_apply_rewrites_in_order(self):
        rewrites = [Rewrite("a", "b"), Rewrite("b", "c")]
        assert list(apply_rewrites(["a", "x"], rewrites)) == ["c", "x"]


def test_sort_unique():
    urls = ["https://tio.run/##b", "http://v.tryitonline.net/", "https://tio.run/##b", "https://tio.run/##a"]
    assert sort_unique(urls) == ["http://v.tryitonline.net/", "https://tio.run/##a", "https://tio.run/##b"]


def test_sort_unique_uses_code_point_order():
    assert sort_unique(["b", "B", "a", "_"]) == ["B", "_", "a", "b"]


class TestClassifyLink:
    """Test recognition of code runner links."""

    @pytest.mark.parametrize(
        "url, kind",
        [
            ("https://ato.pxeger.com/run?1=m72kNGE", LinkKind.ATO),
            ("https://tio.run/##K0otycxL/P8/", LinkKind.TIO),
            ("https://tio.run/#05ab1e#code=OUxK&input=", LinkKind.TIO),
            ("https://tio.run/nexus/retina#code=VT11&input=", LinkKind.TIO_NEXUS),
            ("http://05ab1e.tryitonline.net/#code=OUxK&input=", LinkKind.TRY_IT_ONLINE),
            ("http://tryitonline.net/", LinkKind.TRY_IT_ONLINE),
            ("https://ato.pxeger.com/about", LinkKind.UNKNOWN),
            ("https://example.com/", LinkKind.UNKNOWN),
            ("ftp://tio.run/", LinkKind.UNKNOWN),
            ("not a url", LinkKind.UNKNOWN),
        ],
    )
    def test_kinds(self, url, kind):
        assert classify_link(url) == kind

    def test_count_kinds(self):
        counts = count_kinds(["https://tio.run/##a", "https://tio.run/##b", "https://example.com/"])
        assert counts == {"ato": 0, "tio": 2, "tio-nexus": 0, "tryitonline": 0, "unknown": 1}
