"""Tests for urls module."""
import pytest

from puremark.urls import (
    detect_clipboard_link,
    extract_domain_name,
    is_valid_image_url,
    is_valid_tag,
    is_valid_url,
    normalize_url,
)


class TestNormalizeUrl:
    def test_strips_root_slash(self):
        assert normalize_url("https://example.com/") == "https://example.com"

    def test_keeps_path_and_query(self):
        assert normalize_url("  https://example.com/a/?q=1 ") == "https://example.com/a/?q=1"

    def test_root_slash_with_query(self):
        assert normalize_url("https://example.com/?q=1") == "https://example.com?q=1"

    def test_unparsable_is_trimmed(self):
        assert normalize_url("  not a url ") == "not a url"


class TestValidation:
    @pytest.mark.parametrize("url", ["https://a.com", "http://localhost:3000/x", "ftp://files.example.org"])
    def test_valid_urls(self, url):
        assert is_valid_url(url)

    @pytest.mark.parametrize("url", ["", None, "example.com", "https://", "just words"])
    def test_invalid_urls(self, url):
        assert not is_valid_url(url)

    def test_image_urls(self):
        assert is_valid_image_url("")
        assert is_valid_image_url(None)
        assert is_valid_image_url("https://a.com/favicon.ICO")
        assert not is_valid_image_url("https://a.com/page.html")
        assert not is_valid_image_url("favicon.png")

    @pytest.mark.parametrize("tag", ["python", "a-b_c", "Müller", "café", " padded "])
    def test_valid_tags(self, tag):
        assert is_valid_tag(tag)

    @pytest.mark.parametrize("tag", ["", "two words", "a,b", "dot.com", 5])
    def test_invalid_tags(self, tag):
        assert not is_valid_tag(tag)


class TestClipboard:
    def test_domain_name(self):
        assert extract_domain_name("https://www.github.com/x") == "Github"
        assert extract_domain_name("https://gemini.google.com") == "Gemini Google"
        assert extract_domain_name("http://localhost:8080") == "Localhost"
        assert extract_domain_name("nonsense") == "New Bookmark"

    def test_detects_link(self):
        draft = detect_clipboard_link("https://news.ycombinator.com/")
        assert draft["url"] == "https://news.ycombinator.com"
        assert draft["title"] == "News Ycombinator"
        assert draft["tags"] == []
        assert draft["id"]

    def test_ignores_plain_text(self):
        assert detect_clipboard_link("hello https://a.com") is None
        assert detect_clipboard_link("") is None

    def test_disabled(self):
        assert detect_clipboard_link("https://a.com", auto_detect=False) is None
