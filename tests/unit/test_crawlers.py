"""
Unit tests for crawler detection and Open Graph previews.
"""

import json

import pytest

from edge_router.config import DEFAULT_CRAWLER_SIGNATURES
from edge_router.crawlers import (
    default_metadata,
    extract_metadata,
    is_crawler,
    metadata_from_result,
    render_preview_html,
)
from edge_router.upstream import UpstreamResult, UpstreamStatus

DEFAULT_IMAGE = "https://divine.video/og.png"


class TestIsCrawler:
    """Test User-Agent matching."""

    @pytest.mark.parametrize(
        "user_agent",
        [
            "facebookexternalhit/1.1 (+http://www.facebook.com/externalhit_uatext.php)",
            "Twitterbot/1.0",
            "Mozilla/5.0 (compatible; Discordbot/2.0; +https://discordapp.com)",
            "Slackbot-LinkExpanding 1.0 (+https://api.slack.com/robots)",
            "TelegramBot (like TwitterBot)",
            "WhatsApp/2.23.20.0",
        ],
    )
    def test_known_bots(self, user_agent):
        assert is_crawler(user_agent, DEFAULT_CRAWLER_SIGNATURES) is True

    def test_case_insensitive(self):
        assert is_crawler("TWITTERBOT/1.0", ["twitterbot"]) is True

    @pytest.mark.parametrize(
        "user_agent",
        [
            "Mozilla/5.0 (Macintosh; Intel Mac OS X 14_0) AppleWebKit/605.1.15 Safari/605.1.15",
            "",
            None,
        ],
    )
    def test_browsers_are_not_crawlers(self, user_agent):
        assert is_crawler(user_agent, DEFAULT_CRAWLER_SIGNATURES) is False


class TestExtractMetadata:
    """Test metadata extraction from the video API response."""

    def test_full_response(self):
        data = {
            "event": {
                "content": "Sunset loop",
                "tags": [["title", "Golden hour"], ["thumb", "https://cdn.divine.video/t.jpg"]],
            },
            "stats": {"reactions": 3, "comments": 1, "reposts": 0},
        }

        meta = extract_metadata(data, "Divine", DEFAULT_IMAGE)

        assert meta.title == "Golden hour"
        assert meta.description == "Sunset loop"
        assert meta.thumbnail == "https://cdn.divine.video/t.jpg"
        assert meta.reactions == 3

    def test_description_from_engagement(self):
        data = {"event": {"content": "  ", "tags": []}, "stats": {"reactions": 1, "comments": 2, "reposts": 5}}

        meta = extract_metadata(data, "Divine", DEFAULT_IMAGE)

        assert meta.description == "1 like · 2 comments · 5 reposts"

    def test_each_field_defaults_independently(self):
        data = {"event": {"tags": [["title", "Only a title"]]}}

        meta = extract_metadata(data, "Divine", DEFAULT_IMAGE)

        assert meta.title == "Only a title"
        assert meta.description == "Watch this video on Divine"
        assert meta.thumbnail == DEFAULT_IMAGE

    def test_thumbnail_from_imeta(self):
        data = {"event": {"tags": [["imeta", "url https://cdn/v.mp4", "image https://cdn/poster.jpg"]]}}

        assert extract_metadata(data, "Divine", DEFAULT_IMAGE).thumbnail == "https://cdn/poster.jpg"

    def test_garbage_shapes_fall_back(self):
        data = {"event": "nope", "stats": [1, 2, 3]}

        meta = extract_metadata(data, "Divine", DEFAULT_IMAGE)

        assert meta == default_metadata("Divine", DEFAULT_IMAGE)

    def test_non_finite_counts_are_zero(self):
        data = json.loads('{"stats": {"reactions": 1e400, "comments": -1e400, "reposts": 3}}')

        meta = extract_metadata(data, "Divine", DEFAULT_IMAGE)

        assert (meta.reactions, meta.comments, meta.reposts) == (0, 0, 3)
        assert meta.description == "0 likes · 0 comments · 3 reposts"

    @pytest.mark.parametrize(
        "status", [UpstreamStatus.NETWORK_ERROR, UpstreamStatus.TIMEOUT, UpstreamStatus.NOT_FOUND, UpstreamStatus.MALFORMED]
    )
    def test_failures_yield_generic_metadata(self, status):
        meta = metadata_from_result(UpstreamResult(status), "Divine", DEFAULT_IMAGE)

        assert meta.title == "Video on Divine"
        assert meta.thumbnail == DEFAULT_IMAGE


class TestRenderPreviewHtml:
    """Test the synthesized crawler page."""

    def test_script_in_title_is_escaped(self):
        data = {"event": {"tags": [["title", "<script>alert('x')</script>"]], "content": 'He said "hi" & left'}}
        meta = extract_metadata(data, "Divine", DEFAULT_IMAGE)

        page = render_preview_html(meta, "https://divine.video/video/abc", "Divine")

        assert "<script>" not in page
        assert "&lt;script&gt;alert(&#x27;x&#x27;)&lt;/script&gt;" in page
        assert "He said &quot;hi&quot; &amp; left" in page

    def test_tags_and_refresh(self):
        meta = default_metadata("Divine", DEFAULT_IMAGE)

        page = render_preview_html(meta, "https://divine.video/video/abc123", "Divine")

        assert '<meta property="og:title" content="Video on Divine">' in page
        assert '<meta name="twitter:card" content="summary_large_image">' in page
        assert f'<meta property="og:image" content="{DEFAULT_IMAGE}">' in page
        assert '<link rel="canonical" href="https://divine.video/video/abc123">' in page
        assert '<meta http-equiv="refresh" content="0; url=https://divine.video/video/abc123">' in page
