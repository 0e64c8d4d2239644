"""
Crawler detection and Open Graph preview synthesis.

Link-preview bots never run the SPA, so ``/video/<id>`` requests from them get
a small static page with Open Graph / Twitter Card tags. Any upstream failure
yields generic metadata: a crawler always receives a preview.
"""

import html
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

from edge_router.upstream import UpstreamResult

logger = logging.getLogger(__name__)


def is_crawler(user_agent: Optional[str], signatures: Iterable[str]) -> bool:
    """Case-insensitive substring match of the User-Agent against known bots."""
    if not user_agent:
        return False
    ua = user_agent.lower()
    return any(sig.lower() in ua for sig in signatures)


@dataclass(frozen=True)
class VideoMetadata:
    title: str
    description: str
    thumbnail: str
    author_name: Optional[str] = None
    reactions: int = 0
    comments: int = 0
    reposts: int = 0


def _tag_value(tags: List[Any], name: str) -> Optional[str]:
    for tag in tags:
        if isinstance(tag, list) and len(tag) >= 2 and tag[0] == name and isinstance(tag[1], str) and tag[1]:
            return tag[1]
    return None


def _imeta_value(tags: List[Any], field_name: str) -> Optional[str]:
    """Read ``<field> <value>`` entries out of NIP-92 ``imeta`` tags."""
    prefix = field_name + " "
    for tag in tags:
        if not isinstance(tag, list) or not tag or tag[0] != "imeta":
            continue
        for entry in tag[1:]:
            if isinstance(entry, str) and entry.startswith(prefix):
                value = entry[len(prefix):].strip()
                if value:
                    return value
    return None


def _count(stats: Dict[str, Any], key: str) -> int:
    value = stats.get(key)
    try:
        return max(int(value), 0)
    except (TypeError, ValueError, OverflowError):
        return 0


def _plural(n: int, word: str) -> str:
    return f"{n} {word}" if n == 1 else f"{n} {word}s"


def default_metadata(app_name: str, default_image: str) -> VideoMetadata:
    return VideoMetadata(
        title=f"Video on {app_name}",
        description=f"Watch this video on {app_name}",
        thumbnail=default_image,
    )


def extract_metadata(data: Dict[str, Any], app_name: str, default_image: str) -> VideoMetadata:
    """
    Pull preview fields out of an upstream video response.

    Each field defaults independently. The description prefers the video's
    caption, then an engagement summary, then a generic line.
    """
    fallback = default_metadata(app_name, default_image)

    event = data.get("event") if isinstance(data.get("event"), dict) else {}
    tags = event.get("tags") if isinstance(event.get("tags"), list) else []
    stats = data.get("stats") if isinstance(data.get("stats"), dict) else {}

    reactions = _count(stats, "reactions")
    comments = _count(stats, "comments")
    reposts = _count(stats, "reposts")

    author = data.get("author") if isinstance(data.get("author"), dict) else {}
    author_name = author.get("display_name") or author.get("name") or None

    title = _tag_value(tags, "title") or fallback.title

    caption = event.get("content")
    if isinstance(caption, str) and caption.strip():
        description = caption.strip()
    elif reactions or comments or reposts:
        description = " · ".join(
            [_plural(reactions, "like"), _plural(comments, "comment"), _plural(reposts, "repost")]
        )
        if author_name:
            description = f"{description} · by {author_name}"
    else:
        description = fallback.description

    thumbnail = (
        _tag_value(tags, "thumb")
        or _tag_value(tags, "image")
        or _imeta_value(tags, "image")
        or fallback.thumbnail
    )

    return VideoMetadata(
        title=title,
        description=description,
        thumbnail=thumbnail,
        author_name=author_name,
        reactions=reactions,
        comments=comments,
        reposts=reposts,
    )


def metadata_from_result(result: UpstreamResult, app_name: str, default_image: str) -> VideoMetadata:
    if result.ok and result.data is not None:
        return extract_metadata(result.data, app_name, default_image)
    logger.info(f"Video metadata unavailable ({result.status.value}); using generic preview")
    return default_metadata(app_name, default_image)


def render_preview_html(meta: VideoMetadata, canonical_url: str, app_name: str) -> str:
    """Render the crawler page; every interpolated value is HTML-escaped."""
    title = html.escape(meta.title, quote=True)
    description = html.escape(meta.description, quote=True)
    image = html.escape(meta.thumbnail, quote=True)
    url = html.escape(canonical_url, quote=True)
    site = html.escape(app_name, quote=True)

    return f"""<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<title>{title}</title>
<meta name="description" content="{description}">
<meta property="og:type" content="video.other">
<meta property="og:site_name" content="{site}">
<meta property="og:title" content="{title}">
<meta property="og:description" content="{description}">
<meta property="og:image" content="{image}">
<meta property="og:url" content="{url}">
<meta name="twitter:card" content="summary_large_image">
<meta name="twitter:title" content="{title}">
<meta name="twitter:description" content="{description}">
<meta name="twitter:image" content="{image}">
<link rel="canonical" href="{url}">
<meta http-equiv="refresh" content="0; url={url}">
</head>
<body>
<p><a href="{url}">{title}</a></p>
</body>
</html>
"""
