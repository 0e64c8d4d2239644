"""
Subdomain profile injection.

``alice.<apex>/`` is served as the application shell with the owner's profile
embedded as ``window.__GLOBAL_USER__`` and the social preview tags rewritten,
so the first paint already shows the profile.
"""

from __future__ import annotations

import html
import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from edge_router.errors import EncodingError
from edge_router.identity import IdentityRecord
from edge_router.npub import hex_to_npub
from edge_router.upstream import UpstreamResult

logger = logging.getLogger(__name__)

PAYLOAD_GLOBAL = "__GLOBAL_USER__"

DEGRADED_NPUB = "npub"
DEGRADED_ENRICHMENT = "enrichment"

# name -> pattern over the shell's known tag structure; group 1 is the prefix
# kept verbatim, group 2 the value replaced.
_META_PATTERNS = {
    "title": re.compile(r"(<title>)(.*?)(</title>)", re.S),
    "og:title": re.compile(r'(<meta\s+property="og:title"\s+content=")([^"]*)(")'),
    "og:description": re.compile(r'(<meta\s+property="og:description"\s+content=")([^"]*)(")'),
    "og:image": re.compile(r'(<meta\s+property="og:image"\s+content=")([^"]*)(")'),
    "og:url": re.compile(r'(<meta\s+property="og:url"\s+content=")([^"]*)(")'),
    "twitter:title": re.compile(r'(<meta\s+name="twitter:title"\s+content=")([^"]*)(")'),
    "twitter:description": re.compile(r'(<meta\s+name="twitter:description"\s+content=")([^"]*)(")'),
    "twitter:image": re.compile(r'(<meta\s+name="twitter:image"\s+content=")([^"]*)(")'),
}


@dataclass
class ProfileInjectionPayload:
    subdomain: str
    pubkey: str
    npub: Optional[str]
    username: str
    display_name: str
    picture: Optional[str]
    banner: Optional[str]
    about: Optional[str]
    nip05: str
    followers_count: int
    following_count: int
    video_count: int
    apex_domain: str
    degraded: List[str] = field(default_factory=list)

    def to_client(self) -> Dict[str, Any]:
        return {
            "subdomain": self.subdomain,
            "pubkey": self.pubkey,
            "npub": self.npub,
            "username": self.username,
            "displayName": self.display_name,
            "picture": self.picture,
            "banner": self.banner,
            "about": self.about,
            "nip05": self.nip05,
            "followersCount": self.followers_count,
            "followingCount": self.following_count,
            "videoCount": self.video_count,
            "apexDomain": self.apex_domain,
        }


def _str_or_none(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _int_or_zero(value: Any) -> int:
    try:
        return max(int(value), 0)
    except (TypeError, ValueError, OverflowError):
        return 0


def encode_npub(pubkey: str) -> Optional[str]:
    try:
        return hex_to_npub(pubkey)
    except EncodingError as e:
        logger.warning(f"Could not encode pubkey {pubkey[:16]}... as npub: {e}")
        return None


def build_payload(
    subdomain: str,
    apex_domain: str,
    record: IdentityRecord,
    enrichment: Optional[UpstreamResult] = None,
) -> ProfileInjectionPayload:
    """
    Build the embedded profile from the identity record plus optional enrichment.

    Missing enrichment leaves display fields at their identity-only defaults.
    """
    degraded: List[str] = []

    npub = encode_npub(record.pubkey)
    if npub is None:
        degraded.append(DEGRADED_NPUB)

    profile: Dict[str, Any] = {}
    social: Dict[str, Any] = {}
    stats: Dict[str, Any] = {}
    if enrichment is not None and enrichment.ok and enrichment.data is not None:
        data = enrichment.data
        profile = data.get("profile") if isinstance(data.get("profile"), dict) else {}
        social = data.get("social") if isinstance(data.get("social"), dict) else {}
        stats = data.get("stats") if isinstance(data.get("stats"), dict) else {}
    else:
        degraded.append(DEGRADED_ENRICHMENT)

    username = _str_or_none(record.raw.get("username")) or subdomain
    display_name = (
        _str_or_none(profile.get("display_name"))
        or _str_or_none(profile.get("displayName"))
        or _str_or_none(profile.get("name"))
        or username
    )

    return ProfileInjectionPayload(
        subdomain=subdomain,
        pubkey=record.pubkey,
        npub=npub,
        username=username,
        display_name=display_name,
        picture=_str_or_none(profile.get("picture")),
        banner=_str_or_none(profile.get("banner")),
        about=_str_or_none(profile.get("about")),
        nip05=f"_@{subdomain}.{apex_domain}",
        followers_count=_int_or_zero(social.get("follower_count")),
        following_count=_int_or_zero(social.get("following_count")),
        video_count=_int_or_zero(stats.get("video_count")),
        apex_domain=apex_domain,
        degraded=degraded,
    )


def serialize_for_script(data: Dict[str, Any]) -> str:
    """JSON-encode ``data`` so it cannot terminate the surrounding script tag."""
    encoded = json.dumps(data, ensure_ascii=False, separators=(",", ":"))
    return (
        encoded.replace("<", "\\u003c")
        .replace(">", "\\u003e")
        .replace("&", "\\u0026")
        .replace("\u2028", "\\u2028")
        .replace("\u2029", "\\u2029")
    )


def inject_payload(shell_html: str, payload: ProfileInjectionPayload) -> str:
    """Insert the payload script immediately before ``</head>``."""
    marker = f"<!-- subdomain profile: {html.escape(payload.subdomain)} -->"
    script = f"<script>window.{PAYLOAD_GLOBAL} = {serialize_for_script(payload.to_client())};</script>"
    block = f"{marker}\n{script}\n"

    idx = shell_html.find("</head>")
    if idx == -1:
        logger.warning("Shell HTML has no </head>; prepending profile payload")
        return block + shell_html
    return shell_html[:idx] + block + shell_html[idx:]


def rewrite_meta_tags(shell_html: str, values: Dict[str, str]) -> Tuple[str, List[str]]:
    """
    Replace the known title and social tags in place.

    Args:
        shell_html: Shell document
        values: Tag name (see ``_META_PATTERNS``) to unescaped replacement value

    Returns:
        (rewritten html, names of tags that were not found in the shell)
    """
    missing = []
    for name, value in values.items():
        pattern = _META_PATTERNS[name]
        escaped = html.escape(value, quote=True)
        shell_html, count = pattern.subn(lambda m: m.group(1) + escaped + m.group(3), shell_html, count=1)
        if count == 0:
            missing.append(name)
    if missing:
        logger.warning(f"Shell HTML is missing expected tags: {', '.join(missing)}")
    return shell_html, missing


def preview_values(payload: ProfileInjectionPayload, app_name: str, default_image: str) -> Dict[str, str]:
    title = f"{payload.display_name} (@{payload.subdomain}) on {app_name}"
    description = payload.about or f"Watch videos from {payload.display_name} on {app_name}"
    image = payload.picture or default_image
    url = f"https://{payload.subdomain}.{payload.apex_domain}/"
    return {
        "title": title,
        "og:title": title,
        "og:description": description,
        "og:image": image,
        "og:url": url,
        "twitter:title": title,
        "twitter:description": description,
        "twitter:image": image,
    }


def render_profile_page(
    shell_html: str, payload: ProfileInjectionPayload, app_name: str, default_image: str
) -> str:
    document = inject_payload(shell_html, payload)
    document, _ = rewrite_meta_tags(document, preview_values(payload, app_name, default_image))
    return document


def canonical_profile_url(apex_domain: str, pubkey: str, npub: Optional[str] = None) -> str:
    """Apex profile URL used when injection has to be abandoned."""
    return f"https://{apex_domain}/profile/{npub or pubkey}"
