"""Configuration management for the edge router.

Centralises environment variable loading and validation logic, and derives the
immutable ``RouterSettings`` value the request router is constructed with.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, List, Mapping, Optional, Tuple, TypedDict

_TRUTHY_VALUES = {"1", "true", "yes", "on"}

DEFAULT_APEX_DOMAINS = ("divine.video", "dvine.video")
DEFAULT_RESERVED_SUBDOMAINS = ("www", "admin", "api")

# Link-preview bots, chat unfurlers and archivers that never execute the SPA.
DEFAULT_CRAWLER_SIGNATURES = (
    "facebookexternalhit",
    "facebot",
    "twitterbot",
    "linkedinbot",
    "slackbot",
    "slack-imgproxy",
    "discordbot",
    "telegrambot",
    "whatsapp",
    "skypeuripreview",
    "pinterest",
    "redditbot",
    "embedly",
    "quora link preview",
    "showyoubot",
    "outbrain",
    "vkshare",
    "tumblr",
    "bitlybot",
    "applebot",
    "googlebot",
    "bingbot",
    "duckduckbot",
    "yandexbot",
    "mastodon",
    "bluesky",
    "ia_archiver",
    "archive.org_bot",
)

DEFAULT_REDIRECTS = {
    "/press": ("https://about.divine.video/press/", 301),
    "/news": ("https://about.divine.video/news/", 301),
    "/media-resources": ("https://about.divine.video/media-resources/", 301),
    "/news/vine-revisited": (
        "https://about.divine.video/vine-revisited-a-return-to-the-halcyon-days-of-the-internet/",
        301,
    ),
    "/discord": ("https://discord.gg/RZVbzuQ5qM", 302),
}

DEFAULT_REPORT_ORIGINS = (
    "https://divine.video",
    "https://www.divine.video",
    "https://staging.divine.video",
    "http://localhost:5173",
    "http://localhost:4173",
)


class AppConfig(TypedDict):
    """Typed representation of the application's configuration."""

    FLASK_ENV: str
    FLASK_SECRET_KEY: Optional[str]
    APP_NAME: str
    APP_VERSION: str
    APEX_DOMAINS: List[str]
    RESERVED_SUBDOMAINS: List[str]
    ORIGINAL_HOST_HEADER: str
    SUBDOMAIN_DEBUG_HEADER: str
    REDIS_URL: Optional[str]
    REDIS_HOST: str
    REDIS_PORT: int
    REDIS_PASSWORD: Optional[str]
    REDIS_DB: int
    CONTENT_REDIS_URL: Optional[str]
    PUBLISH_ID: str
    CONTENT_COLLECTION: str
    SHELL_PATH: str
    UPSTREAM_API_URL: str
    UPSTREAM_TIMEOUT: int
    DEFAULT_OG_IMAGE: str
    PROFILE_CACHE_SECONDS: int
    CRAWLER_CACHE_SECONDS: int
    DISCOVERY_CACHE_SECONDS: int
    ZENDESK_SUBDOMAIN: Optional[str]
    ZENDESK_API_EMAIL: Optional[str]
    ZENDESK_API_TOKEN: Optional[str]
    REPORT_ALLOWED_ORIGINS: List[str]
    REPORT_PREVIEW_ORIGIN_PATTERN: str
    RATE_LIMIT_ENABLED: bool
    RATE_LIMIT_REPORT: str
    RATE_LIMIT_STORAGE_URI: str
    LOG_LEVEL: str


@dataclass(frozen=True)
class RouterSettings:
    """Immutable routing configuration handed to ``EdgeRouter``."""

    apex_domains: Tuple[str, ...] = DEFAULT_APEX_DOMAINS
    reserved_subdomains: frozenset = frozenset(DEFAULT_RESERVED_SUBDOMAINS)
    crawler_signatures: Tuple[str, ...] = DEFAULT_CRAWLER_SIGNATURES
    redirects: Mapping[str, Tuple[str, int]] = field(
        default_factory=lambda: MappingProxyType(dict(DEFAULT_REDIRECTS))
    )
    app_name: str = "Divine"
    original_host_header: str = "X-Original-Host"
    subdomain_debug_header: str = "X-Subdomain"
    publish_id: str = "default"
    collection: str = "live"
    shell_path: str = "/index.html"
    default_og_image: str = "https://divine.video/og.png"
    profile_cache_seconds: int = 60
    crawler_cache_seconds: int = 300
    discovery_cache_seconds: int = 300

    @property
    def canonical_apex(self) -> str:
        return self.apex_domains[0]

    @property
    def index_key(self) -> str:
        return f"{self.publish_id}_index_{self.collection}"

    def content_key(self, digest: str) -> str:
        return f"{self.publish_id}_files_sha256_{digest}"


def _get_env_bool(name: str, default: bool) -> bool:
    """Return an environment variable as a boolean."""

    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    return raw_value.strip().lower() in _TRUTHY_VALUES


def _get_env_int(name: str, default: int) -> int:
    """Return an environment variable as an integer, raising on invalid input."""

    raw_value = os.getenv(name)
    if raw_value is None or raw_value == "":
        return default

    try:
        return int(raw_value)
    except ValueError as exc:
        raise ValueError(f"Environment variable {name} must be an integer (got {raw_value!r})") from exc


def _get_env_list(name: str, default: Tuple[str, ...]) -> List[str]:
    raw_value = os.getenv(name)
    if raw_value is None or not raw_value.strip():
        return list(default)
    return [item.strip().lower() for item in raw_value.split(",") if item.strip()]


def get_config() -> AppConfig:
    """Load application configuration from environment variables."""

    return {
        # Flask
        "FLASK_ENV": os.getenv("FLASK_ENV", "development"),
        "FLASK_SECRET_KEY": os.getenv("FLASK_SECRET_KEY"),
        "APP_NAME": os.getenv("APP_NAME", "Divine"),
        "APP_VERSION": os.getenv("APP_VERSION", "1.0.0"),
        # Tenancy
        "APEX_DOMAINS": _get_env_list("APEX_DOMAINS", DEFAULT_APEX_DOMAINS),
        "RESERVED_SUBDOMAINS": _get_env_list("RESERVED_SUBDOMAINS", DEFAULT_RESERVED_SUBDOMAINS),
        "ORIGINAL_HOST_HEADER": os.getenv("ORIGINAL_HOST_HEADER", "X-Original-Host"),
        "SUBDOMAIN_DEBUG_HEADER": os.getenv("SUBDOMAIN_DEBUG_HEADER", "X-Subdomain"),
        # Identity store (Redis)
        "REDIS_URL": os.getenv("REDIS_URL") or os.getenv("REDIS_DSN"),
        "REDIS_HOST": os.getenv("REDIS_HOST", "localhost"),
        "REDIS_PORT": _get_env_int("REDIS_PORT", 6379),
        "REDIS_PASSWORD": os.getenv("REDIS_PASSWORD"),
        "REDIS_DB": _get_env_int("REDIS_DB", 0),
        # Content store
        "CONTENT_REDIS_URL": os.getenv("CONTENT_REDIS_URL"),
        "PUBLISH_ID": os.getenv("PUBLISH_ID", "default"),
        "CONTENT_COLLECTION": os.getenv("CONTENT_COLLECTION", "live"),
        "SHELL_PATH": os.getenv("SHELL_PATH", "/index.html"),
        # Upstream API
        "UPSTREAM_API_URL": os.getenv("UPSTREAM_API_URL", "https://relay.divine.video"),
        "UPSTREAM_TIMEOUT": _get_env_int("UPSTREAM_TIMEOUT", 5),
        "DEFAULT_OG_IMAGE": os.getenv("DEFAULT_OG_IMAGE", "https://divine.video/og.png"),
        # Cache lifetimes
        "PROFILE_CACHE_SECONDS": _get_env_int("PROFILE_CACHE_SECONDS", 60),
        "CRAWLER_CACHE_SECONDS": _get_env_int("CRAWLER_CACHE_SECONDS", 300),
        "DISCOVERY_CACHE_SECONDS": _get_env_int("DISCOVERY_CACHE_SECONDS", 300),
        # Report backend
        "ZENDESK_SUBDOMAIN": os.getenv("ZENDESK_SUBDOMAIN"),
        "ZENDESK_API_EMAIL": os.getenv("ZENDESK_API_EMAIL"),
        "ZENDESK_API_TOKEN": os.getenv("ZENDESK_API_TOKEN"),
        "REPORT_ALLOWED_ORIGINS": [
            o.strip() for o in os.getenv("REPORT_ALLOWED_ORIGINS", ",".join(DEFAULT_REPORT_ORIGINS)).split(",") if o.strip()
        ],
        "REPORT_PREVIEW_ORIGIN_PATTERN": os.getenv(
            "REPORT_PREVIEW_ORIGIN_PATTERN", r"^https://[a-z0-9-]+\.divine-web-fm8\.pages\.dev$"
        ),
        # Rate limiting
        "RATE_LIMIT_ENABLED": _get_env_bool("RATE_LIMIT_ENABLED", True),
        "RATE_LIMIT_REPORT": os.getenv("RATE_LIMIT_REPORT", "10 per minute"),
        "RATE_LIMIT_STORAGE_URI": os.getenv("RATE_LIMIT_STORAGE_URI", "memory://"),
        # Logging
        "LOG_LEVEL": os.getenv("LOG_LEVEL", "INFO"),
    }


def validate_config(config: Mapping[str, Any]) -> bool:
    """Validate critical configuration values.

    Args:
        config: Configuration mapping to validate.

    Returns:
        True if configuration is valid, raises ValueError otherwise.
    """

    timeout = config.get("UPSTREAM_TIMEOUT")
    if timeout is not None and not 1 <= int(timeout) <= 9:
        raise ValueError("UPSTREAM_TIMEOUT must be between 1 and 9 seconds")

    if not config.get("APEX_DOMAINS", True):
        raise ValueError("APEX_DOMAINS must name at least one domain")

    if config.get("FLASK_ENV") == "production":
        if not config.get("FLASK_SECRET_KEY"):
            raise ValueError("FLASK_SECRET_KEY must be set for production!")

        import warnings

        if not config.get("REDIS_PASSWORD") and not config.get("REDIS_URL"):
            warnings.warn("REDIS_PASSWORD not set - Redis will be unprotected!", stacklevel=2)

        if not (
            config.get("ZENDESK_SUBDOMAIN") and config.get("ZENDESK_API_EMAIL") and config.get("ZENDESK_API_TOKEN")
        ):
            warnings.warn("Zendesk credentials not set - content reports will fail!", stacklevel=2)

    return True


def build_settings(config: Mapping[str, Any]) -> RouterSettings:
    """Derive the immutable router settings from an ``AppConfig`` mapping."""

    apex = tuple(config.get("APEX_DOMAINS") or DEFAULT_APEX_DOMAINS)
    reserved = frozenset(config.get("RESERVED_SUBDOMAINS") or DEFAULT_RESERVED_SUBDOMAINS)
    return RouterSettings(
        apex_domains=apex,
        reserved_subdomains=reserved,
        app_name=config.get("APP_NAME", "Divine"),
        original_host_header=config.get("ORIGINAL_HOST_HEADER", "X-Original-Host"),
        subdomain_debug_header=config.get("SUBDOMAIN_DEBUG_HEADER", "X-Subdomain"),
        publish_id=config.get("PUBLISH_ID", "default"),
        collection=config.get("CONTENT_COLLECTION", "live"),
        shell_path=config.get("SHELL_PATH", "/index.html"),
        default_og_image=config.get("DEFAULT_OG_IMAGE", "https://divine.video/og.png"),
        profile_cache_seconds=int(config.get("PROFILE_CACHE_SECONDS", 60)),
        crawler_cache_seconds=int(config.get("CRAWLER_CACHE_SECONDS", 300)),
        discovery_cache_seconds=int(config.get("DISCOVERY_CACHE_SECONDS", 300)),
    )
