"""Host classification: apex, tenant subdomain, or unknown domain."""

from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlsplit, urlunsplit

from edge_router.config import RouterSettings


@dataclass(frozen=True)
class HostClassification:
    raw_hostname: str
    hostname: str
    is_apex: bool = False
    subdomain: Optional[str] = None
    apex_domain: Optional[str] = None
    reserved: bool = False
    www_redirect: bool = False


def _strip_port(host: str) -> str:
    if host.startswith("["):
        return host
    return host.split(":", 1)[0]


def effective_hostname(raw_host: str, original_host: Optional[str] = None) -> str:
    """
    Pick the hostname the request was addressed to.

    An ``original_host`` set by a trusted upstream router wins over the
    connection's own Host header.
    """
    host = (original_host or "").strip() or (raw_host or "")
    return _strip_port(host).strip().rstrip(".").lower()


def classify_host(
    raw_host: str, settings: RouterSettings, original_host: Optional[str] = None
) -> HostClassification:
    """
    Classify a request authority against the accepted apex domains.

    Args:
        raw_host: Host header of the connection (may carry a port)
        settings: Router settings naming the apex and reserved domains
        original_host: Trusted forwarded host header value, if any

    Returns:
        HostClassification for the effective hostname
    """
    hostname = effective_hostname(raw_host, original_host)

    if hostname.startswith("www."):
        return HostClassification(raw_hostname=raw_host, hostname=hostname, www_redirect=True)

    for apex in settings.apex_domains:
        if hostname == apex:
            return HostClassification(raw_hostname=raw_host, hostname=hostname, is_apex=True, apex_domain=apex)

        suffix = "." + apex
        if hostname.endswith(suffix):
            candidate = hostname[: -len(suffix)]
            if candidate in settings.reserved_subdomains:
                return HostClassification(
                    raw_hostname=raw_host, hostname=hostname, apex_domain=apex, reserved=True
                )
            if not candidate or "." in candidate:
                return HostClassification(raw_hostname=raw_host, hostname=hostname, apex_domain=apex)
            return HostClassification(
                raw_hostname=raw_host, hostname=hostname, subdomain=candidate.lower(), apex_domain=apex
            )

    return HostClassification(raw_hostname=raw_host, hostname=hostname)


def get_subdomain(hostname: str, settings: RouterSettings) -> Optional[str]:
    """Return the tenant subdomain for ``hostname`` or None."""
    return classify_host(hostname, settings).subdomain


def strip_www(url: str) -> str:
    """Return ``url`` with a single leading ``www.`` removed from its host."""
    parts = urlsplit(url)
    netloc = parts.netloc
    if netloc.lower().startswith("www."):
        netloc = netloc[4:]
    return urlunsplit(parts._replace(netloc=netloc))
