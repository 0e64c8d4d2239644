"""Prometheus metrics for routing stages and partial degradation."""

from prometheus_client import CollectorRegistry, Counter

registry = CollectorRegistry()

requests_by_stage = Counter(
    "edge_requests_total",
    "Requests by the routing stage that produced the response",
    ["stage"],
    registry=registry,
)
profile_degradations = Counter(
    "edge_profile_degradations_total",
    "Profile pages served with partial data",
    ["kind"],
    registry=registry,
)
crawler_previews = Counter(
    "edge_crawler_previews_total",
    "Open Graph previews synthesized for crawlers",
    ["source"],
    registry=registry,
)
