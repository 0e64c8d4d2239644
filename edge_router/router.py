"""
Per-request routing for the edge layer.

``EdgeRouter.dispatch`` runs the routing stages in a fixed order; each stage
either returns a terminal response or ``None`` to fall through:

1. www normalisation redirect
2. tenant subdomain (discovery document or profile injection)
3. static redirect table
4. apex discovery document
5. crawler Open Graph preview for ``/video/<id>``
6. service worker delivery
7. content report passthrough
8. static content server
9. 404
"""

from __future__ import annotations

import logging
import re
from typing import Any, Callable, List, Mapping, Optional

from flask import Request, Response, jsonify, redirect

from edge_router import cache_policy, crawlers, injector, report
from edge_router.audit_logger import get_audit_logger
from edge_router.config import RouterSettings
from edge_router.content import StaticContentServer, is_static_asset, load_shell
from edge_router.hosts import HostClassification, classify_host, strip_www
from edge_router.identity import LookupStatus, build_discovery_document, lookup_identity
from edge_router.metrics import crawler_previews, profile_degradations, requests_by_stage
from edge_router.upstream import UpstreamClient

logger = logging.getLogger(__name__)
audit_logger = get_audit_logger()

DISCOVERY_PATH = "/.well-known/nostr.json"
SERVICE_WORKER_PATH = "/sw.js"
DEGRADED_HEADER = "X-Profile-Degraded"

_VIDEO_PATH_RE = re.compile(r"^/video/([^/]+)/?$")


class EdgeRouter:
    """
    Stateless request router.

    Holds only immutable settings and handles to the read-only stores and the
    upstream client; nothing is cached between requests.
    """

    def __init__(
        self,
        settings: RouterSettings,
        names_store,
        content_store,
        upstream: UpstreamClient,
        app_config: Optional[Mapping[str, Any]] = None,
    ):
        self.settings = settings
        self.names_store = names_store
        self.content_store = content_store
        self.upstream = upstream
        self.app_config = app_config or {}
        self.static = StaticContentServer(content_store, settings)
        self.stages: List[Callable[[Request, HostClassification], Optional[Response]]] = [
            self._www_redirect,
            self._subdomain,
            self._redirect_table,
            self._apex_discovery,
            self._crawler_preview,
            self._service_worker,
            self._report,
            self._static,
        ]

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def classify(self, request: Request) -> HostClassification:
        original_host = request.headers.get(self.settings.original_host_header)
        return classify_host(request.host, self.settings, original_host)

    def dispatch(self, request: Request) -> Response:
        host = self.classify(request)
        logger.debug(f"Request host={host.hostname} subdomain={host.subdomain} path={request.path}")

        for stage in self.stages:
            response = stage(request, host)
            if response is not None:
                requests_by_stage.labels(stage=stage.__name__.lstrip("_")).inc()
                return response

        requests_by_stage.labels(stage="not_found").inc()
        return self._tenant_vary(Response("Not Found", status=404, content_type="text/plain"))

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _tenant_vary(self, response: Response) -> Response:
        return cache_policy.vary_on_tenant(response, self.settings.original_host_header)

    def _json(self, data: Any, status: int = 200) -> Response:
        response = jsonify(data)
        response.status_code = status
        response.headers["Access-Control-Allow-Origin"] = "*"
        cache_policy.public_max_age(response, self.settings.discovery_cache_seconds)
        return self._tenant_vary(response)

    def _html(self, document: str, method: str) -> Response:
        encoded = document.encode("utf-8")
        body = b"" if method == "HEAD" else encoded
        response = Response(body, status=200, content_type="text/html; charset=utf-8")
        if method == "HEAD":
            response.headers["Content-Length"] = str(len(encoded))
        return response

    def _text(self, body: str, status: int) -> Response:
        return self._tenant_vary(Response(body, status=status, content_type="text/plain"))

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def _www_redirect(self, request: Request, host: HostClassification) -> Optional[Response]:
        if not host.www_redirect:
            return None
        original_host = (request.headers.get(self.settings.original_host_header) or "").strip()
        if not original_host:
            return redirect(strip_www(request.url), code=301)
        target = f"{request.scheme}://{original_host[4:].lower()}{request.path}"
        if request.query_string:
            target += "?" + request.query_string.decode()
        return redirect(target, code=301)

    def _subdomain(self, request: Request, host: HostClassification) -> Optional[Response]:
        if host.subdomain is None:
            return None
        if request.path == DISCOVERY_PATH:
            return self.subdomain_discovery(host.subdomain)
        return self.subdomain_profile(request, host)

    def _redirect_table(self, request: Request, host: HostClassification) -> Optional[Response]:
        entry = self.settings.redirects.get(request.path)
        if entry is None:
            return None
        url, status = entry
        return redirect(url, code=status)

    def _apex_discovery(self, request: Request, host: HostClassification) -> Optional[Response]:
        if request.path != DISCOVERY_PATH:
            return None
        return self.apex_discovery(request.args.get("name"))

    def _crawler_preview(self, request: Request, host: HostClassification) -> Optional[Response]:
        match = _VIDEO_PATH_RE.match(request.path)
        if match is None or request.method not in ("GET", "HEAD"):
            return None
        if not crawlers.is_crawler(request.headers.get("User-Agent"), self.settings.crawler_signatures):
            return None
        return self.crawler_preview(request, host, match.group(1))

    def _service_worker(self, request: Request, host: HostClassification) -> Optional[Response]:
        if request.path != SERVICE_WORKER_PATH:
            return None
        response = self.static.serve(request.path, request.method)
        if response is None:
            return None
        cache_policy.disable_caching(response)
        return self._tenant_vary(response)

    def _report(self, request: Request, host: HostClassification) -> Optional[Response]:
        if request.path != report.REPORT_PATH:
            return None
        return report.handle_report(
            request,
            self.app_config,
            reports_domain=host.apex_domain or self.settings.canonical_apex,
            timeout=self.upstream.timeout,
        )

    def _static(self, request: Request, host: HostClassification) -> Optional[Response]:
        response = self.static.serve(request.path, request.method)
        if response is None:
            return None
        return self._tenant_vary(response)

    # ------------------------------------------------------------------
    # Discovery documents
    # ------------------------------------------------------------------

    def apex_discovery(self, name: Optional[str]) -> Response:
        """``/.well-known/nostr.json?name=<name>`` on an apex domain."""
        if not name:
            return self._json({"error": "Name is required."}, 400)

        normalized = name.lower()
        try:
            result = lookup_identity(self.names_store, normalized)
            audit_logger.log_discovery(normalized, "apex", result.status.value)

            if result.status in (LookupStatus.ERROR, LookupStatus.TIMEOUT):
                return self._json({"error": "Internal server error"}, 500)
            if not result.found or not result.record.pubkey:
                return self._json({"names": {}})
            return self._json(build_discovery_document(normalized, result.record))
        except Exception as e:
            logger.error(f"Discovery document construction failed for {normalized}: {e}", exc_info=True)
            audit_logger.log_error("discovery", type(e).__name__, {"name": normalized})
            return self._json({"error": "Internal server error"}, 500)

    def subdomain_discovery(self, subdomain: str) -> Response:
        """``https://<sub>.<apex>/.well-known/nostr.json``."""
        try:
            result = lookup_identity(self.names_store, subdomain, require_active=True)
            audit_logger.log_discovery(subdomain, "subdomain", result.status.value)

            if result.status in (LookupStatus.ERROR, LookupStatus.TIMEOUT):
                return self._json({"error": "Internal server error"}, 500)
            if not result.found or not result.record.pubkey:
                return self._text("Not Found", 404)
            return self._json(build_discovery_document("_", result.record))
        except Exception as e:
            logger.error(f"Subdomain discovery construction failed for {subdomain}: {e}", exc_info=True)
            return self._json({"error": "Internal server error"}, 500)

    # ------------------------------------------------------------------
    # Subdomain profile pages
    # ------------------------------------------------------------------

    def subdomain_profile(self, request: Request, host: HostClassification) -> Response:
        """
        Serve the shell with the subdomain owner's profile embedded.

        Static assets bypass injection. Unknown or inactive identities are 404;
        an unreadable shell degrades to a redirect to the apex profile page.
        """
        subdomain = host.subdomain
        apex = host.apex_domain

        if is_static_asset(request.path):
            response = self.static.serve(request.path, request.method)
            if response is None:
                return self._text("Not Found", 404)
            return self._tenant_vary(response)

        result = lookup_identity(self.names_store, subdomain, require_active=True)
        if not result.found or not result.record.pubkey:
            logger.info(f"No active profile for subdomain {subdomain} ({result.status.value})")
            return self._text("Profile not found", 404)
        record = result.record

        enrichment = self.upstream.fetch_user(record.pubkey)
        if not enrichment.ok:
            logger.info(f"Profile enrichment unavailable for {subdomain} ({enrichment.status.value})")

        payload = injector.build_payload(subdomain, apex, record, enrichment)

        shell = load_shell(self.content_store, self.settings)
        if not shell.found:
            location = injector.canonical_profile_url(apex, record.pubkey, payload.npub)
            audit_logger.log_profile_fallback(subdomain, shell.status.value, location)
            response = redirect(location, code=302)
            return self._tenant_vary(response)

        try:
            shell_html = shell.body.decode("utf-8")
        except UnicodeDecodeError:
            location = injector.canonical_profile_url(apex, record.pubkey, payload.npub)
            audit_logger.log_profile_fallback(subdomain, "shell_not_utf8", location)
            return self._tenant_vary(redirect(location, code=302))

        document = injector.render_profile_page(
            shell_html, payload, self.settings.app_name, self.settings.default_og_image
        )

        response = self._html(document, request.method)
        cache_policy.public_max_age(response, self.settings.profile_cache_seconds)
        self._tenant_vary(response)
        response.headers[self.settings.subdomain_debug_header] = subdomain
        if payload.degraded:
            response.headers[DEGRADED_HEADER] = ",".join(payload.degraded)
            for kind in payload.degraded:
                profile_degradations.labels(kind=kind).inc()

        audit_logger.log_profile_injection(subdomain, record.pubkey, payload.degraded)
        return response

    # ------------------------------------------------------------------
    # Crawler previews
    # ------------------------------------------------------------------

    def crawler_preview(self, request: Request, host: HostClassification, video_id: str) -> Response:
        """Open Graph page for a link-preview bot; never an error response."""
        result = self.upstream.fetch_video(video_id)
        meta = crawlers.metadata_from_result(result, self.settings.app_name, self.settings.default_og_image)
        source = "upstream" if result.ok else "fallback"
        crawler_previews.labels(source=source).inc()

        canonical_host = host.hostname or self.settings.canonical_apex
        canonical_url = f"https://{canonical_host}/video/{video_id}"
        document = crawlers.render_preview_html(meta, canonical_url, self.settings.app_name)

        audit_logger.log_crawler_preview(video_id, request.headers.get("User-Agent", ""), source)

        response = self._html(document, request.method)
        cache_policy.public_max_age(response, self.settings.crawler_cache_seconds)
        cache_policy.vary_on_user_agent(response)
        return self._tenant_vary(response)
