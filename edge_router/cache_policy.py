"""Response caching rules shared by every routing stage."""

from flask import Response

NO_STORE = "no-cache, no-store, must-revalidate"


def add_vary(response: Response, header: str) -> Response:
    """Append ``header`` to Vary, keeping whatever is already listed."""
    response.vary.add(header)
    return response


def vary_on_tenant(response: Response, original_host_header: str) -> Response:
    return add_vary(response, original_host_header)


def vary_on_user_agent(response: Response) -> Response:
    return add_vary(response, "User-Agent")


def public_max_age(response: Response, seconds: int) -> Response:
    response.headers["Cache-Control"] = f"public, max-age={int(seconds)}"
    return response


def disable_caching(response: Response) -> Response:
    """Override any cache headers set upstream."""
    response.headers["Cache-Control"] = NO_STORE
    response.headers.pop("Expires", None)
    response.headers.pop("ETag", None)
    return response
