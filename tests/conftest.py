"""
Pytest configuration and shared fixtures for edge router tests.
"""

import hashlib
import os
from unittest.mock import MagicMock

import pytest

# Set test environment before importing the app
os.environ["FLASK_ENV"] = "testing"
os.environ["FLASK_SECRET_KEY"] = "test-secret-key-for-testing-only"
os.environ["UPSTREAM_API_URL"] = "http://upstream.test"
os.environ["RATE_LIMIT_ENABLED"] = "false"

from edge_router.config import build_settings, get_config  # noqa: E402
from edge_router.store import MemoryKVStore  # noqa: E402
from edge_router.upstream import UpstreamResult, UpstreamStatus  # noqa: E402

ALICE_PUBKEY = "7e7e9c42a91bfef19fa929e5fda1b72e0ebc1a4c1141673e2794234d86addf4e"
ALICE_NPUB = "npub10elfcs4fr0l0r8af98jlmgdh9c8tcxjvz9qh50cnyjzsr43u9vzqe5ra2v"
BOB_PUBKEY = "3bf0c63fcb93463407af97a5e5ee64fa883d107ef9e558472c4eb9aaaefa459d"

SHELL_HTML = """<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<title>Divine</title>
<meta property="og:title" content="Divine">
<meta property="og:description" content="Short looping videos">
<meta property="og:image" content="https://divine.video/og.png">
<meta property="og:url" content="https://divine.video/">
<meta name="twitter:title" content="Divine">
<meta name="twitter:description" content="Short looping videos">
<meta name="twitter:image" content="https://divine.video/og.png">
<script type="module" src="/assets/app.js"></script>
</head>
<body><div id="root"></div></body>
</html>
"""

PUBLISHED_FILES = {
    "/index.html": (SHELL_HTML.encode("utf-8"), "text/html; charset=utf-8"),
    "/assets/app.js": (b"console.log('divine');", "text/javascript"),
    "/sw.js": (b"self.addEventListener('fetch', () => {});", "text/javascript"),
    "/404.html": (b"<!DOCTYPE html><title>Not found</title>", "text/html; charset=utf-8"),
    "/robots.txt": (b"User-agent: *\n", "text/plain"),
}


def publish(store, files, publish_id="default", collection="live"):
    """Write ``files`` into ``store`` the way the publishing pipeline lays them out."""
    index = {}
    for path, (body, content_type) in files.items():
        digest = hashlib.sha256(body).hexdigest()
        store.put(f"{publish_id}_files_sha256_{digest}", body)
        index[path] = {"key": f"sha256:{digest}", "size": len(body), "contentType": content_type}
    store.put_json(f"{publish_id}_index_{collection}", index)
    return index


@pytest.fixture
def alice_pubkey():
    return ALICE_PUBKEY


@pytest.fixture
def alice_npub():
    return ALICE_NPUB


@pytest.fixture
def bob_pubkey():
    return BOB_PUBKEY


@pytest.fixture
def shell_html():
    return SHELL_HTML


@pytest.fixture
def names_store():
    """Identity store with an active, an inactive and a relay-carrying user."""
    store = MemoryKVStore()
    store.put_json("user:alice", {"pubkey": ALICE_PUBKEY, "status": "active"})
    store.put_json(
        "user:bob",
        {"pubkey": BOB_PUBKEY, "status": "active", "relays": ["wss://relay.divine.video", "wss://nos.lol"]},
    )
    store.put_json("user:carol", {"pubkey": BOB_PUBKEY, "status": "suspended"})
    store.put("user:broken", b"{not json")
    return store


@pytest.fixture
def content_store():
    """Content store holding a published shell, a hashed asset and a service worker."""
    store = MemoryKVStore()
    publish(store, PUBLISHED_FILES)
    return store


@pytest.fixture
def upstream():
    """Upstream client stub; every call is unreachable unless a test says otherwise."""
    client = MagicMock()
    client.timeout = 5
    client.fetch_user.return_value = UpstreamResult(UpstreamStatus.NETWORK_ERROR)
    client.fetch_video.return_value = UpstreamResult(UpstreamStatus.NETWORK_ERROR)
    return client


@pytest.fixture
def app_config():
    """Environment configuration with report backend secrets filled in."""
    cfg = get_config()
    cfg["ZENDESK_SUBDOMAIN"] = "divine"
    cfg["ZENDESK_API_EMAIL"] = "support@divine.video"
    cfg["ZENDESK_API_TOKEN"] = "test-token"
    return cfg


@pytest.fixture
def settings(app_config):
    return build_settings(app_config)


@pytest.fixture
def app(app_config, names_store, content_store, upstream):
    """Create and configure a test Flask application instance."""
    from edge_router.factory import create_app

    flask_app = create_app(
        app_config, names_store=names_store, content_store=content_store, upstream=upstream
    )
    flask_app.config.update({"TESTING": True})

    with flask_app.app_context():
        yield flask_app


@pytest.fixture
def client(app):
    """Create a test client for the Flask application."""
    return app.test_client()


@pytest.fixture
def router(app):
    return app.extensions["edge_router"]


# Pytest configuration hooks
def pytest_collection_modifyitems(config, items):
    """Add markers based on the test directory."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)

        if "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast tests without a Flask app")
    config.addinivalue_line("markers", "integration: full request flows through the test client")
