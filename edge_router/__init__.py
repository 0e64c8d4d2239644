"""
Multi-tenant edge router for a short-video web client.

Serves the published application, per-user subdomain profiles, NIP-05
discovery documents and crawler previews from one Flask application.
"""

__version__ = "1.0.0"
