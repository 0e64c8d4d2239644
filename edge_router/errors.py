"""Exception types raised below the resolution boundaries.

Callers at the routing layer never see these directly: the store, codec and
upstream helpers convert them into explicit result values.
"""


class EdgeRouterError(Exception):
    """Base exception for the edge router."""

    pass


class StoreError(EdgeRouterError):
    """Raised when a key-value store read fails."""

    pass


class StoreTimeout(StoreError):
    """Raised when a key-value store read exceeds its socket timeout."""

    pass


class EncodingError(EdgeRouterError, ValueError):
    """Raised when key material cannot be encoded into an address."""

    pass


class ReportConfigurationError(EdgeRouterError):
    """Raised when the ticketing backend secrets are not configured."""

    pass
