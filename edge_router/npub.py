"""Checksummed bech32 address encoding for Nostr public keys (``npub1...``)."""

import re

from bech32 import bech32_encode, convertbits

from edge_router.errors import EncodingError

NPUB_HRP = "npub"

_HEX_RE = re.compile(r"[0-9a-fA-F]*")


def hex_to_npub(hex_pubkey: str) -> str:
    """
    Encode a hex public key as an ``npub`` address.

    Args:
        hex_pubkey: Hex-encoded key bytes (normally 64 characters, x-only)

    Returns:
        The bech32 ``npub1...`` string

    Raises:
        EncodingError: If the input is empty, of odd length or not hex
    """
    if not isinstance(hex_pubkey, str) or not hex_pubkey:
        raise EncodingError("Public key must be a non-empty hex string")
    if len(hex_pubkey) % 2:
        raise EncodingError(f"Public key hex has odd length ({len(hex_pubkey)})")
    if not _HEX_RE.fullmatch(hex_pubkey):
        raise EncodingError("Public key contains non-hex characters")

    data = convertbits(bytes.fromhex(hex_pubkey), 8, 5)
    if data is None:
        raise EncodingError("Public key could not be regrouped into 5-bit words")
    return bech32_encode(NPUB_HRP, data)
