"""Opaque continuation tokens for keyset pagination.

Records are paged in ascending ``id`` order. A token carries the last ID
of the page it was issued for; the next page starts strictly after it.
Tokens are base64url-encoded JSON so callers treat them as opaque
strings and can pass them back unchanged in a later invocation.

Keyset cursors stay valid when records are inserted or deleted between
pages: every record that exists for the whole sweep is visited exactly
once.
"""

from __future__ import annotations

import base64
import binascii
import json

from content_moderator.domain.errors import StoreInvalidQueryError

TOKEN_VERSION = 1


def encode_token(last_id: str) -> str:
    """Encode the last ID of a page as a continuation token.

    Args:
        last_id: ID of the final record on the page.

    Returns:
        URL-safe token string.
    """
    payload = json.dumps({"v": TOKEN_VERSION, "after": last_id}, separators=(",", ":"))
    return base64.urlsafe_b64encode(payload.encode("utf-8")).decode("ascii")


def decode_token(token: str) -> str:
    """Decode a continuation token back to the ID to resume after.

    Args:
        token: Token previously returned by ``encode_token``.

    Returns:
        The ID the next page starts after.

    Raises:
        StoreInvalidQueryError: If the token is malformed or from an
            unknown version.
    """
    try:
        raw = base64.urlsafe_b64decode(token.encode("ascii"))
        payload = json.loads(raw.decode("utf-8"))
    except (binascii.Error, UnicodeError, ValueError) as exc:
        raise StoreInvalidQueryError(f"malformed continuation token: {exc}") from exc

    if not isinstance(payload, dict) or payload.get("v") != TOKEN_VERSION:
        raise StoreInvalidQueryError("unsupported continuation token")
    after = payload.get("after")
    if not isinstance(after, str) or not after:
        raise StoreInvalidQueryError("continuation token has no position")
    return after
