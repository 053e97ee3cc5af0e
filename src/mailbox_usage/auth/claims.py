"""Bearer header parsing and unverified JWT claim reading.

Claims read here are routing hints only (which tenant to exchange against).
Signatures are not checked, so nothing in this module may be used to decide
whether a caller is authorized; the on-behalf-of exchange is the trust boundary.
"""

from __future__ import annotations

import base64
import binascii
import json
from typing import Any

from mailbox_usage.errors import AuthenticationError

BEARER_PREFIX = "Bearer "
CLAIM_TENANT_ID = "tid"
CLAIM_AUDIENCE = "aud"


def bearer_token_from_header(authorization: str | None) -> str:
    """Extract the token from an ``Authorization: Bearer <token>`` header value.

    Raises:
        AuthenticationError: If the header is absent, not a Bearer header, or empty.
    """
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        raise AuthenticationError("Missing Authorization Bearer token")
    token = authorization[len(BEARER_PREFIX) :].strip()
    if not token:
        raise AuthenticationError("Missing Authorization Bearer token")
    return token


def parse_token_claims(token: str) -> dict[str, Any] | None:
    """Decode the payload segment of a JWT without verifying it.

    Returns:
        The claims dict, or None if the token is not a decodable JWT.
    """
    parts = token.split(".")
    if len(parts) < 2:
        return None
    payload = parts[1]
    padded = payload + "=" * (-len(payload) % 4)
    try:
        claims = json.loads(base64.urlsafe_b64decode(padded).decode("utf-8"))
    except (binascii.Error, UnicodeDecodeError, ValueError):
        return None
    if not isinstance(claims, dict):
        return None
    return claims


def tenant_hint(claims: dict[str, Any] | None) -> str | None:
    """Return the issuing tenant claim, if present and a non-empty string."""
    if not claims:
        return None
    tid = claims.get(CLAIM_TENANT_ID)
    return tid if isinstance(tid, str) and tid else None


def audience_matches(claims: dict[str, Any] | None, client_id: str) -> bool:
    """Check whether the token audience names this API.

    Accepts ``api://<client_id>`` or the bare client ID, as a string or within
    a list. The result is advisory and only ever logged.
    """
    if not claims:
        return False
    accepted = {f"api://{client_id}", client_id}
    aud = claims.get(CLAIM_AUDIENCE)
    if isinstance(aud, list):
        return any(a in accepted for a in aud)
    return aud in accepted
