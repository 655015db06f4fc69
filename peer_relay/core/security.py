"""
Security utilities for Peer Relay

This module provides the reconnection token scheme and related helpers.
A token is an HMAC-SHA256 signature over the peer identifier, so the relay
can check that a returning client owns an identifier without keeping any
server-side session.
"""

import base64
import binascii
import hashlib
import hmac
import logging
import secrets
import string
from typing import Optional

logger = logging.getLogger(__name__)


def _sign(secret_key: str, peer_id: str) -> bytes:
    return hmac.new(
        secret_key.encode("utf-8"),
        peer_id.encode("utf-8"),
        hashlib.sha256,
    ).digest()


def issue_token(secret_key: str, peer_id: str) -> str:
    """
    Issue the reconnection token for a peer identifier.

    The token is deterministic: the same secret and identifier always
    produce the same token. It never expires and stays valid until the
    peer is destroyed.

    Args:
        secret_key: Relay signing secret
        peer_id: Identifier the token vouches for

    Returns:
        Standard base64 encoding of the HMAC-SHA256 signature
    """
    return base64.b64encode(_sign(secret_key, peer_id)).decode("ascii")


def verify_token(secret_key: str, peer_id: str, token: str) -> bool:
    """
    Check a reconnection token against a peer identifier.

    Malformed tokens (bad base64, non-ASCII text) are rejected rather than
    raising. Only the canonical encoding is accepted, so flipping the unused
    trailing bits of the last base64 character also fails.

    Args:
        secret_key: Relay signing secret
        peer_id: Identifier the caller claims
        token: Token presented by the caller

    Returns:
        True if the token was issued for this identifier, False otherwise
    """
    try:
        signature = base64.b64decode(token.encode("ascii"), validate=True)
    except (binascii.Error, UnicodeEncodeError, ValueError):
        logger.debug("Rejected malformed reconnection token")
        return False

    if base64.b64encode(signature).decode("ascii") != token:
        return False

    return hmac.compare_digest(signature, _sign(secret_key, peer_id))


def access_key_matches(expected: Optional[str], supplied: object) -> bool:
    """
    Compare the configured access key with the one a caller supplied.

    An unset access key accepts every caller.
    """
    if not expected:
        return True
    if not isinstance(supplied, str):
        return False
    return hmac.compare_digest(expected.encode("utf-8"), supplied.encode("utf-8"))


def generate_secure_secret_key(length: int = 64) -> str:
    """
    Generate a cryptographically secure secret key.

    Args:
        length: Length of the secret key (default: 64 characters)

    Returns:
        A secure random string suitable for use as a SECRET_KEY
    """
    alphabet = string.ascii_letters + string.digits + "-_"
    return "".join(secrets.choice(alphabet) for _ in range(length))
