"""
Access token handling for the prompt service.

Local services accept a fixed development token. Remote services need a
token stored with ``tp login``; expired tokens are rejected before any
request is made.
"""
import base64
import binascii
import json
import logging
import time
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

from ..constants import DEFAULT_LOCAL_TOKEN, LOCAL_HOSTNAMES, TOKEN_FILE
from ..exceptions import AuthError
from ..utils import write_private_file


logger = logging.getLogger(__name__)


def _decode_segment(segment: str) -> dict:
    padded = segment + "=" * (-len(segment) % 4)
    payload = json.loads(base64.urlsafe_b64decode(padded.encode("ascii")))
    if not isinstance(payload, dict):
        raise ValueError("token payload is not an object")
    return payload


def is_token_valid(token: str, now: Optional[float] = None) -> bool:
    """
    Check that a JWT-style token has not expired.

    The signature is not verified; only the ``exp`` claim of the payload is
    read. ``exp`` may be a number or a numeric string.

    Args:
        token: Token to check
        now: Current Unix time (uses the clock if None)

    Returns:
        True if the token is well formed and ``exp`` is in the future
    """
    parts = token.split(".")
    if len(parts) != 3 or not all(parts):
        return False

    try:
        payload = _decode_segment(parts[1])
        expires_at = float(payload["exp"])
    except (ValueError, KeyError, TypeError, UnicodeError, binascii.Error):
        return False

    now = time.time() if now is None else now
    return expires_at > now


def store_token(token: str, path: Optional[Path] = None) -> None:
    """
    Store an access token with owner-only permissions.

    Args:
        token: Token to store
        path: Token file location
    """
    write_private_file(path or TOKEN_FILE, token.strip())


def load_token(path: Optional[Path] = None) -> Optional[str]:
    """Read the stored token, or None if there is none."""
    try:
        token = (path or TOKEN_FILE).read_text(encoding="utf-8").strip()
    except FileNotFoundError:
        return None
    return token or None


def get_access_token(url: str, path: Optional[Path] = None) -> str:
    """
    Get the token to use for a prompt service.

    Args:
        url: Prompt service URL
        path: Token file location

    Returns:
        The access token

    Raises:
        AuthError: If no valid token is stored for a remote service
    """
    hostname = urlparse(url).hostname
    if hostname in LOCAL_HOSTNAMES:
        logger.debug("Using default token for localhost")
        return DEFAULT_LOCAL_TOKEN

    token = load_token(path)
    if token is None:
        raise AuthError("No access token found. Run 'tp login <token>' first.")

    if not is_token_valid(token):
        raise AuthError("Stored access token has expired. Run 'tp login <token>' again.")

    return token
