"""Rate limiting for the FreelanceHub backend.

Authenticated requests share one bucket per user, whichever address they
come from. Anonymous requests and requests with a token that does not
verify fall back to the client address. X-Forwarded-For is only honoured
when the direct peer is one of ``Settings.trusted_proxy_cidrs``.
"""

import ipaddress
import os
from functools import lru_cache

from fastapi import HTTPException
from slowapi import Limiter
from slowapi.util import get_remote_address

from .auth import AUTH_COOKIE_NAME, decode_token
from .config import get_settings
from .logging_config import get_logger

logger = get_logger("freelancehub.api.rate_limit")


@lru_cache
def _trusted_networks(cidrs: tuple[str, ...]) -> tuple:
    networks = []
    for cidr in cidrs:
        try:
            networks.append(ipaddress.ip_network(cidr, strict=False))
        except ValueError:
            logger.warning(f"Ignoring invalid trusted proxy CIDR: {cidr}")
    return tuple(networks)


def get_client_ip(request) -> str:
    """Client address, taking X-Forwarded-For only from a trusted proxy."""
    direct_ip = get_remote_address(request)
    try:
        addr = ipaddress.ip_address(direct_ip)
    except ValueError:
        return direct_ip

    networks = _trusted_networks(tuple(get_settings().trusted_proxy_cidrs))
    if any(addr in network for network in networks):
        # Leftmost entry is the original client
        client_ip = (request.headers.get("x-forwarded-for") or "").split(",")[0].strip()
        if client_ip:
            return client_ip
    return direct_ip


def _request_token(request) -> str | None:
    scheme, _, token = (request.headers.get("authorization") or "").partition(" ")
    if scheme.lower() == "bearer" and token.strip():
        return token.strip()
    return request.cookies.get(AUTH_COOKIE_NAME)


def rate_limit_key(request) -> str:
    """``user:<id>`` for a verified access token, else ``ip:<address>``."""
    token = _request_token(request)
    if token:
        try:
            user_id = decode_token(token, get_settings()).get("sub")
        except HTTPException:
            user_id = None
        if user_id:
            return f"user:{user_id}"
    return f"ip:{get_client_ip(request)}"


# RATE_LIMIT_ENABLED=false turns limits off (test runs share one client IP)
limiter = Limiter(
    key_func=rate_limit_key,
    enabled=os.environ.get("RATE_LIMIT_ENABLED", "true").lower() != "false",
)
