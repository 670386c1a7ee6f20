import ipaddress
import secrets
import time
from typing import Callable, Iterable, Mapping

from starlette.requests import Request

from gatekeeper.core.exceptions import ConfigurationError

# Returns the current unix time in whole seconds
Clock = Callable[[], int]


def system_clock() -> int:
    return int(time.time())


def generate_jti() -> str:
    """
    Generate a unique JWT ID

    Returns:
        128 random bits as 32 hex characters
    """
    return secrets.token_hex(16)


def get_header(headers: Mapping[str, str], name: str) -> str | None:
    """
    Case-insensitive header lookup for plain mappings.

    Starlette's Headers is already case-insensitive; plain dicts passed by
    other hosts are not.
    """
    value = headers.get(name)
    if value is not None:
        return value

    lowered = name.lower()
    for key, candidate in headers.items():
        if key.lower() == lowered:
            return candidate

    return None


class TrustedProxies:
    """
    Peers whose forwarding headers (X-Forwarded-For, X-Real-IP, X-Client-IP)
    are believed.

    Entries are addresses or CIDR networks. ``*`` trusts every peer, which is
    only safe when the service cannot be reached except through a proxy.
    """

    def __init__(self, entries: Iterable[str] = ()):
        entries = list(entries)
        self.trust_all = "*" in entries
        self.networks = []

        for entry in entries:
            if entry == "*":
                continue
            try:
                self.networks.append(ipaddress.ip_network(entry, strict=False))
            except ValueError as e:
                raise ConfigurationError(f"Invalid trusted proxy: {entry}", e)

    def __contains__(self, host: str | None) -> bool:
        if self.trust_all:
            return True
        if not host:
            return False

        try:
            address = ipaddress.ip_address(host)
        except ValueError:
            return False

        return any(address in network for network in self.networks)


def get_client_ip(request: Request, trusted_proxies: TrustedProxies | None = None) -> str:
    """
    Get client IP address from request headers or remote address

    Forwarding headers are honoured only when the direct peer is a trusted
    proxy. Otherwise any caller could choose its own address.

    Args:
        request: Starlette/FastAPI request object
        trusted_proxies: Peers allowed to report the original client address

    Returns:
        Client IP address as a string
    """
    peer = request.client.host if request.client else None
    if trusted_proxies is None or peer not in trusted_proxies:
        return peer or "unknown"

    if "X-Forwarded-For" in request.headers:
        hops = [hop.strip() for hop in request.headers["X-Forwarded-For"].split(",") if hop.strip()]
        # Proxies append, so the first untrusted hop from the right is the client
        for hop in reversed(hops):
            if hop not in trusted_proxies:
                return hop
        if hops:
            return hops[0]

    if "X-Real-IP" in request.headers:
        return request.headers["X-Real-IP"].strip()

    if "X-Client-IP" in request.headers:
        return request.headers["X-Client-IP"].strip()

    return peer or "unknown"


def mask_token(token: str) -> str:
    """Shorten a token for log output."""
    if len(token) <= 12:
        return "***"

    return f"{token[:6]}...{token[-4:]}"
