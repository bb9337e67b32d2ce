"""Rate limiting for the login endpoints, keyed per client IP."""

from ipaddress import IPv4Network, IPv6Network, ip_address, ip_network

from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from keygate_api.config import Settings, get_settings


def trusted_networks(settings: Settings) -> list[IPv4Network | IPv6Network]:
    """Parse ``TRUSTED_PROXIES`` into networks. Unparseable entries are skipped."""
    networks = []
    for entry in settings.trusted_proxies_list:
        try:
            networks.append(ip_network(entry, strict=False))
        except ValueError:
            continue
    return networks


def client_ip(request: Request) -> str:
    """Address a request is attributed to.

    The peer address, unless the peer is a configured proxy, in which case the
    first valid ``X-Forwarded-For`` hop is used.
    """
    peer = get_remote_address(request)
    settings = getattr(request.app.state, "settings", None) or get_settings()

    try:
        peer_address = ip_address(peer)
    except ValueError:
        return peer
    if not any(peer_address in network for network in trusted_networks(settings)):
        return peer

    forwarded = request.headers.get("x-forwarded-for", "").split(",")[0].strip()
    try:
        return str(ip_address(forwarded))
    except ValueError:
        return peer


_settings = get_settings()

# In-memory storage unless a shared backend is configured
limiter = Limiter(
    key_func=client_ip,
    storage_uri=_settings.rate_limit_storage_uri or "memory://",
)

ADMIN_LOGIN_LIMIT = _settings.rate_limit_admin_login
LOGIN_LIMIT = _settings.rate_limit_login
