"""Checks on article URLs before anything is fetched.

Pages are fetched on the user's behalf, so a host that resolves to a
loopback, private or otherwise non-public address is refused.
"""

import asyncio
import ipaddress
import logging
import socket
from typing import List
from urllib.parse import urlparse

logger = logging.getLogger(__name__)


class RejectedUrl(ValueError):
    """The URL cannot be used as an article source."""


def article_host(url: str) -> str:
    """Hostname of an http(s) URL."""
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https"):
        raise RejectedUrl(f"Unsupported URL scheme: {parsed.scheme or '(none)'}")
    if not parsed.hostname:
        raise RejectedUrl("URL has no host")
    return parsed.hostname


def is_public_address(address: str) -> bool:
    ip = ipaddress.ip_address(address)
    if ip.version == 6 and ip.ipv4_mapped is not None:
        ip = ip.ipv4_mapped
    return ip.is_global and not ip.is_multicast


async def resolve_addresses(host: str) -> List[str]:
    """All addresses a host resolves to, looked up without blocking the loop."""
    loop = asyncio.get_running_loop()
    try:
        infos = await loop.getaddrinfo(host, None, type=socket.SOCK_STREAM)
    except socket.gaierror as e:
        raise RejectedUrl(f"Cannot resolve host: {host}") from e
    return sorted({sockaddr[0] for _, _, _, _, sockaddr in infos})


async def check_article_url(url: str, block_private: bool = True) -> str:
    """Validate an article URL and return its host.

    Raises:
        RejectedUrl: bad scheme, no host, or (with block_private) a host
            that cannot be resolved or has any non-public address
    """
    host = article_host(url)
    if not block_private:
        return host
    for address in await resolve_addresses(host):
        if not is_public_address(address):
            logger.warning(f"Refusing {url}: {host} resolves to {address}")
            raise RejectedUrl(f"URL points to an internal address ({address})")
    return host
