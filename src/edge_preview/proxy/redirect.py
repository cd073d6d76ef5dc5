"""Point a worker's self-referential redirects back at the local listener."""

from __future__ import annotations

import ipaddress
import logging
from collections.abc import Iterable, Mapping
from urllib.parse import urlsplit

from edge_preview.proxy.headers import HeaderList, header_items

logger = logging.getLogger(__name__)

LOCATION_HEADER = "location"


def format_local_host(ip: str, port: int) -> str:
    """Render the listener address the way a browser would put it in a URL."""
    try:
        if ipaddress.ip_address(ip).version == 6:
            return f"[{ip}]:{port}"
    except ValueError:
        pass
    return f"{ip}:{port}"


def _location_domain(location: str) -> str | None:
    """Return the DNS domain of an absolute URL, or None.

    IP literals are not domains. Host names come back lower-cased.
    """
    try:
        parts = urlsplit(location)
        hostname = parts.hostname
    except ValueError:
        return None
    if not parts.scheme or not parts.netloc or not hostname:
        return None
    try:
        ipaddress.ip_address(hostname)
    except ValueError:
        return hostname
    return None


def _is_valid_header_value(value: str) -> bool:
    if any(ch in value for ch in ("\r", "\n", "\0")):
        return False
    try:
        value.encode("latin-1")
    except UnicodeEncodeError:
        return False
    return True


def rewrite_redirect(
    status: int,
    headers: Iterable[tuple[str, str]] | Mapping[str, str],
    upstream_host: str,
    local_host: str,
) -> HeaderList:
    """Rewrite a redirect ``Location`` that targets ``upstream_host``.

    The comparison is exact string equality against the parsed (lower-cased)
    domain. Every occurrence of the domain in the raw header is replaced, so
    path, query and fragment survive verbatim. Anything unexpected leaves the
    headers as they were.
    """
    items = header_items(headers)
    if not 300 <= status < 400:
        return items

    for index, (name, value) in enumerate(items):
        if name.lower() != LOCATION_HEADER:
            continue
        domain = _location_domain(value)
        if domain is None or domain != upstream_host:
            return items
        rewritten = value.replace(domain, local_host)
        if not _is_valid_header_value(rewritten):
            return items
        logger.debug("Rewriting redirect %s -> %s", value, rewritten)
        items[index] = (name, rewritten)
        return items
    return items
